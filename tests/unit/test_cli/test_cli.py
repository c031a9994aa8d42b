"""Tests for the command line interface."""

from dataclasses import replace
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from click.testing import CliRunner

from authhub.cli import cli
from authhub.core.auth.entities import TokenStats, UserStatus
from authhub.core.auth.exceptions import EmailAlreadyVerifiedException, UserNotFoundException


async def _fake_in_session(work):
    return await work(MagicMock())


@pytest.fixture
def runner(test_settings):
    with patch("authhub.cli.setup_logging"), \
         patch("authhub.cli.get_settings", return_value=test_settings), \
         patch("authhub.cli._in_session", _fake_in_session):
        yield CliRunner()


def test_show_config(runner):
    result = runner.invoke(cli, ["show-config"])

    assert result.exit_code == 0
    assert "JWT Issuer / Audience: authhub-test / authhub-test-client" in result.output
    assert "Google OAuth configured: True" in result.output
    assert "Configuration problems" not in result.output


def test_suspicious_rejects_bad_window(runner):
    result = runner.invoke(cli, ["suspicious", "--window", "soon"])

    assert result.exit_code == 2
    assert "Invalid time window" in result.output


def test_set_status(runner, sample_user):
    service = MagicMock()
    service.set_user_status = AsyncMock(return_value=replace(sample_user, status=UserStatus.SUSPENDED))

    with patch("authhub.cli.build_auth_service", return_value=service):
        result = runner.invoke(cli, ["set-status", "user-1", "suspended"])

    assert result.exit_code == 0
    assert "alice@example.com is now suspended" in result.output
    service.set_user_status.assert_awaited_once_with("user-1", UserStatus.SUSPENDED)


def test_set_status_unknown_user(runner):
    service = MagicMock()
    service.set_user_status = AsyncMock(side_effect=UserNotFoundException("ghost"))

    with patch("authhub.cli.build_auth_service", return_value=service):
        result = runner.invoke(cli, ["set-status", "ghost", "inactive"])

    assert result.exit_code == 1


def test_set_status_rejects_unknown_status(runner):
    result = runner.invoke(cli, ["set-status", "user-1", "banned"])

    assert result.exit_code == 2


def test_verify_email(runner, sample_user):
    service = MagicMock()
    service.verify_email = AsyncMock(return_value=replace(sample_user, email_verified=True))

    with patch("authhub.cli.build_auth_service", return_value=service):
        result = runner.invoke(cli, ["verify-email", "user-1"])

    assert result.exit_code == 0
    assert "alice@example.com is now verified" in result.output
    service.verify_email.assert_awaited_once_with("user-1")


def test_verify_email_twice(runner):
    service = MagicMock()
    service.verify_email = AsyncMock(side_effect=EmailAlreadyVerifiedException("user-1"))

    with patch("authhub.cli.build_auth_service", return_value=service):
        result = runner.invoke(cli, ["verify-email", "user-1"])

    assert result.exit_code == 0
    assert "already verified" in result.output


def test_verify_email_unknown_user(runner):
    service = MagicMock()
    service.verify_email = AsyncMock(side_effect=UserNotFoundException("ghost"))

    with patch("authhub.cli.build_auth_service", return_value=service):
        result = runner.invoke(cli, ["verify-email", "ghost"])

    assert result.exit_code == 1


def test_token_stats(runner):
    repo = MagicMock()
    repo.token_stats = AsyncMock(
        return_value=TokenStats(total=5, active=2, expired=1, revoked=2, by_type={"refresh": 5})
    )

    with patch("authhub.cli.SqlRefreshTokenRepository", return_value=repo):
        result = runner.invoke(cli, ["token-stats", "--user-id", "user-1"])

    assert result.exit_code == 0
    assert "Refresh tokens for user user-1:" in result.output
    assert "active:  2" in result.output
    assert "revoked: 2" in result.output
    assert "refresh: 5" in result.output
    repo.token_stats.assert_awaited_once_with("user-1")


def test_sweep_tokens(runner):
    repo = MagicMock()
    repo.sweep_expired = AsyncMock(return_value=3)
    repo.sweep_revoked = AsyncMock(return_value=2)

    with patch("authhub.cli.SqlRefreshTokenRepository", return_value=repo):
        result = runner.invoke(cli, ["sweep-tokens", "--retention-days", "1"])

    assert result.exit_code == 0
    assert "Removed 3 expired and 2 revoked refresh tokens" in result.output
