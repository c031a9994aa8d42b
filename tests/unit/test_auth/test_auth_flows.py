"""End-to-end authentication flows against SQLite."""

import asyncio

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool

from authhub.api.dependencies import build_auth_service
from authhub.core.auth.audit import SessionAuditor
from authhub.core.auth.entities import (
    ClientContext,
    IssuedTokens,
    LoginMethod,
    ProviderCallback,
    ProviderProfile,
    User,
    UserStatus,
)
from authhub.core.auth.exceptions import AuthError, AuthErrorCode
from authhub.infrastructure.database.connection import Base
from authhub.infrastructure.database.repositories.login_log_repository import SqlLoginLogRepository
from authhub.infrastructure.database.repositories.refresh_token_repository import SqlRefreshTokenRepository
from authhub.infrastructure.database.repositories.user_repository import SqlUserRepository
from authhub.infrastructure.database.session import session_scope

CLIENT = ClientContext(ip_address="198.51.100.7", user_agent="pytest")
ATTACKER = ClientContext(ip_address="203.0.113.5", user_agent="bot")


@pytest.fixture
def auth_service(db_session, test_settings, hasher, fake_provider, state_store):
    return build_auth_service(db_session, test_settings, hasher, fake_provider, state_store)


@pytest.fixture
def auditor(db_session):
    return SessionAuditor(SqlLoginLogRepository(db_session))


async def _login(auth_service, code="alice-code", client=CLIENT):
    redirect = await auth_service.begin_federated_login()
    return await auth_service.complete_federated_login(ProviderCallback(code=code, state=redirect.state), client)


async def _entries(auditor, user_id):
    return (await auditor.history_for_user(user_id, 1, 100)).items


class TestFederatedLogin:
    """Test cases for the login flow."""

    @pytest.mark.asyncio
    async def test_first_login_creates_user(self, auth_service, auditor):
        result = await _login(auth_service)

        assert result.is_new_user is True
        assert result.user.email == "alice@example.com"
        assert result.user.external_id == "g-42"
        assert result.user.last_login_at is not None
        entries = await _entries(auditor, result.user.id)
        assert len(entries) == 1
        assert entries[0].success is True
        assert entries[0].login_method is LoginMethod.FEDERATED_LOGIN
        assert entries[0].location == {"provider": "fake", "is_new_user": True}
        assert entries[0].ip_address == "198.51.100.7"

    @pytest.mark.asyncio
    async def test_second_login_reuses_user(self, auth_service):
        first = await _login(auth_service)
        second = await _login(auth_service)

        assert second.is_new_user is False
        assert second.user.id == first.user.id

    @pytest.mark.asyncio
    async def test_links_existing_account_by_email(self, auth_service, db_session):
        users = SqlUserRepository(db_session)
        existing = await users.create_user(User(id="", email="alice@example.com", name="alice"))

        result = await _login(auth_service)

        assert result.is_new_user is False
        assert result.user.id == existing.id
        assert result.user.external_id == "g-42"
        assert (await users.get_user_by_external_id("g-42")).id == existing.id

    @pytest.mark.asyncio
    async def test_state_is_single_use(self, auth_service):
        redirect = await auth_service.begin_federated_login()
        await auth_service.complete_federated_login(
            ProviderCallback(code="alice-code", state=redirect.state), CLIENT
        )

        with pytest.raises(AuthError) as exc_info:
            await auth_service.complete_federated_login(
                ProviderCallback(code="alice-code", state=redirect.state), CLIENT
            )

        assert exc_info.value.code is AuthErrorCode.FEDERATION_FAILED

    @pytest.mark.asyncio
    async def test_rejected_code_is_audited(self, auth_service, auditor):
        with pytest.raises(AuthError) as exc_info:
            await _login(auth_service, code="bad-code", client=ATTACKER)

        assert exc_info.value.code is AuthErrorCode.FEDERATION_FAILED
        history = await auditor.history_for_ip("203.0.113.5")
        assert history.total == 1
        assert history.items[0].success is False
        assert history.items[0].user_id is None

    @pytest.mark.asyncio
    async def test_incomplete_profile(self, auth_service, fake_provider, db_session):
        fake_provider.profiles["no-email"] = ProviderProfile(external_id="g-7", email=None, display_name="Nobody")

        with pytest.raises(AuthError) as exc_info:
            await _login(auth_service, code="no-email")

        assert exc_info.value.code is AuthErrorCode.FEDERATION_FAILED
        assert await SqlUserRepository(db_session).get_user_by_external_id("g-7") is None

    @pytest.mark.asyncio
    async def test_malformed_email_is_audited(self, auth_service, fake_provider, auditor):
        fake_provider.profiles["bad-email"] = ProviderProfile(
            external_id="g-8", email="not-an-email", display_name="Mallory"
        )

        with pytest.raises(AuthError) as exc_info:
            await _login(auth_service, code="bad-email", client=ATTACKER)

        assert exc_info.value.code is AuthErrorCode.FEDERATION_FAILED
        history = await auditor.history_for_ip("203.0.113.5")
        assert history.total == 1
        assert history.items[0].success is False
        assert history.items[0].login_method is LoginMethod.FEDERATED_LOGIN


class TestRefreshRotation:
    """Test cases for single-use refresh tokens."""

    @pytest.mark.asyncio
    async def test_refresh_rotates(self, auth_service, auditor):
        login = await _login(auth_service)

        rotated = await auth_service.refresh(login.tokens.refresh_token, CLIENT)

        assert rotated.refresh_token != login.tokens.refresh_token
        assert auth_service.verify_access_token(rotated.access_token).sub == login.user.id
        with pytest.raises(AuthError) as exc_info:
            await auth_service.refresh(login.tokens.refresh_token, CLIENT)
        assert exc_info.value.code is AuthErrorCode.INVALID_REFRESH_TOKEN

        again = await auth_service.refresh(rotated.refresh_token, CLIENT)
        assert again.refresh_token not in (login.tokens.refresh_token, rotated.refresh_token)

        entries = await _entries(auditor, login.user.id)
        outcomes = sorted((e.login_method.value, e.success) for e in entries)
        assert outcomes == [
            ("federated_login", True),
            ("token_refresh", False),
            ("token_refresh", True),
            ("token_refresh", True),
        ]

    @pytest.mark.asyncio
    async def test_one_active_session_per_login(self, auth_service):
        login = await _login(auth_service)
        await auth_service.refresh(login.tokens.refresh_token, CLIENT)

        sessions = await auth_service.active_sessions(login.user.id)

        assert len(sessions) == 1
        assert sessions[0].device_info == {"ip_address": "198.51.100.7", "user_agent": "pytest"}

    @pytest.mark.asyncio
    async def test_unknown_refresh_token(self, auth_service, auditor):
        with pytest.raises(AuthError) as exc_info:
            await auth_service.refresh("not-a-real-token", ATTACKER)

        assert exc_info.value.code is AuthErrorCode.INVALID_REFRESH_TOKEN
        assert (await auditor.history_for_ip("203.0.113.5")).total == 1

    @pytest.mark.asyncio
    async def test_stored_value_is_a_digest(self, auth_service, db_session, hasher):
        login = await _login(auth_service)
        tokens = SqlRefreshTokenRepository(db_session)

        assert await tokens.find_by_hash(login.tokens.refresh_token) is None
        assert await tokens.find_by_hash(hasher.hash_token(login.tokens.refresh_token)) is not None


class TestRevocation:
    """Test cases for logout."""

    @pytest.mark.asyncio
    async def test_logout(self, auth_service):
        login = await _login(auth_service)

        assert await auth_service.revoke(login.tokens.refresh_token) is True
        assert await auth_service.revoke(login.tokens.refresh_token) is False
        with pytest.raises(AuthError):
            await auth_service.refresh(login.tokens.refresh_token, CLIENT)

    @pytest.mark.asyncio
    async def test_logout_everywhere(self, auth_service, auditor):
        first = await _login(auth_service)
        second = await _login(auth_service)

        assert await auth_service.revoke_all(first.user.id, CLIENT) == 2
        assert await auth_service.revoke_all(first.user.id, CLIENT) == 0
        for tokens in (first.tokens, second.tokens):
            with pytest.raises(AuthError):
                await auth_service.refresh(tokens.refresh_token, CLIENT)
        assert auth_service.verify_access_token(first.tokens.access_token).sub == first.user.id

        actions = [e.location.get("action") for e in await _entries(auditor, first.user.id) if e.location]
        assert actions.count("revoke_all") == 2
        stats = await auditor.stats(user_id=first.user.id)
        assert stats.total == 2
        assert stats.successful == 2

    @pytest.mark.asyncio
    async def test_suspend_ends_sessions(self, auth_service):
        login = await _login(auth_service)

        user = await auth_service.set_user_status(login.user.id, UserStatus.SUSPENDED)

        assert user.status is UserStatus.SUSPENDED
        with pytest.raises(AuthError):
            await auth_service.refresh(login.tokens.refresh_token, CLIENT)
        with pytest.raises(AuthError) as exc_info:
            await auth_service.get_current_user(login.tokens.access_token)
        assert exc_info.value.code is AuthErrorCode.INVALID_ACCESS_TOKEN
        with pytest.raises(AuthError) as exc_info:
            await _login(auth_service)
        assert exc_info.value.code is AuthErrorCode.FEDERATION_FAILED


class TestSuspiciousActivity:
    """Test cases for failed attempt analysis over real audit entries."""

    async def _fail(self, auth_service, times):
        for _ in range(times):
            with pytest.raises(AuthError):
                await auth_service.refresh("guessed-token", ATTACKER)

    @pytest.mark.asyncio
    async def test_five_failures_are_suspicious(self, auth_service, auditor):
        await self._fail(auth_service, 5)

        report = await auditor.suspicious_activity("1 hour", 5)

        assert [(s.key, s.failed_attempts) for s in report.suspicious_ips] == [("203.0.113.5", 5)]
        assert await auditor.failed_attempts("15 minutes", ip_address="203.0.113.5") == 5

    @pytest.mark.asyncio
    async def test_four_failures_are_not(self, auth_service, auditor):
        await self._fail(auth_service, 4)

        report = await auditor.suspicious_activity("1 hour", 5)

        assert report.suspicious_ips == []
        assert report.suspicious_users == []


@pytest_asyncio.fixture
async def file_session_maker(tmp_path):
    """Session factory on a file database; every session gets its own connection."""
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'authhub.sqlite'}", poolclass=NullPool)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    await engine.dispose()


class TestConcurrentRefresh:
    """Test cases for parallel exchanges of one refresh token."""

    @pytest.mark.asyncio
    async def test_single_winner(self, file_session_maker, test_settings, hasher, fake_provider, state_store):
        def service(session):
            return build_auth_service(session, test_settings, hasher, fake_provider, state_store)

        async with session_scope(file_session_maker) as session:
            login = await _login(service(session))

        async def exchange():
            async with session_scope(file_session_maker) as session:
                return await service(session).refresh(login.tokens.refresh_token, CLIENT)

        results = await asyncio.gather(*(exchange() for _ in range(5)), return_exceptions=True)

        winners = [r for r in results if isinstance(r, IssuedTokens)]
        losers = [r for r in results if isinstance(r, AuthError)]
        assert len(winners) == 1
        assert len(losers) == 4
        assert all(e.code is AuthErrorCode.INVALID_REFRESH_TOKEN for e in losers)

        async with session_scope(file_session_maker) as session:
            assert len(await service(session).active_sessions(login.user.id)) == 1
            stats = await SessionAuditor(SqlLoginLogRepository(session)).stats(user_id=login.user.id)
            assert stats.by_method == {"federated_login": 1, "token_refresh": 5}
            assert stats.failed == 4
