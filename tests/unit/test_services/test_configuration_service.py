"""Tests for configuration validation."""

import pytest

from authhub.core.exceptions import ConfigurationException
from authhub.core.services.configuration_service import DEFAULT_JWT_SECRET, ConfigurationService


def _with(settings, **overrides):
    return ConfigurationService(settings.model_copy(update=overrides))


class TestConfigurationService:
    """Test cases for ConfigurationService."""

    def test_valid_settings(self, test_settings):
        assert ConfigurationService(test_settings).validate() == []

    @pytest.mark.parametrize(
        "overrides, fragment",
        [
            ({"jwt_secret_key": ""}, "jwt_secret_key is not set"),
            ({"jwt_secret_key": DEFAULT_JWT_SECRET}, "default value"),
            ({"jwt_secret_key": "short"}, "too short"),
            ({"jwt_algorithm": "RS256"}, "HMAC"),
            ({"access_token_expire_minutes": 0}, "access_token_expire_minutes"),
            ({"refresh_token_expire_days": -1}, "refresh_token_expire_days"),
            ({"token_retention_days": -1}, "token_retention_days"),
            ({"login_log_retention_days": -5}, "login_log_retention_days"),
            ({"suspicious_failed_attempt_threshold": 0}, "suspicious_failed_attempt_threshold"),
            ({"suspicious_window": "a while"}, "Invalid time window"),
            ({"google_client_secret": ""}, "google_client_id"),
        ],
    )
    def test_invalid_settings(self, test_settings, overrides, fragment):
        errors = _with(test_settings, **overrides).validate()

        assert len(errors) == 1
        assert fragment in errors[0]

    def test_ensure_valid_in_production(self, test_settings):
        service = _with(test_settings, environment="production", jwt_secret_key="short")

        with pytest.raises(ConfigurationException) as exc_info:
            service.ensure_valid()

        assert exc_info.value.setting == "security"
        assert "too short" in exc_info.value.details

    def test_ensure_valid_in_development_only_warns(self, test_settings):
        _with(test_settings, environment="development", jwt_secret_key="short").ensure_valid()

    def test_ensure_valid_passes(self, test_settings):
        _with(test_settings, environment="production").ensure_valid()
