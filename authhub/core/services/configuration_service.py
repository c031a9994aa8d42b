"""Configuration validation service implementation."""

import logging
from typing import List

from authhub.core.auth.entities import TimeWindow
from authhub.core.exceptions import ConfigurationException
from authhub.settings import Settings

logger = logging.getLogger(__name__)

DEFAULT_JWT_SECRET = "your-secret-key-change-in-production"
MIN_SECRET_LENGTH = 32


class ConfigurationService:
    """
    Startup validation of security and lifecycle settings.

    Problems are fatal in production and logged as warnings elsewhere, so a
    development checkout starts with the shipped defaults.
    """

    def __init__(self, settings: Settings) -> None:
        self._settings = settings

    def validate(self) -> List[str]:
        """
        Validate settings for consistency.

        Returns:
            List of validation error messages (empty if valid)
        """
        settings = self._settings
        errors = []

        if not settings.jwt_secret_key:
            errors.append("jwt_secret_key is not set")
        elif settings.jwt_secret_key == DEFAULT_JWT_SECRET:
            errors.append("jwt_secret_key still uses the default value")
        elif len(settings.jwt_secret_key) < MIN_SECRET_LENGTH:
            errors.append(
                f"jwt_secret_key is too short ({len(settings.jwt_secret_key)} characters, "
                f"at least {MIN_SECRET_LENGTH} required)"
            )

        if not settings.jwt_algorithm.startswith("HS"):
            errors.append(f"jwt_algorithm must be an HMAC algorithm, got {settings.jwt_algorithm}")

        if settings.access_token_expire_minutes <= 0:
            errors.append("access_token_expire_minutes must be positive")
        if settings.refresh_token_expire_days <= 0:
            errors.append("refresh_token_expire_days must be positive")
        if settings.token_retention_days < 0:
            errors.append("token_retention_days cannot be negative")
        if settings.login_log_retention_days < 0:
            errors.append("login_log_retention_days cannot be negative")
        if settings.suspicious_failed_attempt_threshold < 1:
            errors.append("suspicious_failed_attempt_threshold must be at least 1")

        try:
            TimeWindow.parse(settings.suspicious_window)
        except ValueError as e:
            errors.append(str(e))

        if not settings.google_oauth_configured:
            errors.append("google_client_id and google_client_secret must both be set")

        return errors

    def ensure_valid(self) -> None:
        """
        Validate settings and act on the result.

        Raises:
            ConfigurationException: If settings are invalid in production
        """
        errors = self.validate()
        if not errors:
            logger.info("Configuration validated")
            return

        if self._settings.is_production:
            raise ConfigurationException("security", "; ".join(errors))

        for error in errors:
            logger.warning(f"Configuration problem: {error}")
