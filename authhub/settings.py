"""Application settings and configuration."""

from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    # Application settings
    debug: bool = Field(False)
    environment: str = Field("development")
    host: str = Field("0.0.0.0")
    port: int = Field(8000)

    # Database settings
    database_url: str = Field("sqlite+aiosqlite:///./authhub.db")

    # Redis settings
    redis_url: str = Field("redis://localhost:6379")

    # JWT settings
    jwt_secret_key: str = Field("your-secret-key-change-in-production")
    jwt_algorithm: str = Field("HS256")
    jwt_issuer: str = Field("authhub-api")
    jwt_audience: str = Field("authhub-client")
    jwt_default_role: str = Field("user")
    access_token_expire_minutes: int = Field(60)
    refresh_token_expire_days: int = Field(7)

    # Refresh tokens are stored as HMAC-SHA256 digests keyed by this value
    token_hash_key: str = Field("")

    # Google OAuth settings
    google_client_id: str = Field("")
    google_client_secret: str = Field("")
    google_redirect_uri: str = Field("http://localhost:8000/api/v1/auth/google/callback")
    google_scopes: list[str] = Field(
        default_factory=lambda: [
            "https://www.googleapis.com/auth/userinfo.profile",
            "https://www.googleapis.com/auth/userinfo.email",
        ]
    )
    oauth_state_check_enabled: bool = Field(True)
    oauth_state_ttl_seconds: int = Field(600)
    oauth_http_timeout: float = Field(10.0)

    # Retention and abuse detection
    token_retention_days: int = Field(0)
    login_log_retention_days: int = Field(90)
    suspicious_window: str = Field("1 hour")
    suspicious_failed_attempt_threshold: int = Field(5)

    # Users allowed to read audit data of other users and IP addresses
    admin_emails: list[str] = Field(default_factory=list)

    # API settings
    api_title: str = Field("AuthHub API")
    api_version: str = Field("1.0.0")
    api_description: str = Field("Federated login and token lifecycle service")

    # CORS settings
    allowed_origins: list[str] = Field(default_factory=lambda: ["*"])

    # Celery settings
    celery_broker_url: str = Field("redis://localhost:6379/0")
    celery_result_backend: str = Field("redis://localhost:6379/0")

    # Logging settings
    log_level: str = Field("INFO")
    log_format: str = Field("%(asctime)s - %(name)s - %(levelname)s - %(message)s")
    log_dir: str = Field("logs")

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "case_sensitive": False,
        "extra": "ignore",
    }

    @property
    def is_production(self) -> bool:
        """Check if running in production environment."""
        return self.environment == "production"

    @property
    def google_oauth_configured(self) -> bool:
        return bool(self.google_client_id and self.google_client_secret)


@lru_cache()
def get_settings() -> Settings:
    return Settings()
