"""Authentication API schemas."""

from datetime import datetime
from typing import Any, Dict, Optional

from pydantic import BaseModel, Field

from authhub.core.auth.entities import IssuedTokens, User


class TokenResponse(BaseModel):
    """Token pair response schema."""

    access_token: str = Field(
        ...,
        description="JWT access token",
        examples=["eyJhbGciOiJIUzI1NiIsInR5cCI6IkpXVCJ9..."],
    )
    refresh_token: str = Field(
        ...,
        description="Single-use refresh token",
        examples=["9f86d081884c7d659a2feaa0c55ad015..."],
    )
    token_type: str = Field(
        default="bearer",
        description="Token type",
        examples=["bearer"],
    )
    expires_in: int = Field(
        ...,
        description="Access token lifetime in seconds",
        examples=[3600],
    )
    refresh_expires_at: datetime = Field(
        ...,
        description="Refresh token expiry (UTC)",
    )

    @classmethod
    def from_tokens(cls, tokens: IssuedTokens) -> "TokenResponse":
        return cls(
            access_token=tokens.access_token,
            refresh_token=tokens.refresh_token,
            token_type=tokens.token_type,
            expires_in=tokens.expires_in,
            refresh_expires_at=tokens.refresh_expires_at,
        )


class RefreshTokenRequest(BaseModel):
    """Refresh token request schema."""

    refresh_token: str = Field(
        ...,
        min_length=1,
        description="Refresh token",
        examples=["9f86d081884c7d659a2feaa0c55ad015..."],
    )


class PreferencesUpdateRequest(BaseModel):
    """Partial preferences update; keys not sent keep their value."""

    preferences: Dict[str, Any] = Field(
        ...,
        description="Preference values to set",
        examples=[{"language": "en", "theme": "dark"}],
    )


class UserResponse(BaseModel):
    """User response schema."""

    id: str = Field(..., description="User unique identifier")
    email: str = Field(..., description="User email address", examples=["alice@example.com"])
    name: str = Field(..., description="Display name", examples=["Alice"])
    avatar_url: Optional[str] = Field(None, description="Avatar URL")
    status: str = Field(..., description="Account status", examples=["active"])
    email_verified: bool = Field(..., description="Whether the provider verified the email")
    preferences: Dict[str, Any] = Field(default_factory=dict, description="User preferences")
    created_at: Optional[datetime] = Field(None, description="Account creation timestamp")
    last_login_at: Optional[datetime] = Field(None, description="Last successful login")

    @classmethod
    def from_user(cls, user: User) -> "UserResponse":
        return cls(
            id=user.id,
            email=user.email,
            name=user.name,
            avatar_url=user.avatar_url,
            status=user.status.value,
            email_verified=user.email_verified,
            preferences=dict(user.preferences),
            created_at=user.created_at,
            last_login_at=user.last_login_at,
        )


class LoginResponse(BaseModel):
    """Completed federated login response schema."""

    user: UserResponse
    tokens: TokenResponse
    is_new_user: bool = Field(..., description="Whether the account was created by this login")


class LogoutResponse(BaseModel):
    """Logout response schema."""

    message: str = Field(..., examples=["Logged out"])
    revoked: bool = Field(..., description="Whether a valid token was revoked")


class LogoutAllResponse(BaseModel):
    """Global logout response schema."""

    message: str = Field(..., examples=["Logged out from all sessions"])
    revoked_tokens: int = Field(..., description="Number of refresh tokens revoked")


class TokenClaimsResponse(BaseModel):
    """Verified access token response schema."""

    valid: bool = True
    sub: str
    email: str
    name: str
    role: str
    iat: int
    exp: int
    jti: Optional[str] = None


class SessionResponse(BaseModel):
    """Active refresh token (session) response schema."""

    id: str
    created_at: Optional[datetime] = None
    expires_at: datetime
    device_info: Dict[str, Any] = Field(default_factory=dict)


class ErrorResponse(BaseModel):
    """Error response schema."""

    error: str = Field(
        ...,
        description="Error message",
        examples=["Session expired, please log in again"],
    )
    type: str = Field(
        ...,
        description="Error type",
        examples=["invalid_refresh_token"],
    )
    retryable: bool = Field(False, description="Whether repeating the request may succeed")
