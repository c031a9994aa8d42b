"""Authentication domain entities."""

import math
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Any, Dict, Generic, List, Optional, TypeVar

T = TypeVar("T")


def utcnow() -> datetime:
    """Current time as naive UTC, the representation every stored timestamp uses."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


class UserStatus(str, Enum):
    ACTIVE = "active"
    INACTIVE = "inactive"
    SUSPENDED = "suspended"


class TokenKind(str, Enum):
    ACCESS = "access"
    REFRESH = "refresh"


class LoginMethod(str, Enum):
    FEDERATED_LOGIN = "federated_login"
    TOKEN_REFRESH = "token_refresh"


class WindowUnit(str, Enum):
    MINUTES = "minutes"
    HOURS = "hours"
    DAYS = "days"


@dataclass(frozen=True)
class User:
    """
    User entity for authentication.

    Attributes:
        id: Opaque user identifier
        email: Unique email address, matched exactly as stored
        name: Display name
        external_id: Identity provider user id (unique once linked)
        avatar_url: Optional avatar URL
        status: Account status
        email_verified: Whether the provider verified the email
        preferences: Free-form preferences map
        created_at: Account creation timestamp
        updated_at: Last update timestamp
        last_login_at: Last successful login timestamp
    """

    id: str
    email: str
    name: str
    external_id: Optional[str] = None
    avatar_url: Optional[str] = None
    status: UserStatus = UserStatus.ACTIVE
    email_verified: bool = False
    preferences: Dict[str, Any] = field(default_factory=dict)
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    last_login_at: Optional[datetime] = None

    def __post_init__(self) -> None:
        """Validate user data after initialization."""
        if not self.email:
            raise ValueError("Email cannot be empty")
        if "@" not in self.email:
            raise ValueError("Invalid email format")

    @property
    def is_active(self) -> bool:
        return self.status is UserStatus.ACTIVE


@dataclass(frozen=True)
class RefreshToken:
    """
    Stored refresh token record.

    Only the digest of the secret is kept; the secret itself is returned once
    to the client and cannot be recovered.

    Attributes:
        id: Unique token identifier
        user_id: Owning user id
        token_hash: One-way digest of the token secret
        expires_at: Token expiration timestamp
        token_type: Token kind, always refresh for persisted rows
        is_revoked: Whether token has been revoked
        created_at: Token creation timestamp
        revoked_at: First revocation timestamp
        device_info: Client details captured at issuance
    """

    id: Optional[str]
    user_id: str
    token_hash: str
    expires_at: datetime
    token_type: TokenKind = TokenKind.REFRESH
    is_revoked: bool = False
    created_at: Optional[datetime] = None
    revoked_at: Optional[datetime] = None
    device_info: Dict[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        """Validate refresh token data."""
        if not self.token_hash:
            raise ValueError("Token hash cannot be empty")
        if not self.user_id:
            raise ValueError("User ID cannot be empty")

    def is_expired(self, now: Optional[datetime] = None) -> bool:
        """Check if refresh token is expired."""
        return (now or utcnow()) >= self.expires_at

    def is_valid(self, now: Optional[datetime] = None) -> bool:
        """Check if refresh token is valid (not expired and not revoked)."""
        return not self.is_revoked and not self.is_expired(now)


@dataclass(frozen=True)
class LoginLogEntry:
    """Append-only audit record of an authentication event."""

    id: Optional[str]
    user_id: Optional[str]
    login_method: LoginMethod
    success: bool
    login_at: datetime
    error_message: Optional[str] = None
    ip_address: Optional[str] = None
    user_agent: Optional[str] = None
    location: Optional[Dict[str, Any]] = None


@dataclass(frozen=True)
class ProviderProfile:
    """Identity profile returned by a federation provider."""

    external_id: str
    email: Optional[str]
    display_name: str
    avatar_url: Optional[str] = None
    email_verified: bool = False


@dataclass(frozen=True)
class ProviderCallback:
    """Query parameters delivered to the OAuth redirect URI."""

    code: Optional[str] = None
    state: Optional[str] = None
    error: Optional[str] = None


@dataclass(frozen=True)
class ClientContext:
    """Request metadata recorded with tokens and audit entries."""

    ip_address: Optional[str] = None
    user_agent: Optional[str] = None

    def device_info(self) -> Dict[str, Any]:
        info: Dict[str, Any] = {}
        if self.ip_address:
            info["ip_address"] = self.ip_address
        if self.user_agent:
            info["user_agent"] = self.user_agent
        return info


@dataclass(frozen=True)
class IssuedTokens:
    """
    Access and refresh token pair.

    Attributes:
        access_token: Signed JWT access token
        refresh_token: Opaque refresh token secret
        access_expires_at: Access token expiry
        refresh_expires_at: Refresh token expiry
        token_type: Token type (typically "bearer")
    """

    access_token: str
    refresh_token: str
    access_expires_at: datetime
    refresh_expires_at: datetime
    token_type: str = "bearer"

    def __post_init__(self) -> None:
        """Validate token pair data."""
        if not self.access_token:
            raise ValueError("Access token cannot be empty")
        if not self.refresh_token:
            raise ValueError("Refresh token cannot be empty")

    @property
    def expires_in(self) -> int:
        """Access token lifetime in whole seconds from now, rounded up."""
        return max(0, math.ceil((self.access_expires_at - utcnow()).total_seconds()))


@dataclass(frozen=True)
class AccessTokenClaims:
    """Verified access token payload."""

    sub: str
    email: str
    name: str
    role: str
    exp: int
    iat: int
    iss: str
    aud: str
    jti: Optional[str] = None
    token_type: str = TokenKind.ACCESS.value

    def __post_init__(self) -> None:
        """Validate token payload data."""
        if not self.sub:
            raise ValueError("Subject cannot be empty")
        if self.exp <= self.iat:
            raise ValueError("Expiration must be after issued time")


@dataclass(frozen=True)
class FederationRedirect:
    url: str
    state: str


@dataclass(frozen=True)
class FederatedLoginResult:
    user: User
    tokens: IssuedTokens
    is_new_user: bool


@dataclass(frozen=True)
class TimeWindow:
    """
    Trailing time window such as "15 minutes" or "24 hours".

    Attributes:
        amount: Number of units
        unit: Window unit
    """

    amount: int
    unit: WindowUnit

    def __post_init__(self) -> None:
        if self.amount <= 0:
            raise ValueError("Window amount must be positive")

    @classmethod
    def parse(cls, value: str) -> "TimeWindow":
        """
        Parse a window expression.

        Args:
            value: "<amount> <unit>", unit singular or plural

        Returns:
            Parsed window

        Raises:
            ValueError: If the expression is malformed
        """
        parts = value.strip().split()
        if len(parts) != 2:
            raise ValueError(f"Invalid time window: {value!r}")
        amount, unit = parts
        unit = unit.lower()
        if not unit.endswith("s"):
            unit += "s"
        try:
            return cls(int(amount), WindowUnit(unit))
        except ValueError:
            raise ValueError(f"Invalid time window: {value!r}")

    def to_timedelta(self) -> timedelta:
        return timedelta(**{self.unit.value: self.amount})

    def start(self, now: Optional[datetime] = None) -> datetime:
        """Earliest timestamp inside the window."""
        return (now or utcnow()) - self.to_timedelta()

    def __str__(self) -> str:
        return f"{self.amount} {self.unit.value}"


@dataclass(frozen=True)
class Page(Generic[T]):
    items: List[T]
    total: int
    page: int
    limit: int


@dataclass(frozen=True)
class LoginStats:
    total: int
    successful: int
    failed: int
    unique_users: int
    unique_ips: int
    by_method: Dict[str, int]
    last_login_at: Optional[datetime] = None

    @property
    def success_rate(self) -> int:
        """Successful share of all attempts, as a rounded percentage."""
        if self.total == 0:
            return 0
        return round(self.successful / self.total * 100)


@dataclass(frozen=True)
class SuspiciousSource:
    key: str
    failed_attempts: int
    last_attempt_at: datetime


@dataclass(frozen=True)
class SuspiciousActivityReport:
    window: TimeWindow
    threshold: int
    suspicious_ips: List[SuspiciousSource]
    suspicious_users: List[SuspiciousSource]


@dataclass(frozen=True)
class TokenStats:
    total: int
    active: int
    expired: int
    revoked: int
    by_type: Dict[str, int]
