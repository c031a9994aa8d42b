"""Authentication service interfaces."""

from abc import ABC, abstractmethod
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional

from .entities import (
    LoginLogEntry,
    LoginStats,
    Page,
    ProviderProfile,
    RefreshToken,
    SuspiciousSource,
    TokenKind,
    TokenStats,
    User,
    UserStatus,
)


class UserRepositoryInterface(ABC):
    """Interface for user data access operations."""

    @abstractmethod
    async def get_user_by_id(self, user_id: str) -> Optional[User]:
        """
        Get user by ID.

        Args:
            user_id: User identifier

        Returns:
            User entity if found, None otherwise
        """
        pass

    @abstractmethod
    async def get_user_by_external_id(self, external_id: str) -> Optional[User]:
        """
        Get user by identity provider id.

        Args:
            external_id: Provider user id, matched exactly

        Returns:
            User entity if found, None otherwise
        """
        pass

    @abstractmethod
    async def get_user_by_email(self, email: str) -> Optional[User]:
        """
        Get user by email.

        Args:
            email: Email address, matched exactly

        Returns:
            User entity if found, None otherwise
        """
        pass

    @abstractmethod
    async def create_user(self, user: User) -> User:
        """
        Create new user.

        Args:
            user: User entity to create

        Returns:
            Created user entity with ID

        Raises:
            UserAlreadyExistsException: If external id or email already exists
        """
        pass

    @abstractmethod
    async def update_user(self, user: User) -> User:
        """
        Update existing user.

        Args:
            user: User entity carrying the new field values

        Returns:
            Updated user entity

        Raises:
            UserNotFoundException: If no row has the user's id
        """
        pass

    @abstractmethod
    async def update_last_login(self, user_id: str, at: datetime) -> Optional[User]:
        """
        Stamp the last successful login time.

        Args:
            user_id: User identifier
            at: Login timestamp

        Returns:
            Updated user entity, None if not found
        """
        pass

    @abstractmethod
    async def update_status(self, user_id: str, status: UserStatus) -> Optional[User]:
        """
        Change account status.

        Args:
            user_id: User identifier
            status: New status

        Returns:
            Updated user entity, None if not found
        """
        pass

    @abstractmethod
    async def update_preferences(self, user_id: str, preferences: Dict[str, Any]) -> Optional[User]:
        """
        Merge preference values into the stored map.

        Keys present in preferences overwrite stored ones; other stored keys
        are kept.

        Args:
            user_id: User identifier
            preferences: Values to merge

        Returns:
            Updated user entity, None if not found
        """
        pass

    @abstractmethod
    async def mark_email_verified(self, user_id: str) -> Optional[User]:
        """Set the email verified flag. Returns None if the user is not found."""
        pass


class RefreshTokenRepositoryInterface(ABC):
    """Interface for refresh token data access operations."""

    @abstractmethod
    async def store(
        self,
        user_id: str,
        token_hash: str,
        expires_at: datetime,
        device_info: Optional[Dict[str, Any]] = None,
    ) -> RefreshToken:
        """
        Persist a new refresh token record.

        Args:
            user_id: Owning user id
            token_hash: Digest of the token secret
            expires_at: Expiry timestamp
            device_info: Client details

        Returns:
            Stored refresh token entity
        """
        pass

    @abstractmethod
    async def validate(self, token_hash: str) -> Optional[RefreshToken]:
        """
        Look up a currently valid token.

        Args:
            token_hash: Digest of the token secret

        Returns:
            Token entity if unrevoked and unexpired, None otherwise
        """
        pass

    @abstractmethod
    async def consume(self, token_hash: str) -> Optional[RefreshToken]:
        """
        Atomically validate and revoke a token.

        Args:
            token_hash: Digest of the token secret

        Returns:
            The revoked token if this call was the one that revoked it,
            None if it was already invalid
        """
        pass

    @abstractmethod
    async def find_by_hash(self, token_hash: str) -> Optional[RefreshToken]:
        """
        Look up a token regardless of state, for diagnostics only.

        Args:
            token_hash: Digest of the token secret

        Returns:
            Token entity if a row exists, None otherwise
        """
        pass

    @abstractmethod
    async def revoke(self, token_id: str) -> bool:
        """
        Revoke a token by id.

        Returns:
            True if the token changed state, False if already revoked or missing
        """
        pass

    @abstractmethod
    async def revoke_by_hash(self, token_hash: str) -> bool:
        """
        Revoke a token by digest.

        Returns:
            True if the token changed state, False if already revoked or missing
        """
        pass

    @abstractmethod
    async def revoke_all(self, user_id: str) -> int:
        """
        Revoke every unrevoked token of a user.

        Returns:
            Number of tokens revoked
        """
        pass

    @abstractmethod
    async def revoke_all_of_kind(self, user_id: str, kind: TokenKind) -> int:
        """
        Revoke every unrevoked token of a user with the given kind.

        Returns:
            Number of tokens revoked
        """
        pass

    @abstractmethod
    async def active_tokens(self, user_id: str) -> List[RefreshToken]:
        """List a user's valid refresh tokens, newest first."""
        pass

    @abstractmethod
    async def active_token_count(self, user_id: str) -> int:
        """Count a user's valid tokens."""
        pass

    @abstractmethod
    async def sweep_expired(self, retention: timedelta = timedelta(0)) -> int:
        """
        Delete tokens that expired more than ``retention`` ago.

        Returns:
            Number of tokens removed
        """
        pass

    @abstractmethod
    async def sweep_revoked(self, retention: timedelta = timedelta(0)) -> int:
        """
        Delete tokens revoked more than ``retention`` ago.

        Returns:
            Number of tokens removed
        """
        pass

    @abstractmethod
    async def token_stats(self, user_id: Optional[str] = None) -> TokenStats:
        """Count tokens by state, optionally for one user."""
        pass


class LoginLogRepositoryInterface(ABC):
    """Interface for login audit log data access operations."""

    @abstractmethod
    async def create(self, entry: LoginLogEntry) -> LoginLogEntry:
        """Append an audit entry."""
        pass

    @abstractmethod
    async def find_by_user(self, user_id: str, page: int, limit: int) -> Page[LoginLogEntry]:
        """Paginated history of a user, newest first."""
        pass

    @abstractmethod
    async def find_by_ip(self, ip_address: str, page: int, limit: int) -> Page[LoginLogEntry]:
        """Paginated history of an IP address, newest first."""
        pass

    @abstractmethod
    async def last_successful(self, user_id: str) -> Optional[LoginLogEntry]:
        """Most recent successful entry of a user."""
        pass

    @abstractmethod
    async def count_failed(
        self,
        since: datetime,
        user_id: Optional[str] = None,
        ip_address: Optional[str] = None,
    ) -> int:
        """Count failed attempts since a timestamp."""
        pass

    @abstractmethod
    async def stats(
        self, since: Optional[datetime] = None, user_id: Optional[str] = None
    ) -> LoginStats:
        """Aggregate totals, optionally limited to a window or user."""
        pass

    @abstractmethod
    async def failed_groups_by_ip(self, since: datetime, threshold: int) -> List[SuspiciousSource]:
        """IP addresses with at least ``threshold`` failures since a timestamp."""
        pass

    @abstractmethod
    async def failed_groups_by_user(self, since: datetime, threshold: int) -> List[SuspiciousSource]:
        """User ids with at least ``threshold`` failures since a timestamp."""
        pass

    @abstractmethod
    async def delete_older_than(self, cutoff: datetime) -> int:
        """Delete entries logged before ``cutoff``."""
        pass


class FederationProviderInterface(ABC):
    """Interface for an OAuth2 authorization-code identity provider."""

    name: str

    @abstractmethod
    def authorization_url(self, state: str) -> str:
        """
        Build the provider consent URL.

        Args:
            state: Opaque value echoed back on the callback

        Returns:
            Absolute URL to redirect the user agent to
        """
        pass

    @abstractmethod
    async def exchange_code(self, code: str) -> ProviderProfile:
        """
        Exchange an authorization code for the user's profile.

        Args:
            code: Authorization code from the callback

        Returns:
            Provider profile

        Raises:
            FederationFailure: If the provider rejects the code or is unreachable
        """
        pass


class OAuthStateStoreInterface(ABC):
    """Interface for single-use OAuth state values."""

    @abstractmethod
    async def save(self, state: str) -> None:
        """Remember a state value until it is consumed or expires."""
        pass

    @abstractmethod
    async def consume(self, state: str) -> bool:
        """
        Forget a state value.

        Returns:
            True if the state was known, False otherwise
        """
        pass
