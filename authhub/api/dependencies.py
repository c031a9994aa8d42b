"""FastAPI dependency injection setup."""

from typing import AsyncGenerator, Optional

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from authhub.core.auth.audit import SessionAuditor
from authhub.core.auth.entities import AccessTokenClaims, ClientContext, User
from authhub.core.auth.exceptions import AuthError, AuthErrorCode, InvalidAccessToken
from authhub.core.auth.hashing import CredentialHasher
from authhub.core.auth.identity import IdentityResolver
from authhub.core.auth.interfaces import FederationProviderInterface, OAuthStateStoreInterface
from authhub.core.auth.services import AuthenticationService, TokenService
from authhub.infrastructure.cache.oauth_state_store import RedisOAuthStateStore
from authhub.infrastructure.cache.redis_client import get_redis_client
from authhub.infrastructure.database.repositories.login_log_repository import SqlLoginLogRepository
from authhub.infrastructure.database.repositories.refresh_token_repository import SqlRefreshTokenRepository
from authhub.infrastructure.database.repositories.user_repository import SqlUserRepository
from authhub.infrastructure.database.session import session_scope
from authhub.infrastructure.oauth.google_provider import GoogleFederationProvider
from authhub.settings import Settings, get_settings

security = HTTPBearer(auto_error=False)


async def get_database_session() -> AsyncGenerator[AsyncSession, None]:
    """
    Provide database session for dependency injection.

    Yields:
        AsyncSession: Database session
    """
    async with session_scope() as session:
        yield session


def get_hasher(settings: Settings = Depends(get_settings)) -> CredentialHasher:
    return CredentialHasher(settings.token_hash_key)


def get_federation_provider(
        settings: Settings = Depends(get_settings),
) -> FederationProviderInterface:
    """Provide the Google identity provider."""
    return GoogleFederationProvider(settings)


def get_oauth_state_store(
        settings: Settings = Depends(get_settings),
) -> Optional[OAuthStateStoreInterface]:
    """Provide the OAuth state store, or None when state checking is disabled."""
    if not settings.oauth_state_check_enabled:
        return None
    return RedisOAuthStateStore(get_redis_client(), settings.oauth_state_ttl_seconds)


def get_auditor(
        session: AsyncSession = Depends(get_database_session),
) -> SessionAuditor:
    return SessionAuditor(SqlLoginLogRepository(session))


async def get_auth_service(
        session: AsyncSession = Depends(get_database_session),
        settings: Settings = Depends(get_settings),
        hasher: CredentialHasher = Depends(get_hasher),
        provider: FederationProviderInterface = Depends(get_federation_provider),
        state_store: Optional[OAuthStateStoreInterface] = Depends(get_oauth_state_store),
        auditor: SessionAuditor = Depends(get_auditor),
) -> AuthenticationService:
    """
    Provide authentication service bound to the request session.

    Args:
        session: Database session
        settings: Application settings
        hasher: Credential hasher
        provider: Identity provider
        state_store: OAuth state store
        auditor: Login auditor sharing the request session

    Returns:
        AuthenticationService: Authentication service instance
    """
    return build_auth_service(session, settings, hasher, provider, state_store, auditor)


def build_auth_service(
        session: AsyncSession,
        settings: Settings,
        hasher: Optional[CredentialHasher] = None,
        provider: Optional[FederationProviderInterface] = None,
        state_store: Optional[OAuthStateStoreInterface] = None,
        auditor: Optional[SessionAuditor] = None,
) -> AuthenticationService:
    """Wire an authentication service onto one database session."""
    hasher = hasher or CredentialHasher(settings.token_hash_key)
    user_repo = SqlUserRepository(session)
    refresh_token_repo = SqlRefreshTokenRepository(session)
    token_service = TokenService(settings, refresh_token_repo, hasher)

    return AuthenticationService(
        user_repo,
        refresh_token_repo,
        token_service,
        IdentityResolver(user_repo),
        auditor or SessionAuditor(SqlLoginLogRepository(session)),
        provider or GoogleFederationProvider(settings),
        hasher,
        state_store,
    )


def get_client_context(request: Request) -> ClientContext:
    """
    Extract client metadata from the request.

    The first X-Forwarded-For hop wins over the socket peer address.
    """
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        ip_address = forwarded.split(",")[0].strip()
    else:
        ip_address = request.client.host if request.client else None
    return ClientContext(
        ip_address=ip_address or None,
        user_agent=request.headers.get("user-agent"),
    )


def _bearer_token(credentials: Optional[HTTPAuthorizationCredentials]) -> str:
    if credentials is None or not credentials.credentials:
        raise AuthError(AuthErrorCode.INVALID_ACCESS_TOKEN, InvalidAccessToken("missing"))
    return credentials.credentials


def get_access_token_claims(
        credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
        auth_service: AuthenticationService = Depends(get_auth_service),
) -> AccessTokenClaims:
    """
    Verify the bearer token without loading the user.

    Raises:
        AuthError: INVALID_ACCESS_TOKEN if the token is missing or invalid
    """
    return auth_service.verify_access_token(_bearer_token(credentials))


async def get_current_user(
        credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
        auth_service: AuthenticationService = Depends(get_auth_service),
) -> User:
    """
    Get current authenticated user from JWT token.

    Args:
        credentials: HTTP bearer token credentials
        auth_service: Authentication service

    Returns:
        User: Current active user

    Raises:
        AuthError: INVALID_ACCESS_TOKEN if the token is missing or invalid,
            or the user is missing or not active
    """
    return await auth_service.get_current_user(_bearer_token(credentials))


async def require_admin(
        current_user: User = Depends(get_current_user),
        settings: Settings = Depends(get_settings),
) -> User:
    """
    Require the current user to be listed in admin_emails.

    Raises:
        HTTPException: 403 if the user is not an administrator
    """
    if current_user.email not in settings.admin_emails:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Administrator access required",
        )
    return current_user
