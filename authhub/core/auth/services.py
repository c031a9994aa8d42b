"""Authentication service implementations."""

import logging
import uuid
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional

from jose import ExpiredSignatureError, JWTError, jwt
from jose.exceptions import JWTClaimsError

from authhub.settings import Settings
from .audit import SessionAuditor
from .entities import (
    AccessTokenClaims,
    ClientContext,
    FederatedLoginResult,
    FederationRedirect,
    IssuedTokens,
    LoginMethod,
    ProviderCallback,
    RefreshToken,
    TokenKind,
    User,
    UserStatus,
    utcnow,
)
from .exceptions import (
    AuthError,
    AuthErrorCode,
    AuthenticationException,
    CryptoFailure,
    EmailAlreadyVerifiedException,
    FederationFailure,
    InactiveUserException,
    InvalidAccessToken,
    InvalidOrExpiredToken,
    TokenIssuanceFailure,
    UserNotFoundException,
)
from .hashing import CredentialHasher
from .identity import IdentityResolver
from .interfaces import (
    FederationProviderInterface,
    OAuthStateStoreInterface,
    RefreshTokenRepositoryInterface,
    UserRepositoryInterface,
)

logger = logging.getLogger(__name__)


def _epoch(value: datetime) -> int:
    return int(value.replace(tzinfo=timezone.utc).timestamp())


class TokenService:
    """
    JWT access tokens and opaque rotating refresh tokens.

    Access tokens are stateless and never stored. Refresh tokens are random
    secrets handed to the client once; only their digest is persisted.
    """

    def __init__(
        self,
        settings: Settings,
        refresh_token_repository: RefreshTokenRepositoryInterface,
        hasher: CredentialHasher,
    ) -> None:
        """
        Initialize token service.

        Args:
            settings: Application settings with JWT and lifetime configuration
            refresh_token_repository: Refresh token data access interface
            hasher: Digest and random secret provider
        """
        self._refresh_token_repository = refresh_token_repository
        self._hasher = hasher

        self._secret_key = settings.jwt_secret_key
        self._algorithm = settings.jwt_algorithm
        self._issuer = settings.jwt_issuer
        self._audience = settings.jwt_audience
        self._default_role = settings.jwt_default_role
        self._access_token_ttl = timedelta(minutes=settings.access_token_expire_minutes)
        self._refresh_token_ttl = timedelta(days=settings.refresh_token_expire_days)

    def create_access_token(self, user: User, now: Optional[datetime] = None) -> str:
        """
        Create JWT access token for user.

        Args:
            user: User entity
            now: Issue time, defaults to the current time

        Returns:
            JWT access token string
        """
        issued_at = now or utcnow()
        payload = {
            "sub": user.id,
            "email": user.email,
            "name": user.name,
            "role": self._default_role,
            "iss": self._issuer,
            "aud": self._audience,
            "iat": _epoch(issued_at),
            "exp": _epoch(issued_at + self._access_token_ttl),
            "token_type": TokenKind.ACCESS.value,
            "jti": str(uuid.uuid4()),
        }
        try:
            return jwt.encode(payload, self._secret_key, algorithm=self._algorithm)
        except JWTError as e:
            raise CryptoFailure("access token signing") from e

    async def issue(self, user: User, device_info: Optional[Dict[str, Any]] = None) -> IssuedTokens:
        """
        Issue an access and refresh token pair.

        Args:
            user: User the tokens are issued to
            device_info: Client details stored with the refresh token

        Returns:
            Issued token pair

        Raises:
            TokenIssuanceFailure: If the refresh token could not be persisted
            CryptoFailure: If signing or random generation failed
        """
        now = utcnow()
        access_token = self.create_access_token(user, now)
        refresh_token = self._hasher.random_secret(32)
        refresh_expires_at = now + self._refresh_token_ttl

        await self._refresh_token_repository.store(
            user.id,
            self._hasher.hash_token(refresh_token),
            refresh_expires_at,
            device_info,
        )

        return IssuedTokens(
            access_token=access_token,
            refresh_token=refresh_token,
            access_expires_at=now + self._access_token_ttl,
            refresh_expires_at=refresh_expires_at,
        )

    def verify_access_token(self, token: str) -> AccessTokenClaims:
        """
        Decode and validate JWT access token.

        Args:
            token: JWT token string

        Returns:
            Verified claims

        Raises:
            InvalidAccessToken: If the token is expired, carries wrong claims
                or is malformed
        """
        try:
            payload = jwt.decode(
                token,
                self._secret_key,
                algorithms=[self._algorithm],
                audience=self._audience,
                issuer=self._issuer,
            )
        except ExpiredSignatureError:
            raise InvalidAccessToken("expired")
        except JWTClaimsError:
            raise InvalidAccessToken("claims")
        except JWTError:
            raise InvalidAccessToken("malformed")

        if payload.get("token_type") != TokenKind.ACCESS.value:
            raise InvalidAccessToken("claims")

        try:
            return AccessTokenClaims(
                sub=payload["sub"],
                email=payload["email"],
                name=payload["name"],
                role=payload["role"],
                exp=payload["exp"],
                iat=payload["iat"],
                iss=payload["iss"],
                aud=payload["aud"],
                jti=payload.get("jti"),
                token_type=payload["token_type"],
            )
        except (KeyError, ValueError, TypeError):
            raise InvalidAccessToken("claims")


class AuthenticationService:
    """
    High-level authentication service orchestrating federated login and
    the refresh token lifecycle.

    Internal failures are translated into AuthError with one of the
    AuthErrorCode values. Every federated login and every refresh writes one
    audit entry, success or failure, before returning or raising.
    """

    def __init__(
        self,
        user_repository: UserRepositoryInterface,
        refresh_token_repository: RefreshTokenRepositoryInterface,
        token_service: TokenService,
        identity_resolver: IdentityResolver,
        auditor: SessionAuditor,
        provider: FederationProviderInterface,
        hasher: CredentialHasher,
        state_store: Optional[OAuthStateStoreInterface] = None,
    ) -> None:
        """
        Initialize authentication service.

        Args:
            user_repository: User data access interface
            refresh_token_repository: Refresh token data access interface
            token_service: Token issuing service
            identity_resolver: Profile to user mapping
            auditor: Login audit trail
            provider: Identity provider
            hasher: Digest and random secret provider
            state_store: Single-use OAuth state storage; state is not
                checked when omitted
        """
        self._user_repository = user_repository
        self._refresh_token_repository = refresh_token_repository
        self._token_service = token_service
        self._identity_resolver = identity_resolver
        self._auditor = auditor
        self._provider = provider
        self._hasher = hasher
        self._state_store = state_store

    async def begin_federated_login(self, state: Optional[str] = None) -> FederationRedirect:
        """
        Start a federated login.

        Args:
            state: Caller supplied state, generated when omitted

        Returns:
            Provider URL and the state bound to it

        Raises:
            AuthError: FEDERATION_FAILED if the state could not be stored
        """
        state = state or self._hasher.random_secret(32, encoding="urlsafe")
        if self._state_store is not None:
            try:
                await self._state_store.save(state)
            except FederationFailure as e:
                raise AuthError(AuthErrorCode.FEDERATION_FAILED, e) from e
        return FederationRedirect(url=self._provider.authorization_url(state), state=state)

    async def complete_federated_login(
        self, callback: ProviderCallback, client: ClientContext
    ) -> FederatedLoginResult:
        """
        Finish a federated login and issue tokens.

        Args:
            callback: Parameters delivered to the redirect URI
            client: Request metadata

        Returns:
            User, issued tokens and whether the user was just created

        Raises:
            AuthError: FEDERATION_FAILED or ISSUANCE_FAILED
            CryptoFailure: If a cryptographic primitive is unavailable
        """
        user_id: Optional[str] = None
        try:
            if callback.error:
                raise FederationFailure("Identity provider returned an error", callback.error)
            if not callback.code:
                raise FederationFailure("Authorization code missing")
            if self._state_store is not None:
                if not callback.state or not await self._state_store.consume(callback.state):
                    raise FederationFailure("Unknown or reused OAuth state")

            profile = await self._provider.exchange_code(callback.code)
            user, is_new_user = await self._identity_resolver.resolve(profile)
            user_id = user.id
            if not user.is_active:
                raise InactiveUserException(user.id, user.status.value)

            user = await self._identity_resolver.touch_last_login(user)
            tokens = await self._token_service.issue(user, client.device_info())
        except CryptoFailure as e:
            await self._record_failure(user_id, LoginMethod.FEDERATED_LOGIN, client, e)
            raise
        except TokenIssuanceFailure as e:
            await self._record_failure(user_id, LoginMethod.FEDERATED_LOGIN, client, e)
            raise AuthError(AuthErrorCode.ISSUANCE_FAILED, e) from e
        except AuthenticationException as e:
            await self._record_failure(user_id, LoginMethod.FEDERATED_LOGIN, client, e)
            raise AuthError(AuthErrorCode.FEDERATION_FAILED, e) from e

        await self._auditor.record(
            user.id,
            LoginMethod.FEDERATED_LOGIN,
            True,
            ip_address=client.ip_address,
            user_agent=client.user_agent,
            context={"provider": self._provider.name, "is_new_user": is_new_user},
        )
        logger.info(f"Federated login succeeded for user {user.id}")
        return FederatedLoginResult(user=user, tokens=tokens, is_new_user=is_new_user)

    async def refresh(self, refresh_token: str, client: ClientContext) -> IssuedTokens:
        """
        Exchange a refresh token for a new token pair.

        The presented token is consumed before the new pair is issued, so a
        value can be exchanged at most once.

        Args:
            refresh_token: Refresh token secret
            client: Request metadata

        Returns:
            New token pair

        Raises:
            AuthError: INVALID_REFRESH_TOKEN or ISSUANCE_FAILED
            CryptoFailure: If a cryptographic primitive is unavailable
        """
        token_hash = self._hasher.hash_token(refresh_token)
        consumed = await self._refresh_token_repository.consume(token_hash)
        if consumed is None:
            user_id = await self._diagnose_refresh_miss(token_hash)
            error = InvalidOrExpiredToken()
            await self._record_failure(user_id, LoginMethod.TOKEN_REFRESH, client, error)
            raise AuthError(AuthErrorCode.INVALID_REFRESH_TOKEN, error)

        user = await self._user_repository.get_user_by_id(consumed.user_id)
        if user is None:
            logger.error(f"Refresh token {consumed.id} belongs to missing user {consumed.user_id}")
            error = UserNotFoundException(consumed.user_id)
            await self._record_failure(consumed.user_id, LoginMethod.TOKEN_REFRESH, client, error)
            raise AuthError(AuthErrorCode.INVALID_REFRESH_TOKEN, error)
        if not user.is_active:
            error = InactiveUserException(user.id, user.status.value)
            await self._record_failure(user.id, LoginMethod.TOKEN_REFRESH, client, error)
            raise AuthError(AuthErrorCode.INVALID_REFRESH_TOKEN, error)

        try:
            tokens = await self._token_service.issue(user, client.device_info() or consumed.device_info)
        except CryptoFailure as e:
            await self._record_failure(user.id, LoginMethod.TOKEN_REFRESH, client, e)
            raise
        except TokenIssuanceFailure as e:
            await self._record_failure(user.id, LoginMethod.TOKEN_REFRESH, client, e)
            raise AuthError(AuthErrorCode.ISSUANCE_FAILED, e) from e

        await self._auditor.record(
            user.id,
            LoginMethod.TOKEN_REFRESH,
            True,
            ip_address=client.ip_address,
            user_agent=client.user_agent,
        )
        return tokens

    async def revoke(self, refresh_token: str) -> bool:
        """
        Revoke a single refresh token.

        Returns:
            True if the token was valid and is now revoked
        """
        return await self._refresh_token_repository.revoke_by_hash(
            self._hasher.hash_token(refresh_token)
        )

    async def revoke_all(self, user_id: str, client: Optional[ClientContext] = None) -> int:
        """
        Revoke every refresh token of a user.

        Issued access tokens stay valid until they expire.

        Args:
            user_id: User identifier
            client: Request metadata for the audit entry

        Returns:
            Number of tokens revoked
        """
        client = client or ClientContext()
        revoked = await self._refresh_token_repository.revoke_all(user_id)
        await self._auditor.record_action(
            user_id,
            "revoke_all",
            {"revoked_tokens": revoked},
            ip_address=client.ip_address,
            user_agent=client.user_agent,
        )
        logger.info(f"Revoked {revoked} refresh tokens for user {user_id}")
        return revoked

    def verify_access_token(self, access_token: str) -> AccessTokenClaims:
        """
        Verify an access token.

        Raises:
            AuthError: INVALID_ACCESS_TOKEN
        """
        try:
            return self._token_service.verify_access_token(access_token)
        except InvalidAccessToken as e:
            logger.debug(f"Access token rejected: {e.reason}")
            raise AuthError(AuthErrorCode.INVALID_ACCESS_TOKEN, e) from e

    async def get_current_user(self, access_token: str) -> User:
        """
        Get current user from access token.

        Args:
            access_token: JWT access token

        Returns:
            Current user entity

        Raises:
            AuthError: INVALID_ACCESS_TOKEN if the token is invalid or the user
                is missing or not active
        """
        claims = self.verify_access_token(access_token)

        user = await self._user_repository.get_user_by_id(claims.sub)
        if user is None:
            raise AuthError(AuthErrorCode.INVALID_ACCESS_TOKEN, UserNotFoundException(claims.sub))
        if not user.is_active:
            raise AuthError(
                AuthErrorCode.INVALID_ACCESS_TOKEN,
                InactiveUserException(user.id, user.status.value),
            )
        return user

    async def active_sessions(self, user_id: str) -> List[RefreshToken]:
        """List the user's valid refresh tokens, newest first."""
        return await self._refresh_token_repository.active_tokens(user_id)

    async def set_user_status(
        self, user_id: str, status: UserStatus, client: Optional[ClientContext] = None
    ) -> User:
        """
        Change a user's account status.

        Any status other than active also revokes all refresh tokens.

        Args:
            user_id: User identifier
            status: New status
            client: Request metadata for the audit entry

        Returns:
            Updated user entity

        Raises:
            UserNotFoundException: If user not found
        """
        client = client or ClientContext()
        user = await self._user_repository.update_status(user_id, status)
        if user is None:
            raise UserNotFoundException(user_id)

        revoked = 0
        if status is not UserStatus.ACTIVE:
            revoked = await self._refresh_token_repository.revoke_all(user_id)

        await self._auditor.record_action(
            user_id,
            "status_change",
            {"status": status.value, "revoked_tokens": revoked},
            ip_address=client.ip_address,
            user_agent=client.user_agent,
        )
        logger.info(f"User {user_id} status set to {status.value}")
        return user

    async def update_preferences(self, user_id: str, preferences: Dict[str, Any]) -> User:
        """
        Merge values into a user's preferences.

        Args:
            user_id: User identifier
            preferences: Keys to set; keys not mentioned keep their value

        Returns:
            Updated user entity

        Raises:
            UserNotFoundException: If user not found
        """
        user = await self._user_repository.update_preferences(user_id, preferences)
        if user is None:
            raise UserNotFoundException(user_id)
        logger.info(f"Updated preferences {sorted(preferences)} for user {user_id}")
        return user

    async def verify_email(self, user_id: str, client: Optional[ClientContext] = None) -> User:
        """
        Mark a user's email address as verified.

        Raises:
            UserNotFoundException: If user not found
            EmailAlreadyVerifiedException: If the email is already verified
        """
        client = client or ClientContext()
        user = await self._user_repository.get_user_by_id(user_id)
        if user is None:
            raise UserNotFoundException(user_id)
        if user.email_verified:
            raise EmailAlreadyVerifiedException(user_id)

        user = await self._user_repository.mark_email_verified(user_id)
        if user is None:
            raise UserNotFoundException(user_id)
        await self._auditor.record_action(
            user_id,
            "email_verified",
            {"email": user.email},
            ip_address=client.ip_address,
            user_agent=client.user_agent,
        )
        logger.info(f"Verified email of user {user_id}")
        return user

    async def _diagnose_refresh_miss(self, token_hash: str) -> Optional[str]:
        token = await self._refresh_token_repository.find_by_hash(token_hash)
        if token is None:
            logger.info("Refresh attempted with unknown token")
            return None
        if token.is_revoked:
            logger.warning(
                f"Replay of revoked refresh token {token.id} for user {token.user_id}"
            )
        else:
            logger.info(f"Refresh attempted with expired token {token.id}")
        return token.user_id

    async def _record_failure(
        self,
        user_id: Optional[str],
        method: LoginMethod,
        client: ClientContext,
        error: Exception,
    ) -> None:
        await self._auditor.record(
            user_id,
            method,
            False,
            ip_address=client.ip_address,
            user_agent=client.user_agent,
            error_message=str(error),
        )
