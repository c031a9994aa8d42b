"""Authentication API routes."""

from typing import List, Optional

from fastapi import APIRouter, Depends, Query, status
from fastapi.responses import RedirectResponse

from authhub.api.dependencies import (
    get_access_token_claims,
    get_auth_service,
    get_client_context,
    get_current_user,
)
from authhub.core.auth.entities import AccessTokenClaims, ClientContext, ProviderCallback, User
from authhub.core.auth.services import AuthenticationService
from .schemas import (
    ErrorResponse,
    LoginResponse,
    LogoutAllResponse,
    LogoutResponse,
    PreferencesUpdateRequest,
    RefreshTokenRequest,
    SessionResponse,
    TokenClaimsResponse,
    TokenResponse,
    UserResponse,
)

router = APIRouter(prefix="/auth", tags=["Authentication"])


@router.get(
    "/google",
    status_code=status.HTTP_302_FOUND,
    summary="Start Google login",
    description="Redirect the user agent to the Google consent screen.",
    responses={
        302: {"description": "Redirect to Google"},
        400: {"model": ErrorResponse, "description": "Login could not be started"},
    },
)
async def google_login(
    state: Optional[str] = Query(None, description="Client supplied OAuth state"),
    auth_service: AuthenticationService = Depends(get_auth_service),
) -> RedirectResponse:
    redirect = await auth_service.begin_federated_login(state)
    return RedirectResponse(redirect.url, status_code=status.HTTP_302_FOUND)


@router.get(
    "/google/callback",
    response_model=LoginResponse,
    summary="Complete Google login",
    description="Exchange the authorization code and issue a token pair.",
    responses={
        200: {"description": "Login successful"},
        400: {"model": ErrorResponse, "description": "Federation failed"},
        503: {"model": ErrorResponse, "description": "Tokens could not be issued, retry"},
    },
)
async def google_callback(
    code: Optional[str] = Query(None),
    state: Optional[str] = Query(None),
    error: Optional[str] = Query(None),
    client: ClientContext = Depends(get_client_context),
    auth_service: AuthenticationService = Depends(get_auth_service),
) -> LoginResponse:
    """
    Complete the authorization-code flow.

    Creates the local account on first login and links an existing account
    with the same email to the Google identity.
    """
    result = await auth_service.complete_federated_login(
        ProviderCallback(code=code, state=state, error=error), client
    )
    return LoginResponse(
        user=UserResponse.from_user(result.user),
        tokens=TokenResponse.from_tokens(result.tokens),
        is_new_user=result.is_new_user,
    )


@router.post(
    "/refresh",
    response_model=TokenResponse,
    summary="Refresh tokens",
    description="Exchange a refresh token for a new token pair.",
    responses={
        200: {"description": "Token refreshed successfully"},
        401: {"model": ErrorResponse, "description": "Invalid or expired refresh token"},
        503: {"model": ErrorResponse, "description": "Tokens could not be issued, retry"},
    },
)
async def refresh_token(
    request: RefreshTokenRequest,
    client: ClientContext = Depends(get_client_context),
    auth_service: AuthenticationService = Depends(get_auth_service),
) -> TokenResponse:
    """
    Rotate a refresh token.

    The presented token is invalidated; the response carries its
    replacement. Presenting the same token twice fails the second time.
    """
    tokens = await auth_service.refresh(request.refresh_token, client)
    return TokenResponse.from_tokens(tokens)


@router.post(
    "/logout",
    response_model=LogoutResponse,
    summary="Logout",
    description="Revoke a single refresh token.",
)
async def logout(
    request: RefreshTokenRequest,
    auth_service: AuthenticationService = Depends(get_auth_service),
) -> LogoutResponse:
    revoked = await auth_service.revoke(request.refresh_token)
    return LogoutResponse(message="Logged out", revoked=revoked)


@router.post(
    "/logout-all",
    response_model=LogoutAllResponse,
    summary="Logout everywhere",
    description="Revoke every refresh token of the current user.",
    responses={
        401: {"model": ErrorResponse, "description": "Authentication required"},
    },
)
async def logout_all(
    current_user: User = Depends(get_current_user),
    client: ClientContext = Depends(get_client_context),
    auth_service: AuthenticationService = Depends(get_auth_service),
) -> LogoutAllResponse:
    """
    Revoke all refresh tokens of the current user.

    Access tokens already issued stay valid until they expire.
    """
    revoked = await auth_service.revoke_all(current_user.id, client)
    return LogoutAllResponse(message="Logged out from all sessions", revoked_tokens=revoked)


@router.get(
    "/me",
    response_model=UserResponse,
    summary="Get current user",
    description="Get information about currently authenticated user.",
    responses={
        401: {"model": ErrorResponse, "description": "Authentication required"},
    },
)
async def get_current_user_info(
    current_user: User = Depends(get_current_user),
) -> UserResponse:
    return UserResponse.from_user(current_user)


@router.patch(
    "/me/preferences",
    response_model=UserResponse,
    summary="Update preferences",
    description="Merge values into the current user's preferences.",
    responses={
        401: {"model": ErrorResponse, "description": "Authentication required"},
    },
)
async def update_preferences(
    request: PreferencesUpdateRequest,
    current_user: User = Depends(get_current_user),
    auth_service: AuthenticationService = Depends(get_auth_service),
) -> UserResponse:
    user = await auth_service.update_preferences(current_user.id, request.preferences)
    return UserResponse.from_user(user)


@router.get(
    "/verify",
    response_model=TokenClaimsResponse,
    summary="Verify access token",
    description="Check the bearer token signature and claims.",
    responses={
        401: {"model": ErrorResponse, "description": "Invalid access token"},
    },
)
async def verify_token(
    claims: AccessTokenClaims = Depends(get_access_token_claims),
) -> TokenClaimsResponse:
    return TokenClaimsResponse(
        sub=claims.sub,
        email=claims.email,
        name=claims.name,
        role=claims.role,
        iat=claims.iat,
        exp=claims.exp,
        jti=claims.jti,
    )


@router.get(
    "/sessions",
    response_model=List[SessionResponse],
    summary="List active sessions",
    description="List the current user's valid refresh tokens, newest first.",
    responses={
        401: {"model": ErrorResponse, "description": "Authentication required"},
    },
)
async def list_sessions(
    current_user: User = Depends(get_current_user),
    auth_service: AuthenticationService = Depends(get_auth_service),
) -> List[SessionResponse]:
    tokens = await auth_service.active_sessions(current_user.id)
    return [
        SessionResponse(
            id=token.id,
            created_at=token.created_at,
            expires_at=token.expires_at,
            device_info=token.device_info,
        )
        for token in tokens
    ]
