"""Google OAuth2 identity provider."""

import logging
from typing import Any, Dict, Optional
from urllib.parse import urlencode

import httpx

from authhub.core.auth.entities import ProviderProfile
from authhub.core.auth.exceptions import FederationFailure
from authhub.core.auth.interfaces import FederationProviderInterface
from authhub.settings import Settings

logger = logging.getLogger(__name__)

GOOGLE_AUTH_URL = "https://accounts.google.com/o/oauth2/v2/auth"
GOOGLE_TOKEN_URL = "https://oauth2.googleapis.com/token"
GOOGLE_USERINFO_URL = "https://www.googleapis.com/oauth2/v2/userinfo"

GOOGLE_ERROR_MESSAGES = {
    "access_denied": "User denied the authorization request",
    "invalid_request": "Invalid request parameters",
    "invalid_client": "Client authentication failed",
    "invalid_grant": "Authorization code is invalid or expired",
    "unsupported_grant_type": "Unsupported grant type",
    "invalid_scope": "Requested scope is invalid",
    "server_error": "Google server error",
    "temporarily_unavailable": "Google service temporarily unavailable",
}


def describe_google_error(error: str) -> str:
    """Human-readable description of a Google OAuth error code."""
    return GOOGLE_ERROR_MESSAGES.get(error, f"Unknown error: {error}")


class GoogleFederationProvider(FederationProviderInterface):
    """
    Authorization-code flow against Google.

    The code is exchanged for a Google access token, which is used once to
    read the userinfo endpoint and then discarded.
    """

    name = "google"

    def __init__(
        self,
        settings: Settings,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        """
        Initialize provider.

        Args:
            settings: Settings with Google client credentials
            transport: Custom httpx transport, used by tests
        """
        self._client_id = settings.google_client_id
        self._client_secret = settings.google_client_secret
        self._redirect_uri = settings.google_redirect_uri
        self._scopes = list(settings.google_scopes)
        self._timeout = settings.oauth_http_timeout
        self._transport = transport

    def authorization_url(self, state: str) -> str:
        params = {
            "client_id": self._client_id,
            "redirect_uri": self._redirect_uri,
            "response_type": "code",
            "scope": " ".join(self._scopes),
            "access_type": "offline",
            "prompt": "consent",
            "state": state,
        }
        return f"{GOOGLE_AUTH_URL}?{urlencode(params)}"

    async def exchange_code(self, code: str) -> ProviderProfile:
        """
        Exchange an authorization code for the Google profile.

        Args:
            code: Authorization code from the callback

        Returns:
            Provider profile

        Raises:
            FederationFailure: If Google rejects the code or cannot be reached
        """
        try:
            async with httpx.AsyncClient(timeout=self._timeout, transport=self._transport) as client:
                token_response = await client.post(
                    GOOGLE_TOKEN_URL,
                    data={
                        "code": code,
                        "client_id": self._client_id,
                        "client_secret": self._client_secret,
                        "redirect_uri": self._redirect_uri,
                        "grant_type": "authorization_code",
                    },
                )
                token_data = self._json(token_response)
                if "error" in token_data or token_response.status_code >= 400:
                    error = token_data.get("error", f"http_{token_response.status_code}")
                    logger.warning(f"Google token exchange failed: {error}")
                    raise FederationFailure(describe_google_error(error), error)

                access_token = token_data.get("access_token")
                if not access_token:
                    raise FederationFailure("Google token response has no access token")

                userinfo_response = await client.get(
                    GOOGLE_USERINFO_URL,
                    headers={"Authorization": f"Bearer {access_token}"},
                )
                if userinfo_response.status_code >= 400:
                    logger.warning(f"Google userinfo request failed with status {userinfo_response.status_code}")
                    raise FederationFailure(
                        "Could not read Google profile", f"http_{userinfo_response.status_code}"
                    )
                userinfo = self._json(userinfo_response)
        except httpx.HTTPError as e:
            logger.error(f"Google OAuth request error: {e}")
            raise FederationFailure("Google is unreachable", str(e)) from e

        return ProviderProfile(
            external_id=str(userinfo.get("id") or ""),
            email=userinfo.get("email") or None,
            display_name=userinfo.get("name") or "",
            avatar_url=userinfo.get("picture"),
            email_verified=bool(userinfo.get("verified_email", False)),
        )

    @staticmethod
    def _json(response: httpx.Response) -> Dict[str, Any]:
        try:
            data = response.json()
        except ValueError:
            raise FederationFailure("Google returned a non-JSON response", f"http_{response.status_code}")
        if not isinstance(data, dict):
            raise FederationFailure("Google returned an unexpected response")
        return data
