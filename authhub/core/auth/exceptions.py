"""Authentication exceptions."""

from enum import Enum
from typing import Optional

from authhub.core.exceptions import DomainException


class AuthenticationException(DomainException):
    """Base exception for authentication errors."""
    pass


class IncompleteProfile(AuthenticationException):
    """Raised when a federation profile lacks a required identity field."""

    def __init__(self, missing_field: str) -> None:
        super().__init__(f"Provider profile is missing required field: {missing_field}")
        self.missing_field = missing_field


class FederationFailure(AuthenticationException):
    """Raised when the identity provider rejects or aborts a login."""

    def __init__(self, reason: str, provider_error: Optional[str] = None) -> None:
        super().__init__(reason, provider_error)
        self.reason = reason
        self.provider_error = provider_error


class CryptoFailure(AuthenticationException):
    """Raised when a random source or digest primitive is unavailable."""

    def __init__(self, operation: str) -> None:
        super().__init__(f"Cryptographic primitive failed during {operation}")
        self.operation = operation


class TokenIssuanceFailure(AuthenticationException):
    """Raised when a refresh token record could not be persisted."""

    def __init__(self, user_id: str, details: Optional[str] = None) -> None:
        super().__init__(f"Failed to issue tokens for user: {user_id}", details)
        self.user_id = user_id


class InvalidOrExpiredToken(AuthenticationException):
    """Raised when a refresh token is unknown, expired or revoked."""

    def __init__(self) -> None:
        super().__init__("Invalid or expired refresh token")


class InvalidAccessToken(AuthenticationException):
    """Raised when an access token fails signature, claim or expiry checks."""

    def __init__(self, reason: str = "malformed") -> None:
        super().__init__("Invalid access token", reason)
        self.reason = reason


class UserNotFoundException(AuthenticationException):
    """Raised when user is not found."""

    def __init__(self, identifier: str) -> None:
        super().__init__(f"User not found: {identifier}")
        self.identifier = identifier


class UserAlreadyExistsException(AuthenticationException):
    """Raised when trying to create user that already exists."""

    def __init__(self, identifier: str) -> None:
        super().__init__(f"User already exists: {identifier}")
        self.identifier = identifier


class EmailAlreadyVerifiedException(AuthenticationException):
    """Raised when verifying an email that is already verified."""

    def __init__(self, user_id: str) -> None:
        super().__init__(f"Email already verified for user: {user_id}")
        self.user_id = user_id


class InactiveUserException(AuthenticationException):
    """Raised when user account is not active."""

    def __init__(self, user_id: str, status: str) -> None:
        super().__init__(f"User account is {status}: {user_id}")
        self.user_id = user_id
        self.status = status


class AuthErrorCode(str, Enum):
    """Closed set of failures reported to callers of the orchestrator."""

    FEDERATION_FAILED = "federation_failed"
    INVALID_REFRESH_TOKEN = "invalid_refresh_token"
    INVALID_ACCESS_TOKEN = "invalid_access_token"
    ISSUANCE_FAILED = "issuance_failed"


_PUBLIC_MESSAGES = {
    AuthErrorCode.FEDERATION_FAILED: "Login failed, please try again",
    AuthErrorCode.INVALID_REFRESH_TOKEN: "Session expired, please log in again",
    AuthErrorCode.INVALID_ACCESS_TOKEN: "Invalid authentication token",
    AuthErrorCode.ISSUANCE_FAILED: "Could not issue tokens, please retry",
}


class AuthError(AuthenticationException):
    """
    Failure surfaced at the orchestrator boundary.

    Internal exception kinds are translated into one of the AuthErrorCode values
    so callers never learn why a refresh token was rejected.
    """

    def __init__(self, code: AuthErrorCode, cause: Optional[Exception] = None) -> None:
        super().__init__(_PUBLIC_MESSAGES[code], str(cause) if cause else None)
        self.code = code
        self.cause = cause

    @property
    def retryable(self) -> bool:
        return self.code is AuthErrorCode.ISSUANCE_FAILED
