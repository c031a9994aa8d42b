"""Domain exceptions for the authentication service."""

from typing import Optional


class DomainException(Exception):
    """Base exception for domain-related errors."""

    def __init__(self, message: str, details: Optional[str] = None) -> None:
        """
        Initialize domain exception.

        Args:
            message: Human-readable error message
            details: Additional error details
        """
        super().__init__(message)
        self.message = message
        self.details = details


class ConfigurationException(DomainException):
    """Raised when configuration is invalid."""

    def __init__(self, setting: str, details: str) -> None:
        """
        Initialize configuration exception.

        Args:
            setting: Name of the offending setting
            details: Specific configuration error details
        """
        message = f"Invalid {setting} configuration: {details}"
        super().__init__(message, details)
        self.setting = setting
