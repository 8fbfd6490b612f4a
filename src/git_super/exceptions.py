"""Consolidated exception hierarchy for git-super authentication.

All exceptions use proper exception chaining with the `from` keyword.
Error types use StrEnum for type safety and autocompletion.
"""

from enum import StrEnum
from typing import Any


class ErrorType(StrEnum):
    """Error type codes attached to every git-super error."""

    CONFIGURATION = "configuration_error"
    AUTHENTICATION = "authentication_error"
    AUTHORIZATION = "authorization_error"
    STORAGE = "storage_error"
    EXPIRED = "expired_error"
    TIMEOUT = "timeout_error"
    INTERNAL = "internal_error"


# ============================================================================
# Base Exceptions
# ============================================================================


class GitSuperError(Exception):
    """Base exception for all git-super errors.

    All exceptions inherit from this base class for easy catching.
    Carries a machine-readable error type and structured details.
    """

    def __init__(
        self,
        message: str,
        *,
        error_type: ErrorType | str = ErrorType.INTERNAL,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        if isinstance(error_type, str) and not isinstance(error_type, ErrorType):
            try:
                self.error_type = ErrorType(error_type)
            except ValueError:
                self.error_type = error_type  # type: ignore[assignment]
        else:
            self.error_type = error_type
        self.details = details or {}


class ConfigurationError(GitSuperError):
    """Raised when configuration loading or validation fails."""

    def __init__(self, message: str, *, details: dict[str, Any] | None = None) -> None:
        super().__init__(
            message, error_type=ErrorType.CONFIGURATION, details=details
        )


# ============================================================================
# Credentials Errors
# ============================================================================


class AuthenticationError(GitSuperError):
    """Authentication error."""

    def __init__(
        self,
        message: str = "Authentication failed",
        *,
        error_type: ErrorType | str = ErrorType.AUTHENTICATION,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message, error_type=error_type, details=details)


class CredentialsError(AuthenticationError):
    """Base credentials error."""

    pass


class CredentialsStorageError(CredentialsError):
    """Error occurred during credentials storage operations."""

    def __init__(self, message: str, *, path: str | None = None) -> None:
        super().__init__(
            message,
            error_type=ErrorType.STORAGE,
            details={"path": path} if path else None,
        )
        self.path = path


# Reserved name kept for callers that think in terms of the storage layer.
StorageError = CredentialsStorageError


class MissingCredentialError(CredentialsError):
    """A required API key or secret is not configured."""

    def __init__(self, key_name: str, *, env_var: str | None = None) -> None:
        hint = (
            f"Please set {env_var} or add it to the config file."
            if env_var
            else "Please set it via environment variable or config file."
        )
        super().__init__(
            f"{key_name} is not configured. {hint}",
            details={"key_name": key_name, "env_var": env_var},
        )
        self.key_name = key_name
        self.env_var = env_var


class TokenExpiredError(CredentialsError):
    """OAuth token expired and could not be refreshed."""

    def __init__(self, message: str) -> None:
        super().__init__(message, error_type=ErrorType.EXPIRED)


class NoTokenError(CredentialsError):
    """No OAuth token is available even though one was expected."""

    pass


# ============================================================================
# OAuth Errors
# ============================================================================


class OAuthError(AuthenticationError):
    """Base OAuth error."""

    pass


class DeviceAuthorizationError(OAuthError):
    """The device authorization endpoint rejected the request."""

    def __init__(
        self, message: str, *, status_code: int | None = None, reason: str = ""
    ) -> None:
        super().__init__(
            message, details={"status_code": status_code, "reason": reason}
        )
        self.status_code = status_code
        self.reason = reason


class AuthorizationError(OAuthError):
    """The identity provider answered with an OAuth error code."""

    def __init__(
        self,
        message: str,
        *,
        error_code: str | None = None,
        description: str | None = None,
    ) -> None:
        super().__init__(
            message,
            error_type=ErrorType.AUTHORIZATION,
            details={"error": error_code, "error_description": description},
        )
        self.error_code = error_code
        self.description = description


class DeviceCodeExpiredError(AuthorizationError):
    """The device code expired before the user approved the request."""

    def __init__(self) -> None:
        super().__init__(
            "Device code expired. Please try again.", error_code="expired_token"
        )


class UserDeniedError(AuthorizationError):
    """The user denied the authorization request."""

    def __init__(self) -> None:
        super().__init__("User denied authorization.", error_code="access_denied")


class StateMismatchError(AuthorizationError):
    """The `state` echoed by the provider does not match the one sent."""

    def __init__(self) -> None:
        super().__init__(
            "Invalid state parameter: possible CSRF attempt, please log in again.",
            error_code="state_mismatch",
        )


class AuthorizationTimeoutError(OAuthError):
    """Polling gave up before the provider returned a definitive answer."""

    def __init__(self, message: str = "Authorization timeout. Please try again.") -> None:
        super().__init__(message, error_type=ErrorType.TIMEOUT)


class TokenExchangeError(OAuthError):
    """Token exchange failed during OAuth flow."""

    def __init__(
        self,
        message: str,
        *,
        status_code: int | None = None,
        response_text: str | None = None,
    ) -> None:
        super().__init__(message, details={"status_code": status_code})
        self.status_code = status_code
        self.response_text = response_text


class OAuthCallbackError(OAuthError):
    """OAuth callback failed."""

    pass


__all__ = [
    # Enums
    "ErrorType",
    # Base
    "GitSuperError",
    "ConfigurationError",
    # Credentials
    "AuthenticationError",
    "CredentialsError",
    "CredentialsStorageError",
    "StorageError",
    "MissingCredentialError",
    "TokenExpiredError",
    "NoTokenError",
    # OAuth
    "OAuthError",
    "DeviceAuthorizationError",
    "AuthorizationError",
    "DeviceCodeExpiredError",
    "UserDeniedError",
    "StateMismatchError",
    "AuthorizationTimeoutError",
    "TokenExchangeError",
    "OAuthCallbackError",
]
