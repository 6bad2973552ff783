from __future__ import annotations

"""Centralized, structured exception hierarchy for the authentication service.

Each exception carries a machine-readable `code` for programmatic error handling
and a human-readable `message` for logging and user feedback. Default messages
come from the i18n catalogue so that the wording of enumeration-sensitive errors
(login, password change) is identical no matter which sub-check failed.

The hierarchy is designed to:
- Provide clear, specific errors for the auth flows.
- Map cleanly to transport-level status codes in a calling layer.
- Offer a consistent structure for logging and monitoring.
"""

from datetime import datetime
from typing import Final

from src.utils.i18n import get_translated_message

__all__: Final = [
    "AuthServiceError",
    "AuthenticationError",
    "InvalidCredentialsError",
    "AccountLockedError",
    "TokenError",
    "TokenExpiredError",
    "TokenInvalidError",
    "UserAlreadyExistsError",
    "EmailAlreadyExistsError",
    "UsernameAlreadyExistsError",
    "UserNotFoundError",
    "RateLimitError",
    "TooManyAttemptsError",
    "TooManyRequestsError",
    "ValidationError",
    "PasswordPolicyError",
    "InfrastructureError",
    "CacheUnavailableError",
    "DatabaseError",
]


class AuthServiceError(Exception):
    """Base exception class for all custom errors in the authentication service.

    Attributes:
        message (str): A human-readable error message, suitable for logging.
        code (str): A unique, machine-readable error code.
    """

    message: str
    code: str = "generic_error"

    def __init__(self, message: str, code: str = "generic_error"):
        self.message = message
        self.code = code
        Exception.__init__(self, self.message)

    def __str__(self) -> str:
        return self.message


# ---------------------------------------------------------------------------
# Auth-related errors (typically map to 401 Unauthorized / 423 Locked)
# ---------------------------------------------------------------------------


class AuthenticationError(AuthServiceError):
    """Raised for general authentication failures."""

    def __init__(self, message: str, code: str = "authentication_error"):
        super().__init__(message, code)


class InvalidCredentialsError(AuthenticationError):
    """Raised when an email/password pair or a current password is wrong.

    The default message is shared by "no such user" and "wrong password" so the
    error cannot be used to enumerate accounts.
    """

    def __init__(self, message: str | None = None, code: str = "INVALID_CREDENTIALS"):
        if message is None:
            message = get_translated_message("invalid_email_or_password")
        super().__init__(message, code)


class AccountLockedError(AuthenticationError):
    """Raised when an account is locked out or deactivated.

    Attributes:
        lockout_until: End of a temporary lockout, ``None`` for deactivated accounts.
    """

    def __init__(
        self,
        message: str | None = None,
        code: str = "ACCOUNT_LOCKED",
        lockout_until: datetime | None = None,
    ):
        if message is None:
            message = get_translated_message("account_locked")
        self.lockout_until = lockout_until
        super().__init__(message, code)


class TokenError(AuthenticationError):
    """Base class for token lifecycle failures."""


class TokenExpiredError(TokenError):
    """Raised when a token's ``exp`` claim has passed."""

    def __init__(self, message: str | None = None, code: str = "TOKEN_EXPIRED"):
        if message is None:
            message = get_translated_message("token_expired")
        super().__init__(message, code)


class TokenInvalidError(TokenError):
    """Raised for bad signatures, wrong token types, revoked or unknown tokens."""

    def __init__(self, message: str | None = None, code: str = "TOKEN_INVALID"):
        if message is None:
            message = get_translated_message("invalid_token")
        super().__init__(message, code)


# ---------------------------------------------------------------------------
# Registration / lookup errors (typically map to 409 Conflict / 404 Not Found)
# ---------------------------------------------------------------------------


class UserAlreadyExistsError(AuthServiceError):
    """Raised when registration conflicts with an existing account."""

    def __init__(self, message: str, code: str = "user_already_exists"):
        super().__init__(message, code)


class EmailAlreadyExistsError(UserAlreadyExistsError):
    """Raised when the email address is already registered."""

    def __init__(self, message: str | None = None, code: str = "EMAIL_ALREADY_EXISTS"):
        if message is None:
            message = get_translated_message("email_already_registered")
        super().__init__(message, code)


class UsernameAlreadyExistsError(UserAlreadyExistsError):
    """Raised when the username is already taken."""

    def __init__(self, message: str | None = None, code: str = "USERNAME_ALREADY_EXISTS"):
        if message is None:
            message = get_translated_message("username_already_registered")
        super().__init__(message, code)


class UserNotFoundError(AuthServiceError):
    """Raised when a requested user does not exist or is inactive."""

    def __init__(self, message: str | None = None, code: str = "USER_NOT_FOUND"):
        if message is None:
            message = get_translated_message("user_not_found")
        super().__init__(message, code)


# ---------------------------------------------------------------------------
# Rate limiting errors (typically map to 429 Too Many Requests)
# ---------------------------------------------------------------------------


class RateLimitError(AuthServiceError):
    """Base class for rate limiting related errors.

    Attributes:
        reset_time: Epoch milliseconds at which the current window ends.
    """

    def __init__(
        self,
        message: str | None = None,
        code: str = "rate_limit_exceeded",
        reset_time: int | None = None,
    ):
        if message is None:
            message = get_translated_message("rate_limit_exceeded")
        self.reset_time = reset_time
        super().__init__(message, code)


class TooManyAttemptsError(RateLimitError):
    """Raised when login attempts from one IP address exceed the window budget."""

    def __init__(
        self,
        message: str | None = None,
        code: str = "TOO_MANY_ATTEMPTS",
        reset_time: int | None = None,
    ):
        if message is None:
            message = get_translated_message("too_many_login_attempts")
        super().__init__(message, code, reset_time)


class TooManyRequestsError(RateLimitError):
    """Raised when password reset requests for one email exceed the window budget."""

    def __init__(
        self,
        message: str | None = None,
        code: str = "TOO_MANY_REQUESTS",
        reset_time: int | None = None,
    ):
        if message is None:
            message = get_translated_message("too_many_password_reset_requests")
        super().__init__(message, code, reset_time)


# ---------------------------------------------------------------------------
# Validation errors (typically map to 400 Bad Request)
# ---------------------------------------------------------------------------


class ValidationError(AuthServiceError):
    """Raised for general data validation failures."""

    def __init__(self, message: str, code: str = "validation_error"):
        super().__init__(message, code)


class PasswordPolicyError(ValidationError):
    """Raised when a password does not meet the configured security policy."""

    def __init__(self, message: str, code: str = "PASSWORD_TOO_WEAK"):
        super().__init__(message, code)


# ---------------------------------------------------------------------------
# Infrastructure errors (opaque internal failures, 500 / 503)
# ---------------------------------------------------------------------------


class InfrastructureError(AuthServiceError):
    """Base class for collaborator failures surfaced as internal errors."""


class CacheUnavailableError(InfrastructureError):
    """Raised when the cache backend cannot be reached or times out."""

    def __init__(self, message: str | None = None, code: str = "cache_unavailable"):
        if message is None:
            message = get_translated_message("cache_unavailable")
        super().__init__(message, code)


class DatabaseError(InfrastructureError):
    """Raised for low-level database interaction errors."""

    def __init__(self, message: str | None = None, code: str = "database_error"):
        if message is None:
            message = get_translated_message("database_error")
        super().__init__(message, code)
