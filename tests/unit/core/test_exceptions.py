from datetime import datetime, timezone

from src.core.exceptions import (
    AccountLockedError,
    AuthenticationError,
    AuthServiceError,
    CacheUnavailableError,
    EmailAlreadyExistsError,
    InvalidCredentialsError,
    PasswordPolicyError,
    RateLimitError,
    TokenError,
    TokenExpiredError,
    TokenInvalidError,
    TooManyAttemptsError,
    TooManyRequestsError,
    UserAlreadyExistsError,
    UsernameAlreadyExistsError,
    UserNotFoundError,
)
from src.utils.i18n import get_translated_message


def test_authentication_error_default():
    # Arrange
    message = get_translated_message("invalid_email_or_password", "en")
    code = "auth_failed"

    # Act
    error = AuthenticationError(message, code)

    # Assert
    assert error.message == message
    assert error.code == code
    assert str(error) == message


def test_authentication_error_no_code():
    message = get_translated_message("invalid_email_or_password", "en")

    error = AuthenticationError(message)

    assert error.code == "authentication_error"
    assert str(error) == message


def test_invalid_credentials_uses_shared_message():
    error = InvalidCredentialsError()

    assert error.code == "INVALID_CREDENTIALS"
    assert error.message == "Invalid email or password"
    assert isinstance(error, AuthenticationError)


def test_account_locked_carries_lockout_end():
    until = datetime(2030, 1, 1, tzinfo=timezone.utc)

    error = AccountLockedError(lockout_until=until)

    assert error.code == "ACCOUNT_LOCKED"
    assert error.lockout_until == until


def test_token_errors_share_base():
    assert isinstance(TokenExpiredError(), TokenError)
    assert isinstance(TokenInvalidError(), TokenError)
    assert TokenExpiredError().code == "TOKEN_EXPIRED"
    assert TokenInvalidError().code == "TOKEN_INVALID"


def test_registration_conflicts():
    email_error = EmailAlreadyExistsError()
    username_error = UsernameAlreadyExistsError()

    assert isinstance(email_error, UserAlreadyExistsError)
    assert isinstance(username_error, UserAlreadyExistsError)
    assert email_error.code == "EMAIL_ALREADY_EXISTS"
    assert username_error.code == "USERNAME_ALREADY_EXISTS"


def test_rate_limit_error_no_code():
    # Arrange
    message = get_translated_message("rate_limit_exceeded", "en")

    # Act
    error = RateLimitError()

    # Assert
    assert error.message == message
    assert error.code == "rate_limit_exceeded"
    assert error.reset_time is None


def test_rate_limit_subclasses_keep_reset_time():
    attempts = TooManyAttemptsError(reset_time=1234)
    requests = TooManyRequestsError(reset_time=5678)

    assert attempts.code == "TOO_MANY_ATTEMPTS"
    assert attempts.reset_time == 1234
    assert requests.code == "TOO_MANY_REQUESTS"
    assert requests.reset_time == 5678


def test_misc_codes():
    assert UserNotFoundError().code == "USER_NOT_FOUND"
    assert PasswordPolicyError("weak").code == "PASSWORD_TOO_WEAK"
    assert isinstance(CacheUnavailableError(), AuthServiceError)
