"""Authentication, session and abuse-protection settings.
"""

import logging

from pydantic import Field, SecretStr, field_validator
from pydantic_settings import BaseSettings

logger = logging.getLogger(__name__)


class AuthSettings(BaseSettings):
    """Defines settings for token signing, session caching, rate limiting and lockout.

    Security Note:
        - JWT_SECRET_KEY signs every access and refresh token with HMAC; it must be a
          random string of at least 32 characters and must never be logged.
        - BCRYPT_WORK_FACTOR trades login latency for brute-force resistance. Values
          below 10 are only acceptable in test environments.
    """

    # JWT settings
    JWT_SECRET_KEY: SecretStr = Field(default=SecretStr(""), validate_default=True)
    JWT_ALGORITHM: str = Field(default="HS256", pattern="^HS(256|384|512)$")
    JWT_ISSUER: str = "mini-social-media"
    JWT_AUDIENCE: str = "mini-social-media-users"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = Field(ge=1, default=15)
    REFRESH_TOKEN_EXPIRE_DAYS: int = Field(ge=1, default=7)

    # Password hashing
    BCRYPT_WORK_FACTOR: int = Field(ge=4, le=31, default=12)

    # Session cache
    SESSION_CACHE_TTL_SECONDS: int = Field(ge=1, default=86400)
    SESSION_DEFAULT_ROLE: str = "user"

    # Single-use tokens
    PASSWORD_RESET_TOKEN_EXPIRE_MINUTES: int = Field(ge=1, default=60)
    EMAIL_VERIFICATION_TOKEN_EXPIRE_HOURS: int = Field(ge=1, default=24)
    PASSWORD_RESET_URL: str = "/reset-password"
    EMAIL_VERIFICATION_URL: str = "/verify-email"

    # Fixed-window rate limiting
    LOGIN_RATE_LIMIT_MAX_ATTEMPTS: int = Field(ge=1, default=5)
    LOGIN_RATE_LIMIT_WINDOW_SECONDS: int = Field(ge=1, default=900)
    PASSWORD_RESET_RATE_LIMIT_MAX_ATTEMPTS: int = Field(ge=1, default=3)
    PASSWORD_RESET_RATE_LIMIT_WINDOW_SECONDS: int = Field(ge=1, default=3600)

    # Failed-login lockout
    MAX_FAILED_LOGIN_ATTEMPTS: int = Field(ge=1, default=5)
    ACCOUNT_LOCKOUT_MINUTES: int = Field(ge=1, default=30)
    FAILED_ATTEMPTS_TTL_SECONDS: int = Field(ge=1, default=3600)

    # Password policy
    PASSWORD_MIN_LENGTH: int = Field(ge=1, default=8)
    PASSWORD_REQUIRE_UPPERCASE: bool = True
    PASSWORD_REQUIRE_LOWERCASE: bool = True
    PASSWORD_REQUIRE_DIGIT: bool = True
    PASSWORD_REQUIRE_SPECIAL_CHAR: bool = True

    @field_validator("JWT_SECRET_KEY")
    @classmethod
    def validate_jwt_secret(cls, value: SecretStr) -> SecretStr:
        """Rejects missing or short signing secrets.

        Raises:
            ValueError: If the secret is shorter than 32 characters.
        """
        if len(value.get_secret_value()) < 32:
            error_msg = "JWT_SECRET_KEY must be set and at least 32 characters long."
            logger.error(error_msg)
            raise ValueError(error_msg)
        return value

    @property
    def access_token_ttl_seconds(self) -> int:
        return self.ACCESS_TOKEN_EXPIRE_MINUTES * 60

    @property
    def refresh_token_ttl_seconds(self) -> int:
        return self.REFRESH_TOKEN_EXPIRE_DAYS * 86400
