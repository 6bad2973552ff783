"""Rate Limiting Configuration

Centralized configuration for the fixed-window policies guarding login and
password reset. Window sizes and budgets come from the auth settings; the
switches below allow operators to disable limiting or strict mode without code
changes.
"""

from dataclasses import dataclass
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from src.core.config.settings import Settings, settings as default_settings
from src.domain.value_objects.rate_limit import RateLimitPolicy

LOGIN_ACTION = "login"
PASSWORD_RESET_ACTION = "password_reset"


class RateLimitingConfig(BaseSettings):
    """Global switches for the rate limiting system."""

    enable_rate_limiting: bool = Field(True, alias="RATE_LIMITING_ENABLED")
    fail_open_on_error: bool = Field(True, alias="RATE_LIMITING_FAIL_OPEN")

    model_config = SettingsConfigDict(
        env_file=".env", extra="ignore", populate_by_name=True
    )


@dataclass(frozen=True)
class AuthRateLimitPolicies:
    """The two policies applied by the auth flows."""

    login: RateLimitPolicy
    password_reset: RateLimitPolicy


def build_auth_policies(config: Optional[Settings] = None) -> AuthRateLimitPolicies:
    """Build the login-per-IP and password-reset-per-email policies from settings."""
    config = config or default_settings
    return AuthRateLimitPolicies(
        login=RateLimitPolicy(
            action=LOGIN_ACTION,
            window_seconds=config.LOGIN_RATE_LIMIT_WINDOW_SECONDS,
            max_attempts=config.LOGIN_RATE_LIMIT_MAX_ATTEMPTS,
        ),
        password_reset=RateLimitPolicy(
            action=PASSWORD_RESET_ACTION,
            window_seconds=config.PASSWORD_RESET_RATE_LIMIT_WINDOW_SECONDS,
            max_attempts=config.PASSWORD_RESET_RATE_LIMIT_MAX_ATTEMPTS,
        ),
    )
