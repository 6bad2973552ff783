"""Rate Limiting Core Module

Fixed-window limiting for the authentication flows: login attempts per client
address and password reset requests per email.
"""

from .config import (
    LOGIN_ACTION,
    PASSWORD_RESET_ACTION,
    AuthRateLimitPolicies,
    RateLimitingConfig,
    build_auth_policies,
)
from .fixed_window import FixedWindowRateLimiter

__all__ = [
    "LOGIN_ACTION",
    "PASSWORD_RESET_ACTION",
    "AuthRateLimitPolicies",
    "RateLimitingConfig",
    "build_auth_policies",
    "FixedWindowRateLimiter",
]
