"""Domain Value Objects for the authentication domain.

Value objects are immutable objects that describe domain concepts by their attributes
rather than their identity.
"""

from .auth_response import AuthResponse, UserSummary
from .lockout import FailedAttemptStatus
from .rate_limit import RateLimitPolicy, RateLimitResult
from .session_data import RefreshTokenData, SessionData
from .token import TokenPair, TokenPayload, TokenType

__all__ = [
    "AuthResponse",
    "UserSummary",
    "FailedAttemptStatus",
    "RateLimitPolicy",
    "RateLimitResult",
    "RefreshTokenData",
    "SessionData",
    "TokenPair",
    "TokenPayload",
    "TokenType",
]
