from .auth_service import AuthService
from .lockout import LockoutTracker
from .password_policy import PasswordPolicyValidator
from .token import TokenService

__all__ = [
    "AuthService",
    "LockoutTracker",
    "PasswordPolicyValidator",
    "TokenService",
]
