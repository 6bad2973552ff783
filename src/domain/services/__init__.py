"""Domain Services for the Authentication Bounded Context.

- AuthService: registration, login, refresh, logout, password and email flows
- TokenService: JWT access/refresh token lifecycle
- LockoutTracker: failed-login counting and account lockout
- PasswordPolicyValidator: password strength rules
"""

from .auth import AuthService, LockoutTracker, PasswordPolicyValidator, TokenService

__all__ = ["AuthService", "LockoutTracker", "PasswordPolicyValidator", "TokenService"]
