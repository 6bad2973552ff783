"""Export authentication-related domain entities for use across the application.

Importing this package registers every table on ``SQLModel.metadata``, which
``create_db_and_tables`` relies on.
"""

from .email_verification import EmailVerification
from .password_reset import PasswordReset
from .refresh_token import RefreshToken
from .session import Session
from .user import User

__all__ = ["User", "Session", "RefreshToken", "PasswordReset", "EmailVerification"]
