"""Email dispatch interface for the authentication flows.

The domain only needs to hand a one-time link to an external mailer; template
rendering and delivery are the concern of the implementation.
"""

from abc import ABC, abstractmethod
from datetime import datetime

from src.domain.entities.user import User


class IEmailDispatcher(ABC):
    """Sends the links created by forgot-password and email-verification requests."""

    @abstractmethod
    async def send_password_reset(self, user: User, token: str, expires_at: datetime) -> None:
        """Deliver a password reset link carrying the raw ``token``.

        Args:
            user: Recipient.
            token: The raw single-use token; only its digest is stored.
            expires_at: When the token stops being accepted.
        """
        raise NotImplementedError

    @abstractmethod
    async def send_email_verification(
        self, user: User, email: str, token: str, expires_at: datetime
    ) -> None:
        """Deliver an email verification link to ``email``."""
        raise NotImplementedError
