"""Logging implementation of the email dispatcher.

Builds the password reset and email verification links and writes them to the
structured log instead of sending mail. Used in development and test
deployments; production wires a mailer-backed ``IEmailDispatcher`` instead.
"""

from datetime import datetime
from typing import Optional
from urllib.parse import urlencode

import structlog

from src.core.config.settings import Settings, settings as default_settings
from src.domain.entities.user import User
from src.domain.interfaces.email import IEmailDispatcher
from src.utils.masking import mask_email, mask_identifier

logger = structlog.get_logger(__name__)


class LoggingEmailDispatcher(IEmailDispatcher):
    """Writes one-time links to the log.

    The raw token appears in the link only when ``APP_ENV`` is ``development``;
    every other environment logs a masked token.
    """

    def __init__(self, config: Optional[Settings] = None):
        self.settings = config or default_settings

    def _link(self, base_url: str, token: str) -> str:
        shown = token if self.settings.APP_ENV == "development" else mask_identifier(token)
        return f"{base_url}?{urlencode({'token': shown})}"

    async def send_password_reset(self, user: User, token: str, expires_at: datetime) -> None:
        logger.info(
            "password_reset_email_dispatched",
            user_id=user.id,
            email=mask_email(user.email),
            reset_url=self._link(self.settings.PASSWORD_RESET_URL, token),
            expires_at=expires_at.isoformat(),
        )

    async def send_email_verification(
        self, user: User, email: str, token: str, expires_at: datetime
    ) -> None:
        logger.info(
            "email_verification_dispatched",
            user_id=user.id,
            email=mask_email(email),
            verification_url=self._link(self.settings.EMAIL_VERIFICATION_URL, token),
            expires_at=expires_at.isoformat(),
        )
