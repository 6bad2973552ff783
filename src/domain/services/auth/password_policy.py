import re
from typing import Optional

from src.core.config.settings import Settings, settings as default_settings
from src.core.exceptions import PasswordPolicyError
from src.utils.i18n import get_translated_message

SPECIAL_CHARACTERS = re.compile(r"[!@#$%^&*(),.?\":{}|<>_=+\-\[\]\\/;'`~]")


class PasswordPolicyValidator:
    """Validates passwords against a defined security policy.

    The policy requires passwords to meet minimum length, and include a mix of
    uppercase letters, lowercase letters, numbers, and special characters. Each
    rule can be switched off through settings.
    """

    def __init__(self, config: Optional[Settings] = None):
        config = config or default_settings
        self.min_length = config.PASSWORD_MIN_LENGTH
        self.require_uppercase = config.PASSWORD_REQUIRE_UPPERCASE
        self.require_lowercase = config.PASSWORD_REQUIRE_LOWERCASE
        self.require_digit = config.PASSWORD_REQUIRE_DIGIT
        self.require_special_char = config.PASSWORD_REQUIRE_SPECIAL_CHAR

    def validate(self, password: str) -> None:
        """Validates the given password against the policy.

        Args:
            password (str): The password to validate.

        Raises:
            PasswordPolicyError: If the password does not meet the policy requirements.
        """
        if len(password) < self.min_length:
            raise PasswordPolicyError(
                get_translated_message("password_too_short", length=self.min_length)
            )

        if self.require_uppercase and not re.search(r"[A-Z]", password):
            raise PasswordPolicyError(get_translated_message("password_no_uppercase"))

        if self.require_lowercase and not re.search(r"[a-z]", password):
            raise PasswordPolicyError(get_translated_message("password_no_lowercase"))

        if self.require_digit and not re.search(r"\d", password):
            raise PasswordPolicyError(get_translated_message("password_no_digit"))

        if self.require_special_char and not SPECIAL_CHARACTERS.search(password):
            raise PasswordPolicyError(get_translated_message("password_no_special_char"))
