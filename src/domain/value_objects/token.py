"""Value objects describing signed tokens and their decoded claims."""

from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Mapping


class TokenType(str, Enum):
    """Discriminator carried in the ``type`` claim of every signed token."""

    ACCESS = "access"
    REFRESH = "refresh"


@dataclass(frozen=True, slots=True)
class TokenPair:
    """An access token and refresh token issued together.

    Attributes:
        access_token: Short-lived signed credential.
        refresh_token: Long-lived signed credential, single-use per rotation.
        refresh_token_id: Primary key of the persisted RefreshToken row.
        expires_in: Access-token lifetime in seconds.
        refresh_expires_at: Expiry of the refresh token.
    """

    access_token: str
    refresh_token: str
    refresh_token_id: str
    expires_in: int
    refresh_expires_at: datetime


@dataclass(frozen=True, slots=True)
class TokenPayload:
    """Decoded, verified claims of a token."""

    sub: str
    email: str
    username: str
    type: TokenType
    iat: int
    exp: int
    iss: str
    aud: str
    jti: str

    @classmethod
    def from_claims(cls, claims: Mapping[str, Any]) -> "TokenPayload":
        """Builds a payload from a verified claims mapping.

        Raises:
            KeyError: If a required claim is missing.
            ValueError: If ``type`` is not a known token type.
        """
        return cls(
            sub=str(claims["sub"]),
            email=claims["email"],
            username=claims["username"],
            type=TokenType(claims["type"]),
            iat=int(claims["iat"]),
            exp=int(claims["exp"]),
            iss=claims["iss"],
            aud=claims["aud"],
            jti=claims["jti"],
        )

    @property
    def expires_at(self) -> datetime:
        return datetime.fromtimestamp(self.exp, tz=timezone.utc)
