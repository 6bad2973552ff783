from dataclasses import dataclass
from typing import Optional

from src.domain.entities.user import User


@dataclass(frozen=True, slots=True)
class UserSummary:
    """Public view of a user returned from register and login."""

    id: str
    email: str
    username: str

    @classmethod
    def from_entity(cls, user: User) -> "UserSummary":
        return cls(id=user.id, email=user.email, username=user.username)


@dataclass(frozen=True, slots=True)
class AuthResponse:
    """Success payload of register and login.

    Attributes:
        user: The authenticated user.
        access_token: Signed access token.
        refresh_token: Signed refresh token.
        expires_in: Access-token lifetime in seconds.
        session_id: Id of the Session row created by login, ``None`` on register.
    """

    user: UserSummary
    access_token: str
    refresh_token: str
    expires_in: int
    session_id: Optional[str] = None
