"""Repository interfaces for abstracting data persistence in the domain layer.

This module defines the abstract base class (interface) for the credential
store, which acts as a "port" in the context of Hexagonal Architecture. The
auth orchestrator uses it to interact with durable state without being coupled
to a specific database.

The concrete implementation resides in the `infrastructure` layer.
"""

from abc import ABC, abstractmethod
from datetime import datetime
from typing import Optional

from src.domain.entities import EmailVerification, PasswordReset, RefreshToken, Session, User


class ICredentialRepository(ABC):
    """An interface defining the contract for users, sessions and single-use tokens.

    Lookups by token take the SHA-256 digest of the token, never the token
    itself. Lookups that represent a grant (session, refresh token, reset,
    verification) only return rows that are still live: not expired, not
    revoked and not already used.

    Methods that touch several rows are atomic: either every write is applied
    or none is.
    """

    # -- Users --------------------------------------------------------------

    @abstractmethod
    async def create_user(self, email: str, username: str, password_hash: str) -> User:
        """Inserts a new user.

        The store's unique constraints are the authoritative duplicate guard.

        Raises:
            EmailAlreadyExistsError: If the email is taken.
            UsernameAlreadyExistsError: If the username is taken.
        """
        raise NotImplementedError

    @abstractmethod
    async def get_user_by_id(self, user_id: str) -> Optional[User]:
        """Retrieves a user by id, active or not."""
        raise NotImplementedError

    @abstractmethod
    async def get_user_by_email(self, email: str) -> Optional[User]:
        """Retrieves a user by normalized email, active or not."""
        raise NotImplementedError

    @abstractmethod
    async def get_user_by_username(self, username: str) -> Optional[User]:
        """Retrieves a user by username, active or not."""
        raise NotImplementedError

    @abstractmethod
    async def update_password(self, user_id: str, password_hash: str) -> None:
        """Sets a new password hash and revokes all of the user's refresh tokens atomically."""
        raise NotImplementedError

    @abstractmethod
    async def deactivate_user(self, user_id: str) -> bool:
        """Soft-deactivates a user and revokes their refresh tokens atomically.

        Returns:
            True if the user existed and was active.
        """
        raise NotImplementedError

    # -- Sessions -------------------------------------------------------------

    @abstractmethod
    async def create_session(
        self,
        user_id: str,
        token_hash: str,
        expires_at: datetime,
        ip_address: Optional[str] = None,
        user_agent: Optional[str] = None,
    ) -> Session:
        raise NotImplementedError

    @abstractmethod
    async def find_session_by_token_hash(self, token_hash: str) -> Optional[Session]:
        """Returns the unexpired session for an access-token digest."""
        raise NotImplementedError

    @abstractmethod
    async def delete_session(self, session_id: str) -> bool:
        raise NotImplementedError

    @abstractmethod
    async def delete_expired_sessions(self) -> int:
        """Deletes every expired session and returns how many were removed."""
        raise NotImplementedError

    # -- Refresh tokens -------------------------------------------------------

    @abstractmethod
    async def create_refresh_token(
        self, user_id: str, token_hash: str, expires_at: datetime
    ) -> RefreshToken:
        raise NotImplementedError

    @abstractmethod
    async def find_refresh_token_by_hash(self, token_hash: str) -> Optional[RefreshToken]:
        """Returns the unrevoked, unexpired refresh token for a digest."""
        raise NotImplementedError

    @abstractmethod
    async def rotate_refresh_token(
        self, previous_id: str, user_id: str, token_hash: str, expires_at: datetime
    ) -> RefreshToken:
        """Revokes ``previous_id`` and inserts its replacement in one transaction.

        Raises:
            TokenInvalidError: If the previous token was already revoked.
        """
        raise NotImplementedError

    @abstractmethod
    async def revoke_all_user_refresh_tokens(self, user_id: str) -> int:
        raise NotImplementedError

    # -- Password resets ------------------------------------------------------

    @abstractmethod
    async def create_password_reset(
        self, user_id: str, token_hash: str, expires_at: datetime
    ) -> PasswordReset:
        raise NotImplementedError

    @abstractmethod
    async def find_password_reset_by_token_hash(self, token_hash: str) -> Optional[PasswordReset]:
        """Returns the unused, unexpired reset record for a digest."""
        raise NotImplementedError

    @abstractmethod
    async def mark_password_reset_as_used(self, reset_id: str) -> bool:
        """Sets ``used_at`` if still unset; returns whether a row changed."""
        raise NotImplementedError

    @abstractmethod
    async def complete_password_reset(self, reset_id: str, user_id: str, password_hash: str) -> None:
        """Marks the reset used, sets the password and revokes all refresh tokens atomically.

        Raises:
            TokenInvalidError: If the reset was already used.
        """
        raise NotImplementedError

    # -- Email verifications --------------------------------------------------

    @abstractmethod
    async def create_email_verification(
        self, user_id: str, email: str, token_hash: str, expires_at: datetime
    ) -> EmailVerification:
        raise NotImplementedError

    @abstractmethod
    async def find_email_verification_by_token_hash(
        self, token_hash: str
    ) -> Optional[EmailVerification]:
        """Returns the unverified, unexpired verification record for a digest."""
        raise NotImplementedError

    @abstractmethod
    async def mark_email_as_verified(self, verification_id: str) -> bool:
        """Sets ``verified_at`` if still unset; returns whether a row changed."""
        raise NotImplementedError
