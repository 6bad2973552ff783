"""Credential Repository implementation using SQLAlchemy.

This module provides the repository for every durable row the authentication
flows touch: users, sessions, refresh tokens, password resets and email
verifications.

Each public method runs in its own session and transaction obtained from an
``async_sessionmaker``. Multi-row mutations (refresh rotation, password reset
completion, password change, deactivation) are issued inside a single
transaction whose guard statement is a compare-and-set ``UPDATE ... WHERE``;
the transaction is rolled back if the guard matches no row, so two concurrent
redemptions of the same token cannot both succeed.

Expiry predicates compare columns against a timestamp bound from Python, which
keeps the queries portable between PostgreSQL and SQLite.

Error handling:
- ``IntegrityError`` on user insert becomes ``EmailAlreadyExistsError`` or
  ``UsernameAlreadyExistsError``.
- Any other ``SQLAlchemyError`` is logged and raised as ``DatabaseError``.
"""

from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import AsyncIterator, Optional

from sqlalchemy import delete, func, select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlmodel import col
from structlog import get_logger

from src.core.exceptions import (
    DatabaseError,
    EmailAlreadyExistsError,
    TokenInvalidError,
    UsernameAlreadyExistsError,
)
from src.domain.entities import EmailVerification, PasswordReset, RefreshToken, Session, User
from src.domain.interfaces.repositories import ICredentialRepository
from src.utils.i18n import get_translated_message
from src.utils.masking import mask_email

logger = get_logger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class CredentialRepository(ICredentialRepository):
    """SQLAlchemy implementation of ICredentialRepository.

    Attributes:
        session_factory: Produces the ``AsyncSession`` used by each operation.
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self.session_factory = session_factory

    @asynccontextmanager
    async def _transaction(
        self, operation: str, translate_integrity: bool = True
    ) -> AsyncIterator[AsyncSession]:
        """Yield a session inside ``begin()``; commit on success, roll back on error."""
        async with self.session_factory() as session:
            try:
                async with session.begin():
                    yield session
            except IntegrityError as e:
                if not translate_integrity:
                    raise
                logger.error("credential_store_integrity_error", operation=operation, error=str(e))
                raise DatabaseError() from e
            except SQLAlchemyError as e:
                logger.error(
                    "credential_store_error",
                    operation=operation,
                    error=str(e),
                    error_type=type(e).__name__,
                )
                raise DatabaseError() from e

    # -- Users --------------------------------------------------------------

    async def create_user(self, email: str, username: str, password_hash: str) -> User:
        user = User(email=email, username=username, password_hash=password_hash)
        try:
            async with self._transaction("create_user", translate_integrity=False) as session:
                session.add(user)
                await session.flush()
        except IntegrityError as e:
            logger.info("user_insert_conflict", email=mask_email(email))
            if await self.get_user_by_email(email) is not None:
                raise EmailAlreadyExistsError() from e
            raise UsernameAlreadyExistsError() from e

        logger.info("user_created", user_id=user.id, email=mask_email(email))
        return user

    async def get_user_by_id(self, user_id: str) -> Optional[User]:
        async with self._transaction("get_user_by_id") as session:
            result = await session.execute(select(User).where(User.id == user_id))
            return result.scalars().first()

    async def get_user_by_email(self, email: str) -> Optional[User]:
        async with self._transaction("get_user_by_email") as session:
            result = await session.execute(select(User).where(User.email == email))
            return result.scalars().first()

    async def get_user_by_username(self, username: str) -> Optional[User]:
        async with self._transaction("get_user_by_username") as session:
            result = await session.execute(select(User).where(User.username == username))
            return result.scalars().first()

    async def update_password(self, user_id: str, password_hash: str) -> None:
        now = _utcnow()
        async with self._transaction("update_password") as session:
            await session.execute(
                update(User)
                .where(User.id == user_id)
                .values(password_hash=password_hash, updated_at=now)
            )
            revoked = await self._revoke_refresh_tokens(session, user_id)
        logger.info("password_updated", user_id=user_id, refresh_tokens_revoked=revoked)

    async def deactivate_user(self, user_id: str) -> bool:
        now = _utcnow()
        async with self._transaction("deactivate_user") as session:
            result = await session.execute(
                update(User)
                .where(User.id == user_id, col(User.is_active).is_(True))
                .values(is_active=False, updated_at=now)
            )
            if result.rowcount != 1:
                return False
            await self._revoke_refresh_tokens(session, user_id)
        logger.info("user_deactivated", user_id=user_id)
        return True

    # -- Sessions -------------------------------------------------------------

    async def create_session(
        self,
        user_id: str,
        token_hash: str,
        expires_at: datetime,
        ip_address: Optional[str] = None,
        user_agent: Optional[str] = None,
    ) -> Session:
        session_row = Session(
            user_id=user_id,
            token_hash=token_hash,
            expires_at=expires_at,
            ip_address=ip_address,
            user_agent=user_agent,
        )
        async with self._transaction("create_session") as session:
            session.add(session_row)
        return session_row

    async def find_session_by_token_hash(self, token_hash: str) -> Optional[Session]:
        async with self._transaction("find_session_by_token_hash") as session:
            result = await session.execute(
                select(Session).where(
                    Session.token_hash == token_hash,
                    col(Session.expires_at) > _utcnow(),
                )
            )
            return result.scalars().first()

    async def delete_session(self, session_id: str) -> bool:
        async with self._transaction("delete_session") as session:
            result = await session.execute(delete(Session).where(Session.id == session_id))
            return result.rowcount > 0

    async def delete_expired_sessions(self) -> int:
        async with self._transaction("delete_expired_sessions") as session:
            result = await session.execute(
                delete(Session).where(col(Session.expires_at) <= _utcnow())
            )
            return result.rowcount or 0

    async def count_active_sessions(self, user_id: str) -> int:
        async with self._transaction("count_active_sessions") as session:
            result = await session.execute(
                select(func.count())
                .select_from(Session)
                .where(Session.user_id == user_id, col(Session.expires_at) > _utcnow())
            )
            return result.scalar_one()

    # -- Refresh tokens -------------------------------------------------------

    async def create_refresh_token(
        self, user_id: str, token_hash: str, expires_at: datetime
    ) -> RefreshToken:
        token = RefreshToken(user_id=user_id, token_hash=token_hash, expires_at=expires_at)
        async with self._transaction("create_refresh_token") as session:
            session.add(token)
        return token

    async def find_refresh_token_by_hash(self, token_hash: str) -> Optional[RefreshToken]:
        async with self._transaction("find_refresh_token_by_hash") as session:
            result = await session.execute(
                select(RefreshToken).where(
                    RefreshToken.token_hash == token_hash,
                    col(RefreshToken.is_revoked).is_(False),
                    col(RefreshToken.expires_at) > _utcnow(),
                )
            )
            return result.scalars().first()

    async def rotate_refresh_token(
        self, previous_id: str, user_id: str, token_hash: str, expires_at: datetime
    ) -> RefreshToken:
        replacement = RefreshToken(user_id=user_id, token_hash=token_hash, expires_at=expires_at)
        async with self._transaction("rotate_refresh_token") as session:
            result = await session.execute(
                update(RefreshToken)
                .where(
                    RefreshToken.id == previous_id,
                    col(RefreshToken.is_revoked).is_(False),
                )
                .values(is_revoked=True)
            )
            if result.rowcount != 1:
                logger.warning("refresh_token_reuse_detected", token_id=previous_id)
                raise TokenInvalidError(
                    get_translated_message("refresh_token_not_found_or_revoked")
                )
            session.add(replacement)
        return replacement

    async def revoke_all_user_refresh_tokens(self, user_id: str) -> int:
        async with self._transaction("revoke_all_user_refresh_tokens") as session:
            return await self._revoke_refresh_tokens(session, user_id)

    @staticmethod
    async def _revoke_refresh_tokens(session: AsyncSession, user_id: str) -> int:
        result = await session.execute(
            update(RefreshToken)
            .where(RefreshToken.user_id == user_id, col(RefreshToken.is_revoked).is_(False))
            .values(is_revoked=True)
        )
        return result.rowcount or 0

    # -- Password resets ------------------------------------------------------

    async def create_password_reset(
        self, user_id: str, token_hash: str, expires_at: datetime
    ) -> PasswordReset:
        reset = PasswordReset(user_id=user_id, token_hash=token_hash, expires_at=expires_at)
        async with self._transaction("create_password_reset") as session:
            session.add(reset)
        return reset

    async def find_password_reset_by_token_hash(self, token_hash: str) -> Optional[PasswordReset]:
        async with self._transaction("find_password_reset_by_token_hash") as session:
            result = await session.execute(
                select(PasswordReset).where(
                    PasswordReset.token_hash == token_hash,
                    col(PasswordReset.used_at).is_(None),
                    col(PasswordReset.expires_at) > _utcnow(),
                )
            )
            return result.scalars().first()

    async def mark_password_reset_as_used(self, reset_id: str) -> bool:
        async with self._transaction("mark_password_reset_as_used") as session:
            return await self._claim_password_reset(session, reset_id) == 1

    @staticmethod
    async def _claim_password_reset(session: AsyncSession, reset_id: str) -> int:
        now = _utcnow()
        result = await session.execute(
            update(PasswordReset)
            .where(
                PasswordReset.id == reset_id,
                col(PasswordReset.used_at).is_(None),
                col(PasswordReset.expires_at) > now,
            )
            .values(used_at=now)
        )
        return result.rowcount or 0

    async def complete_password_reset(self, reset_id: str, user_id: str, password_hash: str) -> None:
        async with self._transaction("complete_password_reset") as session:
            if await self._claim_password_reset(session, reset_id) != 1:
                raise TokenInvalidError(get_translated_message("invalid_or_expired_reset_token"))
            await session.execute(
                update(User)
                .where(User.id == user_id)
                .values(password_hash=password_hash, updated_at=_utcnow())
            )
            revoked = await self._revoke_refresh_tokens(session, user_id)
        logger.info("password_reset_completed", user_id=user_id, refresh_tokens_revoked=revoked)

    # -- Email verifications --------------------------------------------------

    async def create_email_verification(
        self, user_id: str, email: str, token_hash: str, expires_at: datetime
    ) -> EmailVerification:
        verification = EmailVerification(
            user_id=user_id, email=email, token_hash=token_hash, expires_at=expires_at
        )
        async with self._transaction("create_email_verification") as session:
            session.add(verification)
        return verification

    async def find_email_verification_by_token_hash(
        self, token_hash: str
    ) -> Optional[EmailVerification]:
        async with self._transaction("find_email_verification_by_token_hash") as session:
            result = await session.execute(
                select(EmailVerification).where(
                    EmailVerification.token_hash == token_hash,
                    col(EmailVerification.verified_at).is_(None),
                    col(EmailVerification.expires_at) > _utcnow(),
                )
            )
            return result.scalars().first()

    async def mark_email_as_verified(self, verification_id: str) -> bool:
        now = _utcnow()
        async with self._transaction("mark_email_as_verified") as session:
            result = await session.execute(
                update(EmailVerification)
                .where(
                    EmailVerification.id == verification_id,
                    col(EmailVerification.verified_at).is_(None),
                )
                .values(verified_at=now)
            )
            return result.rowcount == 1
