from datetime import datetime, timezone
from uuid import uuid4

from sqlalchemy import DateTime
from sqlmodel import Column, Field, Index, SQLModel, String


class RefreshToken(SQLModel, table=True):
    """Durable record of an issued refresh token.

    One row is created with every token pair. Rotation flips ``is_revoked`` on
    the presented row and inserts a new one; a revoked or expired row is never
    accepted again.

    Attributes:
        id: The unique identifier for the refresh token record.
        user_id: Owner of the token.
        token_hash: SHA-256 hex digest of the encoded refresh token.
        expires_at: Matches the token's ``exp`` claim.
        is_revoked: Set once by rotation, password reset or password change.
        created_at: When the token was issued.
    """

    __tablename__ = "refresh_tokens"

    id: str = Field(default_factory=lambda: str(uuid4()), primary_key=True)
    user_id: str = Field(foreign_key="users.id", index=True, nullable=False)
    token_hash: str = Field(
        sa_column=Column(String(64), unique=True, index=True, nullable=False),
    )
    expires_at: datetime = Field(
        sa_column=Column(DateTime(timezone=True), nullable=False),
    )
    is_revoked: bool = Field(default=False, nullable=False)
    created_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        sa_column=Column(DateTime(timezone=True), nullable=False),
    )

    __table_args__ = (
        Index("ix_refresh_tokens_user_id_is_revoked", "user_id", "is_revoked"),
        {"extend_existing": True},
    )
