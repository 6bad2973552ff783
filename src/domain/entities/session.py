from datetime import datetime, timezone  # For timestamp fields
from typing import Optional  # For optional fields
from uuid import uuid4  # For primary key generation

from sqlalchemy import DateTime  # Timezone-aware timestamps
from sqlmodel import Column, Field, Index, SQLModel, String  # For ORM and table definition


class Session(SQLModel, table=True):
    """Represents one active access-token grant issued by a login.

    A session row is keyed by the SHA-256 digest of the access token it
    represents, so logout can locate it from the presented token alone. A user
    may hold any number of concurrent sessions (multi-device login). Rows are
    deleted on logout or by the expired-session sweep.

    Attributes:
        id: The unique identifier for the session record.
        user_id: A foreign key linking the session to the `User` aggregate root.
        token_hash: SHA-256 hex digest of the access token.
        expires_at: When the access token, and hence the session, expires.
        ip_address: Client address reported at login, if any.
        user_agent: Client user agent reported at login, if any.
        created_at: When the session was created.
    """

    __tablename__ = "sessions"  # Explicit table name for clarity

    id: str = Field(
        default_factory=lambda: str(uuid4()),
        primary_key=True,
        description="The unique identifier for the session record.",
    )
    user_id: str = Field(
        foreign_key="users.id",  # References users table
        index=True,
        nullable=False,
        description="Foreign key linking the session to the User.",
    )
    token_hash: str = Field(
        sa_column=Column(String(64), unique=True, index=True, nullable=False),
        description="SHA-256 digest of the access token.",
    )
    expires_at: datetime = Field(
        sa_column=Column(DateTime(timezone=True), nullable=False),
        description="The timestamp when the session expires.",
    )
    ip_address: Optional[str] = Field(default=None, max_length=45)
    user_agent: Optional[str] = Field(default=None, max_length=512)
    created_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        sa_column=Column(DateTime(timezone=True), nullable=False),
    )

    __table_args__ = (
        Index("ix_sessions_user_id_expires_at", "user_id", "expires_at"),
        {"extend_existing": True},
    )
