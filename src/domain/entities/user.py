from datetime import datetime, timezone  # For timestamp fields
from uuid import uuid4  # For primary key generation

from sqlalchemy import DateTime  # Timezone-aware timestamps
from sqlmodel import Column, Field, SQLModel, String  # For ORM and table definition


class User(SQLModel, table=True):
    """Represents a User entity and acts as an Aggregate Root.

    A user is created on registration and mutated only on password change or
    soft deactivation; rows are never hard-deleted. Email and username are
    guarded by unique constraints, which are the authoritative protection
    against duplicate registrations under concurrency.

    Attributes:
        id: The unique identifier for the user (UUID string).
        email: A unique, lower-cased email address used for login.
        username: A unique username.
        password_hash: The bcrypt hash of the user's password.
        is_active: Inactive users cannot log in or refresh tokens.
        created_at: When the account was created.
        updated_at: When the account was last modified.
    """

    __tablename__ = "users"  # Explicit table name for clarity

    id: str = Field(
        default_factory=lambda: str(uuid4()),
        primary_key=True,
        description="The unique identifier for the user.",
    )
    email: str = Field(
        sa_column=Column(String(255), unique=True, index=True, nullable=False),
        description="Unique email address for communication and login.",
    )
    username: str = Field(
        sa_column=Column(String(50), unique=True, index=True, nullable=False),
        description="Unique username.",
    )
    password_hash: str = Field(
        max_length=255,  # Sufficient for bcrypt hashes
        description="Bcrypt-hashed password.",
    )
    is_active: bool = Field(
        default=True,
        description="Indicates if the user's account is active.",
    )
    created_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        sa_column=Column(DateTime(timezone=True), nullable=False),
    )
    updated_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        sa_column=Column(DateTime(timezone=True), nullable=False),
    )

    __table_args__ = ({"extend_existing": True},)
