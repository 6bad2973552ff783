"""Security utilities for password hashing and token digests.

Two distinct primitives live here:

- Password hashing uses bcrypt through passlib: slow, salted and cost-tunable.
- Token digests use SHA-256: fast and deterministic, so stored tokens can be
  found by an indexed equality lookup.

Never use one in place of the other. A salted hash cannot be looked up, and a
fast digest of a password can be brute-forced.
"""

import hashlib
import secrets

from passlib.context import CryptContext

from src.core.config.settings import settings


def create_password_context(rounds: int = settings.BCRYPT_WORK_FACTOR) -> CryptContext:
    """Build a bcrypt CryptContext with the given work factor."""
    return CryptContext(schemes=["bcrypt"], deprecated="auto", bcrypt__rounds=rounds)


pwd_context = create_password_context()


def hash_password(password: str) -> str:
    """Hash a password using bcrypt.

    Args:
        password: Plain text password to hash

    Returns:
        str: Bcrypt-hashed password
    """
    return pwd_context.hash(password)


def verify_password(password: str, hashed_password: str) -> bool:
    """Verify a password against its hash.

    Args:
        password: Plain text password to verify
        hashed_password: Bcrypt hash to verify against

    Returns:
        bool: True if password matches hash

    Security:
        - Uses constant-time comparison via bcrypt
        - Resistant to timing attacks
    """
    return pwd_context.verify(password, hashed_password)


def dummy_verify() -> None:
    """Spend one bcrypt verification worth of time without a real hash.

    Called when a login names an unknown account so that the response time does
    not reveal whether the email is registered.
    """
    pwd_context.dummy_verify()


def hash_token(token: str) -> str:
    """Return the SHA-256 hex digest used as the lookup key for a token."""
    return hashlib.sha256(token.encode("utf-8")).hexdigest()


def generate_secure_token(num_bytes: int = 32) -> str:
    """Generate a URL-safe random token for password reset and email verification links."""
    return secrets.token_urlsafe(num_bytes)
