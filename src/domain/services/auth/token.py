from datetime import datetime, timedelta, timezone
from typing import Optional, Tuple
from uuid import uuid4

import jwt
from jwt import ExpiredSignatureError, PyJWTError
from structlog import get_logger

from src.core.config.settings import Settings, settings as default_settings
from src.core.exceptions import TokenExpiredError, TokenInvalidError
from src.domain.entities.refresh_token import RefreshToken
from src.domain.entities.user import User
from src.domain.interfaces.repositories import ICredentialRepository
from src.domain.value_objects.token import TokenPair, TokenPayload, TokenType
from src.utils.i18n import get_translated_message
from src.utils.security import hash_token as sha256_digest

logger = get_logger(__name__)

REQUIRED_CLAIMS = ["sub", "email", "username", "iat", "exp", "iss", "aud", "type", "jti"]


class TokenService:
    """Service for managing JWT access and refresh tokens.

    Handles token creation, validation, and persistence of refresh tokens with
    HMAC signing. Every token carries ``sub, email, username, iat, exp, iss, aud,
    type, jti``; ``type`` distinguishes access from refresh tokens and ``jti``
    keeps two pairs issued in the same second distinct.

    Refresh tokens are persisted as SHA-256 digests only. Validation checks the
    signature and standard claims; it does not consult the blacklist or the
    store, which is the orchestrator's job.

    Attributes:
        repository (ICredentialRepository): Store for refresh-token rows.
        settings (Settings): Signing key, algorithm, issuer, audience, lifetimes.
    """

    def __init__(self, repository: ICredentialRepository, config: Optional[Settings] = None):
        self.repository = repository
        self.settings = config or default_settings

    @staticmethod
    def hash_token(token: str) -> str:
        """Deterministic SHA-256 hex digest; the only lookup key for stored tokens."""
        return sha256_digest(token)

    def _encode(self, user: User, token_type: TokenType, lifetime: timedelta) -> Tuple[str, datetime]:
        issued_at = datetime.now(timezone.utc)
        expires_at = issued_at + lifetime
        payload = {
            "sub": str(user.id),
            "email": user.email,
            "username": user.username,
            "iat": int(issued_at.timestamp()),
            "exp": int(expires_at.timestamp()),
            "iss": self.settings.JWT_ISSUER,
            "aud": self.settings.JWT_AUDIENCE,
            "type": token_type.value,
            "jti": uuid4().hex,
        }
        token = jwt.encode(
            payload,
            self.settings.JWT_SECRET_KEY.get_secret_value(),
            algorithm=self.settings.JWT_ALGORITHM,
        )
        return token, datetime.fromtimestamp(payload["exp"], tz=timezone.utc)

    def create_access_token(self, user: User) -> str:
        """Create a signed access token for ``user``.

        Args:
            user (User): User for whom to create the token.

        Returns:
            str: Encoded JWT access token.
        """
        token, _ = self._encode(
            user, TokenType.ACCESS, timedelta(minutes=self.settings.ACCESS_TOKEN_EXPIRE_MINUTES)
        )
        return token

    def create_refresh_token(self, user: User) -> Tuple[str, datetime]:
        """Create a signed refresh token; returns the token and its expiry."""
        return self._encode(
            user, TokenType.REFRESH, timedelta(days=self.settings.REFRESH_TOKEN_EXPIRE_DAYS)
        )

    async def issue_token_pair(self, user: User) -> TokenPair:
        """Sign an access/refresh pair and persist the refresh token's digest.

        Args:
            user (User): The authenticated user.

        Returns:
            TokenPair: Both tokens, the refresh row id and the access lifetime.
        """
        access_token = self.create_access_token(user)
        refresh_token, refresh_expires_at = self.create_refresh_token(user)
        row = await self.repository.create_refresh_token(
            user_id=user.id,
            token_hash=self.hash_token(refresh_token),
            expires_at=refresh_expires_at,
        )
        logger.debug("token_pair_issued", user_id=user.id, refresh_token_id=row.id)
        return TokenPair(
            access_token=access_token,
            refresh_token=refresh_token,
            refresh_token_id=row.id,
            expires_in=self.settings.access_token_ttl_seconds,
            refresh_expires_at=refresh_expires_at,
        )

    async def rotate_token_pair(self, user: User, previous: RefreshToken) -> TokenPair:
        """Issue a new pair while revoking ``previous`` in the same transaction.

        Raises:
            TokenInvalidError: If ``previous`` was revoked concurrently.
        """
        access_token = self.create_access_token(user)
        refresh_token, refresh_expires_at = self.create_refresh_token(user)
        row = await self.repository.rotate_refresh_token(
            previous_id=previous.id,
            user_id=user.id,
            token_hash=self.hash_token(refresh_token),
            expires_at=refresh_expires_at,
        )
        logger.info(
            "refresh_token_rotated",
            user_id=user.id,
            previous_token_id=previous.id,
            refresh_token_id=row.id,
        )
        return TokenPair(
            access_token=access_token,
            refresh_token=refresh_token,
            refresh_token_id=row.id,
            expires_in=self.settings.access_token_ttl_seconds,
            refresh_expires_at=refresh_expires_at,
        )

    def validate(self, token: str, expected_type: TokenType) -> TokenPayload:
        """Verify a token's signature, standard claims and type.

        Args:
            token (str): Encoded JWT.
            expected_type (TokenType): Required value of the ``type`` claim.

        Returns:
            TokenPayload: The verified claims.

        Raises:
            TokenExpiredError: If ``exp`` has passed.
            TokenInvalidError: On any signature, format, issuer, audience or type failure.
        """
        try:
            claims = jwt.decode(
                token,
                self.settings.JWT_SECRET_KEY.get_secret_value(),
                algorithms=[self.settings.JWT_ALGORITHM],
                issuer=self.settings.JWT_ISSUER,
                audience=self.settings.JWT_AUDIENCE,
                options={"require": REQUIRED_CLAIMS},
            )
        except ExpiredSignatureError as e:
            logger.info("token_expired", expected_type=expected_type.value)
            raise TokenExpiredError() from e
        except PyJWTError as e:
            logger.warning("token_decode_failed", error=str(e), expected_type=expected_type.value)
            raise TokenInvalidError() from e

        if claims.get("type") != expected_type.value:
            logger.warning(
                "token_type_mismatch", expected_type=expected_type.value, actual=claims.get("type")
            )
            raise TokenInvalidError(get_translated_message("invalid_token_type"))

        try:
            return TokenPayload.from_claims(claims)
        except (KeyError, ValueError, TypeError) as e:
            raise TokenInvalidError() from e
