from typing import List, Optional

from structlog import get_logger

from src.core.config.settings import Settings, settings as default_settings
from src.core.exceptions import CacheUnavailableError
from src.domain.value_objects.session_data import RefreshTokenData, SessionData
from src.infrastructure.cache.keys import CacheKeys
from src.infrastructure.redis import CacheClient
from src.utils.masking import mask_identifier

logger = get_logger(__name__)


class AuthCacheService:
    """Cache-backed session snapshots, refresh-token metadata and the token blacklist.

    Only the blacklist is load-bearing: ``is_token_blacklisted`` is consulted by
    access-token validation. Session snapshots and refresh metadata are written
    for auditing and fast lookups but no authorization decision reads them; the
    relational store remains the source of truth.

    Every method propagates ``CacheUnavailableError`` except
    ``is_token_blacklisted``, which fails open, and ``health_check``, which
    reports ``False``.

    Attributes:
        cache (CacheClient): JSON wrapper around the shared Redis client.
        settings (Settings): Supplies TTLs.
    """

    def __init__(self, cache: CacheClient, config: Optional[Settings] = None):
        self.cache = cache
        self.settings = config or default_settings

    # -- Session snapshots ------------------------------------------------

    async def get_session(self, session_id: str) -> Optional[SessionData]:
        data = await self.cache.get(CacheKeys.auth_session(session_id))
        if data is None:
            return None
        return SessionData.model_validate(data)

    async def set_session(
        self, session_id: str, data: SessionData, ttl: Optional[int] = None
    ) -> None:
        """Store a session snapshot and add it to the owner's session index.

        Args:
            session_id: Id of the durable Session row.
            data: Snapshot to store.
            ttl: Lifetime in seconds; defaults to ``SESSION_CACHE_TTL_SECONDS``.
        """
        ttl = ttl or self.settings.SESSION_CACHE_TTL_SECONDS
        await self.cache.set(CacheKeys.auth_session(session_id), data.to_cache(), ttl=ttl)
        await self.add_user_session(data.user_id, session_id)

    async def delete_session(self, session_id: str) -> bool:
        return await self.cache.delete(CacheKeys.auth_session(session_id)) > 0

    async def get_user_sessions(self, user_id: str) -> List[str]:
        return await self.cache.members(CacheKeys.auth_user_sessions(user_id))

    async def add_user_session(self, user_id: str, session_id: str) -> None:
        await self.cache.add_members(
            CacheKeys.auth_user_sessions(user_id),
            session_id,
            ttl=self.settings.SESSION_CACHE_TTL_SECONDS,
        )

    async def remove_user_session(self, user_id: str, session_id: str) -> None:
        await self.cache.remove_members(CacheKeys.auth_user_sessions(user_id), session_id)

    async def invalidate_user_sessions(self, user_id: str) -> int:
        """Delete every cached session snapshot of a user and the index itself.

        Returns:
            int: Number of session ids found in the index.
        """
        session_ids = await self.get_user_sessions(user_id)
        keys = [CacheKeys.auth_session(session_id) for session_id in session_ids]
        await self.cache.delete(*keys, CacheKeys.auth_user_sessions(user_id))
        logger.info("user_sessions_invalidated", user_id=user_id, session_count=len(session_ids))
        return len(session_ids)

    # -- Refresh-token metadata -------------------------------------------

    async def get_refresh_token(self, token_id: str) -> Optional[RefreshTokenData]:
        data = await self.cache.get(CacheKeys.auth_refresh_token(token_id))
        if data is None:
            return None
        return RefreshTokenData.model_validate(data)

    async def set_refresh_token(self, token_id: str, data: RefreshTokenData) -> None:
        await self.cache.set(
            CacheKeys.auth_refresh_token(token_id),
            data.to_cache(),
            ttl=self.settings.refresh_token_ttl_seconds,
        )

    async def revoke_refresh_token(self, token_id: str) -> bool:
        """Mark cached refresh metadata as revoked; returns False when nothing is cached."""
        data = await self.get_refresh_token(token_id)
        if data is None:
            return False
        data.is_revoked = True
        await self.set_refresh_token(token_id, data)
        return True

    async def delete_refresh_token(self, token_id: str) -> bool:
        return await self.cache.delete(CacheKeys.auth_refresh_token(token_id)) > 0

    # -- Blacklist --------------------------------------------------------

    async def blacklist_token(self, token_hash: str) -> None:
        """Blacklist a token digest for the maximum lifetime of an access token."""
        await self.cache.set(
            CacheKeys.auth_blacklist(token_hash),
            True,
            ttl=self.settings.access_token_ttl_seconds,
        )
        logger.info("token_blacklisted", token_hash=mask_identifier(token_hash))

    async def is_token_blacklisted(self, token_hash: str) -> bool:
        """Return whether a token digest is blacklisted.

        Fails open: when the cache is unavailable the token is treated as not
        blacklisted and a ``blacklist_check_fail_open`` warning is logged.
        """
        try:
            return await self.cache.get(CacheKeys.auth_blacklist(token_hash)) is True
        except CacheUnavailableError:
            logger.warning(
                "blacklist_check_fail_open",
                token_hash=mask_identifier(token_hash),
                degraded=True,
            )
            return False

    # -- Utilities --------------------------------------------------------

    async def invalidate_user_cache(self, user_id: str) -> None:
        """Drop every cached auth artefact of a user: sessions, failed attempts, lockout."""
        await self.invalidate_user_sessions(user_id)
        await self.cache.delete(
            CacheKeys.failed_attempts(user_id), CacheKeys.account_lockout(user_id)
        )
        logger.info("user_auth_cache_invalidated", user_id=user_id)

    async def health_check(self) -> bool:
        try:
            return await self.cache.ping()
        except CacheUnavailableError:
            logger.error("auth_cache_health_check_failed")
            return False

    def get_stats(self) -> dict:
        return self.cache.get_stats()
