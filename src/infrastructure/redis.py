"""
Redis Connection Module

This module provides the asynchronous Redis client used for session caching,
the token blacklist, rate limiting and failed-login tracking, plus a thin JSON
wrapper around it.

One client is created per process by the dependency injection container and
shared by every cache-backed component. The wrapper converts every
``redis.exceptions.RedisError`` (including connection failures and timeouts)
into ``CacheUnavailableError`` so that callers deal with a single domain error
and can decide explicitly whether to fail open.

**Security Note**: Ensure that the Redis connection URL (REDIS_URL) uses TLS
(``rediss://``) when connecting over an untrusted network. Never log the URL, as
it may embed the password.

Key Components:
    - create_redis_client: Builds the process-wide ``redis.asyncio.Redis`` client.
    - CacheStats: Hit/miss/set/delete/error counters.
    - CacheClient: JSON get/set-with-ttl, atomic read-modify-write, set members,
      delete, delete-by-pattern, increment, ping.
"""

import json
from dataclasses import asdict, dataclass
from typing import Any, Callable, List, Optional, Tuple, TypeVar

from redis.asyncio import Redis
from redis.asyncio.client import Pipeline
from redis.exceptions import RedisError
from structlog import get_logger

from src.core.config.settings import Settings, settings as default_settings
from src.core.exceptions import CacheUnavailableError

logger = get_logger(__name__)

T = TypeVar("T")


def create_redis_client(config: Optional[Settings] = None) -> Redis:
    """Create an asynchronous Redis client from the application settings.

    The client keeps its own connection pool; close it with ``aclose()`` on
    shutdown.

    Args:
        config: Settings to read ``REDIS_URL`` and the socket timeout from.

    Returns:
        Redis: A client that decodes responses to ``str``.
    """
    config = config or default_settings
    client = Redis.from_url(
        config.REDIS_URL,
        encoding="utf-8",
        decode_responses=True,
        socket_timeout=config.REDIS_SOCKET_TIMEOUT,
        socket_connect_timeout=config.REDIS_SOCKET_TIMEOUT,
    )
    logger.debug("redis_client_created", host=config.REDIS_HOST, port=config.REDIS_PORT)
    return client


@dataclass
class CacheStats:
    """Running counters for cache operations performed through a CacheClient."""

    hits: int = 0
    misses: int = 0
    sets: int = 0
    deletes: int = 0
    errors: int = 0

    @property
    def hit_rate(self) -> float:
        total = self.hits + self.misses
        return self.hits / total if total else 0.0

    def as_dict(self) -> dict:
        return {**asdict(self), "hit_rate": self.hit_rate}


class CacheClient:
    """JSON-valued key/value operations over an async Redis client.

    Values are serialized with ``json.dumps`` so any JSON-compatible structure
    round-trips. Every method raises ``CacheUnavailableError`` when Redis cannot
    be reached; nothing is swallowed here.

    Attributes:
        redis (Redis): The underlying client.
        stats (CacheStats): Operation counters.
    """

    def __init__(self, redis: Redis, service_name: str = "auth-service"):
        self.redis = redis
        self.service_name = service_name
        self.stats = CacheStats()

    def _unavailable(self, operation: str, key: str, error: Exception) -> CacheUnavailableError:
        self.stats.errors += 1
        logger.error(
            "cache_operation_failed",
            service=self.service_name,
            operation=operation,
            key=key,
            error=str(error),
        )
        return CacheUnavailableError()

    async def get(self, key: str) -> Optional[Any]:
        """Return the decoded value stored at ``key``, or ``None`` when absent."""
        try:
            raw = await self.redis.get(key)
        except RedisError as e:
            raise self._unavailable("get", key, e) from e
        if raw is None:
            self.stats.misses += 1
            return None
        self.stats.hits += 1
        return json.loads(raw)

    async def set(self, key: str, value: Any, ttl: Optional[int] = None) -> None:
        """Store ``value`` under ``key``, expiring after ``ttl`` seconds when given."""
        payload = json.dumps(value)
        try:
            if ttl is not None:
                await self.redis.set(key, payload, ex=ttl)
            else:
                await self.redis.set(key, payload)
        except RedisError as e:
            raise self._unavailable("set", key, e) from e
        self.stats.sets += 1

    async def update(
        self,
        key: str,
        mutate: Callable[[Optional[Any]], Tuple[Optional[Any], T]],
        ttl: Optional[int] = None,
    ) -> T:
        """Atomically read, transform and write back the value at ``key``.

        ``mutate`` receives the decoded current value (``None`` when absent) and
        returns ``(new_value, result)``. A ``new_value`` of ``None`` leaves the
        key untouched. The read and the write run under ``WATCH``/``MULTI``; if
        another client changes the key in between, the transaction is retried
        with the fresh value, so ``mutate`` must be free of side effects.

        Returns:
            The ``result`` of the ``mutate`` call that committed.
        """

        async def apply(pipe: Pipeline) -> Tuple[bool, T]:
            raw = await pipe.get(key)
            new_value, result = mutate(json.loads(raw) if raw is not None else None)
            pipe.multi()
            if new_value is not None:
                pipe.set(key, json.dumps(new_value), ex=ttl)
            return new_value is not None, result

        try:
            written, result = await self.redis.transaction(apply, key, value_from_callable=True)
        except RedisError as e:
            raise self._unavailable("update", key, e) from e
        if written:
            self.stats.sets += 1
        return result

    async def add_members(self, key: str, *members: str, ttl: Optional[int] = None) -> None:
        """Add ``members`` to the set at ``key`` and refresh its expiry."""
        try:
            async with self.redis.pipeline(transaction=True) as pipe:
                pipe.sadd(key, *members)
                if ttl is not None:
                    pipe.expire(key, ttl)
                await pipe.execute()
        except RedisError as e:
            raise self._unavailable("add_members", key, e) from e
        self.stats.sets += 1

    async def remove_members(self, key: str, *members: str) -> int:
        try:
            removed = await self.redis.srem(key, *members)
        except RedisError as e:
            raise self._unavailable("remove_members", key, e) from e
        self.stats.deletes += removed
        return removed

    async def members(self, key: str) -> List[str]:
        """Return the members of the set at ``key`` in sorted order."""
        try:
            values = await self.redis.smembers(key)
        except RedisError as e:
            raise self._unavailable("members", key, e) from e
        if values:
            self.stats.hits += 1
        else:
            self.stats.misses += 1
        return sorted(values)

    async def delete(self, *keys: str) -> int:
        if not keys:
            return 0
        try:
            removed = await self.redis.delete(*keys)
        except RedisError as e:
            raise self._unavailable("delete", ",".join(keys), e) from e
        self.stats.deletes += removed
        return removed

    async def delete_pattern(self, pattern: str) -> int:
        """Delete every key matching a glob ``pattern``.

        Uses ``SCAN`` rather than ``KEYS`` so large keyspaces are not blocked.
        """
        try:
            keys = [key async for key in self.redis.scan_iter(match=pattern)]
            removed = await self.redis.delete(*keys) if keys else 0
        except RedisError as e:
            raise self._unavailable("delete_pattern", pattern, e) from e
        self.stats.deletes += removed
        logger.debug("cache_pattern_deleted", pattern=pattern, count=removed)
        return removed

    async def exists(self, key: str) -> bool:
        try:
            return bool(await self.redis.exists(key))
        except RedisError as e:
            raise self._unavailable("exists", key, e) from e

    async def increment(self, key: str, amount: int = 1, ttl: Optional[int] = None) -> int:
        """Atomically increment an integer counter, setting its TTL on creation."""
        try:
            value = await self.redis.incrby(key, amount)
            if ttl is not None and value == amount:
                await self.redis.expire(key, ttl)
        except RedisError as e:
            raise self._unavailable("increment", key, e) from e
        return value

    async def ping(self) -> bool:
        try:
            return bool(await self.redis.ping())
        except RedisError as e:
            raise self._unavailable("ping", "-", e) from e

    def get_stats(self) -> dict:
        return self.stats.as_dict()

    def reset_stats(self) -> None:
        self.stats = CacheStats()
