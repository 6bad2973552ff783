import time
from datetime import datetime, timezone
from typing import Callable, Optional

from structlog import get_logger

from src.core.config.settings import Settings, settings as default_settings
from src.domain.value_objects.lockout import FailedAttemptStatus
from src.infrastructure.cache.keys import CacheKeys
from src.infrastructure.redis import CacheClient

logger = get_logger(__name__)


class LockoutTracker:
    """Per-user failed-login counter with a timed account lockout.

    Failures are counted under ``auth:failed_attempts:{user_id}`` as
    ``{attempts, lastAttempt}`` (epoch ms). A failure recorded more than one
    lockout duration after the previous one starts the count again. Reaching
    the threshold writes ``{lockoutUntil}`` under ``auth:account_lockout:{user_id}``.

    Cache errors propagate to the caller as ``CacheUnavailableError``.

    Attributes:
        cache (CacheClient): Store for counters and lockout records.
        clock (Callable[[], float]): Returns the current time in seconds.
    """

    def __init__(
        self,
        cache: CacheClient,
        config: Optional[Settings] = None,
        clock: Callable[[], float] = time.time,
    ):
        self.cache = cache
        self.clock = clock
        config = config or default_settings
        self.max_attempts = config.MAX_FAILED_LOGIN_ATTEMPTS
        self.lockout_ms = config.ACCOUNT_LOCKOUT_MINUTES * 60 * 1000
        self.failed_attempts_ttl = config.FAILED_ATTEMPTS_TTL_SECONDS

    def _now_ms(self) -> int:
        return int(self.clock() * 1000)

    @staticmethod
    def _to_datetime(epoch_ms: int) -> datetime:
        return datetime.fromtimestamp(epoch_ms / 1000, tz=timezone.utc)

    def _record_failure(self, state: Optional[dict], now: int):
        if not state or now > state["lastAttempt"] + self.lockout_ms:
            attempts = 1
        else:
            attempts = state["attempts"] + 1
        return {"attempts": attempts, "lastAttempt": now}, attempts

    async def increment_failed_attempts(self, user_id: str) -> FailedAttemptStatus:
        """Record a failed login and lock the account once the threshold is reached.

        The counter is updated atomically, so concurrent failures are each
        counted once.

        Args:
            user_id: The account that failed to authenticate.

        Returns:
            FailedAttemptStatus: Attempt count and lockout state after this failure.
        """
        now = self._now_ms()
        attempts = await self.cache.update(
            CacheKeys.failed_attempts(user_id),
            lambda state: self._record_failure(state, now),
            ttl=self.failed_attempts_ttl,
        )

        if attempts >= self.max_attempts:
            lockout_until = now + self.lockout_ms
            await self.cache.set(
                CacheKeys.account_lockout(user_id),
                {"lockoutUntil": lockout_until},
                ttl=self.lockout_ms // 1000,
            )
            logger.warning("account_locked", user_id=user_id, attempts=attempts)
            return FailedAttemptStatus(
                attempts=attempts,
                is_locked=True,
                lockout_until=self._to_datetime(lockout_until),
            )

        return FailedAttemptStatus(attempts=attempts, is_locked=False)

    async def get_lockout_until(self, user_id: str) -> Optional[datetime]:
        """Return the end of an active lockout, or ``None`` when the account is not locked."""
        record = await self.cache.get(CacheKeys.account_lockout(user_id))
        if not record or self._now_ms() >= record["lockoutUntil"]:
            return None
        return self._to_datetime(record["lockoutUntil"])

    async def is_account_locked(self, user_id: str) -> bool:
        return await self.get_lockout_until(user_id) is not None

    async def clear_failed_attempts(self, user_id: str) -> None:
        """Remove both the failure counter and any lockout record."""
        await self.cache.delete(
            CacheKeys.failed_attempts(user_id), CacheKeys.account_lockout(user_id)
        )
        logger.debug("failed_attempts_cleared", user_id=user_id)
