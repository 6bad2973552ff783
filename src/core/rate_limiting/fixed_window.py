"""Fixed-window rate limiter backed by the shared cache.

State per (action, identifier) is ``{attempts, windowStart}`` with
``windowStart`` in epoch milliseconds. A check:

1. starts a new window with ``attempts = 1`` when none exists or
   ``now > windowStart + windowMs``, and allows;
2. rejects with ``remaining = 0`` when ``attempts >= maxAttempts``;
3. otherwise increments ``attempts`` and allows.

Windows reset at discrete boundaries, so a burst straddling a boundary can see
up to twice the budget.

Each check is a single atomic read-modify-write on the window key, so a burst
of concurrent checks consumes the budget exactly once per attempt.
"""

import time
from typing import Callable, Optional

from structlog import get_logger

from src.core.exceptions import CacheUnavailableError
from src.core.rate_limiting.config import RateLimitingConfig
from src.domain.value_objects.rate_limit import RateLimitPolicy, RateLimitResult
from src.infrastructure.cache.keys import CacheKeys
from src.infrastructure.redis import CacheClient
from src.utils.masking import mask_identifier

logger = get_logger(__name__)


def evaluate_window(policy: RateLimitPolicy, state: Optional[dict], now: int):
    """Apply the fixed-window rules to the stored ``state`` at time ``now``.

    Returns:
        tuple: ``(new_state, result)``; ``new_state`` is ``None`` when the
        attempt is rejected and nothing must be written.
    """
    window_ms = policy.window_ms
    if not state or now > state["windowStart"] + window_ms:
        return {"attempts": 1, "windowStart": now}, RateLimitResult(
            allowed=True, remaining=policy.max_attempts - 1, reset_time=now + window_ms
        )

    reset_time = state["windowStart"] + window_ms
    if state["attempts"] >= policy.max_attempts:
        return None, RateLimitResult(allowed=False, remaining=0, reset_time=reset_time)

    attempts = state["attempts"] + 1
    return {"attempts": attempts, "windowStart": state["windowStart"]}, RateLimitResult(
        allowed=True, remaining=policy.max_attempts - attempts, reset_time=reset_time
    )


class FixedWindowRateLimiter:
    """Evaluates fixed-window policies against counters stored in Redis.

    Attributes:
        cache (CacheClient): Store for the window state.
        clock (Callable[[], float]): Returns the current time in seconds.
        config (RateLimitingConfig): Global enable and fail-open switches.
    """

    def __init__(
        self,
        cache: CacheClient,
        clock: Callable[[], float] = time.time,
        config: Optional[RateLimitingConfig] = None,
    ):
        self.cache = cache
        self.clock = clock
        self.config = config or RateLimitingConfig()

    def _now_ms(self) -> int:
        return int(self.clock() * 1000)

    async def check(self, policy: RateLimitPolicy, identifier: str) -> RateLimitResult:
        """Record one attempt for ``identifier`` and report whether it is allowed.

        Args:
            policy: Window length and budget to apply.
            identifier: Client address, email, or other subject of the limit.

        Returns:
            RateLimitResult: Outcome with remaining budget and window end.

        Raises:
            CacheUnavailableError: Only when fail-open is disabled.
        """
        now = self._now_ms()

        if not self.config.enable_rate_limiting:
            return RateLimitResult(
                allowed=True, remaining=policy.max_attempts, reset_time=now + policy.window_ms
            )

        key = CacheKeys.rate_limit(policy.action, identifier)
        try:
            result = await self.cache.update(
                key,
                lambda state: evaluate_window(policy, state, now),
                ttl=policy.window_seconds,
            )
        except CacheUnavailableError:
            if not self.config.fail_open_on_error:
                raise
            logger.warning(
                "rate_limit_fail_open",
                action=policy.action,
                identifier=mask_identifier(identifier),
                degraded=True,
            )
            return RateLimitResult(
                allowed=True,
                remaining=policy.max_attempts,
                reset_time=now + policy.window_ms,
                degraded=True,
            )

        if not result.allowed:
            logger.info(
                "rate_limit_exceeded",
                action=policy.action,
                identifier=mask_identifier(identifier),
                reset_time=result.reset_time,
            )
        return result

    async def reset(self, policy: RateLimitPolicy, identifier: str) -> None:
        """Forget the window for ``identifier``."""
        await self.cache.delete(CacheKeys.rate_limit(policy.action, identifier))
