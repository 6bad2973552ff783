"""Rate Limiting Value Objects for domain modeling.

These value objects carry the outcome of a fixed-window check and the per-policy
rules the window is evaluated against.
"""

from dataclasses import dataclass


@dataclass(frozen=True, slots=True)
class RateLimitPolicy:
    """Fixed-window rule for one rate-limited action.

    Attributes:
        action: Name of the action, used as the cache key namespace.
        window_seconds: Length of one window.
        max_attempts: Attempts allowed per window.
    """

    action: str
    window_seconds: int
    max_attempts: int

    def __post_init__(self) -> None:
        """Validate rate limit configuration."""
        if self.window_seconds <= 0:
            raise ValueError("Rate limit window duration must be positive")
        if self.max_attempts <= 0:
            raise ValueError("Max attempts must be positive")

    @property
    def window_ms(self) -> int:
        return self.window_seconds * 1000


@dataclass(frozen=True, slots=True)
class RateLimitResult:
    """Outcome of a single rate-limit check.

    Attributes:
        allowed: Whether the attempt may proceed.
        remaining: Attempts left in the current window.
        reset_time: Epoch milliseconds at which the current window ends.
        degraded: True when the check could not reach the cache and failed open.
    """

    allowed: bool
    remaining: int
    reset_time: int
    degraded: bool = False
