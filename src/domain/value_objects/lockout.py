from dataclasses import dataclass
from datetime import datetime
from typing import Optional


@dataclass(frozen=True, slots=True)
class FailedAttemptStatus:
    """Result of recording a failed login for a user.

    Attributes:
        attempts: Consecutive failures inside the staleness window, this one included.
        is_locked: True once ``attempts`` reached the lockout threshold.
        lockout_until: End of the lockout, set only when ``is_locked``.
    """

    attempts: int
    is_locked: bool
    lockout_until: Optional[datetime] = None
