"""
Rate Limiting
=============

Fixed-window request counter keyed by client identifier.

Windows expire on their own for the key being checked; stale keys from
clients that stopped calling are removed by an explicit ``sweep()``, which
the application schedules through ``MaintenanceScheduler``.
"""

import math
import threading
import time
from dataclasses import dataclass
from typing import Callable, Dict, Optional

from deskpilot.shared.infrastructure.logging import get_logger

logger = get_logger(__name__)


@dataclass
class WindowRecord:
    """Hit count of a single key inside its current window."""
    count: int
    reset_at: float


@dataclass(frozen=True)
class RateLimitDecision:
    """Outcome of registering one hit."""
    allowed: bool
    remaining: int
    retry_after_seconds: int


class ExpiringCounter:
    """
    Keyed counter whose entries expire after ``window_seconds``.

    One instance is owned by one application; nothing is shared at module
    level.
    """

    def __init__(
        self,
        limit: int,
        window_seconds: float = 60.0,
        clock: Optional[Callable[[], float]] = None
    ):
        if limit < 1:
            raise ValueError("limit must be at least 1")
        if window_seconds <= 0:
            raise ValueError("window_seconds must be positive")
        self.limit = limit
        self.window_seconds = window_seconds
        self._clock = clock or time.monotonic
        self._records: Dict[str, WindowRecord] = {}
        self._lock = threading.Lock()

    def hit(self, key: str) -> RateLimitDecision:
        """Register a hit for ``key`` and report whether it is within the limit."""
        now = self._clock()
        with self._lock:
            record = self._records.get(key)
            if record is None or now >= record.reset_at:
                record = WindowRecord(count=0, reset_at=now + self.window_seconds)
                self._records[key] = record

            record.count += 1
            allowed = record.count <= self.limit
            retry_after = 0 if allowed else max(1, math.ceil(record.reset_at - now))

        return RateLimitDecision(
            allowed=allowed,
            remaining=max(0, self.limit - record.count),
            retry_after_seconds=retry_after
        )

    def sweep(self) -> int:
        """Remove expired windows. Returns the number of keys dropped."""
        now = self._clock()
        with self._lock:
            expired = [key for key, record in self._records.items() if now >= record.reset_at]
            for key in expired:
                del self._records[key]

        if expired:
            logger.debug("Rate limit windows swept", extra={"expired_keys": len(expired)})
        return len(expired)

    def __len__(self) -> int:
        return len(self._records)
