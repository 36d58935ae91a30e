"""
Minimum-interval rate limiter for outbound analyzer calls.
"""

from __future__ import annotations

import threading
import time
from collections.abc import Callable


class IntervalRateLimiter:
    """
    Enforces a minimum interval between consecutive calls.

    The first call never waits. ``clock`` and ``sleep`` are injectable so
    tests can simulate time.
    """

    def __init__(
        self,
        *,
        min_interval_seconds: float,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self._min_interval = max(0.0, min_interval_seconds)
        self._clock = clock
        self._sleep = sleep
        self._last_call: float | None = None
        self._lock = threading.Lock()

    @property
    def min_interval_seconds(self) -> float:
        return self._min_interval

    def wait(self) -> float:
        """
        Sleep as needed so this call starts at least one interval after the last.

        Returns the number of seconds slept.
        """

        with self._lock:
            slept = 0.0
            if self._last_call is not None:
                remaining = self._min_interval - (self._clock() - self._last_call)
                if remaining > 0:
                    self._sleep(remaining)
                    slept = remaining
            self._last_call = self._clock()
            return slept
