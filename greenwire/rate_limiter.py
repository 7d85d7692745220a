"""
Pacing for rate-limited external APIs: successive calls are spaced at least
`min_interval` seconds apart.
"""
from __future__ import annotations

import threading
import time
from typing import Callable, Optional


class RateLimiter:
    def __init__(
        self,
        min_interval: float = 0.0,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.min_interval = max(min_interval or 0.0, 0.0)
        self._clock = clock
        self._sleep = sleep
        self._last_call: Optional[float] = None
        self._lock = threading.Lock()

    def wait(self) -> float:
        """Block until the next call is allowed. Returns the seconds slept."""
        with self._lock:
            slept = 0.0
            if self.min_interval and self._last_call is not None:
                remaining = self.min_interval - (self._clock() - self._last_call)
                if remaining > 0:
                    self._sleep(remaining)
                    slept = remaining
            self._last_call = self._clock()
            return slept
