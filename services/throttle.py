from __future__ import annotations

import threading
import time
from typing import Callable, Optional


class MinIntervalGate:
    """Process-wide minimum spacing between outbound calls.

    Callers block in ``wait()`` until at least ``min_interval`` seconds have
    passed since the previous dispatch. The lock is held while sleeping, so
    calls from any number of threads leave the gate one at a time.
    """

    def __init__(
        self,
        min_interval: float,
        *,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.min_interval = max(0.0, float(min_interval))
        self._clock = clock
        self._sleep = sleep
        self._lock = threading.Lock()
        self._last_dispatch: Optional[float] = None

    def wait(self) -> float:
        """Block until eligible, record the dispatch, return seconds slept."""
        with self._lock:
            slept = 0.0
            if self._last_dispatch is not None:
                elapsed = self._clock() - self._last_dispatch
                if elapsed < self.min_interval:
                    slept = self.min_interval - elapsed
                    self._sleep(slept)
            self._last_dispatch = self._clock()
            return slept

    @property
    def last_dispatch(self) -> Optional[float]:
        return self._last_dispatch
