import threading
import time
from collections import deque
from typing import Callable, Optional


class RateLimiter:
    """Thread-safe sliding-window limiter: at most max_calls per period_sec."""

    def __init__(
        self,
        max_calls: int,
        period_sec: float,
        monotonic: Callable[[], float] = time.monotonic,
    ):
        if max_calls < 1:
            raise ValueError("max_calls must be at least 1")
        self.max_calls = max_calls
        self.period = period_sec
        self._monotonic = monotonic
        self._hits: deque = deque()
        self._cv = threading.Condition()

    def _prune(self, now: float) -> None:
        while self._hits and (now - self._hits[0]) >= self.period:
            self._hits.popleft()

    def try_acquire(self) -> bool:
        with self._cv:
            now = self._monotonic()
            self._prune(now)
            if len(self._hits) < self.max_calls:
                self._hits.append(now)
                return True
            return False

    def wait(self, timeout: Optional[float] = None) -> bool:
        """Block until a slot frees up. Returns False if timeout expires first."""
        deadline = None if timeout is None else self._monotonic() + timeout
        with self._cv:
            while True:
                now = self._monotonic()
                self._prune(now)
                if len(self._hits) < self.max_calls:
                    self._hits.append(now)
                    return True

                wait_for = max(0.0, self.period - (now - self._hits[0]))
                if deadline is not None:
                    remaining = deadline - now
                    if remaining <= 0:
                        return False
                    wait_for = min(wait_for, remaining)
                self._cv.wait(timeout=wait_for)
