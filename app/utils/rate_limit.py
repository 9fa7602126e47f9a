"""
In-memory request rate limiter.

One counter window per client key. The limiter is owned by whoever creates it
(the FastAPI app keeps one on ``app.state``); nothing here is process-wide.
"""
import math
import threading
import time
from dataclasses import dataclass
from typing import Callable, Dict


@dataclass
class _Window:
    count: int
    reset_at: float


@dataclass(frozen=True)
class RateLimitStatus:
    allowed: bool
    limit: int
    remaining: int
    reset_at: float
    retry_after: int


class RateLimiter:
    def __init__(
        self,
        max_requests: int = 100,
        window_seconds: float = 60.0,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.max_requests = max_requests
        self.window_seconds = window_seconds
        self._clock = clock
        self._store: Dict[str, _Window] = {}
        self._lock = threading.Lock()

    def hit(self, key: str) -> RateLimitStatus:
        """Count one request for ``key`` and report whether it is within the limit."""
        now = self._clock()
        with self._lock:
            window = self._store.get(key)
            if window is None or window.reset_at < now:
                window = _Window(count=0, reset_at=now + self.window_seconds)
                self._store[key] = window
            window.count += 1
            count, reset_at = window.count, window.reset_at

        return RateLimitStatus(
            allowed=count <= self.max_requests,
            limit=self.max_requests,
            remaining=max(0, self.max_requests - count),
            reset_at=reset_at,
            retry_after=max(0, math.ceil(reset_at - now)),
        )

    def purge_expired(self) -> int:
        now = self._clock()
        with self._lock:
            expired = [key for key, window in self._store.items() if window.reset_at < now]
            for key in expired:
                del self._store[key]
        return len(expired)

    def reset(self) -> None:
        with self._lock:
            self._store.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._store)
