"""Rate limiting: a keyed token bucket for inbound requests and blocking
limiters for outbound Slack calls."""

from __future__ import annotations

import threading
import time
from collections import defaultdict
from typing import Callable, Protocol


class Bucket:
    __slots__ = ("tokens", "updated")

    def __init__(self, capacity: int) -> None:
        self.tokens = float(capacity)
        self.updated = time.time()


_buckets: defaultdict[str, Bucket | None] = defaultdict(lambda: None)


def allow(key: str, rps: float, burst: int) -> bool:
    """Return True when the caller can proceed under the rate limit."""

    now = time.time()
    bucket = _buckets.get(key)
    if bucket is None:
        bucket = Bucket(burst)
        _buckets[key] = bucket
    elapsed = now - bucket.updated
    bucket.tokens = min(float(burst), bucket.tokens + elapsed * max(rps, 0.0))
    bucket.updated = now
    if bucket.tokens >= 1.0:
        bucket.tokens -= 1.0
        return True
    return False


class Limiter(Protocol):
    def acquire(self) -> None: ...


class NoopLimiter:
    def acquire(self) -> None:
        return None


class IntervalLimiter:
    """Block until at least ``interval`` seconds passed since the last call."""

    def __init__(
        self,
        interval: float,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.interval = max(0.0, interval)
        self._clock = clock
        self._sleep = sleep
        self._last: float | None = None
        self._lock = threading.Lock()

    def acquire(self) -> None:
        with self._lock:
            now = self._clock()
            if self._last is not None:
                wait = self._last + self.interval - now
                if wait > 0:
                    self._sleep(wait)
                    now = self._clock()
            self._last = now
