"""
Token-bucket rate limiting for outgoing vendor requests.
"""
from __future__ import annotations

import asyncio
import time
from typing import Callable, Optional

MIN_WAIT_SECONDS = 0.1


class TokenBucket:
    """
    Async token bucket.

    Holds up to ``capacity`` tokens, refilled continuously at
    ``refill_per_second``. ``acquire`` waits (at least MIN_WAIT_SECONDS per
    round) until enough tokens are available.
    """

    def __init__(
        self,
        capacity: int = 10,
        refill_per_second: float = 2.0,
        clock: Callable[[], float] = time.monotonic,
    ):
        if capacity <= 0:
            raise ValueError("capacity must be positive")
        if refill_per_second <= 0:
            raise ValueError("refill_per_second must be positive")
        self.capacity = capacity
        self.refill_per_second = refill_per_second
        self._clock = clock
        self._tokens = float(capacity)
        self._updated = clock()
        self._lock: Optional[asyncio.Lock] = None

    def _refill(self) -> None:
        now = self._clock()
        elapsed = max(0.0, now - self._updated)
        self._tokens = min(self.capacity, self._tokens + elapsed * self.refill_per_second)
        self._updated = now

    @property
    def available(self) -> float:
        self._refill()
        return self._tokens

    def try_consume(self, tokens: int = 1) -> bool:
        """Take tokens without waiting; False when not enough are available."""
        if tokens > self.capacity:
            raise ValueError(f"Cannot consume {tokens} tokens from a bucket of {self.capacity}")
        self._refill()
        if self._tokens >= tokens:
            self._tokens -= tokens
            return True
        return False

    def wait_time(self, tokens: int = 1) -> float:
        """Seconds until ``tokens`` would be available (0 when available now)."""
        self._refill()
        missing = tokens - self._tokens
        if missing <= 0:
            return 0.0
        return max(MIN_WAIT_SECONDS, missing / self.refill_per_second)

    async def acquire(self, tokens: int = 1) -> float:
        """Wait for and take ``tokens``; returns the total time spent waiting."""
        if self._lock is None:
            self._lock = asyncio.Lock()
        waited = 0.0
        async with self._lock:
            while not self.try_consume(tokens):
                delay = self.wait_time(tokens)
                await asyncio.sleep(delay)
                waited += delay
        return waited
