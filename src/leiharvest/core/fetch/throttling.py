"""
Rate limiting and throttling utilities.

Provides a single global token bucket shared by every outbound call.
"""

from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass
from typing import Awaitable, Callable


@dataclass
class RateLimitConfig:
    """Configuration for rate limiting."""

    permits_per_second: float = 1.0

    @property
    def interval(self) -> float:
        """Seconds between two permits."""
        return 1.0 / self.permits_per_second


class RateLimiter:
    """Global token-bucket throttle.

    Holds at most one stored permit, so the first call proceeds at once and
    each following call is spaced ``1 / permits_per_second`` seconds after
    the previous one. Callers are never rejected, they wait.

    The permit slot is reserved under a lock and the wait happens outside
    it, so concurrent callers queue in arrival order.
    """

    def __init__(
        self,
        config: RateLimitConfig | None = None,
        *,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        """Initialize rate limiter.

        Args:
            config: Refill rate configuration
            clock: Monotonic clock in seconds
            sleep: Coroutine used to wait
        """
        self.config = config or RateLimitConfig()
        if self.config.permits_per_second <= 0:
            raise ValueError("permits_per_second must be positive")

        self._clock = clock
        self._sleep = sleep
        self._lock = asyncio.Lock()
        self._next_free: float | None = None

        self._acquired = 0
        self._total_wait = 0.0

    async def _reserve(self) -> float:
        """Reserve the next permit and return how long to wait for it."""
        async with self._lock:
            now = self._clock()
            if self._next_free is None or self._next_free <= now:
                wait = 0.0
                self._next_free = now + self.config.interval
            else:
                wait = self._next_free - now
                self._next_free += self.config.interval

            self._acquired += 1
            self._total_wait += wait
            return wait

    async def acquire(self) -> float:
        """Block until a permit is available.

        Returns:
            Seconds spent waiting
        """
        wait = await self._reserve()
        if wait > 0:
            await self._sleep(wait)
        return wait

    def stats(self) -> dict[str, float]:
        """Get rate limiter statistics."""
        return {
            "permits_per_second": self.config.permits_per_second,
            "acquired": self._acquired,
            "total_wait_seconds": round(self._total_wait, 3),
        }
