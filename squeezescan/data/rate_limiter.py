"""Rate limiting primitives for external dependencies.

- ``TokenBucketLimiter``: per-provider request budget (e.g. 60 requests
  per 60 s). Requests beyond the budget wait for tokens; they are never
  dropped.
- ``WorkerPool``: bounded concurrency for the scoring/enrichment fan-out,
  configured independently of any provider budget.
"""
from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Awaitable, Callable, Iterable
from typing import Any, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")
R = TypeVar("R")


class TokenBucketLimiter:
    """Token bucket limiter.

    Tokens refill continuously at ``rate_per_minute / 60`` per second up to
    ``burst``. ``acquire`` suspends the caller until enough tokens exist.

    Usage::

        limiter = TokenBucketLimiter(60, name="finnhub")
        data = await limiter.schedule(client.quote, "AAPL")
    """

    def __init__(
        self,
        rate_per_minute: int,
        burst: int | None = None,
        name: str = "limiter",
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ) -> None:
        if rate_per_minute <= 0:
            raise ValueError("rate_per_minute must be positive")
        self.rate_per_minute = rate_per_minute
        self.rate_per_second = rate_per_minute / 60.0
        self.burst = burst or rate_per_minute
        self.name = name
        self._clock = clock
        self._sleep = sleep
        self._tokens = float(self.burst)
        self._last_update = clock()
        self._lock = asyncio.Lock()
        self.waits = 0

    @property
    def available(self) -> float:
        self._refill()
        return self._tokens

    async def acquire(self, tokens: int = 1) -> None:
        """Wait until ``tokens`` are available, then consume them.

        Callers queue on the internal lock, so grants are handed out in
        arrival order.
        """
        if tokens > self.burst:
            raise ValueError(f"Cannot acquire {tokens} tokens from a bucket of {self.burst}")
        async with self._lock:
            while True:
                self._refill()
                if self._tokens >= tokens:
                    self._tokens -= tokens
                    return
                wait_time = (tokens - self._tokens) / self.rate_per_second
                self.waits += 1
                logger.debug("Limiter '%s' waiting %.2fs for tokens", self.name, wait_time)
                await self._sleep(wait_time)

    def try_acquire(self, tokens: int = 1) -> bool:
        """Consume tokens if available right now; never waits."""
        self._refill()
        if self._tokens >= tokens:
            self._tokens -= tokens
            return True
        return False

    async def schedule(self, fn: Callable[..., Awaitable[R]], *args: Any, **kwargs: Any) -> R:
        """Acquire one token, then await ``fn(*args, **kwargs)``."""
        await self.acquire()
        return await fn(*args, **kwargs)

    def reset(self) -> None:
        """Refill the bucket completely."""
        self._tokens = float(self.burst)
        self._last_update = self._clock()

    def _refill(self) -> None:
        now = self._clock()
        elapsed = now - self._last_update
        if elapsed > 0:
            self._tokens = min(float(self.burst), self._tokens + elapsed * self.rate_per_second)
        self._last_update = now


class WorkerPool:
    """Fixed-size pool of concurrent async tasks.

    Tasks are admitted in submission order; they may finish out of order
    but ``map`` returns results in input order.
    """

    def __init__(self, size: int, name: str = "pool") -> None:
        if size <= 0:
            raise ValueError("size must be positive")
        self.size = size
        self.name = name
        self._semaphore = asyncio.Semaphore(size)
        self.in_flight = 0
        self.peak = 0

    async def run(self, fn: Callable[..., Awaitable[R]], *args: Any) -> R:
        async with self._semaphore:
            self.in_flight += 1
            self.peak = max(self.peak, self.in_flight)
            try:
                return await fn(*args)
            finally:
                self.in_flight -= 1

    async def map(
        self,
        fn: Callable[[T], Awaitable[R]],
        items: Iterable[T],
        return_exceptions: bool = False,
    ) -> list[R | BaseException]:
        """Run ``fn`` over ``items`` with at most ``size`` in flight."""
        tasks = [self.run(fn, item) for item in items]
        return await asyncio.gather(*tasks, return_exceptions=return_exceptions)
