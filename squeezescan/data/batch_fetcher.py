"""BatchFetcher: paced metric fetches for the scan pipeline.

Splits the universe into fixed-size chunks, fetches every symbol of a chunk
concurrently, and pauses a fixed interval between chunks so the upstream
per-minute budgets are never exceeded.

Design decisions:
- N chunks produce N-1 pauses; there is no pause after the last chunk.
- Per-symbol failures are logged and dropped; they never abort the batch.
- Provider budgets are enforced separately by each provider's limiter.
"""
from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Awaitable, Callable
from typing import Any, Protocol

from squeezescan.core.exceptions import DataError
from squeezescan.core.types import TickerMetrics

logger = logging.getLogger(__name__)


class MetricsSource(Protocol):
    async def fetch(self, symbol: str) -> TickerMetrics: ...


class BatchFetcher:
    """Fetches ``TickerMetrics`` for a symbol universe in paced batches.

    Usage::

        fetcher = BatchFetcher(MergedMetricsProvider(alpaca, yahoo), batch_size=20)
        metrics = await fetcher.fetch_all(symbols)
    """

    def __init__(
        self,
        provider: MetricsSource,
        batch_size: int = 20,
        batch_interval_secs: float = 60.0,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ) -> None:
        if batch_size <= 0:
            raise ValueError("batch_size must be positive")
        self._provider = provider
        self._batch_size = batch_size
        self._batch_interval = batch_interval_secs
        self._sleep = sleep
        self.last_batches = 0
        self.last_pauses = 0
        self.last_failures = 0

    async def fetch_all(self, symbols: list[str]) -> list[TickerMetrics]:
        """Fetch metrics for every symbol, preserving input order.

        Symbols that fail are absent from the result.
        """
        batches = _chunk(symbols, self._batch_size)
        self.last_batches = len(batches)
        self.last_pauses = 0
        self.last_failures = 0
        logger.info(
            "Fetching metrics for %d symbols in %d batches (size=%d, interval=%.1fs)",
            len(symbols),
            len(batches),
            self._batch_size,
            self._batch_interval,
        )
        t0 = time.monotonic()

        results: list[TickerMetrics] = []
        for i, batch in enumerate(batches):
            if i > 0:
                self.last_pauses += 1
                await self._sleep(self._batch_interval)
            fetched = await asyncio.gather(*(self.fetch_one(sym) for sym in batch))
            ok = [m for m in fetched if m is not None]
            self.last_failures += len(batch) - len(ok)
            results.extend(ok)
            logger.debug("Batch %d/%d: %d/%d symbols", i + 1, len(batches), len(ok), len(batch))

        logger.info(
            "Metric fetch complete: %d/%d symbols, %.1fs elapsed, %d failures",
            len(results),
            len(symbols),
            time.monotonic() - t0,
            self.last_failures,
        )
        return results

    async def fetch_one(self, symbol: str) -> TickerMetrics | None:
        """Fetch a single symbol; any failure is logged and returned as None."""
        try:
            return await self._provider.fetch(symbol)
        except DataError as exc:
            logger.warning("Skipping %s: %s", symbol, exc)
        except Exception as exc:
            logger.warning("Skipping %s: unexpected error: %s", symbol, exc)
        return None


def _chunk(items: list, size: int) -> list[list]:
    """Split a list into sub-lists of at most ``size`` items."""
    return [items[i : i + size] for i in range(0, len(items), size)]
