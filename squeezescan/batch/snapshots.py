"""PriceSnapshotJob: nightly last-close pass that narrows the broad listing.

Pipeline:
    1. Read the raw universe (ticker file or exchange listing)
    2. Quote every symbol's last close in paced batches (BatchFetcher)
    3. Upsert every snapshot into the store
    4. Write the symbols whose close lies in [price_min, price_max] to the
       filtered ticker file that the movers universe reads on later cycles

Error handling:
    - Per-symbol quote failures are logged and the symbol is skipped.
    - A universe or persistence failure aborts the job with
      PipelineFatalError and leaves the previous filtered file in place.
    - A pass that produced no snapshots at all does not overwrite the file.
"""
from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Callable
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from squeezescan.batch.types import SnapshotResult
from squeezescan.core.exceptions import PipelineFatalError
from squeezescan.core.types import PriceSnapshot
from squeezescan.data.batch_fetcher import BatchFetcher
from squeezescan.data.rate_limiter import TokenBucketLimiter
from squeezescan.data.store import CandidateStore
from squeezescan.data.universe import UniverseProvider, write_ticker_file, yahoo_quote

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(tz=timezone.utc)


class LastCloseSource:
    """Per-symbol last close from a Yahoo-style quote mapping."""

    name = "yahoo-close"

    def __init__(
        self,
        limiter: TokenBucketLimiter,
        quote_fn: Callable[[str], dict[str, Any]] | None = None,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._limiter = limiter
        self._quote_fn = quote_fn or yahoo_quote
        self._clock = clock

    async def fetch(self, symbol: str) -> PriceSnapshot:
        loop = asyncio.get_running_loop()
        await self._limiter.acquire()
        quote = await loop.run_in_executor(None, self._quote_fn, symbol)
        close = quote.get("regularMarketPrice")
        return PriceSnapshot(
            symbol=symbol,
            last_close=float(close) if close is not None else 0.0,
            taken_at=self._clock(),
        )


class PriceSnapshotJob:
    """Records last closes and rebuilds the filtered ticker file.

    Usage::

        job = PriceSnapshotJob(universe, BatchFetcher(LastCloseSource(limiter), 60), store,
                               "data/filtered_tickers.json")
        result = await job.run()
    """

    def __init__(
        self,
        universe: UniverseProvider,
        fetcher: BatchFetcher,
        store: CandidateStore,
        output_path: str | Path,
        price_min: float = 0.01,
        price_max: float = 150.0,
    ) -> None:
        self._universe = universe
        self._fetcher = fetcher
        self._store = store
        self._output_path = Path(output_path)
        self._price_min = price_min
        self._price_max = price_max

    async def run(self) -> SnapshotResult:
        """Run one snapshot pass.

        Raises:
            PipelineFatalError: If the universe fetch or persistence fails.
        """
        t0 = time.monotonic()
        try:
            symbols = [s for s in await self._universe.symbols() if "^" not in s]
        except Exception as exc:
            logger.error("PriceSnapshotJob: universe fetch failed: %s", exc)
            raise PipelineFatalError("universe", str(exc)) from exc
        logger.info("PriceSnapshotJob: snapshotting %d symbols", len(symbols))

        snapshots: list[PriceSnapshot] = await self._fetcher.fetch_all(symbols)
        kept = [
            s.symbol for s in snapshots if self._price_min <= s.last_close <= self._price_max
        ]

        try:
            await self._store.save_price_snapshots(snapshots)
        except Exception as exc:
            logger.error("PriceSnapshotJob: persisting snapshots failed: %s", exc)
            raise PipelineFatalError("persist", str(exc)) from exc

        written = False
        if snapshots:
            write_ticker_file(self._output_path, kept)
            written = True
        else:
            logger.warning(
                "PriceSnapshotJob: no snapshots taken; keeping existing %s", self._output_path
            )

        result = SnapshotResult(
            universe_size=len(symbols),
            snapshots=len(snapshots),
            kept=kept,
            output_path=str(self._output_path),
            written=written,
            duration_secs=time.monotonic() - t0,
        )
        logger.info(
            "PriceSnapshotJob: %d snapshots, %d symbols in [%.2f, %.2f] written to %s in %.1fs",
            result.snapshots,
            len(kept),
            self._price_min,
            self._price_max,
            self._output_path,
            result.duration_secs,
        )
        return result
