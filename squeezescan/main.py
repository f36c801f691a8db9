from __future__ import annotations

import asyncio
import logging
import os
from dataclasses import dataclass
from datetime import timedelta
from pathlib import Path

from dotenv import load_dotenv

from squeezescan.advisory import OpenAIAdvisor
from squeezescan.batch.jobs import ScanJobRunner
from squeezescan.batch.scanner import ScanOrchestrator
from squeezescan.batch.snapshots import LastCloseSource, PriceSnapshotJob
from squeezescan.batch.types import CycleResult, SnapshotResult
from squeezescan.core.config import Settings, load_settings
from squeezescan.core.exceptions import ConfigError
from squeezescan.core.logger import cycle_context, setup_logging
from squeezescan.data.batch_fetcher import BatchFetcher
from squeezescan.data.providers import (
    AlpacaQuoteProvider,
    FinnhubNewsProvider,
    MergedMetricsProvider,
    QuoteProvider,
    YahooFundamentalsProvider,
    YahooPreMarketProvider,
)
from squeezescan.data.quote_cache import CachedQuoteProvider
from squeezescan.data.rate_limiter import TokenBucketLimiter
from squeezescan.data.sqlite_store import SQLiteCandidateStore
from squeezescan.data.universe import (
    ListedUniverse,
    MoversUniverse,
    SP500Universe,
    TickerFileUniverse,
    UniverseFilters,
    UniverseProvider,
)
from squeezescan.stream import AlpacaQuoteStream, SubscriptionManager

logger = logging.getLogger(__name__)

_ENV_PATH = Path("config/.env")
_CONFIG_PATH = Path("config/default.yaml")


@dataclass
class Scanner:
    """Production wiring of one scanner instance."""

    settings: Settings
    orchestrator: ScanOrchestrator
    jobs: ScanJobRunner
    store: SQLiteCandidateStore
    stream: AlpacaQuoteStream
    subscriptions: SubscriptionManager
    filters: UniverseFilters


def _limiter(settings: Settings, name: str) -> TokenBucketLimiter:
    cfg = getattr(settings.limits, name)
    return TokenBucketLimiter(cfg.requests_per_minute, burst=cfg.burst, name=name)


def raw_universe(settings: Settings) -> UniverseProvider:
    """Broad symbol source: the configured ticker file, else the exchange listing."""
    listing: UniverseProvider = (
        SP500Universe() if settings.universe.source == "sp500" else ListedUniverse()
    )
    if settings.universe.tickers_path:
        return TickerFileUniverse(settings.universe.tickers_path, fallback=listing)
    return listing


def _fundamentals_provider(settings: Settings, limiter: TokenBucketLimiter) -> QuoteProvider:
    yahoo = YahooFundamentalsProvider(limiter)
    if not settings.fetch.fundamentals_cache_path:
        return yahoo
    return CachedQuoteProvider(
        yahoo,
        settings.fetch.fundamentals_cache_path,
        ttl=timedelta(hours=settings.fetch.fundamentals_cache_ttl_hours),
    )


def build_scanner(settings: Settings, env_path: Path = _ENV_PATH) -> Scanner:
    """Wire providers, store, stream and orchestrator from settings and the environment.

    Raises:
        ConfigError: If the Alpaca credentials are missing.
    """
    load_dotenv(env_path)
    api_key = os.getenv("ALPACA_API_KEY")
    secret_key = os.getenv("ALPACA_SECRET_KEY")
    if not api_key or not secret_key:
        raise ConfigError("ALPACA_API_KEY and ALPACA_SECRET_KEY must be set")

    primary = AlpacaQuoteProvider(
        api_key,
        secret_key,
        _limiter(settings, "quotes"),
        history_days=settings.fetch.history_days,
        feed=settings.subscriptions.feed,
    )
    yahoo_limiter = _limiter(settings, "fundamentals")
    fundamentals = _fundamentals_provider(settings, yahoo_limiter)

    news = None
    finnhub_key = os.getenv("FINNHUB_API_KEY")
    if finnhub_key:
        news = FinnhubNewsProvider(finnhub_key, _limiter(settings, "news"))
    else:
        logger.warning("FINNHUB_API_KEY not set; news counts disabled")

    advisor = None
    openai_key = os.getenv("OPENAI_API_KEY")
    if settings.advisory.enabled and openai_key:
        advisor = OpenAIAdvisor(
            openai_key,
            model=settings.advisory.model,
            temperature=settings.advisory.temperature,
            max_tokens=settings.advisory.max_tokens,
            timeout=settings.advisory.timeout_secs,
        )
    elif settings.advisory.enabled:
        logger.warning("OPENAI_API_KEY not set; advisory enrichment disabled")

    filters = UniverseFilters.from_config(settings.universe)
    # The nightly snapshot file narrows the broad listing once it exists.
    universe = MoversUniverse(
        TickerFileUniverse(settings.snapshot.output_path, fallback=raw_universe(settings)),
        _limiter(settings, "universe"),
        filters=filters,
        concurrency=settings.universe.concurrency,
    )
    fetcher = BatchFetcher(
        MergedMetricsProvider(
            primary,
            fundamentals,
            news,
            spike_factor=settings.scoring.volume_spike_factor,
            pre_market=YahooPreMarketProvider(yahoo_limiter),
        ),
        batch_size=settings.fetch.batch_size,
        batch_interval_secs=settings.fetch.batch_interval_secs,
    )
    store = SQLiteCandidateStore(settings.store.sqlite_path)
    stream = AlpacaQuoteStream(
        api_key,
        secret_key,
        feed=settings.subscriptions.feed,
        max_subscriptions=settings.subscriptions.limit,
    )
    subscriptions = SubscriptionManager(
        stream.subscribe, stream.unsubscribe, limit=settings.subscriptions.limit
    )
    orchestrator = ScanOrchestrator(
        universe,
        fetcher,
        store,
        subscriptions=subscriptions,
        advisor=advisor,
        scoring=settings.scoring,
        concurrency=settings.scan.concurrency,
        top_n=settings.top_n_subscribe,
    )
    return Scanner(
        settings=settings,
        orchestrator=orchestrator,
        jobs=ScanJobRunner(orchestrator, max_finished=settings.scan.max_finished_jobs),
        store=store,
        stream=stream,
        subscriptions=subscriptions,
        filters=filters,
    )


async def run_once(scanner: Scanner, symbols: list[str] | None = None) -> CycleResult:
    """Run a single cycle against an initialized store."""
    await scanner.store.initialize()
    try:
        filters = scanner.filters.with_whitelist(symbols) if symbols else None
        return await scanner.orchestrator.run_cycle(filters)
    finally:
        await scanner.store.close()


def build_snapshot_job(settings: Settings, store: SQLiteCandidateStore) -> PriceSnapshotJob:
    """Wire the nightly price-snapshot job; needs no credentials."""
    cfg = settings.snapshot
    fetcher = BatchFetcher(
        LastCloseSource(_limiter(settings, "snapshots")),
        batch_size=cfg.batch_size,
        batch_interval_secs=cfg.batch_interval_secs,
    )
    return PriceSnapshotJob(
        raw_universe(settings),
        fetcher,
        store,
        cfg.output_path,
        price_min=cfg.price_min,
        price_max=cfg.price_max,
    )


async def run_snapshot(settings: Settings) -> SnapshotResult:
    """Run one snapshot pass against its own store connection."""
    store = SQLiteCandidateStore(settings.store.sqlite_path)
    await store.initialize()
    try:
        with cycle_context("snapshot"):
            return await build_snapshot_job(settings, store).run()
    finally:
        await store.close()


def main() -> None:
    settings = load_settings(_CONFIG_PATH) if _CONFIG_PATH.exists() else Settings()
    setup_logging("squeezescan", level=settings.system.log_level, log_dir=settings.system.log_dir)
    scanner = build_scanner(settings)
    asyncio.run(run_once(scanner))


if __name__ == "__main__":
    main()
