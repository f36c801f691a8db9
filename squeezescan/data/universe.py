"""Candidate universe sources.

``ListedUniverse`` downloads every US-listed common stock from the Nasdaq
Trader symbol directory; ``SP500Universe`` scrapes the S&P 500 constituent
list from Wikipedia; ``TickerFileUniverse`` reads a local ticker file such as
the one written by the nightly price-snapshot job. ``MoversUniverse``
narrows any source down to today's liquid low-priced movers with one quote
lookup per symbol.
"""
from __future__ import annotations

import asyncio
import io
import json
import logging
import os
from abc import ABC, abstractmethod
from collections.abc import Callable
from dataclasses import dataclass, replace
from datetime import datetime
from pathlib import Path
from typing import Any

import pandas as pd
import requests
import yfinance as yf

from squeezescan.core.config import UniverseConfig
from squeezescan.data.providers import is_pre_market
from squeezescan.data.rate_limiter import TokenBucketLimiter, WorkerPool

logger = logging.getLogger(__name__)

_WIKI_URL = "https://en.wikipedia.org/wiki/List_of_S%26P_500_companies"
_USER_AGENT = "SqueezeScan/1.0 (stock-screener; Python/pandas)"
_LISTING_URL = "https://www.nasdaqtrader.com/dynamic/SymDir/nasdaqtraded.txt"


@dataclass(frozen=True)
class UniverseFilters:
    """Liquidity, price, float and move-size thresholds for the movers filter.

    ``pre_market_min`` of None disables the pre-market rule, so the regular
    change threshold applies all day.
    """

    whitelist: tuple[str, ...] | None = None
    price_max: float = 85.0
    volume_min: float = 800_000
    float_max: float = 50_000_000
    change_pct_min: float = 2.5
    pre_market_min: float | None = 8.0

    @classmethod
    def from_config(cls, config: UniverseConfig) -> UniverseFilters:
        return cls(
            whitelist=tuple(config.whitelist) if config.whitelist else None,
            price_max=config.price_max,
            volume_min=config.volume_min,
            float_max=config.float_max,
            change_pct_min=config.change_pct_min,
            pre_market_min=config.pre_market_min,
        )

    def with_whitelist(self, symbols: list[str] | None) -> UniverseFilters:
        return replace(self, whitelist=tuple(symbols) if symbols else None)


class UniverseProvider(ABC):
    """Abstract source of the ordered symbol list for one scan cycle."""

    @abstractmethod
    async def symbols(self, filters: UniverseFilters | None = None) -> list[str]:
        """Return candidate symbols in a stable order."""


class StaticUniverse(UniverseProvider):
    """Fixed symbol list; a filter whitelist replaces it for that call."""

    def __init__(self, symbols: list[str]) -> None:
        self._symbols = list(symbols)

    async def symbols(self, filters: UniverseFilters | None = None) -> list[str]:
        if filters is not None and filters.whitelist:
            return list(filters.whitelist)
        return list(self._symbols)


class SP500Universe(UniverseProvider):
    """Current S&P 500 constituents, fetched once and cached."""

    def __init__(self) -> None:
        self._cache: list[str] | None = None

    async def symbols(self, filters: UniverseFilters | None = None) -> list[str]:
        if filters is not None and filters.whitelist:
            return list(filters.whitelist)
        if self._cache is None:
            loop = asyncio.get_running_loop()
            self._cache = await loop.run_in_executor(None, _fetch_sp500_symbols)
            logger.info("Loaded %d S&P 500 symbols", len(self._cache))
        return list(self._cache)


def _fetch_sp500_symbols() -> list[str]:
    resp = requests.get(_WIKI_URL, headers={"User-Agent": _USER_AGENT}, timeout=30)
    resp.raise_for_status()
    tables = pd.read_html(io.StringIO(resp.text))
    df = tables[0]
    return [str(sym).replace(".", "-") for sym in df["Symbol"]]


class ListedUniverse(UniverseProvider):
    """All US-listed common stocks (test issues and ETFs excluded), cached."""

    def __init__(self) -> None:
        self._cache: list[str] | None = None

    async def symbols(self, filters: UniverseFilters | None = None) -> list[str]:
        if filters is not None and filters.whitelist:
            return list(filters.whitelist)
        if self._cache is None:
            loop = asyncio.get_running_loop()
            self._cache = await loop.run_in_executor(None, _fetch_listed_symbols)
            logger.info("Loaded %d listed symbols", len(self._cache))
        return list(self._cache)


def _fetch_listed_symbols() -> list[str]:
    resp = requests.get(_LISTING_URL, headers={"User-Agent": _USER_AGENT}, timeout=30)
    resp.raise_for_status()
    return parse_listing(resp.text)


def parse_listing(text: str) -> list[str]:
    """Parse a pipe-delimited Nasdaq Trader symbol directory.

    Class shares are normalised to Yahoo's dash form (BRK.B -> BRK-B);
    preferred issues ('$') and index symbols ('^') are skipped.
    """
    df = pd.read_csv(io.StringIO(text), sep="|", dtype=str, keep_default_na=False)
    df = df[(df["Test Issue"] == "N") & (df["ETF"] == "N")]
    result: list[str] = []
    for sym in df["Symbol"]:
        sym = sym.strip()
        if not sym or "$" in sym or "^" in sym:
            continue
        result.append(sym.replace(".", "-"))
    return result


def load_ticker_file(path: str | Path) -> list[str]:
    """Read symbols from a JSON array or a one-symbol-per-line text file.

    Blank lines, ``#`` comments, duplicates and index symbols ('^') are
    dropped; file order is preserved.
    """
    text = Path(path).read_text(encoding="utf-8")
    if Path(path).suffix == ".json":
        raw = json.loads(text)
        if not isinstance(raw, list):
            raise ValueError(f"{path}: expected a JSON array of symbols")
    else:
        raw = [line.split("#", 1)[0] for line in text.splitlines()]

    seen: set[str] = set()
    symbols: list[str] = []
    for item in raw:
        sym = str(item).strip()
        if not sym or "^" in sym or sym in seen:
            continue
        seen.add(sym)
        symbols.append(sym)
    return symbols


def write_ticker_file(path: str | Path, symbols: list[str]) -> None:
    """Atomically write ``symbols`` as a JSON array, creating parent dirs."""
    target = Path(path)
    target.parent.mkdir(parents=True, exist_ok=True)
    tmp = target.with_name(target.name + ".tmp")
    tmp.write_text(json.dumps(symbols, indent=2), encoding="utf-8")
    os.replace(tmp, target)


class TickerFileUniverse(UniverseProvider):
    """Symbols from a local ticker file, re-read on every call.

    When the file does not exist the ``fallback`` source is used; with no
    fallback a missing file raises ``FileNotFoundError``.
    """

    def __init__(self, path: str | Path, fallback: UniverseProvider | None = None) -> None:
        self._path = Path(path)
        self._fallback = fallback

    async def symbols(self, filters: UniverseFilters | None = None) -> list[str]:
        if filters is not None and filters.whitelist:
            return list(filters.whitelist)
        if not self._path.exists() and self._fallback is not None:
            logger.info("%s not found; using fallback universe", self._path)
            return await self._fallback.symbols()
        symbols = load_ticker_file(self._path)
        logger.info("Loaded %d symbols from %s", len(symbols), self._path)
        return symbols


def yahoo_quote(symbol: str) -> dict[str, Any]:
    """Raw yfinance quote mapping; empty when Yahoo has nothing."""
    return yf.Ticker(symbol).info or {}


class MoversUniverse(UniverseProvider):
    """Filters a source universe down to today's movers.

    A symbol passes when price <= ``price_max``, volume >= ``volume_min`` and
    float <= ``float_max``, and then either its pre-market change reaches
    ``pre_market_min`` (during the 04:00-09:30 ET window) or its regular
    session change reaches ``change_pct_min``. Symbols whose quote lookup
    fails are skipped. Source order is preserved.
    """

    def __init__(
        self,
        source: UniverseProvider,
        limiter: TokenBucketLimiter,
        filters: UniverseFilters | None = None,
        quote_fn: Callable[[str], dict[str, Any]] = yahoo_quote,
        concurrency: int = 5,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._source = source
        self._limiter = limiter
        self._filters = filters or UniverseFilters()
        self._quote_fn = quote_fn
        self._concurrency = concurrency
        self._clock = clock

    async def symbols(self, filters: UniverseFilters | None = None) -> list[str]:
        filters = filters or self._filters
        universe = (
            list(filters.whitelist)
            if filters.whitelist
            else await self._source.symbols()
        )
        pre_market = is_pre_market(self._clock() if self._clock else None)
        logger.info(
            "Scanning %d symbols for movers (pre_market=%s)", len(universe), pre_market
        )

        pool = WorkerPool(self._concurrency, name="universe")
        flags = await pool.map(
            lambda sym: self._check(sym, filters, pre_market), universe
        )
        movers = [sym for sym, ok in zip(universe, flags) if ok]
        logger.info("Found %d movers out of %d symbols", len(movers), len(universe))
        return movers

    async def _check(self, symbol: str, filters: UniverseFilters, pre_market: bool) -> bool:
        loop = asyncio.get_running_loop()
        try:
            await self._limiter.acquire()
            quote = await loop.run_in_executor(None, self._quote_fn, symbol)
        except Exception as exc:
            logger.warning("Skipped %s: %s", symbol, exc)
            return False
        return passes_filters(quote, filters, pre_market)


def passes_filters(quote: dict[str, Any], filters: UniverseFilters, pre_market: bool) -> bool:
    """Apply the movers thresholds to a Yahoo-style quote mapping."""
    price_key = "preMarketPrice" if pre_market else "regularMarketPrice"
    volume_key = "preMarketVolume" if pre_market else "regularMarketVolume"
    price = quote.get(price_key)
    volume = quote.get(volume_key)
    float_shares = quote.get("floatShares") or quote.get("sharesOutstanding")

    if price is None or price > filters.price_max:
        return False
    if volume is None or volume < filters.volume_min:
        return False
    if float_shares is None or float_shares > filters.float_max:
        return False

    if pre_market and filters.pre_market_min is not None:
        change = quote.get("preMarketChangePercent")
        return change is not None and change >= filters.pre_market_min
    change = quote.get("regularMarketChangePercent")
    return change is not None and change >= filters.change_pct_min
