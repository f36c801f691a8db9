"""Per-symbol market data providers and the merged metrics view.

The primary quote provider supplies price, volume and the daily bar
history; secondary providers (fundamentals, news) are best-effort and only
fill in fields they actually return. ``merge_metrics`` makes the precedence
explicit: the fundamentals provider wins for float/short/fundamental fields
whenever it supplies a value.
"""
from __future__ import annotations

import asyncio
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, replace
from datetime import datetime, time as dt_time, timedelta, timezone
from typing import Any
from zoneinfo import ZoneInfo

import requests
import yfinance as yf
from alpaca.data.enums import DataFeed
from alpaca.data.historical import StockHistoricalDataClient
from alpaca.data.requests import StockBarsRequest, StockLatestTradeRequest
from alpaca.data.timeframe import TimeFrame

from squeezescan.core.exceptions import TransientFetchError, ValidationError
from squeezescan.core.types import Bar, Fundamentals, TickerMetrics
from squeezescan.data.rate_limiter import TokenBucketLimiter
from squeezescan.indicators.builtin import (
    average_volume,
    momentum,
    rsi,
    support_resistance,
    volume_ratio,
    volume_spike,
)

logger = logging.getLogger(__name__)

_ET = ZoneInfo("America/New_York")
_PRE_MARKET_OPEN = dt_time(4, 0)
_REGULAR_OPEN = dt_time(9, 30)

_FINNHUB_NEWS_URL = "https://finnhub.io/api/v1/company-news"


def is_pre_market(now: datetime | None = None) -> bool:
    """True between 04:00 and 09:30 US/Eastern."""
    now = now or datetime.now(tz=timezone.utc)
    if now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)
    et_time = now.astimezone(_ET).time()
    return _PRE_MARKET_OPEN <= et_time < _REGULAR_OPEN


@dataclass(frozen=True)
class ProviderQuote:
    """Raw per-symbol fields returned by a single provider.

    Every field except ``symbol`` is optional; a provider only fills in what
    it actually knows.
    """

    symbol: str
    price: float | None = None
    volume: float | None = None
    history: tuple[Bar, ...] = ()
    float_percent: float | None = None
    short_percent: float | None = None
    days_to_cover: float | None = None
    fundamentals: Fundamentals | None = None
    pre_market_change: float | None = None
    pre_market_vol_spike: float | None = None
    news_count: int | None = None
    social_sentiment: float | None = None


class QuoteProvider(ABC):
    """Abstract per-symbol data source."""

    name: str = "provider"

    @abstractmethod
    async def fetch(self, symbol: str) -> ProviderQuote | None:
        """Return what this provider knows about ``symbol``, or None."""


# ---------------------------------------------------------------------------
# Alpaca (primary: price, volume, daily history)
# ---------------------------------------------------------------------------


class AlpacaQuoteProvider(QuoteProvider):
    """Latest trade plus daily bars from Alpaca's market data API.

    The alpaca-py client is synchronous, so every call runs in the default
    executor. Both requests of a symbol go through ``limiter``.
    """

    name = "alpaca"

    def __init__(
        self,
        api_key: str,
        secret_key: str,
        limiter: TokenBucketLimiter,
        history_days: int = 90,
        feed: str = "iex",
        client: StockHistoricalDataClient | None = None,
    ) -> None:
        self._api_key = api_key
        self._secret_key = secret_key
        self._limiter = limiter
        self._history_days = history_days
        self._feed = DataFeed.SIP if feed == "sip" else DataFeed.IEX
        self._client = client

    def _get_client(self) -> StockHistoricalDataClient:
        if self._client is None:
            self._client = StockHistoricalDataClient(self._api_key, self._secret_key)
        return self._client

    async def fetch(self, symbol: str) -> ProviderQuote | None:
        loop = asyncio.get_running_loop()
        await self._limiter.acquire()
        history = await loop.run_in_executor(None, self._sync_fetch_bars, symbol)
        if not history:
            return None
        await self._limiter.acquire()
        price = await loop.run_in_executor(None, self._sync_fetch_price, symbol)
        return ProviderQuote(
            symbol=symbol,
            price=price if price is not None else history[-1].close,
            volume=history[-1].volume,
            history=history,
        )

    def _sync_fetch_bars(self, symbol: str) -> tuple[Bar, ...]:
        end_dt = datetime.now(tz=timezone.utc)
        start_dt = end_dt - timedelta(days=self._history_days)
        request = StockBarsRequest(
            symbol_or_symbols=symbol,
            timeframe=TimeFrame.Day,
            start=start_dt,
            end=end_dt,
            feed=self._feed,
        )
        raw = self._get_client().get_stock_bars(request)
        try:
            alpaca_bars = raw[symbol]
        except (KeyError, IndexError, TypeError):
            return ()

        bars: list[Bar] = []
        for ab in alpaca_bars or []:
            ts: datetime = ab.timestamp
            if ts.tzinfo is None:
                ts = ts.replace(tzinfo=timezone.utc)
            if bars and ts <= bars[-1].timestamp:
                # Out-of-order or duplicate bar from the feed
                continue
            bars.append(
                Bar(
                    symbol=symbol,
                    timestamp=ts,
                    open=float(ab.open),
                    high=float(ab.high),
                    low=float(ab.low),
                    close=float(ab.close),
                    volume=float(ab.volume),
                )
            )
        return tuple(bars)

    def _sync_fetch_price(self, symbol: str) -> float | None:
        request = StockLatestTradeRequest(symbol_or_symbols=symbol, feed=self._feed)
        raw = self._get_client().get_stock_latest_trade(request)
        try:
            trade: Any = raw[symbol]
        except (KeyError, TypeError):
            return None
        price = float(trade.price or 0.0)
        return price if price > 0 else None


# ---------------------------------------------------------------------------
# Yahoo Finance (secondary: float, short interest, fundamentals, pre-market)
# ---------------------------------------------------------------------------


class YahooFundamentalsProvider(QuoteProvider):
    """Float, short interest and fundamentals via yfinance.

    These fields change at most daily, so this provider is the one wrapped
    by ``CachedQuoteProvider``; session-sensitive pre-market stats come from
    ``YahooPreMarketProvider``.
    """

    name = "yahoo"

    def __init__(self, limiter: TokenBucketLimiter) -> None:
        self._limiter = limiter

    async def fetch(self, symbol: str) -> ProviderQuote | None:
        loop = asyncio.get_running_loop()
        await self._limiter.acquire()
        info = await loop.run_in_executor(None, _yahoo_info, symbol)
        if not info:
            return None
        return ProviderQuote(
            symbol=symbol,
            float_percent=_float_percent(info),
            short_percent=_percent(info.get("shortPercentOfFloat")),
            days_to_cover=_number(info.get("shortRatio")),
            fundamentals=Fundamentals(
                revenue_growth=_percent(info.get("revenueGrowth")),
                debt_to_equity=_number(info.get("debtToEquity")),
                eps_ttm=_number(info.get("trailingEps")),
                pe_ratio=_number(info.get("trailingPE")),
            ),
        )


class YahooPreMarketProvider(QuoteProvider):
    """Pre-market change and, inside the pre-market window, volume spike."""

    name = "yahoo-premarket"

    def __init__(self, limiter: TokenBucketLimiter) -> None:
        self._limiter = limiter

    async def fetch(self, symbol: str) -> ProviderQuote | None:
        loop = asyncio.get_running_loop()
        await self._limiter.acquire()
        info = await loop.run_in_executor(None, _yahoo_info, symbol)
        if not info:
            return None

        pre_market_vol_spike = None
        if is_pre_market():
            await self._limiter.acquire()
            pre_market_vol_spike = await loop.run_in_executor(
                None, _yahoo_pre_market_vol_spike, symbol
            )
        return ProviderQuote(
            symbol=symbol,
            pre_market_change=_pre_market_change(info),
            pre_market_vol_spike=pre_market_vol_spike,
        )


def _yahoo_info(symbol: str) -> dict[str, Any]:
    return yf.Ticker(symbol).info or {}


def _yahoo_pre_market_vol_spike(symbol: str) -> float | None:
    """Latest pre-market bar volume over the mean pre-market bar volume."""
    df = yf.Ticker(symbol).history(period="1d", interval="5m", prepost=True)
    if df is None or df.empty:
        return None
    index = df.index.tz_convert(_ET) if df.index.tz is not None else df.index
    pre = df[[_PRE_MARKET_OPEN <= ts.time() < _REGULAR_OPEN for ts in index]]
    if pre.empty:
        return None
    avg = float(pre["Volume"].mean())
    if avg <= 0:
        return None
    return float(pre["Volume"].iloc[-1]) / avg


def _number(value: Any) -> float | None:
    if value is None:
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def _percent(value: Any) -> float | None:
    """Fraction (0.25) to percent (25.0)."""
    number = _number(value)
    return number * 100 if number is not None else None


def _float_percent(info: dict[str, Any]) -> float | None:
    """Floating shares as a percentage of shares outstanding."""
    float_shares = _number(info.get("floatShares"))
    outstanding = _number(info.get("sharesOutstanding"))
    if not float_shares or not outstanding:
        return None
    return float_shares / outstanding * 100


def _pre_market_change(info: dict[str, Any]) -> float | None:
    pre_price = _number(info.get("preMarketPrice"))
    prev_close = _number(info.get("regularMarketPreviousClose"))
    if pre_price is None or not prev_close:
        return None
    return (pre_price - prev_close) / prev_close * 100


# ---------------------------------------------------------------------------
# Finnhub (secondary: 24h news count)
# ---------------------------------------------------------------------------


class FinnhubNewsProvider(QuoteProvider):
    """Number of company-news items published over the last 24 hours."""

    name = "finnhub"

    def __init__(
        self,
        api_key: str,
        limiter: TokenBucketLimiter,
        session: requests.Session | None = None,
        timeout: float = 10.0,
    ) -> None:
        self._api_key = api_key
        self._limiter = limiter
        self._session = session or requests.Session()
        self._timeout = timeout

    async def fetch(self, symbol: str) -> ProviderQuote | None:
        loop = asyncio.get_running_loop()
        await self._limiter.acquire()
        count = await loop.run_in_executor(None, self._sync_news_count, symbol)
        return ProviderQuote(symbol=symbol, news_count=count)

    def _sync_news_count(self, symbol: str) -> int:
        now = datetime.now(tz=timezone.utc)
        params = {
            "symbol": symbol,
            "from": (now - timedelta(days=1)).date().isoformat(),
            "to": now.date().isoformat(),
            "token": self._api_key,
        }
        resp = self._session.get(_FINNHUB_NEWS_URL, params=params, timeout=self._timeout)
        resp.raise_for_status()
        items = resp.json()
        return len(items) if isinstance(items, list) else 0


# ---------------------------------------------------------------------------
# Merge
# ---------------------------------------------------------------------------


def merge_metrics(
    primary: ProviderQuote,
    fundamentals: ProviderQuote | None = None,
    news: ProviderQuote | None = None,
    spike_factor: float = 1.5,
) -> TickerMetrics:
    """Combine provider records into one ``TickerMetrics``.

    Price, volume and history always come from ``primary``. For float, short
    interest, days-to-cover, fundamentals and pre-market fields the
    ``fundamentals`` record wins whenever it has a value. Technicals are
    derived from the primary history.

    Raises:
        ValidationError: If the price is missing or the history is empty.
    """
    symbol = primary.symbol
    if primary.price is None or primary.price <= 0:
        raise ValidationError(symbol, "missing price")
    if not primary.history:
        raise ValidationError(symbol, "empty history")

    secondary = fundamentals or ProviderQuote(symbol=symbol)
    base_fundamentals = primary.fundamentals or Fundamentals()

    closes = [b.close for b in primary.history]
    volumes = [b.volume for b in primary.history]
    support, resistance = support_resistance(closes)

    news_count = primary.news_count
    if news is not None and news.news_count is not None:
        news_count = news.news_count

    try:
        return TickerMetrics(
            symbol=symbol,
            price=primary.price,
            volume=primary.volume if primary.volume is not None else volumes[-1],
            history=primary.history,
            rsi=rsi(closes),
            momentum=momentum(closes),
            volume_spike=volume_spike(volumes, spike_factor),
            volume_ratio=volume_ratio(volumes),
            support=support,
            resistance=resistance,
            avg20_volume=average_volume(volumes, 20),
            float_percent=_prefer(secondary.float_percent, primary.float_percent),
            short_percent=_prefer(secondary.short_percent, primary.short_percent),
            days_to_cover=_prefer(secondary.days_to_cover, primary.days_to_cover),
            fundamentals=base_fundamentals.merged_with(secondary.fundamentals),
            pre_market_change=_prefer(secondary.pre_market_change, primary.pre_market_change),
            pre_market_vol_spike=_prefer(
                secondary.pre_market_vol_spike, primary.pre_market_vol_spike
            ),
            news_count=news_count,
            social_sentiment=_prefer(secondary.social_sentiment, primary.social_sentiment),
        )
    except ValueError as exc:
        raise ValidationError(symbol, str(exc)) from exc


def _prefer(first: Any, second: Any) -> Any:
    return first if first is not None else second


class MergedMetricsProvider:
    """Fetches one symbol from every configured provider and merges the result.

    Only the primary provider is required. A failing secondary provider is
    logged and its fields are left unset. Pre-market fields from
    ``pre_market`` override whatever the fundamentals record carries.
    """

    def __init__(
        self,
        primary: QuoteProvider,
        fundamentals: QuoteProvider | None = None,
        news: QuoteProvider | None = None,
        spike_factor: float = 1.5,
        pre_market: QuoteProvider | None = None,
    ) -> None:
        self._primary = primary
        self._fundamentals = fundamentals
        self._news = news
        self._pre_market = pre_market
        self._spike_factor = spike_factor

    async def fetch(self, symbol: str) -> TickerMetrics:
        """Return merged metrics for ``symbol``.

        Raises:
            TransientFetchError: If the primary provider fails or has no data.
            ValidationError: If the merged record is unusable.
        """
        try:
            primary = await self._primary.fetch(symbol)
        except Exception as exc:
            raise TransientFetchError(symbol, f"{self._primary.name}: {exc}") from exc
        if primary is None:
            raise TransientFetchError(symbol, f"{self._primary.name}: no data")

        fundamentals = await self._best_effort(self._fundamentals, symbol)
        pre = await self._best_effort(self._pre_market, symbol)
        if pre is not None:
            fundamentals = replace(
                fundamentals or ProviderQuote(symbol=symbol),
                pre_market_change=pre.pre_market_change,
                pre_market_vol_spike=pre.pre_market_vol_spike,
            )
        news = await self._best_effort(self._news, symbol)
        return merge_metrics(primary, fundamentals, news, self._spike_factor)

    async def _best_effort(
        self, provider: QuoteProvider | None, symbol: str
    ) -> ProviderQuote | None:
        if provider is None:
            return None
        try:
            return await provider.fetch(symbol)
        except Exception as exc:
            logger.warning("[%s] %s lookup failed: %s", symbol, provider.name, exc)
            return None
