from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any

from alpaca.data.enums import DataFeed
from alpaca.data.live import StockDataStream

from squeezescan.core.exceptions import SubscriptionError
from squeezescan.stream.base import LiveQuote, QuoteStream

logger = logging.getLogger(__name__)


class AlpacaQuoteStream(QuoteStream):
    """Alpaca websocket quote feed.

    Keeps the most recent quote per subscribed symbol in memory. The feed
    caps concurrent symbols at ``max_subscriptions``; ``subscribe`` beyond
    that raises ``SubscriptionError``. Call ``run`` from a worker thread,
    it blocks until ``stop``.
    """

    def __init__(
        self,
        api_key: str,
        secret_key: str,
        feed: str = "iex",
        max_subscriptions: int = 50,
        stream: StockDataStream | None = None,
    ) -> None:
        feed_enum = DataFeed.SIP if feed == "sip" else DataFeed.IEX
        self._stream = stream or StockDataStream(api_key, secret_key, feed=feed_enum)
        self._max_subscriptions = max_subscriptions
        self._subscribed: set[str] = set()
        self._quotes: dict[str, LiveQuote] = {}

    @property
    def subscribed(self) -> frozenset[str]:
        return frozenset(self._subscribed)

    def subscribe(self, symbol: str) -> None:
        if symbol in self._subscribed:
            return
        if len(self._subscribed) >= self._max_subscriptions:
            raise SubscriptionError(
                symbol, f"feed limit of {self._max_subscriptions} symbols reached"
            )
        try:
            self._stream.subscribe_quotes(self._on_quote, symbol)
        except Exception as exc:
            raise SubscriptionError(symbol, str(exc)) from exc
        self._subscribed.add(symbol)
        logger.debug("Subscribed to %s quotes", symbol)

    def unsubscribe(self, symbol: str) -> None:
        self._subscribed.discard(symbol)
        self._quotes.pop(symbol, None)
        self._stream.unsubscribe_quotes(symbol)
        logger.debug("Unsubscribed from %s quotes", symbol)

    def latest_quote(self, symbol: str) -> LiveQuote | None:
        return self._quotes.get(symbol)

    def run(self) -> None:
        self._stream.run()

    def stop(self) -> None:
        self._stream.stop()

    async def _on_quote(self, quote: Any) -> None:
        symbol = quote.symbol
        if symbol not in self._subscribed:
            return
        ts: datetime = quote.timestamp
        if ts.tzinfo is None:
            ts = ts.replace(tzinfo=timezone.utc)
        self._quotes[symbol] = LiveQuote(
            symbol=symbol,
            bid=float(quote.bid_price or 0.0),
            ask=float(quote.ask_price or 0.0),
            timestamp=ts,
        )
