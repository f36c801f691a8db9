"""Unit tests for AlpacaQuoteStream (squeezescan/stream/alpaca_stream.py)."""
from __future__ import annotations

from datetime import datetime, timezone
from unittest.mock import MagicMock

import pytest

from squeezescan.core.exceptions import SubscriptionError
from squeezescan.stream import AlpacaQuoteStream, LiveQuote


def _stream(max_subscriptions: int = 2) -> tuple[AlpacaQuoteStream, MagicMock]:
    raw = MagicMock()
    return AlpacaQuoteStream("k", "s", max_subscriptions=max_subscriptions, stream=raw), raw


def _raw_quote(symbol: str, bid: float = 9.9, ask: float = 10.1) -> MagicMock:
    quote = MagicMock()
    quote.symbol = symbol
    quote.bid_price = bid
    quote.ask_price = ask
    quote.timestamp = datetime(2026, 3, 2, 14, 0)
    return quote


class TestSubscribe:
    def test_subscribe_registers_handler(self):
        stream, raw = _stream()
        stream.subscribe("AAA")
        raw.subscribe_quotes.assert_called_once_with(stream._on_quote, "AAA")
        assert stream.subscribed == frozenset({"AAA"})

    def test_repeat_subscribe_is_noop(self):
        stream, raw = _stream()
        stream.subscribe("AAA")
        stream.subscribe("AAA")
        assert raw.subscribe_quotes.call_count == 1

    def test_feed_limit(self):
        stream, _ = _stream(max_subscriptions=1)
        stream.subscribe("AAA")
        with pytest.raises(SubscriptionError, match="feed limit"):
            stream.subscribe("BBB")

    def test_stream_error_wrapped(self):
        stream, raw = _stream()
        raw.subscribe_quotes.side_effect = RuntimeError("not connected")
        with pytest.raises(SubscriptionError):
            stream.subscribe("AAA")
        assert stream.subscribed == frozenset()

    def test_unsubscribe_clears_quote(self):
        stream, raw = _stream()
        stream.subscribe("AAA")
        stream._quotes["AAA"] = LiveQuote("AAA", 1.0, 2.0, datetime.now(tz=timezone.utc))
        stream.unsubscribe("AAA")
        raw.unsubscribe_quotes.assert_called_once_with("AAA")
        assert stream.latest_quote("AAA") is None


class TestQuotes:
    async def test_on_quote_stores_latest(self):
        stream, _ = _stream()
        stream.subscribe("AAA")
        await stream._on_quote(_raw_quote("AAA"))

        quote = stream.latest_quote("AAA")
        assert quote.mid == pytest.approx(10.0)
        assert quote.timestamp.tzinfo is not None

    async def test_ignores_unsubscribed_symbols(self):
        stream, _ = _stream()
        await stream._on_quote(_raw_quote("ZZZ"))
        assert stream.latest_quote("ZZZ") is None

    def test_mid_with_one_side(self):
        quote = LiveQuote("AAA", bid=0.0, ask=5.0, timestamp=datetime.now(tz=timezone.utc))
        assert quote.mid == 5.0
