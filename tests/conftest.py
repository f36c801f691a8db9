"""Shared pytest fixtures for the SqueezeScan unit tests."""
from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from squeezescan.core.types import Bar


@pytest.fixture
def make_bars():
    """Factory for a strictly time-ordered daily bar series from closes."""

    def _factory(
        closes: list[float],
        symbol: str = "TEST",
        volumes: list[float] | None = None,
        start: datetime = datetime(2026, 1, 2, tzinfo=timezone.utc),
    ) -> tuple[Bar, ...]:
        volumes = volumes or [1_000_000.0] * len(closes)
        return tuple(
            Bar(
                symbol=symbol,
                timestamp=start + timedelta(days=i),
                open=c,
                high=c * 1.01,
                low=c * 0.99,
                close=c,
                volume=v,
            )
            for i, (c, v) in enumerate(zip(closes, volumes))
        )

    return _factory
