"""Unit tests for core data types."""
from dataclasses import FrozenInstanceError
from datetime import datetime, timezone

import pytest

from squeezescan.core.types import Bar, Fundamentals, TickerMetrics


def _bar(day: int, close: float = 10.0) -> Bar:
    return Bar("GME", datetime(2026, 3, day, tzinfo=timezone.utc), close, close, close, close, 100.0)


class TestTickerMetrics:
    def test_history_accessors(self):
        m = TickerMetrics(symbol="GME", price=12.0, volume=100.0, history=(_bar(1, 10.0), _bar(2, 11.0)))
        assert m.closes == [10.0, 11.0]
        assert m.volumes == [100.0, 100.0]
        assert len(m.highs) == len(m.lows) == 2

    def test_rejects_duplicate_timestamps(self):
        with pytest.raises(ValueError):
            TickerMetrics(symbol="GME", price=12.0, volume=100.0, history=(_bar(1), _bar(1)))

    def test_rejects_unordered_history(self):
        with pytest.raises(ValueError):
            TickerMetrics(symbol="GME", price=12.0, volume=100.0, history=(_bar(2), _bar(1)))

    def test_frozen(self):
        m = TickerMetrics(symbol="GME", price=12.0, volume=100.0)
        with pytest.raises(FrozenInstanceError):
            m.price = 13.0  # type: ignore[misc]


class TestFundamentals:
    def test_merged_with_prefers_other_non_none(self):
        base = Fundamentals(revenue_growth=5.0, debt_to_equity=1.5, eps_ttm=0.2)
        other = Fundamentals(revenue_growth=12.0, pe_ratio=20.0)
        merged = base.merged_with(other)
        assert merged.revenue_growth == 12.0
        assert merged.debt_to_equity == 1.5
        assert merged.eps_ttm == 0.2
        assert merged.pe_ratio == 20.0

    def test_merged_with_none(self):
        base = Fundamentals(eps_ttm=1.0)
        assert base.merged_with(None) is base

    def test_to_dict_keys(self):
        assert set(Fundamentals().to_dict()) == {
            "revenueGrowth",
            "debtToEquity",
            "epsTrailingTwelveMonths",
            "peRatio",
        }
