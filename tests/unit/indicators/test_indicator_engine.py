"""Unit tests for IndicatorEngine."""
from squeezescan.indicators import IndicatorEngine, IndicatorSnapshot


class TestIndicatorEngine:
    def test_full_history_computes_all_series(self, make_bars):
        bars = make_bars([10.0 + i * 0.1 for i in range(80)])
        snap = IndicatorEngine().compute(bars)
        assert isinstance(snap, IndicatorSnapshot)
        for series in (snap.ema10, snap.ema50, snap.macd_line, snap.signal_line,
                       snap.atr14, snap.bollinger, snap.donchian):
            assert len(series) == 80
            assert series[-1] is not None

    def test_short_history_yields_empty_series(self, make_bars):
        bars = make_bars([10.0] * 12)
        snap = IndicatorEngine().compute(bars)
        assert snap.ema10 != []
        assert snap.ema50 == []
        assert snap.macd_line == []
        assert snap.atr14 == []
        assert snap.bollinger == []
        assert snap.donchian == []

    def test_empty_history(self):
        snap = IndicatorEngine().compute(())
        assert snap == IndicatorSnapshot()

    def test_deterministic(self, make_bars):
        bars = make_bars([10.0 + (i % 7) for i in range(60)])
        engine = IndicatorEngine()
        assert engine.compute(bars) == engine.compute(bars)

    def test_max_warmup(self):
        assert IndicatorEngine().max_warmup == 50
