"""Unit tests for CompositeScorer."""
import math

import pytest

from squeezescan.core.types import Fundamentals, TickerMetrics
from squeezescan.indicators import IndicatorEngine, IndicatorSnapshot
from squeezescan.indicators.builtin import Band, Channel
from squeezescan.scoring import CompositeScorer


def _squeeze_metrics(**overrides) -> TickerMetrics:
    fields = dict(
        symbol="AAA",
        price=10.0,
        volume=4_000_000.0,
        rsi=35.0,
        momentum=0.05,
        volume_spike=True,
        volume_ratio=4.0,
        support=8.0,
        resistance=9.5,
        avg20_volume=1_000_000.0,
        float_percent=5.0,
        short_percent=25.0,
        days_to_cover=6.0,
    )
    fields.update(overrides)
    return TickerMetrics(**fields)


def _weak_metrics() -> TickerMetrics:
    return TickerMetrics(symbol="BBB", price=50.0, volume=100_000.0, rsi=60.0,
                         momentum=0.0, short_percent=5.0)


class TestCompositeScore:
    def test_squeeze_candidate_is_top_pick(self):
        result = CompositeScorer().score(_squeeze_metrics(), IndicatorSnapshot())
        assert result.squeeze.score == 6
        assert result.early.score == 4
        expected = 6 + 4 + 2.5 / 3.5 + 2 * 1.0 + 0.25 + 1.5 * 0.5 + 1 + 1 + 2 + 2
        assert result.total_score == pytest.approx(expected)
        assert result.is_top_pick

    def test_reasons_in_evaluation_order(self):
        result = CompositeScorer().score(_squeeze_metrics(), IndicatorSnapshot())
        assert result.reasons == (
            "High short float",
            "RSI shows potential bounce",
            "Unusual volume",
            "Bullish price momentum",
            "Moderately high short float",
            "RSI in early reversal zone",
            "Volume score: 0.71",
            "Spike score: 1.00",
            "RSI score: 0.25",
            "Momentum score: 0.50",
            "Float score: 1",
            "Short score: 1",
            "Price breakout on volume",
            "Support bounce on volume",
        )

    def test_weak_symbol(self):
        result = CompositeScorer().score(_weak_metrics(), IndicatorSnapshot())
        assert result.squeeze.score == 0
        assert result.total_score == pytest.approx(1.0)
        assert not result.is_top_pick

    def test_pure_and_deterministic(self):
        scorer = CompositeScorer()
        metrics = _squeeze_metrics()
        first = scorer.score(metrics, IndicatorSnapshot())
        second = scorer.score(metrics, IndicatorSnapshot())
        assert first.total_score == second.total_score
        assert first.reasons == second.reasons
        assert dict(first.sub_scores) == dict(second.sub_scores)

    def test_missing_inputs_contribute_zero(self):
        metrics = TickerMetrics(symbol="NIL", price=5.0, volume=0.0)
        result = CompositeScorer().score(metrics, IndicatorSnapshot())
        assert all(not math.isnan(v) for v in result.sub_scores.values())
        assert result.sub_scores["volScore"] == 0.0
        assert result.sub_scores["spikeScore"] == 0.0
        assert result.sub_scores["breakout"] == 0.0
        assert result.total_score == pytest.approx(1.0)

    def test_threshold_is_configurable(self):
        result = CompositeScorer(threshold=25.0).score(_squeeze_metrics(), IndicatorSnapshot())
        assert not result.is_top_pick

    def test_sub_scores_read_only(self):
        result = CompositeScorer().score(_squeeze_metrics(), IndicatorSnapshot())
        with pytest.raises(TypeError):
            result.sub_scores["volScore"] = 99  # type: ignore[index]


class TestVolumeRules:
    def test_spike_score_requires_spike_flag(self):
        result = CompositeScorer().score(_squeeze_metrics(volume_spike=False), IndicatorSnapshot())
        assert result.sub_scores["spikeScore"] == 0.0
        assert result.sub_scores["volScore"] > 0

    def test_breakout_needs_volume_ratio_above_1_5(self):
        result = CompositeScorer().score(_squeeze_metrics(volume_ratio=1.2), IndicatorSnapshot())
        assert result.sub_scores["breakout"] == 0.0
        assert result.sub_scores["bounce"] == 1.0

    def test_no_bounce_below_support(self):
        result = CompositeScorer().score(
            _squeeze_metrics(price=7.0, volume_ratio=3.0), IndicatorSnapshot()
        )
        assert result.sub_scores["bounce"] == 0.0
        assert result.sub_scores["breakout"] == 0.0


class TestIndicatorRules:
    def test_ema_cross(self):
        snap = IndicatorSnapshot(ema10=[1.0, 3.0], ema50=[2.0, 2.0])
        result = CompositeScorer().score(_weak_metrics(), snap)
        assert result.sub_scores["emaScore"] == 3.0
        assert "EMA10 crossed above EMA50" in result.reasons

    def test_ema_uptrend_without_cross(self):
        snap = IndicatorSnapshot(ema10=[3.0, 3.0], ema50=[2.0, 2.0])
        result = CompositeScorer().score(_weak_metrics(), snap)
        assert result.sub_scores["emaScore"] == 1.0
        assert "EMA10 > EMA50 (uptrend)" in result.reasons

    def test_macd_cross(self):
        snap = IndicatorSnapshot(macd_line=[-1.0, 1.0], signal_line=[0.0, 0.0])
        result = CompositeScorer().score(_weak_metrics(), snap)
        assert result.sub_scores["macdScore"] == 3.0

    def test_atr_spike(self):
        snap = IndicatorSnapshot(atr14=[None] * 13 + [1.0] * 30 + [2.0])
        result = CompositeScorer().score(_weak_metrics(), snap)
        assert result.sub_scores["atrScore"] == pytest.approx(2.0)
        assert "ATR spiked > 1.5x 30-day average" in result.reasons

    def test_atr_needs_31_values(self):
        snap = IndicatorSnapshot(atr14=[1.0] * 29 + [2.0])
        result = CompositeScorer().score(_weak_metrics(), snap)
        assert result.sub_scores["atrScore"] == 0.0

    def test_bollinger_breakout_weighted_double(self):
        snap = IndicatorSnapshot(bollinger=[Band(middle=45.0, upper=48.0, lower=42.0)])
        result = CompositeScorer().score(_weak_metrics(), snap)
        assert result.sub_scores["bollScore"] == 2.0
        assert result.total_score == pytest.approx(1.0 + 4.0)

    def test_donchian_breakdown(self):
        snap = IndicatorSnapshot(
            donchian=[Channel(high=60.0, low=55.0), Channel(high=60.0, low=49.0)]
        )
        result = CompositeScorer().score(_weak_metrics(), snap)
        assert result.sub_scores["donchScore"] == 1.0
        assert "Price dropped below 20-day Donchian low" in result.reasons

    def test_donchian_breakout_from_computed_channel(self, make_bars):
        bars = make_bars([10.0] * 59 + [13.0])
        snap = IndicatorEngine().compute(bars)
        metrics = TickerMetrics(symbol="CCC", price=13.0, volume=100_000.0, rsi=60.0,
                                momentum=0.0, short_percent=5.0)
        result = CompositeScorer().score(metrics, snap)
        assert result.sub_scores["donchScore"] == 2.0
        assert "Price broke above 20-day Donchian high" in result.reasons

    def test_donchian_needs_prior_channel(self):
        snap = IndicatorSnapshot(donchian=[Channel(high=40.0, low=30.0)])
        result = CompositeScorer().score(_weak_metrics(), snap)
        assert result.sub_scores["donchScore"] == 0.0

    def test_real_indicator_snapshot(self, make_bars):
        bars = make_bars([10.0 + i * 0.2 for i in range(80)])
        metrics = _squeeze_metrics(history=bars, price=bars[-1].close)
        snap = IndicatorEngine().compute(bars)
        result = CompositeScorer().score(metrics, snap)
        assert result.sub_scores["emaScore"] >= 1.0
        assert result.is_top_pick


class TestContextRules:
    def test_strong_fundamentals(self):
        metrics = _squeeze_metrics(
            fundamentals=Fundamentals(revenue_growth=12.0, eps_ttm=1.0, debt_to_equity=0.3)
        )
        result = CompositeScorer().score(metrics, IndicatorSnapshot())
        assert result.sub_scores["fundScore"] == 4.0
        assert "Strong revenue & EPS growth" in result.reasons
        assert "Low debt/equity (<0.5)" in result.reasons

    def test_high_leverage_penalised(self):
        metrics = _squeeze_metrics(fundamentals=Fundamentals(debt_to_equity=3.0))
        result = CompositeScorer().score(metrics, IndicatorSnapshot())
        assert result.sub_scores["fundScore"] == -1.0

    @pytest.mark.parametrize("count, expected", [(12, 1.0), (10, 1.0), (5, 0.5), (0, 0.0)])
    def test_news(self, count, expected):
        result = CompositeScorer().score(_squeeze_metrics(news_count=count), IndicatorSnapshot())
        assert result.sub_scores["newsScore"] == pytest.approx(expected)

    @pytest.mark.parametrize("sentiment, expected", [(0.5, 0.5), (-0.5, -1.0), (-0.1, 0.0)])
    def test_sentiment(self, sentiment, expected):
        result = CompositeScorer().score(
            _squeeze_metrics(social_sentiment=sentiment), IndicatorSnapshot()
        )
        assert result.sub_scores["sentimentScore"] == pytest.approx(expected)

    @pytest.mark.parametrize("change, expected", [(6.0, 1.0), (3.5, 0.5), (1.0, 0.0)])
    def test_pre_market_change(self, change, expected):
        result = CompositeScorer().score(
            _squeeze_metrics(pre_market_change=change), IndicatorSnapshot()
        )
        assert result.sub_scores["preMktScore"] == pytest.approx(expected)

    @pytest.mark.parametrize("spike, expected", [(5.0, 2.0), (3.0, 1.0), (2.0, 0.0)])
    def test_pre_market_volume(self, spike, expected):
        result = CompositeScorer().score(
            _squeeze_metrics(pre_market_vol_spike=spike), IndicatorSnapshot()
        )
        assert result.sub_scores["preMktVolScore"] == expected
