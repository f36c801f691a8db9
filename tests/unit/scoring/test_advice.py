"""Unit tests for rule-based signal, suggestion and default targets."""
import pytest

from squeezescan.scoring.advice import (
    SIGNAL_AVOID,
    SIGNAL_BUY,
    SIGNAL_EARLY,
    SIGNAL_NEUTRAL,
    SIGNAL_SQUEEZE,
    classify_signal,
    default_targets,
    generate_suggestion,
)


class TestClassifySignal:
    def test_squeeze(self):
        assert classify_signal(4, False, 50, 0.0) == SIGNAL_SQUEEZE

    def test_early(self):
        assert classify_signal(1, True, 50, 0.0) == SIGNAL_EARLY

    def test_buy(self):
        assert classify_signal(0, False, 35, 0.05) == SIGNAL_BUY

    def test_avoid_overbought(self):
        assert classify_signal(0, False, 75, 0.0) == SIGNAL_AVOID

    def test_avoid_negative_momentum(self):
        assert classify_signal(0, False, None, -0.01) == SIGNAL_AVOID

    def test_neutral(self):
        assert classify_signal(0, False, 50, 0.01) == SIGNAL_NEUTRAL


class TestGenerateSuggestion:
    def test_entry_and_upside(self):
        text = generate_suggestion(35, 0.06, True, support=9.0, resistance=12.0, price=10.0)
        assert text == (
            "Watch for entry near support. Target: 10%+ upside. "
            "Strong momentum - swing potential."
        )

    def test_overbought(self):
        text = generate_suggestion(80, 0.0, False, None, None, 10.0)
        assert text == "Overbought - avoid entry."

    def test_weak_momentum(self):
        assert generate_suggestion(50, -0.05, False, None, None, 10.0) == (
            "Weak momentum - stay cautious."
        )

    def test_nothing(self):
        assert generate_suggestion(None, 0.0, False, None, None, None) == (
            "No strong signal detected."
        )


class TestDefaultTargets:
    def test_limit_entry(self):
        targets = default_targets(price=10.0, support=8.0, momentum=0.01)
        assert targets.limit_buy == 8.16
        assert targets.sell_price == pytest.approx(round(8.16 * 1.15, 2))
        assert targets.buy_price == 8.16
        assert targets.market_buy == 10.0

    def test_market_entry_on_strong_momentum(self):
        targets = default_targets(price=10.0, support=8.0, momentum=0.08)
        assert targets.buy_price == 10.0

    def test_no_support(self):
        targets = default_targets(price=10.0, support=None, momentum=0.0)
        assert targets.buy_price is None
        assert targets.sell_price is None
