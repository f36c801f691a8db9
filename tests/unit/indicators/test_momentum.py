"""Unit tests for RSI, momentum and volume spike."""
import pytest

from squeezescan.indicators.builtin import momentum, rsi, rsi_series, volume_spike


class TestRSI:
    def test_insufficient_data_returns_none(self):
        assert rsi([1.0] * 14, 14) is None
        assert rsi_series([1.0] * 14, 14) == []

    def test_series_aligned_to_input(self):
        closes = [float(i) for i in range(1, 31)]
        series = rsi_series(closes, 14)
        assert len(series) == len(closes)
        assert all(v is None for v in series[:14])
        assert all(v is not None for v in series[14:])

    def test_only_gains_gives_100(self):
        closes = [float(i) for i in range(1, 20)]
        assert rsi(closes) == 100.0

    def test_only_losses_gives_0(self):
        closes = [float(i) for i in range(20, 1, -1)]
        assert rsi(closes) == pytest.approx(0.0)

    def test_alternating_moves_near_50(self):
        closes = [10.0, 11.0] * 10
        value = rsi(closes, 14)
        assert 40 < value < 60

    def test_first_value_is_simple_average(self):
        # 14 deltas: 7 gains of +1, 7 losses of -1 -> RS = 1 -> RSI 50
        closes = [10.0]
        for i in range(14):
            closes.append(closes[-1] + (1.0 if i % 2 == 0 else -1.0))
        assert rsi(closes, 14) == pytest.approx(50.0)

    def test_bounded(self):
        closes = [10, 12, 9, 15, 14, 20, 18, 19, 25, 21, 22, 23, 17, 30, 28, 27]
        value = rsi([float(c) for c in closes])
        assert 0.0 <= value <= 100.0


class TestMomentum:
    def test_rate_of_change(self):
        assert momentum([10.0, 11.0]) == pytest.approx(0.1)

    def test_negative(self):
        assert momentum([10.0, 12.0, 9.0]) == pytest.approx(-0.25)

    def test_short_series_is_zero(self):
        assert momentum([]) == 0.0
        assert momentum([5.0]) == 0.0

    def test_zero_previous_close(self):
        assert momentum([0.0, 5.0]) == 0.0


class TestVolumeSpike:
    def test_spike_detected(self):
        assert volume_spike([100, 100, 100, 200]) is True

    def test_exact_threshold_is_not_spike(self):
        assert volume_spike([100, 100, 150]) is False

    def test_custom_factor(self):
        assert volume_spike([100, 100, 250], factor=3.0) is False
        assert volume_spike([100, 100, 350], factor=3.0) is True

    def test_short_series(self):
        assert volume_spike([500]) is False
