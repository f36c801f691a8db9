from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass, field

from squeezescan.core.types import Bar
from squeezescan.indicators.builtin.moving_average import ema, macd
from squeezescan.indicators.builtin.volatility import Band, Channel, atr, bollinger, donchian


@dataclass(frozen=True)
class IndicatorSnapshot:
    """Extended indicator series computed over one symbol's history.

    Every list is aligned to the history it was computed from; entries are
    None during warmup and lists are empty when the history is too short.
    """

    ema10: list[float | None] = field(default_factory=list)
    ema50: list[float | None] = field(default_factory=list)
    macd_line: list[float | None] = field(default_factory=list)
    signal_line: list[float | None] = field(default_factory=list)
    atr14: list[float | None] = field(default_factory=list)
    bollinger: list[Band | None] = field(default_factory=list)
    donchian: list[Channel | None] = field(default_factory=list)


class IndicatorEngine:
    def __init__(
        self,
        ema_fast: int = 10,
        ema_slow: int = 50,
        atr_period: int = 14,
        band_period: int = 20,
        band_std: float = 2.0,
        channel_period: int = 20,
    ) -> None:
        self._ema_fast = ema_fast
        self._ema_slow = ema_slow
        self._atr_period = atr_period
        self._band_period = band_period
        self._band_std = band_std
        self._channel_period = channel_period

    def compute(self, bars: Sequence[Bar]) -> IndicatorSnapshot:
        closes = [b.close for b in bars]
        highs = [b.high for b in bars]
        lows = [b.low for b in bars]
        macd_result = macd(closes)
        return IndicatorSnapshot(
            ema10=ema(closes, self._ema_fast),
            ema50=ema(closes, self._ema_slow),
            macd_line=macd_result.macd_line,
            signal_line=macd_result.signal_line,
            atr14=atr(highs, lows, closes, self._atr_period),
            bollinger=bollinger(closes, self._band_period, self._band_std),
            donchian=donchian(highs, lows, self._channel_period),
        )

    @property
    def max_warmup(self) -> int:
        return max(self._ema_slow, 26 + 9 - 1, self._atr_period, self._band_period, self._channel_period)
