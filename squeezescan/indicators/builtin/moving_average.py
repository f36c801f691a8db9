from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass


def sma(series: Sequence[float], period: int) -> float | None:
    """Simple mean of the trailing ``period`` values."""
    if period <= 0 or len(series) < period:
        return None
    return sum(series[-period:]) / period


def ema(series: Sequence[float], period: int) -> list[float | None]:
    """Exponential moving average aligned to ``series``.

    Seeded with the simple mean of the first ``period`` values at index
    ``period - 1``; indices before the seed are None.
    """
    if period <= 0 or len(series) < period:
        return []
    multiplier = 2 / (period + 1)
    out: list[float | None] = [None] * (period - 1)
    value = sum(series[:period]) / period
    out.append(value)
    for price in series[period:]:
        value = price * multiplier + value * (1 - multiplier)
        out.append(value)
    return out


@dataclass(frozen=True)
class MacdResult:
    macd_line: list[float | None]
    signal_line: list[float | None]

    @property
    def histogram(self) -> list[float | None]:
        return [
            m - s if m is not None and s is not None else None
            for m, s in zip(self.macd_line, self.signal_line)
        ]


def macd(
    closes: Sequence[float],
    fast: int = 12,
    slow: int = 26,
    signal: int = 9,
) -> MacdResult:
    """MACD line (fast EMA - slow EMA) and its signal EMA.

    The signal EMA is computed over the valid portion of the MACD line and
    left-padded with None so both lists line up with ``closes``.
    """
    fast_ema = ema(closes, fast)
    slow_ema = ema(closes, slow)
    if not fast_ema or not slow_ema:
        return MacdResult(macd_line=[], signal_line=[])

    macd_line: list[float | None] = [
        f - s if f is not None and s is not None else None
        for f, s in zip(fast_ema, slow_ema)
    ]
    valid = [m for m in macd_line if m is not None]
    signal_valid = ema(valid, signal)
    if not signal_valid:
        return MacdResult(macd_line=macd_line, signal_line=[None] * len(macd_line))
    pad = len(macd_line) - len(signal_valid)
    return MacdResult(macd_line=macd_line, signal_line=[None] * pad + signal_valid)
