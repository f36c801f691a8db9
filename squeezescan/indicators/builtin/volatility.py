from __future__ import annotations

import math
from collections.abc import Sequence
from dataclasses import dataclass


def true_ranges(
    highs: Sequence[float],
    lows: Sequence[float],
    closes: Sequence[float],
) -> list[float]:
    """True range per bar; the first bar has no previous close and uses high - low."""
    n = min(len(highs), len(lows), len(closes))
    out: list[float] = []
    for i in range(n):
        high_low = highs[i] - lows[i]
        if i == 0:
            out.append(high_low)
            continue
        high_prev_close = abs(highs[i] - closes[i - 1])
        low_prev_close = abs(lows[i] - closes[i - 1])
        out.append(max(high_low, high_prev_close, low_prev_close))
    return out


def atr(
    highs: Sequence[float],
    lows: Sequence[float],
    closes: Sequence[float],
    period: int = 14,
) -> list[float | None]:
    """Wilder ATR aligned to the input bars.

    Seeded with the simple mean of the first ``period`` true ranges at index
    ``period - 1``, then ``atr[i] = (atr[i-1] * (period-1) + tr[i]) / period``.
    """
    trs = true_ranges(highs, lows, closes)
    if period <= 0 or len(trs) < period:
        return []
    out: list[float | None] = [None] * (period - 1)
    value = sum(trs[:period]) / period
    out.append(value)
    for tr in trs[period:]:
        value = (value * (period - 1) + tr) / period
        out.append(value)
    return out


@dataclass(frozen=True)
class Band:
    middle: float
    upper: float
    lower: float


def bollinger(
    closes: Sequence[float],
    period: int = 20,
    num_std: float = 2.0,
) -> list[Band | None]:
    """Rolling mean +/- ``num_std`` population standard deviations."""
    if period <= 0 or len(closes) < period:
        return []
    out: list[Band | None] = [None] * (period - 1)
    for end in range(period, len(closes) + 1):
        window = closes[end - period : end]
        middle = sum(window) / period
        variance = sum((c - middle) ** 2 for c in window) / period
        stdev = math.sqrt(variance)
        out.append(
            Band(
                middle=middle,
                upper=middle + num_std * stdev,
                lower=middle - num_std * stdev,
            )
        )
    return out


@dataclass(frozen=True)
class Channel:
    high: float
    low: float


def donchian(
    highs: Sequence[float],
    lows: Sequence[float],
    period: int = 20,
) -> list[Channel | None]:
    """Rolling max(high) / min(low) over the trailing ``period`` bars."""
    n = min(len(highs), len(lows))
    if period <= 0 or n < period:
        return []
    out: list[Channel | None] = [None] * (period - 1)
    for end in range(period, n + 1):
        out.append(
            Channel(
                high=max(highs[end - period : end]),
                low=min(lows[end - period : end]),
            )
        )
    return out
