from __future__ import annotations

from collections.abc import Sequence


def rsi_series(closes: Sequence[float], period: int = 14) -> list[float | None]:
    """Wilder RSI aligned to ``closes``.

    Index ``period`` holds the first value (simple average of the first
    ``period`` gains/losses); earlier indices are None. Returns ``[]`` when
    there are fewer than ``period + 1`` closes.
    """
    if period <= 0 or len(closes) < period + 1:
        return []
    deltas = [closes[i] - closes[i - 1] for i in range(1, len(closes))]
    gains = [d if d > 0 else 0.0 for d in deltas]
    losses = [-d if d < 0 else 0.0 for d in deltas]

    out: list[float | None] = [None] * period
    avg_gain = sum(gains[:period]) / period
    avg_loss = sum(losses[:period]) / period
    out.append(_rsi_value(avg_gain, avg_loss))

    for i in range(period, len(deltas)):
        avg_gain = (avg_gain * (period - 1) + gains[i]) / period
        avg_loss = (avg_loss * (period - 1) + losses[i]) / period
        out.append(_rsi_value(avg_gain, avg_loss))
    return out


def rsi(closes: Sequence[float], period: int = 14) -> float | None:
    """Latest Wilder RSI value, or None without enough data."""
    series = rsi_series(closes, period)
    return series[-1] if series else None


def momentum(closes: Sequence[float]) -> float:
    """Latest one-bar rate of change: ``(last - prev) / prev``."""
    if len(closes) < 2:
        return 0.0
    prev = closes[-2]
    if prev == 0:
        return 0.0
    return (closes[-1] - prev) / prev


def volume_spike(volumes: Sequence[float], factor: float = 1.5) -> bool:
    """True when the latest volume exceeds ``factor`` x the mean of the prior bars."""
    if len(volumes) < 2:
        return False
    prior = volumes[:-1]
    avg = sum(prior) / len(prior)
    return volumes[-1] > factor * avg


def _rsi_value(avg_gain: float, avg_loss: float) -> float:
    if avg_loss == 0:
        return 100.0
    rs = avg_gain / avg_loss
    return 100.0 - (100.0 / (1.0 + rs))
