"""Rule-based signal labels, suggestions, and default price targets.

These are the values a candidate keeps when advisory enrichment is
skipped or fails.
"""
from __future__ import annotations

from dataclasses import dataclass

SIGNAL_SQUEEZE = "Squeeze Potential"
SIGNAL_EARLY = "Early Watch"
SIGNAL_BUY = "Buy Signal"
SIGNAL_AVOID = "Avoid"
SIGNAL_NEUTRAL = "Neutral"


@dataclass(frozen=True)
class PriceTargets:
    buy_price: float | None
    sell_price: float | None
    limit_buy: float | None
    market_buy: float


def classify_signal(
    squeeze_score: int,
    early_candidate: bool,
    rsi: float | None,
    momentum: float,
) -> str:
    """Label a symbol from its squeeze score, early-setup flag, RSI and momentum."""
    if squeeze_score >= 4:
        return SIGNAL_SQUEEZE
    if early_candidate:
        return SIGNAL_EARLY
    if rsi is not None and rsi < 40 and momentum > 0.03:
        return SIGNAL_BUY
    if (rsi is not None and rsi > 70) or momentum < 0:
        return SIGNAL_AVOID
    return SIGNAL_NEUTRAL


def generate_suggestion(
    rsi: float | None,
    momentum: float,
    volume_spike: bool,
    support: float | None,
    resistance: float | None,
    price: float | None,
) -> str:
    suggestions: list[str] = []
    if rsi is not None and rsi < 40 and momentum > 0.03 and volume_spike:
        suggestions.append("Watch for entry near support.")
    elif rsi is not None and rsi > 70:
        suggestions.append("Overbought - avoid entry.")
    if support and resistance and price:
        upside = (resistance - price) / price * 100
        if upside > 10:
            suggestions.append("Target: 10%+ upside.")
    if momentum > 0.05:
        suggestions.append("Strong momentum - swing potential.")
    elif momentum < -0.03:
        suggestions.append("Weak momentum - stay cautious.")
    return " ".join(suggestions) or "No strong signal detected."


def default_targets(
    price: float,
    support: float | None,
    momentum: float,
    momentum_threshold: float = 0.05,
    limit_markup: float = 1.02,
    target_markup: float = 1.15,
) -> PriceTargets:
    """Default entry/exit levels.

    Limit entry sits ``limit_markup`` above support; the exit target is
    ``target_markup`` above the limit entry. Strong momentum switches the
    entry to a market buy at the current price.
    """
    limit_buy = round(support * limit_markup, 2) if support else None
    sell = round(limit_buy * target_markup, 2) if limit_buy else None
    buy = price if momentum > momentum_threshold else limit_buy
    return PriceTargets(buy_price=buy, sell_price=sell, limit_buy=limit_buy, market_buy=price)
