"""Rule-based pre-screen heuristics (short squeeze and early setup).

Both heuristics are cheap and run on every fetched symbol; only symbols
passing ``passes_prescreen`` go on to become candidates and be considered
for advisory enrichment.
"""
from __future__ import annotations

from squeezescan.core.types import SetupScore

_SETUP_PASS_SCORE = 4


def analyze_squeeze(
    rsi: float | None,
    short_float: float | None,
    volume_spike: bool,
    momentum: float | None,
) -> SetupScore:
    """Score short-squeeze potential.

    Rules: short float > 20 (+2), RSI < 40 (+1), volume spike (+2),
    momentum > 0.03 (+1). Passes at a score of 4 or more.
    """
    score = 0
    reasons: list[str] = []
    if short_float is not None and short_float > 20:
        score += 2
        reasons.append("High short float")
    if rsi is not None and rsi < 40:
        score += 1
        reasons.append("RSI shows potential bounce")
    if volume_spike:
        score += 2
        reasons.append("Unusual volume")
    if momentum is not None and momentum > 0.03:
        score += 1
        reasons.append("Bullish price momentum")
    return SetupScore(score=score, reasons=tuple(reasons), passed=score >= _SETUP_PASS_SCORE)


def analyze_early_setup(
    rsi: float | None,
    short_float: float | None,
    volume_spike: bool,
    momentum: float | None,
    pass_score: int = _SETUP_PASS_SCORE,
) -> SetupScore:
    """Score an early setup that has not broken out yet.

    Rules: short float > 15 (+2), 30 < RSI < 45 (+2), no volume spike (+1),
    0.01 < momentum < 0.03 (+1). Passes at ``pass_score`` or more.
    """
    score = 0
    reasons: list[str] = []
    if short_float is not None and short_float > 15:
        score += 2
        reasons.append("Moderately high short float")
    if rsi is not None and 30 < rsi < 45:
        score += 2
        reasons.append("RSI in early reversal zone")
    if not volume_spike:
        score += 1
        reasons.append("No volume spike yet - possible accumulation")
    if momentum is not None and 0.01 < momentum < 0.03:
        score += 1
        reasons.append("Subtle bullish momentum")
    return SetupScore(score=score, reasons=tuple(reasons), passed=score >= pass_score)


def passes_prescreen(squeeze: SetupScore, early: SetupScore, squeeze_gate: int = 2) -> bool:
    """Gate for candidate emission: squeeze score >= gate or early candidate."""
    return squeeze.score >= squeeze_gate or early.passed
