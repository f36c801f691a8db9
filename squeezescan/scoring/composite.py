"""Composite scoring: technicals, fundamentals, sentiment, and pre-market.

Combines the squeeze/early-setup heuristics with weighted sub-scores:

    squeeze (x1), early setup (x1), volume (x1), volume spike (x2),
    RSI (x1), momentum (x1.5), float (x1), short interest (x1),
    breakout (x2), bounce (x2), EMA trend/cross (x1), MACD (x1),
    ATR regime (x1), Bollinger breakout (x2), Donchian breakout (x2),
    fundamentals (x1), news (x1), social sentiment (x1),
    pre-market change (x1), pre-market volume (x1)

A symbol with ``total_score >= threshold`` (default 8) is a top pick.
Any missing input contributes 0.
"""
from __future__ import annotations

from collections.abc import Sequence
from types import MappingProxyType

from squeezescan.core.types import Fundamentals, ScoreResult, TickerMetrics
from squeezescan.indicators.engine import IndicatorSnapshot
from squeezescan.scoring.normalize import norm
from squeezescan.scoring.prescreen import analyze_early_setup, analyze_squeeze

_ATR_LOOKBACK = 30


class CompositeScorer:
    """Pure scoring function over one symbol's merged metrics.

    Usage::

        scorer = CompositeScorer(threshold=8.0)
        result = scorer.score(metrics, IndicatorEngine().compute(metrics.history))
    """

    W_SPIKE = 2.0
    W_VOLUME = 1.0
    W_MOMENTUM = 1.5
    W_RSI = 1.0
    W_FLOAT = 1.0
    W_SHORT = 1.0
    W_BREAKOUT = 2.0
    W_BOUNCE = 2.0
    W_EMA = 1.0
    W_MACD = 1.0
    W_ATR = 1.0
    W_BOLLINGER = 2.0
    W_DONCHIAN = 2.0

    def __init__(self, threshold: float = 8.0, early_gate: int = 4) -> None:
        self.threshold = threshold
        self.early_gate = early_gate

    def score(self, metrics: TickerMetrics, indicators: IndicatorSnapshot) -> ScoreResult:
        """Score one symbol.

        Args:
            metrics: Merged metrics for the symbol.
            indicators: Extended indicator series computed over
                ``metrics.history``.

        Returns:
            ScoreResult with the weighted total, reasons in evaluation
            order, top-pick flag, and every raw sub-score.
        """
        m = metrics
        squeeze = analyze_squeeze(m.rsi, m.short_percent, m.volume_spike, m.momentum)
        early = analyze_early_setup(
            m.rsi, m.short_percent, m.volume_spike, m.momentum, pass_score=self.early_gate
        )

        avg_vol = m.avg20_volume
        if avg_vol:
            vol_score = norm(m.volume, avg_vol * 1.5, avg_vol * 5)
            spike_score = norm(m.volume, avg_vol * 1.5, avg_vol * 4) if m.volume_spike else 0.0
        else:
            vol_score = 0.0
            spike_score = 0.0

        rsi_score = _rsi_score(m.rsi)
        mom_score = norm(m.momentum, 0, 0.1)
        float_score = _float_score(m.float_percent)
        short_score = (
            1.0
            if (m.short_percent or 0) >= 15 and (m.days_to_cover or 0) >= 5
            else 0.0
        )

        ratio = m.volume_ratio or 0.0
        breakout = m.resistance is not None and m.price > m.resistance and ratio > 1.5
        bounce = m.support is not None and m.price > m.support and ratio > 1

        ema_score, ema_reason = _ema_signal(indicators.ema10, indicators.ema50)
        macd_score, macd_reason = _macd_signal(indicators.macd_line, indicators.signal_line)
        atr_score, atr_reason = _atr_signal(indicators.atr14)
        boll_score, boll_reason = _bollinger_signal(m.price, indicators)
        donch_score, donch_reason = _donchian_signal(m.price, indicators)
        fund_score, fund_reasons = _fundamental_signal(m.fundamentals)
        news_score, news_reason = _news_signal(m.news_count)
        sentiment_score, sentiment_reason = _sentiment_signal(m.social_sentiment)
        pre_score, pre_reason = _pre_market_change_signal(m.pre_market_change)
        pre_vol_score, pre_vol_reason = _pre_market_volume_signal(m.pre_market_vol_spike)

        total = (
            squeeze.score
            + early.score
            + self.W_SPIKE * spike_score
            + self.W_VOLUME * vol_score
            + self.W_MOMENTUM * mom_score
            + self.W_RSI * rsi_score
            + self.W_FLOAT * float_score
            + self.W_SHORT * short_score
            + self.W_BREAKOUT * (1.0 if breakout else 0.0)
            + self.W_BOUNCE * (1.0 if bounce else 0.0)
            + self.W_EMA * ema_score
            + self.W_MACD * macd_score
            + self.W_ATR * atr_score
            + self.W_BOLLINGER * boll_score
            + self.W_DONCHIAN * donch_score
            + fund_score
            + news_score
            + sentiment_score
            + pre_score
            + pre_vol_score
        )

        reasons: list[str] = [*squeeze.reasons, *early.reasons]
        if vol_score > 0:
            reasons.append(f"Volume score: {vol_score:.2f}")
        if spike_score > 0:
            reasons.append(f"Spike score: {spike_score:.2f}")
        if rsi_score != 0:
            reasons.append(f"RSI score: {rsi_score:.2f}")
        if mom_score > 0:
            reasons.append(f"Momentum score: {mom_score:.2f}")
        if float_score > 0:
            reasons.append(f"Float score: {float_score:g}")
        if short_score > 0:
            reasons.append(f"Short score: {short_score:g}")
        if breakout:
            reasons.append("Price breakout on volume")
        if bounce:
            reasons.append("Support bounce on volume")
        for reason in (ema_reason, macd_reason, atr_reason, boll_reason, donch_reason):
            if reason:
                reasons.append(reason)
        reasons.extend(fund_reasons)
        for reason in (news_reason, sentiment_reason, pre_reason, pre_vol_reason):
            if reason:
                reasons.append(reason)

        sub_scores = {
            "squeezeScore": float(squeeze.score),
            "earlySetupScore": float(early.score),
            "volScore": vol_score,
            "spikeScore": spike_score,
            "rsiScore": rsi_score,
            "momScore": mom_score,
            "floatScore": float_score,
            "shortScore": short_score,
            "breakout": 1.0 if breakout else 0.0,
            "bounce": 1.0 if bounce else 0.0,
            "emaScore": ema_score,
            "macdScore": macd_score,
            "atrScore": atr_score,
            "bollScore": boll_score,
            "donchScore": donch_score,
            "fundScore": fund_score,
            "newsScore": news_score,
            "sentimentScore": sentiment_score,
            "preMktScore": pre_score,
            "preMktVolScore": pre_vol_score,
        }

        return ScoreResult(
            total_score=total,
            reasons=tuple(reasons),
            is_top_pick=total >= self.threshold,
            squeeze=squeeze,
            early=early,
            sub_scores=MappingProxyType(sub_scores),
        )


def _rsi_score(rsi: float | None) -> float:
    if rsi is None:
        return 0.0
    if rsi < 40:
        return (40 - rsi) / 20
    if rsi > 75:
        return -1.0
    return 0.0


def _float_score(float_percent: float | None) -> float:
    if float_percent is None:
        return 0.0
    if 1 <= float_percent <= 10:
        return 1.0
    if 10 < float_percent <= 50:
        return 0.5
    return 0.0


def _ema_signal(
    fast: Sequence[float | None], slow: Sequence[float | None]
) -> tuple[float, str | None]:
    n = min(len(fast), len(slow))
    if n < 2:
        return 0.0, None
    curr_fast, curr_slow = fast[n - 1], slow[n - 1]
    prev_fast, prev_slow = fast[n - 2], slow[n - 2]
    if curr_fast is None or curr_slow is None:
        return 0.0, None

    score = 0.0
    reason = None
    if curr_fast > curr_slow:
        score += 1
        reason = "EMA10 > EMA50 (uptrend)"
        if prev_fast is not None and prev_slow is not None and prev_fast <= prev_slow:
            score += 2
            reason = "EMA10 crossed above EMA50"
    return score, reason


def _macd_signal(
    macd_line: Sequence[float | None], signal_line: Sequence[float | None]
) -> tuple[float, str | None]:
    n = min(len(macd_line), len(signal_line))
    if n < 2:
        return 0.0, None
    curr_macd, curr_signal = macd_line[n - 1], signal_line[n - 1]
    prev_macd, prev_signal = macd_line[n - 2], signal_line[n - 2]
    if curr_macd is None or curr_signal is None:
        return 0.0, None

    score = 0.0
    reason = None
    hist = curr_macd - curr_signal
    if hist > 0:
        score += 1
        reason = "MACD histogram > 0 (bullish)"
        if prev_macd is not None and prev_signal is not None and prev_macd - prev_signal <= 0:
            score += 2
            reason = "MACD just crossed above its signal"
    return score, reason


def _atr_signal(atr14: Sequence[float | None]) -> tuple[float, str | None]:
    valid = [v for v in atr14 if v is not None]
    if len(valid) < _ATR_LOOKBACK + 1:
        return 0.0, None
    latest = valid[-1]
    prior = valid[-(_ATR_LOOKBACK + 1) : -1]
    avg = sum(prior) / len(prior)

    score = 0.0
    reason = None
    if avg > 0:
        score = norm(latest, avg * 0.8, avg * 1.2)
        reason = "ATR near its 30-day average"
        if latest > avg * 1.5:
            score += 1
            reason = "ATR spiked > 1.5x 30-day average"
    return score, reason


def _bollinger_signal(price: float, indicators: IndicatorSnapshot) -> tuple[float, str | None]:
    if not indicators.bollinger or indicators.bollinger[-1] is None:
        return 0.0, None
    band = indicators.bollinger[-1]
    if price > band.upper:
        return 2.0, "Price broke above upper Bollinger Band"
    if price < band.lower:
        return 1.0, "Price dropped below lower Bollinger Band"
    return 0.0, None


def _donchian_signal(price: float, indicators: IndicatorSnapshot) -> tuple[float, str | None]:
    # The latest channel already contains the current bar, so a breakout is
    # measured against the channel that closed on the prior bar.
    if len(indicators.donchian) < 2 or indicators.donchian[-2] is None:
        return 0.0, None
    channel = indicators.donchian[-2]
    if price > channel.high:
        return 2.0, "Price broke above 20-day Donchian high"
    if price < channel.low:
        return 1.0, "Price dropped below 20-day Donchian low"
    return 0.0, None


def _fundamental_signal(fundamentals: Fundamentals) -> tuple[float, list[str]]:
    score = 0.0
    reasons: list[str] = []
    growth = fundamentals.revenue_growth
    eps = fundamentals.eps_ttm
    if growth is not None and eps is not None:
        if growth >= 10 and eps > 0:
            score += 2
            reasons.append("Strong revenue & EPS growth")
        elif growth >= 10 or eps > 0:
            score += 1
            reasons.append("Moderate revenue or EPS growth")

    dte = fundamentals.debt_to_equity
    if dte is not None:
        if dte < 0.5:
            score += 2
            reasons.append("Low debt/equity (<0.5)")
        elif dte < 1:
            score += 1
            reasons.append("Moderate debt/equity (<1)")
        elif dte > 2:
            score -= 1
            reasons.append("High debt/equity (>2)")
    return score, reasons


def _news_signal(news_count: int | None) -> tuple[float, str | None]:
    if news_count is None:
        return 0.0, None
    if news_count >= 10:
        return 1.0, "High news volume (>=10 articles in 24h)"
    score = norm(news_count, 0, 10)
    return score, "Moderate news coverage" if score > 0 else None


def _sentiment_signal(sentiment: float | None) -> tuple[float, str | None]:
    if sentiment is None:
        return 0.0, None
    if sentiment > 0:
        return norm(sentiment, 0, 1), "Positive social sentiment"
    if sentiment < -0.3:
        return -1.0, "Negative social sentiment"
    return 0.0, None


def _pre_market_change_signal(change: float | None) -> tuple[float, str | None]:
    if change is None:
        return 0.0, None
    if change >= 5:
        return 1.0, "Pre-market jump >= 5%"
    score = norm(change, 2, 5)
    return score, "Pre-market up > 2%" if score > 0 else None


def _pre_market_volume_signal(spike: float | None) -> tuple[float, str | None]:
    if spike is None:
        return 0.0, None
    if spike >= 5:
        return 2.0, "Pre-market volume spike >= 5x avg"
    if spike >= 3:
        return 1.0, "Pre-market volume spike >= 3x avg"
    return 0.0, None
