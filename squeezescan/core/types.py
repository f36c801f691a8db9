"""Core data types shared by the fetch, scoring, and scan pipeline stages."""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from types import MappingProxyType
from typing import Any, Mapping


@dataclass(frozen=True)
class Bar:
    """A single daily OHLCV bar."""

    symbol: str
    timestamp: datetime
    open: float
    high: float
    low: float
    close: float
    volume: float


@dataclass(frozen=True)
class Fundamentals:
    """Fundamental ratios used by the composite score.

    ``revenue_growth`` is expressed in percent (12.5 == 12.5%).
    """

    revenue_growth: float | None = None
    debt_to_equity: float | None = None
    eps_ttm: float | None = None
    pe_ratio: float | None = None

    def merged_with(self, other: Fundamentals | None) -> Fundamentals:
        """Return a copy where non-None fields of ``other`` take precedence."""
        if other is None:
            return self
        return Fundamentals(
            revenue_growth=_first(other.revenue_growth, self.revenue_growth),
            debt_to_equity=_first(other.debt_to_equity, self.debt_to_equity),
            eps_ttm=_first(other.eps_ttm, self.eps_ttm),
            pe_ratio=_first(other.pe_ratio, self.pe_ratio),
        )

    def to_dict(self) -> dict[str, float | None]:
        return {
            "revenueGrowth": self.revenue_growth,
            "debtToEquity": self.debt_to_equity,
            "epsTrailingTwelveMonths": self.eps_ttm,
            "peRatio": self.pe_ratio,
        }


@dataclass(frozen=True)
class TickerMetrics:
    """Merged per-symbol metrics for one scan cycle.

    Built by ``MergedMetricsProvider`` from a primary quote provider plus
    optional fundamentals and news providers. ``history`` is ordered
    oldest-first with strictly increasing timestamps.
    """

    symbol: str
    price: float
    volume: float
    history: tuple[Bar, ...] = ()
    rsi: float | None = None
    momentum: float = 0.0
    volume_spike: bool = False
    volume_ratio: float | None = None
    support: float | None = None
    resistance: float | None = None
    avg20_volume: float | None = None
    float_percent: float | None = None
    short_percent: float | None = None
    days_to_cover: float | None = None
    fundamentals: Fundamentals = field(default_factory=Fundamentals)
    pre_market_change: float | None = None
    pre_market_vol_spike: float | None = None
    news_count: int | None = None
    social_sentiment: float | None = None

    def __post_init__(self) -> None:
        for prev, cur in zip(self.history, self.history[1:]):
            if cur.timestamp <= prev.timestamp:
                raise ValueError(
                    f"{self.symbol}: history must be strictly time-ordered "
                    f"({prev.timestamp.isoformat()} >= {cur.timestamp.isoformat()})"
                )

    @property
    def closes(self) -> list[float]:
        return [b.close for b in self.history]

    @property
    def highs(self) -> list[float]:
        return [b.high for b in self.history]

    @property
    def lows(self) -> list[float]:
        return [b.low for b in self.history]

    @property
    def volumes(self) -> list[float]:
        return [b.volume for b in self.history]


@dataclass(frozen=True)
class SetupScore:
    """Result of one of the rule-based pre-screen heuristics."""

    score: int
    reasons: tuple[str, ...]
    passed: bool


@dataclass(frozen=True)
class ScoreResult:
    """Output of the composite scorer.

    ``reasons`` holds one entry per triggered rule, in evaluation order.
    ``sub_scores`` keeps every raw component (before weighting) for audit.
    """

    total_score: float
    reasons: tuple[str, ...]
    is_top_pick: bool
    squeeze: SetupScore
    early: SetupScore
    sub_scores: Mapping[str, float] = field(
        default_factory=lambda: MappingProxyType({})
    )


class Action(str, Enum):
    BUY = "Buy"
    HOLD = "Hold"
    SELL = "Sell"


@dataclass(frozen=True)
class AdvisoryResult:
    """Structured response of the advisory service."""

    action: Action
    explanation: str
    rationale: str
    is_day_trade: bool = False
    buy_price: float | None = None
    sell_price: float | None = None
    day_trade_buy_price: float | None = None
    day_trade_sell_price: float | None = None
    long_buy_price: float | None = None
    long_sell_price: float | None = None
    pre_market_entry_price: float | None = None
    pre_market_exit_price: float | None = None
    raw: Mapping[str, Any] = field(default_factory=lambda: MappingProxyType({}))


@dataclass(frozen=True)
class Candidate:
    """A scored, optionally enriched snapshot of one symbol in one cycle.

    Attributes:
        metrics: Merged metrics the score was computed from.
        score: Composite score result.
        signal: Rule-based classification label (e.g. "Squeeze Potential").
        suggestion: Static rule-based suggestion text.
        action: Advisory action, or the rule-based signal when not enriched.
        action_rationale: Rationale for ``action``.
        summary: Advisory explanation, or the suggestion when not enriched.
        buy_price: Entry target (advisory value or rule-based default).
        sell_price: Exit target (advisory value or rule-based default).
        advisory: Full advisory response, None when enrichment was skipped
            or failed.
        scanned_at: Cycle timestamp shared by every candidate of the cycle.
    """

    metrics: TickerMetrics
    score: ScoreResult
    signal: str
    suggestion: str
    action: str
    action_rationale: str
    summary: str
    buy_price: float | None
    sell_price: float | None
    scanned_at: datetime
    advisory: AdvisoryResult | None = None

    @property
    def symbol(self) -> str:
        return self.metrics.symbol

    @property
    def total_score(self) -> float:
        return self.score.total_score

    @property
    def is_top_pick(self) -> bool:
        return self.score.is_top_pick


@dataclass(frozen=True)
class PriceSnapshot:
    """Last close of one symbol, recorded by the nightly snapshot job.

    ``last_close`` is 0.0 when the quote carried no price.
    """

    symbol: str
    last_close: float
    taken_at: datetime


def _first(*values: float | None) -> float | None:
    for v in values:
        if v is not None:
            return v
    return None
