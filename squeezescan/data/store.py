from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from squeezescan.core.types import Candidate, PriceSnapshot


@dataclass(frozen=True)
class ScanRecord:
    """One persisted scan cycle."""

    id: int
    timestamp: datetime
    candidate_count: int


@dataclass(frozen=True)
class StoredCandidate:
    """Read model of a persisted candidate row plus its reasons and sub-scores."""

    id: int
    scan_id: int
    scanned_at: datetime
    symbol: str
    price: float
    volume: float
    total_score: float
    is_top_pick: bool
    signal: str
    suggestion: str
    action: str
    action_rationale: str
    summary: str
    buy_price: float | None
    sell_price: float | None
    rsi: float | None
    momentum: float
    volume_spike: bool
    short_percent: float | None
    float_percent: float | None
    squeeze_score: int
    early_setup_score: int
    is_day_trade: bool | None
    reasons: tuple[str, ...] = ()
    sub_scores: dict[str, float] = field(default_factory=dict)
    advisory_raw: dict[str, Any] | None = None


class CandidateStore(ABC):
    @abstractmethod
    async def initialize(self) -> None: ...

    @abstractmethod
    async def close(self) -> None: ...

    @abstractmethod
    async def save_cycle(self, candidates: list[Candidate], cycle_ts: datetime) -> int:
        """Persist one cycle atomically and return its scan id."""

    @abstractmethod
    async def latest(self, n: int = 20) -> list[StoredCandidate]:
        """Most recent ``n`` candidates, newest cycle first."""

    @abstractmethod
    async def history(self, m: int = 10) -> list[ScanRecord]:
        """Most recent ``m`` scan cycles, newest first."""

    @abstractmethod
    async def candidates_for(self, cycle_ts: datetime) -> list[StoredCandidate]: ...

    @abstractmethod
    async def save_price_snapshots(self, snapshots: list[PriceSnapshot]) -> int:
        """Upsert one row per symbol and return the number written."""

    @abstractmethod
    async def price_snapshots(self) -> list[PriceSnapshot]:
        """Current snapshot of every symbol, ordered by symbol."""
