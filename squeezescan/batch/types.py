"""Shared data types for the scan cycle pipeline.

Used by the scan and snapshot jobs to report progress and outcome.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum

from squeezescan.core.types import Candidate


class CycleState(str, Enum):
    IDLE = "idle"
    FETCHING_UNIVERSE = "fetching_universe"
    FETCHING_METRICS = "fetching_metrics"
    SCORING = "scoring"
    ENRICHING = "enriching"
    PERSISTING = "persisting"
    SUBSCRIBING = "subscribing"
    FAILED = "failed"


@dataclass
class CycleResult:
    """Outcome of one completed scan cycle.

    Attributes:
        cycle_ts: Timestamp shared by every candidate of the cycle.
        universe_size: Number of symbols returned by the universe provider.
        fetched: Number of symbols with usable metrics.
        candidates: Persisted candidates, highest total score first.
        top_picks: Symbols whose total score reached the top-pick threshold.
        subscribed: Symbols promoted into the live quote stream.
        failures: Per-symbol failures as ``{"symbol", "stage", "error"}``.
        duration_secs: Wall-clock duration of the cycle.
        scan_id: Id of the persisted scan row.
        states: Pipeline states this cycle passed through, in order.
    """

    cycle_ts: datetime
    universe_size: int
    fetched: int
    candidates: list[Candidate] = field(default_factory=list)
    top_picks: list[str] = field(default_factory=list)
    subscribed: list[str] = field(default_factory=list)
    failures: list[dict[str, str]] = field(default_factory=list)
    duration_secs: float = 0.0
    scan_id: int | None = None
    states: list[CycleState] = field(default_factory=list)


@dataclass
class SnapshotResult:
    """Outcome of one price-snapshot pass.

    Attributes:
        universe_size: Symbols considered.
        snapshots: Symbols whose last close was recorded.
        kept: Symbols inside the price band, in universe order.
        output_path: Filtered ticker file location.
        written: False when the pass produced nothing and the file was left as is.
        duration_secs: Wall-clock duration of the pass.
    """

    universe_size: int
    snapshots: int
    kept: list[str] = field(default_factory=list)
    output_path: str = ""
    written: bool = False
    duration_secs: float = 0.0


class JobStatus(str, Enum):
    PENDING = "pending"
    RUNNING = "running"
    DONE = "done"
    FAILED = "failed"


@dataclass
class JobHandle:
    """Observable state of one submitted scan job."""

    job_id: str
    status: JobStatus = JobStatus.PENDING
    submitted_at: datetime | None = None
    finished_at: datetime | None = None
    result: CycleResult | None = None
    error: str | None = None

    @property
    def done(self) -> bool:
        return self.status in (JobStatus.DONE, JobStatus.FAILED)
