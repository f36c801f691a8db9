"""ScanOrchestrator: one full scan cycle from universe to live subscriptions.

Pipeline:
    1. Fetch the candidate universe (UniverseProvider)
    2. Fetch merged metrics in paced batches (BatchFetcher)
    3. For each symbol, through a bounded worker pool:
       a. Compute extended indicators via IndicatorEngine
       b. Score via CompositeScorer
       c. Drop symbols that fail the squeeze/early-setup pre-screen
    4. Build candidates with rule-based defaults; squeeze candidates are
       enriched by the advisory service
    5. Persist every candidate under one cycle timestamp (CandidateStore)
    6. Promote the top-N symbols into the live subscription set

Error handling:
    - Per-symbol fetch, scoring and advisory failures are logged at WARNING
      and only affect that symbol.
    - A universe or persistence failure aborts the cycle with
      PipelineFatalError; nothing from the aborted cycle is written.
"""
from __future__ import annotations

import logging
import time
from collections.abc import Callable
from datetime import datetime, timezone

from squeezescan.advisory.base import AdvisoryClient, build_payload
from squeezescan.batch.types import CycleResult, CycleState
from squeezescan.core.config import ScoringConfig
from squeezescan.core.exceptions import AdvisoryError, PipelineFatalError
from squeezescan.core.logger import cycle_context
from squeezescan.core.types import Candidate, ScoreResult, TickerMetrics
from squeezescan.data.batch_fetcher import BatchFetcher
from squeezescan.data.rate_limiter import WorkerPool
from squeezescan.data.store import CandidateStore
from squeezescan.data.universe import UniverseFilters, UniverseProvider
from squeezescan.indicators.engine import IndicatorEngine, IndicatorSnapshot
from squeezescan.scoring.advice import classify_signal, default_targets, generate_suggestion
from squeezescan.scoring.composite import CompositeScorer
from squeezescan.scoring.prescreen import passes_prescreen
from squeezescan.stream.subscription import SubscriptionManager

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(tz=timezone.utc)


class ScanOrchestrator:
    """Runs scan cycles and exposes the current pipeline state.

    Cycles may overlap; each one writes its own scan row, records its own
    state transitions on ``CycleResult.states`` and the shared subscription
    set tolerates repeated ``ensure`` calls for a symbol.

    Usage::

        orchestrator = ScanOrchestrator(universe, fetcher, store, subscriptions, advisor)
        result = await orchestrator.run_cycle()
    """

    def __init__(
        self,
        universe: UniverseProvider,
        fetcher: BatchFetcher,
        store: CandidateStore,
        subscriptions: SubscriptionManager | None = None,
        advisor: AdvisoryClient | None = None,
        scoring: ScoringConfig | None = None,
        concurrency: int = 5,
        top_n: int | None = None,
        engine: IndicatorEngine | None = None,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        """
        Args:
            universe: Source of the symbols to scan.
            fetcher: Paced metrics fetcher.
            store: Candidate persistence.
            subscriptions: Live subscription set; promotion is skipped if None.
            advisor: Advisory client; enrichment is skipped if None.
            scoring: Scoring thresholds; defaults to ``ScoringConfig()``.
            concurrency: Worker pool size for scoring and enrichment.
            top_n: Symbols promoted per cycle; defaults to the subscription limit.
            engine: Indicator engine; defaults to ``IndicatorEngine()``.
            clock: Source of the cycle timestamp.
        """
        self._universe = universe
        self._fetcher = fetcher
        self._store = store
        self._subscriptions = subscriptions
        self._advisor = advisor
        self._scoring = scoring or ScoringConfig()
        self._concurrency = concurrency
        self._top_n = top_n
        self._engine = engine or IndicatorEngine()
        self._scorer = CompositeScorer(
            threshold=self._scoring.top_pick_threshold,
            early_gate=self._scoring.early_gate,
        )
        self._clock = clock
        self._state = CycleState.IDLE
        self.transitions: list[CycleState] = []

    @property
    def state(self) -> CycleState:
        """Most recent transition made by any cycle.

        With overlapping cycles this interleaves their stages; per-cycle
        history is on ``CycleResult.states``, and ``transitions`` holds the
        stages of the most recently started cycle.
        """
        return self._state

    def _transition(self, state: CycleState, states: list[CycleState]) -> None:
        logger.debug("Cycle state %s -> %s", self._state.value, state.value)
        self._state = state
        states.append(state)

    async def run_cycle(self, filters: UniverseFilters | None = None) -> CycleResult:
        """Execute one scan cycle.

        Raises:
            PipelineFatalError: If the universe fetch or persistence fails.
        """
        cycle_ts = self._clock()
        with cycle_context(f"cycle-{cycle_ts:%H%M%S}"):
            return await self._run_cycle(cycle_ts, filters)

    async def _run_cycle(self, cycle_ts: datetime, filters: UniverseFilters | None) -> CycleResult:
        t0 = time.monotonic()
        failures: list[dict[str, str]] = []
        states: list[CycleState] = []
        # Only the most recently started cycle is kept here.
        self.transitions = states

        # Stage 1: universe
        self._transition(CycleState.FETCHING_UNIVERSE, states)
        try:
            symbols = await self._universe.symbols(filters)
        except Exception as exc:
            self._transition(CycleState.FAILED, states)
            logger.error("ScanOrchestrator: universe fetch failed: %s", exc)
            raise PipelineFatalError("universe", str(exc)) from exc
        logger.info("ScanOrchestrator: starting cycle %s for %d symbols", cycle_ts.isoformat(), len(symbols))

        # Stage 2: metrics
        self._transition(CycleState.FETCHING_METRICS, states)
        metrics = await self._fetcher.fetch_all(symbols)
        fetched = {m.symbol for m in metrics}
        failures.extend(
            {"symbol": sym, "stage": "fetch", "error": "no usable metrics"}
            for sym in symbols
            if sym not in fetched
        )

        # Stage 3: scoring and pre-screen gate
        self._transition(CycleState.SCORING, states)
        pool = WorkerPool(self._concurrency, name="scan")
        scored = await pool.map(self._score_symbol, metrics, return_exceptions=True)
        gated: list[tuple[TickerMetrics, IndicatorSnapshot, ScoreResult]] = []
        for m, outcome in zip(metrics, scored):
            if isinstance(outcome, Exception):
                logger.warning("ScanOrchestrator: failed to score %s: %s", m.symbol, outcome)
                failures.append({"symbol": m.symbol, "stage": "score", "error": str(outcome)})
                continue
            snapshot, result = outcome
            if passes_prescreen(result.squeeze, result.early, self._scoring.squeeze_gate):
                gated.append((m, snapshot, result))
        logger.info("ScanOrchestrator: %d/%d symbols passed the pre-screen", len(gated), len(metrics))

        # Stage 4: candidates and enrichment
        self._transition(CycleState.ENRICHING, states)
        built = await pool.map(
            lambda item: self._build_candidate(*item, cycle_ts), gated, return_exceptions=True
        )
        candidates: list[Candidate] = []
        for (m, _, _), outcome in zip(gated, built):
            if isinstance(outcome, Exception):
                logger.warning("ScanOrchestrator: failed to build %s: %s", m.symbol, outcome)
                failures.append({"symbol": m.symbol, "stage": "enrich", "error": str(outcome)})
                continue
            candidates.append(outcome)
        candidates.sort(key=lambda c: c.total_score, reverse=True)

        # Stage 5: persist
        self._transition(CycleState.PERSISTING, states)
        try:
            scan_id = await self._store.save_cycle(candidates, cycle_ts)
        except Exception as exc:
            self._transition(CycleState.FAILED, states)
            logger.error("ScanOrchestrator: persisting cycle failed: %s", exc)
            raise PipelineFatalError("persist", str(exc)) from exc

        # Stage 6: promote top-N into the live stream
        self._transition(CycleState.SUBSCRIBING, states)
        subscribed: list[str] = []
        if self._subscriptions is not None and candidates:
            top_n = self._top_n if self._top_n is not None else self._subscriptions.limit
            subscribed = self._subscriptions.promote(c.symbol for c in candidates[:top_n])

        self._transition(CycleState.IDLE, states)
        result = CycleResult(
            cycle_ts=cycle_ts,
            universe_size=len(symbols),
            fetched=len(metrics),
            candidates=candidates,
            top_picks=[c.symbol for c in candidates if c.is_top_pick],
            subscribed=subscribed,
            failures=failures,
            duration_secs=time.monotonic() - t0,
            scan_id=scan_id,
            states=states,
        )
        logger.info(
            "ScanOrchestrator: cycle complete in %.1fs -- %d candidates, %d top picks, %d failures",
            result.duration_secs,
            len(candidates),
            len(result.top_picks),
            len(failures),
        )
        for cand in candidates[:10]:
            logger.info(
                "  %-6s total=%.2f signal=%-17s action=%s",
                cand.symbol,
                cand.total_score,
                cand.signal,
                cand.action,
            )
        return result

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    async def _score_symbol(self, metrics: TickerMetrics) -> tuple[IndicatorSnapshot, ScoreResult]:
        snapshot = self._engine.compute(metrics.history)
        return snapshot, self._scorer.score(metrics, snapshot)

    async def _build_candidate(
        self,
        metrics: TickerMetrics,
        snapshot: IndicatorSnapshot,
        score: ScoreResult,
        cycle_ts: datetime,
    ) -> Candidate:
        """Rule-based candidate, overridden by the advisory response when available."""
        m = metrics
        cfg = self._scoring
        signal = classify_signal(score.squeeze.score, score.early.passed, m.rsi, m.momentum)
        suggestion = generate_suggestion(
            m.rsi, m.momentum, m.volume_spike, m.support, m.resistance, m.price
        )
        targets = default_targets(
            m.price,
            m.support,
            m.momentum,
            momentum_threshold=cfg.momentum_market_threshold,
            limit_markup=cfg.limit_buy_markup,
            target_markup=cfg.default_target_markup,
        )

        advisory = None
        if self._advisor is not None and score.squeeze.score >= cfg.squeeze_gate:
            try:
                advisory = await self._advisor.advise(build_payload(m, snapshot))
            except AdvisoryError as exc:
                logger.warning("Advisory skipped for %s: %s", m.symbol, exc)
            except Exception as exc:
                logger.warning("Advisory skipped for %s: unexpected error: %s", m.symbol, exc)

        if advisory is None:
            return Candidate(
                metrics=m,
                score=score,
                signal=signal,
                suggestion=suggestion,
                action=signal,
                action_rationale=suggestion,
                summary=suggestion,
                buy_price=targets.buy_price,
                sell_price=targets.sell_price,
                scanned_at=cycle_ts,
            )

        return Candidate(
            metrics=m,
            score=score,
            signal=signal,
            suggestion=suggestion,
            action=advisory.action.value,
            action_rationale=advisory.rationale,
            summary=advisory.explanation,
            buy_price=advisory.buy_price if advisory.buy_price is not None else targets.buy_price,
            sell_price=advisory.sell_price if advisory.sell_price is not None else targets.sell_price,
            scanned_at=cycle_ts,
            advisory=advisory,
        )
