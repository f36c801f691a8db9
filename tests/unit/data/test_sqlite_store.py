"""Unit tests for SQLiteCandidateStore (squeezescan/data/sqlite_store.py)."""
from __future__ import annotations

import asyncio
from datetime import datetime, timedelta, timezone
from types import MappingProxyType

import pytest

from squeezescan.core.types import Action, AdvisoryResult, Candidate, PriceSnapshot, TickerMetrics
from squeezescan.data.sqlite_store import SQLiteCandidateStore
from squeezescan.indicators import IndicatorSnapshot
from squeezescan.scoring import CompositeScorer

_T0 = datetime(2026, 3, 2, 13, 30, tzinfo=timezone.utc)


def _candidate(
    symbol: str,
    short_percent: float = 25.0,
    cycle_ts: datetime = _T0,
    advisory: AdvisoryResult | None = None,
) -> Candidate:
    metrics = TickerMetrics(
        symbol=symbol,
        price=10.0,
        volume=2_000_000.0,
        rsi=35.0,
        momentum=0.04,
        volume_spike=True,
        short_percent=short_percent,
    )
    score = CompositeScorer().score(metrics, IndicatorSnapshot())
    return Candidate(
        metrics=metrics,
        score=score,
        signal="Squeeze Potential",
        suggestion="Strong momentum - swing potential.",
        action=advisory.action.value if advisory else "Squeeze Potential",
        action_rationale="rationale",
        summary="summary",
        buy_price=9.5,
        sell_price=11.0,
        scanned_at=cycle_ts,
        advisory=advisory,
    )


@pytest.fixture
async def store(tmp_path):
    s = SQLiteCandidateStore(str(tmp_path / "nested" / "scan.db"))
    await s.initialize()
    yield s
    await s.close()


class TestSaveCycle:
    async def test_round_trip(self, store):
        cand = _candidate("AAA")
        scan_id = await store.save_cycle([cand], _T0)

        rows = await store.candidates_for(_T0)

        assert len(rows) == 1
        row = rows[0]
        assert row.scan_id == scan_id
        assert row.symbol == "AAA"
        assert row.scanned_at == _T0
        assert row.total_score == pytest.approx(cand.total_score)
        assert row.is_top_pick is cand.is_top_pick
        assert row.volume_spike is True
        assert row.reasons == cand.score.reasons
        assert row.sub_scores == pytest.approx(dict(cand.score.sub_scores))
        assert row.squeeze_score == cand.score.squeeze.score
        assert row.is_day_trade is None
        assert row.advisory_raw is None

    async def test_flags_stored_as_integers(self, store):
        await store.save_cycle([_candidate("AAA")], _T0)
        cursor = await store._db.execute("SELECT is_top_pick, volume_spike FROM candidates")
        assert await cursor.fetchone() == (1, 1)

    async def test_advisory_fields(self, store):
        advisory = AdvisoryResult(
            action=Action.BUY,
            explanation="explain",
            rationale="why",
            is_day_trade=True,
            buy_price=9.8,
            sell_price=11.5,
            raw=MappingProxyType({"action": "Buy", "buyPrice": 9.8}),
        )
        await store.save_cycle([_candidate("AAA", advisory=advisory)], _T0)

        row = (await store.candidates_for(_T0))[0]

        assert row.action == "Buy"
        assert row.is_day_trade is True
        assert row.advisory_raw == {"action": "Buy", "buyPrice": 9.8}

    async def test_failure_writes_nothing(self, store):
        # Duplicate symbol in one cycle violates UNIQUE(scan_id, symbol)
        with pytest.raises(Exception):
            await store.save_cycle([_candidate("AAA"), _candidate("AAA")], _T0)

        assert await store.history() == []
        assert await store.latest() == []

    async def test_duplicate_cycle_timestamp_rejected(self, store):
        await store.save_cycle([_candidate("AAA")], _T0)
        with pytest.raises(Exception):
            await store.save_cycle([_candidate("BBB")], _T0)
        assert len(await store.history()) == 1

    async def test_empty_cycle(self, store):
        await store.save_cycle([], _T0)
        history = await store.history()
        assert history[0].candidate_count == 0

    async def test_concurrent_cycles_do_not_share_a_transaction(self, store):
        t1 = _T0 + timedelta(minutes=5)
        failing = [_candidate(s) for s in ("B1", "B2", "B3", "B4", "B5")] + [_candidate("B1")]

        results = await asyncio.gather(
            store.save_cycle([_candidate("GOOD")], _T0),
            store.save_cycle(failing, t1),
            return_exceptions=True,
        )

        assert isinstance(results[0], int)
        assert isinstance(results[1], Exception)
        assert [h.timestamp for h in await store.history()] == [_T0]
        assert [r.symbol for r in await store.candidates_for(_T0)] == ["GOOD"]
        assert await store.candidates_for(t1) == []


class TestQueries:
    async def test_latest_newest_cycle_first(self, store):
        t1 = _T0 + timedelta(minutes=10)
        await store.save_cycle([_candidate("OLD")], _T0)
        await store.save_cycle([_candidate("LOW", short_percent=5.0), _candidate("HIGH")], t1)

        rows = await store.latest(10)

        assert [r.symbol for r in rows] == ["HIGH", "LOW", "OLD"]

    async def test_latest_limit(self, store):
        await store.save_cycle([_candidate("A"), _candidate("B"), _candidate("C")], _T0)
        assert len(await store.latest(2)) == 2

    async def test_history_newest_first(self, store):
        for i in range(3):
            await store.save_cycle([_candidate("AAA")], _T0 + timedelta(minutes=i))

        history = await store.history(2)

        assert [h.timestamp for h in history] == [
            _T0 + timedelta(minutes=2),
            _T0 + timedelta(minutes=1),
        ]

    async def test_naive_timestamp_treated_as_utc(self, store):
        await store.save_cycle([_candidate("AAA")], _T0.replace(tzinfo=None))
        assert len(await store.candidates_for(_T0)) == 1

    async def test_memory_database(self):
        s = SQLiteCandidateStore(":memory:")
        await s.initialize()
        try:
            await s.save_cycle([_candidate("AAA")], _T0)
            assert len(await s.latest()) == 1
        finally:
            await s.close()


class TestPriceSnapshots:
    async def test_upsert_keeps_one_row_per_symbol(self, store):
        t1 = _T0 + timedelta(days=1)
        await store.save_price_snapshots(
            [PriceSnapshot("GME", 20.0, _T0), PriceSnapshot("AMC", 4.0, _T0)]
        )
        written = await store.save_price_snapshots([PriceSnapshot("GME", 22.5, t1)])

        rows = await store.price_snapshots()

        assert written == 1
        assert rows == [PriceSnapshot("AMC", 4.0, _T0), PriceSnapshot("GME", 22.5, t1)]

    async def test_empty_batch(self, store):
        assert await store.save_price_snapshots([]) == 0
        assert await store.price_snapshots() == []
