"""SQLite persistence for scan cycles and their candidates.

Candidates are stored in typed columns with 0/1 flags; reasons and raw
sub-scores live in child tables. Only the raw advisory response is kept as
opaque JSON, for audit. The nightly price-snapshot job keeps one upserted
last-close row per symbol in ``price_snapshots``.
"""
from __future__ import annotations

import asyncio
import json
import logging
from datetime import datetime, timezone
from pathlib import Path

import aiosqlite

from squeezescan.core.types import Candidate, PriceSnapshot
from squeezescan.data.store import CandidateStore, ScanRecord, StoredCandidate

logger = logging.getLogger(__name__)

_CREATE_TABLES = """
CREATE TABLE IF NOT EXISTS scans (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    timestamp TEXT NOT NULL UNIQUE,
    candidate_count INTEGER NOT NULL
);

CREATE TABLE IF NOT EXISTS candidates (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    scan_id INTEGER NOT NULL REFERENCES scans(id) ON DELETE CASCADE,
    symbol TEXT NOT NULL,
    price REAL NOT NULL,
    volume REAL NOT NULL,
    total_score REAL NOT NULL,
    is_top_pick INTEGER NOT NULL,
    signal TEXT NOT NULL,
    suggestion TEXT NOT NULL,
    action TEXT NOT NULL,
    action_rationale TEXT NOT NULL,
    summary TEXT NOT NULL,
    buy_price REAL,
    sell_price REAL,
    rsi REAL,
    momentum REAL NOT NULL,
    volume_spike INTEGER NOT NULL,
    short_percent REAL,
    float_percent REAL,
    squeeze_score INTEGER NOT NULL,
    early_setup_score INTEGER NOT NULL,
    is_day_trade INTEGER,
    advisory_raw TEXT,
    UNIQUE (scan_id, symbol)
);

CREATE TABLE IF NOT EXISTS candidate_reasons (
    candidate_id INTEGER NOT NULL REFERENCES candidates(id) ON DELETE CASCADE,
    position INTEGER NOT NULL,
    reason TEXT NOT NULL,
    PRIMARY KEY (candidate_id, position)
);

CREATE TABLE IF NOT EXISTS candidate_sub_scores (
    candidate_id INTEGER NOT NULL REFERENCES candidates(id) ON DELETE CASCADE,
    name TEXT NOT NULL,
    value REAL NOT NULL,
    PRIMARY KEY (candidate_id, name)
);

CREATE INDEX IF NOT EXISTS idx_candidates_scan ON candidates(scan_id);

CREATE TABLE IF NOT EXISTS price_snapshots (
    symbol TEXT PRIMARY KEY,
    last_close REAL NOT NULL,
    taken_at TEXT NOT NULL
);
"""

_CANDIDATE_COLUMNS = """
    c.id, c.scan_id, s.timestamp, c.symbol, c.price, c.volume, c.total_score,
    c.is_top_pick, c.signal, c.suggestion, c.action, c.action_rationale,
    c.summary, c.buy_price, c.sell_price, c.rsi, c.momentum, c.volume_spike,
    c.short_percent, c.float_percent, c.squeeze_score, c.early_setup_score,
    c.is_day_trade, c.advisory_raw
"""


class SQLiteCandidateStore(CandidateStore):
    """aiosqlite-backed ``CandidateStore``.

    Every ``save_cycle`` call is a single transaction: either the scan row
    and all of its candidates are written, or nothing is.
    """

    def __init__(self, db_path: str) -> None:
        self._db_path = db_path
        self._db: aiosqlite.Connection | None = None
        self._write_lock = asyncio.Lock()

    async def initialize(self) -> None:
        if self._db_path != ":memory:":
            Path(self._db_path).parent.mkdir(parents=True, exist_ok=True)
        self._db = await aiosqlite.connect(self._db_path)
        await self._db.execute("PRAGMA foreign_keys = ON")
        await self._db.executescript(_CREATE_TABLES)
        await self._db.commit()

    async def close(self) -> None:
        if self._db:
            await self._db.close()
            self._db = None

    async def save_cycle(self, candidates: list[Candidate], cycle_ts: datetime) -> int:
        assert self._db is not None
        ts = _to_iso(cycle_ts)
        # One shared connection: concurrent cycles must not interleave transactions.
        async with self._write_lock:
            try:
                cursor = await self._db.execute(
                    "INSERT INTO scans (timestamp, candidate_count) VALUES (?, ?)",
                    (ts, len(candidates)),
                )
                scan_id = cursor.lastrowid
                for cand in candidates:
                    await self._insert_candidate(scan_id, cand)
                await self._db.commit()
            except Exception:
                await self._db.rollback()
                logger.error("Rolled back scan cycle %s (%d candidates)", ts, len(candidates))
                raise
        logger.info("Saved scan cycle %s with %d candidates", ts, len(candidates))
        return scan_id

    async def _insert_candidate(self, scan_id: int, cand: Candidate) -> None:
        assert self._db is not None
        m = cand.metrics
        advisory = cand.advisory
        cursor = await self._db.execute(
            """INSERT INTO candidates
               (scan_id, symbol, price, volume, total_score, is_top_pick,
                signal, suggestion, action, action_rationale, summary,
                buy_price, sell_price, rsi, momentum, volume_spike,
                short_percent, float_percent, squeeze_score, early_setup_score,
                is_day_trade, advisory_raw)
               VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)""",
            (
                scan_id,
                cand.symbol,
                m.price,
                m.volume,
                cand.total_score,
                int(cand.is_top_pick),
                cand.signal,
                cand.suggestion,
                cand.action,
                cand.action_rationale,
                cand.summary,
                cand.buy_price,
                cand.sell_price,
                m.rsi,
                m.momentum,
                int(m.volume_spike),
                m.short_percent,
                m.float_percent,
                cand.score.squeeze.score,
                cand.score.early.score,
                int(advisory.is_day_trade) if advisory else None,
                json.dumps(dict(advisory.raw)) if advisory else None,
            ),
        )
        candidate_id = cursor.lastrowid
        await self._db.executemany(
            "INSERT INTO candidate_reasons (candidate_id, position, reason) VALUES (?, ?, ?)",
            [(candidate_id, i, reason) for i, reason in enumerate(cand.score.reasons)],
        )
        await self._db.executemany(
            "INSERT INTO candidate_sub_scores (candidate_id, name, value) VALUES (?, ?, ?)",
            [(candidate_id, name, float(value)) for name, value in cand.score.sub_scores.items()],
        )

    async def latest(self, n: int = 20) -> list[StoredCandidate]:
        assert self._db is not None
        cursor = await self._db.execute(
            f"""SELECT {_CANDIDATE_COLUMNS}
                FROM candidates c JOIN scans s ON s.id = c.scan_id
                ORDER BY s.timestamp DESC, s.id DESC, c.total_score DESC, c.id
                LIMIT ?""",
            (n,),
        )
        return await self._hydrate(await cursor.fetchall())

    async def history(self, m: int = 10) -> list[ScanRecord]:
        assert self._db is not None
        cursor = await self._db.execute(
            "SELECT id, timestamp, candidate_count FROM scans ORDER BY timestamp DESC, id DESC LIMIT ?",
            (m,),
        )
        rows = await cursor.fetchall()
        return [
            ScanRecord(id=r[0], timestamp=datetime.fromisoformat(r[1]), candidate_count=r[2])
            for r in rows
        ]

    async def candidates_for(self, cycle_ts: datetime) -> list[StoredCandidate]:
        assert self._db is not None
        cursor = await self._db.execute(
            f"""SELECT {_CANDIDATE_COLUMNS}
                FROM candidates c JOIN scans s ON s.id = c.scan_id
                WHERE s.timestamp = ?
                ORDER BY c.total_score DESC, c.id""",
            (_to_iso(cycle_ts),),
        )
        return await self._hydrate(await cursor.fetchall())

    async def save_price_snapshots(self, snapshots: list[PriceSnapshot]) -> int:
        assert self._db is not None
        async with self._write_lock:
            try:
                await self._db.executemany(
                    """INSERT INTO price_snapshots (symbol, last_close, taken_at)
                       VALUES (?, ?, ?)
                       ON CONFLICT(symbol) DO UPDATE SET
                           last_close = excluded.last_close,
                           taken_at = excluded.taken_at""",
                    [(s.symbol, s.last_close, _to_iso(s.taken_at)) for s in snapshots],
                )
                await self._db.commit()
            except Exception:
                await self._db.rollback()
                logger.error("Rolled back %d price snapshots", len(snapshots))
                raise
        logger.info("Saved %d price snapshots", len(snapshots))
        return len(snapshots)

    async def price_snapshots(self) -> list[PriceSnapshot]:
        assert self._db is not None
        cursor = await self._db.execute(
            "SELECT symbol, last_close, taken_at FROM price_snapshots ORDER BY symbol"
        )
        return [
            PriceSnapshot(symbol=r[0], last_close=r[1], taken_at=datetime.fromisoformat(r[2]))
            for r in await cursor.fetchall()
        ]

    async def _hydrate(self, rows) -> list[StoredCandidate]:  # noqa: ANN001
        assert self._db is not None
        result: list[StoredCandidate] = []
        for r in rows:
            candidate_id = r[0]
            cursor = await self._db.execute(
                "SELECT reason FROM candidate_reasons WHERE candidate_id = ? ORDER BY position",
                (candidate_id,),
            )
            reasons = tuple(row[0] for row in await cursor.fetchall())
            cursor = await self._db.execute(
                "SELECT name, value FROM candidate_sub_scores WHERE candidate_id = ?",
                (candidate_id,),
            )
            sub_scores = {row[0]: row[1] for row in await cursor.fetchall()}
            result.append(
                StoredCandidate(
                    id=candidate_id,
                    scan_id=r[1],
                    scanned_at=datetime.fromisoformat(r[2]),
                    symbol=r[3],
                    price=r[4],
                    volume=r[5],
                    total_score=r[6],
                    is_top_pick=bool(r[7]),
                    signal=r[8],
                    suggestion=r[9],
                    action=r[10],
                    action_rationale=r[11],
                    summary=r[12],
                    buy_price=r[13],
                    sell_price=r[14],
                    rsi=r[15],
                    momentum=r[16],
                    volume_spike=bool(r[17]),
                    short_percent=r[18],
                    float_percent=r[19],
                    squeeze_score=r[20],
                    early_setup_score=r[21],
                    is_day_trade=None if r[22] is None else bool(r[22]),
                    reasons=reasons,
                    sub_scores=sub_scores,
                    advisory_raw=json.loads(r[23]) if r[23] else None,
                )
            )
        return result


def _to_iso(ts: datetime) -> str:
    if ts.tzinfo is None:
        ts = ts.replace(tzinfo=timezone.utc)
    return ts.astimezone(timezone.utc).isoformat()
