"""Scan runner: runs one scan cycle or prints stored candidates.

Usage:
    python scripts/run_scan.py
    python scripts/run_scan.py --symbols GME AMC BBBY
    python scripts/run_scan.py --latest 20
    python scripts/run_scan.py --snapshot
    python scripts/run_scan.py --config config/default.yaml --history 5
"""
from __future__ import annotations

import argparse
import asyncio
import sys
from pathlib import Path

_PROJECT_ROOT = Path(__file__).resolve().parents[1]
sys.path.insert(0, str(_PROJECT_ROOT))

from squeezescan.core.config import Settings, load_settings
from squeezescan.core.exceptions import SqueezeScanError
from squeezescan.core.logger import setup_logging
from squeezescan.data.sqlite_store import SQLiteCandidateStore


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="SqueezeScan scan cycle runner")
    parser.add_argument(
        "--config", type=Path, default=_PROJECT_ROOT / "config" / "default.yaml",
        help="YAML settings file (default: config/default.yaml)",
    )
    parser.add_argument(
        "--symbols", nargs="+", default=None,
        help="Scan only these symbols instead of the movers universe",
    )
    parser.add_argument(
        "--snapshot", action="store_true",
        help="Record last closes and rebuild the filtered ticker file, then exit",
    )
    parser.add_argument(
        "--latest", type=int, default=None, metavar="N",
        help="Print the N most recent stored candidates and exit",
    )
    parser.add_argument(
        "--history", type=int, default=None, metavar="M",
        help="Print the M most recent scan cycles and exit",
    )
    return parser.parse_args()


async def print_latest(store: SQLiteCandidateStore, n: int) -> None:
    await store.initialize()
    try:
        rows = await store.latest(n)
    finally:
        await store.close()
    print(f"{'Scanned at':<26} {'Symbol':<7} {'Score':>6} {'Top':>4}  {'Signal':<18} Action")
    print("-" * 80)
    for c in rows:
        print(
            f"{c.scanned_at.isoformat():<26} {c.symbol:<7} {c.total_score:>6.2f} "
            f"{'*' if c.is_top_pick else '':>4}  {c.signal:<18} {c.action}"
        )


async def print_history(store: SQLiteCandidateStore, m: int) -> None:
    await store.initialize()
    try:
        scans = await store.history(m)
    finally:
        await store.close()
    for s in scans:
        print(f"#{s.id:<5} {s.timestamp.isoformat():<26} {s.candidate_count} candidates")


def main() -> None:
    args = parse_args()
    settings = load_settings(args.config) if args.config.exists() else Settings()
    setup_logging("squeezescan", level=settings.system.log_level, log_dir=settings.system.log_dir)

    if args.latest is not None:
        asyncio.run(print_latest(SQLiteCandidateStore(settings.store.sqlite_path), args.latest))
        return
    if args.history is not None:
        asyncio.run(print_history(SQLiteCandidateStore(settings.store.sqlite_path), args.history))
        return

    if args.snapshot:
        from squeezescan.main import run_snapshot

        try:
            snap = asyncio.run(run_snapshot(settings))
        except SqueezeScanError as exc:
            print(f"[ERROR] {exc}")
            sys.exit(1)
        print(
            f"Snapshot: {snap.snapshots}/{snap.universe_size} symbols quoted, "
            f"{len(snap.kept)} kept -> {snap.output_path}"
            + ("" if snap.written else " (not written)")
        )
        return

    from squeezescan.main import build_scanner, run_once

    try:
        scanner = build_scanner(settings, env_path=_PROJECT_ROOT / "config" / ".env")
        result = asyncio.run(run_once(scanner, args.symbols))
    except SqueezeScanError as exc:
        print(f"[ERROR] {exc}")
        sys.exit(1)

    print(
        f"Cycle {result.cycle_ts.isoformat()}: {result.universe_size} symbols, "
        f"{result.fetched} fetched, {len(result.candidates)} candidates, "
        f"{len(result.top_picks)} top picks in {result.duration_secs:.1f}s"
    )
    for cand in result.candidates:
        marker = "*" if cand.is_top_pick else " "
        print(
            f" {marker} {cand.symbol:<7} {cand.total_score:>6.2f}  {cand.signal:<18} "
            f"{cand.action:<6} buy={cand.buy_price} sell={cand.sell_price}"
        )


if __name__ == "__main__":
    main()
