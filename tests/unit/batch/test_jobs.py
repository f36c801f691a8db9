"""Unit tests for ScanJobRunner (squeezescan/batch/jobs.py)."""
from __future__ import annotations

import asyncio
from datetime import datetime, timezone
from unittest.mock import MagicMock

import pytest

from squeezescan.batch.jobs import ScanJobRunner
from squeezescan.batch.types import CycleResult, JobStatus
from squeezescan.core.exceptions import PipelineFatalError


class GatedOrchestrator:
    """Orchestrator stand-in whose cycle finishes only when released."""

    def __init__(self, exc: Exception | None = None) -> None:
        self.release = asyncio.Event()
        self.started = asyncio.Event()
        self.exc = exc
        self.filters = []

    async def run_cycle(self, filters=None) -> CycleResult:
        self.filters.append(filters)
        self.started.set()
        await self.release.wait()
        if self.exc is not None:
            raise self.exc
        return CycleResult(cycle_ts=datetime.now(tz=timezone.utc), universe_size=3, fetched=3)


class TestScanJobRunner:
    async def test_submit_returns_pending_handle(self):
        orch = GatedOrchestrator()
        runner = ScanJobRunner(orch)

        handle = runner.submit()

        assert handle.status is JobStatus.PENDING
        assert len(handle.job_id) == 12
        assert runner.status(handle.job_id) is handle
        orch.release.set()
        await runner.wait(handle.job_id)

    async def test_lifecycle_to_done(self):
        orch = GatedOrchestrator()
        runner = ScanJobRunner(orch)
        handle = runner.submit()

        await orch.started.wait()
        assert handle.status is JobStatus.RUNNING

        orch.release.set()
        handle = await runner.wait(handle.job_id, timeout=1.0)

        assert handle.status is JobStatus.DONE
        assert handle.done
        assert handle.result.universe_size == 3
        assert handle.finished_at is not None

    async def test_failed_job_records_error(self):
        orch = GatedOrchestrator(exc=PipelineFatalError("universe", "no symbols source"))
        runner = ScanJobRunner(orch)
        handle = runner.submit()
        orch.release.set()

        handle = await runner.wait(handle.job_id, timeout=1.0)

        assert handle.status is JobStatus.FAILED
        assert "universe" in handle.error
        assert handle.result is None

    async def test_wait_timeout_does_not_cancel(self):
        orch = GatedOrchestrator()
        runner = ScanJobRunner(orch)
        handle = runner.submit()

        handle = await runner.wait(handle.job_id, timeout=0.01)
        assert handle.status is JobStatus.RUNNING

        orch.release.set()
        handle = await runner.wait(handle.job_id, timeout=1.0)
        assert handle.status is JobStatus.DONE

    async def test_wait_on_finished_job(self):
        orch = GatedOrchestrator()
        orch.release.set()
        runner = ScanJobRunner(orch)
        handle = runner.submit()
        await runner.wait(handle.job_id)

        again = await runner.wait(handle.job_id, timeout=0)
        assert again.status is JobStatus.DONE

    async def test_filters_forwarded(self):
        orch = GatedOrchestrator()
        orch.release.set()
        runner = ScanJobRunner(orch)
        filters = MagicMock()
        handle = runner.submit(filters)
        await runner.wait(handle.job_id)
        assert orch.filters == [filters]

    async def test_overlapping_jobs(self):
        orch = GatedOrchestrator()
        runner = ScanJobRunner(orch)
        first = runner.submit()
        second = runner.submit()
        assert first.job_id != second.job_id
        assert len(runner.jobs()) == 2

        orch.release.set()
        await runner.wait(first.job_id)
        await runner.wait(second.job_id)
        assert {h.status for h in runner.jobs()} == {JobStatus.DONE}

    def test_unknown_job(self):
        runner = ScanJobRunner(GatedOrchestrator())
        with pytest.raises(KeyError):
            runner.status("missing")

    async def test_finished_jobs_evicted_beyond_limit(self):
        orch = GatedOrchestrator()
        orch.release.set()
        runner = ScanJobRunner(orch, max_finished=2)

        handles = []
        for _ in range(4):
            handle = runner.submit()
            handles.append(await runner.wait(handle.job_id))

        assert all(h.status is JobStatus.DONE for h in handles)
        assert [h.job_id for h in runner.jobs()] == [h.job_id for h in handles[2:]]
        with pytest.raises(KeyError):
            runner.status(handles[0].job_id)
