"""ScanJobRunner: fire-and-poll wrapper around ``ScanOrchestrator.run_cycle``.

``submit`` returns immediately with a job handle; the cycle runs as an
asyncio task. A poller that gives up waiting does not cancel the cycle, it
still runs to completion and persists its results. Only the most recent
``max_finished`` finished handles are retained.
"""
from __future__ import annotations

import asyncio
import logging
import uuid
from datetime import datetime, timezone

from squeezescan.batch.scanner import ScanOrchestrator
from squeezescan.batch.types import JobHandle, JobStatus
from squeezescan.data.universe import UniverseFilters

logger = logging.getLogger(__name__)


class ScanJobRunner:
    """Tracks background scan cycles by job id.

    Usage::

        runner = ScanJobRunner(orchestrator)
        handle = runner.submit()
        handle = await runner.wait(handle.job_id, timeout=120)
    """

    def __init__(self, orchestrator: ScanOrchestrator, max_finished: int = 50) -> None:
        self._orchestrator = orchestrator
        self._max_finished = max_finished
        self._jobs: dict[str, JobHandle] = {}
        self._tasks: dict[str, asyncio.Task] = {}

    def submit(self, filters: UniverseFilters | None = None) -> JobHandle:
        """Start a cycle in the background. Must be called inside a running loop."""
        job_id = uuid.uuid4().hex[:12]
        handle = JobHandle(job_id=job_id, submitted_at=datetime.now(tz=timezone.utc))
        self._jobs[job_id] = handle
        self._tasks[job_id] = asyncio.create_task(self._run(handle, filters))
        logger.info("ScanJobRunner: submitted job %s", job_id)
        return handle

    def status(self, job_id: str) -> JobHandle:
        """Raises KeyError for unknown or already evicted job ids."""
        return self._jobs[job_id]

    def jobs(self) -> list[JobHandle]:
        return list(self._jobs.values())

    async def wait(self, job_id: str, timeout: float | None = None) -> JobHandle:
        """Wait up to ``timeout`` seconds for a job and return its handle.

        On timeout the handle is returned as-is (still RUNNING) and the
        cycle keeps going.
        """
        handle = self.status(job_id)
        task = self._tasks.get(job_id)
        if task is not None and not task.done():
            done, _ = await asyncio.wait({task}, timeout=timeout)
            if not done:
                logger.info("ScanJobRunner: gave up waiting for job %s after %ss", job_id, timeout)
        return handle

    async def _run(self, handle: JobHandle, filters: UniverseFilters | None) -> None:
        handle.status = JobStatus.RUNNING
        try:
            handle.result = await self._orchestrator.run_cycle(filters)
            handle.status = JobStatus.DONE
        except Exception as exc:
            handle.error = str(exc)
            handle.status = JobStatus.FAILED
            logger.error("ScanJobRunner: job %s failed: %s", handle.job_id, exc)
        finally:
            handle.finished_at = datetime.now(tz=timezone.utc)
            self._tasks.pop(handle.job_id, None)
            self._evict_finished()

    def _evict_finished(self) -> None:
        finished = [job_id for job_id, h in self._jobs.items() if h.done]
        for job_id in finished[: max(0, len(finished) - self._max_finished)]:
            del self._jobs[job_id]
