"""
Priority job queue with bounded concurrency.

Jobs wait in a list ordered by priority (FIFO within a priority) and are
admitted into the running set while slots are free. Each admitted job
runs the execution callback in its own asyncio task; when the task ends,
its slot is released and the next job is admitted.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from datetime import datetime
from typing import Awaitable, Callable

from actorqueue.core.logging import get_logger
from actorqueue.core.models import Job, QueueStats, utcnow

logger = get_logger("queue")

JobCallback = Callable[[Job], Awaitable[None]]

DEFAULT_MAX_CONCURRENT = 5


@dataclass
class QueueEntry:
    """A job waiting for a slot."""

    job: Job
    weight: int
    enqueued_at: datetime = field(default_factory=utcnow)


class JobQueue:
    """Priority queue that runs at most ``max_concurrent`` jobs at once.

    Must be used from within a running event loop.
    """

    def __init__(self, callback: JobCallback, max_concurrent: int = DEFAULT_MAX_CONCURRENT) -> None:
        """Initialize the queue.

        Args:
            callback: Coroutine function executing one job
            max_concurrent: Maximum simultaneously running jobs
        """
        if max_concurrent < 1:
            raise ValueError("max_concurrent must be >= 1")

        self._callback = callback
        self._max_concurrent = max_concurrent
        self._pending: list[QueueEntry] = []
        self._running: dict[str, Job] = {}
        self._tasks: set[asyncio.Task[None]] = set()
        self._paused = False
        self._dispatching = False
        self._idle = asyncio.Event()
        self._idle.set()

    @property
    def max_concurrent(self) -> int:
        return self._max_concurrent

    @property
    def paused(self) -> bool:
        return self._paused

    # -------------------------------------------------------------------------
    # Submission
    # -------------------------------------------------------------------------

    def enqueue(self, job: Job) -> int:
        """Add a job and try to dispatch.

        Returns:
            1-based position in the pending queue at insertion time
        """
        entry = QueueEntry(job=job, weight=job.priority.weight)

        position = len(self._pending)
        for i, queued in enumerate(self._pending):
            if queued.weight < entry.weight:
                position = i
                break

        self._pending.insert(position, entry)

        logger.info(
            "Job %s enqueued at position %d",
            job.id,
            position + 1,
            extra={"job_id": job.id, "platform": job.platform, "priority": job.priority.value},
        )

        self.dispatch_next()
        self._update_idle()
        return position + 1

    def cancel(self, job_id: str) -> bool:
        """Remove a pending job.

        Returns:
            True if removed; False if the job is running or unknown
        """
        for i, entry in enumerate(self._pending):
            if entry.job.id == job_id:
                del self._pending[i]
                logger.info("Job %s removed from queue", job_id, extra={"job_id": job_id})
                self._update_idle()
                return True

        if job_id in self._running:
            logger.warning(
                "Job %s is running and cannot be removed from the queue",
                job_id,
                extra={"job_id": job_id},
            )
        return False

    def clear(self) -> int:
        """Drop all pending jobs. Running jobs are unaffected."""
        count = len(self._pending)
        self._pending.clear()
        self._update_idle()
        if count:
            logger.info("Cleared %d pending jobs", count)
        return count

    # -------------------------------------------------------------------------
    # Dispatch
    # -------------------------------------------------------------------------

    def dispatch_next(self) -> int:
        """Admit pending jobs while slots are free.

        Returns:
            Number of jobs admitted by this call
        """
        if self._paused or self._dispatching:
            return 0

        self._dispatching = True
        admitted = 0
        try:
            while self._pending and len(self._running) < self._max_concurrent:
                entry = self._pending.pop(0)
                job = entry.job
                self._running[job.id] = job

                task = asyncio.create_task(self._run(job), name=f"job-{job.id}")
                self._tasks.add(task)
                task.add_done_callback(self._tasks.discard)
                admitted += 1

                logger.debug(
                    "Admitted job %s (%d/%d running)",
                    job.id,
                    len(self._running),
                    self._max_concurrent,
                    extra={"job_id": job.id},
                )
        finally:
            self._dispatching = False

        return admitted

    async def _run(self, job: Job) -> None:
        try:
            await self._callback(job)
        except asyncio.CancelledError:
            logger.warning("Job %s task cancelled", job.id, extra={"job_id": job.id})
            raise
        except Exception:
            logger.exception("Job %s raised in queue callback", job.id, extra={"job_id": job.id})
        finally:
            self._running.pop(job.id, None)
            self.dispatch_next()
            self._update_idle()

    def _update_idle(self) -> None:
        if not self._pending and not self._running:
            self._idle.set()
        elif self._paused and not self._running:
            # Nothing will make progress until resume()
            self._idle.set()
        else:
            self._idle.clear()

    async def join(self) -> None:
        """Wait until no jobs are pending or running (or the queue is paused and drained)."""
        await self._idle.wait()

    async def shutdown(self) -> None:
        """Drop pending jobs and cancel running tasks."""
        self.clear()
        tasks = list(self._tasks)
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)

    # -------------------------------------------------------------------------
    # Control
    # -------------------------------------------------------------------------

    def pause(self) -> None:
        """Stop admitting new jobs. Running jobs continue."""
        self._paused = True
        self._update_idle()
        logger.info("Queue paused")

    def resume(self) -> None:
        self._paused = False
        logger.info("Queue resumed")
        self.dispatch_next()
        self._update_idle()

    def set_max_concurrent(self, max_concurrent: int) -> None:
        """Change the concurrency bound.

        Lowering it never stops running jobs; it only delays admissions.
        """
        if max_concurrent < 1:
            raise ValueError("max_concurrent must be >= 1")

        increased = max_concurrent > self._max_concurrent
        self._max_concurrent = max_concurrent
        logger.info("Max concurrent jobs set to %d", max_concurrent)

        if increased:
            self.dispatch_next()

    # -------------------------------------------------------------------------
    # Inspection
    # -------------------------------------------------------------------------

    def is_running(self, job_id: str) -> bool:
        return job_id in self._running

    def is_pending(self, job_id: str) -> bool:
        return any(entry.job.id == job_id for entry in self._pending)

    def running_jobs(self) -> list[Job]:
        return list(self._running.values())

    def pending_jobs(self) -> list[Job]:
        """Pending jobs in admission order."""
        return [entry.job for entry in self._pending]

    def stats(self) -> QueueStats:
        return QueueStats(
            pending_jobs=len(self._pending),
            running_jobs=len(self._running),
            max_concurrent=self._max_concurrent,
            paused=self._paused,
        )
