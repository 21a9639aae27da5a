"""
Scraping service orchestrator.

Coordinates the job lifecycle: validate -> track -> queue -> execute ->
persist. The queue calls back into ``execute_job`` when a slot frees up;
all status changes go through the ProgressTracker.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import timedelta
from typing import Any, Mapping

from pydantic import ValidationError

from actorqueue.core.actors.base import format_validation_errors
from actorqueue.core.actors.registry import ActorRegistry
from actorqueue.core.errors import (
    InvalidConfig,
    JobAlreadyTerminal,
    JobNotCompleted,
    JobNotFound,
)
from actorqueue.core.logging import get_job_logger
from actorqueue.core.models import (
    Job,
    JobState,
    JobStatus,
    JobSummary,
    QueueStats,
    ScrapingRequest,
    ScrapingResult,
)
from actorqueue.core.scheduler.progress import INTERRUPTED_BY_SHUTDOWN, ProgressTracker
from actorqueue.core.scheduler.queue import DEFAULT_MAX_CONCURRENT, JobQueue
from actorqueue.persistence.store import ResultStore

logger = logging.getLogger(__name__)


class ScrapingService:
    """Accepts scraping requests and runs them through the job queue.

    Coordinates:
    - Request and config validation
    - Job creation and status tracking
    - Priority queueing with bounded concurrency
    - Strategy execution and result persistence
    """

    def __init__(
        self,
        registry: ActorRegistry,
        store: ResultStore,
        tracker: ProgressTracker | None = None,
        *,
        max_concurrent: int = DEFAULT_MAX_CONCURRENT,
    ) -> None:
        """Initialize the service.

        Args:
            registry: Platform strategies
            store: Result store for completed jobs
            tracker: Status tracker (a fresh one if not given)
            max_concurrent: Maximum jobs executing at once
        """
        self.registry = registry
        self.store = store
        self.tracker = tracker or ProgressTracker()
        self.queue = JobQueue(self.execute_job, max_concurrent=max_concurrent)
        self._finished: dict[str, asyncio.Event] = {}

    # -------------------------------------------------------------------------
    # Submission
    # -------------------------------------------------------------------------

    def start_job(self, request: ScrapingRequest | Mapping[str, Any]) -> Job:
        """Validate a request, create the job and queue it.

        The job is returned as soon as it is queued; execution happens later.

        Raises:
            PlatformNotSupported: If the platform is not registered
            InvalidConfig: If the request or platform config is invalid
        """
        if not isinstance(request, ScrapingRequest):
            try:
                request = ScrapingRequest.model_validate(dict(request))
            except ValidationError as e:
                raise InvalidConfig(format_validation_errors(e)) from e

        strategy = self.registry.get(request.platform)
        config = strategy.validate(request.config)

        job = Job.create(config, priority=request.options.priority)
        self.tracker.create(job.id, job.platform)
        self._finished[job.id] = asyncio.Event()

        position = self.queue.enqueue(job)
        logger.info(
            f"Created job {job.id} for {job.platform} (priority={job.priority.value}, position={position})",
            extra={"job_id": job.id, "platform": job.platform},
        )
        return job

    # -------------------------------------------------------------------------
    # Execution
    # -------------------------------------------------------------------------

    async def execute_job(self, job: Job) -> None:
        """Run one job. Called by the queue when the job is admitted.

        Failures are recorded on the job's status and re-raised to the
        queue, which logs them.
        """
        log = get_job_logger("orchestrator", platform=job.platform, job_id=job.id)

        status = self.tracker.get(job.id)
        if status is None or status.status != JobState.PENDING:
            log.info(f"Skipping job {job.id}: status is {status.status.value if status else 'unknown'}")
            self._mark_finished(job.id)
            return

        self.tracker.start(job.id)
        log.info(f"Executing job {job.id}")

        try:
            strategy = self.registry.resolve(job.config)

            def report(progress: float, step: str) -> None:
                self.tracker.update(job.id, progress=progress, current_step=step)

            result = await strategy.execute(job.config, report)
            result = result.with_job_id(job.id)

            if self._is_cancelled(job.id):
                log.info(f"Job {job.id} was cancelled while running, discarding result")
                return

            self.tracker.update(job.id, current_step="Saving results")
            await self.store.save(job.id, result)

            if self._is_cancelled(job.id):
                log.info(f"Job {job.id} was cancelled while saving, removing result")
                await self.store.delete(job.id)
                return

            self.tracker.complete(job.id, result)
            log.info(f"Job {job.id} completed with {result.metadata.total_items} items")
        except asyncio.CancelledError:
            if not self._is_finished(job.id):
                self.tracker.cancel(job.id, reason=INTERRUPTED_BY_SHUTDOWN)
            raise
        except Exception as e:
            if not self._is_cancelled(job.id):
                self.tracker.fail(job.id, e)
            raise
        finally:
            self._mark_finished(job.id)

    def _is_finished(self, job_id: str) -> bool:
        status = self.tracker.get(job_id)
        return status is not None and status.is_terminal

    def _is_cancelled(self, job_id: str) -> bool:
        status = self.tracker.get(job_id)
        return status is not None and status.status == JobState.CANCELLED

    def _mark_finished(self, job_id: str) -> None:
        event = self._finished.get(job_id)
        if event is not None:
            event.set()

    # -------------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------------

    def get_job_status(self, job_id: str) -> JobStatus:
        """Raises JobNotFound if the job is not tracked."""
        status = self.tracker.get(job_id)
        if status is None:
            raise JobNotFound(job_id)
        return status

    async def get_job_results(self, job_id: str) -> ScrapingResult:
        """Get the stored result of a completed job.

        Results outlive the in-memory tracker, so a stored result is
        returned even if the job is no longer tracked.

        Raises:
            JobNotCompleted: If the job is tracked and not completed
            JobNotFound: If no result is stored
        """
        status = self.tracker.get(job_id)
        if status is not None and status.status != JobState.COMPLETED:
            raise JobNotCompleted(job_id, status.status.value)

        result = await self.store.load(job_id)
        if result is None:
            raise JobNotFound(job_id, f"Results for job {job_id} not found")
        return result

    async def list_jobs(
        self,
        platform: str | None = None,
        status: JobState | str | None = None,
        limit: int | None = None,
    ) -> list[JobSummary]:
        """Tracked jobs (newest first) joined with their stored results."""
        state = JobState(status) if status is not None else None

        records = [
            record
            for record in reversed(self.tracker.all())
            if (platform is None or record.platform == platform)
            and (state is None or record.status == state)
        ]
        if limit is not None:
            records = records[:limit]

        summaries = []
        for record in records:
            result = None
            if record.status == JobState.COMPLETED:
                result = await self.store.load(record.job_id)
            summaries.append(JobSummary(status=record, result=result))
        return summaries

    def queue_stats(self) -> QueueStats:
        return self.queue.stats()

    def job_counts(self) -> dict[str, int]:
        return self.tracker.counts()

    # -------------------------------------------------------------------------
    # Control
    # -------------------------------------------------------------------------

    def cancel_job(self, job_id: str) -> JobStatus:
        """Cancel a pending or running job.

        A pending job is removed from the queue. A running job keeps
        executing, but its result is discarded when it finishes.

        Raises:
            JobNotFound: If the job is not tracked
            JobAlreadyTerminal: If the job already finished
        """
        status = self.get_job_status(job_id)
        if status.is_terminal:
            raise JobAlreadyTerminal(job_id, status.status.value)

        removed = self.queue.cancel(job_id)
        self.tracker.cancel(job_id)

        if removed:
            self._mark_finished(job_id)
        else:
            logger.info(
                f"Job {job_id} is running; it was marked cancelled and its result will be discarded",
                extra={"job_id": job_id},
            )
        return status

    def evict_old_jobs(self, max_age: timedelta) -> int:
        """Forget finished jobs older than ``max_age``."""
        removed = self.tracker.evict_older_than(max_age)
        for job_id in [j for j in self._finished if j not in self.tracker]:
            del self._finished[job_id]
        return removed

    async def wait_for(self, job_id: str, timeout: float | None = None) -> JobStatus:
        """Wait until a job reaches a terminal state.

        Raises:
            JobNotFound: If the job is not tracked
            asyncio.TimeoutError: If ``timeout`` elapses first
        """
        status = self.get_job_status(job_id)
        event = self._finished.get(job_id)

        if event is not None and not status.is_terminal:
            await asyncio.wait_for(event.wait(), timeout)
        return self.get_job_status(job_id)

    async def join(self) -> None:
        """Wait until the queue has no pending or running jobs."""
        await self.queue.join()

    async def shutdown(self) -> None:
        """Stop queued work and close the result store."""
        await self.queue.shutdown()
        await self.store.close()
