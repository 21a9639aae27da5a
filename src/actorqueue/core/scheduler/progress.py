"""
In-memory job status tracking.

The tracker is the single owner of job state. Every status change goes
through it, and it refuses transitions that would move a job backwards
or out of a terminal state.
"""

from __future__ import annotations

from datetime import timedelta
from typing import Any

from actorqueue.core.logging import get_logger
from actorqueue.core.models import (
    ALLOWED_TRANSITIONS,
    JobState,
    JobStatus,
    utcnow,
)

logger = get_logger("progress")

CANCELLED_BY_USER = "Job cancelled by user"
INTERRUPTED_BY_SHUTDOWN = "Job interrupted by shutdown"


class ProgressTracker:
    """Status records for all known jobs, keyed by job id."""

    def __init__(self) -> None:
        self._jobs: dict[str, JobStatus] = {}

    def __len__(self) -> int:
        return len(self._jobs)

    def __contains__(self, job_id: object) -> bool:
        return job_id in self._jobs

    # -------------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------------

    def get(self, job_id: str) -> JobStatus | None:
        return self._jobs.get(job_id)

    def all(self) -> list[JobStatus]:
        """All records, oldest first."""
        return sorted(self._jobs.values(), key=lambda s: s.created_at)

    def by_status(self, status: JobState | str) -> list[JobStatus]:
        status = JobState(status)
        return [s for s in self.all() if s.status == status]

    def counts(self) -> dict[str, int]:
        """Number of jobs per status, plus ``total``."""
        counts = {state.value: 0 for state in JobState}
        for record in self._jobs.values():
            counts[record.status.value] += 1
        counts["total"] = len(self._jobs)
        return counts

    # -------------------------------------------------------------------------
    # Mutations
    # -------------------------------------------------------------------------

    def create(self, job_id: str, platform: str) -> JobStatus:
        """Start tracking a job at pending/0%."""
        if job_id in self._jobs:
            logger.warning("Job %s is already tracked, keeping existing record", job_id)
            return self._jobs[job_id]

        record = JobStatus(job_id=job_id, platform=platform)
        self._jobs[job_id] = record
        logger.debug("Tracking job %s", job_id, extra={"job_id": job_id, "platform": platform})
        return record

    def update(
        self,
        job_id: str,
        *,
        status: JobState | str | None = None,
        progress: float | None = None,
        current_step: str | None = None,
        total_steps: int | None = None,
        error_message: str | None = None,
    ) -> JobStatus | None:
        """Merge the given fields into a job's record.

        Unknown jobs are logged and ignored so that a late update racing
        with eviction cannot crash the caller. Finished jobs accept no
        further updates, and a disallowed status change drops the whole
        update.

        Returns:
            The updated record, or None if nothing was applied
        """
        record = self._jobs.get(job_id)
        if record is None:
            logger.warning("Update for unknown job %s ignored", job_id, extra={"job_id": job_id})
            return None

        if record.is_terminal:
            logger.debug(
                "Update for finished job %s ignored (status %s)",
                job_id,
                record.status.value,
                extra={"job_id": job_id},
            )
            return None

        if status is not None:
            new_status = JobState(status)
            if new_status != record.status and not self._can_transition(record, new_status):
                return None

            if new_status != record.status:
                now = utcnow()
                if new_status == JobState.RUNNING:
                    record.started_at = now
                elif new_status.is_terminal:
                    record.finished_at = now
                record.status = new_status

        if progress is not None:
            record.progress = min(100.0, max(0.0, float(progress)))
        if current_step is not None:
            record.current_step = current_step
        if total_steps is not None:
            record.total_steps = total_steps
        if error_message is not None:
            record.error_message = error_message

        return record

    def _can_transition(self, record: JobStatus, new_status: JobState) -> bool:
        if new_status in ALLOWED_TRANSITIONS[record.status]:
            return True

        logger.warning(
            "Ignoring transition %s -> %s for job %s",
            record.status.value,
            new_status.value,
            record.job_id,
            extra={"job_id": record.job_id},
        )
        return False

    def start(self, job_id: str) -> JobStatus | None:
        return self.update(
            job_id,
            status=JobState.RUNNING,
            current_step="Starting",
        )

    def complete(self, job_id: str, result: Any = None) -> JobStatus | None:
        """Mark a job completed at 100%."""
        record = self.update(
            job_id,
            status=JobState.COMPLETED,
            progress=100.0,
            current_step="Completed",
        )
        if record is not None:
            logger.info("Job %s completed", job_id, extra={"job_id": job_id})
        return record

    def fail(self, job_id: str, error: BaseException | str) -> JobStatus | None:
        """Mark a job failed and record the error message."""
        message = str(error) or type(error).__name__
        record = self.update(
            job_id,
            status=JobState.FAILED,
            current_step="Failed",
            error_message=message,
        )
        if record is not None:
            logger.error("Job %s failed: %s", job_id, message, extra={"job_id": job_id})
        return record

    def cancel(self, job_id: str, reason: str = CANCELLED_BY_USER) -> JobStatus | None:
        record = self.update(
            job_id,
            status=JobState.CANCELLED,
            current_step="Cancelled",
            error_message=reason,
        )
        if record is not None:
            logger.info("Job %s cancelled", job_id, extra={"job_id": job_id})
        return record

    def evict_older_than(self, max_age: timedelta) -> int:
        """Drop finished jobs created more than ``max_age`` ago.

        Pending and running jobs are never evicted.

        Returns:
            Number of records removed
        """
        cutoff = utcnow() - max_age
        expired = [
            job_id
            for job_id, record in self._jobs.items()
            if record.is_terminal and record.created_at < cutoff
        ]

        for job_id in expired:
            del self._jobs[job_id]

        if expired:
            logger.info("Evicted %d finished jobs older than %s", len(expired), max_age)
        return len(expired)
