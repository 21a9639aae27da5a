"""
APScheduler integration for periodic maintenance.

Finished jobs stay in the tracker until they are older than the retention
window; a background interval job sweeps them out.
"""

from __future__ import annotations

from datetime import timedelta
from typing import Callable

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger

from actorqueue.core.logging import get_logger

logger = get_logger("scheduler")

SWEEP_JOB_ID = "evict-finished-jobs"


class MaintenanceScheduler:
    """Runs the finished-job eviction sweep on an interval."""

    def __init__(
        self,
        evict: Callable[[timedelta], int],
        retention: timedelta = timedelta(hours=24),
        interval: timedelta = timedelta(minutes=30),
    ) -> None:
        """Initialize the scheduler.

        Args:
            evict: Removes finished jobs older than the given age, returns count
            retention: How long finished jobs are kept
            interval: Time between sweeps
        """
        self._evict = evict
        self.retention = retention
        self.interval = interval
        self._scheduler: AsyncIOScheduler | None = None

    @property
    def running(self) -> bool:
        return self._scheduler is not None and self._scheduler.running

    def sweep(self) -> int:
        """Evict expired jobs now."""
        try:
            removed = self._evict(self.retention)
        except Exception:
            logger.exception("Eviction sweep failed")
            raise

        logger.debug("Eviction sweep removed %d jobs", removed)
        return removed

    async def _scheduled_sweep(self) -> None:
        # Coroutine jobs run on the event loop, not in the executor's thread pool
        self.sweep()

    def start(self) -> None:
        """Start the background scheduler. Requires a running event loop."""
        if self.running:
            return

        scheduler = AsyncIOScheduler()
        scheduler.add_job(
            self._scheduled_sweep,
            IntervalTrigger(seconds=self.interval.total_seconds()),
            id=SWEEP_JOB_ID,
            replace_existing=True,
            coalesce=True,
            max_instances=1,
        )
        scheduler.start()
        self._scheduler = scheduler

        logger.info(
            "Maintenance scheduler started (retention=%s, interval=%s)",
            self.retention,
            self.interval,
        )

    def shutdown(self) -> None:
        if self._scheduler is None:
            return
        if self._scheduler.running:
            self._scheduler.shutdown(wait=False)
        self._scheduler = None
        logger.info("Maintenance scheduler stopped")
