"""Tests for ScrapingService: job lifecycle, cancellation and queries."""

from __future__ import annotations

import asyncio
from datetime import timedelta

import pytest

from actorqueue.core.errors import (
    InvalidConfig,
    JobAlreadyTerminal,
    JobNotCompleted,
    JobNotFound,
    PlatformNotSupported,
)
from actorqueue.core.models import JobState, Priority, ScrapingOptions, ScrapingRequest, utcnow
from actorqueue.core.scheduler.progress import CANCELLED_BY_USER, INTERRUPTED_BY_SHUTDOWN


async def _settle() -> None:
    for _ in range(5):
        await asyncio.sleep(0)


def _request(**config) -> dict:
    return {"platform": "stub", "config": config}


# ---------------------------------------------------------------------------
# Submission
# ---------------------------------------------------------------------------


class TestStartJob:
    @pytest.mark.asyncio
    async def test_returns_pending_job_immediately(self, service) -> None:
        job = service.start_job(_request(items=2))

        assert job.platform == "stub"
        assert job.priority == Priority.NORMAL
        assert service.get_job_status(job.id).status == JobState.PENDING

        await service.join()

    @pytest.mark.asyncio
    async def test_unsupported_platform(self, service) -> None:
        with pytest.raises(PlatformNotSupported):
            service.start_job({"platform": "tiktok", "config": {}})

        assert service.job_counts()["total"] == 0

    @pytest.mark.asyncio
    async def test_invalid_config_creates_no_job(self, service) -> None:
        with pytest.raises(InvalidConfig) as exc_info:
            service.start_job(_request(items="many", unknown=1))

        assert len(exc_info.value.errors) == 2
        assert service.job_counts()["total"] == 0
        assert service.queue_stats().total_jobs == 0

    @pytest.mark.asyncio
    async def test_malformed_request(self, service) -> None:
        with pytest.raises(InvalidConfig):
            service.start_job({"config": {}})

    @pytest.mark.asyncio
    async def test_accepts_request_model(self, service) -> None:
        request = ScrapingRequest(
            platform="stub",
            config={"items": 1},
            options=ScrapingOptions(priority=Priority.HIGH),
        )
        job = service.start_job(request)

        assert job.priority == Priority.HIGH
        await service.join()


# ---------------------------------------------------------------------------
# Execution
# ---------------------------------------------------------------------------


class TestExecution:
    @pytest.mark.asyncio
    async def test_completed_job_is_persisted(self, service, file_store) -> None:
        job = service.start_job(_request(items=3))
        status = await service.wait_for(job.id, timeout=1)

        assert status.status == JobState.COMPLETED
        assert status.progress == 100
        assert await file_store.exists(job.id)

        result = await service.get_job_results(job.id)
        assert result.metadata.job_id == job.id
        assert result.metadata.platform == "stub"
        assert result.metadata.total_items == 3
        assert result.data["posts"] == [{"n": 0}, {"n": 1}, {"n": 2}]

    @pytest.mark.asyncio
    async def test_failed_job_records_error(self, service, file_store) -> None:
        job = service.start_job(_request(fail="actor crashed"))
        status = await service.wait_for(job.id, timeout=1)

        assert status.status == JobState.FAILED
        assert status.error_message == "actor crashed"
        assert not await file_store.exists(job.id)

        with pytest.raises(JobNotCompleted):
            await service.get_job_results(job.id)

    @pytest.mark.asyncio
    async def test_progress_reported_while_running(self, service, stub_strategy) -> None:
        job = service.start_job(_request(hold=True))
        await _settle()

        status = service.get_job_status(job.id)
        assert status.status == JobState.RUNNING
        assert status.progress == 50
        assert status.current_step == "Working"

        stub_strategy.release.set()
        await service.wait_for(job.id, timeout=1)

    @pytest.mark.asyncio
    async def test_concurrency_bound_is_respected(self, service, stub_strategy) -> None:
        jobs = [service.start_job(_request(hold=True)) for _ in range(5)]
        await _settle()

        assert stub_strategy.active == 2
        assert service.queue_stats().running_jobs == 2
        assert service.queue_stats().pending_jobs == 3

        stub_strategy.release.set()
        await asyncio.wait_for(service.join(), 1)

        assert stub_strategy.peak_active == 2
        assert all(service.get_job_status(j.id).status == JobState.COMPLETED for j in jobs)

    @pytest.mark.asyncio
    async def test_high_priority_jumps_the_queue(self, service, stub_strategy) -> None:
        for _ in range(2):
            service.start_job(_request(hold=True))
        low = service.start_job({**_request(items=1), "options": {"priority": "low"}})
        high = service.start_job({**_request(items=2), "options": {"priority": "high"}})

        assert [j.id for j in service.queue.pending_jobs()] == [high.id, low.id]

        stub_strategy.release.set()
        await asyncio.wait_for(service.join(), 1)

        assert [c.items for c in stub_strategy.started[2:]] == [2, 1]


# ---------------------------------------------------------------------------
# Cancellation
# ---------------------------------------------------------------------------


class TestCancellation:
    @pytest.mark.asyncio
    async def test_cancel_pending_job_never_executes(self, service, stub_strategy) -> None:
        for _ in range(2):
            service.start_job(_request(hold=True))
        pending = service.start_job(_request(items=7))
        await _settle()

        status = service.cancel_job(pending.id)
        assert status.status == JobState.CANCELLED
        assert status.error_message == CANCELLED_BY_USER

        stub_strategy.release.set()
        await asyncio.wait_for(service.join(), 1)

        assert all(config.items != 7 for config in stub_strategy.started)
        assert (await service.wait_for(pending.id)).status == JobState.CANCELLED

    @pytest.mark.asyncio
    async def test_cancel_running_job_discards_result(self, service, stub_strategy, file_store) -> None:
        """The run finishes, but the job stays cancelled and nothing is stored."""
        job = service.start_job(_request(hold=True))
        await _settle()
        assert service.get_job_status(job.id).status == JobState.RUNNING

        service.cancel_job(job.id)
        stub_strategy.release.set()
        await asyncio.wait_for(service.join(), 1)

        status = service.get_job_status(job.id)
        assert status.status == JobState.CANCELLED
        assert status.error_message == CANCELLED_BY_USER
        assert not await file_store.exists(job.id)

    @pytest.mark.asyncio
    async def test_cancel_failing_running_job_stays_cancelled(self, service, stub_strategy) -> None:
        job = service.start_job(_request(hold=True, fail="late failure"))
        await _settle()

        service.cancel_job(job.id)
        stub_strategy.release.set()
        await asyncio.wait_for(service.join(), 1)

        assert service.get_job_status(job.id).status == JobState.CANCELLED

    @pytest.mark.asyncio
    async def test_shutdown_keeps_user_cancellation_reason(self, service, stub_strategy) -> None:
        job = service.start_job(_request(hold=True))
        await _settle()

        service.cancel_job(job.id)
        await service.queue.shutdown()

        status = service.get_job_status(job.id)
        assert status.status == JobState.CANCELLED
        assert status.error_message == CANCELLED_BY_USER

    @pytest.mark.asyncio
    async def test_shutdown_cancels_running_job(self, service, stub_strategy) -> None:
        job = service.start_job(_request(hold=True))
        await _settle()

        await service.queue.shutdown()

        status = service.get_job_status(job.id)
        assert status.status == JobState.CANCELLED
        assert status.error_message == INTERRUPTED_BY_SHUTDOWN

    @pytest.mark.asyncio
    async def test_cancel_terminal_job(self, service) -> None:
        job = service.start_job(_request())
        await service.wait_for(job.id, timeout=1)

        with pytest.raises(JobAlreadyTerminal):
            service.cancel_job(job.id)

    @pytest.mark.asyncio
    async def test_cancel_unknown_job(self, service) -> None:
        with pytest.raises(JobNotFound):
            service.cancel_job("does-not-exist")


# ---------------------------------------------------------------------------
# Queries
# ---------------------------------------------------------------------------


class TestQueries:
    @pytest.mark.asyncio
    async def test_results_of_running_job(self, service, stub_strategy) -> None:
        job = service.start_job(_request(hold=True))
        await _settle()

        with pytest.raises(JobNotCompleted) as exc_info:
            await service.get_job_results(job.id)
        assert exc_info.value.status == "running"

        stub_strategy.release.set()
        await service.join()

    @pytest.mark.asyncio
    async def test_unknown_job(self, service) -> None:
        with pytest.raises(JobNotFound):
            service.get_job_status("nope")
        with pytest.raises(JobNotFound):
            await service.get_job_results("nope")

    @pytest.mark.asyncio
    async def test_results_survive_eviction(self, service) -> None:
        job = service.start_job(_request(items=1))
        await service.wait_for(job.id, timeout=1)
        service.tracker.get(job.id).created_at = utcnow() - timedelta(days=2)

        assert service.evict_old_jobs(timedelta(hours=1)) == 1

        with pytest.raises(JobNotFound):
            service.get_job_status(job.id)
        result = await service.get_job_results(job.id)
        assert result.metadata.job_id == job.id

    @pytest.mark.asyncio
    async def test_list_jobs_filters(self, service) -> None:
        ok = service.start_job(_request(items=1))
        bad = service.start_job(_request(fail="x"))
        await asyncio.wait_for(service.join(), 1)

        completed = await service.list_jobs(status="completed")
        assert [s.job_id for s in completed] == [ok.id]
        assert completed[0].result is not None

        failed = await service.list_jobs(status=JobState.FAILED)
        assert [s.job_id for s in failed] == [bad.id]
        assert failed[0].result is None

        assert len(await service.list_jobs(platform="stub")) == 2
        assert await service.list_jobs(platform="reddit") == []
        assert len(await service.list_jobs(limit=1)) == 1

    @pytest.mark.asyncio
    async def test_wait_for_timeout(self, service, stub_strategy) -> None:
        job = service.start_job(_request(hold=True))

        with pytest.raises(asyncio.TimeoutError):
            await service.wait_for(job.id, timeout=0.05)

        stub_strategy.release.set()
        await service.join()
