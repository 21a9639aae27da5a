"""
Core data structures for scraping jobs.

Requests and platform configs are Pydantic models (validated at the edge);
jobs, status records and results are plain dataclasses passed between
the queue, the tracker and the orchestrator.
"""

from __future__ import annotations

import uuid
from dataclasses import asdict, dataclass, field, replace
from datetime import datetime, timezone
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


def utcnow() -> datetime:
    """Timezone-aware current UTC time."""
    return datetime.now(timezone.utc)


def isoformat_now() -> str:
    return utcnow().isoformat().replace("+00:00", "Z")


# =============================================================================
# Enums
# =============================================================================


class Priority(str, Enum):
    """Job priority levels."""

    LOW = "low"
    NORMAL = "normal"
    HIGH = "high"

    @property
    def weight(self) -> int:
        """Ordinal used for queue ordering (higher runs first)."""
        return _PRIORITY_WEIGHTS[self]


_PRIORITY_WEIGHTS = {
    Priority.LOW: 1,
    Priority.NORMAL: 2,
    Priority.HIGH: 3,
}


class JobState(str, Enum):
    """Lifecycle status of a job."""

    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"

    @property
    def is_terminal(self) -> bool:
        return self in TERMINAL_STATES


TERMINAL_STATES = frozenset({JobState.COMPLETED, JobState.FAILED, JobState.CANCELLED})

# Allowed forward transitions. Terminal states have none.
ALLOWED_TRANSITIONS: dict[JobState, frozenset[JobState]] = {
    JobState.PENDING: frozenset({JobState.RUNNING, JobState.CANCELLED}),
    JobState.RUNNING: frozenset({JobState.COMPLETED, JobState.FAILED, JobState.CANCELLED}),
    JobState.COMPLETED: frozenset(),
    JobState.FAILED: frozenset(),
    JobState.CANCELLED: frozenset(),
}


# =============================================================================
# Requests
# =============================================================================


class PlatformConfig(BaseModel):
    """Base class for platform-specific scraping configs.

    Subclasses narrow ``platform`` to a literal tag, so a config value
    always identifies the strategy that can run it.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="forbid")

    platform: str


class ScrapingOptions(BaseModel):
    """Scheduling options attached to a request."""

    priority: Priority = Field(
        default=Priority.NORMAL,
        description="Queue priority (low, normal, high)",
    )


class ScrapingRequest(BaseModel):
    """A client request to scrape a platform."""

    platform: str = Field(description="Registered platform key, e.g. 'reddit' or 'x'")
    config: dict[str, Any] = Field(
        default_factory=dict,
        description="Platform-specific configuration, validated by the platform strategy",
    )
    options: ScrapingOptions = Field(default_factory=ScrapingOptions)


# =============================================================================
# Jobs
# =============================================================================


@dataclass(frozen=True)
class Job:
    """An accepted scraping job.

    Immutable after creation. The job's status lives in the
    ProgressTracker, never on the job itself.
    """

    id: str
    platform: str
    config: PlatformConfig
    priority: Priority = Priority.NORMAL
    created_at: datetime = field(default_factory=utcnow)

    @classmethod
    def create(cls, config: PlatformConfig, priority: Priority = Priority.NORMAL) -> "Job":
        """Build a job with a freshly generated id."""
        return cls(
            id=uuid.uuid4().hex,
            platform=config.platform,
            config=config,
            priority=priority,
        )


@dataclass
class JobStatus:
    """Mutable status record for a tracked job."""

    job_id: str
    platform: str
    status: JobState = JobState.PENDING
    progress: float = 0.0
    current_step: str = "Initializing"
    total_steps: int = 100
    error_message: str | None = None
    created_at: datetime = field(default_factory=utcnow)
    started_at: datetime | None = None
    finished_at: datetime | None = None

    @property
    def is_terminal(self) -> bool:
        return self.status.is_terminal

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "job_id": self.job_id,
            "platform": self.platform,
            "status": self.status.value,
            "progress": self.progress,
            "current_step": self.current_step,
            "total_steps": self.total_steps,
            "error_message": self.error_message,
            "created_at": self.created_at.isoformat(),
            "started_at": self.started_at.isoformat() if self.started_at else None,
            "finished_at": self.finished_at.isoformat() if self.finished_at else None,
        }


# =============================================================================
# Results
# =============================================================================


@dataclass(frozen=True)
class ScrapingMetadata:
    """Metadata describing a finished scrape."""

    platform: str
    job_id: str
    scraped_at: str
    completed_at: str | None
    total_items: int
    total_duration: int  # milliseconds


@dataclass(frozen=True)
class ScrapingStatistics:
    """Summary statistics for a finished scrape."""

    total_items: int
    duration: int
    success_rate: float = 100.0

    @classmethod
    def from_metadata(cls, metadata: ScrapingMetadata) -> "ScrapingStatistics":
        return cls(
            total_items=metadata.total_items,
            duration=metadata.total_duration,
        )


@dataclass(frozen=True)
class ScrapingResult:
    """Output of one successful job execution."""

    metadata: ScrapingMetadata
    data: dict[str, Any]
    statistics: ScrapingStatistics

    def with_job_id(self, job_id: str) -> "ScrapingResult":
        """Return a copy whose metadata carries the given job id."""
        return replace(self, metadata=replace(self.metadata, job_id=job_id))

    def to_dict(self) -> dict[str, Any]:
        """Stored shape: metadata plus payload."""
        return {
            "metadata": asdict(self.metadata),
            "data": self.data,
        }

    @classmethod
    def from_dict(cls, payload: dict[str, Any]) -> "ScrapingResult":
        """Rebuild a result from its stored shape."""
        meta = payload["metadata"]
        metadata = ScrapingMetadata(
            platform=meta["platform"],
            job_id=meta["job_id"],
            scraped_at=meta["scraped_at"],
            completed_at=meta.get("completed_at"),
            total_items=int(meta.get("total_items", 0)),
            total_duration=int(meta.get("total_duration", 0)),
        )
        return cls(
            metadata=metadata,
            data=payload.get("data") or {},
            statistics=ScrapingStatistics.from_metadata(metadata),
        )


# =============================================================================
# Views
# =============================================================================


@dataclass
class QueueStats:
    """Point-in-time queue statistics."""

    pending_jobs: int
    running_jobs: int
    max_concurrent: int
    paused: bool = False

    @property
    def total_jobs(self) -> int:
        return self.pending_jobs + self.running_jobs


@dataclass
class JobSummary:
    """Tracked job status joined with its stored result, if any."""

    status: JobStatus
    result: ScrapingResult | None = None

    @property
    def job_id(self) -> str:
        return self.status.job_id

    @property
    def platform(self) -> str:
        return self.status.platform
