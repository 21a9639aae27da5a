"""Job scheduling - priority queue, status tracking and maintenance."""

from .progress import CANCELLED_BY_USER, ProgressTracker
from .queue import JobCallback, JobQueue, QueueEntry
from .service import MaintenanceScheduler

__all__ = [
    "CANCELLED_BY_USER",
    "JobCallback",
    "JobQueue",
    "MaintenanceScheduler",
    "ProgressTracker",
    "QueueEntry",
]
