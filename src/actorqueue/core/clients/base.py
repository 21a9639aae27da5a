"""
API client base classes and data structures.

Defines the contract platform actors use to reach the scraping backend.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Protocol


# Actor run statuses after which the run will not change again
TERMINAL_RUN_STATUSES = frozenset({
    "SUCCEEDED",
    "FAILED",
    "TIMED-OUT",
    "ABORTED",
})


@dataclass
class RunResult:
    """Outcome of an actor run."""

    id: str
    status: str
    default_dataset_id: str | None = None

    @property
    def succeeded(self) -> bool:
        return self.status == "SUCCEEDED"


@dataclass
class Dataset:
    """Dataset summary."""

    id: str
    item_count: int


@dataclass
class ItemList:
    """A slice of dataset items."""

    items: list[dict[str, Any]] = field(default_factory=list)
    total: int = 0
    offset: int = 0
    count: int = 0


class ScrapingApiClient(Protocol):
    """What an actor strategy needs from the backend API."""

    async def invoke(self, actor_id: str, run_input: dict[str, Any]) -> RunResult:
        """Run an actor to completion."""
        ...

    async def get_dataset(self, dataset_id: str) -> Dataset:
        """Fetch dataset summary."""
        ...

    async def list_results(
        self,
        dataset_id: str,
        limit: int | None = None,
        offset: int = 0,
    ) -> ItemList:
        """List items stored in a dataset."""
        ...
