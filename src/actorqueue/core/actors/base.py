"""
Actor strategy base class and interfaces.

Defines the contract for platform-specific scraping through an Apify actor.
"""

from __future__ import annotations

import logging
import time
from abc import ABC, abstractmethod
from typing import Any, Callable, ClassVar, Generic, Mapping, TypeVar

from pydantic import ValidationError

from actorqueue.core.clients.base import ScrapingApiClient
from actorqueue.core.errors import InvalidConfig
from actorqueue.core.models import (
    PlatformConfig,
    ScrapingMetadata,
    ScrapingResult,
    ScrapingStatistics,
    isoformat_now,
)

logger = logging.getLogger(__name__)

ConfigT = TypeVar("ConfigT", bound=PlatformConfig)

# report(progress_percent, current_step)
ProgressReporter = Callable[[float, str], None]

# Share of the progress bar used by the scraping phase
SCRAPE_PROGRESS_SPAN = 90.0


def _ignore_progress(progress: float, step: str) -> None:
    pass


def format_validation_errors(error: ValidationError) -> list[str]:
    """Flatten a pydantic ValidationError into readable messages."""
    messages: list[str] = []

    for item in error.errors():
        msg = str(item.get("msg", "invalid value"))
        if msg.startswith("Value error, "):
            msg = msg[len("Value error, "):]

        loc = ".".join(str(part) for part in item.get("loc", ()) if part != "platform")
        messages.append(f"{loc}: {msg}" if loc else msg)

    return messages


class ActorStrategy(ABC, Generic[ConfigT]):
    """Base class for platform scraping strategies.

    Each platform (reddit, x, ...) implements this interface to turn a
    validated config into actor runs and a normalized payload.
    """

    platform: ClassVar[str]
    config_model: ClassVar[type[PlatformConfig]]
    default_actor_id: ClassVar[str]

    def __init__(self, client: ScrapingApiClient, actor_id: str | None = None) -> None:
        """Initialize the strategy.

        Args:
            client: API client used for actor runs
            actor_id: Override for the platform's default actor
        """
        self.client = client
        self.actor_id = actor_id or self.default_actor_id

    def validate(self, raw: Mapping[str, Any] | PlatformConfig) -> ConfigT:
        """Validate a raw config into this platform's config model.

        Raises:
            InvalidConfig: Listing every violation found
        """
        if isinstance(raw, self.config_model):
            return raw  # type: ignore[return-value]

        data = dict(raw.model_dump() if isinstance(raw, PlatformConfig) else raw)
        data["platform"] = self.platform

        try:
            return self.config_model.model_validate(data)  # type: ignore[return-value]
        except ValidationError as e:
            raise InvalidConfig(format_validation_errors(e), platform=self.platform) from e

    @abstractmethod
    async def run(self, config: ConfigT, report: ProgressReporter) -> Any:
        """Run the actor(s) and return raw collected data."""
        pass

    @abstractmethod
    def transform(self, raw: Any, config: ConfigT) -> dict[str, Any]:
        """Convert raw data into the platform payload."""
        pass

    def count_items(self, data: dict[str, Any]) -> int:
        posts = data.get("posts")
        return len(posts) if isinstance(posts, list) else 0

    async def execute(
        self,
        config: ConfigT,
        report: ProgressReporter | None = None,
    ) -> ScrapingResult:
        """Run a complete scrape and wrap the payload in a result.

        The result's job id is empty; the orchestrator stamps it.

        Args:
            config: Validated platform config
            report: Progress callback

        Returns:
            ScrapingResult with metadata and statistics
        """
        report = report or _ignore_progress
        started = time.monotonic()
        scraped_at = isoformat_now()

        logger.info(
            f"Starting scrape for {self.platform}",
            extra={"platform": self.platform, "actor_id": self.actor_id},
        )

        try:
            raw = await self.run(config, report)
            report(SCRAPE_PROGRESS_SPAN, "Transforming results")
            data = self.transform(raw, config)
        except Exception as e:
            logger.error(
                f"Error in {self.platform} actor: {e}",
                extra={"platform": self.platform},
            )
            raise

        metadata = ScrapingMetadata(
            platform=self.platform,
            job_id="",
            scraped_at=scraped_at,
            completed_at=isoformat_now(),
            total_items=self.count_items(data),
            total_duration=int((time.monotonic() - started) * 1000),
        )

        logger.info(
            f"Scraping completed for {self.platform}: "
            f"{metadata.total_items} items in {metadata.total_duration}ms",
            extra={"platform": self.platform},
        )

        return ScrapingResult(
            metadata=metadata,
            data=data,
            statistics=ScrapingStatistics.from_metadata(metadata),
        )

    async def fetch_run_items(self, run_input: dict[str, Any]) -> list[dict[str, Any]]:
        """Run the actor once and return every item of its dataset."""
        run = await self.client.invoke(self.actor_id, run_input)

        if not run.default_dataset_id:
            logger.warning(f"Actor run {run.id} has no dataset")
            return []

        result = await self.client.list_results(run.default_dataset_id)
        return result.items
