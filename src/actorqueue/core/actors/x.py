"""
X (Twitter) scraping strategy.

The search period is split into short windows, one actor run per window,
with the item budget spread across windows.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import date
from typing import Any, Literal

from pydantic import Field, ValidationInfo, field_validator

from actorqueue.core.actors.base import SCRAPE_PROGRESS_SPAN, ActorStrategy, ProgressReporter
from actorqueue.core.actors.dates import DateRange, format_date, plan_date_ranges
from actorqueue.core.errors import CredentialError
from actorqueue.core.models import PlatformConfig, isoformat_now

logger = logging.getLogger(__name__)

X_ACTOR_ID = "rmyzeijic5nBVm8BG"
DEFAULT_DAYS_PER_RANGE = 3

# Placeholder ids the actor emits for empty or blocked results
INVALID_POST_IDS = {0, "0", "0000000000000000000", None}


class XConfig(PlatformConfig):
    """X search configuration."""

    platform: Literal["x"] = "x"
    keywords: str = Field(description="Search query")
    start_date: date = Field(alias="startDate", description="First day (YYYY-MM-DD)")
    end_date: date = Field(alias="endDate", description="Last day, inclusive (YYYY-MM-DD)")
    max_items: int = Field(
        default=100,
        gt=0,
        alias="maxItems",
        description="Maximum posts overall",
    )

    @field_validator("keywords")
    @classmethod
    def keywords_required(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("Keywords are required")
        return v.strip()

    @field_validator("end_date")
    @classmethod
    def end_not_before_start(cls, v: date, info: ValidationInfo) -> date:
        start = info.data.get("start_date")
        if start is not None and start > v:
            raise ValueError("Start date must be before end date")
        return v


def is_valid_post(item: dict[str, Any]) -> bool:
    post_id = item.get("id")
    try:
        return post_id not in INVALID_POST_IDS
    except TypeError:
        # unhashable ids are not placeholders
        return True


class XActor(ActorStrategy[XConfig]):
    """X posts matching a search query over a date period."""

    platform = "x"
    config_model = XConfig
    default_actor_id = X_ACTOR_ID

    def __init__(
        self,
        client,
        actor_id: str | None = None,
        *,
        days_per_range: int = DEFAULT_DAYS_PER_RANGE,
        delay_seconds: float = 2.0,
    ) -> None:
        super().__init__(client, actor_id)
        self.days_per_range = days_per_range
        self.delay_seconds = delay_seconds

    def build_input(self, window: DateRange, keywords: str) -> dict[str, Any]:
        return {
            "searchTerms": [
                f"{keywords} since:{format_date(window.start)} until:{format_date(window.until)}"
            ],
            "sortBy": "Top",
            "maxItems": window.target_items,
            "minRetweets": 0,
            "minLikes": 0,
            "minReplies": 0,
            "onlyVerifiedUsers": False,
            "onlyBuleVerifiedUsers": False,
            "onlyImage": False,
            "onlyVideo": False,
            "onlyQuote": False,
            "onlyReply": False,
        }

    async def scrape_range(self, window: DateRange, keywords: str) -> list[dict[str, Any]]:
        items = await self.fetch_run_items(self.build_input(window, keywords))
        posts = [item for item in items if is_valid_post(item)]
        return posts[: window.target_items]

    async def run(self, config: XConfig, report: ProgressReporter) -> dict[str, Any]:
        ranges = plan_date_ranges(
            config.start_date,
            config.end_date,
            config.max_items,
            days_per_range=self.days_per_range,
        )

        logger.info(
            f"Starting X scraping with {len(ranges)} ranges (max_items={config.max_items})",
            extra={"platform": self.platform},
        )

        collected: list[dict[str, Any]] = []
        failed: list[str] = []

        for i, window in enumerate(ranges):
            report(
                SCRAPE_PROGRESS_SPAN * i / len(ranges),
                f"Processing range {i + 1}/{len(ranges)} ({window.label()})",
            )

            if window.target_items == 0:
                logger.debug(f"Skipping range {window.label()}: no items allotted")
                continue

            try:
                posts = await self.scrape_range(window, config.keywords)
            except CredentialError:
                raise
            except Exception as e:
                logger.error(f"Failed to scrape range {i + 1} ({window.label()}): {e}")
                failed.append(window.label())
            else:
                collected.extend(posts)
                logger.info(
                    f"Range {i + 1}/{len(ranges)} completed: {len(posts)} posts "
                    f"(total {len(collected)})",
                    extra={"platform": self.platform},
                )

            if i < len(ranges) - 1 and self.delay_seconds > 0:
                await asyncio.sleep(self.delay_seconds)

        return {"items": collected, "ranges": ranges, "failed": failed}

    def transform(self, raw: dict[str, Any], config: XConfig) -> dict[str, Any]:
        return {
            "posts": list(raw["items"]),
            "metadata": {
                "keywords": config.keywords,
                "start_date": format_date(config.start_date),
                "end_date": format_date(config.end_date),
                "total_ranges": len(raw["ranges"]),
                "failed_ranges": raw["failed"],
                "collected_at": isoformat_now(),
            },
        }
