"""
Reddit scraping strategy.

Scrapes each subreddit listed in the subreddit file with one actor run,
keeps posts (not comments) newer than the date limit, and maps them to
the normalized post format.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import date
from pathlib import Path
from typing import Any, Literal

from pydantic import Field

from actorqueue.core.actors.base import SCRAPE_PROGRESS_SPAN, ActorStrategy, ProgressReporter
from actorqueue.core.actors.dates import format_date, parse_timestamp, start_of_day
from actorqueue.core.errors import ActorQueueError, CredentialError
from actorqueue.core.models import PlatformConfig, isoformat_now

logger = logging.getLogger(__name__)

REDDIT_ACTOR_ID = "macrocosmos/reddit-scraper"
DEFAULT_SUBREDDIT_FILE = Path("config/subreddit.txt")

# Upper bound on items requested per subreddit run
MAX_FETCH_PER_SUBREDDIT = 100


class RedditConfig(PlatformConfig):
    """Reddit scraping configuration."""

    platform: Literal["reddit"] = "reddit"
    keywords: str = Field(
        default="",
        description="Keyword filter passed to the actor (empty for all posts)",
    )
    date_limit: date = Field(
        alias="dateLimit",
        description="Oldest post date to keep (YYYY-MM-DD)",
    )
    max_items: int = Field(
        default=100,
        gt=0,
        alias="maxItems",
        description="Maximum posts per subreddit",
    )
    total_limit: int = Field(
        default=0,
        ge=0,
        alias="totalLimit",
        description="Maximum posts overall (0 for unlimited)",
    )
    sort_by: Literal["new", "hot", "top"] = Field(
        default="new",
        alias="sortBy",
        description="Listing order requested from Reddit",
    )


def load_subreddits(path: Path) -> list[str]:
    """Read subreddit names, one per line.

    Blank lines, ``#`` comments and a leading ``r/`` are ignored.
    """
    try:
        content = path.read_text(encoding="utf-8")
    except OSError as e:
        raise ActorQueueError(f"Failed to load subreddits from {path}") from e

    subreddits = []
    for line in content.splitlines():
        name = line.strip()
        if not name or name.startswith("#"):
            continue
        if name.lower().startswith("r/"):
            name = name[2:]
        subreddits.append(name)
    return subreddits


def is_within_date_limit(item: dict[str, Any], date_limit: date) -> bool:
    created = parse_timestamp(item.get("createdAt"))
    return created is not None and created >= start_of_day(date_limit)


def convert_post(item: dict[str, Any]) -> dict[str, Any]:
    """Map an actor item to the normalized post format."""
    media = item.get("media") or []
    media_bundle = None
    if media:
        primary = media[0]
        media_bundle = {
            "primaryUrl": primary,
            "thumbnailUrl": primary,
            "isVideo": "v.redd.it" in (primary or ""),
        }

    return {
        "entityType": item.get("dataType"),
        "entityId": item.get("id"),
        "redditId": item.get("id"),
        "permalink": item.get("url"),
        "headline": item.get("title") or "",
        "textBody": item.get("body") or "",
        "mediaBundle": media_bundle,
        "authorHandle": item.get("username"),
        "communityTag": item.get("communityName"),
        "voteScore": item.get("score"),
        "commentTotal": item.get("num_comments") or 0,
        "createdAt": item.get("createdAt"),
        "collectedAt": isoformat_now(),
    }


class RedditActor(ActorStrategy[RedditConfig]):
    """Reddit posts across a fixed list of subreddits."""

    platform = "reddit"
    config_model = RedditConfig
    default_actor_id = REDDIT_ACTOR_ID

    def __init__(
        self,
        client,
        actor_id: str | None = None,
        *,
        subreddit_file: Path | str = DEFAULT_SUBREDDIT_FILE,
        delay_seconds: float = 1.0,
    ) -> None:
        super().__init__(client, actor_id)
        self.subreddit_file = Path(subreddit_file)
        self.delay_seconds = delay_seconds

    def build_input(self, subreddit: str, config: RedditConfig) -> dict[str, Any]:
        run_input: dict[str, Any] = {
            "subreddits": [subreddit],
            "sort": config.sort_by,
            # Over-fetch to leave room for the comment and date filters
            "limit": min(config.max_items * 2, MAX_FETCH_PER_SUBREDDIT),
        }
        if config.keywords.strip():
            run_input["keyword"] = config.keywords.strip()
        return run_input

    async def scrape_subreddit(self, subreddit: str, config: RedditConfig) -> list[dict[str, Any]]:
        items = await self.fetch_run_items(self.build_input(subreddit, config))

        posts = [
            item for item in items
            if item.get("dataType") == "post" and is_within_date_limit(item, config.date_limit)
        ]
        return posts[: config.max_items]

    async def run(self, config: RedditConfig, report: ProgressReporter) -> dict[str, Any]:
        subreddits = load_subreddits(self.subreddit_file)

        logger.info(
            f"Starting Reddit scraping for {len(subreddits)} subreddits "
            f"(keywords={config.keywords or '(all posts)'}, "
            f"total_limit={config.total_limit or 'unlimited'})",
            extra={"platform": self.platform},
        )

        collected: list[dict[str, Any]] = []
        failed: list[str] = []

        for i, subreddit in enumerate(subreddits):
            if config.total_limit and len(collected) >= config.total_limit:
                logger.info(f"Total limit reached ({config.total_limit}), stopping")
                break

            report(
                SCRAPE_PROGRESS_SPAN * i / len(subreddits),
                f"Scraping r/{subreddit} ({i + 1}/{len(subreddits)})",
            )

            try:
                posts = await self.scrape_subreddit(subreddit, config)
            except CredentialError:
                raise
            except Exception as e:
                logger.error(f"Failed to scrape r/{subreddit}: {e}")
                failed.append(subreddit)
            else:
                if config.total_limit:
                    posts = posts[: config.total_limit - len(collected)]
                collected.extend(posts)
                logger.info(
                    f"r/{subreddit}: {len(posts)} posts collected (total {len(collected)})",
                    extra={"platform": self.platform},
                )

            if i < len(subreddits) - 1 and self.delay_seconds > 0:
                await asyncio.sleep(self.delay_seconds)

        return {"items": collected, "subreddits": subreddits, "failed": failed}

    def transform(self, raw: dict[str, Any], config: RedditConfig) -> dict[str, Any]:
        return {
            "posts": [convert_post(item) for item in raw["items"]],
            "metadata": {
                "keywords": config.keywords,
                "subreddits": raw["subreddits"],
                "failed_subreddits": raw["failed"],
                "date_limit": format_date(config.date_limit),
                "max_items": config.max_items,
                "total_limit": config.total_limit,
                "sort_by": config.sort_by,
                "scraped_at": isoformat_now(),
            },
        }
