"""
Platform strategy registry.

Maps platform keys to their actor strategies and resolves a typed config
back to the strategy that can run it.
"""

from __future__ import annotations

import logging
from typing import Annotated, Any, Mapping, Union

from pydantic import Field, TypeAdapter

from actorqueue.core.actors.base import ActorStrategy
from actorqueue.core.actors.reddit import RedditActor, RedditConfig
from actorqueue.core.actors.x import XActor, XConfig
from actorqueue.core.clients.base import ScrapingApiClient
from actorqueue.core.config.models import ActorsConfig
from actorqueue.core.errors import PlatformNotSupported
from actorqueue.core.models import PlatformConfig

logger = logging.getLogger(__name__)


AnyPlatformConfig = Annotated[
    Union[RedditConfig, XConfig],
    Field(discriminator="platform"),
]

_config_adapter: TypeAdapter[Any] = TypeAdapter(AnyPlatformConfig)


def parse_platform_config(raw: Mapping[str, Any]) -> RedditConfig | XConfig:
    """Parse a tagged config dict (``{"platform": ..., ...}``) into its model."""
    return _config_adapter.validate_python(dict(raw))


class ActorRegistry:
    """Registry of actor strategies keyed by platform."""

    def __init__(self) -> None:
        self._strategies: dict[str, ActorStrategy] = {}

    def register(self, strategy: ActorStrategy) -> None:
        """Register a strategy. A later registration replaces an earlier one."""
        if strategy.platform in self._strategies:
            logger.warning(f"Replacing strategy for platform '{strategy.platform}'")
        self._strategies[strategy.platform] = strategy
        logger.debug(f"Registered strategy for platform '{strategy.platform}'")

    def get(self, platform: str) -> ActorStrategy:
        """Get the strategy for a platform.

        Raises:
            PlatformNotSupported: If nothing is registered for ``platform``
        """
        try:
            return self._strategies[platform]
        except KeyError:
            raise PlatformNotSupported(platform) from None

    def resolve(self, config: PlatformConfig) -> ActorStrategy:
        """Get the strategy matching a config's platform tag."""
        return self.get(config.platform)

    def is_registered(self, platform: str) -> bool:
        return platform in self._strategies

    def platforms(self) -> list[str]:
        return list(self._strategies)

    def all(self) -> list[ActorStrategy]:
        return list(self._strategies.values())

    def unregister(self, platform: str) -> bool:
        """Remove a platform. Returns False if it was not registered."""
        return self._strategies.pop(platform, None) is not None

    def clear(self) -> None:
        self._strategies.clear()

    def __len__(self) -> int:
        return len(self._strategies)

    def __contains__(self, platform: object) -> bool:
        return platform in self._strategies


def build_default_registry(
    client: ScrapingApiClient,
    settings: ActorsConfig | None = None,
) -> ActorRegistry:
    """Registry with the built-in Reddit and X strategies."""
    settings = settings or ActorsConfig()
    registry = ActorRegistry()

    registry.register(
        RedditActor(
            client,
            settings.reddit_actor_id,
            subreddit_file=settings.subreddit_file,
            delay_seconds=settings.reddit_delay_seconds,
        )
    )
    registry.register(
        XActor(
            client,
            settings.x_actor_id,
            days_per_range=settings.x_days_per_range,
            delay_seconds=settings.x_delay_seconds,
        )
    )

    logger.info(f"Registered {len(registry)} platforms: {', '.join(registry.platforms())}")
    return registry
