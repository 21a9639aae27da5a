"""Platform actor strategies and the registry that maps platforms to them."""

from .base import ActorStrategy, ProgressReporter, format_validation_errors
from .dates import DateRange, distribute_items, plan_date_ranges, split_date_range
from .reddit import RedditActor, RedditConfig
from .x import XActor, XConfig
from .registry import (
    ActorRegistry,
    AnyPlatformConfig,
    build_default_registry,
    parse_platform_config,
)

__all__ = [
    # Base
    "ActorStrategy",
    "ProgressReporter",
    "format_validation_errors",
    # Dates
    "DateRange",
    "distribute_items",
    "plan_date_ranges",
    "split_date_range",
    # Platforms
    "RedditActor",
    "RedditConfig",
    "XActor",
    "XConfig",
    # Registry
    "ActorRegistry",
    "AnyPlatformConfig",
    "build_default_registry",
    "parse_platform_config",
]
