"""
Pydantic configuration models for actorqueue.

These models provide type-safe configuration with validation for:
- Apify API access and retry behaviour
- Job queue concurrency and retention
- Result storage
- Platform actor settings
- Logging
"""

from __future__ import annotations

from enum import Enum
from pathlib import Path

from pydantic import BaseModel, Field, field_validator


# =============================================================================
# Enums
# =============================================================================


class StorageBackend(str, Enum):
    """Where job results are persisted."""

    FILE = "file"
    DATABASE = "database"


# =============================================================================
# Apify Configuration
# =============================================================================


class ApifyConfig(BaseModel):
    """Apify API access and retry settings."""

    base_url: str = Field(
        default="https://api.apify.com",
        description="Apify API base URL",
    )
    token_file: Path = Field(
        default=Path("config/apify-token.txt"),
        description="File holding one API token per line",
    )
    timeout_seconds: float = Field(
        default=120.0,
        ge=1.0,
        le=600.0,
        description="HTTP request timeout in seconds",
    )
    max_retries: int = Field(
        default=3,
        ge=1,
        le=10,
        description="Maximum attempts for transient failures",
    )
    retry_delay_seconds: float = Field(
        default=1.5,
        ge=0.0,
        le=60.0,
        description="Fixed delay between retry attempts",
    )
    wait_for_finish_seconds: int = Field(
        default=60,
        ge=0,
        le=60,
        description="Server-side wait per poll of a running actor",
    )
    page_size: int = Field(
        default=1000,
        ge=1,
        le=250000,
        description="Dataset items fetched per request",
    )


# =============================================================================
# Queue Configuration
# =============================================================================


class QueueConfig(BaseModel):
    """Job queue settings."""

    max_concurrent_jobs: int = Field(
        default=5,
        ge=1,
        le=100,
        description="Maximum jobs executing at the same time",
    )
    job_retention_hours: float = Field(
        default=24.0,
        gt=0,
        description="Finished jobs older than this are evicted from the tracker",
    )
    sweep_interval_minutes: float = Field(
        default=30.0,
        gt=0,
        description="How often the eviction sweep runs",
    )


# =============================================================================
# Storage Configuration
# =============================================================================


class StorageConfig(BaseModel):
    """Result storage settings."""

    backend: StorageBackend = Field(
        default=StorageBackend.FILE,
        description="Result store backend",
    )
    output_dir: Path = Field(
        default=Path("output"),
        description="Directory for JSON result files (file backend)",
    )
    database_url: str = Field(
        default="sqlite:///data/actorqueue.db",
        description="SQLAlchemy database URL (database backend)",
    )
    echo: bool = Field(
        default=False,
        description="Echo SQL statements (debugging)",
    )


# =============================================================================
# Actor Configuration
# =============================================================================


class ActorsConfig(BaseModel):
    """Platform actor settings."""

    reddit_actor_id: str = Field(
        default="macrocosmos/reddit-scraper",
        description="Apify actor used for Reddit",
    )
    x_actor_id: str = Field(
        default="rmyzeijic5nBVm8BG",
        description="Apify actor used for X",
    )
    subreddit_file: Path = Field(
        default=Path("config/subreddit.txt"),
        description="File listing subreddits to scrape, one per line",
    )
    x_days_per_range: int = Field(
        default=3,
        ge=1,
        le=31,
        description="Days covered by each X search window",
    )
    reddit_delay_seconds: float = Field(
        default=1.0,
        ge=0.0,
        description="Pause between subreddits",
    )
    x_delay_seconds: float = Field(
        default=2.0,
        ge=0.0,
        description="Pause between X date ranges",
    )


# =============================================================================
# Logging Configuration
# =============================================================================


class LoggingConfig(BaseModel):
    """Logging settings."""

    level: str = Field(
        default="INFO",
        description="Log level (DEBUG, INFO, WARNING, ERROR)",
    )
    file: Path | None = Field(
        default=Path("logs/actorqueue.log"),
        description="Log file path",
    )
    json_format: bool = Field(
        default=True,
        description="Use JSON format for file logs",
    )
    rich_console: bool = Field(
        default=True,
        description="Use Rich for console output",
    )

    @field_validator("level")
    @classmethod
    def level_known(cls, v: str) -> str:
        """Ensure the level is a standard logging level."""
        level = v.upper()
        if level not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError(f"Unknown log level: {v}")
        return level


# =============================================================================
# Application Configuration
# =============================================================================


class AppConfig(BaseModel):
    """Root application configuration.

    This is the main configuration object loaded from app.yaml.
    """

    config_dir: Path = Field(
        default=Path("config"),
        description="Directory for token and subreddit files",
    )
    data_dir: Path = Field(
        default=Path("data"),
        description="Data storage directory",
    )

    apify: ApifyConfig = Field(default_factory=ApifyConfig)
    queue: QueueConfig = Field(default_factory=QueueConfig)
    storage: StorageConfig = Field(default_factory=StorageConfig)
    actors: ActorsConfig = Field(default_factory=ActorsConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    def ensure_directories(self) -> None:
        """Create required directories if they don't exist."""
        for dir_path in [self.config_dir, self.data_dir, self.storage.output_dir]:
            dir_path.mkdir(parents=True, exist_ok=True)

        if self.logging.file:
            self.logging.file.parent.mkdir(parents=True, exist_ok=True)
