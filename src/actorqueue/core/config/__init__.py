"""Configuration loading and validation."""

from .models import (
    # Enums
    StorageBackend,
    # Config models
    ActorsConfig,
    ApifyConfig,
    AppConfig,
    LoggingConfig,
    QueueConfig,
    StorageConfig,
)
from .loader import ConfigError, load_app_config, load_yaml_document, write_default_app_config

__all__ = [
    # Enums
    "StorageBackend",
    # Config models
    "ActorsConfig",
    "ApifyConfig",
    "AppConfig",
    "LoggingConfig",
    "QueueConfig",
    "StorageConfig",
    # Loaders
    "ConfigError",
    "load_app_config",
    "load_yaml_document",
    "write_default_app_config",
]
