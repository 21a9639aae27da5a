"""
YAML configuration loading.

``app.yaml`` is optional: a missing file means all defaults. String values
may reference environment variables as ``${VAR}`` or ``${VAR:-default}``;
they are expanded before validation.
"""

from __future__ import annotations

import os
import re
from pathlib import Path
from typing import Any

import yaml
from pydantic import ValidationError

from .models import AppConfig

DEFAULT_APP_CONFIG_PATH = Path("configs/app.yaml")

_ENV_PATTERN = re.compile(r"\$\{([^}:]+)(?::-([^}]*))?\}")


class ConfigError(Exception):
    """A config file could not be read, parsed or validated."""

    def __init__(self, message: str, path: Path | None = None, details: str | None = None):
        self.path = path
        self.details = details
        super().__init__(message)


def read_yaml_mapping(path: Path) -> dict[str, Any]:
    """Parse a YAML file whose top level must be a mapping.

    An empty file yields an empty dict.

    Raises:
        ConfigError: If the file is missing, unreadable or not a mapping
    """
    try:
        text = path.read_text(encoding="utf-8")
    except FileNotFoundError as e:
        raise ConfigError(f"Configuration file not found: {path}", path=path) from e
    except OSError as e:
        raise ConfigError(f"Cannot read {path}", path=path, details=str(e)) from e

    try:
        document = yaml.safe_load(text)
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in {path}", path=path, details=str(e)) from e

    if document is None:
        return {}
    if not isinstance(document, dict):
        raise ConfigError(
            f"Expected a mapping at the top of {path}, got {type(document).__name__}",
            path=path,
        )
    return document


def _substitute(match: re.Match[str]) -> str:
    name, default = match.group(1), match.group(2)
    return os.environ.get(name, default or "")


def expand_env(value: Any) -> Any:
    """Expand ``${VAR}`` references in every string of a nested structure."""
    if isinstance(value, str):
        return _ENV_PATTERN.sub(_substitute, value)
    if isinstance(value, dict):
        return {key: expand_env(item) for key, item in value.items()}
    if isinstance(value, list):
        return [expand_env(item) for item in value]
    return value


def load_app_config(path: Path | str | None = None, expand_env_vars: bool = True) -> AppConfig:
    """Load ``app.yaml`` into an AppConfig.

    Args:
        path: Config file (default: configs/app.yaml)
        expand_env_vars: Expand environment references before validation

    Raises:
        ConfigError: If the file exists but is invalid
    """
    path = Path(path) if path is not None else DEFAULT_APP_CONFIG_PATH
    if not path.exists():
        return AppConfig()

    raw = read_yaml_mapping(path)
    if expand_env_vars:
        raw = expand_env(raw)

    try:
        return AppConfig.model_validate(raw)
    except ValidationError as e:
        raise ConfigError(f"Invalid app configuration in {path}", path=path, details=str(e)) from e


def load_yaml_document(path: Path | str, expand_env_vars: bool = True) -> dict[str, Any]:
    """Load a job config or batch file (a YAML or JSON mapping)."""
    raw = read_yaml_mapping(Path(path))
    return expand_env(raw) if expand_env_vars else raw


DEFAULT_APP_CONFIG = """\
# actorqueue configuration
# Values support ${VAR} and ${VAR:-default} environment expansion

config_dir: config
data_dir: data

apify:
  base_url: https://api.apify.com
  token_file: ${APIFY_TOKEN_FILE_PATH:-config/apify-token.txt}
  timeout_seconds: 120
  max_retries: 3
  retry_delay_seconds: 1.5
  wait_for_finish_seconds: 60

queue:
  max_concurrent_jobs: ${MAX_CONCURRENT_JOBS:-5}
  job_retention_hours: 24
  sweep_interval_minutes: 30

storage:
  backend: file
  output_dir: ${OUTPUT_DIR:-output}
  database_url: ${DATABASE_URL:-sqlite:///data/actorqueue.db}

actors:
  subreddit_file: config/subreddit.txt
  x_days_per_range: 3
  reddit_delay_seconds: 1.0
  x_delay_seconds: 2.0

logging:
  level: ${LOG_LEVEL:-INFO}
  file: logs/actorqueue.log
  json_format: true
  rich_console: true
"""


def write_default_app_config(path: Path | str = DEFAULT_APP_CONFIG_PATH) -> Path:
    """Write the default app.yaml template."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(DEFAULT_APP_CONFIG, encoding="utf-8")
    return path
