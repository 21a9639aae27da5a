"""
Logging for actorqueue.

Console output goes through Rich; the optional log file gets one JSON
object per line. Job context (platform, job id, actor id) travels as
``extra`` fields so both outputs can show it.
"""

from __future__ import annotations

import logging
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, MutableMapping

import orjson
from rich.console import Console
from rich.markup import escape
from rich.traceback import Traceback

PACKAGE_LOGGER = "actorqueue"

# Record attributes copied into JSON lines when present
CONTEXT_FIELDS = ("platform", "job_id", "actor_id", "attempt", "priority")

LEVEL_STYLES = {
    logging.DEBUG: "dim",
    logging.WARNING: "yellow",
    logging.ERROR: "red",
    logging.CRITICAL: "bold red",
}

PLAIN_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"

# Libraries that log every request at INFO
NOISY_LOGGERS = ("httpx", "httpcore", "apscheduler")


# =============================================================================
# Formatters and Handlers
# =============================================================================


class JSONFormatter(logging.Formatter):
    """One JSON object per record, for machine-readable log files."""

    def format(self, record: logging.LogRecord) -> str:
        entry: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc)
            .isoformat()
            .replace("+00:00", "Z"),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        entry.update(
            {key: getattr(record, key) for key in CONTEXT_FIELDS if hasattr(record, key)}
        )
        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)

        return orjson.dumps(entry, default=str).decode("utf-8")


class RichConsoleHandler(logging.Handler):
    """Colour-coded console output with a short job prefix."""

    def __init__(self, console: Console | None = None, level: int = logging.INFO):
        super().__init__(level)
        self.console = console or Console(stderr=True)

    def _prefix(self, record: logging.LogRecord) -> str:
        parts = []
        platform = getattr(record, "platform", None)
        job_id = getattr(record, "job_id", None)
        if platform:
            parts.append(f"[cyan]{escape(f'[{platform}]')}[/cyan]")
        if job_id:
            parts.append(f"[magenta]{str(job_id)[:8]}[/magenta]")
        return " ".join(parts) + " " if parts else ""

    def emit(self, record: logging.LogRecord) -> None:
        try:
            style = LEVEL_STYLES.get(record.levelno, "default")
            text = f"{self._prefix(record)}[{style}]{escape(record.getMessage())}[/{style}]"
            self.console.print(text, highlight=False)

            if record.exc_info and record.exc_info[0] is not None:
                self.console.print(Traceback.from_exception(*record.exc_info))
        except Exception:
            self.handleError(record)


# =============================================================================
# Setup
# =============================================================================


def _console_handler(level: int, rich_console: bool) -> logging.Handler:
    if rich_console:
        handler: logging.Handler = RichConsoleHandler(level=level)
    else:
        handler = logging.StreamHandler(sys.stderr)
        handler.setFormatter(logging.Formatter(PLAIN_FORMAT))
    handler.setLevel(level)
    return handler


def _file_handler(path: Path, json_format: bool) -> logging.Handler:
    path.parent.mkdir(parents=True, exist_ok=True)
    handler = logging.FileHandler(path, encoding="utf-8")
    # The file keeps everything; the console level only filters the terminal
    handler.setLevel(logging.DEBUG)
    handler.setFormatter(
        JSONFormatter() if json_format else logging.Formatter(PLAIN_FORMAT, datefmt="%Y-%m-%d %H:%M:%S")
    )
    return handler


def setup_logging(
    level: str = "INFO",
    log_file: Path | str | None = None,
    json_format: bool = True,
    rich_console: bool = True,
) -> logging.Logger:
    """Configure the ``actorqueue`` logger tree.

    Calling it again replaces the previous handlers.

    Args:
        level: Console log level name
        log_file: Optional log file path
        json_format: Write the log file as JSON lines
        rich_console: Use Rich instead of a plain stream handler

    Returns:
        The package logger
    """
    numeric_level = logging.getLevelName(level.upper())
    if not isinstance(numeric_level, int):
        raise ValueError(f"Unknown log level: {level}")

    logger = logging.getLogger(PACKAGE_LOGGER)
    logger.handlers.clear()
    logger.setLevel(logging.DEBUG if log_file else numeric_level)
    logger.addHandler(_console_handler(numeric_level, rich_console))

    if log_file:
        logger.addHandler(_file_handler(Path(log_file), json_format))

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    return logger


def get_logger(name: str | None = None) -> logging.Logger:
    """Logger under the package namespace (``actorqueue.<name>``)."""
    return logging.getLogger(f"{PACKAGE_LOGGER}.{name}" if name else PACKAGE_LOGGER)


# =============================================================================
# Job Context
# =============================================================================


class JobLogger(logging.LoggerAdapter):
    """Adapter that stamps every record with a job's platform and id."""

    def process(
        self, msg: Any, kwargs: MutableMapping[str, Any]
    ) -> tuple[Any, MutableMapping[str, Any]]:
        kwargs["extra"] = {**self.extra, **kwargs.get("extra", {})}
        return msg, kwargs


def get_job_logger(
    name: str | None = None,
    platform: str | None = None,
    job_id: str | None = None,
) -> JobLogger:
    """Logger whose records carry ``platform`` and ``job_id``."""
    context = {key: value for key, value in (("platform", platform), ("job_id", job_id)) if value}
    return JobLogger(get_logger(name), context)
