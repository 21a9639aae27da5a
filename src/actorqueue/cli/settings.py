"""
Shared CLI helpers: configuration loading and logging setup.
"""

from __future__ import annotations

from pathlib import Path

import typer
from rich.console import Console

from actorqueue.core.config.loader import ConfigError, load_app_config
from actorqueue.core.config.models import AppConfig
from actorqueue.core.logging import setup_logging

err_console = Console(stderr=True)


def config_path(ctx: typer.Context) -> Path | None:
    """Config file chosen with the global ``--config`` option."""
    obj = ctx.find_root().obj or {}
    return obj.get("config_path")


def load_settings(ctx: typer.Context, log_level: str | None = None) -> AppConfig:
    """Load the app config and configure logging, exiting on bad config."""
    try:
        settings = load_app_config(config_path(ctx))
    except ConfigError as e:
        err_console.print(f"[red]Configuration error:[/red] {e}")
        if e.details:
            err_console.print(f"[dim]{e.details}[/dim]")
        raise typer.Exit(1)

    setup_logging(
        level=log_level or settings.logging.level,
        log_file=settings.logging.file,
        json_format=settings.logging.json_format,
        rich_console=settings.logging.rich_console,
    )
    return settings
