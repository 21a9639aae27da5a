"""
actorqueue CLI - Main entry point.

Submit Apify scraping jobs, watch them run through the priority queue,
and inspect stored results.
"""

from __future__ import annotations

from pathlib import Path
from typing import Optional

import typer
from dotenv import load_dotenv
from rich.console import Console
from rich.panel import Panel
from rich.table import Table
from rich.traceback import install as install_rich_traceback

from actorqueue import __app_name__, __version__

# Load environment variables from .env (if present)
load_dotenv()

# Install rich traceback for better error display
install_rich_traceback(show_locals=False, width=120)

console = Console()
err_console = Console(stderr=True)

# Create main app
app = typer.Typer(
    name=__app_name__,
    help="Priority job queue for Apify scraping actors",
    rich_markup_mode="rich",
    no_args_is_help=True,
    pretty_exceptions_show_locals=False,
)


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        console.print(f"[bold cyan]{__app_name__}[/bold cyan] version [green]{__version__}[/green]")
        raise typer.Exit()


@app.callback()
def main(
    ctx: typer.Context,
    config: Optional[Path] = typer.Option(
        None,
        "--config",
        "-c",
        help="Path to app.yaml (default: configs/app.yaml)",
        envvar="ACTORQUEUE_CONFIG",
    ),
    version: Optional[bool] = typer.Option(
        None,
        "--version",
        "-v",
        help="Show version and exit",
        callback=version_callback,
        is_eager=True,
    ),
) -> None:
    """actorqueue - Apify scraping job orchestrator."""
    ctx.obj = {"config_path": config}


# =============================================================================
# Import and register subcommand modules
# =============================================================================

from .commands import jobs, results, tokens  # noqa: E402

app.command("run")(jobs.run_jobs)
app.command("batch")(jobs.run_batch)
app.add_typer(results.app, name="results", help="Inspect stored job results")
app.add_typer(tokens.app, name="tokens", help="Manage Apify API tokens")


# =============================================================================
# Init Command
# =============================================================================


SUBREDDIT_TEMPLATE = """\
# One subreddit per line (without r/)
python
"""

TOKEN_TEMPLATE = """\
# One Apify API token per line. Exhausted tokens are removed automatically.
"""


@app.command()
def init(
    ctx: typer.Context,
    force: bool = typer.Option(
        False,
        "--force",
        "-f",
        help="Overwrite existing configuration",
    ),
) -> None:
    """Initialize directories and default configuration.

    Creates configs/app.yaml, the token and subreddit files, and the
    output, data and log directories.
    """
    from rich.progress import Progress, SpinnerColumn, TextColumn

    from actorqueue.core.config.loader import (
        DEFAULT_APP_CONFIG_PATH,
        load_app_config,
        write_default_app_config,
    )

    app_config_path = ctx.obj.get("config_path") or DEFAULT_APP_CONFIG_PATH

    with Progress(
        SpinnerColumn(),
        TextColumn("[progress.description]{task.description}"),
        console=console,
        transient=True,
    ) as progress:
        task = progress.add_task("Creating default configuration...", total=None)

        if not app_config_path.exists() or force:
            write_default_app_config(app_config_path)

        settings = load_app_config(app_config_path)

        progress.update(task, description="Creating directories...")
        settings.ensure_directories()

        for path, template in [
            (settings.apify.token_file, TOKEN_TEMPLATE),
            (settings.actors.subreddit_file, SUBREDDIT_TEMPLATE),
        ]:
            if not path.exists():
                path.parent.mkdir(parents=True, exist_ok=True)
                path.write_text(template, encoding="utf-8")

        if settings.storage.backend.value == "database":
            progress.update(task, description="Initializing database...")

            import asyncio

            from actorqueue.persistence.store import create_result_store

            async def _init_store() -> None:
                store = create_result_store(settings.storage)
                await store.init()
                await store.close()

            asyncio.run(_init_store())

        progress.update(task, description="Done!")

    console.print()
    console.print(Panel.fit(
        "[bold green]OK - actorqueue initialized successfully![/bold green]\n\n"
        "Created:\n"
        f"  - [cyan]{app_config_path}[/cyan] - Application configuration\n"
        f"  - [cyan]{settings.apify.token_file}[/cyan] - Apify tokens\n"
        f"  - [cyan]{settings.actors.subreddit_file}[/cyan] - Subreddits to scrape\n"
        f"  - [cyan]{settings.storage.output_dir}/[/cyan] - Job results\n\n"
        "Next steps:\n"
        "  1. Add a token: [yellow]actorqueue tokens add <token>[/yellow]\n"
        "  2. Run a job: [yellow]actorqueue run -p x -i '{\"keywords\": \"python\", "
        "\"startDate\": \"2024-01-01\", \"endDate\": \"2024-01-07\"}'[/yellow]",
        title="[bold]Initialization Complete[/bold]",
        border_style="green",
    ))


# =============================================================================
# Platforms Command
# =============================================================================


@app.command()
def platforms(ctx: typer.Context) -> None:
    """List supported platforms and their configuration fields."""
    from actorqueue.cli.settings import load_settings
    from actorqueue.core.actors.registry import build_default_registry
    from actorqueue.core.clients.tokens import CredentialRotator, MemoryCredentialStore
    from actorqueue.core.orchestrator.app import build_client

    settings = load_settings(ctx)

    # Listing needs no tokens and makes no requests
    client = build_client(settings, CredentialRotator(MemoryCredentialStore()))
    registry = build_default_registry(client, settings.actors)

    table = Table(title="Platforms", show_header=True, header_style="bold magenta")
    table.add_column("Platform", style="cyan")
    table.add_column("Actor")
    table.add_column("Config fields")

    for strategy in registry.all():
        fields = []
        for name, field in strategy.config_model.model_fields.items():
            if name == "platform":
                continue
            label = field.alias or name
            fields.append(label if field.is_required() else f"[dim]{label}[/dim]")
        table.add_row(strategy.platform, strategy.actor_id, ", ".join(fields))

    console.print(table)
    console.print("[dim]Dimmed fields are optional.[/dim]")


# =============================================================================
# Entry Point
# =============================================================================


def run() -> None:
    """Run the CLI application."""
    app()


if __name__ == "__main__":
    run()
