"""
Job commands: submit scraping jobs and watch them run.
"""

from __future__ import annotations

import asyncio
from pathlib import Path
from typing import Any, List, Optional

import orjson
import typer
from rich.console import Console
from rich.progress import BarColumn, Progress, SpinnerColumn, TextColumn, TimeElapsedColumn
from rich.table import Table

from actorqueue.cli.settings import load_settings
from actorqueue.core.config.loader import ConfigError, load_yaml_document
from actorqueue.core.config.models import AppConfig
from actorqueue.core.errors import ActorQueueError
from actorqueue.core.models import JobStatus, Priority, ScrapingOptions, ScrapingRequest

console = Console()
err_console = Console(stderr=True)

# How often the progress display is refreshed
REFRESH_SECONDS = 0.5

STATUS_STYLES = {
    "pending": "dim",
    "running": "cyan",
    "completed": "green",
    "failed": "red",
    "cancelled": "yellow",
}


def _parse_input(value: str) -> dict[str, Any]:
    """Read a job config from a YAML/JSON file path or an inline JSON object."""
    path = Path(value)
    if path.suffix.lower() in {".yaml", ".yml", ".json"} or path.is_file():
        try:
            return load_yaml_document(path)
        except ConfigError as e:
            err_console.print(f"[red]Cannot load job config:[/red] {e}")
            raise typer.Exit(1)

    try:
        data = orjson.loads(value)
    except orjson.JSONDecodeError as e:
        err_console.print(f"[red]Invalid JSON config:[/red] {e}")
        raise typer.Exit(1)

    if not isinstance(data, dict):
        err_console.print("[red]Job config must be a JSON object[/red]")
        raise typer.Exit(1)
    return data


def _batch_requests(path: Path) -> tuple[list[ScrapingRequest], int | None]:
    """Parse a batch file into requests plus an optional concurrency override.

    Format::

        max_concurrent: 2
        jobs:
          - platform: reddit
            priority: high
            config: {dateLimit: "2024-01-01"}
    """
    try:
        document = load_yaml_document(path)
    except ConfigError as e:
        err_console.print(f"[red]Cannot load batch file:[/red] {e}")
        raise typer.Exit(1)

    entries = document.get("jobs")
    if not isinstance(entries, list) or not entries:
        err_console.print(f"[red]Batch file {path} has no 'jobs' list[/red]")
        raise typer.Exit(1)

    requests = []
    for i, entry in enumerate(entries, start=1):
        if not isinstance(entry, dict):
            err_console.print(f"[red]Job #{i} is not a mapping[/red]")
            raise typer.Exit(1)

        options = dict(entry.get("options") or {})
        if "priority" in entry:
            options["priority"] = entry["priority"]

        try:
            requests.append(ScrapingRequest(
                platform=entry.get("platform", ""),
                config=entry.get("config") or {},
                options=ScrapingOptions.model_validate(options),
            ))
        except ValueError as e:
            err_console.print(f"[red]Job #{i} is invalid:[/red] {e}")
            raise typer.Exit(1)

    max_concurrent = document.get("max_concurrent")
    return requests, int(max_concurrent) if max_concurrent else None


async def _run_requests(
    settings: AppConfig,
    requests: list[ScrapingRequest],
    max_concurrent: int | None,
) -> list[tuple[ScrapingRequest, JobStatus | None, str | None]]:
    """Submit requests, show live progress, and return final statuses."""
    from actorqueue.core.orchestrator.app import open_service

    outcomes: list[tuple[ScrapingRequest, JobStatus | None, str | None]] = []

    async with open_service(settings, max_concurrent=max_concurrent) as service:
        submitted = []
        for request in requests:
            try:
                job = service.start_job(request)
            except ActorQueueError as e:
                err_console.print(f"[red]Rejected {request.platform} job:[/red] {e}")
                outcomes.append((request, None, str(e)))
                continue
            submitted.append((request, job))

        if submitted:
            with Progress(
                SpinnerColumn(),
                TextColumn("[progress.description]{task.description}"),
                BarColumn(),
                TextColumn("{task.percentage:>3.0f}%"),
                TimeElapsedColumn(),
                console=console,
            ) as progress:
                tasks = {
                    job.id: progress.add_task(f"[dim]{job.platform} {job.id[:8]} queued[/dim]", total=100)
                    for _, job in submitted
                }

                joined = asyncio.create_task(service.join())
                while True:
                    for job_id, task in tasks.items():
                        status = service.get_job_status(job_id)
                        style = STATUS_STYLES.get(status.status.value, "default")
                        progress.update(
                            task,
                            completed=status.progress,
                            description=(
                                f"[{style}]{status.platform} {job_id[:8]}[/{style}] "
                                f"{status.current_step}"
                            ),
                        )
                    if joined.done():
                        break
                    await asyncio.wait({joined}, timeout=REFRESH_SECONDS)

        for request, job in submitted:
            status = service.get_job_status(job.id)
            outcomes.append((request, status, status.error_message))

    return outcomes


def _show_summary(outcomes: list[tuple[ScrapingRequest, JobStatus | None, str | None]]) -> None:
    """Display a summary table of finished jobs."""
    table = Table(title="Job Summary", show_header=True, header_style="bold magenta")
    table.add_column("Job", style="cyan")
    table.add_column("Platform")
    table.add_column("Priority")
    table.add_column("Status", justify="center")
    table.add_column("Duration", justify="right")
    table.add_column("Error")

    for request, status, error in outcomes:
        if status is None:
            table.add_row("-", request.platform, request.options.priority.value, "[red]rejected[/red]", "-", error or "")
            continue

        style = STATUS_STYLES.get(status.status.value, "default")
        duration = "-"
        if status.started_at and status.finished_at:
            duration = f"{(status.finished_at - status.started_at).total_seconds():.1f}s"

        table.add_row(
            status.job_id,
            status.platform,
            request.options.priority.value,
            f"[{style}]{status.status.value}[/{style}]",
            duration,
            error or "",
        )

    console.print(table)


def _exit_code(outcomes: list[tuple[ScrapingRequest, JobStatus | None, str | None]]) -> int:
    return 0 if all(status is not None and status.status.value == "completed" for _, status, _ in outcomes) else 1


def run_jobs(
    ctx: typer.Context,
    platform: str = typer.Option(
        ...,
        "--platform",
        "-p",
        help="Platform to scrape (see 'actorqueue platforms')",
    ),
    inputs: List[str] = typer.Option(
        ...,
        "--input",
        "-i",
        help="Job config as a JSON object or a YAML/JSON file; repeat for several jobs",
    ),
    priority: Priority = typer.Option(
        Priority.NORMAL,
        "--priority",
        help="Queue priority",
        case_sensitive=False,
    ),
    max_concurrent: Optional[int] = typer.Option(
        None,
        "--max-concurrent",
        "-n",
        min=1,
        help="Maximum jobs running at once (default from config)",
    ),
    log_level: Optional[str] = typer.Option(
        None,
        "--log-level",
        help="Override the configured log level",
    ),
) -> None:
    """Run one or more scraping jobs for a platform.

    Examples:
        actorqueue run -p reddit -i '{"dateLimit": "2024-01-01", "maxItems": 50}'
        actorqueue run -p x -i jobs/x-week.yaml --priority high
    """
    settings = load_settings(ctx, log_level)

    requests = [
        ScrapingRequest(
            platform=platform,
            config=_parse_input(value),
            options=ScrapingOptions(priority=priority),
        )
        for value in inputs
    ]

    console.print()
    console.print(f"[bold]Submitting {len(requests)} {platform} job(s)[/bold]")
    console.print()

    outcomes = asyncio.run(_run_requests(settings, requests, max_concurrent))

    console.print()
    _show_summary(outcomes)
    raise typer.Exit(_exit_code(outcomes))


def run_batch(
    ctx: typer.Context,
    batch_file: Path = typer.Argument(
        ...,
        exists=True,
        dir_okay=False,
        help="YAML file listing jobs",
    ),
    max_concurrent: Optional[int] = typer.Option(
        None,
        "--max-concurrent",
        "-n",
        min=1,
        help="Maximum jobs running at once (overrides the batch file)",
    ),
    log_level: Optional[str] = typer.Option(
        None,
        "--log-level",
        help="Override the configured log level",
    ),
) -> None:
    """Run a batch of jobs from a YAML file through the priority queue."""
    settings = load_settings(ctx, log_level)
    requests, file_max_concurrent = _batch_requests(batch_file)

    console.print()
    console.print(f"[bold]Submitting {len(requests)} jobs from {batch_file}[/bold]")
    console.print()

    outcomes = asyncio.run(_run_requests(settings, requests, max_concurrent or file_max_concurrent))

    console.print()
    _show_summary(outcomes)
    raise typer.Exit(_exit_code(outcomes))
