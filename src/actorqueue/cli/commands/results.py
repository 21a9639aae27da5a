"""
Result commands for viewing and exporting stored job results.
"""

from __future__ import annotations

import asyncio
from pathlib import Path
from typing import Any, Awaitable, Callable, Optional, TypeVar

import orjson
import typer
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from actorqueue.cli.settings import load_settings
from actorqueue.persistence.store import ResultStore, create_result_store

console = Console()
err_console = Console(stderr=True)

app = typer.Typer(
    help="Inspect stored job results",
    no_args_is_help=True,
)

T = TypeVar("T")


def _with_store(ctx: typer.Context, action: Callable[[ResultStore], Awaitable[T]]) -> T:
    """Open the configured result store, run ``action``, close the store."""
    settings = load_settings(ctx)

    async def _run() -> T:
        store = create_result_store(settings.storage)
        await store.init()
        try:
            return await action(store)
        finally:
            await store.close()

    return asyncio.run(_run())


@app.command("list")
def list_results(
    ctx: typer.Context,
    platform: Optional[str] = typer.Option(
        None,
        "--platform",
        "-p",
        help="Only show results for this platform",
    ),
    limit: int = typer.Option(
        20,
        "--limit",
        "-n",
        min=1,
        help="Maximum results to show",
    ),
    offset: int = typer.Option(
        0,
        "--offset",
        min=0,
        help="Skip this many results",
    ),
) -> None:
    """List stored results, newest first."""
    results = _with_store(ctx, lambda store: store.list(platform=platform, limit=limit, offset=offset))

    if not results:
        console.print("[dim]No results stored yet.[/dim]")
        return

    table = Table(title="Stored Results", show_header=True, header_style="bold magenta")
    table.add_column("Job", style="cyan")
    table.add_column("Platform")
    table.add_column("Items", justify="right")
    table.add_column("Duration", justify="right")
    table.add_column("Scraped At")

    for result in results:
        meta = result.metadata
        table.add_row(
            meta.job_id,
            meta.platform,
            str(meta.total_items),
            f"{meta.total_duration / 1000:.1f}s",
            meta.scraped_at,
        )

    console.print(table)


@app.command("show")
def show_result(
    ctx: typer.Context,
    job_id: str = typer.Argument(..., help="Job id"),
    output: Optional[Path] = typer.Option(
        None,
        "--output",
        "-o",
        help="Write the full result as JSON to this file",
    ),
    items: int = typer.Option(
        5,
        "--items",
        min=0,
        help="Number of items to preview",
    ),
) -> None:
    """Show a stored result."""
    result = _with_store(ctx, lambda store: store.load(job_id))

    if result is None:
        err_console.print(f"[red]No result stored for job:[/red] {job_id}")
        raise typer.Exit(1)

    meta = result.metadata
    stats = result.statistics
    console.print(Panel.fit(
        f"Platform: [cyan]{meta.platform}[/cyan]\n"
        f"Items: [bold]{meta.total_items}[/bold]\n"
        f"Duration: {stats.duration / 1000:.1f}s\n"
        f"Success rate: {stats.success_rate:.0f}%\n"
        f"Scraped at: {meta.scraped_at}\n"
        f"Completed at: {meta.completed_at or '-'}",
        title=f"[bold]Job {meta.job_id}[/bold]",
        border_style="cyan",
    ))

    if output is not None:
        output.parent.mkdir(parents=True, exist_ok=True)
        output.write_bytes(orjson.dumps(result.to_dict(), option=orjson.OPT_INDENT_2))
        console.print(f"[green]OK[/green] Wrote {output}")
        return

    posts: list[Any] = result.data.get("posts") or []
    if posts and items:
        console.print(f"[bold]First {min(items, len(posts))} of {len(posts)} items:[/bold]")
        console.print_json(orjson.dumps(posts[:items]).decode("utf-8"))


@app.command("delete")
def delete_result(
    ctx: typer.Context,
    job_id: str = typer.Argument(..., help="Job id"),
    yes: bool = typer.Option(
        False,
        "--yes",
        "-y",
        help="Don't ask for confirmation",
    ),
) -> None:
    """Delete a stored result."""
    if not yes and not typer.confirm(f"Delete result for job {job_id}?", default=False):
        raise typer.Abort()

    deleted = _with_store(ctx, lambda store: store.delete(job_id))

    if not deleted:
        err_console.print(f"[red]No result stored for job:[/red] {job_id}")
        raise typer.Exit(1)

    console.print(f"[green]OK[/green] Deleted result for job {job_id}")
