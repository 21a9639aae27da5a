"""
Token commands for managing the Apify token pool.
"""

from __future__ import annotations

import typer
from rich.console import Console
from rich.table import Table

from actorqueue.cli.settings import load_settings
from actorqueue.core.clients.tokens import CredentialRotator, TokenFileStore, preview

console = Console()
err_console = Console(stderr=True)

app = typer.Typer(
    help="Manage Apify API tokens",
    no_args_is_help=True,
)


def _rotator(ctx: typer.Context) -> tuple[CredentialRotator, TokenFileStore]:
    settings = load_settings(ctx)
    store = TokenFileStore(settings.apify.token_file)
    rotator = CredentialRotator(store)
    rotator.load()
    return rotator, store


@app.command("count")
def count_tokens(
    ctx: typer.Context,
    show: bool = typer.Option(
        False,
        "--show",
        "-s",
        help="List token previews",
    ),
) -> None:
    """Show how many tokens remain in the pool."""
    rotator, store = _rotator(ctx)

    style = "green" if rotator.count else "red"
    console.print(f"[{style}]{rotator.count}[/{style}] tokens in [cyan]{store.path}[/cyan]")

    if show and rotator.count:
        table = Table(show_header=True, header_style="bold magenta")
        table.add_column("#", justify="right")
        table.add_column("Token")
        for i, token in enumerate(rotator.tokens, start=1):
            table.add_row(str(i), f"{preview(token)}...")
        console.print(table)


@app.command("add")
def add_token(
    ctx: typer.Context,
    token: str = typer.Argument(..., help="Apify API token"),
) -> None:
    """Append a token to the pool."""
    rotator, store = _rotator(ctx)

    if token.strip() in rotator.tokens:
        err_console.print("[yellow]Token already in pool[/yellow]")
        raise typer.Exit(1)

    try:
        total = rotator.add(token)
    except ValueError as e:
        err_console.print(f"[red]{e}[/red]")
        raise typer.Exit(1)

    console.print(f"[green]OK[/green] Added token {preview(token.strip())}... ({total} total)")
