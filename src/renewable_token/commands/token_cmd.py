"""CLI commands for obtaining and watching the token."""

from __future__ import annotations

import asyncio
import logging
from typing import Annotated, Optional

import typer
from rich.console import Console

from renewable_token.config import get_settings
from renewable_token.context import AppContext
from renewable_token.errors import TokenError
from renewable_token.utils.errors import handle_error
from renewable_token.utils.output import OutputFormat, print_output, status_row

logger = logging.getLogger(__name__)

console = Console(stderr=True)
app = typer.Typer(name="token", help="Obtain and renew the client-credentials token.")


async def _fetch_once() -> dict:
    ctx = AppContext.from_settings(get_settings())
    try:
        credential = await ctx.start()
        row = status_row(ctx.tokens.get_status())
        row["token_type"] = credential.token_type if credential else "N/A"
        return row
    finally:
        await ctx.aclose()


async def _watch(duration: float | None) -> None:
    stopped = asyncio.Event()

    def on_renewal_error(error: TokenError) -> None:
        console.print(f"[red]Renewal stopped:[/red] {error}")
        stopped.set()

    ctx = AppContext.from_settings(get_settings(), on_renewal_error=on_renewal_error)
    try:
        await ctx.start()
        status = ctx.tokens.get_status()
        if not status.renewal_scheduled:
            console.print("[yellow]Endpoint returned no token; nothing to renew.[/yellow]")
            return
        console.print(
            f"Token obtained; next renewal in [bold]{status.renewal_in or 0:.0f}s[/bold]",
            style="green",
        )
        try:
            await asyncio.wait_for(stopped.wait(), timeout=duration)
        except asyncio.TimeoutError:
            logger.info(f"Watch finished after {duration}s")
    finally:
        await ctx.aclose()


@app.command()
def fetch(
    output: Annotated[OutputFormat, typer.Option("--output", "-o", help="Output format")] = OutputFormat.TABLE,
) -> None:
    """Fetch a token once and display its status."""
    try:
        console.print("Requesting token...", style="yellow")
        result = asyncio.run(_fetch_once())
        print_output(result, output, title="Token")
    except Exception as e:
        handle_error(e)
        raise typer.Exit(1)


@app.command()
def watch(
    duration: Annotated[
        Optional[float], typer.Option("--duration", "-d", help="Stop after this many seconds")
    ] = None,
) -> None:
    """Fetch a token and keep renewing it until interrupted."""
    try:
        asyncio.run(_watch(duration))
    except KeyboardInterrupt:
        console.print("Stopped.", style="yellow")
    except Exception as e:
        handle_error(e)
        raise typer.Exit(1)
