"""renewable-token CLI entry point.

Operator tool for checking a client-credentials setup and watching the
renewal cycle.
"""

from __future__ import annotations

import logging

import typer

from renewable_token.commands.token_cmd import app as token_app

app = typer.Typer(
    name="renewable-token",
    help="Obtain and keep renewing an OAuth2 client-credentials token.",
    no_args_is_help=True,
)

app.add_typer(token_app, name="token")


@app.callback()
def main(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable verbose logging"),
) -> None:
    """renewable-token — fetch and renew client-credentials tokens."""
    if verbose:
        logging.basicConfig(level=logging.INFO, format="%(levelname)s: %(message)s")


if __name__ == "__main__":
    app()
