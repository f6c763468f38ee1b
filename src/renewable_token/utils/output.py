"""Output formatting for the CLI."""

from __future__ import annotations

import json
import sys
from enum import Enum
from typing import Any

from rich.console import Console
from rich.table import Table

from renewable_token.models.auth import TokenStatus

console = Console(stderr=True)


class OutputFormat(str, Enum):
    TABLE = "table"
    JSON = "json"


def status_row(status: TokenStatus) -> dict[str, Any]:
    """Flatten a TokenStatus for display. Never includes the token itself."""
    return {
        "has_token": status.has_token,
        "is_expired": status.is_expired,
        "expires_at": str(status.expires_at) if status.expires_at else "N/A",
        "seconds_remaining": status.seconds_remaining or 0,
        "renewal_in": round(status.renewal_in, 1) if status.renewal_in is not None else "N/A",
        "last_error": status.last_error or "",
    }


def print_output(
    data: dict[str, Any],
    fmt: OutputFormat = OutputFormat.TABLE,
    title: str | None = None,
) -> None:
    """Print a single record in the requested format."""
    if fmt == OutputFormat.JSON:
        json.dump(data, sys.stdout, indent=2, default=str)
        sys.stdout.write("\n")
        return

    table = Table(title=title, show_lines=False)
    table.add_column("field")
    table.add_column("value", overflow="fold")
    for key, value in data.items():
        table.add_row(key, str(value))
    console.print(table)
