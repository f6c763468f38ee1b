"""Structured error output for the CLI."""

from __future__ import annotations

import json
import sys

from rich.console import Console

from renewable_token.config import ConfigError
from renewable_token.errors import GrantError, ProtocolError, TransportError

console = Console(stderr=True)

# Actionable hints keyed by error substring
_ERROR_HINTS: list[tuple[str, str]] = [
    ("HTTP 401", "Client credentials were rejected; check the client ID and secret"),
    ("HTTP 403", "Client is not allowed the client_credentials grant"),
    ("HTTP 400", "Token endpoint rejected the request; check the token URL"),
    ("not valid JSON", "Token URL may point at a non-OAuth page; check the token URL"),
    ("expires_in", "Token endpoint response is missing a usable expires_in"),
    ("Missing required configuration", "Set the variables in your environment or .env file"),
    ("timed out", "Request timed out; raise RENEWABLE_TOKEN_TIMEOUT or check connectivity"),
    ("certificate", "TLS verification failed; check the endpoint certificate chain"),
    ("Cannot retrieve a token", "Token endpoint unreachable; check network connectivity"),
]


def _get_hint(error_message: str) -> str | None:
    """Match an error message to an actionable hint."""
    lower = error_message.lower()
    for pattern, hint in _ERROR_HINTS:
        if pattern.lower() in lower:
            return hint
    return None


def _get_code(error: Exception) -> str:
    if isinstance(error, GrantError):
        return "AUTH_ERROR" if error.status_code in (401, 403) else "GRANT_ERROR"
    if isinstance(error, TransportError):
        return "TRANSPORT_ERROR"
    if isinstance(error, ProtocolError):
        return "PROTOCOL_ERROR"
    if isinstance(error, ConfigError):
        return "CONFIG_ERROR"
    return "RUNTIME_ERROR"


def handle_error(error: Exception) -> None:
    """Handle an error with structured output to stdout and human-readable output to stderr.

    Outputs a JSON error object to stdout:
    {"error": true, "code": "GRANT_ERROR", "message": "...", "hint": "..."}
    """
    message = str(error)
    hint = _get_hint(message)

    error_obj: dict[str, object] = {
        "error": True,
        "code": _get_code(error),
        "message": message,
    }
    if hint:
        error_obj["hint"] = hint

    json.dump(error_obj, sys.stdout)
    sys.stdout.write("\n")

    console.print(f"[red]Error:[/red] {message}")
    if hint:
        console.print(f"[dim]Hint: {hint}[/dim]")
