"""Exceptions raised while obtaining a client-credentials token."""

from __future__ import annotations


class TokenError(RuntimeError):
    """Base class for failures of a token fetch."""


class TransportError(TokenError):
    """The token endpoint could not be reached (DNS, connect, TLS, timeout)."""


class GrantError(TokenError):
    """The token endpoint answered with an HTTP error status."""

    def __init__(self, status_code: int, detail: str = "") -> None:
        self.status_code = status_code
        self.detail = detail
        message = f"Token grant failed (HTTP {status_code})"
        if detail:
            message += f": {detail}"
        super().__init__(message)


class ProtocolError(TokenError):
    """The token endpoint answered with a body that is not a usable grant."""
