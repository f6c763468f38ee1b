"""Auth-related data models."""

from __future__ import annotations

import math
from datetime import datetime, timedelta
from typing import Any

from pydantic import BaseModel, Field

from renewable_token.errors import ProtocolError


class Credential(BaseModel):
    """A cached grant response.

    ``data`` is the parsed JSON object exactly as the endpoint returned it,
    so callers can read fields beyond the ones exposed as properties.
    """
    data: dict[str, Any]
    fetched_at: datetime
    expires_at: datetime

    @classmethod
    def from_response(cls, data: Any, fetched_at: datetime | None = None) -> Credential:
        """Build a credential from a parsed grant response.

        Some endpoints send ``expires_in`` as a numeric string ("3599");
        those are accepted.

        Raises:
            ProtocolError: If the response is not an object or lacks a
                positive, finite ``expires_in``.
        """
        if not isinstance(data, dict):
            raise ProtocolError(
                f"Token response is not a JSON object (got {type(data).__name__})"
            )
        expires_in = _lifetime(data.get("expires_in"))

        fetched_at = fetched_at or datetime.now()
        try:
            expires_at = fetched_at + timedelta(seconds=expires_in)
        except (OverflowError, ValueError) as e:
            raise ProtocolError(f"Token response 'expires_in' is out of range: {expires_in:g}") from e
        return cls(data=data, fetched_at=fetched_at, expires_at=expires_at)

    @property
    def access_token(self) -> str | None:
        value = self.data.get("access_token")
        return str(value) if value is not None else None

    @property
    def token_type(self) -> str | None:
        value = self.data.get("token_type")
        return str(value) if value is not None else None

    @property
    def expires_in(self) -> float:
        return float(self.data["expires_in"])

    def is_expired(self, now: datetime | None = None) -> bool:
        return (now or datetime.now()) >= self.expires_at

    def seconds_remaining(self, now: datetime | None = None) -> int:
        """Whole seconds until expiry, never negative."""
        remaining = (self.expires_at - (now or datetime.now())).total_seconds()
        return max(0, int(remaining))


def _lifetime(value: Any) -> float:
    """Validate an ``expires_in`` value and return it in seconds."""
    # bool is an int subclass; "expires_in": true is not a lifetime
    if isinstance(value, bool) or not isinstance(value, (int, float, str)):
        raise ProtocolError("Token response has no numeric 'expires_in'")
    try:
        seconds = float(value)
    except ValueError as e:
        raise ProtocolError(f"Token response has non-numeric 'expires_in': {value!r}") from e
    if not math.isfinite(seconds) or seconds <= 0:
        raise ProtocolError(f"Token response has invalid 'expires_in': {value!r}")
    return seconds


class TokenStatus(BaseModel):
    """Current state of the cached credential and its renewal."""
    has_token: bool
    is_expired: bool
    expires_at: datetime | None = None
    seconds_remaining: int | None = None
    renewal_scheduled: bool = False
    renewal_in: float | None = Field(default=None, description="Seconds until the armed renewal fires")
    last_error: str | None = None
