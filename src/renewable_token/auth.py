"""OAuth2 client-credentials token cache with background renewal.

Fetches a token, keeps the latest one in memory, and arms a single timer
that fetches the next one shortly before the current one expires.
"""

from __future__ import annotations

import asyncio
import contextlib
import json
import logging
import threading
from collections.abc import Callable
from datetime import datetime
from typing import Any
from urllib.parse import urlencode

import httpx

from renewable_token.errors import GrantError, ProtocolError, TokenError, TransportError
from renewable_token.models.auth import Credential, TokenStatus

logger = logging.getLogger(__name__)


# Lead time before expiry at which the renewal fires (seconds)
SAFETY_GAP = 5 * 60.0

GRANT_BODY = urlencode({"grant_type": "client_credentials"}).encode("ascii")

RenewalErrorCallback = Callable[[TokenError], Any]


def compute_renewal_delay(expires_in: float, safety_gap: float = SAFETY_GAP) -> float:
    """Seconds to wait before renewing a token that lives ``expires_in`` seconds.

    Tokens that outlive the safety gap are renewed ``safety_gap`` seconds
    before they expire; shorter ones at half their lifetime.
    """
    if expires_in > safety_gap:
        return expires_in - safety_gap
    return expires_in / 2


class TokenManager:
    """Owns one cached credential and the one timer that renews it.

    ``retrieve_token`` is the only way a credential gets in: the first call
    obtains it, and every successful call arms the next renewal with the same
    endpoint and client identity. ``get_token`` only reads.

    When two fetches overlap, the one that completes last wins, both for the
    cached credential and for the armed renewal.
    """

    def __init__(
        self,
        *,
        safety_gap: float = SAFETY_GAP,
        timeout: float | None = 30.0,
        renewal_retries: int = 0,
        retry_delay: float = 1.0,
        on_renewal_error: RenewalErrorCallback | None = None,
        http: httpx.AsyncClient | None = None,
    ) -> None:
        self._safety_gap = safety_gap
        self._renewal_retries = renewal_retries
        self._retry_delay = retry_delay
        self._on_renewal_error = on_renewal_error
        self._owns_http = http is None
        self._http = http or httpx.AsyncClient(timeout=timeout)

        self._lock = threading.Lock()
        self._credential: Credential | None = None
        self._last_error: str | None = None
        self._loop: asyncio.AbstractEventLoop | None = None
        self._renewal: asyncio.TimerHandle | None = None
        self._renewal_tasks: set[asyncio.Task] = set()
        # Bumped each time a fetch installs its result
        self._generation = 0

    async def __aenter__(self) -> TokenManager:
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()

    # ------------------------------------------------------------------ #
    # Public surface

    async def retrieve_token(
        self, uri: str, client_id: str, client_secret: str
    ) -> Credential | None:
        """Fetch a token, cache it and arm its renewal.

        Args:
            uri: Absolute URL of the token endpoint.
            client_id: Client identity, sent as the basic-auth username.
            client_secret: Client secret, sent as the basic-auth password.

        Returns:
            The new credential, or ``None`` if the endpoint answered with an
            empty body. In that case the cache is cleared and nothing is armed.

        Raises:
            TransportError: The endpoint could not be reached.
            GrantError: The endpoint answered with status 400 or above.
            ProtocolError: The body is not a JSON grant object.
            ValueError: ``uri`` is not an absolute http(s) URL.
        """
        return await self._refresh(uri, client_id, client_secret)

    def get_token(self) -> Credential | None:
        """Return the cached credential, or ``None`` if there is none."""
        with self._lock:
            return self._credential

    def access_token(self) -> str | None:
        """Return the cached access token string, if any."""
        credential = self.get_token()
        return credential.access_token if credential else None

    @property
    def renewal_scheduled(self) -> bool:
        with self._lock:
            return self._renewal is not None

    def get_status(self) -> TokenStatus:
        """Get the current token and renewal status."""
        with self._lock:
            credential = self._credential
            renewal = self._renewal
            loop = self._loop
            last_error = self._last_error

        renewal_in = None
        if renewal is not None and loop is not None:
            renewal_in = max(0.0, renewal.when() - loop.time())

        if credential is None:
            return TokenStatus(
                has_token=False,
                is_expired=True,
                renewal_scheduled=renewal is not None,
                renewal_in=renewal_in,
                last_error=last_error,
            )

        now = datetime.now()
        is_expired = credential.is_expired(now)
        return TokenStatus(
            has_token=True,
            is_expired=is_expired,
            expires_at=credential.expires_at,
            seconds_remaining=None if is_expired else credential.seconds_remaining(now),
            renewal_scheduled=renewal is not None,
            renewal_in=renewal_in,
            last_error=last_error,
        )

    def cancel_renewal(self) -> None:
        """Disarm the pending renewal, if any."""
        with self._lock:
            self._cancel_renewal_locked()

    async def aclose(self) -> None:
        """Stop renewing and close the HTTP client if this manager created it."""
        self.cancel_renewal()
        current = asyncio.current_task()
        pending = [task for task in self._renewal_tasks if task is not current]
        for task in pending:
            task.cancel()
        for task in pending:
            with contextlib.suppress(asyncio.CancelledError):
                await task
        if self._owns_http:
            await self._http.aclose()

    # ------------------------------------------------------------------ #
    # Fetch and reschedule

    async def _refresh(self, uri: str, client_id: str, client_secret: str) -> Credential | None:
        """Fetch a grant and install it. Shared by explicit and timed renewals.

        A failure disarms renewal only if no other fetch has installed a
        result since this one started.
        """
        with self._lock:
            started = self._generation
        try:
            data = await self._request_grant(uri, client_id, client_secret)
            credential = None if data is None else Credential.from_response(data)
        except TokenError as e:
            with self._lock:
                if self._generation == started:
                    self._cancel_renewal_locked()
                    self._last_error = str(e)
            raise

        if credential is None:
            with self._lock:
                self._generation += 1
                self._cancel_renewal_locked()
                self._credential = None
                self._last_error = None
            logger.warning(f"Token endpoint {uri} returned an empty body; no token cached")
            return None

        delay = compute_renewal_delay(credential.expires_in, self._safety_gap)
        with self._lock:
            self._generation += 1
            self._cancel_renewal_locked()
            self._credential = credential
            self._last_error = None
            self._arm_locked(delay, uri, client_id, client_secret, 0)

        logger.info(
            f"Obtained token from {uri} (expires in {credential.expires_in:g}s, "
            f"renewal in {delay:g}s)"
        )
        return credential

    async def _request_grant(self, uri: str, client_id: str, client_secret: str) -> Any:
        """POST the client-credentials grant and return the parsed body, or None if empty."""
        url = _parse_endpoint(uri)
        headers = {
            "Content-Type": "application/x-www-form-urlencoded",
            "Content-Length": str(len(GRANT_BODY)),
        }

        logger.debug(f"POST {url} grant_type=client_credentials")
        try:
            response = await self._http.post(
                url,
                content=GRANT_BODY,
                headers=headers,
                auth=httpx.BasicAuth(client_id, client_secret),
            )
        except httpx.DecodingError as e:
            raise ProtocolError(f"Token response from {uri} could not be decoded: {e}") from e
        except httpx.RequestError as e:
            raise TransportError(f"Cannot retrieve a token from {uri}: {e}") from e

        if response.status_code >= 400:
            raise GrantError(response.status_code, response.text[:200])

        body = response.text
        if not body.strip():
            return None
        try:
            return json.loads(body, parse_constant=_reject_constant)
        except ValueError as e:
            raise ProtocolError(f"Token response from {uri} is not valid JSON: {e}") from e

    # ------------------------------------------------------------------ #
    # Renewal timer

    def _arm_locked(
        self, delay: float, uri: str, client_id: str, client_secret: str, attempt: int
    ) -> None:
        """Arm the renewal timer. Caller holds the lock and has cancelled the old one."""
        self._loop = asyncio.get_running_loop()
        self._renewal = self._loop.call_later(
            delay, self._on_renewal_due, uri, client_id, client_secret, attempt
        )

    def _cancel_renewal_locked(self) -> None:
        if self._renewal is not None:
            self._renewal.cancel()
            self._renewal = None

    def _on_renewal_due(self, uri: str, client_id: str, client_secret: str, attempt: int) -> None:
        with self._lock:
            self._renewal = None
        task = asyncio.get_running_loop().create_task(
            self._renew(uri, client_id, client_secret, attempt)
        )
        self._renewal_tasks.add(task)
        task.add_done_callback(self._renewal_tasks.discard)

    async def _renew(self, uri: str, client_id: str, client_secret: str, attempt: int) -> None:
        """Timer-triggered refresh. Failures never reach a caller."""
        with self._lock:
            started = self._generation
        try:
            await self._refresh(uri, client_id, client_secret)
            return
        except TokenError as e:
            error = e

        with self._lock:
            superseded = self._generation != started
            retry = not superseded and attempt < self._renewal_retries
            if retry:
                wait = self._retry_delay * (2 ** attempt)
                self._cancel_renewal_locked()
                self._arm_locked(wait, uri, client_id, client_secret, attempt + 1)

        if superseded:
            logger.warning(f"Token renewal failed: {error}. A newer fetch already completed")
            return

        if retry:
            logger.warning(
                f"Token renewal failed: {error}. "
                f"Retrying in {wait:.1f}s ({attempt + 1}/{self._renewal_retries})..."
            )
            return

        logger.warning(f"Token renewal failed: {error}. Automatic renewal stopped")
        if self._on_renewal_error is not None:
            try:
                result = self._on_renewal_error(error)
                if asyncio.iscoroutine(result):
                    await result
            except Exception:
                logger.exception("Renewal error callback raised")


def _reject_constant(name: str) -> Any:
    """json.loads hook for NaN/Infinity, which are not JSON."""
    raise ValueError(f"non-standard constant {name}")


def _parse_endpoint(uri: str) -> httpx.URL:
    """Validate the token endpoint URI."""
    try:
        url = httpx.URL(uri)
    except httpx.InvalidURL as e:
        raise ValueError(f"Malformed token endpoint URI: {uri!r}") from e
    if url.scheme not in ("http", "https") or not url.host:
        raise ValueError(f"Token endpoint must be an absolute http(s) URL: {uri!r}")
    return url
