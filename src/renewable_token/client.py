"""HTTP client that presents the cached bearer token to a downstream service.

The token is read from the cache on every request and never fetched on the
request path, except once after a 401.
"""

from __future__ import annotations

import logging
from typing import Any

import httpx

from renewable_token.auth import TokenManager
from renewable_token.errors import TokenError

logger = logging.getLogger(__name__)


class DownstreamClient:
    """Async HTTP client for a service that expects the client-credentials token."""

    def __init__(
        self,
        base_url: str,
        tokens: TokenManager,
        *,
        token_url: str,
        client_id: str,
        client_secret: str,
        timeout: float | None = 60.0,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._tokens = tokens
        self._token_url = token_url
        self._client_id = client_id
        self._client_secret = client_secret
        self._http = httpx.AsyncClient(timeout=timeout)

    async def request(
        self,
        method: str,
        path: str,
        *,
        body: dict[str, Any] | list | None = None,
        extra_headers: dict[str, str] | None = None,
        params: dict[str, str] | None = None,
    ) -> httpx.Response:
        """Make an authenticated request.

        Args:
            method: HTTP method (GET, POST, PUT, DELETE).
            path: Path appended to the base URL.
            body: JSON request body.
            extra_headers: Additional headers to include.
            params: Query parameters.

        Returns:
            The httpx.Response object.

        Raises:
            TokenError: If no token is cached, or the refresh after a 401 fails.
            RuntimeError: If the service answers with status 400 or above.
        """
        url = self._base_url + path

        response = await self._send(method, url, body, extra_headers, params)

        # 401: the cached token was rejected; fetch a new one and retry once
        if response.status_code == 401:
            logger.warning("Got 401, refreshing token and retrying...")
            await self._tokens.retrieve_token(self._token_url, self._client_id, self._client_secret)
            response = await self._send(method, url, body, extra_headers, params)

        if response.status_code >= 400:
            raise RuntimeError(f"API error (HTTP {response.status_code}): {response.text}")

        return response

    async def get(self, path: str, **kwargs: Any) -> httpx.Response:
        return await self.request("GET", path, **kwargs)

    async def post(self, path: str, **kwargs: Any) -> httpx.Response:
        return await self.request("POST", path, **kwargs)

    async def _send(
        self,
        method: str,
        url: str,
        body: dict[str, Any] | list | None,
        extra_headers: dict[str, str] | None,
        params: dict[str, str] | None,
    ) -> httpx.Response:
        headers = self._build_headers(extra_headers)
        logger.debug(f"{method} {url}")
        return await self._http.request(method, url, headers=headers, json=body, params=params)

    def _build_headers(self, extra_headers: dict[str, str] | None = None) -> dict[str, str]:
        """Build request headers with the cached bearer token."""
        token = self._tokens.access_token()
        if not token:
            raise TokenError("No access token cached; call retrieve_token first")

        headers = {
            "Authorization": f"Bearer {token}",
            "Content-Type": "application/json",
        }
        if extra_headers:
            headers.update(extra_headers)
        return headers

    async def aclose(self) -> None:
        """Close the underlying HTTP client."""
        await self._http.aclose()
