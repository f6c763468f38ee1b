"""Shared fixtures for the renewable-token test suite."""
from __future__ import annotations

import contextlib
import json

import httpx
import pytest

from renewable_token.auth import TokenManager
from renewable_token.config import Settings

TOKEN_URL = "https://auth.example.com/oauth2/token"


class FakeTokenEndpoint:
    """MockTransport handler that replays queued responses and records requests.

    Each queued item is a (status, body) pair; dict bodies are sent as JSON,
    str/bytes verbatim, and exceptions are raised. The last item repeats once
    the queue is drained.
    """

    def __init__(self) -> None:
        self.requests: list[httpx.Request] = []
        self._queue: list[tuple[int, object]] = []

    def respond(self, status: int, body: object = b"") -> FakeTokenEndpoint:
        self._queue.append((status, body))
        return self

    def grant(self, access_token: str = "tok-abc", expires_in: float = 3600) -> FakeTokenEndpoint:
        return self.respond(
            200,
            {"access_token": access_token, "token_type": "bearer", "expires_in": expires_in},
        )

    def fail_with(self, exc: Exception) -> FakeTokenEndpoint:
        self._queue.append((0, exc))
        return self

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        status, body = self._queue.pop(0) if len(self._queue) > 1 else self._queue[0]
        if isinstance(body, Exception):
            raise body
        if isinstance(body, dict):
            body = json.dumps(body)
        if isinstance(body, str):
            body = body.encode()
        return httpx.Response(status, content=body)


@pytest.fixture
def token_endpoint() -> FakeTokenEndpoint:
    return FakeTokenEndpoint()


@pytest.fixture
def manager_factory(token_endpoint):
    """Async context manager building a TokenManager wired to the fake endpoint."""

    @contextlib.asynccontextmanager
    async def factory(**kwargs):
        transport = httpx.MockTransport(kwargs.pop("handler", token_endpoint))
        async with httpx.AsyncClient(transport=transport) as http:
            async with TokenManager(http=http, **kwargs) as manager:
                yield manager

    return factory


@pytest.fixture
def fake_settings() -> Settings:
    return Settings(
        token_url=TOKEN_URL,
        client_id="test-client-id",
        client_secret="test-client-secret",
        timeout=10.0,
        safety_gap=300.0,
        renewal_retries=0,
        retry_delay=1.0,
        downstream_url="https://api.example.com",
    )
