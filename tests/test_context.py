"""Tests for context.py — wiring settings into the token manager."""
import asyncio
from unittest.mock import AsyncMock

from renewable_token.auth import TokenManager
from renewable_token.client import DownstreamClient
from renewable_token.context import AppContext


def test_from_settings_builds_manager(fake_settings):
    ctx = AppContext.from_settings(fake_settings)
    assert isinstance(ctx.tokens, TokenManager)
    assert ctx.tokens._safety_gap == fake_settings.safety_gap
    assert ctx.tokens._renewal_retries == fake_settings.renewal_retries
    assert isinstance(ctx.downstream, DownstreamClient)
    asyncio.run(ctx.aclose())


def test_from_settings_without_downstream(fake_settings):
    fake_settings.downstream_url = ""
    ctx = AppContext.from_settings(fake_settings)
    assert ctx.downstream is None
    asyncio.run(ctx.aclose())


def test_start_uses_configured_endpoint(fake_settings):
    ctx = AppContext.from_settings(fake_settings)
    ctx.tokens.retrieve_token = AsyncMock(return_value=None)

    asyncio.run(ctx.start())
    ctx.tokens.retrieve_token.assert_awaited_once_with(
        fake_settings.token_url, fake_settings.client_id, fake_settings.client_secret
    )
    asyncio.run(ctx.aclose())


def test_async_context_manager_starts_and_closes(fake_settings):
    fake_settings.downstream_url = ""
    ctx = AppContext.from_settings(fake_settings)
    ctx.tokens.retrieve_token = AsyncMock(return_value=None)
    ctx.tokens.aclose = AsyncMock()

    async def scenario():
        async with ctx as entered:
            assert entered is ctx

    asyncio.run(scenario())
    ctx.tokens.retrieve_token.assert_awaited_once()
    ctx.tokens.aclose.assert_awaited_once()
