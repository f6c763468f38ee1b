"""Application context: the single place a host process keeps its token cache."""

from __future__ import annotations

import logging
from typing import Any

from renewable_token.auth import RenewalErrorCallback, TokenManager
from renewable_token.client import DownstreamClient
from renewable_token.config import Settings
from renewable_token.models.auth import Credential

logger = logging.getLogger(__name__)


class AppContext:
    """Built once at startup and handed to whatever needs a token."""

    def __init__(
        self,
        settings: Settings,
        tokens: TokenManager,
        downstream: DownstreamClient | None = None,
    ) -> None:
        self.settings = settings
        self.tokens = tokens
        self.downstream = downstream

    @classmethod
    def from_settings(
        cls, settings: Settings, on_renewal_error: RenewalErrorCallback | None = None
    ) -> AppContext:
        tokens = TokenManager(
            safety_gap=settings.safety_gap,
            timeout=settings.timeout,
            renewal_retries=settings.renewal_retries,
            retry_delay=settings.retry_delay,
            on_renewal_error=on_renewal_error,
        )
        downstream = None
        if settings.downstream_url:
            downstream = DownstreamClient(
                settings.downstream_url,
                tokens,
                token_url=settings.token_url,
                client_id=settings.client_id,
                client_secret=settings.client_secret,
                timeout=settings.timeout,
            )
        return cls(settings, tokens, downstream)

    async def start(self) -> Credential | None:
        """Obtain the first token; renewal runs on its own from here."""
        logger.info(f"Requesting initial token from {self.settings.token_url}")
        return await self.refresh()

    async def refresh(self) -> Credential | None:
        """Force a fetch with the configured endpoint and client identity."""
        return await self.tokens.retrieve_token(
            self.settings.token_url,
            self.settings.client_id,
            self.settings.client_secret,
        )

    async def aclose(self) -> None:
        if self.downstream is not None:
            await self.downstream.aclose()
        await self.tokens.aclose()

    async def __aenter__(self) -> AppContext:
        await self.start()
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()
