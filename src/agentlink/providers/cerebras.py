"""Cerebras provider (GLM-4.7, text-only, OpenAI-compatible)."""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING

from agentlink.config import merge_provider_config, provider_defaults, resolve_api_key
from agentlink.providers._chat import ChatCompletionsClient
from agentlink.providers.base import ProviderCapabilities
from agentlink.toolcalls import NormalizationProfile

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

    import httpx

    from agentlink.config import ProviderConfig
    from agentlink.providers.models import ChatRequest, ChatResult


class CerebrasProvider:
    """Cerebras inference API.

    The model is text-only: image parts are replaced by their message's text
    before sending. GLM models sometimes write tool calls as tag soup in the
    content, so text recovery is enabled.
    """

    name = "cerebras"

    def __init__(
        self,
        config: ProviderConfig | None = None,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        """Initialize with an optional config; defaults fill unset fields."""
        config = merge_provider_config(provider_defaults(self.name), config)
        self._client = ChatCompletionsClient(
            provider=self.name,
            config=config,
            api_key=resolve_api_key(self.name, config),
            supported_sampling=frozenset({"top_p"}),
            profile=NormalizationProfile(recover_from_text=True),
            transport=transport,
            sleep=sleep,
        )

    @property
    def model(self) -> str:
        return self._client.model

    @property
    def capabilities(self) -> ProviderCapabilities:
        """Return supported feature flags."""
        return ProviderCapabilities(vision=False, tools=True)

    @property
    def configured(self) -> bool:
        return bool(self._client.api_key)

    @property
    def last_error(self) -> str:
        return self._client.last_error

    async def chat(self, request: ChatRequest) -> ChatResult:
        """Send a text-only chat completion and normalize tool calls."""
        body = self._client.build_body(request, vision=self.capabilities.vision)
        return await self._client.complete(body)

    async def is_available(self) -> bool:
        return await self._client.check_available()

    async def aclose(self) -> None:
        await self._client.aclose()
