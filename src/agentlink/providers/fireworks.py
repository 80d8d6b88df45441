"""Fireworks AI provider (Kimi K2.5, OpenAI-compatible)."""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING

from agentlink.config import merge_provider_config, provider_defaults, resolve_api_key
from agentlink.providers._chat import ChatCompletionsClient
from agentlink.providers.base import ProviderCapabilities

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

    import httpx

    from agentlink.config import ProviderConfig
    from agentlink.providers.models import ChatRequest, ChatResult


class FireworksProvider:
    """Fireworks inference API.

    Kimi reasons at length before answering, so the default timeout is 300 s
    and the recommended sampling (top_p 0.95, top_k 40, no penalties) is sent
    with every call.
    """

    name = "fireworks"

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
            supported_sampling=frozenset(
                {"top_p", "top_k", "presence_penalty", "frequency_penalty"}
            ),
            transport=transport,
            sleep=sleep,
        )

    @property
    def model(self) -> str:
        return self._client.model

    @property
    def capabilities(self) -> ProviderCapabilities:
        """Return supported feature flags."""
        return ProviderCapabilities(vision=True, tools=True, thinking=True)

    @property
    def configured(self) -> bool:
        return bool(self._client.api_key)

    @property
    def last_error(self) -> str:
        return self._client.last_error

    async def chat(self, request: ChatRequest) -> ChatResult:
        """Send a chat completion and normalize tool calls."""
        return await self._client.complete(self._client.build_body(request))

    async def is_available(self) -> bool:
        """Probe ``/models`` with the configured key."""
        return await self._client.check_available()

    async def aclose(self) -> None:
        await self._client.aclose()
