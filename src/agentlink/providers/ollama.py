"""Ollama provider (local models via the OpenAI-compatible endpoint)."""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING

from agentlink.config import merge_provider_config, provider_defaults
from agentlink.errors import APIError
from agentlink.providers._chat import ChatCompletionsClient
from agentlink.providers._errors import format_error
from agentlink.providers.base import ProviderCapabilities

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

    import httpx

    from agentlink.config import ProviderConfig
    from agentlink.providers.models import ChatRequest, ChatResult

log = logging.getLogger(__name__)

# Ollama ignores the key, but some builds reject requests without the header.
PLACEHOLDER_API_KEY = "ollama"


def server_root(base_url: str) -> str:
    """Strip the ``/v1`` compatibility prefix to reach Ollama's native API."""
    root = base_url.rstrip("/")
    return root.removesuffix("/v1")


class OllamaProvider:
    """A local Ollama server.

    Needs no API key. ``tool_choice`` is not sent (Ollama rejects it), and
    availability is checked against the server root rather than ``/models``.
    """

    name = "ollama"

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
            api_key=config.api_key or PLACEHOLDER_API_KEY,
            supported_sampling=frozenset(
                {
                    "top_p",
                    "top_k",
                    "presence_penalty",
                    "frequency_penalty",
                    "repeat_penalty",
                }
            ),
            transport=transport,
            sleep=sleep,
        )

    @property
    def model(self) -> str:
        return self._client.model

    @property
    def capabilities(self) -> ProviderCapabilities:
        """Return supported feature flags (vision depends on the pulled model)."""
        return ProviderCapabilities(vision=True, tools=True, requires_api_key=False)

    @property
    def configured(self) -> bool:
        return True

    @property
    def last_error(self) -> str:
        return self._client.last_error

    async def chat(self, request: ChatRequest) -> ChatResult:
        """Send a chat completion and normalize tool calls."""
        body = self._client.build_body(request, send_tool_choice=False)
        return await self._client.complete(body)

    async def is_available(self) -> bool:
        """GET the server root; any success status means the daemon is up."""
        url = server_root(self._client.base_url)
        try:
            response = await self._client.executor.fetch(url, auth=False)
        except APIError as e:
            self._client.last_error = format_error(e)
            return False
        if not response.is_success:
            self._client.last_error = f"HTTP {response.status_code}"
            return False
        self._client.last_error = ""
        return True

    async def list_models(self) -> list[str]:
        """Return the names of locally pulled models (``[]`` if unreachable)."""
        url = f"{server_root(self._client.base_url)}/api/tags"
        try:
            response = await self._client.executor.fetch(url, auth=False)
        except APIError as e:
            self._client.last_error = format_error(e)
            log.debug("ollama: listing models failed: %s", self._client.last_error)
            return []
        if not response.is_success:
            self._client.last_error = f"HTTP {response.status_code}"
            return []
        try:
            data = response.json()
        except ValueError:
            return []
        models = data.get("models") if isinstance(data, dict) else None
        if not isinstance(models, list):
            return []
        return [
            str(entry["name"])
            for entry in models
            if isinstance(entry, dict) and entry.get("name")
        ]

    async def aclose(self) -> None:
        await self._client.aclose()
