"""z.ai general API provider (GLM-4.5V, OpenAI-compatible)."""

from __future__ import annotations

import asyncio
import re
from typing import TYPE_CHECKING

from agentlink.config import merge_provider_config, provider_defaults, resolve_api_key
from agentlink.errors import APIError
from agentlink.providers._chat import MISSING_KEY_ERROR, ChatCompletionsClient
from agentlink.providers.base import ProviderCapabilities
from agentlink.toolcalls import NormalizationProfile

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

    import httpx

    from agentlink.config import ProviderConfig
    from agentlink.providers.models import ChatOptions, ChatRequest, ChatResult

CODING_PLAN_BASE_URL = "https://api.z.ai/api/coding/paas/v4"

_GLM4_RE = re.compile(r"^glm[-_]?4\.", re.IGNORECASE)
_PROBE_MESSAGE_CHARS = 160
_MODEL_PREVIEW_COUNT = 6


class ZAIProvider:
    """z.ai API.

    GLM-4.x models think by default, which is slow and often leaks tool calls
    into ``reasoning_content`` as tag soup. Thinking is disabled for them
    unless a call explicitly sets ``disable_thinking=False``. Responses are
    sanitized, recovered from text, and fall back to the reasoning channel
    when the content is empty.
    """

    name = "zai"

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
            profile=NormalizationProfile(
                sanitize_text=True, recover_from_text=True, reasoning_as_text=True
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

    def should_disable_thinking(self, options: ChatOptions) -> bool:
        if options.disable_thinking is not None:
            return options.disable_thinking
        return bool(_GLM4_RE.match(self.model.strip()))

    async def chat(self, request: ChatRequest) -> ChatResult:
        """Send a chat completion and normalize tool calls."""
        body = self._client.build_body(request)
        if self.should_disable_thinking(request.options):
            body["thinking"] = {"type": "disabled"}
        return await self._client.complete(body)

    async def is_available(self) -> bool:
        """Probe ``/models``; when the model is unlisted, try a 1-token call.

        z.ai plans expose different model sets per endpoint, so an unlisted
        model may still be callable.
        """
        client = self._client
        if not client.api_key:
            client.last_error = MISSING_KEY_ERROR
            return False

        probe = await client.probe_models()
        if not probe.ok:
            client.last_error = probe.error
            return False
        if not probe.model_ids or not self.model or probe.lists_model(self.model):
            client.last_error = ""
            return True

        try:
            await client.post(
                {
                    "model": self.model,
                    "messages": [{"role": "user", "content": "ping"}],
                    "max_tokens": 1,
                    "temperature": 0,
                    "stream": False,
                }
            )
        except APIError as e:
            preview = ", ".join(probe.model_ids[:_MODEL_PREVIEW_COUNT])
            provider_error = getattr(e, "provider_error", None) or {}
            api_message = str(provider_error.get("message") or e)[:_PROBE_MESSAGE_CHARS]
            client.last_error = (
                f'Model "{self.model}" is not available for this plan or endpoint. '
                f"For the Coding Plan use {CODING_PLAN_BASE_URL}. "
                f"Available models: {preview}. API: {api_message}"
            )
            return False
        client.last_error = ""
        return True

    async def aclose(self) -> None:
        await self._client.aclose()
