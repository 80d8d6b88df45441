"""SiliconFlow provider (GLM-4.6V, OpenAI-compatible, two regional hosts)."""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING

from agentlink.config import merge_provider_config, provider_defaults, resolve_api_key
from agentlink.providers._chat import MISSING_KEY_ERROR, ChatCompletionsClient
from agentlink.providers.base import ProviderCapabilities
from agentlink.providers.failover import HostFailoverPolicy
from agentlink.toolcalls import NormalizationProfile

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

    import httpx

    from agentlink.config import ProviderConfig
    from agentlink.providers._chat import ModelProbe
    from agentlink.providers.models import ChatRequest, ChatResult

log = logging.getLogger(__name__)

SILICONFLOW_HOSTS: tuple[tuple[str, str], ...] = (
    ("api.siliconflow.com", "api.siliconflow.cn"),
)


class SiliconFlowProvider:
    """SiliconFlow API.

    Some keys only work on one of the ``.com``/``.cn`` hosts. Reachability
    failures are retried once on the other host, and a host that works is
    kept for the adapter's lifetime. GLM models may leave their tool calls
    in the reasoning channel, so text recovery is enabled.
    """

    name = "siliconflow"

    def __init__(
        self,
        config: ProviderConfig | None = None,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        """Initialize with an optional config; defaults fill unset fields."""
        config = merge_provider_config(provider_defaults(self.name), config)
        self.failover = HostFailoverPolicy(SILICONFLOW_HOSTS)
        self._client = ChatCompletionsClient(
            provider=self.name,
            config=config,
            api_key=resolve_api_key(self.name, config),
            supported_sampling=frozenset({"top_p", "top_k", "frequency_penalty"}),
            profile=NormalizationProfile(recover_from_text=True),
            failover=self.failover,
            transport=transport,
            sleep=sleep,
        )

    @property
    def model(self) -> str:
        return self._client.model

    @property
    def base_url(self) -> str:
        """Current base URL, including a pinned alternate host."""
        return self._client.base_url

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
        """Send a chat completion, failing over between hosts when needed."""
        body = self._client.build_body(request)
        if request.options.disable_thinking:
            body["enable_thinking"] = False
        return await self._client.complete(body)

    def _check_probe(self, probe: ModelProbe) -> str:
        if not probe.ok:
            return probe.error
        if probe.model_ids and self.model not in probe.model_ids:
            return f'Model "{self.model}" is not available for this API key'
        return ""

    async def is_available(self) -> bool:
        """Probe the current host, then the alternate one.

        A working alternate is pinned just as a successful chat call would.
        """
        if not self._client.api_key:
            self._client.last_error = MISSING_KEY_ERROR
            return False

        current = self.base_url
        primary_error = self._check_probe(await self._client.probe_models(current))
        if not primary_error:
            self._client.last_error = ""
            return True

        alternate = self.failover.alternate_base_url(current)
        if alternate is None:
            self._client.last_error = primary_error
            return False

        secondary_error = self._check_probe(await self._client.probe_models(alternate))
        if not secondary_error:
            log.info("siliconflow: %s unavailable, switching to %s", current, alternate)
            self.failover.remember(alternate)
            self._client.last_error = ""
            return True

        self._client.last_error = (
            secondary_error or primary_error or "SiliconFlow unavailable"
        )
        return False

    async def aclose(self) -> None:
        await self._client.aclose()
