"""Composable chat-completions client shared by every backend adapter.

Adapters own their dialect (body tweaks, availability rules); this client
owns the parts they have in common: body assembly, execution with optional
host failover, ``tool_use_failed`` recovery, response normalization and
``/models`` probing.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
import logging
from typing import TYPE_CHECKING, Any

from agentlink._http import ERROR_PREVIEW_CHARS, join_url
from agentlink.errors import APIError
from agentlink.providers._errors import format_error
from agentlink.providers._utils import (
    format_tool_choice,
    format_tools,
    serialize_messages,
)
from agentlink.providers.executor import DEFAULT_TIMEOUT_S, RequestExecutor
from agentlink.providers.failover import execute_with_failover
from agentlink.providers.models import ChatResult
from agentlink.toolcalls import (
    NormalizationProfile,
    normalize_message,
    recover_tool_use_failed,
)

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

    import httpx

    from agentlink.config import ProviderConfig
    from agentlink.providers.failover import HostFailoverPolicy
    from agentlink.providers.models import ChatRequest
    from agentlink.retry import RateLimitPolicy

log = logging.getLogger(__name__)

CHAT_ENDPOINT = "/chat/completions"
MODELS_ENDPOINT = "/models"
MISSING_KEY_ERROR = "API key is missing"

SAMPLING_KNOBS: tuple[str, ...] = (
    "top_p",
    "top_k",
    "presence_penalty",
    "frequency_penalty",
    "repeat_penalty",
)


@dataclass(frozen=True)
class ModelProbe:
    """Outcome of a ``GET /models`` availability probe."""

    ok: bool
    error: str = ""
    model_ids: tuple[str, ...] = ()

    def lists_model(self, model: str) -> bool:
        """Case-insensitive membership test against the returned ids."""
        wanted = model.strip().lower()
        return any(model_id.lower() == wanted for model_id in self.model_ids)


class ChatCompletionsClient:
    """Executes OpenAI-compatible chat calls for one adapter."""

    def __init__(
        self,
        *,
        provider: str,
        config: ProviderConfig,
        api_key: str,
        supported_sampling: frozenset[str] = frozenset(),
        profile: NormalizationProfile | None = None,
        failover: HostFailoverPolicy | None = None,
        policy: RateLimitPolicy | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        """Initialize from a fully merged provider config.

        Args:
            provider: Backend name for errors and logs.
            config: Config with backend defaults already applied.
            api_key: Resolved key; empty when none is configured.
            supported_sampling: Which of ``SAMPLING_KNOBS`` the backend accepts.
            profile: Normalization switches for responses.
            failover: Alternate-host policy, for multi-region backends.
            policy: Rate-limit retry bounds.
            transport: Optional httpx transport (tests inject a mock).
            sleep: Awaitable used for backoff waits.
        """
        unknown = supported_sampling - set(SAMPLING_KNOBS)
        if unknown:
            raise ValueError(f"Unknown sampling knobs: {sorted(unknown)}")
        self.provider = provider
        self.configured_base_url = config.base_url or ""
        self.model = config.model or ""
        self.sampling = config.sampling
        self.api_key = api_key
        self.supported_sampling = supported_sampling
        self.profile = profile or NormalizationProfile()
        self.failover = failover
        self.last_error = ""
        self.executor = RequestExecutor(
            provider=provider,
            api_key=api_key,
            timeout_s=config.timeout_s or DEFAULT_TIMEOUT_S,
            policy=policy,
            transport=transport,
            sleep=sleep,
        )

    @property
    def base_url(self) -> str:
        """The base URL the next call will use (sticky alternate if pinned)."""
        if self.failover is None:
            return self.configured_base_url
        return self.failover.base_url_for(self.configured_base_url)

    def build_body(
        self,
        request: ChatRequest,
        *,
        vision: bool = True,
        send_tool_choice: bool = True,
    ) -> dict[str, Any]:
        """Assemble the chat-completions body.

        Per-call options win over configured sampling defaults. Knobs the
        backend does not support are left out. When the backend has no
        ``vision`` support, image parts are reduced to their message text.
        """
        options = request.options
        flatten_images = not vision and request.has_images
        if flatten_images:
            log.debug("%s is text-only; dropping image parts", self.provider)
        body: dict[str, Any] = {
            "model": self.model,
            "messages": serialize_messages(
                request.messages, flatten_images=flatten_images
            ),
            "max_tokens": options.max_tokens or self.sampling.max_tokens,
            "temperature": (
                options.temperature
                if options.temperature is not None
                else self.sampling.temperature
            ),
            "stream": False,
        }
        for knob in SAMPLING_KNOBS:
            if knob not in self.supported_sampling:
                continue
            value = getattr(options, knob)
            if value is None:
                value = getattr(self.sampling, knob)
            if value is not None:
                body[knob] = value

        if request.tools:
            body["tools"] = format_tools(request.tools)
            if send_tool_choice:
                body["tool_choice"] = format_tool_choice(options.tool_choice)
        return body

    async def post(
        self, body: dict[str, Any], endpoint: str = CHAT_ENDPOINT
    ) -> dict[str, Any]:
        """Execute ``body`` with failover and return the raw decoded response."""
        return await execute_with_failover(
            self.executor, self.failover, self.configured_base_url, endpoint, body
        )

    async def complete(
        self, body: dict[str, Any], endpoint: str = CHAT_ENDPOINT
    ) -> ChatResult:
        """Execute ``body`` and normalize the response.

        A ``tool_use_failed`` rejection is turned into a result when its failed
        generation is recoverable; every other error is re-raised after being
        recorded in ``last_error``.
        """
        try:
            response = await self.post(body, endpoint)
        except APIError as e:
            self.last_error = format_error(e)
            recovered = recover_tool_use_failed(e)
            if recovered is not None:
                return recovered
            raise
        self.last_error = ""
        return self._to_result(response)

    def _to_result(self, response: dict[str, Any]) -> ChatResult:
        choices = response.get("choices")
        message: dict[str, Any] = {}
        if isinstance(choices, list) and choices and isinstance(choices[0], dict):
            candidate = choices[0].get("message")
            if isinstance(candidate, dict):
                message = candidate
        normalized = normalize_message(message, self.profile)
        usage = response.get("usage")
        return ChatResult(
            text=normalized.text,
            tool_calls=normalized.tool_calls,
            thinking=normalized.thinking,
            usage=usage if isinstance(usage, dict) else {},
            raw=response,
        )

    async def probe_models(self, base_url: str | None = None) -> ModelProbe:
        """GET ``/models`` on ``base_url`` (default: the current base URL)."""
        url = join_url(base_url or self.base_url, MODELS_ENDPOINT)
        try:
            response = await self.executor.fetch(url)
        except APIError as e:
            return ModelProbe(ok=False, error=format_error(e))
        if not response.is_success:
            return ModelProbe(
                ok=False,
                error=f"HTTP {response.status_code}: {response.text[:ERROR_PREVIEW_CHARS]}",
            )
        try:
            data = response.json()
        except ValueError:
            data = None
        entries = data.get("data") if isinstance(data, dict) else None
        model_ids: tuple[str, ...] = ()
        if isinstance(entries, list):
            model_ids = tuple(
                str(entry["id"])
                for entry in entries
                if isinstance(entry, dict) and entry.get("id")
            )
        return ModelProbe(ok=True, model_ids=model_ids)

    async def check_available(self, *, require_api_key: bool = True) -> bool:
        """Probe ``/models`` and record the outcome in ``last_error``."""
        if require_api_key and not self.api_key:
            self.last_error = MISSING_KEY_ERROR
            return False
        probe = await self.probe_models()
        self.last_error = probe.error
        if not probe.ok:
            log.debug("%s availability probe failed: %s", self.provider, probe.error)
        return probe.ok

    async def aclose(self) -> None:
        await self.executor.aclose()
