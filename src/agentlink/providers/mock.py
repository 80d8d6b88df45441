"""Mock provider for testing."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from agentlink.providers.base import ProviderCapabilities
from agentlink.providers.models import ChatResult, TextPart
from agentlink.toolcalls import NormalizationProfile, normalize_message

if TYPE_CHECKING:
    from collections.abc import Iterable

    from agentlink.config import ProviderConfig
    from agentlink.providers.models import ChatRequest

ScriptItem = ChatResult | dict[str, Any] | BaseException


class MockProvider:
    """Offline provider that replays a script.

    Each ``chat`` call pops the next script item: a ``ChatResult`` is returned
    as-is, a dict is treated as a backend ``message`` and normalized, an
    exception is raised. With an empty script the last user text is echoed.
    """

    name = "mock"

    def __init__(
        self,
        config: ProviderConfig | None = None,
        *,
        script: Iterable[ScriptItem] = (),
        profile: NormalizationProfile | None = None,
        available: bool = True,
    ) -> None:
        self._model = (config.model if config is not None else None) or "mock-model"
        self.script: list[ScriptItem] = list(script)
        self.profile = profile or NormalizationProfile(recover_from_text=True)
        self.available = available
        self.requests: list[ChatRequest] = []
        self.closed = False
        self._last_error = ""

    @property
    def model(self) -> str:
        return self._model

    @property
    def capabilities(self) -> ProviderCapabilities:
        """Return supported feature flags."""
        return ProviderCapabilities(vision=True, tools=True, requires_api_key=False)

    @property
    def configured(self) -> bool:
        return True

    @property
    def last_error(self) -> str:
        return self._last_error

    async def chat(self, request: ChatRequest) -> ChatResult:
        """Return the next scripted result."""
        self.requests.append(request)
        if not self.script:
            return ChatResult(
                text=f"echo: {_last_user_text(request)[:100]}",
                usage={"prompt_tokens": 10, "total_tokens": 20},
            )
        item = self.script.pop(0)
        if isinstance(item, BaseException):
            self._last_error = str(item)
            raise item
        self._last_error = ""
        if isinstance(item, ChatResult):
            return item
        normalized = normalize_message(item, self.profile)
        return ChatResult(
            text=normalized.text,
            tool_calls=normalized.tool_calls,
            thinking=normalized.thinking,
            raw={"choices": [{"message": item}]},
        )

    async def is_available(self) -> bool:
        return self.available

    async def aclose(self) -> None:
        self.closed = True


def _last_user_text(request: ChatRequest) -> str:
    for message in reversed(request.messages):
        if message.role != "user":
            continue
        if isinstance(message.content, str):
            return message.content
        return " ".join(p.text for p in message.content if isinstance(p, TextPart))
    return ""
