"""Provider protocol: minimal interface every backend adapter satisfies."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from agentlink.providers.models import ChatRequest, ChatResult


@dataclass(frozen=True)
class ProviderCapabilities:
    """Feature flags exposed by providers."""

    vision: bool
    tools: bool
    thinking: bool = False
    requires_api_key: bool = True


@runtime_checkable
class Provider(Protocol):
    """Minimal provider protocol: chat, is_available, aclose."""

    name: str

    @property
    def model(self) -> str:
        """Model identifier sent with each request."""
        ...

    @property
    def capabilities(self) -> ProviderCapabilities:
        """Feature flags for request shaping and UI display."""
        ...

    @property
    def configured(self) -> bool:
        """Whether the provider has what it needs to make calls (e.g. a key)."""
        ...

    @property
    def last_error(self) -> str:
        """Short description of the most recent failure, or ``""``."""
        ...

    async def chat(self, request: ChatRequest) -> ChatResult:
        """Send one chat call and return the normalized result."""
        ...

    async def is_available(self) -> bool:
        """Probe whether the backend is reachable with the current config."""
        ...

    async def aclose(self) -> None:
        """Release network resources."""
        ...
