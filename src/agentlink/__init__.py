"""agentlink: resilient LLM provider calls with normalized tool calls.

Public API:
    - ProviderRegistry: config lifecycle and primary-provider chat
    - ChatMessage / ToolDefinition / ChatOptions: request types
    - ChatResult / ToolCall: normalized results
    - Provider adapters under ``agentlink.providers``
"""

from __future__ import annotations

import logging

from agentlink.config import ProviderConfig, RegistryConfig, SamplingDefaults
from agentlink.errors import (
    AgentLinkError,
    APIError,
    ConfigurationError,
    PrimaryProviderMissingError,
    ProviderConnectionError,
    ProviderHTTPError,
    ProviderNotConfiguredError,
    RateLimitError,
    RequestTimeoutError,
    ToolUseFailedError,
)
from agentlink.providers.models import (
    ChatMessage,
    ChatOptions,
    ChatRequest,
    ChatResult,
    ImagePart,
    TextPart,
    ToolCall,
    ToolDefinition,
)
from agentlink.registry import ProviderInfo, ProviderRegistry, ProviderStatus
from agentlink.retry import RateLimitPolicy
from agentlink.store import ConfigStore, InMemoryConfigStore, JSONConfigStore

try:
    from importlib.metadata import PackageNotFoundError, version

    __version__ = version("agentlink")
except PackageNotFoundError:
    __version__ = "0.0.0+unknown"

# Library-level NullHandler: stay silent unless the consumer configures logging.
logging.getLogger("agentlink").addHandler(logging.NullHandler())

__all__ = [
    "APIError",
    "AgentLinkError",
    "ChatMessage",
    "ChatOptions",
    "ChatRequest",
    "ChatResult",
    "ConfigStore",
    "ConfigurationError",
    "ImagePart",
    "InMemoryConfigStore",
    "JSONConfigStore",
    "PrimaryProviderMissingError",
    "ProviderConfig",
    "ProviderConnectionError",
    "ProviderHTTPError",
    "ProviderInfo",
    "ProviderNotConfiguredError",
    "ProviderRegistry",
    "ProviderStatus",
    "RateLimitError",
    "RateLimitPolicy",
    "RegistryConfig",
    "RequestTimeoutError",
    "SamplingDefaults",
    "TextPart",
    "ToolCall",
    "ToolDefinition",
    "ToolUseFailedError",
]
