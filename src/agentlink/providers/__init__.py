"""Provider implementations."""

from .base import Provider, ProviderCapabilities
from .cerebras import CerebrasProvider
from .executor import RequestExecutor
from .failover import HostFailoverPolicy, execute_with_failover
from .fireworks import FireworksProvider
from .groq import GroqProvider
from .mock import MockProvider
from .ollama import OllamaProvider
from .siliconflow import SiliconFlowProvider
from .xai import XAIProvider
from .zai import ZAIProvider

__all__ = [
    "CerebrasProvider",
    "FireworksProvider",
    "GroqProvider",
    "HostFailoverPolicy",
    "MockProvider",
    "OllamaProvider",
    "Provider",
    "ProviderCapabilities",
    "RequestExecutor",
    "SiliconFlowProvider",
    "XAIProvider",
    "ZAIProvider",
    "execute_with_failover",
]
