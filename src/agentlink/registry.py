"""Provider registry: config lifecycle, primary selection, status polling.

The registry owns one adapter per known backend, built from the sanitized
``providerConfig`` record. Calls always go to the primary backend; there is
no automatic fallback to another one.
"""

from __future__ import annotations

from dataclasses import dataclass, field
import logging
import time
from typing import TYPE_CHECKING, Any

from agentlink.config import (
    DEFAULT_PROVIDER_CONFIGS,
    RegistryConfig,
    api_key_env_var,
    sanitize_config,
)
from agentlink.errors import PrimaryProviderMissingError, ProviderNotConfiguredError
from agentlink.providers import (
    CerebrasProvider,
    FireworksProvider,
    GroqProvider,
    OllamaProvider,
    SiliconFlowProvider,
    XAIProvider,
    ZAIProvider,
)
from agentlink.providers.models import ChatOptions, ChatRequest
from agentlink.throttle import ThrottledLogger

if TYPE_CHECKING:
    from collections.abc import Callable, Iterable, Mapping

    from agentlink.config import ProviderConfig
    from agentlink.providers.base import Provider
    from agentlink.providers.models import ChatMessage, ChatResult, ToolDefinition
    from agentlink.store import ConfigStore

    ProviderFactory = Callable[[ProviderConfig], Provider]

log = logging.getLogger(__name__)

STATUS_TTL_S = 15.0

PROVIDER_FACTORIES: dict[str, ProviderFactory] = {
    "fireworks": FireworksProvider,
    "siliconflow": SiliconFlowProvider,
    "groq": GroqProvider,
    "ollama": OllamaProvider,
    "cerebras": CerebrasProvider,
    "xai": XAIProvider,
    "zai": ZAIProvider,
}


@dataclass(frozen=True)
class ProviderStatus:
    """Point-in-time health of one backend."""

    configured: bool
    available: bool
    model: str
    is_primary: bool


@dataclass(frozen=True)
class ProviderInfo:
    """Static display data for settings UIs."""

    label: str
    vision: bool
    tools: bool
    signup_url: str
    note: str
    tier: str
    pricing: str | None = None
    cost_per_mtoken_in: float | None = None
    cost_per_mtoken_out: float | None = None


PROVIDER_INFO: dict[str, ProviderInfo] = {
    "fireworks": ProviderInfo(
        label="Kimi K2.5",
        vision=True,
        tools=True,
        signup_url="https://fireworks.ai/account/api-keys",
        note="Flagship agentic model with thinking mode. 262K context.",
        tier="recommended",
        pricing="$0.60 in / $3.00 out",
        cost_per_mtoken_in=0.60,
        cost_per_mtoken_out=3.00,
    ),
    "siliconflow": ProviderInfo(
        label="GLM-4.6V",
        vision=True,
        tools=True,
        signup_url="https://cloud.siliconflow.com/account/ak",
        note="Vision GLM on SiliconFlow. Falls back between .com and .cn hosts.",
        tier="budget",
    ),
    "groq": ProviderInfo(
        label="Llama 4 Maverick",
        vision=True,
        tools=True,
        signup_url="https://console.groq.com/keys",
        note="Fast Groq inference. 17Bx128E MoE, 128K context.",
        tier="budget",
        pricing="$0.20 in / $0.60 out",
        cost_per_mtoken_in=0.20,
        cost_per_mtoken_out=0.60,
    ),
    "ollama": ProviderInfo(
        label="Ollama",
        vision=True,
        tools=True,
        signup_url="https://ollama.ai/",
        note="Fully private, no API key needed. Requires Ollama serve + model pull.",
        tier="free",
        pricing="Free",
        cost_per_mtoken_in=0.0,
        cost_per_mtoken_out=0.0,
    ),
    "cerebras": ProviderInfo(
        label="GLM 4.7 (Cerebras)",
        vision=False,
        tools=True,
        signup_url="https://cloud.cerebras.ai/",
        note="Very fast text-only inference. Screenshots are described, not sent.",
        tier="budget",
    ),
    "xai": ProviderInfo(
        label="Grok 4.1 Fast",
        vision=True,
        tools=True,
        signup_url="https://console.x.ai/",
        note="Non-reasoning Grok variant tuned for tool use.",
        tier="standard",
    ),
    "zai": ProviderInfo(
        label="GLM-4.5V (z.ai)",
        vision=True,
        tools=True,
        signup_url="https://z.ai/manage-apikey/apikey-list",
        note="General API endpoint. Coding Plan keys need the coding base URL.",
        tier="standard",
    ),
}


@dataclass
class StatusCache:
    """Last status snapshot and when it was taken."""

    timestamp: float = 0.0
    data: dict[str, ProviderStatus] | None = None

    def get(self, now: float, ttl_s: float) -> dict[str, ProviderStatus] | None:
        if self.data is None or now - self.timestamp >= ttl_s:
            return None
        return self.data

    def invalidate(self) -> None:
        self.timestamp = 0.0
        self.data = None


@dataclass
class ProviderRegistry:
    """Owns the provider config record and one adapter per backend.

    Example:
        registry = await ProviderRegistry(JSONConfigStore(path)).init()
        result = await registry.chat(messages, tools)
    """

    store: ConfigStore | None = None
    factories: Mapping[str, ProviderFactory] = field(
        default_factory=lambda: dict(PROVIDER_FACTORIES)
    )
    throttle: ThrottledLogger = field(default_factory=lambda: ThrottledLogger(log))
    status_ttl_s: float = STATUS_TTL_S
    clock: Callable[[], float] = time.monotonic

    config: RegistryConfig = field(init=False)
    providers: dict[str, Provider] = field(init=False, default_factory=dict)
    current_provider: Provider | None = field(init=False, default=None)
    _status: StatusCache = field(init=False, default_factory=StatusCache)

    def __post_init__(self) -> None:
        unknown = set(self.factories) - set(DEFAULT_PROVIDER_CONFIGS)
        if unknown:
            raise ValueError(f"No default config for providers: {sorted(unknown)}")
        self.config = sanitize_config(None)

    async def init(self) -> ProviderRegistry:
        """Load the stored record (defaults on absence or failure) and build adapters."""
        record: Mapping[str, Any] | None = None
        if self.store is not None:
            try:
                record = await self.store.load()
            except Exception as e:
                self.throttle.warning("init.loadProviderConfig", "%s", e)
        try:
            self.config = sanitize_config(record)
        except ValueError as e:
            self.throttle.warning("init.sanitizeProviderConfig", "%s", e)
            self.config = sanitize_config(None)
        await self._rebuild()
        return self

    async def get_provider(self) -> Provider:
        """Return the primary adapter.

        Raises:
            PrimaryProviderMissingError: The primary has no adapter.
            ProviderNotConfiguredError: The primary needs a key and has none.
        """
        name = self.config.primary
        provider = self.providers.get(name)
        if provider is None:
            raise PrimaryProviderMissingError(
                f'Primary provider "{name}" is not configured',
                hint=f"Choose one of: {', '.join(sorted(self.providers))}.",
            )
        if provider.capabilities.requires_api_key and not provider.configured:
            raise ProviderNotConfiguredError(
                f'Provider "{name}" is not configured. Add API key in settings.',
                hint=f"Set apiKey for {name} or export {api_key_env_var(name)}.",
            )
        # Health is not checked here; call errors surface with details instead.
        self.current_provider = provider
        return provider

    async def chat(
        self,
        messages: Iterable[ChatMessage],
        tools: Iterable[ToolDefinition] = (),
        options: ChatOptions | None = None,
    ) -> ChatResult:
        """Send one call to the primary backend."""
        provider = await self.get_provider()
        request = ChatRequest(
            messages=tuple(messages),
            tools=tuple(tools),
            options=options or ChatOptions(),
        )
        try:
            return await provider.chat(request)
        except Exception as e:
            log.warning("%s failed: %s", provider.name, e)
            raise

    async def update_config(self, patch: Mapping[str, Any]) -> None:
        """Merge ``patch`` into the record, rebuild adapters and persist.

        Top-level keys replace; entries under ``providers`` replace the
        matching provider record whole, and unset fields then fall back to
        backend defaults.
        """
        current = self.config.to_record()
        merged = {**current, **patch}
        patch_providers = patch.get("providers")
        if isinstance(patch_providers, dict):
            merged["providers"] = {**current["providers"], **patch_providers}
        self.config = sanitize_config(merged)
        await self._rebuild()
        if self.store is None:
            return
        try:
            await self.store.save(self.config.to_record())
        except Exception as e:
            self.throttle.warning("updateConfig.persistProviderConfig", "%s", e)

    async def get_status(self, *, force: bool = False) -> dict[str, ProviderStatus]:
        """Return status per backend, cached for ``status_ttl_s`` seconds.

        Only configured backends are probed; probe exceptions count as
        unavailable.
        """
        now = self.clock()
        if not force:
            cached = self._status.get(now, self.status_ttl_s)
            if cached is not None:
                return cached

        status: dict[str, ProviderStatus] = {}
        for name, provider in self.providers.items():
            configured = (
                not provider.capabilities.requires_api_key or provider.configured
            )
            available = False
            if configured:
                try:
                    available = await provider.is_available()
                except Exception as e:
                    self.throttle.warning(f"getStatus.isAvailable.{name}", "%s", e)
            status[name] = ProviderStatus(
                configured=configured,
                available=available,
                model=provider.model,
                is_primary=name == self.config.primary,
            )
        self._status = StatusCache(timestamp=now, data=status)
        return status

    @staticmethod
    def provider_info() -> dict[str, ProviderInfo]:
        """Static labels and capabilities for every backend."""
        return dict(PROVIDER_INFO)

    async def aclose(self) -> None:
        """Close every adapter's HTTP client."""
        for provider in self.providers.values():
            await provider.aclose()
        self.providers = {}
        self.current_provider = None

    async def _rebuild(self) -> None:
        old = self.providers
        self.providers = {
            name: factory(self.config.providers[name])
            for name, factory in self.factories.items()
        }
        self.current_provider = None
        self._status.invalidate()
        for provider in old.values():
            await provider.aclose()
