"""Configuration: frozen provider records with per-backend defaults.

The persisted ``providerConfig`` record keeps camelCase keys
(``apiKey``, ``baseUrl``, ``requestTimeoutMs`` ...); the models accept either
spelling and dump with ``by_alias=True``.

API keys are auto-resolved from ``<NAME>_API_KEY`` environment variables
(``.env`` is loaded at import) when the record has none.
"""

from __future__ import annotations

import os
from typing import TYPE_CHECKING, Any

from dotenv import load_dotenv
from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

if TYPE_CHECKING:
    from collections.abc import Mapping

load_dotenv()

_MODEL_CONFIG = ConfigDict(
    frozen=True,
    alias_generator=to_camel,
    populate_by_name=True,
    extra="ignore",
)


class SamplingDefaults(BaseModel):
    """Sampling knobs applied when a call does not override them."""

    model_config = _MODEL_CONFIG

    temperature: float | None = Field(default=None, ge=0)
    max_tokens: int | None = Field(default=None, ge=1)
    top_p: float | None = Field(default=None, ge=0, le=1)
    top_k: int | None = Field(default=None, ge=0)
    presence_penalty: float | None = None
    frequency_penalty: float | None = None
    repeat_penalty: float | None = None

    def merged_over(self, base: SamplingDefaults) -> SamplingDefaults:
        """Return ``base`` with every non-None value of ``self`` laid on top."""
        return base.model_copy(update=self.model_dump(exclude_none=True))


class ProviderConfig(BaseModel):
    """Per-backend settings. ``None`` fields fall back to backend defaults."""

    model_config = _MODEL_CONFIG

    api_key: str = Field(default="", repr=False)
    base_url: str | None = None
    model: str | None = None
    sampling: SamplingDefaults = Field(default_factory=SamplingDefaults)
    request_timeout_ms: int | None = Field(default=None, gt=0)
    enable_thinking: bool = False

    @field_validator("api_key", mode="before")
    @classmethod
    def normalize_api_key(cls, v: Any) -> Any:
        """Trim whitespace and map None to an empty key."""
        if v is None:
            return ""
        return v.strip() if isinstance(v, str) else v

    @field_validator("base_url", mode="before")
    @classmethod
    def normalize_base_url(cls, v: Any) -> Any:
        """Drop trailing slashes; empty means "use the default"."""
        if isinstance(v, str):
            v = v.strip().rstrip("/")
            return v or None
        return v

    @field_validator("model", mode="before")
    @classmethod
    def normalize_model(cls, v: Any) -> Any:
        """Trim surrounding whitespace on model identifiers."""
        if isinstance(v, str):
            return v.strip() or None
        return v

    @property
    def timeout_s(self) -> float | None:
        """Request timeout in seconds, if configured."""
        if self.request_timeout_ms is None:
            return None
        return self.request_timeout_ms / 1000.0


DEFAULT_PRIMARY = "fireworks"

_BASE_SAMPLING = SamplingDefaults(temperature=0.3, max_tokens=4096)

DEFAULT_PROVIDER_CONFIGS: dict[str, ProviderConfig] = {
    "fireworks": ProviderConfig(
        base_url="https://api.fireworks.ai/inference/v1",
        model="accounts/fireworks/models/kimi-k2p5",
        sampling=SamplingDefaults(
            temperature=0.6,
            max_tokens=32768,
            top_p=0.95,
            top_k=40,
            presence_penalty=0,
            frequency_penalty=0,
        ),
        request_timeout_ms=300_000,
    ),
    "siliconflow": ProviderConfig(
        base_url="https://api.siliconflow.com/v1",
        model="zai-org/GLM-4.6V",
        sampling=_BASE_SAMPLING,
        request_timeout_ms=120_000,
    ),
    "groq": ProviderConfig(
        base_url="https://api.groq.com/openai/v1",
        model="meta-llama/llama-4-maverick-17b-128e-instruct",
        sampling=SamplingDefaults(temperature=0.0, max_tokens=4096),
        request_timeout_ms=120_000,
    ),
    "ollama": ProviderConfig(
        base_url="http://localhost:11434/v1",
        model="qwen3-vl:8b",
        sampling=_BASE_SAMPLING,
        request_timeout_ms=120_000,
    ),
    "cerebras": ProviderConfig(
        base_url="https://api.cerebras.ai/v1",
        model="glm-4.7",
        sampling=_BASE_SAMPLING,
        request_timeout_ms=120_000,
    ),
    "xai": ProviderConfig(
        base_url="https://api.x.ai/v1",
        model="grok-4-1-fast-non-reasoning",
        sampling=SamplingDefaults(temperature=0.7, max_tokens=4096),
        request_timeout_ms=120_000,
    ),
    "zai": ProviderConfig(
        base_url="https://api.z.ai/api/paas/v4",
        model="GLM-4.5V",
        sampling=_BASE_SAMPLING,
        request_timeout_ms=120_000,
    ),
}

# Superseded values still found in older saved records.
_LEGACY_SILICONFLOW_BASE_URL = "https://api.siliconflow.cn/v1"
_LEGACY_SILICONFLOW_MODEL = "Qwen/Qwen3-VL-32B-Instruct"


class RegistryConfig(BaseModel):
    """The whole persisted ``providerConfig`` record."""

    model_config = _MODEL_CONFIG

    primary: str = DEFAULT_PRIMARY
    providers: dict[str, ProviderConfig] = Field(default_factory=dict)

    def to_record(self) -> dict[str, Any]:
        """Dump in the persisted camelCase shape."""
        return self.model_dump(mode="json", by_alias=True)


def merge_provider_config(
    base: ProviderConfig, override: ProviderConfig | None
) -> ProviderConfig:
    """Lay the explicitly set, non-None fields of ``override`` over ``base``."""
    if override is None:
        return base
    updates: dict[str, Any] = {}
    for name in override.model_fields_set:
        value = getattr(override, name)
        if name == "sampling":
            updates["sampling"] = value.merged_over(base.sampling)
        elif value is not None:
            updates[name] = value
    return base.model_copy(update=updates)


def provider_defaults(name: str) -> ProviderConfig:
    """Return the built-in config for ``name`` (empty for unknown names)."""
    return DEFAULT_PROVIDER_CONFIGS.get(name, ProviderConfig(sampling=_BASE_SAMPLING))


def sanitize_config(config: RegistryConfig | Mapping[str, Any] | None) -> RegistryConfig:
    """Normalize a loaded or patched record.

    Unknown providers are dropped, every known provider is filled from its
    defaults, legacy SiliconFlow values are migrated, and an unknown primary
    falls back to ``DEFAULT_PRIMARY``.
    """
    if config is None:
        config = RegistryConfig()
    elif not isinstance(config, RegistryConfig):
        config = RegistryConfig.model_validate(config)

    providers: dict[str, ProviderConfig] = {}
    for name, defaults in DEFAULT_PROVIDER_CONFIGS.items():
        providers[name] = merge_provider_config(defaults, config.providers.get(name))

    siliconflow = providers["siliconflow"]
    migrations: dict[str, Any] = {}
    if siliconflow.base_url == _LEGACY_SILICONFLOW_BASE_URL:
        migrations["base_url"] = DEFAULT_PROVIDER_CONFIGS["siliconflow"].base_url
    if siliconflow.model == _LEGACY_SILICONFLOW_MODEL:
        migrations["model"] = DEFAULT_PROVIDER_CONFIGS["siliconflow"].model
    if migrations:
        providers["siliconflow"] = siliconflow.model_copy(update=migrations)

    primary = config.primary if config.primary in providers else DEFAULT_PRIMARY
    return RegistryConfig(primary=primary, providers=providers)


def api_key_env_var(name: str) -> str:
    """Return the environment variable consulted for ``name``'s key."""
    return f"{name.upper()}_API_KEY"


def resolve_api_key(name: str, config: ProviderConfig) -> str:
    """Return the record's key, else the ``<NAME>_API_KEY`` env value."""
    if config.api_key:
        return config.api_key
    return os.environ.get(api_key_env_var(name), "").strip()
