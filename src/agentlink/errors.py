"""Exception hierarchy for agentlink.

Every error carries a stable, machine-checkable ``code`` so the agent loop can
branch on failure kind without substring matching, plus an optional ``hint``
with remediation guidance for humans.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from collections.abc import Mapping


class AgentLinkError(Exception):
    """Base exception for all agentlink errors."""

    code: str = "AGENTLINK_ERROR"

    def __init__(self, message: str, *, hint: str | None = None) -> None:
        super().__init__(message)
        self.hint = hint


class ConfigurationError(AgentLinkError):
    """Provider configuration is invalid or incomplete."""

    code = "CONFIGURATION_ERROR"


class PrimaryProviderMissingError(ConfigurationError):
    """The configured primary provider does not exist."""

    code = "PRIMARY_PROVIDER_MISSING"


class ProviderNotConfiguredError(ConfigurationError):
    """The primary provider needs an API key and none is configured."""

    code = "NO_PROVIDER_AVAILABLE"


class APIError(AgentLinkError):
    """A backend call failed.

    ``status_code`` is ``None`` when the backend never answered (timeouts,
    connection failures); host failover keys off that distinction.
    """

    code = "API_ERROR"

    def __init__(
        self,
        message: str,
        *,
        hint: str | None = None,
        provider: str | None = None,
        status_code: int | None = None,
        retryable: bool | None = None,
    ) -> None:
        super().__init__(message, hint=hint)
        self.provider = provider
        self.status_code = status_code
        self.retryable = retryable


class RequestTimeoutError(APIError):
    """The request did not complete within the configured bound."""

    code = "REQUEST_TIMEOUT"

    def __init__(
        self,
        message: str,
        *,
        timeout_s: float,
        provider: str | None = None,
        hint: str | None = None,
    ) -> None:
        super().__init__(message, hint=hint, provider=provider, retryable=True)
        self.timeout_s = timeout_s


class ProviderConnectionError(APIError):
    """The backend could not be reached at the transport level."""

    code = "NETWORK_ERROR"


class ProviderHTTPError(APIError):
    """The backend answered with a non-success HTTP status."""

    code = "PROVIDER_HTTP_ERROR"

    def __init__(
        self,
        message: str,
        *,
        status_code: int,
        provider: str | None = None,
        hint: str | None = None,
        provider_error: Mapping[str, Any] | None = None,
        provider_code: str | None = None,
        body: str = "",
        retryable: bool | None = None,
    ) -> None:
        super().__init__(
            message,
            hint=hint,
            provider=provider,
            status_code=status_code,
            retryable=retryable,
        )
        self.provider_error: dict[str, Any] | None = (
            dict(provider_error) if provider_error is not None else None
        )
        self.provider_code = provider_code
        self.body = body


class RateLimitError(ProviderHTTPError):
    """HTTP 429 persisted past the retry budget."""

    code = "RATE_LIMIT_EXCEEDED"

    def __init__(
        self,
        message: str,
        *,
        status_code: int = 429,
        provider: str | None = None,
        hint: str | None = None,
        provider_error: Mapping[str, Any] | None = None,
        provider_code: str | None = None,
        body: str = "",
        retry_after_s: float | None = None,
        attempts: int = 0,
        waited_s: float = 0.0,
    ) -> None:
        super().__init__(
            message,
            status_code=status_code,
            provider=provider,
            hint=hint,
            provider_error=provider_error,
            provider_code=provider_code,
            body=body,
            retryable=True,
        )
        self.retry_after_s = retry_after_s
        self.attempts = attempts
        self.waited_s = waited_s


class ToolUseFailedError(ProviderHTTPError):
    """The backend rejected the model's own tool-call generation.

    Some backends embed the text the model tried to emit under
    ``error.failed_generation``; adapters use it to recover.
    """

    code = "TOOL_USE_FAILED"

    @property
    def failed_generation(self) -> str | None:
        """Return the embedded generation text, if the backend supplied one."""
        if not self.provider_error:
            return None
        value = self.provider_error.get("failed_generation")
        if value is None:
            return None
        text = str(value)
        return text if text.strip() else None

