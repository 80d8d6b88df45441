"""Shared provider-side error helpers.

Backends report failures as HTTP status plus a JSON body. These helpers turn
that pair into the typed errors in ``agentlink.errors`` so callers can branch
on ``code`` instead of matching message text.
"""

from __future__ import annotations

import json
from typing import Any

from agentlink._http import ERROR_PREVIEW_CHARS, RATE_LIMIT_STATUS_CODE
from agentlink.config import api_key_env_var
from agentlink.errors import (
    ProviderHTTPError,
    RateLimitError,
    ToolUseFailedError,
)

TOOL_USE_FAILED_CODE = "tool_use_failed"


def _auth_hint(provider: str, status_code: int | None) -> str | None:
    """Generate a hint for auth errors where naming the env var is useful."""
    if status_code in {401, 403}:
        return (
            f"Check credentials/permissions (try setting {api_key_env_var(provider)} "
            "or the provider's apiKey)."
        )
    return None


def _parse_error_object(body: str) -> dict[str, Any] | None:
    """Return the ``error`` object of a JSON error body, if there is one."""
    try:
        parsed = json.loads(body)
    except ValueError:
        return None
    if not isinstance(parsed, dict):
        return None
    error = parsed.get("error")
    return error if isinstance(error, dict) else None


def build_http_error(
    provider: str,
    status_code: int,
    body: str,
    *,
    attempts: int = 0,
    waited_s: float = 0.0,
    retry_after_s: float | None = None,
) -> ProviderHTTPError:
    """Classify a non-success response into the error taxonomy.

    A ``tool_use_failed`` provider code wins over the status: the backend did
    answer, it just rejected the model's own tool-call output.
    """
    provider_error = _parse_error_object(body)
    code = provider_error.get("code") if provider_error else None
    message = f"{provider} API error {status_code}: {body}"
    hint = _auth_hint(provider, status_code)

    if code == TOOL_USE_FAILED_CODE:
        return ToolUseFailedError(
            message,
            status_code=status_code,
            provider=provider,
            hint=hint,
            provider_error=provider_error,
            provider_code=code,
            body=body,
            retryable=False,
        )

    provider_code = code if isinstance(code, str) else None
    if status_code == RATE_LIMIT_STATUS_CODE:
        return RateLimitError(
            message,
            provider=provider,
            hint="Back off and retry later, or lower the request rate.",
            provider_error=provider_error,
            provider_code=provider_code,
            body=body,
            retry_after_s=retry_after_s,
            attempts=attempts,
            waited_s=waited_s,
        )
    return ProviderHTTPError(
        message,
        status_code=status_code,
        provider=provider,
        hint=hint,
        provider_error=provider_error,
        provider_code=provider_code,
        body=body,
        retryable=status_code >= 500,
    )


def format_error(exc: BaseException | None) -> str:
    """Return a short, display-safe description of a failure."""
    if exc is None:
        return "Unknown error"
    provider_error = getattr(exc, "provider_error", None)
    if isinstance(provider_error, dict) and provider_error.get("message"):
        return str(provider_error["message"])[:ERROR_PREVIEW_CHARS]
    text = str(exc) or type(exc).__name__
    return text[:ERROR_PREVIEW_CHARS]
