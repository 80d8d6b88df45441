"""Small HTTP-related constants shared across agentlink.

This module is intentionally tiny to avoid circular imports and drift.
"""

from __future__ import annotations

RATE_LIMIT_STATUS_CODE = 429

# Availability probes should fail fast; chat calls use the provider timeout.
PROBE_TIMEOUT_S = 10.0

# Error text surfaced through ``last_error`` is kept short for status UIs.
ERROR_PREVIEW_CHARS = 220


def build_headers(api_key: str | None, *, json_body: bool = True) -> dict[str, str]:
    """Return request headers, with bearer auth when a key is set."""
    headers = {"Content-Type": "application/json"} if json_body else {}
    if api_key:
        headers["Authorization"] = f"Bearer {api_key}"
    return headers


def join_url(base_url: str, endpoint: str) -> str:
    """Join a base URL and an endpoint path without doubling slashes."""
    if not endpoint:
        return base_url
    return f"{base_url.rstrip('/')}/{endpoint.lstrip('/')}"
