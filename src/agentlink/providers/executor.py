"""Single-backend HTTP executor: timeout, bounded 429 retry, error mapping.

``RequestExecutor`` issues one logical chat-completion call against one
backend configuration. It owns:

- a per-attempt timeout (``asyncio.timeout``) that cancels the in-flight
  httpx request when it fires
- an explicit retry loop for HTTP 429 whose delays come from
  ``agentlink.retry``
- classification of every failure into ``agentlink.errors``

It holds no state across calls besides the lazily created httpx client.
"""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING, Any

import httpx

from agentlink._http import (
    PROBE_TIMEOUT_S,
    RATE_LIMIT_STATUS_CODE,
    build_headers,
    join_url,
)
from agentlink.errors import (
    ProviderConnectionError,
    ProviderHTTPError,
    RequestTimeoutError,
)
from agentlink.providers._errors import build_http_error
from agentlink.retry import RateLimitPolicy, compute_retry_delay, parse_retry_after

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

log = logging.getLogger(__name__)

DEFAULT_TIMEOUT_S = 120.0


class RequestExecutor:
    """Issue JSON requests to one backend with bounded rate-limit retries."""

    def __init__(
        self,
        *,
        provider: str,
        api_key: str | None = None,
        timeout_s: float = DEFAULT_TIMEOUT_S,
        policy: RateLimitPolicy | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        """Initialize for one backend.

        Args:
            provider: Backend name used in error messages and logs.
            api_key: Sent as a bearer token when non-empty.
            timeout_s: Bound on each individual attempt.
            policy: Rate-limit retry bounds.
            transport: Optional httpx transport (tests inject a mock).
            sleep: Awaitable used for backoff waits.
        """
        if timeout_s <= 0:
            raise ValueError("timeout_s must be > 0")
        self.provider = provider
        self.api_key = api_key or None
        self.timeout_s = timeout_s
        self.policy = policy or RateLimitPolicy()
        self._transport = transport
        self._sleep = sleep
        self._client: httpx.AsyncClient | None = None

    def _get_client(self) -> httpx.AsyncClient:
        """Lazily initialize and return the httpx client."""
        if self._client is None:
            # Each attempt is bounded by asyncio.timeout in _send.
            self._client = httpx.AsyncClient(transport=self._transport, timeout=None)
        return self._client

    async def aclose(self) -> None:
        """Close the underlying client, if one was created."""
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def execute(
        self, base_url: str, endpoint: str, body: dict[str, Any]
    ) -> dict[str, Any]:
        """POST ``body`` to ``base_url + endpoint`` and return the decoded JSON.

        Raises:
            RequestTimeoutError: An attempt exceeded ``timeout_s``.
            ProviderConnectionError: The backend could not be reached.
            RateLimitError: HTTP 429 persisted past ``policy.max_retries``.
            ToolUseFailedError: The backend rejected the model's tool call.
            ProviderHTTPError: Any other non-success status, or a success
                response whose body is not a JSON object.
        """
        url = join_url(base_url, endpoint)
        attempt = 0
        waited_s = 0.0
        while True:
            response = await self._send(
                "POST", url, json_body=body, timeout_s=self.timeout_s
            )
            status = response.status_code
            if status == RATE_LIMIT_STATUS_CODE and attempt < self.policy.max_retries:
                delay_s = compute_retry_delay(
                    attempt=attempt,
                    retry_after=response.headers.get("Retry-After"),
                    body=response.text,
                    policy=self.policy,
                )
                log.debug(
                    "%s rate limited (attempt %d/%d); retrying in %.2fs",
                    self.provider,
                    attempt + 1,
                    self.policy.max_retries,
                    delay_s,
                )
                await self._sleep(delay_s)
                waited_s += delay_s
                attempt += 1
                continue

            if not response.is_success:
                raise build_http_error(
                    self.provider,
                    status,
                    response.text,
                    attempts=attempt,
                    waited_s=waited_s,
                    retry_after_s=parse_retry_after(
                        response.headers.get("Retry-After")
                    ),
                )
            return self._decode(response)

    async def fetch(
        self, url: str, *, timeout_s: float = PROBE_TIMEOUT_S, auth: bool = True
    ) -> httpx.Response:
        """GET ``url`` for availability probes; status is left to the caller."""
        return await self._send("GET", url, timeout_s=timeout_s, auth=auth)

    async def _send(
        self,
        method: str,
        url: str,
        *,
        timeout_s: float,
        json_body: dict[str, Any] | None = None,
        auth: bool = True,
    ) -> httpx.Response:
        client = self._get_client()
        headers = build_headers(
            self.api_key if auth else None, json_body=json_body is not None
        )
        try:
            async with asyncio.timeout(timeout_s):
                return await client.request(
                    method, url, json=json_body, headers=headers
                )
        except (TimeoutError, httpx.TimeoutException) as e:
            raise RequestTimeoutError(
                f"{self.provider} API request timed out after {round(timeout_s * 1000)}ms",
                timeout_s=timeout_s,
                provider=self.provider,
                hint="Raise requestTimeoutMs for slow reasoning models.",
            ) from e
        except httpx.TransportError as e:
            raise ProviderConnectionError(
                f"{self.provider} API request failed: {e}",
                provider=self.provider,
                retryable=True,
            ) from e

    def _decode(self, response: httpx.Response) -> dict[str, Any]:
        try:
            data = response.json()
        except ValueError as e:
            raise ProviderHTTPError(
                f"{self.provider} API returned a non-JSON body",
                status_code=response.status_code,
                provider=self.provider,
                body=response.text,
            ) from e
        if not isinstance(data, dict):
            raise ProviderHTTPError(
                f"{self.provider} API returned a non-object JSON body",
                status_code=response.status_code,
                provider=self.provider,
                body=response.text,
            )
        return data
