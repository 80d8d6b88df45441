"""Sticky regional host failover.

Some backends expose the same account on functionally equivalent hosts (for
example ``api.siliconflow.com`` and ``api.siliconflow.cn``). When a call fails
for a reachability reason, it is retried once on the alternate host. A
successful alternate becomes the preferred host for the rest of the adapter's
lifetime and is never reverted automatically.
"""

from __future__ import annotations

from dataclasses import dataclass
import logging
from typing import TYPE_CHECKING, Any

from agentlink._http import RATE_LIMIT_STATUS_CODE
from agentlink.errors import APIError, RequestTimeoutError, ToolUseFailedError
from agentlink.providers._errors import format_error

if TYPE_CHECKING:
    from agentlink.providers.executor import RequestExecutor

log = logging.getLogger(__name__)


@dataclass
class HostFailoverPolicy:
    """Alternate-host rules plus the remembered preferred base URL."""

    host_pairs: tuple[tuple[str, str], ...]
    preferred_base_url: str | None = None

    def should_failover(self, error: BaseException) -> bool:
        """Decide whether ``error`` is worth one attempt on another host."""
        if isinstance(error, ToolUseFailedError):
            return False
        if isinstance(error, RequestTimeoutError):
            return True
        status = getattr(error, "status_code", None)
        if status is None:
            return True
        return status != RATE_LIMIT_STATUS_CODE

    def alternate_base_url(self, base_url: str) -> str | None:
        """Return ``base_url`` with its host swapped for the paired host."""
        for first, second in self.host_pairs:
            if first in base_url:
                return base_url.replace(first, second)
            if second in base_url:
                return base_url.replace(second, first)
        return None

    def base_url_for(self, configured: str) -> str:
        """Return the sticky preferred URL when set, else ``configured``."""
        return self.preferred_base_url or configured

    def remember(self, base_url: str) -> None:
        """Pin ``base_url`` for all later calls."""
        if base_url != self.preferred_base_url:
            log.info("Pinning preferred host %s", base_url)
        self.preferred_base_url = base_url


async def execute_with_failover(
    executor: RequestExecutor,
    policy: HostFailoverPolicy | None,
    base_url: str,
    endpoint: str,
    body: dict[str, Any],
) -> dict[str, Any]:
    """Execute a request, retrying once on the alternate host when eligible.

    If the alternate also fails, its error is raised when it carries an HTTP
    status (the backend answered), otherwise the original error is raised.
    """
    current = policy.base_url_for(base_url) if policy is not None else base_url
    try:
        return await executor.execute(current, endpoint, body)
    except APIError as e:
        if policy is None or not policy.should_failover(e):
            raise
        alternate = policy.alternate_base_url(current)
        if alternate is None:
            raise
        log.warning(
            "%s request to %s failed (%s); retrying on %s",
            executor.provider,
            current,
            format_error(e),
            alternate,
        )
        original = e

    try:
        response = await executor.execute(alternate, endpoint, body)
    except APIError as alt:
        if alt.status_code is not None:
            raise
        raise original from alt
    policy.remember(alternate)
    return response
