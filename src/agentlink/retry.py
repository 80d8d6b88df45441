"""Bounded rate-limit backoff with explicit delay contracts.

Design goals:
- Pure delay computation (no I/O), so every branch is unit-testable
- Explicit state (policy + attempt counter), no recursion
- Server hints win over local backoff, but are always clamped
"""

from __future__ import annotations

from dataclasses import dataclass
import math
import re

_TRY_AGAIN_RE = re.compile(r"try again in\s+([\d.]+)\s*(ms|s)", re.IGNORECASE)


@dataclass(frozen=True)
class RateLimitPolicy:
    """How many times, and how long, to wait out HTTP 429 responses."""

    max_retries: int = 4
    base_delay_s: float = 1.0
    min_delay_s: float = 0.25
    max_delay_s: float = 10.0

    def __post_init__(self) -> None:
        """Validate invariants to keep retry behavior predictable."""
        if self.max_retries < 0:
            raise ValueError("RateLimitPolicy.max_retries must be >= 0")
        if self.base_delay_s < 0:
            raise ValueError("RateLimitPolicy.base_delay_s must be >= 0")
        if self.min_delay_s < 0:
            raise ValueError("RateLimitPolicy.min_delay_s must be >= 0")
        if self.max_delay_s < self.min_delay_s:
            raise ValueError("RateLimitPolicy.max_delay_s must be >= min_delay_s")

    def clamp(self, delay_s: float) -> float:
        """Clamp a delay into ``[min_delay_s, max_delay_s]``."""
        return min(max(delay_s, self.min_delay_s), self.max_delay_s)


def parse_retry_after(value: str | None) -> float | None:
    """Parse a ``Retry-After`` header holding delta-seconds.

    HTTP-date values and negative or non-finite numbers are ignored.
    """
    if value is None or not value.strip():
        return None
    try:
        seconds = float(value.strip())
    except ValueError:
        return None
    if not math.isfinite(seconds) or seconds < 0:
        return None
    return seconds


def parse_try_again_hint(body: str) -> float | None:
    """Find a ``try again in N(ms|s)`` hint inside an error body, in seconds."""
    match = _TRY_AGAIN_RE.search(body or "")
    if not match:
        return None
    try:
        value = float(match.group(1))
    except ValueError:
        return None
    if not math.isfinite(value):
        return None
    return value if match.group(2).lower() == "s" else value / 1000.0


def compute_retry_delay(
    *,
    attempt: int,
    retry_after: str | None = None,
    body: str = "",
    policy: RateLimitPolicy | None = None,
) -> float:
    """Return the wait in seconds before retrying a 429.

    Priority: ``Retry-After`` header, then a "try again in" hint in the body,
    then exponential backoff ``base_delay_s * 2**attempt``. The result is
    always clamped by the policy.

    Args:
        attempt: Zero-based index of the retry about to happen.
        retry_after: Raw ``Retry-After`` header value, if any.
        body: Raw error body text.
        policy: Backoff bounds; defaults to ``RateLimitPolicy()``.
    """
    policy = policy or RateLimitPolicy()

    header_s = parse_retry_after(retry_after)
    if header_s is not None:
        return policy.clamp(header_s)

    hinted_s = parse_try_again_hint(body)
    if hinted_s is not None:
        return policy.clamp(hinted_s)

    exponent = min(max(0, attempt), 32)
    return policy.clamp(policy.base_delay_s * (2**exponent))
