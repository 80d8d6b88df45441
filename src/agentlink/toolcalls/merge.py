"""Reconcile structured tool calls with calls recovered from text."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from agentlink.providers.models import ToolCall
from agentlink.toolcalls.catalog import ARGUMENT_FREE_TOOLS, MAX_ACTIONS_PER_RESPONSE

if TYPE_CHECKING:
    from collections.abc import Sequence


def _has_text(value: Any) -> bool:
    return value is not None and str(value).strip() != ""


def is_likely_complete(name: str, arguments: dict[str, Any]) -> bool:
    """Return True when a call carries the fields its tool cannot run without."""
    n = (name or "").strip().lower()
    if not n:
        return False
    if n == "computer":
        return _has_text(arguments.get("action"))
    if n in {"navigate", "open_tab"}:
        return _has_text(arguments.get("url"))
    if n in {"find", "find_text"}:
        return _has_text(arguments.get("query"))
    if n == "javascript":
        return _has_text(arguments.get("code"))
    if n == "wait":
        return arguments.get("duration") is not None
    if n == "wait_for":
        return (
            _has_text(arguments.get("condition"))
            or _has_text(arguments.get("value"))
            or arguments.get("target") is not None
        )
    if n == "done":
        return _has_text(arguments.get("summary")) or _has_text(arguments.get("answer"))
    if n == "fail":
        return _has_text(arguments.get("reason"))
    if n in ARGUMENT_FREE_TOOLS:
        return True
    return bool(arguments)


def needs_repair(call: ToolCall) -> bool:
    """Whether a structured call should be completed from recovered text."""
    return call.parse_error is not None or not is_likely_complete(
        call.name, call.arguments
    )


def merge_tool_calls(
    canonical: Sequence[ToolCall],
    fallback: Sequence[ToolCall],
    *,
    limit: int = MAX_ACTIONS_PER_RESPONSE,
) -> list[ToolCall]:
    """Prefer complete structured calls; repair the rest from ``fallback``.

    A repair takes a same-named fallback candidate (or the first candidate),
    lays the structured arguments over the recovered ones, and keeps the
    structured call's id and name. At most ``limit`` calls are returned.
    """
    if not canonical:
        return list(fallback[:limit])

    merged: list[ToolCall] = []
    for call in canonical:
        if not needs_repair(call):
            merged.append(call)
            continue

        candidate = next(
            (c for c in fallback if c.name == call.name),
            fallback[0] if fallback else None,
        )
        if candidate is None:
            merged.append(call)
            continue

        merged.append(
            ToolCall(
                id=call.id or candidate.id,
                name=call.name or candidate.name,
                arguments={**candidate.arguments, **call.arguments},
                parse_error=call.parse_error,
            )
        )

    if not merged and fallback:
        return list(fallback[:limit])
    return merged[:limit]
