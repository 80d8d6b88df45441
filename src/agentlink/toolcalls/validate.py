"""Final gate for tool calls: identifier-shaped name, object arguments."""

from __future__ import annotations

import logging
import re
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from collections.abc import Iterable

    from agentlink.providers.models import ToolCall

log = logging.getLogger(__name__)

TOOL_CALL_NAME_RE = re.compile(r"^[A-Za-z_][A-Za-z0-9_]{0,63}$")


def is_valid_tool_call(name: Any, arguments: Any) -> bool:
    """Return True when ``name`` is a valid identifier and ``arguments`` a dict."""
    if not isinstance(name, str) or not TOOL_CALL_NAME_RE.fullmatch(name):
        return False
    return isinstance(arguments, dict)


def validate_tool_calls(calls: Iterable[ToolCall]) -> list[ToolCall]:
    """Drop calls that fail ``is_valid_tool_call``; order is preserved."""
    kept: list[ToolCall] = []
    for call in calls:
        if is_valid_tool_call(call.name, call.arguments):
            kept.append(call)
        else:
            log.debug("Dropping malformed tool call %r", call.name)
    return kept
