"""Parse the backend's structured ``tool_calls`` field."""

from __future__ import annotations

import json
from typing import TYPE_CHECKING, Any
import uuid

from agentlink.providers.models import ToolCall

if TYPE_CHECKING:
    from collections.abc import Mapping

INVALID_JSON_ERROR = "Invalid tool arguments JSON"
NOT_AN_OBJECT_ERROR = "Tool arguments must be a JSON object"


def new_call_id() -> str:
    return f"call_{uuid.uuid4().hex[:8]}"


def decode_arguments(raw: Any) -> tuple[dict[str, Any], str | None]:
    """Decode a ``function.arguments`` value into ``(arguments, parse_error)``.

    Mappings pass through, strings are decoded as JSON (empty means ``{}``),
    anything else yields ``{}`` without an error.
    """
    if isinstance(raw, dict):
        return dict(raw), None
    if not isinstance(raw, str):
        return {}, None
    try:
        decoded = json.loads(raw or "{}")
    except ValueError:
        return {}, INVALID_JSON_ERROR
    if not isinstance(decoded, dict):
        return {}, NOT_AN_OBJECT_ERROR
    return decoded, None


def parse_canonical_tool_calls(message: Mapping[str, Any] | None) -> list[ToolCall]:
    """Return one ``ToolCall`` per entry in ``message["tool_calls"]``.

    Calls whose arguments fail to decode are kept with ``arguments={}`` and
    ``parse_error`` set. Missing or repeated ids are replaced so ids are unique
    within the response.
    """
    if not message:
        return []
    entries = message.get("tool_calls")
    if not isinstance(entries, list):
        return []

    calls: list[ToolCall] = []
    seen_ids: set[str] = set()
    for entry in entries:
        if not isinstance(entry, dict):
            continue
        function = entry.get("function")
        if not isinstance(function, dict):
            function = {}
        name = function.get("name")
        arguments, parse_error = decode_arguments(function.get("arguments"))

        call_id = entry.get("id")
        if not isinstance(call_id, str) or not call_id or call_id in seen_ids:
            call_id = new_call_id()
        seen_ids.add(call_id)

        calls.append(
            ToolCall(
                id=call_id,
                name=name.strip() if isinstance(name, str) else "",
                arguments=arguments,
                parse_error=parse_error,
            )
        )
    return calls
