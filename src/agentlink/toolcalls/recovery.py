"""Turn a ``tool_use_failed`` rejection back into a usable result.

Some backends reject a response whose tool call did not match the declared
schema, but echo the model's output under ``error.failed_generation``. That
text is usually either the intended calls as JSON or a plain final answer.
"""

from __future__ import annotations

import json
import logging
from typing import Any

from agentlink.errors import ToolUseFailedError
from agentlink.providers.models import ChatResult, ToolCall
from agentlink.toolcalls.fallback import fallback_call_id
from agentlink.toolcalls.text import RECOVERED_TEXT_MAX_CHARS
from agentlink.toolcalls.validate import validate_tool_calls

log = logging.getLogger(__name__)

RECOVERED_RAW: dict[str, Any] = {"recovered": True, "reason": "tool_use_failed"}


def _calls_from_json(raw: str) -> list[ToolCall]:
    try:
        parsed = json.loads(raw)
    except ValueError:
        return []
    entries = parsed if isinstance(parsed, list) else [parsed]
    calls: list[ToolCall] = []
    for entry in entries:
        if not isinstance(entry, dict) or not isinstance(entry.get("name"), str):
            continue
        arguments = entry.get("parameters")
        if arguments is None:
            arguments = entry.get("arguments")
        if isinstance(arguments, str):
            try:
                arguments = json.loads(arguments)
            except ValueError:
                arguments = None
        if not isinstance(arguments, dict):
            arguments = {}
        calls.append(
            ToolCall(
                id=fallback_call_id(
                    entry["name"], arguments, len(calls), prefix="recovered"
                ),
                name=entry["name"],
                arguments=arguments,
            )
        )
    return validate_tool_calls(calls)


def recover_tool_use_failed(error: BaseException) -> ChatResult | None:
    """Return a result rebuilt from ``error``'s failed generation, or None.

    JSON entries with a string ``name`` become tool calls. When none survive
    validation the generation is returned as plain text, bounded to
    ``RECOVERED_TEXT_MAX_CHARS``.
    """
    if not isinstance(error, ToolUseFailedError):
        return None
    generation = error.failed_generation
    if generation is None:
        return None

    raw = generation.strip()
    if raw.startswith(("[", "{")):
        calls = _calls_from_json(raw)
        if calls:
            log.info(
                "%s: recovered %d tool call(s) from tool_use_failed",
                error.provider,
                len(calls),
            )
            return ChatResult(text="", tool_calls=tuple(calls), raw=dict(RECOVERED_RAW))

    log.info("%s: recovered text answer from tool_use_failed", error.provider)
    return ChatResult(text=raw[:RECOVERED_TEXT_MAX_CHARS], raw=dict(RECOVERED_RAW))
