"""Parse, recover, merge and validate one backend message.

``normalize_message`` is the single entry point adapters call with the
``choices[0].message`` object of a chat-completion response.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from agentlink.toolcalls.canonical import parse_canonical_tool_calls
from agentlink.toolcalls.fallback import extract_fallback_tool_calls
from agentlink.toolcalls.merge import merge_tool_calls, needs_repair
from agentlink.toolcalls.text import clean_model_text
from agentlink.toolcalls.validate import validate_tool_calls

if TYPE_CHECKING:
    from collections.abc import Mapping

    from agentlink.providers.models import ToolCall


@dataclass(frozen=True)
class NormalizationProfile:
    """Per-backend switches for the normalization passes.

    Attributes:
        sanitize_text: Strip think tags, box markers and zero-width characters
            from content and reasoning before anything else runs.
        recover_from_text: Allow recovering a call from prose that names a
            known tool when no structured call was returned.
        reasoning_as_text: Use the reasoning channel as ``text`` when content
            is empty and no tool call survived.
    """

    sanitize_text: bool = False
    recover_from_text: bool = False
    reasoning_as_text: bool = False


@dataclass(frozen=True)
class NormalizedMessage:
    """Text, tool calls and reasoning extracted from one backend message."""

    text: str
    tool_calls: tuple[ToolCall, ...]
    thinking: str | None


def _channel_text(value: Any) -> str:
    if isinstance(value, str):
        return value
    # Some servers return content as a list of typed parts.
    if isinstance(value, list):
        return "\n".join(
            part["text"]
            for part in value
            if isinstance(part, dict) and isinstance(part.get("text"), str)
        )
    return ""


def normalize_message(
    message: Mapping[str, Any] | None,
    profile: NormalizationProfile | None = None,
) -> NormalizedMessage:
    """Run parse, fallback extraction, merge and validation over ``message``."""
    profile = profile or NormalizationProfile()
    message = message if isinstance(message, dict) else {}

    content = _channel_text(message.get("content"))
    reasoning = _channel_text(
        message.get("reasoning_content") or message.get("reasoning")
    )
    if profile.sanitize_text:
        content = clean_model_text(content)
        reasoning = clean_model_text(reasoning)

    canonical = parse_canonical_tool_calls(message)
    target = next((call.name for call in canonical if needs_repair(call)), None)
    if canonical and target is None:
        fallback: list[ToolCall] = []
    else:
        fallback = extract_fallback_tool_calls(
            content,
            reasoning,
            recover_from_text=profile.recover_from_text,
            target=target or None,
        )

    tool_calls = validate_tool_calls(merge_tool_calls(canonical, fallback))

    text = content
    if not text and profile.reasoning_as_text and not tool_calls:
        text = reasoning
    return NormalizedMessage(
        text=text,
        tool_calls=tuple(tool_calls),
        thinking=reasoning or None,
    )
