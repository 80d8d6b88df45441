"""Shared utilities for OpenAI-compatible request bodies."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from agentlink.providers.models import ImagePart, TextPart

if TYPE_CHECKING:
    from collections.abc import Iterable

    from agentlink.providers.models import ChatMessage, ToolDefinition

IMAGE_UNAVAILABLE_TEXT = "[image content not available for text-only model]"
TOOL_CHOICE_MODES = frozenset({"auto", "none", "required"})


def format_tools(tools: Iterable[ToolDefinition]) -> list[dict[str, Any]]:
    return [tool.to_openai() for tool in tools]


def format_tool_choice(choice: str | None) -> str | dict[str, Any]:
    """Map ``auto``/``none``/``required`` through; a tool name forces that tool."""
    if not choice:
        return "auto"
    if choice in TOOL_CHOICE_MODES:
        return choice
    return {"type": "function", "function": {"name": choice}}


def _serialize_part(part: TextPart | ImagePart) -> dict[str, Any]:
    if isinstance(part, ImagePart):
        return {"type": "image_url", "image_url": {"url": part.as_url()}}
    return {"type": "text", "text": part.text}


def _flatten_content(parts: tuple[TextPart | ImagePart, ...]) -> str:
    text = "\n".join(part.text for part in parts if isinstance(part, TextPart))
    return text or IMAGE_UNAVAILABLE_TEXT


def serialize_message(
    message: ChatMessage, *, flatten_images: bool = False
) -> dict[str, Any]:
    """Serialize one message to the chat-completions wire shape.

    With ``flatten_images`` the parts of a multi-part message are reduced to
    their joined text, for backends that reject image input.
    """
    content: str | list[dict[str, Any]]
    if isinstance(message.content, str):
        content = message.content
    elif flatten_images:
        content = _flatten_content(message.content)
    else:
        content = [_serialize_part(part) for part in message.content]

    out: dict[str, Any] = {"role": message.role, "content": content}
    if message.tool_call_id:
        out["tool_call_id"] = message.tool_call_id
    if message.tool_calls:
        out["tool_calls"] = [call.to_openai() for call in message.tool_calls]
    return out


def serialize_messages(
    messages: Iterable[ChatMessage], *, flatten_images: bool = False
) -> list[dict[str, Any]]:
    return [serialize_message(m, flatten_images=flatten_images) for m in messages]
