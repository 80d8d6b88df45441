"""Domain models for the provider transport layer."""

from __future__ import annotations

from dataclasses import dataclass, field
import json
from typing import Any


@dataclass(frozen=True)
class TextPart:
    """A text segment of a multi-part message."""

    text: str


@dataclass(frozen=True)
class ImagePart:
    """An image segment: inline base64 ``data`` or a remote ``url``."""

    data: str | None = None
    mime_type: str = "image/png"
    url: str | None = None

    def __post_init__(self) -> None:
        """Require exactly one image source."""
        if (self.data is None) == (self.url is None):
            raise ValueError("ImagePart needs exactly one of data= or url=")

    def as_url(self) -> str:
        """Return the URL form sent over the wire (data URL for inline images)."""
        if self.url is not None:
            return self.url
        return f"data:{self.mime_type};base64,{self.data}"


ContentPart = TextPart | ImagePart


@dataclass(frozen=True)
class ToolCall:
    """A tool call requested by the model.

    ``parse_error`` is set when the backend sent arguments that did not decode
    to a JSON object; the call is kept (with empty arguments) so later passes
    can repair it.
    """

    id: str
    name: str
    arguments: dict[str, Any] = field(default_factory=dict)
    parse_error: str | None = None

    def to_openai(self) -> dict[str, Any]:
        """Serialize for replay in an assistant message."""
        return {
            "id": self.id,
            "type": "function",
            "function": {
                "name": self.name,
                "arguments": json.dumps(self.arguments, ensure_ascii=False),
            },
        }


@dataclass(frozen=True)
class ChatMessage:
    """A standard conversational message turn."""

    role: str
    content: str | tuple[ContentPart, ...] = ""
    tool_call_id: str | None = None
    tool_calls: tuple[ToolCall, ...] | None = None

    def __post_init__(self) -> None:
        """Freeze list inputs into tuples."""
        if isinstance(self.content, list):
            object.__setattr__(self, "content", tuple(self.content))
        if isinstance(self.tool_calls, list):
            object.__setattr__(self, "tool_calls", tuple(self.tool_calls))

    @classmethod
    def vision(
        cls, text: str, image_b64: str, mime_type: str = "image/png"
    ) -> ChatMessage:
        """Build a user turn carrying a screenshot followed by its prompt."""
        return cls(
            role="user",
            content=(ImagePart(data=image_b64, mime_type=mime_type), TextPart(text)),
        )

    @property
    def has_images(self) -> bool:
        """Whether any content part is an image."""
        if isinstance(self.content, str):
            return False
        return any(isinstance(part, ImagePart) for part in self.content)


@dataclass(frozen=True)
class ToolDefinition:
    """A tool the model may call, described by a JSON schema."""

    name: str
    description: str = ""
    parameters: dict[str, Any] = field(
        default_factory=lambda: {"type": "object", "properties": {}}
    )

    def to_openai(self) -> dict[str, Any]:
        """Serialize to the OpenAI function-calling shape."""
        return {
            "type": "function",
            "function": {
                "name": self.name,
                "description": self.description,
                "parameters": self.parameters,
            },
        }


@dataclass(frozen=True)
class ChatOptions:
    """Per-call overrides. ``None`` means "use the backend default".

    ``tool_choice`` accepts ``"auto"``, ``"none"``, ``"required"`` or the name
    of a single tool. ``disable_thinking`` is tri-state: ``None`` leaves the
    backend's own policy in place.
    """

    max_tokens: int | None = None
    temperature: float | None = None
    tool_choice: str | None = None
    disable_thinking: bool | None = None
    top_p: float | None = None
    top_k: int | None = None
    presence_penalty: float | None = None
    frequency_penalty: float | None = None
    repeat_penalty: float | None = None

    def __post_init__(self) -> None:
        """Reject values no backend accepts."""
        if self.max_tokens is not None and self.max_tokens < 1:
            raise ValueError("max_tokens must be >= 1")
        if self.temperature is not None and self.temperature < 0:
            raise ValueError("temperature must be >= 0")


@dataclass(frozen=True)
class ChatRequest:
    """An immutable chat call: conversation, available tools, and options."""

    messages: tuple[ChatMessage, ...]
    tools: tuple[ToolDefinition, ...] = ()
    options: ChatOptions = field(default_factory=ChatOptions)

    def __post_init__(self) -> None:
        """Freeze list inputs into tuples."""
        object.__setattr__(self, "messages", tuple(self.messages))
        object.__setattr__(self, "tools", tuple(self.tools))

    @property
    def has_images(self) -> bool:
        """Whether any message carries an image part."""
        return any(message.has_images for message in self.messages)


@dataclass(frozen=True)
class ChatResult:
    """A normalized response from one chat call.

    ``text`` and ``tool_calls`` may both be populated; usually one is empty.
    ``raw`` is the backend's decoded response body, or a small marker dict
    when the result was recovered from an error.
    """

    text: str = ""
    tool_calls: tuple[ToolCall, ...] = ()
    thinking: str | None = None
    usage: dict[str, Any] = field(default_factory=dict)
    raw: Any = None

    def __post_init__(self) -> None:
        """Freeze list inputs into tuples."""
        object.__setattr__(self, "tool_calls", tuple(self.tool_calls))

    @property
    def next_action(self) -> ToolCall | None:
        """Return the first tool call, for callers that take one step at a time."""
        return self.tool_calls[0] if self.tool_calls else None
