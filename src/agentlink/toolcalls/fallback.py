"""Recover intended tool calls from free text.

Two dialects are understood:

- JSON: ``<tool_call>{"name": ..., "arguments": {...}}</tool_call>`` blocks,
  or a channel that is itself a JSON object/array of such entries.
- Tag soup: a tool name somewhere in the prose plus
  ``<arg_key>k</arg_key><arg_value>v</arg_value>`` pairs, often malformed.

Each pass is a pure function of its input text. The tag-soup path yields at
most one call; its target is either the name of a structured call that needs
repair or, when text recovery is enabled for the backend, the first known
tool name found in the text.
"""

from __future__ import annotations

import hashlib
import json
import re
from typing import TYPE_CHECKING, Any

from agentlink.providers.models import ToolCall
from agentlink.toolcalls.catalog import (
    COMPUTER_ACTIONS,
    FALLBACK_ARG_KEYS,
    KEY_ACTION_ALIASES,
    NAMED_KEY_RE,
    POINTER_ACTION_ALIASES,
    TOOL_NAME_RE,
)
from agentlink.toolcalls.text import (
    REASON_MAX_CHARS,
    RECOVERED_TEXT_MAX_CHARS,
    SUMMARY_MAX_CHARS,
    clean_arg_text,
    clean_model_like_text,
    finalize_recovered_text,
)
from agentlink.toolcalls.validate import is_valid_tool_call, validate_tool_calls

if TYPE_CHECKING:
    from collections.abc import Iterator

_NULL_TOKENS = frozenset(
    {"undefined", "null", "nan", "[undefined]", "[[undefined]]", "[null]", "[[null]]"}
)
_INT_RE = re.compile(r"-?[0-9]+")
_BOOL_RE = re.compile(r"true|false", re.IGNORECASE)

_FENCE_LANG = r"(?:```[a-z]+)?"
_STRICT_PAIR_RE = re.compile(
    r"<arg_key>\s*([\s\S]*?)\s*</arg_key>\s*"
    + _FENCE_LANG
    + r"\s*<arg_value>\s*([\s\S]*?)\s*</arg_value>",
    re.IGNORECASE,
)
# The opening <arg_key> was dropped: ``action</arg_key><arg_value>click</arg_value>``
_OPENLESS_PAIR_RE = re.compile(
    r"([A-Za-z_][A-Za-z0-9_]*)\s*</arg_key>\s*"
    + _FENCE_LANG
    + r"\s*<arg_value>\s*([\s\S]*?)\s*</arg_value>",
    re.IGNORECASE,
)
# No value tags at all: ``action</arg_key> click``
_PLAIN_VALUE_RE = re.compile(
    r"([A-Za-z_][A-Za-z0-9_]*)\s*</arg_key>\s*"
    + _FENCE_LANG
    + r"\s*([^<\n][\s\S]*?)(?=</tool_call>|<arg_key>|<arg_value>|\Z)",
    re.IGNORECASE,
)
_PAIR_PASSES = (_STRICT_PAIR_RE, _OPENLESS_PAIR_RE, _PLAIN_VALUE_RE)

_TOOL_CALL_BLOCK_RE = re.compile(
    r"<tool_call>\s*([\s\S]*?)\s*</tool_call>", re.IGNORECASE
)
_SUMMARY_RE = re.compile(
    r"(?:^|\s)summary\s*[:=-]?\s*([\s\S]*?)(?=\sanswer\s*[:=-]?|\Z)", re.IGNORECASE
)
_ANSWER_RE = re.compile(r"(?:^|\s)answer\s*[:=-]?\s*([\s\S]*?)\Z", re.IGNORECASE)
_REASON_RE = re.compile(r"(?:^|\s)reason\s*[:=-]?\s*([\s\S]*?)\Z", re.IGNORECASE)
_SOURCE_MARKER = "source:"
_SOURCE_LOOKBACK_CHARS = 120


def coerce_arg_value(value: Any) -> Any:
    """Coerce a cleaned argument value to its natural scalar type.

    Null-like tokens become ``""``, ``true``/``false`` become bools, integer
    literals become ints; everything else is stripped text. Already-coerced
    values are returned unchanged.
    """
    if isinstance(value, bool | int | float):
        return value
    text = "" if value is None else str(value).strip()
    if not text:
        return ""
    if text.lower() in _NULL_TOKENS:
        return ""
    if _BOOL_RE.fullmatch(text):
        return text.lower() == "true"
    if _INT_RE.fullmatch(text):
        try:
            return int(text)
        except ValueError:
            # Past the interpreter's int-string conversion limit.
            return text
    return text


def fallback_call_id(
    name: str, arguments: dict[str, Any], index: int = 0, *, prefix: str = "fallback"
) -> str:
    """Deterministic id derived from the call's content."""
    payload = json.dumps([name, arguments], sort_keys=True, default=str)
    digest = hashlib.sha1(payload.encode("utf-8")).hexdigest()[:12]
    return f"{prefix}_{digest}_{index}"


# --- Tag soup ---


def _iter_pairs(pattern: re.Pattern[str], raw: str) -> Iterator[tuple[str, Any]]:
    for match in pattern.finditer(raw):
        key = clean_arg_text(match.group(1)).lower()
        if key not in FALLBACK_ARG_KEYS:
            continue
        value = coerce_arg_value(clean_arg_text(match.group(2)))
        if value == "":
            continue
        yield key, value


def extract_arg_pairs(raw: str) -> list[tuple[str, Any]]:
    """Extract allow-listed ``(key, value)`` pairs from tag-soup text.

    Three patterns are tried in order (well-formed tags, missing opening key
    tag, bare value); the first that yields any accepted pair wins. Duplicate
    pairs are removed.
    """
    for pattern in _PAIR_PASSES:
        pairs: list[tuple[str, Any]] = []
        seen: set[str] = set()
        for key, value in _iter_pairs(pattern, raw):
            dedupe_key = f"{key}:{value!r}"
            if dedupe_key in seen:
                continue
            seen.add(dedupe_key)
            pairs.append((key, value))
        if pairs:
            return pairs
    return []


def detect_tool_name(raw: str) -> str | None:
    """Return the first known tool name in ``raw`` (whole word, any case)."""
    match = TOOL_NAME_RE.search(raw or "")
    return match.group(1).lower() if match else None


def extract_loose_done_args(raw: str) -> dict[str, str]:
    """Find ``summary``/``answer`` for a ``done`` call written as prose."""
    text = clean_model_like_text(raw)
    if not text:
        return {}

    summary = ""
    answer = ""
    summary_match = _SUMMARY_RE.search(text)
    if summary_match:
        summary = summary_match.group(1).strip()
    answer_match = _ANSWER_RE.search(text)
    if answer_match:
        answer = answer_match.group(1).strip()

    if not answer:
        source_idx = text.lower().find(_SOURCE_MARKER)
        if source_idx > 0:
            answer = text[max(0, source_idx - _SOURCE_LOOKBACK_CHARS) :].strip()
    if not summary and answer:
        summary = answer[:SUMMARY_MAX_CHARS].strip()

    recovered = {
        "summary": finalize_recovered_text(summary, SUMMARY_MAX_CHARS),
        "answer": finalize_recovered_text(answer, RECOVERED_TEXT_MAX_CHARS),
    }
    return {key: value for key, value in recovered.items() if value}


def extract_loose_fail_reason(raw: str) -> str:
    """Find a ``reason`` for a ``fail`` call written as prose."""
    text = clean_model_like_text(raw)
    if not text:
        return ""
    match = _REASON_RE.search(text)
    if match:
        return finalize_recovered_text(match.group(1), REASON_MAX_CHARS)
    return finalize_recovered_text(text[:REASON_MAX_CHARS], REASON_MAX_CHARS)


def infer_computer_action(raw: str, arguments: dict[str, Any]) -> str:
    """Pick a ``computer`` action from the arguments, else from the text."""
    explicit = str(arguments.get("action") or "").strip().lower()
    if explicit in COMPUTER_ACTIONS:
        return explicit
    if "key" in arguments:
        return "key"
    if "text" in arguments:
        return "type"
    for action in COMPUTER_ACTIONS:
        if re.search(rf"\b{action}\b", raw or "", re.IGNORECASE):
            return action
    return ""


def _normalize_arguments(
    name: str, arguments: dict[str, Any], raw: str
) -> dict[str, Any]:
    normalized = dict(arguments)
    if "target" not in normalized and "id" in normalized:
        normalized["target"] = normalized["id"]
    if name == "computer":
        if not normalized.get("action"):
            action = infer_computer_action(raw, normalized)
            if action:
                normalized["action"] = action
        if normalized.get("action") == "key" and not normalized.get("key"):
            key_match = NAMED_KEY_RE.search(raw or "")
            if key_match:
                normalized["key"] = key_match.group(1)
    return normalized


def map_legacy_tool_call(
    name: str, arguments: dict[str, Any], raw: str = ""
) -> tuple[str, dict[str, Any]]:
    """Map flat action names onto the ``computer`` tool.

    ``click``/``type``/``scroll``/``hover``/``select``/``form_input`` become
    ``computer{action: <name>}``; ``key``/``press_key``/``press_hotkey``
    become ``computer{action: "key"}``. Other names pass through.
    """
    if name in POINTER_ACTION_ALIASES:
        return "computer", _normalize_arguments(
            "computer", {"action": name, **arguments}, raw
        )
    if name in KEY_ACTION_ALIASES:
        return "computer", _normalize_arguments(
            "computer", {"action": "key", **arguments}, raw
        )
    return name, _normalize_arguments(name, arguments, raw)


def extract_tag_soup_tool_call(
    raw: str, *, target: str | None = None
) -> ToolCall | None:
    """Recover at most one call from tag-soup text.

    Args:
        raw: Content and reasoning text joined together.
        target: Name of a structured call that needs repair. When given it is
            used as-is instead of the name detected in the text.
    """
    if not raw:
        return None
    name = target or detect_tool_name(raw)
    if not name:
        return None

    arguments: dict[str, Any] = dict(extract_arg_pairs(raw))
    if not arguments:
        if name == "done":
            arguments.update(extract_loose_done_args(raw))
        elif name == "fail":
            reason = extract_loose_fail_reason(raw)
            if reason:
                arguments["reason"] = reason

    if target:
        arguments = _normalize_arguments(name, arguments, raw)
    else:
        name, arguments = map_legacy_tool_call(name, arguments, raw)

    if not is_valid_tool_call(name, arguments):
        return None
    return ToolCall(id=fallback_call_id(name, arguments), name=name, arguments=arguments)


# --- JSON ---


def _decode_json_arguments(raw: Any) -> dict[str, Any]:
    if isinstance(raw, str):
        try:
            raw = json.loads(raw)
        except ValueError:
            return {}
    return raw if isinstance(raw, dict) else {}


def _parse_json_chunk(
    chunk: str, *, require_arguments: bool
) -> list[tuple[str, dict[str, Any]]]:
    try:
        parsed = json.loads(chunk)
    except ValueError:
        return []
    entries = parsed if isinstance(parsed, list) else [parsed]
    out: list[tuple[str, dict[str, Any]]] = []
    for entry in entries:
        if not isinstance(entry, dict) or not isinstance(entry.get("name"), str):
            continue
        if require_arguments and "arguments" not in entry and "parameters" not in entry:
            continue
        raw_args = entry.get("arguments")
        if raw_args is None:
            raw_args = entry.get("parameters")
        out.append((entry["name"], _decode_json_arguments(raw_args)))
    return out


def extract_json_tool_calls(*texts: str) -> list[ToolCall]:
    """Recover calls written as JSON inside ``<tool_call>`` tags.

    When no tags are present, a text that is itself a JSON object or array is
    parsed; its entries must carry ``arguments`` or ``parameters`` so plain
    JSON answers are not mistaken for calls.
    """
    chunks = [
        match.group(1)
        for text in texts
        if text
        for match in _TOOL_CALL_BLOCK_RE.finditer(text)
    ]
    require_arguments = False
    if not chunks:
        chunks = [
            text.strip()
            for text in texts
            if text and text.strip().startswith(("[", "{"))
        ]
        require_arguments = True

    calls: list[ToolCall] = []
    for chunk in chunks:
        for name, arguments in _parse_json_chunk(
            chunk, require_arguments=require_arguments
        ):
            calls.append(
                ToolCall(
                    id=fallback_call_id(name, arguments, len(calls)),
                    name=name,
                    arguments=arguments,
                )
            )
    return validate_tool_calls(calls)


def extract_fallback_tool_calls(
    content: str,
    reasoning: str = "",
    *,
    recover_from_text: bool = False,
    target: str | None = None,
) -> list[ToolCall]:
    """Run the fallback passes over a message's content and reasoning.

    JSON-shaped calls win. Otherwise the tag-soup pass runs when a structured
    call needs repair (``target``) or when ``recover_from_text`` is enabled.
    """
    json_calls = extract_json_tool_calls(content, reasoning)
    if json_calls:
        return json_calls
    if not target and not recover_from_text:
        return []
    buffer = "\n".join(part for part in (content, reasoning) if part)
    call = extract_tag_soup_tool_call(buffer, target=target)
    return [call] if call is not None else []
