"""Text cleaning helpers shared by the recovery passes.

All functions are pure: string in, string out.
"""

from __future__ import annotations

import re

SUMMARY_MAX_CHARS = 180
REASON_MAX_CHARS = 280
RECOVERED_TEXT_MAX_CHARS = 3000

_THINK_BLOCK_RE = re.compile(r"<think>[\s\S]*?</think>", re.IGNORECASE)
_THINK_TAG_RE = re.compile(r"</?think>", re.IGNORECASE)
_BOX_RE = re.compile(r"<\|begin_of_box\|>|<\|end_of_box\|>", re.IGNORECASE)
_FENCED_RE = re.compile(r"```[\s\S]*?```")
_ZERO_WIDTH_RE = re.compile("[\ufeff\u200b\u200c\u200d]")
_ANY_TAG_RE = re.compile(r"</?.*?>")
_CALL_MARKUP_RE = re.compile(r"</?(?:tool_call|arg_key|arg_value)>", re.IGNORECASE)
_REPEATED_DONE_RE = re.compile(r"\bdone\b(?:\s+\bdone\b)+", re.IGNORECASE)
_WS_RE = re.compile(r"\s+")
_LEADING_PUNCT_RE = re.compile(r"^[:\-\s]+")
_NULLISH_RE = re.compile(r"^(?:undefined|null|nan)$", re.IGNORECASE)


def _unfence(text: str, replacement: str) -> str:
    return _FENCED_RE.sub(lambda m: m.group(0).replace("```", replacement), text)


def collapse_whitespace(text: str) -> str:
    return _WS_RE.sub(" ", text).strip()


def clean_model_text(value: str | None) -> str:
    """Strip think blocks, box markers, fences and zero-width characters."""
    text = value or ""
    if not text:
        return ""
    text = _THINK_BLOCK_RE.sub(" ", text)
    text = _THINK_TAG_RE.sub(" ", text)
    text = _BOX_RE.sub(" ", text)
    text = _unfence(text, " ")
    text = _ZERO_WIDTH_RE.sub(" ", text)
    return collapse_whitespace(text)


def clean_arg_text(value: object) -> str:
    """Clean a captured argument key or value down to plain text."""
    text = "" if value is None else str(value)
    text = _THINK_TAG_RE.sub(" ", text)
    text = _unfence(text, "")
    text = _ANY_TAG_RE.sub(" ", text)
    return collapse_whitespace(text)


def clean_model_like_text(raw: str) -> str:
    """Flatten a tag-soup buffer to prose for the loose done/fail heuristics."""
    text = _THINK_BLOCK_RE.sub(" ", raw or "")
    text = _THINK_TAG_RE.sub(" ", text)
    text = _BOX_RE.sub(" ", text)
    text = _CALL_MARKUP_RE.sub(" ", text)
    text = _unfence(text, " ")
    text = _REPEATED_DONE_RE.sub(" done ", text)
    return collapse_whitespace(text)


def finalize_recovered_text(value: str | None, limit: int) -> str:
    """Trim leading punctuation, collapse whitespace, and bound the length.

    Null-like tokens (``undefined``, ``null``, ``nan``) become ``""``.
    """
    text = (value or "").strip()
    if not text:
        return ""
    text = collapse_whitespace(_LEADING_PUNCT_RE.sub("", text))
    if _NULLISH_RE.match(text):
        return ""
    return text[:limit].strip()
