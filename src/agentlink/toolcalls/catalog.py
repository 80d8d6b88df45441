"""Closed vocabularies the text-recovery passes match against.

Recovery never invents a tool or an argument key: a name must appear in
``KNOWN_TOOL_NAMES`` and a key in ``FALLBACK_ARG_KEYS`` to be accepted.
"""

from __future__ import annotations

import re

MAX_ACTIONS_PER_RESPONSE = 4

# Tools the agent exposes, in detection priority order (longer names first
# where one is a prefix of another).
CANONICAL_TOOLS: tuple[str, ...] = (
    "read_page",
    "get_page_text",
    "find_text_next",
    "find_text_prev",
    "find_text",
    "find",
    "navigate",
    "computer",
    "javascript",
    "wait_for",
    "get_network_requests",
    "get_console_logs",
    "switch_frame",
    "upload_file",
    "list_tabs",
    "switch_tab",
    "open_tab",
    "close_tab",
    "resize_window",
    "wait",
    "done",
    "fail",
)

# Flat action names older prompts taught the model to call directly.
POINTER_ACTION_ALIASES: tuple[str, ...] = (
    "type",
    "click",
    "scroll",
    "hover",
    "select",
    "form_input",
)
KEY_ACTION_ALIASES: tuple[str, ...] = ("key", "press_key", "press_hotkey")

KNOWN_TOOL_NAMES: tuple[str, ...] = (
    CANONICAL_TOOLS + POINTER_ACTION_ALIASES + KEY_ACTION_ALIASES
)

# ``computer`` actions, in the order they are searched for in free text.
COMPUTER_ACTIONS: tuple[str, ...] = (
    "click",
    "type",
    "scroll",
    "hover",
    "select",
    "key",
    "drag",
    "form_input",
)

TERMINAL_TOOLS = frozenset({"done", "fail"})
ARGUMENT_FREE_TOOLS = frozenset(
    {"list_tabs", "get_console_logs", "get_network_requests"}
)

FALLBACK_ARG_KEYS = frozenset(
    {
        "action",
        "target",
        "x",
        "y",
        "text",
        "direction",
        "amount",
        "value",
        "key",
        "modifiers",
        "button",
        "checked",
        "confirm",
        "fromx",
        "fromy",
        "tox",
        "toy",
        "query",
        "url",
        "code",
        "condition",
        "timeoutms",
        "pollms",
        "idlems",
        "tabid",
        "index",
        "main",
        "files",
        "width",
        "height",
        "duration",
        "summary",
        "answer",
        "reason",
        "maxdepth",
        "maxnodes",
        "viewportonly",
        "casesensitive",
        "wholeword",
        "maxresults",
        "scrolltofirst",
        "wrap",
        "id",
        "bypasscache",
        "active",
        "allow_private",
        "method",
        "headers",
        "body",
        "since",
        "level",
        "scope",
    }
)

TOOL_NAME_RE = re.compile(
    r"\b(" + "|".join(KNOWN_TOOL_NAMES) + r")\b", re.IGNORECASE
)
NAMED_KEY_RE = re.compile(
    r"\b(Enter|Tab|Escape|Backspace|ArrowUp|ArrowDown|ArrowLeft|ArrowRight|Space|F\d{1,2})\b",
    re.IGNORECASE,
)
