"""Test helpers (small, reusable doubles).

Keep this file tiny and purpose-built: scripted HTTP backends and response
builders shared by executor, failover and adapter suites.
"""

from __future__ import annotations

from dataclasses import dataclass, field
import json
from typing import Any

import httpx


@dataclass
class SleepRecorder:
    """Awaitable stand-in for ``asyncio.sleep`` that returns immediately."""

    delays: list[float] = field(default_factory=list)

    async def __call__(self, delay_s: float) -> None:
        self.delays.append(delay_s)


@dataclass
class ScriptedBackend:
    """httpx transport that replays a script of responses or exceptions.

    Script items are ``httpx.Response`` objects, exceptions to raise, or
    callables ``(request) -> Response``. Items may be keyed by host so that
    multi-host failover can be scripted per host; unkeyed scripts serve any
    host. Every request is recorded.
    """

    script: list[Any] = field(default_factory=list)
    by_host: dict[str, list[Any]] = field(default_factory=dict)
    requests: list[httpx.Request] = field(default_factory=list)

    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self._handle)

    def _handle(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        queue = self.by_host.get(request.url.host, self.script)
        if not queue:
            raise AssertionError(f"Unscripted request: {request.method} {request.url}")
        item = queue.pop(0)
        if isinstance(item, BaseException):
            raise item
        if callable(item):
            return item(request)
        return item

    def bodies(self) -> list[dict[str, Any]]:
        """Decoded JSON bodies of every recorded POST."""
        return [json.loads(r.content) for r in self.requests if r.method == "POST"]

    def hosts(self) -> list[str]:
        return [r.url.host for r in self.requests]


def completion(
    content: str | None = "",
    *,
    tool_calls: list[dict[str, Any]] | None = None,
    reasoning_content: str | None = None,
    usage: dict[str, Any] | None = None,
) -> dict[str, Any]:
    """Build an OpenAI-style chat completion payload."""
    message: dict[str, Any] = {"role": "assistant", "content": content}
    if tool_calls is not None:
        message["tool_calls"] = tool_calls
    if reasoning_content is not None:
        message["reasoning_content"] = reasoning_content
    return {
        "id": "chatcmpl-test",
        "choices": [{"index": 0, "message": message, "finish_reason": "stop"}],
        "usage": usage or {"prompt_tokens": 12, "completion_tokens": 3},
    }


def raw_tool_call(
    name: str, arguments: str | dict[str, Any], call_id: str | None = "call_1"
) -> dict[str, Any]:
    """Build one wire-format tool call entry."""
    if not isinstance(arguments, str):
        arguments = json.dumps(arguments)
    entry: dict[str, Any] = {
        "type": "function",
        "function": {"name": name, "arguments": arguments},
    }
    if call_id is not None:
        entry["id"] = call_id
    return entry


def ok(payload: dict[str, Any]) -> httpx.Response:
    return httpx.Response(200, json=payload)


def error_response(
    status_code: int,
    error: dict[str, Any] | str,
    *,
    headers: dict[str, str] | None = None,
) -> httpx.Response:
    """Build an error response with a JSON ``error`` object or raw text body."""
    if isinstance(error, str):
        return httpx.Response(status_code, text=error, headers=headers)
    return httpx.Response(status_code, json={"error": error}, headers=headers)
