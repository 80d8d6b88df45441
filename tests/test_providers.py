"""Provider characterization tests.

These tests pin the request bodies each backend adapter sends and the way
responses are normalized, using scripted httpx transports instead of the
network. Backend dialects are consumed externally and drift is hard to
detect, so the exact shapes matter.
"""

from __future__ import annotations

import asyncio
import json

import httpx
import pytest

from agentlink.config import ProviderConfig, SamplingDefaults
from agentlink.errors import ProviderHTTPError, RequestTimeoutError
from agentlink.providers import (
    CerebrasProvider,
    FireworksProvider,
    GroqProvider,
    MockProvider,
    OllamaProvider,
    Provider,
    SiliconFlowProvider,
    XAIProvider,
    ZAIProvider,
)
from agentlink.providers._utils import IMAGE_UNAVAILABLE_TEXT
from agentlink.providers.models import (
    ChatMessage,
    ChatOptions,
    ChatRequest,
    ChatResult,
    TextPart,
    ToolCall,
    ToolDefinition,
)
from agentlink.providers.ollama import server_root
from agentlink.toolcalls.recovery import RECOVERED_RAW
from tests.helpers import (
    ScriptedBackend,
    SleepRecorder,
    completion,
    error_response,
    ok,
    raw_tool_call,
)

pytestmark = pytest.mark.contract

TOOLS = (
    ToolDefinition(
        name="computer",
        description="Mouse and keyboard",
        parameters={"type": "object", "properties": {"action": {"type": "string"}}},
    ),
    ToolDefinition(name="read_page"),
)
USER = ChatMessage(role="user", content="Open the settings page")


def _request(**options) -> ChatRequest:
    return ChatRequest(messages=(USER,), tools=TOOLS, options=ChatOptions(**options))


def _keyed(**kwargs) -> ProviderConfig:
    return ProviderConfig(api_key="sk-test", **kwargs)


# =============================================================================
# Protocol conformance
# =============================================================================


@pytest.mark.parametrize(
    "cls",
    [
        FireworksProvider,
        SiliconFlowProvider,
        GroqProvider,
        OllamaProvider,
        CerebrasProvider,
        XAIProvider,
        ZAIProvider,
        MockProvider,
    ],
)
def test_adapters_satisfy_provider_protocol(cls: type) -> None:
    assert isinstance(cls(), Provider)


def test_configured_requires_key_except_for_ollama() -> None:
    assert FireworksProvider().configured is False
    assert FireworksProvider(_keyed()).configured is True
    assert OllamaProvider().configured is True


def test_env_key_is_picked_up(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("XAI_API_KEY", "env-xai")
    assert XAIProvider().configured is True


# =============================================================================
# Request body shapes
# =============================================================================


@pytest.mark.asyncio
async def test_fireworks_body_carries_recommended_sampling(
    sleeper: SleepRecorder,
) -> None:
    backend = ScriptedBackend(script=[ok(completion("hi"))])
    provider = FireworksProvider(_keyed(), transport=backend.transport(), sleep=sleeper)

    result = await provider.chat(_request())

    body = backend.bodies()[0]
    assert body["model"] == "accounts/fireworks/models/kimi-k2p5"
    assert body["max_tokens"] == 32768
    assert body["temperature"] == 0.6
    assert body["top_p"] == 0.95
    assert body["top_k"] == 40
    assert body["presence_penalty"] == 0
    assert body["frequency_penalty"] == 0
    assert body["stream"] is False
    assert body["tool_choice"] == "auto"
    assert [t["function"]["name"] for t in body["tools"]] == ["computer", "read_page"]
    assert body["messages"] == [{"role": "user", "content": "Open the settings page"}]
    assert str(backend.requests[0].url) == (
        "https://api.fireworks.ai/inference/v1/chat/completions"
    )
    assert result.text == "hi"
    assert result.usage == {"prompt_tokens": 12, "completion_tokens": 3}


@pytest.mark.asyncio
async def test_call_options_override_configured_sampling(sleeper: SleepRecorder) -> None:
    backend = ScriptedBackend(script=[ok(completion("hi"))])
    config = _keyed(sampling=SamplingDefaults(temperature=0.9, top_p=0.5))
    provider = XAIProvider(config, transport=backend.transport(), sleep=sleeper)

    await provider.chat(
        _request(max_tokens=64, temperature=0.0, top_k=5, tool_choice="read_page")
    )

    body = backend.bodies()[0]
    assert body["max_tokens"] == 64
    assert body["temperature"] == 0.0
    assert body["top_p"] == 0.5
    # xAI does not accept top_k; it is dropped silently.
    assert "top_k" not in body
    assert body["tool_choice"] == {"type": "function", "function": {"name": "read_page"}}


@pytest.mark.asyncio
async def test_xai_defaults(sleeper: SleepRecorder) -> None:
    backend = ScriptedBackend(script=[ok(completion("hi"))])
    provider = XAIProvider(_keyed(), transport=backend.transport(), sleep=sleeper)

    await provider.chat(ChatRequest(messages=(USER,)))

    body = backend.bodies()[0]
    assert body["model"] == "grok-4-1-fast-non-reasoning"
    assert body["temperature"] == 0.7
    assert "tools" not in body
    assert "tool_choice" not in body


@pytest.mark.asyncio
async def test_groq_thinking_flag_follows_config_and_options(
    sleeper: SleepRecorder,
) -> None:
    backend = ScriptedBackend(script=[ok(completion("a")), ok(completion("b"))])
    provider = GroqProvider(
        _keyed(enable_thinking=True), transport=backend.transport(), sleep=sleeper
    )

    await provider.chat(_request())
    await provider.chat(_request(disable_thinking=True))

    first, second = backend.bodies()
    assert first["temperature"] == 0.0
    assert first["extra_body"] == {"enable_thinking": True}
    assert "extra_body" not in second
    assert provider.capabilities.thinking is True


@pytest.mark.asyncio
async def test_ollama_omits_tool_choice_and_sends_placeholder_key(
    sleeper: SleepRecorder,
) -> None:
    backend = ScriptedBackend(script=[ok(completion("local"))])
    provider = OllamaProvider(
        ProviderConfig(sampling=SamplingDefaults(repeat_penalty=1.1)),
        transport=backend.transport(),
        sleep=sleeper,
    )

    await provider.chat(_request())

    body = backend.bodies()[0]
    assert "tool_choice" not in body
    assert body["tools"]
    assert body["repeat_penalty"] == 1.1
    assert body["model"] == "qwen3-vl:8b"
    assert backend.requests[0].headers["Authorization"] == "Bearer ollama"


@pytest.mark.asyncio
async def test_cerebras_flattens_images_to_text(sleeper: SleepRecorder) -> None:
    backend = ScriptedBackend(script=[ok(completion("seen"))])
    provider = CerebrasProvider(_keyed(), transport=backend.transport(), sleep=sleeper)
    screenshot = ChatMessage.vision("What is on screen?", "aGVsbG8=")
    image_only = ChatMessage(role="user", content=[screenshot.content[0]])

    await provider.chat(ChatRequest(messages=(screenshot, image_only)))

    messages = backend.bodies()[0]["messages"]
    assert messages[0]["content"] == "What is on screen?"
    assert messages[1]["content"] == IMAGE_UNAVAILABLE_TEXT
    assert provider.capabilities.vision is False


@pytest.mark.asyncio
async def test_cerebras_keeps_text_parts_when_no_images(sleeper: SleepRecorder) -> None:
    backend = ScriptedBackend(script=[ok(completion("ok"))])
    provider = CerebrasProvider(_keyed(), transport=backend.transport(), sleep=sleeper)
    message = ChatMessage(role="user", content=(TextPart("one"), TextPart("two")))
    request = ChatRequest(messages=(message,))

    await provider.chat(request)

    assert request.has_images is False
    assert backend.bodies()[0]["messages"][0]["content"] == [
        {"type": "text", "text": "one"},
        {"type": "text", "text": "two"},
    ]


@pytest.mark.asyncio
async def test_vision_message_serializes_image_before_text(
    sleeper: SleepRecorder,
) -> None:
    backend = ScriptedBackend(script=[ok(completion("ok"))])
    provider = FireworksProvider(_keyed(), transport=backend.transport(), sleep=sleeper)

    request = ChatRequest(
        messages=(ChatMessage.vision("Describe", "aGVsbG8=", "image/jpeg"),)
    )
    assert request.has_images
    await provider.chat(request)

    content = backend.bodies()[0]["messages"][0]["content"]
    assert content == [
        {"type": "image_url", "image_url": {"url": "data:image/jpeg;base64,aGVsbG8="}},
        {"type": "text", "text": "Describe"},
    ]


@pytest.mark.asyncio
async def test_tool_history_is_replayed(sleeper: SleepRecorder) -> None:
    backend = ScriptedBackend(script=[ok(completion("next"))])
    provider = FireworksProvider(_keyed(), transport=backend.transport(), sleep=sleeper)
    call = ToolCall(id="call_1", name="read_page", arguments={"scope": "viewport"})

    await provider.chat(
        ChatRequest(
            messages=(
                USER,
                ChatMessage(role="assistant", tool_calls=[call]),
                ChatMessage(role="tool", content="page text", tool_call_id="call_1"),
            )
        )
    )

    messages = backend.bodies()[0]["messages"]
    assert messages[1]["tool_calls"] == [
        {
            "id": "call_1",
            "type": "function",
            "function": {"name": "read_page", "arguments": '{"scope": "viewport"}'},
        }
    ]
    assert messages[2] == {"role": "tool", "content": "page text", "tool_call_id": "call_1"}


# =============================================================================
# z.ai dialect
# =============================================================================


@pytest.mark.asyncio
async def test_zai_disables_thinking_for_glm4_unless_asked(
    sleeper: SleepRecorder,
) -> None:
    backend = ScriptedBackend(script=[ok(completion("a")), ok(completion("b"))])
    provider = ZAIProvider(_keyed(), transport=backend.transport(), sleep=sleeper)

    await provider.chat(_request())
    await provider.chat(_request(disable_thinking=False))

    first, second = backend.bodies()
    assert first["thinking"] == {"type": "disabled"}
    assert "thinking" not in second


@pytest.mark.asyncio
async def test_zai_keeps_thinking_for_other_models(sleeper: SleepRecorder) -> None:
    backend = ScriptedBackend(script=[ok(completion("a"))])
    provider = ZAIProvider(
        _keyed(model="glm-z1-air"), transport=backend.transport(), sleep=sleeper
    )
    await provider.chat(_request())
    assert "thinking" not in backend.bodies()[0]


@pytest.mark.asyncio
async def test_zai_sanitizes_and_falls_back_to_reasoning_text(
    sleeper: SleepRecorder,
) -> None:
    backend = ScriptedBackend(
        script=[
            ok(completion("<|begin_of_box|>\u200bThe title is Example<|end_of_box|>")),
            ok(completion("", reasoning_content="<think>hmm</think> It costs $5.")),
        ]
    )
    provider = ZAIProvider(_keyed(), transport=backend.transport(), sleep=sleeper)

    boxed = await provider.chat(_request())
    reasoned = await provider.chat(_request())

    assert boxed.text == "The title is Example"
    assert reasoned.text == "It costs $5."
    assert reasoned.thinking == "It costs $5."


@pytest.mark.asyncio
async def test_zai_availability_pings_unlisted_model(sleeper: SleepRecorder) -> None:
    models = {"data": [{"id": "glm-4.6"}, {"id": "glm-4.5-air"}]}
    backend = ScriptedBackend(
        script=[
            httpx.Response(200, json=models),
            error_response(400, {"message": "Unknown Model"}),
            httpx.Response(200, json=models),
            ok(completion("p")),
        ]
    )
    provider = ZAIProvider(_keyed(), transport=backend.transport(), sleep=sleeper)

    assert await provider.is_available() is False
    assert "api/coding/paas/v4" in provider.last_error
    assert "Unknown Model" in provider.last_error
    assert "glm-4.6" in provider.last_error

    assert await provider.is_available() is True
    assert provider.last_error == ""
    ping = backend.bodies()[-1]
    assert ping["max_tokens"] == 1
    assert ping["messages"] == [{"role": "user", "content": "ping"}]


@pytest.mark.asyncio
async def test_availability_without_key_fails_fast() -> None:
    provider = ZAIProvider()
    assert await provider.is_available() is False
    assert provider.last_error == "API key is missing"


# =============================================================================
# Availability probes
# =============================================================================


@pytest.mark.asyncio
async def test_models_probe_uses_bearer_auth(sleeper: SleepRecorder) -> None:
    backend = ScriptedBackend(
        script=[httpx.Response(200, json={"data": []}), httpx.Response(401, text="nope")]
    )
    provider = GroqProvider(_keyed(), transport=backend.transport(), sleep=sleeper)

    assert await provider.is_available() is True
    assert await provider.is_available() is False
    assert provider.last_error == "HTTP 401: nope"
    request = backend.requests[0]
    assert request.method == "GET"
    assert str(request.url) == "https://api.groq.com/openai/v1/models"
    assert request.headers["Authorization"] == "Bearer sk-test"


@pytest.mark.asyncio
async def test_ollama_health_checks_server_root(sleeper: SleepRecorder) -> None:
    backend = ScriptedBackend(
        script=[
            httpx.Response(200, text="Ollama is running"),
            httpx.Response(200, json={"models": [{"name": "qwen3-vl:8b"}, {"size": 1}]}),
            httpx.ConnectError("refused"),
        ]
    )
    provider = OllamaProvider(transport=backend.transport(), sleep=sleeper)

    assert await provider.is_available() is True
    assert await provider.list_models() == ["qwen3-vl:8b"]
    assert await provider.list_models() == []
    assert backend.requests[0].url.host == "localhost"
    assert backend.requests[0].url.path in {"", "/"}
    assert str(backend.requests[1].url) == "http://localhost:11434/api/tags"
    assert "Authorization" not in backend.requests[0].headers


def test_server_root_strips_v1_suffix() -> None:
    assert server_root("http://localhost:11434/v1") == "http://localhost:11434"
    assert server_root("http://gpu-box:11434/v1/") == "http://gpu-box:11434"
    assert server_root("http://gpu-box:11434") == "http://gpu-box:11434"


# =============================================================================
# Tool-call normalization end to end
# =============================================================================


@pytest.mark.asyncio
@pytest.mark.parametrize("cls", [ZAIProvider, SiliconFlowProvider, FireworksProvider])
async def test_empty_structured_call_is_completed_from_reasoning(
    cls: type, sleeper: SleepRecorder
) -> None:
    backend = ScriptedBackend(
        script=[
            ok(
                completion(
                    "",
                    tool_calls=[raw_tool_call("read_page", {}, call_id="call_rp")],
                    reasoning_content=(
                        "I should read the visible part. "
                        "<arg_key>scope</arg_key><arg_value>viewport</arg_value>"
                    ),
                )
            )
        ]
    )
    provider = cls(_keyed(), transport=backend.transport(), sleep=sleeper)

    result = await provider.chat(_request())

    assert result.tool_calls == (
        ToolCall(id="call_rp", name="read_page", arguments={"scope": "viewport"}),
    )
    assert result.next_action is result.tool_calls[0]


@pytest.mark.asyncio
async def test_complete_structured_call_is_not_touched(sleeper: SleepRecorder) -> None:
    backend = ScriptedBackend(
        script=[
            ok(
                completion(
                    "<arg_key>url</arg_key><arg_value>https://evil.test</arg_value>",
                    tool_calls=[
                        raw_tool_call("navigate", {"url": "https://example.test"})
                    ],
                )
            )
        ]
    )
    provider = SiliconFlowProvider(_keyed(), transport=backend.transport(), sleep=sleeper)

    result = await provider.chat(_request())

    assert [c.arguments for c in result.tool_calls] == [{"url": "https://example.test"}]


@pytest.mark.asyncio
async def test_tag_soup_in_content_becomes_a_call_for_recovering_backends(
    sleeper: SleepRecorder,
) -> None:
    soup = (
        "<tool_call>computer <arg_key>action</arg_key><arg_value>click</arg_value>"
        "<arg_key>target</arg_key><arg_value>#login</arg_value></tool_call>"
    )
    backend = ScriptedBackend(script=[ok(completion(soup)), ok(completion(soup))])
    cerebras = CerebrasProvider(_keyed(), transport=backend.transport(), sleep=sleeper)
    xai = XAIProvider(_keyed(), transport=backend.transport(), sleep=sleeper)

    recovered = await cerebras.chat(_request())
    untouched = await xai.chat(_request())

    assert len(recovered.tool_calls) == 1
    call = recovered.tool_calls[0]
    assert call.name == "computer"
    assert call.arguments == {"action": "click", "target": "#login"}
    assert call.id.startswith("fallback_")
    assert untouched.tool_calls == ()


@pytest.mark.asyncio
async def test_json_tool_call_tags_are_recovered(sleeper: SleepRecorder) -> None:
    content = (
        'Sure. <tool_call>{"name": "navigate", "arguments": '
        '{"url": "https://example.test"}}</tool_call>'
    )
    backend = ScriptedBackend(script=[ok(completion(content))])
    provider = GroqProvider(_keyed(), transport=backend.transport(), sleep=sleeper)

    result = await provider.chat(_request())

    assert [(c.name, c.arguments) for c in result.tool_calls] == [
        ("navigate", {"url": "https://example.test"})
    ]


@pytest.mark.asyncio
async def test_invalid_structured_calls_are_dropped(sleeper: SleepRecorder) -> None:
    backend = ScriptedBackend(
        script=[
            ok(
                completion(
                    "",
                    tool_calls=[
                        raw_tool_call("bad name!", {"x": 1}, call_id="a"),
                        raw_tool_call("list_tabs", "", call_id="b"),
                    ],
                )
            )
        ]
    )
    provider = FireworksProvider(_keyed(), transport=backend.transport(), sleep=sleeper)

    result = await provider.chat(_request())

    assert [(c.id, c.name, c.arguments) for c in result.tool_calls] == [
        ("b", "list_tabs", {})
    ]


@pytest.mark.asyncio
async def test_tool_use_failed_is_recovered_into_calls(sleeper: SleepRecorder) -> None:
    backend = ScriptedBackend(
        script=[
            error_response(
                400,
                {
                    "code": "tool_use_failed",
                    "message": "Failed to call a function.",
                    "failed_generation": (
                        '[{"name":"click","parameters":{"target":"#submit"}}]'
                    ),
                },
            )
        ]
    )
    provider = GroqProvider(_keyed(), transport=backend.transport(), sleep=sleeper)

    result = await provider.chat(_request())

    assert len(result.tool_calls) == 1
    assert result.tool_calls[0].name == "click"
    assert result.tool_calls[0].arguments == {"target": "#submit"}
    assert result.raw == RECOVERED_RAW


@pytest.mark.asyncio
async def test_tool_use_failed_plain_text_becomes_answer(sleeper: SleepRecorder) -> None:
    backend = ScriptedBackend(
        script=[
            error_response(
                400,
                {"code": "tool_use_failed", "failed_generation": "The answer is 42."},
            )
        ]
    )
    provider = GroqProvider(_keyed(), transport=backend.transport(), sleep=sleeper)

    result = await provider.chat(_request())

    assert result.text == "The answer is 42."
    assert result.tool_calls == ()


@pytest.mark.asyncio
async def test_other_errors_propagate_and_set_last_error(sleeper: SleepRecorder) -> None:
    backend = ScriptedBackend(
        script=[error_response(400, {"message": "context length exceeded"})]
    )
    provider = FireworksProvider(_keyed(), transport=backend.transport(), sleep=sleeper)

    with pytest.raises(ProviderHTTPError):
        await provider.chat(_request())
    assert provider.last_error == "context length exceeded"


@pytest.mark.asyncio
async def test_configured_timeout_bounds_each_call(sleeper: SleepRecorder) -> None:
    async def _hang(request: httpx.Request) -> httpx.Response:
        await asyncio.sleep(5)
        return ok(completion("late"))

    provider = XAIProvider(
        _keyed(request_timeout_ms=20),
        transport=httpx.MockTransport(_hang),
        sleep=sleeper,
    )

    with pytest.raises(RequestTimeoutError) as exc:
        await provider.chat(_request())
    assert "20ms" in str(exc.value)


# =============================================================================
# SiliconFlow host failover
# =============================================================================


@pytest.mark.asyncio
async def test_siliconflow_sticks_to_alternate_host_after_failover(
    sleeper: SleepRecorder,
) -> None:
    backend = ScriptedBackend(
        by_host={
            "api.siliconflow.com": [httpx.ConnectError("unreachable")],
            "api.siliconflow.cn": [ok(completion("one")), ok(completion("two"))],
        }
    )
    provider = SiliconFlowProvider(_keyed(), transport=backend.transport(), sleep=sleeper)

    first = await provider.chat(_request())
    second = await provider.chat(_request())

    assert (first.text, second.text) == ("one", "two")
    assert backend.hosts() == [
        "api.siliconflow.com",
        "api.siliconflow.cn",
        "api.siliconflow.cn",
    ]
    assert provider.base_url == "https://api.siliconflow.cn/v1"


@pytest.mark.asyncio
async def test_siliconflow_sends_enable_thinking_false_when_disabled(
    sleeper: SleepRecorder,
) -> None:
    backend = ScriptedBackend(script=[ok(completion("a")), ok(completion("b"))])
    provider = SiliconFlowProvider(_keyed(), transport=backend.transport(), sleep=sleeper)

    await provider.chat(_request(disable_thinking=True))
    await provider.chat(_request())

    first, second = backend.bodies()
    assert first["enable_thinking"] is False
    assert "enable_thinking" not in second
    assert first["model"] == "zai-org/GLM-4.6V"


@pytest.mark.asyncio
async def test_siliconflow_availability_checks_both_hosts(
    sleeper: SleepRecorder,
) -> None:
    listed = {"data": [{"id": "zai-org/GLM-4.6V"}]}
    backend = ScriptedBackend(
        by_host={
            "api.siliconflow.com": [httpx.Response(401, text="region mismatch")],
            "api.siliconflow.cn": [
                httpx.Response(200, json=listed),
                ok(completion("via cn")),
            ],
        }
    )
    provider = SiliconFlowProvider(_keyed(), transport=backend.transport(), sleep=sleeper)

    assert await provider.is_available() is True
    assert provider.base_url == "https://api.siliconflow.cn/v1"

    result = await provider.chat(_request())
    assert result.text == "via cn"
    assert backend.hosts()[-1] == "api.siliconflow.cn"


@pytest.mark.asyncio
async def test_siliconflow_unavailable_when_model_missing_everywhere(
    sleeper: SleepRecorder,
) -> None:
    other = {"data": [{"id": "Qwen/Qwen2.5-7B"}]}
    backend = ScriptedBackend(
        by_host={
            "api.siliconflow.com": [httpx.Response(200, json=other)],
            "api.siliconflow.cn": [httpx.Response(200, json=other)],
        }
    )
    provider = SiliconFlowProvider(_keyed(), transport=backend.transport(), sleep=sleeper)

    assert await provider.is_available() is False
    assert "zai-org/GLM-4.6V" in provider.last_error
    assert provider.base_url == "https://api.siliconflow.com/v1"


# =============================================================================
# Mock provider
# =============================================================================


@pytest.mark.asyncio
async def test_mock_provider_replays_script() -> None:
    boom = ProviderHTTPError("scripted", status_code=500)
    provider = MockProvider(
        script=[
            ChatResult(text="first"),
            {"content": "", "tool_calls": [raw_tool_call("wait", {"duration": 1})]},
            boom,
        ]
    )
    request = _request()

    assert (await provider.chat(request)).text == "first"
    second = await provider.chat(request)
    assert second.tool_calls[0].name == "wait"
    with pytest.raises(ProviderHTTPError):
        await provider.chat(request)
    assert provider.last_error == "scripted"
    echoed = await provider.chat(request)
    assert echoed.text == "echo: Open the settings page"
    assert len(provider.requests) == 4

    await provider.aclose()
    assert provider.closed is True


def test_raw_tool_call_helper_encodes_arguments() -> None:
    entry = raw_tool_call("wait", {"duration": 1})
    assert json.loads(entry["function"]["arguments"]) == {"duration": 1}
