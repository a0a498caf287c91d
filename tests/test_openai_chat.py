"""Tests for OpenAI chat, vision and the request/response path around them."""

from __future__ import annotations

import base64

import pytest
from conftest import json_result

from aiclient.llm.errors import AIError, ErrorKind
from aiclient.llm.providers import OpenAIProvider
from aiclient.llm.types import Capability


def _completion(content: str = "Hello!", finish_reason: str = "stop", n: int = 1) -> dict:
    return {
        "id": "chatcmpl-1",
        "object": "chat.completion",
        "created": 1700000000,
        "model": "gpt-4o-mini-2024-07-18",
        "choices": [
            {
                "index": i,
                "message": {"role": "assistant", "content": f"{content}" if i == 0 else f"{content} {i}"},
                "finish_reason": finish_reason,
            }
            for i in range(n)
        ],
        "usage": {"prompt_tokens": 9, "completion_tokens": 3, "total_tokens": 12},
    }


@pytest.fixture
def provider(transport) -> OpenAIProvider:
    return OpenAIProvider(api_key="sk-test", transport=transport)


def test_chat_builds_payload_and_normalizes_usage(provider, transport) -> None:
    transport.add("POST", "/chat/completions", json_result(_completion()))
    response = provider.chat("Hi there", {"temperature": 0.2})
    call = transport.calls[0]
    assert call["url"] == "https://api.openai.com/v1/chat/completions"
    assert call["headers"]["Authorization"] == "Bearer sk-test"
    assert call["body"] == {
        "model": "gpt-4o-mini",
        "messages": [{"role": "user", "content": "Hi there"}],
        "temperature": 0.2,
    }
    assert response.content == "Hello!"
    assert response.provider == "OpenAI"
    assert response.status_code == 200
    assert response.metadata["input_tokens"] == 9
    assert response.metadata["output_tokens"] == 3
    assert response.metadata["total_tokens"] == 12
    assert response.metadata["finish_reason"] == "stop"


def test_chat_accepts_three_choices(provider, transport) -> None:
    transport.add("POST", "/chat/completions", json_result(_completion(n=3)))
    response = provider.chat("Name a colour", {"n": 3})
    assert transport.calls[0]["body"]["n"] == 3
    assert len(response.metadata["choices"]) == 3


def test_chat_rejects_too_many_choices_without_dispatch(provider, transport) -> None:
    with pytest.raises(AIError) as info:
        provider.chat("Name a colour", {"n": 300})
    assert info.value.kind is ErrorKind.VALIDATION
    assert "128" in str(info.value)
    assert transport.calls == []


@pytest.mark.parametrize(
    "reason,status",
    [("stop", 200), ("length", 206), ("content_filter", 422), ("tool_calls", 202), ("function_call", 202), ("weird", 200)],
)
def test_finish_reason_status(provider, transport, reason, status) -> None:
    transport.add("POST", "/chat/completions", json_result(_completion(finish_reason=reason)))
    assert provider.chat("x").status_code == status


def test_chat_rejects_unknown_model(provider, transport) -> None:
    with pytest.raises(AIError) as info:
        provider.chat("x", {"model": "whisper-1"})
    assert "whisper-1" in str(info.value)
    assert "chat" in str(info.value)
    assert transport.calls == []


def test_top_logprobs_requires_logprobs(provider) -> None:
    with pytest.raises(AIError) as info:
        provider.chat("x", {"top_logprobs": 3})
    assert info.value.context["parameter"] == "top_logprobs"


def test_audio_output_requires_modalities_and_model(provider, transport) -> None:
    audio = {"voice": "alloy", "format": "wav"}
    with pytest.raises(AIError):
        provider.chat("x", {"audio": audio})
    with pytest.raises(AIError):
        provider.chat("x", {"model": "gpt-4o", "modalities": ["text", "audio"], "audio": audio})
    with pytest.raises(AIError):
        provider.chat("x", {"model": "gpt-4o-audio-preview", "modalities": ["text", "audio"]})
    assert transport.calls == []


def test_audio_output_on_audio_model(provider, transport) -> None:
    data = _completion()
    data["choices"][0]["message"] = {
        "role": "assistant",
        "content": None,
        "audio": {"id": "audio_1", "data": "UklGRg==", "transcript": "Hello there", "expires_at": 1},
    }
    transport.add("POST", "/chat/completions", json_result(data))
    response = provider.chat(
        "Say hello",
        {"model": "gpt-4o-audio-preview", "modalities": ["text", "audio"], "audio": {"voice": "alloy", "format": "wav"}},
    )
    assert transport.calls[0]["body"]["audio"] == {"voice": "alloy", "format": "wav"}
    assert response.content == "Hello there"
    assert response.metadata["audio"]["data"] == "UklGRg=="


def test_messages_option_is_validated(provider, transport) -> None:
    with pytest.raises(AIError):
        provider.chat("", {"messages": [{"role": "robot", "content": "hi"}]})
    transport.add("POST", "/chat/completions", json_result(_completion()))
    messages = [{"role": "system", "content": "Be brief"}, {"role": "user", "content": "Hi"}]
    provider.chat("", {"messages": messages})
    assert transport.calls[0]["body"]["messages"] == messages


def test_payload_round_trips_options(provider) -> None:
    options = {"temperature": 0.5, "top_p": 0.9, "presence_penalty": 1.0, "n": 2, "stop": ["END"]}
    payload = provider.builder.build_chat("hi", options)
    assert payload.effective_options(("messages",)) == options


def test_missing_api_key_fails_before_dispatch(transport, monkeypatch) -> None:
    provider = OpenAIProvider(transport=transport)
    with pytest.raises(AIError) as info:
        provider.chat("hi")
    assert info.value.kind is ErrorKind.AUTHENTICATION
    assert info.value.http_status == 401
    assert transport.calls == []


def test_api_key_from_environment(transport, monkeypatch) -> None:
    monkeypatch.setenv("OPENAI_API_KEY", "sk-env")
    transport.add("POST", "/chat/completions", json_result(_completion()))
    OpenAIProvider(transport=transport).chat("hi")
    assert transport.calls[0]["headers"]["Authorization"] == "Bearer sk-env"


def test_http_error_is_mapped(provider, transport) -> None:
    transport.add(
        "POST",
        "/chat/completions",
        json_result({"error": {"message": "Rate limit", "type": "requests", "code": "rate_limit_exceeded"}}, status=429),
    )
    with pytest.raises(AIError) as info:
        provider.chat("hi")
    assert info.value.kind is ErrorKind.RATE_LIMIT
    assert info.value.is_retryable()


def test_default_model_precedence(provider, transport) -> None:
    transport.add("POST", "/chat/completions", json_result(_completion()))
    provider.set_default_model("gpt-4o")
    assert provider.get_default_model() == "gpt-4o"
    provider.chat("a")
    provider.chat("b", {"model": "gpt-4.1"})
    provider.unset_default_model()
    provider.chat("c")
    models = [c["body"]["model"] for c in transport.calls]
    assert models == ["gpt-4o", "gpt-4.1", "gpt-4o-mini"]


def test_constructor_model_used_when_no_session_default(transport) -> None:
    transport.add("POST", "/chat/completions", json_result(_completion()))
    provider = OpenAIProvider(api_key="k", model="gpt-4.1-mini", transport=transport)
    provider.chat("a")
    assert transport.calls[0]["body"]["model"] == "gpt-4.1-mini"


def test_is_model_capable(provider) -> None:
    assert provider.is_model_capable("gpt-4o", Capability.VISION)
    assert not provider.is_model_capable("gpt-3.5-turbo", "vision")


def test_vision_url_passthrough(provider, transport) -> None:
    transport.add("POST", "/chat/completions", json_result(_completion("A cat")))
    response = provider.vision("What is this?", "https://example.com/cat.jpg", {"detail": "low"})
    content = transport.calls[0]["body"]["messages"][0]["content"]
    assert content[1]["image_url"] == {"url": "https://example.com/cat.jpg", "detail": "low"}
    assert response.content == "A cat"


def test_vision_local_file_becomes_data_url(provider, transport, make_png) -> None:
    path = make_png("photo.png", (8, 8))
    transport.add("POST", "/chat/completions", json_result(_completion("Red")))
    provider.vision("Colour?", str(path))
    url = transport.calls[0]["body"]["messages"][0]["content"][1]["image_url"]["url"]
    assert url.startswith("data:image/png;base64,")
    assert base64.b64decode(url.split(",", 1)[1]) == path.read_bytes()


def test_vision_rejects_bad_inputs(provider, transport, make_file) -> None:
    with pytest.raises(AIError):
        provider.vision("x", "/no/such/file.png")
    with pytest.raises(AIError):
        provider.vision("x", str(make_file("doc.pdf")))
    with pytest.raises(AIError):
        provider.vision("x", "https://example.com/a.png", {"model": "gpt-3.5-turbo"})
    assert transport.calls == []


def test_empty_body_is_unserializable(provider, transport) -> None:
    from aiclient.llm.types import TransportResult

    transport.add("POST", "/chat/completions", TransportResult(status_code=200, body=b""))
    with pytest.raises(AIError) as info:
        provider.chat("hi")
    assert info.value.kind is ErrorKind.UNSERIALIZABLE_RESPONSE
    assert "Received empty response from provider" in str(info.value)


def test_vision_payload_round_trips_detail_and_system(provider) -> None:
    options = {"temperature": 0.5, "detail": "low", "system": "Be terse"}
    payload = provider.builder.build_vision("What?", "https://example.com/cat.png", options)
    messages = payload.json_body()["messages"]
    assert messages[0] == {"role": "system", "content": "Be terse"}
    assert messages[1]["content"][1]["image_url"]["detail"] == "low"
    assert payload.effective_options() == options
