"""Tests for the normalized Response and Payload types."""

from __future__ import annotations

import base64
import json

import pytest

from aiclient.llm.types import Capability, Payload, Response, usage_counts


def test_response_is_read_only() -> None:
    response = Response(content="hi", provider="OpenAI", metadata={"a": 1})
    with pytest.raises(TypeError):
        response.metadata["a"] = 2
    with pytest.raises(AttributeError):
        response.content = "other"


def test_text_for_each_content_shape() -> None:
    assert Response(content="hi", provider="x").text == "hi"
    assert Response(content=b"\x00", provider="x").text == ""
    assert json.loads(Response(content=[0.5, 1.5], provider="x").text) == [0.5, 1.5]


def test_usage_counts_shapes() -> None:
    assert usage_counts({"prompt_tokens": 4, "completion_tokens": 6}) == (4, 6, 10)
    assert usage_counts({"input_tokens": 1, "output_tokens": 2, "total_tokens": 9}) == (1, 2, 9)
    assert usage_counts(None) == (0, 0, 0)


def test_save_single_base64_image(tmp_path) -> None:
    encoded = base64.b64encode(b"png-bytes").decode("ascii")
    response = Response(
        content=encoded, provider="OpenAI", metadata={"response_format": "b64_json", "image_count": 1}
    )
    assert response.save_file(tmp_path / "out" / "img.png") == [tmp_path / "out" / "img.png"]
    assert (tmp_path / "out" / "img.png").read_bytes() == b"png-bytes"


def test_save_url_listing(tmp_path) -> None:
    urls = ["https://a/1.png", "https://a/2.png"]
    response = Response(
        content=json.dumps(urls), provider="OpenAI", metadata={"response_format": "url", "image_count": 2}
    )
    [path] = response.save_file(tmp_path / "urls.txt")
    assert path.read_text(encoding="utf-8").splitlines() == urls


def test_save_text(tmp_path) -> None:
    [path] = Response(content="transcript", provider="OpenAI").save_file(tmp_path / "t.txt")
    assert path.read_text(encoding="utf-8") == "transcript"


def test_payload_freezes_body() -> None:
    source = {"model": "m", "messages": [{"role": "user", "content": "hi"}], "temperature": 0.3}
    payload = Payload(Capability.CHAT, "m", "POST", "/chat/completions", body=source)
    source["temperature"] = 1.9
    assert payload.body["temperature"] == 0.3
    with pytest.raises(TypeError):
        payload.body["temperature"] = 1.0
    assert payload.effective_options(("messages",)) == {"temperature": 0.3}
    assert payload.json_body()["messages"] == [{"role": "user", "content": "hi"}]
    assert not payload.is_multipart


def test_payload_is_isolated_from_caller_nested_objects() -> None:
    messages = [{"role": "user", "content": "hi"}]
    payload = Payload(Capability.CHAT, "m", "POST", "/chat/completions", body={"messages": messages})
    messages[0]["content"] = "changed"
    messages.append({"role": "user", "content": "more"})
    assert payload.json_body()["messages"] == [{"role": "user", "content": "hi"}]
    with pytest.raises(TypeError):
        payload.body["messages"][0]["content"] = "x"
