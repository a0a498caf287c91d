"""Tests for the requests-backed transport and the dispatcher."""

from __future__ import annotations

import json

import pytest
import requests

from aiclient.core.logging_utils import set_event_logging
from aiclient.llm.errors import AIError, ErrorKind
from aiclient.llm.transport import Dispatcher, RequestsTransport
from aiclient.llm.types import Capability, FilePart, Payload, TransportResult


class _FakeHTTPResponse:
    def __init__(self, status_code=200, content=b"{}", headers=None):
        self.status_code = status_code
        self.content = content
        self.headers = headers or {"Content-Type": "application/json"}


class _FakeSession:
    def __init__(self, response=None, exc=None):
        self.response = response or _FakeHTTPResponse()
        self.exc = exc
        self.requests = []

    def request(self, method, url, timeout=None, **kwargs):
        self.requests.append({"method": method, "url": url, "timeout": timeout, **kwargs})
        if self.exc is not None:
            raise self.exc
        return self.response


def test_post_sends_json_and_returns_result() -> None:
    session = _FakeSession(_FakeHTTPResponse(201, b'{"ok": true}', {"X-Id": "1"}))
    result = RequestsTransport(session).post("https://api/x", {"a": 1}, {"H": "v"}, 5.0)
    sent = session.requests[0]
    assert sent["method"] == "POST"
    assert sent["json"] == {"a": 1}
    assert sent["timeout"] == 5.0
    assert result.status_code == 201
    assert result.ok
    assert json.loads(result.text) == {"ok": True}
    assert result.headers["X-Id"] == "1"


def test_multipart_form_fields_and_headers() -> None:
    session = _FakeSession()
    part = FilePart("image[]", "a.png", b"png", "image/png")
    RequestsTransport(session).post_multipart(
        "https://api/edits",
        {"prompt": "hat", "n": 2, "stream": False, "skip": None, "tags": ["a", "b"]},
        [part],
        {"Authorization": "Bearer k", "Content-Type": "application/json"},
        None,
    )
    sent = session.requests[0]
    assert sent["data"] == [("prompt", "hat"), ("n", "2"), ("stream", "false"), ("tags[]", "a"), ("tags[]", "b")]
    assert sent["files"] == [("image[]", ("a.png", b"png", "image/png"))]
    assert "Content-Type" not in sent["headers"]
    assert sent["headers"]["Authorization"] == "Bearer k"


def test_connection_failure_becomes_transport_error() -> None:
    session = _FakeSession(exc=requests.ConnectionError("refused"))
    with pytest.raises(AIError) as info:
        RequestsTransport(session).get("https://api/models", {}, 1.0)
    assert info.value.kind is ErrorKind.TRANSPORT
    assert info.value.is_retryable()
    assert info.value.http_status is None


class _RaisingTransport:
    def __init__(self, exc):
        self.exc = exc

    def get(self, url, headers, timeout):
        raise self.exc


def test_dispatcher_attaches_provider_to_transport_errors() -> None:
    dispatcher = Dispatcher(
        RequestsTransport(_FakeSession(exc=requests.Timeout("slow"))),
        provider="OpenAI",
        base_url="https://api.openai.com/v1/",
        timeout=2.0,
    )
    payload = Payload(Capability.MODEL_LISTING, "", "GET", "/models")
    with pytest.raises(AIError) as info:
        dispatcher.send(payload, {})
    assert info.value.kind is ErrorKind.TRANSPORT
    assert info.value.provider == "OpenAI"
    assert info.value.context["url"] == "https://api.openai.com/v1/models"


def test_dispatcher_wraps_os_errors() -> None:
    dispatcher = Dispatcher(_RaisingTransport(OSError("broken pipe")), provider="Ollama", base_url="http://h", timeout=None)
    with pytest.raises(AIError) as info:
        dispatcher.send(Payload(Capability.MODEL_LISTING, "", "GET", "/api/tags"), {})
    assert info.value.kind is ErrorKind.TRANSPORT
    assert info.value.provider == "Ollama"


def test_dispatcher_routes_by_payload_shape(transport) -> None:
    result = TransportResult(status_code=200, body=b"{}")
    transport.add("POST", "/json", result).add("POST", "/form", result)
    dispatcher = Dispatcher(transport, provider="OpenAI", base_url="https://api", timeout=3.0)
    dispatcher.send(Payload(Capability.CHAT, "m", "POST", "/json", body={"x": [1, 2]}), {})
    dispatcher.send(
        Payload(Capability.IMAGE_EDIT, "m", "POST", "/form", body={"prompt": "p"}, files=(FilePart("image", "a.png", b""),)),
        {},
    )
    assert transport.calls[0]["body"] == {"x": [1, 2]}
    assert transport.calls[1]["fields"] == {"prompt": "p"}
    assert transport.calls[1]["timeout"] == 3.0


def test_dispatch_events_are_logged(transport, capsys) -> None:
    set_event_logging(True)
    transport.add("GET", "/models", TransportResult(status_code=200, body=b"{}"))
    Dispatcher(transport, provider="OpenAI", base_url="https://api", timeout=None).send(
        Payload(Capability.MODEL_LISTING, "", "GET", "/models"), {}
    )
    captured = capsys.readouterr()
    lines = [json.loads(line) for line in captured.err.splitlines()]
    assert [line["event"] for line in lines] == ["request_dispatch", "request_complete"]
    assert lines[0]["provider"] == "OpenAI"
    assert lines[1]["status"] == 200
    assert captured.out == ""
