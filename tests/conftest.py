"""Shared fixtures: an in-memory transport and Pillow-generated input files."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

import pytest
from PIL import Image

from aiclient.core.logging_utils import set_event_logging
from aiclient.llm.types import TransportResult


def json_result(data: Any, status: int = 200, headers: Optional[Dict[str, str]] = None) -> TransportResult:
    return TransportResult(status_code=status, body=json.dumps(data).encode("utf-8"), headers=headers or {})


def ndjson_result(records: List[Any], status: int = 200, extra_lines: Tuple[str, ...] = ()) -> TransportResult:
    lines = [json.dumps(r) for r in records]
    lines.extend(extra_lines)
    return TransportResult(status_code=status, body=("\n".join(lines) + "\n").encode("utf-8"))


class FakeTransport:
    """Route-table transport that records every call instead of touching the network."""

    def __init__(self) -> None:
        self.routes: Dict[Tuple[str, str], List[TransportResult]] = {}
        self.calls: List[Dict[str, Any]] = []

    def add(self, method: str, path: str, *results: TransportResult) -> "FakeTransport":
        self.routes.setdefault((method, path), []).extend(results)
        return self

    def _reply(self, method: str, url: str, record: Dict[str, Any]) -> TransportResult:
        record.update(method=method, url=url)
        self.calls.append(record)
        for (route_method, path), results in self.routes.items():
            if route_method == method and url.endswith(path) and results:
                return results.pop(0) if len(results) > 1 else results[0]
        raise AssertionError(f"unexpected {method} {url}")

    def get(self, url, headers, timeout):
        return self._reply("GET", url, {"headers": dict(headers), "timeout": timeout})

    def post(self, url, body, headers, timeout):
        return self._reply("POST", url, {"body": body, "headers": dict(headers), "timeout": timeout})

    def post_multipart(self, url, fields, files, headers, timeout):
        return self._reply(
            "POST",
            url,
            {"fields": dict(fields), "files": list(files), "headers": dict(headers), "timeout": timeout},
        )

    def paths(self) -> List[str]:
        return [c["url"] for c in self.calls]


@pytest.fixture
def transport() -> FakeTransport:
    return FakeTransport()


@pytest.fixture(autouse=True)
def _quiet_events(monkeypatch):
    monkeypatch.delenv("OPENAI_API_KEY", raising=False)
    monkeypatch.delenv("ANTHROPIC_API_KEY", raising=False)
    set_event_logging(False)
    yield
    set_event_logging(None)


@pytest.fixture
def make_png(tmp_path):
    """Write a PNG of the given size and return its path."""

    def _make(name: str = "image.png", size: Tuple[int, int] = (64, 64), mode: str = "RGBA") -> Path:
        path = tmp_path / name
        Image.new(mode, size, (255, 0, 0, 255) if mode == "RGBA" else (255, 0, 0)).save(path, format="PNG")
        return path

    return _make


@pytest.fixture
def make_file(tmp_path):
    """Write arbitrary bytes to a file and return its path."""

    def _make(name: str, content: bytes = b"data") -> Path:
        path = tmp_path / name
        path.write_bytes(content)
        return path

    return _make
