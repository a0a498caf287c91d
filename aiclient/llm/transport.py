"""HTTP transport collaborator and the dispatcher that drives it."""

from __future__ import annotations

import json
from typing import Any, Mapping, Optional, Protocol, Sequence

import requests

from aiclient.core.logging_utils import log_event
from aiclient.llm.errors import AIError, ErrorKind
from aiclient.llm.types import FilePart, Payload, TransportResult

USER_AGENT = "aiclient-python"


class Transport(Protocol):
    """Blocking HTTP client used by every provider."""

    def get(self, url: str, headers: Mapping[str, str], timeout: Optional[float]) -> TransportResult:
        """Issue a GET request."""

    def post(self, url: str, body: Any, headers: Mapping[str, str], timeout: Optional[float]) -> TransportResult:
        """Issue a POST with a JSON body."""

    def post_multipart(
        self,
        url: str,
        fields: Mapping[str, Any],
        files: Sequence[FilePart],
        headers: Mapping[str, str],
        timeout: Optional[float],
    ) -> TransportResult:
        """Issue a multipart/form-data POST."""


def _form_fields(fields: Mapping[str, Any]) -> list[tuple[str, str]]:
    out: list[tuple[str, str]] = []
    for key, value in fields.items():
        if value is None:
            continue
        if isinstance(value, bool):
            out.append((key, "true" if value else "false"))
        elif isinstance(value, (list, tuple)):
            for item in value:
                out.append((f"{key}[]", str(item)))
        elif isinstance(value, (dict,)):
            out.append((key, json.dumps(value)))
        else:
            out.append((key, str(value)))
    return out


class RequestsTransport:
    """Transport backed by a ``requests.Session``."""

    def __init__(self, session: Optional[requests.Session] = None) -> None:
        self._session = session or requests.Session()

    def _send(self, method: str, url: str, *, timeout: Optional[float], **kwargs: Any) -> TransportResult:
        try:
            resp = self._session.request(method, url, timeout=timeout, **kwargs)
        except requests.RequestException as exc:
            raise AIError.transport(f"{method} {url} failed: {exc}", url=url) from exc
        return TransportResult(status_code=resp.status_code, body=resp.content, headers=dict(resp.headers))

    def get(self, url: str, headers: Mapping[str, str], timeout: Optional[float]) -> TransportResult:
        return self._send("GET", url, headers=dict(headers), timeout=timeout)

    def post(self, url: str, body: Any, headers: Mapping[str, str], timeout: Optional[float]) -> TransportResult:
        return self._send("POST", url, json=body, headers=dict(headers), timeout=timeout)

    def post_multipart(
        self,
        url: str,
        fields: Mapping[str, Any],
        files: Sequence[FilePart],
        headers: Mapping[str, str],
        timeout: Optional[float],
    ) -> TransportResult:
        # requests sets the multipart boundary itself
        clean_headers = {k: v for k, v in headers.items() if k.lower() != "content-type"}
        parts = [(f.field, (f.filename, f.content, f.content_type)) for f in files]
        return self._send("POST", url, data=_form_fields(fields), files=parts, headers=clean_headers, timeout=timeout)


class Dispatcher:
    """Hand a payload to the transport and return the raw result."""

    def __init__(self, transport: Transport, *, provider: str, base_url: str, timeout: Optional[float]) -> None:
        self.transport = transport
        self.provider = provider
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout

    def url_for(self, path: str) -> str:
        return f"{self.base_url}/{path.lstrip('/')}"

    def send(self, payload: Payload, headers: Mapping[str, str]) -> TransportResult:
        url = self.url_for(payload.path)
        log_event(
            "request_dispatch",
            {
                "provider": self.provider,
                "capability": payload.capability.value,
                "model": payload.model,
                "method": payload.method,
                "path": payload.path,
            },
        )
        try:
            if payload.method == "GET":
                result = self.transport.get(url, headers, self.timeout)
            elif payload.is_multipart:
                result = self.transport.post_multipart(url, payload.json_body(), payload.files, headers, self.timeout)
            else:
                result = self.transport.post(url, payload.json_body(), headers, self.timeout)
        except AIError as exc:
            log_event("request_failed", {"provider": self.provider, "kind": exc.kind.value, "status": exc.http_status})
            if exc.kind is ErrorKind.TRANSPORT and not exc.provider:
                raise AIError.transport(exc.detail, provider=self.provider, url=url) from exc
            raise
        except (requests.RequestException, OSError) as exc:
            log_event("request_failed", {"provider": self.provider, "kind": ErrorKind.TRANSPORT.value, "status": None})
            raise AIError.transport(f"{payload.method} {url} failed: {exc}", provider=self.provider, url=url) from exc
        log_event(
            "request_complete",
            {"provider": self.provider, "capability": payload.capability.value, "status": result.status_code},
        )
        return result
