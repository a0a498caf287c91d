"""Translate non-success provider results into ``AIError`` instances."""

from __future__ import annotations

import json
from typing import Any, Mapping, Optional, Tuple, Union

from aiclient.llm.errors import AIError, ErrorKind

_AUTH_MARKERS = ("auth", "api_key", "api key", "apikey", "permission", "credential", "unauthorized", "forbidden")
_RATE_MARKERS = ("rate_limit", "rate limit", "ratelimit", "too_many_requests", "too many requests", "overloaded")
_QUOTA_MARKERS = ("insufficient_quota", "quota", "billing", "credit")


def _clean(value: Any) -> Optional[str]:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def error_fields(data: Any) -> Tuple[Optional[str], Optional[str], Optional[str]]:
    """Return (type, code, message) from any of the supported error shapes.

    Handles ``{"error": {"type", "code", "message"}}`` (OpenAI, Anthropic),
    ``{"type": "error", "error": {...}}`` and ``{"error": "text"}`` (Ollama).
    """
    if not isinstance(data, Mapping):
        return None, None, _clean(data)
    inner = data.get("error")
    error_type = None
    code = _clean(data.get("code"))
    message = _clean(data.get("message"))
    top_type = _clean(data.get("type"))
    if top_type and top_type != "error":
        error_type = top_type
    if isinstance(inner, Mapping):
        error_type = error_type or _clean(inner.get("type"))
        code = code or _clean(inner.get("code"))
        message = message or _clean(inner.get("message"))
    elif inner is not None:
        message = message or _clean(inner)
    return error_type, code, message


def _mentions(markers: Tuple[str, ...], *values: Optional[str]) -> bool:
    text = " ".join(v.lower() for v in values if v)
    return any(marker in text for marker in markers)


def error_from_payload(provider: str, status_code: Optional[int], data: Any) -> AIError:
    """Classify an already-decoded error payload."""
    error_type, code, message = error_fields(data)
    context = {"raw_error": data}

    credential_shaped = _mentions(_AUTH_MARKERS, error_type, code) or _mentions(
        ("invalid api key", "invalid x-api-key", "incorrect api key", "unauthorized"), message
    )
    if status_code == 401 or (status_code == 403 and (credential_shaped or _mentions(_AUTH_MARKERS, message))):
        fallback = f"Error: {code}" if code else "Authentication error"
        return AIError(
            ErrorKind.AUTHENTICATION,
            message or fallback,
            provider=provider,
            http_status=status_code,
            provider_error_code=code,
            error_type=error_type,
            context=context,
        )

    if status_code == 429 or _mentions(_RATE_MARKERS + _QUOTA_MARKERS, error_type, code):
        if _mentions(_QUOTA_MARKERS, error_type, code) or _mentions(("insufficient_quota", "quota"), message):
            return AIError(
                ErrorKind.QUOTA_EXCEEDED,
                message or "Quota exceeded",
                provider=provider,
                http_status=status_code,
                provider_error_code=code,
                error_type=error_type,
                context=context,
            )
        return AIError(
            ErrorKind.RATE_LIMIT,
            message or "Rate limit exceeded error",
            provider=provider,
            http_status=status_code,
            provider_error_code=code,
            error_type=error_type,
            context=context,
        )

    return AIError(
        ErrorKind.PROVIDER,
        message or "Unknown provider error",
        provider=provider,
        http_status=status_code,
        provider_error_code=code,
        error_type=error_type,
        context=context,
    )


def map_error(provider: str, status_code: Optional[int], body: Union[bytes, str, None]) -> AIError:
    """Classify a non-success HTTP result into exactly one error kind."""
    raw = body.decode("utf-8", "replace") if isinstance(body, bytes) else str(body or "")
    try:
        data = json.loads(raw)
    except ValueError as exc:
        if status_code in (401, 429):
            return error_from_payload(provider, status_code, {"message": raw.strip() or None})
        return AIError.unserializable(
            provider=provider,
            raw_response=raw,
            parse_error=f"Invalid JSON response: {exc}",
            http_status=status_code,
        )
    return error_from_payload(provider, status_code, data)


def embedded_error(data: Any) -> bool:
    """True when a success-status JSON body still carries an error object."""
    return isinstance(data, Mapping) and data.get("error") not in (None, "", {})
