"""Body parsers that turn transport results into ``Response`` objects."""

from __future__ import annotations

import json
import time
from typing import Any, Callable, Dict, List, Mapping, Optional, Tuple

from aiclient.llm.error_mapper import embedded_error, error_from_payload, map_error
from aiclient.llm.errors import AIError
from aiclient.llm.types import Response, TransportResult, usage_counts

FINISH_REASON_STATUS: Mapping[str, int] = {
    "stop": 200,
    "end_turn": 200,
    "stop_sequence": 200,
    "length": 206,
    "max_tokens": 206,
    "content_filter": 422,
    "refusal": 422,
    "tool_calls": 202,
    "function_call": 202,
    "tool_use": 202,
    "pause_turn": 202,
}


def status_for_reason(reason: Optional[str]) -> int:
    """Semantic status for a finish/stop reason; unknown or missing map to 200."""
    return FINISH_REASON_STATUS.get(str(reason or ""), 200)


def raise_for_status(result: TransportResult, provider: str) -> None:
    if not result.ok:
        raise map_error(provider, result.status_code, result.body)


def load_json_object(result: TransportResult, provider: str) -> Dict[str, Any]:
    """Decode a successful JSON body, raising on empty/invalid bodies and embedded errors."""
    raise_for_status(result, provider)
    raw = result.text
    if not raw.strip():
        raise AIError.unserializable(provider=provider, raw_response=raw, http_status=result.status_code)
    try:
        data = json.loads(raw)
    except ValueError as exc:
        raise AIError.unserializable(
            provider=provider,
            raw_response=raw,
            parse_error=f"Invalid JSON response: {exc}",
            http_status=result.status_code,
        ) from exc
    if not isinstance(data, dict):
        raise AIError.unserializable(
            provider=provider,
            raw_response=raw,
            parse_error="Expected a JSON object",
            http_status=result.status_code,
        )
    if embedded_error(data):
        raise error_from_payload(provider, result.status_code, data)
    return data


def iter_ndjson(text: str) -> List[Dict[str, Any]]:
    """Parse newline-delimited JSON, skipping blank and malformed lines."""
    records: List[Dict[str, Any]] = []
    for line in text.splitlines():
        line = line.strip()
        if not line:
            continue
        try:
            item = json.loads(line)
        except ValueError:
            continue
        if isinstance(item, dict):
            records.append(item)
    return records


def buffer_ndjson(
    result: TransportResult,
    provider: str,
    fragment: Callable[[Mapping[str, Any]], str],
) -> Tuple[str, Dict[str, Any], List[Dict[str, Any]]]:
    """Concatenate streamed fragments in arrival order.

    Returns (text, terminal record, all records). The terminal record is the
    one flagged ``done``; without one the last record is used.
    """
    raise_for_status(result, provider)
    records = iter_ndjson(result.text)
    if not records:
        raise AIError.unserializable(
            provider=provider,
            raw_response=result.text,
            parse_error="" if not result.text.strip() else "No JSON records in streamed response",
            http_status=result.status_code,
        )
    parts: List[str] = []
    final: Dict[str, Any] = {}
    for record in records:
        if embedded_error(record):
            raise error_from_payload(provider, result.status_code, record)
        parts.append(fragment(record) or "")
        if record.get("done"):
            final = record
    return "".join(parts), final or records[-1], records


def parse_images(
    data: Mapping[str, Any],
    provider: str,
    *,
    model: str,
    response_format: Optional[str] = None,
) -> Response:
    """One image -> that URL/base64 string; several -> a JSON array of them."""
    entries = data.get("data") or []
    values: List[str] = []
    images: List[Dict[str, Any]] = []
    detected = None
    for entry in entries:
        if not isinstance(entry, Mapping):
            continue
        if entry.get("b64_json"):
            detected = "b64_json"
            value = str(entry["b64_json"])
        elif entry.get("url"):
            detected = detected or "url"
            value = str(entry["url"])
        else:
            continue
        values.append(value)
        image = {"index": len(images)}
        if entry.get("revised_prompt"):
            image["revised_prompt"] = entry["revised_prompt"]
        images.append(image)
    if not values:
        raise AIError.unserializable(
            provider=provider,
            raw_response=json.dumps(data),
            parse_error="No image data in response",
            http_status=200,
        )
    fmt = detected or response_format or "url"
    metadata: Dict[str, Any] = {
        "model": data.get("model") or model,
        "created": data.get("created") or int(time.time()),
        "response_format": fmt,
        "image_count": len(values),
        "images": images,
    }
    if len(images) == 1 and images[0].get("revised_prompt"):
        metadata["revised_prompt"] = images[0]["revised_prompt"]
    if fmt == "url":
        metadata["url_expires"] = "60 minutes"
    else:
        metadata["format"] = f"base64_{data.get('output_format') or 'png'}"
    for key in ("background", "quality", "size", "output_format"):
        if data.get(key):
            metadata[key] = data[key]
    if data.get("usage"):
        metadata["usage"] = data["usage"]
        in_tok, out_tok, total_tok = usage_counts(data["usage"])
        metadata.update(input_tokens=in_tok, output_tokens=out_tok, total_tokens=total_tok)
    content = values[0] if len(values) == 1 else json.dumps(values)
    return Response(content=content, provider=provider, metadata=metadata, status_code=200)


def parse_audio(result: TransportResult, provider: str, echo: Mapping[str, Any]) -> Response:
    """Binary audio body; metadata is rebuilt from the request."""
    raise_for_status(result, provider)
    if not result.body:
        raise AIError.unserializable(provider=provider, raw_response=b"", http_status=result.status_code)
    content_type = result.headers.get("Content-Type") or result.headers.get("content-type") or echo.get("content_type")
    metadata = {k: v for k, v in echo.items() if v is not None}
    metadata.update(
        content_type=content_type,
        size_bytes=len(result.body),
        data_type="binary_audio",
    )
    return Response(content=result.body, provider=provider, metadata=metadata, status_code=200)


def parse_transcript(result: TransportResult, provider: str, echo: Mapping[str, Any]) -> Response:
    """Plain text, subtitle (srt/vtt) or JSON transcripts."""
    fmt = str(echo.get("response_format") or "json")
    metadata = {k: v for k, v in echo.items() if v is not None}
    if fmt in ("json", "verbose_json"):
        data = load_json_object(result, provider)
        text = str(data.get("text") or "").strip()
        for key in ("language", "duration", "segments", "words"):
            if key in data:
                metadata[key] = data[key]
        if data.get("usage"):
            metadata["usage"] = data["usage"]
        return Response(content=text, provider=provider, metadata=metadata, status_code=200)
    raise_for_status(result, provider)
    raw = result.text
    if not raw.strip():
        raise AIError.unserializable(provider=provider, raw_response=raw, http_status=result.status_code)
    content = raw.strip() if fmt == "text" else raw
    return Response(content=content, provider=provider, metadata=metadata, status_code=200)


def parse_embeddings(data: Mapping[str, Any], provider: str, echo: Mapping[str, Any]) -> Response:
    """Vectors in index order; one input returns the vector itself."""
    entries = [e for e in (data.get("data") or []) if isinstance(e, Mapping) and "embedding" in e]
    entries.sort(key=lambda e: int(e.get("index") or 0))
    vectors = [e["embedding"] for e in entries]
    if not vectors:
        raise AIError.unserializable(
            provider=provider,
            raw_response=json.dumps(data),
            parse_error="No embeddings in response",
            http_status=200,
        )
    metadata: Dict[str, Any] = {
        "model": data.get("model") or echo.get("model"),
        "object": data.get("object"),
        "vector_count": len(vectors),
        "encoding_format": echo.get("encoding_format") or "float",
        "input_count": echo.get("input_count", len(vectors)),
        "usage": data.get("usage") or {},
    }
    if isinstance(vectors[0], list):
        metadata["dimensions"] = len(vectors[0])
    in_tok, _out_tok, total_tok = usage_counts(data.get("usage"))
    metadata.update(input_tokens=in_tok, total_tokens=total_tok)
    content = vectors[0] if len(vectors) == 1 else json.dumps(vectors)
    return Response(content=content, provider=provider, metadata=metadata, status_code=200)


def parse_moderation(data: Mapping[str, Any], provider: str) -> Response:
    results = [r for r in (data.get("results") or []) if isinstance(r, Mapping)]
    flagged_categories = sorted(
        {
            name
            for r in results
            for name, hit in (r.get("categories") or {}).items()
            if hit
        }
    )
    metadata = {
        "id": data.get("id"),
        "model": data.get("model"),
        "flagged": any(bool(r.get("flagged")) for r in results),
        "flagged_categories": flagged_categories,
        "result_count": len(results),
    }
    return Response(content=json.dumps(results), provider=provider, metadata=metadata, status_code=200)


def parse_model_list(models: List[Dict[str, Any]], provider: str, id_key: str = "id") -> Response:
    ids = [str(m.get(id_key)) for m in models if isinstance(m, Mapping) and m.get(id_key)]
    metadata = {"models": models, "model_count": len(ids)}
    return Response(content=json.dumps(ids), provider=provider, metadata=metadata, status_code=200)
