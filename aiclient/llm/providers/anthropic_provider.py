"""Anthropic Messages API provider (chat, vision, model listing)."""

from __future__ import annotations

import base64
import json
from typing import Any, Dict, List, Mapping, Optional

from aiclient.llm import validation as v
from aiclient.llm.errors import AIError
from aiclient.llm.parsing import load_json_object, parse_model_list, status_for_reason
from aiclient.llm.providers.base import BaseProvider, merged_options
from aiclient.llm.transport import USER_AGENT
from aiclient.llm.types import Capability, Payload, Response, usage_counts
from aiclient.llm.validation import MB

PROVIDER = "Anthropic"
API_VERSION = "2023-06-01"
DEFAULT_MAX_TOKENS = 1024
MESSAGE_ROLES = ("user", "assistant")
VISION_MEDIA_TYPES = {
    "jpg": "image/jpeg",
    "jpeg": "image/jpeg",
    "png": "image/png",
    "gif": "image/gif",
    "webp": "image/webp",
}
VISION_MAX_BYTES = 5 * MB


def _text_blocks(content: Any) -> str:
    """Concatenate text blocks of a Messages API response."""
    if isinstance(content, str):
        return content
    parts: List[str] = []
    for block in content or []:
        if isinstance(block, Mapping) and block.get("type") == "text" and block.get("text"):
            parts.append(str(block["text"]))
    return "".join(parts)


def validate_message_options(options: Mapping[str, Any]) -> Dict[str, Any]:
    """Sampling and stop options accepted by the Messages endpoint."""
    out: Dict[str, Any] = {
        "max_tokens": v.check_range(
            "max_tokens",
            options.get("max_tokens", DEFAULT_MAX_TOKENS),
            1,
            2**31 - 1,
            provider=PROVIDER,
            integer=True,
        )
    }
    if "temperature" in options:
        out["temperature"] = v.check_range("temperature", options["temperature"], 0, 1, provider=PROVIDER)
    if "top_p" in options:
        out["top_p"] = v.check_range("top_p", options["top_p"], 0, 1, provider=PROVIDER)
    if "top_k" in options:
        out["top_k"] = v.check_range("top_k", options["top_k"], 0, 2**31 - 1, provider=PROVIDER, integer=True)
    if "stop_sequences" in options:
        out["stop_sequences"] = v.check_string_list("stop_sequences", options["stop_sequences"], provider=PROVIDER)
    for key in ("metadata", "tools", "tool_choice"):
        if key in options:
            out[key] = options[key]
    return out


def split_system(messages: List[Mapping[str, Any]], system: Optional[str]) -> tuple[Optional[str], list]:
    """Lift ``system`` role messages into the top-level system prompt."""
    prompts = [system] if system else []
    rest = []
    for message in messages:
        if isinstance(message, Mapping) and message.get("role") == "system":
            prompts.append(_text_blocks(message.get("content")))
            continue
        rest.append(message)
    joined = "\n\n".join(p for p in prompts if p)
    return joined or None, rest


class AnthropicProvider(BaseProvider):
    """Provider adapter for the Anthropic Messages API."""

    name = "anthropic"
    display_name = PROVIDER
    default_base_url = "https://api.anthropic.com/v1"
    api_key_env = "ANTHROPIC_API_KEY"
    fallback_models = {
        Capability.CHAT: "claude-3-haiku-20240307",
        Capability.VISION: "claude-3-5-sonnet-20241022",
    }

    def __init__(self, *, api_version: Optional[str] = None, **kwargs: Any) -> None:
        super().__init__(**kwargs)
        self.api_version = str(api_version or "").strip() or API_VERSION

    def _headers(self, payload: Payload) -> Dict[str, str]:
        return {
            "x-api-key": self.require_api_key(),
            "anthropic-version": self.api_version,
            "content-type": "application/json",
            "User-Agent": USER_AGENT,
        }

    # Request builders

    def _model(self, capability: Capability, options: Mapping[str, Any]) -> str:
        model = self.resolve_model(capability, options)
        self.require_capability(model, capability)
        return model

    def build_chat(self, message: str, options: Mapping[str, Any]) -> Payload:
        model = self._model(Capability.CHAT, options)
        messages = options.get("messages")
        if messages is None:
            if not isinstance(message, str) or not message.strip():
                raise AIError.missing_parameter(
                    "message", provider=PROVIDER, requirement="Provide a message or a 'messages' list."
                )
            messages = [{"role": "user", "content": message}]
        if not isinstance(messages, (list, tuple)):
            v.check_messages(messages, provider=PROVIDER, roles=MESSAGE_ROLES)
        system, messages = split_system(list(messages), options.get("system"))
        messages = v.check_messages(messages, provider=PROVIDER, roles=MESSAGE_ROLES)
        fields = validate_message_options(options)
        recorded = dict(fields)
        for key in ("messages", "system"):
            if options.get(key) is not None:
                recorded[key] = options[key]
        body: Dict[str, Any] = {"model": model, "messages": messages, **fields}
        if system:
            body["system"] = system
        return Payload(Capability.CHAT, model, "POST", "/messages", body=body, options=recorded)

    def _image_source(self, image: Any) -> Dict[str, Any]:
        if not isinstance(image, str) or not image.strip():
            raise AIError.invalid_parameter("image", image, "Must be an image URL, data URL or file path.", provider=PROVIDER)
        if image.startswith(("http://", "https://")):
            return {"type": "url", "url": image}
        if image.startswith("data:"):
            header, _, data = image.partition(",")
            media_type = header[5:].split(";")[0]
            v.check_choice("image", media_type, sorted(set(VISION_MEDIA_TYPES.values())), provider=PROVIDER)
            return {"type": "base64", "media_type": media_type, "data": data}
        ext = v.check_file(
            image,
            self.fs,
            provider=PROVIDER,
            allowed_extensions=VISION_MEDIA_TYPES,
            max_bytes=VISION_MAX_BYTES,
        )
        return {
            "type": "base64",
            "media_type": VISION_MEDIA_TYPES[ext],
            "data": base64.b64encode(self.fs.read(image)).decode("ascii"),
        }

    def build_vision(self, message: str, image: str, options: Mapping[str, Any]) -> Payload:
        model = self._model(Capability.VISION, options)
        if not isinstance(message, str) or not message.strip():
            raise AIError.missing_parameter("message", provider=PROVIDER)
        source = self._image_source(image)
        content = [
            {"type": "image", "source": source},
            {"type": "text", "text": message},
        ]
        fields = validate_message_options(options)
        recorded = dict(fields)
        body: Dict[str, Any] = {
            "model": model,
            "messages": [{"role": "user", "content": content}],
            **fields,
        }
        if options.get("system"):
            body["system"] = recorded["system"] = v.check_text("system", options["system"], provider=PROVIDER)
        return Payload(Capability.VISION, model, "POST", "/messages", body=body, options=recorded)

    # Response parsing

    def _parse_message(self, payload: Payload, data: Mapping[str, Any]) -> Response:
        if "content" not in data:
            raise AIError.unserializable(
                provider=PROVIDER,
                raw_response=json.dumps(data),
                parse_error="No content in message response",
                http_status=200,
            )
        stop_reason = data.get("stop_reason")
        in_tok, out_tok, total_tok = usage_counts(data.get("usage"))
        metadata: Dict[str, Any] = {
            "id": data.get("id"),
            "model": data.get("model") or payload.model,
            "role": data.get("role"),
            "type": data.get("type"),
            "usage": data.get("usage") or {},
            "input_tokens": in_tok,
            "output_tokens": out_tok,
            "total_tokens": total_tok,
            "stop_reason": stop_reason,
            "stop_sequence": data.get("stop_sequence"),
        }
        tool_uses = [b for b in (data.get("content") or []) if isinstance(b, Mapping) and b.get("type") == "tool_use"]
        if tool_uses:
            metadata["tool_calls"] = tool_uses
        return Response(
            content=_text_blocks(data.get("content")).strip(),
            provider=PROVIDER,
            metadata=metadata,
            status_code=status_for_reason(stop_reason),
        )

    # Capability methods

    def chat(self, message: str, options: Optional[Mapping[str, Any]] = None) -> Response:
        payload = self.build_chat(message, merged_options(options))
        return self._parse_message(payload, load_json_object(self.send(payload), PROVIDER))

    def vision(self, message: str, image: str, options: Optional[Mapping[str, Any]] = None) -> Response:
        """Ask about an image URL, data URL or local jpeg/png/gif/webp file."""
        payload = self.build_vision(message, image, merged_options(options))
        return self._parse_message(payload, load_json_object(self.send(payload), PROVIDER))

    def list_models(self) -> Response:
        payload = Payload(Capability.MODEL_LISTING, "", "GET", "/models")
        data = load_json_object(self.send(payload), PROVIDER)
        models = [m for m in (data.get("data") or []) if isinstance(m, Mapping)]
        return parse_model_list(models, PROVIDER)

    def get_model(self, model_id: str) -> Response:
        """Fetch one model's description; content is its display name."""
        if not isinstance(model_id, str) or not model_id.strip():
            raise AIError.missing_parameter("model", provider=PROVIDER)
        payload = Payload(Capability.MODEL_LISTING, model_id, "GET", f"/models/{model_id.strip()}")
        data = load_json_object(self.send(payload), PROVIDER)
        return Response(
            content=str(data.get("display_name") or data.get("id") or model_id),
            provider=PROVIDER,
            metadata=data,
        )

    def available_models(self) -> list:
        return json.loads(self.list_models().content)
