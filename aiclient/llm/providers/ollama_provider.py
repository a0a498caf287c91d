"""Ollama provider for a locally hosted inference server.

Streaming responses are newline-delimited JSON; they are buffered and merged
into one ``Response``. Missing models are pulled synchronously before a chat or
generate request is built, unless ``auto_pull`` is disabled.
"""

from __future__ import annotations

import base64
import binascii
import json
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple

from aiclient.core.logging_utils import log_event
from aiclient.llm import validation as v
from aiclient.llm.error_mapper import embedded_error, error_fields, error_from_payload
from aiclient.llm.errors import AIError, ErrorKind
from aiclient.llm.filesystem import extension_of
from aiclient.llm.parsing import (
    buffer_ndjson,
    iter_ndjson,
    load_json_object,
    parse_model_list,
    raise_for_status,
    status_for_reason,
)
from aiclient.llm.providers.base import BaseProvider, merged_options
from aiclient.llm.transport import Dispatcher, USER_AGENT
from aiclient.llm.types import Capability, Payload, Response, TransportResult

PROVIDER = "Ollama"
MESSAGE_ROLES = ("system", "user", "assistant", "tool")
MODEL_OPTION_KEYS = ("temperature", "top_p", "top_k", "seed", "num_predict", "num_ctx", "repeat_penalty", "stop")
PASSTHROUGH_KEYS = ("keep_alive", "tools", "think")
GENERATE_KEYS = ("suffix", "system", "template", "context", "raw")
IMAGE_EXTENSIONS = ("png", "jpg", "jpeg", "gif", "webp")
_MISSING_MODEL_MARKERS = ("file does not exist",)


def model_exists(name: str, available: Sequence[str]) -> bool:
    """Match ``name`` against installed models, treating ``x`` and ``x:latest`` alike."""
    if name in available:
        return True
    if ":" not in name:
        return f"{name}:latest" in available
    if name.endswith(":latest"):
        return name[: -len(":latest")] in available
    return False


def _is_missing_model_error(message: str) -> bool:
    text = message.lower()
    if any(marker in text for marker in _MISSING_MODEL_MARKERS):
        return True
    return "not found" in text and ("model" in text or "manifest" in text)


def _final_metadata(final: Mapping[str, Any], model: str) -> Dict[str, Any]:
    prompt_tokens = int(final.get("prompt_eval_count") or 0)
    output_tokens = int(final.get("eval_count") or 0)
    metadata: Dict[str, Any] = {
        "model": final.get("model") or model,
        "created_at": final.get("created_at"),
        "done": bool(final.get("done", True)),
        "done_reason": final.get("done_reason"),
        "input_tokens": prompt_tokens,
        "output_tokens": output_tokens,
        "total_tokens": prompt_tokens + output_tokens,
    }
    for key in ("total_duration", "load_duration", "prompt_eval_count", "prompt_eval_duration", "eval_count", "eval_duration", "context"):
        if key in final:
            metadata[key] = final[key]
    return metadata


class OllamaProvider(BaseProvider):
    """Provider adapter for the Ollama HTTP API."""

    name = "ollama"
    display_name = PROVIDER
    default_base_url = "http://localhost:11434"
    fallback_models = {
        Capability.CHAT: "tinyllama",
        Capability.VISION: "llava",
    }

    def __init__(self, *, auto_pull: bool = True, pull_timeout: Optional[float] = None, **kwargs: Any) -> None:
        super().__init__(**kwargs)
        self.auto_pull = bool(auto_pull)
        self.pull_timeout = pull_timeout if pull_timeout is not None else self.timeout
        self._pull_dispatcher = Dispatcher(
            self.dispatcher.transport,
            provider=self.display_name,
            base_url=self.base_url,
            timeout=self.pull_timeout,
        )

    def _headers(self, payload: Payload) -> Dict[str, str]:
        headers = {"Content-Type": "application/json", "User-Agent": USER_AGENT}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"
        return headers

    # Model management

    def list_models(self) -> Response:
        payload = Payload(Capability.MODEL_LISTING, "", "GET", "/api/tags")
        data = load_json_object(self.send(payload), PROVIDER)
        models = [m for m in (data.get("models") or []) if isinstance(m, Mapping)]
        return parse_model_list(models, PROVIDER, id_key="name")

    def available_models(self) -> List[str]:
        return json.loads(self.list_models().content)

    def pull_model(self, name: str, *, insecure: bool = False) -> bool:
        """Pull ``name`` onto the host; returns True once the server reports success.

        Blocks until the streamed pull completes.
        """
        v.check_text("model", name, provider=PROVIDER)
        if model_exists(name, self.available_models()):
            return True
        return self._pull(name, insecure=insecure)

    def _pull(self, name: str, *, insecure: bool = False) -> bool:
        body: Dict[str, Any] = {"model": name, "stream": True}
        if insecure:
            body["insecure"] = True
        payload = Payload(Capability.MODEL_LISTING, name, "POST", "/api/pull", body=body, stream=True)
        log_event("ollama_pull_start", {"provider": PROVIDER, "model": name})
        result = self._pull_dispatcher.send(payload, self._headers(payload))
        return self._consume_pull(name, result)

    def _consume_pull(self, name: str, result: TransportResult) -> bool:
        if not result.ok:
            _, _, message = error_fields(_safe_json(result.text))
            if result.status_code == 404 or (message and _is_missing_model_error(message)):
                raise AIError.invalid_model(name, "pull", provider=PROVIDER)
            raise_for_status(result, PROVIDER)
        succeeded = False
        for record in iter_ndjson(result.text):
            if embedded_error(record):
                _, _, message = error_fields(record)
                if _is_missing_model_error(message or ""):
                    raise AIError.invalid_model(name, "pull", provider=PROVIDER)
                raise error_from_payload(PROVIDER, result.status_code, record)
            status = str(record.get("status") or "")
            if status.startswith("pulling") and record.get("total"):
                completed = int(record.get("completed") or 0)
                percent = round(completed / int(record["total"]) * 100, 1)
                log_event(
                    "ollama_pull_progress",
                    {"provider": PROVIDER, "model": name, "digest": record.get("digest"), "percent": percent},
                )
            if status == "success":
                succeeded = True
        if not succeeded:
            raise AIError(
                ErrorKind.PROVIDER,
                f"Pull of model '{name}' ended without a success status",
                provider=PROVIDER,
                http_status=result.status_code,
                context={"raw_response": result.text},
            )
        log_event("ollama_pull_complete", {"provider": PROVIDER, "model": name})
        return True

    def ensure_model(self, model: str, capability: Capability = Capability.CHAT) -> None:
        """Make sure ``model`` is installed, pulling it when ``auto_pull`` is on."""
        available = self.available_models()
        if model_exists(model, available):
            return
        if not self.auto_pull:
            raise AIError.invalid_model(model, Capability(capability).value, provider=PROVIDER, valid_models=available)
        self._pull(model)

    # Request builders

    def _model(self, capability: Capability, options: Mapping[str, Any]) -> str:
        model = self.resolve_model(capability, options)
        self.require_capability(model, capability)
        return model

    def _common_fields(self, options: Mapping[str, Any]) -> Tuple[Dict[str, Any], Dict[str, Any]]:
        """Return (wire fields, caller options as validated).

        Sampling keys given at the top level are folded into the nested
        ``options`` object Ollama expects.
        """
        out: Dict[str, Any] = {"stream": v.check_bool("stream", options.get("stream", True), provider=PROVIDER)}
        recorded: Dict[str, Any] = {}
        if "stream" in options:
            recorded["stream"] = out["stream"]
        model_options: Dict[str, Any] = {}
        raw_options = options.get("options") or {}
        if not isinstance(raw_options, Mapping):
            raise AIError.invalid_parameter("options", raw_options, "Must be an object of model parameters.", provider=PROVIDER)
        if raw_options:
            recorded["options"] = dict(raw_options)
        model_options.update(raw_options)
        for key in MODEL_OPTION_KEYS:
            if key in options:
                model_options[key] = recorded[key] = options[key]
        if "temperature" in model_options:
            v.check_range("temperature", model_options["temperature"], 0, 2, provider=PROVIDER)
        if "top_p" in model_options:
            v.check_range("top_p", model_options["top_p"], 0, 1, provider=PROVIDER)
        if "top_k" in model_options:
            v.check_range("top_k", model_options["top_k"], 0, 2**31 - 1, provider=PROVIDER, integer=True)
        if model_options:
            out["options"] = model_options
        if "format" in options:
            fmt = options["format"]
            if not (fmt == "json" or isinstance(fmt, Mapping)):
                raise AIError.invalid_parameter("format", fmt, "Must be 'json' or a JSON schema object.", provider=PROVIDER)
            out["format"] = recorded["format"] = fmt
        for key in PASSTHROUGH_KEYS:
            if key in options:
                out[key] = recorded[key] = options[key]
        return out, recorded

    def _encode_image(self, item: Any) -> str:
        """Read a local image file, or pass through base64 image data."""
        if not isinstance(item, str) or not item.strip():
            raise AIError.invalid_parameter("images", item, "Must be a file path or base64 string.", provider=PROVIDER)
        if self.fs.exists(item):
            v.check_file(item, self.fs, provider=PROVIDER, allowed_extensions=IMAGE_EXTENSIONS, max_bytes=20 * v.MB)
            return base64.b64encode(self.fs.read(item)).decode("ascii")
        if extension_of(item) in IMAGE_EXTENSIONS or "\\" in item:
            raise AIError.file_not_found(item, provider=PROVIDER)
        try:
            base64.b64decode(item, validate=True)
        except (binascii.Error, ValueError):
            if "/" in item or "." in item:
                raise AIError.file_not_found(item, provider=PROVIDER) from None
            raise AIError.invalid_parameter(
                "images", item, "Must be an existing image file or base64-encoded image data.", provider=PROVIDER
            ) from None
        return item

    def _encode_images(self, images: Any) -> List[str]:
        items = [images] if isinstance(images, str) else images
        if not isinstance(items, (list, tuple)) or not items:
            raise AIError.invalid_parameter("images", images, "Must be a file path, base64 string or list of them.", provider=PROVIDER)
        return [self._encode_image(item) for item in items]

    def build_chat(self, message: str, options: Mapping[str, Any]) -> Payload:
        model = self._model(Capability.CHAT, options)
        messages = options.get("messages")
        if messages is None:
            if not isinstance(message, str) or not message.strip():
                raise AIError.missing_parameter("message", provider=PROVIDER, requirement="Provide a message or a 'messages' list.")
            messages = [{"role": "user", "content": message}]
        messages = v.check_messages(messages, provider=PROVIDER, roles=MESSAGE_ROLES)
        fields, recorded = self._common_fields(options)
        if options.get("messages") is not None:
            recorded["messages"] = messages
        self.ensure_model(model, Capability.CHAT)
        body = {"model": model, "messages": messages, **fields}
        return Payload(Capability.CHAT, model, "POST", "/api/chat", body=body, stream=fields["stream"], options=recorded)

    def build_vision(self, message: str, image: Any, options: Mapping[str, Any]) -> Payload:
        model = self._model(Capability.VISION, options)
        v.check_text("message", message, provider=PROVIDER)
        images = self._encode_images(image)
        fields, recorded = self._common_fields(options)
        messages: List[Dict[str, Any]] = [{"role": "user", "content": message, "images": images}]
        if options.get("system"):
            system = recorded["system"] = v.check_text("system", options["system"], provider=PROVIDER)
            messages.insert(0, {"role": "system", "content": system})
        self.ensure_model(model, Capability.VISION)
        body = {"model": model, "messages": messages, **fields}
        return Payload(Capability.VISION, model, "POST", "/api/chat", body=body, stream=fields["stream"], options=recorded)

    def build_generate(self, prompt: str, options: Mapping[str, Any]) -> Payload:
        model = self._model(Capability.CHAT, options)
        v.check_text("prompt", prompt, provider=PROVIDER)
        fields, recorded = self._common_fields(options)
        for key in GENERATE_KEYS:
            if key in options:
                fields[key] = recorded[key] = options[key]
        if "images" in options:
            fields["images"] = self._encode_images(options["images"])
            recorded["images"] = options["images"]
        self.ensure_model(model, Capability.CHAT)
        body = {"model": model, "prompt": prompt, **fields}
        return Payload(
            Capability.CHAT,
            model,
            "POST",
            "/api/generate",
            body=body,
            stream=fields["stream"],
            echo={"generate": True},
            options=recorded,
        )

    # Response parsing

    def _parse(self, payload: Payload, result: TransportResult) -> Response:
        field = "response" if payload.echo.get("generate") else "message"

        def fragment(record: Mapping[str, Any]) -> str:
            value = record.get(field)
            if isinstance(value, Mapping):
                return str(value.get("content") or "")
            return str(value or "")

        if payload.stream:
            text, final, records = buffer_ndjson(result, PROVIDER, fragment)
            metadata = _final_metadata(final, payload.model)
            metadata["chunk_count"] = len(records)
        else:
            final = load_json_object(result, PROVIDER)
            text = fragment(final)
            metadata = _final_metadata(final, payload.model)
        message = final.get("message")
        if isinstance(message, Mapping) and message.get("tool_calls"):
            metadata["tool_calls"] = message["tool_calls"]
        return Response(
            content=text,
            provider=PROVIDER,
            metadata=metadata,
            status_code=status_for_reason(final.get("done_reason")),
        )

    # Capability methods

    def chat(self, message: str, options: Optional[Mapping[str, Any]] = None) -> Response:
        payload = self.build_chat(message, merged_options(options))
        return self._parse(payload, self.send(payload))

    def vision(self, message: str, image: Any, options: Optional[Mapping[str, Any]] = None) -> Response:
        payload = self.build_vision(message, image, merged_options(options))
        return self._parse(payload, self.send(payload))

    def generate(self, prompt: str, options: Optional[Mapping[str, Any]] = None) -> Response:
        """Single-prompt completion via ``/api/generate``."""
        payload = self.build_generate(prompt, merged_options(options))
        return self._parse(payload, self.send(payload))


def _safe_json(text: str) -> Any:
    try:
        return json.loads(text)
    except ValueError:
        return text
