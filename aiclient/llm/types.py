"""Provider-agnostic request and response datatypes."""

from __future__ import annotations

import base64
import enum
import json
from dataclasses import dataclass, field
from pathlib import Path
from types import MappingProxyType
from typing import Any, Dict, List, Mapping, Optional, Tuple, Union


class Capability(str, enum.Enum):
    """Operations a provider/model pair may support."""

    CHAT = "chat"
    VISION = "vision"
    IMAGE = "image"
    IMAGE_EDIT = "image_edit"
    IMAGE_VARIATION = "image_variation"
    SPEECH = "speech"
    TRANSCRIPTION = "transcription"
    TRANSLATION = "translation"
    EMBEDDING = "embedding"
    MODERATION = "moderation"
    MODEL_LISTING = "model_listing"


Content = Union[str, bytes, List[float]]


@dataclass(frozen=True)
class FilePart:
    """One multipart file upload."""

    field: str
    filename: str
    content: bytes
    content_type: str = "application/octet-stream"


@dataclass(frozen=True)
class Payload:
    """A validated, provider-shaped request ready for dispatch.

    ``body`` is the JSON body, or the scalar form fields for multipart requests.
    ``echo`` carries request values the parser needs to rebuild metadata.
    ``options`` holds the caller's options as validated, before any provider
    reshaping (nesting, folding into content blocks, defaults).
    Nested values are copied and frozen, so later changes to the caller's
    objects never reach a built payload.
    """

    capability: Capability
    model: str
    method: str
    path: str
    body: Mapping[str, Any] = field(default_factory=dict)
    files: Tuple[FilePart, ...] = ()
    stream: bool = False
    echo: Mapping[str, Any] = field(default_factory=dict)
    options: Optional[Mapping[str, Any]] = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "body", _freeze(self.body))
        object.__setattr__(self, "echo", _freeze(self.echo))
        if self.options is not None:
            object.__setattr__(self, "options", _freeze(self.options))

    @property
    def is_multipart(self) -> bool:
        return bool(self.files)

    def effective_options(self, primary: Tuple[str, ...] = ()) -> Dict[str, Any]:
        """Re-derive the caller-facing options this payload was built from.

        Uses ``options`` when the builder recorded them, otherwise the body
        minus ``model`` and the primary input fields.
        """
        skip = {"model", *primary}
        source = self.options if self.options is not None else self.body
        return {key: _thaw(value) for key, value in source.items() if key not in skip}

    def json_body(self) -> Dict[str, Any]:
        return _thaw(self.body)


def _freeze(value: Any) -> Any:
    if isinstance(value, Mapping):
        return MappingProxyType({key: _freeze(item) for key, item in value.items()})
    if isinstance(value, (list, tuple)):
        return tuple(_freeze(item) for item in value)
    return value


def _thaw(value: Any) -> Any:
    if isinstance(value, Mapping):
        return {key: _thaw(item) for key, item in value.items()}
    if isinstance(value, (list, tuple)):
        return [_thaw(item) for item in value]
    return value


@dataclass(frozen=True)
class TransportResult:
    """Raw HTTP result returned by a transport."""

    status_code: int
    body: bytes
    headers: Mapping[str, str] = field(default_factory=dict)

    @property
    def text(self) -> str:
        return self.body.decode("utf-8", "replace")

    @property
    def ok(self) -> bool:
        return 200 <= self.status_code < 300


@dataclass(frozen=True)
class Response:
    """Normalized result of one capability call."""

    content: Content
    provider: str
    metadata: Mapping[str, Any] = field(default_factory=dict)
    status_code: int = 200

    def __post_init__(self) -> None:
        object.__setattr__(self, "metadata", MappingProxyType(dict(self.metadata)))

    @property
    def text(self) -> str:
        if isinstance(self.content, bytes):
            return ""
        if isinstance(self.content, list):
            return json.dumps(self.content)
        return self.content

    @property
    def usage(self) -> Dict[str, int]:
        return {
            "input_tokens": int(self.metadata.get("input_tokens") or 0),
            "output_tokens": int(self.metadata.get("output_tokens") or 0),
            "total_tokens": int(self.metadata.get("total_tokens") or 0),
        }

    def save_file(self, filename: Union[str, Path]) -> List[Path]:
        """Write the content to disk and return the written paths.

        Base64 images are decoded into image files (numbered ``_1``, ``_2``... when
        there are several), URL images become a newline-separated text listing,
        binary audio is written as-is, everything else as UTF-8 text.
        """
        target = Path(filename)
        target.parent.mkdir(parents=True, exist_ok=True)
        fmt = self.metadata.get("response_format")
        if fmt == "b64_json" and self.metadata.get("image_count"):
            images = _image_values(self.content, int(self.metadata["image_count"]))
            if len(images) == 1:
                target.write_bytes(base64.b64decode(images[0]))
                return [target]
            written = []
            for index, encoded in enumerate(images, start=1):
                path = target.with_name(f"{target.stem}_{index}{target.suffix}")
                path.write_bytes(base64.b64decode(encoded))
                written.append(path)
            return written
        if fmt == "url" and self.metadata.get("image_count"):
            urls = _image_values(self.content, int(self.metadata["image_count"]))
            target.write_text("\n".join(urls) + "\n", encoding="utf-8")
            return [target]
        if isinstance(self.content, bytes):
            target.write_bytes(self.content)
            return [target]
        target.write_text(self.text, encoding="utf-8")
        return [target]


def _image_values(content: Content, count: int) -> List[str]:
    if count > 1 and isinstance(content, str):
        return [str(item) for item in json.loads(content)]
    return [str(content)]


def usage_counts(usage: Any) -> tuple[int, int, int]:
    """Normalize token counts from provider usage payloads."""
    if not isinstance(usage, Mapping):
        return 0, 0, 0
    input_tokens = int(usage.get("input_tokens") or usage.get("prompt_tokens") or 0)
    output_tokens = int(usage.get("output_tokens") or usage.get("completion_tokens") or 0)
    total_tokens = int(usage.get("total_tokens") or 0)
    if total_tokens == 0:
        total_tokens = input_tokens + output_tokens
    return input_tokens, output_tokens, total_tokens


def optional_text(value: Any) -> Optional[str]:
    text = str(value or "").strip()
    return text or None
