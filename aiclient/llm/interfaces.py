"""Capability protocols implemented by provider facades."""

from __future__ import annotations

from typing import Any, Mapping, Optional, Protocol, Sequence, Union, runtime_checkable

from aiclient.llm.types import Response

Options = Optional[Mapping[str, Any]]
ImageInput = Union[str, Sequence[str]]


@runtime_checkable
class Provider(Protocol):
    """Common surface of every provider facade."""

    name: str
    display_name: str

    def is_model_capable(self, model: str, capability: str) -> bool:
        """Return True when the capability table lists ``model`` for ``capability``."""

    def set_default_model(self, model: str) -> None:
        """Set the session default used when a call names no model."""

    def unset_default_model(self) -> None:
        """Clear the session default."""

    def get_default_model(self) -> Optional[str]:
        """Return the session default, if any."""


@runtime_checkable
class ChatCapable(Protocol):
    def chat(self, message: str, options: Options = None) -> Response:
        """Send one user message (or ``options['messages']``) and return the reply."""


@runtime_checkable
class VisionCapable(Protocol):
    def vision(self, message: str, image: str, options: Options = None) -> Response:
        """Ask a question about an image URL, data URL or local file."""


@runtime_checkable
class TextGenerationCapable(Protocol):
    def generate(self, prompt: str, options: Options = None) -> Response:
        """Single-prompt completion."""


@runtime_checkable
class ImageCapable(Protocol):
    def generate_image(self, prompt: str, options: Options = None) -> Response:
        """Generate images from a prompt."""

    def edit_image(self, image: ImageInput, prompt: str, options: Options = None) -> Response:
        """Edit one or more images according to a prompt."""

    def create_image_variation(self, image: str, options: Options = None) -> Response:
        """Create variations of an image."""


@runtime_checkable
class AudioCapable(Protocol):
    def speech(self, text: str, options: Options = None) -> Response:
        """Synthesize speech; content is raw audio bytes."""

    def transcribe(self, audio_file: str, options: Options = None) -> Response:
        """Transcribe audio in its spoken language."""

    def translate(self, audio_file: str, options: Options = None) -> Response:
        """Transcribe audio into English."""


@runtime_checkable
class EmbeddingCapable(Protocol):
    def create_embeddings(self, input: Union[str, Sequence[str]], options: Options = None) -> Response:
        """Embed one string or a batch."""


@runtime_checkable
class ModerationCapable(Protocol):
    def moderate(self, input: Union[str, Sequence[str]], options: Options = None) -> Response:
        """Classify text for policy violations."""


@runtime_checkable
class ModelListingCapable(Protocol):
    def list_models(self) -> Response:
        """List models available to the configured credentials or host."""
