"""Provider facades, capability table, error taxonomy and shared datatypes."""

from aiclient.llm.capabilities import CapabilitySupport, CapabilityTable, load_capability_table
from aiclient.llm.defaults import DefaultModelState, resolve_model
from aiclient.llm.errors import AIError, ErrorKind
from aiclient.llm.interfaces import (
    AudioCapable,
    ChatCapable,
    EmbeddingCapable,
    ImageCapable,
    ModelListingCapable,
    ModerationCapable,
    Provider,
    TextGenerationCapable,
    VisionCapable,
)
from aiclient.llm.providers import AnthropicProvider, OllamaProvider, OpenAIProvider
from aiclient.llm.router import available_providers, get_provider
from aiclient.llm.types import Capability, FilePart, Payload, Response, TransportResult

__all__ = [
    "AIError",
    "ErrorKind",
    "Capability",
    "CapabilitySupport",
    "CapabilityTable",
    "load_capability_table",
    "DefaultModelState",
    "resolve_model",
    "Provider",
    "ChatCapable",
    "VisionCapable",
    "TextGenerationCapable",
    "ImageCapable",
    "AudioCapable",
    "EmbeddingCapable",
    "ModerationCapable",
    "ModelListingCapable",
    "OpenAIProvider",
    "AnthropicProvider",
    "OllamaProvider",
    "get_provider",
    "available_providers",
    "FilePart",
    "Payload",
    "Response",
    "TransportResult",
]
