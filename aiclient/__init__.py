"""Provider-agnostic client for generative-AI HTTP services (OpenAI, Anthropic, Ollama)."""

from aiclient.llm import (
    AIError,
    AnthropicProvider,
    Capability,
    ErrorKind,
    OllamaProvider,
    OpenAIProvider,
    Response,
    available_providers,
    get_provider,
)

__version__ = "0.3.0"

__all__ = [
    "AIError",
    "ErrorKind",
    "Capability",
    "Response",
    "OpenAIProvider",
    "AnthropicProvider",
    "OllamaProvider",
    "get_provider",
    "available_providers",
    "__version__",
]
