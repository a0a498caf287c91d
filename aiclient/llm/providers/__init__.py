"""Provider facades for OpenAI, Anthropic and Ollama."""

from aiclient.llm.providers.anthropic_provider import AnthropicProvider
from aiclient.llm.providers.ollama_provider import OllamaProvider
from aiclient.llm.providers.openai_provider import OpenAIProvider

__all__ = ["OpenAIProvider", "AnthropicProvider", "OllamaProvider"]
