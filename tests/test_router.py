"""Tests for building providers by name from settings."""

from __future__ import annotations

import pytest

from aiclient.core.config import Settings
from aiclient.llm.errors import AIError
from aiclient.llm.providers import AnthropicProvider, OllamaProvider, OpenAIProvider
from aiclient.llm.router import available_providers, get_provider, provider_options


def test_available_providers() -> None:
    assert available_providers() == ("openai", "anthropic", "ollama")


def test_default_provider_from_settings(transport) -> None:
    settings = Settings(default_provider="anthropic", default_model="claude-3-opus-20240229", anthropic_api_key="ak")
    provider = get_provider(settings=settings, transport=transport)
    assert isinstance(provider, AnthropicProvider)
    assert provider.api_key == "ak"
    assert provider.constructor_model == "claude-3-opus-20240229"


def test_default_model_only_applies_to_default_provider(transport) -> None:
    settings = Settings(default_provider="anthropic", default_model="claude-3-opus-20240229")
    provider = get_provider("openai", settings, transport=transport)
    assert isinstance(provider, OpenAIProvider)
    assert provider.constructor_model is None


def test_explicit_options_win(transport) -> None:
    settings = Settings(openai_api_key="from-settings", openai_base_url="https://proxy/v1", timeout=5.0)
    provider = get_provider("OpenAI", settings, api_key="explicit", transport=transport)
    assert provider.api_key == "explicit"
    assert provider.base_url == "https://proxy/v1"
    assert provider.timeout == 5.0


def test_ollama_options(transport) -> None:
    settings = Settings(ollama_base_url="http://gpu:11434", ollama_auto_pull=False)
    provider = get_provider("ollama", settings, transport=transport)
    assert isinstance(provider, OllamaProvider)
    assert provider.base_url == "http://gpu:11434"
    assert provider.auto_pull is False
    assert provider_options("ollama", {"ollama_auto_pull": "yes"})["auto_pull"] is True


def test_unknown_provider() -> None:
    with pytest.raises(AIError) as info:
        get_provider("gemini")
    assert info.value.context["valid_values"] == ["openai", "anthropic", "ollama"]
