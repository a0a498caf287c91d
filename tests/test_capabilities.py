"""Tests for the versioned capability table."""

from __future__ import annotations

import pytest

from aiclient.llm import capabilities
from aiclient.llm.capabilities import CapabilitySupport, load_capability_table
from aiclient.llm.errors import AIError, ErrorKind
from aiclient.llm.types import Capability


def test_packaged_table_has_version() -> None:
    assert capabilities.DEFAULT_TABLE.version
    assert {"openai", "anthropic", "ollama"} <= capabilities.DEFAULT_TABLE.providers()


def test_supports_known_pairs() -> None:
    assert capabilities.supports("openai", "gpt-4o", Capability.CHAT)
    assert capabilities.supports("openai", "dall-e-3", "image")
    assert capabilities.supports("anthropic", "claude-3-haiku-20240307", Capability.CHAT)
    assert not capabilities.supports("openai", "dall-e-3", Capability.IMAGE_VARIATION)
    assert not capabilities.supports("openai", "whisper-1", Capability.CHAT)


def test_lookup_distinguishes_unknown_model_from_unsupported() -> None:
    assert capabilities.lookup("openai", "tts-1", Capability.CHAT) is CapabilitySupport.UNSUPPORTED
    assert capabilities.lookup("openai", "gpt-99", Capability.CHAT) is CapabilitySupport.UNKNOWN_MODEL
    assert capabilities.lookup("acme", "gpt-4o", Capability.CHAT) is CapabilitySupport.UNKNOWN_PROVIDER


def test_wildcard_listing_rows_do_not_make_every_model_known() -> None:
    assert capabilities.supports("openai", "gpt-99", Capability.MODEL_LISTING)
    assert capabilities.lookup("anthropic", "claude-9", Capability.VISION) is CapabilitySupport.UNKNOWN_MODEL
    assert capabilities.lookup("anthropic", "claude-3-5-haiku-20241022", Capability.VISION) is CapabilitySupport.UNSUPPORTED
    assert capabilities.lookup("ollama", "anything", Capability.SPEECH) is CapabilitySupport.UNSUPPORTED


def test_unknown_provider_is_unsupported_not_error() -> None:
    assert capabilities.supports("acme", "x", Capability.CHAT) is False
    assert capabilities.models_for("acme", Capability.CHAT) == frozenset()


def test_wildcard_matches_any_local_model() -> None:
    assert capabilities.supports("ollama", "llama3.2:1b", Capability.CHAT)
    assert not capabilities.supports("ollama", "llama3.2:1b", Capability.SPEECH)


def test_models_for_lists_translation_models() -> None:
    assert capabilities.models_for("openai", Capability.TRANSLATION) == frozenset({"whisper-1"})


def test_require_names_model_capability_and_valid_models() -> None:
    with pytest.raises(AIError) as info:
        capabilities.require("openai", "dall-e-3", Capability.IMAGE_VARIATION, display_name="OpenAI")
    err = info.value
    assert err.kind is ErrorKind.VALIDATION
    assert "dall-e-3" in str(err)
    assert "image_variation" in str(err)
    assert err.context["valid_values"] == ["dall-e-2"]


def test_custom_table_from_path(tmp_path) -> None:
    path = tmp_path / "caps.toml"
    path.write_text('version = "2024.01.01"\n[openai]\nchat = ["my-model"]\n', encoding="utf-8")
    table = load_capability_table(path)
    assert table.version == "2024.01.01"
    assert table.supports("openai", "my-model", Capability.CHAT)
    assert not table.supports("openai", "gpt-4o", Capability.CHAT)


def test_table_without_version_is_rejected(tmp_path) -> None:
    path = tmp_path / "caps.toml"
    path.write_text('[openai]\nchat = ["x"]\n', encoding="utf-8")
    with pytest.raises(AIError):
        load_capability_table(path)


def test_table_with_unknown_capability_is_rejected(tmp_path) -> None:
    path = tmp_path / "caps.toml"
    path.write_text('version = "1"\n[openai]\nteleport = ["x"]\n', encoding="utf-8")
    with pytest.raises(AIError) as info:
        load_capability_table(path)
    assert "teleport" in str(info.value)
