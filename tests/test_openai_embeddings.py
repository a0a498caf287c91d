"""Tests for OpenAI embeddings, moderation and model listing."""

from __future__ import annotations

import json

import pytest
from conftest import json_result

from aiclient.llm.errors import AIError
from aiclient.llm.providers import OpenAIProvider


@pytest.fixture
def provider(transport) -> OpenAIProvider:
    return OpenAIProvider(api_key="sk-test", transport=transport)


def _embeddings(*vectors):
    return {
        "object": "list",
        "model": "text-embedding-3-small",
        "data": [{"object": "embedding", "index": i, "embedding": vec} for i, vec in enumerate(vectors)],
        "usage": {"prompt_tokens": 5, "total_tokens": 5},
    }


def test_single_input_returns_vector(provider, transport) -> None:
    transport.add("POST", "/embeddings", json_result(_embeddings([0.1, 0.2, 0.3])))
    response = provider.create_embeddings("hello")
    assert transport.calls[0]["body"] == {"model": "text-embedding-3-small", "input": "hello"}
    assert response.content == [0.1, 0.2, 0.3]
    assert response.metadata["dimensions"] == 3
    assert response.metadata["vector_count"] == 1
    assert response.metadata["input_count"] == 1
    assert response.usage["input_tokens"] == 5


def test_multiple_inputs_return_json_array_in_index_order(provider, transport) -> None:
    data = _embeddings([1.0], [2.0])
    data["data"].reverse()
    transport.add("POST", "/embeddings", json_result(data))
    response = provider.create_embeddings(["a", "b"])
    assert transport.calls[0]["body"]["input"] == ["a", "b"]
    assert json.loads(response.content) == [[1.0], [2.0]]
    assert response.metadata["input_count"] == 2


def test_dimensions_limits(provider, transport) -> None:
    with pytest.raises(AIError):
        provider.create_embeddings("x", {"model": "text-embedding-ada-002", "dimensions": 256})
    with pytest.raises(AIError) as info:
        provider.create_embeddings("x", {"dimensions": 1537})
    assert "1536" in str(info.value)
    transport.add("POST", "/embeddings", json_result(_embeddings([0.5] * 4)))
    provider.create_embeddings("x", {"model": "text-embedding-3-large", "dimensions": 3072})
    assert transport.calls[0]["body"]["dimensions"] == 3072


@pytest.mark.parametrize("value", ["", [], ["ok", 3]])
def test_bad_embedding_input(provider, value) -> None:
    with pytest.raises(AIError):
        provider.create_embeddings(value)


def test_moderation_flagged(provider, transport) -> None:
    transport.add(
        "POST",
        "/moderations",
        json_result(
            {
                "id": "modr-1",
                "model": "omni-moderation-latest",
                "results": [{"flagged": True, "categories": {"violence": True, "hate": False}}],
            }
        ),
    )
    response = provider.moderate("something nasty")
    assert provider.is_content_flagged(response)
    assert response.metadata["flagged_categories"] == ["violence"]
    assert json.loads(response.content)[0]["flagged"] is True


def test_moderation_clean(provider, transport) -> None:
    transport.add(
        "POST",
        "/moderations",
        json_result({"id": "modr-2", "model": "omni-moderation-latest", "results": [{"flagged": False}]}),
    )
    assert not provider.is_content_flagged(provider.moderate(["fine", "also fine"]))


def test_list_and_get_models(provider, transport) -> None:
    transport.add("GET", "/models", json_result({"data": [{"id": "gpt-4o"}, {"id": "whisper-1"}]}))
    transport.add("GET", "/models/gpt-4o", json_result({"id": "gpt-4o", "owned_by": "openai"}))
    assert provider.available_models() == ["gpt-4o", "whisper-1"]
    model = provider.get_model("gpt-4o")
    assert model.content == "gpt-4o"
    assert model.metadata["owned_by"] == "openai"
    with pytest.raises(AIError):
        provider.get_model(" ")


def test_static_model_helpers(provider) -> None:
    assert "gpt-4o" in provider.chat_models()
    assert "gpt-3.5-turbo" not in provider.vision_models()
    assert provider.image_models() == ["dall-e-2", "dall-e-3", "gpt-image-1"]
    assert "whisper-1" in provider.transcription_models()
