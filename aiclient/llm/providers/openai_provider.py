"""OpenAI provider facade over the raw REST API (chat, vision, images, audio, embeddings, moderation)."""

from __future__ import annotations

import json
from typing import Any, Dict, Mapping, Optional, Sequence, Union

from aiclient.llm.errors import AIError
from aiclient.llm.parsing import (
    load_json_object,
    parse_audio,
    parse_embeddings,
    parse_images,
    parse_model_list,
    parse_moderation,
    parse_transcript,
    status_for_reason,
)
from aiclient.llm.providers import openai_rules as rules
from aiclient.llm.providers.base import BaseProvider, merged_options
from aiclient.llm.providers.openai_builder import OpenAIRequestBuilder
from aiclient.llm.transport import USER_AGENT
from aiclient.llm.types import Capability, Payload, Response, usage_counts


def _choice_text(choice: Mapping[str, Any]) -> str:
    """Extract text from one chat choice, falling back to the audio transcript."""
    message = choice.get("message") or {}
    content = message.get("content")
    if isinstance(content, str) and content:
        return content
    if isinstance(content, list):
        parts = [str(p.get("text")) for p in content if isinstance(p, Mapping) and p.get("text")]
        if parts:
            return "".join(parts)
    audio = message.get("audio") or {}
    return str(audio.get("transcript") or "")


class OpenAIProvider(BaseProvider):
    """Provider adapter for the OpenAI REST API."""

    name = "openai"
    display_name = "OpenAI"
    default_base_url = "https://api.openai.com/v1"
    api_key_env = "OPENAI_API_KEY"
    fallback_models = {
        Capability.CHAT: "gpt-4o-mini",
        Capability.VISION: "gpt-4o-mini",
        Capability.IMAGE: "dall-e-2",
        Capability.IMAGE_EDIT: "dall-e-2",
        Capability.IMAGE_VARIATION: "dall-e-2",
        Capability.SPEECH: "tts-1",
        Capability.TRANSCRIPTION: "whisper-1",
        Capability.TRANSLATION: "whisper-1",
        Capability.EMBEDDING: "text-embedding-3-small",
        Capability.MODERATION: "omni-moderation-latest",
    }

    def __init__(self, *, organization: Optional[str] = None, **kwargs: Any) -> None:
        """Initialize with optional explicit API key, base URL, model and transport."""
        super().__init__(**kwargs)
        self.organization = str(organization or "").strip() or None
        self.builder = OpenAIRequestBuilder(self)

    def _headers(self, payload: Payload) -> Dict[str, str]:
        headers = {
            "Authorization": f"Bearer {self.require_api_key()}",
            "User-Agent": USER_AGENT,
        }
        if not payload.is_multipart:
            headers["Content-Type"] = "application/json"
        if self.organization:
            headers["OpenAI-Organization"] = self.organization
        return headers

    # Chat and vision

    def _parse_chat(self, payload: Payload, data: Mapping[str, Any]) -> Response:
        choices = [c for c in (data.get("choices") or []) if isinstance(c, Mapping)]
        if not choices:
            raise AIError.unserializable(
                provider=self.display_name,
                raw_response=json.dumps(data),
                parse_error="No choices in chat completion response",
                http_status=200,
            )
        first = choices[0]
        finish_reason = first.get("finish_reason")
        in_tok, out_tok, total_tok = usage_counts(data.get("usage"))
        message = first.get("message") or {}
        metadata: Dict[str, Any] = {
            "id": data.get("id"),
            "model": data.get("model") or payload.model,
            "created": data.get("created"),
            "object": data.get("object"),
            "system_fingerprint": data.get("system_fingerprint"),
            "finish_reason": finish_reason,
            "role": message.get("role"),
            "usage": data.get("usage") or {},
            "input_tokens": in_tok,
            "output_tokens": out_tok,
            "total_tokens": total_tok,
            "choices": choices,
            "choice_count": len(choices),
        }
        if message.get("tool_calls"):
            metadata["tool_calls"] = message["tool_calls"]
        if message.get("audio"):
            metadata["audio"] = message["audio"]
        if message.get("refusal"):
            metadata["refusal"] = message["refusal"]
        return Response(
            content=_choice_text(first).strip(),
            provider=self.display_name,
            metadata=metadata,
            status_code=status_for_reason(finish_reason),
        )

    def chat(self, message: str, options: Optional[Mapping[str, Any]] = None) -> Response:
        """Chat completion for one message or ``options['messages']``."""
        payload = self.builder.build_chat(message, merged_options(options))
        return self._parse_chat(payload, load_json_object(self.send(payload), self.display_name))

    def vision(self, message: str, image: str, options: Optional[Mapping[str, Any]] = None) -> Response:
        """Ask about an image; local files are inlined as base64 data URLs."""
        payload = self.builder.build_vision(message, image, merged_options(options))
        return self._parse_chat(payload, load_json_object(self.send(payload), self.display_name))

    # Images

    def _parse_images(self, payload: Payload) -> Response:
        data = load_json_object(self.send(payload), self.display_name)
        return parse_images(
            data,
            self.display_name,
            model=payload.model,
            response_format=payload.echo.get("response_format"),
        )

    def generate_image(self, prompt: str, options: Optional[Mapping[str, Any]] = None) -> Response:
        return self._parse_images(self.builder.build_image(prompt, merged_options(options)))

    def edit_image(
        self,
        image: Union[str, Sequence[str]],
        prompt: str,
        options: Optional[Mapping[str, Any]] = None,
    ) -> Response:
        """Edit with dall-e-2 (one square PNG, optional mask) or gpt-image-1 (up to 16 images)."""
        return self._parse_images(self.builder.build_edit(image, prompt, merged_options(options)))

    def create_image_variation(self, image: str, options: Optional[Mapping[str, Any]] = None) -> Response:
        return self._parse_images(self.builder.build_variation(image, merged_options(options)))

    # Audio

    def speech(self, text: str, options: Optional[Mapping[str, Any]] = None) -> Response:
        payload = self.builder.build_speech(text, merged_options(options))
        return parse_audio(self.send(payload), self.display_name, payload.echo)

    def transcribe(self, audio_file: str, options: Optional[Mapping[str, Any]] = None) -> Response:
        payload = self.builder.build_transcription(audio_file, merged_options(options))
        return parse_transcript(self.send(payload), self.display_name, payload.echo)

    def translate(self, audio_file: str, options: Optional[Mapping[str, Any]] = None) -> Response:
        payload = self.builder.build_translation(audio_file, merged_options(options))
        return parse_transcript(self.send(payload), self.display_name, payload.echo)

    # Embeddings and moderation

    def create_embeddings(
        self, input: Union[str, Sequence[str]], options: Optional[Mapping[str, Any]] = None
    ) -> Response:
        payload = self.builder.build_embeddings(input, merged_options(options))
        data = load_json_object(self.send(payload), self.display_name)
        return parse_embeddings(data, self.display_name, payload.echo)

    def moderate(self, input: Any, options: Optional[Mapping[str, Any]] = None) -> Response:
        payload = self.builder.build_moderation(input, merged_options(options))
        return parse_moderation(load_json_object(self.send(payload), self.display_name), self.display_name)

    @staticmethod
    def is_content_flagged(response: Response) -> bool:
        return bool(response.metadata.get("flagged"))

    # Models

    def list_models(self) -> Response:
        data = load_json_object(self.send(self.builder.build_list_models()), self.display_name)
        models = [m for m in (data.get("data") or []) if isinstance(m, Mapping)]
        return parse_model_list(models, self.display_name)

    def get_model(self, model_id: str) -> Response:
        data = load_json_object(self.send(self.builder.build_get_model(model_id)), self.display_name)
        return Response(content=str(data.get("id") or model_id), provider=self.display_name, metadata=data)

    def available_models(self) -> list:
        return json.loads(self.list_models().content)

    # Static helpers

    def chat_models(self) -> list:
        return sorted(self.table.models_for(self.name, Capability.CHAT))

    def vision_models(self) -> list:
        return sorted(self.table.models_for(self.name, Capability.VISION))

    def image_models(self) -> list:
        return sorted(self.table.models_for(self.name, Capability.IMAGE))

    def tts_models(self) -> list:
        return list(rules.TTS_MODELS)

    def transcription_models(self) -> list:
        return sorted(self.table.models_for(self.name, Capability.TRANSCRIPTION))

    def available_voices(self, model: Optional[str] = None) -> list:
        return rules.available_voices(model)

    def supported_audio_formats(self) -> list:
        return list(rules.AUDIO_CONTENT_TYPES)
