"""Build validated OpenAI request payloads for every capability."""

from __future__ import annotations

import base64
from pathlib import Path
from typing import TYPE_CHECKING, Any, Dict, List, Mapping, Sequence, Union

from aiclient.llm import validation as v
from aiclient.llm.errors import AIError
from aiclient.llm.filesystem import extension_of
from aiclient.llm.providers import openai_rules as rules
from aiclient.llm.types import Capability, FilePart, Payload

if TYPE_CHECKING:
    from aiclient.llm.providers.openai_provider import OpenAIProvider

IMAGE_MIME_TYPES = {
    "png": "image/png",
    "jpg": "image/jpeg",
    "jpeg": "image/jpeg",
    "gif": "image/gif",
    "webp": "image/webp",
}
AUDIO_MIME_TYPES = {
    "flac": "audio/flac",
    "mp3": "audio/mpeg",
    "mp4": "audio/mp4",
    "mpeg": "audio/mpeg",
    "mpga": "audio/mpeg",
    "m4a": "audio/mp4",
    "ogg": "audio/ogg",
    "wav": "audio/wav",
    "webm": "audio/webm",
}


class OpenAIRequestBuilder:
    """Resolve model, validate options and shape the OpenAI wire payload."""

    def __init__(self, provider: "OpenAIProvider") -> None:
        self.provider = provider

    def _model(self, capability: Capability, options: Mapping[str, Any]) -> str:
        model = self.provider.resolve_model(capability, options)
        self.provider.require_capability(model, capability)
        return model

    def _file_part(self, field: str, path: Union[str, Path], mime_types: Mapping[str, str]) -> FilePart:
        ext = extension_of(path)
        return FilePart(
            field=field,
            filename=Path(path).name,
            content=self.provider.fs.read(path),
            content_type=mime_types.get(ext, "application/octet-stream"),
        )

    def build_chat(self, message: str, options: Mapping[str, Any]) -> Payload:
        model = self._model(Capability.CHAT, options)
        messages = options.get("messages")
        if messages is None:
            if not isinstance(message, str) or not message.strip():
                raise AIError.missing_parameter(
                    "message", provider=rules.PROVIDER, requirement="Provide a message or a 'messages' list."
                )
            messages = [{"role": "user", "content": message}]
        messages = rules.validate_chat_messages(messages)
        fields = rules.validate_chat_options(model, options)
        recorded = dict(fields)
        if options.get("messages") is not None:
            recorded["messages"] = messages
        body = {"model": model, "messages": messages, **fields}
        return Payload(Capability.CHAT, model, "POST", "/chat/completions", body=body, options=recorded)

    def build_vision(self, message: str, image: str, options: Mapping[str, Any]) -> Payload:
        model = self._model(Capability.VISION, options)
        if not isinstance(message, str) or not message.strip():
            raise AIError.missing_parameter("message", provider=rules.PROVIDER)
        ext = rules.validate_vision_image(image, self.provider.fs)
        fields = rules.validate_vision_options(model, options)
        recorded = dict(fields)
        detail = fields.pop("detail", None)
        if ext is None:
            url = image
        else:
            encoded = base64.b64encode(self.provider.fs.read(image)).decode("ascii")
            url = f"data:{IMAGE_MIME_TYPES[ext]};base64,{encoded}"
        image_url: Dict[str, Any] = {"url": url}
        if detail:
            image_url["detail"] = detail
        messages = [
            {
                "role": "user",
                "content": [
                    {"type": "text", "text": message},
                    {"type": "image_url", "image_url": image_url},
                ],
            }
        ]
        if options.get("system"):
            system = recorded["system"] = v.check_text("system", options["system"], provider=rules.PROVIDER)
            messages.insert(0, {"role": "system", "content": system})
        body = {"model": model, "messages": messages, **fields}
        return Payload(Capability.VISION, model, "POST", "/chat/completions", body=body, options=recorded)

    def build_image(self, prompt: str, options: Mapping[str, Any]) -> Payload:
        model = self._model(Capability.IMAGE, options)
        prompt = rules.validate_image_prompt(model, prompt)
        fields = rules.validate_image_options(model, options)
        body = {"model": model, "prompt": prompt, **fields}
        return Payload(
            Capability.IMAGE,
            model,
            "POST",
            "/images/generations",
            body=body,
            echo={"response_format": fields.get("response_format", "b64_json")},
            options=fields,
        )

    def build_edit(self, image: Union[str, Sequence[str]], prompt: str, options: Mapping[str, Any]) -> Payload:
        """dall-e-2 takes one square PNG; gpt-image-1 takes up to 16 images as ``image[]``."""
        model = self._model(Capability.IMAGE_EDIT, options)
        images: List[str] = [image] if isinstance(image, (str, Path)) else list(image)
        mask = options.get("mask")
        rules.validate_edit_inputs(model, images, mask, self.provider.fs)
        prompt = rules.validate_image_prompt(model, prompt)
        fields = rules.validate_edit_options(model, options)
        recorded = dict(fields)
        if mask is not None:
            recorded["mask"] = mask
        if model.startswith("dall-e") and "response_format" not in fields:
            fields["response_format"] = "b64_json"
        field_name = "image" if len(images) == 1 else "image[]"
        parts = [self._file_part(field_name, path, IMAGE_MIME_TYPES) for path in images]
        if mask is not None:
            parts.append(self._file_part("mask", mask, IMAGE_MIME_TYPES))
        body = {"model": model, "prompt": prompt, **fields}
        return Payload(
            Capability.IMAGE_EDIT,
            model,
            "POST",
            "/images/edits",
            body=body,
            files=tuple(parts),
            echo={"response_format": fields.get("response_format", "b64_json")},
            options=recorded,
        )

    def build_variation(self, image: str, options: Mapping[str, Any]) -> Payload:
        model = self._model(Capability.IMAGE_VARIATION, options)
        rules.validate_variation_image(image, self.provider.fs)
        fields = rules.validate_variation_options(model, options)
        fields.setdefault("response_format", "b64_json")
        body = {"model": model, **fields}
        return Payload(
            Capability.IMAGE_VARIATION,
            model,
            "POST",
            "/images/variations",
            body=body,
            files=(self._file_part("image", image, IMAGE_MIME_TYPES),),
            echo={"response_format": fields["response_format"]},
            options=fields,
        )

    def build_speech(self, text: str, options: Mapping[str, Any]) -> Payload:
        model = self._model(Capability.SPEECH, options)
        fields = rules.validate_speech_options(model, text, options)
        body = {"model": model, "input": text, **fields}
        echo = {
            "model": model,
            "voice": fields["voice"],
            "format": fields["response_format"],
            "content_type": rules.AUDIO_CONTENT_TYPES[fields["response_format"]],
            "speed": fields.get("speed", 1.0),
            "instructions": fields.get("instructions"),
        }
        return Payload(Capability.SPEECH, model, "POST", "/audio/speech", body=body, echo=echo, options=fields)

    def _audio_payload(
        self,
        capability: Capability,
        path: str,
        model: str,
        audio_file: str,
        fields: Dict[str, Any],
    ) -> Payload:
        body = {"model": model, **fields}
        echo = {"model": model, "response_format": fields["response_format"], "file": Path(audio_file).name}
        if "language" in fields:
            echo["language"] = fields["language"]
        return Payload(
            capability,
            model,
            "POST",
            path,
            body=body,
            files=(self._file_part("file", audio_file, AUDIO_MIME_TYPES),),
            echo=echo,
            options=fields,
        )

    def build_transcription(self, audio_file: str, options: Mapping[str, Any]) -> Payload:
        model = self._model(Capability.TRANSCRIPTION, options)
        fields = rules.validate_transcription_options(model, audio_file, options, self.provider.fs)
        return self._audio_payload(Capability.TRANSCRIPTION, "/audio/transcriptions", model, audio_file, fields)

    def build_translation(self, audio_file: str, options: Mapping[str, Any]) -> Payload:
        model = self._model(Capability.TRANSLATION, options)
        fields = rules.validate_translation_options(model, audio_file, options, self.provider.fs)
        return self._audio_payload(Capability.TRANSLATION, "/audio/translations", model, audio_file, fields)

    def build_embeddings(self, value: Union[str, Sequence[str]], options: Mapping[str, Any]) -> Payload:
        model = self._model(Capability.EMBEDDING, options)
        inputs = rules.validate_embedding_input(value)
        fields = rules.validate_embedding_options(model, options)
        body = {"model": model, "input": inputs[0] if isinstance(value, str) else inputs, **fields}
        echo = {
            "model": model,
            "encoding_format": fields.get("encoding_format", "float"),
            "input_count": len(inputs),
        }
        return Payload(Capability.EMBEDDING, model, "POST", "/embeddings", body=body, echo=echo, options=fields)

    def build_moderation(self, value: Any, options: Mapping[str, Any]) -> Payload:
        model = self._model(Capability.MODERATION, options)
        body = {"model": model, "input": rules.validate_moderation_input(value)}
        return Payload(Capability.MODERATION, model, "POST", "/moderations", body=body, options={})

    def build_list_models(self) -> Payload:
        return Payload(Capability.MODEL_LISTING, "", "GET", "/models")

    def build_get_model(self, model_id: str) -> Payload:
        if not isinstance(model_id, str) or not model_id.strip():
            raise AIError.missing_parameter("model", provider=rules.PROVIDER)
        return Payload(Capability.MODEL_LISTING, model_id, "GET", f"/models/{model_id.strip()}")
