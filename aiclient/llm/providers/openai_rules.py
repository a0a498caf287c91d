"""OpenAI parameter constraints and per-capability option validators.

Each ``validate_*`` function returns the request fields to send (model and
primary inputs excluded) or raises a validation ``AIError``. Options that the
endpoint does not understand are dropped.
"""

from __future__ import annotations

from typing import Any, Dict, Mapping, Optional, Sequence

from aiclient.llm import validation as v
from aiclient.llm.errors import AIError
from aiclient.llm.filesystem import Filesystem
from aiclient.llm.validation import MB

PROVIDER = "OpenAI"

CHAT_ROLES = ("system", "developer", "user", "assistant", "tool", "function")
AUDIO_CHAT_MODELS = frozenset({"gpt-4o-audio-preview"})
CHAT_AUDIO_FORMATS = ("wav", "mp3", "flac", "opus", "pcm16")
CHAT_AUDIO_VOICES = ("alloy", "ash", "ballad", "coral", "echo", "fable", "nova", "onyx", "sage", "shimmer", "verse")
MAX_CHAT_CHOICES = 128

VISION_IMAGE_EXTENSIONS = ("png", "jpeg", "jpg", "gif", "webp")
VISION_MAX_BYTES = 20 * MB
VISION_DETAIL = ("low", "high", "auto")

IMAGE_SIZES: Mapping[str, Sequence[str]] = {
    "dall-e-2": ("256x256", "512x512", "1024x1024"),
    "dall-e-3": ("1024x1024", "1792x1024", "1024x1792"),
    "gpt-image-1": ("1024x1024", "1536x1024", "1024x1536", "auto"),
}
IMAGE_QUALITY: Mapping[str, Sequence[str]] = {
    "dall-e-2": ("standard",),
    "dall-e-3": ("standard", "hd"),
    "gpt-image-1": ("auto", "high", "medium", "low"),
}
IMAGE_STYLES = ("vivid", "natural")
IMAGE_RESPONSE_FORMATS = ("url", "b64_json")
PROMPT_MAX_LENGTH: Mapping[str, int] = {"dall-e-2": 1000, "dall-e-3": 4000, "gpt-image-1": 32000}
GPT_IMAGE_BACKGROUNDS = ("transparent", "opaque", "auto")
GPT_IMAGE_OUTPUT_FORMATS = ("png", "jpeg", "webp")
GPT_IMAGE_MODERATION = ("low", "auto")
GPT_IMAGE_ONLY = frozenset({"gpt-image-1"})

DALLE2_EDIT_MAX_BYTES = 4 * MB
GPT_IMAGE_EDIT_MAX_BYTES = 50 * MB
GPT_IMAGE_EDIT_MAX_IMAGES = 16
GPT_IMAGE_EDIT_EXTENSIONS = ("png", "webp", "jpg", "jpeg")

TTS_MODELS = ("tts-1", "tts-1-hd", "gpt-4o-mini-tts")
BASE_VOICES = ("alloy", "ash", "coral", "echo", "fable", "nova", "onyx", "sage", "shimmer")
TTS_VOICES: Mapping[str, Sequence[str]] = {
    "tts-1": BASE_VOICES,
    "tts-1-hd": BASE_VOICES,
    "gpt-4o-mini-tts": BASE_VOICES + ("ballad", "verse"),
}
AUDIO_CONTENT_TYPES: Mapping[str, str] = {
    "mp3": "audio/mpeg",
    "opus": "audio/opus",
    "aac": "audio/aac",
    "flac": "audio/flac",
    "wav": "audio/wav",
    "pcm": "audio/pcm",
}
SPEECH_MAX_INPUT = 4096
INSTRUCTION_MODELS = frozenset({"gpt-4o-mini-tts"})

TRANSCRIPTION_EXTENSIONS = ("flac", "mp3", "mp4", "mpeg", "mpga", "m4a", "ogg", "wav", "webm")
TRANSCRIPTION_MAX_BYTES = 25 * MB
TRANSCRIPTION_FORMATS: Mapping[str, Sequence[str]] = {
    "whisper-1": ("json", "text", "srt", "verbose_json", "vtt"),
    "gpt-4o-transcribe": ("json", "text"),
    "gpt-4o-mini-transcribe": ("json", "text"),
}
TIMESTAMP_GRANULARITIES = ("word", "segment")

EMBEDDING_MAX_DIMENSIONS: Mapping[str, int] = {
    "text-embedding-3-small": 1536,
    "text-embedding-3-large": 3072,
}
EMBEDDING_ENCODINGS = ("float", "base64")
EMBEDDING_MAX_INPUTS = 2048


def _check_model_choice(parameter: str, value: Any, model: str, table: Mapping[str, Sequence[str]]) -> Any:
    allowed = table.get(model, ())
    return v.check_choice(
        parameter,
        value,
        allowed,
        provider=PROVIDER,
        requirement=f"Allowed values for {model}: {', '.join(allowed)}",
    )


def validate_chat_options(model: str, options: Mapping[str, Any]) -> Dict[str, Any]:
    """Sampling, choice-count, logprob and audio-output options for chat completions."""
    out: Dict[str, Any] = {}
    if "temperature" in options:
        out["temperature"] = v.check_range("temperature", options["temperature"], 0, 2, provider=PROVIDER)
    if "top_p" in options:
        out["top_p"] = v.check_range("top_p", options["top_p"], 0, 1, provider=PROVIDER)
    if "n" in options:
        out["n"] = v.check_range("n", options["n"], 1, MAX_CHAT_CHOICES, provider=PROVIDER, integer=True)
    for key in ("presence_penalty", "frequency_penalty"):
        if key in options:
            out[key] = v.check_range(key, options[key], -2, 2, provider=PROVIDER)
    for key in ("max_tokens", "max_completion_tokens"):
        if key in options:
            out[key] = v.check_range(key, options[key], 1, 2**31 - 1, provider=PROVIDER, integer=True)
    if "logprobs" in options:
        out["logprobs"] = v.check_bool("logprobs", options["logprobs"], provider=PROVIDER)
    if "top_logprobs" in options:
        v.require_pair(
            "top_logprobs",
            options["top_logprobs"],
            "logprobs",
            options,
            provider=PROVIDER,
            requirement="Requires 'logprobs' to be true.",
        )
        out["top_logprobs"] = v.check_range(
            "top_logprobs", options["top_logprobs"], 0, 20, provider=PROVIDER, integer=True
        )
    if "stop" in options:
        out["stop"] = v.check_string_list("stop", options["stop"], provider=PROVIDER, max_items=4)
    if "seed" in options:
        out["seed"] = v.check_range("seed", options["seed"], -(2**63), 2**63 - 1, provider=PROVIDER, integer=True)
    for key in ("user", "response_format", "tools", "tool_choice", "parallel_tool_calls", "logit_bias", "store"):
        if key in options:
            out[key] = options[key]

    modalities = options.get("modalities")
    if modalities is not None:
        items = v.check_string_list("modalities", modalities, provider=PROVIDER)
        for item in items:
            v.check_choice("modalities", item, ("text", "audio"), provider=PROVIDER)
        out["modalities"] = items
    wants_audio = bool(modalities) and "audio" in (out.get("modalities") or [])
    if "audio" in options:
        if not wants_audio:
            raise AIError.invalid_parameter(
                "audio",
                options["audio"],
                "Requires 'modalities' to include 'audio'.",
                provider=PROVIDER,
            )
        out["audio"] = _validate_chat_audio(options["audio"])
    elif wants_audio:
        raise AIError.missing_parameter(
            "audio",
            provider=PROVIDER,
            requirement="Audio output needs an 'audio' object with 'voice' and 'format'.",
        )
    if wants_audio:
        v.reject_for_model("audio", out.get("audio"), model, AUDIO_CHAT_MODELS, provider=PROVIDER)
    return out


def _validate_chat_audio(audio: Any) -> Dict[str, Any]:
    if not isinstance(audio, Mapping):
        raise AIError.invalid_parameter("audio", audio, "Must be an object with 'voice' and 'format'.", provider=PROVIDER)
    if "voice" not in audio:
        raise AIError.missing_parameter("audio.voice", provider=PROVIDER)
    if "format" not in audio:
        raise AIError.missing_parameter("audio.format", provider=PROVIDER)
    v.check_choice("audio.voice", audio["voice"], CHAT_AUDIO_VOICES, provider=PROVIDER)
    v.check_choice("audio.format", audio["format"], CHAT_AUDIO_FORMATS, provider=PROVIDER)
    return {"voice": audio["voice"], "format": audio["format"]}


def validate_chat_messages(messages: Any) -> list:
    return v.check_messages(messages, provider=PROVIDER, roles=CHAT_ROLES)


def validate_vision_options(model: str, options: Mapping[str, Any]) -> Dict[str, Any]:
    out = validate_chat_options(model, {k: val for k, val in options.items() if k != "detail"})
    if "detail" in options:
        out["detail"] = v.check_choice("detail", options["detail"], VISION_DETAIL, provider=PROVIDER)
    return out


def validate_vision_image(image: Any, fs: Filesystem) -> Optional[str]:
    """Returns the local file extension, or None when ``image`` is a URL."""
    if not isinstance(image, str) or not image.strip():
        raise AIError.invalid_parameter("image", image, "Must be an image URL, data URL or file path.", provider=PROVIDER)
    if image.startswith(("http://", "https://", "data:")):
        return None
    return v.check_file(
        image,
        fs,
        provider=PROVIDER,
        allowed_extensions=VISION_IMAGE_EXTENSIONS,
        max_bytes=VISION_MAX_BYTES,
    )


def _validate_gpt_image_extras(model: str, options: Mapping[str, Any], out: Dict[str, Any]) -> None:
    for key, allowed in (
        ("background", GPT_IMAGE_BACKGROUNDS),
        ("output_format", GPT_IMAGE_OUTPUT_FORMATS),
        ("moderation", GPT_IMAGE_MODERATION),
    ):
        if key in options:
            v.reject_for_model(key, options[key], model, GPT_IMAGE_ONLY, provider=PROVIDER)
            out[key] = v.check_choice(key, options[key], allowed, provider=PROVIDER)
    if "output_compression" in options:
        v.reject_for_model("output_compression", options["output_compression"], model, GPT_IMAGE_ONLY, provider=PROVIDER)
        if out.get("output_format") not in ("jpeg", "webp"):
            raise AIError.invalid_parameter(
                "output_compression",
                options["output_compression"],
                "Only supported when 'output_format' is jpeg or webp.",
                provider=PROVIDER,
            )
        out["output_compression"] = v.check_range(
            "output_compression", options["output_compression"], 0, 100, provider=PROVIDER, integer=True
        )


def _validate_image_n(model: str, options: Mapping[str, Any], out: Dict[str, Any]) -> None:
    if "n" not in options:
        return
    if model == "dall-e-3":
        out["n"] = v.check_range("n", options["n"], 1, 1, provider=PROVIDER, integer=True, context=" for dall-e-3")
    else:
        out["n"] = v.check_range("n", options["n"], 1, 10, provider=PROVIDER, integer=True)


def _validate_response_format(model: str, options: Mapping[str, Any], out: Dict[str, Any]) -> None:
    if "response_format" not in options:
        return
    if model in GPT_IMAGE_ONLY:
        raise AIError.invalid_parameter(
            "response_format",
            options["response_format"],
            "gpt-image-1 always returns base64 images; use 'output_format' instead.",
            provider=PROVIDER,
        )
    out["response_format"] = v.check_choice(
        "response_format", options["response_format"], IMAGE_RESPONSE_FORMATS, provider=PROVIDER
    )


def validate_image_prompt(model: str, prompt: Any) -> str:
    return v.check_text("prompt", prompt, provider=PROVIDER, max_length=PROMPT_MAX_LENGTH.get(model))


def validate_image_options(model: str, options: Mapping[str, Any]) -> Dict[str, Any]:
    """Generation options; sizes, quality and style depend on the model."""
    out: Dict[str, Any] = {}
    _validate_image_n(model, options, out)
    if "size" in options:
        out["size"] = _check_model_choice("size", options["size"], model, IMAGE_SIZES)
    if "quality" in options:
        out["quality"] = _check_model_choice("quality", options["quality"], model, IMAGE_QUALITY)
    if "style" in options:
        v.reject_for_model("style", options["style"], model, ("dall-e-3",), provider=PROVIDER)
        out["style"] = v.check_choice("style", options["style"], IMAGE_STYLES, provider=PROVIDER)
    _validate_response_format(model, options, out)
    _validate_gpt_image_extras(model, options, out)
    if "user" in options:
        out["user"] = options["user"]
    if model.startswith("dall-e") and "response_format" not in out:
        out["response_format"] = "b64_json"
    return out


def validate_edit_inputs(model: str, images: Sequence[str], mask: Optional[str], fs: Filesystem) -> None:
    """File checks for image edits; runs before anything is read or sent."""
    if model == "dall-e-2":
        if len(images) != 1:
            raise AIError.invalid_parameter(
                "image",
                f"{len(images)} images",
                "dall-e-2 edits accept exactly one image.",
                provider=PROVIDER,
            )
        v.check_file(images[0], fs, provider=PROVIDER, allowed_extensions=("png",), max_bytes=DALLE2_EDIT_MAX_BYTES)
        v.check_square(images[0], fs, provider=PROVIDER)
        if mask is not None:
            v.check_file(mask, fs, provider=PROVIDER, allowed_extensions=("png",), max_bytes=DALLE2_EDIT_MAX_BYTES)
            v.check_same_dimensions(images[0], mask, fs, provider=PROVIDER)
        return
    if not images or len(images) > GPT_IMAGE_EDIT_MAX_IMAGES:
        raise AIError.invalid_parameter(
            "image",
            f"{len(images)} images",
            f"gpt-image-1 edits accept between 1 and {GPT_IMAGE_EDIT_MAX_IMAGES} images.",
            provider=PROVIDER,
        )
    for image in images:
        v.check_file(
            image,
            fs,
            provider=PROVIDER,
            allowed_extensions=GPT_IMAGE_EDIT_EXTENSIONS,
            max_bytes=GPT_IMAGE_EDIT_MAX_BYTES,
        )
    if mask is not None:
        v.check_file(mask, fs, provider=PROVIDER, allowed_extensions=("png",), max_bytes=GPT_IMAGE_EDIT_MAX_BYTES)
        v.check_same_dimensions(images[0], mask, fs, provider=PROVIDER)


def validate_edit_options(model: str, options: Mapping[str, Any]) -> Dict[str, Any]:
    out: Dict[str, Any] = {}
    _validate_image_n(model, options, out)
    if "size" in options:
        out["size"] = _check_model_choice("size", options["size"], model, IMAGE_SIZES)
    if "quality" in options:
        v.reject_for_model("quality", options["quality"], model, GPT_IMAGE_ONLY, provider=PROVIDER)
        out["quality"] = _check_model_choice("quality", options["quality"], model, IMAGE_QUALITY)
    _validate_response_format(model, options, out)
    _validate_gpt_image_extras(model, options, out)
    if "user" in options:
        out["user"] = options["user"]
    return out


def validate_variation_image(image: Any, fs: Filesystem) -> None:
    v.check_file(image, fs, provider=PROVIDER, allowed_extensions=("png",), max_bytes=DALLE2_EDIT_MAX_BYTES)
    v.check_square(image, fs, provider=PROVIDER)


def validate_variation_options(model: str, options: Mapping[str, Any]) -> Dict[str, Any]:
    out: Dict[str, Any] = {}
    _validate_image_n(model, options, out)
    if "size" in options:
        out["size"] = _check_model_choice("size", options["size"], model, IMAGE_SIZES)
    _validate_response_format(model, options, out)
    if "user" in options:
        out["user"] = options["user"]
    return out


def available_voices(model: Optional[str] = None) -> list:
    if model is None:
        return sorted({voice for voices in TTS_VOICES.values() for voice in voices})
    return list(TTS_VOICES.get(model, ()))


def validate_speech_options(model: str, text: Any, options: Mapping[str, Any]) -> Dict[str, Any]:
    """Voice is required; instructions only on gpt-4o-mini-tts."""
    v.check_text("input", text, provider=PROVIDER, max_length=SPEECH_MAX_INPUT)
    out: Dict[str, Any] = {}
    voice = options.get("voice")
    if voice is None:
        raise AIError.missing_parameter(
            "voice",
            provider=PROVIDER,
            requirement=f"Valid voices for {model}: {', '.join(TTS_VOICES.get(model, ()))}",
        )
    out["voice"] = _check_model_choice("voice", voice, model, TTS_VOICES)
    out["response_format"] = v.check_choice(
        "response_format", options.get("response_format", "mp3"), tuple(AUDIO_CONTENT_TYPES), provider=PROVIDER
    )
    if "speed" in options:
        out["speed"] = v.check_range("speed", options["speed"], 0.25, 4.0, provider=PROVIDER)
    if "instructions" in options:
        v.reject_for_model("instructions", options["instructions"], model, INSTRUCTION_MODELS, provider=PROVIDER)
        out["instructions"] = v.check_text("instructions", options["instructions"], provider=PROVIDER)
    return out


def _validate_audio_file(audio_file: Any, fs: Filesystem) -> str:
    return v.check_file(
        audio_file,
        fs,
        provider=PROVIDER,
        allowed_extensions=TRANSCRIPTION_EXTENSIONS,
        max_bytes=TRANSCRIPTION_MAX_BYTES,
    )


def validate_transcription_options(model: str, audio_file: Any, options: Mapping[str, Any], fs: Filesystem) -> Dict[str, Any]:
    _validate_audio_file(audio_file, fs)
    out: Dict[str, Any] = {}
    out["response_format"] = _check_model_choice(
        "response_format", options.get("response_format", "json"), model, TRANSCRIPTION_FORMATS
    )
    if "language" in options:
        out["language"] = v.check_text("language", options["language"], provider=PROVIDER)
    if "prompt" in options:
        out["prompt"] = v.check_text("prompt", options["prompt"], provider=PROVIDER)
    if "temperature" in options:
        out["temperature"] = v.check_range("temperature", options["temperature"], 0, 1, provider=PROVIDER)
    if "timestamp_granularities" in options:
        value = options["timestamp_granularities"]
        if out["response_format"] != "verbose_json" or model != "whisper-1":
            raise AIError.invalid_parameter(
                "timestamp_granularities",
                value,
                "Only supported with response_format 'verbose_json' on whisper-1.",
                provider=PROVIDER,
            )
        items = v.check_string_list("timestamp_granularities", value, provider=PROVIDER)
        for item in items:
            v.check_choice("timestamp_granularities", item, TIMESTAMP_GRANULARITIES, provider=PROVIDER)
        out["timestamp_granularities"] = items
    return out


def validate_translation_options(model: str, audio_file: Any, options: Mapping[str, Any], fs: Filesystem) -> Dict[str, Any]:
    _validate_audio_file(audio_file, fs)
    out: Dict[str, Any] = {}
    out["response_format"] = _check_model_choice(
        "response_format", options.get("response_format", "json"), model, TRANSCRIPTION_FORMATS
    )
    if "prompt" in options:
        out["prompt"] = v.check_text("prompt", options["prompt"], provider=PROVIDER)
    if "temperature" in options:
        out["temperature"] = v.check_range("temperature", options["temperature"], 0, 1, provider=PROVIDER)
    return out


def validate_embedding_input(value: Any) -> list:
    items = v.check_string_list("input", value, provider=PROVIDER, max_items=EMBEDDING_MAX_INPUTS)
    for item in items:
        v.check_text("input", item, provider=PROVIDER)
    return items


def validate_embedding_options(model: str, options: Mapping[str, Any]) -> Dict[str, Any]:
    out: Dict[str, Any] = {}
    if "dimensions" in options:
        max_dims = EMBEDDING_MAX_DIMENSIONS.get(model)
        if max_dims is None:
            raise AIError.invalid_parameter(
                "dimensions",
                options["dimensions"],
                f"Not supported by {model}; use {', '.join(sorted(EMBEDDING_MAX_DIMENSIONS))}.",
                provider=PROVIDER,
            )
        out["dimensions"] = v.check_range(
            "dimensions", options["dimensions"], 1, max_dims, provider=PROVIDER, integer=True, context=f" for {model}"
        )
    if "encoding_format" in options:
        out["encoding_format"] = v.check_choice(
            "encoding_format", options["encoding_format"], EMBEDDING_ENCODINGS, provider=PROVIDER
        )
    if "user" in options:
        out["user"] = options["user"]
    return out


def validate_moderation_input(value: Any) -> Any:
    if isinstance(value, str):
        return v.check_text("input", value, provider=PROVIDER)
    if isinstance(value, (list, tuple)) and value and all(isinstance(item, (str, Mapping)) for item in value):
        return list(value)
    raise AIError.invalid_parameter(
        "input", value, "Must be a string, a list of strings or a list of multimodal parts.", provider=PROVIDER
    )
