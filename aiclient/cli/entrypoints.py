"""Command-line entrypoints for chat, model listing, speech, transcription and images."""

from __future__ import annotations

import argparse
import json
import sys
from pathlib import Path
from typing import Any, Dict

from aiclient.core.config import load_settings
from aiclient.core.logging_utils import set_event_logging
from aiclient.llm.errors import AIError
from aiclient.llm.interfaces import AudioCapable, ImageCapable, VisionCapable
from aiclient.llm.router import available_providers, get_provider
from aiclient.llm.types import Response


def _provider(args: argparse.Namespace):
    """Build the provider named on the command line using loaded settings."""
    settings = load_settings(Path(args.config) if args.config else None)
    set_event_logging(True if args.log_events else settings.log_events)
    options: Dict[str, Any] = {}
    if args.model:
        options["model"] = args.model
    return get_provider(args.provider or settings.default_provider, settings, **options)


def _require(provider: Any, protocol: type, operation: str) -> None:
    if not isinstance(provider, protocol):
        raise AIError.validation(
            f"{provider.display_name} does not support {operation}",
            provider=provider.display_name,
            validation_type="unsupported_capability",
        )


def _print_response(response: Response, *, as_json: bool) -> None:
    if as_json:
        print(
            json.dumps(
                {
                    "provider": response.provider,
                    "status_code": response.status_code,
                    "content": response.text,
                    "metadata": dict(response.metadata),
                },
                ensure_ascii=False,
                default=str,
            )
        )
        return
    print(response.text)


def cmd_chat(args: argparse.Namespace) -> int:
    """Send one chat message.

    Args:
        args (argparse.Namespace): Parsed CLI args.

    Returns:
        int: Process return code.
    """
    provider = _provider(args)
    options: Dict[str, Any] = {}
    if args.temperature is not None:
        options["temperature"] = args.temperature
    if args.max_tokens is not None:
        options["max_tokens"] = args.max_tokens
    if args.image:
        _require(provider, VisionCapable, "vision")
        if args.system:
            options["system"] = args.system
        response = provider.vision(args.message, args.image, options)
    else:
        if args.system:
            options["messages"] = [
                {"role": "system", "content": args.system},
                {"role": "user", "content": args.message},
            ]
        response = provider.chat(args.message, options)
    _print_response(response, as_json=args.json)
    return 0


def cmd_models(args: argparse.Namespace) -> int:
    """List models visible to the configured credentials or host."""
    provider = _provider(args)
    response = provider.list_models()
    if args.json:
        _print_response(response, as_json=True)
        return 0
    for model_id in json.loads(response.content):
        print(model_id)
    return 0


def cmd_speech(args: argparse.Namespace) -> int:
    """Synthesize speech to a file."""
    provider = _provider(args)
    options: Dict[str, Any] = {"voice": args.voice, "response_format": args.format}
    if args.speed is not None:
        options["speed"] = args.speed
    _require(provider, AudioCapable, "speech")
    response = provider.speech(args.text, options)
    for path in response.save_file(args.out):
        print(path)
    return 0


def cmd_transcribe(args: argparse.Namespace) -> int:
    """Transcribe or translate an audio file."""
    provider = _provider(args)
    options: Dict[str, Any] = {"response_format": args.format}
    if args.language and not args.translate:
        options["language"] = args.language
    _require(provider, AudioCapable, "transcription")
    if args.translate:
        response = provider.translate(args.file, options)
    else:
        response = provider.transcribe(args.file, options)
    _print_response(response, as_json=args.json)
    return 0


def cmd_image(args: argparse.Namespace) -> int:
    """Generate an image and save it."""
    provider = _provider(args)
    options: Dict[str, Any] = {}
    if args.size:
        options["size"] = args.size
    if args.n is not None:
        options["n"] = args.n
    _require(provider, ImageCapable, "image generation")
    response = provider.generate_image(args.prompt, options)
    for path in response.save_file(args.out):
        print(path)
    return 0


def build_parser() -> argparse.ArgumentParser:
    """Build the CLI argument parser.

    Returns:
        argparse.ArgumentParser: Configured argument parser.
    """
    common = argparse.ArgumentParser(add_help=False)
    common.add_argument("--provider", choices=available_providers(), default=None)
    common.add_argument("--model", type=str, default=None)
    common.add_argument("--config", type=str, default=None, help="Path to an aiclient TOML config file.")
    common.add_argument("--log-events", action="store_true", help="Emit JSON lifecycle events on stderr.")

    p = argparse.ArgumentParser(prog="aiclient")
    sub = p.add_subparsers(dest="cmd", required=True)

    c = sub.add_parser("chat", parents=[common], help="Send a chat message")
    c.add_argument("message", type=str)
    c.add_argument("--system", type=str, default=None)
    c.add_argument("--image", type=str, default=None, help="Image URL or file; switches to vision.")
    c.add_argument("--temperature", type=float, default=None)
    c.add_argument("--max-tokens", type=int, default=None)
    c.add_argument("--json", action="store_true")
    c.set_defaults(func=cmd_chat)

    m = sub.add_parser("models", parents=[common], help="List available models")
    m.add_argument("--json", action="store_true")
    m.set_defaults(func=cmd_models)

    s = sub.add_parser("speech", parents=[common], help="Text to speech (OpenAI)")
    s.add_argument("text", type=str)
    s.add_argument("--voice", type=str, default="alloy")
    s.add_argument("--format", type=str, default="mp3")
    s.add_argument("--speed", type=float, default=None)
    s.add_argument("--out", type=str, required=True)
    s.set_defaults(func=cmd_speech)

    t = sub.add_parser("transcribe", parents=[common], help="Speech to text (OpenAI)")
    t.add_argument("file", type=str)
    t.add_argument("--format", type=str, default="text")
    t.add_argument("--language", type=str, default=None)
    t.add_argument("--translate", action="store_true", help="Translate into English instead.")
    t.add_argument("--json", action="store_true")
    t.set_defaults(func=cmd_transcribe)

    i = sub.add_parser("image", parents=[common], help="Generate an image (OpenAI)")
    i.add_argument("prompt", type=str)
    i.add_argument("--size", type=str, default=None)
    i.add_argument("--n", type=int, default=None)
    i.add_argument("--out", type=str, required=True)
    i.set_defaults(func=cmd_image)

    return p


def main(argv: list[str] | None = None) -> int:
    """CLI entrypoint for aiclient.

    Returns:
        int: Process return code; 2 for errors raised by a provider.
    """
    parser = build_parser()
    args = parser.parse_args(argv)
    try:
        return args.func(args)
    except AIError as exc:
        print(str(exc), file=sys.stderr)
        return 2


if __name__ == "__main__":
    raise SystemExit(main())
