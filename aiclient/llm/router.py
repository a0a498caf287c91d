"""Provider factory: build a configured provider by name from settings and options."""

from __future__ import annotations

import os
from typing import Any, Dict, Optional, Tuple, Type

from aiclient.llm.errors import AIError
from aiclient.llm.providers import AnthropicProvider, OllamaProvider, OpenAIProvider
from aiclient.llm.providers.base import BaseProvider

PROVIDER_CLASSES: Dict[str, Type[BaseProvider]] = {
    "openai": OpenAIProvider,
    "anthropic": AnthropicProvider,
    "ollama": OllamaProvider,
}


def _cfg_value(settings: Any, key: str, default: Optional[str] = None) -> Optional[str]:
    """Read one normalized string setting from object/dict/env sources."""
    if settings is None:
        value = None
    elif isinstance(settings, dict):
        value = settings.get(key)
    else:
        value = getattr(settings, key, None)
    text = str(value if value is not None else "").strip()
    if text:
        return text
    env_val = os.environ.get(key.upper())
    if env_val and env_val.strip():
        return env_val.strip()
    return default


def available_providers() -> Tuple[str, ...]:
    return tuple(PROVIDER_CLASSES)


def provider_options(provider_id: str, settings: Any) -> Dict[str, Any]:
    """Constructor keyword arguments for ``provider_id`` taken from settings."""
    options: Dict[str, Any] = {}
    base_url = _cfg_value(settings, f"{provider_id}_base_url")
    if base_url:
        options["base_url"] = base_url
    timeout = _cfg_value(settings, "timeout")
    if timeout:
        try:
            options["timeout"] = float(timeout)
        except ValueError:
            raise AIError.invalid_parameter("timeout", timeout, "Must be a number of seconds.") from None
    if provider_id in ("openai", "anthropic"):
        api_key = _cfg_value(settings, f"{provider_id}_api_key")
        if api_key:
            options["api_key"] = api_key
    if provider_id == "openai":
        organization = _cfg_value(settings, "openai_organization")
        if organization:
            options["organization"] = organization
    if provider_id == "anthropic":
        version = _cfg_value(settings, "anthropic_version")
        if version:
            options["api_version"] = version
    if provider_id == "ollama":
        auto_pull = _cfg_value(settings, "ollama_auto_pull")
        if auto_pull is not None:
            options["auto_pull"] = auto_pull.lower() not in {"0", "false", "no", "n", "off"}
    default_provider = (_cfg_value(settings, "default_provider", default="openai") or "openai").lower()
    default_model = _cfg_value(settings, "default_model")
    if default_model and default_provider == provider_id:
        options["model"] = default_model
    return options


def get_provider(name: Optional[str] = None, settings: Any = None, **options: Any) -> BaseProvider:
    """Instantiate a provider by id; explicit ``options`` override settings.

    Args:
        name (Optional[str]): ``openai``, ``anthropic`` or ``ollama``; defaults to
            the configured ``default_provider``.
        settings (Any): ``Settings`` object, dict, or None (environment only).
        **options: Constructor overrides such as ``api_key``, ``model``, ``transport``.

    Returns:
        BaseProvider: Configured provider facade.
    """
    provider_id = str(name or _cfg_value(settings, "default_provider", default="openai") or "openai").strip().lower()
    if provider_id not in PROVIDER_CLASSES:
        raise AIError.invalid_parameter(
            "provider",
            provider_id,
            f"Supported providers: {', '.join(PROVIDER_CLASSES)}",
            valid_values=PROVIDER_CLASSES,
        )
    kwargs = provider_options(provider_id, settings)
    kwargs.update({k: v for k, v in options.items() if v is not None})
    return PROVIDER_CLASSES[provider_id](**kwargs)
