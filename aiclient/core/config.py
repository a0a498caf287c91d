"""Configuration loader and merger for aiclient. Used by load_settings to build provider config from TOML and environment variables."""

from __future__ import annotations

import hashlib
import json
import os
import tomllib
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Mapping

DEFAULT_CONFIG_PATH = Path.cwd() / "aiclient.toml"
DOTENV_PATH = Path.cwd() / ".env"
DEFAULT_TIMEOUT = 60.0


@dataclass(frozen=True)
class Settings:
    """Runtime configuration for provider construction.

    Attributes:
        default_provider: Provider id used when the caller names none.
        default_model: Constructor-level default model for the default provider.
        timeout: HTTP timeout in seconds passed to the transport unchanged.
        config_effective: Effective config dict used for hashing.
    """

    default_provider: str = "openai"
    default_model: str = ""
    openai_api_key: str = ""
    openai_base_url: str = ""
    openai_organization: str = ""
    anthropic_api_key: str = ""
    anthropic_base_url: str = ""
    anthropic_version: str = ""
    ollama_base_url: str = ""
    ollama_auto_pull: bool = True
    timeout: float = DEFAULT_TIMEOUT
    log_events: bool = False
    config_path: Path | None = None
    config_hash: str | None = None
    config_effective: Dict[str, Any] | None = None


def load_config(path: Path | None) -> Dict[str, Any]:
    """Load a TOML config file and return the aiclient section or top-level dict."""
    if not path or not path.exists():
        return {}
    data = tomllib.loads(path.read_text(encoding="utf-8"))
    if isinstance(data, dict) and "aiclient" in data and isinstance(data["aiclient"], dict):
        return data["aiclient"]
    return data or {}


def load_env(path: Path) -> None:
    """Load environment variables from a .env-style file.

    Existing variables win over file values.

    Args:
        path (Path): Filesystem path value.
    """
    if not path.exists():
        return
    for line in path.read_text(encoding="utf-8").splitlines():
        line = line.strip()
        if not line or line.startswith("#") or "=" not in line:
            continue
        key, value = line.split("=", 1)
        key = key.strip()
        value = value.strip().strip('"').strip("'")
        if key and key not in os.environ:
            os.environ[key] = value


def hash_config_dict(config: Mapping[str, Any]) -> str:
    """Return a stable SHA-256 hash of a config mapping, with secrets masked."""
    masked = {k: ("***" if k.endswith("_api_key") and v else v) for k, v in config.items()}
    payload = json.dumps(masked, sort_keys=True, separators=(",", ":"), default=str)
    return hashlib.sha256(payload.encode("utf-8")).hexdigest()


def _env_or_config(env: Mapping[str, str], config: Mapping[str, Any], env_key: str, config_key: str, default: Any) -> Any:
    if env_key in env and env[env_key] != "":
        return env[env_key]
    if config_key in config:
        return config[config_key]
    return default


def _coerce_float(value: Any, default: float) -> float:
    try:
        return float(value)
    except (TypeError, ValueError):
        return default


def _coerce_bool(value: Any, default: bool) -> bool:
    if isinstance(value, bool):
        return value
    if value is None:
        return default
    if isinstance(value, (int, float)):
        return bool(value)
    text = str(value).strip().lower()
    if text in {"1", "true", "yes", "y", "on"}:
        return True
    if text in {"0", "false", "no", "n", "off", ""}:
        return False
    return default


def _text(value: Any) -> str:
    return str(value or "").strip()


def build_effective_config(config: Mapping[str, Any], env: Mapping[str, str]) -> Dict[str, Any]:
    """Build the effective config with env overrides applied."""
    timeout = _coerce_float(_env_or_config(env, config, "AI_HTTP_TIMEOUT", "timeout", DEFAULT_TIMEOUT), DEFAULT_TIMEOUT)
    if timeout <= 0:
        timeout = DEFAULT_TIMEOUT
    effective: Dict[str, Any] = {
        "default_provider": _text(_env_or_config(env, config, "AI_PROVIDER", "default_provider", "openai")).lower()
        or "openai",
        "default_model": _text(_env_or_config(env, config, "AI_MODEL", "default_model", "")),
        "openai_api_key": _text(_env_or_config(env, config, "OPENAI_API_KEY", "openai_api_key", "")),
        "openai_base_url": _text(_env_or_config(env, config, "OPENAI_BASE_URL", "openai_base_url", "")),
        "openai_organization": _text(_env_or_config(env, config, "OPENAI_ORGANIZATION", "openai_organization", "")),
        "anthropic_api_key": _text(_env_or_config(env, config, "ANTHROPIC_API_KEY", "anthropic_api_key", "")),
        "anthropic_base_url": _text(_env_or_config(env, config, "ANTHROPIC_BASE_URL", "anthropic_base_url", "")),
        "anthropic_version": _text(_env_or_config(env, config, "ANTHROPIC_VERSION", "anthropic_version", "")),
        "ollama_base_url": _text(_env_or_config(env, config, "OLLAMA_BASE_URL", "ollama_base_url", "")),
        "ollama_auto_pull": _coerce_bool(
            _env_or_config(env, config, "OLLAMA_AUTO_PULL", "ollama_auto_pull", True), True
        ),
        "timeout": timeout,
        "log_events": _coerce_bool(_env_or_config(env, config, "AI_LOG_EVENTS", "log_events", False), False),
    }
    return effective


def load_settings(config_path: Path | None = None, *, env: Mapping[str, str] | None = None) -> Settings:
    """Load runtime settings from config file, environment variables, and defaults.

    Args:
        config_path (Path | None): Path to the configuration file. Falls back to
            ``AICLIENT_CONFIG`` and then ``./aiclient.toml``.
        env (Mapping[str, str] | None): Environment mapping; defaults to ``os.environ``
            after loading ``./.env``.

    Returns:
        Settings: Frozen settings snapshot.
    """
    if env is None:
        load_env(DOTENV_PATH)
        env = os.environ
    cfg_path = config_path or Path(env.get("AICLIENT_CONFIG") or DEFAULT_CONFIG_PATH)
    cfg = load_config(cfg_path)
    effective = build_effective_config(cfg, env)
    return Settings(
        default_provider=str(effective["default_provider"]),
        default_model=str(effective["default_model"]),
        openai_api_key=str(effective["openai_api_key"]),
        openai_base_url=str(effective["openai_base_url"]),
        openai_organization=str(effective["openai_organization"]),
        anthropic_api_key=str(effective["anthropic_api_key"]),
        anthropic_base_url=str(effective["anthropic_base_url"]),
        anthropic_version=str(effective["anthropic_version"]),
        ollama_base_url=str(effective["ollama_base_url"]),
        ollama_auto_pull=bool(effective["ollama_auto_pull"]),
        timeout=float(effective["timeout"]),
        log_events=bool(effective["log_events"]),
        config_path=cfg_path if cfg_path.exists() else None,
        config_hash=hash_config_dict(effective),
        config_effective=effective,
    )
