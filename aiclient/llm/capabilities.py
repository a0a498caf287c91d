"""Static provider/capability/model table with explicit lookup outcomes."""

from __future__ import annotations

import enum
import tomllib
from dataclasses import dataclass
from pathlib import Path
from types import MappingProxyType
from typing import Any, Dict, FrozenSet, Mapping, Optional, Union

from aiclient.llm.errors import AIError
from aiclient.llm.types import Capability

DEFAULT_TABLE_PATH = Path(__file__).with_name("capabilities.toml")
WILDCARD = "*"


class CapabilitySupport(str, enum.Enum):
    """Outcome of a registry lookup."""

    SUPPORTED = "supported"
    UNSUPPORTED = "unsupported"
    UNKNOWN_MODEL = "unknown_model"
    UNKNOWN_PROVIDER = "unknown_provider"


@dataclass(frozen=True)
class CapabilityTable:
    """Immutable provider -> capability -> models mapping."""

    version: str
    entries: Mapping[str, Mapping[Capability, FrozenSet[str]]]

    def providers(self) -> FrozenSet[str]:
        return frozenset(self.entries)

    def lookup(self, provider: str, model: str, capability: Union[Capability, str]) -> CapabilitySupport:
        """Classify a (provider, model, capability) triple."""
        caps = self.entries.get(str(provider or "").strip().lower())
        if caps is None:
            return CapabilitySupport.UNKNOWN_PROVIDER
        try:
            cap = Capability(capability)
        except ValueError:
            return CapabilitySupport.UNSUPPORTED
        models = caps.get(cap, frozenset())
        if WILDCARD in models or model in models:
            return CapabilitySupport.SUPPORTED
        explicit = [names - {WILDCARD} for names in caps.values()]
        # a provider listed only by wildcard rows knows every model
        known = not any(explicit) or any(model in names for names in explicit)
        return CapabilitySupport.UNSUPPORTED if known else CapabilitySupport.UNKNOWN_MODEL

    def supports(self, provider: str, model: str, capability: Union[Capability, str]) -> bool:
        return self.lookup(provider, model, capability) is CapabilitySupport.SUPPORTED

    def models_for(self, provider: str, capability: Union[Capability, str]) -> FrozenSet[str]:
        caps = self.entries.get(str(provider or "").strip().lower())
        if caps is None:
            return frozenset()
        try:
            return caps.get(Capability(capability), frozenset())
        except ValueError:
            return frozenset()


def _parse_table(data: Mapping[str, Any], source: str) -> CapabilityTable:
    version = str(data.get("version") or "").strip()
    if not version:
        raise AIError.validation(
            f"Capability table {source} is missing a version",
            parameter="version",
            validation_type="invalid_capability_table",
        )
    entries: Dict[str, Mapping[Capability, FrozenSet[str]]] = {}
    for provider, caps in data.items():
        if provider == "version":
            continue
        if not isinstance(caps, Mapping):
            raise AIError.validation(
                f"Capability table {source}: provider '{provider}' must be a table",
                parameter=provider,
                validation_type="invalid_capability_table",
            )
        parsed: Dict[Capability, FrozenSet[str]] = {}
        for name, models in caps.items():
            try:
                cap = Capability(name)
            except ValueError:
                raise AIError.invalid_parameter(
                    f"{provider}.{name}",
                    name,
                    "Capability must be one of the known capability names.",
                    valid_values=[c.value for c in Capability],
                ) from None
            parsed[cap] = frozenset(str(m).strip() for m in (models or []) if str(m).strip())
        entries[str(provider).lower()] = MappingProxyType(parsed)
    return CapabilityTable(version=version, entries=MappingProxyType(entries))


def load_capability_table(path: Optional[Path] = None) -> CapabilityTable:
    """Load a versioned capability table from TOML; defaults to the packaged one."""
    source = Path(path) if path else DEFAULT_TABLE_PATH
    data = tomllib.loads(source.read_text(encoding="utf-8"))
    return _parse_table(data, str(source))


DEFAULT_TABLE = load_capability_table()


def supports(provider: str, model: str, capability: Union[Capability, str]) -> bool:
    """Return True when the packaged table lists ``model`` for ``capability``."""
    return DEFAULT_TABLE.supports(provider, model, capability)


def models_for(provider: str, capability: Union[Capability, str]) -> FrozenSet[str]:
    """Return the packaged model set for a provider capability (empty if unknown)."""
    return DEFAULT_TABLE.models_for(provider, capability)


def lookup(provider: str, model: str, capability: Union[Capability, str]) -> CapabilitySupport:
    return DEFAULT_TABLE.lookup(provider, model, capability)


def require(
    provider: str,
    model: str,
    capability: Union[Capability, str],
    *,
    table: Optional[CapabilityTable] = None,
    display_name: Optional[str] = None,
) -> None:
    """Raise a validation error unless ``model`` supports ``capability``."""
    table = table or DEFAULT_TABLE
    if table.supports(provider, model, capability):
        return
    cap = Capability(capability)
    raise AIError.invalid_model(
        model,
        cap.value,
        provider=display_name or provider,
        valid_models=table.models_for(provider, cap) - {WILDCARD},
    )
