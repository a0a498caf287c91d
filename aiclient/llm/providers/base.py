"""Shared plumbing for provider facades: defaults, dispatch and capability checks."""

from __future__ import annotations

import os
from typing import Any, Dict, Mapping, Optional, Union

from aiclient.llm import capabilities as registry
from aiclient.llm.capabilities import CapabilityTable
from aiclient.llm.defaults import DefaultModelState, resolve_model
from aiclient.llm.errors import AIError
from aiclient.llm.filesystem import Filesystem, LocalFilesystem
from aiclient.llm.transport import Dispatcher, RequestsTransport, Transport
from aiclient.llm.types import Capability, Payload, TransportResult


class BaseProvider:
    """Common state for OpenAI, Anthropic and Ollama facades.

    Subclasses set ``name``, ``display_name``, ``default_base_url`` and
    ``fallback_models`` and implement ``_headers``.
    """

    name = ""
    display_name = ""
    default_base_url = ""
    api_key_env: Optional[str] = None
    fallback_models: Mapping[Capability, str] = {}

    def __init__(
        self,
        *,
        api_key: Optional[str] = None,
        base_url: Optional[str] = None,
        model: Optional[str] = None,
        timeout: Optional[float] = 60.0,
        transport: Optional[Transport] = None,
        filesystem: Optional[Filesystem] = None,
        capability_table: Optional[CapabilityTable] = None,
    ) -> None:
        self._api_key = str(api_key or "").strip() or None
        self.base_url = str(base_url or "").strip().rstrip("/") or self.default_base_url
        self.constructor_model = str(model or "").strip() or None
        self.timeout = timeout
        self.fs = filesystem or LocalFilesystem()
        self.table = capability_table or capability_table_default()
        self._defaults = DefaultModelState()
        self.dispatcher = Dispatcher(
            transport or RequestsTransport(),
            provider=self.display_name,
            base_url=self.base_url,
            timeout=timeout,
        )

    # Default model accessors

    def set_default_model(self, model: str) -> None:
        self._defaults.set(model)

    def unset_default_model(self) -> None:
        self._defaults.unset()

    def get_default_model(self) -> Optional[str]:
        return self._defaults.get()

    def resolve_model(self, capability: Capability, options: Optional[Mapping[str, Any]] = None) -> str:
        per_call = (options or {}).get("model")
        return resolve_model(
            per_call,
            self._defaults.get(),
            self.constructor_model,
            self.fallback_models.get(capability, ""),
        )

    def is_model_capable(self, model: str, capability: Union[Capability, str]) -> bool:
        return self.table.supports(self.name, model, capability)

    def require_capability(self, model: str, capability: Capability) -> None:
        registry.require(self.name, model, capability, table=self.table, display_name=self.display_name)

    # Credentials and dispatch

    @property
    def api_key(self) -> Optional[str]:
        if self._api_key:
            return self._api_key
        if self.api_key_env:
            return str(os.environ.get(self.api_key_env) or "").strip() or None
        return None

    def require_api_key(self) -> str:
        key = self.api_key
        if not key:
            raise AIError.authentication(
                f"{self.display_name} API key not configured. Set {self.api_key_env} or pass api_key.",
                provider=self.display_name,
                http_status=401,
            )
        return key

    def _headers(self, payload: Payload) -> Dict[str, str]:
        raise NotImplementedError

    def send(self, payload: Payload) -> TransportResult:
        """Dispatch one built payload; headers are computed before any I/O."""
        headers = self._headers(payload)
        return self.dispatcher.send(payload, headers)


def capability_table_default() -> CapabilityTable:
    return registry.DEFAULT_TABLE


def merged_options(options: Optional[Mapping[str, Any]]) -> Dict[str, Any]:
    """Copy caller options, dropping keys explicitly set to None."""
    return {k: v for k, v in dict(options or {}).items() if v is not None}
