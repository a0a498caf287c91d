"""Model resolution precedence and the per-instance session default."""

from __future__ import annotations

import threading
from typing import Any, Optional


def _clean(value: Any) -> Optional[str]:
    text = str(value or "").strip()
    return text or None


def resolve_model(
    per_call: Optional[str],
    session_default: Optional[str],
    constructor_default: Optional[str],
    fallback: str,
) -> str:
    """Pick a model: per-call option > session default > constructor default > fallback.

    Blank strings count as unset. Never fails.
    """
    for candidate in (per_call, session_default, constructor_default):
        picked = _clean(candidate)
        if picked:
            return picked
    return fallback


class DefaultModelState:
    """Session default model shared by one provider instance."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._model: Optional[str] = None

    def set(self, model: str) -> None:
        with self._lock:
            self._model = _clean(model)

    def unset(self) -> None:
        with self._lock:
            self._model = None

    def get(self) -> Optional[str]:
        with self._lock:
            return self._model
