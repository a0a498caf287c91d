"""Lightweight structured logging for request lifecycle events."""

from __future__ import annotations

import json
import os
import sys
from datetime import datetime, timezone
from typing import Any, Dict

_ENABLED: bool | None = None


def set_event_logging(enabled: bool | None) -> None:
    """Force event logging on/off; ``None`` restores the ``AI_LOG_EVENTS`` lookup."""
    global _ENABLED
    _ENABLED = enabled


def event_logging_enabled() -> bool:
    """Return whether structured events are currently emitted."""
    if _ENABLED is not None:
        return _ENABLED
    text = str(os.environ.get("AI_LOG_EVENTS", "") or "").strip().lower()
    return text in {"1", "true", "yes", "y", "on"}


def log_event(event: str, payload: Dict[str, Any] | None = None) -> None:
    """Emit a structured JSON log line to stderr.

    Args:
        event (str): Event name, e.g. ``request_dispatch``.
        payload (Dict[str, Any] | None): Extra fields merged into the line.
    """
    if not event_logging_enabled():
        return
    data = {
        "event": event,
        "ts": datetime.now(timezone.utc).isoformat(),
    }
    if payload:
        data.update(payload)
    print(json.dumps(data, ensure_ascii=False, default=str), file=sys.stderr)
