"""
Internal diagnostics side-channel.

Diagnostics are structured records about the handler itself (delivery
failures, dropped entries). They are written to stderr as JSON lines and never
go back through the handler, so a failing Loki endpoint cannot recurse into
itself. Writing a diagnostic never raises.
"""

from __future__ import annotations

import json
import sys
import time
from typing import Any, Callable, Protocol

Writer = Callable[[dict[str, Any]], None]

# Cached `internal_logging_enabled` setting; None means "not read yet"
_internal_logging_enabled: bool | None = None


class Reporter(Protocol):
    """Injected diagnostic capability: ``reporter(component, message, **fields)``."""

    def __call__(self, component: str, message: str, **fields: Any) -> None: ...


def _default_writer(payload: dict[str, Any]) -> None:
    line = json.dumps(payload, separators=(",", ":"), default=str)
    sys.stderr.write(line + "\n")
    sys.stderr.flush()


_writer: Writer = _default_writer


def _is_enabled() -> bool:
    global _internal_logging_enabled
    if _internal_logging_enabled is None:
        try:
            from .settings import Settings

            _internal_logging_enabled = bool(Settings().internal_logging_enabled)
        except Exception:
            _internal_logging_enabled = False
    return _internal_logging_enabled


def emit(level: str, component: str, message: str, **fields: Any) -> None:
    payload: dict[str, Any] = {
        "ts": time.time(),
        "level": level,
        "component": component,
        "message": message,
    }
    payload.update(fields)
    try:
        _writer(payload)
    except Exception:
        # Diagnostics must never break the caller
        pass


def debug(component: str, message: str, **fields: Any) -> None:
    """Emit a DEBUG diagnostic; only written when internal logging is enabled."""
    if _is_enabled():
        emit("DEBUG", component, message, **fields)


def warn(component: str, message: str, **fields: Any) -> None:
    emit("WARN", component, message, **fields)


def error(component: str, message: str, **fields: Any) -> None:
    emit("ERROR", component, message, **fields)


def set_writer_for_tests(writer: Writer) -> None:
    global _writer
    _writer = writer


def _reset_for_tests() -> None:
    global _writer, _internal_logging_enabled
    _writer = _default_writer
    _internal_logging_enabled = None
