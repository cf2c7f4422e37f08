"""Graceful shutdown handling for Loki handlers.

Handlers register themselves on construction. At interpreter exit the atexit
hook closes each one, pushing any partially filled buffer and waiting a
bounded time for in-flight deliveries. A WeakSet keeps registration from
holding handlers alive.

Draining is best-effort: it never raises and never blocks past the configured
timeout per handler.
"""

from __future__ import annotations

import atexit
import weakref
from typing import Any

# Module-level state
_shutdown_in_progress: bool = False
_registered_handlers: weakref.WeakSet[Any] = weakref.WeakSet()


def _get_shutdown_settings() -> dict[str, Any]:
    """Get shutdown settings from Settings, with fallback defaults."""
    try:
        from .settings import Settings

        settings = Settings()
        return {
            "atexit_drain_enabled": settings.atexit_drain_enabled,
            "atexit_drain_timeout_seconds": settings.atexit_drain_timeout_seconds,
        }
    except Exception:  # pragma: no cover - invalid environment
        return {
            "atexit_drain_enabled": True,
            "atexit_drain_timeout_seconds": 2.0,
        }


def register_handler(handler: Any) -> None:
    """Register a handler for automatic drain on exit."""
    _registered_handlers.add(handler)


def unregister_handler(handler: Any) -> None:
    """Unregister a handler, typically after an explicit ``close()``."""
    _registered_handlers.discard(handler)


def _drain_single_handler(handler: Any, timeout: float) -> None:
    try:
        handler.close(timeout=timeout)
    except Exception:
        pass  # Best effort - don't crash on exit


def _atexit_handler() -> None:
    """Best-effort drain of all handlers on normal exit.

    Called by atexit; should never raise.
    """
    global _shutdown_in_progress

    if _shutdown_in_progress:
        return

    settings = _get_shutdown_settings()
    if not settings["atexit_drain_enabled"]:
        return

    _shutdown_in_progress = True
    timeout = settings["atexit_drain_timeout_seconds"]

    # Snapshot the handlers (WeakSet iteration can fail if GC runs)
    try:
        handlers = list(_registered_handlers)
    except Exception:  # pragma: no cover - rare GC race
        return

    for handler in handlers:
        _drain_single_handler(handler, timeout)


atexit.register(_atexit_handler)
