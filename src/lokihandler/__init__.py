"""
Public entrypoints for lokihandler.

Buffers structured log records and pushes them in batches to a
Loki-compatible ``/loki/api/v1/push`` endpoint.
"""

from __future__ import annotations

from typing import Any

from ._version import __version__
from .core.config import HandlerConfig, OutputMode
from .core.errors import (
    ConfigurationError,
    DeliveryError,
    LokiHandlerError,
)
from .core.records import ARGNAMES_TAG, Entry, LogRecord
from .core.settings import Settings
from .handler import LokiHandler, LokiLoggingHandler, RecordHandler

VERSION = __version__

__all__ = [
    "ARGNAMES_TAG",
    "ConfigurationError",
    "DeliveryError",
    "Entry",
    "HandlerConfig",
    "LogRecord",
    "LokiHandler",
    "LokiHandlerError",
    "LokiLoggingHandler",
    "OutputMode",
    "RecordHandler",
    "Settings",
    "VERSION",
    "__version__",
    "get_handler",
]


def get_handler(
    settings: Settings | None = None,
    **overrides: Any,
) -> LokiHandler:
    """Return a handler configured from ``LOKIHANDLER_*`` environment variables.

    @docs:examples
    ```python
    import os
    from lokihandler import get_handler

    os.environ["LOKIHANDLER_URL"] = "http://localhost:3100"
    handler = get_handler(send_buffer_size=10)
    ```

    Explicit keyword overrides take precedence over the environment. Raises
    ``ConfigurationError`` when no URL is configured.
    """
    return LokiHandler.from_settings(settings, **overrides)
