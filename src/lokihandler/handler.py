"""
Loki handler entrypoints.

``LokiHandler`` implements the ``handle(record)`` capability any logging
front-end can call. ``LokiLoggingHandler`` plugs it into the standard library
``logging`` module, which then stays responsible for levels and logger
configuration.
"""

from __future__ import annotations

import logging
import weakref
from collections.abc import Mapping
from typing import Any, Protocol, runtime_checkable

from .core.config import HandlerConfig
from .core.diagnostics import Reporter
from .core.encoder import EntryEncoder
from .core.records import LogRecord
from .core.settings import Settings, load_settings
from .core.shutdown import register_handler, unregister_handler
from .sinks.loki import LokiForwarder, Sender, report_to_diagnostics

COMPONENT = "loki-handler"


@runtime_checkable
class RecordHandler(Protocol):
    """Anything a front-end can hand a ``LogRecord`` to."""

    def handle(self, record: LogRecord) -> None:  # noqa: D401
        ...


class LokiHandler:
    """Encode records and forward them to Loki in batches.

    @docs:examples
    ```python
    from lokihandler import LokiHandler, LogRecord

    handler = LokiHandler(url="http://localhost:3100", enable_arg_naming=True)
    handler.handle(
        LogRecord(
            "Test Command Invoked",
            "INFO",
            args=(["ARGNAMES", "command", "method"], "DoAction", "HttpRequest"),
        )
    )
    handler.close()
    ```

    @docs:notes
    - Configuration is validated here; bad options raise ``ConfigurationError``
    - ``handle`` never raises and never waits on the network
    - Delivery failures go to ``reporter`` (stderr diagnostics by default)
    """

    def __init__(
        self,
        config: HandlerConfig | Mapping[str, Any] | None = None,
        *,
        reporter: Reporter | None = None,
        sender: Sender | None = None,
        **kwargs: Any,
    ) -> None:
        self.config = HandlerConfig.create(config, **kwargs)
        self._reporter: Reporter = reporter or report_to_diagnostics
        self._encoder = EntryEncoder(self.config)
        self._forwarder = LokiForwarder(
            self.config, reporter=self._reporter, sender=sender
        )
        # Dropped without close(): push what is buffered and stop the loop thread
        self._finalizer = weakref.finalize(
            self, self._forwarder.close, self.config.timeout_seconds
        )
        # Interpreter exit is handled by the atexit drain with its own timeout
        self._finalizer.atexit = False
        register_handler(self)

    @classmethod
    def from_settings(
        cls,
        settings: Settings | None = None,
        *,
        reporter: Reporter | None = None,
        sender: Sender | None = None,
        **overrides: Any,
    ) -> LokiHandler:
        """Build a handler from ``LOKIHANDLER_*`` environment settings."""
        config = (settings or load_settings()).to_handler_config(**overrides)
        return cls(config, reporter=reporter, sender=sender)

    @property
    def forwarder(self) -> LokiForwarder:
        return self._forwarder

    def handle(self, record: LogRecord) -> None:
        try:
            entry = self._encoder.encode(record)
        except Exception as exc:
            try:
                self._reporter(
                    COMPONENT,
                    "Error encoding log record",
                    error=str(exc),
                    error_type=type(exc).__name__,
                )
            except Exception:
                pass
            return
        self._forwarder.append(entry)

    def flush(self, timeout: float | None = None) -> bool:
        return self._forwarder.flush(timeout)

    def close(self, timeout: float | None = None) -> None:
        self._finalizer.detach()
        self._forwarder.close(timeout)
        unregister_handler(self)


def to_record(record: logging.LogRecord) -> LogRecord:
    """Convert a stdlib record without %-interpolating its arguments.

    Positional arguments are structured fields here, so ``record.msg`` is sent
    verbatim. ``logging`` unwraps a lone mapping argument; it is re-wrapped.
    """
    args = record.args
    if args is None:
        args = ()
    elif isinstance(args, Mapping):
        args = (args,)
    return LogRecord(
        message=str(record.msg),
        level=record.levelname,
        timestamp=record.created,
        args=tuple(args),
    )


class LokiLoggingHandler(logging.Handler):
    """``logging.Handler`` adapter around a ``LokiHandler``.

    Example:
        ```python
        handler = LokiLoggingHandler(url="http://localhost:3100")
        logging.getLogger("main").addHandler(handler)
        ```
    """

    def __init__(
        self,
        level: int | str = logging.NOTSET,
        *,
        handler: LokiHandler | None = None,
        **kwargs: Any,
    ) -> None:
        super().__init__(level)
        self.loki = handler or LokiHandler(**kwargs)

    def emit(self, record: logging.LogRecord) -> None:
        try:
            self.loki.handle(to_record(record))
        except Exception:
            self.handleError(record)

    def flush(self) -> None:
        self.loki.flush(self.loki.config.timeout_seconds)

    def close(self) -> None:
        try:
            self.loki.close(self.loki.config.timeout_seconds)
        finally:
            super().close()


__all__ = [
    "COMPONENT",
    "LokiHandler",
    "LokiLoggingHandler",
    "RecordHandler",
    "to_record",
]
