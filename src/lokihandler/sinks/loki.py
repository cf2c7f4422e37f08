"""
Batching forwarder that pushes entries to Loki.

Entries are written into a fixed-size buffer. When the buffer fills, its
contents are copied out, the cursor goes back to 0 and the copy is pushed to
``<url>/loki/api/v1/push`` on a background loop. With a buffer size of 1 each
entry is pushed on its own.

Delivery failures are reported through the injected reporter and the batch is
dropped; nothing is retried and nothing is raised into the log call.
"""

from __future__ import annotations

import concurrent.futures
import threading
from typing import Any, Protocol, Sequence

import httpx

from ..core import diagnostics
from ..core.concurrency import BackgroundLoop
from ..core.config import HandlerConfig
from ..core.diagnostics import Reporter
from ..core.errors import DeliveryError, LokiHandlerError
from ..core.records import Entry
from ..core.serialization import build_push_body, serialize_push_body
from .http_client import AsyncHttpSender

COMPONENT = "loki-forwarder"


class Sender(Protocol):
    async def start(self) -> None: ...

    async def stop(self) -> None: ...

    async def post(
        self, url: str, *, content: bytes, headers: Any = None
    ) -> httpx.Response: ...


def report_to_diagnostics(component: str, message: str, **fields: Any) -> None:
    diagnostics.error(component, message, **fields)


class LokiForwarder:
    """Owns the entry buffer and the delivery path."""

    name = "loki"

    def __init__(
        self,
        config: HandlerConfig,
        *,
        reporter: Reporter | None = None,
        sender: Sender | None = None,
    ) -> None:
        self._config = config
        self._capacity = config.send_buffer_size
        self._buffer: list[Entry | None] = [None] * self._capacity
        self._cursor = 0
        self._lock = threading.Lock()
        self._reporter: Reporter = reporter or report_to_diagnostics
        self._sender: Sender = sender or AsyncHttpSender(
            timeout=config.timeout_seconds,
        )
        self._sender_started = False
        self._loop = BackgroundLoop(name="lokihandler-delivery")
        self._pending: set[concurrent.futures.Future[None]] = set()
        self._pending_lock = threading.Lock()
        self._closed = False

    @property
    def capacity(self) -> int:
        return self._capacity

    @property
    def cursor(self) -> int:
        return self._cursor

    @property
    def pending(self) -> int:
        with self._pending_lock:
            return len(self._pending)

    @property
    def closed(self) -> bool:
        return self._closed

    def append(self, entry: Entry) -> None:
        """Buffer ``entry``; dispatch a push once the buffer is full."""
        with self._lock:
            if self._closed:
                batch = None
            elif self._capacity == 1:
                self._dispatch([entry])
                return
            else:
                self._buffer[self._cursor] = entry
                self._cursor += 1
                if self._cursor < self._capacity:
                    return
                batch = self._take(self._capacity)
                # Dispatched under the lock so close() cannot stop the loop first
                self._dispatch(batch)
        if batch is None:
            diagnostics.warn(COMPONENT, "entry dropped after close")
        else:
            diagnostics.debug(COMPONENT, "sending entries to loki", count=len(batch))

    def _take(self, count: int) -> list[Entry]:
        # Caller holds self._lock. Copy before reset so the slots can be reused.
        batch = [entry for entry in self._buffer[:count] if entry is not None]
        self._cursor = 0
        return batch

    def _dispatch(self, batch: list[Entry]) -> None:
        future = self._loop.submit(self._deliver(batch))
        with self._pending_lock:
            self._pending.add(future)
        future.add_done_callback(self._discard_pending)

    def _discard_pending(self, future: concurrent.futures.Future[None]) -> None:
        with self._pending_lock:
            self._pending.discard(future)

    async def _deliver(self, batch: list[Entry]) -> None:
        try:
            await self.push(batch)
        except LokiHandlerError as exc:
            self._report(exc, len(batch))
        except Exception as exc:
            self._report(
                DeliveryError(
                    f"Failed to send data: {exc}",
                    cause=exc,
                    batch_size=len(batch),
                    component_name=COMPONENT,
                ),
                len(batch),
            )

    def _report(self, exc: LokiHandlerError, batch_size: int) -> None:
        fields: dict[str, Any] = {
            "error": exc.message,
            "error_type": type(exc).__name__,
            "error_id": exc.context.error_id,
            "severity": exc.context.severity.value,
            "batch_size": batch_size,
            "endpoint": self._config.push_url,
        }
        if isinstance(exc, DeliveryError):
            fields["status_code"] = exc.status_code
            fields["response_body"] = exc.response_body
        try:
            self._reporter(COMPONENT, "Error sending entries to loki", **fields)
        except Exception:
            # A broken reporter must not take down the delivery loop
            pass

    async def push(self, entries: Sequence[Entry]) -> None:
        """POST one push request containing ``entries`` in order.

        Raises:
            DeliveryError: on a non-2xx response or a transport failure.
        """
        if not self._sender_started:
            self._sender_started = True
            await self._sender.start()
        body = serialize_push_body(build_push_body(self._config.labels, entries))
        try:
            response = await self._sender.post(
                self._config.push_url,
                content=body,
                headers=self._config.request_headers,
            )
        except httpx.HTTPError as e:
            raise DeliveryError(
                f"Failed to send data: {e}",
                cause=e,
                batch_size=len(entries),
                component_name=COMPONENT,
            ) from e
        if not 200 <= response.status_code < 300:
            text = response.text
            raise DeliveryError(
                f"Failed to send data {text}",
                status_code=response.status_code,
                response_body=text,
                batch_size=len(entries),
                component_name=COMPONENT,
            )

    def _dispatch_partial(self) -> None:
        # Caller holds self._lock
        if self._cursor > 0:
            self._dispatch(self._take(self._cursor))

    def _wait_pending(self, timeout: float | None) -> bool:
        with self._pending_lock:
            waiting = list(self._pending)
        if not waiting:
            return True
        _, not_done = concurrent.futures.wait(waiting, timeout=timeout)
        return not not_done

    def flush(self, timeout: float | None = None) -> bool:
        """Push any partial buffer and wait for in-flight deliveries.

        Returns True when every pending delivery finished within ``timeout``.
        """
        with self._lock:
            if not self._closed:
                self._dispatch_partial()
        return self._wait_pending(timeout)

    def close(self, timeout: float | None = None) -> None:
        """Flush, release the HTTP client and stop the delivery loop. Idempotent."""
        with self._lock:
            if self._closed:
                return
            # Appends racing with close either land in this last batch or are dropped
            self._closed = True
            self._dispatch_partial()
        self._wait_pending(timeout)
        if self._sender_started and self._loop.is_running:
            try:
                self._loop.run(self._sender.stop(), timeout=timeout)
            except Exception as e:
                diagnostics.warn(COMPONENT, "error closing http client", error=str(e))
        self._loop.stop(timeout)


__all__ = ["COMPONENT", "LokiForwarder", "Sender", "report_to_diagnostics"]
