from __future__ import annotations

import threading
from typing import Any

import httpx
import pytest

from lokihandler.core.config import HandlerConfig
from lokihandler.core.errors import DeliveryError
from lokihandler.core.records import Entry
from lokihandler.sinks.http_client import AsyncHttpSender
from lokihandler.sinks.loki import COMPONENT, LokiForwarder


def _config(**kwargs: Any) -> HandlerConfig:
    kwargs.setdefault("labels", {"host": "unit"})
    return HandlerConfig.create(url="http://loki", **kwargs)


def _entry(n: int) -> Entry:
    return Entry(f"{n}000000", f'level="INFO" text="m{n}"')


@pytest.fixture
def forwarders():
    created: list[LokiForwarder] = []
    yield created
    for fwd in created:
        fwd.close(timeout=5)


def _forwarder(forwarders, sender, reporter=None, **kwargs: Any) -> LokiForwarder:
    fwd = LokiForwarder(_config(**kwargs), sender=sender, reporter=reporter)
    forwarders.append(fwd)
    return fwd


class TestBuffering:
    @pytest.mark.critical
    @pytest.mark.parametrize("capacity", [2, 3, 7, 50])
    def test_flushes_exactly_at_capacity(
        self, forwarders, make_sender, wait_until, capacity: int
    ) -> None:
        sender = make_sender()
        fwd = _forwarder(forwarders, sender, send_buffer_size=capacity)

        for n in range(capacity - 1):
            fwd.append(_entry(n))
        assert fwd.cursor == capacity - 1
        assert fwd.pending == 0
        assert sender.calls == []

        fwd.append(_entry(capacity))

        assert fwd.cursor == 0
        assert wait_until(lambda: len(sender.calls) == 1)

    @pytest.mark.critical
    @pytest.mark.parametrize("capacity", [2, 5, 50])
    def test_full_buffer_is_pushed_in_order(
        self, forwarders, make_sender, wait_until, capacity: int
    ) -> None:
        sender = make_sender()
        fwd = _forwarder(forwarders, sender, send_buffer_size=capacity)

        for n in range(capacity):
            fwd.append(_entry(n))

        assert fwd.cursor == 0
        assert wait_until(lambda: len(sender.calls) == 1)
        values = sender.bodies[0]["streams"][0]["values"]
        assert values == [list(_entry(n)) for n in range(capacity)]

    def test_no_push_below_capacity(self, forwarders, make_sender, wait_until) -> None:
        sender = make_sender()
        fwd = _forwarder(forwarders, sender, send_buffer_size=3)

        fwd.append(_entry(1))
        fwd.append(_entry(2))

        assert fwd.cursor == 2
        assert fwd.pending == 0
        assert sender.calls == []

    @pytest.mark.critical
    def test_capacity_one_pushes_every_entry(
        self, forwarders, make_sender, wait_until
    ) -> None:
        sender = make_sender()
        fwd = _forwarder(forwarders, sender, send_buffer_size=1)

        for n in range(3):
            fwd.append(_entry(n))

        assert wait_until(lambda: len(sender.calls) == 3)
        assert fwd.cursor == 0
        for body in sender.bodies:
            assert len(body["streams"][0]["values"]) == 1
        sent = sorted(body["streams"][0]["values"][0][0] for body in sender.bodies)
        assert sent == sorted(_entry(n).timestamp for n in range(3))

    def test_batch_is_captured_before_reuse(
        self, forwarders, make_sender, wait_until
    ) -> None:
        gate = threading.Event()
        sender = make_sender(gate=gate)
        fwd = _forwarder(forwarders, sender, send_buffer_size=2)

        fwd.append(_entry(1))
        fwd.append(_entry(2))
        # First push is in flight; refill the same slots
        fwd.append(_entry(3))
        fwd.append(_entry(4))
        gate.set()

        assert wait_until(lambda: len(sender.calls) == 2)
        batches = sorted(
            [tuple(v[1] for v in b["streams"][0]["values"]) for b in sender.bodies]
        )
        assert batches == [
            (_entry(1).line, _entry(2).line),
            (_entry(3).line, _entry(4).line),
        ]

    def test_append_does_not_wait_for_delivery(
        self, forwarders, make_sender, wait_until
    ) -> None:
        gate = threading.Event()
        sender = make_sender(gate=gate)
        fwd = _forwarder(forwarders, sender, send_buffer_size=1)

        fwd.append(_entry(1))

        assert fwd.pending == 1
        gate.set()
        assert wait_until(lambda: fwd.pending == 0)


class TestWireFormat:
    def test_push_request_shape(self, forwarders, make_sender, wait_until) -> None:
        sender = make_sender()
        fwd = _forwarder(
            forwarders,
            sender,
            labels={"service": "api", "env": "test"},
            tenant_id="tenant-x",
        )

        fwd.append(_entry(7))

        assert wait_until(lambda: len(sender.calls) == 1)
        call = sender.calls[0]
        assert call["url"] == "http://loki/loki/api/v1/push"
        assert call["headers"]["Content-Type"] == "application/json"
        assert call["headers"]["X-Scope-OrgID"] == "tenant-x"
        assert call["json"] == {
            "streams": [
                {
                    "stream": {"service": "api", "env": "test"},
                    "values": [["7000000", 'level="INFO" text="m7"']],
                }
            ]
        }


class TestFailures:
    @pytest.mark.critical
    def test_non_2xx_is_reported_and_dropped(
        self, forwarders, make_sender, reporter, reports, wait_until
    ) -> None:
        sender = make_sender([httpx.Response(500, text="ingester down")])
        fwd = _forwarder(forwarders, sender, reporter, send_buffer_size=2)

        fwd.append(_entry(1))
        fwd.append(_entry(2))

        assert fwd.cursor == 0
        assert wait_until(lambda: len(reports) == 1)
        report = reports[0]
        assert report["component"] == COMPONENT
        assert report["message"] == "Error sending entries to loki"
        assert report["error_type"] == "DeliveryError"
        assert report["status_code"] == 500
        assert report["response_body"] == "ingester down"
        assert report["batch_size"] == 2
        assert report["severity"] == "high"

    def test_transport_failure_is_reported(
        self, forwarders, make_sender, reporter, reports, wait_until
    ) -> None:
        sender = make_sender([httpx.ConnectError("refused")])
        fwd = _forwarder(forwarders, sender, reporter)

        fwd.append(_entry(1))

        assert wait_until(lambda: len(reports) == 1)
        assert reports[0]["status_code"] is None
        assert "refused" in reports[0]["error"]

    def test_failed_batch_is_not_retried(
        self, forwarders, make_sender, reporter, reports, wait_until
    ) -> None:
        sender = make_sender([httpx.Response(400, text="bad"), httpx.Response(204)])
        fwd = _forwarder(forwarders, sender, reporter, send_buffer_size=2)

        for n in range(4):
            fwd.append(_entry(n))

        assert wait_until(lambda: len(sender.calls) == 2)
        assert fwd.flush(timeout=5)
        assert len(reports) == 1
        assert len(sender.calls) == 2

    def test_unexpected_sender_error_is_reported(
        self, forwarders, make_sender, reporter, reports, wait_until
    ) -> None:
        sender = make_sender([RuntimeError("boom")])
        fwd = _forwarder(forwarders, sender, reporter)

        fwd.append(_entry(1))

        assert wait_until(lambda: len(reports) == 1)
        assert reports[0]["error_type"] == "DeliveryError"

    def test_broken_reporter_is_contained(
        self, forwarders, make_sender, wait_until
    ) -> None:
        def _bad_reporter(component: str, message: str, **fields: Any) -> None:
            raise ValueError("reporter down")

        sender = make_sender([httpx.Response(500), httpx.Response(204)])
        fwd = _forwarder(forwarders, sender, _bad_reporter)

        fwd.append(_entry(1))
        fwd.append(_entry(2))

        assert wait_until(lambda: len(sender.calls) == 2)
        assert fwd.flush(timeout=5)

    def test_default_reporter_writes_diagnostics(
        self, forwarders, make_sender, capture_diagnostics, wait_until
    ) -> None:
        sender = make_sender([httpx.Response(503, text="unavailable")])
        fwd = _forwarder(forwarders, sender)

        fwd.append(_entry(1))

        assert wait_until(lambda: len(capture_diagnostics) == 1)
        diag = capture_diagnostics[0]
        assert diag["level"] == "ERROR"
        assert diag["component"] == COMPONENT
        assert diag["response_body"] == "unavailable"


class TestLifecycle:
    def test_flush_pushes_partial_buffer(
        self, forwarders, make_sender, wait_until
    ) -> None:
        sender = make_sender()
        fwd = _forwarder(forwarders, sender, send_buffer_size=10)

        fwd.append(_entry(1))
        fwd.append(_entry(2))

        assert fwd.flush(timeout=5) is True
        assert fwd.cursor == 0
        assert len(sender.calls) == 1
        assert len(sender.bodies[0]["streams"][0]["values"]) == 2

    def test_flush_with_nothing_buffered(self, forwarders, make_sender) -> None:
        sender = make_sender()
        fwd = _forwarder(forwarders, sender, send_buffer_size=10)

        assert fwd.flush(timeout=1) is True
        assert sender.calls == []

    def test_close_drains_and_stops_sender(self, make_sender) -> None:
        sender = make_sender()
        fwd = LokiForwarder(_config(send_buffer_size=5), sender=sender)

        fwd.append(_entry(1))
        fwd.close(timeout=5)
        fwd.close(timeout=5)

        assert fwd.closed
        assert len(sender.calls) == 1
        assert sender.started and sender.stopped

    def test_append_after_close_is_dropped(
        self, make_sender, capture_diagnostics
    ) -> None:
        sender = make_sender()
        fwd = LokiForwarder(_config(), sender=sender)
        fwd.close(timeout=5)

        fwd.append(_entry(1))

        assert sender.calls == []
        assert capture_diagnostics[-1]["message"] == "entry dropped after close"

    @pytest.mark.parametrize("capacity", [1, 7])
    def test_close_racing_appends_loses_nothing_silently(
        self, make_sender, capture_diagnostics, capacity: int
    ) -> None:
        sender = make_sender()
        fwd = LokiForwarder(_config(send_buffer_size=capacity), sender=sender)
        total = 2000
        started = threading.Event()

        def _producer() -> None:
            for n in range(total):
                fwd.append(_entry(n))
                if n == 50:
                    started.set()

        producer = threading.Thread(target=_producer)
        producer.start()
        assert started.wait(5)
        fwd.close(timeout=5)
        producer.join(5)

        delivered = sum(len(body["streams"][0]["values"]) for body in sender.bodies)
        dropped = sum(
            1 for d in capture_diagnostics if d["message"] == "entry dropped after close"
        )
        assert delivered + dropped == total
        assert fwd.cursor == 0


class TestHttpSender:
    def test_mock_transport_round_trip(self, wait_until) -> None:
        seen: list[httpx.Request] = []

        def _handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(204)

        sender = AsyncHttpSender(transport=httpx.MockTransport(_handler))
        fwd = LokiForwarder(_config(), sender=sender)

        fwd.append(_entry(1))
        fwd.close(timeout=5)

        assert len(seen) == 1
        request = seen[0]
        assert request.method == "POST"
        assert str(request.url) == "http://loki/loki/api/v1/push"
        assert request.headers["content-type"] == "application/json"
        assert b'"values":[["1000000"' in request.content

    def test_mock_transport_error_status(self, reporter, reports) -> None:
        sender = AsyncHttpSender(
            transport=httpx.MockTransport(
                lambda request: httpx.Response(429, text="rate limited")
            )
        )
        fwd = LokiForwarder(_config(), sender=sender, reporter=reporter)

        fwd.append(_entry(1))
        fwd.close(timeout=5)

        assert reports and reports[0]["status_code"] == 429
        assert reports[0]["response_body"] == "rate limited"


class TestPush:
    @pytest.mark.asyncio
    async def test_push_raises_delivery_error_on_status(self, make_sender) -> None:
        sender = make_sender([httpx.Response(400, text="entry out of order")])
        fwd = LokiForwarder(_config(), sender=sender)

        with pytest.raises(DeliveryError) as exc_info:
            await fwd.push([_entry(1), _entry(2)])

        err = exc_info.value
        assert err.status_code == 400
        assert err.response_body == "entry out of order"
        assert err.batch_size == 2
        assert "entry out of order" in err.message
        assert sender.started

    @pytest.mark.asyncio
    async def test_push_wraps_transport_errors(self, make_sender) -> None:
        cause = httpx.ReadTimeout("slow")
        fwd = LokiForwarder(_config(), sender=make_sender([cause]))

        with pytest.raises(DeliveryError) as exc_info:
            await fwd.push([_entry(1)])

        assert exc_info.value.__cause__ is cause
        assert exc_info.value.status_code is None

    @pytest.mark.asyncio
    async def test_push_success(self, make_sender) -> None:
        sender = make_sender([httpx.Response(204)])
        fwd = LokiForwarder(_config(), sender=sender)

        await fwd.push([_entry(1)])

        assert sender.bodies[0]["streams"][0]["values"] == [list(_entry(1))]
