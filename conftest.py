"""
Root pytest configuration.
"""

from __future__ import annotations

import asyncio
import json
import os
import threading
import time
from collections.abc import Callable, Generator
from typing import Any

import httpx
import pytest


def get_test_timeout(base: float, max_multiplier: float = 5.0) -> float:
    """Apply CI timeout multiplier to a base timeout value.

    Environment:
        CI_TIMEOUT_MULTIPLIER: Multiplier for CI environments (default: 1.0)
    """
    raw = os.getenv("CI_TIMEOUT_MULTIPLIER", "1.0")
    try:
        multiplier = float(raw) if raw else 1.0
        multiplier = min(multiplier, max_multiplier)
    except ValueError:
        multiplier = 1.0
    return base * multiplier


def pytest_configure(config: pytest.Config) -> None:
    """Register custom markers for test categorization."""
    config.addinivalue_line(
        "markers",
        "critical: Tests that must never fail - core functionality",
    )
    config.addinivalue_line(
        "markers",
        "property: Property-based tests (may be slow)",
    )
    config.addinivalue_line(
        "markers",
        "asyncio: Async tests",
    )


class StubSender:
    """Records push requests and replays queued outcomes.

    Outcomes are ``httpx.Response`` objects or exceptions to raise; once the
    queue is empty every push gets a 204. When ``gate`` is given, each post
    waits for it before answering.
    """

    def __init__(
        self,
        outcomes: list[Any] | None = None,
        gate: threading.Event | None = None,
    ) -> None:
        self.outcomes = list(outcomes or [])
        self.gate = gate
        self.calls: list[dict[str, Any]] = []
        self.started = False
        self.stopped = False
        self._lock = threading.Lock()

    async def start(self) -> None:
        self.started = True

    async def stop(self) -> None:
        self.stopped = True

    async def post(
        self,
        url: str,
        *,
        content: bytes,
        headers: Any = None,
    ) -> httpx.Response:
        with self._lock:
            self.calls.append(
                {"url": url, "json": json.loads(content), "headers": dict(headers or {})}
            )
            outcome = self.outcomes.pop(0) if self.outcomes else httpx.Response(204)
        if self.gate is not None:
            await asyncio.to_thread(self.gate.wait, get_test_timeout(5.0))
        if isinstance(outcome, BaseException):
            raise outcome
        return outcome

    @property
    def bodies(self) -> list[dict[str, Any]]:
        return [call["json"] for call in self.calls]


def wait_until(predicate: Callable[[], bool], timeout: float = 5.0) -> bool:
    deadline = time.monotonic() + get_test_timeout(timeout)
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(0.005)
    return predicate()


@pytest.fixture
def make_sender() -> Callable[..., StubSender]:
    return StubSender


@pytest.fixture(name="wait_until")
def wait_until_fixture() -> Callable[..., bool]:
    return wait_until


@pytest.fixture
def reports() -> list[dict[str, Any]]:
    """Collects calls made to an injected reporter."""
    return []


@pytest.fixture
def reporter(reports: list[dict[str, Any]]) -> Callable[..., None]:
    lock = threading.Lock()

    def _report(component: str, message: str, **fields: Any) -> None:
        with lock:
            reports.append({"component": component, "message": message, **fields})

    return _report


@pytest.fixture
def capture_diagnostics() -> Generator[list[dict[str, Any]], None, None]:
    import lokihandler.core.diagnostics as diag

    captured: list[dict[str, Any]] = []
    diag.set_writer_for_tests(captured.append)
    yield captured
    diag._reset_for_tests()


@pytest.fixture(autouse=True)
def reset_diagnostics_cache() -> Generator[None, None, None]:
    """Reset the cached ``internal_logging_enabled`` flag around each test."""
    import lokihandler.core.diagnostics as diag

    diag._internal_logging_enabled = None
    yield
    diag._internal_logging_enabled = None
