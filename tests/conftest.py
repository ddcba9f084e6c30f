"""
Shared fixtures for the sentiment core tests.

============================================================
PURPOSE
============================================================
- Deterministic time (MockClock)
- Recording, non-blocking sleep for backoff timing
- Fresh config manager / health monitor per test
- Fake HTTP client for provider adapters

============================================================
"""

from datetime import datetime, timezone
from typing import Any, Mapping, Optional, Union

import pytest

from core.clock import ClockFactory, MockClock
from data_source_health import (
    HealthMonitorConfig,
    ProviderHealthMonitor,
    reset_health_monitor,
    set_config,
)
from sentiment import (
    ConfigManager,
    HttpClient,
    HttpResponse,
    MemoryStore,
    reset_analyzer,
    reset_config_manager,
)


START_TIME = datetime(2024, 1, 1, 12, 0, 0, tzinfo=timezone.utc)


# ============================================================
# HELPERS
# ============================================================

class RecordingSleep:
    """Async sleep replacement that records requested delays."""

    def __init__(self, clock: Optional[MockClock] = None) -> None:
        self.delays: list[float] = []
        self.clock = clock

    async def __call__(self, seconds: float) -> None:
        self.delays.append(seconds)
        if self.clock is not None:
            self.clock.advance(seconds)


class FakeHttpClient(HttpClient):
    """
    Scripted HttpClient.

    Responses are returned in order; an Exception in the script
    is raised instead. The last entry repeats once the script
    runs out.
    """

    def __init__(self, responses: Optional[list[Union[HttpResponse, Exception]]] = None) -> None:
        self.responses = list(responses or [])
        self.requests: list[dict[str, Any]] = []
        self.closed = False

    def queue(self, *responses: Union[HttpResponse, Exception]) -> None:
        self.responses.extend(responses)

    async def request(
        self,
        method: str,
        url: str,
        *,
        headers: Optional[Mapping[str, str]] = None,
        params: Optional[Mapping[str, Any]] = None,
        data: Optional[Union[str, Mapping[str, Any]]] = None,
    ) -> HttpResponse:
        self.requests.append({
            "method": method,
            "url": url,
            "headers": dict(headers or {}),
            "params": dict(params or {}),
            "data": data,
        })
        if not self.responses:
            raise AssertionError(f"Unexpected request: {method} {url}")
        response = self.responses.pop(0) if len(self.responses) > 1 else self.responses[0]
        if isinstance(response, Exception):
            raise response
        return response

    async def close(self) -> None:
        self.closed = True


# ============================================================
# FIXTURES
# ============================================================

@pytest.fixture(autouse=True)
def reset_singletons():
    """Every test starts from fresh process-wide state."""
    reset_config_manager()
    reset_health_monitor()
    reset_analyzer()
    set_config(None)
    yield
    reset_config_manager()
    reset_health_monitor()
    reset_analyzer()
    set_config(None)
    ClockFactory.reset()


@pytest.fixture
def mock_clock():
    """Mock clock installed globally for the test."""
    with ClockFactory.use_mock(START_TIME) as clock:
        yield clock


@pytest.fixture
def no_sleep(mock_clock):
    """Sleep that returns immediately and advances the mock clock."""
    return RecordingSleep(mock_clock)


@pytest.fixture
def health_monitor(mock_clock):
    """Fresh health monitor on the mock clock."""
    return ProviderHealthMonitor(config=HealthMonitorConfig(), clock=mock_clock)


@pytest.fixture
def memory_store():
    return MemoryStore()


@pytest.fixture
def config_manager(memory_store):
    """Config manager over an empty in-memory store (defaults)."""
    return ConfigManager(store=memory_store)


@pytest.fixture
def fake_http():
    return FakeHttpClient()


@pytest.fixture
def make_http():
    """Factory for scripted HTTP clients."""
    return FakeHttpClient


@pytest.fixture
def make_response():
    """Factory for HttpResponse objects."""
    def _make(status: int = 200, body: Any = None, headers: Optional[dict[str, str]] = None) -> HttpResponse:
        return HttpResponse(status=status, headers=headers or {}, body=body)
    return _make
