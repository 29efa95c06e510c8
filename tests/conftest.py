"""
Shared fixtures: a controllable clock, a gateway without retry delays,
and mock HTTP clients.
"""
from typing import Callable

import httpx
import pytest

from atlas.gateway import ExternalDataGateway, TTLCache


class FakeClock:
    """Epoch-millisecond clock that only moves when told to."""

    def __init__(self, start_ms: float = 1_700_000_000_000.0):
        self.now_ms = start_ms

    def __call__(self) -> float:
        return self.now_ms

    def advance(self, ms: float) -> None:
        self.now_ms += ms


def _mock_http(handler: Callable[[httpx.Request], httpx.Response]) -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


@pytest.fixture
def mock_http():
    """Factory for an AsyncClient whose requests are answered by `handler`."""
    return _mock_http


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def gateway(clock):
    return ExternalDataGateway(TTLCache(clock), timeout=1.0, max_attempts=2, backoff_seconds=0.0)
