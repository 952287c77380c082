"""
Shared test configuration and fixtures for gateway tests.

Provides settings, metrics clients, and an in-memory stand-in for ``aiohttp.ClientSession``
so the pipeline can be exercised without network access.
"""

import asyncio
from typing import Any, Dict, List, Optional, Tuple
from unittest.mock import AsyncMock, Mock

import pytest
from multidict import CIMultiDict, CIMultiDictProxy
from yarl import URL

from dweb.brave.gateway.app.config import Settings
from dweb.brave.gateway.app.health import HealthGauge
from dweb.brave.gateway.app.metrics import NoOpMetricsClient
from dweb.brave.gateway.resolve.cache import ResolutionCache

TEST_API_URL = "https://api.example.com"

TEST_GATEWAYS = [
    "https://gw1.example.com/ipfs/{cid}",
    "https://gw2.example.com/ipfs/{cid}",
    "https://gw3.example.com/ipfs/{cid}",
]


def build_response(
    status: int = 200,
    body: bytes = b"",
    content_type: Optional[str] = None,
    url: str = "https://gw1.example.com/ipfs/QmTest",
    reason: Optional[str] = None,
    json_body: Any = None,
) -> Mock:
    """Build a mock ``aiohttp.ClientResponse``."""
    headers: CIMultiDict[str] = CIMultiDict()
    if content_type is not None:
        headers["Content-Type"] = content_type

    response = Mock()
    response.status = status
    response.reason = reason or ("OK" if 200 <= status < 300 else "Internal Server Error")
    response.headers = CIMultiDictProxy(headers)
    response.url = URL(url)
    response.read = AsyncMock(return_value=body)
    response.text = AsyncMock(return_value=body.decode("utf-8", errors="replace"))
    response.json = AsyncMock(return_value=json_body)
    response.release = Mock()
    return response


class FakeRequest:
    """Awaitable and async context manager, like aiohttp's request context manager."""

    def __init__(self, coro) -> None:
        self._coro = coro
        self._response: Any = None

    def __await__(self):
        return self._coro.__await__()

    async def __aenter__(self):
        self._response = await self._coro
        return self._response

    async def __aexit__(self, exc_type, exc, tb) -> None:
        self._response.release()


class FakeSession:
    """
    In-memory replacement for ``aiohttp.ClientSession.get``.

    Each URL is given a list of outcomes (responses or exceptions) consumed one per request;
    the last outcome repeats. An optional delay in seconds is waited before each outcome.
    """

    def __init__(self) -> None:
        self.routes: Dict[str, Tuple[List[Any], float]] = {}
        self.calls: List[Tuple[str, Dict[str, Any]]] = []

    def route(self, url: str, *outcomes: Any, delay: float = 0) -> None:
        self.routes[url] = (list(outcomes), delay)

    def get(self, url: str, **kwargs: Any) -> FakeRequest:
        self.calls.append((url, kwargs))
        return FakeRequest(self._respond(url))

    def call_count(self, url: str) -> int:
        return len([call for call in self.calls if call[0] == url])

    async def _respond(self, url: str) -> Any:
        outcomes, delay = self.routes[url]
        outcome = outcomes.pop(0) if len(outcomes) > 1 else outcomes[0]
        if delay > 0:
            await asyncio.sleep(delay)
        if isinstance(outcome, BaseException):
            raise outcome
        return outcome


@pytest.fixture
def make_response():
    return build_response


@pytest.fixture
def fake_session() -> FakeSession:
    return FakeSession()


@pytest.fixture
def metrics_client() -> NoOpMetricsClient:
    return NoOpMetricsClient()


@pytest.fixture
def cache() -> ResolutionCache:
    return ResolutionCache(max_entries=100)


@pytest.fixture
def health_gauge() -> HealthGauge:
    return HealthGauge()


@pytest.fixture
def settings() -> Settings:
    return Settings(
        unstoppable_api_key="test-api-key",
        resolution_api_url=TEST_API_URL,
        ipfs_gateways=list(TEST_GATEWAYS),
        gateway_retries=3,
        gateway_retry_delay_ms=0,
        metrics_backend="none",
    )
