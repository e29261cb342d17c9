"""Shared fixtures for the Balboa client test suite.

HTTP traffic goes through a queue-driven httpx transport so no real
verification service is needed.
"""

from __future__ import annotations

import json
from typing import Callable, Optional, Union

import httpx
import pytest

from balboa.client import VerificationClient
from balboa.config import ClientConfig


# =========================================================================
# Mock transports for httpx
# =========================================================================


class MockTransport(httpx.AsyncBaseTransport):
    """Mock HTTP transport that returns canned responses in order.

    Queued items may be ``httpx.Response`` objects or exceptions; an
    exception is raised instead of returning a response.
    """

    def __init__(self):
        self.responses: list[Union[httpx.Response, Exception]] = []
        self.requests: list[httpx.Request] = []
        self._call_count = 0

    def add_response(
        self,
        status_code: int = 200,
        json_data: dict | list | None = None,
        content: bytes = b"",
        headers: dict | None = None,
    ) -> "MockTransport":
        """Queue a response to be returned by the next request."""
        if json_data is not None:
            content = json.dumps(json_data).encode()
            headers = headers or {}
            headers["content-type"] = "application/json"
        self.responses.append(
            httpx.Response(status_code=status_code, content=content, headers=headers or {})
        )
        return self

    def add_error(self, error: Exception) -> "MockTransport":
        """Queue an exception to be raised by the next request."""
        self.responses.append(error)
        return self

    @property
    def call_count(self) -> int:
        return self._call_count

    def paths(self) -> list[str]:
        return [r.url.path for r in self.requests]

    def bodies(self) -> list[dict]:
        return [json.loads(r.content) if r.content else {} for r in self.requests]

    async def handle_async_request(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self._call_count < len(self.responses):
            item = self.responses[self._call_count]
            self._call_count += 1
            if isinstance(item, Exception):
                raise item
            return item
        self._call_count += 1
        return httpx.Response(500, content=b'{"error": "No mock response queued"}')


class FakeClock:
    """Monotonic clock the tests advance by hand."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


# =========================================================================
# Canned payloads
# =========================================================================

SESSION_ID = "sess_8f2c1a"

PENDING = {"status": "pending"}

COMPLETED_FLAT = {
    "status": "completed",
    "verified": True,
    "confidence": 0.92,
    "details": {"phraseAccuracy": 0.95, "voiceMatch": 0.9, "fingerprintValid": True},
}

COMPLETED_NESTED = {
    "status": "completed",
    "result": {
        "verified": True,
        "confidence": 0.87,
        "processingTime": 1840,
        "reason": "Answer matched",
    },
}

SESSION_CREATED = {"id": SESSION_ID, "status": "pending"}


# =========================================================================
# Fixtures
# =========================================================================


@pytest.fixture
def mock_transport() -> MockTransport:
    return MockTransport()


@pytest.fixture
def fast_config() -> ClientConfig:
    """Config with zero backoff so retry loops run instantly."""
    return ClientConfig(
        base_url="https://api.test",
        api_key="test-key",
        timeout_ms=5000,
        retries=2,
        backoff_base_ms=0,
        poll_interval_ms=0,
    )


@pytest.fixture
def make_client(
    mock_transport: MockTransport, fast_config: ClientConfig
) -> Callable[..., VerificationClient]:
    """Factory for clients wired to the mock transport."""
    def _make(config: Optional[ClientConfig] = None, **kwargs) -> VerificationClient:
        if config is None:
            config = fast_config
        return VerificationClient(config, transport=mock_transport, **kwargs)

    return _make
