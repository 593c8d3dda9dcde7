"""
Shared fixtures for connector tests.

The upstream remote is simulated with httpx.MockTransport, plugged into a
fake provider so the real forwarding engine, guard and router run
unchanged.
"""

import logging
from typing import Callable, List

import httpx
import pytest
from fastapi.testclient import TestClient

from blockchain_connector.config import Settings
from blockchain_connector.main import create_app

TRAFFIC_LOGGER = "blockchain_connector.traffic"


class FakeProvider:
    """Provider that sends through a MockTransport and stamps a bearer token."""

    def __init__(self, handler: Callable, token: str = "test-token"):
        self.handler = handler
        self.token = token
        self.prepared = 0
        self.closed = False
        self.modified: List[httpx.Request] = []
        self._client = httpx.AsyncClient(transport=httpx.MockTransport(handler))

    async def prepare_access(self) -> None:
        self.prepared += 1

    def client(self) -> httpx.AsyncClient:
        return self._client

    async def modify(self, settings: Settings, request: httpx.Request) -> None:
        request.headers["Authorization"] = f"Bearer {self.token}"
        self.modified.append(request)

    async def aclose(self) -> None:
        self.closed = True
        await self._client.aclose()


def make_settings(**overrides) -> Settings:
    values = {
        "REMOTE": "remote.example.com:8443",
        "USERNAME": "user",
        "PASSWORD": "pass",
    }
    values.update(overrides)
    return Settings(**values)


@pytest.fixture
def settings_factory():
    return make_settings


@pytest.fixture
def proxy_client():
    """
    Build a TestClient for the connector.

    Usage:
        client, provider = proxy_client(handler, WHENLOG="always")
    """
    def _build(handler: Callable, **overrides):
        provider = FakeProvider(handler)
        app = create_app(make_settings(**overrides), provider)
        return TestClient(app), provider

    return _build


@pytest.fixture
def traffic_log(caplog):
    """Return a callable listing the request log blocks emitted so far."""
    caplog.set_level(logging.INFO, logger=TRAFFIC_LOGGER)

    def _blocks() -> List[str]:
        return [r.getMessage() for r in caplog.records if r.name == TRAFFIC_LOGGER]

    return _blocks


def upstream(status_code: int, content: bytes = b"", headers=None) -> httpx.Response:
    """
    Response from the simulated remote.

    The body is given as a stream so it reaches the engine unread, the way
    a network response would.
    """
    return httpx.Response(status_code, headers=headers, stream=httpx.ByteStream(content))
