"""Static username/password strategy (HTTP Basic)."""

import base64
import logging
from typing import Optional

import httpx

from ..config import Settings
from .base import HttpClientHolder

logger = logging.getLogger(__name__)


def basic_auth_header(username: str, password: str) -> str:
    credentials = f"{username}:{password}".encode("utf-8")
    return "Basic " + base64.b64encode(credentials).decode("ascii")


class BasicAuthProvider:
    """Attaches the configured username and password to every request."""

    name = "basic"

    def __init__(self, settings: Settings, transport: Optional[httpx.AsyncBaseTransport] = None):
        self.settings = settings
        self._http = HttpClientHolder(settings, transport)
        self._header = basic_auth_header(settings.USERNAME or "", settings.PASSWORD or "")

    async def prepare_access(self) -> None:
        # Nothing to acquire; credentials are static
        logger.info(f"Using basic auth as '{self.settings.USERNAME}' for {self.settings.REMOTE}")

    def client(self) -> httpx.AsyncClient:
        return self._http.get()

    async def modify(self, settings: Settings, request: httpx.Request) -> None:
        request.headers["Authorization"] = self._header

    async def aclose(self) -> None:
        await self._http.aclose()
