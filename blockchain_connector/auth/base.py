"""
Authentication provider contract.

The forwarding engine only talks to the bound strategy through three
operations:

- prepare_access(): make sure a usable credential exists. Called once at
  startup; raising AuthPreparationError stops the service.
- client(): the httpx.AsyncClient used for outgoing calls. Shared by all
  concurrent requests.
- modify(settings, request): attach credentials to an outgoing request in
  place. There is no error channel; a provider that cannot attach
  credentials leaves the request unauthenticated and logs a warning.
"""

import logging
import ssl
from typing import Optional, Protocol, Union, runtime_checkable

import httpx

from ..config import Settings

logger = logging.getLogger(__name__)


@runtime_checkable
class Provider(Protocol):
    """Capability every authentication strategy satisfies"""

    async def prepare_access(self) -> None:
        ...

    def client(self) -> httpx.AsyncClient:
        ...

    async def modify(self, settings: Settings, request: httpx.Request) -> None:
        ...

    async def aclose(self) -> None:
        ...


def tls_verify(settings: Settings) -> Union[bool, ssl.SSLContext]:
    """
    Build the `verify` argument for httpx from CERT_PATH / INSECURE.

    INSECURE wins over CERT_PATH.
    """
    if settings.INSECURE:
        logger.warning("TLS certificate verification is disabled")
        return False
    if settings.CERT_PATH:
        return ssl.create_default_context(cafile=settings.CERT_PATH)
    return True


def build_http_client(settings: Settings, **kwargs) -> httpx.AsyncClient:
    """
    Create the outgoing transport client.

    Redirects are not followed: the remote's status is handed back to the
    caller unchanged.
    """
    kwargs.setdefault("verify", tls_verify(settings))
    kwargs.setdefault("timeout", httpx.Timeout(settings.TIMEOUT_SECONDS))
    return httpx.AsyncClient(follow_redirects=False, **kwargs)


class HttpClientHolder:
    """
    Lazily creates one AsyncClient and reuses it for every call.

    Providers keep one of these; tests pass `transport=` to route calls to
    an httpx.MockTransport.
    """

    def __init__(self, settings: Settings, transport: Optional[httpx.AsyncBaseTransport] = None):
        self._settings = settings
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    def get(self) -> httpx.AsyncClient:
        # No await between check and assignment, so concurrent callers share one client
        if self._client is None:
            kwargs = {"transport": self._transport} if self._transport else {}
            self._client = build_http_client(self._settings, **kwargs)
        return self._client

    async def aclose(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None
