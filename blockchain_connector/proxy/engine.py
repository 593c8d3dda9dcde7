"""
Forwarding engine.

Handles one inbound request end to end:

1. Buffer the inbound body
2. Point the URL at the configured remote (https, or http for loopback)
3. Log method and URL (and the body when WHATLOG is detailed)
4. Build the outgoing request with the same method, headers and body
5. Let the bound provider attach credentials
6. Send it with the provider's client
7. Read the response, decompressing it when Content-Encoding is gzip
8. Log the status (and the body when detailed)
9. Hand status and body back to the caller

Failures in steps 4, 6 and 7 abort the request; the completion guard then
answers 502. The engine never knows which provider is bound.

Header sharing: the outgoing request's header map is published on the
inbound request as `request.state.forward_headers`. Changes the provider
makes are therefore visible from the inbound side for the rest of the
request. The map is created per request, so concurrent requests never
share one.
"""

import gzip
import io
import logging
import zlib
from typing import Tuple

import httpx
from fastapi import Request, Response

from ..auth.base import Provider
from ..config import Settings
from ..errors import ConstructionError, DecodeError, TransportError
from .guard import CompletionGuard
from .loopback import is_loopback_addr

logger = logging.getLogger(__name__)

# Managed by the transport for the outgoing request
EXCLUDED_REQUEST_HEADERS = {"host", "content-length", "transfer-encoding", "trailer"}


def decompress_gzip(data: bytes) -> bytes:
    """
    Decompress a gzip payload.

    Raises:
        DecodeError: If the payload is not valid gzip
    """
    try:
        with gzip.GzipFile(fileobj=io.BytesIO(data)) as reader:
            return reader.read()
    except (OSError, EOFError, zlib.error) as e:
        raise DecodeError(str(e) or type(e).__name__) from e


def _describe(exc: Exception) -> str:
    message = str(exc)
    return f"{type(exc).__name__}: {message}" if message else type(exc).__name__


class Forwarder:
    """Proxies inbound requests to the single configured remote."""

    def __init__(self, settings: Settings, provider: Provider):
        self.settings = settings
        self.provider = provider

    def target_url(self, request: Request) -> str:
        """
        Rewrite the inbound URL to point at the remote.

        Path and query string are forwarded as received.
        """
        remote = self.settings.REMOTE
        scheme = "http" if is_loopback_addr(remote) else "https"

        raw_path = request.scope.get("raw_path") or request.url.path.encode("utf-8")
        url = f"{scheme}://{remote}{raw_path.decode('latin-1')}"

        query = request.scope.get("query_string", b"")
        if query:
            url += "?" + query.decode("latin-1")
        return url

    def build_request(self, request: Request, url: str, body: bytes) -> httpx.Request:
        """
        Build the outgoing request.

        Raises:
            ConstructionError: If the URL or headers are unusable
        """
        headers = [
            (name, value)
            for name, value in request.headers.raw
            if name.decode("latin-1").lower() not in EXCLUDED_REQUEST_HEADERS
        ]
        try:
            outgoing = httpx.Request(
                request.method,
                url,
                headers=headers,
                content=body,
                extensions={"timeout": self.provider.client().timeout.as_dict()},
            )
        except (httpx.InvalidURL, httpx.UnsupportedProtocol, ValueError, TypeError) as e:
            raise ConstructionError(_describe(e)) from e

        request.state.forward_headers = outgoing.headers
        return outgoing

    async def execute(self, outgoing: httpx.Request) -> Tuple[int, bytes]:
        """
        Send the outgoing request and read the whole response.

        Returns:
            Upstream status code and (decompressed) body

        Raises:
            TransportError: If the remote could not be reached or the body
                could not be read
            DecodeError: If a gzip body is malformed
        """
        try:
            response = await self.provider.client().send(outgoing, stream=True)
        except httpx.RequestError as e:
            raise TransportError(_describe(e)) from e

        try:
            try:
                raw = b"".join([chunk async for chunk in response.aiter_raw()])
            except httpx.RequestError as e:
                raise TransportError(_describe(e), stage="reading the response") from e

            if response.headers.get("Content-Encoding") == "gzip":
                return response.status_code, decompress_gzip(raw)
            return response.status_code, raw
        finally:
            await response.aclose()

    async def forward(self, request: Request, guard: CompletionGuard) -> None:
        body = await request.body()
        url = self.target_url(request)

        guard.log(f"Requesting: {request.method} {url}")
        guard.log_body(body)

        outgoing = self.build_request(request, url, body)
        await self.provider.modify(self.settings, outgoing)

        status_code, content = await self.execute(outgoing)

        guard.log(f"Response status {status_code}")
        guard.log_body(content)

        guard.respond(status_code, content)

    async def handle(self, request: Request) -> Response:
        """Forward one request. Always returns a response (502 on abort)."""
        with CompletionGuard(self.settings) as guard:
            await self.forward(request, guard)
        return guard.response
