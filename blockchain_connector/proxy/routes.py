"""
Proxy Routes - Remote Request Forwarding
========================================

A single catch-all route hands every inbound request, whatever its
method or path, to the Forwarder stored on the application state.

The route's endpoint is a plain ASGI callable rather than a path
operation: Starlette only binds function endpoints to a method list, so
WebDAV verbs, PURGE, CONNECT and custom methods reach the forwarder too.
"""

import logging

from fastapi import APIRouter, HTTPException, Request, status
from starlette.types import Receive, Scope, Send

from .engine import Forwarder

logger = logging.getLogger(__name__)

# Create router
proxy_router = APIRouter()


def get_forwarder(request: Request) -> Forwarder:
    """
    Get the forwarder from app state.

    Raises:
        HTTPException: If the application was created without one
    """
    forwarder = getattr(request.app.state, "forwarder", None)
    if forwarder is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Forwarder not initialized"
        )
    return forwarder


class ForwardEndpoint:
    """ASGI endpoint that forwards the request to the remote endpoint."""

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        request = Request(scope, receive)
        # HTTPException is rendered by the app's exception middleware
        response = await get_forwarder(request).handle(request)
        await response(scope, receive, send)


proxy_router.add_route(
    "/{path:path}",
    ForwardEndpoint(),
    methods=None,
    include_in_schema=False,
)
