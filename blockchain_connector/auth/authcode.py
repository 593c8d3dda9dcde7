"""
Authorization code strategy.

This module implements the OAuth 2.0 authorization code flow with PKCE
against Microsoft Entra ID (Azure AD) for an interactive user:

1. Build the authorize URL with state and a PKCE challenge
2. Open it in the system browser (or print it)
3. Receive the redirect on a short-lived local callback listener
4. Exchange the code for tokens (including a refresh token when
   offline_access is requested)
"""

import asyncio
import base64
import hashlib
import logging
import secrets
import socket
import webbrowser
from contextlib import asynccontextmanager
from typing import AsyncIterator, Awaitable, Callable, Optional
from urllib.parse import urlencode

import httpx
import uvicorn
from fastapi import FastAPI, Query
from fastapi.responses import HTMLResponse

from ..config import Settings
from ..errors import AuthPreparationError
from ..models import TokenResponse
from .endpoints import CALLBACK_PATH, ENDPOINT_AUTHORIZE, callback_url, endpoint
from .tokens import BearerTokenProvider, request_token

logger = logging.getLogger(__name__)


# =============================================================================
# PKCE Helper Functions
# =============================================================================

def generate_code_verifier() -> str:
    """
    Generate a cryptographically random code verifier for PKCE.

    Returns:
        Base64-URL-encoded random string (43 characters)
    """
    verifier_bytes = secrets.token_bytes(32)
    return base64.urlsafe_b64encode(verifier_bytes).decode('utf-8').rstrip('=')


def generate_code_challenge(verifier: str) -> str:
    """
    Generate code challenge from verifier using S256 method.

    Args:
        verifier: Code verifier string

    Returns:
        Base64-URL-encoded SHA256 hash of verifier
    """
    digest = hashlib.sha256(verifier.encode('utf-8')).digest()
    return base64.urlsafe_b64encode(digest).decode('utf-8').rstrip('=')


# =============================================================================
# Callback Listener
# =============================================================================

def _render_page(title: str, message: str) -> str:
    return f"""<!DOCTYPE html>
<html lang="en">
<head><meta charset="UTF-8"><title>{title}</title></head>
<body style="font-family: sans-serif; text-align: center; padding-top: 80px;">
<h1>{title}</h1>
<p>{message}</p>
</body>
</html>"""


def create_callback_app(expected_state: str, result: "asyncio.Future[str]") -> FastAPI:
    """
    Build the app that receives the Azure AD redirect.

    The first callback settles `result` with the authorization code, or
    with an AuthPreparationError if sign-in failed or the state does not
    match. Later callbacks are answered but ignored.
    """
    app = FastAPI(docs_url=None, redoc_url=None, openapi_url=None)

    @app.get(CALLBACK_PATH, response_class=HTMLResponse)
    async def callback(
        code: Optional[str] = Query(None, description="Authorization code from Azure AD"),
        state: Optional[str] = Query(None, description="State parameter for CSRF protection"),
        error: Optional[str] = Query(None, description="Error code if authentication failed"),
        error_description: Optional[str] = Query(None, description="Error description"),
    ):
        if error:
            outcome = AuthPreparationError(f"Authentication failed: {error_description or error}")
        elif not code or not state:
            outcome = AuthPreparationError("Missing required parameters (code or state)")
        elif state != expected_state:
            outcome = AuthPreparationError("Invalid state parameter")
        else:
            outcome = code

        if not result.done():
            if isinstance(outcome, Exception):
                result.set_exception(outcome)
            else:
                result.set_result(outcome)

        if isinstance(outcome, Exception):
            return HTMLResponse(_render_page("Sign-in Failed", str(outcome)), status_code=400)
        return HTMLResponse(_render_page("Sign-in Complete", "You can close this window."))

    return app


def _bind_socket(addr: str) -> socket.socket:
    host, _, port = addr.rpartition(":")
    host = host.strip("[]")
    family = socket.AF_INET6 if ":" in host else socket.AF_INET
    sock = socket.socket(family, socket.SOCK_STREAM)
    sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
    try:
        sock.bind((host, int(port)))
    except OSError:
        sock.close()
        raise
    return sock


@asynccontextmanager
async def callback_listener(addr: str, expected_state: str) -> AsyncIterator["asyncio.Future[str]"]:
    """
    Serve the callback app on `addr` for the duration of the block.

    Yields:
        Future settled by the first callback

    Raises:
        AuthPreparationError: If the address cannot be bound
    """
    result: asyncio.Future = asyncio.get_running_loop().create_future()
    try:
        sock = _bind_socket(addr)
    except OSError as e:
        raise AuthPreparationError(f"Cannot listen for callbacks on {addr}: {e}") from e

    config = uvicorn.Config(
        create_callback_app(expected_state, result),
        log_level="warning",
        lifespan="off",
    )
    server = uvicorn.Server(config)
    task = asyncio.create_task(server.serve(sockets=[sock]))
    logger.info(f"Listening for authorization code callback on {addr}")
    try:
        yield result
    finally:
        server.should_exit = True
        await task
        sock.close()


# =============================================================================
# Provider
# =============================================================================

class AuthCodeProvider(BearerTokenProvider):
    """OAuth 2.0 authorization code grant with PKCE against Azure AD."""

    name = "authorization code"

    def __init__(
        self,
        settings: Settings,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        auth_transport: Optional[httpx.AsyncBaseTransport] = None,
        receive_code: Optional[Callable[[str, str], Awaitable[str]]] = None,
        open_url: Callable[[str], bool] = webbrowser.open,
        notify: Callable[[str], None] = print,
    ):
        super().__init__(settings, transport, auth_transport)
        self._receive_code = receive_code or self._receive_via_callback
        self._open_url = open_url
        self._notify = notify

    @property
    def redirect_uri(self) -> str:
        return callback_url(self.settings.AUTHCODE_ADDR)

    def authorization_url(self, state: str, code_challenge: str) -> str:
        params = {
            "client_id": self.settings.CLIENT_ID,
            "response_type": "code",
            "redirect_uri": self.redirect_uri,
            "response_mode": "query",
            "scope": " ".join(self.settings.scope_list),
            "state": state,
            "code_challenge": code_challenge,
            "code_challenge_method": "S256",
        }
        return f"{endpoint(ENDPOINT_AUTHORIZE, self.settings.TENANT_ID)}?{urlencode(params)}"

    async def _receive_via_callback(self, authorization_url: str, state: str) -> str:
        async with callback_listener(self.settings.AUTHCODE_ADDR, state) as result:
            self._notify(f"Open the following URL in a browser to sign in:\n{authorization_url}")
            if self.settings.OPEN_BROWSER and not self._open_url(authorization_url):
                logger.warning("Could not open a browser, use the printed URL instead")
            return await result

    async def exchange_code(self, code: str, code_verifier: str) -> TokenResponse:
        """
        Exchange an authorization code for tokens.

        Raises:
            TokenEndpointError: If Azure AD rejects the code
            httpx.HTTPError: If the token endpoint is unreachable
        """
        payload = {
            "client_id": self.settings.CLIENT_ID,
            "grant_type": "authorization_code",
            "code": code,
            "redirect_uri": self.redirect_uri,
            "scope": " ".join(self.settings.scope_list),
            "code_verifier": code_verifier,
        }
        if self.settings.CLIENT_SECRET:
            payload["client_secret"] = self.settings.CLIENT_SECRET
        return await request_token(self.token_url, payload, self._auth_transport)

    async def acquire(self) -> TokenResponse:
        state = secrets.token_urlsafe(32)
        code_verifier = generate_code_verifier()
        url = self.authorization_url(state, generate_code_challenge(code_verifier))

        code = await self._receive_code(url, state)
        return await self.exchange_code(code, code_verifier)
