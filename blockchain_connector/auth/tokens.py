"""
Token handling shared by the OAuth providers.

This module handles:
- Calling the Azure AD token endpoint and parsing its responses
- Caching the current token and refreshing it under a lock, so that
  concurrent requests trigger at most one refresh
- The bearer-token provider base used by the authorization code, client
  credentials and device flow strategies
"""

import asyncio
import logging
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, Dict, Optional

import httpx
import jwt
from pydantic import ValidationError

from ..config import Settings
from ..errors import AuthPreparationError
from ..models import Token, TokenErrorResponse, TokenResponse
from .base import HttpClientHolder
from .endpoints import ENDPOINT_TOKEN, endpoint

logger = logging.getLogger(__name__)

TOKEN_REQUEST_TIMEOUT = 10.0


# =============================================================================
# Token Endpoint
# =============================================================================

class TokenEndpointError(Exception):
    """
    The token endpoint answered with an OAuth error.

    Attributes:
        error: OAuth error code (e.g. "authorization_pending", "invalid_grant")
        description: error_description from the response, if any
        interval: polling interval hint sent with "slow_down"
    """

    def __init__(self, error: str, description: Optional[str] = None, interval: Optional[int] = None):
        self.error = error
        self.description = description
        self.interval = interval
        super().__init__(f"{error}: {description}" if description else error)


async def post_form(
    url: str,
    payload: Dict[str, str],
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> Dict[str, Any]:
    """
    POST a form to an Azure AD endpoint and return the JSON body.

    Raises:
        TokenEndpointError: If the endpoint returned an OAuth error
        httpx.HTTPError: If the endpoint is unreachable
    """
    async with httpx.AsyncClient(transport=transport) as client:
        response = await client.post(
            url,
            data=payload,
            headers={"Content-Type": "application/x-www-form-urlencoded"},
            timeout=TOKEN_REQUEST_TIMEOUT,
        )

    is_json = response.headers.get("content-type", "").startswith("application/json")
    if not response.is_success:
        try:
            error = TokenErrorResponse.model_validate(response.json()) if is_json else None
        except (ValueError, ValidationError):
            error = None
        if error is None:
            raise TokenEndpointError("http_error", f"{url} returned {response.status_code}")
        raise TokenEndpointError(error.error, error.error_description, error.interval)

    try:
        return response.json()
    except ValueError:
        raise TokenEndpointError("invalid_response", f"{url} returned a non-JSON body")


async def request_token(
    url: str,
    payload: Dict[str, str],
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> TokenResponse:
    """
    Call the token endpoint with a grant payload.

    Raises:
        TokenEndpointError: On OAuth errors or a malformed token response
        httpx.HTTPError: If the endpoint is unreachable
    """
    data = await post_form(url, payload, transport)
    try:
        return TokenResponse.model_validate(data)
    except ValidationError as e:
        raise TokenEndpointError("invalid_response", f"Malformed token response: {e}")


def describe_token(access_token: str) -> str:
    """
    Summarise an access token for the application log (unverified claims).

    Azure AD access tokens are JWTs; anything that does not decode is
    reported as opaque.
    """
    try:
        claims = jwt.decode(access_token, options={"verify_signature": False})
    except jwt.PyJWTError:
        return "opaque token"

    subject = claims.get("upn") or claims.get("preferred_username") or claims.get("appid") or claims.get("sub")
    try:
        expiry = datetime.fromtimestamp(claims["exp"], tz=timezone.utc).isoformat()
    except (KeyError, TypeError, ValueError, OverflowError, OSError):
        expiry = "unknown"
    return f"token for {subject or 'unknown subject'} expiring {expiry}"


# =============================================================================
# Token Cache
# =============================================================================

class TokenCache:
    """
    Current token plus the coroutines that renew it.

    `refresh` is used when the held token carries a refresh token; otherwise
    `reacquire` runs the initial grant again. A provider whose grant needs
    the user (authorization code, device flow) passes no `reacquire`, so an
    expired token without a refresh token cannot be renewed mid-request.
    """

    def __init__(
        self,
        refresh: Callable[[str], Awaitable[TokenResponse]],
        reacquire: Optional[Callable[[], Awaitable[TokenResponse]]] = None,
        leeway_seconds: int = 60,
    ):
        self._refresh = refresh
        self._reacquire = reacquire
        self._leeway = leeway_seconds
        self._token: Optional[Token] = None
        self._lock = asyncio.Lock()

    @property
    def token(self) -> Optional[Token]:
        return self._token

    def is_valid(self) -> bool:
        return self._token is not None and not self._token.is_expired(self._leeway)

    def store(self, response: TokenResponse) -> Token:
        """Replace the held token, keeping the old refresh token if none was returned."""
        token = Token.from_response(response)
        if token.refresh_token is None and self._token is not None:
            token.refresh_token = self._token.refresh_token
        self._token = token
        logger.info(f"Stored access {describe_token(token.access_token)}")
        return token

    async def access_token(self) -> str:
        """
        Return a valid access token, renewing it if needed.

        Raises:
            TokenEndpointError: If renewal was refused
            httpx.HTTPError: If the token endpoint is unreachable
            LookupError: If no token is held and none can be obtained
        """
        if self.is_valid():
            return self._token.access_token

        async with self._lock:
            # Another request may have renewed while we waited
            if self.is_valid():
                return self._token.access_token

            if self._token is not None and self._token.refresh_token:
                logger.info("Access token expired, refreshing")
                response = await self._refresh(self._token.refresh_token)
            elif self._reacquire is not None:
                logger.info("Access token missing or expired, requesting a new one")
                response = await self._reacquire()
            else:
                raise LookupError("No valid access token and no refresh token available")

            return self.store(response).access_token


# =============================================================================
# Bearer Token Provider
# =============================================================================

class BearerTokenProvider:
    """
    Common behaviour of the Azure AD OAuth strategies.

    Subclasses implement `acquire()` (the initial grant run by
    prepare_access) and may set `reacquire_on_expiry` when that grant can
    run unattended.
    """

    name = "oauth"
    reacquire_on_expiry = False

    def __init__(
        self,
        settings: Settings,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        auth_transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.settings = settings
        self._http = HttpClientHolder(settings, transport)
        self._auth_transport = auth_transport
        self.tokens = TokenCache(
            refresh=self.refresh,
            reacquire=self.acquire if self.reacquire_on_expiry else None,
        )

    @property
    def token_url(self) -> str:
        return endpoint(ENDPOINT_TOKEN, self.settings.TENANT_ID)

    async def acquire(self) -> TokenResponse:
        raise NotImplementedError

    async def refresh(self, refresh_token: str) -> TokenResponse:
        """Redeem a refresh token for a new access token."""
        payload = {
            "client_id": self.settings.CLIENT_ID,
            "grant_type": "refresh_token",
            "refresh_token": refresh_token,
            "scope": " ".join(self.settings.scope_list),
        }
        if self.settings.CLIENT_SECRET:
            payload["client_secret"] = self.settings.CLIENT_SECRET
        return await request_token(self.token_url, payload, self._auth_transport)

    async def prepare_access(self) -> None:
        """
        Obtain the first token. Does nothing if a valid token is held.

        Raises:
            AuthPreparationError: If the grant fails for any reason
        """
        if self.tokens.is_valid():
            return

        logger.info(f"Requesting access token using the {self.name} flow")
        try:
            response = await self.acquire()
        except AuthPreparationError:
            raise
        except (TokenEndpointError, httpx.HTTPError) as e:
            raise AuthPreparationError(f"{self.name} flow failed: {e}") from e
        self.tokens.store(response)

    def client(self) -> httpx.AsyncClient:
        return self._http.get()

    async def modify(self, settings: Settings, request: httpx.Request) -> None:
        try:
            access_token = await self.tokens.access_token()
        except (TokenEndpointError, httpx.HTTPError, LookupError) as e:
            logger.warning(f"Forwarding without credentials, could not obtain access token: {e}")
            return
        request.headers["Authorization"] = f"Bearer {access_token}"

    async def aclose(self) -> None:
        await self._http.aclose()
