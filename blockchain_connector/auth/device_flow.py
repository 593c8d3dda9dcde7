"""
Device authorization strategy.

For hosts without a browser: the user is shown a short code and a URL to
enter it on another device, while the connector polls the token endpoint
until the sign-in completes, is declined, or the code expires.
"""

import asyncio
import logging
import time
from typing import Awaitable, Callable, Optional

import httpx
from pydantic import ValidationError

from ..config import Settings
from ..errors import AuthPreparationError
from ..models import DeviceCodeResponse, TokenResponse
from .endpoints import ENDPOINT_DEVICE_CODE, endpoint
from .tokens import BearerTokenProvider, TokenEndpointError, post_form, request_token

logger = logging.getLogger(__name__)

DEVICE_CODE_GRANT = "urn:ietf:params:oauth:grant-type:device_code"

# RFC 8628 section 3.5: on slow_down the interval grows by 5 seconds
SLOW_DOWN_INCREMENT = 5


class DeviceFlowProvider(BearerTokenProvider):
    """OAuth 2.0 device authorization grant against Azure AD."""

    name = "device"

    def __init__(
        self,
        settings: Settings,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        auth_transport: Optional[httpx.AsyncBaseTransport] = None,
        notify: Callable[[str], None] = print,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        super().__init__(settings, transport, auth_transport)
        self._notify = notify
        self._sleep = sleep

    async def request_device_code(self) -> DeviceCodeResponse:
        payload = {
            "client_id": self.settings.CLIENT_ID,
            "scope": " ".join(self.settings.scope_list),
        }
        data = await post_form(
            endpoint(ENDPOINT_DEVICE_CODE, self.settings.TENANT_ID),
            payload,
            self._auth_transport,
        )
        try:
            return DeviceCodeResponse.model_validate(data)
        except ValidationError as e:
            raise TokenEndpointError("invalid_response", f"Malformed device code response: {e}")

    async def acquire(self) -> TokenResponse:
        """
        Run the device flow to completion.

        Raises:
            AuthPreparationError: If the user declined or the code expired
            TokenEndpointError: On any other OAuth error
        """
        device = await self.request_device_code()
        self._notify(
            device.message
            or f"To sign in, open {device.verification_uri} and enter the code {device.user_code}"
        )

        payload = {
            "client_id": self.settings.CLIENT_ID,
            "grant_type": DEVICE_CODE_GRANT,
            "device_code": device.device_code,
        }
        interval = device.interval
        deadline = time.monotonic() + device.expires_in

        while time.monotonic() < deadline:
            await self._sleep(interval)
            try:
                return await request_token(self.token_url, payload, self._auth_transport)
            except TokenEndpointError as e:
                if e.error == "authorization_pending":
                    logger.debug("Device authorization pending")
                    continue
                if e.error == "slow_down":
                    interval = e.interval or interval + SLOW_DOWN_INCREMENT
                    logger.debug(f"Polling too fast, interval is now {interval}s")
                    continue
                if e.error in ("expired_token", "access_denied", "authorization_declined", "bad_verification_code"):
                    raise AuthPreparationError(f"Device sign-in failed: {e}") from e
                raise

        raise AuthPreparationError("Device code expired before sign-in completed")
