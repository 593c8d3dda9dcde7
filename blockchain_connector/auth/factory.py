"""Selects and builds the authentication strategy named by METHOD."""

import logging
from typing import Optional

import httpx

from ..config import Settings
from ..models import AuthMethod
from .authcode import AuthCodeProvider
from .base import Provider
from .basic import BasicAuthProvider
from .client_credentials import ClientCredentialsProvider
from .device_flow import DeviceFlowProvider

logger = logging.getLogger(__name__)


def build_provider(
    settings: Settings,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> Provider:
    """
    Build the provider bound to the connector for its lifetime.

    Args:
        settings: Validated settings (see Settings.validate_for_method)
        transport: Optional transport for outgoing calls, used by tests

    Returns:
        One provider instance for METHOD
    """
    settings.validate_for_method()

    if settings.METHOD == AuthMethod.AUTHCODE:
        provider = AuthCodeProvider(settings, transport)
    elif settings.METHOD == AuthMethod.CLIENT_CREDENTIALS:
        provider = ClientCredentialsProvider(settings, transport)
    elif settings.METHOD == AuthMethod.DEVICE:
        provider = DeviceFlowProvider(settings, transport)
    else:
        provider = BasicAuthProvider(settings, transport)

    logger.info(f"Authentication method: {settings.METHOD.value}")
    return provider
