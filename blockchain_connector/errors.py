"""
Connector exceptions.

Per-request failures (`ForwardingError` and subclasses) never reach the
inbound caller: the completion guard turns them into a log entry and a
bare 502. `AuthPreparationError` is raised once at startup and stops the
service before it begins serving.
"""

from typing import Optional


class ConnectorError(Exception):
    """Base exception for connector errors"""
    pass


class ConfigurationError(ConnectorError):
    """Required settings for the selected method are missing or invalid"""
    pass


class AuthPreparationError(ConnectorError):
    """The authentication strategy could not obtain a credential"""
    pass


class ForwardingError(ConnectorError):
    """
    A request could not be proxied.

    Attributes:
        stage: Short description used in the log line ("Error when <stage>:")
    """

    stage = "forwarding the request"

    def __init__(self, message: str, stage: Optional[str] = None):
        super().__init__(message)
        if stage:
            self.stage = stage


class ConstructionError(ForwardingError):
    """The outgoing request could not be built"""
    stage = "building the transport request"


class TransportError(ForwardingError):
    """DNS, connect, TLS or timeout failure talking to the remote"""
    stage = "sending the transport request"


class DecodeError(ForwardingError):
    """The response declared gzip encoding but could not be decompressed"""
    stage = "decoding gzip data"
