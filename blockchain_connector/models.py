"""
Data Models Module

This module defines the enumerations and Pydantic models shared across
the connector:

- Policy enums (authentication method, when/what to log)
- OAuth token endpoint payloads (token response, device code response)
- The in-memory token record held by token-backed providers
"""

import time
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field


# ============================================================================
# Policy Enumerations
# ============================================================================

class AuthMethod(str, Enum):
    """Authentication strategy bound to the connector for its lifetime."""
    BASIC = "basic"
    AUTHCODE = "authcode"
    CLIENT_CREDENTIALS = "client"
    DEVICE = "device"


class WhenLog(str, Enum):
    """
    Condition under which a request's log block is printed.

    - ON_ERROR: only requests that aborted before a response was written.
      Every completed response is suppressed, whatever its status.
    - ON_NON_200: aborted requests and completed responses other than 200.
    - ALWAYS: every request.
    """
    ON_ERROR = "onError"
    ON_NON_200 = "onNon200"
    ALWAYS = "always"


class WhatLog(str, Enum):
    """
    Detail level of a request's log block.

    - BASIC: method, URL and status code (or the error text).
    - DETAILED: BASIC plus request and response bodies.
    """
    BASIC = "basic"
    DETAILED = "detailed"


# ============================================================================
# OAuth Payload Models
# ============================================================================

class TokenResponse(BaseModel):
    """Successful response from the Azure AD token endpoint."""
    access_token: str = Field(..., description="Bearer access token")
    token_type: str = Field(default="Bearer", description="Token type")
    expires_in: int = Field(default=3600, description="Lifetime in seconds")
    refresh_token: Optional[str] = Field(None, description="Present when offline_access was granted")
    scope: Optional[str] = Field(None, description="Granted scopes")
    id_token: Optional[str] = Field(None, description="OIDC id token if openid was requested")


class TokenErrorResponse(BaseModel):
    """Error body returned by the token endpoint (RFC 6749 section 5.2)."""
    error: str
    error_description: Optional[str] = None
    interval: Optional[int] = None


class DeviceCodeResponse(BaseModel):
    """Response from the device authorization endpoint."""
    device_code: str
    user_code: str
    verification_uri: str
    expires_in: int = 900
    interval: int = 5
    message: Optional[str] = Field(None, description="Human readable instruction from Azure AD")


class Token(BaseModel):
    """Token held by a provider, with an absolute expiry."""
    access_token: str
    refresh_token: Optional[str] = None
    expires_at: float = 0.0

    @classmethod
    def from_response(cls, response: TokenResponse, now: Optional[float] = None) -> "Token":
        issued = time.time() if now is None else now
        return cls(
            access_token=response.access_token,
            refresh_token=response.refresh_token,
            expires_at=issued + response.expires_in,
        )

    def is_expired(self, leeway_seconds: int = 60, now: Optional[float] = None) -> bool:
        """True when the token expires within `leeway_seconds`."""
        current = time.time() if now is None else now
        return current + leeway_seconds >= self.expires_at
