"""
Configuration module for the Blockchain Connector.

This module uses Pydantic Settings to load and validate the connector
parameters: where to listen, which remote to forward to, which
authentication method to bind, TLS options, and the logging policies.

Values are read from CONNECTOR_* environment variables or a .env file.
The command line (see cli.py) builds a Settings instance explicitly from
its options. Settings are frozen: one instance is shared read-only by
every request for the lifetime of the process.
"""

from functools import lru_cache
from typing import List, Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from .errors import ConfigurationError
from .models import AuthMethod, WhatLog, WhenLog

DEFAULT_LOCAL_ADDR = "127.0.0.1:3100"

# Azure AD requires at least one resource scope; offline_access requests a refresh token
DEFAULT_SCOPES = ["offline_access", "api://285286f5-b97b-4b45-ba35-92a74f35756a/basic"]

# The client credentials grant never returns a refresh token
DEFAULT_CLIENT_CREDENTIALS_SCOPES = ["https://graph.microsoft.com/.default"]


class Settings(BaseSettings):
    """
    Connector settings.

    All configuration for the local listener, the remote endpoint, the
    authentication strategy and the request log policy is defined here.
    """

    # =========================================================================
    # Listener / Remote
    # =========================================================================

    LOCAL: str = Field(
        default=DEFAULT_LOCAL_ADDR,
        description="Local address to bind to (host:port)",
    )

    REMOTE: str = Field(
        ...,
        description="Remote endpoint address (host[:port])",
        min_length=1,
    )

    METHOD: AuthMethod = Field(
        default=AuthMethod.BASIC,
        description="Authentication method: basic, authcode, client or device",
    )

    # =========================================================================
    # Transport
    # =========================================================================

    CERT_PATH: Optional[str] = Field(
        None,
        description="File path to a root CA bundle",
    )

    INSECURE: bool = Field(
        default=False,
        description="Skip certificate verification",
    )

    TIMEOUT_SECONDS: float = Field(
        default=60.0,
        description="Timeout for outgoing calls in seconds",
        gt=0,
    )

    # =========================================================================
    # Request Logging
    # =========================================================================

    WHENLOG: WhenLog = Field(
        default=WhenLog.ON_ERROR,
        description="In what cases a request log is printed: always, onNon200 or onError",
    )

    WHATLOG: WhatLog = Field(
        default=WhatLog.BASIC,
        description="What a request log contains: basic or detailed",
    )

    DEBUG_MODE: bool = Field(
        default=False,
        description="Force WHENLOG=always and WHATLOG=detailed",
    )

    LOG_LEVEL: str = Field(
        default="INFO",
        description="Application log level",
    )

    # =========================================================================
    # Basic Auth
    # =========================================================================

    USERNAME: Optional[str] = Field(None, description="Basic auth: username")
    PASSWORD: Optional[str] = Field(None, description="Basic auth: password")

    # =========================================================================
    # Azure AD OAuth
    # =========================================================================

    CLIENT_ID: Optional[str] = Field(None, description="OAuth: application (client) ID")
    TENANT_ID: Optional[str] = Field(None, description="OAuth: directory (tenant) ID")
    CLIENT_SECRET: Optional[str] = Field(None, description="OAuth: client secret")

    AUTHCODE_ADDR: str = Field(
        default=DEFAULT_LOCAL_ADDR,
        description="OAuth: local address to receive authorization code callbacks",
    )

    OPEN_BROWSER: bool = Field(
        default=True,
        description="OAuth: open the consent page in the system browser",
    )

    SCOPES: Optional[str] = Field(
        None,
        description="OAuth: space separated scopes (method specific default when empty)",
    )

    # =========================================================================
    # Pydantic Settings Configuration
    # =========================================================================

    model_config = SettingsConfigDict(
        env_prefix="CONNECTOR_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",
        frozen=True,
    )

    # =========================================================================
    # Computed Properties
    # =========================================================================

    @property
    def effective_whenlog(self) -> WhenLog:
        return WhenLog.ALWAYS if self.DEBUG_MODE else self.WHENLOG

    @property
    def effective_whatlog(self) -> WhatLog:
        return WhatLog.DETAILED if self.DEBUG_MODE else self.WHATLOG

    @property
    def scope_list(self) -> List[str]:
        """
        Scopes requested from Azure AD.

        Returns:
            Configured scopes, or the default for the selected method.
        """
        if self.SCOPES and self.SCOPES.strip():
            return self.SCOPES.split()
        if self.METHOD == AuthMethod.CLIENT_CREDENTIALS:
            return list(DEFAULT_CLIENT_CREDENTIALS_SCOPES)
        return list(DEFAULT_SCOPES)

    @property
    def local_host(self) -> str:
        """Bind host; an empty host (":3100") means every interface."""
        host = self.LOCAL.rpartition(":")[0]
        return host.strip("[]") or "0.0.0.0"

    @property
    def local_port(self) -> int:
        return int(self.LOCAL.rpartition(":")[2])

    # =========================================================================
    # Validators
    # =========================================================================

    @field_validator("LOCAL", "AUTHCODE_ADDR")
    @classmethod
    def validate_listen_address(cls, v: str) -> str:
        """
        Validate that a listen address is in host:port form.

        Raises:
            ValueError: If the port is missing or out of range
        """
        _, sep, port = v.rpartition(":")
        if not sep or not port.isdigit() or not 0 < int(port) <= 65535:
            raise ValueError(
                f"Invalid address: '{v}'. Expected format: 'host:port'"
            )
        return v

    @field_validator("LOG_LEVEL")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        allowed_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        if v.upper() not in allowed_levels:
            raise ValueError(f"LOG_LEVEL must be one of {allowed_levels}, got: {v}")
        return v.upper()

    def validate_for_method(self) -> "Settings":
        """
        Check that the credentials required by METHOD are present.

        Returns:
            self, so calls can be chained

        Raises:
            ConfigurationError: Listing the missing settings
        """
        required = {
            AuthMethod.BASIC: ["USERNAME", "PASSWORD"],
            AuthMethod.AUTHCODE: ["CLIENT_ID", "TENANT_ID"],
            AuthMethod.CLIENT_CREDENTIALS: ["CLIENT_ID", "CLIENT_SECRET", "TENANT_ID"],
            AuthMethod.DEVICE: ["CLIENT_ID", "TENANT_ID"],
        }[self.METHOD]

        missing = [name for name in required if not getattr(self, name)]
        if missing:
            raise ConfigurationError(
                f"Method '{self.METHOD.value}' requires: {', '.join(missing)}"
            )
        return self


# =============================================================================
# Settings Singleton
# =============================================================================

@lru_cache()
def get_settings() -> Settings:
    """
    Get or create a singleton Settings instance from the environment.

    Raises:
        ValidationError: If CONNECTOR_REMOTE is missing or a value is invalid.
    """
    return Settings()
