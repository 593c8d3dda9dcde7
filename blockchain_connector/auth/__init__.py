"""
Authentication Package

This package holds the pluggable authentication strategies the connector
uses to attach credentials to outgoing requests.

Key responsibilities:
- The provider contract consumed by the forwarding engine
- Static basic auth
- Azure AD OAuth 2.0: authorization code (PKCE), client credentials and
  device authorization grants, with token caching and refresh
- Building the strategy selected by configuration

Modules:
- base: Provider contract and outgoing HTTP client construction
- basic: Basic auth provider
- tokens: Token endpoint calls, token cache, bearer token provider base
- authcode / client_credentials / device_flow: OAuth providers
- endpoints: Azure AD endpoint URLs
- factory: build_provider()
"""

from .base import Provider
from .factory import build_provider

__all__ = [
    "Provider",
    "build_provider",
]
