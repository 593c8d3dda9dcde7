"""
Blockchain Connector
====================

An authenticating reverse proxy. It listens on a local address and
forwards every request to one remote HTTPS endpoint, attaching
credentials obtained by the configured strategy (basic auth, or Azure AD
authorization code, client credentials or device flow).

Packages:
    - auth:  authentication providers and token handling
    - proxy: forwarding engine, completion guard and router

Modules:
    - config: Settings (CONNECTOR_* environment variables / .env)
    - main:   FastAPI application factory and logging setup
    - cli:    command line entry point
"""

__version__ = "1.0.0"
