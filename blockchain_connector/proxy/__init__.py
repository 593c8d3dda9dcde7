"""
Proxy Package
=============

This package forwards every inbound request to the configured remote
endpoint, with credentials attached by the bound authentication provider.

Main Components:
----------------
- loopback.py: http/https selection for the remote
- guard.py: completion guard (terminal 502 on abort, per-request log block)
- engine.py: Forwarder, the per-request forwarding pipeline
- routes.py: FastAPI catch-all router

Usage:
------
    from blockchain_connector.proxy import proxy_router
    app.include_router(proxy_router)
"""

from .engine import Forwarder
from .routes import proxy_router

__all__ = ["Forwarder", "proxy_router"]
