"""
FastAPI Application Factory
===========================

Entry point for the connector service that sits between a local client
and a credential-gated remote HTTPS endpoint.

Architecture:
    Local client -> Connector (this service) -> Remote endpoint

Every path and method is forwarded, so the app exposes no docs, health
or other routes of its own.

Running the Service:
    Command line (recommended):
        blockchain-connector --remote example.blockchain.azure.com:3200 --method device ...

    With uvicorn, configured from CONNECTOR_* environment variables:
        uvicorn blockchain_connector.main:create_app --factory --host 127.0.0.1 --port 3100
"""

import logging
import sys
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI

from .auth import Provider, build_provider
from .config import Settings, get_settings
from .errors import AuthPreparationError
from .proxy import Forwarder, proxy_router

logger = logging.getLogger(__name__)


def setup_logging(log_level: str = "INFO") -> None:
    """
    Configure application and traffic logging.

    Application logs use a structured single-line format. Request blocks
    go to the "blockchain_connector.traffic" logger as bare text.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
    """
    logging.basicConfig(
        level=getattr(logging, log_level.upper()),
        format='{"timestamp": "%(asctime)s", "level": "%(levelname)s", "logger": "%(name)s", "message": "%(message)s", "module": "%(module)s", "function": "%(funcName)s"}',
        handlers=[logging.StreamHandler(sys.stdout)]
    )

    traffic = logging.getLogger("blockchain_connector.traffic")
    traffic.handlers.clear()
    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(logging.Formatter("%(message)s"))
    traffic.addHandler(handler)
    traffic.setLevel(logging.INFO)
    traffic.propagate = False


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan manager.

    Startup obtains the credential before any request is served; an
    AuthPreparationError aborts startup. Shutdown closes the provider's
    transport client.
    """
    settings: Settings = app.state.settings
    provider: Provider = app.state.provider

    logger.info(
        f"Starting connector on {settings.LOCAL} -> {settings.REMOTE} "
        f"(method={settings.METHOD.value}, whenlog={settings.effective_whenlog.value}, "
        f"whatlog={settings.effective_whatlog.value})"
    )
    try:
        await provider.prepare_access()
    except AuthPreparationError as e:
        logger.error(f"Could not prepare access to {settings.REMOTE}: {e}")
        raise
    logger.info("Access prepared, serving requests")

    yield

    logger.info("Shutting down connector")
    await provider.aclose()


def create_app(settings: Optional[Settings] = None, provider: Optional[Provider] = None) -> FastAPI:
    """
    Application factory function.

    Args:
        settings: Connector settings (loaded from the environment when omitted)
        provider: Authentication provider (built from settings when omitted)

    Returns:
        FastAPI: Configured application instance
    """
    settings = settings or get_settings()
    provider = provider or build_provider(settings)

    app = FastAPI(
        title="Blockchain Connector",
        description="Authenticating reverse proxy for credential-gated endpoints",
        version="1.0.0",
        lifespan=lifespan,
        docs_url=None,
        redoc_url=None,
        openapi_url=None,
    )

    app.state.settings = settings
    app.state.provider = provider
    app.state.forwarder = Forwarder(settings, provider)

    app.include_router(proxy_router)

    return app
