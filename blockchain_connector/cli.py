"""Command line entry point for the connector."""

from typing import Any, Dict, Optional

import typer
import uvicorn
from pydantic import ValidationError

from .auth import build_provider
from .config import Settings
from .errors import ConfigurationError
from .main import create_app, setup_logging
from .models import AuthMethod, WhatLog, WhenLog

app = typer.Typer(
    add_completion=False,
    no_args_is_help=False,
    pretty_exceptions_enable=False,
)


def build_settings(options: Dict[str, Any]) -> Settings:
    """
    Build validated settings from command line options.

    Options left unset fall back to CONNECTOR_* environment variables and
    then to the defaults.

    Raises:
        ValidationError: If a value is malformed or REMOTE is missing
        ConfigurationError: If credentials for the method are missing
    """
    overrides = {name: value for name, value in options.items() if value is not None}
    return Settings(**overrides).validate_for_method()


@app.command()
def serve(
    ctx: typer.Context,
    method: Optional[AuthMethod] = typer.Option(
        None, "--method",
        help="Authentication method. Basic auth (basic), authorization code (authcode), "
             "client credentials (client) and device flow (device)",
    ),
    local: Optional[str] = typer.Option(None, "--local", help="Local address to bind to"),
    remote: Optional[str] = typer.Option(None, "--remote", help="Remote endpoint address"),
    cert: Optional[str] = typer.Option(None, "--cert", help="(Optional) File path to root CA"),
    insecure: Optional[bool] = typer.Option(
        None, "--insecure", help="(Optional) Skip certificate verifications",
    ),
    username: Optional[str] = typer.Option(None, "--username", help="Basic auth: username"),
    password: Optional[str] = typer.Option(None, "--password", help="Basic auth: password"),
    client_id: Optional[str] = typer.Option(None, "--client-id", help="OAuth: application (client) ID"),
    tenant_id: Optional[str] = typer.Option(None, "--tenant-id", help="OAuth: directory (tenant) ID"),
    client_secret: Optional[str] = typer.Option(None, "--client-secret", help="OAuth: client secret"),
    authcode_addr: Optional[str] = typer.Option(
        None, "--authcode-addr", help="OAuth: local address to receive callbacks",
    ),
    open_browser: Optional[bool] = typer.Option(
        None, "--open-browser/--no-open-browser", help="OAuth: open the sign-in page in a browser",
    ),
    scopes: Optional[str] = typer.Option(None, "--scopes", help="OAuth: space separated scopes"),
    whenlog: Optional[WhenLog] = typer.Option(
        None, "--whenlog",
        help="In what cases logs should be printed. Alternatives: always, onNon200 and onError",
    ),
    whatlog: Optional[WhatLog] = typer.Option(
        None, "--whatlog",
        help="What information should be included in logs. Alternatives: basic and detailed",
    ),
    debugmode: Optional[bool] = typer.Option(
        None, "--debugmode",
        help="Set whenlog to always and whatlog to detailed, overriding both",
    ),
    log_level: Optional[str] = typer.Option(None, "--log-level", help="Application log level"),
) -> None:
    """Authenticating proxy for a credential-gated remote endpoint."""
    try:
        settings = build_settings({
            "METHOD": method,
            "LOCAL": local,
            "REMOTE": remote,
            "CERT_PATH": cert,
            "INSECURE": insecure,
            "USERNAME": username,
            "PASSWORD": password,
            "CLIENT_ID": client_id,
            "TENANT_ID": tenant_id,
            "CLIENT_SECRET": client_secret,
            "AUTHCODE_ADDR": authcode_addr,
            "OPEN_BROWSER": open_browser,
            "SCOPES": scopes,
            "WHENLOG": whenlog,
            "WHATLOG": whatlog,
            "DEBUG_MODE": debugmode,
            "LOG_LEVEL": log_level,
        })
    except (ValidationError, ConfigurationError) as e:
        typer.echo(ctx.get_help(), err=True)
        typer.echo(f"\nInvalid configuration: {e}", err=True)
        raise typer.Exit(code=2)

    setup_logging(settings.LOG_LEVEL)

    # prepare_access runs in the app lifespan, before the listener is bound;
    # uvicorn exits without serving if it fails
    application = create_app(settings, build_provider(settings))
    uvicorn.run(
        application,
        host=settings.local_host,
        port=settings.local_port,
        log_level=settings.LOG_LEVEL.lower(),
        log_config=None,
    )


def main() -> None:
    app(prog_name="blockchain-connector")
