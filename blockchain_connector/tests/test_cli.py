"""
Tests for the command line entry point.

uvicorn.run is patched out; the tests check how options become settings
and which provider is bound.
"""

from unittest.mock import patch

import pytest
from fastapi import FastAPI
from typer.testing import CliRunner

from blockchain_connector.auth.basic import BasicAuthProvider
from blockchain_connector.auth.device_flow import DeviceFlowProvider
from blockchain_connector.cli import app
from blockchain_connector.models import AuthMethod, WhatLog, WhenLog

runner = CliRunner()


@pytest.fixture(autouse=True)
def clean_environment(monkeypatch):
    for name in ("CONNECTOR_REMOTE", "CONNECTOR_METHOD", "CONNECTOR_USERNAME", "CONNECTOR_PASSWORD"):
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def mock_run():
    with patch("blockchain_connector.cli.uvicorn.run") as run, \
            patch("blockchain_connector.cli.setup_logging") as setup:
        yield run, setup


def served_app(run) -> FastAPI:
    run.assert_called_once()
    return run.call_args[0][0]


def test_basic_auth_serves_on_local_address(mock_run):
    run, setup = mock_run

    result = runner.invoke(app, [
        "--remote", "node.example.com:3200",
        "--username", "user",
        "--password", "pass",
        "--local", "127.0.0.1:4000",
    ])

    assert result.exit_code == 0, result.output
    assert run.call_args.kwargs["host"] == "127.0.0.1"
    assert run.call_args.kwargs["port"] == 4000
    setup.assert_called_once_with("INFO")

    application = served_app(run)
    assert application.state.settings.REMOTE == "node.example.com:3200"
    assert isinstance(application.state.provider, BasicAuthProvider)


def test_log_options(mock_run):
    run, _ = mock_run

    result = runner.invoke(app, [
        "--remote", "node.example.com:3200",
        "--username", "user",
        "--password", "pass",
        "--whenlog", "onNon200",
        "--whatlog", "detailed",
        "--debugmode",
    ])

    assert result.exit_code == 0, result.output
    settings = served_app(run).state.settings
    assert settings.WHENLOG == WhenLog.ON_NON_200
    assert settings.WHATLOG == WhatLog.DETAILED
    assert settings.DEBUG_MODE is True


def test_device_method_binds_device_provider(mock_run):
    run, _ = mock_run

    result = runner.invoke(app, [
        "--remote", "node.example.com:3200",
        "--method", "device",
        "--client-id", "app-id",
        "--tenant-id", "tenant-id",
    ])

    assert result.exit_code == 0, result.output
    application = served_app(run)
    assert application.state.settings.METHOD == AuthMethod.DEVICE
    assert isinstance(application.state.provider, DeviceFlowProvider)


def test_environment_fills_unset_options(mock_run, monkeypatch):
    run, _ = mock_run
    monkeypatch.setenv("CONNECTOR_REMOTE", "env.example.com:443")
    monkeypatch.setenv("CONNECTOR_USERNAME", "user")
    monkeypatch.setenv("CONNECTOR_PASSWORD", "pass")

    result = runner.invoke(app, [])

    assert result.exit_code == 0, result.output
    assert served_app(run).state.settings.REMOTE == "env.example.com:443"


def test_missing_remote_prints_usage_and_exits(mock_run):
    run, _ = mock_run

    result = runner.invoke(app, ["--username", "user", "--password", "pass"])

    assert result.exit_code == 2
    assert "Invalid configuration" in result.output
    assert "--remote" in result.output
    run.assert_not_called()


def test_missing_credentials_for_method(mock_run):
    run, _ = mock_run

    result = runner.invoke(app, ["--remote", "node.example.com:3200", "--method", "client"])

    assert result.exit_code == 2
    assert "CLIENT_ID" in result.output
    run.assert_not_called()


def test_unknown_whenlog_rejected(mock_run):
    run, _ = mock_run

    result = runner.invoke(app, [
        "--remote", "node.example.com:3200",
        "--username", "user",
        "--password", "pass",
        "--whenlog", "sometimes",
    ])

    assert result.exit_code == 2
    run.assert_not_called()


def test_empty_local_host_binds_all_interfaces(mock_run):
    run, _ = mock_run

    result = runner.invoke(app, [
        "--remote", "node.example.com:3200",
        "--username", "user",
        "--password", "pass",
        "--local", ":4000",
    ])

    assert result.exit_code == 0, result.output
    assert run.call_args.kwargs["host"] == "0.0.0.0"
    assert run.call_args.kwargs["port"] == 4000
