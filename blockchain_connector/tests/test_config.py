"""
Tests for connector settings.
"""

import pytest
from pydantic import ValidationError

from blockchain_connector.config import (
    DEFAULT_CLIENT_CREDENTIALS_SCOPES,
    DEFAULT_SCOPES,
    Settings,
)
from blockchain_connector.errors import ConfigurationError
from blockchain_connector.models import AuthMethod, WhatLog, WhenLog

from .conftest import make_settings


@pytest.fixture(autouse=True)
def clean_environment(monkeypatch):
    for name in ("CONNECTOR_REMOTE", "CONNECTOR_METHOD", "CONNECTOR_WHENLOG", "CONNECTOR_DEBUG_MODE"):
        monkeypatch.delenv(name, raising=False)


class TestDefaults:

    def test_defaults(self):
        settings = make_settings()

        assert settings.LOCAL == "127.0.0.1:3100"
        assert settings.METHOD == AuthMethod.BASIC
        assert settings.WHENLOG == WhenLog.ON_ERROR
        assert settings.WHATLOG == WhatLog.BASIC
        assert settings.INSECURE is False
        assert settings.CERT_PATH is None

    def test_remote_is_required(self):
        with pytest.raises(ValidationError):
            Settings()

    def test_remote_from_environment(self, monkeypatch):
        monkeypatch.setenv("CONNECTOR_REMOTE", "node.example.com:3200")
        monkeypatch.setenv("CONNECTOR_WHENLOG", "always")

        settings = Settings()

        assert settings.REMOTE == "node.example.com:3200"
        assert settings.WHENLOG == WhenLog.ALWAYS

    def test_settings_are_frozen(self):
        settings = make_settings()

        with pytest.raises(ValidationError):
            settings.REMOTE = "elsewhere.example.com:443"


class TestLogPolicy:

    def test_debug_mode_overrides_both_policies(self):
        settings = make_settings(WHENLOG="onError", WHATLOG="basic", DEBUG_MODE=True)

        assert settings.effective_whenlog == WhenLog.ALWAYS
        assert settings.effective_whatlog == WhatLog.DETAILED

    def test_without_debug_mode_policies_are_used_as_given(self):
        settings = make_settings(WHENLOG="onNon200", WHATLOG="detailed")

        assert settings.effective_whenlog == WhenLog.ON_NON_200
        assert settings.effective_whatlog == WhatLog.DETAILED

    @pytest.mark.parametrize("field, value", [("WHENLOG", "sometimes"), ("WHATLOG", "verbose")])
    def test_unknown_policy_rejected(self, field, value):
        with pytest.raises(ValidationError):
            make_settings(**{field: value})


class TestAddresses:

    @pytest.mark.parametrize("local, host, port", [
        ("127.0.0.1:3100", "127.0.0.1", 3100),
        ("0.0.0.0:8080", "0.0.0.0", 8080),
        ("[::1]:3100", "::1", 3100),
        (":3100", "0.0.0.0", 3100),
    ])
    def test_local_host_and_port(self, local, host, port):
        settings = make_settings(LOCAL=local)

        assert settings.local_host == host
        assert settings.local_port == port

    @pytest.mark.parametrize("value", ["localhost", "localhost:http", "localhost:0", "localhost:70000"])
    def test_invalid_listen_address(self, value):
        with pytest.raises(ValidationError):
            make_settings(LOCAL=value)

    def test_invalid_authcode_address(self):
        with pytest.raises(ValidationError):
            make_settings(AUTHCODE_ADDR="nowhere")

    def test_log_level_normalised(self):
        assert make_settings(LOG_LEVEL="debug").LOG_LEVEL == "DEBUG"

        with pytest.raises(ValidationError):
            make_settings(LOG_LEVEL="chatty")


class TestMethodRequirements:

    def test_basic_requires_username_and_password(self):
        settings = make_settings(USERNAME=None, PASSWORD=None)

        with pytest.raises(ConfigurationError, match="USERNAME, PASSWORD"):
            settings.validate_for_method()

    def test_client_credentials_requires_secret(self):
        settings = make_settings(METHOD="client", CLIENT_ID="app", TENANT_ID="tenant")

        with pytest.raises(ConfigurationError, match="CLIENT_SECRET"):
            settings.validate_for_method()

    @pytest.mark.parametrize("method", ["authcode", "device"])
    def test_interactive_methods_need_no_secret(self, method):
        settings = make_settings(METHOD=method, CLIENT_ID="app", TENANT_ID="tenant")

        assert settings.validate_for_method() is settings

    def test_scopes(self):
        assert make_settings().scope_list == DEFAULT_SCOPES
        assert make_settings(METHOD="client").scope_list == DEFAULT_CLIENT_CREDENTIALS_SCOPES
        assert make_settings(SCOPES="openid  offline_access").scope_list == ["openid", "offline_access"]
        assert make_settings(SCOPES="   ").scope_list == DEFAULT_SCOPES
