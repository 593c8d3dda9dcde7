"""
Tests for the per-request completion guard.

The guard is exercised directly, without the app, to pin down the
finalization rules: a bare 502 whenever no response was produced, one
log block per request, and the WHENLOG policy for completed responses.
"""

import asyncio

import pytest

from blockchain_connector.errors import DecodeError, TransportError
from blockchain_connector.proxy.guard import CompletionGuard

from .conftest import make_settings


class TestAbort:
    """Requests that end without a response"""

    def test_forwarding_error_becomes_bare_502(self, traffic_log):
        with CompletionGuard(make_settings()) as guard:
            guard.log("Requesting: GET https://remote.example.com:8443/")
            raise TransportError("connection reset")

        assert guard.response.status_code == 502
        assert guard.response.body == b""
        assert guard.completed is False
        assert traffic_log() == [
            "Requesting: GET https://remote.example.com:8443/\n"
            "Error when sending the transport request:\nconnection reset"
        ]

    def test_stage_named_in_log(self, traffic_log):
        with CompletionGuard(make_settings()):
            raise DecodeError("Not a gzipped file")

        assert traffic_log()[0].startswith("Error when decoding gzip data:")

    def test_unexpected_exception_is_contained(self, traffic_log):
        with CompletionGuard(make_settings()) as guard:
            raise KeyError("missing")

        assert guard.response.status_code == 502
        assert "Unexpected error" in traffic_log()[0]

    def test_block_without_response_still_answers_502(self, traffic_log):
        with CompletionGuard(make_settings()) as guard:
            guard.log("Requesting: GET https://remote.example.com:8443/")

        assert guard.response.status_code == 502
        assert len(traffic_log()) == 1

    def test_cancellation_propagates_after_finalizing(self, traffic_log):
        with pytest.raises(asyncio.CancelledError):
            with CompletionGuard(make_settings()) as guard:
                raise asyncio.CancelledError()

        assert guard.response.status_code == 502
        assert len(traffic_log()) == 1


class TestCompletion:
    """Responses produced by the remote"""

    def test_respond_sets_status_and_body(self):
        with CompletionGuard(make_settings()) as guard:
            guard.respond(404, b"not here")

        assert guard.completed is True
        assert guard.response.status_code == 404
        assert guard.response.body == b"not here"

    @pytest.mark.parametrize("whenlog, status_code, logged", [
        ("onError", 200, False),
        ("onError", 500, False),
        ("onNon200", 200, False),
        ("onNon200", 204, True),
        ("onNon200", 502, True),
        ("always", 200, True),
        ("always", 500, True),
    ])
    def test_whenlog_policy(self, traffic_log, whenlog, status_code, logged):
        with CompletionGuard(make_settings(WHENLOG=whenlog)) as guard:
            guard.log("Requesting: GET https://remote.example.com:8443/")
            guard.respond(status_code, b"")

        assert bool(traffic_log()) is logged

    def test_block_emitted_once(self, traffic_log):
        with CompletionGuard(make_settings(WHENLOG="always")) as guard:
            guard.log("one")
            guard.log("two")
            guard.respond(200, b"")

        assert traffic_log() == ["one\ntwo"]


class TestBodies:

    def test_basic_omits_bodies(self):
        guard = CompletionGuard(make_settings(WHATLOG="basic"))
        guard.log_body(b"secret")

        assert guard.text == ""

    def test_detailed_includes_bodies(self):
        guard = CompletionGuard(make_settings(WHATLOG="detailed"))
        guard.log_body(b'{"jsonrpc": "2.0"}')

        assert guard.text == '{"jsonrpc": "2.0"}'

    def test_binary_body_does_not_break_logging(self):
        guard = CompletionGuard(make_settings(DEBUG_MODE=True))
        guard.log_body(b"\xff\xfe")

        assert guard.text == "\ufffd\ufffd"
