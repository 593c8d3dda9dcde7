"""
Per-request completion and logging guard.

Every forwarded request runs inside a CompletionGuard. The guard:

- accumulates the request's log lines and prints them as one block when
  the request finishes, so blocks from concurrent requests never mix
- records whether a response was produced; if not (any abort), the
  caller gets a bare 502
- decides, from the final status and WHENLOG, whether the block is
  printed at all

Aborted requests are always logged. For completed responses:

    onError   never logged (even for non-2xx statuses)
    onNon200  logged unless the status is exactly 200
    always    logged
"""

import logging
from typing import List, Optional

from fastapi import Response, status

from ..config import Settings
from ..errors import ForwardingError
from ..models import WhatLog, WhenLog

logger = logging.getLogger(__name__)

# Plain-text request blocks; configured by main.setup_logging
traffic_logger = logging.getLogger("blockchain_connector.traffic")


class CompletionGuard:
    """
    Context for one forwarded request.

    Usage:
        with CompletionGuard(settings) as guard:
            guard.log("Requesting: GET https://remote/foo")
            ...
            guard.respond(200, body)
        return guard.response
    """

    def __init__(self, settings: Settings):
        self.settings = settings
        self.completed = False
        self.should_log = True
        self.response: Optional[Response] = None
        self._lines: List[str] = []

    @property
    def detailed(self) -> bool:
        return self.settings.effective_whatlog == WhatLog.DETAILED

    @property
    def text(self) -> str:
        return "\n".join(self._lines)

    def log(self, line: str) -> None:
        self._lines.append(line)

    def log_body(self, body: bytes) -> None:
        """Add a body to the block when WHATLOG is detailed."""
        if self.detailed:
            self.log(body.decode("utf-8", errors="replace"))

    def respond(self, status_code: int, body: bytes) -> Response:
        """
        Produce the terminal response and mark the request complete.

        No upstream headers are carried over.
        """
        self.response = Response(content=body, status_code=status_code)
        self.completed = True

        whenlog = self.settings.effective_whenlog
        if whenlog == WhenLog.ON_ERROR:
            self.should_log = False
        elif whenlog == WhenLog.ON_NON_200 and status_code == status.HTTP_200_OK:
            self.should_log = False
        return self.response

    def __enter__(self) -> "CompletionGuard":
        return self

    def __exit__(self, exc_type, exc, tb) -> bool:
        handled = False
        if isinstance(exc, ForwardingError):
            self.log(f"Error when {exc.stage}:\n{exc}")
            handled = True
        elif isinstance(exc, Exception):
            logger.error(f"Unexpected error while forwarding: {exc}", exc_info=exc)
            self.log(f"Unexpected error:\n{exc!r}")
            handled = True

        if not self.completed:
            self.response = Response(status_code=status.HTTP_502_BAD_GATEWAY)

        if self.should_log:
            traffic_logger.info(self.text)

        # CancelledError and other BaseExceptions keep propagating
        return handled
