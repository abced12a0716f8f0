"""
=============================================================================
ACCESS LOG MIDDLEWARE
=============================================================================

One line per request on the "filemanager.access" logger:

    127.0.0.1 - - [17/Oct/2026:09:12:44 +0000] "GET /clip.mp4" 206 1048576 0.41ms "Mozilla/5.0 ..."
    │               │                            │             │   │       │      │
    client ip       timestamp                    request       │   bytes   │      user agent
                                                               status      handler time

"bytes" is the announced Content-Length. For a streamed file the
middleware returns before the body is on the wire, so the time covers
building the response, not sending it.

Responses with status >= 400 are logged at WARNING, the rest at the
configured level. Route the logger elsewhere with the usual logging
configuration:

    logging.getLogger("filemanager.access").addHandler(file_handler)

=============================================================================
"""

import time
import logging
from dataclasses import dataclass

from .base import Middleware, NextHandler
from ..http.request import IncomingRequest
from ..http.response import OutgoingResponse


logger = logging.getLogger("filemanager.access")


@dataclass
class RequestLog:
    """
    Structured log entry for one request.

    method, path:   as received (path still URL-encoded)
    client_ip:      peer address
    user_agent:     "-" when absent
    status_code:    response status
    content_length: announced body size
    duration_ms:    handler time
    timestamp:      Apache-style local time
    """

    method: str
    path: str
    client_ip: str
    user_agent: str
    status_code: int
    content_length: int
    duration_ms: float
    timestamp: str

    def to_text(self) -> str:
        """Apache-like line with timing and user agent appended."""
        return (
            f'{self.client_ip} - - [{self.timestamp}] '
            f'"{self.method} {self.path}" {self.status_code} '
            f'{self.content_length} {self.duration_ms:.2f}ms "{self.user_agent}"'
        )


class LoggingMiddleware(Middleware):
    """
    Access logging, one text line per request.

    Usage:
        pipeline.add(LoggingMiddleware())
    """

    def __init__(self, log_level: int = logging.INFO):
        """
        Args:
            log_level: Level for successful requests.
        """
        self.log_level = log_level

    def __call__(self, request: IncomingRequest, next: NextHandler) -> OutgoingResponse:
        start_time = time.time()

        try:
            response = next(request)
        except Exception as e:
            duration_ms = (time.time() - start_time) * 1000
            logger.error(
                f"Request failed: {request.method} {request.path} "
                f"- {type(e).__name__}: {e} ({duration_ms:.2f}ms)"
            )
            raise

        duration_ms = (time.time() - start_time) * 1000

        log_entry = RequestLog(
            method=request.method,
            path=request.path,
            client_ip=request.client_address[0],
            user_agent=request.user_agent or "-",
            status_code=int(response.status),
            content_length=response.content_length,
            duration_ms=duration_ms,
            timestamp=time.strftime("%d/%b/%Y:%H:%M:%S %z"),
        )

        level = logging.WARNING if log_entry.status_code >= 400 else self.log_level
        logger.log(level, log_entry.to_text())

        return response
