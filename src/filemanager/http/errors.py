"""
=============================================================================
HTTP ERROR TAXONOMY
=============================================================================

Every failure a request can hit is expressed as an exception that carries
the HTTP status it should produce. Handlers raise; exactly one place, the
server's dispatch boundary, turns them into plain-text responses.

    ┌─────────────────────────────────────────────────────────────────────┐
    │                        EXCEPTION HIERARCHY                           │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                      │
    │   Exception                                                          │
    │     ├── RequestAborted         close the socket, send nothing        │
    │     └── HTTPError              status + message                      │
    │           ├── BadRequest           400                               │
    │           │     └── HTTPParseError     400 (framing problems)        │
    │           ├── Forbidden            403                               │
    │           ├── NotFound             404                               │
    │           ├── MethodNotAllowed     405  (+ Allow header)             │
    │           ├── PayloadTooLarge      413                               │
    │           └── InternalError        500                               │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

Anything that is NOT an HTTPError reaching the boundary is a bug or an
I/O failure; it is logged with its traceback and answered with a 500.

=============================================================================
"""

from typing import Optional

from .status_codes import HTTPStatus


class RequestAborted(Exception):
    """
    The request could not even be framed (no request line, peer gone,
    line too long). No response is possible; the connection is dropped.
    """


class HTTPError(Exception):
    """
    Base class for errors that map onto an HTTP status.

    Args:
        message: Plain-text body sent to the client.
        status: Status code to answer with. Subclasses fix a default.
        headers: Extra response headers (e.g. Allow for 405).
    """

    status: HTTPStatus = HTTPStatus.INTERNAL_SERVER_ERROR

    def __init__(
        self,
        message: str = "",
        status: Optional[HTTPStatus] = None,
        headers: Optional[dict[str, str]] = None,
    ):
        if status is not None:
            self.status = HTTPStatus(status)
        self.message = message or self.status.phrase
        self.headers = dict(headers or {})
        super().__init__(self.message)

    @property
    def status_code(self) -> int:
        """Integer status, for code that only wants the number."""
        return int(self.status)


class BadRequest(HTTPError):
    status = HTTPStatus.BAD_REQUEST


class HTTPParseError(BadRequest):
    """
    Raised when the request bytes cannot be parsed.

    Kept separate from BadRequest so the boundary can log framing problems
    differently from application-level validation failures.
    """

    def __init__(self, message: str, status_code: int = 400):
        super().__init__(message, status=HTTPStatus(status_code))


class Forbidden(HTTPError):
    status = HTTPStatus.FORBIDDEN


class NotFound(HTTPError):
    status = HTTPStatus.NOT_FOUND


class MethodNotAllowed(HTTPError):
    status = HTTPStatus.METHOD_NOT_ALLOWED

    def __init__(self, method: str, allowed: tuple[str, ...] = ("GET", "POST")):
        super().__init__(
            f"Method {method} not allowed",
            headers={"Allow": ", ".join(allowed)},
        )
        self.allowed = allowed


class PayloadTooLarge(HTTPError):
    status = HTTPStatus.PAYLOAD_TOO_LARGE


class InternalError(HTTPError):
    status = HTTPStatus.INTERNAL_SERVER_ERROR
