"""
=============================================================================
HTTP STATUS CODES
=============================================================================

The subset of RFC 7231 / RFC 7233 status codes the file manager can emit.

=============================================================================
WHICH CODES AND WHEN
=============================================================================

    ┌────────┬──────────────────────────┬──────────────────────────────────┐
    │  Code  │  Phrase                  │  Emitted by                      │
    ├────────┼──────────────────────────┼──────────────────────────────────┤
    │  200   │  OK                      │  listing, viewers, full file     │
    │  206   │  Partial Content         │  byte-range video streaming      │
    │  302   │  Found                   │  after upload / delete / rename  │
    │  400   │  Bad Request             │  missing params, bad multipart   │
    │  403   │  Forbidden               │  path escapes the root           │
    │  404   │  Not Found               │  target does not exist           │
    │  405   │  Method Not Allowed      │  anything but GET / POST         │
    │  413   │  Payload Too Large       │  body over max_request_size      │
    │  500   │  Internal Server Error   │  unexpected handler failure      │
    │  503   │  Service Unavailable     │  max_connections reached         │
    └────────┴──────────────────────────┴──────────────────────────────────┘

Note that 416 Range Not Satisfiable is deliberately absent: a Range header
the server cannot honour degrades to a plain 200 with the whole file.

=============================================================================
"""

from enum import IntEnum


class HTTPStatus(IntEnum):
    """
    HTTP status codes with reason phrases.

    Extends IntEnum so a status compares equal to its number:

        >>> HTTPStatus.PARTIAL_CONTENT == 206
        True
        >>> HTTPStatus.PARTIAL_CONTENT.phrase
        'Partial Content'
    """

    # 2xx SUCCESS
    OK = 200
    PARTIAL_CONTENT = 206               # Range request fulfilled

    # 3xx REDIRECTION
    FOUND = 302                         # Post/redirect/get after a mutation

    # 4xx CLIENT ERRORS
    BAD_REQUEST = 400
    FORBIDDEN = 403
    NOT_FOUND = 404
    METHOD_NOT_ALLOWED = 405
    PAYLOAD_TOO_LARGE = 413

    # 5xx SERVER ERRORS
    INTERNAL_SERVER_ERROR = 500
    SERVICE_UNAVAILABLE = 503

    @property
    def phrase(self) -> str:
        """
        Reason phrase for the status line.

            HTTP/1.1 206 Partial Content
                     ─── ───────────────
                      │         └── phrase
                      └──────────── status code
        """
        return _STATUS_PHRASES.get(self, "Unknown")

    @property
    def is_success(self) -> bool:
        """True for 2xx codes."""
        return 200 <= self < 300

    @property
    def is_redirect(self) -> bool:
        """True for 3xx codes."""
        return 300 <= self < 400

    @property
    def is_error(self) -> bool:
        """True for 4xx and 5xx codes. Used to pick the access log level."""
        return self >= 400


_STATUS_PHRASES = {
    HTTPStatus.OK: "OK",
    HTTPStatus.PARTIAL_CONTENT: "Partial Content",
    HTTPStatus.FOUND: "Found",
    HTTPStatus.BAD_REQUEST: "Bad Request",
    HTTPStatus.FORBIDDEN: "Forbidden",
    HTTPStatus.NOT_FOUND: "Not Found",
    HTTPStatus.METHOD_NOT_ALLOWED: "Method Not Allowed",
    HTTPStatus.PAYLOAD_TOO_LARGE: "Payload Too Large",
    HTTPStatus.INTERNAL_SERVER_ERROR: "Internal Server Error",
    HTTPStatus.SERVICE_UNAVAILABLE: "Service Unavailable",
}
