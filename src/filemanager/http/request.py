"""
=============================================================================
HTTP REQUEST PARSER
=============================================================================

Reads exactly one HTTP/1.1 request off a Connection and turns it into an
immutable IncomingRequest.

=============================================================================
WHAT THE PARSER READS
=============================================================================

    ┌─────────────────────────────────────────────────────────────────────┐
    │                                                                      │
    │  POST /photos?action=upload&path=%2Fphotos HTTP/1.1\\r\\n             │
    │  ──┬─ ─────────────────┬─────────────────── ────┬───                 │
    │  method          path + query                 version                │
    │                                                                      │
    │  Host: nas.local:8080\\r\\n                                           │
    │  Content-Type: multipart/form-data; boundary=----xyz\\r\\n            │
    │  Content-Length: 18231\\r\\n            ← body size, read exactly     │
    │  \\r\\n                                 ← end of headers               │
    │                                                                      │
    │  ------xyz\\r\\n ...                    ← 18231 raw bytes              │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

=============================================================================
PARSING RULES
=============================================================================

1. REQUEST LINE: split on whitespace into method, target, version. The
   version is recorded but not validated. If no line arrives at all the
   connection is dropped without a response.

2. HEADERS: each line is split on the FIRST ": " into name and value.
   Names are lowercased. A repeated header overwrites the earlier one
   (last one wins). Lines without ": " are skipped.

3. BODY: if content-length is a positive integer, exactly that many bytes
   are read. A non-numeric Content-Length counts as 0. A body that is cut
   short is a 400; one declared larger than max_request_size is a 413.

4. TARGET: the path keeps its percent-encoding (PathResolver decodes it);
   the query string is parsed with parse_qs(keep_blank_values=True) so
   repeated keys keep every value in order.

=============================================================================
"""

from dataclasses import dataclass, field
from functools import cached_property
from typing import Optional, Dict
from urllib.parse import parse_qs, urlsplit
import logging

from .errors import HTTPParseError, PayloadTooLarge, RequestAborted
from ..core.connection import Connection, ConnectionState


logger = logging.getLogger(__name__)


FORM_URLENCODED = "application/x-www-form-urlencoded"


@dataclass(frozen=True)
class IncomingRequest:
    """
    A parsed request. Immutable once built.

    =========================================================================
    ATTRIBUTES
    =========================================================================

        method:         "GET", "POST", ... exactly as sent
        path:           request path WITHOUT the query, still URL-encoded
                        "/My%20Videos/a.mp4"
        version:        "HTTP/1.1" (not validated)
        headers:        lowercase name → value, one value per name
        query_params:   name → ordered list of values
                        "?a=1&a=2&b=" → {"a": ["1", "2"], "b": [""]}
        body:           raw bytes, len(body) == content-length
        client_address: (ip, port) of the peer

    =========================================================================
    """

    method: str
    path: str
    version: str = "HTTP/1.1"
    headers: Dict[str, str] = field(default_factory=dict)
    query_params: Dict[str, list[str]] = field(default_factory=dict)
    body: bytes = b""
    client_address: tuple[str, int] = ("", 0)

    # =========================================================================
    # HEADER ACCESSORS
    # =========================================================================

    def get_header(self, name: str, default: Optional[str] = None) -> Optional[str]:
        """Case-insensitive header lookup."""
        return self.headers.get(name.lower(), default)

    @property
    def content_type(self) -> str:
        """Full Content-Type value including parameters, or ""."""
        return self.headers.get("content-type", "")

    @property
    def media_type(self) -> str:
        """Content-Type without parameters, lowercased."""
        return self.content_type.split(";")[0].strip().lower()

    @property
    def content_length(self) -> int:
        return parse_content_length(self.headers.get("content-length"))

    @property
    def user_agent(self) -> str:
        return self.headers.get("user-agent", "")

    # =========================================================================
    # PARAMETER ACCESSORS
    # =========================================================================

    def get_query(self, name: str, default: Optional[str] = None) -> Optional[str]:
        """
        First value of a query parameter.

        Example:
            # /clip.mp4?view=video&view=text
            request.get_query("view")  # "video"
        """
        values = self.query_params.get(name, [])
        return values[0] if values else default

    def get_query_list(self, name: str) -> list[str]:
        """Every value of a query parameter, in order."""
        return list(self.query_params.get(name, []))

    @cached_property
    def form_params(self) -> Dict[str, list[str]]:
        """
        Body parameters of an application/x-www-form-urlencoded POST.

        The rename form in the directory listing posts its text input
        (new_name) this way while the rest of the action lives in the
        query string.
        """
        if self.media_type != FORM_URLENCODED or not self.body:
            return {}
        return parse_qs(
            self.body.decode("utf-8", errors="replace"),
            keep_blank_values=True,
            errors="surrogateescape",
        )

    def get_param(self, name: str, default: Optional[str] = None) -> Optional[str]:
        """Form value if present, otherwise query value."""
        values = self.form_params.get(name)
        if values:
            return values[0]
        return self.get_query(name, default)


class RequestParser:
    """
    Reads one request from a Connection.

    ==========================================================================
    PARSER FLOW AND FAILURE MODES
    ==========================================================================

        conn (ACCEPTED)
              │
              ▼
        read_line() ── None / blank / < 2 tokens ──► RequestAborted
              │                                     (no response, close)
              ▼
        read_line() until "" ── headers dict
              │
              ▼  conn.state = HEADERS_READ
              │
        content-length > max_request_size ─────────► PayloadTooLarge (413)
              │
        read_exact(n) ── short read ───────────────► HTTPParseError (400)
              │
              ▼  conn.state = BODY_READ
        IncomingRequest

    ==========================================================================
    """

    def __init__(self, max_request_size: int = 1024 * 1024 * 1024):
        """
        Args:
            max_request_size: Largest body accepted, in bytes. Uploads are
                              held in memory, so this bounds memory use
                              per connection.
        """
        self.max_request_size = max_request_size

    def parse(self, conn: Connection) -> IncomingRequest:
        """
        Parse the next (and only) request on `conn`.

        Raises:
            RequestAborted: Nothing usable arrived; send no response.
            HTTPParseError: Headers were read but the body was truncated.
            PayloadTooLarge: Declared body exceeds max_request_size.
        """
        # ─────────────────────────────────────────────────────────────────
        # STEP 1: Request line
        # ─────────────────────────────────────────────────────────────────
        line = conn.read_line()
        if not line:
            raise RequestAborted("Connection closed before request line")

        method, target, version = self._parse_request_line(line)

        # ─────────────────────────────────────────────────────────────────
        # STEP 2: Headers
        # ─────────────────────────────────────────────────────────────────
        headers = self._read_headers(conn)
        conn.state = ConnectionState.HEADERS_READ

        # ─────────────────────────────────────────────────────────────────
        # STEP 3: Body
        # ─────────────────────────────────────────────────────────────────
        content_length = parse_content_length(headers.get("content-length"))
        body = b""
        if content_length > 0:
            if content_length > self.max_request_size:
                raise PayloadTooLarge(
                    f"Request body of {content_length} bytes exceeds "
                    f"limit of {self.max_request_size}"
                )
            body = conn.read_exact(content_length)
            if len(body) < content_length:
                raise HTTPParseError(
                    f"Incomplete body: expected {content_length} bytes, "
                    f"got {len(body)}"
                )
        conn.state = ConnectionState.BODY_READ

        # ─────────────────────────────────────────────────────────────────
        # STEP 4: Split target into path and query
        # ─────────────────────────────────────────────────────────────────
        parts = urlsplit(target)
        return IncomingRequest(
            method=method,
            path=parts.path or "/",
            version=version,
            headers=headers,
            query_params=parse_qs(parts.query, keep_blank_values=True, errors="surrogateescape"),
            body=body,
            client_address=conn.address,
        )

    def _parse_request_line(self, line: bytes) -> tuple[str, str, str]:
        """
        Split "METHOD TARGET VERSION" on whitespace.

        A missing version is tolerated and reported as HTTP/1.0, the way
        pre-1.0 style "GET /" lines are usually treated.
        """
        tokens = line.decode("utf-8", errors="replace").split()
        if len(tokens) < 2:
            raise RequestAborted(f"Malformed request line: {line[:100]!r}")

        method, target = tokens[0], tokens[1]
        version = tokens[2] if len(tokens) > 2 else "HTTP/1.0"
        return method, target, version

    def _read_headers(self, conn: Connection) -> Dict[str, str]:
        """Read header lines up to the blank separator line."""
        headers: Dict[str, str] = {}

        while True:
            raw = conn.read_line()
            if raw is None or raw == b"":
                # Blank line ends the block; EOF is treated the same
                return headers

            line = raw.decode("utf-8", errors="replace")
            name, sep, value = line.partition(": ")
            if not sep:
                continue  # Lenient: skip lines that are not "Name: value"

            headers[name.strip().lower()] = value.strip()


def parse_content_length(value: Optional[str]) -> int:
    """Content-Length as a non-negative int; anything unparseable is 0."""
    if not value:
        return 0
    try:
        length = int(value.strip())
    except ValueError:
        return 0
    return max(length, 0)
