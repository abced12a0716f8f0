"""
=============================================================================
HTTP RESPONSES
=============================================================================

OutgoingResponse describes what to send; ResponseWriter puts it on the
wire. Bodies are either fully in memory (HTML pages, error text) or a
stream of chunks (files, byte ranges).

=============================================================================
WIRE FORMAT
=============================================================================

    HTTP/1.1 206 Partial Content\\r\\n       ← status line
    Content-Type: video/mp4\\r\\n
    Content-Length: 100\\r\\n                 ← always a fixed length
    Content-Range: bytes 0-99/73400320\\r\\n
    Accept-Ranges: bytes\\r\\n
    Cache-Control: no-cache\\r\\n
    Connection: close\\r\\n                   ← always
    Date: Sat, 17 Oct 2026 09:12:44 GMT\\r\\n ← auto-added
    Server: FileManager/1.0\\r\\n             ← auto-added
    \\r\\n
    <100 body bytes, written in 8192-byte chunks>

There is no chunked transfer-encoding: "chunks" here are just how the
writer slices a body whose total length was announced up front.

=============================================================================
STREAMING AND CANCELLATION
=============================================================================

    for chunk in response.stream:
        if cancel_event.is_set():  ─── server shutting down → stop
        if not conn.send(chunk):   ─── client went away      → stop
    response.stream.close()        ─── always, releases the file handle

Stopping early is not an error. The connection is closed right after, so
the client sees a short body and knows the transfer was cut.

=============================================================================
"""

import logging
import threading
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Dict, Iterable, Optional, Union
from urllib.parse import quote

from .status_codes import HTTPStatus
from ..core.connection import Connection, ConnectionState


logger = logging.getLogger(__name__)


DEFAULT_SERVER_NAME = "FileManager/1.0"


@dataclass
class OutgoingResponse:
    """
    A response waiting to be written.

    Exactly one of `body` / `stream` carries the payload. When `stream` is
    set, the Content-Length header must already announce its total size.
    A response is consumed once: the writer closes the stream.
    """

    status: HTTPStatus = HTTPStatus.OK
    headers: Dict[str, str] = field(default_factory=dict)
    body: bytes = b""
    stream: Optional[Iterable[bytes]] = field(default=None, repr=False)
    version: str = "HTTP/1.1"

    @property
    def reason(self) -> str:
        return self.status.phrase

    @property
    def status_line(self) -> str:
        return f"{self.version} {int(self.status)} {self.reason}"

    @property
    def content_length(self) -> int:
        """Announced body length (what the access log reports)."""
        try:
            return int(self.headers["Content-Length"])
        except (KeyError, ValueError):
            return len(self.body)

    def head_bytes(self, server_name: str = DEFAULT_SERVER_NAME) -> bytes:
        """
        Serialize the status line and headers, ending with the blank line.

        Content-Length, Connection, Date and Server are filled in when the
        handler did not set them.
        """
        headers = dict(self.headers)
        if self.stream is None:
            headers.setdefault("Content-Length", str(len(self.body)))
        headers["Connection"] = "close"
        headers.setdefault("Date", format_http_date(datetime.now(timezone.utc)))
        headers.setdefault("Server", server_name)

        lines = [self.status_line]
        lines.extend(f"{name}: {value}" for name, value in headers.items())
        lines.append("")
        lines.append("")
        return "\r\n".join(lines).encode("utf-8")


class ResponseBuilder:
    """
    Fluent builder for OutgoingResponse.

        response = (ResponseBuilder()
            .status(HTTPStatus.OK)
            .html(page)
            .build())
    """

    def __init__(self):
        self._status = HTTPStatus.OK
        self._headers: Dict[str, str] = {}
        self._body: bytes = b""
        self._stream: Optional[Iterable[bytes]] = None

    def status(self, status: HTTPStatus) -> "ResponseBuilder":
        self._status = HTTPStatus(status)
        return self

    def header(self, name: str, value: str) -> "ResponseBuilder":
        self._headers[name] = value
        return self

    def headers(self, headers: Dict[str, str]) -> "ResponseBuilder":
        self._headers.update(headers)
        return self

    def content_type(self, content_type: str) -> "ResponseBuilder":
        return self.header("Content-Type", content_type)

    def body(self, body: Union[str, bytes]) -> "ResponseBuilder":
        self._body = body.encode("utf-8") if isinstance(body, str) else body
        return self

    def text(self, text: str) -> "ResponseBuilder":
        """Plain-text body, used for every error response."""
        self._body = text.encode("utf-8", errors="replace")
        self._headers["Content-Type"] = "text/plain; charset=utf-8"
        return self

    def html(self, html: str) -> "ResponseBuilder":
        self._body = html.encode("utf-8", errors="replace")
        self._headers["Content-Type"] = "text/html; charset=UTF-8"
        return self

    def stream(self, source: Iterable[bytes], length: int) -> "ResponseBuilder":
        """
        Stream the body from `source`, announcing `length` bytes.

        Args:
            source: Iterable of byte chunks. If it has a close() method it
                    is called once the writer is done with it.
            length: Total number of bytes the source yields.
        """
        self._stream = source
        self._body = b""
        self._headers["Content-Length"] = str(length)
        return self

    def redirect(self, location: str) -> "ResponseBuilder":
        """
        302 Found with an empty body.

        The location is percent-encoded (non-ASCII names are legal on disk
        but not in a header); "/" stays literal.
        Names that are not valid UTF-8 keep their raw bytes.
        """
        self._status = HTTPStatus.FOUND
        self._headers["Location"] = quote(location, safe="/", errors="surrogateescape")
        self._headers["Content-Length"] = "0"
        self._body = b""
        return self

    def build(self) -> OutgoingResponse:
        return OutgoingResponse(
            status=self._status,
            headers=self._headers,
            body=self._body,
            stream=self._stream,
        )


class ResponseWriter:
    """
    Writes an OutgoingResponse to a Connection.

    ┌─────────────────────────────────────────────────────────────────────┐
    │                        write() Flow                                  │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                      │
    │   head_bytes() ──► conn.send()        False? → stop, return False   │
    │        │                                                             │
    │        ├── in-memory body ──► conn.send(body)                       │
    │        │                                                             │
    │        └── stream ──► for chunk:                                     │
    │                         cancel set?      → stop                      │
    │                         conn.send(chunk) → False? stop               │
    │                       stream.close()                                 │
    │                                                                      │
    │   conn.state = RESPONSE_SENT                                         │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘
    """

    def __init__(
        self,
        server_name: str = DEFAULT_SERVER_NAME,
        cancel_event: Optional[threading.Event] = None,
    ):
        """
        Args:
            server_name: Value of the Server header.
            cancel_event: Shutdown flag checked between streamed chunks.
        """
        self.server_name = server_name
        self.cancel_event = cancel_event or threading.Event()

    def write(self, conn: Connection, response: OutgoingResponse) -> bool:
        """
        Send `response` on `conn`.

        Returns:
            True if the whole response was written, False if the peer went
            away or shutdown interrupted a stream.
        """
        try:
            if not conn.send(response.head_bytes(self.server_name)):
                return False
            conn.state = ConnectionState.RESPONSE_SENT

            if response.stream is None:
                return conn.send(response.body)
            return self._write_stream(conn, response.stream)
        finally:
            close = getattr(response.stream, "close", None)
            if close is not None:
                close()

    def _write_stream(self, conn: Connection, stream: Iterable[bytes]) -> bool:
        for chunk in stream:
            if self.cancel_event.is_set():
                logger.debug(f"[{conn.id}] Stream cancelled by shutdown")
                return False
            if not conn.send(chunk):
                logger.debug(f"[{conn.id}] Client disconnected mid-stream")
                return False
        return True


# =============================================================================
# UTILITY FUNCTIONS
# =============================================================================

def format_http_date(dt: datetime) -> str:
    """
    Format a datetime as an RFC 7231 HTTP-date.

    Example: "Sat, 17 Oct 2026 09:12:44 GMT". Always GMT.
    """
    days = ["Mon", "Tue", "Wed", "Thu", "Fri", "Sat", "Sun"]
    months = ["Jan", "Feb", "Mar", "Apr", "May", "Jun",
              "Jul", "Aug", "Sep", "Oct", "Nov", "Dec"]
    return (
        f"{days[dt.weekday()]}, "
        f"{dt.day:02d} {months[dt.month - 1]} {dt.year} "
        f"{dt.hour:02d}:{dt.minute:02d}:{dt.second:02d} GMT"
    )


# =============================================================================
# CONVENIENCE FUNCTIONS
# =============================================================================

def redirect(location: str) -> OutgoingResponse:
    """302 Found to `location`."""
    return ResponseBuilder().redirect(location).build()


def html_page(html: str) -> OutgoingResponse:
    """200 OK with an HTML body."""
    return ResponseBuilder().html(html).build()


def text_error(
    status: HTTPStatus,
    message: str,
    headers: Optional[Dict[str, str]] = None,
) -> OutgoingResponse:
    """
    Plain-text error response.

    Every error the file manager reports looks like this: a short message
    in text/plain and Connection: close.
    """
    return (ResponseBuilder()
        .status(status)
        .headers(headers or {})
        .text(message)
        .build())
