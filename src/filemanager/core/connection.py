"""
=============================================================================
CONNECTION MANAGEMENT
=============================================================================

Wraps one accepted client socket: buffered line/byte reads for the request
parser, guarded writes for the response writer, and the lifecycle state
used for logging and for deciding how a failure may be reported.

=============================================================================
TCP IS A BYTE STREAM
=============================================================================

recv() returns whatever the kernel has, not "one line" or "one request":

    recv() → b"GET /vid"                 (partial request line)
    recv() → b"eo.mp4 HTTP/1.1\\r\\nRa"   (rest + start of a header)
    recv() → b"nge: bytes=0-99\\r\\n\\r\\n"

So the Connection keeps a private buffer. read_line() pulls from it until
it sees a line terminator; read_exact() pulls until it has N bytes. Bytes
that arrive past what was asked for stay in the buffer for the next call
(typically the header block carries the first few bytes of the body).

=============================================================================
ONE REQUEST PER CONNECTION
=============================================================================

The file manager never keeps connections alive. Every response carries
"Connection: close" and the socket is closed as soon as the response has
been written, whatever happened before.

=============================================================================
CONNECTION STATE MACHINE
=============================================================================

    ACCEPTED ──► HEADERS_READ ──► BODY_READ ──► DISPATCHED ──► RESPONSE_SENT
       │              │               │              │               │
       │              └───────────────┴──────────────┤               │
       │                      error response         │               │
       ▼                                             ▼               ▼
     CLOSED ◄────────────────────────────────────────┴───────────────┘

  - Failing while still ACCEPTED means no request was framed: close
    without a response.
  - Failing after HEADERS_READ but before anything was written means an
    error response can still be sent.
  - Failing once bytes are on the wire means the only honest thing left is
    to close.

close() is idempotent; the state moves to CLOSED exactly once.

=============================================================================
"""

import socket
import time
import logging
import threading
import uuid
from enum import Enum
from dataclasses import dataclass, field
from typing import Optional

from ..http.errors import RequestAborted


logger = logging.getLogger(__name__)


class ConnectionState(Enum):
    """Connection lifecycle states."""
    ACCEPTED = "accepted"            # Socket accepted, nothing read yet
    HEADERS_READ = "headers_read"    # Request line and headers parsed
    BODY_READ = "body_read"          # Declared body fully received
    DISPATCHED = "dispatched"        # Handed to the file manager handler
    RESPONSE_SENT = "response_sent"  # Response head (and body) written
    CLOSED = "closed"                # Socket released


@dataclass
class Connection:
    """
    A single client connection.

    ┌─────────────────────────────────────────────────────────────────────┐
    │                    Connection Responsibilities                       │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                      │
    │  1. BUFFERED READING                                                 │
    │     └── read_line() for the request line and headers                 │
    │     └── read_exact() for the Content-Length body                     │
    │                                                                      │
    │  2. GUARDED WRITING                                                  │
    │     └── send() returns False instead of raising when the peer left   │
    │     └── bytes_sent lets the server tell "nothing sent yet" apart     │
    │                                                                      │
    │  3. STATE TRACKING                                                   │
    │     └── see ConnectionState                                          │
    │                                                                      │
    │  4. CANCELLATION                                                     │
    │     └── abort() shuts the socket down from another thread so a       │
    │         handler blocked in recv()/sendall() returns immediately       │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

    Attributes:
        socket: The client socket.
        address: Client's (ip, port) tuple.
        id: Short connection identifier for log lines.
        state: Current lifecycle state.
        created_at: Timestamp when the connection was accepted.
        bytes_sent: Response bytes successfully written so far.
    """

    socket: socket.socket
    address: tuple[str, int]

    id: str = field(default_factory=lambda: str(uuid.uuid4())[:8])
    state: ConnectionState = ConnectionState.ACCEPTED
    created_at: float = field(default_factory=time.time)
    bytes_sent: int = 0

    buffer_size: int = 8192
    timeout: Optional[float] = 60.0
    max_line_size: int = 64 * 1024

    _buffer: bytes = field(default=b"", repr=False)
    _close_lock: threading.Lock = field(default_factory=threading.Lock, repr=False)

    def __post_init__(self):
        self.socket.setblocking(True)
        if self.timeout:
            self.socket.settimeout(self.timeout)

    # =========================================================================
    # PROPERTIES
    # =========================================================================

    @property
    def client_ip(self) -> str:
        return self.address[0] if self.address else ""

    @property
    def age(self) -> float:
        """Connection age in seconds."""
        return time.time() - self.created_at

    @property
    def is_closed(self) -> bool:
        return self.state == ConnectionState.CLOSED

    @property
    def response_started(self) -> bool:
        """True once any response byte has reached the socket."""
        return self.bytes_sent > 0

    # =========================================================================
    # READING
    # =========================================================================

    def read_line(self) -> Optional[bytes]:
        """
        Read one line, without its terminator.

        Accepts both CRLF and bare LF. Returns None if the peer closed the
        connection before a terminator arrived and nothing is buffered.

        Raises:
            RequestAborted: If the line grows past max_line_size.
        """
        while True:
            newline = self._buffer.find(b"\n")
            if newline != -1:
                line = self._buffer[:newline]
                self._buffer = self._buffer[newline + 1:]
                if line.endswith(b"\r"):
                    line = line[:-1]
                return line

            if len(self._buffer) > self.max_line_size:
                raise RequestAborted(
                    f"Line exceeds {self.max_line_size} bytes"
                )

            chunk = self._recv()
            if not chunk:
                # EOF: hand back a dangling partial line if there is one
                if self._buffer:
                    line, self._buffer = self._buffer, b""
                    return line
                return None
            self._buffer += chunk

    def read_exact(self, length: int) -> bytes:
        """
        Read exactly `length` bytes, or fewer if the peer closes early.

        The caller compares len(result) with `length` to detect truncation.
        """
        chunks = []
        remaining = length

        if self._buffer:
            taken = self._buffer[:remaining]
            self._buffer = self._buffer[len(taken):]
            chunks.append(taken)
            remaining -= len(taken)

        while remaining > 0:
            chunk = self._recv(min(self.buffer_size, remaining))
            if not chunk:
                break
            chunks.append(chunk)
            remaining -= len(chunk)

        return b"".join(chunks)

    def _recv(self, size: Optional[int] = None) -> bytes:
        """
        socket.recv() that reports a vanished peer as EOF.

        Timeouts are NOT swallowed: an idle client is a failure the server
        boundary has to see.
        """
        try:
            return self.socket.recv(size or self.buffer_size)
        except (ConnectionResetError, BrokenPipeError):
            return b""

    # =========================================================================
    # WRITING
    # =========================================================================

    def send(self, data: bytes) -> bool:
        """
        Send all of `data`.

        Returns:
            True if the bytes were handed to the kernel, False if the peer
            is gone (reset, broken pipe, or the socket was aborted).
        """
        if not data:
            return True
        try:
            self.socket.sendall(data)
        except (ConnectionResetError, BrokenPipeError, OSError) as e:
            logger.debug(f"[{self.id}] Send failed: {e}")
            return False
        self.bytes_sent += len(data)
        return True

    # =========================================================================
    # CLOSING
    # =========================================================================

    def abort(self):
        """
        Interrupt in-flight I/O from another thread.

        shutdown(SHUT_RDWR) makes a blocked recv() return b"" and a blocked
        sendall() raise, so the owning handler unwinds on its own. The
        socket itself is still released by close() in that handler.
        """
        if self.is_closed:
            return
        try:
            self.socket.shutdown(socket.SHUT_RDWR)
        except OSError:
            pass  # Already disconnected

    def close(self):
        """
        Close the connection exactly once.

        Sends FIN (shutdown SHUT_WR) so the client sees a clean end of the
        response, then releases the descriptor.
        """
        with self._close_lock:
            if self.state == ConnectionState.CLOSED:
                return
            self.state = ConnectionState.CLOSED

        try:
            self.socket.shutdown(socket.SHUT_WR)
        except OSError:
            pass  # Peer already gone

        try:
            self.socket.close()
        except OSError:
            pass

        logger.debug(
            f"[{self.id}] Connection closed after {self.age * 1000:.1f}ms, "
            f"{self.bytes_sent} bytes sent"
        )

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False
