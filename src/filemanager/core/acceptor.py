"""
=============================================================================
CONNECTION ACCEPTOR
=============================================================================

Owns the listening TCP socket. Accepts clients and hands each one, wrapped
in a Connection, to a callback; everything after accept() happens
elsewhere.

    ┌─────────────────────────────────────────────────────────────────────┐
    │                         start(handler)                               │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                      │
    │   _create_socket()   SO_REUSEADDR, SO_REUSEPORT, TCP_NODELAY         │
    │   bind()             failure is fatal (logged and re-raised)         │
    │   listen(backlog)                                                    │
    │   _setup_signals()   SIGINT / SIGTERM → shutdown()                   │
    │   _accept_loop()     BLOCKS until shutdown()                         │
    │       │                                                              │
    │       └── accept() → Connection(...) → handler(conn)                 │
    │                                                                      │
    │   _cleanup()         restore signal handlers, close listener         │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

=============================================================================
ACCEPT ERRORS
=============================================================================

accept() has a one-second timeout so the loop can notice shutdown():

    socket.timeout           normal, loop again
    OSError while running    logged, loop again (EMFILE, ECONNABORTED ...)
    OSError after shutdown   listener is gone, leave the loop quietly

=============================================================================
SIGNALS
=============================================================================

Python only allows signal handlers in the main thread. When start() runs
anywhere else (tests, embedding) signals are left alone and shutdown()
must be called explicitly.

=============================================================================
"""

import socket
import signal
import logging
import threading
import time
from typing import Optional, Callable, Tuple

from ..config import ServerConfig
from .connection import Connection


logger = logging.getLogger(__name__)


# accept() poll interval, bounds how long shutdown() takes to be noticed
ACCEPT_TIMEOUT = 1.0

# pause after a failed accept() so a persistent error (EMFILE) cannot spin
ACCEPT_ERROR_BACKOFF = 0.05


class ConnectionAcceptor:
    """
    Listening socket and accept loop.

    Usage:
        acceptor = ConnectionAcceptor(config)
        acceptor.start(handle_connection)   # blocks until shutdown()
    """

    def __init__(self, config: ServerConfig):
        self.config = config

        self._socket: Optional[socket.socket] = None
        self._running = False
        self._bound_address: Optional[Tuple[str, int]] = None

        # Set once the socket is listening; cleared again on cleanup
        self._listening_event = threading.Event()

        # Original signal handlers, restored on cleanup
        self._original_handlers: dict = {}

    @property
    def is_running(self) -> bool:
        return self._running

    @property
    def address(self) -> Tuple[str, int]:
        """The bound (host, port); the configured one before start()."""
        return self._bound_address or (self.config.host, self.config.port)

    @property
    def bound_port(self) -> int:
        """Actual listening port (differs from config.port when it was 0)."""
        return self.address[1]

    def _create_socket(self) -> socket.socket:
        sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)

        # Rebind immediately after a restart (TIME_WAIT)
        sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)

        try:
            sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEPORT, 1)
        except AttributeError:
            pass  # Not available on Windows

        # Headers go out in one small write; don't let Nagle hold them
        sock.setsockopt(socket.IPPROTO_TCP, socket.TCP_NODELAY, 1)

        sock.settimeout(ACCEPT_TIMEOUT)
        return sock

    def _setup_signals(self):
        """Install SIGINT/SIGTERM handlers that call shutdown()."""
        if threading.current_thread() is not threading.main_thread():
            logger.debug("Not in main thread, signal handlers not installed")
            return

        def shutdown_handler(signum, frame):
            signal_name = signal.Signals(signum).name
            logger.info(f"Received {signal_name}, initiating shutdown...")
            self.shutdown()

        self._original_handlers[signal.SIGTERM] = signal.signal(signal.SIGTERM, shutdown_handler)
        self._original_handlers[signal.SIGINT] = signal.signal(signal.SIGINT, shutdown_handler)

    def _restore_signals(self):
        for sig, handler in self._original_handlers.items():
            signal.signal(sig, handler)
        self._original_handlers.clear()

    def start(self, connection_handler: Callable[[Connection], None]):
        """
        Bind, listen and accept until shutdown() is called.

        Args:
            connection_handler: Called with each accepted Connection, on
                                the accept thread. Must not block.

        Raises:
            OSError: If the address cannot be bound.
        """
        self._socket = self._create_socket()
        try:
            self._socket.bind((self.config.host, self.config.port))
        except OSError as e:
            logger.error(f"Failed to bind to {self.config.host}:{self.config.port}: {e}")
            self._socket.close()
            self._socket = None
            raise

        self._socket.listen(self.config.backlog)
        self._bound_address = self._socket.getsockname()[:2]

        self._running = True
        self._setup_signals()
        self._listening_event.set()

        logger.info(f"Listening on {self._bound_address[0]}:{self._bound_address[1]}")

        try:
            self._accept_loop(connection_handler)
        finally:
            self._cleanup()

    def _accept_loop(self, connection_handler: Callable[[Connection], None]):
        while self._running:
            try:
                client_socket, client_address = self._socket.accept()
            except socket.timeout:
                continue
            except OSError as e:
                if not self._running:
                    break
                logger.error(f"Accept error: {e}")
                time.sleep(ACCEPT_ERROR_BACKOFF)
                continue

            logger.debug(f"Accepted connection from {client_address[0]}:{client_address[1]}")

            conn = Connection(
                socket=client_socket,
                address=client_address,
                buffer_size=self.config.buffer_size,
                timeout=self.config.timeout,
                max_line_size=self.config.max_line_size,
            )
            connection_handler(conn)

    def shutdown(self):
        """
        Stop accepting. Safe to call from any thread or a signal handler,
        and more than once. The listener is closed by the accept thread
        within ACCEPT_TIMEOUT.
        """
        if self._running:
            logger.info("Shutting down acceptor...")
        self._running = False

    def _cleanup(self):
        self._restore_signals()
        self._listening_event.clear()

        if self._socket:
            try:
                self._socket.close()
            except OSError:
                pass  # Already closed
            self._socket = None

        logger.info("Acceptor stopped")

    def wait_until_listening(self, timeout: Optional[float] = None) -> bool:
        """Block until the socket is listening. True unless timed out."""
        return self._listening_event.wait(timeout)
