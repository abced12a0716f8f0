"""
=============================================================================
FILE MANAGER SERVER
=============================================================================

Ties the components together: one listening socket, one thread per
connection, one request per connection.

=============================================================================
ARCHITECTURE OVERVIEW
=============================================================================

    ┌─────────────────────────────────────────────────────────────────────┐
    │                    FILE MANAGER ARCHITECTURE                         │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                      │
    │                      ┌───────────────────┐                           │
    │                      │ FileManagerServer │                           │
    │                      └─────────┬─────────┘                           │
    │                                │                                     │
    │        ┌───────────────────────┼───────────────────────┐             │
    │        ▼                       ▼                       ▼             │
    │ ┌──────────────────┐  ┌──────────────────┐  ┌───────────────────┐    │
    │ │ConnectionAcceptor│  │    Supervisor    │  │FileManagerHandler │    │
    │ │   (listening)    │  │ (thread per conn)│  │ (GET / POST)      │    │
    │ └──────────────────┘  └──────────────────┘  └─────────┬─────────┘    │
    │                                                       │              │
    │                            ┌──────────────────────────┼──────┐       │
    │                            ▼                          ▼      ▼       │
    │                      PathResolver      RangeFileStreamer  Multipart  │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

=============================================================================
REQUEST LIFECYCLE (handler thread)
=============================================================================

    1. RequestParser.parse(conn)         ACCEPTED → HEADERS_READ → BODY_READ
    2. middleware → _dispatch            DISPATCHED
         └── FileManagerHandler.handle
               HTTPError → plain-text error response
    3. ResponseWriter.write(conn, resp)  RESPONSE_SENT
    4. conn.close()                      CLOSED (always, exactly once)

=============================================================================
ERROR BOUNDARY
=============================================================================

    ┌──────────────────────────────┬───────────────────────────────────────┐
    │ Failure                      │ Result                                │
    ├──────────────────────────────┼───────────────────────────────────────┤
    │ nothing / garbage arrived    │ close, no response                    │
    │ timeout before headers       │ close, no response                    │
    │ timeout reading the body     │ 500                                   │
    │ framing error, body too big  │ 400 / 413                             │
    │ HTTPError from the handler   │ its status, text/plain message        │
    │ any other exception          │ 500, logged with traceback            │
    │ failure after bytes were sent│ close; the client sees a short body   │
    └──────────────────────────────┴───────────────────────────────────────┘

Nothing escapes a handler thread.

=============================================================================
"""

import logging
from typing import Optional, Callable

from .config import ServerConfig
from .core import ConnectionAcceptor, ConnectionSupervisor, Connection, ConnectionState
from .fs import PathResolver, RangeFileStreamer, MultipartParser
from .handlers import FileManagerHandler
from .http import (
    HTTPError,
    HTTPStatus,
    InternalError,
    IncomingRequest,
    OutgoingResponse,
    RequestAborted,
    RequestParser,
    ResponseWriter,
    text_error,
)
from .middleware import MiddlewarePipeline, Middleware, LoggingMiddleware


logger = logging.getLogger(__name__)


# Total time handler threads get to exit after shutdown is requested
SHUTDOWN_TIMEOUT = 5.0


class FileManagerServer:
    """
    Web file manager over raw sockets.

    Usage:
        server = FileManagerServer(ServerConfig(root_dir="~/Videos", port=8080))
        server.run()    # blocks until Ctrl+C / SIGTERM / shutdown()

    A server instance runs once; create a new one to serve again.
    """

    def __init__(self, config: Optional[ServerConfig] = None):
        """
        Args:
            config: Server configuration. Defaults serve the current
                    directory on port 8080.

        Raises:
            ValueError: If the configuration is invalid.
        """
        self.config = config or ServerConfig()
        self.config.validate()

        # ─────────────────────────────────────────────────────────────────
        # CORE COMPONENTS
        # ─────────────────────────────────────────────────────────────────
        self._acceptor = ConnectionAcceptor(self.config)
        self._supervisor = ConnectionSupervisor(self.config.max_connections)
        self._parser = RequestParser(max_request_size=self.config.max_request_size)
        self._writer = ResponseWriter(
            server_name=self.config.server_name,
            cancel_event=self._supervisor.cancel_event,
        )

        # ─────────────────────────────────────────────────────────────────
        # APPLICATION COMPONENTS
        # ─────────────────────────────────────────────────────────────────
        self.resolver = PathResolver(self.config.root_dir)
        self.file_handler = FileManagerHandler(
            resolver=self.resolver,
            streamer=RangeFileStreamer(chunk_size=self.config.chunk_size),
            multipart=MultipartParser(),
        )

        self._middleware = MiddlewarePipeline()
        if self.config.access_log:
            self._middleware.add(LoggingMiddleware())

        # Built in run(): middleware.wrap(self._dispatch)
        self._handler: Optional[Callable[[IncomingRequest], OutgoingResponse]] = None

        self._running = False

    # =========================================================================
    # CONFIGURATION
    # =========================================================================

    def use(self, middleware: Middleware) -> "FileManagerServer":
        """Add middleware (inside the access log). Chainable."""
        self._middleware.add(middleware)
        return self

    @property
    def acceptor(self) -> ConnectionAcceptor:
        return self._acceptor

    @property
    def supervisor(self) -> ConnectionSupervisor:
        return self._supervisor

    @property
    def port(self) -> int:
        """Listening port, resolved once the socket is bound."""
        return self._acceptor.bound_port

    # =========================================================================
    # SERVER LIFECYCLE
    # =========================================================================

    def run(self):
        """
        Start serving (blocking).

        Raises:
            OSError: If the listening socket cannot be bound.
        """
        self._running = True

        self._setup_logging()
        self._handler = self._middleware.wrap(self._dispatch)

        logger.info(f"Serving {self.resolver.root} on {self.config.host}:{self.config.port}")
        self._print_startup_banner()

        try:
            self._acceptor.start(self._handle_connection)
        except KeyboardInterrupt:
            logger.info("Received keyboard interrupt")
        finally:
            self._shutdown()

    def shutdown(self):
        """Ask a running server to stop. Returns immediately."""
        self._acceptor.shutdown()

    def wait_until_ready(self, timeout: Optional[float] = None) -> bool:
        """Block until the server is accepting connections."""
        return self._acceptor.wait_until_listening(timeout)

    def _print_startup_banner(self):
        url = f"http://localhost:{self.config.port}"
        print()
        print("╔══════════════════════════════════════════════════════════════╗")
        print(f"║  📂 Starting file manager on port {self.config.port:<27}║")
        print(f"║  🏠 Local access: {url:<43}║")
        print(f"║  📁 Root directory: {str(self.resolver.root):<41}║")
        print("║  Press Ctrl+C to stop                                        ║")
        print("╚══════════════════════════════════════════════════════════════╝")
        print()

    def _setup_logging(self):
        level = getattr(logging, self.config.log_level.upper(), logging.INFO)

        logging.basicConfig(
            level=level,
            format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )
        logging.getLogger("filemanager").setLevel(level)

    def _shutdown(self):
        """
        Stop accepting, then cancel in-flight handlers.

        There is no drain: streams stop at their next chunk boundary and
        blocked reads are interrupted.
        """
        logger.info("Shutting down server...")
        self._running = False
        self._acceptor.shutdown()

        stragglers = self._supervisor.cancel_all(timeout=SHUTDOWN_TIMEOUT)
        if stragglers:
            logger.warning(f"{stragglers} handler thread(s) still running at exit")

        logger.info("Server stopped")

    # =========================================================================
    # CONNECTION HANDLING
    # =========================================================================

    def _handle_connection(self, conn: Connection):
        """
        Hand a freshly accepted connection to its own thread.

        Runs on the accept thread, so a refusal is answered inline: the
        503 is tiny and the socket is closed right after.
        """
        if self._supervisor.spawn(conn, self._process_connection):
            return

        if not self._supervisor.is_cancelled:
            self._send_error(conn, text_error(
                HTTPStatus.SERVICE_UNAVAILABLE,
                "Server busy, try again later",
            ))
        conn.close()

    def _process_connection(self, conn: Connection):
        """Serve the single request on `conn` (handler thread)."""
        with conn:
            # ─────────────────────────────────────────────────────────────
            # PARSE
            # ─────────────────────────────────────────────────────────────
            try:
                request = self._parser.parse(conn)
            except RequestAborted as e:
                logger.debug(f"[{conn.id}] Aborted: {e}")
                return
            except TimeoutError as e:
                logger.warning(f"[{conn.id}] Timed out reading request from {conn.client_ip}")
                if conn.state != ConnectionState.ACCEPTED:
                    self._send_error(conn, self._internal_error(e))
                return
            except HTTPError as e:
                logger.warning(f"[{conn.id}] Bad request from {conn.client_ip}: {e.message}")
                self._send_error(conn, self._error_response(e))
                return
            except Exception as e:
                logger.exception(f"[{conn.id}] Error reading request: {e}")
                if conn.state != ConnectionState.ACCEPTED:
                    self._send_error(conn, self._internal_error(e))
                return

            # ─────────────────────────────────────────────────────────────
            # DISPATCH (middleware + handler)
            # ─────────────────────────────────────────────────────────────
            conn.state = ConnectionState.DISPATCHED
            try:
                response = self._handler(request)
            except Exception as e:
                logger.exception(f"[{conn.id}] Handler error: {e}")
                response = self._internal_error(e)

            # ─────────────────────────────────────────────────────────────
            # RESPOND
            # ─────────────────────────────────────────────────────────────
            try:
                self._writer.write(conn, response)
            except Exception as e:
                logger.exception(f"[{conn.id}] Error while sending response: {e}")
                if not conn.response_started:
                    self._send_error(conn, self._internal_error(e))

    def _dispatch(self, request: IncomingRequest) -> OutgoingResponse:
        """
        Innermost handler. HTTPErrors become responses here, so the
        access log records their status.
        """
        try:
            return self.file_handler.handle(request)
        except HTTPError as e:
            return self._error_response(e)

    # =========================================================================
    # ERROR RESPONSES
    # =========================================================================

    def _error_response(self, error: HTTPError) -> OutgoingResponse:
        return text_error(error.status, error.message, error.headers)

    def _internal_error(self, error: Exception) -> OutgoingResponse:
        message = "Internal Server Error"
        if self.config.expose_error_details:
            message = f"{message}: {error}"
        return self._error_response(InternalError(message))

    def _send_error(self, conn: Connection, response: OutgoingResponse):
        """Best-effort error response; the connection closes regardless."""
        try:
            self._writer.write(conn, response)
        except OSError as e:
            logger.debug(f"[{conn.id}] Could not send error response: {e}")


def create_app(config: Optional[ServerConfig] = None) -> FileManagerServer:
    """
    Create a file manager server.

    Example:
        app = create_app(ServerConfig(root_dir="/srv/share", port=3000))
        app.run()
    """
    return FileManagerServer(config)


# =============================================================================
# MODULE SUMMARY
# =============================================================================
#
# 1. Components: acceptor, supervisor, parser, writer, handler, middleware
# 2. Request flow: accept → thread → parse → middleware → handler → write
# 3. Error boundary: every failure ends in a response or a clean close
# 4. Lifecycle: signals stop the acceptor, then handlers are cancelled
# =============================================================================
