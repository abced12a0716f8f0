"""
=============================================================================
SERVER CONFIGURATION
=============================================================================

Every tunable of the file manager in one dataclass.

=============================================================================
CONFIGURATION SOURCES
=============================================================================

    ┌─────────────────────────────────────────────────────────────────────┐
    │                    CONFIGURATION HIERARCHY                          │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                      │
    │   Priority (highest to lowest):                                     │
    │                                                                      │
    │   1. Command-line arguments                                         │
    │      └── filemanager ~/Videos 3000                                  │
    │                                                                      │
    │   2. Environment variables                                          │
    │      └── FILEMANAGER_PORT=3000 filemanager                          │
    │                                                                      │
    │   3. Default values (in this dataclass)                             │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

=============================================================================
"""

import os
from dataclasses import dataclass
from typing import Optional


@dataclass
class ServerConfig:
    """
    Configuration for the file manager server.

    =========================================================================
    CONFIGURATION GROUPS
    =========================================================================

    FILES
    - root_dir

    NETWORK SETTINGS
    - host, port, backlog, buffer_size, timeout

    HTTP SETTINGS
    - max_request_size, max_line_size, chunk_size, expose_error_details

    CONCURRENCY
    - max_connections

    LOGGING
    - log_level, access_log

    =========================================================================
    """

    # ─────────────────────────────────────────────────────────────────────
    # FILES
    # ─────────────────────────────────────────────────────────────────────

    root_dir: str = "."
    """
    Directory served and managed. Every path a client can reach,
    download, upload to, rename or delete lies below it.
    """

    # ─────────────────────────────────────────────────────────────────────
    # NETWORK SETTINGS
    # ─────────────────────────────────────────────────────────────────────

    host: str = "0.0.0.0"
    """
    Address to bind. All interfaces by default so the file manager is
    reachable from other machines on the LAN; use "127.0.0.1" to keep it
    local.
    """

    port: int = 8080
    """Port to listen on. 0 lets the OS pick one (tests)."""

    backlog: int = 128
    """Maximum number of queued, not yet accepted connections."""

    buffer_size: int = 8192
    """Size of each recv() in bytes."""

    timeout: Optional[float] = 60.0
    """
    Per-socket idle timeout in seconds, applied to every blocking read and
    write on a client connection. None = block forever.
    """

    # ─────────────────────────────────────────────────────────────────────
    # HTTP SETTINGS
    # ─────────────────────────────────────────────────────────────────────

    max_request_size: int = 1024 * 1024 * 1024  # 1 GiB
    """
    Largest accepted request body. Uploads are held in memory while they
    are parsed, so this is also the peak memory per upload. Larger bodies
    get 413.
    """

    max_line_size: int = 64 * 1024
    """Longest request line or header line; longer ones abort the connection."""

    chunk_size: int = 8192
    """Bytes per write when streaming a file."""

    expose_error_details: bool = True
    """
    Include the exception message in 500 responses. Handy on a home
    network; turn off if the server faces untrusted clients.
    """

    # ─────────────────────────────────────────────────────────────────────
    # CONCURRENCY
    # ─────────────────────────────────────────────────────────────────────

    max_connections: Optional[int] = None
    """
    Cap on concurrently handled connections. Beyond it new connections
    get 503. None = one thread per connection without limit.
    """

    # ─────────────────────────────────────────────────────────────────────
    # LOGGING
    # ─────────────────────────────────────────────────────────────────────

    log_level: str = "INFO"
    """Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)."""

    access_log: bool = True
    """Install LoggingMiddleware on startup."""

    # ─────────────────────────────────────────────────────────────────────
    # SERVER IDENTITY
    # ─────────────────────────────────────────────────────────────────────

    server_name: str = "FileManager/1.0"
    """Value of the Server response header."""

    @property
    def root_path(self) -> str:
        """Absolute form of root_dir."""
        return os.path.abspath(self.root_dir)

    @classmethod
    def from_env(cls) -> "ServerConfig":
        """
        Create configuration from environment variables.

        =====================================================================
        ENVIRONMENT VARIABLES
        =====================================================================

            FILEMANAGER_ROOT             Served directory (default: .)
            FILEMANAGER_HOST             Bind address (default: 0.0.0.0)
            FILEMANAGER_PORT             Port (default: 8080)
            FILEMANAGER_TIMEOUT          Socket timeout, seconds (default: 60)
            FILEMANAGER_MAX_CONNECTIONS  Concurrency cap (default: unbounded)
            FILEMANAGER_LOG_LEVEL        Logging level (default: INFO)

        =====================================================================

        Raises:
            ValueError: If a numeric variable is not a number.
        """
        max_connections = os.getenv("FILEMANAGER_MAX_CONNECTIONS")
        return cls(
            root_dir=os.getenv("FILEMANAGER_ROOT", "."),
            host=os.getenv("FILEMANAGER_HOST", "0.0.0.0"),
            port=int(os.getenv("FILEMANAGER_PORT", "8080")),
            timeout=float(os.getenv("FILEMANAGER_TIMEOUT", "60")),
            max_connections=int(max_connections) if max_connections else None,
            log_level=os.getenv("FILEMANAGER_LOG_LEVEL", "INFO"),
        )

    def validate(self) -> None:
        """
        Validate configuration values. Called once at startup.

        Raises:
            ValueError: On the first invalid value.
        """
        if not os.path.isdir(self.root_dir):
            raise ValueError(f"Root directory does not exist: {self.root_dir}")

        if not 0 <= self.port < 65536:
            raise ValueError(f"Invalid port: {self.port}. Must be 0-65535.")

        if self.backlog < 1:
            raise ValueError("backlog must be >= 1")

        if self.buffer_size < 1024:
            raise ValueError("buffer_size must be >= 1024")

        if self.chunk_size < 1:
            raise ValueError("chunk_size must be >= 1")

        if self.timeout is not None and self.timeout <= 0:
            raise ValueError("timeout must be > 0")

        if self.max_request_size < 0:
            raise ValueError("max_request_size must be >= 0")

        if self.max_line_size < 1024:
            raise ValueError("max_line_size must be >= 1024")

        if self.max_connections is not None and self.max_connections < 1:
            raise ValueError("max_connections must be >= 1")

        if self.log_level.upper() not in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"):
            raise ValueError(f"Invalid log level: {self.log_level}")


# =============================================================================
# MODULE SUMMARY
# =============================================================================
#
# 1. One dataclass holds every setting, with defaults for a home LAN
# 2. from_env() reads FILEMANAGER_* variables
# 3. validate() fails at startup, before the socket is bound
#
# DEPLOYMENT CHECKLIST:
# □ Point root_dir at the directory you mean to expose, nothing above it
# □ Bind to 127.0.0.1 unless other machines need access
# □ Set max_connections if untrusted clients can reach the port
# □ Turn off expose_error_details outside a trusted network
# =============================================================================
