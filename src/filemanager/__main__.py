"""
=============================================================================
FILE MANAGER CLI ENTRY POINT
=============================================================================

    # Serve the current directory on port 8080
    filemanager

    # Serve ~/Videos on port 3000
    filemanager ~/Videos 3000

    # Local machine only, verbose
    filemanager ~/Videos --host 127.0.0.1 --log-level DEBUG

    # Same thing as a module
    python -m filemanager ~/Videos 3000

Settings not given on the command line fall back to FILEMANAGER_*
environment variables, then to the defaults in ServerConfig.

=============================================================================
"""

import argparse
import sys
from typing import Optional, Sequence

from . import __version__
from .config import ServerConfig
from .server import FileManagerServer


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="filemanager",
        description="Browse, stream, upload, rename and delete files from a web browser",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  filemanager                          # current directory, port 8080
  filemanager ~/Videos 3000            # ~/Videos on port 3000
  filemanager . --host 127.0.0.1       # local access only
  filemanager --max-connections 50     # answer 503 beyond 50 clients
        """
    )

    # ─────────────────────────────────────────────────────────────────────
    # POSITIONAL ARGUMENTS
    # ─────────────────────────────────────────────────────────────────────

    parser.add_argument(
        "root_dir",
        nargs="?",
        default=None,
        help="Directory to serve (default: current directory)"
    )

    parser.add_argument(
        "port",
        nargs="?",
        type=int,
        default=None,
        help="Port to listen on (default: 8080)"
    )

    # ─────────────────────────────────────────────────────────────────────
    # NETWORK ARGUMENTS
    # ─────────────────────────────────────────────────────────────────────

    parser.add_argument(
        "--host", "-H",
        default=None,
        help="Address to bind (default: 0.0.0.0, all interfaces)"
    )

    parser.add_argument(
        "--timeout",
        type=float,
        default=None,
        help="Socket idle timeout in seconds (default: 60)"
    )

    parser.add_argument(
        "--max-connections",
        type=int,
        default=None,
        help="Maximum concurrent connections (default: unlimited)"
    )

    # ─────────────────────────────────────────────────────────────────────
    # META ARGUMENTS
    # ─────────────────────────────────────────────────────────────────────

    parser.add_argument(
        "--log-level", "-l",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        default=None,
        help="Logging level (default: INFO)"
    )

    parser.add_argument(
        "--version", "-v",
        action="version",
        version=f"filemanager {__version__}"
    )

    return parser


def build_config(args: argparse.Namespace) -> ServerConfig:
    """Environment first, then overlay whatever was given on the CLI."""
    config = ServerConfig.from_env()

    if args.root_dir is not None:
        config.root_dir = args.root_dir
    if args.port is not None:
        config.port = args.port
    if args.host is not None:
        config.host = args.host
    if args.timeout is not None:
        config.timeout = args.timeout
    if args.max_connections is not None:
        config.max_connections = args.max_connections
    if args.log_level is not None:
        config.log_level = args.log_level

    return config


def main(argv: Optional[Sequence[str]] = None):
    """CLI entry point. Exits with status 1 if the server cannot start."""
    args = build_parser().parse_args(argv)

    try:
        config = build_config(args)
        server = FileManagerServer(config)
        server.run()
    except Exception as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    main()
