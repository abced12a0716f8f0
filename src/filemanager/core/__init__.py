"""
=============================================================================
CORE NETWORKING
=============================================================================

    ┌─────────────────────────────────────────────────────────────────────┐
    │                                                                      │
    │   ConnectionAcceptor   listening socket, accept loop, signals        │
    │          │                                                           │
    │          ▼ Connection                                                │
    │   ConnectionSupervisor one thread per connection, cancellation       │
    │          │                                                           │
    │          ▼                                                           │
    │   FileManagerServer._process_connection                              │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

connection.py must load first: the http package imports it while it is
itself being imported.
"""

from .connection import Connection, ConnectionState
from .supervisor import ConnectionSupervisor
from .acceptor import ConnectionAcceptor

__all__ = [
    "Connection",            # Client socket wrapper - buffered I/O, state
    "ConnectionState",       # Lifecycle states
    "ConnectionSupervisor",  # Owns handler threads
    "ConnectionAcceptor",    # Listening socket and accept loop
]
