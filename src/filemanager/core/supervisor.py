"""
=============================================================================
CONNECTION SUPERVISOR
=============================================================================

Runs one handler thread per accepted connection and keeps an explicit
record of every live one, so that shutdown can reach them.

    ┌─────────────────────────────────────────────────────────────────────┐
    │                      ConnectionSupervisor                            │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                      │
    │   spawn(conn, target)                                                │
    │       │                                                              │
    │       ├── cancelled?             → False (caller closes conn)        │
    │       ├── at max_connections?    → False (caller answers 503)        │
    │       │                                                              │
    │       └── Thread(conn-<id>) ──► target(conn)                         │
    │               │                                                      │
    │               └── finally: removed from _active                      │
    │                                                                      │
    │   _active = { thread: conn, ... }     guarded by _lock               │
    │                                                                      │
    │   cancel_all(timeout)                                                │
    │       1. cancel_event.set()   streaming stops at next chunk          │
    │       2. conn.abort()         blocked recv()/send() return           │
    │       3. thread.join()        bounded by one shared deadline         │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

There is no queue and no worker reuse: a connection either gets its own
thread immediately or is refused. Without max_connections the number of
threads is unbounded.

Cancellation is cooperative. Handlers are never killed; they notice the
event between chunks or see their socket fail, and unwind through their
normal cleanup. A thread that is still alive after the deadline is left
behind (it is a daemon thread) and reported in the log.

=============================================================================
"""

import threading
import time
import logging
from typing import Callable, Dict, Optional

from .connection import Connection


logger = logging.getLogger(__name__)


class ConnectionSupervisor:
    """
    Owns the handler threads of a running server.

    Usage:
        supervisor = ConnectionSupervisor(max_connections=100)
        if not supervisor.spawn(conn, process_connection):
            reject(conn)
        ...
        supervisor.cancel_all(timeout=5.0)
    """

    def __init__(self, max_connections: Optional[int] = None):
        """
        Args:
            max_connections: Cap on concurrent handler threads.
                             None = unbounded.
        """
        self.max_connections = max_connections

        # Checked by ResponseWriter between streamed chunks
        self.cancel_event = threading.Event()

        self._lock = threading.Lock()
        self._active: Dict[threading.Thread, Connection] = {}

        self._spawned = 0
        self._completed = 0
        self._failed = 0
        self._rejected = 0

    @property
    def is_cancelled(self) -> bool:
        return self.cancel_event.is_set()

    @property
    def active_count(self) -> int:
        with self._lock:
            return len(self._active)

    def spawn(self, conn: Connection, target: Callable[[Connection], None]) -> bool:
        """
        Start a handler thread running target(conn).

        Returns:
            True if a thread was started. False if the supervisor is
            cancelled or full; the caller still owns `conn` then.
        """
        with self._lock:
            if self.cancel_event.is_set():
                return False

            if self.max_connections is not None and len(self._active) >= self.max_connections:
                self._rejected += 1
                logger.warning(
                    f"[{conn.id}] Connection limit reached "
                    f"({self.max_connections}), rejecting {conn.client_ip}"
                )
                return False

            thread = threading.Thread(
                target=self._run,
                args=(conn, target),
                name=f"conn-{conn.id}",
                daemon=True,
            )
            self._active[thread] = conn
            self._spawned += 1

        thread.start()
        return True

    def _run(self, conn: Connection, target: Callable[[Connection], None]):
        try:
            target(conn)
        except Exception:
            with self._lock:
                self._failed += 1
            logger.exception(f"[{conn.id}] Unhandled error in connection handler")
            conn.close()
        finally:
            with self._lock:
                self._active.pop(threading.current_thread(), None)
                self._completed += 1

    def cancel_all(self, timeout: float = 5.0) -> int:
        """
        Cancel every in-flight handler and wait for them to exit.

        Args:
            timeout: Total time to wait for all threads, in seconds.

        Returns:
            Number of threads still alive after the deadline.
        """
        self.cancel_event.set()

        with self._lock:
            snapshot = list(self._active.items())

        if snapshot:
            logger.info(f"Cancelling {len(snapshot)} active connection(s)...")

        for _, conn in snapshot:
            conn.abort()

        deadline = time.monotonic() + timeout
        stragglers = 0
        for thread, conn in snapshot:
            thread.join(timeout=max(0.0, deadline - time.monotonic()))
            if thread.is_alive():
                stragglers += 1
                logger.warning(f"[{conn.id}] Handler did not exit before shutdown deadline")

        return stragglers

    @property
    def stats(self) -> dict:
        """Counters for monitoring and tests."""
        with self._lock:
            return {
                "connections": {
                    "active": len(self._active),
                    "limit": self.max_connections,
                },
                "handlers": {
                    "spawned": self._spawned,
                    "completed": self._completed,
                    "failed": self._failed,
                    "rejected": self._rejected,
                },
                "cancelled": self.cancel_event.is_set(),
            }
