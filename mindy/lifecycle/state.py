"""Server run-state and interrupt-driven shutdown."""

import logging
import socket
import threading
import time
from typing import Optional

from mindy.bootstrap.logging_setup import flush_logging
from mindy.domain.connection_id import ConnectionLoggerAdapter

LIFECYCLE_LOGGER = ConnectionLoggerAdapter(logging.getLogger("mindy.lifecycle"), {})


class ServerLifecycle:
    """Holds the accepting flag, the listening socket and live worker threads."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._shutdown_once = threading.Lock()
        self._stop_event = threading.Event()
        self._listener: Optional[socket.socket] = None
        self._workers: set[threading.Thread] = set()

    def attach_listener(self, server_socket: socket.socket) -> None:
        """Remember the listening socket so shutdown can close it."""
        self._listener = server_socket

    def should_stop(self) -> bool:
        """Check if the server should stop accepting new connections."""
        return self._stop_event.is_set()

    def register_worker(self, thread: threading.Thread) -> None:
        """Register a worker thread for tracking."""
        with self._lock:
            self._workers.add(thread)

    def cleanup_worker(self, thread: threading.Thread) -> None:
        """Remove a worker thread from tracking."""
        with self._lock:
            self._workers.discard(thread)

    def has_worker(self, thread: threading.Thread) -> bool:
        """Return True when the worker is currently tracked."""
        with self._lock:
            return thread in self._workers

    def active_worker_count(self) -> int:
        """Return the number of currently tracked worker threads."""
        with self._lock:
            return len(self._workers)

    def begin_shutdown(self) -> bool:
        """Stop accepting, close the listener and log the abort.

        Safe to call from a signal handler and more than once; only the first
        call does any work and returns True. In-flight workers are left to
        finish on their own.
        """
        if not self._shutdown_once.acquire(blocking=False):
            return False

        self._stop_event.set()
        listener = self._listener
        if listener is not None:
            try:
                listener.close()
            except OSError as error:
                LIFECYCLE_LOGGER.error(
                    "Failed to close listening socket",
                    extra={"error_type": type(error).__name__},
                )

        LIFECYCLE_LOGGER.warning("Server aborted", extra={"event": "server_aborted"})
        flush_logging()
        return True

    def wait_for_workers(self, timeout: float) -> bool:
        """Wait for all worker threads to complete within the timeout."""
        deadline = time.monotonic() + timeout
        while True:
            with self._lock:
                self._workers = {w for w in self._workers if w.is_alive()}
                active_workers = list(self._workers)
            if not active_workers:
                return True
            remaining = deadline - time.monotonic()
            if remaining <= 0:
                LIFECYCLE_LOGGER.warning(
                    "Shutdown timeout exceeded",
                    extra={"remaining_workers": len(active_workers)},
                )
                return False
            for worker in active_workers:
                worker.join(timeout=min(0.1, remaining))
                if time.monotonic() >= deadline:
                    break
