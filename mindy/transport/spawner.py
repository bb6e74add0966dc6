"""Where the accept loop hands a connection off to its own thread."""

import threading
from typing import Any, Callable, Optional, Protocol

from mindy.lifecycle.state import ServerLifecycle


class Spawner(Protocol):
    """Starts ``target(*args)`` concurrently and returns without waiting."""

    def spawn(self, target: Callable[..., Any], *args: Any) -> threading.Thread:
        ...


def _start_tracked(
    thread: threading.Thread, lifecycle: Optional[ServerLifecycle]
) -> None:
    # Tracked before start so a shutdown right after accept still waits for it.
    if lifecycle is not None:
        lifecycle.register_worker(thread)
    try:
        thread.start()
    except RuntimeError:
        if lifecycle is not None:
            lifecycle.cleanup_worker(thread)
        raise


class ThreadSpawner:
    """One non-daemon thread per connection, no upper bound."""

    def __init__(self, lifecycle: Optional[ServerLifecycle] = None) -> None:
        self._lifecycle = lifecycle

    def spawn(self, target: Callable[..., Any], *args: Any) -> threading.Thread:
        thread = threading.Thread(target=target, args=args, daemon=False)
        _start_tracked(thread, self._lifecycle)
        return thread


class BoundedThreadSpawner:
    """Thread per connection with at most ``max_threads`` running at once.

    ``spawn`` blocks the caller until a slot is free, which pushes
    backpressure onto the listen backlog.
    """

    def __init__(
        self, max_threads: int, lifecycle: Optional[ServerLifecycle] = None
    ) -> None:
        if max_threads < 1:
            raise ValueError("max_threads must be at least 1")
        self._slots = threading.BoundedSemaphore(max_threads)
        self._lifecycle = lifecycle

    def _run(self, target: Callable[..., Any], args: tuple) -> None:
        try:
            target(*args)
        finally:
            self._slots.release()

    def spawn(self, target: Callable[..., Any], *args: Any) -> threading.Thread:
        self._slots.acquire()
        thread = threading.Thread(target=self._run, args=(target, args), daemon=False)
        try:
            _start_tracked(thread, self._lifecycle)
        except RuntimeError:
            self._slots.release()
            raise
        return thread


def build_spawner(
    max_connections: int, lifecycle: Optional[ServerLifecycle] = None
) -> Spawner:
    """Pick the unbounded spawner unless a connection cap is configured."""
    if max_connections > 0:
        return BoundedThreadSpawner(max_connections, lifecycle)
    return ThreadSpawner(lifecycle)
