"""
sqsd.deadline — Whole-request deadline for HTTP deliveries.

requests applies its timeout to the connect and to each socket read on its
own, so a server that trickles bytes can keep a request open for far longer
than the timeout. A RequestDeadline arms a timer for the whole request.
Connections checked out of an abortable pool (see sqsd.clients) by the same
thread while the deadline is active are registered with it. When the timer
fires their sockets are shut down, and the blocked read fails.
"""

from __future__ import annotations

import socket
import threading
from typing import Any

# How often an expired deadline retries connections whose socket is not open yet.
_ABORT_RETRY_SECONDS = 0.05

_active = threading.local()


def track_connection(conn: Any) -> None:
    """Register conn with the deadline active on this thread, if any."""
    deadline = getattr(_active, "deadline", None)
    if deadline is not None:
        deadline.track(conn)


def _shutdown_socket(conn: Any) -> bool:
    sock = getattr(conn, "sock", None)
    if sock is None:
        return False
    try:
        sock.shutdown(socket.SHUT_RDWR)
    except OSError:
        pass
    return True


class RequestDeadline:
    """Context manager bounding the total time of one request on the current thread."""

    def __init__(self, seconds: float) -> None:
        self.seconds = seconds
        self._connections: list[Any] = []
        self._lock = threading.Lock()
        self._done = threading.Event()
        self._expired = threading.Event()
        self._timer = threading.Timer(seconds, self._expire)
        self._timer.daemon = True

    @property
    def expired(self) -> bool:
        return self._expired.is_set()

    def track(self, conn: Any) -> None:
        with self._lock:
            self._connections.append(conn)

    def _expire(self) -> None:
        self._expired.set()
        while not self._done.is_set():
            with self._lock:
                connections = list(self._connections)
            aborted = [_shutdown_socket(conn) for conn in connections]
            if connections and all(aborted):
                return
            self._done.wait(_ABORT_RETRY_SECONDS)

    def __enter__(self) -> RequestDeadline:
        _active.deadline = self
        self._timer.start()
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self._done.set()
        self._timer.cancel()
        _active.deadline = None
