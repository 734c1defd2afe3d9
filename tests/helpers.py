"""Shared test doubles and polling helpers."""

from __future__ import annotations

import socket
import threading
import time
from collections.abc import Callable
from typing import Any

REGION = "eu-west-2"
QUEUE_NAME = "sqsd-test-queue"
HTTP_URL = "http://app.local/work"


def queue_counts(sqs: Any, queue_url: str) -> tuple[int, int]:
    """Return (visible, in_flight) message counts."""
    attrs = sqs.get_queue_attributes(
        QueueUrl=queue_url,
        AttributeNames=["ApproximateNumberOfMessages", "ApproximateNumberOfMessagesNotVisible"],
    )["Attributes"]
    return (
        int(attrs["ApproximateNumberOfMessages"]),
        int(attrs["ApproximateNumberOfMessagesNotVisible"]),
    )


def wait_for(predicate: Callable[[], bool], timeout: float = 10.0) -> bool:
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(0.02)
    return predicate()


class FakeResponse:
    def __init__(self, status_code: int, text: str = "") -> None:
        self.status_code = status_code
        self.text = text
        self.closed = False

    def close(self) -> None:
        self.closed = True


class FakeSession:
    """Stands in for requests.Session.

    status_for maps a request body to the status code returned for it.
    While gate is clear, every post() blocks, which keeps deliveries in flight.
    """

    def __init__(
        self,
        *,
        status_for: dict[bytes, int] | None = None,
        default_status: int = 200,
        gate: threading.Event | None = None,
        delay: float = 0.0,
    ) -> None:
        self.status_for = status_for or {}
        self.default_status = default_status
        self.gate = gate
        self.delay = delay
        self.calls: list[dict[str, Any]] = []
        self.in_flight = 0
        self.max_in_flight = 0
        self._lock = threading.Lock()

    def post(
        self, url: str, *, data: bytes, headers: dict[str, str], timeout: float
    ) -> FakeResponse:
        with self._lock:
            self.calls.append({"url": url, "data": data, "headers": headers, "timeout": timeout})
            self.in_flight += 1
            self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            if self.gate is not None:
                self.gate.wait()
            if self.delay:
                time.sleep(self.delay)
            return FakeResponse(self.status_for.get(data, self.default_status))
        finally:
            with self._lock:
                self.in_flight -= 1

    @property
    def bodies(self) -> list[bytes]:
        with self._lock:
            return [call["data"] for call in self.calls]


class TrickleServer:
    """Local HTTP server that answers 200 one byte at a time.

    With interval=0 the response is sent at once. Each accepted connection is
    served on its own thread; accepted counts them.
    """

    RESPONSE = b"HTTP/1.1 200 OK\r\nContent-Length: 0\r\n\r\n"

    def __init__(self, interval: float = 0.2) -> None:
        self.interval = interval
        self.accepted = 0
        self._stop = threading.Event()
        self._sock = socket.create_server(("127.0.0.1", 0))
        self._sock.settimeout(0.1)
        self.url = f"http://127.0.0.1:{self._sock.getsockname()[1]}/work"
        self._thread = threading.Thread(target=self._serve, daemon=True)

    def __enter__(self) -> TrickleServer:
        self._thread.start()
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self._stop.set()
        self._thread.join(timeout=2)
        self._sock.close()

    def _serve(self) -> None:
        while not self._stop.is_set():
            try:
                conn, _ = self._sock.accept()
            except TimeoutError:
                continue
            except OSError:
                return
            self.accepted += 1
            threading.Thread(target=self._respond, args=(conn,), daemon=True).start()

    def _respond(self, conn: socket.socket) -> None:
        with conn:
            try:
                conn.recv(65536)
                if not self.interval:
                    conn.sendall(self.RESPONSE)
                    return
                for byte in self.RESPONSE:
                    if self._stop.is_set():
                        return
                    conn.sendall(bytes([byte]))
                    time.sleep(self.interval)
            except OSError:
                return
