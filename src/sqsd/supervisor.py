"""
sqsd.supervisor — Receiver + fixed worker pool with graceful shutdown.

    receiver thread --put--> dispatch (Queue, maxsize=1) --get--> N worker threads
                                                                      |
                                                   deliver, then ack on 2xx

Lifecycle: created → starting → running → stopping → stopped. A stopped
Supervisor cannot be started again.

Concurrency:
  - Exactly N workers, each handling one Message at a time, so at most N
    deliveries are in flight.
  - The dispatch queue holds a single Message; the receiver blocks on a
    full queue, which throttles polling to the delivery rate.

Shutdown (wait() after shutdown()):
  1. The receiver stops polling and releases anything it still holds.
  2. Workers finish the delivery (and ack) they are in the middle of.
  3. Messages still queued for dispatch are released, never started.
  4. One stop sentinel per worker ends the worker loops.

Delivery failures are not retried here. The message stays on the queue and
is redelivered after its visibility timeout. Visibility is never extended,
so the queue's visibility timeout must exceed the HTTP timeout.
"""

from __future__ import annotations

import queue
import threading
from typing import Any

import requests
from aws_lambda_powertools import Logger

from sqsd.acknowledger import Acknowledger
from sqsd.delivery import DeliveryClient
from sqsd.exceptions import SupervisorStateError
from sqsd.models import Message, SupervisorState, WorkerConfig
from sqsd.receiver import Receiver

logger = Logger(service="sqsd")

# Granularity at which wait() re-checks the stop signal, so signal handlers
# get a chance to run in the main thread.
_WAIT_POLL_SECONDS = 1.0


class Supervisor:
    def __init__(
        self,
        sqs_client: Any,
        http_session: requests.Session,
        config: WorkerConfig,
        *,
        http_timeout: float,
        log: Any = None,
        stop: threading.Event | None = None,
    ) -> None:
        self._config = config
        self._log = log or logger
        self._acknowledger = Acknowledger(sqs_client, config.queue_url, log=self._log)
        self._delivery = DeliveryClient(config, http_session, timeout=http_timeout, log=self._log)
        self._receiver = Receiver(sqs_client, config, self._acknowledger, log=self._log)

        self._dispatch: queue.Queue[Message | None] = queue.Queue(maxsize=1)
        self._stop = stop or threading.Event()
        self._state = SupervisorState.CREATED
        self._state_lock = threading.Lock()
        self._receiver_thread: threading.Thread | None = None
        self._workers: list[threading.Thread] = []

    @property
    def state(self) -> SupervisorState:
        return self._state

    @property
    def worker_count(self) -> int:
        return len(self._workers)

    def _transition(self, expected: SupervisorState, new: SupervisorState) -> None:
        with self._state_lock:
            if self._state != expected:
                raise SupervisorStateError(
                    f"Cannot move supervisor to {new} from {self._state} (expected {expected})"
                )
            self._state = new

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def start(self, num_workers: int) -> None:
        """Launch the receiver and num_workers worker threads."""
        if num_workers < 1:
            raise ValueError(f"num_workers must be >= 1, got {num_workers}")
        self._transition(SupervisorState.CREATED, SupervisorState.STARTING)

        for index in range(num_workers):
            worker = threading.Thread(
                target=self._worker_loop, name=f"sqsd-worker-{index}", daemon=True
            )
            worker.start()
            self._workers.append(worker)

        self._receiver_thread = threading.Thread(
            target=self._receiver.run,
            args=(self._dispatch, self._stop),
            name="sqsd-receiver",
            daemon=True,
        )
        self._receiver_thread.start()

        self._transition(SupervisorState.STARTING, SupervisorState.RUNNING)
        self._log.info("Supervisor started", extra={"workers": num_workers})

    def shutdown(self) -> None:
        """Request a graceful stop. Idempotent and safe to call from a signal handler."""
        self._stop.set()

    @property
    def stop_requested(self) -> bool:
        return self._stop.is_set()

    def wait(self) -> None:
        """Block until shutdown() is called, then drain and stop every thread."""
        if self._state == SupervisorState.CREATED:
            raise SupervisorStateError("Supervisor has not been started")
        while not self._stop.wait(_WAIT_POLL_SECONDS):
            pass

        self._transition(SupervisorState.RUNNING, SupervisorState.STOPPING)
        self._log.info("Shutdown requested; draining in-flight deliveries")

        if self._receiver_thread is not None:
            self._receiver_thread.join()
        for _ in self._workers:
            self._dispatch.put(None)
        for worker in self._workers:
            worker.join()

        self._transition(SupervisorState.STOPPING, SupervisorState.STOPPED)
        self._log.info("Supervisor stopped")

    def stop(self) -> None:
        """shutdown() followed by wait()."""
        self.shutdown()
        self.wait()

    # ------------------------------------------------------------------
    # Workers
    # ------------------------------------------------------------------

    def _worker_loop(self) -> None:
        while True:
            message = self._dispatch.get()
            if message is None:
                return
            if self._stop.is_set():
                self._acknowledger.release(message)
                continue
            try:
                self.process(message)
            except Exception:
                self._log.exception(
                    "Unexpected error processing message",
                    extra={"message_id": message.message_id},
                )

    def process(self, message: Message) -> bool:
        """Deliver one message and delete it from the queue if the delivery succeeded.

        Returns True when the message was delivered.
        """
        outcome = self._delivery.deliver(message)
        if not outcome.is_delivered:
            self._log.warning(
                "Message delivery failed; leaving it for redelivery",
                extra={
                    "message_id": message.message_id,
                    "receive_count": message.receive_count,
                    "status_code": outcome.status_code,
                    "error": outcome.error,
                },
            )
            return False

        self._log.debug(
            "Message delivered",
            extra={"message_id": message.message_id, "status_code": outcome.status_code},
        )
        self._acknowledger.ack(message)
        return True
