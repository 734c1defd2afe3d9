"""
sqsd.receiver — Long-poll loop feeding the dispatch channel.

One Receiver thread per Supervisor. Each iteration issues a single
ReceiveMessage call and pushes every returned Message onto the dispatch
queue. The dispatch queue is bounded, so a push blocks while all workers
are busy; the next poll only happens once the whole batch is handed off.

Queue errors never end the loop: they are logged and the next poll waits
out an exponential backoff (1s doubling to 30s, reset on success).

Messages the receiver still holds when stop is requested (the rest of a
batch, or a poll that returned after stop) are released back to the queue
instead of being dispatched.
"""

from __future__ import annotations

import queue
import threading
from typing import Any

from aws_lambda_powertools import Logger
from botocore.exceptions import BotoCoreError, ClientError

from sqsd.acknowledger import Acknowledger
from sqsd.models import Message, WorkerConfig

logger = Logger(service="sqsd")

INITIAL_BACKOFF_SECONDS = 1.0
MAX_BACKOFF_SECONDS = 30.0

# How often a blocked push re-checks the stop signal.
PUT_POLL_INTERVAL_SECONDS = 0.1


class Receiver:
    def __init__(
        self,
        sqs_client: Any,
        config: WorkerConfig,
        acknowledger: Acknowledger,
        *,
        log: Any = None,
        initial_backoff: float = INITIAL_BACKOFF_SECONDS,
        max_backoff: float = MAX_BACKOFF_SECONDS,
    ) -> None:
        self._sqs = sqs_client
        self._config = config
        self._acknowledger = acknowledger
        self._log = log or logger
        self._initial_backoff = initial_backoff
        self._max_backoff = max_backoff
        self._backoff = 0.0

    def poll_once(self) -> list[Message]:
        """Issue one long-poll receive. An empty list means the wait timed out.

        Raises ClientError / BotoCoreError on queue errors; run() handles them.
        """
        response = self._sqs.receive_message(
            QueueUrl=self._config.queue_url,
            MaxNumberOfMessages=self._config.queue_max_messages,
            WaitTimeSeconds=self._config.queue_wait_time,
            AttributeNames=["ApproximateReceiveCount"],
        )
        messages = []
        for raw in response.get("Messages", []):
            try:
                messages.append(Message.from_sqs(raw))
            except (KeyError, TypeError, ValueError) as exc:
                # Left on the queue; it comes back after its visibility timeout.
                self._log.error(
                    "Skipping malformed message",
                    extra={"message_id": raw.get("MessageId"), "error": repr(exc)},
                )
        return messages

    def next_backoff(self) -> float:
        """Advance and return the delay before the next poll after an error."""
        if self._backoff <= 0:
            self._backoff = self._initial_backoff
        else:
            self._backoff = min(self._backoff * 2, self._max_backoff)
        return self._backoff

    def reset_backoff(self) -> None:
        self._backoff = 0.0

    def run(self, dispatch: queue.Queue[Message | None], stop: threading.Event) -> None:
        """Poll until stop is set. Returns once nothing more will be pushed."""
        while not stop.is_set():
            try:
                messages = self.poll_once()
            except (ClientError, BotoCoreError) as exc:
                delay = self.next_backoff()
                self._log.warning(
                    "Failed to receive messages; retrying",
                    extra={"error": str(exc), "retry_in_seconds": delay},
                )
                stop.wait(delay)
                continue
            except Exception:
                delay = self.next_backoff()
                self._log.exception(
                    "Unexpected error receiving messages; retrying",
                    extra={"retry_in_seconds": delay},
                )
                stop.wait(delay)
                continue

            self.reset_backoff()
            if messages:
                self._log.debug("Received messages", extra={"count": len(messages)})

            for index, message in enumerate(messages):
                if not self._push(dispatch, message, stop):
                    for unsent in messages[index:]:
                        self._acknowledger.release(unsent)
                    break

    def _push(
        self, dispatch: queue.Queue[Message | None], message: Message, stop: threading.Event
    ) -> bool:
        """Block until the message is queued or stop is set. False if stopped first."""
        while not stop.is_set():
            try:
                dispatch.put(message, timeout=PUT_POLL_INTERVAL_SECONDS)
                return True
            except queue.Full:
                continue
        return False
