"""
sqsd.acknowledger — Queue-side resolution of a received Message.

ack      — delete after confirmed delivery
release  — make a received-but-never-started message visible again at shutdown

Both only log on failure. A failed ack means the message comes back after
its visibility timeout and is delivered again (at-least-once).
"""

from __future__ import annotations

from typing import Any

from aws_lambda_powertools import Logger
from botocore.exceptions import BotoCoreError, ClientError

from sqsd.models import Message

logger = Logger(service="sqsd")


class Acknowledger:
    def __init__(self, sqs_client: Any, queue_url: str, *, log: Any = None) -> None:
        self._sqs = sqs_client
        self._queue_url = queue_url
        self._log = log or logger

    def ack(self, message: Message) -> bool:
        """Delete the message. Returns False (and logs) on a queue error."""
        try:
            self._sqs.delete_message(QueueUrl=self._queue_url, ReceiptHandle=message.receipt_handle)
        except (ClientError, BotoCoreError) as exc:
            self._log.error(
                "Failed to delete delivered message; it will be redelivered",
                extra={"message_id": message.message_id, "error": str(exc)},
            )
            return False
        self._log.debug("Message deleted", extra={"message_id": message.message_id})
        return True

    def release(self, message: Message) -> bool:
        """Set the message's visibility timeout to 0 so the queue redelivers it now."""
        try:
            self._sqs.change_message_visibility(
                QueueUrl=self._queue_url,
                ReceiptHandle=message.receipt_handle,
                VisibilityTimeout=0,
            )
        except (ClientError, BotoCoreError) as exc:
            self._log.warning(
                "Failed to release undelivered message",
                extra={"message_id": message.message_id, "error": str(exc)},
            )
            return False
        self._log.info("Released undelivered message", extra={"message_id": message.message_id})
        return True
