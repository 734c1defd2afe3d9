"""Unit tests for sqsd.acknowledger."""

from __future__ import annotations

from typing import Any
from unittest.mock import MagicMock

from botocore.exceptions import ClientError, EndpointConnectionError

from sqsd.acknowledger import Acknowledger
from sqsd.models import Message
from tests.helpers import queue_counts


def _receive_one(sqs: Any, queue_url: str) -> Message:
    raw = sqs.receive_message(QueueUrl=queue_url, MaxNumberOfMessages=1)["Messages"][0]
    return Message.from_sqs(raw)


def test_ack_deletes_message(sqs: Any, queue_url: str) -> None:
    sqs.send_message(QueueUrl=queue_url, MessageBody="m2")
    message = _receive_one(sqs, queue_url)

    assert Acknowledger(sqs, queue_url, log=MagicMock()).ack(message) is True

    assert queue_counts(sqs, queue_url) == (0, 0)


def test_ack_failure_is_logged_not_raised() -> None:
    client = MagicMock()
    client.delete_message.side_effect = ClientError(
        {"Error": {"Code": "ReceiptHandleIsInvalid", "Message": "expired"}}, "DeleteMessage"
    )
    log = MagicMock()
    message = Message(body=b"x", receipt_handle="rh", message_id="m-9")

    assert Acknowledger(client, "q", log=log).ack(message) is False

    log.error.assert_called_once()
    assert log.error.call_args.kwargs["extra"]["message_id"] == "m-9"


def test_ack_transport_failure_is_logged_not_raised() -> None:
    client = MagicMock()
    client.delete_message.side_effect = EndpointConnectionError(endpoint_url="http://sqs")
    log = MagicMock()

    assert Acknowledger(client, "q", log=log).ack(Message(body=b"", receipt_handle="rh")) is False
    log.error.assert_called_once()


def test_release_makes_message_visible_again(sqs: Any, queue_url: str) -> None:
    sqs.send_message(QueueUrl=queue_url, MessageBody="m3")
    message = _receive_one(sqs, queue_url)
    assert queue_counts(sqs, queue_url) == (0, 1)

    assert Acknowledger(sqs, queue_url, log=MagicMock()).release(message) is True

    assert queue_counts(sqs, queue_url) == (1, 0)


def test_release_failure_is_logged_not_raised() -> None:
    client = MagicMock()
    client.change_message_visibility.side_effect = ClientError(
        {"Error": {"Code": "MessageNotInflight", "Message": "gone"}}, "ChangeMessageVisibility"
    )
    log = MagicMock()

    assert Acknowledger(client, "q", log=log).release(Message(b"", "rh")) is False
    log.warning.assert_called_once()
