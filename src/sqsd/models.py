"""
sqsd.models — Value types shared by the receiver, workers and delivery client.

Message          — one received copy of a queue message (payload + receipt handle)
WorkerConfig     — immutable snapshot of everything a worker needs at runtime
DeliveryOutcome  — tagged result of one HTTP delivery attempt
SupervisorState  — lifecycle states of the Supervisor
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any

# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------


class DeliveryStatus(StrEnum):
    DELIVERED = "delivered"
    FAILED = "failed"


class SupervisorState(StrEnum):
    CREATED = "created"
    STARTING = "starting"
    RUNNING = "running"
    STOPPING = "stopping"
    STOPPED = "stopped"


# ---------------------------------------------------------------------------
# Message
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Message:
    """A received copy of a queue message.

    receipt_handle identifies this specific receive; it is the only handle
    that may delete or release the message, and it is invalidated by the
    queue once the visibility timeout expires.
    """

    body: bytes
    receipt_handle: str
    message_id: str | None = None
    receive_count: int | None = None
    attributes: dict[str, str] = field(default_factory=dict)

    @classmethod
    def from_sqs(cls, raw: dict[str, Any]) -> Message:
        """Build a Message from one entry of a boto3 receive_message response."""
        attributes = {str(k): str(v) for k, v in (raw.get("Attributes") or {}).items()}
        receive_count = attributes.get("ApproximateReceiveCount")
        return cls(
            body=str(raw.get("Body", "")).encode("utf-8"),
            receipt_handle=str(raw["ReceiptHandle"]),
            message_id=raw.get("MessageId"),
            receive_count=int(receive_count) if receive_count else None,
            attributes=attributes,
        )


# ---------------------------------------------------------------------------
# WorkerConfig
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class WorkerConfig:
    """Read-only configuration shared by every worker of one Supervisor."""

    queue_url: str
    http_url: str
    queue_max_messages: int = 10
    queue_wait_time: int = 10  # seconds
    http_content_type: str = ""
    http_hmac_header: str = ""
    hmac_secret_key: bytes = field(default=b"", repr=False)

    @property
    def signing_enabled(self) -> bool:
        return bool(self.http_hmac_header and self.hmac_secret_key)


# ---------------------------------------------------------------------------
# DeliveryOutcome
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class DeliveryOutcome:
    """Result of one delivery attempt.

    status_code is set whenever the endpoint answered; error is set for
    transport failures (connection refused, timeout, ...).
    """

    status: DeliveryStatus
    status_code: int | None = None
    error: str | None = None

    @classmethod
    def delivered(cls, status_code: int) -> DeliveryOutcome:
        return cls(status=DeliveryStatus.DELIVERED, status_code=status_code)

    @classmethod
    def failed(cls, *, status_code: int | None = None, error: str | None = None) -> DeliveryOutcome:
        return cls(status=DeliveryStatus.FAILED, status_code=status_code, error=error)

    @property
    def is_delivered(self) -> bool:
        return self.status == DeliveryStatus.DELIVERED
