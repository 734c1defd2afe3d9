"""
sqsd — SQS to HTTP delivery daemon.

Long-polls an SQS queue, POSTs each message body to a fixed HTTP endpoint
with a bounded pool of workers, and deletes a message only after a 2xx
response. Anything else leaves the message for redelivery by the queue.
"""

from sqsd.config import SqsdConfig, load_config
from sqsd.exceptions import ConfigurationError, SqsdError, SupervisorStateError
from sqsd.models import DeliveryOutcome, DeliveryStatus, Message, SupervisorState, WorkerConfig
from sqsd.supervisor import Supervisor

__all__ = [
    "ConfigurationError",
    "DeliveryOutcome",
    "DeliveryStatus",
    "Message",
    "SqsdConfig",
    "SqsdError",
    "Supervisor",
    "SupervisorState",
    "SupervisorStateError",
    "WorkerConfig",
    "load_config",
]
