"""Message bus integration: consumer, handler and publisher."""

from appstore_operator.messaging.consumer import DeploymentConsumer
from appstore_operator.messaging.errors import (
    ConsumerConnectionLost,
    InvalidMessageError,
    MessageError,
    OwnershipError,
    PermanentMessageError,
    RetryableMessageError,
    UnknownMessageTypeError,
)
from appstore_operator.messaging.handler import DeploymentHandler, deployment_name
from appstore_operator.messaging.publisher import MessagePublisher, status_payload

__all__ = [
    "ConsumerConnectionLost",
    "DeploymentConsumer",
    "DeploymentHandler",
    "InvalidMessageError",
    "MessageError",
    "MessagePublisher",
    "OwnershipError",
    "PermanentMessageError",
    "RetryableMessageError",
    "UnknownMessageTypeError",
    "deployment_name",
    "status_payload",
]
