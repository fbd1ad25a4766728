"""Message bus models."""

from appstore_operator.models.messages.envelope import (
    DeploymentDeletePayload,
    DeploymentRequestPayload,
    DeploymentUpdatePayload,
    MessageEnvelope,
    StatusUpdatePayload,
)

__all__ = [
    "DeploymentDeletePayload",
    "DeploymentRequestPayload",
    "DeploymentUpdatePayload",
    "MessageEnvelope",
    "StatusUpdatePayload",
]
