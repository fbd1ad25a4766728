"""Data models for the appstore operator."""

from appstore_operator.models.deployment import (
    AppDeployment,
    AppDeploymentSpec,
    AppDeploymentStatus,
    Condition,
    ObjectMeta,
    ValuesReference,
)
from appstore_operator.models.messages import (
    DeploymentDeletePayload,
    DeploymentRequestPayload,
    DeploymentUpdatePayload,
    MessageEnvelope,
    StatusUpdatePayload,
)
from appstore_operator.models.releases import ChartMetadata, ReleaseInfo
from appstore_operator.models.state import OperatorSettings

__all__ = [
    "AppDeployment",
    "AppDeploymentSpec",
    "AppDeploymentStatus",
    "ChartMetadata",
    "Condition",
    "DeploymentDeletePayload",
    "DeploymentRequestPayload",
    "DeploymentUpdatePayload",
    "MessageEnvelope",
    "ObjectMeta",
    "OperatorSettings",
    "ReleaseInfo",
    "StatusUpdatePayload",
    "ValuesReference",
]
