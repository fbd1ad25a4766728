"""AppDeployment record models."""

from appstore_operator.models.deployment.app_deployment import (
    AppDeployment,
    AppDeploymentSpec,
    AppDeploymentStatus,
    Condition,
    ObjectMeta,
    ValuesReference,
    utcnow,
)

__all__ = [
    "AppDeployment",
    "AppDeploymentSpec",
    "AppDeploymentStatus",
    "Condition",
    "ObjectMeta",
    "ValuesReference",
    "utcnow",
]
