"""AppDeployment convergence controllers."""

from appstore_operator.controllers.deployment.reconciler import DeploymentReconciler
from appstore_operator.controllers.deployment.values import (
    ValuesValidationError,
    deep_merge,
    hash_values,
    parse_values_document,
    resolve_values,
)

__all__ = [
    "DeploymentReconciler",
    "ValuesValidationError",
    "deep_merge",
    "hash_values",
    "parse_values_document",
    "resolve_values",
]
