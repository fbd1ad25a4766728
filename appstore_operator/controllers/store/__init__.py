"""Kubernetes-backed record and values stores."""

from appstore_operator.controllers.store.deployment_store import (
    DeploymentStore,
    RecordAlreadyExistsError,
    RecordConflictError,
    StoreError,
    load_kube_config,
)
from appstore_operator.controllers.store.values_source import (
    ValuesReferenceError,
    ValuesReferenceNotFound,
    ValuesSource,
)

__all__ = [
    "DeploymentStore",
    "RecordAlreadyExistsError",
    "RecordConflictError",
    "StoreError",
    "ValuesReferenceError",
    "ValuesReferenceNotFound",
    "ValuesSource",
    "load_kube_config",
]
