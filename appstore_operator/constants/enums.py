"""All enum definitions for the operator.

This module consolidates all enumerations used throughout the application.
"""

from enum import Enum

# =============================================================================
# Record Enums
# =============================================================================

class DeploymentPhase(str, Enum):
    """Lifecycle phase of an AppDeployment, owned by the reconciler."""

    PENDING = "Pending"
    INSTALLING = "Installing"
    UPGRADING = "Upgrading"
    DEPLOYED = "Deployed"
    FAILED = "Failed"
    UNINSTALLING = "Uninstalling"


class ConditionType(str, Enum):
    """Condition types written onto AppDeployment status."""

    READY = "Ready"
    RECONCILING = "Reconciling"


class ValuesSourceKind(str, Enum):
    """Kinds of objects a valuesFrom reference may point at."""

    CONFIG_MAP = "ConfigMap"
    SECRET = "Secret"


# =============================================================================
# Messaging Enums
# =============================================================================

class MessageType(str, Enum):
    """Envelope type discriminator on the message bus."""

    DEPLOYMENT_REQUEST = "deployment.request"
    DEPLOYMENT_UPDATE = "deployment.update"
    DEPLOYMENT_DELETE = "deployment.delete"
    STATUS_UPDATE = "status.update"


class DeliveryOutcome(Enum):
    """What the consumer did with one delivery."""

    ACKED = "acked"
    REQUEUED = "requeued"
    REJECTED = "rejected"


# =============================================================================
# Runtime Enums
# =============================================================================

class WatchEventType(str, Enum):
    """Kubernetes watch event types."""

    ADDED = "ADDED"
    MODIFIED = "MODIFIED"
    DELETED = "DELETED"
    ERROR = "ERROR"
    BOOKMARK = "BOOKMARK"
