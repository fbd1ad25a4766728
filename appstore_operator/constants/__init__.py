"""Constants module for the appstore operator.

Centralized constants organized by domain:
- enums.py: All Enum class definitions
- timeouts.py: Timeout and requeue values (seconds)
- limits.py: Limit values (max/min)
- defaults.py: Default settings and resource/broker identifiers
- patterns.py: Name validation patterns
"""

from appstore_operator.constants.defaults import (
    API_GROUP,
    API_VERSION,
    FINALIZER_NAME,
    RESOURCE_KIND,
    RESOURCE_PLURAL,
)
from appstore_operator.constants.enums import (
    ConditionType,
    DeliveryOutcome,
    DeploymentPhase,
    MessageType,
    ValuesSourceKind,
    WatchEventType,
)
from appstore_operator.constants.limits import (
    MAX_WORKERS,
    RELEASE_NAME_MAX_LENGTH,
)
from appstore_operator.constants.patterns import (
    RELEASE_NAME_PATTERN,
    is_valid_release_name,
)
from appstore_operator.constants.timeouts import (
    REQUEUE_AFTER_FAILURE,
    REQUEUE_AFTER_SUCCESS,
)

__all__ = [
    # Resource identity
    "API_GROUP",
    "API_VERSION",
    "FINALIZER_NAME",
    # Limits
    "MAX_WORKERS",
    "RELEASE_NAME_MAX_LENGTH",
    "RELEASE_NAME_PATTERN",
    # Timeouts
    "REQUEUE_AFTER_FAILURE",
    "REQUEUE_AFTER_SUCCESS",
    "RESOURCE_KIND",
    "RESOURCE_PLURAL",
    # Enums
    "ConditionType",
    "DeliveryOutcome",
    "DeploymentPhase",
    "MessageType",
    "ValuesSourceKind",
    "WatchEventType",
    "is_valid_release_name",
]
