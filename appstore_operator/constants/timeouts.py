"""Timeout and interval constants for the operator.

All timeout, requeue and polling values, in seconds unless noted.
"""

from typing import Final

# ============================================================================
# Reconciliation requeue intervals
# ============================================================================

REQUEUE_AFTER_SUCCESS: Final = 300.0
REQUEUE_AFTER_FAILURE: Final = 30.0

# ============================================================================
# Helm timeouts
# ============================================================================

# Passed to helm as --timeout; bounds install/upgrade/uninstall.
HELM_OPERATION_TIMEOUT: Final = "5m0s"

# Process-level guards (must be greater than the helm --timeout)
HELM_MUTATION_COMMAND_TIMEOUT: Final = 330
HELM_QUERY_COMMAND_TIMEOUT: Final = 30

# ============================================================================
# Chart mirror
# ============================================================================

CHART_SYNC_INTERVAL: Final = 300.0
GIT_COMMAND_TIMEOUT: Final = 120

# ============================================================================
# Message broker
# ============================================================================

BROKER_RECONNECT_DELAY: Final = 5.0

# ============================================================================
# Runtime
# ============================================================================

WATCH_TIMEOUT_SECONDS: Final = 300
WATCH_RESTART_DELAY: Final = 5.0
WATCH_STOP_TIMEOUT: Final = 2.0

__all__ = [
    "BROKER_RECONNECT_DELAY",
    "CHART_SYNC_INTERVAL",
    "GIT_COMMAND_TIMEOUT",
    "HELM_MUTATION_COMMAND_TIMEOUT",
    "HELM_OPERATION_TIMEOUT",
    "HELM_QUERY_COMMAND_TIMEOUT",
    "REQUEUE_AFTER_FAILURE",
    "REQUEUE_AFTER_SUCCESS",
    "WATCH_RESTART_DELAY",
    "WATCH_STOP_TIMEOUT",
    "WATCH_TIMEOUT_SECONDS",
]
