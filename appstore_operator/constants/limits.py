"""Limit and threshold constants for the operator.

All limit values and validation ranges.
"""

from typing import Final

# ============================================================================
# Validation limits
# ============================================================================

RELEASE_NAME_MAX_LENGTH: Final = 53
REQUEST_ID_PREFIX_LENGTH: Final = 8
VALUES_HASH_LENGTH: Final = 16

# ============================================================================
# Consumer limits
# ============================================================================

PREFETCH_COUNT_DEFAULT: Final = 1
PREFETCH_COUNT_MIN: Final = 1
PREFETCH_COUNT_MAX: Final = 256

# ============================================================================
# Runtime limits
# ============================================================================

MAX_WORKERS: Final = 4
MAX_WORKERS_MIN: Final = 1
MAX_WORKERS_MAX: Final = 32

# Trim helm/git stderr before it lands in a status message
MAX_COMMAND_ERROR_LENGTH: Final = 500

__all__ = [
    "MAX_COMMAND_ERROR_LENGTH",
    "MAX_WORKERS",
    "MAX_WORKERS_MAX",
    "MAX_WORKERS_MIN",
    "PREFETCH_COUNT_DEFAULT",
    "PREFETCH_COUNT_MAX",
    "PREFETCH_COUNT_MIN",
    "RELEASE_NAME_MAX_LENGTH",
    "REQUEST_ID_PREFIX_LENGTH",
    "VALUES_HASH_LENGTH",
]
