"""Utility functions and classes for the appstore operator."""

from appstore_operator.utils.command import CommandResult, run_command
from appstore_operator.utils.keyed_lock import KeyedLock
from appstore_operator.utils.rwlock import ReadWriteLock

__all__ = [
    # Subprocess
    "CommandResult",
    # Locks
    "KeyedLock",
    "ReadWriteLock",
    "run_command",
]
