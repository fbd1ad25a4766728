"""Regex patterns for name validation."""

import re

from appstore_operator.constants.limits import RELEASE_NAME_MAX_LENGTH

RELEASE_NAME_PATTERN = re.compile(r"^[a-z0-9]([-a-z0-9]*[a-z0-9])?$")

# helm stderr when the addressed release is absent (status, uninstall, upgrade)
RELEASE_NOT_FOUND_PATTERN = re.compile(
    r"release:\s*not found|release not loaded|has no deployed releases",
    re.IGNORECASE,
)


def is_valid_release_name(name: str) -> bool:
    """Return True if name is usable as a Helm release name."""
    return (
        0 < len(name) <= RELEASE_NAME_MAX_LENGTH
        and RELEASE_NAME_PATTERN.fullmatch(name) is not None
    )


__all__ = [
    "RELEASE_NAME_PATTERN",
    "RELEASE_NOT_FOUND_PATTERN",
    "is_valid_release_name",
]
