"""Values merging and fingerprinting for release configuration."""

from __future__ import annotations

import copy
import hashlib
import json
import logging
from typing import Any, Protocol

import yaml

from appstore_operator.constants.limits import VALUES_HASH_LENGTH
from appstore_operator.controllers.store.values_source import ValuesReferenceNotFound
from appstore_operator.models.deployment import AppDeploymentSpec, ValuesReference

logger = logging.getLogger(__name__)


class ValuesValidationError(ValueError):
    """Raised when a values document is not a mapping or cannot be parsed."""


class ValuesReader(Protocol):
    def read(self, namespace: str, reference: ValuesReference) -> str: ...


def deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """Merge ``override`` into ``base`` in place and return ``base``.

    Nested mappings merge recursively; anything else (scalars, lists, or a
    mapping meeting a non-mapping) is replaced by the override's value.
    """
    for key, value in override.items():
        if key in base and isinstance(base[key], dict) and isinstance(value, dict):
            deep_merge(base[key], value)
        else:
            base[key] = copy.deepcopy(value)
    return base


def hash_values(values: dict[str, Any] | None) -> str:
    """Stable fingerprint of a values tree.

    Canonical JSON (sorted keys, compact separators) hashed with SHA-256,
    truncated to the first 16 hex characters.
    """
    canonical = json.dumps(
        values or {},
        sort_keys=True,
        separators=(",", ":"),
        ensure_ascii=False,
        default=str,
    )
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()[:VALUES_HASH_LENGTH]


def parse_values_document(text: str, source: str) -> dict[str, Any]:
    """Parse a YAML (or JSON) values document into a mapping.

    Raises:
        ValuesValidationError: Unparseable, or not a mapping.
    """
    try:
        parsed = yaml.safe_load(text)
    except yaml.YAMLError as e:
        raise ValuesValidationError(f"invalid values in {source}: {e}") from e
    if parsed is None:
        return {}
    if not isinstance(parsed, dict):
        raise ValuesValidationError(
            f"values in {source} must be a mapping, got {type(parsed).__name__}"
        )
    return parsed


def resolve_values(
    spec: AppDeploymentSpec, namespace: str, reader: ValuesReader
) -> dict[str, Any]:
    """Build the final values for a record.

    Starts from an empty mapping, merges each ``valuesFrom`` reference in
    order, then the inline ``values`` on top.

    Raises:
        ValuesReferenceNotFound: A required reference is missing.
        ValuesReferenceError: A reference could not be read.
        ValuesValidationError: A referenced document is not a mapping.
    """
    merged: dict[str, Any] = {}
    for reference in spec.values_from:
        source = f"{reference.kind.value} {namespace}/{reference.name}[{reference.values_key}]"
        try:
            text = reader.read(namespace, reference)
        except ValuesReferenceNotFound:
            if reference.optional:
                logger.debug("Skipping missing optional values source %s", source)
                continue
            raise
        deep_merge(merged, parse_values_document(text, source))
    if spec.values:
        deep_merge(merged, spec.values)
    return merged
