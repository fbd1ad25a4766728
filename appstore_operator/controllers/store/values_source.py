"""Reads Helm values referenced from ConfigMaps and Secrets."""

from __future__ import annotations

import base64
import binascii
import logging

from kubernetes import client
from kubernetes.client.exceptions import ApiException

from appstore_operator.constants.enums import ValuesSourceKind
from appstore_operator.models.deployment import ValuesReference

logger = logging.getLogger(__name__)


class ValuesReferenceError(Exception):
    """Raised when a referenced values document cannot be read."""


class ValuesReferenceNotFound(ValuesReferenceError):
    """Raised when the referenced object or key does not exist."""


class ValuesSource:
    """Fetches the raw text of a ``valuesFrom`` reference."""

    def __init__(self, core_api: client.CoreV1Api | None = None) -> None:
        self.core_api = core_api or client.CoreV1Api()

    def read(self, namespace: str, reference: ValuesReference) -> str:
        """Return the referenced document text.

        Args:
            namespace: Namespace of the referencing record
            reference: ConfigMap/Secret reference

        Raises:
            ValuesReferenceNotFound: Object or key missing.
            ValuesReferenceError: Any other read failure.
        """
        target = f"{reference.kind.value} {namespace}/{reference.name}"
        try:
            if reference.kind == ValuesSourceKind.SECRET:
                obj = self.core_api.read_namespaced_secret(reference.name, namespace)
            else:
                obj = self.core_api.read_namespaced_config_map(reference.name, namespace)
        except ApiException as e:
            if e.status == 404:
                raise ValuesReferenceNotFound(f"{target} not found") from e
            raise ValuesReferenceError(f"failed to read {target}: {e.status} {e.reason}") from e

        data = obj.data or {}
        if reference.values_key not in data:
            raise ValuesReferenceNotFound(f"key {reference.values_key!r} not found in {target}")
        raw = data[reference.values_key]

        if reference.kind == ValuesSourceKind.SECRET:
            try:
                return base64.b64decode(raw).decode("utf-8")
            except (binascii.Error, UnicodeDecodeError) as e:
                raise ValuesReferenceError(f"undecodable key {reference.values_key!r} in {target}") from e
        return raw
