"""AppDeployment record store backed by the Kubernetes API."""

from __future__ import annotations

import logging
from typing import Any

from kubernetes import client, config
from kubernetes.client.exceptions import ApiException

from appstore_operator.constants.defaults import API_GROUP, API_VERSION, RESOURCE_PLURAL
from appstore_operator.controllers.base import BaseController
from appstore_operator.models.deployment import AppDeployment

logger = logging.getLogger(__name__)


class StoreError(Exception):
    """Base exception for record store failures."""


class RecordAlreadyExistsError(StoreError):
    """Raised when creating a record whose name is taken."""


class RecordConflictError(StoreError):
    """Raised when a write loses an optimistic-concurrency race."""


def load_kube_config(context: str | None = None) -> None:
    """Load in-cluster credentials, falling back to the local kubeconfig."""
    try:
        config.load_incluster_config()
        logger.debug("Loaded in-cluster Kubernetes configuration")
    except config.ConfigException:
        config.load_kube_config(context=context)
        logger.debug("Loaded kubeconfig (context=%s)", context or "current")


class DeploymentStore(BaseController):
    """CRUD, status writes and listing for AppDeployment records."""

    def __init__(self, api: client.CustomObjectsApi | None = None) -> None:
        """Initialize the store.

        Args:
            api: Custom objects API; built from the loaded configuration if omitted
        """
        self.api = api or client.CustomObjectsApi()

    # =========================================================================
    # Reads
    # =========================================================================

    def get(self, namespace: str, name: str) -> AppDeployment | None:
        """Fetch a record; None if it does not exist."""
        try:
            resource = self.api.get_namespaced_custom_object(
                API_GROUP, API_VERSION, namespace, RESOURCE_PLURAL, name
            )
        except ApiException as e:
            if e.status == 404:
                return None
            raise self._wrap(e, "get", namespace, name) from e
        return AppDeployment.from_resource(resource)

    def list(self, namespace: str | None = None) -> list[AppDeployment]:
        """List records in one namespace, or cluster-wide."""
        try:
            result = self._list_raw(namespace)
        except ApiException as e:
            raise self._wrap(e, "list", namespace or "*", "") from e
        records: list[AppDeployment] = []
        for item in result.get("items", []):
            try:
                records.append(AppDeployment.from_resource(item))
            except ValueError:
                logger.exception(
                    "Skipping malformed record %s",
                    (item.get("metadata") or {}).get("name", "?"),
                )
        return records

    def list_function(self, namespace: str | None = None) -> tuple[Any, tuple[Any, ...]]:
        """The list call and positional args a ``kubernetes.watch.Watch`` streams from."""
        if namespace:
            return (
                self.api.list_namespaced_custom_object,
                (API_GROUP, API_VERSION, namespace, RESOURCE_PLURAL),
            )
        return (
            self.api.list_cluster_custom_object,
            (API_GROUP, API_VERSION, RESOURCE_PLURAL),
        )

    # =========================================================================
    # Writes
    # =========================================================================

    def create(self, record: AppDeployment) -> AppDeployment:
        """Create a record.

        Raises:
            RecordAlreadyExistsError: The name is taken.
            StoreError: Any other API failure.
        """
        body = record.to_resource(include_status=False)
        try:
            created = self.api.create_namespaced_custom_object(
                API_GROUP, API_VERSION, record.namespace, RESOURCE_PLURAL, body
            )
        except ApiException as e:
            if e.status == 409:
                raise RecordAlreadyExistsError(
                    f"{record.namespace}/{record.name} already exists"
                ) from e
            raise self._wrap(e, "create", record.namespace, record.name) from e
        logger.info("Created AppDeployment %s/%s", record.namespace, record.name)
        return AppDeployment.from_resource(created)

    def update(self, record: AppDeployment) -> AppDeployment:
        """Replace metadata and spec (the status subresource is untouched)."""
        body = record.to_resource(include_status=False)
        try:
            updated = self.api.replace_namespaced_custom_object(
                API_GROUP, API_VERSION, record.namespace, RESOURCE_PLURAL, record.name, body
            )
        except ApiException as e:
            raise self._wrap(e, "update", record.namespace, record.name) from e
        return self._refresh(record, updated)

    def update_status(self, record: AppDeployment) -> AppDeployment:
        """Replace the status subresource."""
        body = record.to_resource(include_status=True)
        try:
            updated = self.api.replace_namespaced_custom_object_status(
                API_GROUP, API_VERSION, record.namespace, RESOURCE_PLURAL, record.name, body
            )
        except ApiException as e:
            raise self._wrap(e, "update status of", record.namespace, record.name) from e
        return self._refresh(record, updated)

    def delete(self, namespace: str, name: str) -> bool:
        """Request deletion; False if the record was already gone."""
        try:
            self.api.delete_namespaced_custom_object(
                API_GROUP, API_VERSION, namespace, RESOURCE_PLURAL, name
            )
        except ApiException as e:
            if e.status == 404:
                return False
            raise self._wrap(e, "delete", namespace, name) from e
        logger.info("Deletion requested for AppDeployment %s/%s", namespace, name)
        return True

    def check_connection(self) -> bool:
        """Check that the AppDeployment API is served."""
        try:
            self.api.list_cluster_custom_object(
                API_GROUP, API_VERSION, RESOURCE_PLURAL, limit=1
            )
        except ApiException:
            logger.exception("AppDeployment API unavailable")
            return False
        return True

    # =========================================================================
    # Helpers
    # =========================================================================

    def _list_raw(self, namespace: str | None) -> dict[str, Any]:
        func, args = self.list_function(namespace)
        return func(*args)

    @staticmethod
    def _refresh(record: AppDeployment, response: Any) -> AppDeployment:
        """Adopt the server's copy after a write so later writes carry its resourceVersion."""
        if isinstance(response, dict):
            return AppDeployment.from_resource(response)
        return record

    @staticmethod
    def _wrap(error: ApiException, action: str, namespace: str, name: str) -> StoreError:
        target = f"{namespace}/{name}" if name else namespace
        if error.status == 409:
            return RecordConflictError(f"conflict trying to {action} {target}: {error.reason}")
        return StoreError(f"failed to {action} {target}: {error.status} {error.reason}")
