"""Tests for the Kubernetes-backed deployment store."""

from __future__ import annotations

import base64
from typing import Any
from unittest.mock import MagicMock

import pytest
from kubernetes.client.exceptions import ApiException

from appstore_operator.constants.enums import ValuesSourceKind
from appstore_operator.controllers.store import (
    DeploymentStore,
    RecordAlreadyExistsError,
    RecordConflictError,
    StoreError,
    ValuesReferenceError,
    ValuesReferenceNotFound,
    ValuesSource,
)
from appstore_operator.models.deployment import AppDeployment, ValuesReference


def _resource(name: str = "pg-main", **status: Any) -> dict[str, Any]:
    return {
        "apiVersion": "appstore.bitpipe.no/v1alpha1",
        "kind": "AppDeployment",
        "metadata": {
            "name": name,
            "namespace": "team-a",
            "generation": 2,
            "resourceVersion": "4711",
            "finalizers": ["appstore.bitpipe.no/finalizer"],
        },
        "spec": {"appName": "postgresql", "teamId": "t1"},
        "status": status,
    }


class TestDeploymentStore:
    """Tests for DeploymentStore class."""

    @pytest.fixture
    def api(self) -> MagicMock:
        return MagicMock()

    @pytest.fixture
    def store(self, api: MagicMock) -> DeploymentStore:
        return DeploymentStore(api=api)

    def test_get(self, store: DeploymentStore, api: MagicMock) -> None:
        api.get_namespaced_custom_object.return_value = _resource(phase="Deployed")

        record = store.get("team-a", "pg-main")

        assert record is not None
        assert record.spec.app_name == "postgresql"
        assert record.status.phase == "Deployed"
        api.get_namespaced_custom_object.assert_called_once_with(
            "appstore.bitpipe.no", "v1alpha1", "team-a", "appdeployments", "pg-main"
        )

    def test_get_missing(self, store: DeploymentStore, api: MagicMock) -> None:
        api.get_namespaced_custom_object.side_effect = ApiException(status=404, reason="Not Found")
        assert store.get("team-a", "pg-main") is None

    def test_get_error(self, store: DeploymentStore, api: MagicMock) -> None:
        api.get_namespaced_custom_object.side_effect = ApiException(status=500, reason="boom")
        with pytest.raises(StoreError, match="500"):
            store.get("team-a", "pg-main")

    def test_create(self, store: DeploymentStore, api: MagicMock) -> None:
        """Test create sends camelCase without status."""
        record = AppDeployment.from_resource(_resource())
        api.create_namespaced_custom_object.return_value = _resource()

        store.create(record)

        body = api.create_namespaced_custom_object.call_args.args[4]
        assert body["spec"]["appName"] == "postgresql"
        assert body["kind"] == "AppDeployment"
        assert "status" not in body

    def test_create_conflict(self, store: DeploymentStore, api: MagicMock) -> None:
        api.create_namespaced_custom_object.side_effect = ApiException(status=409, reason="AlreadyExists")
        with pytest.raises(RecordAlreadyExistsError):
            store.create(AppDeployment.from_resource(_resource()))

    def test_update_conflict(self, store: DeploymentStore, api: MagicMock) -> None:
        api.replace_namespaced_custom_object.side_effect = ApiException(status=409, reason="Conflict")
        with pytest.raises(RecordConflictError):
            store.update(AppDeployment.from_resource(_resource()))

    def test_update_status_returns_server_copy(
        self, store: DeploymentStore, api: MagicMock
    ) -> None:
        """Test the refreshed resourceVersion is adopted after a status write."""
        refreshed = _resource(phase="Installing")
        refreshed["metadata"]["resourceVersion"] = "4712"
        api.replace_namespaced_custom_object_status.return_value = refreshed

        updated = store.update_status(AppDeployment.from_resource(_resource()))

        body = api.replace_namespaced_custom_object_status.call_args.args[5]
        assert "status" in body
        assert body["metadata"]["resourceVersion"] == "4711"
        assert updated.metadata.resource_version == "4712"

    def test_delete(self, store: DeploymentStore, api: MagicMock) -> None:
        assert store.delete("team-a", "pg-main") is True

    def test_delete_missing(self, store: DeploymentStore, api: MagicMock) -> None:
        api.delete_namespaced_custom_object.side_effect = ApiException(status=404)
        assert store.delete("team-a", "pg-main") is False

    def test_list_namespaced_skips_malformed(
        self, store: DeploymentStore, api: MagicMock
    ) -> None:
        broken = _resource("broken")
        broken["spec"] = {"appName": ""}
        api.list_namespaced_custom_object.return_value = {"items": [_resource(), broken]}

        records = store.list("team-a")

        assert [record.name for record in records] == ["pg-main"]

    def test_list_cluster_wide(self, store: DeploymentStore, api: MagicMock) -> None:
        api.list_cluster_custom_object.return_value = {"items": []}
        assert store.list() == []
        api.list_cluster_custom_object.assert_called_once_with(
            "appstore.bitpipe.no", "v1alpha1", "appdeployments"
        )

    def test_check_connection(self, store: DeploymentStore, api: MagicMock) -> None:
        assert store.check_connection() is True
        api.list_cluster_custom_object.side_effect = ApiException(status=404)
        assert store.check_connection() is False


class TestValuesSource:
    """Tests for ValuesSource class."""

    @pytest.fixture
    def core_api(self) -> MagicMock:
        return MagicMock()

    def test_config_map(self, core_api: MagicMock) -> None:
        core_api.read_namespaced_config_map.return_value = MagicMock(data={"values.yaml": "a: 1\n"})
        reference = ValuesReference(kind=ValuesSourceKind.CONFIG_MAP, name="pg-values")

        assert ValuesSource(core_api).read("team-a", reference) == "a: 1\n"
        core_api.read_namespaced_config_map.assert_called_once_with("pg-values", "team-a")

    def test_secret_is_decoded(self, core_api: MagicMock) -> None:
        encoded = base64.b64encode(b"password: s3cret\n").decode()
        core_api.read_namespaced_secret.return_value = MagicMock(data={"custom.yaml": encoded})
        reference = ValuesReference(
            kind=ValuesSourceKind.SECRET, name="pg-secret", values_key="custom.yaml"
        )

        assert ValuesSource(core_api).read("team-a", reference) == "password: s3cret\n"

    def test_missing_object(self, core_api: MagicMock) -> None:
        core_api.read_namespaced_config_map.side_effect = ApiException(status=404)
        reference = ValuesReference(kind=ValuesSourceKind.CONFIG_MAP, name="gone")
        with pytest.raises(ValuesReferenceNotFound):
            ValuesSource(core_api).read("team-a", reference)

    def test_missing_key(self, core_api: MagicMock) -> None:
        core_api.read_namespaced_config_map.return_value = MagicMock(data={"other": "x"})
        reference = ValuesReference(kind=ValuesSourceKind.CONFIG_MAP, name="cm")
        with pytest.raises(ValuesReferenceNotFound, match="values.yaml"):
            ValuesSource(core_api).read("team-a", reference)

    def test_forbidden_is_not_missing(self, core_api: MagicMock) -> None:
        core_api.read_namespaced_secret.side_effect = ApiException(status=403, reason="Forbidden")
        reference = ValuesReference(kind=ValuesSourceKind.SECRET, name="s")
        with pytest.raises(ValuesReferenceError) as excinfo:
            ValuesSource(core_api).read("team-a", reference)
        assert not isinstance(excinfo.value, ValuesReferenceNotFound)
