"""Shared fixtures: in-memory stand-ins for the cluster, helm and the mirror."""

from __future__ import annotations

from collections.abc import Callable
from datetime import datetime, timezone
from typing import Any

import pytest

from appstore_operator.constants.defaults import FINALIZER_NAME
from appstore_operator.controllers.deployment import DeploymentReconciler
from appstore_operator.controllers.helm.errors import InstallError, UninstallError, UpgradeError
from appstore_operator.controllers.store import (
    RecordAlreadyExistsError,
    StoreError,
    ValuesReferenceNotFound,
)
from appstore_operator.models.deployment import (
    AppDeployment,
    AppDeploymentSpec,
    ObjectMeta,
    ValuesReference,
)
from appstore_operator.models.releases import ReleaseInfo


class InMemoryStore:
    """Record store keeping copies, the way the API server does."""

    def __init__(self) -> None:
        self.records: dict[tuple[str, str], AppDeployment] = {}
        self.updates = 0
        self.status_writes = 0
        self.creates = 0
        self.fail_status_writes = False

    def put(self, record: AppDeployment) -> None:
        self.records[record.key] = record.model_copy(deep=True)

    def get(self, namespace: str, name: str) -> AppDeployment | None:
        record = self.records.get((namespace, name))
        return record.model_copy(deep=True) if record is not None else None

    def create(self, record: AppDeployment) -> AppDeployment:
        if record.key in self.records:
            raise RecordAlreadyExistsError(f"{record.namespace}/{record.name} already exists")
        self.creates += 1
        self.put(record)
        return self.get(*record.key)

    def update(self, record: AppDeployment) -> AppDeployment:
        stored = self.records[record.key]
        self.updates += 1
        spec_changed = stored.spec != record.spec
        generation = stored.metadata.generation
        stored.metadata = record.metadata.model_copy(deep=True)
        stored.metadata.generation = generation + 1 if spec_changed else generation
        stored.spec = record.spec.model_copy(deep=True)
        if stored.is_being_deleted and not stored.metadata.finalizers:
            del self.records[record.key]
        return stored.model_copy(deep=True)

    def update_status(self, record: AppDeployment) -> AppDeployment:
        if self.fail_status_writes:
            raise StoreError("status write rejected")
        self.status_writes += 1
        stored = self.records[record.key]
        stored.status = record.status.model_copy(deep=True)
        return stored.model_copy(deep=True)

    def delete(self, namespace: str, name: str) -> bool:
        stored = self.records.get((namespace, name))
        if stored is None:
            return False
        if stored.metadata.finalizers:
            stored.metadata.deletion_timestamp = datetime.now(timezone.utc)
        else:
            del self.records[(namespace, name)]
        return True


class FakeReleases:
    """Release lifecycle manager recording calls against an in-memory cluster."""

    def __init__(self, chart_version: str = "12.1.0") -> None:
        self.chart_version = chart_version
        self.releases: dict[tuple[str, str], ReleaseInfo] = {}
        self.calls: list[tuple[str, str]] = []
        self.installed_values: dict[tuple[str, str], dict[str, Any]] = {}
        self.fail_install: str | None = None
        self.fail_upgrade: str | None = None
        self.fail_uninstall: str | None = None

    def count(self, operation: str) -> int:
        return sum(1 for op, _ in self.calls if op == operation)

    def get(self, name: str, namespace: str) -> ReleaseInfo | None:
        return self.releases.get((namespace, name))

    def install(
        self, name: str, chart: str, namespace: str, values: dict[str, Any], version: str
    ) -> ReleaseInfo:
        self.calls.append(("install", name))
        if self.fail_install:
            raise InstallError(self.fail_install)
        release = ReleaseInfo(
            name=name,
            namespace=namespace,
            revision=1,
            status="deployed",
            chart_name=chart,
            chart_version=version or self.chart_version,
        )
        self.releases[(namespace, name)] = release
        self.installed_values[(namespace, name)] = values
        return release

    def upgrade(
        self, name: str, chart: str, namespace: str, values: dict[str, Any], version: str
    ) -> ReleaseInfo:
        self.calls.append(("upgrade", name))
        if self.fail_upgrade:
            raise UpgradeError(self.fail_upgrade)
        current = self.releases[(namespace, name)]
        release = current.model_copy(
            update={
                "revision": current.revision + 1,
                "chart_version": version or current.chart_version,
            }
        )
        self.releases[(namespace, name)] = release
        self.installed_values[(namespace, name)] = values
        return release

    def uninstall(self, name: str, namespace: str) -> None:
        self.calls.append(("uninstall", name))
        if self.fail_uninstall:
            raise UninstallError(self.fail_uninstall)
        self.releases.pop((namespace, name), None)


class FakeCharts:
    def __init__(self, names: list[str]) -> None:
        self.names = sorted(names)

    def exists(self, name: str) -> bool:
        return name in self.names

    def list(self) -> list[str]:
        return list(self.names)


class FakeValuesReader:
    """Serves valuesFrom documents keyed by (kind, name, key)."""

    def __init__(self) -> None:
        self.documents: dict[tuple[str, str, str], str] = {}

    def add(self, kind: str, name: str, text: str, key: str = "values.yaml") -> None:
        self.documents[(kind, name, key)] = text

    def read(self, namespace: str, reference: ValuesReference) -> str:
        lookup = (reference.kind.value, reference.name, reference.values_key)
        if lookup not in self.documents:
            raise ValuesReferenceNotFound(f"{reference.name} not found")
        return self.documents[lookup]


@pytest.fixture
def store() -> InMemoryStore:
    return InMemoryStore()


@pytest.fixture
def releases() -> FakeReleases:
    return FakeReleases()


@pytest.fixture
def charts() -> FakeCharts:
    return FakeCharts(["postgresql", "redis"])


@pytest.fixture
def values_reader() -> FakeValuesReader:
    return FakeValuesReader()


@pytest.fixture
def reconciler(
    store: InMemoryStore,
    releases: FakeReleases,
    charts: FakeCharts,
    values_reader: FakeValuesReader,
) -> DeploymentReconciler:
    return DeploymentReconciler(
        store=store,
        releases=releases,
        charts=charts,
        values_reader=values_reader,
        requeue_after_success=300.0,
        requeue_after_failure=30.0,
    )


@pytest.fixture
def make_record() -> Callable[..., AppDeployment]:
    """Factory for AppDeployment records with sensible defaults."""

    def _make(
        name: str = "pg-main",
        namespace: str = "team-a",
        app_name: str = "postgresql",
        finalizer: bool = True,
        generation: int = 1,
        **spec: Any,
    ) -> AppDeployment:
        return AppDeployment(
            metadata=ObjectMeta(
                name=name,
                namespace=namespace,
                generation=generation,
                finalizers=[FINALIZER_NAME] if finalizer else [],
            ),
            spec=AppDeploymentSpec(app_name=app_name, team_id="t1", **spec),
        )

    return _make
