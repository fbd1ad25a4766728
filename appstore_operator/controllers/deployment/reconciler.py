"""Deployment reconciler - converges one AppDeployment onto a Helm release.

Each pass reads the record, decides the single next action, performs it
and records the outcome in status. Lifecycle failures end up in status and
a delayed requeue; only a failed status write surfaces as
``ReconcileResult.error``.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from typing import Any, Protocol

from appstore_operator.constants.enums import ConditionType, DeploymentPhase
from appstore_operator.constants.patterns import is_valid_release_name
from appstore_operator.constants.timeouts import REQUEUE_AFTER_FAILURE, REQUEUE_AFTER_SUCCESS
from appstore_operator.controllers.base import ReconcileResult
from appstore_operator.controllers.deployment.values import (
    ValuesReader,
    ValuesValidationError,
    hash_values,
    resolve_values,
)
from appstore_operator.controllers.helm.errors import HelmError
from appstore_operator.controllers.store.deployment_store import StoreError
from appstore_operator.controllers.store.values_source import (
    ValuesReferenceError,
    ValuesReferenceNotFound,
)
from appstore_operator.models.deployment import AppDeployment, utcnow
from appstore_operator.models.releases import ReleaseInfo

logger = logging.getLogger(__name__)

StatusNotifier = Callable[[AppDeployment], None]


class RecordStore(Protocol):
    def get(self, namespace: str, name: str) -> AppDeployment | None: ...
    def update(self, record: AppDeployment) -> AppDeployment: ...
    def update_status(self, record: AppDeployment) -> AppDeployment: ...


class ReleaseLifecycle(Protocol):
    def get(self, name: str, namespace: str) -> ReleaseInfo | None: ...
    def install(
        self, name: str, chart: str, namespace: str, values: dict[str, Any], version: str
    ) -> ReleaseInfo: ...
    def upgrade(
        self, name: str, chart: str, namespace: str, values: dict[str, Any], version: str
    ) -> ReleaseInfo: ...
    def uninstall(self, name: str, namespace: str) -> None: ...


class ChartCatalog(Protocol):
    def exists(self, name: str) -> bool: ...
    def list(self) -> list[str]: ...


class DeploymentReconciler:
    """Reconciliation state machine for AppDeployment records."""

    def __init__(
        self,
        store: RecordStore,
        releases: ReleaseLifecycle,
        charts: ChartCatalog,
        values_reader: ValuesReader,
        requeue_after_success: float = REQUEUE_AFTER_SUCCESS,
        requeue_after_failure: float = REQUEUE_AFTER_FAILURE,
        status_notifier: StatusNotifier | None = None,
    ) -> None:
        """Initialize the reconciler.

        Args:
            store: Record store
            releases: Release lifecycle manager
            charts: Chart mirror
            values_reader: Reader for valuesFrom references
            requeue_after_success: Delay before re-checking a converged record
            requeue_after_failure: Delay before retrying a failed record
            status_notifier: Called with the record after each phase change
        """
        self.store = store
        self.releases = releases
        self.charts = charts
        self.values_reader = values_reader
        self.requeue_after_success = requeue_after_success
        self.requeue_after_failure = requeue_after_failure
        self.status_notifier = status_notifier

    # =========================================================================
    # Entry points
    # =========================================================================

    def reconcile_key(self, namespace: str, name: str) -> ReconcileResult:
        """Fetch the record and reconcile it; an absent record is a no-op."""
        try:
            record = self.store.get(namespace, name)
        except StoreError as e:
            logger.error("Failed to fetch %s/%s: %s", namespace, name, e)
            return ReconcileResult.after(self.requeue_after_failure, error=str(e))
        if record is None:
            logger.debug("AppDeployment %s/%s is gone, nothing to do", namespace, name)
            return ReconcileResult.done()
        return self.reconcile(record)

    def reconcile(self, record: AppDeployment) -> ReconcileResult:
        """Run one reconcile pass over ``record``."""
        start = time.monotonic()
        try:
            result = self._reconcile(record)
        except StoreError as e:
            logger.error("Failed to persist %s/%s: %s", record.namespace, record.name, e)
            result = ReconcileResult.after(self.requeue_after_failure, error=str(e))
        result.duration_ms = (time.monotonic() - start) * 1000
        return result

    # =========================================================================
    # State machine
    # =========================================================================

    def _reconcile(self, record: AppDeployment) -> ReconcileResult:
        if record.is_being_deleted:
            if record.has_finalizer():
                return self._finalize(record)
            return ReconcileResult.done()

        if record.add_finalizer():
            self.store.update(record)
            logger.info("Added finalizer to %s/%s", record.namespace, record.name)
            return ReconcileResult.immediately()

        if record.spec.suspend:
            logger.info("Reconciliation suspended for %s/%s", record.namespace, record.name)
            return ReconcileResult.done()

        chart = record.spec.app_name
        if not self.charts.exists(chart):
            available = ", ".join(self.charts.list()) or "none"
            return self._fail(
                record,
                "ChartNotFound",
                f"chart {chart!r} not found in repository (available: {available})",
            )

        release_name = record.resolved_release_name
        if not is_valid_release_name(release_name):
            return self._fail(
                record,
                "InvalidReleaseName",
                f"release name {release_name!r} is not a valid Helm release name",
            )

        try:
            values = resolve_values(record.spec, record.namespace, self.values_reader)
        except ValuesReferenceNotFound as e:
            return self._fail(record, "ValuesSourceNotFound", str(e))
        except (ValuesReferenceError, ValuesValidationError) as e:
            return self._fail(record, "InvalidValues", str(e))
        values_hash = hash_values(values)

        try:
            current = self.releases.get(release_name, record.namespace)
        except HelmError as e:
            return self._fail(record, "ReleaseQueryFailed", str(e))

        if current is None:
            return self._install(record, release_name, values, values_hash)
        if self._needs_upgrade(record, current, values_hash):
            return self._upgrade(record, release_name, values, values_hash)
        return self._ensure_converged(record, current, values_hash)

    def _install(
        self,
        record: AppDeployment,
        release_name: str,
        values: dict[str, Any],
        values_hash: str,
    ) -> ReconcileResult:
        record = self._begin(record, DeploymentPhase.INSTALLING, release_name)
        try:
            release = self.releases.install(
                release_name,
                record.spec.app_name,
                record.namespace,
                values,
                record.spec.chart_version,
            )
        except HelmError as e:
            return self._fail(record, "InstallFailed", str(e))
        logger.info(
            "Installed %s/%s (chart %s %s, revision %d)",
            record.namespace,
            release_name,
            release.chart_name,
            release.chart_version,
            release.revision,
        )
        return self._mark_deployed(record, release, values_hash, "InstallSucceeded")

    def _upgrade(
        self,
        record: AppDeployment,
        release_name: str,
        values: dict[str, Any],
        values_hash: str,
    ) -> ReconcileResult:
        record = self._begin(record, DeploymentPhase.UPGRADING, release_name)
        try:
            release = self.releases.upgrade(
                release_name,
                record.spec.app_name,
                record.namespace,
                values,
                record.spec.chart_version,
            )
        except HelmError as e:
            return self._fail(record, "UpgradeFailed", str(e))
        logger.info(
            "Upgraded %s/%s to chart %s (revision %d)",
            record.namespace,
            release_name,
            release.chart_version,
            release.revision,
        )
        return self._mark_deployed(record, release, values_hash, "UpgradeSucceeded")

    def _finalize(self, record: AppDeployment) -> ReconcileResult:
        release_name = record.resolved_release_name
        status = record.status
        if status.phase != DeploymentPhase.UNINSTALLING:
            status.phase = DeploymentPhase.UNINSTALLING
            status.message = f"Uninstalling release {release_name}"
            status.set_condition(
                ConditionType.RECONCILING, True, "Uninstalling", status.message
            )
            record = self._write_status(record, notify=True)

        try:
            if self.releases.get(release_name, record.namespace) is not None:
                self.releases.uninstall(release_name, record.namespace)
                logger.info("Uninstalled release %s/%s", record.namespace, release_name)
        except HelmError as e:
            logger.error(
                "Uninstall of %s/%s failed: %s", record.namespace, release_name, e
            )
            record.status.failure_count += 1
            record.status.message = f"uninstall failed: {e}"
            record.status.last_reconcile_time = utcnow()
            self._write_status(record)
            return ReconcileResult.after(self.requeue_after_failure)

        record.remove_finalizer()
        self.store.update(record)
        logger.info("Removed finalizer from %s/%s", record.namespace, record.name)
        return ReconcileResult.done()

    # =========================================================================
    # Status transitions
    # =========================================================================

    @staticmethod
    def _needs_upgrade(
        record: AppDeployment, current: ReleaseInfo, values_hash: str
    ) -> bool:
        if record.status.last_applied_values_hash != values_hash:
            return True
        requested = record.spec.chart_version
        return bool(requested) and requested != current.chart_version

    def _begin(
        self, record: AppDeployment, phase: DeploymentPhase, release_name: str
    ) -> AppDeployment:
        status = record.status
        status.phase = phase
        status.helm_release_name = release_name
        status.last_attempted_chart_version = record.spec.chart_version
        status.message = f"{phase.value} release {release_name}"
        status.set_condition(ConditionType.RECONCILING, True, phase.value, status.message)
        return self._write_status(record, notify=True)

    def _mark_deployed(
        self,
        record: AppDeployment,
        release: ReleaseInfo,
        values_hash: str,
        reason: str,
    ) -> ReconcileResult:
        self._apply_deployed(record, release, values_hash, reason)
        self._write_status(record, notify=True)
        return ReconcileResult.after(self.requeue_after_success)

    def _ensure_converged(
        self, record: AppDeployment, current: ReleaseInfo, values_hash: str
    ) -> ReconcileResult:
        status = record.status
        converged = (
            status.phase == DeploymentPhase.DEPLOYED
            and status.helm_release_name == current.name
            and status.helm_release_revision == current.revision
            and status.deployed_chart_version == current.chart_version
            and status.last_applied_values_hash == values_hash
            and status.observed_generation == record.metadata.generation
            and status.failure_count == 0
        )
        if not converged:
            notify = status.phase != DeploymentPhase.DEPLOYED
            self._apply_deployed(record, current, values_hash, "ReleaseUpToDate")
            self._write_status(record, notify=notify)
        return ReconcileResult.after(self.requeue_after_success)

    @staticmethod
    def _apply_deployed(
        record: AppDeployment, release: ReleaseInfo, values_hash: str, reason: str
    ) -> None:
        status = record.status
        status.phase = DeploymentPhase.DEPLOYED
        status.helm_release_name = release.name
        status.helm_release_revision = release.revision
        status.deployed_chart_version = release.chart_version
        status.last_applied_values_hash = values_hash
        status.failure_count = 0
        status.message = f"Release {release.name} revision {release.revision} deployed"
        status.observed_generation = record.metadata.generation
        status.last_reconcile_time = utcnow()
        status.set_condition(ConditionType.READY, True, reason, status.message)
        status.set_condition(ConditionType.RECONCILING, False, reason, status.message)

    def _fail(self, record: AppDeployment, reason: str, message: str) -> ReconcileResult:
        logger.warning(
            "Reconcile of %s/%s failed (%s): %s", record.namespace, record.name, reason, message
        )
        status = record.status
        notify = status.phase != DeploymentPhase.FAILED
        status.phase = DeploymentPhase.FAILED
        status.message = message
        status.failure_count += 1
        status.observed_generation = record.metadata.generation
        status.last_reconcile_time = utcnow()
        status.set_condition(ConditionType.READY, False, reason, message)
        status.set_condition(ConditionType.RECONCILING, False, reason, message)
        self._write_status(record, notify=notify)
        return ReconcileResult.after(self.requeue_after_failure)

    def _write_status(self, record: AppDeployment, notify: bool = False) -> AppDeployment:
        updated = self.store.update_status(record)
        if notify and self.status_notifier is not None:
            try:
                self.status_notifier(updated)
            except Exception:
                logger.exception(
                    "Status notification for %s/%s failed", record.namespace, record.name
                )
        return updated
