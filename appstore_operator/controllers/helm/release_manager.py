"""Release lifecycle manager backed by the helm CLI."""

from __future__ import annotations

import logging
import tempfile
from collections.abc import Callable
from pathlib import Path
from typing import Any

import yaml

from appstore_operator.constants.defaults import HELM_BINARY_DEFAULT
from appstore_operator.constants.patterns import RELEASE_NOT_FOUND_PATTERN
from appstore_operator.constants.timeouts import (
    HELM_MUTATION_COMMAND_TIMEOUT,
    HELM_OPERATION_TIMEOUT,
    HELM_QUERY_COMMAND_TIMEOUT,
)
from appstore_operator.controllers.base import BaseController
from appstore_operator.controllers.charts import ChartFetcher, ChartMirror
from appstore_operator.controllers.helm.errors import (
    ChartLoadError,
    HelmError,
    InstallError,
    PackageNotFoundError,
    ReleaseNotFoundError,
    ReleaseQueryError,
    UninstallError,
    UpgradeError,
)
from appstore_operator.controllers.helm.parsers import ReleaseParser
from appstore_operator.models.releases import ChartMetadata, ReleaseInfo
from appstore_operator.utils.command import CommandResult, run_command
from appstore_operator.utils.keyed_lock import KeyedLock

logger = logging.getLogger(__name__)


class ReleaseManager(BaseController):
    """Installs, upgrades, removes and inspects Helm releases.

    Every call is one blocking helm invocation. Mutations on the same
    ``(namespace, name)`` are serialized; distinct releases proceed in
    parallel unless ``serialize_all_mutations`` is set. Reads take no lock.
    """

    def __init__(
        self,
        mirror: ChartMirror | None = None,
        repo_url: str = "",
        helm_binary: str = HELM_BINARY_DEFAULT,
        kube_context: str | None = None,
        serialize_all_mutations: bool = False,
        run_command_func: Callable[..., CommandResult] = run_command,
    ) -> None:
        """Initialize the manager.

        Args:
            mirror: Local chart mirror consulted first when resolving charts
            repo_url: Helm repository to pull charts from when not mirrored
            helm_binary: helm executable
            kube_context: kubeconfig context to target
            serialize_all_mutations: Use one process-wide mutation lock
            run_command_func: Blocking command runner (injectable for tests)
        """
        self.mirror = mirror
        self.repo_url = repo_url
        self.helm_binary = helm_binary
        self.kube_context = kube_context
        self._run_command = run_command_func
        self._locks = KeyedLock(single=serialize_all_mutations)
        self._parser = ReleaseParser()

    # =========================================================================
    # Mutations
    # =========================================================================

    def install(
        self,
        name: str,
        chart: str,
        namespace: str,
        values: dict[str, Any] | None = None,
        version: str = "",
    ) -> ReleaseInfo:
        """Install a new release.

        Args:
            name: Release name
            chart: Package (chart) name
            namespace: Target namespace, created if missing
            values: Merged configuration values
            version: Requested chart version, empty for the default

        Returns:
            The installed release.

        Raises:
            PackageNotFoundError: Chart unavailable.
            ChartLoadError: Mirrored chart is unreadable.
            InstallError: helm failed.
        """
        with self._locks.hold((namespace, name)), tempfile.TemporaryDirectory(
            prefix="appstore-install-"
        ) as workdir:
            chart_args = self._chart_args(chart, version, Path(workdir))
            values_file = self._write_values(values, Path(workdir))
            logger.info("Installing release %s/%s from chart %s", namespace, name, chart)
            result = self._helm(
                "install",
                name,
                *chart_args,
                "--namespace",
                namespace,
                "--create-namespace",
                "--timeout",
                HELM_OPERATION_TIMEOUT,
                "--output",
                "json",
                "--values",
                str(values_file),
                timeout=HELM_MUTATION_COMMAND_TIMEOUT,
            )
            if not result.ok:
                raise InstallError(f"install of {name} failed: {result.error_text()}")
            return self._release_from_output(result, name, namespace)

    def upgrade(
        self,
        name: str,
        chart: str,
        namespace: str,
        values: dict[str, Any] | None = None,
        version: str = "",
    ) -> ReleaseInfo:
        """Upgrade an existing release, replacing its values entirely.

        Raises:
            PackageNotFoundError: Chart unavailable.
            ChartLoadError: Mirrored chart is unreadable.
            ReleaseNotFoundError: No such release.
            UpgradeError: helm failed.
        """
        with self._locks.hold((namespace, name)), tempfile.TemporaryDirectory(
            prefix="appstore-upgrade-"
        ) as workdir:
            chart_args = self._chart_args(chart, version, Path(workdir))
            values_file = self._write_values(values, Path(workdir))
            logger.info("Upgrading release %s/%s with chart %s", namespace, name, chart)
            result = self._helm(
                "upgrade",
                name,
                *chart_args,
                "--namespace",
                namespace,
                "--reset-values",
                "--timeout",
                HELM_OPERATION_TIMEOUT,
                "--output",
                "json",
                "--values",
                str(values_file),
                timeout=HELM_MUTATION_COMMAND_TIMEOUT,
            )
            if not result.ok:
                message = result.error_text()
                if RELEASE_NOT_FOUND_PATTERN.search(message):
                    raise ReleaseNotFoundError(f"release {namespace}/{name} not found")
                raise UpgradeError(f"upgrade of {name} failed: {message}")
            return self._release_from_output(result, name, namespace)

    def uninstall(self, name: str, namespace: str) -> None:
        """Remove a release; an already-absent release counts as success.

        Raises:
            UninstallError: helm failed for another reason.
        """
        with self._locks.hold((namespace, name)):
            logger.info("Uninstalling release %s/%s", namespace, name)
            result = self._helm(
                "uninstall",
                name,
                "--namespace",
                namespace,
                "--timeout",
                HELM_OPERATION_TIMEOUT,
                timeout=HELM_MUTATION_COMMAND_TIMEOUT,
            )
        if result.ok:
            return
        message = result.error_text()
        if RELEASE_NOT_FOUND_PATTERN.search(message):
            logger.debug("Release %s/%s already gone", namespace, name)
            return
        raise UninstallError(f"uninstall of {name} failed: {message}")

    # =========================================================================
    # Queries
    # =========================================================================

    def get(self, name: str, namespace: str) -> ReleaseInfo | None:
        """Return the current release, or None if it does not exist.

        Raises:
            ReleaseQueryError: The state could not be read.
        """
        result = self._helm(
            "status",
            name,
            "--namespace",
            namespace,
            "--output",
            "json",
            timeout=HELM_QUERY_COMMAND_TIMEOUT,
        )
        if not result.ok:
            message = result.error_text()
            if RELEASE_NOT_FOUND_PATTERN.search(message):
                return None
            raise ReleaseQueryError(f"status of {namespace}/{name} failed: {message}")
        release = self._parser.parse(result.stdout, namespace)
        if release is None:
            raise ReleaseQueryError(f"unreadable status output for {namespace}/{name}")
        return release

    def exists(self, name: str, namespace: str) -> bool:
        return self.get(name, namespace) is not None

    def chart_metadata(self, chart: str) -> ChartMetadata | None:
        """Chart.yaml of a mirrored chart, or None."""
        if self.mirror is None:
            return None
        return self.mirror.metadata(chart)

    def add_repository(self, name: str, url: str) -> None:
        """Register (or refresh) a named chart repository.

        Raises:
            HelmError: helm failed.
        """
        result = self._helm(
            "repo", "add", name, url, "--force-update", timeout=HELM_QUERY_COMMAND_TIMEOUT
        )
        if not result.ok:
            raise HelmError(f"adding repository {name} failed: {result.error_text()}")

    def check_connection(self) -> bool:
        """Check if the helm binary runs."""
        return self._helm("version", "--short", timeout=HELM_QUERY_COMMAND_TIMEOUT).ok

    # =========================================================================
    # Helpers
    # =========================================================================

    def _helm(self, *args: str, timeout: int) -> CommandResult:
        cmd = [self.helm_binary, *args]
        if self.kube_context:
            cmd.extend(["--kube-context", self.kube_context])
        return self._run_command(cmd, timeout=timeout)

    def _chart_args(self, chart: str, version: str, workdir: Path) -> list[str]:
        """Resolve a chart to helm arguments.

        A mirrored chart is copied into ``workdir`` and referenced by path;
        otherwise it is pulled from the configured repository.
        """
        if self.mirror is not None:
            local = self.mirror.snapshot(chart, workdir / "chart")
            if local is not None:
                if ChartFetcher(local.parent).load_chart_metadata(local) is None:
                    raise ChartLoadError(f"chart {chart} could not be loaded")
                return [str(local)]

        if not self.repo_url:
            raise PackageNotFoundError(f"chart {chart} not found")
        args = [chart, "--repo", self.repo_url]
        if version:
            args.extend(["--version", version])
        return args

    @staticmethod
    def _write_values(values: dict[str, Any] | None, workdir: Path) -> Path:
        values_file = workdir / "values.yaml"
        with open(values_file, "w", encoding="utf-8") as f:
            yaml.safe_dump(values or {}, f, default_flow_style=False, sort_keys=True)
        return values_file

    def _release_from_output(
        self, result: CommandResult, name: str, namespace: str
    ) -> ReleaseInfo:
        release = self._parser.parse(result.stdout, namespace)
        if release is not None:
            return release
        logger.debug("No release document in helm output, querying %s/%s", namespace, name)
        release = self.get(name, namespace)
        if release is None:
            raise HelmError(f"release {namespace}/{name} missing after successful operation")
        return release
