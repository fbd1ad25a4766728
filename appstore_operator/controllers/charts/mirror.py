"""Chart source mirror: a local git checkout of the chart repository.

The checkout is one shared resource guarded by a reader/writer lock. Clone
and pull hold the write side for their whole duration, so readers never
see a half-updated tree; queries and chart snapshots hold the read side.
"""

from __future__ import annotations

import asyncio
import logging
import shutil
from collections.abc import Callable
from pathlib import Path

from appstore_operator.constants.defaults import CHARTS_BRANCH_DEFAULT, GIT_BINARY_DEFAULT
from appstore_operator.constants.timeouts import CHART_SYNC_INTERVAL, GIT_COMMAND_TIMEOUT
from appstore_operator.controllers.base import BaseController
from appstore_operator.controllers.charts.fetchers import ChartFetcher
from appstore_operator.models.releases import ChartMetadata
from appstore_operator.utils.command import CommandResult, run_command
from appstore_operator.utils.rwlock import ReadWriteLock

logger = logging.getLogger(__name__)


class MirrorError(Exception):
    """Base exception for chart mirror errors."""


class MirrorSyncError(MirrorError):
    """Raised when the local copy cannot be created or refreshed."""


class ChartMirror(BaseController):
    """Periodically refreshed local copy of a remote chart repository."""

    def __init__(
        self,
        repo_url: str,
        local_path: Path,
        branch: str = CHARTS_BRANCH_DEFAULT,
        sync_interval: float = CHART_SYNC_INTERVAL,
        git_binary: str = GIT_BINARY_DEFAULT,
        run_command_func: Callable[..., CommandResult] = run_command,
    ) -> None:
        """Initialize the mirror.

        Args:
            repo_url: Git URL of the chart repository
            local_path: Directory holding the checkout
            branch: Branch to track
            sync_interval: Seconds between periodic pulls
            git_binary: git executable
            run_command_func: Blocking command runner (injectable for tests)
        """
        self.repo_url = repo_url
        self.local_path = Path(local_path)
        self.branch = branch
        self.sync_interval = sync_interval
        self._git_binary = git_binary
        self._run_command = run_command_func
        self._fetcher = ChartFetcher(self.local_path)
        self._lock = ReadWriteLock()

    # =========================================================================
    # Lifecycle
    # =========================================================================

    def start(self) -> None:
        """Perform the initial sync.

        Opens and pulls an existing checkout; on any failure the local copy
        is discarded and a fresh shallow single-branch clone is made.

        Raises:
            MirrorSyncError: If the fresh clone fails.
        """
        with self._lock.write_locked():
            logger.info(
                "Starting initial chart sync from %s (%s) into %s",
                self.repo_url,
                self.branch,
                self.local_path,
            )
            if (self.local_path / ".git").exists():
                result = self._pull_unlocked()
                if result.ok:
                    logger.info("Opened existing chart checkout and pulled latest changes")
                    return
                logger.warning(
                    "Existing chart checkout unusable, re-cloning: %s", result.error_text()
                )
            self._remove_local_copy()
            self._clone_unlocked()
            logger.info("Chart repository cloned successfully")

    async def run_periodic(self, stop: asyncio.Event) -> None:
        """Pull on a fixed interval until ``stop`` is set."""
        logger.info("Periodic chart sync every %.0fs", self.sync_interval)
        while not stop.is_set():
            try:
                await asyncio.wait_for(stop.wait(), timeout=self.sync_interval)
            except asyncio.TimeoutError:
                await asyncio.to_thread(self.pull)
        logger.info("Stopping periodic chart sync")

    def pull(self) -> bool:
        """Fetch and fast-forward the tracked branch.

        Failures are logged and the existing copy is left as-is, so callers
        keep being served the last good tree.

        Returns:
            True if the checkout is now current.
        """
        with self._lock.write_locked():
            result = self._pull_unlocked()
        if not result.ok:
            logger.error("Chart sync failed, serving stale copy: %s", result.error_text())
            return False
        logger.debug("Chart sync completed")
        return True

    def force_sync(self) -> None:
        """Pull immediately, outside the periodic schedule.

        Raises:
            MirrorSyncError: If the pull fails.
        """
        logger.info("Force chart sync triggered")
        with self._lock.write_locked():
            result = self._pull_unlocked()
        if not result.ok:
            raise MirrorSyncError(f"chart sync failed: {result.error_text()}")

    def check_connection(self) -> bool:
        """Check that a usable checkout exists locally."""
        with self._lock.read_locked():
            return (self.local_path / ".git").is_dir()

    # =========================================================================
    # Queries
    # =========================================================================

    def exists(self, name: str) -> bool:
        """Check whether a chart named ``name`` is available."""
        with self._lock.read_locked():
            return self._fetcher.chart_exists(name)

    def list(self) -> list[str]:
        """List every available chart name."""
        with self._lock.read_locked():
            return self._fetcher.list_chart_names()

    def path(self, name: str) -> Path:
        """Local path of a chart (which may not exist)."""
        with self._lock.read_locked():
            return self._fetcher.chart_path(name)

    def metadata(self, name: str) -> ChartMetadata | None:
        """Parsed Chart.yaml of a mirrored chart, or None if absent/invalid."""
        with self._lock.read_locked():
            if not self._fetcher.chart_exists(name):
                return None
            return self._fetcher.load_chart_metadata(self._fetcher.chart_path(name))

    def snapshot(self, name: str, target_dir: Path) -> Path | None:
        """Copy a chart out of the mirror under the read lock.

        Helm reads the chart at its own pace; installing from a private copy
        keeps a concurrent pull from changing files underneath it.

        Returns:
            Path of the copied chart, or None if the chart is not mirrored.
        """
        with self._lock.read_locked():
            if not self._fetcher.chart_exists(name):
                return None
            destination = Path(target_dir) / name
            shutil.copytree(self._fetcher.chart_path(name), destination, symlinks=True)
            return destination

    # =========================================================================
    # git plumbing (callers hold the write lock)
    # =========================================================================

    def _git(self, *args: str, cwd: Path | None = None) -> CommandResult:
        cmd = [self._git_binary]
        if cwd is not None:
            cmd.extend(["-C", str(cwd)])
        cmd.extend(args)
        return self._run_command(cmd, timeout=GIT_COMMAND_TIMEOUT)

    def _pull_unlocked(self) -> CommandResult:
        fetched = self._git(
            "fetch", "--depth", "1", "origin", self.branch, cwd=self.local_path
        )
        if not fetched.ok:
            return fetched
        return self._git("reset", "--hard", "FETCH_HEAD", cwd=self.local_path)

    def _clone_unlocked(self) -> None:
        self.local_path.parent.mkdir(parents=True, exist_ok=True)
        result = self._git(
            "clone",
            "--depth",
            "1",
            "--single-branch",
            "--branch",
            self.branch,
            self.repo_url,
            str(self.local_path),
        )
        if not result.ok:
            raise MirrorSyncError(f"failed to clone chart repository: {result.error_text()}")

    def _remove_local_copy(self) -> None:
        if self.local_path.exists():
            logger.info("Removing local chart copy at %s", self.local_path)
            shutil.rmtree(self.local_path)
