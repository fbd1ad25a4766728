"""Chart fetcher for the charts controller - discovers charts in a local checkout."""

from __future__ import annotations

import logging
from pathlib import Path

import yaml

from appstore_operator.constants.defaults import CHART_DESCRIPTOR_FILE
from appstore_operator.models.releases import ChartMetadata

logger = logging.getLogger(__name__)


class ChartFetcher:
    """Finds and reads Helm charts laid out one per top-level directory."""

    _MAX_DESCRIPTOR_BYTES = 1024 * 1024  # 1 MB

    def __init__(self, repo_path: Path) -> None:
        """Initialize chart fetcher.

        Args:
            repo_path: Path to the chart repository checkout
        """
        self.repo_path = repo_path

    def list_chart_names(self) -> list[str]:
        """Return the names of all valid charts, sorted.

        Returns:
            Chart directory names.
        """
        if not self.repo_path.is_dir():
            return []
        return sorted(
            entry.name for entry in self.repo_path.iterdir() if self.is_chart_dir(entry)
        )

    def chart_exists(self, name: str) -> bool:
        """Check whether ``name`` is a valid top-level chart.

        Agrees with ``list_chart_names``: only plain, non-hidden names
        resolve, so path tricks like ``../x`` or ``a/b`` never match.
        """
        if not name or "/" in name or "\\" in name or name in (".", ".."):
            return False
        return self.is_chart_dir(self.repo_path / name)

    def chart_path(self, name: str) -> Path:
        """Local path a chart named ``name`` lives at (existing or not)."""
        return self.repo_path / name

    @staticmethod
    def is_chart_dir(path: Path) -> bool:
        """A chart is a non-hidden directory with a descriptor at its root."""
        if path.name.startswith("."):
            return False
        return path.is_dir() and (path / CHART_DESCRIPTOR_FILE).is_file()

    def load_chart_metadata(self, chart_dir: Path) -> ChartMetadata | None:
        """Parse a chart's descriptor file.

        Args:
            chart_dir: Chart directory

        Returns:
            Parsed metadata, or None if the descriptor is missing or invalid.
        """
        descriptor = chart_dir / CHART_DESCRIPTOR_FILE
        try:
            if descriptor.stat().st_size > self._MAX_DESCRIPTOR_BYTES:
                logger.warning("Chart descriptor too large, skipping: %s", descriptor)
                return None
            with open(descriptor, encoding="utf-8") as f:
                raw = yaml.safe_load(f)
        except (OSError, yaml.YAMLError):
            logger.exception("Error reading chart descriptor: %s", descriptor)
            return None

        if not isinstance(raw, dict):
            logger.warning("Chart descriptor is not a mapping: %s", descriptor)
            return None
        return ChartMetadata(
            name=str(raw.get("name") or chart_dir.name),
            version=str(raw.get("version") or ""),
            app_version=str(raw.get("appVersion") or ""),
            description=str(raw.get("description") or ""),
            api_version=str(raw.get("apiVersion") or "v2"),
        )
