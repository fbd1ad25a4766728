"""Release parser - turns helm JSON output into ReleaseInfo."""

from __future__ import annotations

import json
import logging
from datetime import datetime
from typing import Any

from appstore_operator.models.releases import ReleaseInfo

logger = logging.getLogger(__name__)


class ReleaseParser:
    """Parses the release document printed by ``helm status|install|upgrade -o json``."""

    def parse(self, output: str, namespace: str = "") -> ReleaseInfo | None:
        """Parse one release document.

        Args:
            output: Raw command stdout
            namespace: Namespace to assume when the document omits it

        Returns:
            ReleaseInfo, or None if the output is not a release document.
        """
        if not output.strip():
            return None
        try:
            data = json.loads(output)
        except json.JSONDecodeError:
            logger.warning("Unparseable helm release output: %.200s", output)
            return None
        if not isinstance(data, dict) or not data.get("name"):
            return None
        return self.parse_document(data, namespace)

    def parse_document(self, data: dict[str, Any], namespace: str = "") -> ReleaseInfo:
        info = data.get("info") or {}
        chart = data.get("chart") or {}
        metadata = chart.get("metadata") or {}
        return ReleaseInfo(
            name=str(data["name"]),
            namespace=str(data.get("namespace") or namespace),
            revision=self._parse_revision(data.get("version")),
            status=str(info.get("status") or "unknown"),
            chart_name=str(metadata.get("name") or ""),
            chart_version=str(metadata.get("version") or ""),
            app_version=str(metadata.get("appVersion") or ""),
            updated=self._parse_timestamp(info.get("last_deployed")),
        )

    @staticmethod
    def _parse_revision(value: Any) -> int:
        try:
            return int(value)
        except (TypeError, ValueError):
            return 0

    @staticmethod
    def _parse_timestamp(value: Any) -> datetime | None:
        """Parse helm's RFC 3339 timestamps (nanosecond precision allowed)."""
        if not value or not isinstance(value, str):
            return None
        text = value.strip().replace("Z", "+00:00")
        # fromisoformat accepts at most microseconds
        if "." in text:
            head, _, tail = text.partition(".")
            digits = ""
            rest = ""
            for i, ch in enumerate(tail):
                if not ch.isdigit():
                    rest = tail[i:]
                    break
                digits += ch
            text = f"{head}.{digits[:6].ljust(6, '0')}{rest}"
        try:
            return datetime.fromisoformat(text)
        except ValueError:
            return None
