"""Helm release models."""

from datetime import datetime

from pydantic import BaseModel


class ReleaseInfo(BaseModel):
    """Snapshot of one installed Helm release."""

    name: str
    namespace: str
    revision: int = 0
    status: str = "unknown"
    chart_name: str = ""
    chart_version: str = ""
    app_version: str = ""
    updated: datetime | None = None


class ChartMetadata(BaseModel):
    """Fields read from a chart's Chart.yaml."""

    name: str
    version: str = ""
    app_version: str = ""
    description: str = ""
    api_version: str = "v2"
