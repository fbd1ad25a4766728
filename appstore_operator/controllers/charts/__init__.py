"""Chart source controllers."""

from appstore_operator.controllers.charts.fetchers import ChartFetcher
from appstore_operator.controllers.charts.mirror import (
    ChartMirror,
    MirrorError,
    MirrorSyncError,
)

__all__ = ["ChartFetcher", "ChartMirror", "MirrorError", "MirrorSyncError"]
