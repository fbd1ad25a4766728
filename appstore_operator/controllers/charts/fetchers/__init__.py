"""Chart fetchers."""

from appstore_operator.controllers.charts.fetchers.chart_fetcher import ChartFetcher

__all__ = ["ChartFetcher"]
