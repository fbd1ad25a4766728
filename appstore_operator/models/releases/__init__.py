"""Helm release models."""

from appstore_operator.models.releases.release_info import ChartMetadata, ReleaseInfo

__all__ = ["ChartMetadata", "ReleaseInfo"]
