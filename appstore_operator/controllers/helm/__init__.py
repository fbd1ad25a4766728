"""Helm release lifecycle controllers."""

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
from appstore_operator.controllers.helm.release_manager import ReleaseManager

__all__ = [
    "ChartLoadError",
    "HelmError",
    "InstallError",
    "PackageNotFoundError",
    "ReleaseManager",
    "ReleaseNotFoundError",
    "ReleaseQueryError",
    "UninstallError",
    "UpgradeError",
]
