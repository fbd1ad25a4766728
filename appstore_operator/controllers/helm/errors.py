"""Release lifecycle errors."""


class HelmError(Exception):
    """Base exception for release lifecycle failures."""


class PackageNotFoundError(HelmError):
    """Raised when a chart is neither mirrored nor pullable from a repository."""


class ChartLoadError(HelmError):
    """Raised when a mirrored chart cannot be loaded."""


class InstallError(HelmError):
    """Raised when ``helm install`` fails."""


class UpgradeError(HelmError):
    """Raised when ``helm upgrade`` fails."""


class UninstallError(HelmError):
    """Raised when ``helm uninstall`` fails for a reason other than absence."""


class ReleaseNotFoundError(HelmError):
    """Raised when an upgrade targets a release that does not exist."""


class ReleaseQueryError(HelmError):
    """Raised when the release state cannot be read."""
