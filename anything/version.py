"""Version of the running application."""

from importlib.metadata import PackageNotFoundError, version as _dist_version

DEV_VERSION = "dev"


def version() -> str:
    """Installed distribution version, or "dev" when running from a checkout."""
    try:
        return _dist_version("anything")
    except PackageNotFoundError:
        return DEV_VERSION
