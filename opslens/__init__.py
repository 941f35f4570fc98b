"""OpsLens - natural-language operational health analysis."""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("opslens")
except PackageNotFoundError:
    __version__ = "0.0.0-dev"
