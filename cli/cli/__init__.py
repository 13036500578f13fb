"""Command-line interface for picam-streamer."""

from importlib.metadata import PackageNotFoundError
from importlib.metadata import version as get_package_version

try:
    __version__ = get_package_version("picam-streamer")
except PackageNotFoundError:
    __version__ = "0.0.0"
