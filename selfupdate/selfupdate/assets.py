"""Release asset selection for the running platform.

Assets are matched by name: a binary archive for a platform carries both the
operating-system token and the architecture token (for example
``picam-streamer_linux_arm64.tar.gz``), and its published checksum carries the
same tokens plus a checksum marker (``.md5`` or ``.sha256``).
"""

from __future__ import annotations

import platform
import re
import sys
from dataclasses import dataclass
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .models import Asset, Release

# Checksum marker -> hashlib algorithm name
CHECKSUM_MARKERS: dict[str, str] = {
    ".md5": "md5",
    ".sha256": "sha256",
}

_OS_NAMES: dict[str, str] = {
    "linux": "linux",
    "darwin": "darwin",
    "win32": "windows",
    "cygwin": "windows",
    "freebsd": "freebsd",
}

_ARCH_NAMES: dict[str, str] = {
    "x86_64": "amd64",
    "amd64": "amd64",
    "aarch64": "arm64",
    "arm64": "arm64",
    "armv6l": "arm",
    "armv7l": "arm",
    "i386": "386",
    "i686": "386",
}

_TOKEN_SEPARATORS = re.compile(r"[._-]+")


@dataclass(frozen=True)
class Platform:
    """Operating system and architecture tokens used in asset names."""

    os: str
    arch: str

    @classmethod
    def current(cls) -> Platform:
        """Detect the platform of the running interpreter."""
        os_name = next(
            (name for prefix, name in _OS_NAMES.items() if sys.platform.startswith(prefix)),
            sys.platform,
        )
        machine = platform.machine().lower()
        return cls(os=os_name, arch=_ARCH_NAMES.get(machine, machine))

    def matches(self, name: str) -> bool:
        """Check whether an asset name carries both platform tokens.

        Tokens are compared whole, so ``arm`` does not match ``arm64``.
        """
        tokens = asset_name_tokens(name)
        return self.os in tokens and self.arch in tokens


def asset_name_tokens(name: str) -> set[str]:
    """Split an asset name on ``_``, ``-`` and ``.`` separators."""
    return {token for token in _TOKEN_SEPARATORS.split(name.lower()) if token}


def checksum_algorithm_for(name: str) -> str | None:
    """Return the hash algorithm named by an asset's checksum marker."""
    for marker, algorithm in CHECKSUM_MARKERS.items():
        if marker in name:
            return algorithm
    return None


def is_checksum_asset(name: str) -> bool:
    return checksum_algorithm_for(name) is not None


def match_binary_asset(release: Release, target: Platform | None = None) -> Asset | None:
    """Find the binary archive of ``release`` for ``target``.

    Args:
        release: Release to search.
        target: Platform to match. Defaults to the running platform.

    Returns:
        The first matching non-checksum asset, or None.
    """
    target = target or Platform.current()
    for asset in release.assets:
        if target.matches(asset.name) and not is_checksum_asset(asset.name):
            return asset
    return None


def match_checksum_asset(release: Release, target: Platform | None = None) -> Asset | None:
    """Find the published checksum of the binary archive for ``target``."""
    target = target or Platform.current()
    for asset in release.assets:
        if target.matches(asset.name) and is_checksum_asset(asset.name):
            return asset
    return None
