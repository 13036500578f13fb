"""Version parsing and comparison utilities.

Release tags and the build stamp are compared with these helpers.

Supported formats:
- Semantic versioning (1.2.3, v1.2.3)
- Shortened versions (v1, v1.2)
- Versions with prerelease and build metadata (1.2.3-rc.1+build.5)
"""

from __future__ import annotations

import re
from functools import total_ordering
from typing import TYPE_CHECKING, NamedTuple

from . import _build
from .models import DEFAULT_COMMIT, DEFAULT_SEMVER, VersionInfo
from .uri import normalise_uri

if TYPE_CHECKING:
    from collections.abc import Iterable

    from .models import Release


class VersionComponents(NamedTuple):
    """Parsed version components."""

    major: int
    minor: int
    patch: int
    prerelease: str | None = None
    build: str | None = None


SEMVER_PATTERN = re.compile(
    r"^v?(\d+)(?:\.(\d+))?(?:\.(\d+))?"
    r"(?:-([0-9A-Za-z.-]+))?"
    r"(?:\+([0-9A-Za-z.-]+))?$",
    re.IGNORECASE,
)


def parse_version(version: str) -> VersionComponents:
    """Parse a version string into components.

    Args:
        version: Version string to parse.

    Returns:
        VersionComponents tuple with major, minor, patch, prerelease, build.

    Raises:
        ValueError: If the version string cannot be parsed.

    Examples:
        >>> parse_version("v1.2.3")
        VersionComponents(major=1, minor=2, patch=3, prerelease=None, build=None)
        >>> parse_version("1.2.3-rc.1")
        VersionComponents(major=1, minor=2, patch=3, prerelease='rc.1', build=None)
    """
    match = SEMVER_PATTERN.match(version.strip())
    if not match:
        raise ValueError(f"Cannot parse version string: {version}")

    return VersionComponents(
        major=int(match.group(1)),
        minor=int(match.group(2) or 0),
        patch=int(match.group(3) or 0),
        prerelease=match.group(4),
        build=match.group(5),
    )


def _prerelease_key(prerelease: str | None) -> tuple[int, tuple[tuple[int, int, str], ...]]:
    """Get ordering key for a prerelease tag.

    A stable release sorts after any of its prereleases. Dot-separated
    identifiers compare numerically when numeric, lexically otherwise.
    """
    if prerelease is None:
        return (1, ())

    identifiers = []
    for part in prerelease.split("."):
        if part.isdigit():
            identifiers.append((0, int(part), ""))
        else:
            identifiers.append((1, 0, part.lower()))
    return (0, tuple(identifiers))


def compare_versions(version1: str, version2: str) -> int:
    """Compare two version strings.

    Build metadata is ignored.

    Returns:
        -1 if version1 < version2
         0 if version1 == version2
         1 if version1 > version2

    Raises:
        ValueError: If either version cannot be parsed.

    Examples:
        >>> compare_versions("v1.2.3", "1.3.0")
        -1
        >>> compare_versions("1.2.3-rc.1", "1.2.3")
        -1
    """
    v1 = parse_version(version1)
    v2 = parse_version(version2)

    key1 = (v1.major, v1.minor, v1.patch, _prerelease_key(v1.prerelease))
    key2 = (v2.major, v2.minor, v2.patch, _prerelease_key(v2.prerelease))

    if key1 < key2:
        return -1
    if key1 > key2:
        return 1
    return 0


def normalize_version(version: str) -> str:
    """Normalize a version string for consistent comparison.

    Removes surrounding whitespace and a leading 'v' prefix.

    Examples:
        >>> normalize_version(" v1.2.3 ")
        '1.2.3'
    """
    version = version.strip()
    if version.lower().startswith("v"):
        version = version[1:]
    return version


def versions_match(tag: str, semver: str) -> bool:
    """Check whether a release tag designates the given build version.

    Tags are compared after normalization so ``v1.2.3`` matches ``1.2.3``.
    """
    return normalize_version(tag) == normalize_version(semver)


@total_ordering
class Version:
    """A comparable version object.

    Unparsable versions sort before every parsable one so that stray tags
    never win a "newest" selection.

    Example:
        >>> Version("1.2.3") < Version("v1.10.0")
        True
    """

    raw: str
    components: VersionComponents | None

    def __init__(self, version: str) -> None:
        self.raw = version.strip()
        try:
            self.components = parse_version(self.raw)
        except ValueError:
            self.components = None

    def __str__(self) -> str:
        return self.raw

    def __repr__(self) -> str:
        return f"Version({self.raw!r})"

    def _key(self) -> tuple[int, tuple[object, ...]]:
        if self.components is None:
            return (0, (self.raw,))
        c = self.components
        return (1, (c.major, c.minor, c.patch, _prerelease_key(c.prerelease)))

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Version):
            return NotImplemented
        return self._key() == other._key()

    def __lt__(self, other: object) -> bool:
        if not isinstance(other, Version):
            return NotImplemented
        return self._key() < other._key()

    def __hash__(self) -> int:
        return hash(self._key())


def sort_newest_first(releases: Iterable[Release]) -> list[Release]:
    """Order releases by parsed tag version, newest first.

    The sort is stable, so releases with equal versions keep provider order.
    """
    return sorted(releases, key=lambda release: Version(release.tag), reverse=True)


def current_version_info(default_repository: str = "") -> VersionInfo:
    """Build the version information of the running process.

    Values come from the build stamp in ``selfupdate._build``; empty stamp
    values fall back to the development sentinels.

    Args:
        default_repository: Repository URI used when the stamp carries none.
    """
    repository = _build.REPOSITORY or default_repository
    return VersionInfo(
        semver=_build.SEMVER or DEFAULT_SEMVER,
        commit=_build.COMMIT or DEFAULT_COMMIT,
        repository=normalise_uri(repository) if repository else "",
    )
