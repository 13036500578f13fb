"""Core data models for the self-update engine.

This module defines Pydantic models for releases, credentials and version
information, and the dataclasses describing one upgrade attempt.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum
from pathlib import Path  # noqa: TC003 - needed at runtime by Pydantic

from pydantic import BaseModel, ConfigDict, Field

DEFAULT_SEMVER = "n/a"
DEFAULT_COMMIT = "dirty"


class Asset(BaseModel):
    """A downloadable file attached to a release."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    name: str = Field(..., description="Asset file name")
    download_url: str = Field(
        ...,
        alias="browser_download_url",
        description="Direct download URL",
    )


class Release(BaseModel):
    """A tagged, published version with its assets.

    Built from the provider's releases-list payload; field aliases follow the
    GitHub REST API.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    tag: str = Field(..., alias="tag_name", description="Version label")
    prerelease: bool = Field(default=False, description="Whether the release is a prerelease")
    assets: tuple[Asset, ...] = Field(default=(), description="Assets in provider order")


class Credential(BaseModel):
    """One entry of the local credential store."""

    model_config = ConfigDict(frozen=True)

    hostname: str
    username: str | None = None
    secret: str | None = Field(default=None, repr=False)


class VersionInfo(BaseModel):
    """Version information of the running build.

    The sentinels ``"n/a"`` and ``"dirty"`` mark a development build.
    """

    model_config = ConfigDict(frozen=True)

    semver: str = Field(default=DEFAULT_SEMVER, description="Semantic version of the build")
    commit: str = Field(default=DEFAULT_COMMIT, description="Git commit hash of the build")
    repository: str = Field(default="", description="Normalized source repository URI")

    @property
    def is_development_build(self) -> bool:
        """Check whether this build was produced outside the release pipeline."""
        return self.semver == DEFAULT_SEMVER

    def information(self) -> str:
        """Render the multi-line version summary."""
        return f"version: {self.semver}, commit: {self.commit}\nsource: {self.repository}"

    def semver_with_separator(self, separator: str) -> str:
        """Render the semver with ``.`` replaced by ``separator``."""
        return self.semver.replace(".", separator)


class ReleaseOrder(str, Enum):
    """How the release list is ordered before selecting the latest one."""

    API = "api"  # trust the provider's newest-first order
    SEMVER = "semver"  # sort by parsed tag version


class SwapStrategy(str, Enum):
    """How the installed executable is replaced."""

    DELETE_THEN_WRITE = "delete-then-write"
    RENAME = "rename"


class LockKind(str, Enum):
    """Kind of a filesystem lock, derived from its permission mode."""

    PERMANENT = "permanent"
    TEMPORARY = "temporary"
    UNKNOWN = "unknown"


@dataclass(frozen=True)
class Lock:
    """Snapshot of a lock file.

    Attributes:
        path: Location of the lock file.
        kind: Lock kind derived from the file mode.
        description: Advisory, human-readable content of the file.
        expires_at: Expiry of temporary locks (the file's modification time).
    """

    path: Path
    kind: LockKind
    description: str = ""
    expires_at: datetime | None = None

    @property
    def active(self) -> bool:
        """Return whether the lock currently holds."""
        if self.kind is LockKind.TEMPORARY:
            return self.expires_at is not None and self.expires_at > datetime.now(tz=UTC)
        return self.kind is LockKind.PERMANENT


class UpgradeState(str, Enum):
    """States of one upgrade attempt."""

    IDLE = "idle"
    THROTTLED = "throttled"
    CATALOG_FETCHED = "catalog_fetched"
    UP_TO_DATE = "up_to_date"
    DRY_RUN = "dry_run"
    DOWNLOADING = "downloading"
    VERIFYING = "verifying"
    EXTRACTING = "extracting"
    SWAPPING = "swapping"
    DONE = "done"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        """Return whether no further transition is possible."""
        return self in _TERMINAL_STATES

    @property
    def is_success(self) -> bool:
        """Return whether the state is a successful terminal."""
        return self in _TERMINAL_STATES and self is not UpgradeState.FAILED


_TERMINAL_STATES = frozenset(
    {
        UpgradeState.THROTTLED,
        UpgradeState.UP_TO_DATE,
        UpgradeState.DRY_RUN,
        UpgradeState.DONE,
        UpgradeState.FAILED,
    }
)


@dataclass(frozen=True)
class UpgradePlan:
    """Everything needed to install one release.

    Attributes:
        current_version: Semver of the running build.
        release: Release selected for installation.
        binary_asset: Archive matching the current platform.
        checksum_asset: Published checksum for ``binary_asset``, if any.
        target_path: Path of the installed executable to replace.
        scratch_dir: Per-invocation working directory.
    """

    current_version: str
    release: Release
    binary_asset: Asset
    checksum_asset: Asset | None
    target_path: Path
    scratch_dir: Path

    @property
    def archive_path(self) -> Path:
        """Local path of the downloaded archive."""
        return self.scratch_dir / self.binary_asset.name

    @property
    def checksum_path(self) -> Path | None:
        """Local path of the downloaded checksum file."""
        if self.checksum_asset is None:
            return None
        return self.scratch_dir / self.checksum_asset.name

    @property
    def extract_dir(self) -> Path:
        """Directory the archive is extracted into."""
        return self.scratch_dir / "extracted"


@dataclass
class UpgradeResult:
    """Outcome of one upgrade attempt.

    Attributes:
        state: Final state.
        current_version: Semver of the running build.
        target_version: Tag of the selected release, if one was selected.
        target_path: Installed executable location.
        history: Every state entered, in order.
        error_message: Error description when ``state`` is FAILED.
        checksum_verified: Whether a published checksum was matched.
    """

    state: UpgradeState = UpgradeState.IDLE
    current_version: str = DEFAULT_SEMVER
    target_version: str | None = None
    target_path: Path | None = None
    history: list[UpgradeState] = field(default_factory=lambda: [UpgradeState.IDLE])
    error_message: str | None = None
    checksum_verified: bool = False
    started_at: datetime = field(default_factory=lambda: datetime.now(tz=UTC))
    completed_at: datetime | None = None

    @property
    def success(self) -> bool:
        """Return whether the attempt ended in a successful terminal state."""
        return self.state.is_success

    def transition(self, state: UpgradeState) -> None:
        """Enter ``state`` and record it in the history."""
        self.state = state
        self.history.append(state)
        if state.is_terminal:
            self.completed_at = datetime.now(tz=UTC)
