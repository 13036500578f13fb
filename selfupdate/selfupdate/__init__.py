"""Self-update engine for single-binary command-line tools.

The engine replaces the running executable with the newest release published
on a Git hosting provider, while respecting the provider's request limits.

Module Overview:
    archive: Safe extraction of compressed release archives
    assets: Platform detection and release asset matching
    config: UpdaterConfig model, configuration directory and YAML overrides
    credentials: Credential store lookup and authentication methods
    errors: Exception hierarchy rooted at SelfUpdateError
    fetcher: Streaming asset downloads via aiohttp
    integrity: Checksum computation and verification
    locks: Mode-encoded lock files used as cross-process leases
    models: Pydantic and dataclass models (releases, locks, upgrade state)
    orchestrator: The upgrade state machine
    releases: Release catalog with lease-based throttling
    swapper: Replacement of the installed executable
    uri: Repository URI normalization and parsing
    version: Version parsing, comparison and build stamp
"""

from importlib.metadata import PackageNotFoundError
from importlib.metadata import version as get_package_version

from selfupdate.archive import ArchiveExtractor
from selfupdate.assets import Platform, match_binary_asset, match_checksum_asset
from selfupdate.config import ConfigManager, UpdaterConfig, YamlConfigLoader, resolve_config_dir
from selfupdate.credentials import AgentAuth, CredentialResolver, PasswordAuth
from selfupdate.errors import (
    ArchiveError,
    ArchiveSecurityError,
    AuthResolutionError,
    ChecksumMismatchError,
    ConfigError,
    NetworkError,
    NoMatchingAssetError,
    SelfUpdateError,
    SwapError,
)
from selfupdate.fetcher import ArtifactFetcher
from selfupdate.integrity import IntegrityVerifier
from selfupdate.locks import LockStore
from selfupdate.models import (
    Asset,
    Credential,
    Lock,
    LockKind,
    Release,
    ReleaseOrder,
    SwapStrategy,
    UpgradePlan,
    UpgradeResult,
    UpgradeState,
    VersionInfo,
)
from selfupdate.orchestrator import UpdateOrchestrator
from selfupdate.releases import ReleaseCatalog
from selfupdate.swapper import BinarySwapper
from selfupdate.uri import normalise_uri, owner_and_repository, repository_name
from selfupdate.version import Version, compare_versions, current_version_info, parse_version

try:
    __version__ = get_package_version("picam-streamer")
except PackageNotFoundError:
    __version__ = "0.0.0"

__all__ = [
    "AgentAuth",
    "ArchiveError",
    "ArchiveExtractor",
    "ArchiveSecurityError",
    "ArtifactFetcher",
    "Asset",
    "AuthResolutionError",
    "BinarySwapper",
    "ChecksumMismatchError",
    "ConfigError",
    "ConfigManager",
    "Credential",
    "CredentialResolver",
    "IntegrityVerifier",
    "Lock",
    "LockKind",
    "LockStore",
    "NetworkError",
    "NoMatchingAssetError",
    "PasswordAuth",
    "Platform",
    "Release",
    "ReleaseCatalog",
    "ReleaseOrder",
    "SelfUpdateError",
    "SwapError",
    "SwapStrategy",
    "UpdateOrchestrator",
    "UpdaterConfig",
    "UpgradePlan",
    "UpgradeResult",
    "UpgradeState",
    "Version",
    "VersionInfo",
    "YamlConfigLoader",
    "__version__",
    "compare_versions",
    "current_version_info",
    "match_binary_asset",
    "match_checksum_asset",
    "normalise_uri",
    "owner_and_repository",
    "parse_version",
    "repository_name",
    "resolve_config_dir",
]
