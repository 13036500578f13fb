"""Configuration management for the self-update engine.

The configuration is an explicit value built once at startup and handed to
every component. Defaults can be overridden from a YAML file stored in the
per-binary configuration directory (``~/.<executable-name>/config.yaml``).
"""

from __future__ import annotations

import hashlib
import sys
from pathlib import Path
from typing import Any

import structlog
import yaml
from pydantic import BaseModel, Field, ValidationError, field_validator

from .errors import ConfigError
from .models import ReleaseOrder, SwapStrategy
from .uri import repository_name

logger = structlog.get_logger(__name__)

DEFAULT_REPOSITORY = "git@github.com:ylallemant/go-picam-streamer.git"
DEFAULT_API_BASE_URL = "https://api.github.com"
CONFIG_FILE_NAME = "config.yaml"
NETWORK_LOCK_NAME = "network-problems"
BINARY_SYNC_LOCK_NAME = "binary-sync"


def current_executable() -> Path:
    """Return the path of the running executable.

    Frozen builds (PyInstaller and alike) run from ``sys.executable``; a
    regular install runs from the console script in ``sys.argv[0]``.
    """
    if getattr(sys, "frozen", False):
        return Path(sys.executable).resolve()
    return Path(sys.argv[0]).resolve()


def resolve_config_dir(executable_name: str | None = None, home: Path | None = None) -> Path:
    """Resolve and create the per-binary configuration directory.

    Args:
        executable_name: Name of the binary. Defaults to the running executable.
        home: Home directory. Defaults to the current user's home.

    Returns:
        Path to ``<home>/.<executable-name>``.

    Raises:
        ConfigError: If the home directory is unknown or the directory
            cannot be created.
    """
    if home is None:
        try:
            home = Path.home()
        except (RuntimeError, KeyError) as e:
            raise ConfigError("failed to get home directory") from e

    name = executable_name or current_executable().name
    config_dir = home / f".{name}"

    if config_dir.exists() and not config_dir.is_dir():
        raise ConfigError(f"path exists but is not a directory: {config_dir}")

    try:
        config_dir.mkdir(mode=0o755, parents=True, exist_ok=True)
    except OSError as e:
        raise ConfigError(f"failed to create configuration directory {config_dir}: {e}") from e

    return config_dir


class UpdaterConfig(BaseModel):
    """Configuration of the self-update engine."""

    config_dir: Path = Field(..., description="Per-binary configuration directory")
    repository: str = Field(
        default=DEFAULT_REPOSITORY, description="Source repository of the binary"
    )
    binary_name: str | None = Field(
        default=None,
        description="Name of the executable inside release archives. None = repository name.",
    )
    credentials_path: Path = Field(
        default_factory=lambda: Path.home() / ".git-credentials",
        description="Credential store, one URI with userinfo per line",
    )
    api_base_url: str = Field(
        default=DEFAULT_API_BASE_URL, description="Base URL of the releases REST API"
    )
    api_timeout_seconds: float = Field(default=5.0, description="Timeout of release API calls")
    download_timeout_seconds: float = Field(
        default=300.0, description="Timeout of a single asset download"
    )
    binary_sync_cooldown_seconds: int = Field(
        default=1800,
        description="Lease protecting the anonymous API quota after an unauthenticated call",
    )
    network_cooldown_seconds: int = Field(
        default=120, description="Back-off lease after a transport failure"
    )
    checksum_algorithm: str = Field(
        default="md5", description="Algorithm used when the checksum asset does not tell"
    )
    release_order: ReleaseOrder = Field(
        default=ReleaseOrder.API, description="Ordering applied before picking the latest release"
    )
    swap_strategy: SwapStrategy = Field(
        default=SwapStrategy.DELETE_THEN_WRITE, description="Binary replacement strategy"
    )

    @field_validator("checksum_algorithm")
    @classmethod
    def validate_checksum_algorithm(cls, v: str) -> str:
        """Ensure the algorithm is known to hashlib."""
        algorithm = v.strip().lower()
        if algorithm not in hashlib.algorithms_available:
            raise ValueError(f"unsupported checksum algorithm: {v!r}")
        return algorithm

    @property
    def network_lock_path(self) -> Path:
        """Lease set after the release API could not be reached."""
        return self.config_dir / NETWORK_LOCK_NAME

    @property
    def binary_sync_lock_path(self) -> Path:
        """Lease set before each unauthenticated release API call."""
        return self.config_dir / BINARY_SYNC_LOCK_NAME

    @property
    def resolved_binary_name(self) -> str:
        """Executable name inside release archives."""
        return self.binary_name or repository_name(self.repository)


class YamlConfigLoader:
    """YAML-based configuration loader."""

    def load(self, path: Path) -> dict[str, Any]:
        """Load configuration from a YAML file.

        Raises:
            FileNotFoundError: If the file doesn't exist.
            yaml.YAMLError: If the file is not valid YAML or not UTF-8.
        """
        if not path.exists():
            logger.debug("config_file_not_found", path=str(path))
            raise FileNotFoundError(f"Configuration file not found: {path}")

        try:
            text = path.read_bytes().decode("utf-8")
        except UnicodeDecodeError as e:
            raise yaml.YAMLError(f"{path} is not UTF-8 encoded: {e}") from e

        data = yaml.safe_load(text)
        if data is None:
            return {}
        if not isinstance(data, dict):
            raise yaml.YAMLError(f"top-level mapping expected in {path}")
        return data


class ConfigManager:
    """Builds the :class:`UpdaterConfig` for one process.

    Values come from the model defaults, then the YAML file in the
    configuration directory, then explicit overrides.
    """

    def __init__(self, config_dir: Path) -> None:
        self.config_dir = config_dir
        self.config_path = config_dir / CONFIG_FILE_NAME
        self._loader = YamlConfigLoader()

    def load(self, **overrides: Any) -> UpdaterConfig:
        """Load the configuration.

        Raises:
            ConfigError: If the YAML file is malformed or holds invalid values.
        """
        try:
            data = self._loader.load(self.config_path)
        except FileNotFoundError:
            data = {}
        except yaml.YAMLError as e:
            raise ConfigError(f"invalid configuration file {self.config_path}: {e}") from e

        data.pop("config_dir", None)
        data.update({key: value for key, value in overrides.items() if value is not None})

        try:
            config = UpdaterConfig(config_dir=self.config_dir, **data)
        except ValidationError as e:
            raise ConfigError(f"invalid configuration in {self.config_path}: {e}") from e

        logger.debug("config_loaded", path=str(self.config_path), repository=config.repository)
        return config
