"""Tests for configuration management."""

from __future__ import annotations

from pathlib import Path
from unittest.mock import patch

import pytest
import yaml

from selfupdate.config import (
    DEFAULT_REPOSITORY,
    ConfigManager,
    UpdaterConfig,
    YamlConfigLoader,
    resolve_config_dir,
)
from selfupdate.errors import ConfigError
from selfupdate.models import ReleaseOrder, SwapStrategy


class TestResolveConfigDir:
    """Tests for resolve_config_dir function."""

    def test_creates_directory(self, tmp_path: Path) -> None:
        config_dir = resolve_config_dir("picam-streamer", home=tmp_path)
        assert config_dir == tmp_path / ".picam-streamer"
        assert config_dir.is_dir()

    def test_existing_directory(self, tmp_path: Path) -> None:
        (tmp_path / ".tool").mkdir()
        assert resolve_config_dir("tool", home=tmp_path) == tmp_path / ".tool"

    def test_file_in_the_way(self, tmp_path: Path) -> None:
        (tmp_path / ".tool").write_text("not a directory")
        with pytest.raises(ConfigError, match="not a directory"):
            resolve_config_dir("tool", home=tmp_path)

    def test_unknown_home(self) -> None:
        with (
            patch("selfupdate.config.Path.home", side_effect=RuntimeError("no home")),
            pytest.raises(ConfigError, match="home directory"),
        ):
            resolve_config_dir("tool")

    def test_defaults_to_executable_name(self, tmp_path: Path) -> None:
        with patch("selfupdate.config.current_executable", return_value=Path("/usr/bin/cam")):
            assert resolve_config_dir(home=tmp_path) == tmp_path / ".cam"


class TestUpdaterConfig:
    """Tests for UpdaterConfig model."""

    def test_defaults(self, tmp_path: Path) -> None:
        config = UpdaterConfig(config_dir=tmp_path)

        assert config.repository == DEFAULT_REPOSITORY
        assert config.api_base_url == "https://api.github.com"
        assert config.api_timeout_seconds == 5
        assert config.binary_sync_cooldown_seconds == 30 * 60
        assert config.network_cooldown_seconds == 2 * 60
        assert config.checksum_algorithm == "md5"
        assert config.release_order is ReleaseOrder.API
        assert config.swap_strategy is SwapStrategy.DELETE_THEN_WRITE

    def test_lock_paths(self, tmp_path: Path) -> None:
        config = UpdaterConfig(config_dir=tmp_path)
        assert config.network_lock_path == tmp_path / "network-problems"
        assert config.binary_sync_lock_path == tmp_path / "binary-sync"

    def test_binary_name_defaults_to_repository_name(self, tmp_path: Path) -> None:
        config = UpdaterConfig(config_dir=tmp_path, repository="git@github.com:test/some-repo.git")
        assert config.resolved_binary_name == "some-repo"
        assert config.model_copy(update={"binary_name": "cam"}).resolved_binary_name == "cam"


class TestYamlConfigLoader:
    """Tests for YamlConfigLoader."""

    def test_missing_file(self, tmp_path: Path) -> None:
        with pytest.raises(FileNotFoundError):
            YamlConfigLoader().load(tmp_path / "config.yaml")

    def test_empty_file(self, tmp_path: Path) -> None:
        path = tmp_path / "config.yaml"
        path.write_text("")
        assert YamlConfigLoader().load(path) == {}


class TestConfigManager:
    """Tests for ConfigManager."""

    def test_load_without_file(self, tmp_path: Path) -> None:
        config = ConfigManager(tmp_path).load()
        assert config.config_dir == tmp_path
        assert config.repository == DEFAULT_REPOSITORY

    def test_yaml_overrides(self, tmp_path: Path) -> None:
        (tmp_path / "config.yaml").write_text(
            yaml.dump(
                {
                    "repository": "git@github.com:owner/tool.git",
                    "release_order": "semver",
                    "swap_strategy": "rename",
                    "api_timeout_seconds": 10,
                    "config_dir": "/ignored",
                }
            )
        )

        config = ConfigManager(tmp_path).load()

        assert config.config_dir == tmp_path
        assert config.repository == "git@github.com:owner/tool.git"
        assert config.release_order is ReleaseOrder.SEMVER
        assert config.swap_strategy is SwapStrategy.RENAME
        assert config.api_timeout_seconds == 10

    def test_explicit_overrides_win(self, tmp_path: Path) -> None:
        (tmp_path / "config.yaml").write_text("repository: https://github.com/a/b\n")
        config = ConfigManager(tmp_path).load(repository="https://github.com/c/d", binary_name=None)
        assert config.repository == "https://github.com/c/d"
        assert config.binary_name is None

    def test_invalid_yaml(self, tmp_path: Path) -> None:
        (tmp_path / "config.yaml").write_text("repository: [unclosed\n")
        with pytest.raises(ConfigError, match="invalid configuration file"):
            ConfigManager(tmp_path).load()

    def test_invalid_value(self, tmp_path: Path) -> None:
        (tmp_path / "config.yaml").write_text("swap_strategy: teleport\n")
        with pytest.raises(ConfigError, match="invalid configuration"):
            ConfigManager(tmp_path).load()

    def test_unknown_checksum_algorithm(self, tmp_path: Path) -> None:
        """Test a checksum algorithm unknown to hashlib is rejected at load time."""
        (tmp_path / "config.yaml").write_text("checksum_algorithm: crc-42\n")
        with pytest.raises(ConfigError, match="unsupported checksum algorithm"):
            ConfigManager(tmp_path).load()

    def test_checksum_algorithm_is_normalized(self, tmp_path: Path) -> None:
        config = ConfigManager(tmp_path).load(checksum_algorithm=" SHA256 ")
        assert config.checksum_algorithm == "sha256"

    def test_non_utf8_file(self, tmp_path: Path) -> None:
        (tmp_path / "config.yaml").write_bytes(b"repository: \xff\xfe\n")
        with pytest.raises(ConfigError, match="invalid configuration file"):
            ConfigManager(tmp_path).load()
