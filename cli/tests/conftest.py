"""Shared test fixtures for CLI tests."""

from __future__ import annotations

from typing import TYPE_CHECKING

import pytest
import structlog

if TYPE_CHECKING:
    from collections.abc import Generator
    from pathlib import Path


@pytest.fixture(autouse=True)
def isolated_home(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Generator[Path, None, None]:
    """Isolate tests from the real user home directory.

    Sets HOME to a temporary directory so that tests don't create the
    configuration directory, leases or credential lookups under the real
    ``~/.<executable-name>/``.

    This fixture is applied automatically to all tests in this module.
    """
    home = tmp_path / "home"
    home.mkdir(parents=True, exist_ok=True)

    monkeypatch.setenv("HOME", str(home))
    monkeypatch.delenv("SSH_AUTH_SOCK", raising=False)

    yield home


@pytest.fixture(autouse=True)
def reset_structlog() -> Generator[None, None, None]:
    """Undo global structlog configuration made by CLI invocations.

    ``configure_logging`` binds structlog to the stderr stream captured for
    the current test; once that stream is closed, later tests in other
    packages would fail when logging.
    """
    yield
    structlog.reset_defaults()
