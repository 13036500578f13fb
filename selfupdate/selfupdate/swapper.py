"""Replacement of the installed executable."""

from __future__ import annotations

import os
import tempfile
from typing import TYPE_CHECKING

import structlog

from .errors import SwapError
from .models import SwapStrategy

if TYPE_CHECKING:
    from pathlib import Path

logger = structlog.get_logger(__name__)

EXECUTABLE_MODE = 0o755


class BinarySwapper:
    """Moves a freshly extracted binary over the installed one.

    Two strategies are available:

    - ``delete-then-write``: read the source, delete the target, write the
      target, set the execute permission, delete the source. Between the
      delete and the write no binary is installed.
    - ``rename``: write a sibling temporary file and atomically replace the
      target with it.
    """

    def __init__(self, strategy: SwapStrategy = SwapStrategy.DELETE_THEN_WRITE) -> None:
        self.strategy = strategy
        self._log = logger.bind(component="swapper", strategy=strategy.value)

    def replace(self, source: Path, target: Path) -> None:
        """Install ``source`` at ``target`` and remove ``source``.

        Raises:
            SwapError: If any filesystem step fails. The error names the step.
        """
        self._log.info("binary_swap_started", source=str(source), target=str(target))

        try:
            content = source.read_bytes()
        except OSError as e:
            raise SwapError("read source", source, target, e) from e

        if self.strategy is SwapStrategy.RENAME:
            self._replace_by_rename(content, source, target)
        else:
            self._replace_by_rewrite(content, source, target)

        try:
            source.unlink()
        except OSError as e:
            raise SwapError("delete source", source, target, e) from e

        self._log.info("binary_swap_completed", target=str(target))

    def _replace_by_rewrite(self, content: bytes, source: Path, target: Path) -> None:
        try:
            target.unlink()
        except OSError as e:
            raise SwapError("delete target", source, target, e) from e

        try:
            fd = os.open(target, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, EXECUTABLE_MODE)
            with os.fdopen(fd, "wb") as f:
                f.write(content)
        except OSError as e:
            raise SwapError("write target", source, target, e) from e

        try:
            os.chmod(target, EXECUTABLE_MODE)
        except OSError as e:
            raise SwapError("chmod target", source, target, e) from e

    def _replace_by_rename(self, content: bytes, source: Path, target: Path) -> None:
        try:
            fd, staged = tempfile.mkstemp(dir=target.parent, prefix=f".{target.name}.")
        except OSError as e:
            raise SwapError("create staging file", source, target, e) from e

        try:
            with os.fdopen(fd, "wb") as f:
                f.write(content)
            os.chmod(staged, EXECUTABLE_MODE)
        except OSError as e:
            os.unlink(staged)
            raise SwapError("write staging file", source, target, e) from e

        try:
            os.replace(staged, target)
        except OSError as e:
            os.unlink(staged)
            raise SwapError("rename staging file", source, target, e) from e
