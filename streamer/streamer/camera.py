"""Camera capability.

A camera is anything that produces a lazy, infinite, non-restartable sequence
of JPEG-encoded frames. Hardware bindings plug in behind :class:`Camera`.
"""

from __future__ import annotations

import asyncio
import itertools
from typing import TYPE_CHECKING, Protocol, runtime_checkable

import structlog

if TYPE_CHECKING:
    from collections.abc import AsyncIterator
    from pathlib import Path

logger = structlog.get_logger(__name__)

JPEG_SUFFIXES = frozenset({".jpg", ".jpeg"})
DEFAULT_FRAME_INTERVAL = 0.5


class CameraError(Exception):
    """The camera cannot produce frames."""


@runtime_checkable
class Camera(Protocol):
    """Source of JPEG frames."""

    def frames(self) -> AsyncIterator[bytes]:
        """Return the frame sequence. May be called once per camera."""
        ...


class DirectoryCamera:
    """Replays the JPEG files of a directory in a loop.

    Files are read when first needed and then cycled in name order, one frame
    every ``interval`` seconds.
    """

    def __init__(self, frames_dir: Path, interval: float = DEFAULT_FRAME_INTERVAL) -> None:
        self.frames_dir = frames_dir
        self.interval = interval
        self._started = False
        self._log = logger.bind(component="camera", frames_dir=str(frames_dir))

    def _frame_paths(self) -> list[Path]:
        if not self.frames_dir.is_dir():
            raise CameraError(f"frame directory not found: {self.frames_dir}")
        paths = sorted(
            path
            for path in self.frames_dir.iterdir()
            if path.is_file() and path.suffix.lower() in JPEG_SUFFIXES
        )
        if not paths:
            raise CameraError(f"no JPEG frames found in {self.frames_dir}")
        return paths

    def frames(self) -> AsyncIterator[bytes]:
        """Return the infinite frame sequence.

        Raises:
            CameraError: If called a second time, or when the directory holds
                no JPEG file (raised on first iteration).
        """
        if self._started:
            raise CameraError("frame sequence already started")
        self._started = True
        return self._generate()

    async def _generate(self) -> AsyncIterator[bytes]:
        paths = self._frame_paths()
        self._log.info("camera_started", frame_count=len(paths))

        for count, path in enumerate(itertools.cycle(paths)):
            frame = await asyncio.to_thread(path.read_bytes)
            self._log.debug("frame_produced", frame=count, path=path.name)
            yield frame
            await asyncio.sleep(self.interval)
