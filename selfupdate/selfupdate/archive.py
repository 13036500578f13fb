"""Extraction of compressed release archives."""

from __future__ import annotations

import asyncio
import shutil
import tarfile
from pathlib import PurePosixPath
from typing import TYPE_CHECKING

import structlog

from .errors import ArchiveError, ArchiveSecurityError

if TYPE_CHECKING:
    from pathlib import Path

logger = structlog.get_logger(__name__)


def check_entry_name(name: str) -> None:
    """Reject entry names that could escape the destination directory.

    Raises:
        ArchiveSecurityError: If the name contains ``..`` or is absolute.
    """
    if ".." in name or PurePosixPath(name).is_absolute() or name.startswith("\\"):
        raise ArchiveSecurityError(name)


class ArchiveExtractor:
    """Extracts tar archives (gzip, bzip2, xz or uncompressed).

    Entries are processed in archive order and the first error aborts the
    extraction. Files already written stay in place.
    """

    def __init__(self) -> None:
        self._log = logger.bind(component="archive")

    def extract(self, archive_path: Path, dest_dir: Path) -> list[Path]:
        """Extract ``archive_path`` into ``dest_dir``.

        Returns:
            Paths of the regular files written.

        Raises:
            ArchiveSecurityError: If an entry name is unsafe. Nothing is
                written for that entry.
            ArchiveError: If the archive cannot be read.
            OSError: If a file cannot be written.
        """
        dest_dir.mkdir(parents=True, exist_ok=True)
        written: list[Path] = []

        try:
            with tarfile.open(archive_path, "r:*") as tar:
                for member in tar:
                    check_entry_name(member.name)
                    output_path = dest_dir / member.name

                    if member.isdir():
                        output_path.mkdir(mode=0o755, parents=True, exist_ok=True)
                        continue

                    if not member.isfile():
                        self._log.warning(
                            "archive_entry_skipped",
                            entry=member.name,
                            type=member.type.decode(errors="replace"),
                        )
                        continue

                    source = tar.extractfile(member)
                    if source is None:
                        continue
                    output_path.parent.mkdir(parents=True, exist_ok=True)
                    with source, output_path.open("wb") as target:
                        shutil.copyfileobj(source, target)

                    written.append(output_path)
                    self._log.debug("archive_entry_extracted", path=str(output_path))
        except tarfile.TarError as e:
            raise ArchiveError(f"failed to extract archive {archive_path}: {e}") from e

        return written

    async def extract_async(self, archive_path: Path, dest_dir: Path) -> list[Path]:
        """Run :meth:`extract` in a worker thread."""
        return await asyncio.to_thread(self.extract, archive_path, dest_dir)
