"""Integrity verification of downloaded archives."""

from __future__ import annotations

import asyncio
import hashlib
from typing import TYPE_CHECKING

import structlog

from .errors import ChecksumMismatchError

if TYPE_CHECKING:
    from pathlib import Path

logger = structlog.get_logger(__name__)

CHUNK_SIZE = 4096


class IntegrityVerifier:
    """Computes and compares file checksums."""

    def __init__(self) -> None:
        self._log = logger.bind(component="integrity")

    def checksum(self, path: Path, algorithm: str = "md5") -> str:
        """Compute the hex digest of ``path``.

        The file is read in fixed-size chunks until an empty read; a short
        read is not the end of the file.

        Raises:
            ValueError: If ``algorithm`` is not supported by hashlib.
            OSError: If the file cannot be read.
        """
        digest = hashlib.new(algorithm)
        with path.open("rb") as f:
            while chunk := f.read(CHUNK_SIZE):
                digest.update(chunk)
        return digest.hexdigest()

    async def checksum_async(self, path: Path, algorithm: str = "md5") -> str:
        return await asyncio.to_thread(self.checksum, path, algorithm)

    @staticmethod
    def published_value(published: str) -> str:
        """Extract the digest from a checksum file's content.

        Accepts a bare hex string or a ``"<hex>  <filename>"`` line.
        """
        fields = published.strip().split()
        return fields[0].lower() if fields else ""

    def verify(self, computed: str, published: str) -> bool:
        """Compare a computed digest with a published checksum."""
        return computed.strip().lower() == self.published_value(published)

    def read_published(self, path: Path) -> str:
        """Read the digest out of a downloaded checksum file.

        Undecodable bytes are replaced, so a garbled file yields a value that
        never matches a hex digest.
        """
        return self.published_value(path.read_bytes().decode("utf-8", errors="replace"))

    async def verify_file(self, path: Path, checksum_path: Path, algorithm: str = "md5") -> str:
        """Verify ``path`` against the checksum file at ``checksum_path``.

        Returns:
            The matched digest.

        Raises:
            ChecksumMismatchError: If the digests differ.
        """
        expected = self.read_published(checksum_path)
        computed = await self.checksum_async(path, algorithm)

        if not self.verify(computed, expected):
            self._log.error(
                "checksum_mismatch",
                path=str(path),
                algorithm=algorithm,
                computed=computed,
                expected=expected,
            )
            raise ChecksumMismatchError(expected=expected, computed=computed, path=path)

        self._log.debug("checksum_verified", path=str(path), algorithm=algorithm)
        return computed
