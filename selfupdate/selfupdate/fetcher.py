"""Streaming download of release assets.

Downloads are plain GETs without credentials: release asset URLs redirect to
storage hosts that must never see the repository secret.
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import TYPE_CHECKING

import aiohttp
import structlog

from .errors import NetworkError

if TYPE_CHECKING:
    from collections.abc import AsyncIterator
    from pathlib import Path

logger = structlog.get_logger(__name__)

DEFAULT_CHUNK_SIZE = 65536  # 64 KB chunks
USER_AGENT = "picam-streamer-selfupdate/1.0"


class ArtifactFetcher:
    """Downloads asset URLs with a bounded timeout.

    There is no retry: a failed download ends the upgrade attempt.
    """

    def __init__(self, timeout_seconds: float = 300.0) -> None:
        self._timeout = aiohttp.ClientTimeout(total=timeout_seconds)
        self._log = logger.bind(component="fetcher")

    @asynccontextmanager
    async def open(self, url: str) -> AsyncIterator[AsyncIterator[bytes]]:
        """Open ``url`` and yield an iterator over its body chunks.

        Raises:
            NetworkError: On a non-200 answer (carrying the status code),
                a transport failure or a timeout.
        """
        headers = {"User-Agent": USER_AGENT, "Accept": "application/octet-stream"}

        try:
            async with (
                aiohttp.ClientSession(timeout=self._timeout) as session,
                session.get(url, headers=headers) as response,
            ):
                if response.status != 200:
                    raise NetworkError(
                        f"HTTP error {response.status} while downloading {url}: {response.reason}",
                        status_code=response.status,
                        retryable=response.status >= 500,
                    )
                yield response.content.iter_chunked(DEFAULT_CHUNK_SIZE)
        except aiohttp.ClientError as e:
            raise NetworkError(f"Network error while downloading {url}: {e}") from e
        except TimeoutError:
            raise NetworkError(f"Download of {url} timed out") from None

    async def save(self, url: str, path: Path) -> int:
        """Download ``url`` into ``path``.

        Returns:
            Number of bytes written.
        """
        path.parent.mkdir(parents=True, exist_ok=True)
        bytes_downloaded = 0

        self._log.info("download_started", url=url, path=str(path))
        async with self.open(url) as chunks:
            with path.open("wb") as f:
                async for chunk in chunks:
                    f.write(chunk)
                    bytes_downloaded += len(chunk)

        self._log.info("download_completed", url=url, bytes=bytes_downloaded)
        return bytes_downloaded
