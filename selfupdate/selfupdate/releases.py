"""Release catalog backed by a GitHub-compatible REST API.

The catalog protects the provider's request quota with two leases stored as
temporary locks in the configuration directory:

- ``network-problems``: set after a failed call, skips calls while active
- ``binary-sync``: set before each unauthenticated call, so anonymous
  clients ask at most once per cooldown period
"""

from __future__ import annotations

from datetime import timedelta
from typing import TYPE_CHECKING, Any

import aiohttp
import structlog
from pydantic import ValidationError

from .errors import ConfigError, NetworkError
from .models import Release, ReleaseOrder
from .uri import owner_and_repository
from .version import sort_newest_first, versions_match

if TYPE_CHECKING:
    from collections.abc import Sequence

    from .config import UpdaterConfig
    from .credentials import CredentialResolver
    from .locks import LockStore
    from .models import VersionInfo

logger = structlog.get_logger(__name__)

BINARY_SYNC_LOCK_DESCRIPTION = (
    "lock used to mitigate Git provider request limits. Use a PAT to enable more requests"
)
NETWORK_LOCK_DESCRIPTION = "lock used to mitigate network connectivity problems"
USER_AGENT = "picam-streamer-selfupdate/1.0"


class ReleaseCatalog:
    """Lists the releases of the binary's source repository."""

    def __init__(
        self,
        config: UpdaterConfig,
        credentials: CredentialResolver,
        locks: LockStore,
        version_info: VersionInfo,
    ) -> None:
        self.config = config
        self.credentials = credentials
        self.locks = locks
        self.version_info = version_info
        self.throttled = False
        self._log = logger.bind(component="releases")

    @property
    def repository(self) -> str:
        return self.version_info.repository or self.config.repository

    def _set_network_lease(self) -> None:
        self.locks.set_temporary(
            self.config.network_lock_path,
            NETWORK_LOCK_DESCRIPTION,
            timedelta(seconds=self.config.network_cooldown_seconds),
        )

    async def list_releases(self, uri: str | None = None) -> list[Release]:
        """List the releases of ``uri``, newest first.

        Returns an empty list without calling the API while a lease is active;
        :attr:`throttled` tells this case apart from a repository without
        releases.

        Raises:
            NetworkError: If the API is unreachable or answers non-200. The
                ``network-problems`` lease is set first.
            AuthResolutionError: If the credential store is malformed.
            ConfigError: If no owner/repository can be derived from ``uri``.
        """
        uri = uri or self.repository
        self.throttled = False

        if self.locks.is_active(self.config.network_lock_path):
            self._log.info("release_listing_skipped", reason="network_lease", repository=uri)
            self.throttled = True
            return []

        token, has_credentials = self.credentials.token_for(uri)

        if not has_credentials:
            if self.locks.is_active(self.config.binary_sync_lock_path):
                self._log.info("release_listing_skipped", reason="binary_sync_lease", repository=uri)
                self.throttled = True
                return []
            self.locks.set_temporary(
                self.config.binary_sync_lock_path,
                BINARY_SYNC_LOCK_DESCRIPTION,
                timedelta(seconds=self.config.binary_sync_cooldown_seconds),
            )

        try:
            owner, repo = owner_and_repository(uri)
        except ValueError as e:
            raise ConfigError(str(e)) from e

        url = f"{self.config.api_base_url.rstrip('/')}/repos/{owner}/{repo}/releases"
        headers = {
            "Accept": "application/vnd.github+json",
            "User-Agent": USER_AGENT,
        }
        if has_credentials:
            headers["Authorization"] = f"Bearer {token}"

        self._log.debug("listing_releases", url=url, authenticated=has_credentials)
        payload = await self._get_json(url, headers)

        try:
            releases = [Release.model_validate(item) for item in payload]
        except (TypeError, ValidationError) as e:
            self._set_network_lease()
            raise NetworkError(f"unexpected release list payload from {url}: {e}") from e

        if self.config.release_order is ReleaseOrder.SEMVER:
            releases = sort_newest_first(releases)

        self._log.info("releases_listed", repository=f"{owner}/{repo}", count=len(releases))
        return releases

    async def _get_json(self, url: str, headers: dict[str, str]) -> Any:
        timeout = aiohttp.ClientTimeout(total=self.config.api_timeout_seconds)
        try:
            async with (
                aiohttp.ClientSession(timeout=timeout) as session,
                session.get(url, headers=headers) as response,
            ):
                if response.status != 200:
                    self._set_network_lease()
                    raise NetworkError(
                        f"HTTP error {response.status} listing releases: {response.reason}",
                        status_code=response.status,
                        retryable=response.status >= 500 or response.status in (403, 429),
                    )
                return await response.json(content_type=None)
        except aiohttp.ClientError as e:
            self._set_network_lease()
            raise NetworkError(f"Network error listing releases: {e}") from e
        except TimeoutError:
            self._set_network_lease()
            raise NetworkError(f"Listing releases timed out after {timeout.total}s") from None
        except ValueError as e:
            # invalid JSON body
            self._set_network_lease()
            raise NetworkError(f"invalid release list payload from {url}: {e}") from e

    @staticmethod
    def latest(releases: Sequence[Release], allow_prerelease: bool = False) -> Release | None:
        """Return the first acceptable release.

        A stable release is always acceptable; a prerelease only with
        ``allow_prerelease``.
        """
        for release in releases:
            if not release.prerelease or allow_prerelease:
                return release
        return None

    async def in_sync(self) -> bool:
        """Check whether the running build is the latest stable release.

        Errs on the side of "in sync": unreachable catalog, no release or a
        development build all count as in sync.
        """
        try:
            releases = await self.list_releases()
        except NetworkError as e:
            self._log.warning("release_listing_failed", error=str(e))
            return True

        latest = self.latest(releases, allow_prerelease=False)
        if latest is None:
            self._log.warning("no_release_found", repository=self.repository)
            return True

        if self.version_info.is_development_build:
            return True

        return versions_match(latest.tag, self.version_info.semver)
