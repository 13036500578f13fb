"""Orchestrator for one self-upgrade attempt.

This module drives the upgrade state machine::

    idle -> throttled
         -> catalog_fetched -> up_to_date
                            -> dry_run
                            -> downloading -> verifying -> extracting
                               -> swapping -> done

Any state may move to ``failed``. ``throttled``, ``up_to_date`` and
``dry_run`` are successful terminal states.
"""

from __future__ import annotations

import shutil
import tempfile
from pathlib import Path
from typing import TYPE_CHECKING

import structlog

from .archive import ArchiveExtractor
from .assets import Platform, checksum_algorithm_for, match_binary_asset, match_checksum_asset
from .config import current_executable
from .credentials import CredentialResolver
from .errors import ArchiveError, NetworkError, NoMatchingAssetError, SelfUpdateError
from .fetcher import ArtifactFetcher
from .integrity import IntegrityVerifier
from .locks import LockStore
from .models import UpgradePlan, UpgradeResult, UpgradeState
from .releases import ReleaseCatalog
from .swapper import BinarySwapper
from .version import versions_match

if TYPE_CHECKING:
    from .config import UpdaterConfig
    from .models import Release, VersionInfo

logger = structlog.get_logger(__name__)


class UpdateOrchestrator:
    """Runs one upgrade attempt from catalog lookup to binary swap.

    Collaborators default to the standard implementations built from the
    configuration; tests inject their own.
    """

    def __init__(
        self,
        config: UpdaterConfig,
        version_info: VersionInfo,
        *,
        credentials: CredentialResolver | None = None,
        locks: LockStore | None = None,
        catalog: ReleaseCatalog | None = None,
        fetcher: ArtifactFetcher | None = None,
        verifier: IntegrityVerifier | None = None,
        extractor: ArchiveExtractor | None = None,
        swapper: BinarySwapper | None = None,
        platform: Platform | None = None,
    ) -> None:
        """Initialize the orchestrator.

        Args:
            config: Engine configuration.
            version_info: Version of the running build.
            credentials: Credential resolver. Defaults to the configured store.
            locks: Lock store used for the catalog leases.
            catalog: Release catalog.
            fetcher: Asset downloader. Downloads carry no credentials.
            verifier: Checksum verifier.
            extractor: Archive extractor.
            swapper: Binary swapper. Defaults to the configured strategy.
            platform: Target platform. Defaults to the running platform.
        """
        self.config = config
        self.version_info = version_info
        self.credentials = credentials or CredentialResolver(config.credentials_path)
        self.locks = locks or LockStore()
        self.catalog = catalog or ReleaseCatalog(
            config, self.credentials, self.locks, version_info
        )
        self.verifier = verifier or IntegrityVerifier()
        self.extractor = extractor or ArchiveExtractor()
        self.swapper = swapper or BinarySwapper(config.swap_strategy)
        self.platform = platform or Platform.current()
        self.fetcher = fetcher or ArtifactFetcher(config.download_timeout_seconds)
        self.result = UpgradeResult(current_version=version_info.semver)
        self._log = logger.bind(component="orchestrator")

    @property
    def state(self) -> UpgradeState:
        return self.result.state

    @staticmethod
    def binary_location() -> Path:
        """Return the path of the installed executable."""
        return current_executable()

    def _enter(self, state: UpgradeState) -> None:
        self.result.transition(state)
        self._log.debug("upgrade_state_changed", state=state.value)

    async def upgrade(
        self,
        dry_run: bool = False,
        force: bool = False,
        allow_prerelease: bool = False,
        target_path: Path | None = None,
    ) -> UpgradeResult:
        """Run one upgrade attempt.

        Args:
            dry_run: Stop after selecting the release.
            force: Install even when the running build is current.
            allow_prerelease: Accept prereleases as the latest release.
            target_path: Executable to replace. Defaults to the running one.

        Returns:
            The attempt's result. ``result.state`` is terminal.

        Raises:
            SelfUpdateError: When the attempt ends in ``failed``. The result
                stays available in :attr:`result`.
            OSError: When a scratch file operation fails.
        """
        target = target_path or self.binary_location()
        self.result = UpgradeResult(
            current_version=self.version_info.semver,
            target_path=target,
        )
        self._log.info(
            "upgrade_started",
            current_version=self.version_info.semver,
            target=str(target),
            platform=f"{self.platform.os}/{self.platform.arch}",
            dry_run=dry_run,
            force=force,
        )

        try:
            wanted = await self._select_release(force, allow_prerelease)
            if wanted is None:
                return self.result

            binary_asset = match_binary_asset(wanted, self.platform)
            if binary_asset is None:
                raise NoMatchingAssetError(
                    f"no matching binary found for {self.platform.os}/{self.platform.arch} "
                    f"in release {wanted.tag}"
                )

            if dry_run:
                self._log.info(
                    "upgrade_dry_run",
                    current_version=self.version_info.semver,
                    target_version=wanted.tag,
                    target=str(target),
                )
                self._enter(UpgradeState.DRY_RUN)
                return self.result

            scratch_dir = Path(tempfile.mkdtemp(prefix=f"{self.config.resolved_binary_name}-"))
            try:
                plan = UpgradePlan(
                    current_version=self.version_info.semver,
                    release=wanted,
                    binary_asset=binary_asset,
                    checksum_asset=match_checksum_asset(wanted, self.platform),
                    target_path=target,
                    scratch_dir=scratch_dir,
                )
                await self._install(plan)
            finally:
                shutil.rmtree(scratch_dir, ignore_errors=True)
                self._log.debug("scratch_dir_removed", path=str(scratch_dir))

        except (SelfUpdateError, OSError) as e:
            self.result.error_message = str(e)
            self._enter(UpgradeState.FAILED)
            self._log.error("upgrade_failed", error=str(e), error_type=type(e).__name__)
            raise

        return self.result

    async def _select_release(self, force: bool, allow_prerelease: bool) -> Release | None:
        """Fetch the catalog and decide whether an installation is needed.

        Returns:
            The release to install, or None when a terminal state was reached.
        """
        try:
            releases = await self.catalog.list_releases()
        except NetworkError as e:
            self._log.warning("release_catalog_unreachable", error=str(e))
            self.result.error_message = str(e)
            self._enter(UpgradeState.THROTTLED)
            return None

        if self.catalog.throttled:
            self._enter(UpgradeState.THROTTLED)
            return None

        self._enter(UpgradeState.CATALOG_FETCHED)

        wanted = self.catalog.latest(releases, allow_prerelease)
        if wanted is None:
            self._log.warning("no_release_found", repository=self.catalog.repository)
            self._enter(UpgradeState.UP_TO_DATE)
            return None

        self.result.target_version = wanted.tag

        if not force and self.version_info.is_development_build:
            self._log.info("development_build_skipped", latest=wanted.tag)
            self._enter(UpgradeState.UP_TO_DATE)
            return None

        if not force and versions_match(wanted.tag, self.version_info.semver):
            self._log.info("binary_up_to_date", version=self.version_info.semver)
            self._enter(UpgradeState.UP_TO_DATE)
            return None

        return wanted

    async def _install(self, plan: UpgradePlan) -> None:
        self._enter(UpgradeState.DOWNLOADING)
        await self.fetcher.save(plan.binary_asset.download_url, plan.archive_path)
        if plan.checksum_asset is not None and plan.checksum_path is not None:
            await self.fetcher.save(plan.checksum_asset.download_url, plan.checksum_path)

        self._enter(UpgradeState.VERIFYING)
        if plan.checksum_asset is None or plan.checksum_path is None:
            self._log.warning(
                "checksum_not_published",
                release=plan.release.tag,
                asset=plan.binary_asset.name,
            )
        else:
            algorithm = (
                checksum_algorithm_for(plan.checksum_asset.name) or self.config.checksum_algorithm
            )
            await self.verifier.verify_file(plan.archive_path, plan.checksum_path, algorithm)
            self.result.checksum_verified = True

        self._enter(UpgradeState.EXTRACTING)
        await self.extractor.extract_async(plan.archive_path, plan.extract_dir)

        binary_path = plan.extract_dir / self.config.resolved_binary_name
        if not binary_path.is_file():
            raise ArchiveError(
                f"binary {self.config.resolved_binary_name!r} not found in {plan.binary_asset.name}"
            )

        self._enter(UpgradeState.SWAPPING)
        self.swapper.replace(binary_path, plan.target_path)

        self._enter(UpgradeState.DONE)
        self._log.info(
            "upgrade_completed",
            previous_version=plan.current_version,
            new_version=plan.release.tag,
            target=str(plan.target_path),
        )
