"""Shared test fixtures for self-update engine tests."""

from __future__ import annotations

import io
import tarfile
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

import pytest
from aiohttp import web
from aiohttp.test_utils import TestServer

from selfupdate.assets import Platform
from selfupdate.config import UpdaterConfig
from selfupdate.models import VersionInfo

if TYPE_CHECKING:
    from collections.abc import AsyncGenerator
    from pathlib import Path

REPOSITORY = "git@github.com:test/some-repo.git"
PLATFORM = Platform(os="linux", arch="arm64")


def make_tar_gz(entries: dict[str, bytes | None]) -> bytes:
    """Build a gzip-compressed tar archive in memory.

    Args:
        entries: Entry name -> file content, or None for a directory.
    """
    buffer = io.BytesIO()
    with tarfile.open(fileobj=buffer, mode="w:gz") as tar:
        for name, content in entries.items():
            info = tarfile.TarInfo(name)
            if content is None:
                info.type = tarfile.DIRTYPE
                info.mode = 0o755
                tar.addfile(info)
            else:
                info.size = len(content)
                info.mode = 0o755
                tar.addfile(info, io.BytesIO(content))
    return buffer.getvalue()


@pytest.fixture(autouse=True)
def no_ssh_agent(monkeypatch: pytest.MonkeyPatch) -> None:
    """Keep tests away from a developer's SSH agent."""
    monkeypatch.delenv("SSH_AUTH_SOCK", raising=False)


@pytest.fixture
def config_dir(tmp_path: Path) -> Path:
    path = tmp_path / ".picam-streamer"
    path.mkdir()
    return path


@pytest.fixture
def config(config_dir: Path, tmp_path: Path) -> UpdaterConfig:
    """Engine configuration isolated in a temporary directory."""
    return UpdaterConfig(
        config_dir=config_dir,
        repository=REPOSITORY,
        credentials_path=tmp_path / "git-credentials",
        api_base_url="http://127.0.0.1:1",
        api_timeout_seconds=2,
        download_timeout_seconds=5,
    )


@pytest.fixture
def released_version() -> VersionInfo:
    return VersionInfo(
        semver="v1.0.0",
        commit="abc1234",
        repository="https://github.com/test/some-repo",
    )


@pytest.fixture
def dev_version() -> VersionInfo:
    return VersionInfo(repository="https://github.com/test/some-repo")


@dataclass
class FakeReleaseApi:
    """In-process GitHub-compatible release API serving assets too."""

    releases: list[dict[str, Any]] = field(default_factory=list)
    files: dict[str, bytes] = field(default_factory=dict)
    redirects: dict[str, str] = field(default_factory=dict)
    status: int = 200
    requests: list[web.Request] = field(default_factory=list)
    server: TestServer | None = None

    @property
    def base_url(self) -> str:
        assert self.server is not None
        return str(self.server.make_url("")).rstrip("/")

    def asset_url(self, name: str) -> str:
        return f"{self.base_url}/download/{name}"

    def add_release(
        self,
        tag: str,
        assets: dict[str, bytes] | None = None,
        prerelease: bool = False,
    ) -> None:
        """Publish a release. Call after the server started."""
        assets = assets or {}
        self.files.update(assets)
        self.releases.append(
            {
                "tag_name": tag,
                "prerelease": prerelease,
                "assets": [
                    {"name": name, "browser_download_url": self.asset_url(name)}
                    for name in assets
                ],
            }
        )

    async def handle_releases(self, request: web.Request) -> web.Response:
        self.requests.append(request)
        if self.status != 200:
            return web.json_response({"message": "error"}, status=self.status)
        return web.json_response(self.releases)

    async def handle_download(self, request: web.Request) -> web.Response:
        self.requests.append(request)
        name = request.match_info["name"]
        if name in self.redirects:
            raise web.HTTPFound(self.redirects[name])
        if name not in self.files:
            return web.Response(status=404)
        return web.Response(body=self.files[name])


@pytest.fixture
async def release_api() -> AsyncGenerator[FakeReleaseApi, None]:
    """Run a fake release API for the duration of a test."""
    api = FakeReleaseApi()
    app = web.Application()
    app.router.add_get("/repos/{owner}/{repo}/releases", api.handle_releases)
    app.router.add_get("/download/{name}", api.handle_download)

    async with TestServer(app) as server:
        api.server = server
        yield api


@dataclass
class FakeObjectStore:
    """Separate host that release downloads are redirected to."""

    files: dict[str, bytes] = field(default_factory=dict)
    requests: list[web.Request] = field(default_factory=list)
    server: TestServer | None = None

    def url(self, name: str) -> str:
        assert self.server is not None
        return str(self.server.make_url(f"/objects/{name}"))

    async def handle_object(self, request: web.Request) -> web.Response:
        self.requests.append(request)
        name = request.match_info["name"]
        if name not in self.files:
            return web.Response(status=404)
        return web.Response(body=self.files[name])


@pytest.fixture
async def object_store() -> AsyncGenerator[FakeObjectStore, None]:
    """Run a fake object storage host on its own port."""
    store = FakeObjectStore()
    app = web.Application()
    app.router.add_get("/objects/{name}", store.handle_object)

    async with TestServer(app) as server:
        store.server = server
        yield store


@pytest.fixture
def api_config(config: UpdaterConfig, release_api: FakeReleaseApi) -> UpdaterConfig:
    """Engine configuration pointing at the fake release API."""
    return config.model_copy(update={"api_base_url": release_api.base_url})


@pytest.fixture
def tar_gz() -> Any:
    """Builder for in-memory tar.gz archives (see :func:`make_tar_gz`)."""
    return make_tar_gz


@pytest.fixture
def platform() -> Platform:
    return PLATFORM
