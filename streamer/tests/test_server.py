"""Tests for streamer.server, the MJPEG HTTP endpoints."""

from __future__ import annotations

from typing import TYPE_CHECKING

import pytest
from aiohttp.test_utils import TestClient, TestServer

from streamer.camera import CameraError
from streamer.server import DEFAULT_ADDRESS, DEFAULT_PORT, StreamServer

if TYPE_CHECKING:
    from collections.abc import AsyncIterator


class FakeCamera:
    """Camera yielding a fixed list of frames, then stopping."""

    def __init__(self, frames: list[bytes], error: Exception | None = None) -> None:
        self._frames = frames
        self._error = error
        self.calls = 0

    def frames(self) -> AsyncIterator[bytes]:
        self.calls += 1
        return self._generate()

    async def _generate(self) -> AsyncIterator[bytes]:
        for frame in self._frames:
            yield frame
        if self._error is not None:
            raise self._error


def _part(boundary: str, frame: bytes) -> bytes:
    return (
        f"--{boundary}\r\nContent-Type: image/jpeg\r\nContent-Length: {len(frame)}\r\n\r\n"
    ).encode() + frame + b"\r\n"


async def _make_client(server: StreamServer) -> TestClient:
    client = TestClient(TestServer(server.create_app()))
    await client.start_server()
    return client


class TestStreamServer:
    """Tests for StreamServer configuration."""

    def test_defaults(self) -> None:
        server = StreamServer(FakeCamera([]))
        assert (server.address, server.port) == (DEFAULT_ADDRESS, DEFAULT_PORT)
        assert server.address == "0.0.0.0"
        assert server.port == 8080
        assert server.boundary


class TestIndexEndpoint:
    """Tests for GET /."""

    @pytest.mark.asyncio
    async def test_index_embeds_stream(self) -> None:
        client = await _make_client(StreamServer(FakeCamera([])))
        try:
            resp = await client.get("/")
            assert resp.status == 200
            assert resp.content_type == "text/html"
            assert 'src="/stream"' in await resp.text()
        finally:
            await client.close()


class TestStreamEndpoint:
    """Tests for GET /stream."""

    @pytest.mark.asyncio
    async def test_stream_writes_multipart_frames(self) -> None:
        server = StreamServer(FakeCamera([b"\xff\xd8one\xff\xd9", b"\xff\xd8two\xff\xd9"]))
        client = await _make_client(server)
        try:
            resp = await client.get("/stream")
            assert resp.status == 200
            assert resp.headers["Content-Type"] == (
                f"multipart/x-mixed-replace; boundary={server.boundary}"
            )
            body = await resp.read()
        finally:
            await client.close()

        assert body == _part(server.boundary, b"\xff\xd8one\xff\xd9") + _part(
            server.boundary, b"\xff\xd8two\xff\xd9"
        )

    @pytest.mark.asyncio
    async def test_clients_share_one_sequence(self) -> None:
        """Test the camera sequence is started once for all clients."""
        camera = FakeCamera([b"a", b"b"])
        server = StreamServer(camera)
        client = await _make_client(server)
        try:
            first = await (await client.get("/stream")).read()
            second = await (await client.get("/stream")).read()
        finally:
            await client.close()

        assert camera.calls == 1
        assert first == _part(server.boundary, b"a") + _part(server.boundary, b"b")
        assert second == b""

    @pytest.mark.asyncio
    async def test_camera_error_ends_stream(self) -> None:
        server = StreamServer(FakeCamera([b"a"], error=CameraError("unplugged")))
        client = await _make_client(server)
        try:
            resp = await client.get("/stream")
            body = await resp.read()
        finally:
            await client.close()

        assert resp.status == 200
        assert body == _part(server.boundary, b"a")


class TestServerLifecycle:
    """Tests for start/stop."""

    @pytest.mark.asyncio
    async def test_stop_without_start(self) -> None:
        await StreamServer(FakeCamera([])).stop()

    @pytest.mark.asyncio
    async def test_start_and_stop(self) -> None:
        server = StreamServer(FakeCamera([]), address="127.0.0.1", port=0)
        await server.start()
        try:
            assert server._runner is not None
        finally:
            await server.stop()

        assert server._runner is None
