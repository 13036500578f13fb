"""MJPEG streaming server.

Frames from a :class:`~streamer.camera.Camera` are pushed to every client of
``/stream`` as a ``multipart/x-mixed-replace`` response, which browsers
render as a live image.
"""

from __future__ import annotations

import asyncio
import uuid
from typing import TYPE_CHECKING

import structlog
from aiohttp import web

from .camera import CameraError

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

    from .camera import Camera

logger = structlog.get_logger(__name__)

DEFAULT_ADDRESS = "0.0.0.0"
DEFAULT_PORT = 8080

INDEX_HTML = """<!DOCTYPE html>
<html>
  <head><title>picam-streamer</title></head>
  <body style="margin:0;background:#300a24">
    <img src="/stream" alt="camera stream" style="display:block;margin:auto;max-width:100%">
  </body>
</html>
"""


class StreamServer:
    """HTTP server exposing the camera as an MJPEG stream.

    All clients share the camera's single frame sequence; each frame goes to
    whichever client asks for it next.
    """

    def __init__(
        self,
        camera: Camera,
        address: str = DEFAULT_ADDRESS,
        port: int = DEFAULT_PORT,
    ) -> None:
        self.camera = camera
        self.address = address
        self.port = port
        self.boundary = uuid.uuid4().hex
        self._frames: AsyncIterator[bytes] | None = None
        self._frames_lock = asyncio.Lock()
        self._runner: web.AppRunner | None = None
        self._log = logger.bind(component="stream_server")

    def create_app(self) -> web.Application:
        """Build the aiohttp application."""
        app = web.Application()
        app.router.add_get("/", self.handle_index)
        app.router.add_get("/stream", self.handle_stream)
        return app

    async def _next_frame(self) -> bytes:
        async with self._frames_lock:
            if self._frames is None:
                self._frames = self.camera.frames()
            return await anext(self._frames)

    async def handle_index(self, request: web.Request) -> web.Response:
        return web.Response(text=INDEX_HTML, content_type="text/html")

    async def handle_stream(self, request: web.Request) -> web.StreamResponse:
        """Stream frames until the client disconnects."""
        self._log.info("stream_requested", remote=request.remote)

        response = web.StreamResponse(
            headers={
                "Content-Type": f"multipart/x-mixed-replace; boundary={self.boundary}",
                "Cache-Control": "no-cache",
            }
        )
        await response.prepare(request)

        try:
            while True:
                frame = await self._next_frame()
                await response.write(
                    f"--{self.boundary}\r\n"
                    f"Content-Type: image/jpeg\r\n"
                    f"Content-Length: {len(frame)}\r\n\r\n".encode()
                )
                await response.write(frame)
                await response.write(b"\r\n")
        except (ConnectionResetError, asyncio.CancelledError):
            self._log.info("stream_closed", remote=request.remote)
            raise
        except (StopAsyncIteration, CameraError) as e:
            self._log.warning("camera_stopped", error=str(e) or "exhausted")

        return response

    async def start(self) -> None:
        """Start listening on ``address:port``."""
        self._runner = web.AppRunner(self.create_app())
        await self._runner.setup()
        site = web.TCPSite(self._runner, self.address, self.port)
        await site.start()
        self._log.info("serving_stream", url=f"http://{self.address}:{self.port}/stream")

    async def stop(self) -> None:
        """Stop the server."""
        if self._runner is None:
            return
        await self._runner.cleanup()
        self._runner = None
        self._log.info("server_stopped")

    async def serve_forever(self) -> None:
        """Start the server and block until cancelled."""
        await self.start()
        try:
            await asyncio.Event().wait()
        finally:
            await self.stop()
