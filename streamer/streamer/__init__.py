"""Camera streaming for picam-streamer.

Module Overview:
    camera: Camera capability and a directory-backed implementation
    server: aiohttp MJPEG streaming server
"""

from streamer.camera import Camera, CameraError, DirectoryCamera
from streamer.server import StreamServer

__all__ = [
    "Camera",
    "CameraError",
    "DirectoryCamera",
    "StreamServer",
]
