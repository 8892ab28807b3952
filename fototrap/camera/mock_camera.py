"""
Mock camera backend for development and testing on machines without a physical camera.

This implementation creates synthetic frames using the Pillow library. Each
frame is filled with a solid color and annotated with the stream and frame
number. The mock enforces the same exclusivity as real hardware: only one
stream may be open at a time.

Usage:

```python
from fototrap.camera.mock_camera import MockCamera
cam = MockCamera(native_width=1280, native_height=720)
handle = cam.open_stream('environment', 1920, 1080)   # delivers 1280x720
frame = cam.read_frame(handle)
cam.close_stream(handle)
```
"""

from __future__ import annotations

import random
from typing import Optional

from PIL import Image, ImageDraw, ImageFont

from ..errors import CameraUnavailable, InvalidHandle
from .base import CameraBackend, StreamHandle


class MockCamera(CameraBackend):
    """Mock camera backend that generates synthetic frames."""

    def __init__(
        self,
        native_width: int = 1920,
        native_height: int = 1080,
        available: bool = True,
        facings: tuple = ('environment', 'user'),
    ) -> None:
        self.native_width = native_width
        self.native_height = native_height
        self.available = available
        self.facings = facings
        self.open_handle: Optional[StreamHandle] = None
        self.frames_read = 0
        try:
            self.font = ImageFont.load_default()
        except OSError:
            self.font = None

    def open_stream(self, facing: str, width: int, height: int) -> StreamHandle:
        """Open a synthetic stream.

        The requested resolution is honoured when it fits the mock sensor;
        otherwise the sensor's native resolution is delivered. A facing the
        mock does not have falls back to whichever facing it does have.
        """
        if not self.available:
            raise CameraUnavailable('no camera device present')
        if self.open_handle is not None:
            raise CameraUnavailable('camera is already in use')
        if width <= self.native_width and height <= self.native_height:
            size = (width, height)
        else:
            size = (self.native_width, self.native_height)
        actual_facing = facing if facing in self.facings else self.facings[0]
        self.open_handle = StreamHandle(facing=actual_facing, width=size[0], height=size[1])
        return self.open_handle

    def read_frame(self, handle: StreamHandle) -> Image.Image:
        """Generate a frame for an open stream."""
        if handle is not self.open_handle:
            raise InvalidHandle('stream is not open on this camera')
        self.frames_read += 1
        r, g, b = [random.randint(0, 255) for _ in range(3)]
        img = Image.new('RGB', (handle.width, handle.height), color=(r, g, b))
        if self.font:
            draw = ImageDraw.Draw(img)
            text = f"Stream {handle.handle_id}\nFrame {self.frames_read}"
            draw.text((10, 10), text, fill=(255 - r, 255 - g, 255 - b), font=self.font)
        return img

    def close_stream(self, handle: StreamHandle) -> None:
        if handle is self.open_handle:
            self.open_handle = None
