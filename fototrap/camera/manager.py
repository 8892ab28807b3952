"""
Ownership and sequencing of the camera stream.

``CameraSessionManager`` sits between the capture workflow and a
:class:`~fototrap.camera.base.CameraBackend`. It serialises every hardware
operation behind one lock, encodes sampled frames as JPEG, and makes
``release`` safe to call any number of times. Counters of acquired, released
and active handles let tests and the station status view verify that the
camera is never left locked.

Usage:

```python
manager = CameraSessionManager(MockCamera(), quality=90)
async with manager.stream() as handle:
    image = await manager.capture_frame(handle)
```
"""

from __future__ import annotations

import asyncio
import contextlib
import datetime
import io
import logging
from typing import AsyncIterator, Optional, Set, Tuple

from PIL import Image

from ..errors import InvalidHandle
from .base import CameraBackend, EncodedImage, StreamHandle

DEFAULT_RESOLUTION = (1920, 1080)


class CameraSessionManager:
    """Acquires, samples and releases the exclusive camera stream."""

    def __init__(self, backend: CameraBackend, quality: int = 90) -> None:
        self.backend = backend
        self.quality = quality
        self.acquired_count = 0
        self.released_count = 0
        self._live: Set[StreamHandle] = set()
        self._lock = asyncio.Lock()
        self.logger = logging.getLogger(__name__)

    @property
    def active_handles(self) -> int:
        """Number of handles acquired and not yet released."""
        return len(self._live)

    async def acquire(
        self,
        preferred_facing: str = 'environment',
        preferred_resolution: Tuple[int, int] = DEFAULT_RESOLUTION,
    ) -> StreamHandle:
        """Open a live stream on the camera.

        Args:
            preferred_facing: Preferred sensor facing; rear (``'environment'``) by default.
            preferred_resolution: Target (width, height); any offered resolution is accepted.

        Returns:
            The handle of the opened stream.

        Raises:
            CameraUnavailable: if the device is missing, busy, or access was denied.

        If the caller is cancelled while the device is opening, the open is
        allowed to finish and the resulting stream is closed before the
        cancellation propagates.
        """
        width, height = preferred_resolution
        async with self._lock:
            opening = asyncio.ensure_future(
                asyncio.to_thread(self.backend.open_stream, preferred_facing, width, height))
            try:
                handle = await asyncio.shield(opening)
            except asyncio.CancelledError:
                await self._close_orphan(opening)
                raise
            self._live.add(handle)
            self.acquired_count += 1
        self.logger.info('Camera stream %d acquired (%s, %dx%d)',
                         handle.handle_id, handle.facing, handle.width, handle.height)
        return handle

    async def _close_orphan(self, opening: asyncio.Future) -> None:
        """Wait for an abandoned open to settle and close whatever it opened."""
        await asyncio.wait({opening})
        if opening.cancelled() or opening.exception() is not None:
            return
        orphan = opening.result()
        orphan.released = True
        try:
            await asyncio.to_thread(self.backend.close_stream, orphan)
        except Exception:
            self.logger.exception('Camera backend failed to close abandoned stream %d', orphan.handle_id)
        self.logger.info('Camera stream %d closed after cancelled acquire', orphan.handle_id)

    async def capture_frame(self, handle: Optional[StreamHandle]) -> EncodedImage:
        """Sample the current frame and encode it as JPEG.

        Raises:
            InvalidHandle: if ``handle`` is None, released, or not acquired here.
        """
        async with self._lock:
            if handle is None or handle not in self._live:
                raise InvalidHandle('capture requires an open stream handle')
            frame = await asyncio.to_thread(self.backend.read_frame, handle)
            data = await asyncio.to_thread(self._encode, frame)
        return EncodedImage(
            data=data,
            width_px=frame.width,
            height_px=frame.height,
            format='jpg',
            captured_at=datetime.datetime.now(datetime.timezone.utc),
        )

    def _encode(self, frame: Image.Image) -> bytes:
        """Encode a frame to JPEG bytes."""
        if frame.mode != 'RGB':
            frame = frame.convert('RGB')
        buf = io.BytesIO()
        frame.save(buf, format='JPEG', quality=self.quality)
        return buf.getvalue()

    async def release(self, handle: Optional[StreamHandle]) -> None:
        """Stop the stream and invalidate the handle. Safe to call repeatedly."""
        if handle is None:
            return
        async with self._lock:
            if handle not in self._live:
                return
            self._live.discard(handle)
            handle.released = True
            self.released_count += 1
            try:
                await asyncio.to_thread(self.backend.close_stream, handle)
            except Exception:
                self.logger.exception('Camera backend failed to close stream %d', handle.handle_id)
        self.logger.info('Camera stream %d released', handle.handle_id)

    @contextlib.asynccontextmanager
    async def stream(
        self,
        preferred_facing: str = 'environment',
        preferred_resolution: Tuple[int, int] = DEFAULT_RESOLUTION,
    ) -> AsyncIterator[StreamHandle]:
        """Acquire a stream for the duration of an ``async with`` block."""
        handle = await self.acquire(preferred_facing, preferred_resolution)
        try:
            yield handle
        finally:
            await self.release(handle)
