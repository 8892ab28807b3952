"""
Camera backend abstractions for the FotoTrap field station.

This module defines the interface that all camera backends must implement.
A camera backend opens a live stream on the host camera, samples raw frames
from it on demand and closes it again. The camera is an exclusive resource:
a backend serves at most one open stream at a time.

Encoding of sampled frames and the lifetime guarantees around a stream are
handled by :class:`fototrap.camera.manager.CameraSessionManager`; backends only
talk to the hardware.

Implementations may use mock data for development/testing or interact with
real hardware on a Raspberry Pi (e.g., via libcamera).
"""

from __future__ import annotations

import datetime
import itertools
from dataclasses import dataclass, field

from PIL import Image

_handle_ids = itertools.count(1)


@dataclass(eq=False)
class StreamHandle:
    """Exclusive ownership of an open camera stream.

    ``width``/``height`` are the resolution the device actually delivers,
    which may differ from the resolution that was requested.
    """

    facing: str
    width: int
    height: int
    handle_id: int = field(default_factory=lambda: next(_handle_ids))
    released: bool = False


@dataclass
class EncodedImage:
    """A compressed still frame sampled from a stream."""

    data: bytes
    width_px: int
    height_px: int
    format: str
    captured_at: datetime.datetime

    @property
    def size_bytes(self) -> int:
        return len(self.data)


class CameraBackend:
    """Abstract base class for camera backends."""

    def open_stream(self, facing: str, width: int, height: int) -> StreamHandle:
        """Open a live stream.

        Args:
            facing: Preferred sensor facing, ``'environment'`` (rear) or ``'user'``.
            width: Preferred frame width in pixels.
            height: Preferred frame height in pixels.

        Returns:
            A StreamHandle describing the stream actually opened.

        Raises:
            CameraUnavailable: if no device is present, it is busy, or access is denied.
            NotImplementedError: if not implemented by subclass.
        """
        raise NotImplementedError('open_stream must be implemented by subclasses')

    def read_frame(self, handle: StreamHandle) -> Image.Image:
        """Sample the current frame of an open stream.

        Raises:
            InvalidHandle: if ``handle`` is not the stream this backend has open.
            NotImplementedError: if not implemented by subclass.
        """
        raise NotImplementedError('read_frame must be implemented by subclasses')

    def close_stream(self, handle: StreamHandle) -> None:
        """Stop the stream and free the device."""
        raise NotImplementedError('close_stream must be implemented by subclasses')
