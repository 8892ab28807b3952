"""
Raspberry Pi camera backend.

This backend uses the libcamera tools available on Raspberry Pi OS. Opening a
stream probes the attached sensors with ``libcamera-hello --list-cameras`` and
picks the sensor mode closest to the requested resolution; each frame is then
sampled with ``libcamera-still`` writing PNG to stdout. Newer releases ship the
same tools as ``rpicam-*``; both names are tried.

Note: To use this backend, ensure that libcamera is installed and the camera
is enabled on your Raspberry Pi. Pi camera modules have no facing; the
requested facing is recorded on the handle as given.

If libcamera is not available (e.g., when running on macOS), opening a stream
raises ``CameraUnavailable``.
"""

from __future__ import annotations

import io
import logging
import re
import subprocess
from typing import List, Optional, Tuple

from PIL import Image

from ..errors import CameraUnavailable, InvalidHandle
from .base import CameraBackend, StreamHandle

MODE_PATTERN = re.compile(r'(\d+)x(\d+) \[[\d.]+ fps')


def pick_mode(modes: List[Tuple[int, int]], width: int, height: int) -> Tuple[int, int]:
    """Return the requested resolution if offered, else the mode closest in pixel count."""
    if (width, height) in modes:
        return width, height
    target = width * height
    return min(modes, key=lambda m: abs(m[0] * m[1] - target))


class RpiCamera(CameraBackend):
    """Camera backend using libcamera tools on Raspberry Pi."""

    def __init__(self, camera_index: int = 0, timeout: float = 10.0) -> None:
        self.camera_index = camera_index
        self.timeout = timeout
        self.open_handle: Optional[StreamHandle] = None
        self.logger = logging.getLogger(__name__)

    def _run(self, tool: str, args: List[str]) -> subprocess.CompletedProcess:
        """Run a libcamera tool, trying the ``rpicam-`` name when the ``libcamera-`` one is missing."""
        last_error: Optional[FileNotFoundError] = None
        for prefix in ('libcamera-', 'rpicam-'):
            try:
                return subprocess.run(
                    [prefix + tool] + args,
                    check=True,
                    stdout=subprocess.PIPE,
                    stderr=subprocess.PIPE,
                    timeout=self.timeout,
                )
            except FileNotFoundError as exc:
                last_error = exc
        raise CameraUnavailable(f'libcamera-{tool} is not available on this system') from last_error

    def list_modes(self) -> List[Tuple[int, int]]:
        """Return the sensor modes of the selected camera."""
        try:
            result = self._run('hello', ['--list-cameras'])
        except subprocess.CalledProcessError as exc:
            raise CameraUnavailable(f'camera probe failed: {exc.stderr.decode().strip()}') from exc
        except subprocess.TimeoutExpired as exc:
            raise CameraUnavailable('camera probe timed out') from exc
        output = result.stdout.decode()
        if 'No cameras available' in output:
            return []

        modes: List[Tuple[int, int]] = []
        current = -1
        for line in output.splitlines():
            header = re.match(r'\s*(\d+) : ', line)
            if header:
                current = int(header.group(1))
                continue
            if current == self.camera_index:
                modes.extend((int(w), int(h)) for w, h in MODE_PATTERN.findall(line))
        return modes

    def open_stream(self, facing: str, width: int, height: int) -> StreamHandle:
        if self.open_handle is not None:
            raise CameraUnavailable('camera is already in use')
        modes = self.list_modes()
        if not modes:
            raise CameraUnavailable(f'no camera at index {self.camera_index}')
        actual_width, actual_height = pick_mode(modes, width, height)
        if (actual_width, actual_height) != (width, height):
            self.logger.info('Requested %dx%d, using sensor mode %dx%d', width, height, actual_width, actual_height)
        self.open_handle = StreamHandle(facing=facing, width=actual_width, height=actual_height)
        return self.open_handle

    def read_frame(self, handle: StreamHandle) -> Image.Image:
        """Sample a frame with libcamera-still.

        Raises:
            InvalidHandle: if the handle is not the open stream.
            CameraUnavailable: if the camera stopped responding.
        """
        if handle is not self.open_handle:
            raise InvalidHandle('stream is not open on this camera')
        args = [
            '-n',                        # no preview
            '--camera', str(self.camera_index),
            '-t', '1',
            '-e', 'png',
            '--width', str(handle.width),
            '--height', str(handle.height),
            '-o', '-',
        ]
        try:
            result = self._run('still', args)
        except subprocess.CalledProcessError as exc:
            raise CameraUnavailable(f'libcamera-still failed: {exc.stderr.decode().strip()}') from exc
        except subprocess.TimeoutExpired as exc:
            raise CameraUnavailable('libcamera-still timed out') from exc
        img = Image.open(io.BytesIO(result.stdout))
        img.load()
        return img

    def close_stream(self, handle: StreamHandle) -> None:
        if handle is self.open_handle:
            self.open_handle = None
