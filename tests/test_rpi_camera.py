"""Unit tests for the libcamera backend with subprocess mocked out."""

import io
import subprocess

import pytest
from PIL import Image

from fototrap.camera import rpi_camera
from fototrap.camera.rpi_camera import RpiCamera, pick_mode
from fototrap.errors import CameraUnavailable, InvalidHandle

LIST_OUTPUT = b"""Available cameras
-----------------
0 : imx219 [3280x2464 10-bit RGGB] (/base/soc/i2c0mux/i2c@1/imx219@10)
    Modes: 'SRGGB10_CSI2P' : 640x480 [206.65 fps - (1000, 752)/1280x960 crop]
                             1640x1232 [41.85 fps - (0, 0)/3280x2464 crop]
                             1920x1080 [47.57 fps - (680, 692)/1920x1080 crop]
                             3280x2464 [21.19 fps - (0, 0)/3280x2464 crop]
1 : imx708 [4608x2592 10-bit RGGB] (/base/soc/i2c0mux/i2c@0/imx708@1a)
    Modes: 'SRGGB10_CSI2P' : 1536x864 [120.13 fps - (768, 432)/3072x1728 crop]
"""


def _png_bytes(width, height):
    buf = io.BytesIO()
    Image.new('RGB', (width, height), color=(10, 20, 30)).save(buf, format='PNG')
    return buf.getvalue()


class FakeRun:
    def __init__(self, outputs, missing=()):
        self.outputs = outputs
        self.missing = missing
        self.calls = []

    def __call__(self, cmd, **kwargs):
        self.calls.append(cmd)
        if cmd[0] in self.missing:
            raise FileNotFoundError(cmd[0])
        tool = cmd[0].split('-', 1)[1]
        return subprocess.CompletedProcess(cmd, 0, stdout=self.outputs[tool], stderr=b'')


def test_pick_mode_exact():
    assert pick_mode([(640, 480), (1920, 1080)], 1920, 1080) == (1920, 1080)


def test_pick_mode_closest():
    assert pick_mode([(640, 480), (1640, 1232), (3280, 2464)], 1920, 1080) == (1640, 1232)


def test_list_modes_for_selected_camera(monkeypatch):
    monkeypatch.setattr(rpi_camera.subprocess, 'run', FakeRun({'hello': LIST_OUTPUT}))

    assert RpiCamera(camera_index=1).list_modes() == [(1536, 864)]
    assert (1920, 1080) in RpiCamera(camera_index=0).list_modes()


def test_open_stream_picks_mode(monkeypatch):
    monkeypatch.setattr(rpi_camera.subprocess, 'run', FakeRun({'hello': LIST_OUTPUT}))
    cam = RpiCamera(camera_index=1)

    handle = cam.open_stream('environment', 1920, 1080)

    assert (handle.width, handle.height) == (1536, 864)


def test_no_cameras(monkeypatch):
    monkeypatch.setattr(rpi_camera.subprocess, 'run', FakeRun({'hello': b'No cameras available!\n'}))

    with pytest.raises(CameraUnavailable):
        RpiCamera().open_stream('environment', 1920, 1080)


def test_tools_missing(monkeypatch):
    fake = FakeRun({}, missing=('libcamera-hello', 'rpicam-hello'))
    monkeypatch.setattr(rpi_camera.subprocess, 'run', fake)

    with pytest.raises(CameraUnavailable):
        RpiCamera().open_stream('environment', 1920, 1080)
    assert [c[0] for c in fake.calls] == ['libcamera-hello', 'rpicam-hello']


def test_read_frame_with_rpicam_tools(monkeypatch):
    fake = FakeRun({'hello': LIST_OUTPUT, 'still': _png_bytes(640, 480)},
                   missing=('libcamera-hello', 'libcamera-still'))
    monkeypatch.setattr(rpi_camera.subprocess, 'run', fake)
    cam = RpiCamera()
    handle = cam.open_stream('environment', 640, 480)

    frame = cam.read_frame(handle)

    assert frame.size == (640, 480)
    still_cmd = fake.calls[-1]
    assert still_cmd[0] == 'rpicam-still'
    assert still_cmd[still_cmd.index('--width') + 1] == '640'


def test_second_open_rejected(monkeypatch):
    monkeypatch.setattr(rpi_camera.subprocess, 'run', FakeRun({'hello': LIST_OUTPUT}))
    cam = RpiCamera()
    cam.open_stream('environment', 1920, 1080)

    with pytest.raises(CameraUnavailable):
        cam.open_stream('environment', 1920, 1080)


def test_read_after_close(monkeypatch):
    monkeypatch.setattr(rpi_camera.subprocess, 'run', FakeRun({'hello': LIST_OUTPUT}))
    cam = RpiCamera()
    handle = cam.open_stream('environment', 1920, 1080)
    cam.close_stream(handle)

    with pytest.raises(InvalidHandle):
        cam.read_frame(handle)


def test_still_failure(monkeypatch):
    def run(cmd, **kwargs):
        if cmd[0].endswith('hello'):
            return subprocess.CompletedProcess(cmd, 0, stdout=LIST_OUTPUT, stderr=b'')
        raise subprocess.CalledProcessError(1, cmd, stderr=b'Pipeline handler in use by another process')

    monkeypatch.setattr(rpi_camera.subprocess, 'run', run)
    cam = RpiCamera()
    handle = cam.open_stream('environment', 1920, 1080)

    with pytest.raises(CameraUnavailable, match='in use'):
        cam.read_frame(handle)
