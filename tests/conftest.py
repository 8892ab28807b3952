"""Shared pytest configuration and fixtures for the FotoTrap test suite."""

import datetime
import sys
from pathlib import Path

import pytest

# Ensure the project root is in the path for imports
PROJECT_ROOT = Path(__file__).parent.parent
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from fototrap.camera.manager import CameraSessionManager  # noqa: E402
from fototrap.camera.mock_camera import MockCamera  # noqa: E402
from fototrap.capture import CaptureStateMachine  # noqa: E402
from fototrap.location.base import Coordinate  # noqa: E402
from fototrap.location.mock_location import MockPositioning  # noqa: E402
from fototrap.location.provider import LocationProvider  # noqa: E402
from fototrap.registry import TrapRegistry  # noqa: E402

FALLBACK = Coordinate(70.6638, 147.9152)
REAL_FIX = Coordinate(70.7001, 147.8800)
COMMIT_TIME = datetime.datetime(2025, 3, 1, 12, 0, tzinfo=datetime.timezone.utc)


# =============================================================================
# Shared Fixtures
# =============================================================================

@pytest.fixture
def mock_camera() -> MockCamera:
    """A small synthetic camera so frames encode quickly."""
    return MockCamera(native_width=64, native_height=48)


@pytest.fixture
def camera_manager(mock_camera) -> CameraSessionManager:
    return CameraSessionManager(mock_camera, quality=90)


@pytest.fixture
def positioning() -> MockPositioning:
    return MockPositioning(REAL_FIX)


@pytest.fixture
def location_provider(positioning) -> LocationProvider:
    return LocationProvider(positioning, fallback=FALLBACK, timeout=0.2)


@pytest.fixture
def registry() -> TrapRegistry:
    return TrapRegistry()


@pytest.fixture
def machine(camera_manager, location_provider, registry) -> CaptureStateMachine:
    return CaptureStateMachine(
        camera_manager,
        location_provider,
        registry,
        trap_model='Identifying...',
        clock=lambda: COMMIT_TIME,
    )
