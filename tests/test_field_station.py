"""Tests for the station controller and its operator commands."""

import pytest

from fototrap.capture import CaptureState
from fototrap.config import Config
from fototrap.main import FieldStation


@pytest.fixture
def station(tmp_path):
    config = Config(
        station_id='test',
        location_backend='none',
        seed_demo_data=True,
        log_file=str(tmp_path / 'fototrap.log'),
    )
    output = []
    service = FieldStation(config, configure_logging=False, write=output.append)
    service.output = output
    return service


@pytest.mark.asyncio
async def test_register_through_commands(station):
    for line in ('open', 'capture', 'retake', 'capture', 'commit'):
        assert await station.handle_command(line) is True

    assert len(station.registry) == 4
    newest = station.registry.list()[0]
    assert newest.id == '4'
    assert newest.location == station.config.fallback_location
    assert station.workflow.state is CaptureState.CLOSED
    assert station.camera.active_handles == 0
    assert station.output[-1] == f'Registered trap 4 at {newest.location}.'


@pytest.mark.asyncio
async def test_errors_are_reported_not_raised(station):
    assert await station.handle_command('capture') is True

    assert station.output[-1].startswith('capture failed:')
    assert station.workflow.state is CaptureState.IDLE


@pytest.mark.asyncio
async def test_quit(station):
    assert await station.handle_command('quit') is False


@pytest.mark.asyncio
async def test_list_and_photos(station):
    await station.handle_command('list')
    assert station.output[0].lstrip().startswith('3')

    station.output.clear()
    await station.handle_command('photos 1')
    assert len(station.output) == 2
    assert 'Polar bear' in station.output[0]


@pytest.mark.asyncio
async def test_status(station):
    await station.handle_command('open')
    station.output.clear()

    await station.handle_command('status')

    assert station.output[0] == 'Session: streaming'
    assert 'Camera streams open: 1' in station.output
    await station.shutdown()
    assert station.camera.active_handles == 0


@pytest.mark.asyncio
async def test_interactive_shutdown_releases_camera(station):
    lines = iter(['open', 'capture'])

    async def read_line():
        return next(lines, None)

    await station.run_interactive(read_line)
    assert station.camera.active_handles == 1

    await station.shutdown()

    assert station.camera.active_handles == 0
    assert len(station.registry) == 3


@pytest.mark.asyncio
async def test_register_once(station):
    await station.register_once()

    assert len(station.registry) == 4
    assert station.camera.active_handles == 0
