"""
Main orchestration for the FotoTrap field station.

This script wires the camera and positioning backends, the trap registry and
the capture workflow together and lets a field operator register traps from
a terminal. The components are configurable via a YAML configuration file
(see :mod:`fototrap.config`).

Usage:

```bash
python -m fototrap.main --config config/station.yaml          # interactive
python -m fototrap.main --config config/station.yaml --once   # open, capture, commit
```
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import signal
import sys
from typing import Awaitable, Callable, Optional

from .camera.base import CameraBackend
from .camera.manager import CameraSessionManager
from .camera.mock_camera import MockCamera
from .camera.rpi_camera import RpiCamera
from .capture import CaptureStateMachine
from .config import Config
from .demo import seed_registry, wildlife_feed
from .errors import CaptureError
from .location.base import PositioningBackend
from .location.http_location import HttpPositioning
from .location.mock_location import MockPositioning
from .location.provider import LocationProvider
from .photos import PhotoFeed
from .registry import TrapRegistry

HELP = """Commands:
  open              start the camera and look up the location
  capture           take a snapshot of the trap
  retake            discard the snapshot and go back to the live view
  commit            register the trap and close the camera
  close             abandon the registration and close the camera
  list              show registered traps
  photos <trap id>  show wildlife photos from a trap
  status            show session and fleet status
  quit              close the camera and exit"""


class FieldStation:
    """Main controller for FotoTrap field station operations."""

    def __init__(self, config: Config, configure_logging: bool = True,
                 write: Callable[[str], None] = print) -> None:
        self.config = config
        self.write = write
        config.ensure_paths()

        if configure_logging:
            self._setup_logging()

        self.registry = TrapRegistry()
        if config.seed_demo_data:
            seed_registry(self.registry)
            self.photos = wildlife_feed()
        else:
            self.photos = PhotoFeed()

        self.camera = CameraSessionManager(self._init_camera(), quality=config.jpeg_quality)
        self.location = LocationProvider(
            self._init_positioning(),
            fallback=config.fallback_location,
            timeout=config.location_timeout,
        )
        self.workflow = CaptureStateMachine(
            self.camera,
            self.location,
            self.registry,
            facing=config.camera_facing,
            resolution=(config.camera_width, config.camera_height),
            trap_model=config.new_trap_model,
            fallback_on_commit=config.fallback_on_commit,
        )

    def _setup_logging(self) -> None:
        """Configure logging to file and console."""
        logger = logging.getLogger()
        logger.setLevel(logging.INFO)
        formatter = logging.Formatter(
            '%(asctime)s [%(levelname)s] %(name)s - %(message)s'
        )
        fh = logging.FileHandler(self.config.log_file)
        fh.setFormatter(formatter)
        logger.addHandler(fh)
        ch = logging.StreamHandler(sys.stdout)
        ch.setFormatter(formatter)
        ch.setLevel(logging.WARNING)
        logger.addHandler(ch)

    def _init_camera(self) -> CameraBackend:
        """Instantiate the camera backend based on configuration."""
        if self.config.camera_backend == 'mock':
            return MockCamera()
        elif self.config.camera_backend == 'rpi':
            return RpiCamera(camera_index=int(self.config.extra.get('camera_index', 0)))
        else:
            raise ValueError(f'Unknown camera backend: {self.config.camera_backend}')

    def _init_positioning(self) -> PositioningBackend:
        """Instantiate the positioning backend based on configuration.

        ``none`` models a device without positioning (or with the permission
        off): every request is refused and the fallback coordinate is used.
        """
        backend = self.config.location_backend
        if backend == 'mock':
            return MockPositioning(
                self.config.fallback_location,
                delay=float(self.config.extra.get('mock_location_delay', 0.5)),
                jitter=0.0005,
            )
        if backend == 'http':
            return HttpPositioning(self.config.positioning_url, timeout=self.config.location_timeout)
        if backend == 'none':
            return MockPositioning(self.config.fallback_location, denied=True)
        raise ValueError(f'Unknown location backend: {backend}')

    # Operator commands

    async def handle_command(self, line: str) -> bool:
        """Run one operator command.

        Returns:
            False when the operator asked to quit, True otherwise.
        """
        parts = line.split()
        if not parts:
            return True
        command, args = parts[0].lower(), parts[1:]
        try:
            if command == 'open':
                session = await self.workflow.open()
                self.write(f'Camera ready ({session.stream_handle.width}x{session.stream_handle.height}). '
                           'Point it at the trap and type "capture".')
            elif command == 'capture':
                snapshot = await self.workflow.capture()
                self.write(f'Snapshot taken ({snapshot.width_px}x{snapshot.height_px}, '
                           f'{snapshot.size_bytes} bytes). "commit" to register, "retake" to try again.')
            elif command == 'retake':
                self.workflow.retake()
                self.write('Snapshot discarded.')
            elif command == 'commit':
                registration = await self.workflow.commit()
                record = registration.record
                self.write(f'Registered trap {record.id} at {record.location}.')
            elif command == 'close':
                await self.workflow.close()
                self.write('Camera closed.')
            elif command == 'list':
                self.show_traps()
            elif command == 'photos':
                if not args:
                    self.write('Usage: photos <trap id>')
                else:
                    self.show_photos(args[0])
            elif command == 'status':
                self.show_status()
            elif command in ('quit', 'exit'):
                return False
            elif command == 'help':
                self.write(HELP)
            else:
                self.write(f'Unknown command: {command}. Type "help" for a list.')
        except CaptureError as exc:
            logging.info('%s failed: %s', command, exc)
            self.write(f'{command} failed: {exc}')
        return True

    def show_traps(self) -> None:
        records = self.registry.list()
        if not records:
            self.write('No traps registered.')
            return
        for r in records:
            self.write(f'{r.id:>4}  {r.trap_model:<24} {str(r.location):<20} '
                       f'{r.battery:>3}%  {r.status.value:<12} {r.timestamp:%Y-%m-%d %H:%M}')

    def show_photos(self, trap_id: str) -> None:
        photos = self.photos.for_trap(trap_id)
        if not photos:
            self.write(f'No photos from trap {trap_id}.')
            return
        for p in photos:
            label = f'{p.species} ({p.confidence}%)' if p.classified else 'unclassified'
            self.write(f'{p.id:>4}  {p.timestamp:%Y-%m-%d %H:%M}  {label}')

    def show_status(self) -> None:
        session = self.workflow.session
        self.write(f'Session: {self.workflow.state.value}')
        if session is not None and session.location is not None:
            suffix = ' (fallback)' if session.location_is_fallback else ''
            self.write(f'Location: {session.location}{suffix}')
        self.write(f'Camera streams open: {self.camera.active_handles}')
        fleet = self.registry.fleet_summary()
        photos = self.photos.summary()
        self.write(f'Traps: {fleet["total_traps"]} ({fleet["active_traps"]} active), '
                   f'average battery {fleet["average_battery"]}%')
        self.write(f'Photos: {photos["total_photos"]} ({photos["classified_photos"]} classified)')

    async def register_once(self) -> None:
        """Open, capture and commit without operator interaction."""
        async with self.workflow.session_scope():
            await self.workflow.wait_for_location()
            await self.workflow.capture()
            registration = await self.workflow.commit()
        self.write(f'Registered trap {registration.record.id} at {registration.record.location}.')

    async def run_interactive(self, read_line: Callable[[], Awaitable[Optional[str]]]) -> None:
        """Read and run operator commands until ``quit`` or end of input."""
        self.write(HELP)
        while True:
            line = await read_line()
            if line is None:
                break
            if not await self.handle_command(line):
                break

    async def shutdown(self) -> None:
        """Close any live session so the camera is released."""
        await self.workflow.close()


async def stdin_reader() -> Callable[[], Awaitable[Optional[str]]]:
    """Return a coroutine function reading operator lines from stdin."""
    loop = asyncio.get_running_loop()
    reader = asyncio.StreamReader()
    await loop.connect_read_pipe(lambda: asyncio.StreamReaderProtocol(reader), sys.stdin)

    async def read_line() -> Optional[str]:
        sys.stdout.write('fototrap> ')
        sys.stdout.flush()
        data = await reader.readline()
        if not data:
            return None
        return data.decode().strip()

    return read_line


async def run(service: FieldStation, once: bool) -> None:
    loop = asyncio.get_running_loop()
    main_task = asyncio.current_task()
    for signum in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(signum, main_task.cancel)
    try:
        if once:
            await service.register_once()
        else:
            await service.run_interactive(await stdin_reader())
    except asyncio.CancelledError:
        logging.info('Shutting down...')
    except CaptureError as exc:
        logging.error('Registration failed: %s', exc)
        service.write(f'Registration failed: {exc}')
    finally:
        await service.shutdown()


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description='FotoTrap Field Station')
    parser.add_argument('--config', '-c', type=str, required=True, help='Path to YAML configuration file')
    parser.add_argument('--once', action='store_true', help='Register one trap without prompting')
    return parser.parse_args()


def main() -> None:
    args = parse_args()
    config = Config.from_yaml(args.config)
    service = FieldStation(config)
    asyncio.run(run(service, once=args.once))


if __name__ == '__main__':
    main()
