"""
Trap registration capture workflow.

``CaptureStateMachine`` drives one registration at a time:

    IDLE --open()--> OPENING --camera ready--> STREAMING --capture()--> REVIEWING
    REVIEWING --retake()--> STREAMING
    REVIEWING --commit()--> COMMITTING --> CLOSED
    any --close()--> CLOSED

Opening starts the camera acquisition and a location fix concurrently. The
camera gates the move to STREAMING; the location fix is best effort and fills
in the session whenever it arrives. If it is still outstanding at commit time
the fallback coordinate is used instead of making the operator wait.

The camera handle belongs to the live session and is released on every path
that ends it: commit, close, capture failure, and a close that races the
acquisition. A CLOSED machine behaves like an IDLE one for the next ``open()``.

Usage:

```python
machine = CaptureStateMachine(camera, location, registry)
async with machine.session_scope():
    await machine.capture()
    registration = await machine.commit()
```
"""

from __future__ import annotations

import asyncio
import contextlib
import datetime
import enum
import logging
from dataclasses import dataclass, field, replace
from typing import AsyncIterator, Callable, Optional, Tuple

from .camera.base import EncodedImage, StreamHandle
from .camera.manager import DEFAULT_RESOLUTION, CameraSessionManager
from .errors import InvalidTransition, MissingData, NotStreaming, SessionActive, SessionClosed
from .location.base import Coordinate
from .location.provider import LocationProvider
from .registry import TrapRecord, TrapRegistry, TrapStatus

logger = logging.getLogger(__name__)


class CaptureState(enum.Enum):
    IDLE = 'idle'
    OPENING = 'opening'
    STREAMING = 'streaming'
    REVIEWING = 'reviewing'
    COMMITTING = 'committing'
    CLOSED = 'closed'


@dataclass(eq=False)
class CaptureSession:
    """State of the registration currently in progress."""

    state: CaptureState = CaptureState.OPENING
    stream_handle: Optional[StreamHandle] = None
    snapshot: Optional[EncodedImage] = None
    location: Optional[Coordinate] = None
    location_is_fallback: bool = False
    location_task: Optional[asyncio.Task] = field(default=None, repr=False)


@dataclass(frozen=True)
class Registration:
    """A committed trap record together with the photo it was registered from."""

    record: TrapRecord
    snapshot: EncodedImage


def _utcnow() -> datetime.datetime:
    return datetime.datetime.now(datetime.timezone.utc)


def _cancel(task: Optional[asyncio.Task]) -> None:
    if task is not None and not task.done():
        task.cancel()


class CaptureStateMachine:
    """Coordinates camera, location and registry for one registration at a time."""

    def __init__(
        self,
        camera: CameraSessionManager,
        location: LocationProvider,
        registry: TrapRegistry,
        facing: str = 'environment',
        resolution: Tuple[int, int] = DEFAULT_RESOLUTION,
        location_timeout: Optional[float] = None,
        trap_model: str = 'Identifying...',
        fallback_on_commit: bool = True,
        clock: Callable[[], datetime.datetime] = _utcnow,
    ) -> None:
        self.camera = camera
        self.location = location
        self.registry = registry
        self.facing = facing
        self.resolution = resolution
        self.location_timeout = location_timeout
        self.trap_model = trap_model
        self.fallback_on_commit = fallback_on_commit
        self.clock = clock
        self.session: Optional[CaptureSession] = None
        self._acquiring: Optional[asyncio.Task] = None

    @property
    def state(self) -> CaptureState:
        if self.session is None:
            return CaptureState.IDLE
        return self.session.state

    async def open(self) -> CaptureSession:
        """Start a new session and wait for the camera stream.

        If an earlier session was closed while its camera was still being
        acquired, the new session waits for that acquisition to settle and
        be released first.

        Returns:
            The live session, in STREAMING state. Its location may still be None.

        Raises:
            SessionActive: if a session is already live.
            CameraUnavailable: if the camera cannot be acquired; the machine is IDLE again.
            SessionClosed: if ``close()`` was called while the camera was being acquired.
        """
        if self.state not in (CaptureState.IDLE, CaptureState.CLOSED):
            raise SessionActive(f'a capture session is already {self.state.value}')
        pending = self._acquiring
        if pending is not None and not pending.done():
            await asyncio.wait({pending})
            if self.state not in (CaptureState.IDLE, CaptureState.CLOSED):
                raise SessionActive(f'a capture session is already {self.state.value}')

        session = CaptureSession()
        self.session = session
        session.location_task = asyncio.create_task(self._track_location(session))
        acquiring = asyncio.create_task(self._acquire_for(session))
        self._acquiring = acquiring
        try:
            handle = await acquiring
        except BaseException:
            _cancel(session.location_task)
            if self.session is session and session.state is CaptureState.OPENING:
                self.session = None
            if acquiring.done() and not acquiring.cancelled() and acquiring.exception() is None:
                await self.camera.release(acquiring.result())
            raise

        session.stream_handle = handle
        session.state = CaptureState.STREAMING
        logger.info('Capture session streaming (%dx%d)', handle.width, handle.height)
        return session

    async def _acquire_for(self, session: CaptureSession) -> StreamHandle:
        """Acquire the camera for ``session``, releasing it again if the session closed meanwhile."""
        handle = await self.camera.acquire(self.facing, self.resolution)
        if session.state is CaptureState.CLOSED:
            await self.camera.release(handle)
            raise SessionClosed('session was closed while the camera was being acquired')
        return handle

    async def _track_location(self, session: CaptureSession) -> None:
        try:
            fix = await self.location.get_fix(self.location_timeout)
            is_fallback = self.location.last_fix_was_fallback
        except Exception:
            logger.exception('Location lookup failed; using fallback')
            fix, is_fallback = self.location.fallback, True
        if self.session is session and session.state is not CaptureState.CLOSED:
            session.location = fix
            session.location_is_fallback = is_fallback

    async def wait_for_location(self) -> Optional[Coordinate]:
        """Wait for the outstanding location fix, if any, and return the session's location.

        The wait is bounded by the location provider's timeout.
        """
        session = self.session
        if session is None:
            return None
        task = session.location_task
        if task is not None and not task.done():
            await asyncio.wait({task})
        return session.location

    async def capture(self) -> EncodedImage:
        """Take a still of the live stream and hold it for review.

        Raises:
            NotStreaming: if the session is not STREAMING.
        """
        session = self.session
        if session is None or session.state is not CaptureState.STREAMING:
            raise NotStreaming(f'cannot capture while {self.state.value}')
        try:
            snapshot = await self.camera.capture_frame(session.stream_handle)
        except Exception:
            logger.error('Frame capture failed; closing session')
            if self.session is session and session.state is not CaptureState.CLOSED:
                await self._teardown(session)
            raise
        if session.state is not CaptureState.STREAMING:
            raise SessionClosed('session was closed during capture')
        session.snapshot = snapshot
        session.state = CaptureState.REVIEWING
        logger.debug('Captured %d byte snapshot', snapshot.size_bytes)
        return snapshot

    def retake(self) -> None:
        """Discard the snapshot under review and return to the live stream."""
        session = self.session
        if session is None or session.state is not CaptureState.REVIEWING:
            raise InvalidTransition(f'cannot retake while {self.state.value}')
        session.snapshot = None
        session.state = CaptureState.STREAMING

    async def commit(self) -> Registration:
        """Register the trap shown in the snapshot and end the session.

        Raises:
            InvalidTransition: if the session is not REVIEWING.
            MissingData: if the snapshot or location is missing; the session stays REVIEWING.
        """
        session = self.session
        if session is None or session.state is not CaptureState.REVIEWING:
            raise InvalidTransition(f'cannot commit while {self.state.value}')
        if session.snapshot is None:
            raise MissingData('no snapshot to commit')
        self._resolve_pending_location(session)
        if session.location is None:
            raise MissingData('location fix is still pending')

        session.state = CaptureState.COMMITTING
        snapshot = session.snapshot
        try:
            record = TrapRecord(
                id=None,
                trap_model=self.trap_model,
                location=session.location,
                timestamp=self.clock(),
                battery=100,
                status=TrapStatus.ACTIVE,
            )
            trap_id = self.registry.append(record)
        finally:
            await self._teardown(session)

        logger.info('Registered trap %s at %s%s', trap_id, record.location,
                    ' (fallback location)' if session.location_is_fallback else '')
        return Registration(record=replace(record, id=trap_id), snapshot=snapshot)

    def _resolve_pending_location(self, session: CaptureSession) -> None:
        if session.location is not None or not self.fallback_on_commit:
            return
        _cancel(session.location_task)
        logger.warning('Location still pending at commit; using fallback %s', self.location.fallback)
        session.location = self.location.fallback
        session.location_is_fallback = True

    async def close(self) -> None:
        """End the session, releasing the camera. Idempotent."""
        session = self.session
        if session is None or session.state is CaptureState.CLOSED:
            return
        await self._teardown(session)
        logger.info('Capture session closed')

    async def _teardown(self, session: CaptureSession) -> None:
        _cancel(session.location_task)
        handle = session.stream_handle
        session.stream_handle = None
        session.snapshot = None
        session.state = CaptureState.CLOSED
        await self.camera.release(handle)

    @contextlib.asynccontextmanager
    async def session_scope(self) -> AsyncIterator[CaptureSession]:
        """Open a session for an ``async with`` block and close it on exit."""
        session = await self.open()
        try:
            yield session
        finally:
            await self.close()
