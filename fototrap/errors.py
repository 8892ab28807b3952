"""
Exceptions raised by the FotoTrap capture workflow.

Every failure the operator can trigger derives from ``CaptureError`` so the
station controller can report it and keep running. ``PositioningUnavailable``
is internal to the location layer: ``LocationProvider.get_fix`` turns it into
the fallback coordinate and never lets it reach the caller.
"""


class CaptureError(Exception):
    """Base class for capture workflow errors."""


class CameraUnavailable(CaptureError):
    """No camera device is present, it is busy, or access was denied."""


class InvalidHandle(CaptureError):
    """A stream handle was released, never acquired, or belongs to another camera."""


class NotStreaming(CaptureError):
    """A frame was requested while no live stream is open."""


class MissingData(CaptureError):
    """Commit was attempted without both a snapshot and a location."""


class InvalidTransition(CaptureError):
    """The requested event is not valid in the current session state."""


class SessionActive(InvalidTransition):
    """A capture session is already live."""


class SessionClosed(CaptureError):
    """The session was closed while the camera was still being acquired."""


class PositioningUnavailable(Exception):
    """The positioning service is unavailable or permission was denied."""
