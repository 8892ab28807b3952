"""
Positioning backend abstractions for the FotoTrap field station.

A positioning backend wraps the host device's positioning service and returns
a single location reading on request. Backends may take arbitrarily long,
refuse the request, or never answer at all: bounding the wait and choosing a
fallback is the job of :class:`fototrap.location.provider.LocationProvider`,
not of the backend.

Implementations may use mock data for development/testing or talk to a real
positioning service (see :mod:`fototrap.location.http_location`).
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional


@dataclass(frozen=True)
class Coordinate:
    """A geographic position in floating-point degrees."""

    lat: float
    lng: float

    def __str__(self) -> str:
        return f'{self.lat:.4f}, {self.lng:.4f}'


class PositioningBackend:
    """Abstract base class for positioning backends."""

    async def request_fix(self) -> Optional[Coordinate]:
        """Request a one-shot location reading.

        Returns:
            The current coordinate, or None if the service produced no reading.

        Raises:
            PositioningUnavailable: if the service is missing or access was denied.
            NotImplementedError: if not implemented by subclass.
        """
        raise NotImplementedError('request_fix must be implemented by subclasses')
