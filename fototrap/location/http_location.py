"""
HTTP positioning backend.

Field tablets and GNSS dongles commonly expose the current position through a
small local HTTP endpoint (gpsd bridges, companion apps). This backend issues a
single GET against that endpoint and expects a JSON body with ``lat``/``lng``
(or ``latitude``/``longitude``) in degrees.

The request itself is blocking, so it runs in a worker thread; the caller's
timeout is enforced by :class:`fototrap.location.provider.LocationProvider`.
The HTTP timeout below only keeps the worker thread from lingering.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Dict, Optional

import requests

from ..errors import PositioningUnavailable
from .base import Coordinate, PositioningBackend


class HttpPositioning(PositioningBackend):
    """Positioning backend backed by a local HTTP endpoint."""

    def __init__(self, url: str, timeout: float = 10.0) -> None:
        self.url = url
        self.timeout = timeout
        self.session = requests.Session()
        self.logger = logging.getLogger(__name__)

    def _fetch(self) -> Optional[Coordinate]:
        try:
            response = self.session.get(self.url, timeout=self.timeout)
            if response.status_code in (401, 403):
                raise PositioningUnavailable(f'positioning access denied ({response.status_code})')
            response.raise_for_status()
            data: Dict[str, Any] = response.json()
        except requests.RequestException as exc:
            raise PositioningUnavailable(f'positioning request failed: {exc}') from exc
        except ValueError as exc:
            raise PositioningUnavailable(f'positioning response is not JSON: {exc}') from exc
        return self._parse(data)

    def _parse(self, data: Dict[str, Any]) -> Optional[Coordinate]:
        """Extract a coordinate from the endpoint's JSON body."""
        lat = data.get('lat', data.get('latitude'))
        lng = data.get('lng', data.get('longitude'))
        if lat is None or lng is None:
            self.logger.debug('Positioning response has no fix yet: %s', data)
            return None
        try:
            return Coordinate(lat=float(lat), lng=float(lng))
        except (TypeError, ValueError) as exc:
            raise PositioningUnavailable(f'malformed coordinate in response: {data}') from exc

    async def request_fix(self) -> Optional[Coordinate]:
        return await asyncio.to_thread(self._fetch)
