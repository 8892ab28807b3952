"""
Mock positioning backend for development and testing on machines without GPS.

The backend can answer with a fixed coordinate, jitter it slightly to look like
a real receiver, answer late, refuse the request, or hang forever. The last
three modes reproduce what a phone or handheld positioning service does in the
field when the sky is obstructed or location permission is off.

Usage:

```python
from fototrap.location.mock_location import MockPositioning
gps = MockPositioning(Coordinate(70.6638, 147.9152), delay=0.5)
fix = await gps.request_fix()
```
"""

from __future__ import annotations

import asyncio
import random
from typing import Optional

from ..errors import PositioningUnavailable
from .base import Coordinate, PositioningBackend


class MockPositioning(PositioningBackend):
    """Mock positioning backend returning a configurable coordinate."""

    def __init__(
        self,
        coordinate: Coordinate,
        delay: float = 0.0,
        jitter: float = 0.0,
        denied: bool = False,
        hang: bool = False,
    ) -> None:
        self.coordinate = coordinate
        self.delay = delay
        self.jitter = jitter
        self.denied = denied
        self.hang = hang
        self.requests = 0

    async def request_fix(self) -> Optional[Coordinate]:
        self.requests += 1
        if self.hang:
            await asyncio.get_running_loop().create_future()
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.denied:
            raise PositioningUnavailable('location permission denied')
        if not self.jitter:
            return self.coordinate
        return Coordinate(
            lat=round(self.coordinate.lat + random.uniform(-self.jitter, self.jitter), 6),
            lng=round(self.coordinate.lng + random.uniform(-self.jitter, self.jitter), 6),
        )
