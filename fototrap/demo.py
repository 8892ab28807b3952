"""
Demo fleet used for field demonstrations and UI work.

Three traps at the tundra study site and four wildlife photos taken
by them on 2024-12-20. Enabled with ``seed_demo_data: true`` in the station
configuration.
"""

from __future__ import annotations

import datetime

from .location.base import Coordinate
from .photos import PhotoFeed, WildlifePhoto
from .registry import TrapRecord, TrapRegistry, TrapStatus


def _at(hour: int, minute: int) -> datetime.datetime:
    return datetime.datetime(2024, 12, 20, hour, minute, tzinfo=datetime.timezone.utc)


DEMO_TRAPS = [
    TrapRecord(
        id=None,
        trap_model='Bushnell Trophy Cam',
        location=Coordinate(70.6632, 147.9118),
        timestamp=_at(14, 30),
        battery=85,
        status=TrapStatus.ACTIVE,
    ),
    TrapRecord(
        id=None,
        trap_model='Reconyx HyperFire',
        location=Coordinate(70.6644, 147.9205),
        timestamp=_at(15, 12),
        battery=32,
        status=TrapStatus.LOW_BATTERY,
    ),
    TrapRecord(
        id=None,
        trap_model='Browning Strike Force',
        location=Coordinate(70.6621, 147.9089),
        timestamp=_at(16, 45),
        battery=68,
        status=TrapStatus.ACTIVE,
    ),
]


def seed_registry(registry: TrapRegistry) -> None:
    """Append the demo traps in order so they receive ids '1', '2', '3'.

    The registry lists newest first, so the last demo trap ends up on top.
    """
    for record in DEMO_TRAPS:
        registry.append(record)


def wildlife_feed() -> PhotoFeed:
    """Photos reported by the demo traps."""
    return PhotoFeed([
        WildlifePhoto('w1', 'Polar bear', 94, _at(8, 15), '1', True),
        WildlifePhoto('w2', 'Arctic fox', 89, _at(11, 30), '2', True),
        WildlifePhoto('w3', 'Needs classification', 0, _at(14, 22), '3', False),
        WildlifePhoto('w4', 'Walrus', 91, _at(16, 5), '1', True),
    ])
