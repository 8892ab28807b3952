"""
In-memory registry of camera traps.

The registry is append-only: the capture workflow adds records and display
code (list view, map view, status summary) reads them. Records are never
updated or removed here; battery decay and offline detection are tracked by
whatever feeds the fleet's telemetry, not by this store.

Reads return an immutable snapshot, so a list view can iterate while an
operator commits a new registration.
"""

from __future__ import annotations

import datetime
import enum
import itertools
import threading
from collections import deque
from dataclasses import dataclass, replace
from typing import Deque, Dict, Optional, Tuple

from .location.base import Coordinate


class TrapStatus(enum.Enum):
    ACTIVE = 'active'
    LOW_BATTERY = 'low-battery'
    OFFLINE = 'offline'


@dataclass(frozen=True)
class TrapRecord:
    """A registered physical camera trap."""

    id: Optional[str]
    trap_model: str
    location: Coordinate
    timestamp: datetime.datetime
    battery: int = 100
    status: TrapStatus = TrapStatus.ACTIVE

    def __post_init__(self) -> None:
        if not 0 <= self.battery <= 100:
            raise ValueError(f'battery must be between 0 and 100, got {self.battery}')


class TrapRegistry:
    """Append-only, newest-first store of trap records."""

    def __init__(self) -> None:
        self._records: Deque[TrapRecord] = deque()
        self._ids = itertools.count(1)
        self._lock = threading.Lock()

    def append(self, record: TrapRecord) -> str:
        """Store a record under a fresh id.

        Any id already set on ``record`` is ignored.

        Returns:
            The id assigned to the stored record.
        """
        with self._lock:
            trap_id = str(next(self._ids))
            self._records.appendleft(replace(record, id=trap_id))
        return trap_id

    def list(self) -> Tuple[TrapRecord, ...]:
        """Return all records, newest first."""
        with self._lock:
            return tuple(self._records)

    def get(self, trap_id: str) -> Optional[TrapRecord]:
        for record in self.list():
            if record.id == trap_id:
                return record
        return None

    def __len__(self) -> int:
        return len(self._records)

    def fleet_summary(self) -> Dict[str, int]:
        """Counts for the fleet overview: total and active traps, mean battery."""
        records = self.list()
        if not records:
            return {'total_traps': 0, 'active_traps': 0, 'average_battery': 0}
        return {
            'total_traps': len(records),
            'active_traps': sum(1 for r in records if r.status is TrapStatus.ACTIVE),
            'average_battery': round(sum(r.battery for r in records) / len(records)),
        }
