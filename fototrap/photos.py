"""
Read-only view over wildlife photos delivered by the traps.

Photos arrive from the traps already labelled by the classifier (or flagged
for manual classification). The station never edits them; it only correlates
them with registered traps for display.
"""

from __future__ import annotations

import datetime
from dataclasses import dataclass
from typing import Dict, Iterable, Tuple


@dataclass(frozen=True)
class WildlifePhoto:
    """A wildlife capture reported by a trap."""

    id: str
    species: str
    confidence: int  # 0-100, only meaningful when classified
    timestamp: datetime.datetime
    trap_id: str
    classified: bool


class PhotoFeed:
    """Immutable collection of wildlife photos."""

    def __init__(self, photos: Iterable[WildlifePhoto] = ()) -> None:
        self._photos: Tuple[WildlifePhoto, ...] = tuple(photos)

    def all(self) -> Tuple[WildlifePhoto, ...]:
        return self._photos

    def for_trap(self, trap_id: str) -> Tuple[WildlifePhoto, ...]:
        return tuple(p for p in self._photos if p.trap_id == trap_id)

    def classified(self) -> Tuple[WildlifePhoto, ...]:
        return tuple(p for p in self._photos if p.classified)

    def unclassified(self) -> Tuple[WildlifePhoto, ...]:
        return tuple(p for p in self._photos if not p.classified)

    def summary(self) -> Dict[str, int]:
        return {
            'total_photos': len(self._photos),
            'classified_photos': len(self.classified()),
        }

    def __len__(self) -> int:
        return len(self._photos)
