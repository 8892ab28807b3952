"""
Bounded-time location acquisition with a fallback coordinate.

Location is advisory to the registration workflow: a trap can always be
registered, at worst with the station's configured fallback position. The
provider races the positioning backend against a timer and answers with
whichever finishes first. A real fix that arrives before the timer always
wins; a timeout, a refusal or an empty reading all yield the fallback.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Optional

from ..errors import PositioningUnavailable
from .base import Coordinate, PositioningBackend


class LocationProvider:
    """One-shot location fixes that never block past their timeout."""

    def __init__(self, backend: PositioningBackend, fallback: Coordinate, timeout: float = 10.0) -> None:
        self.backend = backend
        self.fallback = fallback
        self.timeout = timeout
        self.last_fix_was_fallback = False
        self.logger = logging.getLogger(__name__)

    async def get_fix(self, timeout: Optional[float] = None) -> Coordinate:
        """Obtain a location fix, substituting the fallback on failure.

        Args:
            timeout: Seconds to wait for the backend. Defaults to the provider's timeout.

        Returns:
            The backend's coordinate, or the fallback coordinate if the backend
            timed out, refused, or had no reading.
        """
        timeout = self.timeout if timeout is None else timeout
        try:
            fix = await asyncio.wait_for(self.backend.request_fix(), timeout)
        except asyncio.TimeoutError:
            self.logger.warning('No location fix within %.1fs; using fallback %s', timeout, self.fallback)
            return self._use_fallback()
        except PositioningUnavailable as exc:
            self.logger.warning('Positioning unavailable (%s); using fallback %s', exc, self.fallback)
            return self._use_fallback()

        if fix is None:
            self.logger.warning('Positioning returned no reading; using fallback %s', self.fallback)
            return self._use_fallback()

        self.last_fix_was_fallback = False
        self.logger.debug('Location fix %s', fix)
        return fix

    def _use_fallback(self) -> Coordinate:
        self.last_fix_was_fallback = True
        return self.fallback
