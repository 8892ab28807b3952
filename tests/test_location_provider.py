"""Unit tests for bounded-time location acquisition."""

import asyncio
import time

import pytest

from conftest import FALLBACK, REAL_FIX
from fototrap.location.mock_location import MockPositioning
from fototrap.location.provider import LocationProvider


class TestGetFix:

    @pytest.mark.asyncio
    async def test_real_fix(self):
        provider = LocationProvider(MockPositioning(REAL_FIX), fallback=FALLBACK, timeout=1.0)

        assert await provider.get_fix() == REAL_FIX
        assert provider.last_fix_was_fallback is False

    @pytest.mark.asyncio
    async def test_real_fix_before_timer_wins(self):
        provider = LocationProvider(MockPositioning(REAL_FIX, delay=0.02), fallback=FALLBACK)

        assert await provider.get_fix(timeout=1.0) == REAL_FIX

    @pytest.mark.asyncio
    async def test_hanging_backend_yields_fallback_within_timeout(self):
        provider = LocationProvider(MockPositioning(REAL_FIX, hang=True), fallback=FALLBACK)

        start = time.monotonic()
        fix = await provider.get_fix(timeout=0.05)
        elapsed = time.monotonic() - start

        assert fix == FALLBACK
        assert provider.last_fix_was_fallback is True
        assert elapsed < 0.5

    @pytest.mark.asyncio
    async def test_slow_backend_yields_fallback(self):
        provider = LocationProvider(MockPositioning(REAL_FIX, delay=1.0), fallback=FALLBACK)

        assert await provider.get_fix(timeout=0.05) == FALLBACK

    @pytest.mark.asyncio
    async def test_denied_yields_fallback(self, caplog):
        provider = LocationProvider(MockPositioning(REAL_FIX, denied=True), fallback=FALLBACK)

        with caplog.at_level('WARNING'):
            fix = await provider.get_fix(timeout=1.0)

        assert fix == FALLBACK
        assert 'using fallback' in caplog.text

    @pytest.mark.asyncio
    async def test_empty_reading_yields_fallback(self):
        class NoReading(MockPositioning):
            async def request_fix(self):
                return None

        provider = LocationProvider(NoReading(REAL_FIX), fallback=FALLBACK)

        assert await provider.get_fix(timeout=1.0) == FALLBACK

    @pytest.mark.asyncio
    async def test_uses_default_timeout(self):
        provider = LocationProvider(MockPositioning(REAL_FIX, hang=True), fallback=FALLBACK, timeout=0.05)

        assert await provider.get_fix() == FALLBACK

    @pytest.mark.asyncio
    async def test_cancellation_propagates(self):
        provider = LocationProvider(MockPositioning(REAL_FIX, hang=True), fallback=FALLBACK, timeout=10)
        task = asyncio.create_task(provider.get_fix())
        await asyncio.sleep(0.01)

        task.cancel()

        with pytest.raises(asyncio.CancelledError):
            await task


@pytest.mark.asyncio
async def test_mock_jitter_stays_close():
    gps = MockPositioning(REAL_FIX, jitter=0.001)

    fix = await gps.request_fix()

    assert abs(fix.lat - REAL_FIX.lat) <= 0.001
    assert abs(fix.lng - REAL_FIX.lng) <= 0.001
    assert gps.requests == 1
