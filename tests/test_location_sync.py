"""
Rider location sync loop tests.

The API client is an ``AsyncMock``; the device is a scripted provider.
"""

from __future__ import annotations

import asyncio

import pytest

from dispatch_engine.domain.entities import Location
from dispatch_engine.domain.enums import OrderCategory
from dispatch_engine.domain.location_filter import SignificantChangeFilter
from dispatch_engine.exceptions import BackendError, LocationUnavailable
from dispatch_engine.infrastructure.location_provider import (
    FixedLocationProvider,
    LocationProvider,
)
from dispatch_engine.workers.location_sync import LocationSyncLoop
from tests.fake_backend import RIDER_ID

HOME = Location(3.1390, 101.6869)
AWAY = Location(3.1570, 101.7123)


class ScriptedProvider(LocationProvider):
    """Returns the scripted fixes in order, repeating the last one."""

    def __init__(self, *fixes):
        self.fixes = list(fixes)
        self.calls = 0

    async def current_location(self) -> Location:
        self.calls += 1
        fix = self.fixes.pop(0) if len(self.fixes) > 1 else self.fixes[0]
        if isinstance(fix, Exception):
            raise fix
        return fix


class SlowProvider(LocationProvider):
    def __init__(self, location: Location, delay: float = 0.01):
        self.location = location
        self.delay = delay
        self.active = 0
        self.max_active = 0

    async def current_location(self) -> Location:
        self.active += 1
        self.max_active = max(self.max_active, self.active)
        try:
            await asyncio.sleep(self.delay)
        finally:
            self.active -= 1
        return self.location


def make_loop(mock_api, provider, interval=0.01) -> LocationSyncLoop:
    return LocationSyncLoop(
        mock_api, provider, RIDER_ID, SignificantChangeFilter(10), interval
    )


class TestTimerTick:
    @pytest.mark.asyncio
    async def test_first_fix_is_uploaded(self, mock_api):
        loop = make_loop(mock_api, ScriptedProvider(HOME))
        await loop.tick()
        mock_api.upsert_rider_location.assert_awaited_once_with(
            RIDER_ID, HOME, OrderCategory.FOOD_DELIVERY
        )
        assert loop.last_uploaded.location == HOME

    @pytest.mark.asyncio
    async def test_unchanged_fix_is_not_uploaded_again(self, mock_api):
        loop = make_loop(mock_api, ScriptedProvider(HOME))
        await loop.tick()
        await loop.tick()
        assert mock_api.upsert_rider_location.await_count == 1

    @pytest.mark.asyncio
    async def test_significant_move_is_uploaded(self, mock_api):
        loop = make_loop(mock_api, ScriptedProvider(HOME, AWAY))
        await loop.tick()
        await loop.tick()
        assert [c.args[1] for c in mock_api.upsert_rider_location.await_args_list] == [
            HOME,
            AWAY,
        ]

    @pytest.mark.asyncio
    async def test_acquisition_failure_skips_tick(self, mock_api):
        provider = ScriptedProvider(LocationUnavailable("permission denied"), HOME)
        loop = make_loop(mock_api, provider)
        await loop.tick()  # must not raise
        mock_api.upsert_rider_location.assert_not_awaited()
        assert loop.filter.last_reported is None

        await loop.tick()
        mock_api.upsert_rider_location.assert_awaited_once_with(
            RIDER_ID, HOME, OrderCategory.FOOD_DELIVERY
        )

    @pytest.mark.asyncio
    async def test_upload_failure_rolls_back_filter(self, mock_api):
        mock_api.upsert_rider_location.side_effect = [BackendError("503", 503), None]
        loop = make_loop(mock_api, ScriptedProvider(HOME))

        await loop.tick()  # must not raise
        assert loop.filter.last_reported is None
        assert loop.last_uploaded is None

        await loop.tick()  # same fix is retried
        assert mock_api.upsert_rider_location.await_count == 2
        assert loop.filter.last_reported == HOME


class TestManualTrigger:
    @pytest.mark.asyncio
    async def test_returns_uploaded_location(self, mock_api):
        loop = make_loop(mock_api, FixedLocationProvider(HOME))
        uploaded = await loop.update_now()
        assert uploaded.rider_id == RIDER_ID
        assert uploaded.location == HOME

    @pytest.mark.asyncio
    async def test_passes_through_filter(self, mock_api):
        loop = make_loop(mock_api, FixedLocationProvider(HOME))
        await loop.tick()
        assert await loop.update_now() is None
        assert mock_api.upsert_rider_location.await_count == 1

    @pytest.mark.asyncio
    async def test_acquisition_failure_surfaces(self, mock_api):
        loop = make_loop(mock_api, ScriptedProvider(LocationUnavailable("no fix")))
        with pytest.raises(LocationUnavailable):
            await loop.update_now()

    @pytest.mark.asyncio
    async def test_upload_failure_surfaces_and_rolls_back(self, mock_api):
        mock_api.upsert_rider_location.side_effect = BackendError("timeout")
        loop = make_loop(mock_api, FixedLocationProvider(HOME))
        with pytest.raises(BackendError):
            await loop.update_now()
        assert loop.filter.last_reported is None


class TestScheduling:
    @pytest.mark.asyncio
    async def test_ticks_and_manual_trigger_never_overlap(self, mock_api):
        provider = SlowProvider(HOME)
        loop = make_loop(mock_api, provider)
        await asyncio.gather(loop.tick(), loop.update_now(), loop.tick())
        assert provider.max_active == 1
        assert mock_api.upsert_rider_location.await_count == 1

    @pytest.mark.asyncio
    async def test_online_runs_periodically_and_offline_stops(self, mock_api):
        provider = ScriptedProvider(HOME)
        loop = make_loop(mock_api, provider, interval=0.01)

        await loop.set_online(True)
        await asyncio.sleep(0.06)
        assert loop.running
        await loop.set_online(False)

        assert not loop.running
        calls = provider.calls
        assert calls >= 2
        await asyncio.sleep(0.05)
        assert provider.calls == calls

    @pytest.mark.asyncio
    async def test_offline_cancels_a_tick_in_flight(self, mock_api):
        provider = SlowProvider(HOME, delay=10)
        loop = make_loop(mock_api, provider)
        await loop.set_online(True)
        await asyncio.sleep(0.01)
        assert provider.active == 1

        await asyncio.wait_for(loop.set_online(False), timeout=1)
        assert provider.active == 0
        assert not loop.running
        mock_api.upsert_rider_location.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_upload_failures_do_not_stop_the_loop(self, mock_api):
        mock_api.upsert_rider_location.side_effect = BackendError("500", 500)
        loop = make_loop(mock_api, FixedLocationProvider(HOME), interval=0.01)
        async with loop:
            await asyncio.sleep(0.05)
            assert loop.running
        # every tick retried the same unreported fix
        assert mock_api.upsert_rider_location.await_count >= 2
        assert not loop.running


class TestPetTaxiDriver:
    @staticmethod
    def driver_loop(mock_api) -> LocationSyncLoop:
        return LocationSyncLoop(
            mock_api,
            FixedLocationProvider(HOME),
            RIDER_ID,
            SignificantChangeFilter(10),
            10,
            category=OrderCategory.PET_TAXI,
        )

    @pytest.mark.asyncio
    async def test_going_online_and_offline_is_reported(self, mock_api):
        loop = self.driver_loop(mock_api)

        await loop.set_online(True)
        assert loop.running
        mock_api.update_driver_status.assert_awaited_once_with(RIDER_ID, True)

        await loop.set_online(False)
        assert not loop.running
        mock_api.update_driver_status.assert_awaited_with(RIDER_ID, False)
        assert mock_api.update_driver_status.await_count == 2

    @pytest.mark.asyncio
    async def test_driver_fix_goes_to_the_driver_endpoint(self, mock_api):
        loop = self.driver_loop(mock_api)
        await loop.update_now()
        mock_api.upsert_rider_location.assert_awaited_once_with(
            RIDER_ID, HOME, OrderCategory.PET_TAXI
        )

    @pytest.mark.asyncio
    async def test_food_riders_do_not_report_availability(self, mock_api):
        loop = make_loop(mock_api, FixedLocationProvider(HOME), interval=10)
        await loop.set_online(True)
        await loop.set_online(False)
        mock_api.update_driver_status.assert_not_awaited()
