"""Customer / rider tracking loop tests (mocked API client)."""

from __future__ import annotations

import asyncio

import pytest

from dispatch_engine.api.schemas import RiderProfile
from dispatch_engine.domain.entities import Location, RiderLocation
from dispatch_engine.domain.enums import OrderStatus
from dispatch_engine.exceptions import BackendError
from dispatch_engine.workers.dispatch_poller import DispatchPollingLoop
from tests.fake_backend import RIDER_ID, order_response

RIDER_FIX = RiderLocation(rider_id=RIDER_ID, location=Location(3.15, 101.7))


def make_poller(mock_api, **kwargs) -> DispatchPollingLoop:
    kwargs.setdefault("interval_seconds", 0.01)
    return DispatchPollingLoop(mock_api, 1, **kwargs)


@pytest.fixture
def tracked_api(mock_api):
    mock_api.fetch_rider_profile.return_value = RiderProfile(id=RIDER_ID, name="Aiman")
    mock_api.fetch_rider_location.return_value = RIDER_FIX
    return mock_api


class TestOpen:
    @pytest.mark.asyncio
    async def test_loads_order_rider_and_location(self, tracked_api):
        tracked_api.fetch_order.return_value = order_response(
            status="RIDER_ACCEPTED", rider_id=RIDER_ID
        )
        snapshot = await make_poller(tracked_api).open()
        assert snapshot.order.status is OrderStatus.RIDER_ACCEPTED
        assert snapshot.rider.name == "Aiman"
        assert snapshot.rider_location == RIDER_FIX

    @pytest.mark.asyncio
    async def test_no_rider_yet(self, tracked_api):
        tracked_api.fetch_order.return_value = order_response(status="PENDING")
        snapshot = await make_poller(tracked_api).open()
        assert snapshot.rider is None
        assert snapshot.rider_location is None
        tracked_api.fetch_rider_profile.assert_not_awaited()
        tracked_api.fetch_rider_location.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_detail_failure_is_fatal(self, tracked_api):
        tracked_api.fetch_order.side_effect = BackendError("HTTP 500", 500)
        poller = make_poller(tracked_api)
        with pytest.raises(BackendError):
            await poller.open()
        with pytest.raises(RuntimeError):
            poller.start()

    @pytest.mark.asyncio
    async def test_profile_failure_is_not_fatal(self, tracked_api):
        tracked_api.fetch_order.return_value = order_response(
            status="ACCEPTED", rider_id=RIDER_ID
        )
        tracked_api.fetch_rider_profile.side_effect = BackendError("HTTP 404", 404)
        snapshot = await make_poller(tracked_api).open()
        assert snapshot.rider is None
        assert snapshot.rider_location == RIDER_FIX


class TestTick:
    @pytest.mark.asyncio
    async def test_missing_location_is_reported_as_none(self, tracked_api):
        tracked_api.fetch_order.return_value = order_response(
            status="ON_THE_WAY", rider_id=RIDER_ID
        )
        tracked_api.fetch_rider_location.side_effect = [RIDER_FIX, None]
        poller = make_poller(tracked_api)
        await poller.open()
        await poller.tick()
        assert poller.snapshot.rider_location is None

    @pytest.mark.asyncio
    async def test_failed_poll_is_swallowed_and_retried(self, tracked_api):
        tracked_api.fetch_order.side_effect = [
            order_response(status="ACCEPTED", rider_id=RIDER_ID),
            BackendError("timeout"),
            order_response(status="ON_THE_WAY", rider_id=RIDER_ID),
        ]
        poller = make_poller(tracked_api)
        await poller.open()
        await poller.tick()
        assert poller.snapshot.order.status is OrderStatus.ACCEPTED
        await poller.tick()
        assert poller.snapshot.order.status is OrderStatus.ON_THE_WAY

    @pytest.mark.asyncio
    async def test_location_failure_still_publishes_new_status(self, tracked_api):
        tracked_api.fetch_order.side_effect = [
            order_response(status="RIDER_ACCEPTED", rider_id=RIDER_ID),
            order_response(status="ON_THE_WAY", rider_id=RIDER_ID),
        ]
        tracked_api.fetch_rider_location.side_effect = [
            RIDER_FIX,
            BackendError("HTTP 502", 502),
        ]
        seen = []
        poller = make_poller(tracked_api, on_update=seen.append)
        await poller.open()
        await poller.tick()

        assert [s.order.status for s in seen] == [
            OrderStatus.RIDER_ACCEPTED,
            OrderStatus.ON_THE_WAY,
        ]
        # the last known position is kept
        assert seen[-1].rider_location == RIDER_FIX

    @pytest.mark.asyncio
    async def test_late_rider_assignment_loads_profile(self, tracked_api):
        tracked_api.fetch_order.side_effect = [
            order_response(status="PENDING"),
            order_response(status="ACCEPTED", rider_id=RIDER_ID),
        ]
        poller = make_poller(tracked_api)
        await poller.open()
        await poller.tick()
        tracked_api.fetch_rider_profile.assert_awaited_once_with(RIDER_ID)
        assert poller.snapshot.rider.id == RIDER_ID
        assert poller.snapshot.rider_location == RIDER_FIX

    @pytest.mark.asyncio
    async def test_rider_side_does_not_fetch_locations(self, tracked_api):
        tracked_api.fetch_order.return_value = order_response(
            status="RIDER_ACCEPTED", rider_id=RIDER_ID
        )
        poller = make_poller(tracked_api, track_location=False)
        await poller.open()
        await poller.tick()
        tracked_api.fetch_rider_location.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_callback_errors_do_not_break_polling(self, tracked_api):
        tracked_api.fetch_order.return_value = order_response(status="ACCEPTED")
        seen = []

        def on_update(snapshot):
            seen.append(snapshot.order.status)
            raise RuntimeError("view is gone")

        poller = make_poller(tracked_api, on_update=on_update)
        await poller.open()
        await poller.tick()
        assert seen == [OrderStatus.ACCEPTED, OrderStatus.ACCEPTED]


class TestTermination:
    @pytest.mark.asyncio
    async def test_no_polls_after_delivered(self, tracked_api):
        tracked_api.fetch_order.side_effect = [
            order_response(status="ACCEPTED", rider_id=RIDER_ID),  # open
            order_response(status="ACCEPTED", rider_id=RIDER_ID),  # tick 1
            order_response(status="DELIVERED", rider_id=RIDER_ID),  # tick 2
        ]
        poller = make_poller(tracked_api)
        await poller.open()
        poller.start()
        await asyncio.wait_for(poller.wait_closed(), timeout=1)

        assert not poller.running
        assert poller.snapshot.order.status is OrderStatus.DELIVERED
        assert tracked_api.fetch_order.await_count == 3
        # open + tick 1 only; the terminal tick fetches no location
        assert tracked_api.fetch_rider_location.await_count == 2

        await asyncio.sleep(0.05)
        assert tracked_api.fetch_order.await_count == 3

    @pytest.mark.asyncio
    async def test_already_terminal_order_is_never_polled(self, tracked_api):
        tracked_api.fetch_order.return_value = order_response(status="CANCELLED")
        poller = make_poller(tracked_api)
        await poller.open()
        poller.start()
        assert not poller.running
        await asyncio.sleep(0.03)
        assert tracked_api.fetch_order.await_count == 1

    @pytest.mark.asyncio
    async def test_teardown_stops_polling(self, tracked_api):
        tracked_api.fetch_order.return_value = order_response(
            status="ON_THE_WAY", rider_id=RIDER_ID
        )
        async with make_poller(tracked_api) as poller:
            await asyncio.sleep(0.03)
            assert poller.running
        assert not poller.running
        polls = tracked_api.fetch_order.await_count
        await asyncio.sleep(0.03)
        assert tracked_api.fetch_order.await_count == polls
