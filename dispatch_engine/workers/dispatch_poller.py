"""
Dispatch Polling Loop
=====================

Keeps a tracking view current without manual refresh and stops by itself
once the order can no longer change.

Lifecycle
---------
* ``open()``  -- fetch the order once (fatal on failure: nothing can be
  tracked without it), the rider profile if one is assigned, and the
  rider's last known position.
* ``tick()``  -- every ``DISPATCH_POLL_INTERVAL_SECONDS`` (default 10 s):
  refetch the order; terminal -> ``finish()`` and poll no more; otherwise
  refetch the counterpart's location.  Errors are logged and the next tick
  retries; a failed location fetch keeps the previous position and still
  publishes the refreshed order.
* ``stop()``  -- on view teardown.  ``async with`` does open/start/stop.

The customer uses it with ``track_location=True`` to follow the rider; the
rider uses ``track_location=False`` to follow an accepted order until it is
delivered or cancelled.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from typing import Callable, Optional

from dispatch_engine.api.client import DispatchApiClient
from dispatch_engine.api.schemas import RiderProfile
from dispatch_engine.config import settings
from dispatch_engine.domain.entities import Order, OrderId, RiderLocation
from dispatch_engine.domain.enums import OrderCategory
from dispatch_engine.exceptions import BackendError
from dispatch_engine.workers.periodic import PeriodicTask

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TrackingSnapshot:
    order: Order
    rider: Optional[RiderProfile] = None
    rider_location: Optional[RiderLocation] = None

    @property
    def is_terminal(self) -> bool:
        return self.order.is_terminal


class DispatchPollingLoop(PeriodicTask):
    name = "dispatch-poller"

    def __init__(
        self,
        api: DispatchApiClient,
        order_id: OrderId,
        category: OrderCategory = OrderCategory.FOOD_DELIVERY,
        track_location: bool = True,
        interval_seconds: Optional[float] = None,
        on_update: Optional[Callable[[TrackingSnapshot], None]] = None,
    ):
        super().__init__(
            settings.dispatch_poll_interval_seconds
            if interval_seconds is None
            else interval_seconds
        )
        self.api = api
        self.order_id = order_id
        self.category = category
        self.track_location = track_location
        self.on_update = on_update
        self.snapshot: Optional[TrackingSnapshot] = None
        self.polls = 0

    async def open(self) -> TrackingSnapshot:
        order = (await self.api.fetch_order(self.order_id, self.category)).to_entity()
        rider = await self._load_rider(order.rider_id)
        self.snapshot = TrackingSnapshot(order=order, rider=rider)
        if self.track_location and not order.is_terminal:
            try:
                await self._refresh_location()
            except BackendError:
                logger.exception("Initial location fetch for order %s failed", self.order_id)
        self._publish()
        return self.snapshot

    def start(self, interval_seconds: Optional[float] = None) -> None:
        if self.snapshot is None:
            raise RuntimeError("open() must succeed before polling starts")
        if self.snapshot.is_terminal:
            logger.info(
                "Order %s already %s; not polling",
                self.order_id,
                self.snapshot.order.status.value,
            )
            return
        super().start(interval_seconds)

    async def __aenter__(self):
        await self.open()
        self.start()
        return self

    async def tick(self) -> None:
        assert self.snapshot is not None
        if self.snapshot.is_terminal:
            self.finish()
            return
        self.polls += 1
        try:
            await self._refresh_order()
        except BackendError:
            logger.exception("Poll %d for order %s failed", self.polls, self.order_id)
            return

        if self.snapshot.is_terminal:
            logger.info(
                "Order %s reached %s; polling stopped",
                self.order_id,
                self.snapshot.order.status.value,
            )
            self.finish()
        elif self.track_location:
            try:
                await self._refresh_location()
            except BackendError:
                # the fresh order is still published with the last known position
                logger.exception(
                    "Location poll %d for order %s failed", self.polls, self.order_id
                )
        self._publish()

    # ── Internals ─────────────────────────────────────────────────────

    async def _refresh_order(self) -> None:
        assert self.snapshot is not None
        order = (await self.api.fetch_order(self.order_id, self.category)).to_entity()
        rider = self.snapshot.rider
        if order.rider_id != self.snapshot.order.rider_id or (
            rider is None and order.rider_id is not None
        ):
            rider = await self._load_rider(order.rider_id)
        self.snapshot = replace(self.snapshot, order=order, rider=rider)

    async def _refresh_location(self) -> None:
        assert self.snapshot is not None
        rider_id = self.snapshot.order.rider_id
        if rider_id is None:
            return
        location = await self.api.fetch_rider_location(rider_id, self.category)
        if location is None:
            logger.debug("No valid location available for rider %s", rider_id)
        self.snapshot = replace(self.snapshot, rider_location=location)

    async def _load_rider(self, rider_id: Optional[int]) -> Optional[RiderProfile]:
        if rider_id is None:
            return None
        try:
            return await self.api.fetch_rider_profile(rider_id)
        except BackendError:
            logger.exception("Could not load profile of rider %s", rider_id)
            return None

    def _publish(self) -> None:
        if self.on_update is None or self.snapshot is None:
            return
        try:
            self.on_update(self.snapshot)
        except Exception:
            logger.exception("Tracking update callback failed")
