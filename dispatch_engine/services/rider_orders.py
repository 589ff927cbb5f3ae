"""
Rider-side order actions: work list, status changes, history and earnings.

Status changes are checked against ``OrderStatusMachine`` with the RIDER
role and the order's category before any request is built, so a UI bug
cannot send e.g. PENDING -> DELIVERED.  Pet-taxi drivers accept a PENDING
ride through the accept endpoint; every later step goes through the
category's status-update route.
"""

from __future__ import annotations

import logging
from typing import Optional

from dispatch_engine.api.client import DispatchApiClient
from dispatch_engine.domain.entities import Order
from dispatch_engine.domain.enums import (
    ACTIVE_RIDER_STATUSES,
    COMMIT_STATUS,
    OrderCategory,
    OrderStatus,
    Role,
)
from dispatch_engine.domain.pricing import total_rider_earnings
from dispatch_engine.domain.state_machine import OrderStatusMachine
from dispatch_engine.exceptions import BackendError, LocationUnavailable
from dispatch_engine.workers.location_sync import LocationSyncLoop

logger = logging.getLogger(__name__)


class RiderOrderDesk:
    def __init__(
        self,
        api: DispatchApiClient,
        location_sync: Optional[LocationSyncLoop] = None,
        category: OrderCategory = OrderCategory.FOOD_DELIVERY,
    ):
        self.api = api
        self.location_sync = location_sync
        self.category = category

    async def active_orders(self) -> list[Order]:
        orders = await self.api.fetch_rider_orders()
        return [o.to_entity() for o in orders if o.status in ACTIVE_RIDER_STATUSES]

    async def open_rides(self) -> list[Order]:
        """Pet-taxi rides still waiting for a driver or in progress."""
        return [r.to_entity() for r in await self.api.fetch_open_rides()]

    async def update_status(self, order: Order, target: OrderStatus) -> Order:
        OrderStatusMachine.ensure_transition(
            order.status, target, Role.RIDER, order.category
        )
        rider_id = (await self.api.session()).require_rider_id()

        if order.category is OrderCategory.PET_TAXI and target is OrderStatus.ACCEPTED:
            response = await self.api.accept_ride(order.id, rider_id)
        else:
            response = await self.api.update_order_status(
                order.id, target, rider_id, order.category
            )
        updated = response.to_entity()

        if target is COMMIT_STATUS[order.category] and self.location_sync is not None:
            # The customer's map needs a position as soon as the rider commits
            try:
                await self.location_sync.update_now()
            except (LocationUnavailable, BackendError):
                logger.exception(
                    "Could not push location after accepting order %s", order.id
                )
        return updated

    async def history(self) -> list[Order]:
        rider_id = (await self.api.session()).require_rider_id()
        return [
            o.to_entity()
            for o in await self.api.fetch_order_history(rider_id, self.category)
        ]

    async def total_earnings(self) -> float:
        return total_rider_earnings(await self.history())
