"""
Order Creation Coordinator
==========================

Submits a food order or a pet-taxi ride exactly once from the caller's
point of view.

Preconditions (checked before any write)
----------------------------------------
* a session with token and user id      -> ``MissingAuthToken``
* a non-empty cart (food)               -> ``EmptyCartError``
* at least one delivery address (food)  -> ``NoDeliveryAddress``
* resolved pickup & drop-off (pet taxi) -> ``UnresolvedLocationError``

Pending id fallback
-------------------
The backend may answer a create with ``{"id": "pending"}`` while the
durable id is still being assigned.  The coordinator then reads the user's
most recent order once and adopts its id.  If that read fails, the pending
result is returned as is: the order already exists server-side, so the
flow must not fail and must never post again.

Double submission
-----------------
A second ``place_*`` call while one is in flight is rejected locally, and
every submission carries a fresh idempotency key so a transport-level retry
of the same POST maps to one order.
"""

from __future__ import annotations

import logging
import uuid
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Iterator, Optional, Union

from dispatch_engine.api.client import DispatchApiClient
from dispatch_engine.api.schemas import (
    DeliveryAddress,
    OrderCreateRequest,
    OrderItemPayload,
    OrderResponse,
    PetTaxiRideCreateRequest,
)
from dispatch_engine.domain.cart import Cart
from dispatch_engine.domain.entities import Location, Order, OrderId
from dispatch_engine.domain.enums import OrderCategory, PetType
from dispatch_engine.domain.pricing import (
    FareEstimate,
    PetTaxiFare,
    TieredDeliveryFee,
    strategy_for,
)
from dispatch_engine.exceptions import (
    DispatchError,
    DuplicateSubmissionError,
    EmptyCartError,
    NoDeliveryAddress,
    UnresolvedLocationError,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class OrderPlacement:
    order_id: OrderId
    order: Order
    resolved: bool  # False while the backend only handed out the pending id


class OrderCreationCoordinator:
    def __init__(
        self,
        api: DispatchApiClient,
        delivery_fees: Optional[TieredDeliveryFee] = None,
        pet_taxi_fare: Optional[PetTaxiFare] = None,
    ):
        self.api = api
        self.delivery_fees = delivery_fees or strategy_for(OrderCategory.FOOD_DELIVERY)
        self.pet_taxi_fare = pet_taxi_fare or strategy_for(OrderCategory.PET_TAXI)
        self._in_flight = False

    # ── Food delivery ─────────────────────────────────────────────────

    async def place_food_order(
        self,
        cart: Cart,
        delivery_time: Optional[str] = None,
        preferred_address_id: Optional[int] = None,
    ) -> OrderPlacement:
        tier = self.delivery_fees.select(delivery_time)
        with self._single_submission():
            session = await self.api.session()
            session.require_token()
            user_id = session.require_user_id()
            if cart.is_empty:
                raise EmptyCartError("Cart is empty")

            addresses = await self.api.fetch_user_addresses(user_id)
            address = self._pick_address(addresses, preferred_address_id)

            body = OrderCreateRequest(
                user_id=user_id,
                total_amount=round(cart.subtotal + tier.fee, 2),
                delivery_time=tier.delivery_time,
                delivery_fee=tier.fee,
                delivery_address_id=address.id,
                items=[
                    OrderItemPayload(
                        product_id=li.product_id,
                        quantity=li.quantity,
                        price=li.unit_price,
                    )
                    for li in cart.line_items()
                ],
                idempotency_key=str(uuid.uuid4()),
            )
            logger.info(
                "Placing order for user %s: %d item(s), total RM%.2f",
                user_id,
                len(body.items),
                body.total_amount,
            )
            created = await self.api.create_order(body)
            return await self._resolve(created, OrderCategory.FOOD_DELIVERY)

    @staticmethod
    def _pick_address(
        addresses: list[DeliveryAddress], preferred_id: Optional[int]
    ) -> DeliveryAddress:
        if not addresses:
            raise NoDeliveryAddress(
                "Please add a delivery address before placing an order."
            )
        for address in addresses:
            if address.id == preferred_id:
                return address
        if preferred_id is not None:
            logger.info(
                "Address %s not on file; using address %s", preferred_id, addresses[0].id
            )
        return addresses[0]

    # ── Pet taxi ──────────────────────────────────────────────────────

    def quote_ride(
        self,
        pickup: Optional[Location],
        dropoff: Optional[Location],
        pet_type: Union[str, PetType, None],
    ) -> Optional[FareEstimate]:
        return self.pet_taxi_fare.estimate(pickup, dropoff, pet_type)

    async def place_pet_taxi_ride(
        self,
        pickup: Optional[Location],
        dropoff: Optional[Location],
        pet_type: Union[str, PetType],
        pickup_address: str = "",
        dropoff_address: str = "",
        special_instructions: str = "",
    ) -> OrderPlacement:
        estimate = self.quote_ride(pickup, dropoff, pet_type)
        if estimate is None:
            raise UnresolvedLocationError(
                "Pickup and drop-off must both be resolved before booking"
            )
        assert pickup is not None and dropoff is not None
        with self._single_submission():
            session = await self.api.session()
            session.require_token()
            body = PetTaxiRideCreateRequest(
                user_id=session.require_user_id(),
                pickup_location=pickup_address,
                dropoff_location=dropoff_address,
                pickup_latitude=pickup.latitude,
                pickup_longitude=pickup.longitude,
                dropoff_latitude=dropoff.latitude,
                dropoff_longitude=dropoff.longitude,
                pet_type=pet_type.value if isinstance(pet_type, PetType) else pet_type,
                special_instructions=special_instructions,
                fare=estimate.fare,
                distance=estimate.distance_km,
                idempotency_key=str(uuid.uuid4()),
            )
            logger.info(
                "Booking pet taxi: %.2f km, fare RM%.2f",
                estimate.distance_km,
                estimate.fare,
            )
            created = await self.api.create_pet_taxi_ride(body)
            return await self._resolve(created, OrderCategory.PET_TAXI)

    # ── Internals ─────────────────────────────────────────────────────

    async def _resolve(
        self, created: OrderResponse, category: OrderCategory
    ) -> OrderPlacement:
        order = created.to_entity()
        if order.has_durable_id:
            return OrderPlacement(order_id=order.id, order=order, resolved=True)

        logger.info("Backend returned a pending id; looking up the latest order")
        try:
            latest = await self.api.fetch_latest_order(category)
        except DispatchError:
            # a malformed or failed read must not undo an order that exists
            logger.exception("Latest-order lookup failed; keeping the pending id")
            return OrderPlacement(order_id=order.id, order=order, resolved=False)

        if latest is None or not latest.to_entity().has_durable_id:
            logger.warning("No durable order found yet; keeping the pending id")
            return OrderPlacement(order_id=order.id, order=order, resolved=False)

        resolved = latest.to_entity()
        return OrderPlacement(order_id=resolved.id, order=resolved, resolved=True)

    @contextmanager
    def _single_submission(self) -> Iterator[None]:
        if self._in_flight:
            raise DuplicateSubmissionError("An order is already being placed")
        self._in_flight = True
        try:
            yield
        finally:
            self._in_flight = False
