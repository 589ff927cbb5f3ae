"""
Backend REST client
===================

Thin async wrapper over the order / ride / rider / location endpoints.

* Every request carries ``Authorization: Bearer <token>`` read from the
  ``SessionStore``; a missing token raises ``MissingAuthToken`` before any
  I/O.
* Transport errors, timeouts, 4xx/5xx responses and bodies that are not
  JSON or do not match the expected schema all surface as ``BackendError``
  so loops can decide between "retry next tick" and "show the user".
* Status literals are validated against ``OrderStatus`` before a status
  update is sent, and parsed back into the enum on every response.
* Food orders and pet-taxi rides live under different paths; methods that
  touch either take an ``OrderCategory``.  Pet-taxi drivers report their
  position and availability through ``/drivers/{id}/...``.
"""

from __future__ import annotations

import logging
from typing import Any, Optional, TypeVar, Union

import httpx
from pydantic import BaseModel, ValidationError

from dispatch_engine.api.schemas import (
    DeliveryAddress,
    DriverLocationUpdate,
    DriverStatusUpdate,
    OrderCreateRequest,
    OrderResponse,
    PetTaxiRideCreateRequest,
    PetTaxiRideResponse,
    RideStatusUpdateRequest,
    RiderLocationResponse,
    RiderLocationUpdate,
    RiderProfile,
    StatusUpdateRequest,
)
from dispatch_engine.config import settings
from dispatch_engine.domain.entities import Location, OrderId, RiderLocation
from dispatch_engine.domain.enums import OrderCategory, OrderStatus
from dispatch_engine.domain.state_machine import OrderStatusMachine
from dispatch_engine.exceptions import BackendError
from dispatch_engine.infrastructure.session import AuthSession, SessionStore

logger = logging.getLogger(__name__)

ModelT = TypeVar("ModelT", bound=BaseModel)

_RESPONSE_MODELS: dict[OrderCategory, type[OrderResponse]] = {
    OrderCategory.FOOD_DELIVERY: OrderResponse,
    OrderCategory.PET_TAXI: PetTaxiRideResponse,
}

# Rides a driver can still act on
_OPEN_RIDE_STATUSES = "PENDING,ACCEPTED,IN_PROGRESS"


def _parse(model: type[ModelT], data: Any) -> ModelT:
    try:
        return model.model_validate(data)
    except ValidationError as exc:
        raise BackendError(
            f"Unexpected {model.__name__} payload ({exc.error_count()} error(s))"
        ) from exc


def _parse_list(model: type[ModelT], data: Any) -> list[ModelT]:
    if data is None:
        return []
    if not isinstance(data, list):
        raise BackendError(
            f"Expected a list of {model.__name__}, got {type(data).__name__}"
        )
    return [_parse(model, item) for item in data]


class DispatchApiClient:
    def __init__(
        self,
        sessions: SessionStore,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.sessions = sessions
        self._http = httpx.AsyncClient(
            base_url=base_url or settings.api_base_url,
            timeout=settings.http_timeout_seconds if timeout is None else timeout,
            transport=transport,
        )

    async def aclose(self) -> None:
        await self._http.aclose()

    async def __aenter__(self) -> "DispatchApiClient":
        return self

    async def __aexit__(self, *args) -> None:
        await self.aclose()

    async def session(self) -> AuthSession:
        return await self.sessions.load()

    # ── Orders / rides ────────────────────────────────────────────────

    async def create_order(self, body: OrderCreateRequest) -> OrderResponse:
        data = await self._request("POST", "/orders/", json=body.model_dump(mode="json"))
        return _parse(OrderResponse, data)

    async def create_pet_taxi_ride(
        self, body: PetTaxiRideCreateRequest
    ) -> PetTaxiRideResponse:
        data = await self._request(
            "POST", "/pet-taxi/rides", json=body.model_dump(mode="json")
        )
        return _parse(PetTaxiRideResponse, data)

    async def fetch_order(
        self,
        order_id: OrderId,
        category: OrderCategory = OrderCategory.FOOD_DELIVERY,
    ) -> OrderResponse:
        if category is OrderCategory.PET_TAXI:
            path = f"/pet-taxi/rides/{order_id}"
        else:
            path = f"/orders/{order_id}"
        data = await self._request("GET", path)
        return _parse(_RESPONSE_MODELS[category], data)

    async def fetch_latest_order(
        self, category: OrderCategory = OrderCategory.FOOD_DELIVERY
    ) -> Optional[OrderResponse]:
        """Most recently created order / ride of the authenticated user."""
        if category is OrderCategory.FOOD_DELIVERY:
            data = await self._request("GET", "/orders/latest")
            return _parse(OrderResponse, data) if data else None

        user_id = (await self.session()).require_user_id()
        data = await self._request("GET", f"/pet-taxi/rides/user/{user_id}")
        rides = _parse_list(PetTaxiRideResponse, data)
        durable = [r for r in rides if isinstance(r.id, int)]
        if not durable:
            return None
        # created_at is tz-aware after parsing; rides without one sort first
        return max(
            durable,
            key=lambda r: (
                r.created_at is not None,
                r.created_at.timestamp() if r.created_at else 0.0,
                r.id,
            ),
        )

    async def fetch_rider_orders(self) -> list[OrderResponse]:
        data = await self._request("GET", "/orders")
        return _parse_list(OrderResponse, data)

    async def fetch_open_rides(self) -> list[PetTaxiRideResponse]:
        """Pet-taxi rides a driver can still accept or is working on."""
        data = await self._request(
            "GET", "/pet-taxi/rides", params={"status": _OPEN_RIDE_STATUSES}
        )
        return _parse_list(PetTaxiRideResponse, data)

    async def fetch_order_history(
        self,
        rider_id: int,
        category: OrderCategory = OrderCategory.FOOD_DELIVERY,
    ) -> list[OrderResponse]:
        if category is OrderCategory.PET_TAXI:
            data = await self._request(
                "GET",
                f"/pet-taxi/rides/driver/{rider_id}",
                params={"status": OrderStatusMachine.to_wire(OrderStatus.DELIVERED, category)},
            )
            return _parse_list(PetTaxiRideResponse, data)

        data = await self._request(
            "GET",
            "/orders/history",
            params={
                "rider_id": rider_id,
                "status": [OrderStatus.DELIVERED.value, OrderStatus.CANCELLED.value],
            },
        )
        return _parse_list(OrderResponse, data)

    async def update_order_status(
        self,
        order_id: OrderId,
        status: Union[str, OrderStatus],
        rider_id: int,
        category: OrderCategory = OrderCategory.FOOD_DELIVERY,
    ) -> OrderResponse:
        # Rejects anything outside the six literals before building a request
        target = OrderStatusMachine.validate_outgoing(status)
        logger.info("Order %s -> %s (rider %s)", order_id, target.value, rider_id)

        if category is OrderCategory.PET_TAXI:
            ride_body = RideStatusUpdateRequest(
                status=OrderStatusMachine.to_wire(target, category), driver_id=rider_id
            )
            data = await self._request(
                "PUT",
                f"/pet-taxi/rides/{order_id}/update_status",
                json=ride_body.model_dump(mode="json"),
            )
            return _parse(PetTaxiRideResponse, data)

        body = StatusUpdateRequest(status=target, rider_id=rider_id)
        data = await self._request(
            "PUT",
            f"/orders/{order_id}/update_status",
            json=body.model_dump(mode="json"),
        )
        return _parse(OrderResponse, data)

    async def accept_ride(self, ride_id: OrderId, driver_id: int) -> PetTaxiRideResponse:
        logger.info("Driver %s accepting ride %s", driver_id, ride_id)
        data = await self._request(
            "POST", f"/pet-taxi/rides/{ride_id}/accept", params={"driver_id": driver_id}
        )
        return _parse(PetTaxiRideResponse, data)

    # ── Riders, drivers & locations ───────────────────────────────────

    async def fetch_rider_profile(self, rider_id: int) -> RiderProfile:
        data = await self._request("GET", f"/riders/{rider_id}")
        return _parse(RiderProfile, data)

    async def upsert_rider_location(
        self,
        rider_id: int,
        location: Location,
        category: OrderCategory = OrderCategory.FOOD_DELIVERY,
    ) -> None:
        if category is OrderCategory.PET_TAXI:
            driver_body = DriverLocationUpdate(
                latitude=location.latitude, longitude=location.longitude
            )
            await self._request(
                "PUT",
                f"/drivers/{rider_id}/location",
                json=driver_body.model_dump(mode="json"),
            )
            return

        body = RiderLocationUpdate(
            rider_id=rider_id,
            latitude=location.latitude,
            longitude=location.longitude,
        )
        await self._request(
            "POST", "/riders/location", json=body.model_dump(mode="json")
        )

    async def update_driver_status(self, driver_id: int, online: bool) -> None:
        body = DriverStatusUpdate(status="ONLINE" if online else "OFFLINE")
        await self._request(
            "PUT", f"/drivers/{driver_id}/status", json=body.model_dump(mode="json")
        )

    async def fetch_rider_location(
        self,
        rider_id: int,
        category: OrderCategory = OrderCategory.FOOD_DELIVERY,
    ) -> Optional[RiderLocation]:
        """Last known position, or ``None`` when the backend has none."""
        if category is OrderCategory.PET_TAXI:
            path = f"/pet-taxi/driver-location/{rider_id}"
        else:
            path = f"/riders/location/{rider_id}"
        try:
            data = await self._request("GET", path)
        except BackendError as exc:
            if exc.is_not_found:
                return None
            raise
        if not data:
            return None
        location = _parse(RiderLocationResponse, data).to_location()
        if location is None:
            return None
        return RiderLocation(rider_id=rider_id, location=location)

    # ── Addresses ─────────────────────────────────────────────────────

    async def fetch_user_addresses(self, user_id: int) -> list[DeliveryAddress]:
        data = await self._request("GET", f"/addresses/user/{user_id}")
        return _parse_list(DeliveryAddress, data)

    # ── Internals ─────────────────────────────────────────────────────

    async def _request(
        self,
        method: str,
        path: str,
        *,
        json: Any = None,
        params: Optional[dict[str, Any]] = None,
    ) -> Any:
        token = (await self.session()).require_token()
        try:
            resp = await self._http.request(
                method,
                path,
                json=json,
                params=params,
                headers={"Authorization": f"Bearer {token}"},
            )
            resp.raise_for_status()
        except httpx.HTTPStatusError as exc:
            status = exc.response.status_code
            raise BackendError(
                f"{method} {path} failed with HTTP {status}", status_code=status
            ) from exc
        except httpx.HTTPError as exc:
            raise BackendError(f"{method} {path} failed: {exc!r}") from exc

        if not resp.content:
            return None
        try:
            return resp.json()
        except ValueError as exc:
            raise BackendError(
                f"{method} {path} returned a non-JSON body",
                status_code=resp.status_code,
            ) from exc
