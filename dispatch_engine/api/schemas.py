"""Pydantic request / response schemas for the backend REST API."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import ClassVar, Optional, Union

from pydantic import AliasChoices, BaseModel, Field, field_validator

from dispatch_engine.domain.entities import LineItem, Location, Order
from dispatch_engine.domain.enums import OrderCategory, OrderStatus
from dispatch_engine.domain.state_machine import OrderStatusMachine


# ── Requests ──────────────────────────────────────────────────────────


class OrderItemPayload(BaseModel):
    product_id: str
    quantity: int = Field(..., ge=1)
    price: float = Field(..., ge=0)


class OrderCreateRequest(BaseModel):
    user_id: int
    status: OrderStatus = OrderStatus.PENDING
    total_amount: float = Field(..., ge=0)
    delivery_time: str
    delivery_fee: float = Field(..., ge=0)
    delivery_address_id: int
    items: list[OrderItemPayload] = Field(..., min_length=1)
    idempotency_key: Optional[str] = Field(
        None,
        max_length=64,
        description="Client-generated UUID so a retried submission maps to one order.",
    )


class PetTaxiRideCreateRequest(BaseModel):
    user_id: int
    pickup_location: str = ""
    dropoff_location: str = ""
    pickup_latitude: float = Field(..., ge=-90, le=90)
    pickup_longitude: float = Field(..., ge=-180, le=180)
    dropoff_latitude: float = Field(..., ge=-90, le=90)
    dropoff_longitude: float = Field(..., ge=-180, le=180)
    pet_type: str
    special_instructions: str = ""
    fare: float = Field(..., ge=0)
    distance: float = Field(..., ge=0)
    idempotency_key: Optional[str] = Field(None, max_length=64)


class StatusUpdateRequest(BaseModel):
    status: OrderStatus
    rider_id: int


class RideStatusUpdateRequest(BaseModel):
    """Pet-taxi update body; ``status`` is the backend's own literal."""

    status: str
    driver_id: int


class DriverLocationUpdate(BaseModel):
    latitude: float = Field(..., ge=-90, le=90)
    longitude: float = Field(..., ge=-180, le=180)


class DriverStatusUpdate(BaseModel):
    status: str = Field(..., pattern="^(ONLINE|OFFLINE)$")


class RiderLocationUpdate(BaseModel):
    rider_id: int
    latitude: float = Field(..., ge=-90, le=90)
    longitude: float = Field(..., ge=-180, le=180)


# ── Responses ─────────────────────────────────────────────────────────


class OrderItemResponse(BaseModel):
    product_id: str
    quantity: int
    price: float

    model_config = {"coerce_numbers_to_str": True}


class OrderResponse(BaseModel):
    category: ClassVar[OrderCategory] = OrderCategory.FOOD_DELIVERY

    id: Union[int, str]
    status: OrderStatus = OrderStatus.PENDING
    user_id: Optional[int] = None
    rider_id: Optional[int] = Field(
        None, validation_alias=AliasChoices("rider_id", "driver_id")
    )
    total_amount: Optional[float] = None
    delivery_fee: Optional[float] = None
    delivery_time: Optional[str] = None
    delivery_address_id: Optional[int] = None
    items: list[OrderItemResponse] = []
    rider_earnings: Optional[float] = None
    created_at: Optional[datetime] = None

    model_config = {"extra": "ignore"}

    @field_validator("status", mode="before")
    @classmethod
    def _parse_status(cls, value):
        return OrderStatusMachine.parse(value, cls.category)

    @field_validator("created_at")
    @classmethod
    def _assume_utc(cls, value: Optional[datetime]) -> Optional[datetime]:
        # the backend mixes naive and "Z"-suffixed timestamps
        if value is not None and value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value

    def to_entity(self) -> Order:
        return Order(
            id=self.id,
            category=self.category,
            status=self.status,
            customer_id=self.user_id,
            rider_id=self.rider_id,
            total_amount=self.total_amount or 0.0,
            delivery_fee=self.delivery_fee,
            delivery_time=self.delivery_time,
            items=tuple(
                LineItem(i.product_id, i.quantity, i.price) for i in self.items
            ),
            delivery_address_id=self.delivery_address_id,
            rider_earnings=self.rider_earnings,
            created_at=self.created_at,
        )


class PetTaxiRideResponse(OrderResponse):
    category: ClassVar[OrderCategory] = OrderCategory.PET_TAXI

    fare: Optional[float] = None
    distance: Optional[float] = None
    pet_type: Optional[str] = None
    pickup_latitude: Optional[float] = None
    pickup_longitude: Optional[float] = None
    dropoff_latitude: Optional[float] = None
    dropoff_longitude: Optional[float] = None

    def to_entity(self) -> Order:
        order = super().to_entity()
        order.fare = self.fare
        order.total_amount = self.total_amount or self.fare or 0.0
        if self.pickup_latitude is not None and self.pickup_longitude is not None:
            order.pickup = Location(self.pickup_latitude, self.pickup_longitude)
        if self.dropoff_latitude is not None and self.dropoff_longitude is not None:
            order.dropoff = Location(self.dropoff_latitude, self.dropoff_longitude)
        return order


class RiderLocationResponse(BaseModel):
    latitude: Optional[float] = None
    longitude: Optional[float] = None

    model_config = {"extra": "ignore"}

    def to_location(self) -> Optional[Location]:
        """``None`` for missing coordinates or the (0, 0) placeholder."""
        if self.latitude is None or self.longitude is None:
            return None
        location = Location(self.latitude, self.longitude)
        return None if location.is_null_island else location


class RiderProfile(BaseModel):
    id: int
    name: Optional[str] = None
    phone_number: Optional[str] = None
    vehicle_number: Optional[str] = None

    model_config = {"extra": "ignore"}


class DeliveryAddress(BaseModel):
    id: int
    address_line: Optional[str] = None
    city: Optional[str] = None
    postal_code: Optional[str] = None

    model_config = {"extra": "ignore"}
