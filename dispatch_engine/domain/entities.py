"""
Domain entities with business logic.

Patterns used
-------------
- **State Pattern** on ``Order``: status only moves through
  ``OrderStatusMachine`` (PENDING -> ... -> DELIVERED | CANCELLED).
- ``Order.reprice`` guards the "total is frozen once accepted" invariant.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Optional, Union

from dispatch_engine.exceptions import ImmutableOrderError

from .enums import OrderCategory, OrderStatus, Role
from .state_machine import OrderStatusMachine

PENDING_ID = "pending"

OrderId = Union[int, str]


# ── Value Objects ─────────────────────────────────────────────────────


@dataclass(frozen=True)
class Location:
    latitude: float
    longitude: float

    @property
    def is_null_island(self) -> bool:
        """The backend reports (0, 0) when it has no fix for a rider."""
        return self.latitude == 0 and self.longitude == 0


@dataclass(frozen=True)
class LineItem:
    product_id: str
    quantity: int
    unit_price: float

    @property
    def line_total(self) -> float:
        return self.quantity * self.unit_price


@dataclass(frozen=True)
class RiderLocation:
    rider_id: int
    location: Location
    captured_at: datetime = field(
        default_factory=lambda: datetime.now(timezone.utc)
    )


# ── Entities ──────────────────────────────────────────────────────────


@dataclass
class Order:
    id: OrderId = PENDING_ID
    category: OrderCategory = OrderCategory.FOOD_DELIVERY
    status: OrderStatus = OrderStatus.PENDING
    customer_id: Optional[int] = None
    rider_id: Optional[int] = None
    total_amount: float = 0.0
    delivery_fee: Optional[float] = None
    fare: Optional[float] = None
    delivery_time: Optional[str] = None
    items: tuple[LineItem, ...] = ()
    delivery_address_id: Optional[int] = None
    pickup: Optional[Location] = None
    dropoff: Optional[Location] = None
    rider_earnings: Optional[float] = None
    created_at: Optional[datetime] = None

    @property
    def has_durable_id(self) -> bool:
        return self.id != PENDING_ID

    @property
    def is_terminal(self) -> bool:
        return OrderStatusMachine.is_terminal(self.status)

    @property
    def status_label(self) -> str:
        return OrderStatusMachine.label(self.status)

    def transition_to(
        self, new_status: OrderStatus, role: Optional[Role] = None
    ) -> None:
        """Move to *new_status* if the transition is legal, else raise."""
        self.status = OrderStatusMachine.ensure_transition(
            self.status, new_status, role, self.category
        )

    def reprice(self, total_amount: float) -> None:
        if self.status is not OrderStatus.PENDING:
            raise ImmutableOrderError(
                f"total_amount is frozen once an order is {self.status.value}"
            )
        self.total_amount = round(total_amount, 2)
