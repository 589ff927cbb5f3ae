"""
Order / ride status machine shared by the customer and rider clients.

Food delivery::

    PENDING -> ACCEPTED -> RIDER_ACCEPTED -> ON_THE_WAY -> DELIVERED

Pet taxi (the driver accepts directly)::

    PENDING -> ACCEPTED -> ON_THE_WAY -> DELIVERED

Any non-terminal status may move to CANCELLED.

Status strings coming from the backend are parsed into ``OrderStatus`` at
the API boundary; anything else raises ``UnknownStatusError``.  Outgoing
updates are checked here before a request is built, independently of the
server's own validation.
"""

from __future__ import annotations

from typing import Optional, Union

from dispatch_engine.exceptions import InvalidStateTransition, UnknownStatusError

from .enums import (
    ORDER_TRANSITIONS,
    PET_TAXI_OUTGOING_STATUS,
    PET_TAXI_STATUS_ALIASES,
    TERMINAL_STATUSES,
    TRANSITIONS_BY_CATEGORY,
    OrderCategory,
    OrderStatus,
    Role,
)


class OrderStatusMachine:
    transitions = ORDER_TRANSITIONS

    @staticmethod
    def parse(
        raw: Union[str, OrderStatus],
        category: Optional[OrderCategory] = None,
    ) -> OrderStatus:
        if isinstance(raw, OrderStatus):
            return raw
        if not isinstance(raw, str):
            raise UnknownStatusError(f"Unrecognised order status: {raw!r}")
        value = raw.strip().upper()
        if category is OrderCategory.PET_TAXI and value in PET_TAXI_STATUS_ALIASES:
            return PET_TAXI_STATUS_ALIASES[value]
        try:
            return OrderStatus(value)
        except ValueError:
            raise UnknownStatusError(f"Unrecognised order status: {raw!r}") from None

    @staticmethod
    def validate_outgoing(status: Union[str, OrderStatus]) -> OrderStatus:
        """Accept only the six canonical literals for a status update."""
        if isinstance(status, OrderStatus):
            return status
        try:
            return OrderStatus(status)
        except ValueError:
            raise UnknownStatusError(f"Invalid status: {status!r}") from None

    @staticmethod
    def to_wire(status: OrderStatus, category: Optional[OrderCategory] = None) -> str:
        """Literal the backend expects for *status* on an update request."""
        if category is OrderCategory.PET_TAXI:
            return PET_TAXI_OUTGOING_STATUS.get(status, status.value)
        return status.value

    @classmethod
    def table_for(
        cls, category: Optional[OrderCategory] = None
    ) -> dict[OrderStatus, dict[OrderStatus, frozenset[Role]]]:
        if category is None:
            return cls.transitions
        return TRANSITIONS_BY_CATEGORY[category]

    @classmethod
    def can_transition(
        cls,
        current: OrderStatus,
        target: OrderStatus,
        role: Optional[Role] = None,
        category: Optional[OrderCategory] = None,
    ) -> bool:
        roles = cls.table_for(category).get(current, {}).get(target)
        if roles is None:
            return False
        return role is None or role in roles

    @classmethod
    def ensure_transition(
        cls,
        current: OrderStatus,
        target: OrderStatus,
        role: Optional[Role] = None,
        category: Optional[OrderCategory] = None,
    ) -> OrderStatus:
        roles = cls.table_for(category).get(current, {}).get(target)
        if roles is None:
            raise InvalidStateTransition(
                f"Cannot transition from {current.value} to {target.value}"
            )
        if role is not None and role not in roles:
            raise InvalidStateTransition(
                f"{role.value} may not move an order from "
                f"{current.value} to {target.value}"
            )
        return target

    @staticmethod
    def is_terminal(status: OrderStatus) -> bool:
        return status in TERMINAL_STATUSES

    @classmethod
    def next_statuses(
        cls, status: OrderStatus, category: Optional[OrderCategory] = None
    ) -> list[OrderStatus]:
        return list(cls.table_for(category).get(status, {}))

    @staticmethod
    def label(status: Union[str, OrderStatus]) -> str:
        """``RIDER_ACCEPTED`` -> ``"Rider Accepted"``."""
        value = status.value if isinstance(status, OrderStatus) else str(status)
        return " ".join(word.capitalize() for word in value.split("_"))
