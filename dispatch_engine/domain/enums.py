"""Domain enumerations and state-transition rules."""

import enum


class OrderStatus(str, enum.Enum):
    PENDING = "PENDING"
    ACCEPTED = "ACCEPTED"
    RIDER_ACCEPTED = "RIDER_ACCEPTED"
    ON_THE_WAY = "ON_THE_WAY"
    DELIVERED = "DELIVERED"
    CANCELLED = "CANCELLED"


class Role(str, enum.Enum):
    DISPATCHER = "DISPATCHER"  # backend / admin
    RIDER = "RIDER"
    CUSTOMER = "CUSTOMER"


class OrderCategory(str, enum.Enum):
    FOOD_DELIVERY = "FOOD_DELIVERY"
    PET_TAXI = "PET_TAXI"


class PetType(str, enum.Enum):
    DOG = "Dog"
    CAT = "Cat"
    BIRDS = "Birds"
    OTHERS = "Others"


TERMINAL_STATUSES: frozenset[OrderStatus] = frozenset(
    {OrderStatus.DELIVERED, OrderStatus.CANCELLED}
)

# Orders shown on the rider's work list
ACTIVE_RIDER_STATUSES: frozenset[OrderStatus] = frozenset(
    {OrderStatus.ACCEPTED, OrderStatus.RIDER_ACCEPTED, OrderStatus.ON_THE_WAY}
)

_CANCELLERS = frozenset({Role.DISPATCHER, Role.CUSTOMER})

# State machine: maps current status -> {next status: roles allowed to trigger it}
ORDER_TRANSITIONS: dict[OrderStatus, dict[OrderStatus, frozenset[Role]]] = {
    OrderStatus.PENDING: {
        OrderStatus.ACCEPTED: frozenset({Role.DISPATCHER}),
        OrderStatus.CANCELLED: _CANCELLERS,
    },
    OrderStatus.ACCEPTED: {
        OrderStatus.RIDER_ACCEPTED: frozenset({Role.RIDER}),
        OrderStatus.CANCELLED: _CANCELLERS,
    },
    OrderStatus.RIDER_ACCEPTED: {
        OrderStatus.ON_THE_WAY: frozenset({Role.RIDER}),
        OrderStatus.CANCELLED: _CANCELLERS,
    },
    OrderStatus.ON_THE_WAY: {
        OrderStatus.DELIVERED: frozenset({Role.RIDER}),
        OrderStatus.CANCELLED: _CANCELLERS,
    },
    OrderStatus.DELIVERED: {},
    OrderStatus.CANCELLED: {},
}

# The pet-taxi backend still reports these literals for rides
PET_TAXI_STATUS_ALIASES: dict[str, OrderStatus] = {
    "IN_PROGRESS": OrderStatus.ON_THE_WAY,
    "COMPLETED": OrderStatus.DELIVERED,
}

# Pet-taxi rides skip the dispatcher: the driver accepts a PENDING ride
# directly and there is no separate RIDER_ACCEPTED step.
PET_TAXI_TRANSITIONS: dict[OrderStatus, dict[OrderStatus, frozenset[Role]]] = {
    OrderStatus.PENDING: {
        OrderStatus.ACCEPTED: frozenset({Role.RIDER}),
        OrderStatus.CANCELLED: _CANCELLERS,
    },
    OrderStatus.ACCEPTED: {
        OrderStatus.ON_THE_WAY: frozenset({Role.RIDER}),
        OrderStatus.CANCELLED: _CANCELLERS,
    },
    OrderStatus.ON_THE_WAY: {
        OrderStatus.DELIVERED: frozenset({Role.RIDER}),
        OrderStatus.CANCELLED: _CANCELLERS,
    },
    OrderStatus.DELIVERED: {},
    OrderStatus.CANCELLED: {},
}

TRANSITIONS_BY_CATEGORY = {
    OrderCategory.FOOD_DELIVERY: ORDER_TRANSITIONS,
    OrderCategory.PET_TAXI: PET_TAXI_TRANSITIONS,
}

# Outgoing pet-taxi updates use the backend's own literals
PET_TAXI_OUTGOING_STATUS: dict[OrderStatus, str] = {
    status: literal for literal, status in PET_TAXI_STATUS_ALIASES.items()
}

# Status the rider sets when committing to a job, per category
COMMIT_STATUS: dict[OrderCategory, OrderStatus] = {
    OrderCategory.FOOD_DELIVERY: OrderStatus.RIDER_ACCEPTED,
    OrderCategory.PET_TAXI: OrderStatus.ACCEPTED,
}
