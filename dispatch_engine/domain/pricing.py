"""
Fare & Delivery-Fee Engine  (Strategy Pattern)
==============================================

Two categories, one distance primitive:

* **Pet taxi** -- fare computed from distance::

      Fare = round((Base_Fare + Distance x Rate_Per_KM) x Pet_Factor, 2)

  Pet_Factor: Dog 1.2, Cat 1.1, Birds 1.3, anything else 1.5.

* **Food delivery** -- flat fee chosen by the customer from fixed tiers
  (20-30 mins -> RM10, 40-60 mins -> RM5).  Distance does not enter the fee.

Complexity: O(1) per estimate.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Iterable, Optional, Union

from dispatch_engine.config import settings

from .distance import distance_between
from .entities import Location, Order
from .enums import OrderCategory, PetType

PET_FACTORS: dict[PetType, float] = {
    PetType.DOG: 1.2,
    PetType.CAT: 1.1,
    PetType.BIRDS: 1.3,
}
DEFAULT_PET_FACTOR = 1.5


@dataclass(frozen=True)
class FareEstimate:
    distance_km: float
    fare: float


@dataclass(frozen=True)
class DeliveryFeeTier:
    delivery_time: str
    fee: float


DELIVERY_FEE_TIERS: tuple[DeliveryFeeTier, ...] = (
    DeliveryFeeTier("20-30 mins", 10.0),
    DeliveryFeeTier("40-60 mins", 5.0),
)


def pet_factor(pet_type: Union[str, PetType, None]) -> float:
    if isinstance(pet_type, PetType):
        return PET_FACTORS.get(pet_type, DEFAULT_PET_FACTOR)
    name = (pet_type or "").strip().casefold()
    for known, factor in PET_FACTORS.items():
        if known.value.casefold() == name:
            return factor
    return DEFAULT_PET_FACTOR


def estimate_fare(
    distance_km: float,
    pet_type: Union[str, PetType, None],
    base_fare: Optional[float] = None,
    rate_per_km: Optional[float] = None,
) -> float:
    base = settings.pet_taxi_base_fare if base_fare is None else base_fare
    rate = settings.pet_taxi_rate_per_km if rate_per_km is None else rate_per_km
    return round((base + distance_km * rate) * pet_factor(pet_type), 2)


# ── Strategy hierarchy ────────────────────────────────────────────────


class FareStrategy(ABC):
    category: OrderCategory

    @abstractmethod
    def describe(self) -> str: ...


class PetTaxiFare(FareStrategy):
    category = OrderCategory.PET_TAXI

    def __init__(
        self,
        base_fare: Optional[float] = None,
        rate_per_km: Optional[float] = None,
    ):
        self.base_fare = settings.pet_taxi_base_fare if base_fare is None else base_fare
        self.rate_per_km = (
            settings.pet_taxi_rate_per_km if rate_per_km is None else rate_per_km
        )

    def describe(self) -> str:
        return f"RM{self.base_fare:.2f} + RM{self.rate_per_km:.2f}/km x pet factor"

    def estimate(
        self,
        pickup: Optional[Location],
        dropoff: Optional[Location],
        pet_type: Union[str, PetType, None],
    ) -> Optional[FareEstimate]:
        """Return ``None`` when either end failed to geocode."""
        if pickup is None or dropoff is None:
            return None
        distance = distance_between(pickup, dropoff)
        fare = estimate_fare(distance, pet_type, self.base_fare, self.rate_per_km)
        return FareEstimate(distance_km=distance, fare=fare)


class TieredDeliveryFee(FareStrategy):
    category = OrderCategory.FOOD_DELIVERY

    def __init__(self, tiers: Iterable[DeliveryFeeTier] = DELIVERY_FEE_TIERS):
        self.tiers = tuple(tiers)

    def describe(self) -> str:
        return ", ".join(f"{t.delivery_time} - RM{t.fee:g}" for t in self.tiers)

    @property
    def default(self) -> DeliveryFeeTier:
        return self.tiers[0]

    def select(self, delivery_time: Optional[str] = None) -> DeliveryFeeTier:
        if delivery_time is None:
            return self.default
        for tier in self.tiers:
            if tier.delivery_time == delivery_time:
                return tier
        raise ValueError(f"Unknown delivery option: {delivery_time!r}")


_STRATEGIES: dict[OrderCategory, type[FareStrategy]] = {
    OrderCategory.PET_TAXI: PetTaxiFare,
    OrderCategory.FOOD_DELIVERY: TieredDeliveryFee,
}


def strategy_for(category: OrderCategory) -> FareStrategy:
    return _STRATEGIES[category]()


def total_rider_earnings(orders: Iterable[Order]) -> float:
    return round(sum(o.rider_earnings or 0.0 for o in orders), 2)
