"""
Device location sources.

The platform GPS lives outside this package; the sync loop only needs
something that returns a fix or raises ``LocationUnavailable``.
"""

from __future__ import annotations

from abc import ABC, abstractmethod

from dispatch_engine.domain.entities import Location


class LocationProvider(ABC):
    @abstractmethod
    async def current_location(self) -> Location:
        """Return a fresh fix or raise ``LocationUnavailable``."""


class FixedLocationProvider(LocationProvider):
    """Reports a position set by the operator, e.g. from a rider console."""

    def __init__(self, location: Location):
        self.location = location

    def move_to(self, location: Location) -> None:
        self.location = location

    async def current_location(self) -> Location:
        return self.location
