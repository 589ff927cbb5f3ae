"""
Rider Location Sync Loop
========================

Keeps the backend's view of the rider's position fresh while the rider is
online.  Runs every ``LOCATION_SYNC_INTERVAL_SECONDS`` (default 120 s) and
is not scheduled at all while offline.

Per tick
--------
1. Acquire a fix from the ``LocationProvider``.  No fix -> skip the tick.
2. Run it through ``SignificantChangeFilter``.  Not significant -> done.
3. Upload it keyed by rider id.  Upload failure -> roll the filter back so
   the next tick retries, and keep looping.

Steps 1-3 run under one ``asyncio.Lock`` shared with ``update_now()``, so
only one acquisition is ever in flight and the filter decision is never
separated from its upload.

Pet-taxi drivers upload to the driver endpoint instead and also report
ONLINE / OFFLINE to the backend whenever ``set_online`` is called.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Optional

from dispatch_engine.api.client import DispatchApiClient
from dispatch_engine.config import settings
from dispatch_engine.domain.entities import RiderLocation
from dispatch_engine.domain.enums import OrderCategory
from dispatch_engine.domain.location_filter import SignificantChangeFilter
from dispatch_engine.exceptions import BackendError, LocationUnavailable
from dispatch_engine.infrastructure.location_provider import LocationProvider
from dispatch_engine.workers.periodic import PeriodicTask

logger = logging.getLogger(__name__)


class LocationSyncLoop(PeriodicTask):
    name = "location-sync"

    def __init__(
        self,
        api: DispatchApiClient,
        provider: LocationProvider,
        rider_id: int,
        change_filter: Optional[SignificantChangeFilter] = None,
        interval_seconds: Optional[float] = None,
        category: OrderCategory = OrderCategory.FOOD_DELIVERY,
    ):
        super().__init__(
            settings.location_sync_interval_seconds
            if interval_seconds is None
            else interval_seconds
        )
        self.api = api
        self.provider = provider
        self.rider_id = rider_id
        self.category = category
        self.filter = change_filter or SignificantChangeFilter(
            settings.significant_change_threshold_m
        )
        self.last_uploaded: Optional[RiderLocation] = None
        self._lock = asyncio.Lock()

    async def set_online(self, online: bool) -> None:
        if online:
            self.start()
        else:
            await self.stop()
        if self.category is OrderCategory.PET_TAXI:
            await self.api.update_driver_status(self.rider_id, online)

    async def tick(self) -> None:
        """Timer path: failures are logged and the tick is skipped."""
        try:
            await self._sync()
        except LocationUnavailable as exc:
            logger.warning("No location fix for rider %s: %s", self.rider_id, exc)
        except BackendError:
            logger.exception("Location upload failed for rider %s", self.rider_id)

    async def update_now(self) -> Optional[RiderLocation]:
        """Manual trigger: same filter and upload, failures reach the caller."""
        return await self._sync()

    async def _sync(self) -> Optional[RiderLocation]:
        async with self._lock:
            location = await self.provider.current_location()
            if not self.filter.should_report(location):
                logger.debug("Rider %s has not moved significantly", self.rider_id)
                return None
            try:
                await self.api.upsert_rider_location(
                    self.rider_id, location, self.category
                )
            except BaseException:
                self.filter.rollback()
                raise
            self.last_uploaded = RiderLocation(rider_id=self.rider_id, location=location)
            logger.info(
                "Uploaded location for rider %s: (%.6f, %.6f)",
                self.rider_id,
                location.latitude,
                location.longitude,
            )
            return self.last_uploaded
