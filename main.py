"""
Delivery Dispatch Engine
========================
Entry point.  Examples:

    python main.py track 42              # follow a food order until it ends
    python main.py track 7 --pet-taxi    # follow a pet-taxi ride
    python main.py rider --lat 3.139 --lng 101.6869
    python main.py rider --lat 3.139 --lng 101.6869 --pet-taxi   # as a driver

The session (token, user id, rider id) and the backend URL come from the
environment / .env file, see ``dispatch_engine.config.Settings``.
"""

import argparse
import asyncio
import logging

from dispatch_engine.api.client import DispatchApiClient
from dispatch_engine.config import settings
from dispatch_engine.domain.entities import Location
from dispatch_engine.domain.enums import OrderCategory
from dispatch_engine.infrastructure.location_provider import FixedLocationProvider
from dispatch_engine.infrastructure.session import StaticSessionStore
from dispatch_engine.workers.dispatch_poller import DispatchPollingLoop, TrackingSnapshot
from dispatch_engine.workers.location_sync import LocationSyncLoop

logger = logging.getLogger("dispatch_engine")


def _print_snapshot(snapshot: TrackingSnapshot) -> None:
    where = snapshot.rider_location
    position = (
        f"({where.location.latitude:.5f}, {where.location.longitude:.5f})"
        if where
        else "no location yet"
    )
    print(
        f"order {snapshot.order.id}: "
        f"{snapshot.order.status_label} | rider {position}"
    )


async def track(order_id: int, category: OrderCategory) -> None:
    async with DispatchApiClient(StaticSessionStore.from_settings()) as api:
        async with DispatchPollingLoop(
            api, order_id, category, on_update=_print_snapshot
        ) as poller:
            await poller.wait_closed()


async def ride(lat: float, lng: float, category: OrderCategory) -> None:
    store = StaticSessionStore.from_settings()
    rider_id = (await store.load()).require_rider_id()
    async with DispatchApiClient(store) as api:
        loop = LocationSyncLoop(
            api, FixedLocationProvider(Location(lat, lng)), rider_id, category=category
        )
        await loop.set_online(True)
        try:
            await asyncio.Event().wait()  # until interrupted
        finally:
            await loop.set_online(False)


def main() -> None:
    parser = argparse.ArgumentParser(description=__doc__.splitlines()[1])
    sub = parser.add_subparsers(dest="command", required=True)

    p_track = sub.add_parser("track", help="follow an order until it is delivered")
    p_track.add_argument("order_id", type=int)
    p_track.add_argument("--pet-taxi", action="store_true")

    p_rider = sub.add_parser("rider", help="go online and report a fixed position")
    p_rider.add_argument("--lat", type=float, required=True)
    p_rider.add_argument("--lng", type=float, required=True)
    p_rider.add_argument("--pet-taxi", action="store_true")

    args = parser.parse_args()
    logging.basicConfig(level=settings.log_level)

    try:
        category = OrderCategory.PET_TAXI if args.pet_taxi else OrderCategory.FOOD_DELIVERY
        if args.command == "track":
            asyncio.run(track(args.order_id, category))
        else:
            asyncio.run(ride(args.lat, args.lng, category))
    except KeyboardInterrupt:
        logger.info("Interrupted")


if __name__ == "__main__":
    main()
