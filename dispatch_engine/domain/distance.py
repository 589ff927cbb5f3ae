"""
Great-circle distance between two coordinates.

Fares and location throttling use straight-line (Haversine) distance, not
road distance, so quoting a ride or deciding whether a rider has moved
never needs a routing service.

Complexity: O(1) per call.
"""

import math

from .entities import Location

EARTH_RADIUS_KM = 6_371.0


def haversine_km(lat1: float, lng1: float, lat2: float, lng2: float) -> float:
    """Distance in **km**; 0 for identical points, symmetric in its arguments."""
    phi1, phi2 = math.radians(lat1), math.radians(lat2)
    half_dphi = math.radians(lat2 - lat1) / 2
    half_dlambda = math.radians(lng2 - lng1) / 2

    h = math.sin(half_dphi) ** 2 + math.cos(phi1) * math.cos(phi2) * math.sin(
        half_dlambda
    ) ** 2
    # rounding can push h a hair outside [0, 1] for (near-)antipodal points
    h = min(1.0, max(0.0, h))
    return 2 * EARTH_RADIUS_KM * math.asin(math.sqrt(h))


def distance_between(a: Location, b: Location) -> float:
    return haversine_km(a.latitude, a.longitude, b.latitude, b.longitude)


def metres_between(a: Location, b: Location) -> float:
    return distance_between(a, b) * 1000
