from __future__ import annotations

import math

from swift_responder.models import Coordinates

EARTH_RADIUS_KM = 6371.0


def haversine_km(origin: Coordinates, target: Coordinates) -> float:
    lat1, lon1 = math.radians(origin.latitude), math.radians(origin.longitude)
    lat2, lon2 = math.radians(target.latitude), math.radians(target.longitude)
    dlat = lat2 - lat1
    dlon = lon2 - lon1

    a = math.sin(dlat / 2) ** 2 + math.cos(lat1) * math.cos(lat2) * math.sin(dlon / 2) ** 2
    c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))
    return EARTH_RADIUS_KM * c


def interpolate(origin: Coordinates, target: Coordinates, fraction: float) -> Coordinates:
    """Point a ``fraction`` of the way from origin to target in plain lat/lng space."""
    fraction = min(1.0, max(0.0, fraction))
    return Coordinates(
        latitude=origin.latitude + (target.latitude - origin.latitude) * fraction,
        longitude=origin.longitude + (target.longitude - origin.longitude) * fraction,
    )


def offset(origin: Coordinates, d_lat: float, d_lng: float) -> Coordinates:
    return Coordinates(latitude=origin.latitude + d_lat, longitude=origin.longitude + d_lng)
