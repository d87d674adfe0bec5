# path: road-marking-api/app/utils/geo.py

from __future__ import annotations

from typing import List
import math

from app.models.route_models import Coordinate


EARTH_RADIUS_M = 6371000.0


def haversine_m(a_lat: float, a_lon: float, b_lat: float, b_lon: float) -> float:
    phi1 = math.radians(a_lat)
    phi2 = math.radians(b_lat)
    dphi = math.radians(b_lat - a_lat)
    dlmb = math.radians(b_lon - a_lon)

    s = math.sin(dphi / 2) ** 2 + math.cos(phi1) * math.cos(phi2) * math.sin(dlmb / 2) ** 2
    # Clamp guards asin against s drifting just above 1.0 for antipodal points
    return 2 * EARTH_RADIUS_M * math.asin(math.sqrt(min(1.0, s)))


def distance_m(a: Coordinate, b: Coordinate) -> float:
    return haversine_m(a.lat, a.lon, b.lat, b.lon)


def lerp(start: Coordinate, end: Coordinate, ratio: float) -> Coordinate:
    """
    Linear interpolation in lat/lon space (not along the great circle).

    Ratios 0 and 1 return the endpoints themselves so callers can rely on
    exact equality at the ends of a route.
    """
    if ratio <= 0.0:
        return start
    if ratio >= 1.0:
        return end
    return Coordinate(
        lat=start.lat + (end.lat - start.lat) * ratio,
        lon=start.lon + (end.lon - start.lon) * ratio,
    )


def interpolate(start: Coordinate, end: Coordinate, n: int) -> List[Coordinate]:
    if n <= 0:
        return []
    if n == 1:
        return [start]
    return [lerp(start, end, i / (n - 1)) for i in range(n)]
