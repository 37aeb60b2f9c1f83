from __future__ import annotations

import math
from typing import Iterable, List, Sequence

from services.errors import InvalidCoordinate
from services.models import DIRECTIONS, Coordinate, Direction, SamplePoint

EARTH_RADIUS_KM = 6371.0
DEFAULT_RADII_KM: tuple[float, ...] = (15.0, 30.0, 50.0)


def _normalize_longitude(value: float) -> float:
    wrapped = (value + 540.0) % 360.0 - 180.0
    # -180 and 180 are the same meridian; keep the open interval [-180, 180)
    return -180.0 if wrapped >= 180.0 else wrapped


def destination(origin: Coordinate, bearing_deg: float, distance_km: float) -> Coordinate:
    """Project ``distance_km`` from ``origin`` along ``bearing_deg`` on a spherical Earth."""
    lat1 = math.radians(origin.latitude)
    lon1 = math.radians(origin.longitude)
    theta = math.radians(bearing_deg)
    delta = distance_km / EARTH_RADIUS_KM

    sin_lat2 = math.sin(lat1) * math.cos(delta) + math.cos(lat1) * math.sin(delta) * math.cos(theta)
    lat2 = math.asin(max(-1.0, min(1.0, sin_lat2)))
    lon2 = lon1 + math.atan2(
        math.sin(theta) * math.sin(delta) * math.cos(lat1),
        math.cos(delta) - math.sin(lat1) * sin_lat2,
    )
    return Coordinate(
        latitude=max(-90.0, min(90.0, math.degrees(lat2))),
        longitude=_normalize_longitude(math.degrees(lon2)),
    )


def haversine_km(a: Coordinate, b: Coordinate) -> float:
    """Compute great-circle distance between two points in kilometers."""
    lat1_rad = math.radians(a.latitude)
    lon1_rad = math.radians(a.longitude)
    lat2_rad = math.radians(b.latitude)
    lon2_rad = math.radians(b.longitude)

    dlat = lat2_rad - lat1_rad
    dlon = lon2_rad - lon1_rad

    h = math.sin(dlat / 2) ** 2 + math.cos(lat1_rad) * math.cos(lat2_rad) * math.sin(dlon / 2) ** 2
    c = 2 * math.atan2(math.sqrt(h), math.sqrt(1 - h))
    return EARTH_RADIUS_KM * c


def _check_unique(values: Iterable[object], label: str) -> None:
    seen: set[object] = set()
    for value in values:
        if value in seen:
            raise ValueError(f"duplicate {label}: {value}")
        seen.add(value)


def generate(
    origin: Coordinate,
    directions: Sequence[Direction] = DIRECTIONS,
    radii: Sequence[float] = DEFAULT_RADII_KM,
) -> List[SamplePoint]:
    """Build the ring of candidate points around ``origin``.

    Points are ordered bearing-major, radius-ascending, one per
    (direction, radius) pair.
    """
    if not isinstance(origin, Coordinate):
        raise InvalidCoordinate(f"origin must be a Coordinate, got {type(origin).__name__}")
    if not directions or not radii:
        raise ValueError("directions and radii must be non-empty")
    _check_unique(directions, "direction")
    _check_unique(radii, "radius")
    for radius in radii:
        if not radius > 0:
            raise ValueError(f"radius must be positive, got {radius}")

    ordered_radii = sorted(float(r) for r in radii)
    points: List[SamplePoint] = []
    for direction in directions:
        for radius in ordered_radii:
            points.append(
                SamplePoint(
                    coordinate=destination(origin, direction.bearing, radius),
                    direction=direction,
                    distance_km=radius,
                )
            )
    return points


__all__ = ["EARTH_RADIUS_KM", "DEFAULT_RADII_KM", "destination", "generate", "haversine_km"]
