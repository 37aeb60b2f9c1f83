from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Optional, Tuple

from services.errors import InvalidCoordinate


class Direction(str, Enum):
    """Compass directions sampled around an origin, in clockwise order from north."""

    N = "N"
    NE = "NE"
    E = "E"
    SE = "SE"
    S = "S"
    SW = "SW"
    W = "W"
    NW = "NW"

    @property
    def slot(self) -> int:
        return DIRECTIONS.index(self)

    @property
    def bearing(self) -> float:
        return self.slot * 45.0


DIRECTIONS: Tuple[Direction, ...] = tuple(Direction)


class SunStatus(str, Enum):
    SUN_NOW = "Sun now"
    PARTLY_SUNNY = "Partly sunny"
    MOSTLY_CLOUDY = "Mostly cloudy"
    OVERCAST = "Overcast"
    NIGHT = "Night time"


@dataclass(frozen=True, slots=True)
class Coordinate:
    latitude: float
    longitude: float

    def __post_init__(self) -> None:
        lat, lon = self.latitude, self.longitude
        if not isinstance(lat, (int, float)) or not isinstance(lon, (int, float)):
            raise InvalidCoordinate(f"coordinate must be numeric, got ({lat!r}, {lon!r})")
        if not (math.isfinite(lat) and math.isfinite(lon)):
            raise InvalidCoordinate(f"coordinate must be finite, got ({lat}, {lon})")
        if not -90.0 <= lat <= 90.0:
            raise InvalidCoordinate(f"latitude {lat} outside [-90, 90]")
        if not -180.0 <= lon <= 180.0:
            raise InvalidCoordinate(f"longitude {lon} outside [-180, 180]")

    def rounded(self, places: int) -> Tuple[float, float]:
        return round(self.latitude, places), round(self.longitude, places)


@dataclass(frozen=True, slots=True)
class SamplePoint:
    coordinate: Coordinate
    direction: Direction
    distance_km: float


@dataclass(frozen=True, slots=True)
class HourlyReading:
    timestamp: datetime
    cloud_cover_pct: float
    precip_prob_pct: float


@dataclass(frozen=True, slots=True)
class WeatherObservation:
    cloud_cover_pct: float
    precip_prob_pct: float
    is_day: bool
    hourly: Tuple[HourlyReading, ...] = ()


@dataclass(frozen=True, slots=True)
class ScoredPoint:
    """A sampled (or origin) location with its weather reading and derived sun score.

    The origin carries no direction and a distance of zero.
    """

    coordinate: Coordinate
    observation: WeatherObservation
    score: float
    status: SunStatus
    direction: Optional[Direction] = None
    distance_km: float = 0.0

    @property
    def is_sunny(self) -> bool:
        return self.status is SunStatus.SUN_NOW


@dataclass(frozen=True, slots=True)
class SunnyWindow:
    start: datetime
    end: datetime

    @property
    def hours(self) -> float:
        return (self.end - self.start).total_seconds() / 3600.0


@dataclass(frozen=True, slots=True)
class ScanResult:
    current: ScoredPoint
    nearby: Tuple[ScoredPoint, ...]
    best_upcoming_window: Optional[SunnyWindow] = None
    no_sun_nearby: bool = False
    fetched_at: Optional[datetime] = None
    stale: bool = False


__all__ = [
    "Coordinate",
    "Direction",
    "DIRECTIONS",
    "HourlyReading",
    "SamplePoint",
    "ScanResult",
    "ScoredPoint",
    "SunStatus",
    "SunnyWindow",
    "WeatherObservation",
]
