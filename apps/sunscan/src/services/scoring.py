from __future__ import annotations

import math
from datetime import datetime, timedelta, timezone
from typing import Iterable, Optional

from services.models import (
    Coordinate,
    Direction,
    HourlyReading,
    ScoredPoint,
    SunnyWindow,
    SunStatus,
    WeatherObservation,
)

RAIN_PENALTY = 30.0
RAIN_THRESHOLD_PCT = 40.0
SUNNY_SCORE = 75.0
HOUR = timedelta(hours=1)

# (lower bound, status), checked top-down
_STATUS_BANDS = (
    (75.0, SunStatus.SUN_NOW),
    (50.0, SunStatus.PARTLY_SUNNY),
    (25.0, SunStatus.MOSTLY_CLOUDY),
    (0.0, SunStatus.OVERCAST),
)


def _check_pct(value: float, name: str) -> float:
    numeric = float(value)
    if not math.isfinite(numeric) or not 0.0 <= numeric <= 100.0:
        raise ValueError(f"{name} must be within [0, 100], got {value!r}")
    return numeric


def score(cloud_cover_pct: float, precip_prob_pct: float) -> float:
    cloud = _check_pct(cloud_cover_pct, "cloud_cover_pct")
    precip = _check_pct(precip_prob_pct, "precip_prob_pct")
    raw = 100.0 - cloud - (RAIN_PENALTY if precip > RAIN_THRESHOLD_PCT else 0.0)
    return max(0.0, min(100.0, raw))


def status_for(value: float, is_day: bool = True) -> SunStatus:
    # The provider's day flag decides night vs day; the score only grades daylight.
    if not is_day:
        return SunStatus.NIGHT
    for lower, status in _STATUS_BANDS:
        if value >= lower:
            return status
    return SunStatus.OVERCAST


def score_observation(
    coordinate: Coordinate,
    observation: WeatherObservation,
    direction: Optional[Direction] = None,
    distance_km: float = 0.0,
) -> ScoredPoint:
    value = score(observation.cloud_cover_pct, observation.precip_prob_pct)
    return ScoredPoint(
        coordinate=coordinate,
        observation=observation,
        score=value,
        status=status_for(value, observation.is_day),
        direction=direction,
        distance_km=distance_km,
    )


def find_next_sunny_window(
    hourly: Iterable[HourlyReading],
    now: Optional[datetime] = None,
) -> Optional[SunnyWindow]:
    """Return the first contiguous run of hours scoring at least ``SUNNY_SCORE``.

    Readings whose hour has already ended are skipped. The window end is the
    end of the last sunny hour, so a run of 09:00..12:00 readings reports
    09:00-13:00. A gap between readings closes the run.
    """
    if now is None:
        now = datetime.now(timezone.utc)
    elif now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)

    start: Optional[datetime] = None
    last: Optional[datetime] = None
    for reading in sorted(hourly, key=lambda r: r.timestamp):
        ts = reading.timestamp if reading.timestamp.tzinfo else reading.timestamp.replace(tzinfo=timezone.utc)
        if ts + HOUR <= now:
            continue
        sunny = score(reading.cloud_cover_pct, reading.precip_prob_pct) >= SUNNY_SCORE
        if start is not None and (not sunny or ts - last > HOUR):
            break
        if sunny:
            if start is None:
                start = ts
            last = ts
    if start is None or last is None:
        return None
    return SunnyWindow(start=start, end=last + HOUR)


__all__ = [
    "RAIN_PENALTY",
    "RAIN_THRESHOLD_PCT",
    "SUNNY_SCORE",
    "find_next_sunny_window",
    "score",
    "score_observation",
    "status_for",
]
