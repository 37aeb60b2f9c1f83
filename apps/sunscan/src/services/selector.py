from __future__ import annotations

from datetime import datetime
from typing import List, Optional, Sequence

from services.models import DIRECTIONS, ScanResult, ScoredPoint, SunnyWindow, SunStatus

_NO_USABLE_SUN = {SunStatus.NIGHT, SunStatus.OVERCAST}


def _rank_key(point: ScoredPoint) -> tuple[float, float, int]:
    # score descending, closer first, then compass order
    return (-point.score, point.distance_km, point.direction.slot if point.direction else -1)


def direction_winners(candidates: Sequence[ScoredPoint]) -> List[ScoredPoint]:
    """Pick the best candidate for each compass direction, in compass order."""
    buckets: List[List[ScoredPoint]] = [[] for _ in DIRECTIONS]
    for point in candidates:
        if point.direction is None:
            raise ValueError("candidate points must carry a direction")
        buckets[point.direction.slot].append(point)

    winners: List[ScoredPoint] = []
    for direction, bucket in zip(DIRECTIONS, buckets):
        if not bucket:
            raise ValueError(f"no candidates sampled for direction {direction.value}")
        winners.append(min(bucket, key=_rank_key))
    return winners


def has_usable_sun(candidates: Sequence[ScoredPoint]) -> bool:
    return any(point.status not in _NO_USABLE_SUN for point in candidates)


def select(
    candidates: Sequence[ScoredPoint],
    origin: ScoredPoint,
    best_upcoming_window: Optional[SunnyWindow] = None,
    fetched_at: Optional[datetime] = None,
) -> ScanResult:
    if not candidates:
        raise ValueError("select() needs at least one candidate")
    nearby = tuple(sorted(direction_winners(candidates), key=_rank_key))
    return ScanResult(
        current=origin,
        nearby=nearby,
        best_upcoming_window=best_upcoming_window,
        no_sun_nearby=not has_usable_sun(candidates),
        fetched_at=fetched_at,
    )


__all__ = ["direction_winners", "has_usable_sun", "select"]
