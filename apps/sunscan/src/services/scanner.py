from __future__ import annotations

import asyncio
import dataclasses
import logging
import time as time_utils
from datetime import datetime, timezone
from typing import Callable, Optional, Sequence

from config import settings
from services import geo_sampler, scoring, selector
from services.errors import FetchFailed, InvalidCoordinate, ScanSuperseded
from services.models import Coordinate, ScanResult, SunStatus
from services.scan_cache import ScanCache, cache_key
from services.weather import WeatherClient, weather_client

logger = logging.getLogger("sunscan.scanner")


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class ScanService:
    """Runs the sample -> fetch -> score -> select pipeline for one origin.

    Holds at most one in-flight scan per context; starting a new scan on a
    context cancels the previous one.
    """

    def __init__(
        self,
        weather_client: WeatherClient,
        cache: ScanCache,
        *,
        radii_km: Optional[Sequence[float]] = None,
        cache_ttl: Optional[float] = None,
        stale_tolerance: Optional[float] = None,
        cache_precision: Optional[int] = None,
        clock: Callable[[], datetime] = _utc_now,
    ) -> None:
        self.weather_client = weather_client
        self.cache = cache
        self.radii_km = tuple(radii_km if radii_km is not None else settings.sample_radii_km)
        self.cache_ttl = settings.scan_cache_ttl if cache_ttl is None else cache_ttl
        self.stale_tolerance = settings.scan_stale_tolerance if stale_tolerance is None else stale_tolerance
        self.cache_precision = settings.scan_cache_precision if cache_precision is None else cache_precision
        self._clock = clock
        self._inflight: dict[str, asyncio.Task[ScanResult]] = {}

    async def close(self) -> None:
        for task in list(self._inflight.values()):
            task.cancel()
        self._inflight.clear()
        await self.weather_client.close()

    def inflight_count(self) -> int:
        return sum(1 for task in self._inflight.values() if not task.done())

    async def compute_scan(self, origin: Coordinate, *, context: str = "default") -> ScanResult:
        if not isinstance(origin, Coordinate):
            raise InvalidCoordinate(f"origin must be a Coordinate, got {type(origin).__name__}")
        previous = self._inflight.get(context)
        if previous is not None and not previous.done():
            logger.info("Cancelling in-flight scan for context %s", context)
            previous.cancel()

        task = asyncio.create_task(self._scan(origin))
        self._inflight[context] = task
        try:
            result = await task
        except asyncio.CancelledError:
            if self._inflight.get(context) is not task:
                raise ScanSuperseded("a newer scan replaced this request") from None
            raise
        finally:
            if self._inflight.get(context) is task:
                self._inflight.pop(context, None)
        if self._inflight.get(context) not in (None, task):
            raise ScanSuperseded("a newer scan replaced this request")
        return result

    async def _scan(self, origin: Coordinate) -> ScanResult:
        key = cache_key(origin, self.cache_precision)
        cached = self.cache.get(key) if self.cache_ttl > 0 else None
        if cached is not None:
            logger.debug("Serving cached scan for %s", key)
            return cached

        samples = geo_sampler.generate(origin, radii=self.radii_km)
        coordinates = [origin] + [sample.coordinate for sample in samples]
        started = time_utils.perf_counter()
        try:
            observations = await self.weather_client.fetch_batch(coordinates)
        except FetchFailed as exc:
            entry = self.cache.get_stale(key, self.stale_tolerance)
            if entry is None:
                logger.error("Scan for %s failed with no cached fallback: %s", key, exc)
                raise
            logger.warning("Serving stale scan for %s fetched at %s: %s", key, entry.fetched_at.isoformat(), exc)
            return dataclasses.replace(entry.result, stale=True)
        logger.info(
            "Fetched %s points for %s in %.1f ms",
            len(observations),
            key,
            (time_utils.perf_counter() - started) * 1000.0,
        )

        now = self._clock()
        origin_scored = scoring.score_observation(origin, observations[0])
        candidates = [
            scoring.score_observation(sample.coordinate, observation, sample.direction, sample.distance_km)
            for sample, observation in zip(samples, observations[1:])
        ]
        window = None
        if origin_scored.status is SunStatus.NIGHT or not selector.has_usable_sun(candidates):
            window = scoring.find_next_sunny_window(observations[0].hourly, now)

        result = selector.select(candidates, origin_scored, best_upcoming_window=window, fetched_at=now)
        if self.cache_ttl > 0:
            self.cache.put(key, result, self.cache_ttl)
        return result


scan_cache = ScanCache(max_stale_age=settings.scan_stale_tolerance)
scan_service = ScanService(weather_client, scan_cache)

__all__ = ["ScanService", "scan_cache", "scan_service"]
