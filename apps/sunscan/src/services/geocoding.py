from __future__ import annotations

import asyncio
import logging
import time
from typing import Any, Callable, Iterable, Optional

import httpx

from config import settings
from services.models import Coordinate

logger = logging.getLogger("sunscan.geocoding")


def _display_name(payload: dict[str, Any]) -> Optional[str]:
    address = payload.get("address")
    if isinstance(address, dict):
        for key in ("village", "town", "city", "municipality", "hamlet", "suburb", "county"):
            value = address.get(key)
            if isinstance(value, str) and value.strip():
                return value.strip()
    name = payload.get("name")
    if isinstance(name, str) and name.strip():
        return name.strip()
    display = payload.get("display_name")
    if isinstance(display, str) and display.strip():
        return display.split(",")[0].strip()
    return None


class ReverseGeocoder:
    """Place names for display. Lookups never fail a scan; errors yield ``None``.

    Requests are serialized and spaced at least ``min_interval`` seconds apart.
    """

    def __init__(
        self,
        base_url: Optional[str] = None,
        cache_ttl: Optional[int] = None,
        *,
        min_interval: Optional[float] = None,
        time_func: Callable[[], float] = time.monotonic,
    ) -> None:
        self._client: httpx.AsyncClient | None = None
        self._cache: dict[tuple[float, float], tuple[float, Optional[str]]] = {}
        self._base_url = base_url or settings.geocode_base_url
        self._cache_ttl = settings.geocode_cache_ttl if cache_ttl is None else cache_ttl
        self._min_interval = settings.geocode_min_interval if min_interval is None else min_interval
        self._time_func = time_func
        self._request_lock = asyncio.Lock()
        self._last_request: Optional[float] = None

    async def close(self) -> None:
        if self._client:
            await self._client.aclose()
            self._client = None

    async def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            headers = {"User-Agent": settings.weather_user_agent, "Accept": "application/json"}
            self._client = httpx.AsyncClient(timeout=settings.geocode_timeout, headers=headers)
        return self._client

    async def place_name(self, coordinate: Coordinate) -> Optional[str]:
        key = coordinate.rounded(3)
        cached = self._cache.get(key)
        if cached and cached[0] > self._time_func():
            return cached[1]

        client = await self._get_client()
        params = {
            "lat": f"{coordinate.latitude:.5f}",
            "lon": f"{coordinate.longitude:.5f}",
            "format": "jsonv2",
            "zoom": 12,
        }
        async with self._request_lock:
            if self._last_request is not None:
                wait = self._last_request + self._min_interval - self._time_func()
                if wait > 0:
                    await asyncio.sleep(wait)
            try:
                response = await client.get(self._base_url, params=params)
                response.raise_for_status()
                payload = response.json()
            except (httpx.HTTPError, ValueError):
                logger.warning("Reverse geocoding failed for %s,%s", *key, exc_info=True)
                return None
            finally:
                self._last_request = self._time_func()

        name = _display_name(payload) if isinstance(payload, dict) else None
        if self._cache_ttl > 0:
            now = self._time_func()
            self._prune(now)
            self._cache[key] = (now + self._cache_ttl, name)
        return name

    async def place_names(self, coordinates: Iterable[Coordinate]) -> list[Optional[str]]:
        return [await self.place_name(coordinate) for coordinate in coordinates]

    def clear(self) -> None:
        self._cache.clear()

    def __len__(self) -> int:
        return len(self._cache)

    def _prune(self, now: float) -> None:
        expired = [key for key, (expires_at, _) in self._cache.items() if expires_at <= now]
        for key in expired:
            del self._cache[key]


reverse_geocoder = ReverseGeocoder()

__all__ = ["ReverseGeocoder", "reverse_geocoder"]
