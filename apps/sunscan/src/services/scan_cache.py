from __future__ import annotations

import time
from dataclasses import dataclass
from datetime import datetime, timezone
from threading import RLock
from typing import Callable, Dict, Optional

from services.models import Coordinate, ScanResult


def cache_key(origin: Coordinate, precision: int = 3) -> str:
    lat, lon = origin.rounded(precision)
    return f"scan:{lat:.{precision}f}:{lon:.{precision}f}"


@dataclass(frozen=True, slots=True)
class CacheEntry:
    result: ScanResult
    fetched_at: datetime
    stored_at: float
    expires_at: float


class ScanCache:
    """TTL store for scan results, keyed by rounded origin.

    Expired entries stay readable through ``get_stale`` until they are older
    than ``max_stale_age`` seconds. Each write drops every entry past that
    age.
    """

    def __init__(
        self,
        max_stale_age: float = 3600.0,
        time_func: Callable[[], float] = time.monotonic,
    ) -> None:
        self._time_func = time_func
        self._max_stale_age = max_stale_age
        self._lock = RLock()
        self._entries: Dict[str, CacheEntry] = {}

    def get(self, key: str) -> Optional[ScanResult]:
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            if entry.expires_at <= self._time_func():
                self._evict_if_too_old(key, entry)
                return None
            return entry.result

    def put(self, key: str, value: ScanResult, ttl: float) -> None:
        now = self._time_func()
        fetched_at = value.fetched_at or datetime.now(timezone.utc)
        with self._lock:
            self._prune(now)
            self._entries[key] = CacheEntry(
                result=value,
                fetched_at=fetched_at,
                stored_at=now,
                expires_at=now + ttl,
            )

    def get_stale(self, key: str, max_age: Optional[float] = None) -> Optional[CacheEntry]:
        limit = self._max_stale_age if max_age is None else max_age
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            if self._time_func() - entry.stored_at > limit:
                self._evict_if_too_old(key, entry)
                return None
            return entry

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def _prune(self, now: float) -> None:
        expired = [key for key, entry in self._entries.items() if now - entry.stored_at > self._max_stale_age]
        for key in expired:
            del self._entries[key]

    def _evict_if_too_old(self, key: str, entry: CacheEntry) -> None:
        if self._time_func() - entry.stored_at > self._max_stale_age:
            self._entries.pop(key, None)


__all__ = ["CacheEntry", "ScanCache", "cache_key"]
