from services.models import Coordinate, ScanResult, WeatherObservation
from services.scan_cache import ScanCache, cache_key
from services.scoring import score_observation


class TimeController:
    def __init__(self) -> None:
        self.now = 0.0

    def advance(self, seconds: float) -> None:
        self.now += seconds

    def __call__(self) -> float:
        return self.now


def _result() -> ScanResult:
    origin = score_observation(Coordinate(1.0, 2.0), WeatherObservation(10, 0, True))
    return ScanResult(current=origin, nearby=())


def test_cache_key_rounds_to_three_places():
    assert cache_key(Coordinate(48.13712, 11.57549)) == "scan:48.137:11.575"
    assert cache_key(Coordinate(48.13749, 11.5751)) == cache_key(Coordinate(48.1371, 11.5749))


def test_get_respects_ttl():
    clock = TimeController()
    cache = ScanCache(max_stale_age=3600, time_func=clock)
    result = _result()
    cache.put("k", result, ttl=600)

    assert cache.get("k") is result
    clock.advance(599)
    assert cache.get("k") is result
    clock.advance(2)
    assert cache.get("k") is None


def test_stale_entry_available_within_tolerance():
    clock = TimeController()
    cache = ScanCache(max_stale_age=3600, time_func=clock)
    result = _result()
    cache.put("k", result, ttl=600)

    clock.advance(1800)
    assert cache.get("k") is None
    entry = cache.get_stale("k")
    assert entry is not None
    assert entry.result is result

    clock.advance(1801)
    assert cache.get_stale("k") is None
    assert len(cache) == 0


def test_get_stale_honours_explicit_max_age():
    clock = TimeController()
    cache = ScanCache(max_stale_age=3600, time_func=clock)
    cache.put("k", _result(), ttl=10)
    clock.advance(120)
    assert cache.get_stale("k", max_age=60) is None
    assert cache.get_stale("k", max_age=300) is not None


def test_clear_drops_entries():
    cache = ScanCache()
    cache.put("a", _result(), ttl=60)
    cache.put("b", _result(), ttl=60)
    assert len(cache) == 2
    cache.clear()
    assert cache.get("a") is None
    assert len(cache) == 0


def test_put_sweeps_entries_past_stale_tolerance():
    clock = TimeController()
    cache = ScanCache(max_stale_age=3600, time_func=clock)
    for idx in range(1000):
        cache.put(f"scan:{idx}", _result(), ttl=600)
    clock.advance(1800)
    cache.put("scan:recent", _result(), ttl=600)
    assert len(cache) == 1001

    clock.advance(10 * 3600)
    cache.put("scan:new", _result(), ttl=600)

    assert len(cache) == 1
    assert cache.get("scan:new") is not None
