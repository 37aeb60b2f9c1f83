import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Callable, Dict

ROOT = Path(__file__).resolve().parents[1]
SRC_PATH = ROOT / "src"
if str(SRC_PATH) not in sys.path:
    sys.path.insert(0, str(SRC_PATH))

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402

from config import settings  # noqa: E402
from main import create_app  # noqa: E402
from services.geocoding import reverse_geocoder  # noqa: E402
from services.scanner import scan_cache, scan_service  # noqa: E402

WEATHER_URL = "https://weather.test/v1/forecast"
GEOCODE_URL = "https://geocode.test/reverse"
MUNICH = (48.137, 11.576)
HOUR0 = int(datetime(2025, 6, 1, 0, 0, tzinfo=timezone.utc).timestamp())


@pytest.fixture
def anyio_backend() -> str:
    return "asyncio"


@pytest.fixture(autouse=True)
def _reset_scan_state(monkeypatch) -> None:
    monkeypatch.setattr(settings, "weather_base_url", WEATHER_URL)
    monkeypatch.setattr(settings, "geocode_base_url", GEOCODE_URL)
    monkeypatch.setattr(scan_service.weather_client, "base_url", WEATHER_URL)
    monkeypatch.setattr(scan_service.weather_client, "retry_backoff", 0.0)
    monkeypatch.setattr(reverse_geocoder, "_base_url", GEOCODE_URL)
    monkeypatch.setattr(reverse_geocoder, "_min_interval", 0.0)
    scan_cache.clear()
    reverse_geocoder.clear()
    yield
    scan_cache.clear()
    reverse_geocoder.clear()


@pytest.fixture
def settings_override() -> Callable[..., None]:
    original: Dict[str, Any] = {}

    def _apply(**overrides: Any) -> None:
        for key, value in overrides.items():
            if key not in original:
                original[key] = getattr(settings, key)
            setattr(settings, key, value)

    yield _apply

    for key, value in original.items():
        setattr(settings, key, value)


@pytest.fixture
def client() -> TestClient:
    app = create_app()
    with TestClient(app, headers={"X-Client-Id": "test-client"}) as test_client:
        yield test_client


def location_payload(
    cloud: float = 80.0,
    precip: float = 0.0,
    is_day: int = 1,
    hourly: list[tuple[float, float]] | None = None,
    start: int = HOUR0,
) -> dict[str, Any]:
    """One location entry shaped like the provider's batch response."""
    entry: dict[str, Any] = {
        "latitude": 0.0,
        "longitude": 0.0,
        "current": {
            "time": start,
            "cloud_cover": cloud,
            "precipitation_probability": precip,
            "is_day": is_day,
        },
    }
    if hourly is not None:
        entry["hourly"] = {
            "time": [start + 3600 * idx for idx in range(len(hourly))],
            "cloud_cover": [c for c, _ in hourly],
            "precipitation_probability": [p for _, p in hourly],
        }
    return entry


def batch_payload(count: int = 25, **overrides: Any) -> list[dict[str, Any]]:
    return [location_payload(**overrides) for _ in range(count)]
