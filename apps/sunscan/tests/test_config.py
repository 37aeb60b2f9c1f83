from config import Settings


def test_settings_defaults():
    settings = Settings(_env_file=None)
    assert settings.app_name == "SunScan"
    assert settings.scan_cache_ttl == 600
    assert settings.scan_cache_precision == 3
    assert settings.weather_retry_attempts == 1
    assert settings.sample_radii_km == [15.0, 30.0, 50.0]


def test_settings_normalizes_cors_from_string():
    settings = Settings(_env_file=None, cors_origins="http://example.com, http://localhost")
    assert settings.cors_origins == ["http://example.com", "http://localhost"]


def test_settings_normalizes_radii_from_string():
    settings = Settings(_env_file=None, sample_radii_km="10, 20,40")
    assert settings.sample_radii_km == [10.0, 20.0, 40.0]


def test_settings_handles_case_insensitive_env(monkeypatch):
    monkeypatch.setenv("SCAN_CACHE_TTL", "120")
    monkeypatch.setenv("weather_retry_backoff", "0.25")
    settings = Settings(_env_file=None)
    assert settings.scan_cache_ttl == 120
    assert settings.weather_retry_backoff == 0.25
