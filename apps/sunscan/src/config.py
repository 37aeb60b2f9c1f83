from pathlib import Path
from typing import List

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

class Settings(BaseSettings):
    # Load apps/sunscan/.env and accept env keys in any case
    _env_file = Path(__file__).resolve().parent.parent / ".env"
    model_config = SettingsConfigDict(env_file=str(_env_file), extra="ignore", case_sensitive=False)

    app_name: str = "SunScan"
    app_version: str = "0.1.0"
    debug: bool = False
    cors_origins: List[str] = Field(default_factory=lambda: ["*"])
    port: int = 8000

    # Weather API
    weather_user_agent: str = Field(
        default="SunScan/0.1.0 (support@example.com)",
        description="User-Agent sent to upstream weather and geocoding providers.",
    )
    weather_base_url: str = Field(
        default="https://api.open-meteo.com/v1/forecast",
        description="Batch forecast endpoint accepting comma-separated coordinate lists",
    )
    weather_request_timeout: float = Field(default=8.0, ge=1.0, description="Timeout in seconds for weather HTTP calls")
    weather_retry_attempts: int = Field(
        default=1,
        ge=0,
        le=3,
        description="Extra attempts after a transient weather fetch failure.",
    )
    weather_retry_backoff: float = Field(
        default=0.5,
        ge=0.0,
        description="Seconds to wait before a retry, multiplied by the attempt number.",
    )
    weather_forecast_days: int = Field(default=2, ge=1, le=7, description="Hourly forecast horizon requested")

    # Scan pipeline
    sample_radii_km: List[float] = Field(default_factory=lambda: [15.0, 30.0, 50.0])
    scan_cache_ttl: int = Field(default=600, ge=0, description="Cache duration (seconds) for scan results")
    scan_stale_tolerance: int = Field(
        default=3600,
        ge=0,
        description="Maximum age in seconds of a cached scan served as a stale fallback when the provider is unreachable.",
    )
    scan_cache_precision: int = Field(default=3, ge=0, le=6, description="Decimal places used to key cached scans")

    # Reverse geocoding (presentation only)
    geocode_base_url: str = Field(default="https://nominatim.openstreetmap.org/reverse")
    geocode_timeout: float = Field(default=4.0, ge=1.0, description="Timeout for reverse geocoding HTTP calls")
    geocode_cache_ttl: int = Field(default=86400, ge=0, description="Cache duration (seconds) for place names")
    geocode_min_interval: float = Field(
        default=1.0, ge=0.0, description="Minimum spacing (seconds) between reverse geocoding requests"
    )
    places_enabled: bool = Field(default=True, description="Allow /scan to annotate points with place names.")

    @field_validator("cors_origins", mode="before")
    @classmethod
    def normalize_cors(cls, v):
        if isinstance(v, str):
            s = v.strip()
            if s.startswith("["):
                import json
                return json.loads(s)
            if s in ("", "*"):
                return ["*"]
            return [p.strip() for p in s.split(",")]
        return v

    @field_validator("sample_radii_km", mode="before")
    @classmethod
    def normalize_radii(cls, v):
        if isinstance(v, str):
            s = v.strip()
            if s.startswith("["):
                import json
                return json.loads(s)
            return [float(p) for p in s.split(",") if p.strip()]
        return v

settings = Settings()
