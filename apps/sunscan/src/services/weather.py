from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timezone
from typing import Annotated, Any, Optional, Sequence

import httpx
from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, ValidationError, model_validator

from config import settings
from services.errors import FetchFailed, MalformedResponse, NoDataAvailable
from services.models import Coordinate, HourlyReading, WeatherObservation

logger = logging.getLogger("sunscan.weather")

CURRENT_FIELDS = ["cloud_cover", "precipitation_probability", "is_day"]
HOURLY_FIELDS = ["cloud_cover", "precipitation_probability"]
RETRYABLE_HTTP_STATUS = {408, 429, 500, 502, 503, 504}

Percent = Annotated[float, Field(ge=0.0, le=100.0)]


class _CurrentBlock(BaseModel):
    model_config = ConfigDict(extra="ignore")

    cloud_cover: Percent
    precipitation_probability: Percent
    is_day: bool


class _HourlyBlock(BaseModel):
    model_config = ConfigDict(extra="ignore")

    time: list[datetime]
    cloud_cover: list[Percent]
    precipitation_probability: list[Percent]

    @model_validator(mode="after")
    def _check_parallel(self) -> "_HourlyBlock":
        if not (len(self.time) == len(self.cloud_cover) == len(self.precipitation_probability)):
            raise ValueError("hourly arrays differ in length")
        return self


class _CandidatePayload(BaseModel):
    model_config = ConfigDict(extra="ignore")

    latitude: Optional[float] = None
    longitude: Optional[float] = None
    current: _CurrentBlock


class _LocationPayload(_CandidatePayload):
    hourly: Optional[_HourlyBlock] = None


_ORIGIN_ADAPTER = TypeAdapter(_LocationPayload)
_CANDIDATES_ADAPTER = TypeAdapter(list[_CandidatePayload])


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def _to_observation(payload: _CandidatePayload) -> WeatherObservation:
    hourly: tuple[HourlyReading, ...] = ()
    if isinstance(payload, _LocationPayload) and payload.hourly is not None:
        hourly = tuple(
            HourlyReading(timestamp=_as_utc(ts), cloud_cover_pct=cloud, precip_prob_pct=precip)
            for ts, cloud, precip in zip(
                payload.hourly.time,
                payload.hourly.cloud_cover,
                payload.hourly.precipitation_probability,
            )
        )
    return WeatherObservation(
        cloud_cover_pct=payload.current.cloud_cover,
        precip_prob_pct=payload.current.precipitation_probability,
        is_day=payload.current.is_day,
        hourly=hourly,
    )


def parse_batch(payload: Any, expected: int) -> list[WeatherObservation]:
    """Validate a raw provider payload and convert it into observations.

    A single-location request comes back as a bare object rather than a list.
    Only the first location keeps its hourly forecast; the hourly blocks of the
    remaining locations are ignored.
    """
    if not payload:
        raise NoDataAvailable("weather provider returned an empty payload")
    if isinstance(payload, dict):
        payload = [payload]
    if not isinstance(payload, list):
        raise MalformedResponse(f"unexpected payload type {type(payload).__name__}")
    if len(payload) != expected:
        raise MalformedResponse(f"requested {expected} locations, provider returned {len(payload)}")
    if any(item is None for item in payload):
        raise NoDataAvailable("weather provider returned null entries")
    try:
        locations: list[_CandidatePayload] = [_ORIGIN_ADAPTER.validate_python(payload[0])]
        locations.extend(_CANDIDATES_ADAPTER.validate_python(payload[1:]))
    except ValidationError as exc:
        logger.error("Weather payload failed validation: %s", exc.errors(include_url=False)[:5])
        raise MalformedResponse(f"weather payload failed validation ({exc.error_count()} errors)") from exc
    return [_to_observation(location) for location in locations]


class WeatherClient:
    """Batched current + hourly weather lookups against an Open-Meteo style endpoint."""

    def __init__(
        self,
        base_url: Optional[str] = None,
        *,
        timeout: Optional[float] = None,
        retry_attempts: Optional[int] = None,
        retry_backoff: Optional[float] = None,
        forecast_days: Optional[int] = None,
    ) -> None:
        self._client: Optional[httpx.AsyncClient] = None
        self.base_url = base_url or settings.weather_base_url
        self.timeout = timeout if timeout is not None else settings.weather_request_timeout
        self.retry_attempts = retry_attempts if retry_attempts is not None else settings.weather_retry_attempts
        self.retry_backoff = retry_backoff if retry_backoff is not None else settings.weather_retry_backoff
        self.forecast_days = forecast_days if forecast_days is not None else settings.weather_forecast_days

    async def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            headers = {
                "User-Agent": settings.weather_user_agent,
                "Accept": "application/json",
            }
            self._client = httpx.AsyncClient(headers=headers, timeout=self.timeout)
        return self._client

    async def close(self) -> None:
        if self._client:
            await self._client.aclose()
            self._client = None

    def build_params(self, points: Sequence[Coordinate]) -> dict[str, Any]:
        return {
            "latitude": ",".join(f"{p.latitude:.4f}" for p in points),
            "longitude": ",".join(f"{p.longitude:.4f}" for p in points),
            "current": ",".join(CURRENT_FIELDS),
            "hourly": ",".join(HOURLY_FIELDS),
            "forecast_days": self.forecast_days,
            "timezone": "UTC",
            "timeformat": "unixtime",
        }

    async def fetch_batch(self, points: Sequence[Coordinate]) -> list[WeatherObservation]:
        if not points:
            raise ValueError("fetch_batch() needs at least one coordinate")
        params = self.build_params(points)
        payload = await self._request_json(params, len(points))
        observations = parse_batch(payload, len(points))
        logger.debug("Resolved weather for %s locations", len(observations))
        return observations

    async def _request_json(self, params: dict[str, Any], count: int) -> Any:
        client = await self._get_client()
        max_attempts = 1 + self.retry_attempts
        response: httpx.Response | None = None
        for attempt in range(1, max_attempts + 1):
            try:
                response = await client.get(self.base_url, params=params)
                response.raise_for_status()
                break
            except httpx.HTTPStatusError as exc:
                status = exc.response.status_code
                reason = _error_reason(exc.response)
                if status not in RETRYABLE_HTTP_STATUS:
                    logger.error("Weather provider rejected batch of %s (%s): %s", count, status, reason)
                    raise FetchFailed(f"weather provider returned HTTP {status}: {reason}") from exc
                logger.warning(
                    "Weather provider returned %s (attempt %s/%s): %s",
                    status,
                    attempt,
                    max_attempts,
                    reason,
                )
                if attempt >= max_attempts:
                    raise FetchFailed(f"weather provider returned HTTP {status}") from exc
            except httpx.TransportError as exc:
                logger.warning(
                    "Weather request failed (attempt %s/%s): %r",
                    attempt,
                    max_attempts,
                    exc,
                )
                if attempt >= max_attempts:
                    raise FetchFailed(f"weather request failed: {exc.__class__.__name__}") from exc
            await asyncio.sleep(self.retry_backoff * attempt)
        assert response is not None
        try:
            return response.json()
        except ValueError as exc:
            logger.error("Failed to decode weather JSON: %s", response.text[:512])
            raise MalformedResponse("weather provider returned invalid JSON") from exc


def _error_reason(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        return response.text[:256] if response.text else ""
    if isinstance(body, dict) and body.get("reason"):
        return str(body["reason"])
    return str(body)[:256]


weather_client = WeatherClient()

__all__ = ["WeatherClient", "parse_batch", "weather_client"]
