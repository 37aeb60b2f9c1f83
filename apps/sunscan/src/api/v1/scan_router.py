from __future__ import annotations

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Header, HTTPException, Query, Request
from pydantic import BaseModel, Field

from config import settings
from services.errors import FetchFailed, InvalidCoordinate, MalformedResponse, ScanError, ScanSuperseded
from services.geocoding import reverse_geocoder
from services.models import Coordinate, ScanResult, ScoredPoint, SunnyWindow, SunStatus
from services.scan_cache import cache_key
from services.scanner import scan_service

logger = logging.getLogger("sunscan.api.scan")

router = APIRouter(prefix="/scan", tags=["scan"])

ERROR_STATUS: dict[type[ScanError], int] = {
    InvalidCoordinate: 422,
    FetchFailed: 503,
    MalformedResponse: 502,
    ScanSuperseded: 409,
}


def validate_lat(lat: float = Query(..., ge=-90.0, le=90.0)) -> float:
    return lat


def validate_lon(lon: float = Query(..., ge=-180.0, le=180.0)) -> float:
    return lon


class SunnyWindowModel(BaseModel):
    start: str
    end: str
    hours: float


class ScanPoint(BaseModel):
    lat: float
    lon: float
    direction: str | None = Field(default=None, description="Compass direction from the origin")
    bearing_deg: float | None = None
    distance_km: float = Field(default=0.0, ge=0.0)
    score: float = Field(ge=0.0, le=100.0, description="Sun score, 100 is a clear dry sky")
    status: str
    cloud_cover_pct: float
    precip_prob_pct: float
    is_day: bool
    place_name: str | None = None


class ScanResponse(BaseModel):
    location: dict[str, float]
    current: ScanPoint
    nearby: list[ScanPoint]
    no_sun_nearby: bool = Field(default=False, description="True when no candidate within the radius has usable sun")
    best_upcoming_window: SunnyWindowModel | None = None
    message: str
    stale: bool = Field(default=False, description="True when served from cache because the provider was unreachable")
    fetched_at: str | None = None


def _isoformat(value) -> str:
    iso = value.isoformat(timespec="seconds")
    if iso.endswith("+00:00"):
        return iso[:-6] + "Z"
    return iso


def _point_model(point: ScoredPoint, place_name: Optional[str] = None) -> ScanPoint:
    return ScanPoint(
        lat=round(point.coordinate.latitude, 5),
        lon=round(point.coordinate.longitude, 5),
        direction=point.direction.value if point.direction else None,
        bearing_deg=point.direction.bearing if point.direction else None,
        distance_km=point.distance_km,
        score=point.score,
        status=point.status.value,
        cloud_cover_pct=point.observation.cloud_cover_pct,
        precip_prob_pct=point.observation.precip_prob_pct,
        is_day=point.observation.is_day,
        place_name=place_name,
    )


def _window_model(window: SunnyWindow | None) -> SunnyWindowModel | None:
    if window is None:
        return None
    return SunnyWindowModel(start=_isoformat(window.start), end=_isoformat(window.end), hours=window.hours)


def _anonymous_context(request: Request, origin: Coordinate) -> str:
    # Callers without X-Client-Id only supersede their own scans of the same area.
    host = request.client.host if request.client else "unknown"
    return f"{host}|{cache_key(origin, scan_service.cache_precision)}"


def summarize(result: ScanResult, radius_km: float) -> str:
    if result.current.status is SunStatus.SUN_NOW:
        return "Sun now at your location."
    radius = f"{radius_km:g} km"
    if result.no_sun_nearby:
        window = result.best_upcoming_window
        if window is not None:
            return f"No usable sun within {radius}. Next sunny window starts {_isoformat(window.start)}."
        return f"No usable sun within {radius} and none in the forecast."
    best = result.nearby[0]
    direction = best.direction.value if best.direction else "?"
    return f"Nearest sun: {best.distance_km:g} km {direction} ({best.status.value})."


@router.get("", response_model=ScanResponse)
async def scan(
    request: Request,
    lat: float = Depends(validate_lat),
    lon: float = Depends(validate_lon),
    places: bool = Query(False, description="Annotate points with place names"),
    client_id: Optional[str] = Header(None, alias="X-Client-Id"),
) -> ScanResponse:
    try:
        origin = Coordinate(lat, lon)
        context = client_id or _anonymous_context(request, origin)
        result = await scan_service.compute_scan(origin, context=context)
    except ScanError as exc:
        status = next((code for kind, code in ERROR_STATUS.items() if isinstance(exc, kind)), 500)
        logger.warning("Scan %.3f,%.3f failed (%s): %s", lat, lon, exc.kind, exc.message)
        raise HTTPException(status_code=status, detail=exc.to_dict()) from exc

    names: list[Optional[str]] = [None] * (1 + len(result.nearby))
    if places and settings.places_enabled:
        names = await reverse_geocoder.place_names(
            [result.current.coordinate] + [point.coordinate for point in result.nearby]
        )

    return ScanResponse(
        location={"lat": lat, "lon": lon},
        current=_point_model(result.current, names[0]),
        nearby=[_point_model(point, name) for point, name in zip(result.nearby, names[1:])],
        no_sun_nearby=result.no_sun_nearby,
        best_upcoming_window=_window_model(result.best_upcoming_window),
        message=summarize(result, max(scan_service.radii_km)),
        stale=result.stale,
        fetched_at=_isoformat(result.fetched_at) if result.fetched_at else None,
    )
