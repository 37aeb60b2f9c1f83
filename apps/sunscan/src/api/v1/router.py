from fastapi import APIRouter

from config import settings
from services.scanner import scan_cache, scan_service
from .scan_router import router as scan_router

router = APIRouter(prefix="/api/v1", tags=["v1"])
router.include_router(scan_router)


@router.get("/health")
async def health():
    return {
        "status": "ok",
        "version": settings.app_version,
        "scan_cache": {"entries": len(scan_cache), "ttl_seconds": scan_service.cache_ttl},
        "inflight_scans": scan_service.inflight_count(),
    }


@router.get("/info")
async def info():
    return {
        "name": settings.app_name,
        "version": settings.app_version,
        "debug": settings.debug,
        "cors_origins": settings.cors_origins,
        "weather_base_url": settings.weather_base_url,
        "sample_radii_km": list(scan_service.radii_km),
        "places_enabled": settings.places_enabled,
    }
