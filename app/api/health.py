"""
Health check and status endpoints
"""
from fastapi import APIRouter, Depends, Query
from datetime import datetime, timezone
from app.api.dependencies import get_cache, get_registry
from app.config import get_settings
from app.connectors.registry import ConnectorRegistry
from app.utils.cache import VersionedCache
from app.utils.fetch import FetchEntry, fetch_all_with_timeout
from app import __version__

router = APIRouter()


@router.get("/health")
async def health_check():
    """Health check endpoint"""
    return {
        "status": "healthy",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "version": __version__
    }


@router.get("/status")
async def get_status(
    cache: VersionedCache = Depends(get_cache),
    registry: ConnectorRegistry = Depends(get_registry),
):
    """Get system status: which connectors are configured, cache size and epoch"""
    settings = get_settings()
    return {
        "app_name": settings.app_name,
        "version": __version__,
        "environment": settings.environment,
        "period_alignment": settings.period_alignment,
        "connectors": registry.status(),
        "cache": {
            "entries": cache.size(),
            "epoch": cache.epoch,
            "default_ttl_seconds": cache.default_ttl,
        },
        "llm_insights": bool(settings.enable_llm_insights and settings.anthropic_api_key),
        "timestamp": datetime.now(timezone.utc).isoformat()
    }


@router.get("/status/connectors")
async def get_connector_status(
    probe: bool = Query(False, description="Call each configured provider to check credentials"),
    registry: ConnectorRegistry = Depends(get_registry),
):
    """Connector report, optionally with a live credential check per provider"""
    report = registry.status()
    if not probe:
        return report

    settings = get_settings()
    connectors = registry.configured()
    results = await fetch_all_with_timeout(
        [FetchEntry(c.name, c.validate_connection(), fallback=False) for c in connectors],
        timeout=settings.fan_out_timeout_seconds,
    )
    for key, status in report.items():
        if status.get("connected"):
            status["reachable"] = bool(results.get(status.get("name"), False))
    return report
