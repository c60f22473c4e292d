"""
Cache management endpoints
"""
from datetime import datetime, timezone

from fastapi import APIRouter, Depends

from app.api.dependencies import get_cache
from app.utils.cache import VersionedCache
from app.utils.logger import log

router = APIRouter(prefix="/api/cache", tags=["cache"])


@router.post("/clear")
async def clear_cache(cache: VersionedCache = Depends(get_cache)):
    """Drop every cached provider response and generated insight"""
    cleared = cache.clear()
    log.info(f"Cache cleared: {cleared} entries")
    return {
        "message": "Cache cleared",
        "entries_cleared": cleared,
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }
