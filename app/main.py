"""
Brand War Room
Main FastAPI application
"""
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from starlette.middleware.gzip import GZipMiddleware
from contextlib import asynccontextmanager

from app.config import get_settings
from app.connectors.registry import ConnectorRegistry
from app.services.insights_service import InsightsService
from app.utils.cache import VersionedCache
from app.utils.logger import log
from app import __version__

# Import routers
from app.api import cache, dashboard, health, insights

settings = get_settings()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup and shutdown events"""
    # Startup
    log.info(f"Starting {settings.app_name} v{__version__}")
    log.info(f"Environment: {settings.environment}, period alignment: {settings.period_alignment}")

    app.state.cache = VersionedCache(default_ttl=settings.cache_default_ttl_seconds)
    app.state.registry = ConnectorRegistry(settings)
    app.state.insights = InsightsService(app.state.cache, settings)
    log.info(f"Cache epoch {app.state.cache.epoch}")

    configured = app.state.registry.configured()
    log.info(f"{len(configured)} connectors configured: {', '.join(c.name for c in configured) or 'none'}")

    yield

    # Shutdown
    log.info(f"Shutting down application ({app.state.cache.size()} cache entries dropped)")


# Create FastAPI app
app = FastAPI(
    title=settings.app_name,
    version=__version__,
    description="""
    Multi-brand analytics dashboard API

    Pulls live data per brand from:
    - WooCommerce (orders, products, subscriptions)
    - Google Analytics 4 (traffic, channels)
    - Google Ads (exported to Google Sheets)
    - Sendlane (email lists)

    and serves normalised tab payloads with period-over-period deltas.
    Providers that are not configured, slow or failing show as "Not connected"
    instead of failing the page.

    AI insights on the current view are generated with Claude.
    """,
    lifespan=lifespan
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # Configure appropriately for production
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Gzip compression
app.add_middleware(GZipMiddleware, minimum_size=500)

# Include routers
app.include_router(health.router, tags=["health"])
app.include_router(dashboard.router)
app.include_router(insights.router)
app.include_router(cache.router)


@app.get("/")
async def root():
    """Root endpoint with API information"""
    return {
        "app": settings.app_name,
        "version": __version__,
        "description": "Multi-brand analytics dashboard",
        "docs": "/docs",
        "health": "/health",
        "status": "/status",
        "endpoints": {
            "dashboard": "GET /api/dashboard?tab=&period=&start_date=&end_date=&comparison=",
            "insights": "POST /api/insights",
            "insights_status": "GET /api/insights",
            "clear_cache": "POST /api/cache/clear",
            "connectors": "GET /status/connectors?probe=true",
        },
    }


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "app.main:app",
        host=settings.api_host,
        port=settings.api_port,
        reload=settings.debug
    )
