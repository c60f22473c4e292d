"""
Dashboard API

One endpoint serves every tab. With a comparison selected, the same tab is
built a second time over the comparison window and the response carries both
payloads plus per-metric deltas.
"""
from datetime import date
from enum import Enum
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query

from app.api.dependencies import get_cache, get_registry
from app.config import get_settings
from app.connectors.registry import ConnectorRegistry
from app.models.dashboard import DashboardPayload
from app.services.brand_data_service import BrandDataService
from app.services.delta_engine import build_comparison
from app.services.overview_service import OverviewService
from app.utils.cache import VersionedCache
from app.utils.logger import log
from app.utils.period import ComparisonMode, Period, TimeWindow, resolve_comparison, resolve_window

router = APIRouter(prefix="/api", tags=["dashboard"])


class Tab(str, Enum):
    OVERVIEW = "overview"
    FIREBLOOD = "fireblood"
    FIREBLOOD_PLUS = "fireblood_plus"
    GTOP = "gtop"
    DNG = "dng"


async def _build(
    tab: Tab,
    window: TimeWindow,
    cache: VersionedCache,
    registry: ConnectorRegistry,
) -> DashboardPayload:
    settings = get_settings()
    if tab == Tab.OVERVIEW:
        return await OverviewService(cache, registry, settings).build_overview_payload(window)
    return await BrandDataService(cache, registry, settings).build_brand_payload(tab.value, window)


@router.get("/dashboard")
async def get_dashboard(
    tab: Tab = Query(Tab.OVERVIEW, description="Dashboard tab"),
    period: Period = Query(Period.MONTH, description="today, week, month, year or custom"),
    start_date: Optional[date] = Query(None, description="Custom range start (period=custom)"),
    end_date: Optional[date] = Query(None, description="Custom range end (period=custom)"),
    comparison: ComparisonMode = Query(ComparisonMode.NONE, description="none, previous_period or previous_year"),
    cache: VersionedCache = Depends(get_cache),
    registry: ConnectorRegistry = Depends(get_registry),
):
    """
    Tab payload for one period

    Returns:
    - metrics: normalised tiles (not-connected providers show as N/A)
    - tab sections (products, subscriptions, traffic, ads...)
    - sources: which provider calls returned live data
    - with a comparison: current, previous and metrics_with_deltas
    """
    settings = get_settings()
    custom_range = None
    if period == Period.CUSTOM:
        custom_range = {"start": start_date, "end": end_date}

    try:
        window = resolve_window(period, custom_range, alignment=settings.period_alignment)
        current = await _build(tab, window, cache, registry)

        comparison_window = resolve_comparison(window, comparison)
        if comparison_window is None:
            return {"success": True, "data": current.model_dump()}

        previous = await _build(tab, comparison_window, cache, registry)
        result = build_comparison(
            current, previous, comparison, period, settings.period_alignment, window=window,
        )
        return {"success": True, "data": result.model_dump()}

    except Exception as e:
        log.error(f"Error building {tab.value} dashboard ({period.value}): {str(e)}")
        raise HTTPException(status_code=500, detail=str(e))
