"""
AI insights API
"""
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field

from app.api.dependencies import get_insights_service
from app.models.dashboard import MetricWithDelta
from app.services.insights_service import InsightsService, parse_insights
from app.utils.logger import log

router = APIRouter(prefix="/api/insights", tags=["insights"])


class InsightsRequest(BaseModel):
    current_data: Dict[str, Any]
    previous_data: Optional[Dict[str, Any]] = None
    metrics_with_deltas: List[MetricWithDelta] = Field(default_factory=list)
    period: str = "month"
    tab: str = "overview"


@router.get("")
async def get_insights_status(service: InsightsService = Depends(get_insights_service)):
    """Whether insights can be generated"""
    return service.status()


@router.post("")
async def generate_insights(
    request: InsightsRequest,
    service: InsightsService = Depends(get_insights_service),
):
    """
    3-5 insights for the dashboard view the caller is looking at

    The body is the payload (and, with a comparison, the previous payload and
    deltas) exactly as returned by /api/dashboard.
    """
    try:
        text = await service.generate(
            request.current_data,
            request.previous_data,
            request.metrics_with_deltas,
            request.period,
            request.tab,
        )
        return {
            "success": True,
            "data": {
                "text": text,
                "insights": [i.model_dump() for i in parse_insights(text)],
            },
        }

    except Exception as e:
        log.error(f"Error generating insights for {request.tab}/{request.period}: {str(e)}")
        raise HTTPException(status_code=500, detail=str(e))
