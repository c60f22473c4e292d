"""
Request dependencies

The cache, connector registry and insights service are created once in the
application lifespan and live on app.state. Endpoints receive them through
Depends() so tests can swap them with app.dependency_overrides.
"""
from fastapi import Request

from app.connectors.registry import ConnectorRegistry
from app.services.insights_service import InsightsService
from app.utils.cache import VersionedCache


def get_cache(request: Request) -> VersionedCache:
    return request.app.state.cache


def get_registry(request: Request) -> ConnectorRegistry:
    return request.app.state.registry


def get_insights_service(request: Request) -> InsightsService:
    return request.app.state.insights
