"""
HTTP surface tests with FastAPI's TestClient.

The cache, registry and insights service are swapped through
app.dependency_overrides; no provider is ever contacted.
"""
from types import SimpleNamespace

import pytest
from fastapi.testclient import TestClient

from app.api.dependencies import get_cache, get_insights_service, get_registry
from app.main import app
from app.models.provider_data import OrderStats
from app.services.insights_service import InsightsService
from app.utils.cache import VersionedCache
from app.utils.period import Period

from fakes import FakeAnalytics, FakeRegistry, FakeStore, make_settings


class PeriodAwareStore(FakeStore):
    """Current windows sell 1,100; comparison windows (always custom) sell 1,000."""

    async def get_order_stats(self, window):
        await self._act("get_order_stats")
        revenue = 1000.0 if window.kind == Period.CUSTOM else 1100.0
        return OrderStats(revenue=revenue, orders=10, avg_order_value=revenue / 10)


class ExplodingRegistry(FakeRegistry):
    def store(self, brand):
        raise RuntimeError("registry misconfigured")


@pytest.fixture
def cache():
    return VersionedCache()


@pytest.fixture
def registry():
    return FakeRegistry(
        stores={"fireblood": PeriodAwareStore("fireblood")},
        analytics={"fireblood": FakeAnalytics("fireblood", sessions=1000)},
    )


@pytest.fixture
def client(cache, registry):
    app.dependency_overrides[get_cache] = lambda: cache
    app.dependency_overrides[get_registry] = lambda: registry
    app.dependency_overrides[get_insights_service] = lambda: InsightsService(
        cache, make_settings(anthropic_api_key="")
    )
    yield TestClient(app)
    app.dependency_overrides.clear()


class TestDashboardEndpoint:

    def test_brand_tab(self, client):
        response = client.get("/api/dashboard", params={"tab": "fireblood", "period": "week"})
        assert response.status_code == 200
        body = response.json()
        assert body["success"] is True
        data = body["data"]
        assert data["tab"] == "fireblood"
        metrics = {m["key"]: m for m in data["metrics"]}
        assert metrics["revenue"]["raw_value"] == 1100.0
        assert metrics["sessions"]["value"] == "1,000"
        assert data["sources"]["orders"] is True

    def test_overview_is_default_tab(self, client):
        data = client.get("/api/dashboard").json()["data"]
        assert data["tab"] == "overview"
        assert data["portfolio"]["live_brands"] == ["fireblood"]
        assert data["portfolio"]["is_partial"] is True

    def test_comparison_returns_deltas_from_second_pass(self, client, registry):
        response = client.get(
            "/api/dashboard",
            params={"tab": "fireblood", "period": "week", "comparison": "previous_period"},
        )
        assert response.status_code == 200
        data = response.json()["data"]

        assert data["comparison_period"] == "previous_period"
        assert data["current"]["tab"] == data["previous"]["tab"] == "fireblood"
        deltas = {m["key"]: m for m in data["metrics_with_deltas"]}
        assert deltas["revenue"]["delta_percent"] == 10.0
        assert deltas["revenue"]["direction"] == "up"
        assert deltas["revenue"]["previous_value"] == "£1,000"
        assert deltas["sessions"]["direction"] == "flat"
        assert registry.stores["fireblood"].calls["get_order_stats"] == 2

    def test_custom_range(self, client):
        response = client.get(
            "/api/dashboard",
            params={"tab": "gtop", "period": "custom", "start_date": "2026-09-01", "end_date": "2026-09-30"},
        )
        data = response.json()["data"]
        assert data["date_range"] == {"start_date": "2026-09-01", "end_date": "2026-09-30"}
        assert data["period_label"] == "2026-09-01 - 2026-09-30"

    @pytest.mark.parametrize("params", [
        {"tab": "shopify"},
        {"period": "fortnight"},
        {"comparison": "last_decade"},
        {"period": "custom", "start_date": "not-a-date"},
    ])
    def test_invalid_selectors_are_rejected(self, client, params):
        assert client.get("/api/dashboard", params=params).status_code == 422

    def test_unexpected_error_is_500(self, cache):
        app.dependency_overrides[get_cache] = lambda: cache
        app.dependency_overrides[get_registry] = lambda: ExplodingRegistry()
        try:
            response = TestClient(app).get("/api/dashboard", params={"tab": "fireblood"})
        finally:
            app.dependency_overrides.clear()
        assert response.status_code == 500
        assert "registry misconfigured" in response.json()["detail"]


class TestInsightsEndpoint:

    def test_unconfigured_key_is_not_an_error(self, client):
        response = client.post("/api/insights", json={"current_data": {}, "tab": "overview", "period": "month"})
        assert response.status_code == 200
        data = response.json()["data"]
        assert "ANTHROPIC_API_KEY" in data["text"]
        assert data["insights"][0]["type"] == "warning"

    def test_generated_insights(self, client, cache):
        class Messages:
            async def create(self, **kwargs):
                return SimpleNamespace(content=[SimpleNamespace(text="✅ Revenue up 10%.\n💡 Add a bundle.")])

        service = InsightsService(
            cache, make_settings(anthropic_api_key="sk-test"), client=SimpleNamespace(messages=Messages())
        )
        app.dependency_overrides[get_insights_service] = lambda: service

        response = client.post("/api/insights", json={
            "current_data": {"tab": "fireblood"},
            "metrics_with_deltas": [
                {"key": "revenue", "label": "Revenue", "value": "£1,100", "is_live": True, "delta_percent": 10.0},
            ],
            "tab": "fireblood",
            "period": "week",
        })
        insights = response.json()["data"]["insights"]
        assert [i["type"] for i in insights] == ["win", "opportunity"]
        assert insights[0]["text"] == "Revenue up 10%."

    def test_status(self, client):
        body = client.get("/api/insights").json()
        assert body["configured"] is False
        assert body["status"] == "ok"


class TestCacheAndHealth:

    def test_clear_cache(self, client, cache):
        cache.set("woo:fireblood:churn", 1)
        cache.set("insights:overview:month:abc", "text")
        body = client.post("/api/cache/clear").json()
        assert body["entries_cleared"] == 2
        assert body["message"] == "Cache cleared"
        assert cache.size() == 0

    def test_health(self, client):
        body = client.get("/health").json()
        assert body["status"] == "healthy"

    def test_status_reports_connectors_and_cache(self, client, cache):
        cache.set("k", 1)
        body = client.get("/status").json()
        assert body["cache"]["entries"] == 1
        assert body["cache"]["epoch"] == cache.epoch
        assert "woocommerce:fireblood" in body["connectors"]

    def test_connector_probe(self, client):
        body = client.get("/status/connectors", params={"probe": "true"}).json()
        assert body["woocommerce:fireblood"]["reachable"] is True
        assert body["ga4:fireblood"]["reachable"] is True
