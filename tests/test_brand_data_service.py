"""
Brand tab tests.

Runs the real aggregation against in-memory connectors: configured,
missing, failing and hanging providers, plus cache read-through.
"""
import asyncio
from datetime import datetime

import pytest

from app.models.dashboard import DataSource, MetricStatus
from app.models.provider_data import (
    AdsSummary,
    ChannelTraffic,
    ChurnStats,
    EmailListStats,
    FilteredOrderStats,
    ProductSales,
    SubscriptionStats,
)
from app.services.brand_data_service import BrandDataService
from app.utils.cache import VersionedCache
from app.utils.period import Period, resolve_window

from fakes import FakeAds, FakeAnalytics, FakeEmail, FakeRegistry, FakeStore, make_settings


def _run(coro):
    return asyncio.run(coro)


WINDOW = resolve_window(Period.WEEK, now=datetime(2026, 10, 19, 12), alignment="rolling")


def _service(registry, cache=None):
    return BrandDataService(cache or VersionedCache(), registry, make_settings())


def _metrics(payload):
    return {m.key: m for m in payload.metrics}


class TestFirebloodTab:

    def test_all_providers_live(self):
        store = FakeStore(
            "fireblood", revenue=2000.0, orders=40,
            products=[ProductSales("Red Pill", 900.0, 30), ProductSales("Sleep", 300.0, 10)],
            subscriptions=SubscriptionStats(active_subscribers=120, mrr=1500.0),
            churn=ChurnStats(churn_rate=4.2, cancelled_this_month=5, active_start=125),
        )
        registry = FakeRegistry(
            stores={"fireblood": store},
            analytics={"fireblood": FakeAnalytics("fireblood", sessions=1000)},
        )
        payload = _run(_service(registry).build_brand_payload("fireblood", WINDOW))
        m = _metrics(payload)

        assert payload.tab == "fireblood"
        assert payload.data_source == DataSource.LIVE
        assert m["revenue"].value == "£2,000"
        assert m["revenue"].label == "Revenue (Last 7 Days)"
        assert m["aov"].value == "£50.00"
        assert m["conversion_rate"].value == "4.00%"
        assert m["bounce_rate"].value == "42.5%"
        assert [p.name for p in payload.top_products] == ["Red Pill", "Sleep"]
        assert payload.subscription_metrics.active_subscribers == 120
        assert payload.subscription_metrics.churn_rate == 4.2

    def test_unconfigured_store_shows_not_connected(self):
        """No store credentials: order tiles are N/A, traffic still live."""
        registry = FakeRegistry(analytics={"fireblood": FakeAnalytics("fireblood", sessions=1000)})
        payload = _run(_service(registry).build_brand_payload("fireblood", WINDOW))
        m = _metrics(payload)

        for key in ("revenue", "orders", "aov", "conversion_rate"):
            assert m[key].is_live is False
            assert m[key].value == "N/A"
            assert m[key].change == "Not connected"
            assert m[key].status == MetricStatus.WARNING

    def test_zero_order_period_is_not_an_outage(self):
        registry = FakeRegistry(
            stores={"fireblood": FakeStore("fireblood", revenue=0.0, orders=0)},
            analytics={"fireblood": FakeAnalytics("fireblood", sessions=1000)},
        )
        payload = _run(_service(registry).build_brand_payload("fireblood", WINDOW))
        m = _metrics(payload)

        assert m["revenue"].is_live is True
        assert m["orders"].value == "0"
        assert m["aov"].is_live is False
        assert m["aov"].change == "No orders"
        assert m["aov"].status == MetricStatus.NEUTRAL
        assert m["conversion_rate"].value == "0.00%"
        assert m["sessions"].is_live is True
        assert m["sessions"].value == "1,000"
        assert payload.top_products == []
        assert payload.subscription_metrics is None
        assert payload.sources["orders"] is False
        assert payload.sources["traffic"] is True
        assert payload.data_source == DataSource.PARTIAL

    def test_nothing_configured_is_unavailable_not_zero(self):
        payload = _run(_service(FakeRegistry()).build_brand_payload("fireblood", WINDOW))
        assert payload.data_source == DataSource.UNAVAILABLE
        assert all(not m.is_live and m.raw_value is None for m in payload.metrics)

    @pytest.mark.parametrize("behaviour", [{"fail": True}, {"hang": True}])
    def test_failing_or_slow_store_degrades(self, behaviour):
        registry = FakeRegistry(
            stores={"fireblood": FakeStore("fireblood", **behaviour)},
            analytics={"fireblood": FakeAnalytics("fireblood")},
        )
        payload = _run(_service(registry).build_brand_payload("fireblood", WINDOW))
        m = _metrics(payload)
        assert m["revenue"].is_live is False
        assert m["sessions"].is_live is True
        assert payload.data_source == DataSource.PARTIAL

    def test_second_render_reads_through_cache(self):
        store = FakeStore("fireblood")
        analytics = FakeAnalytics("fireblood")
        registry = FakeRegistry(stores={"fireblood": store}, analytics={"fireblood": analytics})
        cache = VersionedCache()
        service = _service(registry, cache)

        _run(service.build_brand_payload("fireblood", WINDOW))
        _run(service.build_brand_payload("fireblood", WINDOW))

        assert store.calls["get_order_stats"] == 1
        assert analytics.calls["get_traffic_stats"] == 1
        assert cache.get(f"woo:fireblood:stats:{WINDOW.cache_token()}").revenue == 1000.0

    def test_failed_call_is_retried_next_render(self):
        store = FakeStore("fireblood", fail=True)
        service = _service(FakeRegistry(stores={"fireblood": store}))
        _run(service.build_brand_payload("fireblood", WINDOW))
        _run(service.build_brand_payload("fireblood", WINDOW))
        assert store.calls["get_order_stats"] == 2


class TestFirebloodPlusTab:

    def _registry(self, topg_store=True):
        fireblood = FakeStore(
            "fireblood", revenue=1000.0, orders=20,
            products=[ProductSales("Red Pill", 600.0, 12)],
            subscriptions=SubscriptionStats(active_subscribers=100, mrr=700.0),
            churn=ChurnStats(churn_rate=4.0, cancelled_this_month=4, active_start=100),
        )
        stores = {"fireblood": fireblood}
        if topg_store:
            stores["topg"] = FakeStore(
                "topg",
                filtered=FilteredOrderStats(
                    revenue=250.0, orders=5,
                    matching_products=(ProductSales("Red Pill", 150.0, 3), ProductSales("Fireblood Tee", 100.0, 2)),
                ),
            )
        ads = FakeAds({"Fireblood": AdsSummary.from_totals(
            impressions=10000, clicks=500, spend=1000.0, conversions=25, conversion_value=3000.0,
        )})
        return FakeRegistry(
            stores=stores,
            analytics={"fireblood": FakeAnalytics("fireblood", users=800)},
            ads=ads,
        )

    def test_combines_both_stores(self):
        payload = _run(_service(self._registry()).build_brand_payload("fireblood_plus", WINDOW))
        m = _metrics(payload)

        assert payload.brand_name == "Fireblood+"
        assert m["combined_revenue"].raw_value == 1250.0
        assert m["combined_revenue"].change == "LIVE"
        assert m["total_orders"].raw_value == 25
        assert m["combined_aov"].value == "£50.00"
        assert m["conversion_rate"].raw_value == pytest.approx(25 / 800 * 100)
        assert payload.summary["topg_contribution_pct"] == pytest.approx(20.0)

        products = {p.name: p for p in payload.top_products}
        assert products["Red Pill"].source == "both"
        assert products["Red Pill"].revenue == 750
        assert products["Fireblood Tee"].source == "merch.topg.com"

        assert [s.value for s in payload.revenue_breakdown] == [1000.0, 250.0]

    def test_acquirer_scorecard(self):
        payload = _run(_service(self._registry()).build_brand_payload("fireblood_plus", WINDOW))
        card = {item.metric: item for item in payload.acquirer_scorecard}

        assert card["Monthly Churn Rate"].current == "4%"
        assert card["Monthly Churn Rate"].status == MetricStatus.GOOD
        assert card["Subscription % of Revenue"].current == "56%"
        assert card["CAC (Google Ads)"].current == "£40.00"
        assert card["LTV:CAC Ratio"].current == "3.1:1"
        assert card["LTV:CAC Ratio"].status == MetricStatus.GOOD
        assert card["ROAS (Google Ads)"].current == "3.00x"
        assert card["DTC % of Revenue"].current == "100%"

    def test_missing_topg_store_is_partial_total(self):
        payload = _run(_service(self._registry(topg_store=False)).build_brand_payload("fireblood_plus", WINDOW))
        m = _metrics(payload)

        assert m["combined_revenue"].raw_value == 1000.0
        assert m["combined_revenue"].change == "LIVE (1 of 2 stores)"
        assert m["topg_fireblood_revenue"].is_live is False
        assert payload.summary["topg_contribution_pct"] is None
        assert payload.revenue_breakdown[1].is_live is False

    def test_scorecard_without_ads_is_not_live(self):
        registry = self._registry()
        registry._ads = None
        payload = _run(_service(registry).build_brand_payload("fireblood_plus", WINDOW))
        card = {item.metric: item for item in payload.acquirer_scorecard}
        for name in ("CAC (Google Ads)", "LTV:CAC Ratio", "ROAS (Google Ads)"):
            assert card[name].is_live is False
            assert card[name].current == "N/A"


def test_gtop_tab_reads_topg_store_and_channels():
    registry = FakeRegistry(
        stores={"topg": FakeStore("topg", revenue=800.0, orders=16)},
        analytics={"topg": FakeAnalytics("topg", channels=[
            ChannelTraffic("Organic Search", 600, 500, 12),
            ChannelTraffic("Direct", 0, 0, 0),
        ])},
    )
    payload = _run(_service(registry).build_brand_payload("gtop", WINDOW))
    assert payload.brand_name == "Gtop"
    assert _metrics(payload)["revenue"].raw_value == 800.0
    assert payload.channel_traffic[0].conversion_rate == 2.0
    assert payload.channel_traffic[1].conversion_rate is None


def test_dng_tab_with_email():
    registry = FakeRegistry(
        analytics={"dng": FakeAnalytics("dng", bounce_rate=61.0)},
        email=FakeEmail(EmailListStats(5000, 4500, 500, 2, ("Main", "VIP"))),
    )
    payload = _run(_service(registry).build_brand_payload("dng", WINDOW))
    m = _metrics(payload)

    assert m["email_list_size"].value == "5,000"
    assert m["bounce_rate"].status == MetricStatus.WARNING
    assert m["avg_session"].value == "95s"
    assert m["revenue"].is_live is False
    assert payload.email_stats.list_count == 2


def test_unknown_tab_raises():
    with pytest.raises(ValueError):
        _run(_service(FakeRegistry()).build_brand_payload("shopify", WINDOW))
