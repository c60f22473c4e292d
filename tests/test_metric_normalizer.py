"""
Metric normalisation tests.

The key property: an unavailable provider renders as N/A and never takes
part in arithmetic, so it cannot pass for a real zero.
"""
from app.models.dashboard import PLACEHOLDER, DataSource, MetricStatus
from app.models.provider_data import ProductSales
from app.services.metric_normalizer import (
    NO_DATA,
    NO_ORDERS,
    NOT_CONNECTED,
    Live,
    Unavailable,
    build_metric,
    combine,
    currency,
    data_source_for,
    from_optional,
    merge_top_products,
    partial_change,
    percent,
    ratio,
    sum_live,
    threshold_status,
)


class TestMetricValue:

    def test_map_only_touches_live(self):
        assert Live(2).map(lambda v: v * 10) == Live(20)
        assert NOT_CONNECTED.map(lambda v: v * 10) is NOT_CONNECTED

    def test_from_optional(self):
        assert from_optional(0) == Live(0)
        assert from_optional(None, "No data") == Unavailable("No data")

    def test_combine_returns_first_unavailable(self):
        assert combine(lambda a, b: a + b, Live(1), Live(2)) == Live(3)
        assert combine(lambda a, b: a + b, Live(1), NO_DATA) is NO_DATA

    def test_ratio(self):
        assert ratio(Live(5), Live(200), 100) == Live(2.5)
        assert ratio(Live(5), Live(0)) == NO_DATA
        assert ratio(Live(5), Live(0), empty=NO_ORDERS) is NO_ORDERS
        assert ratio(NOT_CONNECTED, Live(10)) is NOT_CONNECTED
        assert ratio(Live(10), NOT_CONNECTED) is NOT_CONNECTED

    def test_sum_live_reports_missing_parts(self):
        total, live, missing = sum_live({"fireblood": Live(100.0), "topg": NOT_CONNECTED, "dng": Live(50.0)})
        assert total == Live(150.0)
        assert live == ["fireblood", "dng"]
        assert missing == ["topg"]

    def test_sum_live_with_nothing_live(self):
        total, live, missing = sum_live({"a": NOT_CONNECTED, "b": NO_DATA})
        assert not total.is_live
        assert live == []
        assert missing == ["a", "b"]


class TestBuildMetric:

    def test_live_metric(self):
        m = build_metric("revenue", "Revenue (Last 30 Days)", Live(12345.6), currency("£"))
        assert m.value == "£12,346"
        assert m.raw_value == 12345.6
        assert m.is_live is True
        assert m.change == "LIVE"
        assert m.status == MetricStatus.GOOD

    def test_unavailable_metric_renders_placeholder(self):
        m = build_metric("revenue", "Revenue", NOT_CONNECTED, currency("£"))
        assert m.value == PLACEHOLDER
        assert m.raw_value is None
        assert m.is_live is False
        assert m.change == "Not connected"
        assert m.status == MetricStatus.WARNING

    def test_empty_ratio_is_neutral_not_a_warning(self):
        m = build_metric("aov", "AOV", ratio(Live(0.0), Live(0), empty=NO_ORDERS), currency("£"))
        assert m.value == PLACEHOLDER
        assert m.is_live is False
        assert m.change == "No orders"
        assert m.status == MetricStatus.NEUTRAL

    def test_live_zero_is_not_placeholder(self):
        m = build_metric("orders", "Orders", Live(0), str)
        assert m.is_live is True
        assert m.raw_value == 0.0

    def test_status_callable(self):
        m = build_metric(
            "bounce_rate", "Bounce Rate", Live(62.0), percent(1),
            status=lambda v: MetricStatus.GOOD if v < 50 else MetricStatus.WARNING,
        )
        assert m.value == "62.0%"
        assert m.status == MetricStatus.WARNING

    def test_negative_currency(self):
        assert currency("£", 2)(-12.5) == "-£12.50"


def test_threshold_status_both_directions():
    assert threshold_status(3.5, good=3, warning=2) == MetricStatus.GOOD
    assert threshold_status(2.5, good=3, warning=2) == MetricStatus.WARNING
    assert threshold_status(1.0, good=3, warning=2) == MetricStatus.CRITICAL
    assert threshold_status(4.0, good=5, warning=8, higher_is_better=False) == MetricStatus.GOOD
    assert threshold_status(6.0, good=5, warning=8, higher_is_better=False) == MetricStatus.WARNING
    assert threshold_status(9.0, good=5, warning=8, higher_is_better=False) == MetricStatus.CRITICAL


def test_partial_change_text():
    assert partial_change(["a", "b"], []) == "LIVE"
    assert partial_change(["a"], ["b", "c"], "stores") == "LIVE (1 of 3 stores)"


def test_merge_top_products_tags_shared_products():
    fireblood = [ProductSales("Red Pill", 500.0, 10), ProductSales("Sleep", 100.0, 2)]
    topg = [ProductSales("Red Pill", 300.0, 6), ProductSales("Fireblood Tee", 200.0, 8)]
    rows = merge_top_products([("fireblood.com", fireblood), ("merch.topg.com", topg)], limit=2)
    assert [r.name for r in rows] == ["Red Pill", "Fireblood Tee"]
    assert rows[0].revenue == 800
    assert rows[0].units == 16
    assert rows[0].source == "both"
    assert rows[1].source == "merch.topg.com"


def test_data_source_for():
    assert data_source_for({"a": True, "b": True}) == DataSource.LIVE
    assert data_source_for({"a": True, "b": False}) == DataSource.PARTIAL
    assert data_source_for({"a": False}) == DataSource.UNAVAILABLE
    assert data_source_for({}) == DataSource.UNAVAILABLE
