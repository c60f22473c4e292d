"""
Delta engine tests: percent/absolute change, dead band, display parsing,
pairing current and previous metrics by key.
"""
from datetime import datetime

import pytest

from app.models.dashboard import BrandPayload, DataSource, Direction, MetricStatus, NormalizedMetric
from app.services.delta_engine import apply_deltas, build_comparison, calculate_delta, parse_metric_value
from app.services.metric_normalizer import NOT_CONNECTED, Live, build_metric, currency
from app.utils.period import Period, format_for_api, resolve_comparison, resolve_window


def _metric(key, raw, live=True, value=None):
    if not live:
        return build_metric(key, key.title(), NOT_CONNECTED, str)
    return NormalizedMetric(
        key=key, label=key.title(), value=value or str(raw), raw_value=raw,
        status=MetricStatus.GOOD, is_live=True,
    )


class TestCalculateDelta:

    def test_increase(self):
        d = calculate_delta(120, 100)
        assert d.percent == pytest.approx(20.0)
        assert d.absolute == 20
        assert d.direction == Direction.UP

    def test_decrease(self):
        d = calculate_delta(75, 100)
        assert d.percent == pytest.approx(-25.0)
        assert d.direction == Direction.DOWN

    def test_dead_band_is_flat(self):
        assert calculate_delta(100.4, 100).direction == Direction.FLAT
        assert calculate_delta(99.6, 100).direction == Direction.FLAT
        assert calculate_delta(100.6, 100).direction == Direction.UP
        assert calculate_delta(99.4, 100).direction == Direction.DOWN

    def test_dead_band_edges_are_flat(self):
        up = calculate_delta(201, 200)
        assert up.percent == pytest.approx(0.5)
        assert up.direction == Direction.FLAT
        assert calculate_delta(199, 200).direction == Direction.FLAT

    def test_previous_zero(self):
        d = calculate_delta(50, 0)
        assert (d.percent, d.absolute, d.direction) == (100.0, 50, Direction.UP)
        d = calculate_delta(0, 0)
        assert (d.percent, d.direction) == (0.0, Direction.FLAT)

    def test_negative_previous_keeps_its_sign(self):
        d = calculate_delta(-50, -100)
        assert d.percent == pytest.approx(-50.0)
        assert d.absolute == 50
        assert d.direction == Direction.DOWN


class TestParseMetricValue:

    @pytest.mark.parametrize("display,expected", [
        ("£1,234", 1234.0),
        ("£1,234.50", 1234.50),
        ("$99.50", 99.5),
        ("€12", 12.0),
        ("3.2%", 3.2),
        ("3.40x", 3.4),
        ("42s", 42.0),
        ("12,345", 12345.0),
        (7, 7.0),
        (2.5, 2.5),
    ])
    def test_parses_display_strings(self, display, expected):
        assert parse_metric_value(display) == expected

    @pytest.mark.parametrize("display", ["N/A", "", None, "abc", float("nan"), "inf"])
    def test_unparseable_is_zero(self, display):
        assert parse_metric_value(display) == 0.0


class TestApplyDeltas:

    def test_pairs_by_key_not_position(self):
        current = [_metric("revenue", 200.0), _metric("orders", 10.0)]
        previous = [_metric("orders", 5.0), _metric("revenue", 100.0)]
        by_key = {m.key: m for m in apply_deltas(current, previous)}
        assert by_key["revenue"].delta_percent == 100.0
        assert by_key["orders"].delta_percent == 100.0
        assert by_key["revenue"].previous_raw == 100.0

    def test_prefers_raw_value_over_display(self):
        current = [_metric("aov", 50.5, value="£51")]
        previous = [_metric("aov", 40.0, value="£40")]
        [m] = apply_deltas(current, previous)
        assert m.delta_absolute == 10.5
        assert m.previous_value == "£40"

    def test_falls_back_to_display_string(self):
        current = [NormalizedMetric(key="x", label="X", value="£1,500", is_live=True)]
        previous = [NormalizedMetric(key="x", label="X", value="£1,000", is_live=True)]
        [m] = apply_deltas(current, previous)
        assert m.delta_percent == 50.0

    def test_unparseable_display_degrades_to_flat(self):
        current = [NormalizedMetric(key="x", label="X", value="N/A", is_live=True)]
        previous = [NormalizedMetric(key="x", label="X", value="N/A", is_live=True)]
        [m] = apply_deltas(current, previous)
        assert m.delta_percent == 0.0
        assert m.delta_absolute == 0.0
        assert m.direction == Direction.FLAT
        assert m.previous_value == "N/A"

    def test_unparseable_current_reads_as_zero(self):
        current = [NormalizedMetric(key="x", label="X", value="pending", is_live=True)]
        [m] = apply_deltas(current, [_metric("x", 200.0)])
        assert m.value == "pending"
        assert m.delta_percent == -100.0
        assert m.direction == Direction.DOWN

    def test_unavailable_on_either_side_has_no_delta(self):
        current = [_metric("revenue", 200.0), _metric("sessions", 0, live=False)]
        previous = [_metric("revenue", 0, live=False), _metric("sessions", 900.0)]
        for m in apply_deltas(current, previous):
            assert m.delta_percent is None
            assert m.direction is None

    def test_missing_previous_key_passes_through(self):
        [m] = apply_deltas([_metric("new_metric", 5.0)], [])
        assert m.key == "new_metric"
        assert m.delta_percent is None

    def test_rounds_to_two_decimals(self):
        [m] = apply_deltas([_metric("x", 1.0)], [_metric("x", 3.0)])
        assert m.delta_percent == -66.67


def test_build_comparison_carries_both_payloads():
    money = currency("£")

    def payload(revenue):
        return BrandPayload(
            tab="fireblood", brand_name="Fireblood", period="week", period_label="Last 7 Days",
            date_range={"start_date": "2026-10-13", "end_date": "2026-10-19"},
            metrics=[build_metric("revenue", "Revenue", Live(revenue), money)],
            sources={"orders": True}, data_source=DataSource.LIVE,
        )

    current, previous = payload(1100.0), payload(1000.0)
    result = build_comparison(current, previous, "previous_period", "week", alignment="rolling")
    assert result.comparison_period == "previous_period"
    assert result.comparison_label == "vs Previous 7 Days"
    assert result.previous_date_range == previous.date_range
    assert result.metrics_with_deltas[0].delta_percent == 10.0
    assert result.metrics_with_deltas[0].direction == Direction.UP


def test_build_comparison_labels_calendar_window_by_length():
    window = resolve_window(Period.MONTH, now=datetime(2026, 10, 19, 14, 30), alignment="calendar")

    def payload(revenue, date_range):
        return BrandPayload(
            tab="fireblood", brand_name="Fireblood", period="month", period_label="This Month",
            date_range=date_range, metrics=[build_metric("revenue", "Revenue", Live(revenue), currency("£"))],
            sources={"orders": True}, data_source=DataSource.LIVE,
        )

    previous_window = resolve_comparison(window, "previous_period")
    current = payload(1900.0, format_for_api(window))
    previous = payload(1900.0, format_for_api(previous_window))
    result = build_comparison(current, previous, "previous_period", "month", alignment="calendar", window=window)

    assert result.comparison_label == "vs Previous 19 Days"
    assert result.previous_date_range == {"start_date": "2026-09-12", "end_date": "2026-09-30"}
    assert result.metrics_with_deltas[0].direction == Direction.FLAT
