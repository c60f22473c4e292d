"""
Delta Engine

Period-over-period comparison of dashboard metrics. Pure functions: no I/O,
no provider access. The comparison payload is assembled from two payloads
that were each built by the aggregators.
"""
import math
import re
from dataclasses import dataclass
from typing import Dict, List, Optional, Union

from app.models.dashboard import (
    ComparisonPayload,
    DashboardPayload,
    Direction,
    MetricWithDelta,
    NormalizedMetric,
)
from app.utils.period import ComparisonMode, Period, TimeWindow, comparison_label

# Changes of at most +/-0.5% are reported as flat
DEAD_BAND_PERCENT = 0.5

_STRIP = re.compile(r"[£$€,\s%]")
_UNIT_SUFFIX = re.compile(r"(?<=\d)[xs]$", re.IGNORECASE)


@dataclass(frozen=True)
class Delta:
    percent: float
    absolute: float
    direction: Direction


def calculate_delta(current: float, previous: float) -> Delta:
    """
    Percent and absolute change from previous to current.

    When previous is 0 the percent change is undefined: report +100% if
    anything appeared, 0% otherwise.
    """
    if previous == 0:
        return Delta(
            percent=100.0 if current > 0 else 0.0,
            absolute=current,
            direction=Direction.UP if current > 0 else Direction.FLAT,
        )

    absolute = current - previous
    percent = absolute / previous * 100

    if percent > DEAD_BAND_PERCENT:
        direction = Direction.UP
    elif percent < -DEAD_BAND_PERCENT:
        direction = Direction.DOWN
    else:
        direction = Direction.FLAT

    return Delta(percent=percent, absolute=absolute, direction=direction)


def parse_metric_value(display: Union[str, float, int, None]) -> float:
    """
    Numeric value of a display string such as "£1,234", "3.2%", "3.40x" or "42s".

    Anything unparseable is 0.0; this never raises.
    """
    if display is None:
        return 0.0
    if isinstance(display, (int, float)):
        return float(display) if math.isfinite(display) else 0.0

    cleaned = _UNIT_SUFFIX.sub("", _STRIP.sub("", str(display)))
    try:
        value = float(cleaned)
    except ValueError:
        return 0.0
    return value if math.isfinite(value) else 0.0


def _numeric(metric: NormalizedMetric) -> Optional[float]:
    if not metric.is_live:
        return None
    if metric.raw_value is not None:
        return metric.raw_value
    return parse_metric_value(metric.value)


def apply_deltas(
    current_metrics: List[NormalizedMetric],
    previous_metrics: List[NormalizedMetric],
) -> List[MetricWithDelta]:
    """
    Pair current and previous metrics by key and attach deltas.

    A metric without a live counterpart (or not live itself) is passed
    through with the delta fields left empty.
    """
    previous_by_key: Dict[str, NormalizedMetric] = {m.key: m for m in previous_metrics}
    results = []

    for metric in current_metrics:
        enriched = MetricWithDelta(**metric.model_dump())
        previous = previous_by_key.get(metric.key)
        current_value = _numeric(metric)
        previous_value = _numeric(previous) if previous is not None else None

        if current_value is not None and previous_value is not None:
            delta = calculate_delta(current_value, previous_value)
            enriched.previous_value = previous.value
            enriched.previous_raw = previous_value
            enriched.delta_percent = round(delta.percent, 2)
            enriched.delta_absolute = round(delta.absolute, 2)
            enriched.direction = delta.direction

        results.append(enriched)

    return results


def build_comparison(
    current: DashboardPayload,
    previous: DashboardPayload,
    mode: Union[ComparisonMode, str],
    kind: Union[Period, str],
    alignment: Optional[str] = None,
    window: Optional[TimeWindow] = None,
) -> ComparisonPayload:
    """window is the current period's window; it sizes the comparison label."""
    mode = ComparisonMode(mode)
    return ComparisonPayload(
        current=current,
        previous=previous,
        comparison_period=mode.value,
        comparison_label=comparison_label(kind, mode, alignment, window),
        previous_date_range=previous.date_range,
        metrics_with_deltas=apply_deltas(current.metrics, previous.metrics),
    )
