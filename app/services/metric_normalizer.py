"""
Metric normalisation

Provider results reach the aggregation layer as MetricValue: either
Live(value) or Unavailable(reason). Unavailable never takes part in
arithmetic, so a missing provider can never show up as a real-looking zero.
The builders here turn tagged values into NormalizedMetric tiles.
"""
from dataclasses import dataclass
from typing import Any, Callable, ClassVar, Dict, Generic, Iterable, List, Optional, Tuple, TypeVar, Union

from app.models.dashboard import PLACEHOLDER, DataSource, MetricStatus, NormalizedMetric, ProductRow
from app.models.provider_data import ProductSales
from app.utils.helpers import (
    format_currency,
    format_multiplier,
    format_number,
    format_percent,
    format_seconds,
)

T = TypeVar("T")

NOT_CONNECTED_REASON = "Not connected"


@dataclass(frozen=True)
class Live(Generic[T]):
    value: T
    is_live: ClassVar[bool] = True

    def map(self, fn: Callable[[T], Any]) -> "Live":
        return Live(fn(self.value))

    def or_none(self) -> T:
        return self.value


@dataclass(frozen=True)
class Unavailable:
    reason: str = NOT_CONNECTED_REASON
    is_live: ClassVar[bool] = False

    def map(self, fn: Callable[[Any], Any]) -> "Unavailable":
        return self

    def or_none(self) -> None:
        return None


MetricValue = Union[Live, Unavailable]

# Fallback for every provider call: not configured, timed out and errored all look the same
NOT_CONNECTED = Unavailable(NOT_CONNECTED_REASON)
NO_DATA = Unavailable("No data")
# Store answered but the period had no orders to divide by
NO_ORDERS = Unavailable("No orders")


def from_optional(value: Optional[T], reason: str = NOT_CONNECTED_REASON) -> MetricValue:
    if value is None:
        return Unavailable(reason)
    return Live(value)


def combine(fn: Callable[..., Any], *values: MetricValue) -> MetricValue:
    """Apply fn to the unwrapped values if all are live, else the first Unavailable."""
    for value in values:
        if not value.is_live:
            return value
    return Live(fn(*(v.value for v in values)))


def ratio(
    numerator: MetricValue,
    denominator: MetricValue,
    scale: float = 1.0,
    empty: Unavailable = NO_DATA,
) -> MetricValue:
    """numerator / denominator * scale, Unavailable when either side is; empty when the denominator is 0."""
    for value in (numerator, denominator):
        if not value.is_live:
            return value
    if not denominator.value:
        return empty
    return Live(numerator.value / denominator.value * scale)


def sum_live(values: Dict[str, MetricValue]) -> Tuple[MetricValue, List[str], List[str]]:
    """
    Sum the live entries of a keyed set.

    Returns (total, live_keys, missing_keys). total is Unavailable only when
    nothing was live; otherwise it is the sum of the live parts and the
    missing keys say what it leaves out.
    """
    live = [k for k, v in values.items() if v.is_live]
    missing = [k for k, v in values.items() if not v.is_live]
    if not live:
        return NOT_CONNECTED, live, missing
    return Live(sum(values[k].value for k in live)), live, missing


# ---------------------------------------------------------------------------
# Formatting
# ---------------------------------------------------------------------------

def currency(symbol: str, decimals: int = 0) -> Callable[[float], str]:
    return lambda amount: format_currency(amount, symbol, decimals)


def percent(decimals: int = 2) -> Callable[[float], str]:
    return lambda value: format_percent(value, decimals)


number = format_number
multiplier = format_multiplier
seconds = format_seconds


def threshold_status(
    value: float,
    good: float,
    warning: float,
    higher_is_better: bool = True,
) -> MetricStatus:
    """good/warning/critical against two thresholds."""
    if higher_is_better:
        if value >= good:
            return MetricStatus.GOOD
        return MetricStatus.WARNING if value >= warning else MetricStatus.CRITICAL
    if value <= good:
        return MetricStatus.GOOD
    return MetricStatus.WARNING if value <= warning else MetricStatus.CRITICAL


def build_metric(
    key: str,
    label: str,
    value: MetricValue,
    formatter: Callable[[float], str],
    status: Union[MetricStatus, Callable[[float], MetricStatus]] = MetricStatus.GOOD,
    color: Optional[str] = None,
    change: Optional[str] = None,
) -> NormalizedMetric:
    """
    One dashboard tile from a tagged value.

    Live values are formatted and keep their raw number for delta maths.
    Unavailable values render the placeholder with the reason as change text;
    only a missing provider is flagged as a warning.
    """
    if not value.is_live:
        return NormalizedMetric(
            key=key,
            label=label,
            value=PLACEHOLDER,
            raw_value=None,
            status=MetricStatus.WARNING if value.reason == NOT_CONNECTED_REASON else MetricStatus.NEUTRAL,
            is_live=False,
            change=value.reason,
            color=color,
        )

    raw = float(value.value)
    return NormalizedMetric(
        key=key,
        label=label,
        value=formatter(raw),
        raw_value=raw,
        status=status(raw) if callable(status) else status,
        is_live=True,
        change=change or "LIVE",
        color=color,
    )


def partial_change(live: List[str], missing: List[str], noun: str = "brands") -> str:
    """Change text for a total built from only some of its parts."""
    if not missing:
        return "LIVE"
    return f"LIVE ({len(live)} of {len(live) + len(missing)} {noun})"


# ---------------------------------------------------------------------------
# Products
# ---------------------------------------------------------------------------

def product_rows(products: Iterable[ProductSales], source: Optional[str] = None) -> List[ProductRow]:
    return [
        ProductRow(name=p.name, revenue=round(p.revenue), units=p.units, source=source or p.source)
        for p in products
    ]


def merge_top_products(
    sources: List[Tuple[str, Iterable[ProductSales]]],
    limit: int = 10,
) -> List[ProductRow]:
    """
    Merge per-store product lists by product name.

    A product sold in more than one store sums its revenue and units and is
    tagged "both"; otherwise it keeps its store tag.
    """
    merged: Dict[str, Dict[str, Any]] = {}
    for tag, products in sources:
        for p in products:
            existing = merged.get(p.name)
            if existing is None:
                merged[p.name] = {"revenue": p.revenue, "units": p.units, "source": tag}
            else:
                existing["revenue"] += p.revenue
                existing["units"] += p.units
                if existing["source"] != tag:
                    existing["source"] = "both"

    ranked = sorted(merged.items(), key=lambda kv: kv[1]["revenue"], reverse=True)[:limit]
    return [
        ProductRow(name=name, revenue=round(data["revenue"]), units=data["units"], source=data["source"])
        for name, data in ranked
    ]


def data_source_for(sources: Dict[str, bool]) -> DataSource:
    """live when every planned provider call was live, partial when some were."""
    live = sum(1 for is_live in sources.values() if is_live)
    if sources and live == len(sources):
        return DataSource.LIVE
    return DataSource.PARTIAL if live else DataSource.UNAVAILABLE
