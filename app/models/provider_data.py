"""
Raw provider value objects

What each adapter returns after parsing a provider response. These are
immutable and carry plain numbers; formatting and liveness are handled by
the aggregation layer.
"""
from dataclasses import dataclass, field
from datetime import date
from typing import Iterable, Optional, Tuple

from app.utils.helpers import safe_divide


@dataclass(frozen=True)
class OrderStats:
    revenue: float
    orders: int
    avg_order_value: float


@dataclass(frozen=True)
class ProductSales:
    name: str
    revenue: float
    units: int
    # Store tag when products from several stores are merged
    source: Optional[str] = None


@dataclass(frozen=True)
class FilteredOrderStats:
    """Order totals restricted to line items whose name matches a filter."""
    revenue: float
    orders: int
    matching_products: Tuple[ProductSales, ...] = ()


@dataclass(frozen=True)
class SubscriptionStats:
    active_subscribers: int
    # Monthly recurring revenue, normalised from each billing period
    mrr: float


@dataclass(frozen=True)
class ChurnStats:
    churn_rate: float  # percent
    cancelled_this_month: int
    active_start: int


@dataclass(frozen=True)
class TrafficStats:
    sessions: int
    users: int
    new_users: int
    bounce_rate: float  # percent
    avg_session_duration: float  # seconds
    page_views: int


@dataclass(frozen=True)
class ChannelTraffic:
    channel: str
    sessions: int
    users: int
    conversions: int


@dataclass(frozen=True)
class AdRow:
    """One row of the Google Ads export sheet (account / day / campaign)."""
    account: str
    date: Optional[date]
    campaign: str
    impressions: int
    clicks: int
    cost: float
    conversions: float
    conversion_value: float


@dataclass(frozen=True)
class AdsSummary:
    """
    Ad account totals for a window.

    Ratios are always derived from the summed totals, never averaged from
    per-row ratios. A ratio is None when its denominator is zero.
    """
    impressions: int
    clicks: int
    spend: float
    conversions: float
    conversion_value: float
    ctr: Optional[float] = None  # percent
    avg_cpc: Optional[float] = None
    cpa: Optional[float] = None
    roas: Optional[float] = None
    row_count: int = 0

    @classmethod
    def from_totals(
        cls,
        impressions: int,
        clicks: int,
        spend: float,
        conversions: float,
        conversion_value: float,
        row_count: int = 0,
    ) -> "AdsSummary":
        ctr = safe_divide(clicks, impressions)
        return cls(
            impressions=impressions,
            clicks=clicks,
            spend=spend,
            conversions=conversions,
            conversion_value=conversion_value,
            ctr=ctr * 100 if ctr is not None else None,
            avg_cpc=safe_divide(spend, clicks),
            cpa=safe_divide(spend, conversions),
            roas=safe_divide(conversion_value, spend),
            row_count=row_count,
        )

    @classmethod
    def from_rows(cls, rows: Iterable[AdRow]) -> Optional["AdsSummary"]:
        """Summarise sheet rows; None when there are no rows at all."""
        rows = list(rows)
        if not rows:
            return None
        return cls.from_totals(
            impressions=sum(r.impressions for r in rows),
            clicks=sum(r.clicks for r in rows),
            spend=sum(r.cost for r in rows),
            conversions=sum(r.conversions for r in rows),
            conversion_value=sum(r.conversion_value for r in rows),
            row_count=len(rows),
        )

    @classmethod
    def combine(cls, summaries: Iterable["AdsSummary"]) -> Optional["AdsSummary"]:
        """Portfolio totals across accounts, ratios recomputed from the sums."""
        summaries = list(summaries)
        if not summaries:
            return None
        return cls.from_totals(
            impressions=sum(s.impressions for s in summaries),
            clicks=sum(s.clicks for s in summaries),
            spend=sum(s.spend for s in summaries),
            conversions=sum(s.conversions for s in summaries),
            conversion_value=sum(s.conversion_value for s in summaries),
            row_count=sum(s.row_count for s in summaries),
        )


@dataclass(frozen=True)
class ListStats:
    total_contacts: int
    active_contacts: int
    unsubscribed_contacts: int


@dataclass(frozen=True)
class EmailListStats:
    """Totals across every list in the email account."""
    total_subscribers: int
    active_contacts: int
    unsubscribed_contacts: int
    list_count: int
    lists: Tuple[str, ...] = field(default_factory=tuple)
