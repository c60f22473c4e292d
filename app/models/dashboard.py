"""
Dashboard payload models

Everything the UI receives. Payloads are built per request and never cached;
only the raw provider values underneath them are.
"""
from enum import Enum
from typing import Dict, List, Optional, Union

from pydantic import BaseModel, Field


PLACEHOLDER = "N/A"


class MetricStatus(str, Enum):
    GOOD = "good"
    WARNING = "warning"
    CRITICAL = "critical"
    NEUTRAL = "neutral"


class Direction(str, Enum):
    UP = "up"
    DOWN = "down"
    FLAT = "flat"


class DataSource(str, Enum):
    LIVE = "live"
    PARTIAL = "partial"
    UNAVAILABLE = "unavailable"


class NormalizedMetric(BaseModel):
    """
    One dashboard tile.

    key is stable across periods and is what current/previous metrics are
    paired on; label embeds the period label and changes with it.
    """
    key: str
    label: str
    value: str
    raw_value: Optional[float] = None
    status: MetricStatus = MetricStatus.GOOD
    is_live: bool
    change: str = "LIVE"
    color: Optional[str] = None


class MetricWithDelta(NormalizedMetric):
    previous_value: Optional[str] = None
    previous_raw: Optional[float] = None
    delta_percent: Optional[float] = None
    delta_absolute: Optional[float] = None
    direction: Optional[Direction] = None


class ProductRow(BaseModel):
    name: str
    revenue: float
    units: int
    source: Optional[str] = None


class SubscriptionMetrics(BaseModel):
    active_subscribers: Optional[int] = None
    mrr: Optional[float] = None
    churn_rate: Optional[float] = None
    is_live: bool = False


class ScorecardItem(BaseModel):
    """Acquirer-readiness check: current value against a target."""
    metric: str
    current: str
    target: str
    status: MetricStatus
    weight: str
    is_live: bool


class EmailStats(BaseModel):
    total_contacts: Optional[int] = None
    active_contacts: Optional[int] = None
    unsubscribed_contacts: Optional[int] = None
    list_count: Optional[int] = None
    is_live: bool = False


class ChannelRow(BaseModel):
    channel: str
    sessions: int
    users: int
    conversions: int
    conversion_rate: Optional[float] = None


class BreakdownSlice(BaseModel):
    name: str
    value: Optional[float] = None
    color: Optional[str] = None
    is_live: bool = False


class TrafficRow(BaseModel):
    brand: str
    color: Optional[str] = None
    sessions: Optional[int] = None
    users: Optional[int] = None
    new_users: Optional[int] = None
    bounce_rate: Optional[float] = None
    avg_duration: Optional[float] = None
    page_views: Optional[int] = None
    orders: Optional[int] = None
    conv_rate: Optional[float] = None
    is_live: bool = False


class AdsRow(BaseModel):
    account: str
    color: Optional[str] = None
    impressions: Optional[int] = None
    clicks: Optional[int] = None
    spend: Optional[float] = None
    conversions: Optional[float] = None
    conversion_value: Optional[float] = None
    ctr: Optional[float] = None
    cpc: Optional[float] = None
    cpa: Optional[float] = None
    roas: Optional[float] = None
    is_live: bool = False


class AdsTotals(BaseModel):
    impressions: int
    clicks: int
    spend: float
    conversions: float
    conversion_value: float
    ctr: Optional[float] = None
    cpc: Optional[float] = None
    cpa: Optional[float] = None
    roas: Optional[float] = None
    live_accounts: List[str] = Field(default_factory=list)
    missing_accounts: List[str] = Field(default_factory=list)


class PortfolioSummary(BaseModel):
    """Portfolio totals. They include live brands only; is_partial flags the undercount."""
    total_revenue: float = 0.0
    total_orders: int = 0
    total_sessions: int = 0
    live_brands: List[str] = Field(default_factory=list)
    missing_brands: List[str] = Field(default_factory=list)
    is_partial: bool = False


class BrandPayload(BaseModel):
    tab: str
    brand_name: str
    period: str
    period_label: str
    date_range: Dict[str, str]
    metrics: List[NormalizedMetric]
    top_products: List[ProductRow] = Field(default_factory=list)
    subscription_metrics: Optional[SubscriptionMetrics] = None
    acquirer_scorecard: List[ScorecardItem] = Field(default_factory=list)
    revenue_breakdown: List[BreakdownSlice] = Field(default_factory=list)
    email_stats: Optional[EmailStats] = None
    channel_traffic: List[ChannelRow] = Field(default_factory=list)
    # Headline figures for the insight prompt (e.g. combined revenue split)
    summary: Dict[str, Optional[float]] = Field(default_factory=dict)
    sources: Dict[str, bool] = Field(default_factory=dict)
    data_source: DataSource = DataSource.LIVE


class OverviewPayload(BaseModel):
    tab: str = "overview"
    period: str
    period_label: str
    date_range: Dict[str, str]
    metrics: List[NormalizedMetric]
    brand_breakdown: List[BreakdownSlice] = Field(default_factory=list)
    traffic_breakdown: List[BreakdownSlice] = Field(default_factory=list)
    traffic_overview: List[TrafficRow] = Field(default_factory=list)
    ads_overview: List[AdsRow] = Field(default_factory=list)
    ads_summary: Optional[AdsTotals] = None
    portfolio: PortfolioSummary = Field(default_factory=PortfolioSummary)
    sources: Dict[str, bool] = Field(default_factory=dict)
    data_source: DataSource = DataSource.LIVE


DashboardPayload = Union[BrandPayload, OverviewPayload]


class ComparisonPayload(BaseModel):
    current: DashboardPayload
    previous: DashboardPayload
    comparison_period: str
    comparison_label: str
    previous_date_range: Dict[str, str]
    metrics_with_deltas: List[MetricWithDelta]


class InsightType(str, Enum):
    ALERT = "alert"
    WIN = "win"
    WARNING = "warning"
    OPPORTUNITY = "opportunity"


class Insight(BaseModel):
    type: InsightType
    marker: str
    text: str
