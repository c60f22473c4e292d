"""
Brand Data Service

Builds the per-brand dashboard tabs: fireblood, fireblood_plus (the
consolidated Fireblood brand across both stores), gtop and dng.

Each tab plans its provider calls, runs them as one fan-out, and normalises
whatever came back. Providers that are not configured, slow or failing show
up as "Not connected" tiles; a tab is always returned.
"""
from dataclasses import dataclass
from typing import Dict, List, Optional

from app.config import Settings, get_settings
from app.connectors.registry import ConnectorRegistry
from app.models.dashboard import (
    BrandPayload,
    BreakdownSlice,
    ChannelRow,
    EmailStats,
    MetricStatus,
    NormalizedMetric,
    ScorecardItem,
    SubscriptionMetrics,
)
from app.services.metric_normalizer import (
    NO_ORDERS,
    Live,
    MetricValue,
    build_metric,
    combine,
    currency,
    data_source_for,
    from_optional,
    merge_top_products,
    multiplier,
    number,
    partial_change,
    percent,
    product_rows,
    ratio,
    seconds,
    sum_live,
    threshold_status,
)
from app.services.provider_fetch import ProviderFetchPlan, ProviderResults
from app.utils.cache import VersionedCache
from app.utils.helpers import safe_divide
from app.utils.logger import log
from app.utils.period import Period, TimeWindow, format_date_range, format_for_api, period_label, resolve_window


@dataclass(frozen=True)
class BrandProfile:
    key: str
    name: str
    color: str
    # Tab name in the Google Ads export sheet
    ads_account: Optional[str] = None


FIREBLOOD = BrandProfile("fireblood", "Fireblood", "#FF4757", ads_account="Fireblood")
TOPG = BrandProfile("topg", "Gtop", "#00E676", ads_account="TopG")
DNG = BrandProfile("dng", "DNG", "#AA80FF")

BRAND_PROFILES: Dict[str, BrandProfile] = {p.key: p for p in (FIREBLOOD, TOPG, DNG)}

BRAND_TABS = ("fireblood", "fireblood_plus", "gtop", "dng")

# Fireblood-named products sold through the Top G merch store
FIREBLOOD_FILTER = "fireblood"
FIREBLOOD_STORE_TAG = "fireblood.com"
TOPG_STORE_TAG = "merch.topg.com"

# LTV estimate = AOV x average repeat factor
LTV_REPEAT_FACTOR = 2.5

TOP_PRODUCTS_LIMIT = 10


def ads_field(ads: MetricValue, name: str) -> MetricValue:
    """One ratio of a live AdsSummary; ratios with a zero denominator are None there."""
    if not ads.is_live:
        return ads
    return from_optional(getattr(ads.value, name), "No data")


class BrandDataService:
    """Per-brand tab payloads."""

    def __init__(
        self,
        cache: VersionedCache,
        registry: ConnectorRegistry,
        settings: Optional[Settings] = None,
    ):
        self.cache = cache
        self.registry = registry
        self.settings = settings or get_settings()
        self.money = currency(self.settings.currency_symbol)
        self.money_exact = currency(self.settings.currency_symbol, 2)

    async def get_brand_data(
        self,
        brand: str,
        period: Period = Period.MONTH,
        custom_range: Optional[Dict[str, str]] = None,
    ) -> BrandPayload:
        window = resolve_window(period, custom_range, alignment=self.settings.period_alignment)
        return await self.build_brand_payload(brand, window)

    async def build_brand_payload(self, brand: str, window: TimeWindow) -> BrandPayload:
        builders = {
            "fireblood": self._fireblood,
            "fireblood_plus": self._fireblood_plus,
            "gtop": self._gtop,
            "dng": self._dng,
        }
        if brand not in builders:
            raise ValueError(f"Unknown brand tab: {brand}")

        payload = await builders[brand](window)
        log.info(
            f"Built {brand} payload for {format_date_range(window)}: "
            f"{payload.data_source.value}, {sum(payload.sources.values())}/{len(payload.sources)} sources live"
        )
        return payload

    # ------------------------------------------------------------------
    # Shared pieces
    # ------------------------------------------------------------------

    def _plan(self) -> ProviderFetchPlan:
        return ProviderFetchPlan(self.cache, self.settings)

    def _label(self, window: TimeWindow) -> str:
        return period_label(window.kind, window, self.settings.period_alignment)

    def _payload(
        self,
        tab: str,
        brand_name: str,
        window: TimeWindow,
        metrics: List[NormalizedMetric],
        results: ProviderResults,
        **sections,
    ) -> BrandPayload:
        sources = results.sources()
        return BrandPayload(
            tab=tab,
            brand_name=brand_name,
            period=window.kind.value,
            period_label=self._label(window),
            date_range=format_for_api(window),
            metrics=metrics,
            sources=sources,
            data_source=data_source_for(sources),
            **sections,
        )

    def _store_metrics(self, window: TimeWindow, orders: MetricValue, traffic: MetricValue) -> List[NormalizedMetric]:
        """Revenue, Orders, AOV, Sessions, Conversion Rate, Bounce Rate for one store."""
        revenue = orders.map(lambda s: s.revenue)
        order_count = orders.map(lambda s: s.orders)
        sessions = traffic.map(lambda t: t.sessions)

        return [
            build_metric("revenue", f"Revenue ({self._label(window)})", revenue, self.money),
            build_metric("orders", "Orders", order_count, number),
            build_metric("aov", "AOV", ratio(revenue, order_count, empty=NO_ORDERS), self.money_exact),
            build_metric("sessions", "Sessions", sessions, number),
            build_metric("conversion_rate", "Conversion Rate", ratio(order_count, sessions, 100), percent(2)),
            build_metric("bounce_rate", "Bounce Rate", traffic.map(lambda t: t.bounce_rate), percent(1)),
        ]

    @staticmethod
    def _subscription_metrics(subscriptions: MetricValue, churn: MetricValue) -> Optional[SubscriptionMetrics]:
        if not subscriptions.is_live:
            return None
        stats = subscriptions.value
        return SubscriptionMetrics(
            active_subscribers=stats.active_subscribers,
            mrr=stats.mrr,
            churn_rate=churn.map(lambda c: c.churn_rate).or_none(),
            is_live=True,
        )

    @staticmethod
    def _channel_rows(channels: MetricValue) -> List[ChannelRow]:
        if not channels.is_live:
            return []
        rows = []
        for c in channels.value:
            conversion_rate = safe_divide(c.conversions, c.sessions)
            rows.append(ChannelRow(
                channel=c.channel,
                sessions=c.sessions,
                users=c.users,
                conversions=c.conversions,
                conversion_rate=round(conversion_rate * 100, 2) if conversion_rate is not None else None,
            ))
        return rows

    # ------------------------------------------------------------------
    # Tabs
    # ------------------------------------------------------------------

    async def _fireblood(self, window: TimeWindow) -> BrandPayload:
        store = self.registry.store("fireblood")
        plan = self._plan()
        plan.order_stats("orders", store, window)
        plan.top_products("top_products", store, window, TOP_PRODUCTS_LIMIT)
        plan.subscription_stats("subscriptions", store)
        plan.churn("churn", store)
        plan.traffic("traffic", self.registry.analytics("fireblood"), window)
        r = await plan.run()

        return self._payload(
            "fireblood",
            FIREBLOOD.name,
            window,
            self._store_metrics(window, r["orders"], r["traffic"]),
            r,
            top_products=product_rows(r["top_products"].or_none() or []),
            subscription_metrics=self._subscription_metrics(r["subscriptions"], r["churn"]),
        )

    async def _gtop(self, window: TimeWindow) -> BrandPayload:
        store = self.registry.store("topg")
        analytics = self.registry.analytics("topg")
        plan = self._plan()
        plan.order_stats("orders", store, window)
        plan.top_products("top_products", store, window, TOP_PRODUCTS_LIMIT)
        plan.traffic("traffic", analytics, window)
        plan.channels("channels", analytics, window)
        r = await plan.run()

        return self._payload(
            "gtop",
            TOPG.name,
            window,
            self._store_metrics(window, r["orders"], r["traffic"]),
            r,
            top_products=product_rows(r["top_products"].or_none() or []),
            channel_traffic=self._channel_rows(r["channels"]),
        )

    async def _dng(self, window: TimeWindow) -> BrandPayload:
        analytics = self.registry.analytics("dng")
        plan = self._plan()
        plan.order_stats("orders", self.registry.store("dng"), window)
        plan.email_lists("email", self.registry.email())
        plan.traffic("traffic", analytics, window)
        plan.channels("channels", analytics, window)
        r = await plan.run()

        traffic = r["traffic"]
        email = r["email"]
        metrics = [
            build_metric("revenue", f"Revenue ({self._label(window)})", r["orders"].map(lambda s: s.revenue), self.money),
            build_metric("email_list_size", "Email List Size", email.map(lambda e: e.total_subscribers), number),
            build_metric("sessions", "Sessions", traffic.map(lambda t: t.sessions), number),
            build_metric("page_views", "Page Views", traffic.map(lambda t: t.page_views), number),
            build_metric(
                "bounce_rate",
                "Bounce Rate",
                traffic.map(lambda t: t.bounce_rate),
                percent(1),
                status=lambda v: MetricStatus.GOOD if v < 50 else MetricStatus.WARNING,
            ),
            build_metric("avg_session", "Avg Session", traffic.map(lambda t: t.avg_session_duration), seconds),
        ]

        email_stats = None
        if email.is_live:
            e = email.value
            email_stats = EmailStats(
                total_contacts=e.total_subscribers,
                active_contacts=e.active_contacts,
                unsubscribed_contacts=e.unsubscribed_contacts,
                list_count=e.list_count,
                is_live=True,
            )

        return self._payload(
            "dng",
            DNG.name,
            window,
            metrics,
            r,
            email_stats=email_stats,
            channel_traffic=self._channel_rows(r["channels"]),
        )

    async def _fireblood_plus(self, window: TimeWindow) -> BrandPayload:
        """
        Consolidated Fireblood: the Fireblood store plus Fireblood-named
        products sold on the Top G store.
        """
        fireblood_store = self.registry.store("fireblood")
        plan = self._plan()
        plan.order_stats("fireblood_orders", fireblood_store, window)
        plan.filtered_order_stats("topg_fireblood_orders", self.registry.store("topg"), window, FIREBLOOD_FILTER)
        plan.top_products("top_products", fireblood_store, window, TOP_PRODUCTS_LIMIT)
        plan.subscription_stats("subscriptions", fireblood_store)
        plan.churn("churn", fireblood_store)
        plan.traffic("traffic", self.registry.analytics("fireblood"), window)
        plan.ads_summary("ads", self.registry.ads(), FIREBLOOD.ads_account, window)
        r = await plan.run()

        fireblood_orders = r["fireblood_orders"]
        topg_orders = r["topg_fireblood_orders"]
        fireblood_revenue = fireblood_orders.map(lambda s: s.revenue)
        topg_revenue = topg_orders.map(lambda s: s.revenue)

        total_revenue, live_stores, missing_stores = sum_live({
            FIREBLOOD_STORE_TAG: fireblood_revenue,
            TOPG_STORE_TAG: topg_revenue,
        })
        total_orders, _, _ = sum_live({
            FIREBLOOD_STORE_TAG: fireblood_orders.map(lambda s: s.orders),
            TOPG_STORE_TAG: topg_orders.map(lambda s: s.orders),
        })
        combined_aov = ratio(total_revenue, total_orders, empty=NO_ORDERS)
        users = r["traffic"].map(lambda t: t.users)
        change = partial_change(live_stores, missing_stores, "stores")

        metrics = [
            build_metric(
                "combined_revenue", f"Combined Revenue ({self._label(window)})", total_revenue, self.money, change=change
            ),
            build_metric("fireblood_revenue", "Fireblood.com Revenue", fireblood_revenue, self.money, color=FIREBLOOD.color),
            build_metric("topg_fireblood_revenue", "Top G (Fireblood)", topg_revenue, self.money, color=TOPG.color),
            build_metric("total_orders", "Total Orders", total_orders, number, change=change),
            build_metric("combined_aov", "Combined AOV", combined_aov, self.money_exact),
            # Fireblood site traffic only
            build_metric("conversion_rate", "Conversion Rate", ratio(total_orders, users, 100), percent(2)),
        ]

        top_products = merge_top_products(
            [
                (FIREBLOOD_STORE_TAG, r["top_products"].or_none() or []),
                (TOPG_STORE_TAG, topg_orders.map(lambda s: s.matching_products).or_none() or []),
            ],
            limit=TOP_PRODUCTS_LIMIT,
        )

        both_stores = combine(lambda a, b: a + b, fireblood_revenue, topg_revenue)
        summary = {
            "total_revenue": total_revenue.or_none(),
            "fireblood_revenue": fireblood_revenue.or_none(),
            "topg_fireblood_revenue": topg_revenue.or_none(),
            "topg_contribution_pct": ratio(topg_revenue, both_stores, 100).or_none(),
            "total_orders": total_orders.or_none(),
            "combined_aov": combined_aov.or_none(),
        }

        return self._payload(
            "fireblood_plus",
            "Fireblood+",
            window,
            metrics,
            r,
            top_products=top_products,
            subscription_metrics=self._subscription_metrics(r["subscriptions"], r["churn"]),
            acquirer_scorecard=self._acquirer_scorecard(r, total_revenue, combined_aov),
            revenue_breakdown=[
                BreakdownSlice(
                    name="Fireblood.com", value=fireblood_revenue.or_none(),
                    color=FIREBLOOD.color, is_live=fireblood_revenue.is_live,
                ),
                BreakdownSlice(
                    name="Top G (Fireblood)", value=topg_revenue.or_none(),
                    color=TOPG.color, is_live=topg_revenue.is_live,
                ),
            ],
            summary=summary,
        )

    # ------------------------------------------------------------------
    # Acquirer-readiness scorecard
    # ------------------------------------------------------------------

    def _acquirer_scorecard(
        self,
        r: ProviderResults,
        total_revenue: MetricValue,
        combined_aov: MetricValue,
    ) -> List[ScorecardItem]:
        churn = r["churn"].map(lambda c: c.churn_rate)
        mrr = r["subscriptions"].map(lambda s: s.mrr)
        subscription_share = ratio(mrr, total_revenue, 100)
        cac = ads_field(r["ads"], "cpa")
        ltv = combined_aov.map(lambda aov: aov * LTV_REPEAT_FACTOR)
        ltv_cac = ratio(ltv, cac)
        roas = ads_field(r["ads"], "roas")
        # Both channels (fireblood.com and the Top G merch store) sell direct
        dtc_share = Live(100.0)

        return [
            self._score("Monthly Churn Rate", churn, "<5%", lambda v: f"{v:g}%",
                        good=5, warning=8, higher_is_better=False, weight="Critical"),
            self._score("Subscription % of Revenue", subscription_share, ">50%", lambda v: f"{round(v)}%",
                        good=50, warning=30, weight="Critical"),
            self._score("CAC (Google Ads)", cac, f"<{self.settings.currency_symbol}40", self.money_exact,
                        good=40, warning=60, higher_is_better=False, weight="High"),
            self._score("LTV:CAC Ratio", ltv_cac, ">3:1", lambda v: f"{v:.1f}:1",
                        good=3, warning=2, weight="Critical"),
            self._score("ROAS (Google Ads)", roas, ">2x", multiplier,
                        good=2, warning=1.5, weight="High"),
            self._score("DTC % of Revenue", dtc_share, ">50%", lambda v: f"{round(v)}%",
                        good=50, warning=30, weight="Medium"),
        ]

    @staticmethod
    def _score(
        metric: str,
        value: MetricValue,
        target: str,
        formatter,
        good: float,
        warning: float,
        weight: str,
        higher_is_better: bool = True,
    ) -> ScorecardItem:
        if not value.is_live:
            return ScorecardItem(
                metric=metric, current="N/A", target=target,
                status=MetricStatus.WARNING, weight=weight, is_live=False,
            )
        return ScorecardItem(
            metric=metric,
            current=formatter(value.value),
            target=target,
            status=threshold_status(value.value, good, warning, higher_is_better),
            weight=weight,
            is_live=True,
        )
