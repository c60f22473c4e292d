"""
Overview Service

Portfolio view across all brands: revenue and traffic per brand, ad account
performance, and portfolio totals. Totals only include brands whose provider
answered; the portfolio block says which brands are missing.
"""
from typing import Dict, List, Optional

from app.config import Settings, get_settings
from app.connectors.registry import ConnectorRegistry
from app.models.dashboard import (
    AdsRow,
    AdsTotals,
    BreakdownSlice,
    OverviewPayload,
    PortfolioSummary,
    TrafficRow,
)
from app.models.provider_data import AdsSummary
from app.services.brand_data_service import BRAND_PROFILES
from app.services.metric_normalizer import (
    MetricValue,
    build_metric,
    currency,
    data_source_for,
    number,
    partial_change,
    percent,
    ratio,
    sum_live,
)
from app.services.provider_fetch import ProviderFetchPlan, ProviderResults
from app.utils.cache import VersionedCache
from app.utils.helpers import safe_divide
from app.utils.logger import log
from app.utils.period import Period, TimeWindow, format_for_api, period_label, resolve_window


def _round(value: Optional[float], digits: int = 2) -> Optional[float]:
    return round(value, digits) if value is not None else None


class OverviewService:
    """Portfolio overview payload."""

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

    async def get_overview_data(
        self,
        period: Period = Period.MONTH,
        custom_range: Optional[Dict[str, str]] = None,
    ) -> OverviewPayload:
        window = resolve_window(period, custom_range, alignment=self.settings.period_alignment)
        return await self.build_overview_payload(window)

    async def build_overview_payload(self, window: TimeWindow) -> OverviewPayload:
        plan = ProviderFetchPlan(self.cache, self.settings)
        ads = self.registry.ads()
        for brand, profile in BRAND_PROFILES.items():
            plan.order_stats(f"{brand}:orders", self.registry.store(brand), window)
            plan.traffic(f"{brand}:traffic", self.registry.analytics(brand), window)
            if profile.ads_account:
                plan.ads_summary(f"{brand}:ads", ads, profile.ads_account, window)
        r = await plan.run()

        label = period_label(window.kind, window, self.settings.period_alignment)
        revenue = {b: r[f"{b}:orders"].map(lambda s: s.revenue) for b in BRAND_PROFILES}
        orders = {b: r[f"{b}:orders"].map(lambda s: s.orders) for b in BRAND_PROFILES}
        sessions = {b: r[f"{b}:traffic"].map(lambda t: t.sessions) for b in BRAND_PROFILES}

        total_revenue, live_brands, missing_brands = sum_live(revenue)
        total_orders, _, _ = sum_live(orders)
        total_sessions, live_traffic, missing_traffic = sum_live(sessions)

        metrics = [
            build_metric(
                "total_revenue", f"Total Revenue ({label})", total_revenue, self.money,
                change=partial_change(live_brands, missing_brands),
            ),
        ]
        for brand, profile in BRAND_PROFILES.items():
            metrics.append(build_metric(
                f"{brand}_revenue", f"{profile.name} Revenue", revenue[brand], self.money, color=profile.color
            ))
        metrics.append(build_metric(
            "total_sessions", "Total Sessions", total_sessions, number,
            change=partial_change(live_traffic, missing_traffic),
        ))
        metrics.append(build_metric(
            "blended_conversion_rate", "Blended Conv Rate", self._blended_conversion(orders, sessions), percent(2)
        ))

        ads_overview, ads_summary = self._ads_sections(r)
        sources = r.sources()

        payload = OverviewPayload(
            period=window.kind.value,
            period_label=label,
            date_range=format_for_api(window),
            metrics=metrics,
            brand_breakdown=self._breakdown(revenue, round_to=0),
            traffic_breakdown=self._breakdown(sessions, round_to=0),
            traffic_overview=self._traffic_rows(r, orders),
            ads_overview=ads_overview,
            ads_summary=ads_summary,
            portfolio=PortfolioSummary(
                total_revenue=round(total_revenue.or_none() or 0.0, 2),
                total_orders=int(total_orders.or_none() or 0),
                total_sessions=int(total_sessions.or_none() or 0),
                live_brands=live_brands,
                missing_brands=missing_brands,
                is_partial=bool(missing_brands),
            ),
            sources=sources,
            data_source=data_source_for(sources),
        )

        if missing_brands:
            log.warning(f"Overview totals exclude {', '.join(missing_brands)} ({window.cache_token()})")
        return payload

    # ------------------------------------------------------------------
    # Sections
    # ------------------------------------------------------------------

    @staticmethod
    def _blended_conversion(orders: Dict[str, MetricValue], sessions: Dict[str, MetricValue]) -> MetricValue:
        """Orders / sessions over the brands where both are live, so both sums cover the same brands."""
        paired = [b for b in orders if orders[b].is_live and sessions[b].is_live]
        paired_orders, _, _ = sum_live({b: orders[b] for b in paired})
        paired_sessions, _, _ = sum_live({b: sessions[b] for b in paired})
        return ratio(paired_orders, paired_sessions, 100)

    @staticmethod
    def _breakdown(values: Dict[str, MetricValue], round_to: int = 0) -> List[BreakdownSlice]:
        slices = []
        for brand, value in values.items():
            profile = BRAND_PROFILES[brand]
            slices.append(BreakdownSlice(
                name=profile.name,
                value=_round(value.or_none(), round_to),
                color=profile.color,
                is_live=value.is_live,
            ))
        return slices

    @staticmethod
    def _traffic_rows(r: ProviderResults, orders: Dict[str, MetricValue]) -> List[TrafficRow]:
        rows = []
        for brand, profile in BRAND_PROFILES.items():
            traffic = r[f"{brand}:traffic"]
            brand_orders = orders[brand].or_none()
            row = TrafficRow(brand=profile.name, color=profile.color, orders=brand_orders)
            if traffic.is_live:
                t = traffic.value
                conv_rate = safe_divide(brand_orders, t.sessions) if brand_orders is not None else None
                row = row.model_copy(update={
                    "sessions": t.sessions,
                    "users": t.users,
                    "new_users": t.new_users,
                    "bounce_rate": t.bounce_rate,
                    "avg_duration": t.avg_session_duration,
                    "page_views": t.page_views,
                    "conv_rate": _round(conv_rate * 100 if conv_rate is not None else None),
                    "is_live": True,
                })
            rows.append(row)
        return rows

    @staticmethod
    def _ads_sections(r: ProviderResults):
        rows: List[AdsRow] = []
        live: Dict[str, AdsSummary] = {}
        missing: List[str] = []

        for brand, profile in BRAND_PROFILES.items():
            if not profile.ads_account:
                continue
            ads = r[f"{brand}:ads"]
            if not ads.is_live:
                missing.append(profile.ads_account)
                rows.append(AdsRow(account=profile.ads_account, color=profile.color))
                continue

            s = ads.value
            live[profile.ads_account] = s
            rows.append(AdsRow(
                account=profile.ads_account,
                color=profile.color,
                impressions=s.impressions,
                clicks=s.clicks,
                spend=round(s.spend, 2),
                conversions=s.conversions,
                conversion_value=round(s.conversion_value, 2),
                ctr=_round(s.ctr),
                cpc=_round(s.avg_cpc),
                cpa=_round(s.cpa),
                roas=_round(s.roas),
                is_live=True,
            ))

        total = AdsSummary.combine(live.values())
        if total is None:
            return rows, None

        return rows, AdsTotals(
            impressions=total.impressions,
            clicks=total.clicks,
            spend=round(total.spend, 2),
            conversions=total.conversions,
            conversion_value=round(total.conversion_value, 2),
            ctr=_round(total.ctr),
            cpc=_round(total.avg_cpc),
            cpa=_round(total.cpa),
            roas=_round(total.roas),
            live_accounts=list(live),
            missing_accounts=missing,
        )
