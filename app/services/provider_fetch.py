"""
Provider fetch plan

Collects the provider calls one payload needs, then runs them as a single
timeout-guarded fan-out. Every call goes through the versioned cache and
comes back as a MetricValue; nothing raised by a connector reaches the caller.

    plan = ProviderFetchPlan(cache, settings)
    plan.order_stats("orders", registry.store("fireblood"), window)
    plan.traffic("traffic", registry.analytics("fireblood"), window)
    results = await plan.run()
    results["orders"]   # Live(OrderStats) or Unavailable(...)
"""
from typing import Awaitable, Callable, Dict, List, Optional

from app.config import Settings
from app.connectors.base_connector import AdsProvider, AnalyticsProvider, EmailProvider, OrderProvider
from app.services.metric_normalizer import NOT_CONNECTED, MetricValue, from_optional
from app.utils.cache import VersionedCache, cached
from app.utils.fetch import FetchEntry, fetch_all_with_timeout
from app.utils.logger import log
from app.utils.period import TimeWindow


class ProviderResults(dict):
    """Fan-out results keyed by plan key. Unknown keys read as not connected."""

    def __missing__(self, key: str) -> MetricValue:
        return NOT_CONNECTED

    def sources(self) -> Dict[str, bool]:
        return {key: value.is_live for key, value in self.items()}


class ProviderFetchPlan:
    """One payload's worth of cached, deadline-guarded provider calls."""

    def __init__(self, cache: VersionedCache, settings: Settings):
        self.cache = cache
        self.settings = settings
        self._entries: List[FetchEntry] = []
        self._planned: List[str] = []

    def missing(self, key: str) -> None:
        """Record a call whose connector is not configured; it is never attempted."""
        self._planned.append(key)

    def add(
        self,
        key: str,
        cache_key: str,
        producer: Callable[[], Awaitable],
        ttl: float,
        timeout: float,
    ) -> None:
        self._planned.append(key)

        async def _fetch() -> MetricValue:
            return from_optional(await cached(self.cache, cache_key, producer, ttl), "No data")

        self._entries.append(FetchEntry(key, _fetch(), fallback=NOT_CONNECTED, timeout=timeout))

    async def run(self) -> ProviderResults:
        results = await fetch_all_with_timeout(
            self._entries, timeout=self.settings.fan_out_timeout_seconds
        )
        ordered = ProviderResults((key, results.get(key, NOT_CONNECTED)) for key in self._planned)
        live = sum(1 for v in ordered.values() if v.is_live)
        log.info(f"Provider fan-out: {live}/{len(ordered)} live")
        return ordered

    # ------------------------------------------------------------------
    # Storefront
    # ------------------------------------------------------------------

    def order_stats(self, key: str, store: Optional[OrderProvider], window: TimeWindow) -> None:
        if store is None:
            return self.missing(key)
        self.add(
            key,
            f"woo:{store.brand}:stats:{window.cache_token()}",
            lambda: store.get_order_stats(window),
            self.settings.cache_ttl_orders_seconds,
            self.settings.orders_timeout_seconds,
        )

    def filtered_order_stats(
        self, key: str, store: Optional[OrderProvider], window: TimeWindow, name_filter: str
    ) -> None:
        if store is None:
            return self.missing(key)
        self.add(
            key,
            f"woo:{store.brand}:filtered:{name_filter.lower()}:{window.cache_token()}",
            lambda: store.get_order_stats_by_product_name(window, name_filter),
            self.settings.cache_ttl_orders_seconds,
            self.settings.orders_timeout_seconds,
        )

    def top_products(self, key: str, store: Optional[OrderProvider], window: TimeWindow, limit: int = 10) -> None:
        if store is None:
            return self.missing(key)
        self.add(
            key,
            f"woo:{store.brand}:products:{limit}:{window.cache_token()}",
            lambda: store.get_top_products(window, limit),
            self.settings.cache_ttl_orders_seconds,
            self.settings.orders_timeout_seconds,
        )

    def subscription_stats(self, key: str, store: Optional[OrderProvider]) -> None:
        if store is None:
            return self.missing(key)
        self.add(
            key,
            f"woo:{store.brand}:subscriptions",
            store.get_subscription_stats,
            self.settings.cache_ttl_subscriptions_seconds,
            self.settings.orders_timeout_seconds,
        )

    def churn(self, key: str, store: Optional[OrderProvider]) -> None:
        if store is None:
            return self.missing(key)
        self.add(
            key,
            f"woo:{store.brand}:churn",
            store.get_churn_data,
            self.settings.cache_ttl_subscriptions_seconds,
            self.settings.orders_timeout_seconds,
        )

    # ------------------------------------------------------------------
    # Analytics
    # ------------------------------------------------------------------

    def traffic(self, key: str, analytics: Optional[AnalyticsProvider], window: TimeWindow) -> None:
        if analytics is None:
            return self.missing(key)
        self.add(
            key,
            f"ga4:{analytics.brand}:traffic:{window.cache_token()}",
            lambda: analytics.get_traffic_stats(window),
            self.settings.cache_ttl_traffic_seconds,
            self.settings.analytics_timeout_seconds,
        )

    def channels(self, key: str, analytics: Optional[AnalyticsProvider], window: TimeWindow) -> None:
        if analytics is None:
            return self.missing(key)
        self.add(
            key,
            f"ga4:{analytics.brand}:channels:{window.cache_token()}",
            lambda: analytics.get_traffic_by_channel(window),
            self.settings.cache_ttl_traffic_seconds,
            self.settings.analytics_timeout_seconds,
        )

    # ------------------------------------------------------------------
    # Ads / email
    # ------------------------------------------------------------------

    def ads_summary(
        self, key: str, ads: Optional[AdsProvider], account: Optional[str], window: TimeWindow
    ) -> None:
        if ads is None or not account:
            return self.missing(key)
        self.add(
            key,
            f"ads:{account}:summary:{window.cache_token()}",
            lambda: ads.get_account_summary(account, window),
            self.settings.cache_ttl_ads_seconds,
            self.settings.ads_timeout_seconds,
        )

    def email_lists(self, key: str, email: Optional[EmailProvider]) -> None:
        if email is None:
            return self.missing(key)
        self.add(
            key,
            "sendlane:lists",
            email.get_total_subscribers,
            self.settings.cache_ttl_email_seconds,
            self.settings.email_timeout_seconds,
        )
