"""
WooCommerce Connector

Reads orders, sales reports and subscriptions from the WooCommerce REST API
(wc/v3). One instance per store.
"""
import httpx
from collections import defaultdict
from datetime import datetime
from typing import Any, Dict, List, Optional

from app.connectors.base_connector import BaseConnector, MalformedResponse, ProviderError
from app.models.provider_data import (
    ChurnStats,
    FilteredOrderStats,
    OrderStats,
    ProductSales,
    SubscriptionStats,
)
from app.utils.logger import log
from app.utils.period import TimeWindow


def _to_float(value: Any) -> float:
    try:
        return float(value or 0)
    except (TypeError, ValueError):
        return 0.0


def _monthly_amount(subscription: Dict[str, Any]) -> float:
    """Normalise one subscription's recurring total to a monthly figure."""
    total = _to_float(subscription.get("total"))
    interval = int(subscription.get("billing_interval") or 1) or 1
    period = subscription.get("billing_period")

    if period == "week":
        return total * 4.33 / interval
    if period == "month":
        return total / interval
    if period == "year":
        return total / 12 / interval
    return total


def aggregate_line_items(
    orders: List[Dict[str, Any]],
    name_filter: Optional[str] = None,
) -> Dict[str, Dict[str, float]]:
    """Sum revenue and units per product name across orders."""
    products: Dict[str, Dict[str, float]] = defaultdict(lambda: {"revenue": 0.0, "units": 0})
    needle = name_filter.lower() if name_filter else None

    for order in orders:
        for item in order.get("line_items") or []:
            name = item.get("name") or "Unknown product"
            if needle and needle not in name.lower():
                continue
            products[name]["revenue"] += _to_float(item.get("total"))
            products[name]["units"] += int(item.get("quantity") or 0)

    return products


def rank_products(products: Dict[str, Dict[str, float]], limit: int) -> List[ProductSales]:
    ranked = sorted(products.items(), key=lambda kv: kv[1]["revenue"], reverse=True)
    return [
        ProductSales(name=name, revenue=round(data["revenue"], 2), units=int(data["units"]))
        for name, data in ranked[:limit]
    ]


class WooCommerceConnector(BaseConnector):
    """
    Connector for one WooCommerce store

    Authenticates with the store's consumer key/secret over HTTP basic auth.
    Raises ProviderError on non-2xx responses; never substitutes zeros.
    """

    PAGE_SIZE = 100
    MAX_PAGES = 50  # Safety limit on order pagination
    RETRYABLE_EXCEPTIONS = BaseConnector.RETRYABLE_EXCEPTIONS + (httpx.TransportError,)

    def __init__(
        self,
        brand: str,
        store_url: str,
        consumer_key: str,
        consumer_secret: str,
        timeout: float = 5.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """
        Initialize WooCommerce connector

        Args:
            brand: Store key used in logs and cache keys (e.g. "fireblood")
            store_url: Store base URL (e.g. "https://fireblood.com")
            consumer_key: REST API consumer key
            consumer_secret: REST API consumer secret
            timeout: Per-request HTTP timeout in seconds
            transport: Optional httpx transport (tests use httpx.MockTransport)
        """
        super().__init__(f"woocommerce:{brand}", source_type="ecommerce")
        self.brand = brand
        self.base_url = f"{store_url.rstrip('/')}/wp-json/wc/v3"
        self.auth = (consumer_key, consumer_secret)
        self.timeout = timeout
        self._transport = transport

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            base_url=self.base_url,
            auth=self.auth,
            timeout=self.timeout,
            transport=self._transport,
            headers={"Content-Type": "application/json"},
        )

    async def _get(self, path: str, params: Optional[Dict[str, Any]] = None) -> Any:
        """GET one endpoint and return decoded JSON."""
        async def _request():
            async with self._client() as client:
                response = await client.get(path, params=params)

            if response.status_code == 401:
                log.error(f"{self.name}: authentication failed (check consumer key/secret)")
            if response.status_code != 200:
                raise ProviderError(
                    self.name, f"GET {path} returned {response.status_code}", response.status_code
                )
            try:
                return response.json()
            except ValueError:
                raise MalformedResponse(self.name, f"GET {path} returned non-JSON body")

        return await self._retry_operation(_request, operation_name=f"GET {path}")

    async def _get_list(self, path: str, params: Optional[Dict[str, Any]] = None) -> List[Dict[str, Any]]:
        data = await self._get(path, params)
        if not isinstance(data, list):
            raise MalformedResponse(self.name, f"GET {path} expected a list, got {type(data).__name__}")
        return data

    async def validate_connection(self) -> bool:
        await self._get("system_status")
        return True

    # ------------------------------------------------------------------
    # Orders
    # ------------------------------------------------------------------

    async def get_order_stats(self, window: TimeWindow) -> OrderStats:
        """Revenue and order count from the sales report (one request)."""
        data = await self._get(
            "reports/sales",
            {"date_min": window.start_date, "date_max": window.end_date},
        )
        totals = data[0] if isinstance(data, list) and data else data
        if not isinstance(totals, dict):
            raise MalformedResponse(self.name, "reports/sales returned no totals object")

        try:
            revenue = float(totals.get("total_sales") or 0)
            orders = int(totals.get("total_orders") or 0)
        except (TypeError, ValueError) as e:
            raise MalformedResponse(self.name, f"reports/sales totals not numeric: {e}")

        avg_order_value = round(revenue / orders, 2) if orders > 0 else 0.0
        log.info(f"{self.name}: {orders} orders, revenue {revenue:.2f} ({window.cache_token()})")
        return OrderStats(revenue=round(revenue, 2), orders=orders, avg_order_value=avg_order_value)

    async def get_orders(self, window: TimeWindow) -> List[Dict[str, Any]]:
        """All completed/processing orders in the window, paginated."""
        orders: List[Dict[str, Any]] = []
        params = {
            "after": window.start.isoformat(),
            "before": window.end.isoformat(),
            "per_page": self.PAGE_SIZE,
            "status": "completed,processing",
        }

        for page in range(1, self.MAX_PAGES + 1):
            batch = await self._get_list("orders", {**params, "page": page})
            orders.extend(batch)
            if len(batch) < self.PAGE_SIZE:
                break
        else:
            log.warning(f"{self.name}: stopped paging orders at {self.MAX_PAGES} pages")

        return orders

    async def get_top_products(self, window: TimeWindow, limit: int = 10) -> List[ProductSales]:
        orders = await self.get_orders(window)
        return rank_products(aggregate_line_items(orders), limit)

    async def get_order_stats_by_product_name(
        self, window: TimeWindow, name_filter: str
    ) -> FilteredOrderStats:
        """
        Totals for line items whose product name contains name_filter
        (case-insensitive). An order counts once if any of its items match.
        """
        orders = await self.get_orders(window)
        products = aggregate_line_items(orders, name_filter)
        needle = name_filter.lower()
        matching_orders = sum(
            1 for order in orders
            if any(needle in (item.get("name") or "").lower() for item in order.get("line_items") or [])
        )
        return FilteredOrderStats(
            revenue=round(sum(p["revenue"] for p in products.values()), 2),
            orders=matching_orders,
            matching_products=tuple(rank_products(products, len(products))),
        )

    # ------------------------------------------------------------------
    # Subscriptions (WooCommerce Subscriptions extension)
    # ------------------------------------------------------------------

    async def get_subscriptions(self, status: str = "active") -> List[Dict[str, Any]]:
        return await self._get_list("subscriptions", {"per_page": self.PAGE_SIZE, "status": status})

    async def get_subscription_stats(self) -> Optional[SubscriptionStats]:
        """Active subscriber count and MRR; None when the store has no active subscriptions."""
        subscriptions = await self.get_subscriptions("active")
        if not subscriptions:
            return None

        mrr = sum(_monthly_amount(sub) for sub in subscriptions)
        return SubscriptionStats(active_subscribers=len(subscriptions), mrr=round(mrr, 2))

    async def get_churn_data(self, now: Optional[datetime] = None) -> Optional[ChurnStats]:
        """
        Month-to-date churn: cancelled this month / (active + cancelled this month).

        None when there were no subscribers at the start of the month.
        """
        now = now or datetime.now()
        month_start = datetime(now.year, now.month, 1)

        cancelled = await self.get_subscriptions("cancelled")
        active = await self.get_subscriptions("active")

        cancelled_this_month = 0
        for sub in cancelled:
            stamp = sub.get("date_modified") or sub.get("date_created")
            if not stamp:
                continue
            try:
                cancelled_at = datetime.fromisoformat(str(stamp).replace("Z", "")).replace(tzinfo=None)
            except ValueError:
                log.warning(f"{self.name}: unparseable subscription date {stamp!r}")
                continue
            if cancelled_at >= month_start:
                cancelled_this_month += 1

        active_start = len(active) + cancelled_this_month
        if active_start == 0:
            return None

        return ChurnStats(
            churn_rate=round(cancelled_this_month / active_start * 100, 1),
            cancelled_this_month=cancelled_this_month,
            active_start=active_start,
        )
