"""
Base connector class for all data sources
"""
from abc import ABC, abstractmethod
from datetime import datetime
from typing import Any, Dict, List, Optional, Protocol
import asyncio

from app.models.provider_data import (
    AdsSummary,
    ChannelTraffic,
    ChurnStats,
    EmailListStats,
    FilteredOrderStats,
    ListStats,
    OrderStats,
    ProductSales,
    SubscriptionStats,
    TrafficStats,
)
from app.utils.logger import log
from app.utils.period import TimeWindow
from app.utils.retry import DEFAULT_RETRYABLE_EXCEPTIONS, calculate_backoff, is_retryable_error


class ProviderError(Exception):
    """A provider answered with an error status or could not be reached."""

    def __init__(self, source: str, message: str, status_code: Optional[int] = None):
        super().__init__(f"{source}: {message}")
        self.source = source
        self.message = message
        self.status_code = status_code


class MalformedResponse(ProviderError):
    """A provider answered 2xx but the body was not the expected shape."""


# ---------------------------------------------------------------------------
# Capabilities the aggregation layer depends on
# ---------------------------------------------------------------------------

class OrderProvider(Protocol):
    async def get_order_stats(self, window: TimeWindow) -> OrderStats: ...

    async def get_top_products(self, window: TimeWindow, limit: int = 10) -> List[ProductSales]: ...

    async def get_order_stats_by_product_name(
        self, window: TimeWindow, name_filter: str
    ) -> FilteredOrderStats: ...

    async def get_subscription_stats(self) -> Optional[SubscriptionStats]: ...

    async def get_churn_data(self) -> Optional[ChurnStats]: ...


class AnalyticsProvider(Protocol):
    async def get_traffic_stats(self, window: TimeWindow) -> TrafficStats: ...

    async def get_traffic_by_channel(self, window: TimeWindow, limit: int = 10) -> List[ChannelTraffic]: ...


class AdsProvider(Protocol):
    async def get_account_summary(
        self, account_key: str, window: Optional[TimeWindow] = None
    ) -> Optional[AdsSummary]: ...

    async def get_campaign_breakdown(
        self, account_key: str, window: Optional[TimeWindow] = None
    ) -> List[Dict[str, Any]]: ...


class EmailProvider(Protocol):
    async def get_total_subscribers(self) -> Optional[EmailListStats]: ...

    async def get_list_stats(self, list_id: str) -> Optional[ListStats]: ...


class BaseConnector(ABC):
    """Base class for all data source connectors"""

    # Retry configuration (can be overridden by subclasses). Delays stay short:
    # every call runs under a dashboard deadline of a few seconds.
    RETRY_MAX_ATTEMPTS = 2
    RETRY_BASE_DELAY = 0.5  # seconds
    RETRY_MAX_DELAY = 2.0  # seconds
    RETRYABLE_EXCEPTIONS = DEFAULT_RETRYABLE_EXCEPTIONS

    def __init__(self, name: str, source_type: str):
        self.name = name
        self.source_type = source_type
        self.last_success: Optional[datetime] = None
        self.call_count = 0
        self.error_count = 0
        self.retry_count = 0  # Total retries across all calls

    @abstractmethod
    async def validate_connection(self) -> bool:
        """Validate connection is working"""
        pass

    async def _retry_operation(self, operation, operation_name: str = "operation") -> Any:
        """
        Execute an operation with retry logic.

        Args:
            operation: Callable returning a value or a coroutine
            operation_name: Name for logging

        Returns:
            Result of the operation; the last error is re-raised once
            attempts run out or the error is not transient.
        """
        self.call_count += 1

        for attempt in range(1, self.RETRY_MAX_ATTEMPTS + 1):
            try:
                result = operation()

                # Handle coroutines (from async functions or lambdas wrapping async calls)
                if asyncio.iscoroutine(result):
                    result = await result

                if attempt > 1:
                    self.retry_count += (attempt - 1)

                self.last_success = datetime.utcnow()
                return result

            except Exception as e:
                if attempt >= self.RETRY_MAX_ATTEMPTS or not is_retryable_error(e, self.RETRYABLE_EXCEPTIONS):
                    self.error_count += 1
                    log.error(f"{self.name} {operation_name} failed: {e}")
                    raise

                delay = calculate_backoff(
                    attempt,
                    base_delay=self.RETRY_BASE_DELAY,
                    max_delay=self.RETRY_MAX_DELAY
                )

                log.warning(
                    f"{self.name} {operation_name} attempt {attempt} failed: {e}. "
                    f"Retrying in {delay:.1f}s..."
                )

                await asyncio.sleep(delay)

        raise RuntimeError("Retry exhausted")

    def get_status(self) -> Dict[str, Any]:
        """Get connector status"""
        return {
            "name": self.name,
            "type": self.source_type,
            "connected": True,
            "last_success": self.last_success.isoformat() if self.last_success else None,
            "call_count": self.call_count,
            "error_count": self.error_count,
            "retry_count": self.retry_count,
            "error_rate": self.error_count / max(self.call_count, 1),
            "retry_config": {
                "max_attempts": self.RETRY_MAX_ATTEMPTS,
                "base_delay": self.RETRY_BASE_DELAY,
                "max_delay": self.RETRY_MAX_DELAY
            }
        }
