"""
Sendlane data connector
Fetches email list sizes for the DNG brand
"""
from typing import Any, Dict, List, Optional
import aiohttp

from app.connectors.base_connector import BaseConnector, MalformedResponse, ProviderError
from app.models.provider_data import EmailListStats, ListStats
from app.utils.logger import log


def _count(item: Dict[str, Any], *fields: str) -> int:
    """First non-empty count among fields."""
    for name in fields:
        value = item.get(name)
        if value:
            try:
                return int(value)
            except (TypeError, ValueError):
                continue
    return 0


def list_stats_from(item: Dict[str, Any]) -> ListStats:
    active = _count(item, "active_count", "subscriber_count")
    unsubscribed = _count(item, "unsubscribed_count", "unsubscribe_count")
    total = _count(item, "subscriber_count", "total_count") or active + unsubscribed
    return ListStats(total_contacts=total, active_contacts=active, unsubscribed_contacts=unsubscribed)


class SendlaneConnector(BaseConnector):
    """Connector for the Sendlane v2 API"""

    BASE_URL = "https://api.sendlane.com/v2"
    RETRYABLE_EXCEPTIONS = BaseConnector.RETRYABLE_EXCEPTIONS + (aiohttp.ClientConnectionError,)

    def __init__(self, api_key: str, timeout: float = 5.0, base_url: Optional[str] = None):
        super().__init__("sendlane", source_type="email")
        self.api_key = api_key
        self.base_url = (base_url or self.BASE_URL).rstrip("/")
        self.timeout = timeout
        self.headers = {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
            "Accept": "application/json",
        }

    async def _fetch(self, endpoint: str, params: Optional[Dict[str, str]] = None) -> Dict[str, Any]:
        async def _request():
            timeout = aiohttp.ClientTimeout(total=self.timeout)
            async with aiohttp.ClientSession(timeout=timeout) as session:
                async with session.get(
                    f"{self.base_url}{endpoint}",
                    headers=self.headers,
                    params=params or {},
                ) as response:
                    if response.status == 401:
                        log.error("Sendlane authentication failed (check SENDLANE_API_KEY)")
                    if response.status != 200:
                        raise ProviderError(
                            self.name, f"GET {endpoint} returned {response.status}", response.status
                        )
                    try:
                        data = await response.json(content_type=None)
                    except ValueError:
                        raise MalformedResponse(self.name, f"GET {endpoint} returned non-JSON body")

            if not isinstance(data, dict):
                raise MalformedResponse(self.name, f"GET {endpoint} returned {type(data).__name__}")
            return data

        return await self._retry_operation(_request, operation_name=f"GET {endpoint}")

    async def validate_connection(self) -> bool:
        await self.get_lists()
        return True

    async def get_lists(self) -> List[Dict[str, Any]]:
        data = await self._fetch("/lists")
        lists = data.get("data")
        if not isinstance(lists, list):
            raise MalformedResponse(self.name, "/lists response has no data array")
        return lists

    async def get_total_subscribers(self) -> Optional[EmailListStats]:
        """Subscriber totals across every list; None when the account has no lists."""
        lists = await self.get_lists()
        if not lists:
            return None

        per_list = [list_stats_from(item) for item in lists]
        total = sum(
            _count(item, "subscriber_count", "active_count") for item in lists
        )
        log.info(f"Sendlane: {len(lists)} lists, {total} subscribers")

        return EmailListStats(
            total_subscribers=total,
            active_contacts=sum(s.active_contacts for s in per_list),
            unsubscribed_contacts=sum(s.unsubscribed_contacts for s in per_list),
            list_count=len(lists),
            lists=tuple(str(item.get("name") or item.get("id") or "") for item in lists),
        )

    async def get_list_stats(self, list_id: str) -> Optional[ListStats]:
        data = await self._fetch(f"/lists/{list_id}")
        item = data.get("data")
        if not isinstance(item, dict):
            return None
        return list_stats_from(item)
