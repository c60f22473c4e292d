"""
Google Analytics 4 data connector
Fetches site traffic totals and the default channel group breakdown per brand.

One service account is shared by all brands; each brand has its own property.
"""
import asyncio
from typing import Any, Dict, List, Optional

from google.analytics.data_v1beta import BetaAnalyticsDataClient
from google.analytics.data_v1beta.types import (
    DateRange,
    Dimension,
    Metric,
    OrderBy,
    RunReportRequest,
)
from google.oauth2 import service_account

from app.connectors.base_connector import BaseConnector, MalformedResponse
from app.models.provider_data import ChannelTraffic, TrafficStats
from app.utils.logger import log
from app.utils.period import TimeWindow


TRAFFIC_METRICS = [
    "sessions",
    "totalUsers",
    "newUsers",
    "bounceRate",
    "averageSessionDuration",
    "screenPageViews",
]

CHANNEL_METRICS = ["sessions", "totalUsers", "conversions"]

SCOPES = ["https://www.googleapis.com/auth/analytics.readonly"]


def build_service_account_credentials(client_email: str, private_key: str, scopes: List[str]):
    """
    Service account credentials from env-supplied fields.

    Private keys pasted into env files usually carry literal "\\n" sequences.
    """
    info = {
        "type": "service_account",
        "client_email": client_email,
        "private_key": private_key.replace("\\n", "\n"),
        "token_uri": "https://oauth2.googleapis.com/token",
    }
    return service_account.Credentials.from_service_account_info(info, scopes=scopes)


def _number(value: str) -> float:
    try:
        return float(value or 0)
    except (TypeError, ValueError):
        return 0.0


class GA4Connector(BaseConnector):
    """Connector for one Google Analytics 4 property"""

    def __init__(
        self,
        brand: str,
        property_id: str,
        client_email: str,
        private_key: str,
        client: Optional[Any] = None,
    ):
        super().__init__(f"ga4:{brand}", source_type="analytics")
        self.brand = brand
        self.property_id = property_id
        self._client_email = client_email
        self._private_key = private_key
        self.client = client

    def _get_client(self) -> BetaAnalyticsDataClient:
        if self.client is None:
            credentials = build_service_account_credentials(
                self._client_email, self._private_key, SCOPES
            )
            self.client = BetaAnalyticsDataClient(credentials=credentials)
            log.info(f"Connected to Google Analytics 4 property {self.property_id}")
        return self.client

    async def _run_report(self, request: RunReportRequest):
        client = self._get_client()
        return await self._retry_operation(
            lambda: asyncio.to_thread(client.run_report, request),
            operation_name="run_report",
        )

    def _date_ranges(self, window: TimeWindow) -> List[DateRange]:
        return [DateRange(start_date=window.start_date, end_date=window.end_date)]

    async def validate_connection(self) -> bool:
        request = RunReportRequest(
            property=f"properties/{self.property_id}",
            date_ranges=[DateRange(start_date="7daysAgo", end_date="today")],
            metrics=[Metric(name="activeUsers")],
        )
        await self._run_report(request)
        return True

    async def get_traffic_stats(self, window: TimeWindow) -> TrafficStats:
        """
        Property totals for the window.

        GA4 omits the row entirely when a property had no traffic; that is
        reported as zero traffic, not as an error.
        """
        request = RunReportRequest(
            property=f"properties/{self.property_id}",
            date_ranges=self._date_ranges(window),
            metrics=[Metric(name=name) for name in TRAFFIC_METRICS],
        )
        response = await self._run_report(request)

        if not response.rows:
            return TrafficStats(0, 0, 0, 0.0, 0.0, 0)

        values = response.rows[0].metric_values
        if len(values) != len(TRAFFIC_METRICS):
            raise MalformedResponse(self.name, f"expected {len(TRAFFIC_METRICS)} metric values, got {len(values)}")
        row: Dict[str, float] = {
            name: _number(value.value) for name, value in zip(TRAFFIC_METRICS, values)
        }

        return TrafficStats(
            sessions=int(row["sessions"]),
            users=int(row["totalUsers"]),
            new_users=int(row["newUsers"]),
            bounce_rate=round(row["bounceRate"] * 100, 2),
            avg_session_duration=round(row["averageSessionDuration"], 1),
            page_views=int(row["screenPageViews"]),
        )

    async def get_traffic_by_channel(self, window: TimeWindow, limit: int = 10) -> List[ChannelTraffic]:
        """Sessions, users and conversions per default channel group, busiest first."""
        request = RunReportRequest(
            property=f"properties/{self.property_id}",
            date_ranges=self._date_ranges(window),
            dimensions=[Dimension(name="sessionDefaultChannelGroup")],
            metrics=[Metric(name=name) for name in CHANNEL_METRICS],
            order_bys=[OrderBy(metric=OrderBy.MetricOrderBy(metric_name="sessions"), desc=True)],
            limit=limit,
        )
        response = await self._run_report(request)

        channels = []
        for row in response.rows:
            values = [_number(v.value) for v in row.metric_values]
            if len(values) != len(CHANNEL_METRICS):
                raise MalformedResponse(self.name, "channel row has the wrong number of metrics")
            channels.append(ChannelTraffic(
                channel=row.dimension_values[0].value or "(other)",
                sessions=int(values[0]),
                users=int(values[1]),
                conversions=int(values[2]),
            ))
        return channels
