"""
Google Ads via Google Sheets

A Google Ads Script exports daily campaign rows into one spreadsheet, one tab
per ad account. This connector reads those tabs with the Sheets v4 API and
summarises them. Expected columns (row 1 is a header):

    A account | B date | C campaign | D impressions | E clicks | F cost
    G conversions | H conv. value | I ctr | J cpc | K cpa | L roas

Columns I-L are ignored: ratios are recomputed from the summed totals.
"""
import asyncio
from datetime import date, datetime
from typing import Any, Dict, List, Optional

from googleapiclient.discovery import build

from app.connectors.base_connector import BaseConnector, MalformedResponse
from app.connectors.ga4 import build_service_account_credentials
from app.models.provider_data import AdRow, AdsSummary
from app.utils.logger import log
from app.utils.period import TimeWindow

SCOPES = ["https://www.googleapis.com/auth/spreadsheets.readonly"]


def _parse_date(value: str) -> Optional[date]:
    value = (value or "").strip()
    if not value:
        return None
    for fmt in ("%Y-%m-%d", "%d/%m/%Y", "%Y/%m/%d"):
        try:
            return datetime.strptime(value, fmt).date()
        except ValueError:
            continue
    return None


def _cell_number(row: List[str], index: int) -> float:
    """Blank or missing cells count as 0; text in a numeric column is an error."""
    if index >= len(row):
        return 0.0
    raw = str(row[index]).replace(",", "").replace("£", "").strip()
    if raw == "":
        return 0.0
    return float(raw)


def parse_ad_row(row: List[str]) -> Optional[AdRow]:
    """Parse one sheet row; None for rows that are not campaign data."""
    if not row or not any(str(cell).strip() for cell in row):
        return None
    try:
        return AdRow(
            account=str(row[0]).strip() if len(row) > 0 else "",
            date=_parse_date(row[1]) if len(row) > 1 else None,
            campaign=str(row[2]).strip() if len(row) > 2 else "",
            impressions=int(_cell_number(row, 3)),
            clicks=int(_cell_number(row, 4)),
            cost=_cell_number(row, 5),
            conversions=_cell_number(row, 6),
            conversion_value=_cell_number(row, 7),
        )
    except ValueError:
        log.warning(f"Skipping ads sheet row with non-numeric values: {row[:8]}")
        return None


def rows_in_window(rows: List[AdRow], window: Optional[TimeWindow]) -> List[AdRow]:
    """Rows dated inside the window. Undated rows are kept only when no window is given."""
    if window is None:
        return rows
    start, end = window.start.date(), window.end.date()
    return [r for r in rows if r.date is not None and start <= r.date <= end]


class GoogleAdsSheetConnector(BaseConnector):
    """Connector for the Google Ads export spreadsheet"""

    def __init__(
        self,
        spreadsheet_id: str,
        client_email: str,
        private_key: str,
        sheet_range: str = "A2:M",
        service: Optional[Any] = None,
    ):
        super().__init__("google_ads_sheet", source_type="advertising")
        self.spreadsheet_id = spreadsheet_id
        self.sheet_range = sheet_range
        self._client_email = client_email
        self._private_key = private_key
        self.service = service

    def _get_service(self):
        if self.service is None:
            credentials = build_service_account_credentials(
                self._client_email, self._private_key, SCOPES
            )
            self.service = build("sheets", "v4", credentials=credentials, cache_discovery=False)
            log.info(f"Connected to Google Ads sheet {self.spreadsheet_id}")
        return self.service

    async def validate_connection(self) -> bool:
        service = self._get_service()
        request = service.spreadsheets().get(spreadsheetId=self.spreadsheet_id)
        await self._retry_operation(lambda: asyncio.to_thread(request.execute), "get_spreadsheet")
        return True

    async def get_sheet_rows(self, sheet_name: str) -> List[AdRow]:
        """All parseable rows of one account tab."""
        service = self._get_service()
        request = service.spreadsheets().values().get(
            spreadsheetId=self.spreadsheet_id,
            range=f"{sheet_name}!{self.sheet_range}",
        )
        response = await self._retry_operation(
            lambda: asyncio.to_thread(request.execute),
            operation_name=f"values.get {sheet_name}",
        )
        if not isinstance(response, dict):
            raise MalformedResponse(self.name, f"values.get {sheet_name} returned {type(response).__name__}")

        rows = [parse_ad_row(row) for row in response.get("values", [])]
        return [row for row in rows if row is not None]

    async def get_account_summary(
        self, account_key: str, window: Optional[TimeWindow] = None
    ) -> Optional[AdsSummary]:
        """Totals for one account tab, optionally restricted to a window. None when no rows match."""
        rows = rows_in_window(await self.get_sheet_rows(account_key), window)
        summary = AdsSummary.from_rows(rows)
        if summary is None:
            log.info(f"No ads rows for {account_key} in {window.cache_token() if window else 'all time'}")
        return summary

    async def get_campaign_breakdown(
        self, account_key: str, window: Optional[TimeWindow] = None
    ) -> List[Dict[str, Any]]:
        """Per-campaign totals for one account, highest spend first."""
        rows = rows_in_window(await self.get_sheet_rows(account_key), window)

        by_campaign: Dict[str, List[AdRow]] = {}
        for row in rows:
            by_campaign.setdefault(row.campaign or "(unnamed)", []).append(row)

        breakdown = []
        for campaign, campaign_rows in by_campaign.items():
            summary = AdsSummary.from_rows(campaign_rows)
            breakdown.append({
                "campaign": campaign,
                "impressions": summary.impressions,
                "clicks": summary.clicks,
                "spend": round(summary.spend, 2),
                "conversions": summary.conversions,
                "conversion_value": round(summary.conversion_value, 2),
                "ctr": summary.ctr,
                "cpc": summary.avg_cpc,
                "cpa": summary.cpa,
                "roas": summary.roas,
            })

        return sorted(breakdown, key=lambda c: c["spend"], reverse=True)
