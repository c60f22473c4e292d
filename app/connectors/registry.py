"""
Connector registry

Builds each provider connector from settings on first use. A factory returns
None when the provider's credentials are not configured; callers branch on
that exactly once and never call a missing connector.
"""
from typing import Any, Dict, List, Optional

from app.config import Settings, get_settings
from app.connectors.base_connector import BaseConnector
from app.connectors.ga4 import GA4Connector
from app.connectors.google_ads_sheet import GoogleAdsSheetConnector
from app.connectors.sendlane import SendlaneConnector
from app.connectors.woocommerce import WooCommerceConnector
from app.utils.logger import log

# Store / analytics keys. The "gtop" tab reads the "topg" store.
STORE_BRANDS = ("fireblood", "topg", "dng")


class ConnectorRegistry:
    """Per-process set of optional provider connectors."""

    def __init__(self, settings: Optional[Settings] = None):
        self.settings = settings or get_settings()
        self._instances: Dict[str, Optional[BaseConnector]] = {}

    def _memo(self, key: str, factory) -> Optional[BaseConnector]:
        if key not in self._instances:
            connector = factory()
            if connector is None:
                log.info(f"{key} not configured")
            self._instances[key] = connector
        return self._instances[key]

    def store(self, brand: str) -> Optional[WooCommerceConnector]:
        def factory():
            url = getattr(self.settings, f"woocommerce_{brand}_url", "")
            key = getattr(self.settings, f"woocommerce_{brand}_key", "")
            secret = getattr(self.settings, f"woocommerce_{brand}_secret", "")
            if not (url and key and secret):
                return None
            return WooCommerceConnector(
                brand, url, key, secret, timeout=self.settings.orders_timeout_seconds
            )

        return self._memo(f"woocommerce:{brand}", factory)

    def analytics(self, brand: str) -> Optional[GA4Connector]:
        def factory():
            property_id = getattr(self.settings, f"ga4_{brand}_property_id", "")
            if not (property_id and self.settings.ga4_client_email and self.settings.ga4_private_key):
                return None
            return GA4Connector(
                brand,
                property_id,
                self.settings.ga4_client_email,
                self.settings.ga4_private_key,
            )

        return self._memo(f"ga4:{brand}", factory)

    def ads(self) -> Optional[GoogleAdsSheetConnector]:
        def factory():
            s = self.settings
            if not (s.google_ads_sheet_id and s.ga4_client_email and s.ga4_private_key):
                return None
            return GoogleAdsSheetConnector(
                s.google_ads_sheet_id,
                s.ga4_client_email,
                s.ga4_private_key,
                sheet_range=s.google_ads_sheet_range,
            )

        return self._memo("google_ads_sheet", factory)

    def email(self) -> Optional[SendlaneConnector]:
        def factory():
            if not self.settings.sendlane_api_key:
                return None
            return SendlaneConnector(
                self.settings.sendlane_api_key, timeout=self.settings.email_timeout_seconds
            )

        return self._memo("sendlane", factory)

    def configured(self) -> List[BaseConnector]:
        """Every connector whose credentials are present."""
        candidates = [self.store(b) for b in STORE_BRANDS]
        candidates += [self.analytics(b) for b in STORE_BRANDS]
        candidates += [self.ads(), self.email()]
        return [c for c in candidates if c is not None]

    def status(self) -> Dict[str, Any]:
        """Configuration report: connector key -> status dict (or not connected)."""
        report: Dict[str, Any] = {}
        for brand in STORE_BRANDS:
            report[f"woocommerce:{brand}"] = self._describe(self.store(brand))
            report[f"ga4:{brand}"] = self._describe(self.analytics(brand))
        report["google_ads_sheet"] = self._describe(self.ads())
        report["sendlane"] = self._describe(self.email())
        return report

    @staticmethod
    def _describe(connector: Optional[BaseConnector]) -> Dict[str, Any]:
        if connector is None:
            return {"connected": False}
        return connector.get_status()
