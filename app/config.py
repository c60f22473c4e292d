"""
Configuration management for the Brand War Room dashboard
"""
from pydantic_settings import BaseSettings
from functools import lru_cache


class Settings(BaseSettings):
    """Application settings"""

    # Application
    app_name: str = "Brand War Room"
    environment: str = "development"
    debug: bool = True
    log_level: str = "INFO"
    log_to_file: bool = True

    # API
    api_host: str = "0.0.0.0"
    api_port: int = 8000

    # Presentation
    currency_symbol: str = "£"
    # "rolling" (last 7/30/365 days) or "calendar" (week/month/year to date).
    # One deployment uses one variant everywhere a window or label is derived.
    period_alignment: str = "rolling"

    # WooCommerce stores (empty = not connected)
    woocommerce_fireblood_url: str = ""
    woocommerce_fireblood_key: str = ""
    woocommerce_fireblood_secret: str = ""
    woocommerce_topg_url: str = ""
    woocommerce_topg_key: str = ""
    woocommerce_topg_secret: str = ""
    woocommerce_dng_url: str = ""
    woocommerce_dng_key: str = ""
    woocommerce_dng_secret: str = ""

    # Google Analytics 4 (one service account, one property per brand)
    ga4_client_email: str = ""
    ga4_private_key: str = ""
    ga4_fireblood_property_id: str = ""
    ga4_topg_property_id: str = ""
    ga4_dng_property_id: str = ""

    # Google Ads via Google Sheets (automated export, one tab per account)
    google_ads_sheet_id: str = ""
    google_ads_sheet_range: str = "A2:M"

    # Sendlane
    sendlane_api_key: str = ""

    # LLM Configuration
    anthropic_api_key: str = ""
    llm_model: str = "claude-3-haiku-20240307"
    llm_max_tokens: int = 500
    enable_llm_insights: bool = True

    # Cache TTLs (seconds)
    cache_default_ttl_seconds: int = 300
    cache_ttl_orders_seconds: int = 180
    cache_ttl_subscriptions_seconds: int = 300
    cache_ttl_traffic_seconds: int = 300
    cache_ttl_ads_seconds: int = 600
    cache_ttl_email_seconds: int = 600
    cache_ttl_insights_seconds: int = 300

    # Provider deadlines (seconds)
    orders_timeout_seconds: float = 5.0
    analytics_timeout_seconds: float = 8.0
    ads_timeout_seconds: float = 8.0
    email_timeout_seconds: float = 5.0
    fan_out_timeout_seconds: float = 10.0

    class Config:
        env_file = ".env"
        case_sensitive = False


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance"""
    return Settings()
