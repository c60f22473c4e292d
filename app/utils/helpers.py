"""
Helper utilities
"""
from typing import Any, Optional
import hashlib
import json


def hash_data(data: Any) -> str:
    """Create hash of data for caching/deduplication"""
    data_str = json.dumps(data, sort_keys=True, default=str)
    return hashlib.sha256(data_str.encode()).hexdigest()


def safe_divide(numerator: float, denominator: float, default: Optional[float] = None) -> Optional[float]:
    """Divide, returning default when the denominator is zero"""
    try:
        return numerator / denominator if denominator != 0 else default
    except (TypeError, ZeroDivisionError):
        return default


def format_currency(amount: float, symbol: str = "£", decimals: int = 0) -> str:
    """Format amount as currency, e.g. £1,234"""
    sign = "-" if amount < 0 else ""
    return f"{sign}{symbol}{abs(amount):,.{decimals}f}"


def format_number(value: float) -> str:
    """Thousands-separated integer, e.g. 12,345"""
    return f"{round(value):,}"


def format_percent(value: float, decimals: int = 2) -> str:
    return f"{value:.{decimals}f}%"


def format_multiplier(value: float) -> str:
    """ROAS style, e.g. 3.40x"""
    return f"{value:.2f}x"


def format_seconds(value: float) -> str:
    return f"{round(value)}s"
