"""
ReMarket - Shared Helpers
==========================
Pure utility functions with NO database or module dependencies.
"""

from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation
from typing import Optional


def now_utc() -> datetime:
    """Returns current UTC datetime (timezone-aware)."""
    return datetime.now(timezone.utc)


def safe_int(value) -> Optional[int]:
    """Safely convert a value to int. Returns None on failure."""
    if value is None or isinstance(value, bool):
        return None
    try:
        return int(str(value).strip())
    except (ValueError, TypeError):
        return None


# Largest value the Integer id columns hold
MAX_ID = 2 ** 31 - 1


def safe_id(value) -> Optional[int]:
    """Parse a row id. Returns None unless it is positive and fits the id columns."""
    num = safe_int(value)
    if num is None or num < 1 or num > MAX_ID:
        return None
    return num


def safe_decimal(value) -> Optional[Decimal]:
    """Parse a price-like value to Decimal. Returns None on failure."""
    if value is None:
        return None
    try:
        number = Decimal(str(value).strip())
    except (InvalidOperation, ValueError):
        return None
    return number if number.is_finite() else None


def clean_str(value) -> str:
    """Stripped string, empty for None."""
    if value is None:
        return ""
    return str(value).strip()


def format_price(value) -> str:
    """Format a Decimal price with two decimals for JSON output."""
    if value is None:
        return "0.00"
    return f"{Decimal(value):.2f}"


def iso(value: Optional[datetime]) -> Optional[str]:
    """ISO-8601 string for JSON output, None stays None."""
    return value.isoformat() if value else None
