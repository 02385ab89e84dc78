"""
Core utility functions for the bot.
Provides common functionality used across multiple modules.
"""
from datetime import date, datetime, timezone
from typing import Optional

# Standard timezone constants
UTC = timezone.utc


def get_now() -> datetime:
    """
    Get current datetime in UTC.

    Always returns a timezone-aware datetime object.
    Use this instead of datetime.now() for stored timestamps.
    """
    return datetime.now(UTC)


def format_date(value: Optional[date], fmt: str = "%d/%m/%Y") -> str:
    """Format a date for messages, empty string when absent."""
    if value is None:
        return ""
    return value.strftime(fmt)


def clamp(value: int, low: int, high: int) -> int:
    return max(low, min(value, high))


def absolute_url(base_url: str, href: str) -> str:
    """
    Resolve a listing href against a platform base URL.

    Absolute hrefs are returned as-is; relative ones get a leading slash
    when missing and the base prepended.
    """
    href = (href or "").strip()
    if not href:
        return ""
    if href.startswith("http"):
        return href
    if not href.startswith("/"):
        href = "/" + href
    return base_url.rstrip("/") + href
