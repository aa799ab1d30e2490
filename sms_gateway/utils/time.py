"""
Time utilities for gateway timestamps and South African Standard Time (SAST).
"""

import logging
from datetime import datetime
from zoneinfo import ZoneInfo
from typing import Optional

from dateutil import parser as dateutil_parser

from sms_gateway.config.settings import get_settings

logger = logging.getLogger(__name__)

# Local timezone for naive gateway timestamps
LOCAL_TZ = ZoneInfo(get_settings().timezone)
UTC = ZoneInfo("UTC")


def get_current_time() -> datetime:
    """Get the current time in the local timezone."""
    return datetime.now(LOCAL_TZ)


def to_local(dt: datetime) -> datetime:
    """
    Convert a datetime to the local timezone.

    Args:
        dt: Datetime to convert (can be naive or aware)

    Returns:
        Datetime in the local timezone
    """
    if dt.tzinfo is None:
        # Assume naive datetime is local time
        return dt.replace(tzinfo=LOCAL_TZ)
    return dt.astimezone(LOCAL_TZ)


def to_utc_naive(dt: datetime) -> datetime:
    """
    Convert a datetime to a naive UTC datetime for storage.

    Args:
        dt: Datetime to convert (naive values are treated as local time)

    Returns:
        Naive datetime in UTC
    """
    return to_local(dt).astimezone(UTC).replace(tzinfo=None)


def parse_provider_timestamp(
    value: Optional[str],
    fallback: datetime,
    source: str = "webhook"
) -> datetime:
    """
    Parse a timestamp supplied by the messaging gateway.

    The gateway does not guarantee a format, so parsing is best-effort.
    An omitted or empty value returns the fallback silently; a value that
    cannot be parsed is logged and also returns the fallback.

    Args:
        value: Raw timestamp string from the gateway
        fallback: Value to use when no timestamp can be derived
        source: Label used in the warning log (e.g. "DLR", "MO")

    Returns:
        Parsed datetime in the local timezone, or the fallback
    """
    if value is None or not value.strip():
        return fallback

    # Offsets beyond 24h and dates at the calendar edges fail in conversion
    try:
        return to_local(dateutil_parser.parse(value.strip()))
    except (ValueError, OverflowError) as e:
        logger.warning(f"Invalid timestamp in {source}: {value!r} ({e})")
        return fallback

