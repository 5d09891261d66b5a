"""Time and timezone utilities for article timestamps."""

import email.utils
import re
from datetime import datetime, timezone, timedelta
from typing import Any, Optional

from dateutil import parser as date_parser

from trendwire.core.logging import get_logger

logger = get_logger(__name__)


def utc_now() -> datetime:
    """Get current time in UTC."""
    return datetime.now(timezone.utc)


def normalize_timezone(dt: datetime, target_tz: timezone = timezone.utc) -> datetime:
    """
    Normalize datetime to target timezone.

    Naive datetimes are assumed to be UTC.
    """
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)

    return dt.astimezone(target_tz)


def parse_timestamp(value: Any) -> Optional[datetime]:
    """
    Parse a timestamp as delivered by a feed or JSON API into an aware UTC datetime.

    Handles datetime objects, epoch seconds, RFC 2822 (RSS) and ISO 8601
    strings. Returns None when the value cannot be understood.
    """
    if value is None or value == "":
        return None

    if isinstance(value, datetime):
        return normalize_timezone(value)

    if isinstance(value, (int, float)):
        try:
            return datetime.fromtimestamp(value, tz=timezone.utc)
        except (OverflowError, OSError, ValueError):
            return None

    text = str(value).strip()

    try:
        # RFC 2822 first, the common case in RSS
        return normalize_timezone(email.utils.parsedate_to_datetime(text))
    except (ValueError, TypeError, IndexError):
        pass

    relative = parse_relative_time(text)
    if relative:
        return relative

    try:
        return normalize_timezone(date_parser.parse(text))
    except (ValueError, OverflowError, TypeError):
        logger.warning(f"Could not parse date: {text}")
        return None


def parse_relative_time(time_str: str) -> Optional[datetime]:
    """
    Parse relative time strings like "2 hours ago", "1 day ago".

    Returns datetime in UTC.
    """
    if not time_str:
        return None

    time_str = time_str.lower().strip()
    now = utc_now()

    patterns = [
        (r'(\d+)\s*(?:min|mins|minute|minutes)\s*ago', lambda m: now - timedelta(minutes=int(m.group(1)))),
        (r'(\d+)\s*(?:hour|hours)\s*ago', lambda m: now - timedelta(hours=int(m.group(1)))),
        (r'(\d+)\s*(?:day|days)\s*ago', lambda m: now - timedelta(days=int(m.group(1)))),
        (r'(\d+)\s*(?:week|weeks)\s*ago', lambda m: now - timedelta(weeks=int(m.group(1)))),
        (r'^yesterday$', lambda m: now - timedelta(days=1)),
        (r'^(?:today|just now)$', lambda m: now),
    ]

    for pattern, func in patterns:
        match = re.search(pattern, time_str)
        if match:
            try:
                return func(match)
            except (ValueError, OverflowError):
                continue

    return None

