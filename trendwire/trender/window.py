"""Recency windows for the articles attached to topics."""

from datetime import datetime, timedelta
from typing import Dict, Optional

from trendwire.core.models import Topic
from trendwire.core.time import normalize_timezone, utc_now

DEFAULT_PERIOD = '24h'

PERIODS: Dict[str, timedelta] = {
    '1h': timedelta(hours=1),
    '24h': timedelta(days=1),
    '7d': timedelta(days=7),
    '30d': timedelta(days=30),
}


def window_cutoff(period: Optional[str], now: Optional[datetime] = None) -> datetime:
    """Earliest publication time inside the period; unrecognized periods behave as 24h."""
    now = normalize_timezone(now) if now else utc_now()
    delta = PERIODS.get(period or DEFAULT_PERIOD, PERIODS[DEFAULT_PERIOD])
    return now - delta


def filter_articles(topic: Topic, cutoff: datetime) -> Topic:
    """
    Drop the topic's articles published before the cutoff.

    The topic itself always survives, even with no articles left.
    """
    cutoff = normalize_timezone(cutoff)
    topic.articles = [
        article for article in topic.articles
        if normalize_timezone(article.published_at) >= cutoff
    ]
    return topic
