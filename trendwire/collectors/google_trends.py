"""Google Trends daily trending searches (macro-trend source)."""

from typing import Any, List
from urllib.parse import urlencode

from bs4 import BeautifulSoup

from trendwire.core.logging import get_logger
from trendwire.core.models import RawTrendRecord, SourceKind
from trendwire.collectors.base import TrendCollector

logger = get_logger(__name__)

TRENDS_RSS_URL = "https://trends.google.com/trending/rss"
TRENDS_EXPLORE_URL = "https://trends.google.com/trends/explore"


def parse_trends_feed(xml_text: str) -> List[RawTrendRecord]:
    """
    Parse the trending searches RSS document.

    Each ``<item>`` carries the query as ``<title>``, the formatted traffic
    as ``<ht:approx_traffic>`` (e.g. ``"50K+"``) and one ``<ht:news_item>``
    per related article.
    """
    if not xml_text or not xml_text.strip():
        return []

    soup = BeautifulSoup(xml_text, 'html.parser')
    records = []

    for item in soup.find_all('item'):
        title_tag = item.find('title')
        title = title_tag.get_text(strip=True) if title_tag else ''
        if not title:
            continue

        traffic_tag = item.find('ht:approx_traffic')
        traffic = traffic_tag.get_text(strip=True) if traffic_tag else None

        records.append(RawTrendRecord(
            name=title,
            source_kind=SourceKind.GOOGLE,
            metrics={'traffic': traffic},
            related_article_count=len(item.find_all('ht:news_item')),
            url=f"{TRENDS_EXPLORE_URL}?{urlencode({'q': title})}"
        ))

    return records


class GoogleTrendsCollector(TrendCollector):
    """Daily trending searches for a country."""

    kind = SourceKind.GOOGLE

    async def fetch(self, options: Any) -> List[RawTrendRecord]:
        geo = (getattr(options, 'geo', None) or 'US').upper()
        logger.info(f"Fetching Google Trends for geo={geo}")

        xml_text = await self.get_text(TRENDS_RSS_URL, params={'geo': geo})
        records = parse_trends_feed(xml_text)

        logger.info(f"Found {len(records)} Google trends for {geo}")
        return records
