"""Trend sources and article search providers."""

from .base import HttpSource, TrendCollector, build_client
from .google_trends import GoogleTrendsCollector, parse_trends_feed
from .social import RedditCollector, TwitterCollector, YouTubeCollector
from .articles import ArticleSearchResult, ArticleService, remove_duplicate_articles

__all__ = [
    # Contract
    'HttpSource',
    'TrendCollector',
    'build_client',

    # Trend sources
    'GoogleTrendsCollector',
    'parse_trends_feed',
    'TwitterCollector',
    'RedditCollector',
    'YouTubeCollector',

    # Articles
    'ArticleSearchResult',
    'ArticleService',
    'remove_duplicate_articles'
]
