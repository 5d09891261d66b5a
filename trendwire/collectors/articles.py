"""Article search across NewsAPI, Google News RSS and SerpAPI.

Providers are queried concurrently and fail independently. Results are
deduplicated by exact normalized title, sorted newest first and truncated.
Title dedup is its own policy and is not the canonical topic key.
"""

import asyncio
import re
from typing import Any, Dict, Iterable, List, NamedTuple, Optional, Sequence, Set

import feedparser
import httpx

from trendwire.core.errors import CollectorFailure
from trendwire.core.logging import get_logger
from trendwire.core.models import ArticlePlatform, CollectorError, RawArticle
from trendwire.core.time import parse_timestamp, utc_now
from trendwire.collectors.base import HttpSource

logger = get_logger(__name__)

NEWSAPI_URL = "https://newsapi.org/v2/everything"
GOOGLE_NEWS_RSS_URL = "https://news.google.com/rss/search"
SERPAPI_URL = "https://serpapi.com/search"

DEFAULT_ARTICLE_LIMIT = 50
MAX_PAGE_SIZE = 100
REMOVED_TITLE = "[Removed]"

_TITLE_PUNCT_RE = re.compile(r'[^\w\s]')


class ArticleSearchResult(NamedTuple):
    """Articles found for a query plus the providers that failed."""
    articles: List[RawArticle]
    errors: List[CollectorError]


def article_title_key(title: str) -> str:
    """Exact-match dedup key for article titles: lowercase, punctuation removed, trimmed."""
    return _TITLE_PUNCT_RE.sub('', (title or '').lower()).strip()


def remove_duplicate_articles(articles: Sequence[RawArticle]) -> List[RawArticle]:
    """Keep the first article of every title key."""
    seen = set()
    unique = []
    for article in articles:
        key = article_title_key(article.title)
        if key in seen:
            continue
        seen.add(key)
        unique.append(article)
    return unique


def parse_google_news_feed(xml_text: str, limit: int) -> List[RawArticle]:
    """Articles from a Google News search RSS document."""
    feed = feedparser.parse(xml_text)
    if feed.bozo and feed.bozo_exception:
        logger.warning(f"Google News feed parsing warning: {feed.bozo_exception}")

    articles = []
    for entry in feed.entries[:limit]:
        title = entry.get('title')
        link = entry.get('link')
        if not title or not link:
            continue

        source = entry.get('source') or {}
        source_name = source.get('title', '') if hasattr(source, 'get') else str(source)
        suffix = f" - {source_name}"
        if source_name and title.endswith(suffix):
            title = title[:-len(suffix)]

        articles.append(RawArticle(
            title=title,
            url=link,
            published_at=parse_timestamp(entry.get('published')) or utc_now(),
            source=source_name,
            platform=ArticlePlatform.GOOGLE_NEWS,
            description=None
        ))
    return articles


class ArticleService(HttpSource):
    """Searches news providers for articles about a topic."""

    source_name = "articles"

    def __init__(self, news_api_key: str = "", serp_api_key: str = "",
                 client: Optional[httpx.AsyncClient] = None, timeout: float = 15.0,
                 use_newsapi: Optional[bool] = None, use_google_news: bool = True,
                 use_serpapi: bool = False, language: str = "en"):
        super().__init__(client=client, timeout=timeout)
        self.news_api_key = news_api_key
        self.serp_api_key = serp_api_key
        # NewsAPI is on by default whenever a key is configured
        self.use_newsapi = bool(news_api_key) if use_newsapi is None else use_newsapi
        self.use_google_news = use_google_news
        self.use_serpapi = use_serpapi
        self.language = language

    async def fetch_from_newsapi(self, query: str, limit: int = DEFAULT_ARTICLE_LIMIT) -> List[RawArticle]:
        """Search NewsAPI's /everything endpoint."""
        api_key = self.require(self.news_api_key, "NewsAPI key")

        data = await self.get_json(NEWSAPI_URL, params={
            'q': query,
            'sortBy': 'publishedAt',
            'pageSize': min(limit, MAX_PAGE_SIZE),
            'language': self.language,
            'apiKey': api_key
        })
        if data.get('status') == 'error':
            raise CollectorFailure("newsapi", data.get('message') or "NewsAPI error")

        articles = []
        for item in data.get('articles') or []:
            title = item.get('title')
            url = item.get('url')
            if not title or not url or title == REMOVED_TITLE:
                continue
            articles.append(RawArticle(
                title=title,
                url=url,
                published_at=parse_timestamp(item.get('publishedAt')) or utc_now(),
                source=(item.get('source') or {}).get('name') or '',
                platform=ArticlePlatform.NEWSAPI,
                description=item.get('description')
            ))
        return articles

    async def fetch_from_google_news(self, query: str, limit: int = DEFAULT_ARTICLE_LIMIT) -> List[RawArticle]:
        """Search Google News through its RSS endpoint."""
        lang = self.language
        xml_text = await self.get_text(GOOGLE_NEWS_RSS_URL, params={
            'q': query,
            'hl': f'{lang}-US',
            'gl': 'US',
            'ceid': f'US:{lang}'
        })
        return parse_google_news_feed(xml_text, min(limit, MAX_PAGE_SIZE))

    async def fetch_with_serpapi(self, query: str, limit: int = DEFAULT_ARTICLE_LIMIT) -> List[RawArticle]:
        """Search Google News results through SerpAPI."""
        api_key = self.require(self.serp_api_key, "SerpAPI key")

        data = await self.get_json(SERPAPI_URL, params={
            'engine': 'google',
            'q': query,
            'tbm': 'nws',
            'num': min(limit, MAX_PAGE_SIZE),
            'hl': self.language,
            'api_key': api_key
        })
        if data.get('error'):
            raise CollectorFailure("serpapi", data['error'])

        articles = []
        for item in data.get('news_results') or []:
            title = item.get('title')
            link = item.get('link')
            if not title or not link:
                continue
            source = item.get('source')
            if isinstance(source, dict):
                source = source.get('name')
            articles.append(RawArticle(
                title=title,
                url=link,
                published_at=parse_timestamp(item.get('date')) or utc_now(),
                source=source or '',
                platform=ArticlePlatform.SERPAPI,
                description=item.get('snippet')
            ))
        return articles

    @property
    def enabled_platforms(self) -> Set[ArticlePlatform]:
        """Providers queried when a search does not name its own."""
        enabled = set()
        if self.use_newsapi:
            enabled.add(ArticlePlatform.NEWSAPI)
        if self.use_google_news:
            enabled.add(ArticlePlatform.GOOGLE_NEWS)
        if self.use_serpapi:
            enabled.add(ArticlePlatform.SERPAPI)
        return enabled

    def _providers(self, platforms: Iterable[ArticlePlatform]) -> Dict[ArticlePlatform, Any]:
        fetchers = {
            ArticlePlatform.NEWSAPI: self.fetch_from_newsapi,
            ArticlePlatform.GOOGLE_NEWS: self.fetch_from_google_news,
            ArticlePlatform.SERPAPI: self.fetch_with_serpapi,
        }
        selected = set(platforms)
        return {platform: fetch for platform, fetch in fetchers.items() if platform in selected}

    async def fetch_all_articles(self, query: str, limit: int = DEFAULT_ARTICLE_LIMIT,
                                 platforms: Optional[Iterable[ArticlePlatform]] = None) -> ArticleSearchResult:
        """
        Search providers for a query.

        Args:
            query: Topic name to search for
            limit: Maximum number of articles returned
            platforms: Providers to query; defaults to the enabled ones

        Returns:
            ArticleSearchResult with unique articles, newest first, and one
            error per failed provider
        """
        if limit <= 0:
            return ArticleSearchResult(articles=[], errors=[])

        providers = self._providers(self.enabled_platforms if platforms is None else platforms)
        outcomes = await asyncio.gather(
            *(fetch(query, limit) for fetch in providers.values()),
            return_exceptions=True
        )

        collected: List[RawArticle] = []
        errors: List[CollectorError] = []
        for platform, outcome in zip(providers, outcomes):
            if isinstance(outcome, asyncio.CancelledError):
                raise outcome
            if isinstance(outcome, BaseException):
                logger.warning(f"{platform.value} search failed for '{query}': {outcome}")
                errors.append(CollectorError.from_exception(f"articles:{platform.value}", outcome))
                continue
            collected.extend(outcome)

        unique = remove_duplicate_articles(collected)
        unique.sort(key=lambda article: article.published_at, reverse=True)

        logger.info(f"Found {len(unique)} unique articles for '{query}' from {len(providers)} providers")
        return ArticleSearchResult(articles=unique[:limit], errors=errors)
