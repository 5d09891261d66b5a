"""Social platform collectors: Twitter/X trends, Reddit hot posts, YouTube most popular."""

from typing import Any, Dict, List, Optional

import httpx

from trendwire.core.errors import CollectorFailure
from trendwire.core.logging import get_logger
from trendwire.core.models import RawTrendRecord, SourceKind
from trendwire.collectors.base import DEFAULT_TIMEOUT, TrendCollector

logger = get_logger(__name__)

TWITTER_TRENDS_URL = "https://api.twitter.com/1.1/trends/place.json"
REDDIT_BASE_URL = "https://www.reddit.com"
YOUTUBE_VIDEOS_URL = "https://www.googleapis.com/youtube/v3/videos"


def _to_int(value: Any) -> Optional[int]:
    """Integer from an API counter that may be a string or missing."""
    if value is None:
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


class TwitterCollector(TrendCollector):
    """Twitter/X trends for a WOEID location (1 = worldwide)."""

    kind = SourceKind.TWITTER

    def __init__(self, bearer_token: str = "", client: Optional[httpx.AsyncClient] = None,
                 timeout: float = DEFAULT_TIMEOUT):
        super().__init__(client=client, timeout=timeout)
        self.bearer_token = bearer_token

    async def fetch(self, options: Any) -> List[RawTrendRecord]:
        token = self.require(self.bearer_token, "Twitter bearer token")
        woeid = getattr(options, 'twitter_woeid', 1)
        logger.info(f"Fetching Twitter trends for woeid={woeid}")

        data = await self.get_json(
            TWITTER_TRENDS_URL,
            params={'id': woeid},
            headers={'Authorization': f'Bearer {token}'}
        )

        if not isinstance(data, list):
            raise CollectorFailure(self.source_name, "Unexpected trends payload")
        if not data:
            return []

        records = []
        for trend in data[0].get('trends') or []:
            name = trend.get('name')
            if not name:
                continue
            records.append(RawTrendRecord(
                name=name,
                source_kind=SourceKind.TWITTER,
                metrics={'volume': trend.get('tweet_volume')},
                url=trend.get('url')
            ))

        logger.info(f"Found {len(records)} Twitter trends")
        return records


class RedditCollector(TrendCollector):
    """Hot posts of a subreddit."""

    kind = SourceKind.REDDIT

    def __init__(self, user_agent: str = "TrendWire/1.0", client: Optional[httpx.AsyncClient] = None,
                 timeout: float = DEFAULT_TIMEOUT):
        super().__init__(client=client, timeout=timeout)
        self.user_agent = user_agent

    async def fetch(self, options: Any) -> List[RawTrendRecord]:
        subreddit = getattr(options, 'reddit_subreddit', 'all') or 'all'
        limit = getattr(options, 'reddit_limit', 25)
        logger.info(f"Fetching Reddit hot posts from r/{subreddit}")

        data = await self.get_json(
            f"{REDDIT_BASE_URL}/r/{subreddit}/hot.json",
            params={'limit': limit},
            headers={'User-Agent': self.user_agent}
        )

        records = []
        for child in (data.get('data') or {}).get('children') or []:
            post: Dict[str, Any] = child.get('data') or {}
            title = post.get('title')
            if not title:
                continue
            permalink = post.get('permalink')
            records.append(RawTrendRecord(
                name=title,
                source_kind=SourceKind.REDDIT,
                metrics={
                    'score': _to_int(post.get('score')),
                    'comments': _to_int(post.get('num_comments'))
                },
                url=f"https://reddit.com{permalink}" if permalink else None
            ))

        logger.info(f"Found {len(records)} Reddit posts in r/{subreddit}")
        return records


class YouTubeCollector(TrendCollector):
    """Most popular videos for a region."""

    kind = SourceKind.YOUTUBE

    def __init__(self, api_key: str = "", client: Optional[httpx.AsyncClient] = None,
                 timeout: float = DEFAULT_TIMEOUT):
        super().__init__(client=client, timeout=timeout)
        self.api_key = api_key

    async def fetch(self, options: Any) -> List[RawTrendRecord]:
        api_key = self.require(self.api_key, "YouTube API key")
        region = (getattr(options, 'youtube_region', None) or getattr(options, 'geo', None) or 'US').upper()
        max_results = getattr(options, 'youtube_max_results', 50)
        logger.info(f"Fetching YouTube most popular videos for region={region}")

        data = await self.get_json(
            YOUTUBE_VIDEOS_URL,
            params={
                'part': 'snippet,statistics',
                'chart': 'mostPopular',
                'regionCode': region,
                'maxResults': max_results,
                'key': api_key
            }
        )

        records = []
        for video in data.get('items') or []:
            snippet = video.get('snippet') or {}
            statistics = video.get('statistics') or {}
            title = snippet.get('title')
            if not title:
                continue
            records.append(RawTrendRecord(
                name=title,
                source_kind=SourceKind.YOUTUBE,
                metrics={
                    'views': _to_int(statistics.get('viewCount')),
                    'likes': _to_int(statistics.get('likeCount')),
                    'comments': _to_int(statistics.get('commentCount'))
                },
                url=f"https://www.youtube.com/watch?v={video['id']}" if video.get('id') else None
            ))

        logger.info(f"Found {len(records)} YouTube videos for {region}")
        return records
