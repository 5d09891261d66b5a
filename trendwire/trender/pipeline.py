"""Trend aggregation orchestrator.

Coordinates one aggregation run:
1. Collect: every enabled source is queried concurrently, each call bounded
   by its own timeout; failures are recorded, never raised
2. Merge: records are folded into topics by canonical key and ranked
3. Classify: optional category filter
4. Articles: related articles for the top topics, one topic at a time
5. Window: articles outside the requested period are dropped
"""

import asyncio
import json
import time
from typing import Any, Dict, Iterable, List, Mapping, Optional

from pydantic import BaseModel, Field, field_validator

from trendwire.core.errors import ConfigurationError
from trendwire.core.logging import get_logger, setup_logging
from trendwire.core.models import (
    SOURCE_ORDER,
    AggregationResult,
    CollectorError,
    SourceKind,
    SourceOutcome,
    Topic,
)
from trendwire.core.settings import Settings, get_settings
from trendwire.core.time import utc_now
from trendwire.collectors import (
    ArticleService,
    GoogleTrendsCollector,
    RedditCollector,
    TrendCollector,
    TwitterCollector,
    YouTubeCollector,
)
from trendwire.collectors.base import DEFAULT_TIMEOUT
from trendwire.trender.classify import CategoryClassifier, default_classifier
from trendwire.trender.merge import merge
from trendwire.trender.summary import DEFAULT_TOP_K, summarize
from trendwire.trender.window import DEFAULT_PERIOD, PERIODS, filter_articles, window_cutoff

logger = get_logger(__name__)

# Pipeline configuration
DEFAULT_ARTICLE_LIMIT = 10
MAX_ARTICLE_TOPICS = 5
DEFAULT_TWITTER_WOEID = 1
DEFAULT_SUBREDDIT = "all"
DEFAULT_REDDIT_LIMIT = 25
DEFAULT_YOUTUBE_MAX_RESULTS = 50


def _parse_int(value: Any, default: int, field_name: str, minimum: int) -> int:
    if value is None or value == "":
        return default
    try:
        number = int(value)
    except (TypeError, ValueError):
        logger.warning(f"Invalid {field_name} {value!r}, using {default}")
        return default
    if number < minimum:
        logger.warning(f"{field_name} {number} below {minimum}, using {default}")
        return default
    return number


class AggregationOptions(BaseModel):
    """
    Options for a single aggregation run, validated once at entry.

    Malformed values never fail the run: they fall back to the documented
    default and are logged at WARNING.
    """

    enabled_sources: List[SourceKind] = Field(default_factory=lambda: list(SOURCE_ORDER))
    geo: str = Field(default_factory=lambda: get_settings().default_geo)
    period: str = DEFAULT_PERIOD
    category: Optional[str] = None
    article_limit: int = DEFAULT_ARTICLE_LIMIT
    top_k: int = DEFAULT_TOP_K

    # Per-collector parameters
    twitter_woeid: int = DEFAULT_TWITTER_WOEID
    reddit_subreddit: str = DEFAULT_SUBREDDIT
    reddit_limit: int = DEFAULT_REDDIT_LIMIT
    youtube_region: Optional[str] = None
    youtube_max_results: int = DEFAULT_YOUTUBE_MAX_RESULTS

    @field_validator('enabled_sources', mode='before')
    @classmethod
    def validate_sources(cls, value: Any) -> List[SourceKind]:
        if value is None:
            return list(SOURCE_ORDER)
        if isinstance(value, str):
            value = [part for part in value.split(',') if part.strip()]
            if not value:
                return list(SOURCE_ORDER)
        elif not isinstance(value, (list, tuple, set, frozenset)):
            logger.warning(f"Invalid sources {value!r}, enabling all sources")
            return list(SOURCE_ORDER)

        requested = set()
        for item in value:
            try:
                requested.add(SourceKind(item.strip().lower() if isinstance(item, str) else item))
            except ValueError:
                logger.warning(f"Unknown source {item!r} ignored")

        if not requested and value:
            logger.warning("No known sources requested, enabling all sources")
            return list(SOURCE_ORDER)
        return [kind for kind in SOURCE_ORDER if kind in requested]

    @field_validator('geo', mode='before')
    @classmethod
    def validate_geo(cls, value: Any) -> str:
        if not isinstance(value, str) or not value.strip():
            return get_settings().default_geo
        return value.strip().upper()

    @field_validator('period', mode='before')
    @classmethod
    def validate_period(cls, value: Any) -> str:
        if value is None or value == "":
            return DEFAULT_PERIOD
        period = str(value).strip().lower()
        if period not in PERIODS:
            logger.warning(f"Unknown period {value!r}, using {DEFAULT_PERIOD}")
            return DEFAULT_PERIOD
        return period

    @field_validator('category', mode='before')
    @classmethod
    def validate_category(cls, value: Any) -> Optional[str]:
        if not isinstance(value, str) or not value.strip():
            return None
        return value.strip().lower()

    @field_validator('article_limit', mode='before')
    @classmethod
    def validate_article_limit(cls, value: Any) -> int:
        return _parse_int(value, DEFAULT_ARTICLE_LIMIT, 'article_limit', minimum=0)

    @field_validator('top_k', mode='before')
    @classmethod
    def validate_top_k(cls, value: Any) -> int:
        return _parse_int(value, DEFAULT_TOP_K, 'top_k', minimum=1)

    @field_validator('twitter_woeid', mode='before')
    @classmethod
    def validate_woeid(cls, value: Any) -> int:
        return _parse_int(value, DEFAULT_TWITTER_WOEID, 'twitter_woeid', minimum=1)

    @field_validator('reddit_subreddit', mode='before')
    @classmethod
    def validate_subreddit(cls, value: Any) -> str:
        if not isinstance(value, str) or not value.strip():
            return DEFAULT_SUBREDDIT
        return value.strip()

    @field_validator('reddit_limit', mode='before')
    @classmethod
    def validate_reddit_limit(cls, value: Any) -> int:
        return _parse_int(value, DEFAULT_REDDIT_LIMIT, 'reddit_limit', minimum=1)

    @field_validator('youtube_region', mode='before')
    @classmethod
    def validate_youtube_region(cls, value: Any) -> Optional[str]:
        if not isinstance(value, str) or not value.strip():
            return None
        return value.strip().upper()

    @field_validator('youtube_max_results', mode='before')
    @classmethod
    def validate_youtube_max_results(cls, value: Any) -> int:
        return _parse_int(value, DEFAULT_YOUTUBE_MAX_RESULTS, 'youtube_max_results', minimum=1)

    def with_updates(self, **changes: Any) -> 'AggregationOptions':
        """Copy with some fields replaced, validating the new values."""
        data = self.model_dump()
        data.update(changes)
        return AggregationOptions.model_validate(data)


class StageTimer:
    """Context manager for timing pipeline stages."""

    def __init__(self, stage_name: str, timings_dict: Dict[str, float]):
        self.stage_name = stage_name
        self.timings_dict = timings_dict
        self.start_time = None

    def __enter__(self):
        self.start_time = time.time()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        if self.start_time:
            runtime = time.time() - self.start_time
            self.timings_dict[self.stage_name] = runtime


class TrendAggregator:
    """
    Runs collectors in parallel and turns their output into ranked topics.

    Holds no state between runs apart from its collectors and services;
    every ``run()`` builds a fresh result.
    """

    def __init__(self, collectors: Iterable[TrendCollector],
                 article_service: Optional[ArticleService] = None,
                 classifier: Optional[CategoryClassifier] = None,
                 timeouts: Optional[Mapping[SourceKind, float]] = None,
                 article_timeout: Optional[float] = None):
        self.collectors: Dict[SourceKind, TrendCollector] = {
            collector.kind: collector for collector in collectors
        }
        self.article_service = article_service
        self.classifier = classifier or default_classifier
        self.timeouts = dict(timeouts or {})
        self.article_timeout = article_timeout

    async def aclose(self) -> None:
        """Close the HTTP clients of every collector and the article service."""
        for collector in self.collectors.values():
            await collector.aclose()
        if self.article_service is not None:
            await self.article_service.aclose()

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.aclose()

    def _timeout_for(self, kind: SourceKind, collector: TrendCollector) -> float:
        return self.timeouts.get(kind, getattr(collector, 'timeout', None) or DEFAULT_TIMEOUT)

    async def _collect_one(self, kind: SourceKind, options: AggregationOptions) -> SourceOutcome:
        """Run one collector; any failure comes back as a CollectorError."""
        collector = self.collectors.get(kind)
        if collector is None:
            error = ConfigurationError(kind.value, f"No collector registered for {kind.value}")
            logger.warning(str(error))
            return CollectorError.from_exception(kind.value, error)

        timeout = self._timeout_for(kind, collector)
        try:
            records = await asyncio.wait_for(collector.fetch(options), timeout=timeout)
        except asyncio.TimeoutError:
            logger.warning(f"{kind.value} collector timed out after {timeout}s")
            return CollectorError(source=kind.value, message=f"Timed out after {timeout}s")
        except Exception as e:
            logger.warning(f"{kind.value} collector failed: {e}")
            return CollectorError.from_exception(kind.value, e)

        return list(records or [])

    async def collect(self, options: AggregationOptions) -> Dict[SourceKind, SourceOutcome]:
        kinds = [kind for kind in SOURCE_ORDER if kind in options.enabled_sources]
        outcomes = await asyncio.gather(*(self._collect_one(kind, options) for kind in kinds))
        return dict(zip(kinds, outcomes))

    async def _attach_articles(self, topics: List[Topic], options: AggregationOptions,
                               errors: List[CollectorError]) -> None:
        """Fetch articles for the top topics, sequentially."""
        if options.article_limit == 0 or self.article_service is None:
            return

        for topic in topics[:MAX_ARTICLE_TOPICS]:
            try:
                found = await asyncio.wait_for(
                    self.article_service.fetch_all_articles(topic.display_name, options.article_limit),
                    timeout=self.article_timeout
                )
            except asyncio.TimeoutError:
                logger.warning(f"Article search timed out for '{topic.display_name}'")
                errors.append(CollectorError(
                    source="articles",
                    message=f"Timed out fetching articles for '{topic.display_name}'"
                ))
                continue
            except Exception as e:
                logger.warning(f"Article search failed for '{topic.display_name}': {e}")
                errors.append(CollectorError(
                    source="articles",
                    message=f"{topic.display_name}: {str(e) or type(e).__name__}"
                ))
                continue

            topic.articles = list(found.articles)
            for error in found.errors:
                # One entry per failing provider, not per topic
                if all(existing.source != error.source for existing in errors):
                    errors.append(error)

    async def run(self, options: Optional[AggregationOptions] = None) -> AggregationResult:
        """
        Run one aggregation.

        Args:
            options: Validated options; defaults to every source for the default geo

        Returns:
            AggregationResult; never raises for source failures, which are
            recorded in ``errors`` instead
        """
        options = options or AggregationOptions()
        timings: Dict[str, float] = {}
        result = AggregationResult(
            timestamp=utc_now(),
            period=options.period,
            category=options.category,
            stage_timings=timings
        )

        sources = ', '.join(kind.value for kind in options.enabled_sources) or 'none'
        logger.info(f"Starting trend aggregation: geo={options.geo}, period={options.period}, sources={sources}")

        start = time.perf_counter()
        with StageTimer('collect', timings):
            outcomes = await self.collect(options)
        result.processing_time_ms = (time.perf_counter() - start) * 1000

        for kind, outcome in outcomes.items():
            result.raw_by_source[kind] = outcome
            if isinstance(outcome, CollectorError):
                result.errors.append(outcome)

        with StageTimer('merge', timings):
            topics = merge(result.raw_by_source)

        if options.category:
            with StageTimer('classify', timings):
                topics = self.classifier.classify(topics, options.category)

        with StageTimer('articles', timings):
            await self._attach_articles(topics, options, result.errors)

        with StageTimer('window', timings):
            cutoff = window_cutoff(options.period)
            for topic in topics:
                filter_articles(topic, cutoff)

        result.topics = topics

        logger.info(
            f"Trend aggregation completed in {result.processing_time_ms:.0f}ms: "
            f"{len(topics)} topics, {len(result.errors)} errors"
        )
        return result

    async def trending_for_period(self, period: str,
                                  options: Optional[AggregationOptions] = None) -> AggregationResult:
        """Run with the articles window set to ``period``."""
        options = (options or AggregationOptions()).with_updates(period=period)
        return await self.run(options)

    async def trending_by_category(self, category: str,
                                   options: Optional[AggregationOptions] = None) -> AggregationResult:
        """Run keeping only topics in ``category``."""
        options = (options or AggregationOptions()).with_updates(category=category)
        return await self.run(options)


def build_classifier(settings: Optional[Settings] = None) -> CategoryClassifier:
    """Category classifier, extended from YAML when a categories path is configured."""
    settings = settings or get_settings()
    if settings.categories_path:
        return CategoryClassifier.from_yaml(settings.categories_path)
    return default_classifier


def build_aggregator(settings: Optional[Settings] = None) -> TrendAggregator:
    """Aggregator wired with every collector and the article service from settings."""
    settings = settings or get_settings()
    timeout = settings.collector_timeout_seconds

    collectors = [
        GoogleTrendsCollector(timeout=timeout),
        TwitterCollector(bearer_token=settings.twitter_bearer_token, timeout=timeout),
        RedditCollector(user_agent=settings.reddit_user_agent, timeout=timeout),
        YouTubeCollector(api_key=settings.youtube_api_key, timeout=timeout),
    ]
    article_service = ArticleService(
        news_api_key=settings.news_api_key,
        serp_api_key=settings.serp_api_key,
        timeout=settings.article_timeout_seconds,
        use_serpapi=bool(settings.serp_api_key)
    )

    return TrendAggregator(
        collectors,
        article_service=article_service,
        classifier=build_classifier(settings),
        article_timeout=settings.article_timeout_seconds
    )


async def aggregate(options: Optional[AggregationOptions] = None) -> AggregationResult:
    """Run one aggregation with collectors built from settings."""
    async with build_aggregator() as aggregator:
        return await aggregator.run(options)


def _print_summary(result: AggregationResult, top_k: int) -> None:
    summary = summarize(result, top_k=top_k)

    print("\n=== Trend Aggregation Results ===")
    print(f"Collected in: {summary.processing_time_ms:.0f}ms")
    print(f"Topics: {summary.total_topics}")
    for platform in summary.platforms:
        state = "failed" if platform.failed else f"{platform.count} records"
        print(f"  {platform.name}: {state}")

    if summary.top_trends:
        print("\nTop trends:")
        for item in summary.top_trends:
            categories = f" [{', '.join(item.categories)}]" if item.categories else ""
            print(f"{item.rank:>3}. {item.name} ({item.score}) "
                  f"{'/'.join(item.platforms)}, {item.article_count} articles{categories}")

    for error in summary.errors:
        print(f"Error: {error.source}: {error.message}")


def main():
    """CLI entry point for running one trend aggregation."""
    import argparse

    parser = argparse.ArgumentParser(description='Trend Aggregation')
    parser.add_argument(
        '--geo',
        type=str,
        help='Country code for geo-aware sources (default: DEFAULT_GEO setting)'
    )
    parser.add_argument(
        '--sources',
        type=str,
        help=f"Comma-separated sources (default: {','.join(kind.value for kind in SOURCE_ORDER)})"
    )
    parser.add_argument(
        '--period',
        type=str,
        default=DEFAULT_PERIOD,
        help=f"Article window: {', '.join(PERIODS)} (default: {DEFAULT_PERIOD})"
    )
    parser.add_argument(
        '--category',
        type=str,
        help='Keep only topics in this category (optional)'
    )
    parser.add_argument(
        '--article-limit',
        type=int,
        default=DEFAULT_ARTICLE_LIMIT,
        help=f'Articles per top topic, 0 to skip (default: {DEFAULT_ARTICLE_LIMIT})'
    )
    parser.add_argument(
        '--top-k',
        type=int,
        default=DEFAULT_TOP_K,
        help=f'Number of trends to show (default: {DEFAULT_TOP_K})'
    )
    parser.add_argument(
        '--json',
        action='store_true',
        help='Print the full result and summary as JSON'
    )
    parser.add_argument(
        '--verbose',
        action='store_true',
        help='Enable verbose logging'
    )

    args = parser.parse_args()

    setup_logging("trender", level="DEBUG" if args.verbose else None)

    options = AggregationOptions(
        enabled_sources=args.sources,
        geo=args.geo,
        period=args.period,
        category=args.category,
        article_limit=args.article_limit,
        top_k=args.top_k
    )

    result = asyncio.run(aggregate(options))

    if args.json:
        print(json.dumps({
            'result': result.to_dict(),
            'summary': summarize(result, top_k=options.top_k).to_dict()
        }, indent=2, default=str))
    else:
        _print_summary(result, options.top_k)

    # Every enabled source failing is the only error exit
    if result.raw_by_source and all(isinstance(o, CollectorError) for o in result.raw_by_source.values()):
        return 1
    return 0


if __name__ == "__main__":
    exit(main())
