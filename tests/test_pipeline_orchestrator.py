"""Tests for the trend aggregation orchestrator."""

import asyncio
import math
from datetime import timedelta
from unittest.mock import AsyncMock, patch

import pytest

from trendwire.collectors.articles import ArticleSearchResult
from trendwire.core.errors import CollectorFailure, ConfigurationError
from trendwire.core.models import ArticlePlatform, CollectorError, RawArticle, RawTrendRecord, SourceKind
from trendwire.core.time import utc_now
from trendwire.trender.pipeline import (
    MAX_ARTICLE_TOPICS,
    AggregationOptions,
    StageTimer,
    TrendAggregator,
)


class FakeCollector:
    """Collector returning canned records, raising, or sleeping."""

    def __init__(self, kind, records=None, error=None, delay=0.0, timeout=1.0):
        self.kind = kind
        self.records = records or []
        self.error = error
        self.delay = delay
        self.timeout = timeout
        self.calls = 0
        self.closed = False

    async def fetch(self, options):
        self.calls += 1
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error:
            raise self.error
        return list(self.records)

    async def aclose(self):
        self.closed = True


def rec(name, kind, **metrics):
    return RawTrendRecord(name=name, source_kind=kind, metrics=metrics)


def article(title, hours_old):
    return RawArticle(
        title=title,
        url=f"https://example.com/{title.replace(' ', '-')}",
        published_at=utc_now() - timedelta(hours=hours_old),
        source="Example",
        platform=ArticlePlatform.NEWSAPI
    )


def options(**kwargs):
    kwargs.setdefault('article_limit', 0)
    return AggregationOptions(**kwargs)


class TestAggregationOptions:
    """Tests for option validation and fallbacks."""

    def test_defaults(self):
        opts = AggregationOptions()
        assert opts.enabled_sources == [SourceKind.GOOGLE, SourceKind.TWITTER, SourceKind.REDDIT, SourceKind.YOUTUBE]
        assert opts.period == "24h"
        assert opts.article_limit == 10
        assert opts.top_k == 10
        assert opts.category is None

    def test_sources_from_comma_string(self):
        opts = AggregationOptions(enabled_sources="reddit, Google,myspace")
        assert opts.enabled_sources == [SourceKind.GOOGLE, SourceKind.REDDIT]

    def test_only_unknown_sources_enables_all(self):
        assert len(AggregationOptions(enabled_sources=["myspace"]).enabled_sources) == 4

    def test_explicit_empty_sources(self):
        assert AggregationOptions(enabled_sources=[]).enabled_sources == []

    @pytest.mark.parametrize("field,value,expected", [
        ("period", "2w", "24h"),
        ("period", "7D", "7d"),
        ("article_limit", -1, 10),
        ("article_limit", "abc", 10),
        ("article_limit", "0", 0),
        ("top_k", 0, 10),
        ("top_k", "5", 5),
        ("reddit_limit", "many", 25),
        ("twitter_woeid", None, 1),
    ])
    def test_malformed_values_fall_back(self, field, value, expected):
        assert getattr(AggregationOptions(**{field: value}), field) == expected

    def test_geo_and_category_are_cleaned(self):
        opts = AggregationOptions(geo=" gb ", category=" Technology ")
        assert opts.geo == "GB"
        assert opts.category == "technology"
        assert AggregationOptions(category="  ").category is None

    def test_with_updates_validates(self):
        opts = AggregationOptions(geo="GB").with_updates(period="bogus", category="Sports")
        assert opts.geo == "GB"
        assert opts.period == "24h"
        assert opts.category == "sports"


class TestStageTimer:
    """Tests for stage timing."""

    def test_records_runtime(self):
        timings = {}
        with StageTimer('merge', timings):
            pass
        assert timings['merge'] >= 0


class TestTrendAggregator:
    """Tests for TrendAggregator.run."""

    @pytest.mark.asyncio
    async def test_one_failing_collector_of_three(self):
        aggregator = TrendAggregator([
            FakeCollector(SourceKind.TWITTER, [rec("Alpha", SourceKind.TWITTER)]),
            FakeCollector(SourceKind.REDDIT, error=CollectorFailure("reddit", "HTTP 503")),
            FakeCollector(SourceKind.YOUTUBE, [rec("Beta", SourceKind.YOUTUBE)]),
        ])

        result = await aggregator.run(options(enabled_sources=["twitter", "reddit", "youtube"]))

        assert {t.display_name for t in result.topics} == {"Alpha", "Beta"}
        assert result.errors == [CollectorError(source="reddit", message="HTTP 503")]
        assert isinstance(result.raw_by_source[SourceKind.REDDIT], CollectorError)
        assert result.records_for(SourceKind.REDDIT) == []

    @pytest.mark.asyncio
    async def test_all_collectors_fail(self):
        aggregator = TrendAggregator([
            FakeCollector(SourceKind.GOOGLE, error=RuntimeError("parse failure")),
            FakeCollector(SourceKind.TWITTER, error=ConfigurationError("twitter", "Twitter bearer token not configured")),
        ])

        result = await aggregator.run(options(enabled_sources=["google", "twitter"]))

        assert result.topics == []
        assert [e.source for e in result.errors] == ["google", "twitter"]
        assert result.errors[1].message == "Twitter bearer token not configured"

    @pytest.mark.asyncio
    async def test_timeout_is_recorded_and_siblings_finish(self):
        slow = FakeCollector(SourceKind.YOUTUBE, [rec("Slow", SourceKind.YOUTUBE)], delay=1.0, timeout=0.05)
        fast = FakeCollector(SourceKind.REDDIT, [rec("Fast", SourceKind.REDDIT)])
        aggregator = TrendAggregator([slow, fast])

        result = await aggregator.run(options(enabled_sources=["reddit", "youtube"]))

        assert [t.display_name for t in result.topics] == ["Fast"]
        assert len(result.errors) == 1
        assert result.errors[0].source == "youtube"
        assert "Timed out" in result.errors[0].message

    @pytest.mark.asyncio
    async def test_timeouts_mapping_overrides_collector_timeout(self):
        slow = FakeCollector(SourceKind.REDDIT, delay=1.0, timeout=5.0)
        aggregator = TrendAggregator([slow], timeouts={SourceKind.REDDIT: 0.05})

        result = await aggregator.run(options(enabled_sources=["reddit"]))

        assert result.errors[0].source == "reddit"

    @pytest.mark.asyncio
    async def test_collectors_run_concurrently(self):
        collectors = [
            FakeCollector(kind, [rec(f"Topic {kind.value}", kind)], delay=0.2)
            for kind in (SourceKind.GOOGLE, SourceKind.TWITTER, SourceKind.REDDIT, SourceKind.YOUTUBE)
        ]
        aggregator = TrendAggregator(collectors)

        result = await aggregator.run(options())

        assert len(result.topics) == 4
        # Four 200ms calls in parallel take well under their 800ms sum
        assert result.processing_time_ms < 700

    @pytest.mark.asyncio
    async def test_missing_collector_is_configuration_error(self):
        aggregator = TrendAggregator([FakeCollector(SourceKind.REDDIT, [rec("Topic", SourceKind.REDDIT)])])

        result = await aggregator.run(options(enabled_sources=["google", "reddit"]))

        assert [t.display_name for t in result.topics] == ["Topic"]
        assert result.errors == [CollectorError(source="google", message="No collector registered for google")]

    @pytest.mark.asyncio
    async def test_only_enabled_sources_are_called(self):
        google = FakeCollector(SourceKind.GOOGLE)
        reddit = FakeCollector(SourceKind.REDDIT)
        aggregator = TrendAggregator([google, reddit])

        result = await aggregator.run(options(enabled_sources=["reddit"]))

        assert google.calls == 0
        assert reddit.calls == 1
        assert list(result.raw_by_source) == [SourceKind.REDDIT]

    @pytest.mark.asyncio
    async def test_ai_boom_end_to_end(self):
        aggregator = TrendAggregator([
            FakeCollector(SourceKind.GOOGLE, [rec("AI Boom", SourceKind.GOOGLE, traffic="50K")]),
            FakeCollector(SourceKind.REDDIT, [rec("ai boom!!", SourceKind.REDDIT, score=120, comments=40)]),
        ])

        result = await aggregator.run(options(enabled_sources=["google", "reddit"]))

        assert len(result.topics) == 1
        topic = result.topics[0]
        assert topic.display_name == "AI Boom"
        assert topic.platforms == {SourceKind.GOOGLE, SourceKind.REDDIT}
        expected = 50 + math.log10(50_000) * 10 + 20 + math.log10(120) * 3 + math.log10(40) * 2
        assert topic.score == pytest.approx(expected)
        assert set(result.stage_timings) == {'collect', 'merge', 'articles', 'window'}

    @pytest.mark.asyncio
    async def test_category_filter(self):
        aggregator = TrendAggregator([FakeCollector(SourceKind.TWITTER, [
            rec("Quantum AI Chip", SourceKind.TWITTER),
            rec("Local Bakery Opens", SourceKind.TWITTER),
        ])])

        result = await aggregator.trending_by_category("technology", options(enabled_sources=["twitter"]))

        assert [t.display_name for t in result.topics] == ["Quantum AI Chip"]
        assert result.category == "technology"
        assert 'classify' in result.stage_timings

    @pytest.mark.asyncio
    async def test_unknown_category_yields_no_topics(self):
        aggregator = TrendAggregator([FakeCollector(SourceKind.TWITTER, [rec("Quantum AI Chip", SourceKind.TWITTER)])])

        result = await aggregator.trending_by_category("gardening", options(enabled_sources=["twitter"]))

        assert result.topics == []
        assert result.errors == []


class TestArticleAttachment:
    """Tests for attaching articles to the top topics."""

    @pytest.fixture
    def collector(self):
        records = [rec(f"Topic {i}", SourceKind.TWITTER, volume=10 ** (8 - i)) for i in range(7)]
        return FakeCollector(SourceKind.TWITTER, records)

    @pytest.mark.asyncio
    async def test_only_top_topics_get_articles(self, collector):
        service = AsyncMock()
        service.fetch_all_articles.return_value = ArticleSearchResult(articles=[article("Story", 1)], errors=[])
        aggregator = TrendAggregator([collector], article_service=service)

        result = await aggregator.run(AggregationOptions(enabled_sources=["twitter"], article_limit=3))

        assert service.fetch_all_articles.await_count == MAX_ARTICLE_TOPICS
        queried = [call.args[0] for call in service.fetch_all_articles.await_args_list]
        assert queried == [f"Topic {i}" for i in range(MAX_ARTICLE_TOPICS)]
        assert service.fetch_all_articles.await_args_list[0].args[1] == 3
        assert all(len(t.articles) == 1 for t in result.topics[:MAX_ARTICLE_TOPICS])
        assert all(t.articles == [] for t in result.topics[MAX_ARTICLE_TOPICS:])

    @pytest.mark.asyncio
    async def test_article_limit_zero_skips_search(self, collector):
        service = AsyncMock()
        aggregator = TrendAggregator([collector], article_service=service)

        await aggregator.run(AggregationOptions(enabled_sources=["twitter"], article_limit=0))

        service.fetch_all_articles.assert_not_called()

    @pytest.mark.asyncio
    async def test_slow_article_search_times_out(self, collector):
        async def slow_search(query, limit):
            await asyncio.sleep(1.0)
            return ArticleSearchResult(articles=[article("Story", 1)], errors=[])

        service = AsyncMock()
        service.fetch_all_articles.side_effect = slow_search
        aggregator = TrendAggregator([collector], article_service=service, article_timeout=0.01)

        result = await aggregator.run(AggregationOptions(enabled_sources=["twitter"], article_limit=3))

        timeouts = [e for e in result.errors if e.source == "articles"]
        assert len(timeouts) == MAX_ARTICLE_TOPICS
        assert "Timed out" in timeouts[0].message
        assert all(t.articles == [] for t in result.topics)

    @pytest.mark.asyncio
    async def test_article_failure_is_isolated_per_topic(self, collector):
        service = AsyncMock()
        service.fetch_all_articles.side_effect = [
            RuntimeError("search down"),
            ArticleSearchResult(articles=[article("Story", 1)], errors=[]),
            ArticleSearchResult(articles=[], errors=[]),
            ArticleSearchResult(articles=[], errors=[]),
            ArticleSearchResult(articles=[], errors=[]),
        ]
        aggregator = TrendAggregator([collector], article_service=service)

        result = await aggregator.run(AggregationOptions(enabled_sources=["twitter"]))

        assert result.topics[0].articles == []
        assert len(result.topics[1].articles) == 1
        assert result.errors == [CollectorError(source="articles", message="Topic 0: search down")]

    @pytest.mark.asyncio
    async def test_provider_errors_recorded_once(self, collector):
        provider_error = CollectorError(source="articles:newsapi", message="HTTP 401")
        service = AsyncMock()
        service.fetch_all_articles.return_value = ArticleSearchResult(articles=[], errors=[provider_error])
        aggregator = TrendAggregator([collector], article_service=service)

        result = await aggregator.run(AggregationOptions(enabled_sources=["twitter"]))

        assert result.errors == [provider_error]

    @pytest.mark.asyncio
    async def test_window_drops_old_articles(self, collector):
        service = AsyncMock()
        service.fetch_all_articles.return_value = ArticleSearchResult(
            articles=[article("Fresh", 2), article("Stale", 36)], errors=[]
        )
        aggregator = TrendAggregator([collector], article_service=service)

        result = await aggregator.trending_for_period("24h", AggregationOptions(enabled_sources=["twitter"]))

        assert [a.title for a in result.topics[0].articles] == ["Fresh"]
        assert result.period == "24h"

        result = await aggregator.trending_for_period("7d", AggregationOptions(enabled_sources=["twitter"]))
        assert [a.title for a in result.topics[0].articles] == ["Fresh", "Stale"]


class TestAggregatorLifecycle:
    """Tests for closing collectors."""

    @pytest.mark.asyncio
    async def test_context_manager_closes_collectors(self):
        collector = FakeCollector(SourceKind.REDDIT)
        service = AsyncMock()

        async with TrendAggregator([collector], article_service=service):
            pass

        assert collector.closed is True
        service.aclose.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_aggregate_uses_settings_built_aggregator(self):
        from trendwire.trender import pipeline

        collector = FakeCollector(SourceKind.REDDIT, [rec("Topic", SourceKind.REDDIT)])
        with patch.object(pipeline, "build_aggregator", return_value=TrendAggregator([collector])):
            result = await pipeline.aggregate(options(enabled_sources=["reddit"]))

        assert [t.display_name for t in result.topics] == ["Topic"]
        assert collector.closed is True

    @pytest.mark.asyncio
    async def test_build_aggregator_bounds_article_search(self, monkeypatch):
        from trendwire.core.settings import Settings
        from trendwire.trender.pipeline import build_aggregator

        monkeypatch.delenv("TRENDWIRE_CATEGORIES_PATH", raising=False)
        aggregator = build_aggregator(Settings(_env_file=None, article_timeout_seconds=3.0))
        try:
            assert aggregator.article_timeout == 3.0
            assert aggregator.article_service.timeout == 3.0
        finally:
            await aggregator.aclose()
