"""Data model shared by collectors, the trend engine and the API.

Raw records and articles are immutable once a collector produces them. A
``Topic`` is the mutable accumulator the merger builds during a single
aggregation run; an ``AggregationResult`` is created fresh for every run and
handed to the caller.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional, Set, Union


class SourceKind(str, Enum):
    """Trend sources. Declaration order is the canonical merge order."""
    GOOGLE = "google"
    TWITTER = "twitter"
    REDDIT = "reddit"
    YOUTUBE = "youtube"


SOURCE_ORDER: List[SourceKind] = list(SourceKind)


class ArticlePlatform(str, Enum):
    """Article search providers."""
    NEWSAPI = "newsapi"
    GOOGLE_NEWS = "google_news"
    SERPAPI = "serpapi"


CanonicalKey = str
MetricValue = Union[int, float, str, None]


@dataclass(frozen=True)
class RawTrendRecord:
    """A single trending entry as reported by one source."""
    name: str
    source_kind: SourceKind
    metrics: Mapping[str, MetricValue] = field(default_factory=dict)
    related_article_count: Optional[int] = None
    url: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            'name': self.name,
            'source': self.source_kind.value,
            'metrics': dict(self.metrics),
            'related_article_count': self.related_article_count,
            'url': self.url
        }


@dataclass(frozen=True)
class RawArticle:
    """An article found by an article search provider."""
    title: str
    url: str
    published_at: datetime
    source: str
    platform: ArticlePlatform
    description: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            'title': self.title,
            'url': self.url,
            'published_at': self.published_at.isoformat(),
            'source': self.source,
            'platform': self.platform.value,
            'description': self.description
        }


@dataclass(frozen=True)
class Contribution:
    """One source's share of a topic's score."""
    source_kind: SourceKind
    raw_score: float
    original_name: str

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            'platform': self.source_kind.value,
            'score': self.raw_score,
            'original_name': self.original_name
        }


@dataclass
class Topic:
    """A trending subject merged across sources."""
    key: CanonicalKey
    display_name: str
    score: float
    contributions: List[Contribution] = field(default_factory=list)
    platforms: Set[SourceKind] = field(default_factory=set)
    articles: List[RawArticle] = field(default_factory=list)

    @property
    def ordered_platforms(self) -> List[SourceKind]:
        """Platforms in canonical source order."""
        return [kind for kind in SOURCE_ORDER if kind in self.platforms]

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            'key': self.key,
            'name': self.display_name,
            'score': self.score,
            'sources': [c.to_dict() for c in self.contributions],
            'platforms': [kind.value for kind in self.ordered_platforms],
            'articles': [a.to_dict() for a in self.articles]
        }


@dataclass(frozen=True)
class CollectorError:
    """A failure recorded in place of a source's records."""
    source: str
    message: str

    @classmethod
    def from_exception(cls, source: str, exc: BaseException) -> 'CollectorError':
        """Build an error entry, falling back to the exception type when it has no message."""
        message = str(exc) or type(exc).__name__
        return cls(source=source, message=message)

    def to_dict(self) -> Dict[str, str]:
        """Convert to dictionary."""
        return {'source': self.source, 'error': self.message}


SourceOutcome = Union[List[RawTrendRecord], CollectorError]


@dataclass
class AggregationResult:
    """Outcome of one aggregation run."""
    timestamp: datetime
    processing_time_ms: float = 0.0
    raw_by_source: Dict[SourceKind, SourceOutcome] = field(default_factory=dict)
    topics: List[Topic] = field(default_factory=list)
    errors: List[CollectorError] = field(default_factory=list)
    period: Optional[str] = None
    category: Optional[str] = None
    stage_timings: Dict[str, float] = field(default_factory=dict)

    def records_for(self, kind: SourceKind) -> List[RawTrendRecord]:
        """Records returned by a source, empty when it failed or was not run."""
        outcome = self.raw_by_source.get(kind)
        if isinstance(outcome, list):
            return outcome
        return []

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        trends = {}
        for kind, outcome in self.raw_by_source.items():
            if isinstance(outcome, CollectorError):
                trends[kind.value] = {'error': outcome.message}
            else:
                trends[kind.value] = [record.to_dict() for record in outcome]

        return {
            'timestamp': self.timestamp.isoformat(),
            'processing_time_ms': self.processing_time_ms,
            'period': self.period,
            'category': self.category,
            'trends': trends,
            'top_topics': [topic.to_dict() for topic in self.topics],
            'errors': [error.to_dict() for error in self.errors],
            'stage_timings': self.stage_timings
        }
