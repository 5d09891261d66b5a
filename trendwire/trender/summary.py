"""Display summary of an aggregation result."""

import math
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional

from trendwire.core.models import SOURCE_ORDER, AggregationResult, CollectorError, Topic
from trendwire.trender.classify import CategoryClassifier, default_classifier

DEFAULT_TOP_K = 10


@dataclass
class PlatformCount:
    """Records returned by a source and topics it contributed to."""
    name: str
    count: int
    topics: int
    failed: bool = False

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            'name': self.name,
            'count': self.count,
            'topics': self.topics,
            'failed': self.failed
        }


@dataclass
class TrendSummaryItem:
    """One ranked topic as shown to users."""
    rank: int
    name: str
    score: int
    platforms: List[str]
    article_count: int
    categories: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            'rank': self.rank,
            'name': self.name,
            'score': self.score,
            'platforms': self.platforms,
            'article_count': self.article_count,
            'categories': self.categories
        }


@dataclass
class TrendSummary:
    """Top trends plus diagnostics for one aggregation run."""
    timestamp: datetime
    processing_time_ms: float
    total_topics: int
    platforms: List[PlatformCount]
    top_trends: List[TrendSummaryItem]
    errors: List[CollectorError]

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            'timestamp': self.timestamp.isoformat(),
            'processing_time_ms': self.processing_time_ms,
            'total_topics': self.total_topics,
            'platforms': [p.to_dict() for p in self.platforms],
            'top_trends': [t.to_dict() for t in self.top_trends],
            'errors': [e.to_dict() for e in self.errors]
        }


def display_score(score: float) -> int:
    """Round half up to the nearest integer."""
    return int(math.floor(score + 0.5))


def _summary_item(rank: int, topic: Topic, classifier: CategoryClassifier) -> TrendSummaryItem:
    return TrendSummaryItem(
        rank=rank,
        name=topic.display_name,
        score=display_score(topic.score),
        platforms=[kind.value for kind in topic.ordered_platforms],
        article_count=len(topic.articles),
        categories=classifier.categories_for(topic.display_name)
    )


def summarize(result: AggregationResult, top_k: int = DEFAULT_TOP_K,
              classifier: Optional[CategoryClassifier] = None) -> TrendSummary:
    """
    Build the display summary of a result without modifying it.

    Keeps the first ``top_k`` topics in their existing order. Errors are
    passed through unchanged.
    """
    if not isinstance(top_k, int) or top_k <= 0:
        top_k = DEFAULT_TOP_K
    classifier = classifier or default_classifier

    platforms = []
    for kind in SOURCE_ORDER:
        if kind not in result.raw_by_source:
            continue
        outcome = result.raw_by_source[kind]
        platforms.append(PlatformCount(
            name=kind.value,
            count=len(outcome) if isinstance(outcome, list) else 0,
            topics=sum(1 for topic in result.topics if kind in topic.platforms),
            failed=isinstance(outcome, CollectorError)
        ))

    top_trends = [
        _summary_item(rank, topic, classifier)
        for rank, topic in enumerate(result.topics[:top_k], start=1)
    ]

    return TrendSummary(
        timestamp=result.timestamp,
        processing_time_ms=result.processing_time_ms,
        total_topics=len(result.topics),
        platforms=platforms,
        top_trends=top_trends,
        errors=list(result.errors)
    )
