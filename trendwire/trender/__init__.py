"""Trend aggregation and scoring package.

This package contains modules for:
- Topic name normalization (normalize.py)
- Per-source scoring (score.py)
- Merging records into ranked topics (merge.py)
- Category classification (classify.py)
- Article time windows (window.py)
- Display summaries (summary.py)
- Aggregation orchestrator and CLI (pipeline.py)
- HTTP API (app.py)
"""

from .normalize import normalize
from .score import score_record, parse_traffic
from .merge import TopicMerger, merge
from .classify import CategoryClassifier, classify, categories_for
from .window import window_cutoff, filter_articles
from .summary import TrendSummary, summarize
from .pipeline import (
    AggregationOptions,
    TrendAggregator,
    aggregate,
    build_aggregator
)

__all__ = [
    # Merging
    'normalize',
    'score_record',
    'parse_traffic',
    'TopicMerger',
    'merge',

    # Filters
    'CategoryClassifier',
    'classify',
    'categories_for',
    'window_cutoff',
    'filter_articles',

    # Results
    'TrendSummary',
    'summarize',

    # Orchestration
    'AggregationOptions',
    'TrendAggregator',
    'aggregate',
    'build_aggregator'
]
