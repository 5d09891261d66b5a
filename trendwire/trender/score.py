"""Per-source scoring for raw trend records.

Every source gets a base score so a topic seen only on a low-signal source
never scores zero. Magnitude metrics (traffic, volume, views, likes, score,
comments) are compressed with ``log10(max(value, 1)) * weight`` so one viral
outlier cannot dominate a topic's combined score.
"""

import math
import re
from typing import Callable, Dict, Mapping, Optional

from trendwire.core.models import MetricValue, RawTrendRecord, SourceKind

# Base scores
GOOGLE_BASE_SCORE = 50.0
TWITTER_BASE_SCORE = 30.0
REDDIT_BASE_SCORE = 20.0
YOUTUBE_BASE_SCORE = 25.0

# Magnitude weights
GOOGLE_TRAFFIC_WEIGHT = 10.0
TWITTER_VOLUME_WEIGHT = 5.0
REDDIT_SCORE_WEIGHT = 3.0
REDDIT_COMMENTS_WEIGHT = 2.0
YOUTUBE_VIEWS_WEIGHT = 4.0
YOUTUBE_LIKES_WEIGHT = 2.0

# Linear bonus per related article on a macro trend
RELATED_ARTICLE_BONUS = 2.0

TRAFFIC_MULTIPLIERS = {
    'K': 1e3,
    'M': 1e6,
    'B': 1e9,
}

_TRAFFIC_RE = re.compile(r'(\d+(?:\.\d+)?)\s*([KMB])?(?![A-Za-z\d])', re.IGNORECASE)


def parse_traffic(value: MetricValue) -> Optional[float]:
    """
    Parse a traffic figure such as ``"50K+"``, ``"2M"`` or ``"200,000+"``.

    Returns None when no number can be found.
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return float(value) if math.isfinite(value) else None

    text = str(value).replace(',', '').strip()
    match = _TRAFFIC_RE.search(text)
    if not match:
        return None

    magnitude = float(match.group(1))
    suffix = match.group(2)
    if suffix:
        magnitude *= TRAFFIC_MULTIPLIERS[suffix.upper()]
    return magnitude


def metric_value(metrics: Mapping[str, MetricValue], name: str) -> float:
    """Numeric value of a metric, 0 when missing or unparseable."""
    value = metrics.get(name)
    if value is None or isinstance(value, bool):
        return 0.0
    if isinstance(value, (int, float)):
        return float(value) if math.isfinite(value) else 0.0
    try:
        parsed = float(str(value).replace(',', '').strip())
    except ValueError:
        return 0.0
    return parsed if math.isfinite(parsed) else 0.0


def compress(value: float, weight: float) -> float:
    """Logarithmic saturation of a magnitude metric."""
    return math.log10(max(value, 1.0)) * weight


def score_google(record: RawTrendRecord) -> float:
    """Macro-trend score: base + compressed search traffic + related article bonus."""
    score = GOOGLE_BASE_SCORE

    traffic = parse_traffic(record.metrics.get('traffic'))
    if traffic is not None:
        score += compress(traffic, GOOGLE_TRAFFIC_WEIGHT)

    if record.related_article_count:
        score += max(record.related_article_count, 0) * RELATED_ARTICLE_BONUS

    return score


def score_twitter(record: RawTrendRecord) -> float:
    """Twitter/X score from tweet volume."""
    return TWITTER_BASE_SCORE + compress(metric_value(record.metrics, 'volume'), TWITTER_VOLUME_WEIGHT)


def score_reddit(record: RawTrendRecord) -> float:
    """Reddit score from post score and comment count."""
    return (
        REDDIT_BASE_SCORE
        + compress(metric_value(record.metrics, 'score'), REDDIT_SCORE_WEIGHT)
        + compress(metric_value(record.metrics, 'comments'), REDDIT_COMMENTS_WEIGHT)
    )


def score_youtube(record: RawTrendRecord) -> float:
    """YouTube score from views and likes."""
    return (
        YOUTUBE_BASE_SCORE
        + compress(metric_value(record.metrics, 'views'), YOUTUBE_VIEWS_WEIGHT)
        + compress(metric_value(record.metrics, 'likes'), YOUTUBE_LIKES_WEIGHT)
    )


SCORERS: Dict[SourceKind, Callable[[RawTrendRecord], float]] = {
    SourceKind.GOOGLE: score_google,
    SourceKind.TWITTER: score_twitter,
    SourceKind.REDDIT: score_reddit,
    SourceKind.YOUTUBE: score_youtube,
}


def score_record(record: RawTrendRecord) -> float:
    """Score a record with the function for its source kind."""
    return SCORERS[record.source_kind](record)
