"""Fold raw records from every source into ranked, merged topics."""

from typing import Callable, Dict, Iterable, List, Mapping, Optional

from trendwire.core.logging import get_logger
from trendwire.core.models import (
    SOURCE_ORDER,
    CanonicalKey,
    Contribution,
    RawTrendRecord,
    SourceKind,
    SourceOutcome,
    Topic,
)
from trendwire.trender.normalize import normalize
from trendwire.trender.score import score_record

logger = get_logger(__name__)


class TopicMerger:
    """
    Accumulator mapping canonical keys to topics for a single aggregation run.

    Scores only grow as records are added. ``ranked()`` returns topics by
    descending score; equal scores keep first-seen order.
    """

    def __init__(self,
                 normalizer: Callable[[str], CanonicalKey] = normalize,
                 scorer: Callable[[RawTrendRecord], float] = score_record):
        self.normalizer = normalizer
        self.scorer = scorer
        self._topics: Dict[CanonicalKey, Topic] = {}
        self.records_seen = 0
        self.records_skipped = 0

    def add(self, record: RawTrendRecord) -> Optional[Topic]:
        """Merge one record; returns the topic it landed in, or None when its name is empty."""
        key = self.normalizer(record.name)
        if not key:
            self.records_skipped += 1
            logger.debug(f"Skipping {record.source_kind.value} record with empty key: {record.name!r}")
            return None

        self.records_seen += 1
        score = self.scorer(record)
        contribution = Contribution(
            source_kind=record.source_kind,
            raw_score=score,
            original_name=record.name
        )

        topic = self._topics.get(key)
        if topic is None:
            topic = Topic(
                key=key,
                display_name=record.name,
                score=score,
                contributions=[contribution],
                platforms={record.source_kind}
            )
            self._topics[key] = topic
        else:
            topic.score += score
            topic.contributions.append(contribution)
            topic.platforms.add(record.source_kind)

        return topic

    def add_all(self, records: Iterable[RawTrendRecord]) -> None:
        """Merge records in order."""
        for record in records:
            self.add(record)

    def ranked(self) -> List[Topic]:
        """Topics sorted by descending score, stable on insertion order."""
        return sorted(self._topics.values(), key=lambda topic: topic.score, reverse=True)

    def __len__(self) -> int:
        return len(self._topics)


def merge(raw_by_source: Mapping[SourceKind, SourceOutcome]) -> List[Topic]:
    """
    Merge every source's records into one ranked topic list.

    Sources are folded in canonical order so the result does not depend on
    which collector finished first. Failed sources are skipped.
    """
    merger = TopicMerger()

    for kind in SOURCE_ORDER:
        outcome = raw_by_source.get(kind)
        if not isinstance(outcome, list):
            continue
        merger.add_all(outcome)

    logger.debug(
        f"Merged {merger.records_seen} records into {len(merger)} topics "
        f"({merger.records_skipped} skipped)"
    )
    return merger.ranked()
