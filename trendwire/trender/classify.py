"""Keyword-based category classification for merged topics.

A topic belongs to a category when its normalized display name contains any
of the category's keywords as a substring. Substring matching is
loose ("ai" matches "Quantum AI Chip" but also "Dubai"). An unknown category
has no keywords and so matches nothing.
"""

from pathlib import Path
from typing import Dict, FrozenSet, Iterable, List, Mapping, Optional, Union

import yaml

from trendwire.core.logging import get_logger
from trendwire.core.models import Topic
from trendwire.trender.normalize import normalize

logger = get_logger(__name__)

CATEGORY_KEYWORDS: Dict[str, FrozenSet[str]] = {
    'technology': frozenset({'tech', 'ai', 'software', 'app', 'digital', 'crypto', 'blockchain'}),
    'sports': frozenset({'game', 'match', 'player', 'team', 'score', 'championship', 'olympics'}),
    'entertainment': frozenset({'movie', 'show', 'celebrity', 'music', 'actor', 'film', 'series'}),
    'politics': frozenset({'election', 'government', 'policy', 'president', 'congress', 'vote'}),
    'health': frozenset({'health', 'medical', 'vaccine', 'virus', 'covid', 'disease', 'hospital'}),
}


class CategoryClassifier:
    """Category table plus the matching rules."""

    def __init__(self, table: Optional[Mapping[str, Iterable[str]]] = None):
        source = CATEGORY_KEYWORDS if table is None else table
        self.table: Dict[str, FrozenSet[str]] = {
            name.lower(): frozenset(keyword.lower() for keyword in keywords)
            for name, keywords in source.items()
        }

    @classmethod
    def from_yaml(cls, path: Union[str, Path]) -> 'CategoryClassifier':
        """
        Built-in table extended with categories from a YAML file.

        Expected layout::

            categories:
              technology: [quantum, robotics]
              finance: [stocks, earnings]
        """
        config_path = Path(path)
        with open(config_path, 'r', encoding='utf-8') as f:
            config = yaml.safe_load(f) or {}

        table = {name: set(keywords) for name, keywords in CATEGORY_KEYWORDS.items()}
        for name, keywords in (config.get('categories') or {}).items():
            table.setdefault(str(name).lower(), set()).update(str(k) for k in keywords or [])

        logger.info(f"Loaded {len(table)} categories from {config_path}")
        return cls(table)

    @property
    def categories(self) -> List[str]:
        """Supported category names."""
        return sorted(self.table)

    def keywords_for(self, category: str) -> FrozenSet[str]:
        """Keywords of a category, empty for unknown names."""
        return self.table.get((category or '').strip().lower(), frozenset())

    def matches(self, name: str, category: str) -> bool:
        """True when the normalized name contains any keyword of the category."""
        text = normalize(name)
        return any(keyword in text for keyword in self.keywords_for(category))

    def categories_for(self, name: str) -> List[str]:
        """Every category whose keywords appear in the name."""
        return [category for category in self.categories if self.matches(name, category)]

    def classify(self, topics: Iterable[Topic], category: str) -> List[Topic]:
        """Topics belonging to a category, in their existing order."""
        keywords = self.keywords_for(category)
        if not keywords:
            logger.warning(f"Unknown category '{category}', no topics will match")
            return []

        return [topic for topic in topics if self.matches(topic.display_name, category)]


default_classifier = CategoryClassifier()


def classify(topics: Iterable[Topic], category: str) -> List[Topic]:
    """Filter topics to a category using the built-in keyword table."""
    return default_classifier.classify(topics, category)


def categories_for(name: str) -> List[str]:
    """Categories of a topic name using the built-in keyword table."""
    return default_classifier.categories_for(name)
