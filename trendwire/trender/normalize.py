"""Canonical keys for free-text topic names."""

import re

from trendwire.core.models import CanonicalKey

_NON_ALNUM_RE = re.compile(r'[^\w\s]|_')
_WHITESPACE_RE = re.compile(r'\s+')


def normalize(name: str) -> CanonicalKey:
    """
    Canonicalize a topic name so the same subject from different sources merges.

    Lowercases, drops everything that is not a letter, digit or whitespace,
    collapses whitespace runs and trims. Idempotent.

    >>> normalize("  AI   Boom!! ")
    'ai boom'
    """
    if not name:
        return ""

    key = name.lower()
    key = _NON_ALNUM_RE.sub('', key)
    key = _WHITESPACE_RE.sub(' ', key)
    return key.strip()
