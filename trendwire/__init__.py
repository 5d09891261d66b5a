"""TrendWire: trending topic aggregation across search and social sources."""

__version__ = "0.1.0"
