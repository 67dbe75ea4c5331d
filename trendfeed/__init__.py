"""Feed aggregation with freshness-driven refresh and trending ranking."""

__version__ = "0.1.0"
