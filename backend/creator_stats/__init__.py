"""Owned content statistics: cached aggregation of creator content from a rate-limited web API."""

__version__ = "1.0.0"
