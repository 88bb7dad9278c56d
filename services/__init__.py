"""Service layer for tubecache: upstream client, aggregation and the cached facade."""

__version__ = "0.1.0"
