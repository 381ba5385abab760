"""Analytics aggregation and caching core for marketplace seller reports."""

__version__ = "1.0.0"
