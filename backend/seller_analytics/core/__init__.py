"""Core business logic modules."""
from .aggregator import aggregate_transactions, calculate_general_analytics
from .cache_manager import CacheStore, format_cache_age
from .profitability import analyze_profitability, total_storage_cost

__all__ = [
    "aggregate_transactions",
    "calculate_general_analytics",
    "CacheStore",
    "format_cache_age",
    "analyze_profitability",
    "total_storage_cost",
]
