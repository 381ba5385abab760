"""Analytics service for turning a store's sales report into recommendations.

Coordinates the cached report fetch, aggregation and per-product pricing.
"""
from typing import Any, Dict, List, Mapping, Optional

from ..config import Settings, get_settings
from ..core.aggregator import aggregate_transactions
from ..core.cache_manager import CacheStore
from ..core.logging import get_logger
from ..core.profitability import analyze_profitability, total_storage_cost
from ..db.storage import create_storage
from ..models.schemas import (
    CacheKind,
    ProductAggregate,
    ProductProfile,
    ProfitabilityAnalysis,
    StoreReport,
)
from .fetch_cache import CachedFetcher, FetchFn


class AnalyticsService:
    """Service for building store analytics reports."""

    def __init__(
        self,
        fetcher: Optional[CachedFetcher] = None,
        settings: Optional[Settings] = None
    ):
        """Initialize the analytics service.

        Args:
            fetcher: Cached fetcher (built from settings if None)
            settings: Settings instance (global settings if None)
        """
        self.settings = settings or get_settings()
        if fetcher is None:
            cache_store = CacheStore(
                create_storage(self.settings),
                default_ttl_ms=self.settings.cache_default_ttl_ms,
            )
            fetcher = CachedFetcher(cache_store, single_flight=self.settings.single_flight)
        self.fetcher = fetcher

    async def get_sales_report(
        self,
        store_id: str,
        fetch_fn: FetchFn,
        ttl_ms: Optional[int] = None
    ) -> List[Dict[str, Any]]:
        """Get the raw sales report for a store, from cache when fresh."""
        return await self.fetcher.fetch_with_cache(CacheKind.SALES, store_id, ttl_ms, fetch_fn)

    def recommend(
        self,
        aggregates: Mapping[str, ProductAggregate],
        profiles: Mapping[str, ProductProfile]
    ) -> Dict[str, ProfitabilityAnalysis]:
        """Price recommendations for every product that has a profile.

        A profile without ``current_price`` uses the product's average
        selling price from the report.
        """
        recommendations = {}
        for product_id, profile in profiles.items():
            aggregate = aggregates.get(product_id)
            current_price = profile.current_price
            if current_price is None:
                current_price = aggregate.average_price if aggregate is not None else 0.0

            recommendations[product_id] = analyze_profitability(
                cost_price=profile.cost_price,
                current_price=current_price,
                storage_per_unit=profile.storage_per_unit,
                quantity=profile.quantity,
                daily_sales_rate=profile.daily_sales_rate,
                target_margin=self.settings.target_margin_percent,
                slow_sales_rate=self.settings.slow_sales_rate,
                overstock_quantity=self.settings.overstock_quantity,
            )
        return recommendations

    async def build_report(
        self,
        store_id: str,
        fetch_fn: FetchFn,
        profiles: Optional[Mapping[str, ProductProfile]] = None
    ) -> StoreReport:
        """Fetch (or reuse) the sales report and derive analytics for a store.

        Args:
            store_id: Store identity
            fetch_fn: Zero-argument fetch function returning raw report lines
            profiles: Optional cost/inventory profiles keyed by product id

        Returns:
            StoreReport with aggregates, recommendations and storage costs
        """
        logger = get_logger("analytics")
        profiles = profiles or {}

        records = await self.get_sales_report(store_id, fetch_fn)
        analytics = aggregate_transactions(records)
        logger.info(
            f"Store {store_id}: {len(analytics.per_product)} products, "
            f"{analytics.general.total_orders_count} orders, "
            f"{analytics.general.total_returns_count} returns"
        )

        recommendations = self.recommend(analytics.per_product, profiles)
        storage_costs = {
            product_id: total_storage_cost(
                profile.quantity,
                profile.daily_storage_cost,
                profile.daily_sales_rate,
            )
            for product_id, profile in profiles.items()
        }

        return StoreReport(
            store_id=store_id,
            analytics=analytics,
            recommendations=recommendations,
            storage_costs=storage_costs,
        )
