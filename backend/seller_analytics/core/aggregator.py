"""Aggregation of detailed sales report lines into per-product totals.

Totals are exactly rounded sums and derived fields come from totals only,
so an aggregate does not depend on the order of its records.
"""
import math
from collections.abc import Mapping
from typing import Any, Dict, Iterable, List, Union

from ..models.schemas import (
    AnalyticsResult,
    GeneralAnalytics,
    ProductAggregate,
    ProfitSummary,
    ReturnsSummary,
    TransactionRecord,
)
from .logging import get_logger

RawRecord = Union[TransactionRecord, Mapping]


def _percentage(part: float, whole: float) -> float:
    """Return part/whole*100, or 0 when whole is not positive."""
    if whole > 0:
        return (part / whole) * 100
    return 0.0


def normalize_records(records: Iterable[Any]) -> List[TransactionRecord]:
    """Convert raw report lines to TransactionRecord objects.

    Lines that are not mappings are skipped and logged; numeric fields
    that are missing or malformed default to zero.
    """
    logger = get_logger("aggregator")
    normalized = []
    for index, raw in enumerate(records):
        if isinstance(raw, TransactionRecord):
            normalized.append(raw)
        elif isinstance(raw, Mapping):
            normalized.append(TransactionRecord.model_validate(dict(raw)))
        else:
            logger.warning(f"Skipping report line {index}: expected a mapping, got {type(raw).__name__}")
    return normalized


def recompute_derived(aggregate: ProductAggregate) -> None:
    """Refresh profit and ratio fields from the aggregate's totals."""
    aggregate.profit = aggregate.net_payout - aggregate.total_expenses
    aggregate.average_price = (
        aggregate.sales_amount / aggregate.quantity_sold
        if aggregate.quantity_sold > 0 else 0.0
    )
    aggregate.profitability = _percentage(aggregate.profit, aggregate.sales_amount)
    aggregate.return_rate = (
        _percentage(aggregate.returns_count, aggregate.orders_count)
        if aggregate.returns_count > 0 else 0.0
    )


def build_aggregate(product_id: str, records: List[TransactionRecord]) -> ProductAggregate:
    """Fold all report lines of one product into its aggregate.

    Totals use ``math.fsum``, which is exactly rounded, so the result is
    the same for any ordering of ``records``.
    """
    sales = [record for record in records if record.is_sale]
    returns = [record for record in records if record.is_return]

    aggregate = ProductAggregate(
        product_id=product_id,
        product_name=min((r.subject_name for r in records if r.subject_name), default=""),
        quantity_sold=math.fsum(r.quantity for r in sales),
        sales_amount=math.fsum(r.retail_price * r.quantity for r in sales),
        orders_count=len(sales),
        returns_count=len(returns),
        total_expenses=math.fsum(
            [r.expense_total for r in records] + [r.retail_amount for r in returns]
        ),
        net_payout=math.fsum(r.ppvz_for_pay for r in records),
    )
    recompute_derived(aggregate)
    return aggregate


def aggregate_products(records: Iterable[TransactionRecord]) -> Dict[str, ProductAggregate]:
    """Build per-product aggregates keyed by product id (``nm_id``)."""
    by_product: Dict[str, List[TransactionRecord]] = {}
    for record in records:
        by_product.setdefault(record.nm_id, []).append(record)
    return {
        product_id: build_aggregate(product_id, product_records)
        for product_id, product_records in by_product.items()
    }


def calculate_general_analytics(records: Iterable[RawRecord]) -> GeneralAnalytics:
    """Summarize sales and returns across the whole report.

    Args:
        records: Report lines (raw mappings or TransactionRecord objects)

    Returns:
        GeneralAnalytics for all Sale and Return lines

    Formula:
        total_sales_volume = sum(retail_price * quantity) over sales
        return_rate = returns / orders * 100 (0 when there are no orders)
    """
    normalized = normalize_records(records)
    sales = [record for record in normalized if record.is_sale]
    total_orders_count = len(sales)
    total_returns_count = sum(1 for record in normalized if record.is_return)

    return GeneralAnalytics(
        total_sales_volume=math.fsum(r.retail_price * r.quantity for r in sales),
        total_orders_count=total_orders_count,
        total_returns_count=total_returns_count,
        return_rate=_percentage(total_returns_count, total_orders_count),
    )


def aggregate_transactions(records: Iterable[RawRecord]) -> AnalyticsResult:
    """Aggregate a detailed sales report.

    Produces the store-wide summary, per-product totals and the returns
    and profit views derived from them. Each call starts from empty
    state, so repeated calls on the same input give equal results.

    Args:
        records: Report lines (raw mappings or TransactionRecord objects)

    Returns:
        AnalyticsResult for the report
    """
    normalized = normalize_records(records)
    per_product = aggregate_products(normalized)

    returns_analysis = {
        product_id: ReturnsSummary(
            product_name=aggregate.product_name,
            orders_count=aggregate.orders_count,
            returns_count=aggregate.returns_count,
            return_rate=aggregate.return_rate,
        )
        for product_id, aggregate in per_product.items()
    }
    profitability_analysis = {
        product_id: ProfitSummary(
            product_name=aggregate.product_name,
            profit=aggregate.profit,
        )
        for product_id, aggregate in per_product.items()
    }

    get_logger("aggregator").debug(
        f"Aggregated {len(normalized)} report lines into {len(per_product)} products"
    )

    return AnalyticsResult(
        general=calculate_general_analytics(normalized),
        per_product=per_product,
        returns_analysis=returns_analysis,
        profitability_analysis=profitability_analysis,
    )
