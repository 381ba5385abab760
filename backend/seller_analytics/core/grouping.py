"""Distribution, grouping and sorting helpers for report data."""
from collections.abc import Mapping
from datetime import date, datetime
from enum import Enum
from typing import Any, Callable, Dict, Iterable, List, Union

from pydantic import BaseModel

from ..models.schemas import (
    UNKNOWN_PRODUCT_ID,
    ProductAggregate,
    TransactionRecord,
    coerce_number,
)

UNKNOWN_LABEL = "Неизвестно"

DateLike = Union[date, datetime, str]


class SortField(str, Enum):
    """Product aggregate fields that can be sorted on."""
    QUANTITY_SOLD = "quantity_sold"
    SALES_AMOUNT = "sales_amount"
    ORDERS_COUNT = "orders_count"
    RETURNS_COUNT = "returns_count"
    TOTAL_EXPENSES = "total_expenses"
    PROFIT = "profit"
    PROFITABILITY = "profitability"
    AVERAGE_PRICE = "average_price"
    RETURN_RATE = "return_rate"


SORT_ACCESSORS: Dict[SortField, Callable[[ProductAggregate], float]] = {
    SortField.QUANTITY_SOLD: lambda a: a.quantity_sold,
    SortField.SALES_AMOUNT: lambda a: a.sales_amount,
    SortField.ORDERS_COUNT: lambda a: a.orders_count,
    SortField.RETURNS_COUNT: lambda a: a.returns_count,
    SortField.TOTAL_EXPENSES: lambda a: a.total_expenses,
    SortField.PROFIT: lambda a: a.profit,
    SortField.PROFITABILITY: lambda a: a.profitability,
    SortField.AVERAGE_PRICE: lambda a: a.average_price,
    SortField.RETURN_RATE: lambda a: a.return_rate,
}


class DailySales(BaseModel):
    """Average daily sales of a product over a period."""
    average_daily_sales: float
    sa_name: str


def sort_products(
    aggregates: Iterable[ProductAggregate],
    field: SortField,
    descending: bool = True
) -> List[ProductAggregate]:
    """Sort product aggregates by one of the SortField values.

    Ties are broken by product id so the ordering is stable across calls.
    """
    accessor = SORT_ACCESSORS[SortField(field)]
    by_id = sorted(aggregates, key=lambda a: a.product_id)
    return sorted(by_id, key=accessor, reverse=descending)


def top_products(
    aggregates: Iterable[ProductAggregate],
    field: SortField,
    limit: int = 10
) -> List[ProductAggregate]:
    """Return the ``limit`` highest-ranked products by ``field``."""
    if limit <= 0:
        return []
    return sort_products(aggregates, field, descending=True)[:limit]


def count_by(
    items: Iterable[Mapping],
    label: Callable[[Mapping], Any],
    default: str = UNKNOWN_LABEL
) -> Dict[str, int]:
    """Count items per label; empty labels are grouped under ``default``."""
    counts: Dict[str, int] = {}
    for item in items:
        key = label(item) or default
        counts[key] = counts.get(key, 0) + 1
    return counts


def group_orders_by_warehouse(orders: Iterable[Mapping]) -> Dict[str, int]:
    """Count orders per warehouse name."""
    return count_by(orders, lambda order: order.get("warehouseName"))


def group_orders_by_region(orders: Iterable[Mapping]) -> Dict[str, int]:
    """Count orders per region name."""
    return count_by(orders, lambda order: order.get("regionName"))


def calculate_percentage_change(current: float, previous: float) -> float:
    """Percentage change from ``previous`` to ``current``; 0 when previous is 0."""
    if previous == 0:
        return 0.0
    return ((current - previous) / previous) * 100


def calculate_returns_data(sales: Iterable[Mapping]) -> Dict[str, Any]:
    """Summarize returns among sales, identified by a ``saleID`` starting with R.

    Returns:
        Dictionary with ``count`` and ``amount`` (sum of absolute ``forPay``)
    """
    count = 0
    amount = 0.0
    for sale in sales:
        sale_id = sale.get("saleID") or ""
        if not str(sale_id).startswith("R"):
            continue
        count += 1
        amount += abs(coerce_number(sale.get("forPay")))

    return {"count": count, "amount": amount}


def _as_date(value: DateLike) -> date:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    return datetime.fromisoformat(value).date()


def days_in_period(date_from: DateLike, date_to: DateLike) -> int:
    """Number of calendar days in the period, both ends included."""
    return (_as_date(date_to) - _as_date(date_from)).days + 1


def calculate_average_daily_sales(
    records: Iterable[Any],
    date_from: DateLike,
    date_to: DateLike
) -> Dict[str, DailySales]:
    """Average units sold per day for each product over a period.

    Args:
        records: Raw report lines; only Sale lines with a product id count
        date_from: First day of the period
        date_to: Last day of the period (inclusive)

    Returns:
        Mapping of product id to DailySales
    """
    totals: Dict[str, float] = {}
    names: Dict[str, str] = {}

    for raw in records:
        if not isinstance(raw, Mapping):
            continue
        record = TransactionRecord.model_validate(dict(raw))
        if not record.is_sale or record.nm_id == UNKNOWN_PRODUCT_ID:
            continue
        totals[record.nm_id] = totals.get(record.nm_id, 0.0) + record.quantity
        names.setdefault(record.nm_id, str(raw.get("sa_name") or "Н/Д"))

    days = days_in_period(date_from, date_to)
    return {
        product_id: DailySales(
            average_daily_sales=total / days if days > 0 else 0.0,
            sa_name=names[product_id],
        )
        for product_id, total in totals.items()
    }
