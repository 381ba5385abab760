"""Pydantic models for transaction records, aggregates and recommendations."""
import math
from enum import Enum
from typing import Any, Dict, Optional

from pydantic import BaseModel, Field, field_validator


# === Enums ===

class CacheKind(str, Enum):
    """Kinds of upstream data held in the cache, each with its own TTL."""
    WAREHOUSE_REMAINS = "warehouse-remains"
    ORDERS = "orders"
    SALES = "sales"
    COEFFICIENTS = "coefficients"
    PAID_STORAGE = "paid-storage"


class DocType(str, Enum):
    """Document type of a report line item."""
    SALE = "Продажа"
    RETURN = "Возврат"


class RecommendationType(str, Enum):
    """Machine-readable form of a pricing recommendation."""
    RAISE_PRICE = "raise_price"
    LOWER_PRICE = "lower_price"
    KEEP_PRICE = "keep_price"
    NONE = "none"
    INSUFFICIENT_DATA = "insufficient_data"


# === Cache ===

class CacheEntry(BaseModel):
    """A cached payload with its write time (epoch milliseconds)."""
    data: Any = None
    timestamp: int
    store_id: str = Field(alias="storeId")

    class Config:
        populate_by_name = True


# === Report records ===

NUMERIC_FIELDS = (
    "retail_price",
    "quantity",
    "retail_amount",
    "ppvz_for_pay",
    "delivery_rub",
    "ppvz_sales_commission",
    "penalty",
    "storage_fee",
    "additional_payment",
    "acquiring_fee",
    "deduction",
    "acceptance",
    "commission_percent",
)

UNKNOWN_PRODUCT_ID = "unknown"


def coerce_number(value: Any) -> float:
    """Convert a raw report value to float, defaulting to 0.0.

    Missing, non-numeric and non-finite values all become 0.0.
    """
    if value is None or isinstance(value, bool):
        return 0.0
    try:
        number = float(value)
    except (TypeError, ValueError):
        return 0.0
    if not math.isfinite(number):
        return 0.0
    return number


class TransactionRecord(BaseModel):
    """One line of the seller's detailed sales report.

    Field names follow the upstream report (``reportDetailByPeriod``).
    """
    doc_type_name: str = ""
    retail_price: float = 0.0
    quantity: float = 0.0
    retail_amount: float = 0.0
    ppvz_for_pay: float = 0.0
    delivery_rub: float = 0.0
    ppvz_sales_commission: float = 0.0
    penalty: float = 0.0
    storage_fee: float = 0.0
    additional_payment: float = 0.0
    acquiring_fee: float = 0.0
    deduction: float = 0.0
    acceptance: float = 0.0
    commission_percent: float = 0.0
    nm_id: str = UNKNOWN_PRODUCT_ID
    subject_name: str = ""

    class Config:
        frozen = True
        extra = "ignore"

    @field_validator(*NUMERIC_FIELDS, mode="before")
    @classmethod
    def _default_numbers(cls, value: Any) -> float:
        return coerce_number(value)

    @field_validator("doc_type_name", "subject_name", mode="before")
    @classmethod
    def _default_text(cls, value: Any) -> str:
        return "" if value is None else str(value)

    @field_validator("nm_id", mode="before")
    @classmethod
    def _product_id(cls, value: Any) -> str:
        if value is None or value == "":
            return UNKNOWN_PRODUCT_ID
        return str(value)

    @property
    def is_sale(self) -> bool:
        return self.doc_type_name == DocType.SALE.value

    @property
    def is_return(self) -> bool:
        return self.doc_type_name == DocType.RETURN.value

    @property
    def expense_total(self) -> float:
        """Sum of the per-line expense components charged to the seller."""
        return (
            self.delivery_rub
            + self.storage_fee
            + self.penalty
            + self.additional_payment
            + self.deduction
            + self.acceptance
        )


# === Aggregates ===

class ProductAggregate(BaseModel):
    """Financial totals for one product."""
    product_id: str
    product_name: str = ""
    quantity_sold: float = 0.0
    sales_amount: float = 0.0
    orders_count: int = 0
    returns_count: int = 0
    total_expenses: float = 0.0
    net_payout: float = 0.0
    profit: float = 0.0
    profitability: float = 0.0
    average_price: float = 0.0
    return_rate: float = 0.0


class GeneralAnalytics(BaseModel):
    """Store-wide sales summary."""
    total_sales_volume: float = 0.0
    total_orders_count: int = 0
    total_returns_count: int = 0
    return_rate: float = 0.0


class ReturnsSummary(BaseModel):
    """Returns view of a product aggregate."""
    product_name: str
    orders_count: int
    returns_count: int
    return_rate: float


class ProfitSummary(BaseModel):
    """Profit view of a product aggregate."""
    product_name: str
    profit: float


class AnalyticsResult(BaseModel):
    """Output of one aggregation pass over a report."""
    general: GeneralAnalytics
    per_product: Dict[str, ProductAggregate] = Field(default_factory=dict)
    returns_analysis: Dict[str, ReturnsSummary] = Field(default_factory=dict)
    profitability_analysis: Dict[str, ProfitSummary] = Field(default_factory=dict)


# === Pricing ===

class ProfitabilityAnalysis(BaseModel):
    """Price recommendation for a product."""
    recommended_price: float = 0.0
    price_change: float = 0.0
    margin: float = 0.0
    recommended_action: str = ""
    action: RecommendationType = RecommendationType.NONE


class ProductProfile(BaseModel):
    """Cost, price and inventory inputs for the optimizer."""
    cost_price: float = 0.0
    current_price: Optional[float] = None
    storage_per_unit: float = 0.0
    quantity: float = 0.0
    daily_sales_rate: float = 0.0
    daily_storage_cost: float = 0.0


class StoreReport(BaseModel):
    """Aggregates and recommendations for one store."""
    store_id: str
    analytics: AnalyticsResult
    recommendations: Dict[str, ProfitabilityAnalysis] = Field(default_factory=dict)
    storage_costs: Dict[str, float] = Field(default_factory=dict)
