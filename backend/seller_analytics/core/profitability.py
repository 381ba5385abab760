"""Storage cost projection and price recommendations.

All functions are pure: they take a product's cost, price and inventory
profile and return numbers or a ProfitabilityAnalysis.
"""
import math

from ..models.schemas import ProfitabilityAnalysis, RecommendationType

TARGET_MARGIN_PERCENT = 15.0
STORAGE_HORIZON_DAYS = 30
SLOW_SALES_RATE = 0.2
OVERSTOCK_QUANTITY = 10


def round_half_up(value: float) -> int:
    """Round to the nearest integer, halves towards positive infinity."""
    return int(math.floor(value + 0.5))


def average_quantity(quantity: float, daily_sales_rate: float) -> float:
    """Average stock held while selling ``quantity`` units.

    Stock is assumed to deplete linearly to zero, so the average is half
    the starting quantity. Unsold stock stays at its starting level.
    """
    if quantity <= 0:
        return 0.0
    if daily_sales_rate <= 0:
        return float(quantity)
    return quantity / 2


def total_storage_cost(
    quantity: float,
    daily_storage_cost: float,
    daily_sales_rate: float
) -> float:
    """Project the total cost of storing ``quantity`` units until sold.

    Args:
        quantity: Units currently in stock
        daily_storage_cost: Storage cost per unit per day
        daily_sales_rate: Units sold per day

    Returns:
        Projected storage cost

    Formula:
        no sales:   quantity * 30 * daily_storage_cost
        otherwise:  (quantity / 2) * (quantity / daily_sales_rate) * daily_storage_cost
    """
    if quantity <= 0 or daily_storage_cost <= 0:
        return 0.0

    if daily_sales_rate <= 0:
        return quantity * STORAGE_HORIZON_DAYS * daily_storage_cost

    days_to_sell_all = quantity / daily_sales_rate
    return average_quantity(quantity, daily_sales_rate) * days_to_sell_all * daily_storage_cost


def calculate_storage_per_unit(average_storage_cost: float, average_daily_sales: float) -> float:
    """Storage cost carried by each sold unit.

    Spreads a month of storage cost over a month of sales. Without sales
    the daily storage cost itself is used.
    """
    storage_cost_per_month = average_storage_cost * STORAGE_HORIZON_DAYS
    sales_per_month = average_daily_sales * STORAGE_HORIZON_DAYS
    if sales_per_month > 0:
        return storage_cost_per_month / sales_per_month
    return average_storage_cost


def analyze_profitability(
    cost_price: float,
    current_price: float,
    storage_per_unit: float,
    quantity: float,
    daily_sales_rate: float,
    target_margin: float = TARGET_MARGIN_PERCENT,
    slow_sales_rate: float = SLOW_SALES_RATE,
    overstock_quantity: float = OVERSTOCK_QUANTITY
) -> ProfitabilityAnalysis:
    """Recommend a price for a product.

    Margin is profit as a percentage of cost price. The minimum profitable
    price reaches ``target_margin`` after covering per-unit storage.

    Args:
        cost_price: Purchase cost per unit
        current_price: Current selling price
        storage_per_unit: Storage cost attributed to each unit sold
        quantity: Units in stock
        daily_sales_rate: Units sold per day
        target_margin: Target margin in percent
        slow_sales_rate: Daily sales below this count as slow-moving
        overstock_quantity: Stock above this counts as overstocked

    Returns:
        ProfitabilityAnalysis; a neutral result when cost or price is not positive
    """
    if cost_price <= 0 or current_price <= 0:
        return ProfitabilityAnalysis(
            recommended_price=0.0,
            price_change=0.0,
            margin=0.0,
            recommended_action="Enter the cost price and current price to get a recommendation",
            action=RecommendationType.INSUFFICIENT_DATA,
        )

    current_profit = current_price - cost_price - storage_per_unit
    current_margin = (current_profit / cost_price) * 100

    minimum_profitable_price = cost_price * (1 + target_margin / 100) + storage_per_unit
    price_difference = round_half_up(minimum_profitable_price - current_price)
    recommended_price = max(minimum_profitable_price, current_price)

    if price_difference > 0:
        action = RecommendationType.RAISE_PRICE
        text = (
            f"Raise the price by {price_difference} to reach "
            f"a {target_margin:g}% margin"
        )
    elif daily_sales_rate < slow_sales_rate and quantity > overstock_quantity:
        action = RecommendationType.LOWER_PRICE
        headroom = round_half_up(current_price - minimum_profitable_price)
        text = (
            f"Sales are slow and stock is high: consider lowering the price "
            f"by up to {headroom} to speed up turnover and cut storage costs"
        )
    elif current_margin >= target_margin:
        action = RecommendationType.KEEP_PRICE
        text = "The current price is already profitable enough"
    else:
        action = RecommendationType.NONE
        text = ""

    return ProfitabilityAnalysis(
        recommended_price=recommended_price,
        price_change=float(price_difference),
        margin=current_margin,
        recommended_action=text,
        action=action,
    )
