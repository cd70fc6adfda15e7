"""
Cost Percentage Service - labor and cost-of-goods ratios of a sell price.

Given a price and the externally computed per-gram cost breakdown of an item:

    labor% = labor_cost_per_gram / price_per_gram * 100
    cog%   = food_cost_per_gram / price_per_gram * 100
    lcog%  = (labor + food) / price_per_gram * 100

Prices are dollars per kilogram unless the caller prices per each and the
item yields by count with a known per-unit weight. The three ratios are
independent and need not sum to anything in particular.
"""

from typing import Mapping, Optional

from prepcost.models.enums import PricingBasis
from prepcost.services.dto import CostBreakdown, CostPercentages, ItemState
from prepcost.utils.constants import GRAMS_PER_KILOGRAM


def price_per_gram(
    price: float,
    item: Optional[ItemState],
    pricing_basis: PricingBasis = PricingBasis.PER_KG,
) -> float:
    """
    Convert a sell price to dollars per gram.

    Args:
        price: Positive price
        item: Item the price belongs to
        pricing_basis: PER_KG (default) or PER_EACH

    Returns:
        Dollars per gram
    """
    if (
        PricingBasis(pricing_basis) == PricingBasis.PER_EACH
        and item is not None
        and item.has_count_yield
        and item.each_grams
        and item.each_grams > 0
    ):
        return price / item.each_grams
    return price / GRAMS_PER_KILOGRAM


def calculate_percentages(
    price: Optional[float],
    breakdown: Optional[CostBreakdown],
    item: Optional[ItemState] = None,
    pricing_basis: PricingBasis = PricingBasis.PER_KG,
) -> CostPercentages:
    """
    Derive labor%, cog% and lcog% of a price.

    Args:
        price: Sell price (wholesale or retail)
        breakdown: Per-gram cost split for the item, or None if unavailable
        item: Item being priced (needed for per-each pricing)
        pricing_basis: How the price is quoted

    Returns:
        CostPercentages; every value is None when price is missing or not
        positive, or no breakdown exists

    Example:
        >>> calculate_percentages(10, CostBreakdown(0.002, 0.003))
        CostPercentages(labor=20.0, cog=30.0, lcog=50.0)
    """
    if price is None or price <= 0 or breakdown is None:
        return CostPercentages()

    per_gram = price_per_gram(price, item, pricing_basis)
    labor = breakdown.labor_cost_per_gram
    food = breakdown.food_cost_per_gram

    return CostPercentages(
        labor=labor / per_gram * 100,
        cog=food / per_gram * 100,
        lcog=(labor + food) / per_gram * 100,
    )


def item_margins(
    item: ItemState,
    breakdowns: Mapping,
    pricing_basis: PricingBasis = PricingBasis.PER_KG,
) -> dict:
    """
    Wholesale and retail percentages for one item.

    Args:
        item: Item with optional wholesale/retail prices
        breakdowns: Mapping of item id to CostBreakdown
        pricing_basis: How both prices are quoted

    Returns:
        {"wholesale": CostPercentages, "retail": CostPercentages}
    """
    breakdown = breakdowns.get(item.id) if item.id is not None else None
    return {
        "wholesale": calculate_percentages(item.wholesale, breakdown, item, pricing_basis),
        "retail": calculate_percentages(item.retail, breakdown, item, pricing_basis),
    }


def format_percentage(value: Optional[float], precision: int = 1) -> str:
    """Format a percentage for display; None renders as "-"."""
    if value is None:
        return "-"
    return f"{value:.{precision}f}%"
