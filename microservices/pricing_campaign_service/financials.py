"""
Financial Aggregator

Revenue, profit, and average markup over a product set, for any price
selector. Pure functions; no I/O.

Formulas:
    revenue    = sum(price * quantity)
    profit     = sum((price - cost_price) * quantity)
    avg_markup = mean(price / cost_price) over products with cost_price > 0

Zero-cost products count toward revenue and profit but are left out of the
markup average.
"""

from decimal import ROUND_HALF_UP, Decimal
from typing import Callable, Iterable

from .models import FinancialSummary, Product

CENT = Decimal("0.01")
MARKUP_PRECISION = Decimal("0.0001")
ZERO = Decimal("0")

PriceSelector = Callable[[Product], Decimal]


def round_money(value: Decimal) -> Decimal:
    """Round to cents, half away from zero"""
    return Decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)


def round_markup(value: Decimal) -> Decimal:
    return Decimal(value).quantize(MARKUP_PRECISION, rounding=ROUND_HALF_UP)


def current_price(product: Product) -> Decimal:
    """Price selector for the persisted sale price"""
    return product.sale_price


def summarize(products: Iterable[Product], price_of: PriceSelector = current_price) -> FinancialSummary:
    """
    Aggregate a product set under the given price selector.

    Args:
        products: Products to aggregate
        price_of: Returns the price to use for a product

    Returns:
        FinancialSummary with revenue and profit in cents and the
        average markup to four decimal places
    """
    revenue = ZERO
    profit = ZERO
    markup_total = ZERO
    costed = 0

    for product in products:
        price = price_of(product)
        revenue += price * product.quantity
        profit += (price - product.cost_price) * product.quantity
        if product.cost_price > 0:
            markup_total += price / product.cost_price
            costed += 1

    avg_markup = markup_total / costed if costed else ZERO

    return FinancialSummary(
        revenue=round_money(revenue),
        profit=round_money(profit),
        avg_markup=round_markup(avg_markup),
    )


__all__ = [
    "CENT",
    "PriceSelector",
    "round_money",
    "round_markup",
    "current_price",
    "summarize",
]
