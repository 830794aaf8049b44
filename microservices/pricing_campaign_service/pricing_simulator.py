"""
Pricing Simulator

Classifies every product under a proposed store-wide discount and a minimum
markup floor, and projects the financial effect. Nothing here writes; the
same projection feeds both the simulate endpoint and apply.

    raw_candidate = round2(sale_price * (1 - discount_percent / 100))
    floor         = round2(cost_price * min_markup_factor)

A product whose raw candidate clears the floor is affected and takes the
raw candidate. Otherwise it is blocked and keeps its current price.
"""

import logging
from decimal import Decimal
from typing import Dict, Iterable, List

from .financials import round_money, summarize
from .models import PriceClassification, PricedProduct, Product, Projection
from .protocols import InvalidDiscountError, InvalidMarkupFloorError

logger = logging.getLogger(__name__)

HUNDRED = Decimal("100")
ZERO = Decimal("0")


def validate_parameters(discount_percent: Decimal, min_markup_factor: Decimal) -> None:
    """Reject out-of-range campaign parameters before anything is read"""
    discount_percent = Decimal(discount_percent)
    min_markup_factor = Decimal(min_markup_factor)

    if not discount_percent.is_finite() or discount_percent < 0 or discount_percent > HUNDRED:
        raise InvalidDiscountError(discount_percent)
    if not min_markup_factor.is_finite() or min_markup_factor <= 0:
        raise InvalidMarkupFloorError(min_markup_factor)


def floor_price(product: Product, min_markup_factor: Decimal) -> Decimal:
    if product.cost_price == 0:
        return ZERO
    return round_money(product.cost_price * min_markup_factor)


def discounted_price(product: Product, discount_percent: Decimal) -> Decimal:
    return round_money(product.sale_price * (1 - discount_percent / HUNDRED))


def price_product(
    product: Product, discount_percent: Decimal, min_markup_factor: Decimal
) -> PricedProduct:
    """Compute the candidate price of one product"""
    raw_candidate = discounted_price(product, discount_percent)
    floor = floor_price(product, min_markup_factor)

    if raw_candidate >= floor:
        classification = PriceClassification.AFFECTED
        candidate = raw_candidate
    else:
        classification = PriceClassification.BLOCKED
        candidate = product.sale_price

    return PricedProduct(
        product_id=product.product_id,
        current_price=product.sale_price,
        raw_candidate=raw_candidate,
        floor_price=floor,
        candidate_price=candidate,
        classification=classification,
    )


def simulate(
    products: Iterable[Product],
    discount_percent: Decimal,
    min_markup_factor: Decimal,
) -> Projection:
    """
    Project a discount against a product set.

    Args:
        products: The full current catalog
        discount_percent: Discount in [0, 100]
        min_markup_factor: Floor multiplier on cost, > 0

    Returns:
        Projection with counts, current vs projected financials, and the
        candidate price map used by apply

    Raises:
        InvalidDiscountError: discount_percent outside [0, 100]
        InvalidMarkupFloorError: min_markup_factor <= 0
    """
    validate_parameters(discount_percent, min_markup_factor)
    discount_percent = Decimal(discount_percent)
    min_markup_factor = Decimal(min_markup_factor)

    catalog: List[Product] = list(products)
    candidates: Dict[str, Decimal] = {}
    current: Dict[str, Decimal] = {}
    blocked: List[str] = []

    for product in catalog:
        priced = price_product(product, discount_percent, min_markup_factor)
        candidates[product.product_id] = priced.candidate_price
        current[product.product_id] = product.sale_price
        if priced.classification == PriceClassification.BLOCKED:
            blocked.append(product.product_id)

    before = summarize(catalog)
    after = summarize(catalog, lambda p: candidates[p.product_id])

    projection = Projection(
        discount_percent=discount_percent,
        min_markup_factor=min_markup_factor,
        total_products=len(catalog),
        affected_count=len(catalog) - len(blocked),
        blocked_count=len(blocked),
        current_revenue=before.revenue,
        projected_revenue=after.revenue,
        current_profit=before.profit,
        projected_profit=after.profit,
        current_avg_markup=before.avg_markup,
        projected_avg_markup=after.avg_markup,
        revenue_delta=after.revenue - before.revenue,
        profit_delta=after.profit - before.profit,
        loss_warning=after.profit <= 0,
        blocked_product_ids=blocked,
        candidate_prices=candidates,
        current_prices=current,
    )

    logger.debug(
        f"Simulated {discount_percent}% off with floor x{min_markup_factor}: "
        f"{projection.affected_count} affected, {projection.blocked_count} blocked"
    )
    return projection


def price_changes(projection: Projection) -> Dict[str, Decimal]:
    """Products whose candidate differs from the current price"""
    return {
        product_id: candidate
        for product_id, candidate in projection.candidate_prices.items()
        if candidate != projection.current_prices[product_id]
    }


__all__ = [
    "validate_parameters",
    "floor_price",
    "discounted_price",
    "price_product",
    "simulate",
    "price_changes",
]
