# Overview: Customer-tier price resolution and server-side price validation.

"""
Pricing Resolver

WHY: The till submits the unit price it displayed. A compromised or buggy
client must not be able to sell at an arbitrary price, so every line that
references an existing product is checked against the tier price before any
stock is touched.

TIERS:
- retail (default, also used for walk-in sales): retail_price
- long-term / wholesale: wholesale_price
"""

from __future__ import annotations

import logging

from ..errors import PriceMismatch, ValidationError
from ..models import Product


logger = logging.getLogger(__name__)


CUSTOMER_TYPE_RETAIL = "retail"
CUSTOMER_TYPE_LONG_TERM = "long-term"

WHOLESALE_TIERS = {"long-term", "longterm", "wholesale"}
RETAIL_TIERS = {"retail", "walk-in"}

DEFAULT_TOLERANCE_CENTS = 1


def normalize_customer_type(value: str | None) -> str:
    """Map the accepted spellings onto the two stored tier names."""
    if value is None or (isinstance(value, str) and not value.strip()):
        return CUSTOMER_TYPE_RETAIL
    if not isinstance(value, str):
        raise ValidationError("customer_type must be a string")

    key = value.strip().lower()
    if key in WHOLESALE_TIERS:
        return CUSTOMER_TYPE_LONG_TERM
    if key in RETAIL_TIERS:
        return CUSTOMER_TYPE_RETAIL
    raise ValidationError(
        f"Unknown customer_type: {value}",
        details={"allowed": sorted(RETAIL_TIERS | WHOLESALE_TIERS)},
    )


def is_wholesale_tier(customer_type: str) -> bool:
    return normalize_customer_type(customer_type) == CUSTOMER_TYPE_LONG_TERM


def expected_unit_price_cents(product: Product, customer_type: str) -> int:
    if is_wholesale_tier(customer_type):
        return product.wholesale_price_cents or 0
    return product.retail_price_cents or 0


def validate_submitted_price(
    product: Product,
    customer_type: str,
    submitted_cents: int,
    *,
    tolerance_cents: int = DEFAULT_TOLERANCE_CENTS,
) -> int:
    """
    Return the authoritative tier price, or raise PriceMismatch.

    The tolerance absorbs client-side rounding only; it is not a pricing
    margin.
    """
    expected = expected_unit_price_cents(product, customer_type)
    if abs(submitted_cents - expected) > tolerance_cents:
        tier = "wholesale" if is_wholesale_tier(customer_type) else "retail"
        logger.warning(
            "Price validation failed for product %s: submitted=%s expected=%s customer_type=%s",
            product.id, submitted_cents, expected, customer_type,
        )
        raise PriceMismatch(
            product_id=product.id,
            customer_type=normalize_customer_type(customer_type),
            expected_cents=expected,
            submitted_cents=submitted_cents,
            message=(
                f"Invalid price for product {product.name or product.id}. "
                f"Expected {tier} price: {expected / 100:.2f}, "
                f"but received: {submitted_cents / 100:.2f}"
            ),
        )
    return expected


class PricingResolver:
    """Session-bound resolver used by the sale processor."""

    def __init__(self, session, *, tolerance_cents: int = DEFAULT_TOLERANCE_CENTS):
        self.session = session
        self.tolerance_cents = tolerance_cents

    def check_line(self, product_id: str | None, customer_type: str, submitted_cents: int) -> Product | None:
        """
        Validate one line. Lines without a product id, or whose product row no
        longer exists, pass through unchecked and return None.
        """
        if not product_id:
            return None
        product = self.session.get(Product, product_id)
        if product is None:
            logger.info("Skipping price check for unknown product %s", product_id)
            return None
        validate_submitted_price(
            product,
            customer_type,
            submitted_cents,
            tolerance_cents=self.tolerance_cents,
        )
        return product
