# Overview: Item- and sale-level discount arithmetic in integer cents.

"""
Discount chain: gross -> item-discounted subtotal -> sale-discounted total.

ITEM LEVEL
- gross = quantity * original_price
- discount by type: percentage -> gross * value / 100, amount -> value, none -> 0
- discount is clamped to [0, gross]; net = gross - discount
- a caller-supplied final_price that disagrees with net by more than one cent
  wins: discount is re-derived as gross - quantity * final_price
- the line net is stored as-is and subtotal = sum(line net); the unit
  final_price is net / quantity rounded to the cent, for display only

SALE LEVEL
- discount by type over the subtotal, same rules
- total = max(0, subtotal - discount); a discount larger than the subtotal
  yields a free sale, never a negative liability
"""

from __future__ import annotations

from dataclasses import dataclass

from ..errors import ValidationError
from .money import MAX_CENTS, clamp, divide_cents, percent_of, to_bps, to_cents


DISCOUNT_NONE = "none"
DISCOUNT_PERCENTAGE = "percentage"
DISCOUNT_AMOUNT = "amount"

VALID_DISCOUNT_TYPES = [DISCOUNT_NONE, DISCOUNT_PERCENTAGE, DISCOUNT_AMOUNT]

FINAL_PRICE_TOLERANCE_CENTS = 1


@dataclass(frozen=True)
class DiscountSpec:
    """A parsed discount descriptor. value_bps for percentage, value_cents for amount."""
    type: str = DISCOUNT_NONE
    value_bps: int = 0
    value_cents: int = 0

    @classmethod
    def parse(cls, discount_type, value, *, field: str = "discount") -> "DiscountSpec":
        kind = (discount_type or DISCOUNT_NONE)
        if not isinstance(kind, str):
            raise ValidationError(f"{field}_type must be a string")
        kind = kind.strip().lower()
        if kind in ("fixed", "fixed-amount", "fixed_amount"):
            kind = DISCOUNT_AMOUNT
        if kind not in VALID_DISCOUNT_TYPES:
            raise ValidationError(
                f"Invalid {field}_type: {discount_type}",
                details={"allowed": VALID_DISCOUNT_TYPES},
            )

        if kind == DISCOUNT_NONE or value is None:
            return cls(DISCOUNT_NONE)
        if kind == DISCOUNT_PERCENTAGE:
            return cls(kind, value_bps=to_bps(value, f"{field}_value"))
        return cls(kind, value_cents=to_cents(value, f"{field}_value"))

    def amount_on(self, base_cents: int) -> int:
        """Raw (unclamped) discount this descriptor yields on a base amount."""
        if self.type == DISCOUNT_PERCENTAGE:
            return percent_of(base_cents, self.value_bps)
        if self.type == DISCOUNT_AMOUNT:
            return self.value_cents
        return 0


@dataclass(frozen=True)
class ItemAmounts:
    quantity: int
    original_price_cents: int
    final_price_cents: int
    gross_cents: int
    discount_cents: int
    net_cents: int
    discount: DiscountSpec
    recomputed_from_final_price: bool = False


@dataclass(frozen=True)
class SaleAmounts:
    gross_cents: int
    item_discount_cents: int
    subtotal_cents: int
    discount: DiscountSpec
    discount_cents: int
    discount_percentage_bps: int
    total_cents: int


def compute_item(
    quantity: int,
    original_price_cents: int,
    discount: DiscountSpec,
    *,
    final_price_cents: int | None = None,
) -> ItemAmounts:
    if quantity <= 0:
        raise ValidationError("quantity must be > 0")
    if original_price_cents < 0:
        raise ValidationError("price must be >= 0")

    gross = quantity * original_price_cents
    if gross > MAX_CENTS:
        raise ValidationError("line amount is too large", details={"quantity": quantity})
    item_discount = clamp(discount.amount_on(gross), 0, gross)
    net = gross - item_discount
    recomputed = False

    if final_price_cents is not None:
        if final_price_cents < 0 or final_price_cents > original_price_cents:
            raise ValidationError(
                "final_price must be between 0 and the original price",
                details={"original_price_cents": original_price_cents, "final_price_cents": final_price_cents},
            )
        recomputed = abs(quantity * final_price_cents - net) > FINAL_PRICE_TOLERANCE_CENTS
        if recomputed:
            net = quantity * final_price_cents
            item_discount = gross - net

    # Unit price is for display; the line net above is what the customer pays
    unit_final = final_price_cents if recomputed else divide_cents(net, quantity)

    return ItemAmounts(
        quantity=quantity,
        original_price_cents=original_price_cents,
        final_price_cents=unit_final,
        gross_cents=gross,
        discount_cents=item_discount,
        net_cents=net,
        discount=discount,
        recomputed_from_final_price=recomputed,
    )


def compute_sale(items: list[ItemAmounts], discount: DiscountSpec) -> SaleAmounts:
    gross = sum(i.gross_cents for i in items)
    item_discounts = sum(i.discount_cents for i in items)
    subtotal = sum(i.net_cents for i in items)
    if subtotal > MAX_CENTS:
        raise ValidationError("sale amount is too large")

    raw_discount = discount.amount_on(subtotal)
    total = max(0, subtotal - raw_discount)
    # Persisted discount never exceeds the subtotal: total = subtotal - discount
    applied = subtotal - total

    return SaleAmounts(
        gross_cents=gross,
        item_discount_cents=item_discounts,
        subtotal_cents=subtotal,
        discount=discount,
        discount_cents=applied,
        discount_percentage_bps=discount.value_bps if discount.type == DISCOUNT_PERCENTAGE else 0,
        total_cents=total,
    )
