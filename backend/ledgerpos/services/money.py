# Overview: Fixed-point money helpers; all amounts travel as integer cents.

"""
Money invariants (authoritative)

- Currency amounts are stored and computed as integer cents.
- Percentages are stored as integer basis points (1% = 100 bps).
- Conversion from caller input goes through Decimal(str(value)) so that
  float inputs such as 0.1 do not leak binary rounding error.
- Rounding is always half-up to the nearest cent.
"""

from __future__ import annotations

from decimal import Decimal, InvalidOperation, ROUND_HALF_UP

from ..errors import ValidationError


CENT = Decimal("0.01")
HUNDRED = Decimal(100)
BPS_PER_UNIT = Decimal(10_000)

# Maximum amount: 9,999,999,999.99 in any currency
MAX_CENTS = 999_999_999_999


def _to_decimal(value, field: str) -> Decimal:
    if isinstance(value, bool):
        raise ValidationError(f"{field} must be a number")
    if isinstance(value, Decimal):
        dec = value
    elif isinstance(value, (int, float)):
        dec = Decimal(str(value))
    elif isinstance(value, str):
        stripped = value.strip()
        if not stripped:
            raise ValidationError(f"{field} must be a number")
        try:
            dec = Decimal(stripped)
        except InvalidOperation:
            raise ValidationError(f"{field} must be a number")
    else:
        raise ValidationError(f"{field} must be a number")

    if not dec.is_finite():
        raise ValidationError(f"{field} must be a finite number")
    return dec


def to_cents(value, field: str = "amount", *, allow_negative: bool = False) -> int:
    """Convert a caller-supplied currency amount to integer cents."""
    dec = _to_decimal(value, field)
    cents = int((dec * HUNDRED).quantize(Decimal(1), rounding=ROUND_HALF_UP))
    if cents < 0 and not allow_negative:
        raise ValidationError(f"{field} must be >= 0")
    if abs(cents) > MAX_CENTS:
        raise ValidationError(f"{field} is too large")
    return cents


def to_bps(value, field: str = "percentage") -> int:
    """Convert a percentage (e.g. 12.5) to integer basis points (1250)."""
    dec = _to_decimal(value, field)
    bps = int((dec * HUNDRED).quantize(Decimal(1), rounding=ROUND_HALF_UP))
    if bps < 0:
        raise ValidationError(f"{field} must be >= 0")
    return bps


def percent_of(cents: int, bps: int) -> int:
    """cents * bps / 10000, rounded half-up to the cent."""
    exact = Decimal(cents) * Decimal(bps) / BPS_PER_UNIT
    return int(exact.quantize(Decimal(1), rounding=ROUND_HALF_UP))


def divide_cents(cents: int, divisor: int) -> int:
    """Split an amount into `divisor` equal parts, rounded half-up to the cent."""
    if divisor <= 0:
        raise ValueError("divisor must be positive")
    exact = Decimal(cents) / Decimal(divisor)
    return int(exact.quantize(Decimal(1), rounding=ROUND_HALF_UP))


def prorate_cents(cents: int, part: int, whole: int) -> int:
    """Share of `cents` proportional to part / whole, rounded half-up. Zero when whole is zero."""
    if not whole:
        return 0
    exact = Decimal(cents) * Decimal(part) / Decimal(whole)
    return int(exact.quantize(Decimal(1), rounding=ROUND_HALF_UP))


def clamp(value: int, low: int, high: int) -> int:
    return max(low, min(value, high))


def cents_to_decimal(cents: int | None) -> Decimal:
    return (Decimal(cents or 0) / HUNDRED).quantize(CENT)


def cents_to_number(cents: int | None) -> float:
    """JSON rendering: a number with two-decimal semantics."""
    return float(cents_to_decimal(cents))


def bps_to_number(bps: int | None) -> float:
    return float((Decimal(bps or 0) / HUNDRED).quantize(CENT))


def format_money(cents: int | None, currency: str = "PKR") -> str:
    return f"{currency} {cents_to_decimal(cents):,.2f}"
