# Overview: Rebuilds customer and supplier ledgers from source rows and heals cached balances.

"""
Balance Ledger Reconciler

SOURCE OF TRUTH:
    balance = signed(opening) + sum(debits) - sum(credits)

Customers:  debits = completed sales,  credits = payments received
Suppliers:  debits = purchases,        credits = payments made

customers.balance_cents and suppliers.balance_cents are caches. Payment and
purchase mutations adjust them incrementally as an optimization; the values
written here always win.

SIGN CONVENTIONS (deliberately two functions, never one with a flag):
- Customer openings are stored unsigned with a debit/credit type;
  customer_opening_signed applies the sign on every read.
- Supplier openings are stored pre-signed; presign_supplier_opening applies
  the sign once at write time and supplier_opening_signed reads it back as-is.

ORDERING:
- The opening entry is always first, whatever its date.
- Remaining events sort by date; events on the same timestamp are ordered by
  LEDGER_SAME_DATE_ORDER (debits_first | credits_first), then by row id.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime

from sqlalchemy import select
from sqlalchemy.orm import selectinload

from ..errors import EntityNotFound, ValidationError
from ..models import Customer, Payment, Purchase, Sale, Supplier
from ..models.parties import OPENING_CREDIT, OPENING_DEBIT
from ..models.sales import SALE_STATUS_VOIDED
from ..time_utils import to_utc_z
from .money import cents_to_number, format_money


logger = logging.getLogger(__name__)


ORDER_DEBITS_FIRST = "debits_first"
ORDER_CREDITS_FIRST = "credits_first"
SAME_DATE_ORDERS = (ORDER_DEBITS_FIRST, ORDER_CREDITS_FIRST)

_OPENING_TYPE_ALIASES = {
    "debit": OPENING_DEBIT,
    "dr": OPENING_DEBIT,
    "credit": OPENING_CREDIT,
    "cr": OPENING_CREDIT,
}


def normalize_opening_type(value) -> str:
    """Accept debit/credit and the bookkeeping shorthands Dr/Cr."""
    if value is None or value == "":
        return OPENING_DEBIT
    if not isinstance(value, str):
        raise ValidationError("opening_balance_type must be a string")
    key = value.strip().lower()
    if key not in _OPENING_TYPE_ALIASES:
        raise ValidationError(
            f"Invalid opening_balance_type: {value}",
            details={"allowed": ["debit", "credit", "Dr", "Cr"]},
        )
    return _OPENING_TYPE_ALIASES[key]


def customer_opening_signed(amount_cents: int, opening_type: str | None) -> int:
    """Customer opening: debit (customer owes us) is positive, credit is negative."""
    amount = abs(amount_cents or 0)
    if normalize_opening_type(opening_type) == OPENING_CREDIT:
        return -amount
    return amount


def presign_supplier_opening(amount_cents: int, opening_type: str | None) -> int:
    """Write-time conversion for suppliers: credit (supplier owes us) is stored negative."""
    amount = abs(amount_cents or 0)
    if normalize_opening_type(opening_type) == OPENING_CREDIT:
        return -amount
    return amount


def supplier_opening_signed(stored_cents: int) -> int:
    """Supplier opening as stored; the sign was applied when it was written."""
    return stored_cents or 0


@dataclass
class LedgerEntry:
    date: datetime | None
    type: str
    reference: str | None
    description: str
    debit_cents: int = 0
    credit_cents: int = 0
    running_balance_cents: int = 0

    def to_dict(self) -> dict:
        return {
            "date": to_utc_z(self.date),
            "type": self.type,
            "reference": self.reference,
            "description": self.description,
            "debit": cents_to_number(self.debit_cents),
            "credit": cents_to_number(self.credit_cents),
            "running_balance": cents_to_number(self.running_balance_cents),
        }


@dataclass
class Ledger:
    entity: dict
    opening_cents: int
    entries: list[LedgerEntry] = field(default_factory=list)
    total_debits_cents: int = 0
    total_credits_cents: int = 0
    balance_cents: int = 0

    def totals_dict(self) -> dict:
        return {
            "totalDebits": cents_to_number(self.total_debits_cents),
            "totalCredits": cents_to_number(self.total_credits_cents),
            "balance": cents_to_number(self.balance_cents),
        }

    def to_dict(self) -> dict:
        return {
            "entity": self.entity,
            "ledger": [e.to_dict() for e in self.entries],
            "totals": self.totals_dict(),
        }


@dataclass(frozen=True)
class ReconcileResult:
    entity: str
    entity_id: int
    previous_cents: int
    balance_cents: int

    @property
    def drift_cents(self) -> int:
        return self.balance_cents - self.previous_cents

    @property
    def changed(self) -> bool:
        return self.drift_cents != 0

    def to_dict(self) -> dict:
        return {
            "entity": self.entity,
            "id": self.entity_id,
            "previous_balance": cents_to_number(self.previous_cents),
            "balance": cents_to_number(self.balance_cents),
        }


@dataclass(frozen=True)
class _Event:
    date: datetime
    is_debit: bool
    source_id: int
    amount_cents: int
    type: str
    reference: str
    description: str


class BalanceReconciler:
    """Session-bound ledger builder. Never commits; callers own the transaction."""

    def __init__(self, session, *, same_date_order: str = ORDER_DEBITS_FIRST, currency: str = "PKR"):
        if same_date_order not in SAME_DATE_ORDERS:
            raise ValueError(f"same_date_order must be one of {SAME_DATE_ORDERS}")
        self.session = session
        self.same_date_order = same_date_order
        self.currency = currency

    # ------------------------------------------------------------------
    # Ordering and folding
    # ------------------------------------------------------------------

    def _sort_key(self, event: _Event):
        if self.same_date_order == ORDER_DEBITS_FIRST:
            rank = 0 if event.is_debit else 1
        else:
            rank = 1 if event.is_debit else 0
        return (event.date, rank, event.source_id)

    def _fold(self, entity: dict, opening_cents: int, opening_date, events: list[_Event]) -> Ledger:
        ledger = Ledger(entity=entity, opening_cents=opening_cents)

        running = opening_cents
        ledger.entries.append(
            LedgerEntry(
                date=opening_date,
                type="opening_balance",
                reference=None,
                description="Opening Balance",
                debit_cents=max(opening_cents, 0),
                credit_cents=max(-opening_cents, 0),
                running_balance_cents=running,
            )
        )
        ledger.total_debits_cents = max(opening_cents, 0)
        ledger.total_credits_cents = max(-opening_cents, 0)

        for event in sorted(events, key=self._sort_key):
            if event.is_debit:
                running += event.amount_cents
                ledger.total_debits_cents += event.amount_cents
            else:
                running -= event.amount_cents
                ledger.total_credits_cents += event.amount_cents
            ledger.entries.append(
                LedgerEntry(
                    date=event.date,
                    type=event.type,
                    reference=event.reference,
                    description=event.description,
                    debit_cents=event.amount_cents if event.is_debit else 0,
                    credit_cents=0 if event.is_debit else event.amount_cents,
                    running_balance_cents=running,
                )
            )

        ledger.balance_cents = running
        return ledger

    # ------------------------------------------------------------------
    # Event loading
    # ------------------------------------------------------------------

    def _describe_sale(self, sale: Sale) -> str:
        if not sale.items:
            return f"Sale #{sale.id}"
        parts = []
        for item in sale.items:
            name = item.product_name or f"Unknown Product - [{item.product_id}]"
            parts.append(f"{name} ({item.quantity} x {format_money(item.final_price_cents, self.currency)})")
        return f"Sale #{sale.id}: " + ", ".join(parts)

    def _customer_events(self, customer_id: int) -> list[_Event]:
        sales = self.session.execute(
            select(Sale)
            .options(selectinload(Sale.items))
            .where(Sale.customer_id == customer_id, Sale.status != SALE_STATUS_VOIDED)
        ).scalars().all()
        payments = self.session.execute(
            select(Payment).where(Payment.customer_id == customer_id)
        ).scalars().all()

        events = [
            _Event(
                date=s.created_at,
                is_debit=True,
                source_id=s.id,
                amount_cents=s.total_cents,
                type="sale",
                reference=f"SALE-{s.id}",
                description=self._describe_sale(s),
            )
            for s in sales
        ]
        events.extend(
            _Event(
                date=p.date,
                is_debit=False,
                source_id=p.id,
                amount_cents=p.amount_cents,
                type="payment",
                reference=f"PAY-{p.id}",
                description=p.description or "Payment received",
            )
            for p in payments
        )
        return events

    def _supplier_events(self, supplier_id: int) -> list[_Event]:
        purchases = self.session.execute(
            select(Purchase).where(Purchase.supplier_id == supplier_id)
        ).scalars().all()
        payments = self.session.execute(
            select(Payment).where(Payment.supplier_id == supplier_id)
        ).scalars().all()

        events = [
            _Event(
                date=p.date,
                is_debit=True,
                source_id=p.id,
                amount_cents=p.total_cost_cents,
                type="purchase",
                reference=p.supplier_invoice_id or f"PUR-{p.id}",
                description=p.description or f"Purchase #{p.id}",
            )
            for p in purchases
        ]
        events.extend(
            _Event(
                date=p.date,
                is_debit=False,
                source_id=p.id,
                amount_cents=p.amount_cents,
                type="payment",
                reference=f"PAY-{p.id}",
                description=p.description or "Payment to supplier",
            )
            for p in payments
        )
        return events

    def _get_customer(self, customer_id: int) -> Customer:
        customer = self.session.get(Customer, customer_id)
        if customer is None:
            raise EntityNotFound("customer", customer_id)
        return customer

    def _get_supplier(self, supplier_id: int) -> Supplier:
        supplier = self.session.get(Supplier, supplier_id)
        if supplier is None:
            raise EntityNotFound("supplier", supplier_id)
        return supplier

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def customer_ledger(self, customer_id: int) -> Ledger:
        customer = self._get_customer(customer_id)
        opening = customer_opening_signed(customer.opening_balance_cents, customer.opening_balance_type)
        return self._fold(
            customer.to_dict(),
            opening,
            customer.created_at,
            self._customer_events(customer.id),
        )

    def supplier_ledger(self, supplier_id: int) -> Ledger:
        supplier = self._get_supplier(supplier_id)
        opening = supplier_opening_signed(supplier.opening_balance_cents)
        return self._fold(
            supplier.to_dict(),
            opening,
            supplier.created_at,
            self._supplier_events(supplier.id),
        )

    def reconcile_customer(self, customer_id: int) -> ReconcileResult:
        customer = self._get_customer(customer_id)
        previous = customer.balance_cents or 0
        ledger = self.customer_ledger(customer_id)
        customer.balance_cents = ledger.balance_cents
        if previous != ledger.balance_cents:
            logger.info(
                "Customer %s balance drift corrected: %s -> %s",
                customer_id, previous, ledger.balance_cents,
            )
        return ReconcileResult("customer", customer.id, previous, ledger.balance_cents)

    def reconcile_supplier(self, supplier_id: int) -> ReconcileResult:
        supplier = self._get_supplier(supplier_id)
        previous = supplier.balance_cents or 0
        ledger = self.supplier_ledger(supplier_id)
        supplier.balance_cents = ledger.balance_cents
        if previous != ledger.balance_cents:
            logger.info(
                "Supplier %s balance drift corrected: %s -> %s",
                supplier_id, previous, ledger.balance_cents,
            )
        return ReconcileResult("supplier", supplier.id, previous, ledger.balance_cents)

    def reconcile_all(self, *, customers: bool = True, suppliers: bool = True) -> list[ReconcileResult]:
        """Rewrite every cached balance, soft-deleted parties included."""
        results = []
        if customers:
            ids = self.session.execute(select(Customer.id).order_by(Customer.id)).scalars().all()
            results.extend(self.reconcile_customer(cid) for cid in ids)
        if suppliers:
            ids = self.session.execute(select(Supplier.id).order_by(Supplier.id)).scalars().all()
            results.extend(self.reconcile_supplier(sid) for sid in ids)
        return results
