# Overview: Service-layer operations for supplier purchases; balance-adjusting create/update/delete.

"""
Purchase Service

A purchase is a debit on the supplier ledger (it increases what we owe).

BALANCE DISCIPLINE:
- create:  supplier.balance += total_cost
- update:  supplier.balance += (new_total - old_total)
- delete:  supplier.balance -= total_cost, then remove

Same transaction and reconcile-on-write rules as payments.
"""

from __future__ import annotations

import logging

from sqlalchemy import select

from ..errors import EntityNotFound, ValidationError
from ..models import Purchase, Supplier
from ..validation import business_date, optional_int, positive_amount
from .balance_service import BalanceReconciler, ORDER_DEBITS_FIRST
from .concurrency import TransactionManager


logger = logging.getLogger(__name__)


TEXT_FIELDS = ("description", "supplier_invoice_id", "delivery_method")


class PurchaseService:
    def __init__(self, session, *, reconcile_on_write: bool = True, same_date_order: str = ORDER_DEBITS_FIRST):
        self.session = session
        self.reconcile_on_write = reconcile_on_write
        self.tx = TransactionManager(session)
        self.reconciler = BalanceReconciler(session, same_date_order=same_date_order)

    @classmethod
    def from_config(cls, session, config) -> "PurchaseService":
        return cls(
            session,
            reconcile_on_write=config["RECONCILE_ON_WRITE"],
            same_date_order=config["LEDGER_SAME_DATE_ORDER"],
        )

    def _adjust_balance(self, supplier_id: int, delta_cents: int) -> None:
        if not delta_cents:
            return
        supplier = self.session.get(Supplier, supplier_id)
        if supplier is None:
            return
        supplier.balance_cents = Supplier.balance_cents + delta_cents
        self.session.flush()

    def _reconcile(self, supplier_id: int) -> None:
        if self.reconcile_on_write:
            self.reconciler.reconcile_supplier(supplier_id)

    def get_purchase(self, purchase_id: int) -> Purchase:
        purchase = self.session.get(Purchase, purchase_id)
        if purchase is None:
            raise EntityNotFound("purchase", purchase_id)
        return purchase

    def list_purchases(self, *, supplier_id: int | None = None) -> list[Purchase]:
        query = select(Purchase)
        if supplier_id is not None:
            query = query.where(Purchase.supplier_id == supplier_id)
        return self.session.execute(query.order_by(Purchase.date.desc(), Purchase.id.desc())).scalars().all()

    def create_purchase(self, data: dict) -> Purchase:
        supplier_id = optional_int(data.get("supplier_id"), "supplier_id")
        if supplier_id is None:
            raise ValidationError("supplier_id is required")
        total = positive_amount(data.get("total_cost"), "total_cost")
        date = business_date(data.get("date") or data.get("purchase_date"))

        with self.tx.atomic() as session:
            if session.get(Supplier, supplier_id) is None:
                raise EntityNotFound("supplier", supplier_id)

            purchase = Purchase(
                supplier_id=supplier_id,
                total_cost_cents=total,
                date=date,
                **{f: (data.get(f) or None) for f in TEXT_FIELDS},
            )
            session.add(purchase)
            session.flush()

            self._adjust_balance(supplier_id, total)
            self._reconcile(supplier_id)

        logger.info("Purchase %s recorded: supplier=%s total=%s", purchase.id, supplier_id, total)
        return purchase

    def update_purchase(self, purchase_id: int, data: dict) -> Purchase:
        with self.tx.atomic():
            purchase = self.get_purchase(purchase_id)
            if "supplier_id" in data and optional_int(data.get("supplier_id"), "supplier_id") != purchase.supplier_id:
                raise ValidationError("A purchase cannot be moved to another supplier")

            old_total = purchase.total_cost_cents
            if "total_cost" in data:
                purchase.total_cost_cents = positive_amount(data.get("total_cost"), "total_cost")
            for f in TEXT_FIELDS:
                if f in data:
                    setattr(purchase, f, data.get(f) or None)
            if "date" in data or "purchase_date" in data:
                purchase.date = business_date(data.get("date") or data.get("purchase_date"))
            self.session.flush()

            self._adjust_balance(purchase.supplier_id, purchase.total_cost_cents - old_total)
            self._reconcile(purchase.supplier_id)

        return purchase

    def delete_purchase(self, purchase_id: int) -> None:
        with self.tx.atomic() as session:
            purchase = self.get_purchase(purchase_id)
            supplier_id = purchase.supplier_id
            self._adjust_balance(supplier_id, -purchase.total_cost_cents)

            session.delete(purchase)
            session.flush()
            self._reconcile(supplier_id)

        logger.info("Purchase %s deleted", purchase_id)
