# Overview: Service-layer operations for party payments; balance-adjusting create/update/delete.

"""
Payment Service

A payment references exactly one party:
- customer_id: money received from a customer (reduces what they owe)
- supplier_id: money paid to a supplier (reduces what we owe)

BALANCE DISCIPLINE:
- create:  balance -= amount
- update:  balance -= (new_amount - old_amount)   (delta only)
- delete:  balance += amount                      (reverse, then remove)

Each mutation and its balance adjustment share one transaction. The
incremental step is an optimization; with reconcile-on-write enabled the
party balance is rebuilt from source rows before commit.
"""

from __future__ import annotations

import logging

from sqlalchemy import select

from ..errors import EntityNotFound, ValidationError
from ..models import Customer, Payment, Supplier
from ..validation import business_date, optional_int, positive_amount
from .balance_service import BalanceReconciler, ORDER_DEBITS_FIRST
from .concurrency import TransactionManager


logger = logging.getLogger(__name__)


class PaymentService:
    def __init__(self, session, *, reconcile_on_write: bool = True, same_date_order: str = ORDER_DEBITS_FIRST):
        self.session = session
        self.reconcile_on_write = reconcile_on_write
        self.tx = TransactionManager(session)
        self.reconciler = BalanceReconciler(session, same_date_order=same_date_order)

    @classmethod
    def from_config(cls, session, config) -> "PaymentService":
        return cls(
            session,
            reconcile_on_write=config["RECONCILE_ON_WRITE"],
            same_date_order=config["LEDGER_SAME_DATE_ORDER"],
        )

    def _party(self, payment: Payment):
        if payment.customer_id is not None:
            return self.session.get(Customer, payment.customer_id)
        return self.session.get(Supplier, payment.supplier_id)

    def _adjust_balance(self, payment: Payment, delta_cents: int) -> None:
        """Apply delta to the cached balance as an in-database expression."""
        if not delta_cents:
            return
        party = self._party(payment)
        if party is None:
            return
        model = type(party)
        party.balance_cents = model.balance_cents + delta_cents
        self.session.flush()

    def _reconcile(self, customer_id: int | None, supplier_id: int | None) -> None:
        if not self.reconcile_on_write:
            return
        if customer_id is not None:
            self.reconciler.reconcile_customer(customer_id)
        else:
            self.reconciler.reconcile_supplier(supplier_id)

    def get_payment(self, payment_id: int) -> Payment:
        payment = self.session.get(Payment, payment_id)
        if payment is None:
            raise EntityNotFound("payment", payment_id)
        return payment

    def list_payments(self, *, customer_id: int | None = None, supplier_id: int | None = None) -> list[Payment]:
        query = select(Payment)
        if customer_id is not None:
            query = query.where(Payment.customer_id == customer_id)
        if supplier_id is not None:
            query = query.where(Payment.supplier_id == supplier_id)
        return self.session.execute(query.order_by(Payment.date.desc(), Payment.id.desc())).scalars().all()

    def create_payment(self, data: dict) -> Payment:
        customer_id = optional_int(data.get("customer_id"), "customer_id")
        supplier_id = optional_int(data.get("supplier_id"), "supplier_id")
        if (customer_id is None) == (supplier_id is None):
            raise ValidationError("Exactly one of customer_id or supplier_id is required")

        amount = positive_amount(data.get("amount"))
        date = business_date(data.get("date") or data.get("payment_date"))

        with self.tx.atomic() as session:
            if customer_id is not None and session.get(Customer, customer_id) is None:
                raise EntityNotFound("customer", customer_id)
            if supplier_id is not None and session.get(Supplier, supplier_id) is None:
                raise EntityNotFound("supplier", supplier_id)

            payment = Payment(
                customer_id=customer_id,
                supplier_id=supplier_id,
                amount_cents=amount,
                payment_method=(data.get("payment_method") or None),
                description=(data.get("description") or None),
                date=date,
            )
            session.add(payment)
            session.flush()

            self._adjust_balance(payment, -amount)
            self._reconcile(customer_id, supplier_id)

        logger.info(
            "Payment %s recorded: customer=%s supplier=%s amount=%s",
            payment.id, payment.customer_id, payment.supplier_id, payment.amount_cents,
        )
        return payment

    def update_payment(self, payment_id: int, data: dict) -> Payment:
        with self.tx.atomic():
            payment = self.get_payment(payment_id)
            for field in ("customer_id", "supplier_id"):
                if field in data and optional_int(data.get(field), field) != getattr(payment, field):
                    raise ValidationError("A payment cannot be moved to another party")

            old_amount = payment.amount_cents

            if "amount" in data:
                payment.amount_cents = positive_amount(data.get("amount"))
            if "payment_method" in data:
                payment.payment_method = data.get("payment_method") or None
            if "description" in data:
                payment.description = data.get("description") or None
            if "date" in data:
                payment.date = business_date(data.get("date"))
            self.session.flush()

            self._adjust_balance(payment, -(payment.amount_cents - old_amount))
            self._reconcile(payment.customer_id, payment.supplier_id)

        return payment

    def delete_payment(self, payment_id: int) -> None:
        with self.tx.atomic() as session:
            payment = self.get_payment(payment_id)
            customer_id, supplier_id = payment.customer_id, payment.supplier_id
            self._adjust_balance(payment, payment.amount_cents)

            session.delete(payment)
            session.flush()
            self._reconcile(customer_id, supplier_id)

        logger.info("Payment %s deleted", payment_id)
