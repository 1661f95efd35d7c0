# Overview: Service-layer operations for customers and suppliers; CRUD with opening-balance handling.

from __future__ import annotations

import logging

from sqlalchemy import exists, or_, select

from ..errors import ConflictError, EntityNotFound
from ..models import Customer, Payment, Purchase, Sale, Supplier
from ..time_utils import utcnow
from .balance_service import (
    BalanceReconciler,
    ORDER_DEBITS_FIRST,
    customer_opening_signed,
    normalize_opening_type,
    presign_supplier_opening,
)
from .concurrency import TransactionManager
from .money import cents_to_number
from .pricing_service import normalize_customer_type


logger = logging.getLogger(__name__)


def _search_filter(term: str, *columns):
    pattern = f"%{term.strip()}%"
    return or_(*(col.ilike(pattern) for col in columns))


class _PartyService:
    model = None
    entity = ""

    def __init__(self, session, *, same_date_order: str = ORDER_DEBITS_FIRST, currency: str = "PKR"):
        self.session = session
        self.tx = TransactionManager(session)
        self.reconciler = BalanceReconciler(session, same_date_order=same_date_order, currency=currency)

    @classmethod
    def from_config(cls, session, config):
        return cls(
            session,
            same_date_order=config["LEDGER_SAME_DATE_ORDER"],
            currency=config["CURRENCY_CODE"],
        )

    def get(self, entity_id: int, *, include_deleted: bool = True):
        row = self.session.get(self.model, entity_id)
        if row is None or (row.deleted_at is not None and not include_deleted):
            raise EntityNotFound(self.entity, entity_id)
        return row

    def _list_query(self, *, search: str | None, include_deleted: bool, search_columns):
        query = select(self.model)
        if not include_deleted:
            query = query.where(self.model.deleted_at.is_(None))
        if search and search.strip():
            query = query.where(_search_filter(search, *search_columns))
        return query.order_by(self.model.name, self.model.id)


class CustomerService(_PartyService):
    """
    Customers carry an UNSIGNED opening balance plus a debit/credit type.
    The signed value is derived on read by customer_opening_signed.
    """
    model = Customer
    entity = "customer"

    def list_customers(self, *, search: str | None = None, include_deleted: bool = False) -> list[Customer]:
        query = self._list_query(
            search=search,
            include_deleted=include_deleted,
            search_columns=(Customer.name, Customer.brand_name, Customer.phone, Customer.email),
        )
        return self.session.execute(query).scalars().all()

    def _apply(self, customer: Customer, patch: dict) -> None:
        for key, value in patch.items():
            if key == "type":
                value = normalize_customer_type(value)
            elif key == "opening_balance_type":
                value = normalize_opening_type(value)
            setattr(customer, key, value)

    def create_customer(self, patch: dict) -> Customer:
        with self.tx.atomic() as session:
            customer = Customer(type="long-term", opening_balance_cents=0)
            self._apply(customer, patch)
            customer.opening_balance_type = normalize_opening_type(customer.opening_balance_type)
            customer.balance_cents = customer_opening_signed(
                customer.opening_balance_cents, customer.opening_balance_type
            )
            session.add(customer)
            session.flush()

        logger.info("Customer %s created", customer.id)
        return customer

    def update_customer(self, customer_id: int, patch: dict) -> Customer:
        with self.tx.atomic():
            customer = self.get(customer_id, include_deleted=False)
            self._apply(customer, patch)
            self.session.flush()
            if "opening_balance_cents" in patch or "opening_balance_type" in patch:
                self.reconciler.reconcile_customer(customer.id)
        return customer

    def delete_customer(self, customer_id: int) -> Customer:
        """Soft delete. Customers with sales on record cannot be removed."""
        with self.tx.atomic() as session:
            customer = self.get(customer_id, include_deleted=False)
            has_sales = session.execute(
                select(exists().where(Sale.customer_id == customer.id))
            ).scalar()
            if has_sales:
                raise ConflictError(
                    "Cannot delete customer with existing sales",
                    details={"customer_id": customer.id},
                )
            customer.deleted_at = utcnow()

        logger.info("Customer %s soft-deleted", customer_id)
        return customer

    def recalculate_balance(self, customer_id: int):
        with self.tx.atomic():
            return self.reconciler.reconcile_customer(customer_id)

    def history(self, customer_id: int):
        """Ledger view; the rebuilt balance is written back to the cache."""
        with self.tx.atomic():
            self.reconciler.reconcile_customer(customer_id)
            return self.reconciler.customer_ledger(customer_id)


class SupplierService(_PartyService):
    """
    Suppliers carry a PRE-SIGNED opening balance; the sign is applied here at
    write time by presign_supplier_opening.
    """
    model = Supplier
    entity = "supplier"

    def list_suppliers(self, *, search: str | None = None, include_deleted: bool = False) -> list[dict]:
        """Each supplier with its closing balance rebuilt and written back to the cache."""
        query = self._list_query(
            search=search,
            include_deleted=include_deleted,
            search_columns=(Supplier.name, Supplier.brand_name, Supplier.contact_info),
        )
        result = []
        with self.tx.atomic() as session:
            for supplier in session.execute(query).scalars().all():
                reconciled = self.reconciler.reconcile_supplier(supplier.id)
                data = supplier.to_dict()
                data["closing_balance"] = cents_to_number(reconciled.balance_cents)
                result.append(data)
        return result

    def _apply(self, supplier: Supplier, patch: dict) -> None:
        opening_touched = "opening_balance_cents" in patch or "opening_balance_type" in patch
        amount = patch.get("opening_balance_cents", abs(supplier.opening_balance_cents or 0))
        opening_type = patch.get("opening_balance_type", supplier.opening_balance_type)

        for key, value in patch.items():
            if key not in ("opening_balance_cents", "opening_balance_type"):
                setattr(supplier, key, value)

        if opening_touched:
            supplier.opening_balance_type = normalize_opening_type(opening_type)
            supplier.opening_balance_cents = presign_supplier_opening(amount or 0, opening_type)

    def create_supplier(self, patch: dict) -> Supplier:
        with self.tx.atomic() as session:
            supplier = Supplier(opening_balance_cents=0)
            self._apply(supplier, patch)
            supplier.opening_balance_type = normalize_opening_type(supplier.opening_balance_type)
            supplier.balance_cents = supplier.opening_balance_cents or 0
            session.add(supplier)
            session.flush()

        logger.info("Supplier %s created", supplier.id)
        return supplier

    def update_supplier(self, supplier_id: int, patch: dict) -> Supplier:
        with self.tx.atomic():
            supplier = self.get(supplier_id, include_deleted=False)
            self._apply(supplier, patch)
            self.session.flush()
            if "opening_balance_cents" in patch or "opening_balance_type" in patch:
                self.reconciler.reconcile_supplier(supplier.id)
        return supplier

    def delete_supplier(self, supplier_id: int) -> Supplier:
        """Soft delete. Suppliers with purchases or payments on record cannot be removed."""
        with self.tx.atomic() as session:
            supplier = self.get(supplier_id, include_deleted=False)
            has_purchases = session.execute(
                select(exists().where(Purchase.supplier_id == supplier.id))
            ).scalar()
            has_payments = session.execute(
                select(exists().where(Payment.supplier_id == supplier.id))
            ).scalar()
            if has_purchases or has_payments:
                raise ConflictError(
                    "Cannot delete supplier with existing purchases or payments",
                    details={"supplier_id": supplier.id},
                )
            supplier.deleted_at = utcnow()

        logger.info("Supplier %s soft-deleted", supplier_id)
        return supplier

    def recalculate_balance(self, supplier_id: int):
        with self.tx.atomic():
            return self.reconciler.reconcile_supplier(supplier_id)

    def history(self, supplier_id: int):
        with self.tx.atomic():
            self.reconciler.reconcile_supplier(supplier_id)
            return self.reconciler.supplier_ledger(supplier_id)
