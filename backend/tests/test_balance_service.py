import pytest

from ledgerpos.errors import EntityNotFound, ValidationError
from ledgerpos.models import Customer, Supplier
from ledgerpos.services.balance_service import (
    ORDER_CREDITS_FIRST,
    ORDER_DEBITS_FIRST,
    BalanceReconciler,
    customer_opening_signed,
    normalize_opening_type,
    presign_supplier_opening,
    supplier_opening_signed,
)
from ledgerpos.services.payment_service import PaymentService
from ledgerpos.services.purchase_service import PurchaseService
from ledgerpos.services.sales_service import SaleTransactionProcessor


def _sell(session, customer, quantity=1, price=90):
    processor = SaleTransactionProcessor(session)
    return processor.create_sale({
        "customer_id": customer.id,
        "items": [{"product_id": "P-1", "quantity": quantity, "price": price}],
    })


# ---------------------------------------------------------------------------
# Sign conventions
# ---------------------------------------------------------------------------

@pytest.mark.parametrize("raw,expected", [
    (None, "debit"), ("debit", "debit"), ("Dr", "debit"),
    ("credit", "credit"), ("CR", "credit"),
])
def test_normalize_opening_type(raw, expected):
    assert normalize_opening_type(raw) == expected


def test_normalize_opening_type_rejects_unknown():
    with pytest.raises(ValidationError):
        normalize_opening_type("sideways")


def test_customer_and_supplier_conventions_are_separate():
    assert customer_opening_signed(1000, "debit") == 1000
    assert customer_opening_signed(1000, "credit") == -1000
    # unsigned storage: a stray sign is ignored and the type decides
    assert customer_opening_signed(-1000, "debit") == 1000

    stored = presign_supplier_opening(1000, "credit")
    assert stored == -1000
    assert supplier_opening_signed(stored) == -1000
    assert supplier_opening_signed(presign_supplier_opening(1000, "debit")) == 1000


def test_reconciler_rejects_unknown_order(db_session):
    with pytest.raises(ValueError):
        BalanceReconciler(db_session, same_date_order="whenever")


# ---------------------------------------------------------------------------
# Customer ledger
# ---------------------------------------------------------------------------

def test_opening_plus_sale_minus_payment(db_session, make_product, make_customer):
    make_product("P-1", retail=60000, wholesale=50000)
    customer = make_customer(opening=100000, opening_type="debit")
    _sell(db_session, customer, price=500)
    PaymentService(db_session).create_payment({"customer_id": customer.id, "amount": 300})

    result = BalanceReconciler(db_session).reconcile_customer(customer.id)
    db_session.commit()

    assert result.balance_cents == 120000
    assert db_session.get(Customer, customer.id).balance_cents == 120000


def test_reconcile_is_idempotent(db_session, make_product, make_customer):
    make_product("P-1")
    customer = make_customer(opening=5000)
    _sell(db_session, customer, quantity=2)
    reconciler = BalanceReconciler(db_session)

    first = reconciler.reconcile_customer(customer.id)
    second = reconciler.reconcile_customer(customer.id)

    assert first.balance_cents == second.balance_cents == 5000 + 18000
    assert second.changed is False


def test_reconcile_corrects_drifted_cache(db_session, make_customer):
    customer = make_customer(opening=2500)
    customer.balance_cents = 999999
    db_session.commit()

    result = BalanceReconciler(db_session).reconcile_customer(customer.id)
    db_session.commit()

    assert result.previous_cents == 999999
    assert result.balance_cents == 2500
    assert result.drift_cents == 2500 - 999999
    assert result.to_dict() == {"entity": "customer", "id": customer.id, "previous_balance": 9999.99, "balance": 25.0}
    db_session.expire_all()
    assert db_session.get(Customer, customer.id).balance_cents == 2500


def test_customer_ledger_entries_and_totals(db_session, make_product, make_customer):
    make_product("P-1", name="Rice 5kg")
    customer = make_customer(opening=1000)
    sale = _sell(db_session, customer, quantity=2)
    PaymentService(db_session).create_payment({"customer_id": customer.id, "amount": 50, "date": "2099-01-01"})

    ledger = BalanceReconciler(db_session).customer_ledger(customer.id)

    opening, sale_entry, payment_entry = ledger.entries
    assert opening.type == "opening_balance"
    assert opening.description == "Opening Balance"
    assert opening.debit_cents == 1000
    assert sale_entry.reference == f"SALE-{sale.id}"
    assert sale_entry.description == f"Sale #{sale.id}: Rice 5kg (2 x PKR 90.00)"
    assert sale_entry.debit_cents == 18000
    assert sale_entry.running_balance_cents == 19000
    assert payment_entry.type == "payment"
    assert payment_entry.description == "Payment received"
    assert payment_entry.credit_cents == 5000
    assert payment_entry.running_balance_cents == 14000

    assert ledger.totals_dict() == {"totalDebits": 190.0, "totalCredits": 50.0, "balance": 140.0}
    body = ledger.to_dict()
    assert body["entity"]["id"] == customer.id
    assert body["ledger"][1]["debit"] == 180.0
    assert body["ledger"][2]["date"] == "2099-01-01T00:00:00Z"


def test_credit_opening_counts_as_credit(db_session, make_customer):
    customer = make_customer(opening=4000, opening_type="credit")

    ledger = BalanceReconciler(db_session).customer_ledger(customer.id)

    assert ledger.entries[0].credit_cents == 4000
    assert ledger.entries[0].running_balance_cents == -4000
    assert ledger.totals_dict() == {"totalDebits": 0.0, "totalCredits": 40.0, "balance": -40.0}


def test_opening_entry_stays_first_even_when_events_predate_it(db_session, make_customer):
    customer = make_customer(opening=1000)
    PaymentService(db_session).create_payment({"customer_id": customer.id, "amount": 1, "date": "2001-01-01"})

    ledger = BalanceReconciler(db_session).customer_ledger(customer.id)

    assert [e.type for e in ledger.entries] == ["opening_balance", "payment"]


def test_voided_sales_are_excluded(db_session, make_product, make_customer):
    make_product("P-1")
    customer = make_customer()
    processor = SaleTransactionProcessor(db_session)
    kept = _sell(db_session, customer)
    voided = _sell(db_session, customer)
    processor.void_sale(voided.id)

    ledger = BalanceReconciler(db_session).customer_ledger(customer.id)

    assert [e.reference for e in ledger.entries[1:]] == [f"SALE-{kept.id}"]
    assert ledger.balance_cents == 9000


@pytest.mark.parametrize("order,expected", [
    (ORDER_DEBITS_FIRST, ["opening_balance", "sale", "payment"]),
    (ORDER_CREDITS_FIRST, ["opening_balance", "payment", "sale"]),
])
def test_same_timestamp_order_is_configurable(db_session, make_product, make_customer, order, expected):
    make_product("P-1")
    customer = make_customer(opening=1000)
    sale = _sell(db_session, customer)
    PaymentService(db_session).create_payment({
        "customer_id": customer.id,
        "amount": 20,
        "date": sale.created_at,
    })

    ledger = BalanceReconciler(db_session, same_date_order=order).customer_ledger(customer.id)

    assert [e.type for e in ledger.entries] == expected
    # Order changes the running column, never the final balance
    assert ledger.balance_cents == 1000 + 9000 - 2000
    assert ledger.entries[-1].running_balance_cents == ledger.balance_cents


def test_missing_customer(db_session):
    with pytest.raises(EntityNotFound):
        BalanceReconciler(db_session).customer_ledger(12345)


# ---------------------------------------------------------------------------
# Supplier ledger
# ---------------------------------------------------------------------------

def test_supplier_ledger_with_credit_opening(db_session, make_supplier):
    supplier = make_supplier(opening_signed=presign_supplier_opening(10000, "credit"))
    PurchaseService(db_session).create_purchase({
        "supplier_id": supplier.id,
        "total_cost": 250,
        "supplier_invoice_id": "INV-77",
        "date": "2024-03-01",
    })
    PaymentService(db_session).create_payment({"supplier_id": supplier.id, "amount": 40, "date": "2024-03-02"})

    ledger = BalanceReconciler(db_session).supplier_ledger(supplier.id)

    assert [e.type for e in ledger.entries] == ["opening_balance", "purchase", "payment"]
    assert ledger.entries[1].reference == "INV-77"
    assert ledger.entries[2].description == "Payment to supplier"
    assert ledger.balance_cents == -10000 + 25000 - 4000
    assert ledger.totals_dict() == {"totalDebits": 250.0, "totalCredits": 140.0, "balance": 110.0}


def test_reconcile_all_rewrites_every_cache(db_session, make_customer, make_supplier):
    customer = make_customer(opening=700)
    supplier = make_supplier(opening_signed=300)
    customer.balance_cents = 1
    supplier.balance_cents = 2
    db_session.commit()

    results = BalanceReconciler(db_session).reconcile_all()
    db_session.commit()

    assert [(r.entity, r.balance_cents) for r in results] == [("customer", 700), ("supplier", 300)]
    assert all(r.changed for r in results)
    db_session.expire_all()
    assert db_session.get(Customer, customer.id).balance_cents == 700
    assert db_session.get(Supplier, supplier.id).balance_cents == 300


def test_reconcile_all_can_skip_a_side(db_session, make_customer, make_supplier):
    make_customer()
    make_supplier()

    results = BalanceReconciler(db_session).reconcile_all(customers=False)

    assert [r.entity for r in results] == ["supplier"]
