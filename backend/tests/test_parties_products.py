import pytest

from ledgerpos.errors import ConflictError, EntityNotFound, ProductNotFound, ValidationError
from ledgerpos.models import Customer, Product, Supplier
from ledgerpos.services.party_service import CustomerService, SupplierService
from ledgerpos.services.payment_service import PaymentService
from ledgerpos.services.products_service import ProductService
from ledgerpos.services.purchase_service import PurchaseService
from ledgerpos.services.sales_service import SaleTransactionProcessor


# ---------------------------------------------------------------------------
# Customers
# ---------------------------------------------------------------------------

def test_create_customer_with_credit_opening(db_session):
    customer = CustomerService(db_session).create_customer({
        "name": "Bilal Stores",
        "type": "wholesale",
        "opening_balance_cents": 5000,
        "opening_balance_type": "Cr",
    })

    assert customer.type == "long-term"
    assert customer.opening_balance_cents == 5000
    assert customer.opening_balance_type == "credit"
    assert customer.balance_cents == -5000


def test_changing_opening_rebuilds_balance(db_session, make_product, make_customer):
    make_product("P-1")
    customer = make_customer(opening=1000)
    SaleTransactionProcessor(db_session).create_sale({
        "customer_id": customer.id,
        "items": [{"product_id": "P-1", "quantity": 1, "price": 90}],
    })

    CustomerService(db_session).update_customer(customer.id, {"opening_balance_cents": 3000})

    db_session.expire_all()
    assert db_session.get(Customer, customer.id).balance_cents == 3000 + 9000


def test_customer_with_sales_cannot_be_deleted(db_session, make_product, make_customer):
    make_product("P-1")
    customer = make_customer()
    SaleTransactionProcessor(db_session).create_sale({
        "customer_id": customer.id,
        "items": [{"product_id": "P-1", "quantity": 1, "price": 90}],
    })

    with pytest.raises(ConflictError):
        CustomerService(db_session).delete_customer(customer.id)


def test_customer_soft_delete_hides_from_listing(db_session, make_customer):
    service = CustomerService(db_session)
    keep = make_customer("Ali Traders")
    gone = make_customer("Zafar & Sons")

    service.delete_customer(gone.id)

    assert [c.id for c in service.list_customers()] == [keep.id]
    assert {c.id for c in service.list_customers(include_deleted=True)} == {keep.id, gone.id}
    assert [c.id for c in service.list_customers(search="zafar", include_deleted=True)] == [gone.id]
    with pytest.raises(EntityNotFound):
        service.update_customer(gone.id, {"phone": "0300"})


def test_customer_recalculate_balance(db_session, make_customer):
    customer = make_customer(opening=800)
    customer.balance_cents = 0
    db_session.commit()

    result = CustomerService(db_session).recalculate_balance(customer.id)

    assert result.previous_cents == 0
    assert result.balance_cents == 800


def test_customer_history_writes_back_drifted_balance(db_session, make_customer):
    customer = make_customer(opening=1000)
    customer.balance_cents = 42
    db_session.commit()

    ledger = CustomerService(db_session).history(customer.id)

    assert ledger.balance_cents == 1000
    db_session.expire_all()
    assert db_session.get(Customer, customer.id).balance_cents == 1000


def test_unknown_customer_type_is_rejected(db_session):
    with pytest.raises(ValidationError):
        CustomerService(db_session).create_customer({"name": "X", "type": "vip"})


# ---------------------------------------------------------------------------
# Suppliers
# ---------------------------------------------------------------------------

def test_supplier_opening_is_presigned_on_write(db_session):
    service = SupplierService(db_session)

    supplier = service.create_supplier({
        "name": "Karachi Wholesale",
        "opening_balance_cents": 7000,
        "opening_balance_type": "credit",
    })
    assert supplier.opening_balance_cents == -7000
    assert supplier.balance_cents == -7000

    service.update_supplier(supplier.id, {"opening_balance_type": "debit"})
    db_session.expire_all()
    refreshed = db_session.get(Supplier, supplier.id)
    assert refreshed.opening_balance_cents == 7000
    assert refreshed.balance_cents == 7000


def test_supplier_listing_includes_closing_balance(db_session, make_supplier):
    supplier = make_supplier(opening_signed=1000)
    PurchaseService(db_session).create_purchase({"supplier_id": supplier.id, "total_cost": 5})

    rows = SupplierService(db_session).list_suppliers()

    assert rows[0]["id"] == supplier.id
    assert rows[0]["closing_balance"] == 15.0


def test_supplier_history_and_listing_write_back_drifted_balance(db_session, make_supplier):
    first = make_supplier("Karachi Wholesale", opening_signed=500)
    second = make_supplier("Lahore Mills", opening_signed=-300)
    first.balance_cents = 42
    second.balance_cents = 42
    db_session.commit()
    service = SupplierService(db_session)

    assert service.history(first.id).balance_cents == 500
    db_session.expire_all()
    assert db_session.get(Supplier, first.id).balance_cents == 500
    assert db_session.get(Supplier, second.id).balance_cents == 42

    rows = service.list_suppliers()

    assert [r["closing_balance"] for r in rows] == [5.0, -3.0]
    db_session.expire_all()
    assert db_session.get(Supplier, second.id).balance_cents == -300


@pytest.mark.parametrize("activity", ["purchase", "payment"])
def test_supplier_with_activity_cannot_be_deleted(db_session, make_supplier, activity):
    supplier = make_supplier()
    if activity == "purchase":
        PurchaseService(db_session).create_purchase({"supplier_id": supplier.id, "total_cost": 5})
    else:
        PaymentService(db_session).create_payment({"supplier_id": supplier.id, "amount": 5})

    with pytest.raises(ConflictError):
        SupplierService(db_session).delete_supplier(supplier.id)


def test_idle_supplier_is_soft_deleted(db_session, make_supplier):
    supplier = make_supplier()

    SupplierService(db_session).delete_supplier(supplier.id)

    db_session.expire_all()
    assert db_session.get(Supplier, supplier.id).deleted_at is not None


# ---------------------------------------------------------------------------
# Products
# ---------------------------------------------------------------------------

def test_create_product_requires_unique_id(db_session):
    service = ProductService(db_session)
    service.create_product({"id": "8901234", "name": "Tea 250g", "retail_price_cents": 55000})

    with pytest.raises(ConflictError):
        service.create_product({"id": "8901234", "name": "Tea again"})
    with pytest.raises(ValidationError):
        service.create_product({"name": "No id"})


def test_product_update_ignores_counters_it_does_not_own(db_session, make_product):
    make_product("P-1", stock=4)

    ProductService(db_session).update_product("P-1", {"name": "Rice 10kg", "total_sold": 999})

    db_session.expire_all()
    product = db_session.get(Product, "P-1")
    assert product.name == "Rice 10kg"
    assert product.total_sold == 0


def test_sold_product_can_only_be_soft_deleted(db_session, make_product):
    make_product("P-1")
    SaleTransactionProcessor(db_session).create_sale({
        "items": [{"product_id": "P-1", "quantity": 1, "price": 100}],
    })
    service = ProductService(db_session)

    with pytest.raises(ConflictError):
        service.hard_delete_product("P-1")

    service.soft_delete_product("P-1")
    assert service.list_products()["count"] == 0
    assert service.list_products(include_deleted=True)["count"] == 1

    service.restore_product("P-1")
    assert service.list_products()["count"] == 1


def test_unsold_product_can_be_hard_deleted(db_session, make_product):
    make_product("P-1")
    service = ProductService(db_session)

    service.hard_delete_product("P-1")

    with pytest.raises(ProductNotFound):
        service.get_product("P-1")


def test_list_products_paginates(db_session, make_product):
    for n in range(5):
        make_product(f"P-{n}", name=f"Item {n}")

    page = ProductService(db_session).list_products(page=2, per_page=2)

    assert [p["id"] for p in page["items"]] == ["P-2", "P-3"]
    assert page["pagination"]["total"] == 5
    assert page["pagination"]["total_pages"] == 3
    assert page["pagination"]["has_next"] is True
    assert page["pagination"]["has_prev"] is True
