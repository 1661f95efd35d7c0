from datetime import timedelta

import pytest
from sqlalchemy import func, select

from ledgerpos.errors import ConflictError, EntityNotFound, InsufficientStock, PriceMismatch, ValidationError
from ledgerpos.models import Customer, Product, Sale, SaleItem
from ledgerpos.services.notification_service import InMemoryPublisher, NotificationPublisher
from ledgerpos.services.sales_service import SaleTransactionProcessor
from ledgerpos.time_utils import utcnow


class ExplodingPublisher(NotificationPublisher):
    def publish(self, event, payload):
        raise RuntimeError("broker down")


def _line(product_id="P-1", quantity=1, price=100.0, **extra):
    return {"product_id": product_id, "quantity": quantity, "price": price, **extra}


def _sale_count(session):
    return session.execute(select(func.count(Sale.id))).scalar_one()


@pytest.fixture
def events():
    return InMemoryPublisher()


@pytest.fixture
def processor(db_session, events):
    return SaleTransactionProcessor(db_session, publisher=events)


def test_walk_in_sale_persists_items_and_decrements_stock(db_session, processor, make_product, actor):
    make_product("P-1", stock=10)

    sale = processor.create_sale({"items": [_line(quantity=2)]}, actor=actor)

    assert sale.customer_id is None
    assert sale.customer_type == "retail"
    assert sale.subtotal_cents == 20000
    assert sale.total_cents == 20000
    assert sale.cashier_id == "u-1"
    assert sale.cashier_name == "cashier1"

    db_session.expire_all()
    product = db_session.get(Product, "P-1")
    assert product.stock_quantity == 8
    assert product.total_sold == 2

    item = db_session.execute(select(SaleItem)).scalar_one()
    assert item.product_name == "Rice 5kg"
    assert item.product_brand == "Guard"
    assert item.product_unit == "bag"


def test_sale_amounts_with_item_and_sale_discounts(processor, make_product):
    make_product("P-1", stock=10)

    sale = processor.create_sale({
        "items": [_line(quantity=2, item_discount_type="percentage", item_discount_value=10)],
        "discount_type": "amount",
        "discount_value": 300,
    })

    item = sale.items[0]
    assert item.final_price_cents == 9000
    assert item.item_discount_cents == 2000
    assert sale.subtotal_cents == 18000
    assert sale.discount_cents == 18000
    assert sale.total_cents == 0



def test_small_amount_discount_is_not_lost_to_unit_rounding(processor, make_product):
    make_product("P-1", retail=100, wholesale=90, stock=10)

    sale = processor.create_sale({
        "items": [_line(quantity=7, price=1.00, item_discount_type="amount", item_discount_value="0.03")],
    })

    item = sale.items[0]
    assert item.item_discount_cents == 3
    assert item.line_total_cents == 697
    assert item.final_price_cents == 100
    assert sale.subtotal_cents == 697
    assert sale.total_cents == 697
    assert item.to_dict()["line_total"] == 6.97

def test_long_term_customer_gets_wholesale_tier(processor, make_product, make_customer):
    make_product("P-1", retail=10000, wholesale=9000)
    customer = make_customer(customer_type="long-term")

    sale = processor.create_sale({"customer_id": customer.id, "items": [_line(price=90)]})

    assert sale.customer_type == "long-term"
    assert sale.total_cents == 9000


def test_retail_price_for_long_term_customer_rolls_back(db_session, processor, make_product, make_customer, events):
    make_product("P-1", stock=5, retail=10000, wholesale=9000)
    customer = make_customer(customer_type="long-term")

    with pytest.raises(PriceMismatch) as exc_info:
        processor.create_sale({"customer_id": customer.id, "items": [_line(quantity=1, price=100)]})

    assert exc_info.value.details["expected_price"] == 90.0
    db_session.expire_all()
    assert _sale_count(db_session) == 0
    assert db_session.get(Product, "P-1").stock_quantity == 5
    assert events.names() == []


def test_insufficient_stock_on_later_line_undoes_earlier_decrements(db_session, processor, make_product):
    make_product("P-1", stock=10)
    make_product("P-2", name="Sugar 1kg", stock=1)

    with pytest.raises(InsufficientStock) as exc_info:
        processor.create_sale({"items": [_line("P-1", quantity=2), _line("P-2", quantity=5)]})

    assert exc_info.value.details == {"product_id": "P-2", "available": 1, "requested": 5}
    db_session.expire_all()
    assert db_session.get(Product, "P-1").stock_quantity == 10
    assert db_session.get(Product, "P-1").total_sold == 0
    assert _sale_count(db_session) == 0


def test_line_for_unknown_product_is_rejected(db_session, processor):
    with pytest.raises(EntityNotFound) as exc_info:
        processor.create_sale({"items": [_line("GHOST", quantity=1)]})

    assert exc_info.value.status_code == 404
    assert _sale_count(db_session) == 0


def test_line_without_product_id_is_recorded_without_stock(db_session, processor):
    sale = processor.create_sale({
        "items": [{"quantity": 1, "price": 25, "product_name": "Delivery charge"}],
    })

    assert sale.total_cents == 2500
    assert sale.items[0].product_id is None
    assert sale.items[0].product_name == "Delivery charge"


@pytest.mark.parametrize("payload", [
    {},
    {"items": []},
    {"items": [{"product_id": "P-1", "quantity": 0, "price": 100}]},
    {"items": [{"product_id": "P-1", "quantity": 1.5, "price": 100}]},
    {"items": [{"product_id": "P-1", "quantity": 10_000_000, "price": 100}]},
    {"items": [{"quantity": 2, "price": 9_999_999_999}]},
    {"items": [{"product_id": "P-1", "quantity": 1}]},
    {"items": [{"product_id": "P-1", "quantity": 1, "price": 100}], "discount_type": "bogo", "discount_value": 1},
    {"items": [{"product_id": "P-1", "quantity": 1, "price": 100}], "customer_type": "vip"},
])
def test_malformed_payloads_are_rejected(db_session, processor, make_product, payload):
    make_product("P-1", stock=10)

    with pytest.raises(ValidationError):
        processor.create_sale(payload)

    db_session.expire_all()
    assert db_session.get(Product, "P-1").stock_quantity == 10


def test_deleted_customer_cannot_buy(db_session, processor, make_product, make_customer):
    make_product("P-1")
    customer = make_customer()
    customer.deleted_at = utcnow()
    db_session.commit()

    with pytest.raises(EntityNotFound):
        processor.create_sale({"customer_id": customer.id, "items": [_line(price=90)]})


def test_sale_created_event_is_published_after_commit(processor, make_product, events):
    make_product("P-1")

    sale = processor.create_sale({"items": [_line(quantity=3)]})

    assert events.names() == ["sale_created"]
    _, payload = events.events[0]
    assert payload == {"sale_id": sale.id, "customer_id": None, "total_amount": 300.0, "item_count": 1}


def test_publisher_failure_does_not_undo_the_sale(db_session, make_product):
    make_product("P-1")
    processor = SaleTransactionProcessor(db_session, publisher=ExplodingPublisher())

    sale = processor.create_sale({"items": [_line()]})

    db_session.expire_all()
    assert db_session.get(Sale, sale.id) is not None
    assert db_session.get(Product, "P-1").stock_quantity == 9


def test_account_sale_refreshes_customer_balance(db_session, processor, make_product, make_customer):
    make_product("P-1", wholesale=9000)
    customer = make_customer(opening=5000)

    processor.create_sale({"customer_id": customer.id, "items": [_line(quantity=2, price=90)]})

    db_session.expire_all()
    assert db_session.get(Customer, customer.id).balance_cents == 5000 + 18000


def test_item_snapshot_survives_catalog_edits(db_session, processor, make_product):
    product = make_product("P-1", name="Rice 5kg", unit="bag")
    sale = processor.create_sale({"items": [_line()]})

    product.name = "Basmati Rice 5kg"
    product.unit = "sack"
    db_session.commit()

    detail = processor.get_sale(sale.id)
    item = detail["items"][0]
    assert item["product_name"] == "Rice 5kg"
    assert item["product_unit"] == "bag"
    assert item["current_product"]["name"] == "Basmati Rice 5kg"
    assert item["name_changed"] is True
    assert item["unit_changed"] is True
    assert item["brand_changed"] is False
    assert item["product_deleted"] is False


def test_caller_supplied_snapshot_fields_win(processor, make_product):
    make_product("P-1", name="Rice 5kg")

    sale = processor.create_sale({"items": [_line(product_name="Rice (promo pack)")]})

    assert sale.items[0].product_name == "Rice (promo pack)"
    assert sale.items[0].product_brand == "Guard"


def test_get_sale_missing(processor):
    with pytest.raises(EntityNotFound):
        processor.get_sale(404)


def test_list_sales_filters(processor, make_product, make_customer):
    make_product("P-1", stock=20)
    customer = make_customer()
    walk_in = processor.create_sale({"items": [_line()]})
    account = processor.create_sale({"customer_id": customer.id, "items": [_line(price=90)]})
    processor.void_sale(walk_in.id)

    assert [s.id for s in processor.list_sales()] == [account.id, walk_in.id]
    assert [s.id for s in processor.list_sales(customer_id=customer.id)] == [account.id]
    assert [s.id for s in processor.list_sales(status="voided")] == [walk_in.id]
    with pytest.raises(ValidationError):
        processor.list_sales(status="refunded")


def test_void_restocks_and_drops_sale_from_ledger(db_session, processor, make_product, make_customer, actor, events):
    make_product("P-1", stock=10, wholesale=9000)
    customer = make_customer(opening=1000)
    sale = processor.create_sale({"customer_id": customer.id, "items": [_line(quantity=4, price=90)]})

    voided = processor.void_sale(sale.id, actor=actor, reason="customer returned goods")

    assert voided.status == "voided"
    assert voided.voided_by_id == "u-1"
    assert voided.void_reason == "customer returned goods"
    db_session.expire_all()
    product = db_session.get(Product, "P-1")
    assert product.stock_quantity == 10
    assert product.total_sold == 0
    assert db_session.get(Customer, customer.id).balance_cents == 1000
    assert events.names() == ["sale_created", "sale_voided"]


def test_void_twice_is_a_conflict(db_session, processor, make_product):
    make_product("P-1")
    sale = processor.create_sale({"items": [_line()]})
    processor.void_sale(sale.id)

    with pytest.raises(ConflictError):
        processor.void_sale(sale.id)

    db_session.expire_all()
    assert db_session.get(Product, "P-1").stock_quantity == 10


def test_sold_products_groups_snapshots_and_respects_date_range(db_session, processor, make_product):
    make_product("P-1", stock=20)
    processor.create_sale({"items": [_line(quantity=2, item_discount_type="amount", item_discount_value=5)]})
    processor.create_sale({"items": [_line(quantity=1), _line(product_id=None, price=12, product_name="Loose bag")]})

    report = processor.sold_products()

    rice, loose = report
    assert rice["product_id"] == "P-1"
    assert rice["total_quantity"] == 3
    assert rice["sale_count"] == 2
    assert rice["item_discounts"] == 5.0
    assert rice["net_revenue"] == 295.0
    assert loose["product_id"] is None
    assert loose["product_name"] == "Loose bag"
    assert loose["product_deleted"] is False
    assert loose["current_stock"] is None

    assert processor.sold_products(start_date=utcnow() + timedelta(days=1)) == []
