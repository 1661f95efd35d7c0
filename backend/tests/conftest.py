"""
Pytest fixtures for ledgerpos backend tests.

Provides an in-memory database, test client, identity headers and entity
factories.
"""

import pytest

from ledgerpos import create_app
from ledgerpos.decorators import Actor
from ledgerpos.extensions import db
from ledgerpos.models import Customer, Product, Supplier
from ledgerpos.services.notification_service import InMemoryPublisher


@pytest.fixture(scope='session')
def publisher():
    return InMemoryPublisher()


@pytest.fixture(scope='session')
def app(publisher):
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        'NOTIFICATION_PUBLISHER': publisher,
        'LOG_LEVEL': 'WARNING',
    })

    with app.app_context():
        db.create_all()
        yield app
        db.drop_all()


@pytest.fixture(scope='function')
def client(app):
    """Create test client."""
    return app.test_client()


@pytest.fixture(scope='function')
def db_session(app, publisher):
    """Create fresh database for each test."""
    with app.app_context():
        # Clear all data but keep schema
        meta = db.metadata
        for table in reversed(meta.sorted_tables):
            db.session.execute(table.delete())
        db.session.commit()
        publisher.clear()

        yield db.session

        # Cleanup after test
        db.session.rollback()


@pytest.fixture
def actor():
    return Actor(id="u-1", username="cashier1", role="cashier")


@pytest.fixture
def headers():
    """Identity headers normally injected by the upstream middleware."""
    return {'X-User-Id': 'u-1', 'X-Username': 'cashier1', 'X-User-Role': 'cashier'}


@pytest.fixture
def make_product(db_session):
    def _make(product_id="P-1", *, name="Rice 5kg", retail=10000, wholesale=9000, stock=10, **extra):
        product = Product(
            id=product_id,
            name=name,
            brand=extra.pop("brand", "Guard"),
            category=extra.pop("category", "Grocery"),
            unit=extra.pop("unit", "bag"),
            retail_price_cents=retail,
            wholesale_price_cents=wholesale,
            cost_price_cents=extra.pop("cost", 8000),
            stock_quantity=stock,
            total_sold=0,
            **extra,
        )
        db_session.add(product)
        db_session.commit()
        return product
    return _make


@pytest.fixture
def make_customer(db_session):
    def _make(name="Ali Traders", *, opening=0, opening_type="debit", customer_type="long-term"):
        customer = Customer(
            name=name,
            type=customer_type,
            opening_balance_cents=opening,
            opening_balance_type=opening_type,
            balance_cents=opening if opening_type == "debit" else -opening,
        )
        db_session.add(customer)
        db_session.commit()
        return customer
    return _make


@pytest.fixture
def make_supplier(db_session):
    def _make(name="Karachi Wholesale", *, opening_signed=0):
        supplier = Supplier(
            name=name,
            opening_balance_cents=opening_signed,
            opening_balance_type="credit" if opening_signed < 0 else "debit",
            balance_cents=opening_signed,
        )
        db_session.add(supplier)
        db_session.commit()
        return supplier
    return _make
