from __future__ import annotations

from ..extensions import db
from ..services.money import cents_to_number
from ..time_utils import to_utc_z, utcnow


OPENING_DEBIT = "debit"
OPENING_CREDIT = "credit"


class Customer(db.Model):
    """
    Customer master data with an opening balance.

    SIGN CONVENTION: positive balance = customer owes the business (debit),
    negative = business owes the customer (credit).

    opening_balance_cents is stored UNSIGNED; opening_balance_type carries the
    sign and is applied when the ledger is rebuilt.

    balance_cents is a cache. The balance service rewrites it from sales and
    payments; nothing should trust it over a fresh reconciliation.
    """
    __tablename__ = "customers"
    __table_args__ = (
        db.Index("ix_customers_name", "name"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(255), nullable=False)
    brand_name = db.Column(db.String(255), nullable=True)
    phone = db.Column(db.String(32), nullable=True)
    email = db.Column(db.String(255), nullable=True)
    address = db.Column(db.String(512), nullable=True)

    # "retail" or "long-term"; informs the default tier at the till
    type = db.Column(db.String(16), nullable=False, default="long-term")

    opening_balance_cents = db.Column(db.Integer, nullable=False, default=0)
    opening_balance_type = db.Column(db.String(8), nullable=False, default=OPENING_DEBIT)
    balance_cents = db.Column(db.Integer, nullable=False, default=0)
    credit_limit_cents = db.Column(db.Integer, nullable=True)

    deleted_at = db.Column(db.DateTime, nullable=True)
    created_at = db.Column(db.DateTime, nullable=False, default=utcnow)
    updated_at = db.Column(db.DateTime, nullable=False, default=utcnow, onupdate=utcnow)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "brand_name": self.brand_name,
            "phone": self.phone,
            "email": self.email,
            "address": self.address,
            "type": self.type,
            "opening_balance": cents_to_number(self.opening_balance_cents),
            "opening_balance_type": self.opening_balance_type,
            "balance": cents_to_number(self.balance_cents),
            "credit_limit": cents_to_number(self.credit_limit_cents) if self.credit_limit_cents is not None else None,
            "deleted_at": to_utc_z(self.deleted_at),
            "created_at": to_utc_z(self.created_at),
        }


class Supplier(db.Model):
    """
    Supplier master data with an opening balance.

    SIGN CONVENTION: positive balance = business owes the supplier (debit),
    negative = supplier owes the business (credit).

    Unlike customers, opening_balance_cents is stored PRE-SIGNED at write time
    (credit stored as a negative amount); opening_balance_type is kept for
    display only.
    """
    __tablename__ = "suppliers"
    __table_args__ = (
        db.Index("ix_suppliers_name", "name"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(255), nullable=False)
    brand_name = db.Column(db.String(255), nullable=True)
    contact_info = db.Column(db.String(512), nullable=True)

    opening_balance_cents = db.Column(db.Integer, nullable=False, default=0)
    opening_balance_type = db.Column(db.String(8), nullable=False, default=OPENING_DEBIT)
    balance_cents = db.Column(db.Integer, nullable=False, default=0)

    deleted_at = db.Column(db.DateTime, nullable=True)
    created_at = db.Column(db.DateTime, nullable=False, default=utcnow)
    updated_at = db.Column(db.DateTime, nullable=False, default=utcnow, onupdate=utcnow)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "brand_name": self.brand_name,
            "contact_info": self.contact_info,
            "opening_balance": cents_to_number(self.opening_balance_cents),
            "opening_balance_type": self.opening_balance_type,
            "balance": cents_to_number(self.balance_cents),
            "deleted_at": to_utc_z(self.deleted_at),
            "created_at": to_utc_z(self.created_at),
        }
