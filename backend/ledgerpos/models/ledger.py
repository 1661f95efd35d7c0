from __future__ import annotations

from ..extensions import db
from ..services.money import cents_to_number
from ..time_utils import to_utc_z, utcnow


class Purchase(db.Model):
    """Goods bought from a supplier. A debit: increases what the business owes."""
    __tablename__ = "purchases"
    __table_args__ = (
        db.CheckConstraint("total_cost_cents > 0", name="ck_purchases_total_positive"),
        db.Index("ix_purchases_supplier_date", "supplier_id", "date"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    supplier_id = db.Column(db.Integer, db.ForeignKey("suppliers.id"), nullable=False)
    total_cost_cents = db.Column(db.Integer, nullable=False)
    date = db.Column(db.DateTime, nullable=False, default=utcnow)

    description = db.Column(db.Text, nullable=True)
    supplier_invoice_id = db.Column(db.String(128), nullable=True)
    delivery_method = db.Column(db.String(64), nullable=True)

    created_at = db.Column(db.DateTime, nullable=False, default=utcnow)

    supplier = db.relationship("Supplier", backref=db.backref("purchases", lazy=True))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "supplier_id": self.supplier_id,
            "total_cost": cents_to_number(self.total_cost_cents),
            "date": to_utc_z(self.date),
            "description": self.description,
            "supplier_invoice_id": self.supplier_invoice_id,
            "delivery_method": self.delivery_method,
            "created_at": to_utc_z(self.created_at),
        }


class Payment(db.Model):
    """
    Money moving between the business and exactly one party.

    - customer_id set: payment received from a customer (credit on their ledger)
    - supplier_id set: payment made to a supplier (credit on their ledger)
    """
    __tablename__ = "payments"
    __table_args__ = (
        db.CheckConstraint(
            "(customer_id IS NULL) <> (supplier_id IS NULL)",
            name="ck_payments_exactly_one_party",
        ),
        db.CheckConstraint("amount_cents > 0", name="ck_payments_amount_positive"),
        db.Index("ix_payments_customer_date", "customer_id", "date"),
        db.Index("ix_payments_supplier_date", "supplier_id", "date"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    customer_id = db.Column(db.Integer, db.ForeignKey("customers.id"), nullable=True)
    supplier_id = db.Column(db.Integer, db.ForeignKey("suppliers.id"), nullable=True)

    amount_cents = db.Column(db.Integer, nullable=False)
    payment_method = db.Column(db.String(32), nullable=True)
    description = db.Column(db.String(255), nullable=True)
    date = db.Column(db.DateTime, nullable=False, default=utcnow)

    created_at = db.Column(db.DateTime, nullable=False, default=utcnow)

    customer = db.relationship("Customer", backref=db.backref("payments", lazy=True))
    supplier = db.relationship("Supplier", backref=db.backref("payments", lazy=True))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "customer_id": self.customer_id,
            "supplier_id": self.supplier_id,
            "amount": cents_to_number(self.amount_cents),
            "payment_method": self.payment_method,
            "description": self.description,
            "date": to_utc_z(self.date),
            "created_at": to_utc_z(self.created_at),
        }
