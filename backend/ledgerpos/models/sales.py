from __future__ import annotations

from ..extensions import db
from ..services.money import bps_to_number, cents_to_number
from ..time_utils import to_utc_z, utcnow


SALE_STATUS_COMPLETED = "completed"
SALE_STATUS_VOIDED = "voided"


class Sale(db.Model):
    """
    Sale header.

    INVARIANTS (enforced by the sales service, checked by constraints):
    - subtotal_cents = sum(line_total_cents) over its items
    - total_cents = subtotal_cents - discount_cents >= 0

    customer_id NULL means a walk-in sale. customer_type is fixed at creation
    and decides which price tier was validated.
    """
    __tablename__ = "sales"
    __table_args__ = (
        db.CheckConstraint("total_cents >= 0", name="ck_sales_total_non_negative"),
        db.CheckConstraint("discount_cents <= subtotal_cents", name="ck_sales_discount_within_subtotal"),
        db.Index("ix_sales_customer_created", "customer_id", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    customer_id = db.Column(db.Integer, db.ForeignKey("customers.id"), nullable=True)
    customer_type = db.Column(db.String(16), nullable=False, default="retail")

    subtotal_cents = db.Column(db.Integer, nullable=False, default=0)
    discount_type = db.Column(db.String(16), nullable=False, default="none")
    discount_cents = db.Column(db.Integer, nullable=False, default=0)
    discount_percentage_bps = db.Column(db.Integer, nullable=False, default=0)
    total_cents = db.Column(db.Integer, nullable=False, default=0)

    status = db.Column(db.String(16), nullable=False, default=SALE_STATUS_COMPLETED, index=True)
    created_at = db.Column(db.DateTime, nullable=False, default=utcnow, index=True)

    # Supplied by the identity middleware, trusted as-is
    cashier_id = db.Column(db.String(64), nullable=True)
    cashier_name = db.Column(db.String(128), nullable=True)

    # Void audit trail
    voided_at = db.Column(db.DateTime, nullable=True)
    voided_by_id = db.Column(db.String(64), nullable=True)
    void_reason = db.Column(db.String(255), nullable=True)

    customer = db.relationship("Customer", backref=db.backref("sales", lazy=True))
    items = db.relationship(
        "SaleItem",
        backref="sale",
        lazy=True,
        order_by="SaleItem.id",
        cascade="all, delete-orphan",
    )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "customer_id": self.customer_id,
            "customer_type": self.customer_type,
            "subtotal": cents_to_number(self.subtotal_cents),
            "discount_type": self.discount_type,
            "discount_amount": cents_to_number(self.discount_cents),
            "discount_percentage": bps_to_number(self.discount_percentage_bps),
            "total_amount": cents_to_number(self.total_cents),
            "status": self.status,
            "created_at": to_utc_z(self.created_at),
            "cashier_id": self.cashier_id,
            "cashier_name": self.cashier_name,
            "voided_at": to_utc_z(self.voided_at),
            "voided_by_id": self.voided_by_id,
            "void_reason": self.void_reason,
        }


class SaleItem(db.Model):
    """
    Historical snapshot of one sold line.

    product_id deliberately has no foreign key: the row must outlive the
    catalog entry. Name/brand/category/unit are copied at sale time and never
    follow later product edits.
    """
    __tablename__ = "sale_items"
    __table_args__ = (
        db.CheckConstraint("quantity > 0", name="ck_sale_items_quantity_positive"),
        db.CheckConstraint("final_price_cents <= original_price_cents", name="ck_sale_items_final_le_original"),
        db.CheckConstraint("line_total_cents >= 0", name="ck_sale_items_line_total_non_negative"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    sale_id = db.Column(db.Integer, db.ForeignKey("sales.id"), nullable=False, index=True)
    product_id = db.Column(db.String(64), nullable=True, index=True)

    product_name = db.Column(db.String(255), nullable=True)
    product_brand = db.Column(db.String(128), nullable=True)
    product_category = db.Column(db.String(128), nullable=True)
    product_unit = db.Column(db.String(32), nullable=True)

    quantity = db.Column(db.Integer, nullable=False)
    original_price_cents = db.Column(db.Integer, nullable=False)
    final_price_cents = db.Column(db.Integer, nullable=False)
    # Exact line net; quantity * final_price_cents only when the discount divides evenly
    line_total_cents = db.Column(db.Integer, nullable=False)

    item_discount_type = db.Column(db.String(16), nullable=False, default="none")
    item_discount_bps = db.Column(db.Integer, nullable=False, default=0)
    item_discount_cents = db.Column(db.Integer, nullable=False, default=0)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "sale_id": self.sale_id,
            "product_id": self.product_id,
            "product_name": self.product_name,
            "product_brand": self.product_brand,
            "product_category": self.product_category,
            "product_unit": self.product_unit,
            "quantity": self.quantity,
            "original_price": cents_to_number(self.original_price_cents),
            "final_price": cents_to_number(self.final_price_cents),
            "item_discount_type": self.item_discount_type,
            "item_discount_percentage": bps_to_number(self.item_discount_bps),
            "item_discount_amount": cents_to_number(self.item_discount_cents),
            "line_total": cents_to_number(self.line_total_cents),
        }
