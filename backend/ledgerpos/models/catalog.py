from __future__ import annotations

from ..extensions import db
from ..services.money import cents_to_number
from ..time_utils import to_utc_z, utcnow


class Product(db.Model):
    """
    Product master data.

    The identifier is assigned externally (barcode/SKU) and never changes.
    Prices are authoritative in cents; stock_quantity is a mutable counter
    that only the inventory service touches, through guarded updates.

    HISTORY: A product referenced by any sale item can only be soft-deleted
    (deleted_at set); sale items keep their own snapshot of name/brand/etc.
    """
    __tablename__ = "products"
    __table_args__ = (
        db.CheckConstraint("stock_quantity >= 0", name="ck_products_stock_non_negative"),
        db.Index("ix_products_name", "name"),
        db.Index("ix_products_active", "deleted_at"),
    )

    id = db.Column(db.String(64), primary_key=True)
    name = db.Column(db.String(255), nullable=False)
    brand = db.Column(db.String(128), nullable=True)
    category = db.Column(db.String(128), nullable=True)
    unit = db.Column(db.String(32), nullable=True)

    retail_price_cents = db.Column(db.Integer, nullable=False, default=0)
    wholesale_price_cents = db.Column(db.Integer, nullable=False, default=0)
    cost_price_cents = db.Column(db.Integer, nullable=False, default=0)

    stock_quantity = db.Column(db.Integer, nullable=False, default=0)
    total_sold = db.Column(db.Integer, nullable=False, default=0)

    deleted_at = db.Column(db.DateTime, nullable=True)
    created_at = db.Column(db.DateTime, nullable=False, default=utcnow)
    updated_at = db.Column(db.DateTime, nullable=False, default=utcnow, onupdate=utcnow)

    @property
    def is_deleted(self) -> bool:
        return self.deleted_at is not None

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "brand": self.brand,
            "category": self.category,
            "unit": self.unit,
            "retail_price": cents_to_number(self.retail_price_cents),
            "wholesale_price": cents_to_number(self.wholesale_price_cents),
            "cost_price": cents_to_number(self.cost_price_cents),
            "stock_quantity": self.stock_quantity,
            "total_sold": self.total_sold,
            "deleted_at": to_utc_z(self.deleted_at),
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
