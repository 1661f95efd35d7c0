# backend/ledgerpos/services/products_service.py
"""
Products Service

Product ids are assigned by the caller (barcode/SKU) and never change.

HISTORY: Sale items keep their own snapshot and carry no foreign key, but a
product that any sale item references is still protected: it may only be
soft-deleted. Hard delete is reserved for catalog mistakes that never sold.
"""
from __future__ import annotations

import logging

from sqlalchemy import exists, func, or_, select

from ..errors import ConflictError, ProductNotFound, ValidationError
from ..models import Product, SaleItem
from ..time_utils import utcnow
from .concurrency import TransactionManager

logger = logging.getLogger(__name__)

PRODUCT_MUTABLE_FIELDS = {
    "name", "brand", "category", "unit",
    "retail_price_cents", "wholesale_price_cents", "cost_price_cents",
    "stock_quantity",
}


def apply_product_patch(p: Product, patch: dict) -> None:
    for k, v in patch.items():
        if k not in PRODUCT_MUTABLE_FIELDS:
            continue
        setattr(p, k, v)


class ProductService:
    def __init__(self, session):
        self.session = session
        self.tx = TransactionManager(session)

    def get_product(self, product_id: str, *, include_deleted: bool = True) -> Product:
        product = self.session.get(Product, product_id)
        if product is None or (product.is_deleted and not include_deleted):
            raise ProductNotFound(product_id)
        return product

    def list_products(
        self,
        *,
        search: str | None = None,
        category: str | None = None,
        include_deleted: bool = False,
        page: int | None = None,
        per_page: int | None = None,
    ) -> dict:
        """
        Product listing with optional pagination.

        Returns:
            Dict with 'items', 'count', and pagination metadata if paginated.
        """
        query = select(Product)
        if not include_deleted:
            query = query.where(Product.deleted_at.is_(None))
        if category:
            query = query.where(Product.category == category)
        if search and search.strip():
            pattern = f"%{search.strip()}%"
            query = query.where(or_(
                Product.id.ilike(pattern),
                Product.name.ilike(pattern),
                Product.brand.ilike(pattern),
            ))
        query = query.order_by(Product.name.asc(), Product.id.asc())

        if page is None:
            products = self.session.execute(query).scalars().all()
            return {
                "items": [p.to_dict() for p in products],
                "count": len(products),
            }

        per_page = min(per_page or 20, 100)  # Default 20, max 100
        page = max(page, 1)

        total = self.session.execute(
            select(func.count()).select_from(query.order_by(None).subquery())
        ).scalar_one()
        total_pages = (total + per_page - 1) // per_page if total > 0 else 1

        products = self.session.execute(
            query.offset((page - 1) * per_page).limit(per_page)
        ).scalars().all()

        return {
            "items": [p.to_dict() for p in products],
            "count": len(products),
            "pagination": {
                "page": page,
                "per_page": per_page,
                "total": total,
                "total_pages": total_pages,
                "has_next": page < total_pages,
                "has_prev": page > 1,
            },
        }

    def create_product(self, patch: dict) -> Product:
        product_id = str(patch.get("id") or "").strip()
        if not product_id:
            raise ValidationError("id is required")

        with self.tx.atomic() as session:
            if session.get(Product, product_id) is not None:
                raise ConflictError("Product id already exists", details={"id": product_id})

            p = Product(id=product_id, stock_quantity=0, total_sold=0)
            apply_product_patch(p, patch)
            session.add(p)
            session.flush()

        logger.info("Product %s created", product_id)
        return p

    def update_product(self, product_id: str, patch: dict) -> Product:
        with self.tx.atomic():
            p = self.get_product(product_id, include_deleted=False)
            apply_product_patch(p, patch)
            p.updated_at = utcnow()
        return p

    def soft_delete_product(self, product_id: str) -> Product:
        with self.tx.atomic():
            p = self.get_product(product_id, include_deleted=False)
            p.deleted_at = utcnow()
        logger.info("Product %s soft-deleted", product_id)
        return p

    def restore_product(self, product_id: str) -> Product:
        with self.tx.atomic():
            p = self.get_product(product_id)
            p.deleted_at = None
        return p

    def hard_delete_product(self, product_id: str) -> None:
        with self.tx.atomic() as session:
            p = self.get_product(product_id)
            referenced = session.execute(
                select(exists().where(SaleItem.product_id == product_id))
            ).scalar()
            if referenced:
                raise ConflictError(
                    "Product is referenced by sales and can only be soft-deleted",
                    details={"id": product_id},
                )
            session.delete(p)
        logger.info("Product %s permanently deleted", product_id)
