# Overview: Service-layer operations for inventory; guarded stock counter mutations.

# backend/ledgerpos/services/inventory_service.py

from __future__ import annotations

import logging

from sqlalchemy import select, update

from ..errors import InsufficientStock, ProductNotFound, ValidationError
from ..models import Product

"""
Inventory Invariants (authoritative)

- products.stock_quantity is the only hot shared counter in the system.
- It is never read-modified-written in Python. Every decrement is a single
  conditional UPDATE guarded by `stock_quantity >= qty`, so a concurrent sale
  that would drive stock negative affects zero rows instead of overselling.
- A zero-row result is diagnosed by re-reading the row:
    missing row        -> ProductNotFound
    stock < requested  -> InsufficientStock(available, requested)
    stock >= requested -> the guard raced; the SAME guarded update is
                          re-issued (never an unguarded one)
- total_sold moves with every decrement/increment.
- Increments (restock on void/edit) are unconditional: restocking always
  succeeds.
- Callers own the transaction; nothing here commits.
"""


logger = logging.getLogger(__name__)


DEFAULT_GUARD_ATTEMPTS = 2


class StockLedger:
    def __init__(self, session, *, guard_attempts: int = DEFAULT_GUARD_ATTEMPTS):
        self.session = session
        self.guard_attempts = max(1, guard_attempts)

    def _expire_cached(self, product_id: str) -> None:
        # Core UPDATEs bypass the identity map; drop stale loaded copies.
        for obj in list(self.session.identity_map.values()):
            if isinstance(obj, Product) and obj.id == product_id:
                self.session.expire(obj)

    def _guarded_decrement(self, product_id: str, quantity: int) -> int:
        table = Product.__table__
        stmt = (
            update(table)
            .where(
                table.c.id == product_id,
                table.c.stock_quantity >= quantity,
            )
            .values(
                stock_quantity=table.c.stock_quantity - quantity,
                total_sold=table.c.total_sold + quantity,
            )
        )
        result = self.session.execute(stmt)
        return result.rowcount

    def current_stock(self, product_id: str) -> int | None:
        return self.session.execute(
            select(Product.__table__.c.stock_quantity).where(Product.__table__.c.id == product_id)
        ).scalar_one_or_none()

    def decrement_stock(self, product_id: str, quantity: int) -> None:
        if quantity <= 0:
            raise ValidationError("quantity must be > 0")

        available = None
        for attempt in range(self.guard_attempts):
            if self._guarded_decrement(product_id, quantity):
                self._expire_cached(product_id)
                return

            available = self.current_stock(product_id)
            if available is None:
                raise ProductNotFound(product_id)
            if available < quantity:
                raise InsufficientStock(
                    product_id=product_id,
                    available=available,
                    requested=quantity,
                )
            logger.info(
                "Stock guard raced for product %s (attempt %s, available=%s, requested=%s)",
                product_id, attempt + 1, available, quantity,
            )

        raise InsufficientStock(
            product_id=product_id,
            available=available if available is not None else 0,
            requested=quantity,
        )

    def increment_stock(self, product_id: str, quantity: int) -> None:
        if quantity <= 0:
            raise ValidationError("quantity must be > 0")

        table = Product.__table__
        stmt = (
            update(table)
            .where(table.c.id == product_id)
            .values(
                stock_quantity=table.c.stock_quantity + quantity,
                total_sold=table.c.total_sold - quantity,
            )
        )
        result = self.session.execute(stmt)
        if not result.rowcount:
            raise ProductNotFound(product_id)

        # total_sold is floored at zero for rows that predate the counter
        self.session.execute(
            update(table)
            .where(table.c.id == product_id, table.c.total_sold < 0)
            .values(total_sold=0)
        )
        self._expire_cached(product_id)
