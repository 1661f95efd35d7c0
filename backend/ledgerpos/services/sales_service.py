# Overview: Service-layer operations for sales; atomic sale creation, lookup, and void.

"""
Sale Transaction Processor

WHY: A sale touches prices, discounts, stock and (for account customers) the
customer ledger. Either all of it happens or none of it does.

CREATE (single pass, one transaction):
1. Validate the payload (items present, quantities positive integers,
   customer exists and is active, discount types known)
2. Price-check every line against the customer's tier; first mismatch aborts
3. Compute item and sale amounts in integer cents
4. Persist the Sale row
5. Per line: snapshot product name/brand/category/unit, persist the SaleItem,
   decrement stock through the guarded update
6. Commit; any failure rolls everything back
7. Publish sale_created after commit (best effort)

Nothing is retried automatically; callers resubmit.

VOID:
- completed -> voided, every line restocked, voided sales drop out of the
  customer ledger. Customer type is never editable after creation.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime

from sqlalchemy import select
from sqlalchemy.orm import selectinload

from ..errors import ConflictError, EntityNotFound, LedgerPosError, ValidationError
from ..models import Customer, Product, Sale, SaleItem
from ..models.sales import SALE_STATUS_COMPLETED, SALE_STATUS_VOIDED
from ..time_utils import to_utc_z, utcnow
from ..validation import optional_int
from .balance_service import BalanceReconciler, ORDER_DEBITS_FIRST
from .concurrency import TransactionManager
from .discount_service import DiscountSpec, compute_item, compute_sale
from .inventory_service import DEFAULT_GUARD_ATTEMPTS, StockLedger
from .money import cents_to_number, prorate_cents, to_cents
from .notification_service import EVENT_SALE_CREATED, EVENT_SALE_VOIDED, safe_publish
from .pricing_service import DEFAULT_TOLERANCE_CENTS, PricingResolver, normalize_customer_type


logger = logging.getLogger(__name__)


VALID_SALE_STATUSES = [SALE_STATUS_COMPLETED, SALE_STATUS_VOIDED]

MAX_LINE_QUANTITY = 1_000_000


def _parse_quantity(value, index: int) -> int:
    if isinstance(value, bool):
        raise ValidationError(f"items[{index}].quantity must be a positive integer")
    if isinstance(value, str) and value.strip().isdigit():
        value = int(value.strip())
    if isinstance(value, float) and value.is_integer():
        value = int(value)
    if not isinstance(value, int) or value <= 0:
        raise ValidationError(
            f"items[{index}].quantity must be a positive integer",
            details={"index": index, "quantity": value},
        )
    if value > MAX_LINE_QUANTITY:
        raise ValidationError(
            f"items[{index}].quantity is too large",
            details={"index": index, "quantity": value, "max": MAX_LINE_QUANTITY},
        )
    return value


def _optional_text(raw: dict, key: str) -> str | None:
    value = raw.get(key)
    if value is None:
        return None
    value = str(value).strip()
    return value or None


@dataclass(frozen=True)
class SaleLineInput:
    product_id: str | None
    quantity: int
    price_cents: int
    discount: DiscountSpec
    final_price_cents: int | None = None
    product_name: str | None = None
    product_brand: str | None = None
    product_category: str | None = None
    product_unit: str | None = None

    @classmethod
    def from_dict(cls, raw, index: int) -> "SaleLineInput":
        if not isinstance(raw, dict):
            raise ValidationError(f"items[{index}] must be an object")

        price = raw.get("price", raw.get("original_price"))
        if price is None:
            raise ValidationError(f"items[{index}].price is required", details={"index": index})

        final_price = raw.get("final_price")
        return cls(
            product_id=_optional_text(raw, "product_id"),
            quantity=_parse_quantity(raw.get("quantity"), index),
            price_cents=to_cents(price, f"items[{index}].price"),
            discount=DiscountSpec.parse(
                raw.get("item_discount_type"),
                raw.get("item_discount_value"),
                field=f"items[{index}].item_discount",
            ),
            final_price_cents=to_cents(final_price, f"items[{index}].final_price") if final_price is not None else None,
            product_name=_optional_text(raw, "product_name"),
            product_brand=_optional_text(raw, "product_brand"),
            product_category=_optional_text(raw, "product_category"),
            product_unit=_optional_text(raw, "product_unit"),
        )


@dataclass(frozen=True)
class SaleRequest:
    customer_id: int | None
    customer_type: str | None
    items: list[SaleLineInput]
    discount: DiscountSpec

    @classmethod
    def from_dict(cls, payload) -> "SaleRequest":
        if not isinstance(payload, dict):
            raise ValidationError("Request body must be a JSON object")

        items = payload.get("items")
        if not isinstance(items, list) or not items:
            raise ValidationError("Sale must contain at least one item")

        customer_id = optional_int(payload.get("customer_id"), "customer_id")

        customer_type = payload.get("customer_type")
        if customer_type is not None:
            customer_type = normalize_customer_type(customer_type)

        return cls(
            customer_id=customer_id,
            customer_type=customer_type,
            items=[SaleLineInput.from_dict(raw, i) for i, raw in enumerate(items)],
            discount=DiscountSpec.parse(payload.get("discount_type"), payload.get("discount_value")),
        )


class SaleTransactionProcessor:
    def __init__(
        self,
        session,
        *,
        publisher=None,
        tolerance_cents: int = DEFAULT_TOLERANCE_CENTS,
        guard_attempts: int = DEFAULT_GUARD_ATTEMPTS,
        reconcile_on_write: bool = True,
        same_date_order: str = ORDER_DEBITS_FIRST,
        currency: str = "PKR",
    ):
        self.session = session
        self.publisher = publisher
        self.reconcile_on_write = reconcile_on_write
        self.tx = TransactionManager(session)
        self.pricing = PricingResolver(session, tolerance_cents=tolerance_cents)
        self.stock = StockLedger(session, guard_attempts=guard_attempts)
        self.reconciler = BalanceReconciler(session, same_date_order=same_date_order, currency=currency)

    @classmethod
    def from_config(cls, session, config, publisher=None) -> "SaleTransactionProcessor":
        return cls(
            session,
            publisher=publisher,
            tolerance_cents=config["PRICE_TOLERANCE_CENTS"],
            guard_attempts=config["STOCK_GUARD_ATTEMPTS"],
            reconcile_on_write=config["RECONCILE_ON_WRITE"],
            same_date_order=config["LEDGER_SAME_DATE_ORDER"],
            currency=config["CURRENCY_CODE"],
        )

    # ------------------------------------------------------------------
    # Create
    # ------------------------------------------------------------------

    def _load_active_customer(self, customer_id: int | None) -> Customer | None:
        if customer_id is None:
            return None
        customer = self.session.get(Customer, customer_id)
        if customer is None or customer.deleted_at is not None:
            raise EntityNotFound("customer", customer_id)
        return customer

    @staticmethod
    def _snapshot(line: SaleLineInput, product: Product | None) -> dict:
        return {
            "product_name": line.product_name or (product.name if product else None),
            "product_brand": line.product_brand or (product.brand if product else None),
            "product_category": line.product_category or (product.category if product else None),
            "product_unit": line.product_unit or (product.unit if product else None),
        }

    def create_sale(self, payload, actor=None) -> Sale:
        request = SaleRequest.from_dict(payload)

        with self.tx.atomic() as session:
            customer = self._load_active_customer(request.customer_id)
            customer_type = request.customer_type or normalize_customer_type(
                customer.type if customer else None
            )

            products = [
                self.pricing.check_line(line.product_id, customer_type, line.price_cents)
                for line in request.items
            ]

            item_amounts = [
                compute_item(
                    line.quantity,
                    line.price_cents,
                    line.discount,
                    final_price_cents=line.final_price_cents,
                )
                for line in request.items
            ]
            amounts = compute_sale(item_amounts, request.discount)

            sale = Sale(
                customer_id=customer.id if customer else None,
                customer_type=customer_type,
                subtotal_cents=amounts.subtotal_cents,
                discount_type=amounts.discount.type,
                discount_cents=amounts.discount_cents,
                discount_percentage_bps=amounts.discount_percentage_bps,
                total_cents=amounts.total_cents,
                status=SALE_STATUS_COMPLETED,
                created_at=utcnow(),
                cashier_id=getattr(actor, "id", None),
                cashier_name=getattr(actor, "username", None),
            )
            session.add(sale)
            session.flush()

            for line, item, product in zip(request.items, item_amounts, products):
                if item.recomputed_from_final_price:
                    logger.info(
                        "Sale %s line %s: item discount re-derived from final price %s",
                        sale.id, line.product_id, item.final_price_cents,
                    )
                sale.items.append(
                    SaleItem(
                        product_id=line.product_id,
                        quantity=item.quantity,
                        original_price_cents=item.original_price_cents,
                        final_price_cents=item.final_price_cents,
                        line_total_cents=item.net_cents,
                        item_discount_type=item.discount.type,
                        item_discount_bps=item.discount.value_bps,
                        item_discount_cents=item.discount_cents,
                        **self._snapshot(line, product),
                    )
                )
                session.flush()

                if line.product_id:
                    self.stock.decrement_stock(line.product_id, line.quantity)

        logger.info(
            "Sale %s created: customer=%s items=%s total=%s cashier=%s",
            sale.id, sale.customer_id, len(request.items), sale.total_cents, sale.cashier_id,
        )

        if sale.customer_id is not None:
            self._reconcile_after_commit(sale.customer_id)

        safe_publish(self.publisher, EVENT_SALE_CREATED, {
            "sale_id": sale.id,
            "customer_id": sale.customer_id,
            "total_amount": cents_to_number(sale.total_cents),
            "item_count": len(request.items),
        })
        return sale

    def _reconcile_after_commit(self, customer_id: int) -> None:
        # The sale is already committed; a failed cache refresh is healed by
        # the next reconciliation pass.
        if not self.reconcile_on_write:
            return
        try:
            with self.tx.atomic():
                self.reconciler.reconcile_customer(customer_id)
        except LedgerPosError:
            logger.warning("Balance refresh failed for customer %s after sale", customer_id, exc_info=True)

    # ------------------------------------------------------------------
    # Read
    # ------------------------------------------------------------------

    def load_sale(self, sale_id: int) -> Sale:
        sale = self.session.execute(
            select(Sale).options(selectinload(Sale.items)).where(Sale.id == sale_id)
        ).scalar_one_or_none()
        if sale is None:
            raise EntityNotFound("sale", sale_id)
        return sale

    def get_sale(self, sale_id: int) -> dict:
        """Sale with items, each comparing its snapshot to the current catalog row."""
        sale = self.load_sale(sale_id)

        product_ids = {i.product_id for i in sale.items if i.product_id}
        current = {}
        if product_ids:
            rows = self.session.execute(select(Product).where(Product.id.in_(product_ids))).scalars()
            current = {p.id: p for p in rows}

        items = []
        for item in sale.items:
            data = item.to_dict()
            product = current.get(item.product_id) if item.product_id else None
            if product is None:
                data["current_product"] = None
                data["product_deleted"] = bool(item.product_id)
                data["name_changed"] = False
                data["brand_changed"] = False
                data["unit_changed"] = False
            else:
                data["current_product"] = {
                    "name": product.name,
                    "brand": product.brand,
                    "category": product.category,
                    "unit": product.unit,
                }
                data["product_deleted"] = product.is_deleted
                data["name_changed"] = product.name != item.product_name
                data["brand_changed"] = product.brand != item.product_brand
                data["unit_changed"] = product.unit != item.product_unit
            items.append(data)

        result = sale.to_dict()
        result["items"] = items
        return result

    def list_sales(
        self,
        *,
        customer_id: int | None = None,
        start_date: datetime | None = None,
        end_date: datetime | None = None,
        status: str | None = None,
    ) -> list[Sale]:
        """Newest first. end_date is exclusive."""
        query = select(Sale)
        if customer_id is not None:
            query = query.where(Sale.customer_id == customer_id)
        if start_date is not None:
            query = query.where(Sale.created_at >= start_date)
        if end_date is not None:
            query = query.where(Sale.created_at < end_date)
        if status:
            if status not in VALID_SALE_STATUSES:
                raise ValidationError(
                    f"Invalid status: {status}",
                    details={"allowed": VALID_SALE_STATUSES},
                )
            query = query.where(Sale.status == status)
        return self.session.execute(query.order_by(Sale.created_at.desc(), Sale.id.desc())).scalars().all()

    def sold_products(
        self,
        *,
        start_date: datetime | None = None,
        end_date: datetime | None = None,
        product_name: str | None = None,
    ) -> list[dict]:
        """
        Per-product sales report built from SaleItem snapshots, so products
        removed from the catalog still appear. Voided sales are excluded.
        Each sale-level discount is spread over its lines in proportion to
        the line total. Highest quantity first. end_date is exclusive.
        """
        query = (
            select(SaleItem, Sale)
            .join(Sale, SaleItem.sale_id == Sale.id)
            .where(Sale.status == SALE_STATUS_COMPLETED)
        )
        if start_date is not None:
            query = query.where(Sale.created_at >= start_date)
        if end_date is not None:
            query = query.where(Sale.created_at < end_date)
        if product_name and product_name.strip():
            query = query.where(SaleItem.product_name.ilike(f"%{product_name.strip()}%"))
        rows = self.session.execute(query.order_by(Sale.created_at, SaleItem.id)).all()

        groups = {}
        for item, sale in rows:
            # Lines without a product id are grouped by their snapshot name
            key = (item.product_id, None if item.product_id else item.product_name)
            group = groups.get(key)
            if group is None:
                group = groups[key] = {
                    "product_id": item.product_id,
                    "quantity": 0,
                    "sale_ids": set(),
                    "gross": 0,
                    "item_discounts": 0,
                    "sale_discounts": 0,
                    "net": 0,
                    "first_sale_at": sale.created_at,
                }
            sale_share = prorate_cents(sale.discount_cents, item.line_total_cents, sale.subtotal_cents)
            group["quantity"] += item.quantity
            group["sale_ids"].add(sale.id)
            group["gross"] += item.quantity * item.original_price_cents
            group["item_discounts"] += item.item_discount_cents
            group["sale_discounts"] += sale_share
            group["net"] += item.line_total_cents - sale_share
            group["last_sale_at"] = sale.created_at
            # Latest snapshot wins
            group["snapshot"] = item

        product_ids = {g["product_id"] for g in groups.values() if g["product_id"]}
        current = {}
        if product_ids:
            found = self.session.execute(select(Product).where(Product.id.in_(product_ids))).scalars()
            current = {p.id: p for p in found}

        report = []
        for group in groups.values():
            snapshot = group["snapshot"]
            product = current.get(group["product_id"]) if group["product_id"] else None
            report.append({
                "product_id": group["product_id"],
                "product_name": snapshot.product_name,
                "product_brand": snapshot.product_brand,
                "product_category": snapshot.product_category,
                "product_unit": snapshot.product_unit,
                "current_stock": product.stock_quantity if product else None,
                "product_deleted": bool(group["product_id"]) and (product is None or product.is_deleted),
                "total_quantity": group["quantity"],
                "sale_count": len(group["sale_ids"]),
                "first_sale_date": to_utc_z(group["first_sale_at"]),
                "last_sale_date": to_utc_z(group["last_sale_at"]),
                "gross_revenue": cents_to_number(group["gross"]),
                "item_discounts": cents_to_number(group["item_discounts"]),
                "sale_discounts": cents_to_number(group["sale_discounts"]),
                "total_discounts": cents_to_number(group["item_discounts"] + group["sale_discounts"]),
                "net_revenue": cents_to_number(group["net"]),
            })
        report.sort(key=lambda r: (-r["total_quantity"], r["product_name"] or ""))
        return report

    # ------------------------------------------------------------------
    # Void
    # ------------------------------------------------------------------

    def void_sale(self, sale_id: int, actor=None, reason: str | None = None) -> Sale:
        with self.tx.atomic():
            sale = self.load_sale(sale_id)
            if sale.status == SALE_STATUS_VOIDED:
                raise ConflictError("Sale already voided", details={"sale_id": sale_id})

            for item in sale.items:
                if item.product_id:
                    self.stock.increment_stock(item.product_id, item.quantity)

            sale.status = SALE_STATUS_VOIDED
            sale.voided_at = utcnow()
            sale.voided_by_id = getattr(actor, "id", None)
            sale.void_reason = reason

            if sale.customer_id is not None and self.reconcile_on_write:
                self.reconciler.reconcile_customer(sale.customer_id)

        logger.info("Sale %s voided by %s", sale.id, sale.voided_by_id)
        safe_publish(self.publisher, EVENT_SALE_VOIDED, {
            "sale_id": sale.id,
            "customer_id": sale.customer_id,
            "total_amount": cents_to_number(sale.total_cents),
        })
        return sale
