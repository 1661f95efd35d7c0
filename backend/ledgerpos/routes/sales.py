# Overview: Flask API routes for sales operations; parses input and returns JSON responses.

# backend/ledgerpos/routes/sales.py
"""
Sales API Routes

DESIGN:
- POST creates a completed sale in one transaction (price check, discounts,
  stock decrement, snapshot rows)
- Voiding restocks every line and removes the sale from the customer ledger
- Sales are never edited in place
- /sold-products aggregates the SaleItem snapshots per product

IDENTITY: The acting user comes from the upstream identity headers and is
recorded as the cashier / voiding user.
"""

from datetime import timedelta

from flask import Blueprint, current_app, g, jsonify, request

from ..decorators import require_actor
from ..errors import LedgerPosError, ValidationError
from ..extensions import db
from ..services.money import bps_to_number, cents_to_number
from ..services.sales_service import SaleTransactionProcessor
from ..time_utils import parse_iso_datetime


sales_bp = Blueprint("sales", __name__, url_prefix="/api/sales")


def _processor() -> SaleTransactionProcessor:
    return SaleTransactionProcessor.from_config(
        db.session,
        current_app.config,
        publisher=current_app.extensions.get("ledgerpos.publisher"),
    )


def _date_arg(name: str, *, end_of_range: bool = False):
    """Parse ?start_date / ?end_date. A bare end date includes that whole day."""
    raw = request.args.get(name)
    if not raw:
        return None
    try:
        dt = parse_iso_datetime(raw)
    except ValueError:
        raise ValidationError(f"{name} must be an ISO-8601 date or datetime")
    if end_of_range and "T" not in raw:
        dt = dt + timedelta(days=1)
    return dt


@sales_bp.post("")
@require_actor
def create_sale_route():
    """
    Create a sale.

    Request body:
    {
        "customer_id": 12,                 (optional; omit for walk-in)
        "customer_type": "long-term",      (optional; defaults to the customer's type, else retail)
        "items": [
            {
                "product_id": "8964000123",
                "quantity": 2,
                "price": 100.00,
                "item_discount_type": "percentage",   (optional)
                "item_discount_value": 10             (optional)
            }
        ],
        "discount_type": "amount",         (optional)
        "discount_value": 50               (optional)
    }

    Returns:
        201: {sale_id, subtotal, discount_type, discount_amount, discount_percentage, total_amount}
        400: Validation error, price mismatch, insufficient stock
        404: Product or customer not found
        500: Persistence failure
    """
    try:
        sale = _processor().create_sale(request.get_json(silent=True), actor=g.actor)
        return jsonify({
            "sale_id": sale.id,
            "subtotal": cents_to_number(sale.subtotal_cents),
            "discount_type": sale.discount_type,
            "discount_amount": cents_to_number(sale.discount_cents),
            "discount_percentage": bps_to_number(sale.discount_percentage_bps),
            "total_amount": cents_to_number(sale.total_cents),
        }), 201

    except LedgerPosError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to create sale")
        return jsonify({"error": "Internal server error"}), 500


@sales_bp.get("")
@require_actor
def list_sales_route():
    """
    List sales, newest first.

    Query params:
    - customer_id: int (optional)
    - start_date, end_date: ISO-8601 (optional; a bare end date is inclusive)
    - status: completed | voided (optional)
    """
    try:
        sales = _processor().list_sales(
            customer_id=request.args.get("customer_id", type=int),
            start_date=_date_arg("start_date"),
            end_date=_date_arg("end_date", end_of_range=True),
            status=request.args.get("status"),
        )
        return jsonify({"items": [s.to_dict() for s in sales], "count": len(sales)}), 200

    except LedgerPosError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to list sales")
        return jsonify({"error": "Internal server error"}), 500


@sales_bp.get("/sold-products")
@require_actor
def sold_products_route():
    """
    Quantity, revenue and discounts per product over completed sales.

    Query params:
    - start_date, end_date: ISO-8601 (optional; a bare end date is inclusive)
    - product_name: substring of the sold name (optional)
    """
    try:
        report = _processor().sold_products(
            start_date=_date_arg("start_date"),
            end_date=_date_arg("end_date", end_of_range=True),
            product_name=request.args.get("product_name"),
        )
        return jsonify({"items": report, "count": len(report)}), 200

    except LedgerPosError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to build sold products report")
        return jsonify({"error": "Internal server error"}), 500


@sales_bp.get("/<int:sale_id>")
@require_actor
def get_sale_route(sale_id: int):
    """
    Sale with its items.

    Each item carries its historical snapshot plus the current catalog values
    and change flags (product_deleted, name_changed, brand_changed, unit_changed).
    """
    try:
        return jsonify({"sale": _processor().get_sale(sale_id)}), 200

    except LedgerPosError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to get sale")
        return jsonify({"error": "Internal server error"}), 500


@sales_bp.post("/<int:sale_id>/void")
@require_actor
def void_sale_route(sale_id: int):
    """
    Void a completed sale.

    Request body:
    {
        "reason": "Customer changed mind"   (optional)
    }
    """
    try:
        data = request.get_json(silent=True) or {}
        sale = _processor().void_sale(sale_id, actor=g.actor, reason=data.get("reason"))
        return jsonify({"sale": sale.to_dict()}), 200

    except LedgerPosError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to void sale")
        return jsonify({"error": "Internal server error"}), 500
