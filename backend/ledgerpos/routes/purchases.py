# Overview: Flask API routes for supplier purchases; parses input and returns JSON responses.

# backend/ledgerpos/routes/purchases.py

from flask import Blueprint, current_app, jsonify, request

from ..decorators import require_actor
from ..errors import LedgerPosError
from ..extensions import db
from ..services.purchase_service import PurchaseService


purchases_bp = Blueprint("purchases", __name__, url_prefix="/api/purchases")


def _service() -> PurchaseService:
    return PurchaseService.from_config(db.session, current_app.config)


@purchases_bp.post("")
@require_actor
def create_purchase_route():
    """
    Request body:
    {
        "supplier_id": 2,
        "total_cost": 5000.00,
        "date": "2025-01-31",            (optional; defaults to now)
        "description": "...",            (optional)
        "supplier_invoice_id": "INV-9",  (optional)
        "delivery_method": "truck"       (optional)
    }
    """
    try:
        purchase = _service().create_purchase(request.get_json(silent=True) or {})
        return jsonify({"purchase": purchase.to_dict()}), 201
    except LedgerPosError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to create purchase")
        return jsonify({"error": "Internal server error"}), 500


@purchases_bp.get("")
@require_actor
def list_purchases_route():
    try:
        purchases = _service().list_purchases(supplier_id=request.args.get("supplier_id", type=int))
        return jsonify({"items": [p.to_dict() for p in purchases], "count": len(purchases)}), 200
    except LedgerPosError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to list purchases")
        return jsonify({"error": "Internal server error"}), 500


@purchases_bp.get("/<int:purchase_id>")
@require_actor
def get_purchase_route(purchase_id: int):
    try:
        return jsonify({"purchase": _service().get_purchase(purchase_id).to_dict()}), 200
    except LedgerPosError as e:
        return jsonify(e.to_dict()), e.status_code


@purchases_bp.put("/<int:purchase_id>")
@require_actor
def update_purchase_route(purchase_id: int):
    """The supplier balance moves by the difference between new and old totals."""
    try:
        purchase = _service().update_purchase(purchase_id, request.get_json(silent=True) or {})
        return jsonify({"purchase": purchase.to_dict()}), 200
    except LedgerPosError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to update purchase")
        return jsonify({"error": "Internal server error"}), 500


@purchases_bp.delete("/<int:purchase_id>")
@require_actor
def delete_purchase_route(purchase_id: int):
    try:
        _service().delete_purchase(purchase_id)
        return jsonify({"ok": True}), 200
    except LedgerPosError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to delete purchase")
        return jsonify({"error": "Internal server error"}), 500
