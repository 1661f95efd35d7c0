# Overview: Flask API routes for payments operations; parses input and returns JSON responses.

# backend/ledgerpos/routes/payments.py
"""
Payment API Routes

A payment belongs to exactly one customer or one supplier. Create, update and
delete each adjust the party balance in the same transaction; update applies
only the amount delta and delete reverses the payment before removing it.
"""

from flask import Blueprint, current_app, jsonify, request

from ..decorators import require_actor
from ..errors import LedgerPosError
from ..extensions import db
from ..services.payment_service import PaymentService


payments_bp = Blueprint("payments", __name__, url_prefix="/api/payments")


def _service() -> PaymentService:
    return PaymentService.from_config(db.session, current_app.config)


@payments_bp.post("")
@require_actor
def create_payment_route():
    """
    Request body:
    {
        "customer_id": 3,          (exactly one of customer_id / supplier_id)
        "supplier_id": null,
        "amount": 300.00,
        "payment_method": "cash",  (optional)
        "description": "...",      (optional)
        "date": "2025-01-31"       (optional; defaults to now)
    }

    Returns:
        201: Payment created
        400: Invalid input
        404: Party not found
    """
    try:
        payment = _service().create_payment(request.get_json(silent=True) or {})
        return jsonify({"payment": payment.to_dict()}), 201
    except LedgerPosError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to create payment")
        return jsonify({"error": "Internal server error"}), 500


@payments_bp.get("")
@require_actor
def list_payments_route():
    """
    Query params:
    - customer_id: int (optional)
    - supplier_id: int (optional)
    """
    try:
        payments = _service().list_payments(
            customer_id=request.args.get("customer_id", type=int),
            supplier_id=request.args.get("supplier_id", type=int),
        )
        return jsonify({"items": [p.to_dict() for p in payments], "count": len(payments)}), 200
    except LedgerPosError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to list payments")
        return jsonify({"error": "Internal server error"}), 500


@payments_bp.get("/<int:payment_id>")
@require_actor
def get_payment_route(payment_id: int):
    try:
        return jsonify({"payment": _service().get_payment(payment_id).to_dict()}), 200
    except LedgerPosError as e:
        return jsonify(e.to_dict()), e.status_code


@payments_bp.put("/<int:payment_id>")
@require_actor
def update_payment_route(payment_id: int):
    """Update amount, method, description or date. The party cannot change."""
    try:
        payment = _service().update_payment(payment_id, request.get_json(silent=True) or {})
        return jsonify({"payment": payment.to_dict()}), 200
    except LedgerPosError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to update payment")
        return jsonify({"error": "Internal server error"}), 500


@payments_bp.delete("/<int:payment_id>")
@require_actor
def delete_payment_route(payment_id: int):
    try:
        _service().delete_payment(payment_id)
        return jsonify({"ok": True}), 200
    except LedgerPosError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to delete payment")
        return jsonify({"error": "Internal server error"}), 500
