# Overview: Flask API routes for customers; CRUD, ledger history, balance recalculation, payments.

# backend/ledgerpos/routes/customers.py
"""
Customer routes.

BALANCES: customers.balance is a cache. /history and /recalculate-balance
rebuild the ledger from sales and payments and write the balance back.
"""

from flask import Blueprint, current_app, jsonify, request

from ..decorators import require_actor
from ..errors import LedgerPosError
from ..extensions import db
from ..models import Customer
from ..services.party_service import CustomerService
from ..services.payment_service import PaymentService
from ..validation import ModelValidationPolicy, validate_payload


CUSTOMER_POLICY = ModelValidationPolicy(
    writable_fields={
        "name", "brand_name", "phone", "email", "address", "type",
        "opening_balance", "opening_balance_type", "credit_limit",
    },
    required_on_create={"name"},
    money_fields={
        "opening_balance": "opening_balance_cents",
        "credit_limit": "credit_limit_cents",
    },
)


customers_bp = Blueprint("customers", __name__, url_prefix="/api/customers")


def _service() -> CustomerService:
    return CustomerService.from_config(db.session, current_app.config)


@customers_bp.get("")
@require_actor
def list_customers_route():
    """
    Query params:
    - search: matches name, brand, phone or email (optional)
    - include_deleted: true | false (default false)
    """
    try:
        include_deleted = request.args.get("include_deleted", "false").lower() == "true"
        customers = _service().list_customers(
            search=request.args.get("search"),
            include_deleted=include_deleted,
        )
        return jsonify({"items": [c.to_dict() for c in customers], "count": len(customers)}), 200
    except LedgerPosError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to list customers")
        return jsonify({"error": "Internal server error"}), 500


@customers_bp.get("/<int:customer_id>")
@require_actor
def get_customer_route(customer_id: int):
    try:
        return jsonify({"customer": _service().get(customer_id).to_dict()}), 200
    except LedgerPosError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to load customer")
        return jsonify({"error": "Internal server error"}), 500


@customers_bp.post("")
@require_actor
def create_customer_route():
    """
    Request body:
    {
        "name": "Ali Traders",
        "type": "long-term",                (retail | long-term; default long-term)
        "opening_balance": 1000,
        "opening_balance_type": "debit",    (debit | credit | Dr | Cr)
        "credit_limit": 50000               (optional)
    }
    """
    try:
        patch = validate_payload(
            model=Customer,
            payload=request.get_json(silent=True),
            policy=CUSTOMER_POLICY,
            partial=False,
        )
        customer = _service().create_customer(patch)
        return jsonify({"customer": customer.to_dict()}), 201
    except LedgerPosError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to create customer")
        return jsonify({"error": "Internal server error"}), 500


@customers_bp.put("/<int:customer_id>")
@require_actor
def update_customer_route(customer_id: int):
    """Changing the opening balance re-runs reconciliation for the customer."""
    try:
        patch = validate_payload(
            model=Customer,
            payload=request.get_json(silent=True),
            policy=CUSTOMER_POLICY,
            partial=True,
        )
        customer = _service().update_customer(customer_id, patch)
        return jsonify({"customer": customer.to_dict()}), 200
    except LedgerPosError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to update customer")
        return jsonify({"error": "Internal server error"}), 500


@customers_bp.delete("/<int:customer_id>")
@require_actor
def delete_customer_route(customer_id: int):
    """Soft delete; 409 when the customer has sales."""
    try:
        _service().delete_customer(customer_id)
        return jsonify({"ok": True}), 200
    except LedgerPosError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to delete customer")
        return jsonify({"error": "Internal server error"}), 500


# =============================================================================
# LEDGER
# =============================================================================

@customers_bp.get("/<int:customer_id>/history")
@require_actor
def customer_history_route(customer_id: int):
    """
    Date-ordered ledger: opening balance first, then sales (debit) and
    payments (credit) with a running balance.

    Returns:
        {entity, ledger: [{date, type, reference, description, debit, credit, running_balance}],
         totals: {totalDebits, totalCredits, balance}}
    """
    try:
        return jsonify(_service().history(customer_id).to_dict()), 200
    except LedgerPosError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to build customer history")
        return jsonify({"error": "Internal server error"}), 500


@customers_bp.post("/<int:customer_id>/recalculate-balance")
@require_actor
def recalculate_customer_balance_route(customer_id: int):
    """Rebuild the balance from source rows and persist it. Returns before/after."""
    try:
        result = _service().recalculate_balance(customer_id)
        return jsonify(result.to_dict()), 200
    except LedgerPosError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to recalculate customer balance")
        return jsonify({"error": "Internal server error"}), 500


# =============================================================================
# CUSTOMER PAYMENTS
# =============================================================================

@customers_bp.get("/<int:customer_id>/payments")
@require_actor
def list_customer_payments_route(customer_id: int):
    try:
        _service().get(customer_id)
        payments = PaymentService.from_config(db.session, current_app.config).list_payments(customer_id=customer_id)
        return jsonify({"items": [p.to_dict() for p in payments], "count": len(payments)}), 200
    except LedgerPosError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to list customer payments")
        return jsonify({"error": "Internal server error"}), 500


@customers_bp.post("/<int:customer_id>/payments")
@require_actor
def add_customer_payment_route(customer_id: int):
    """
    Request body:
    {
        "amount": 300,
        "payment_method": "cash",   (optional)
        "description": "...",       (optional)
        "date": "2025-01-31"        (optional; defaults to now)
    }
    """
    try:
        data = dict(request.get_json(silent=True) or {})
        data.pop("supplier_id", None)
        data["customer_id"] = customer_id
        payment = PaymentService.from_config(db.session, current_app.config).create_payment(data)
        return jsonify({"payment": payment.to_dict()}), 201
    except LedgerPosError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to add customer payment")
        return jsonify({"error": "Internal server error"}), 500
