# Overview: Flask API routes for suppliers; CRUD, ledger history, balance recalculation.

# backend/ledgerpos/routes/suppliers.py
"""
Supplier routes.

OPENING BALANCE: callers send an unsigned amount plus debit/credit; the
service stores it pre-signed (credit negative).
"""

from flask import Blueprint, current_app, jsonify, request

from ..decorators import require_actor
from ..errors import LedgerPosError
from ..extensions import db
from ..models import Supplier
from ..services.party_service import SupplierService
from ..validation import ModelValidationPolicy, validate_payload


SUPPLIER_POLICY = ModelValidationPolicy(
    writable_fields={
        "name", "brand_name", "contact_info",
        "opening_balance", "opening_balance_type",
    },
    required_on_create={"name"},
    money_fields={"opening_balance": "opening_balance_cents"},
)


suppliers_bp = Blueprint("suppliers", __name__, url_prefix="/api/suppliers")


def _service() -> SupplierService:
    return SupplierService.from_config(db.session, current_app.config)


@suppliers_bp.get("")
@require_actor
def list_suppliers_route():
    """
    Each supplier includes closing_balance, rebuilt from purchases and payments.

    Query params:
    - search: matches name, brand or contact info (optional)
    - include_deleted: true | false (default false)
    """
    try:
        include_deleted = request.args.get("include_deleted", "false").lower() == "true"
        items = _service().list_suppliers(
            search=request.args.get("search"),
            include_deleted=include_deleted,
        )
        return jsonify({"items": items, "count": len(items)}), 200
    except LedgerPosError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to list suppliers")
        return jsonify({"error": "Internal server error"}), 500


@suppliers_bp.get("/<int:supplier_id>")
@require_actor
def get_supplier_route(supplier_id: int):
    try:
        return jsonify({"supplier": _service().get(supplier_id).to_dict()}), 200
    except LedgerPosError as e:
        return jsonify(e.to_dict()), e.status_code


@suppliers_bp.post("")
@require_actor
def create_supplier_route():
    """
    Request body:
    {
        "name": "Karachi Wholesale",
        "contact_info": "...",               (optional)
        "opening_balance": 750,
        "opening_balance_type": "credit"     (debit | credit | Dr | Cr)
    }
    """
    try:
        patch = validate_payload(
            model=Supplier,
            payload=request.get_json(silent=True),
            policy=SUPPLIER_POLICY,
            partial=False,
        )
        supplier = _service().create_supplier(patch)
        return jsonify({"supplier": supplier.to_dict()}), 201
    except LedgerPosError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to create supplier")
        return jsonify({"error": "Internal server error"}), 500


@suppliers_bp.put("/<int:supplier_id>")
@require_actor
def update_supplier_route(supplier_id: int):
    try:
        patch = validate_payload(
            model=Supplier,
            payload=request.get_json(silent=True),
            policy=SUPPLIER_POLICY,
            partial=True,
        )
        supplier = _service().update_supplier(supplier_id, patch)
        return jsonify({"supplier": supplier.to_dict()}), 200
    except LedgerPosError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to update supplier")
        return jsonify({"error": "Internal server error"}), 500


@suppliers_bp.delete("/<int:supplier_id>")
@require_actor
def delete_supplier_route(supplier_id: int):
    """Soft delete; 409 when purchases or payments exist."""
    try:
        _service().delete_supplier(supplier_id)
        return jsonify({"ok": True}), 200
    except LedgerPosError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to delete supplier")
        return jsonify({"error": "Internal server error"}), 500


@suppliers_bp.get("/<int:supplier_id>/history")
@require_actor
def supplier_history_route(supplier_id: int):
    """Opening balance, then purchases (debit) and payments (credit) with a running balance."""
    try:
        return jsonify(_service().history(supplier_id).to_dict()), 200
    except LedgerPosError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to build supplier history")
        return jsonify({"error": "Internal server error"}), 500


@suppliers_bp.post("/<int:supplier_id>/recalculate-balance")
@require_actor
def recalculate_supplier_balance_route(supplier_id: int):
    try:
        result = _service().recalculate_balance(supplier_id)
        return jsonify(result.to_dict()), 200
    except LedgerPosError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to recalculate supplier balance")
        return jsonify({"error": "Internal server error"}), 500
