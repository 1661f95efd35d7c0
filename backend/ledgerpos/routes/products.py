# Overview: Flask API routes for products operations; parses input and returns JSON responses.

# backend/ledgerpos/routes/products.py
"""
Product catalog routes.

Prices travel as decimal currency amounts and are stored in cents.
stock_quantity may be set here as an absolute stock-take correction; sales
move it only through the guarded stock ledger.
"""
from flask import Blueprint, current_app, request

from ..decorators import require_actor
from ..errors import LedgerPosError
from ..extensions import db
from ..models import Product
from ..services.products_service import ProductService
from ..validation import ModelValidationPolicy, enforce_rules_product, validate_payload

PRODUCT_POLICY = ModelValidationPolicy(
    writable_fields={
        "id", "name", "brand", "category", "unit",
        "retail_price", "wholesale_price", "cost_price",
        "stock_quantity",
    },
    required_on_create={"id", "name"},
    money_fields={
        "retail_price": "retail_price_cents",
        "wholesale_price": "wholesale_price_cents",
        "cost_price": "cost_price_cents",
    },
)

products_bp = Blueprint("products", __name__, url_prefix="/api/products")


def _service() -> ProductService:
    return ProductService(db.session)


def _flag(name: str) -> bool:
    return request.args.get(name, "false").lower() == "true"


@products_bp.get("")
@require_actor
def list_products():
    """
    List products with optional pagination.

    Query params:
    - search: matches id, name or brand (optional)
    - category: exact match (optional)
    - include_deleted: true | false (default false)
    - page: int (optional) - page number (1-indexed). If omitted, returns all items.
    - per_page: int (optional) - items per page (default 20, max 100)
    """
    try:
        return _service().list_products(
            search=request.args.get("search"),
            category=request.args.get("category"),
            include_deleted=_flag("include_deleted"),
            page=request.args.get("page", type=int),
            per_page=request.args.get("per_page", type=int),
        )
    except LedgerPosError as e:
        return e.to_dict(), e.status_code
    except Exception:
        current_app.logger.exception("Failed to list products")
        return {"error": "Internal server error"}, 500


@products_bp.get("/<product_id>")
@require_actor
def get_product_route(product_id: str):
    try:
        return {"product": _service().get_product(product_id).to_dict()}, 200
    except LedgerPosError as e:
        return e.to_dict(), e.status_code


@products_bp.post("")
@require_actor
def create_product_route():
    """Create a product. The id (barcode/SKU) is supplied by the caller."""
    payload = request.get_json(silent=True) or {}

    try:
        patch = validate_payload(model=Product, payload=payload, policy=PRODUCT_POLICY, partial=False)
        enforce_rules_product(patch)
        created = _service().create_product(patch)
    except LedgerPosError as e:
        return e.to_dict(), e.status_code
    except Exception:
        current_app.logger.exception("Failed to create product")
        return {"error": "Internal server error"}, 500

    return {"product": created.to_dict()}, 201


@products_bp.put("/<product_id>")
@require_actor
def update_product_route(product_id: str):
    """Update name/brand/category/unit, prices, or stock_quantity."""
    payload = request.get_json(silent=True) or {}
    payload.pop("id", None)

    try:
        patch = validate_payload(model=Product, payload=payload, policy=PRODUCT_POLICY, partial=True)
        enforce_rules_product(patch)
        updated = _service().update_product(product_id, patch)
    except LedgerPosError as e:
        return e.to_dict(), e.status_code
    except Exception:
        current_app.logger.exception("Failed to update product")
        return {"error": "Internal server error"}, 500

    return {"product": updated.to_dict()}, 200


@products_bp.delete("/<product_id>")
@require_actor
def delete_product_route(product_id: str):
    """
    Delete a product.

    Default is a soft delete. ?permanent=true removes the row, which is
    refused (409) when any sale item references the product.
    """
    try:
        if _flag("permanent"):
            _service().hard_delete_product(product_id)
            return {"ok": True, "permanent": True}, 200
        _service().soft_delete_product(product_id)
    except LedgerPosError as e:
        return e.to_dict(), e.status_code
    except Exception:
        current_app.logger.exception("Failed to delete product")
        return {"error": "Internal server error"}, 500

    return {"ok": True, "permanent": False}, 200


@products_bp.post("/<product_id>/restore")
@require_actor
def restore_product_route(product_id: str):
    try:
        return {"product": _service().restore_product(product_id).to_dict()}, 200
    except LedgerPosError as e:
        return e.to_dict(), e.status_code
