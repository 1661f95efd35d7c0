# Overview: Domain exception taxonomy shared by services and routes.

"""
Every failure raised by the sales and ledger services derives from
LedgerPosError. Each carries a human-readable message, a details dict with
enough context for the caller to correct and resubmit, and the HTTP status
the routes answer with.
"""

from __future__ import annotations


class LedgerPosError(Exception):
    """Base class for caller-visible domain errors."""

    status_code = 400

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> dict:
        return {"error": self.message, "details": self.details}


class ValidationError(LedgerPosError, ValueError):
    """400-level input problem."""


class PriceMismatch(LedgerPosError):
    """Submitted unit price disagrees with the tier price for the product."""

    def __init__(
        self,
        *,
        product_id: str,
        customer_type: str,
        expected_cents: int,
        submitted_cents: int,
        message: str | None = None,
    ):
        from .services.money import cents_to_number

        self.product_id = product_id
        self.expected_cents = expected_cents
        self.submitted_cents = submitted_cents
        super().__init__(
            message or f"Invalid price for product {product_id}",
            details={
                "product_id": product_id,
                "customer_type": customer_type,
                "expected_price": cents_to_number(expected_cents),
                "submitted_price": cents_to_number(submitted_cents),
            },
        )


class InsufficientStock(LedgerPosError):
    def __init__(self, *, product_id: str, available: int, requested: int):
        self.product_id = product_id
        self.available = available
        self.requested = requested
        super().__init__(
            f"Insufficient stock for product {product_id}. "
            f"Available: {available}, Required: {requested}",
            details={
                "product_id": product_id,
                "available": available,
                "requested": requested,
            },
        )


class EntityNotFound(LedgerPosError):
    status_code = 404

    def __init__(self, entity: str, entity_id, message: str | None = None):
        self.entity = entity
        self.entity_id = entity_id
        super().__init__(
            message or f"{entity.capitalize()} not found",
            details={"entity": entity, "id": entity_id},
        )


class ProductNotFound(EntityNotFound):
    def __init__(self, product_id):
        super().__init__("product", product_id, f"Product {product_id} does not exist")


class ConflictError(LedgerPosError):
    """409-level business rule conflict (e.g., deleting a referenced row)."""

    status_code = 409


class PersistenceError(LedgerPosError):
    """Unexpected database failure; the transaction has been rolled back."""

    status_code = 500

    def __init__(self, message: str = "Database operation failed", details: dict | None = None):
        super().__init__(message, details)
