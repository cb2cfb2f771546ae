# Overview: Flask API routes for products and their stock; parses input and returns JSON responses.

# backend/app/routes/products.py
"""
Product management routes.

SECURITY: All routes require authentication.
- Read operations are open to every role
- Write operations, stock changes and movement history require admin/manager

stock_level is not writable through create/update; use POST /<id>/stock.
"""
from flask import Blueprint, request, g, current_app

from ..decorators import require_auth, require_manager
from ..models import Product
from ..services import products_service, stock_ledger
from ..services.concurrency import new_correlation_id
from ..services.errors import PosError
from ..validation import (
    ModelValidationPolicy,
    coerce_int,
    validate_payload,
    enforce_rules_product,
)

PRODUCT_POLICY = ModelValidationPolicy(
    writable_fields={"sku", "name", "description", "price_cents", "is_active"},
    required_on_create={"sku", "name", "price_cents"},
)

products_bp = Blueprint("products", __name__, url_prefix="/api/products")


def _internal_error(message: str):
    correlation_id = new_correlation_id()
    current_app.logger.exception("%s (correlation_id=%s)", message, correlation_id)
    return {"error": "Internal server error", "correlation_id": correlation_id}, 500


@products_bp.get("")
@require_auth
def list_products():
    """
    List products with optional pagination.

    Query params:
    - active: "true" to hide inactive products
    - page: int (optional) - page number (1-indexed). If omitted, returns all items.
    - per_page: int (optional) - items per page (default 20, max 100)
    """
    return products_service.list_products(
        active_only=request.args.get("active", "").lower() == "true",
        page=request.args.get("page", type=int),
        per_page=request.args.get("per_page", type=int),
    )


@products_bp.get("/<int:product_id>")
@require_auth
def get_product_route(product_id: int):
    try:
        return {"product": products_service.get_product(product_id).to_dict()}, 200
    except PosError as e:
        return e.to_dict(), e.status_code


@products_bp.post("")
@require_auth
@require_manager
def create_product_route():
    """
    Create a new product. Optional initial_stock is booked as a RESTOCK movement.
    """
    payload = request.get_json(silent=True) or {}
    initial_stock = payload.pop("initial_stock", 0)

    try:
        patch = validate_payload(model=Product, payload=payload, policy=PRODUCT_POLICY, partial=False)
        enforce_rules_product(patch)
        created = products_service.create_product(patch, g.actor, initial_stock=initial_stock)
    except PosError as e:
        return e.to_dict(), e.status_code
    except Exception:
        return _internal_error("Failed to create product")

    return {"product": created.to_dict()}, 201


@products_bp.put("/<int:product_id>")
@require_auth
@require_manager
def update_product_route(product_id: int):
    payload = request.get_json(silent=True) or {}
    if "stock_level" in payload:
        return {
            "error": "stock_level cannot be set directly; use /api/products/<id>/stock",
            "code": "INVALID_ARGUMENT",
        }, 400

    try:
        patch = validate_payload(model=Product, payload=payload, policy=PRODUCT_POLICY, partial=True)
        enforce_rules_product(patch)
        updated = products_service.update_product(product_id, patch, g.actor)
    except PosError as e:
        return e.to_dict(), e.status_code
    except Exception:
        return _internal_error("Failed to update product")

    return {"product": updated.to_dict()}, 200


@products_bp.post("/<int:product_id>/stock")
@require_auth
@require_manager
def change_stock_route(product_id: int):
    """
    Restock or correct a product's stock.

    Body:
    - type: "RESTOCK" (quantity > 0) or "CORRECTION" (signed quantity_delta)
    - quantity / quantity_delta: int
    - note: optional
    """
    payload = request.get_json(silent=True) or {}
    change_type = (payload.get("type") or "RESTOCK").upper()
    note = payload.get("note")

    try:
        if change_type == "RESTOCK":
            product = stock_ledger.restock(
                product_id, coerce_int("quantity", payload.get("quantity")), g.actor, note=note
            )
        elif change_type == "CORRECTION":
            product = stock_ledger.correct(
                product_id, coerce_int("quantity_delta", payload.get("quantity_delta")), g.actor, note=note
            )
        else:
            return {"error": "type must be RESTOCK or CORRECTION", "code": "INVALID_ARGUMENT"}, 400
    except PosError as e:
        return e.to_dict(), e.status_code
    except Exception:
        return _internal_error("Failed to change stock")

    return {"product": product.to_dict()}, 200


@products_bp.get("/<int:product_id>/movements")
@require_auth
@require_manager
def list_movements_route(product_id: int):
    limit = request.args.get("limit", default=100, type=int)
    try:
        movements = stock_ledger.list_movements(product_id, g.actor, limit=max(1, min(limit, 500)))
    except PosError as e:
        return e.to_dict(), e.status_code

    return {"movements": [m.to_dict() for m in movements], "count": len(movements)}, 200
