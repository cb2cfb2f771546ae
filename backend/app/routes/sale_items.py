# Overview: Flask API routes for sale items; parses input and returns JSON responses.

# backend/app/routes/sale_items.py
"""
Sale item routes.

Every mutation goes through sale_item_service, which keeps product stock
and the sale total consistent with the item set. Routes only parse input,
hand the actor to the service, and map PosError to a JSON error.
"""

from flask import Blueprint, request, jsonify, g, current_app

from ..decorators import require_auth
from ..services import sale_item_service
from ..services.concurrency import new_correlation_id
from ..services.errors import PosError


sale_items_bp = Blueprint("sale_items", __name__, url_prefix="/api/sale-items")


def _error(e: PosError):
    return jsonify(e.to_dict()), e.status_code


def _internal_error(message: str):
    correlation_id = new_correlation_id()
    current_app.logger.exception("%s (correlation_id=%s)", message, correlation_id)
    return jsonify({"error": "Internal server error", "correlation_id": correlation_id}), 500


@sale_items_bp.get("")
@require_auth
def list_sale_items_route():
    """
    List sale items, newest first.

    Query params: sale_id, product_id, limit, offset.
    Cashiers only see items on their own sales.
    """
    try:
        items = sale_item_service.list_sale_items(
            g.actor,
            sale_id=request.args.get("sale_id"),
            product_id=request.args.get("product_id"),
            limit=request.args.get("limit"),
            offset=request.args.get("offset", default=0),
        )
        return jsonify({"items": [item.to_dict(expand=True) for item in items], "count": len(items)}), 200
    except PosError as e:
        return _error(e)
    except Exception:
        return _internal_error("Failed to list sale items")


@sale_items_bp.get("/<int:item_id>")
@require_auth
def get_sale_item_route(item_id: int):
    try:
        item = sale_item_service.get_sale_item(item_id, g.actor)
        return jsonify({"item": item.to_dict(expand=True)}), 200
    except PosError as e:
        return _error(e)
    except Exception:
        return _internal_error("Failed to fetch sale item")


@sale_items_bp.post("")
@require_auth
def create_sale_item_route():
    """
    Add an item to a sale.

    Body: sale_id, product_id, quantity, price_cents.
    Returns 409 when the product lacks stock.
    """
    try:
        data = request.get_json(silent=True) or {}
        item = sale_item_service.create_sale_item(
            sale_id=data.get("sale_id"),
            product_id=data.get("product_id"),
            quantity=data.get("quantity"),
            price_cents=data.get("price_cents"),
            actor=g.actor,
        )
        return jsonify({"item": item.to_dict(expand=True)}), 201
    except PosError as e:
        return _error(e)
    except Exception:
        return _internal_error("Failed to create sale item")


@sale_items_bp.put("/<int:item_id>")
@require_auth
def update_sale_item_route(item_id: int):
    """
    Update an item. Body may contain any of: sale_id, product_id, quantity, price_cents.
    """
    try:
        data = request.get_json(silent=True) or {}
        item = sale_item_service.update_sale_item(item_id, data, g.actor)
        return jsonify({"item": item.to_dict(expand=True)}), 200
    except PosError as e:
        return _error(e)
    except Exception:
        return _internal_error("Failed to update sale item")


@sale_items_bp.delete("/<int:item_id>")
@require_auth
def delete_sale_item_route(item_id: int):
    """
    Remove an item and release its stock.

    Available to: admin, manager
    """
    try:
        result = sale_item_service.delete_sale_item(item_id, g.actor)
        return jsonify(result), 200
    except PosError as e:
        return _error(e)
    except Exception:
        return _internal_error("Failed to delete sale item")
