# Overview: Flask API routes for sale headers; parses input and returns JSON responses.

# backend/app/routes/sales.py
"""Sales API routes. Totals are always derived; clients never send total_cents."""

from flask import Blueprint, request, jsonify, g, current_app

from ..decorators import require_auth
from ..services import sales_service
from ..services.concurrency import new_correlation_id
from ..services.errors import PosError


sales_bp = Blueprint("sales", __name__, url_prefix="/api/sales")


def _sale_payload(sale) -> dict:
    return {
        **sale.to_dict(),
        "items": [item.to_dict() for item in sale.items],
    }


def _internal_error(message: str):
    correlation_id = new_correlation_id()
    current_app.logger.exception("%s (correlation_id=%s)", message, correlation_id)
    return jsonify({"error": "Internal server error", "correlation_id": correlation_id}), 500


@sales_bp.post("")
@require_auth
def create_sale_route():
    """
    Create a sale owned by the caller.

    Body (all optional): customer_id, discount_cents, tax_cents,
    payment_type, status, items[{product_id, quantity, price_cents}],
    user_id (admin/manager only).
    """
    try:
        data = request.get_json(silent=True) or {}
        if "total_cents" in data:
            return jsonify({"error": "total_cents is derived and cannot be set", "code": "INVALID_ARGUMENT"}), 400

        sale = sales_service.create_sale(
            g.actor,
            user_id=data.get("user_id"),
            customer_id=data.get("customer_id"),
            discount_cents=data.get("discount_cents", 0),
            tax_cents=data.get("tax_cents", 0),
            payment_type=data.get("payment_type"),
            status=data.get("status", "pending"),
            items=data.get("items"),
        )
        return jsonify({"sale": _sale_payload(sale)}), 201
    except PosError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        return _internal_error("Failed to create sale")


@sales_bp.get("")
@require_auth
def list_sales_route():
    try:
        sales = sales_service.list_sales(
            g.actor,
            status=request.args.get("status"),
            limit=request.args.get("limit"),
            offset=request.args.get("offset", default=0),
        )
        return jsonify({"sales": [sale.to_dict() for sale in sales], "count": len(sales)}), 200
    except PosError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        return _internal_error("Failed to list sales")


@sales_bp.get("/<int:sale_id>")
@require_auth
def get_sale_route(sale_id: int):
    try:
        sale = sales_service.get_sale(sale_id, g.actor)
        return jsonify({"sale": _sale_payload(sale)}), 200
    except PosError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        return _internal_error("Failed to fetch sale")


@sales_bp.put("/<int:sale_id>")
@require_auth
def update_sale_route(sale_id: int):
    """Update discount_cents, tax_cents, payment_type, status or customer_id."""
    try:
        data = request.get_json(silent=True) or {}
        sale = sales_service.update_sale(sale_id, data, g.actor)
        return jsonify({"sale": _sale_payload(sale)}), 200
    except PosError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        return _internal_error("Failed to update sale")


@sales_bp.delete("/<int:sale_id>")
@require_auth
def cancel_sale_route(sale_id: int):
    """
    Cancel a sale (status -> cancelled).

    Available to: admin, manager
    """
    try:
        sale = sales_service.cancel_sale(sale_id, g.actor)
        return jsonify({"message": "Sale cancelled", "sale": sale.to_dict()}), 200
    except PosError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        return _internal_error("Failed to cancel sale")
