# backend/app/routes/receipts.py
"""
Receipt routes. Issuing and reading follow sale access; changes and
removal are Admin/Manager only.
"""

from flask import Blueprint, request, jsonify, g, current_app

from ..decorators import require_auth, require_manager
from ..services import receipt_service
from ..services.concurrency import new_correlation_id
from ..services.errors import PosError


receipts_bp = Blueprint("receipts", __name__, url_prefix="/api/receipts")


def _error(e: PosError):
    return jsonify(e.to_dict()), e.status_code


def _internal_error(message: str):
    correlation_id = new_correlation_id()
    current_app.logger.exception("%s (correlation_id=%s)", message, correlation_id)
    return jsonify({"error": "Internal server error", "correlation_id": correlation_id}), 500


@receipts_bp.post("")
@require_auth
def create_receipt_route():
    """Body: sale_id, method, url (optional), status (optional, default "issued")."""
    try:
        data = request.get_json(silent=True) or {}
        receipt = receipt_service.create_receipt(
            data.get("sale_id"),
            data.get("method"),
            g.actor,
            url=data.get("url"),
            status=data.get("status", "issued"),
        )
        return jsonify({"receipt": receipt.to_dict()}), 201
    except PosError as e:
        return _error(e)
    except Exception:
        return _internal_error("Failed to create receipt")


@receipts_bp.get("")
@require_auth
def list_receipts_route():
    try:
        receipts = receipt_service.list_receipts(
            g.actor,
            sale_id=request.args.get("sale_id"),
            limit=request.args.get("limit"),
            offset=request.args.get("offset", default=0),
        )
        return jsonify({"receipts": [r.to_dict() for r in receipts], "count": len(receipts)}), 200
    except PosError as e:
        return _error(e)
    except Exception:
        return _internal_error("Failed to list receipts")


@receipts_bp.get("/<int:receipt_id>")
@require_auth
def get_receipt_route(receipt_id: int):
    try:
        receipt = receipt_service.get_receipt(receipt_id, g.actor)
        return jsonify({"receipt": receipt.to_dict()}), 200
    except PosError as e:
        return _error(e)
    except Exception:
        return _internal_error("Failed to fetch receipt")


@receipts_bp.put("/<int:receipt_id>")
@require_auth
@require_manager
def update_receipt_route(receipt_id: int):
    try:
        data = request.get_json(silent=True) or {}
        receipt = receipt_service.update_receipt(receipt_id, data, g.actor)
        return jsonify({"receipt": receipt.to_dict()}), 200
    except PosError as e:
        return _error(e)
    except Exception:
        return _internal_error("Failed to update receipt")


@receipts_bp.delete("/<int:receipt_id>")
@require_auth
@require_manager
def delete_receipt_route(receipt_id: int):
    try:
        return jsonify(receipt_service.delete_receipt(receipt_id, g.actor)), 200
    except PosError as e:
        return _error(e)
    except Exception:
        return _internal_error("Failed to delete receipt")
