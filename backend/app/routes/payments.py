# backend/app/routes/payments.py
"""
Payment routes.

- Record payments against a sale (split tender allowed)
- List and read payments, scoped to the caller's sales for Cashiers
- Payment summary: amount paid versus the sale total
- Correct or remove a payment (Admin/Manager)
"""

from flask import Blueprint, request, jsonify, g, current_app

from ..decorators import require_auth, require_manager
from ..services import payment_service
from ..services.concurrency import new_correlation_id
from ..services.errors import PosError


payments_bp = Blueprint("payments", __name__, url_prefix="/api/payments")


def _error(e: PosError):
    return jsonify(e.to_dict()), e.status_code


def _internal_error(message: str):
    correlation_id = new_correlation_id()
    current_app.logger.exception("%s (correlation_id=%s)", message, correlation_id)
    return jsonify({"error": "Internal server error", "correlation_id": correlation_id}), 500


# =============================================================================
# PAYMENT CREATION
# =============================================================================

@payments_bp.post("")
@require_auth
def create_payment_route():
    """
    Record a payment.

    Body: sale_id, method, amount_cents, transaction_id (optional),
    status (optional, default "completed").
    Returns the payment and the sale's updated payment summary.
    """
    try:
        data = request.get_json(silent=True) or {}
        payment = payment_service.create_payment(
            data.get("sale_id"),
            data.get("method"),
            data.get("amount_cents"),
            g.actor,
            transaction_id=data.get("transaction_id"),
            status=data.get("status", "completed"),
        )
        summary = payment_service.get_payment_summary(payment.sale_id, g.actor)
        return jsonify({"payment": payment.to_dict(), "summary": summary}), 201
    except PosError as e:
        return _error(e)
    except Exception:
        return _internal_error("Failed to create payment")


# =============================================================================
# PAYMENT QUERIES
# =============================================================================

@payments_bp.get("")
@require_auth
def list_payments_route():
    """Query params: sale_id, status, limit, offset."""
    try:
        payments = payment_service.list_payments(
            g.actor,
            sale_id=request.args.get("sale_id"),
            status=request.args.get("status"),
            limit=request.args.get("limit"),
            offset=request.args.get("offset", default=0),
        )
        return jsonify({"payments": [p.to_dict() for p in payments], "count": len(payments)}), 200
    except PosError as e:
        return _error(e)
    except Exception:
        return _internal_error("Failed to list payments")


@payments_bp.get("/<int:payment_id>")
@require_auth
def get_payment_route(payment_id: int):
    try:
        payment = payment_service.get_payment(payment_id, g.actor)
        return jsonify({"payment": payment.to_dict()}), 200
    except PosError as e:
        return _error(e)
    except Exception:
        return _internal_error("Failed to fetch payment")


@payments_bp.get("/sales/<int:sale_id>/summary")
@require_auth
def payment_summary_route(sale_id: int):
    try:
        return jsonify(payment_service.get_payment_summary(sale_id, g.actor)), 200
    except PosError as e:
        return _error(e)
    except Exception:
        return _internal_error("Failed to summarize payments")


# =============================================================================
# PAYMENT CORRECTIONS
# =============================================================================

@payments_bp.put("/<int:payment_id>")
@require_auth
@require_manager
def update_payment_route(payment_id: int):
    """Body may contain any of: sale_id, method, amount_cents, transaction_id, status."""
    try:
        data = request.get_json(silent=True) or {}
        payment = payment_service.update_payment(payment_id, data, g.actor)
        return jsonify({"payment": payment.to_dict()}), 200
    except PosError as e:
        return _error(e)
    except Exception:
        return _internal_error("Failed to update payment")


@payments_bp.delete("/<int:payment_id>")
@require_auth
@require_manager
def delete_payment_route(payment_id: int):
    try:
        return jsonify(payment_service.delete_payment(payment_id, g.actor)), 200
    except PosError as e:
        return _error(e)
    except Exception:
        return _internal_error("Failed to delete payment")
