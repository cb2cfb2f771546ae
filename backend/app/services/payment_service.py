# Overview: Service-layer operations for payments tendered against sales.

"""
Payment Service

WHY: A sale records what was bought; payments record how it was paid.
One sale can carry several payments (split tender). Payments never change
the sale's derived total; the summary compares the two.

ACCESS:
- create/read: Admin/Manager any sale, Cashier only own sales
- update/delete: Admin/Manager only
"""

from __future__ import annotations

from sqlalchemy import func

from ..extensions import db
from ..models import Payment, Sale, PAYMENT_METHODS, PAYMENT_STATUSES
from ..validation import apply_paging, require_amount_cents, require_id, require_text
from .access_policy import Actor, require_delete, require_sale_access
from .concurrency import lock_for_update, run_in_transaction
from .errors import ConflictError, InvalidArgument, PaymentNotFound, SaleNotFound
from .sales_service import load_sale_for_update


PAYMENT_PATCH_FIELDS = {"sale_id", "method", "amount_cents", "transaction_id", "status"}

# Sale-level payment state reported by get_payment_summary
PAYMENT_STATE_UNPAID = "UNPAID"
PAYMENT_STATE_PARTIAL = "PARTIAL"
PAYMENT_STATE_PAID = "PAID"
PAYMENT_STATE_OVERPAID = "OVERPAID"


def _validate_method(method) -> str:
    method = require_text("method", method, 32).upper().replace(" ", "_")
    if method not in PAYMENT_METHODS:
        raise InvalidArgument(f"method must be one of: {', '.join(PAYMENT_METHODS)}")
    return method


def _validate_status(status) -> str:
    if status not in PAYMENT_STATUSES:
        raise InvalidArgument(f"status must be one of: {', '.join(PAYMENT_STATUSES)}")
    return status


def _validate_amount(amount_cents) -> int:
    amount_cents = require_amount_cents("amount_cents", amount_cents)
    if amount_cents == 0:
        raise InvalidArgument("amount_cents must be a positive integer")
    return amount_cents


def _require_open_sale(sale: Sale) -> None:
    if sale.status == "cancelled":
        raise ConflictError("Cannot take payment on a cancelled sale", details={"sale_id": sale.id})


def _load_payment_for_update(payment_id: int) -> Payment:
    payment = lock_for_update(db.session.query(Payment).filter_by(id=payment_id)).populate_existing().first()
    if payment is None:
        raise PaymentNotFound(payment_id)
    return payment


def create_payment(
    sale_id,
    method,
    amount_cents,
    actor: Actor,
    *,
    transaction_id=None,
    status="completed",
) -> Payment:
    """
    Record a payment against a sale.

    Raises InvalidArgument, SaleNotFound, AccessDenied, ConflictError
    (cancelled sale), TransientStoreConflict.
    """
    sale_id = require_id("sale_id", sale_id)
    method = _validate_method(method)
    amount_cents = _validate_amount(amount_cents)
    transaction_id = require_text("transaction_id", transaction_id, 128, required=False)
    status = _validate_status(status)

    def _op():
        sale = load_sale_for_update(sale_id)
        require_sale_access(actor, sale)
        _require_open_sale(sale)

        payment = Payment(
            sale_id=sale_id,
            method=method,
            amount_cents=amount_cents,
            transaction_id=transaction_id,
            status=status,
            created_by_user_id=actor.id,
        )
        db.session.add(payment)
        return payment

    payment = run_in_transaction(_op)
    return get_payment(payment.id, actor)


def get_payment(payment_id, actor: Actor) -> Payment:
    payment_id = require_id("payment_id", payment_id)
    payment = db.session.get(Payment, payment_id)
    if payment is None:
        raise PaymentNotFound(payment_id)
    require_sale_access(actor, payment.sale)
    return payment


def list_payments(actor: Actor, *, sale_id=None, status=None, limit=None, offset=0) -> list[Payment]:
    """Payments visible to the actor, newest first."""
    query = db.session.query(Payment)

    if sale_id is not None:
        sale_id = require_id("sale_id", sale_id)
        sale = db.session.get(Sale, sale_id)
        if sale is None:
            raise SaleNotFound(sale_id)
        require_sale_access(actor, sale)
        query = query.filter(Payment.sale_id == sale_id)

    if status is not None:
        query = query.filter(Payment.status == _validate_status(status))

    if not actor.is_privileged:
        query = query.join(Sale, Sale.id == Payment.sale_id).filter(Sale.user_id == actor.id)

    return apply_paging(query.order_by(Payment.id.desc()), limit, offset).all()


def update_payment(payment_id, patch: dict, actor: Actor) -> Payment:
    """
    Correct a payment. Admin/Manager only.

    Moving a payment to another sale needs that sale to exist and not be
    cancelled.
    """
    payment_id = require_id("payment_id", payment_id)
    if not isinstance(patch, dict) or not patch:
        raise InvalidArgument("No updatable fields supplied")
    unknown = sorted(set(patch) - PAYMENT_PATCH_FIELDS)
    if unknown:
        raise InvalidArgument(f"Field not allowed: {', '.join(unknown)}")

    changes = {}
    if "sale_id" in patch:
        changes["sale_id"] = require_id("sale_id", patch["sale_id"])
    if "method" in patch:
        changes["method"] = _validate_method(patch["method"])
    if "amount_cents" in patch:
        changes["amount_cents"] = _validate_amount(patch["amount_cents"])
    if "transaction_id" in patch:
        changes["transaction_id"] = require_text("transaction_id", patch["transaction_id"], 128, required=False)
    if "status" in patch:
        changes["status"] = _validate_status(patch["status"])

    def _op():
        require_delete(actor)
        payment = _load_payment_for_update(payment_id)
        new_sale_id = changes.get("sale_id", payment.sale_id)
        if new_sale_id != payment.sale_id:
            _require_open_sale(load_sale_for_update(new_sale_id))
        for key, value in changes.items():
            setattr(payment, key, value)
        return payment

    return run_in_transaction(_op)


def delete_payment(payment_id, actor: Actor) -> dict:
    """Remove a payment record. Admin/Manager only."""
    payment_id = require_id("payment_id", payment_id)

    def _op():
        require_delete(actor)
        payment = _load_payment_for_update(payment_id)
        snapshot = payment.to_dict()
        db.session.delete(payment)
        return {"deleted": True, "payment": snapshot}

    return run_in_transaction(_op)


def get_payment_summary(sale_id, actor: Actor) -> dict:
    """
    Amount paid against a sale versus its total.

    Only completed payments count. remaining_cents goes negative when the
    sale is overpaid.
    """
    sale_id = require_id("sale_id", sale_id)
    sale = db.session.get(Sale, sale_id)
    if sale is None:
        raise SaleNotFound(sale_id)
    require_sale_access(actor, sale)

    paid_cents, payment_count = (
        db.session.query(func.coalesce(func.sum(Payment.amount_cents), 0), func.count(Payment.id))
        .filter(Payment.sale_id == sale_id, Payment.status == "completed")
        .one()
    )
    paid_cents = int(paid_cents or 0)
    remaining_cents = sale.total_cents - paid_cents

    if paid_cents == 0:
        state = PAYMENT_STATE_UNPAID
    elif remaining_cents > 0:
        state = PAYMENT_STATE_PARTIAL
    elif remaining_cents == 0:
        state = PAYMENT_STATE_PAID
    else:
        state = PAYMENT_STATE_OVERPAID

    return {
        "sale_id": sale_id,
        "total_cents": sale.total_cents,
        "paid_cents": paid_cents,
        "remaining_cents": remaining_cents,
        "payment_count": int(payment_count),
        "payment_status": state,
    }
