# Overview: Service-layer operations for sale receipts.

"""
Receipt Service - receipts issued for a sale (printed, emailed or linked).

Issuing and reading follow sale access; changing or removing a receipt is
Admin/Manager only.
"""

from __future__ import annotations

from ..extensions import db
from ..models import Receipt, Sale, RECEIPT_STATUSES
from ..validation import apply_paging, require_id, require_text
from .access_policy import Actor, require_delete, require_sale_access
from .concurrency import lock_for_update, run_in_transaction
from .errors import InvalidArgument, ReceiptNotFound, SaleNotFound
from .sales_service import load_sale_for_update


RECEIPT_PATCH_FIELDS = {"method", "url", "status"}


def _validate_status(status) -> str:
    if status not in RECEIPT_STATUSES:
        raise InvalidArgument(f"status must be one of: {', '.join(RECEIPT_STATUSES)}")
    return status


def _load_receipt_for_update(receipt_id: int) -> Receipt:
    receipt = lock_for_update(db.session.query(Receipt).filter_by(id=receipt_id)).populate_existing().first()
    if receipt is None:
        raise ReceiptNotFound(receipt_id)
    return receipt


def create_receipt(sale_id, method, actor: Actor, *, url=None, status="issued") -> Receipt:
    sale_id = require_id("sale_id", sale_id)
    method = require_text("method", method, 32)
    url = require_text("url", url, 512, required=False)
    status = _validate_status(status)

    def _op():
        sale = load_sale_for_update(sale_id)
        require_sale_access(actor, sale)
        receipt = Receipt(
            sale_id=sale_id,
            method=method,
            url=url,
            status=status,
            created_by_user_id=actor.id,
        )
        db.session.add(receipt)
        return receipt

    receipt = run_in_transaction(_op)
    return get_receipt(receipt.id, actor)


def get_receipt(receipt_id, actor: Actor) -> Receipt:
    receipt_id = require_id("receipt_id", receipt_id)
    receipt = db.session.get(Receipt, receipt_id)
    if receipt is None:
        raise ReceiptNotFound(receipt_id)
    require_sale_access(actor, receipt.sale)
    return receipt


def list_receipts(actor: Actor, *, sale_id=None, limit=None, offset=0) -> list[Receipt]:
    query = db.session.query(Receipt)

    if sale_id is not None:
        sale_id = require_id("sale_id", sale_id)
        sale = db.session.get(Sale, sale_id)
        if sale is None:
            raise SaleNotFound(sale_id)
        require_sale_access(actor, sale)
        query = query.filter(Receipt.sale_id == sale_id)

    if not actor.is_privileged:
        query = query.join(Sale, Sale.id == Receipt.sale_id).filter(Sale.user_id == actor.id)

    return apply_paging(query.order_by(Receipt.id.desc()), limit, offset).all()


def update_receipt(receipt_id, patch: dict, actor: Actor) -> Receipt:
    receipt_id = require_id("receipt_id", receipt_id)
    if not isinstance(patch, dict) or not patch:
        raise InvalidArgument("No updatable fields supplied")
    unknown = sorted(set(patch) - RECEIPT_PATCH_FIELDS)
    if unknown:
        raise InvalidArgument(f"Field not allowed: {', '.join(unknown)}")

    changes = {}
    if "method" in patch:
        changes["method"] = require_text("method", patch["method"], 32)
    if "url" in patch:
        changes["url"] = require_text("url", patch["url"], 512, required=False)
    if "status" in patch:
        changes["status"] = _validate_status(patch["status"])

    def _op():
        require_delete(actor)
        receipt = _load_receipt_for_update(receipt_id)
        for key, value in changes.items():
            setattr(receipt, key, value)
        return receipt

    return run_in_transaction(_op)


def delete_receipt(receipt_id, actor: Actor) -> dict:
    receipt_id = require_id("receipt_id", receipt_id)

    def _op():
        require_delete(actor)
        receipt = _load_receipt_for_update(receipt_id)
        snapshot = receipt.to_dict()
        db.session.delete(receipt)
        return {"deleted": True, "receipt": snapshot}

    return run_in_transaction(_op)
