"""
Sales Service - sale headers and the derived sale total

WHY: Sale.total_cents is derived from the sale's items, never entered.
recalculate_total() is called by every operation that changes a sale's
items, tax or discount, inside that operation's unit of work.

TOTAL:
    total_cents = SUM(quantity * price_cents) + tax_cents - discount_cents

A discount larger than subtotal plus tax yields a negative total. That is
accepted as-is.
"""

from __future__ import annotations

from sqlalchemy import func

from ..extensions import db
from ..models import Customer, Sale, SaleItem, User, SALE_STATUSES
from ..validation import apply_paging, require_amount_cents, require_id, require_quantity
from . import stock_ledger
from .access_policy import Actor, require_delete, require_sale_access
from .concurrency import lock_for_update, run_in_transaction
from .errors import AccessDenied, CustomerNotFound, InvalidArgument, SaleNotFound


SALE_PATCH_FIELDS = {"discount_cents", "tax_cents", "payment_type", "status", "customer_id"}


def load_sale_for_update(sale_id: int) -> Sale:
    """Load a sale row under a write lock, refreshing any cached state."""
    sale = lock_for_update(db.session.query(Sale).filter_by(id=sale_id)).populate_existing().first()
    if sale is None:
        raise SaleNotFound(sale_id)
    return sale


def compute_subtotal_cents(sale_id: int) -> int:
    subtotal = (
        db.session.query(func.coalesce(func.sum(SaleItem.quantity * SaleItem.price_cents), 0))
        .filter(SaleItem.sale_id == sale_id)
        .scalar()
    )
    return int(subtotal or 0)


def recalculate_total(sale_id: int) -> Sale:
    """
    Recompute and write Sale.total_cents from the sale's current items.

    Pending item changes are flushed first so the aggregate sees them.
    Does not commit: the caller's unit of work does.
    """
    db.session.flush()
    sale = db.session.get(Sale, sale_id)
    if sale is None:
        raise SaleNotFound(sale_id)

    sale.total_cents = compute_subtotal_cents(sale_id) + sale.tax_cents - sale.discount_cents
    return sale


def _validate_status(status) -> str:
    if status not in SALE_STATUSES:
        raise InvalidArgument(f"status must be one of: {', '.join(SALE_STATUSES)}")
    return status


def _validate_payment_type(payment_type):
    if payment_type is None:
        return None
    if not isinstance(payment_type, str) or not payment_type.strip():
        raise InvalidArgument("payment_type must be a non-empty string")
    payment_type = payment_type.strip()
    if len(payment_type) > 32:
        raise InvalidArgument("payment_type exceeds max length 32")
    return payment_type


def _resolve_customer_id(customer_id):
    if customer_id is None:
        return None
    customer_id = require_id("customer_id", customer_id)
    if db.session.get(Customer, customer_id) is None:
        raise CustomerNotFound(customer_id)
    return customer_id


def _parse_initial_items(items) -> list[dict]:
    if items is None:
        return []
    if not isinstance(items, list):
        raise InvalidArgument("items must be a list")

    parsed = []
    for raw in items:
        if not isinstance(raw, dict):
            raise InvalidArgument("each item must be an object")
        price = raw.get("price_cents")
        parsed.append({
            "product_id": require_id("product_id", raw.get("product_id")),
            "quantity": require_quantity(raw.get("quantity")),
            "price_cents": None if price is None else require_amount_cents("price_cents", price),
        })
    return parsed


def create_sale(
    actor: Actor,
    *,
    user_id=None,
    customer_id=None,
    discount_cents=0,
    tax_cents=0,
    payment_type=None,
    status="pending",
    items=None,
) -> Sale:
    """
    Create a sale owned by the actor, optionally with initial items.

    Admin/Manager may record the sale for another user via user_id.
    Initial items reserve stock exactly like sale items added later;
    an item without price_cents takes the product's current price.
    """
    owner_id = actor.id
    if user_id is not None:
        owner_id = require_id("user_id", user_id)
        if owner_id != actor.id and not actor.is_privileged:
            raise AccessDenied("Access denied: cannot create sales for another user")

    discount_cents = require_amount_cents("discount_cents", discount_cents)
    tax_cents = require_amount_cents("tax_cents", tax_cents)
    payment_type = _validate_payment_type(payment_type)
    status = _validate_status(status)
    initial_items = _parse_initial_items(items)

    def _op():
        if db.session.get(User, owner_id) is None:
            raise InvalidArgument("user_id does not reference an existing user")

        sale = Sale(
            user_id=owner_id,
            customer_id=_resolve_customer_id(customer_id),
            discount_cents=discount_cents,
            tax_cents=tax_cents,
            payment_type=payment_type,
            status=status,
            total_cents=0,
        )
        db.session.add(sale)
        db.session.flush()

        for product_id in sorted({item["product_id"] for item in initial_items}):
            stock_ledger.load_product_for_update(product_id)

        for item in initial_items:
            product = stock_ledger.load_product_for_update(item["product_id"])
            price_cents = item["price_cents"]
            if price_cents is None:
                price_cents = product.price_cents
            stock_ledger.reserve(
                item["product_id"],
                item["quantity"],
                sale_id=sale.id,
                actor_user_id=actor.id,
            )
            db.session.add(SaleItem(
                sale_id=sale.id,
                product_id=item["product_id"],
                quantity=item["quantity"],
                price_cents=price_cents,
            ))

        recalculate_total(sale.id)
        return sale

    return run_in_transaction(_op)


def get_sale(sale_id, actor: Actor) -> Sale:
    sale_id = require_id("sale_id", sale_id)
    sale = db.session.get(Sale, sale_id)
    if sale is None:
        raise SaleNotFound(sale_id)
    require_sale_access(actor, sale)
    return sale


def list_sales(actor: Actor, *, status=None, limit=None, offset=0) -> list[Sale]:
    """Sales visible to the actor, newest first. Cashiers see only their own."""
    query = db.session.query(Sale)
    if not actor.is_privileged:
        query = query.filter(Sale.user_id == actor.id)
    if status is not None:
        query = query.filter(Sale.status == _validate_status(status))
    query = query.order_by(Sale.created_at.desc(), Sale.id.desc())
    return apply_paging(query, limit, offset).all()


def update_sale(sale_id, patch: dict, actor: Actor) -> Sale:
    """
    Patch header fields and recompute the total in the same transaction.

    total_cents is never writable. Setting status to "cancelled" carries the
    same role requirement as cancel_sale.
    """
    sale_id = require_id("sale_id", sale_id)
    if not isinstance(patch, dict) or not patch:
        raise InvalidArgument("No updatable fields supplied")
    unknown = sorted(set(patch) - SALE_PATCH_FIELDS)
    if unknown:
        raise InvalidArgument(f"Field not allowed: {', '.join(unknown)}")

    changes = {}
    if "discount_cents" in patch:
        changes["discount_cents"] = require_amount_cents("discount_cents", patch["discount_cents"])
    if "tax_cents" in patch:
        changes["tax_cents"] = require_amount_cents("tax_cents", patch["tax_cents"])
    if "payment_type" in patch:
        changes["payment_type"] = _validate_payment_type(patch["payment_type"])
    if "status" in patch:
        changes["status"] = _validate_status(patch["status"])

    def _op():
        sale = load_sale_for_update(sale_id)
        require_sale_access(actor, sale)
        if changes.get("status") == "cancelled" and sale.status != "cancelled":
            require_delete(actor)
        if "customer_id" in patch:
            sale.customer_id = _resolve_customer_id(patch["customer_id"])
        for key, value in changes.items():
            setattr(sale, key, value)
        return recalculate_total(sale.id)

    return run_in_transaction(_op)


def cancel_sale(sale_id, actor: Actor) -> Sale:
    """
    Cancel a sale (status -> cancelled). Admin/Manager only.

    Items stay on the sale and keep their stock reservations; removing a
    line is what releases its stock.
    """
    sale_id = require_id("sale_id", sale_id)

    def _op():
        sale = load_sale_for_update(sale_id)
        require_sale_access(actor, sale)
        require_delete(actor)
        sale.status = "cancelled"
        return sale

    return run_in_transaction(_op)
