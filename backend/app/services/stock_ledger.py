# Overview: Service-layer operations for product stock; the only writer of Product.stock_level.

"""
Stock Ledger Invariants (authoritative)

- Product.stock_level is the single source of truth for available units.
- stock_level >= 0 after every committed transaction. reserve() checks
  availability against the value read inside the caller's transaction
  (row locked), never against a cached value.
- Every change appends exactly one StockMovement in the same transaction.
- reserve/release/adjust do not commit: they run inside the caller's unit
  of work (see concurrency.run_in_transaction). restock/correct are
  standalone operations and commit their own unit of work.

Sign conventions:
- reserve(q): stock_level -= q
- release(q): stock_level += q
- adjust(d): change in reserved quantity. d > 0 reserves d, d < 0 releases -d.
- correct(d): change in stock_level. d < 0 must not drive stock negative.
"""

from __future__ import annotations

from flask import current_app

from ..extensions import db
from ..models import Product, StockMovement
from app.time_utils import utcnow
from .access_policy import Actor, require_inventory_manager
from .concurrency import lock_for_update, run_in_transaction
from .errors import InsufficientStock, InvalidArgument, ProductNotFound


REASON_SALE_ITEM_RESERVE = "SALE_ITEM_RESERVE"
REASON_SALE_ITEM_RELEASE = "SALE_ITEM_RELEASE"
REASON_RESTOCK = "RESTOCK"
REASON_CORRECTION = "CORRECTION"


def load_product_for_update(product_id: int) -> Product:
    """Load a product row under a write lock, refreshing any cached state."""
    query = lock_for_update(db.session.query(Product).filter_by(id=product_id))
    product = query.populate_existing().first()
    if product is None:
        raise ProductNotFound(product_id)
    return product


def _record_movement(
    product: Product,
    quantity_delta: int,
    reason: str,
    *,
    sale_id: int | None = None,
    sale_item_id: int | None = None,
    actor_user_id: int | None = None,
    note: str | None = None,
) -> StockMovement:
    movement = StockMovement(
        product_id=product.id,
        quantity_delta=quantity_delta,
        resulting_level=product.stock_level,
        reason=reason,
        sale_id=sale_id,
        sale_item_id=sale_item_id,
        actor_user_id=actor_user_id,
        note=note,
        occurred_at=utcnow(),
    )
    db.session.add(movement)
    return movement


def reserve(
    product_id: int,
    quantity: int,
    *,
    reason: str = REASON_SALE_ITEM_RESERVE,
    sale_id: int | None = None,
    sale_item_id: int | None = None,
    actor_user_id: int | None = None,
    note: str | None = None,
) -> int:
    """
    Take quantity units out of available stock.

    Raises InsufficientStock if stock_level < quantity.
    Returns the new stock level.
    """
    if quantity <= 0:
        raise InvalidArgument("quantity must be a positive integer")

    product = load_product_for_update(product_id)
    if product.stock_level < quantity:
        raise InsufficientStock(product_id, quantity, product.stock_level)

    product.stock_level -= quantity
    _record_movement(
        product,
        -quantity,
        reason,
        sale_id=sale_id,
        sale_item_id=sale_item_id,
        actor_user_id=actor_user_id,
        note=note,
    )
    return product.stock_level


def release(
    product_id: int,
    quantity: int,
    *,
    reason: str = REASON_SALE_ITEM_RELEASE,
    sale_id: int | None = None,
    sale_item_id: int | None = None,
    actor_user_id: int | None = None,
    note: str | None = None,
) -> int:
    """
    Return quantity units to available stock unconditionally.

    Raises ProductNotFound if the product no longer exists.
    Returns the new stock level.
    """
    if quantity <= 0:
        raise InvalidArgument("quantity must be a positive integer")

    product = load_product_for_update(product_id)
    product.stock_level += quantity
    _record_movement(
        product,
        quantity,
        reason,
        sale_id=sale_id,
        sale_item_id=sale_item_id,
        actor_user_id=actor_user_id,
        note=note,
    )
    return product.stock_level


def adjust(
    product_id: int,
    delta: int,
    *,
    sale_id: int | None = None,
    sale_item_id: int | None = None,
    actor_user_id: int | None = None,
) -> int:
    """
    Change the quantity reserved against a product by delta.

    Used for in-place quantity edits of a line on an unchanged product.
    """
    if delta > 0:
        return reserve(
            product_id,
            delta,
            sale_id=sale_id,
            sale_item_id=sale_item_id,
            actor_user_id=actor_user_id,
        )
    if delta < 0:
        return release(
            product_id,
            -delta,
            sale_id=sale_id,
            sale_item_id=sale_item_id,
            actor_user_id=actor_user_id,
        )
    return load_product_for_update(product_id).stock_level


def restock(product_id: int, quantity: int, actor: Actor, note: str | None = None) -> Product:
    """Add received stock. Admin/Manager only."""
    require_inventory_manager(actor)
    if quantity <= 0:
        raise InvalidArgument("quantity must be a positive integer")

    def _op():
        release(
            product_id,
            quantity,
            reason=REASON_RESTOCK,
            actor_user_id=actor.id,
            note=note,
        )
        return db.session.get(Product, product_id)

    product = run_in_transaction(_op)
    current_app.logger.info(
        "Restocked product %s by %s units (user_id=%s)", product_id, quantity, actor.id
    )
    return product


def correct(product_id: int, delta: int, actor: Actor, note: str | None = None) -> Product:
    """
    Signed manual correction of stock_level (e.g. after a physical count).

    A negative delta larger than the available stock raises InsufficientStock.
    """
    require_inventory_manager(actor)
    if delta == 0:
        raise InvalidArgument("quantity_delta must be non-zero")

    def _op():
        if delta > 0:
            release(product_id, delta, reason=REASON_CORRECTION, actor_user_id=actor.id, note=note)
        else:
            reserve(product_id, -delta, reason=REASON_CORRECTION, actor_user_id=actor.id, note=note)
        return db.session.get(Product, product_id)

    product = run_in_transaction(_op)
    current_app.logger.info(
        "Corrected stock of product %s by %s units (user_id=%s)", product_id, delta, actor.id
    )
    return product


def get_stock_level(product_id: int) -> int:
    product = db.session.get(Product, product_id)
    if product is None:
        raise ProductNotFound(product_id)
    return product.stock_level


def list_movements(product_id: int, actor: Actor, limit: int = 100) -> list[StockMovement]:
    """Most recent stock movements for a product. Admin/Manager only."""
    require_inventory_manager(actor)
    if db.session.get(Product, product_id) is None:
        raise ProductNotFound(product_id)
    return (
        db.session.query(StockMovement)
        .filter_by(product_id=product_id)
        .order_by(StockMovement.id.desc())
        .limit(limit)
        .all()
    )
