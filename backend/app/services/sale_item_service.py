# Overview: Service-layer operations for sale items; keeps stock and sale totals consistent with every line change.

"""
Sale-Item Service - the only path that creates, changes or removes a SaleItem

Every mutation runs as one unit of work (concurrency.run_in_transaction):
reads of the sale/product rows, the stock change, the item write and the
total recalculation commit together or not at all. An InsufficientStock
raised half-way through an update leaves stock, items and totals exactly as
they were before the call.

LOCK ORDER (deadlock avoidance): sale_items row, then sales rows by
ascending id, then products rows by ascending id.

ACCESS:
- create/update/read: Admin/Manager any sale, Cashier only own sales.
  An update that moves an item between sales needs access to both.
- delete: Admin/Manager only, regardless of ownership.
"""

from __future__ import annotations

from ..extensions import db
from ..models import Product, Sale, SaleItem
from ..validation import apply_paging, require_amount_cents, require_id, require_quantity
from . import stock_ledger
from .access_policy import Actor, require_delete, require_sale_access
from .concurrency import lock_for_update, run_in_transaction
from .errors import InvalidArgument, ItemNotFound, SaleNotFound
from .sales_service import load_sale_for_update, recalculate_total


ITEM_PATCH_FIELDS = {"sale_id", "product_id", "quantity", "price_cents"}


def _load_item_for_update(item_id: int) -> SaleItem:
    item = lock_for_update(db.session.query(SaleItem).filter_by(id=item_id)).populate_existing().first()
    if item is None:
        raise ItemNotFound(item_id)
    return item


def _lock_products(*product_ids: int) -> None:
    for product_id in sorted(set(product_ids)):
        stock_ledger.load_product_for_update(product_id)


def _parse_patch(patch) -> dict:
    if not isinstance(patch, dict) or not patch:
        raise InvalidArgument("No updatable fields supplied")
    unknown = sorted(set(patch) - ITEM_PATCH_FIELDS)
    if unknown:
        raise InvalidArgument(f"Field not allowed: {', '.join(unknown)}")

    parsed = {}
    if "sale_id" in patch:
        parsed["sale_id"] = require_id("sale_id", patch["sale_id"])
    if "product_id" in patch:
        parsed["product_id"] = require_id("product_id", patch["product_id"])
    if "quantity" in patch:
        parsed["quantity"] = require_quantity(patch["quantity"])
    if "price_cents" in patch:
        parsed["price_cents"] = require_amount_cents("price_cents", patch["price_cents"])
    return parsed


def create_sale_item(sale_id, product_id, quantity, price_cents, actor: Actor) -> SaleItem:
    """
    Add a line to a sale, reserving its stock and recomputing the sale total.

    Raises InvalidArgument, SaleNotFound, AccessDenied, ProductNotFound,
    InsufficientStock, TransientStoreConflict.
    """
    sale_id = require_id("sale_id", sale_id)
    product_id = require_id("product_id", product_id)
    quantity = require_quantity(quantity)
    price_cents = require_amount_cents("price_cents", price_cents)

    def _op():
        sale = load_sale_for_update(sale_id)
        require_sale_access(actor, sale)

        stock_ledger.load_product_for_update(product_id)
        stock_ledger.reserve(product_id, quantity, sale_id=sale_id, actor_user_id=actor.id)

        item = SaleItem(
            sale_id=sale_id,
            product_id=product_id,
            quantity=quantity,
            price_cents=price_cents,
        )
        db.session.add(item)
        recalculate_total(sale_id)
        return item

    item = run_in_transaction(_op)
    return get_sale_item(item.id, actor)


def update_sale_item(item_id, patch: dict, actor: Actor) -> SaleItem:
    """
    Change an item's sale, product, quantity and/or price.

    Stock effect:
    - same product: adjust by (new quantity - old quantity)
    - product changed: release old quantity on the old product, then
      reserve the new quantity on the new product
    Totals are recomputed on the source sale and, when the item moved, on
    the destination sale.
    """
    item_id = require_id("item_id", item_id)
    changes = _parse_patch(patch)

    def _op():
        item = _load_item_for_update(item_id)
        old_sale_id = item.sale_id
        old_product_id = item.product_id
        old_quantity = item.quantity

        new_sale_id = changes.get("sale_id", old_sale_id)
        new_product_id = changes.get("product_id", old_product_id)
        new_quantity = changes.get("quantity", old_quantity)

        # Ownership of the item's own sale is settled before the destination
        # is looked up, so a foreign caller never learns whether it exists.
        source = db.session.get(Sale, old_sale_id)
        if source is None:
            raise SaleNotFound(old_sale_id)
        require_sale_access(actor, source)

        sales = {}
        for sale_id in sorted({old_sale_id, new_sale_id}):
            sales[sale_id] = load_sale_for_update(sale_id)

        require_sale_access(actor, sales[old_sale_id])
        if new_sale_id != old_sale_id:
            require_sale_access(actor, sales[new_sale_id])

        _lock_products(old_product_id, new_product_id)

        if new_product_id == old_product_id:
            stock_ledger.adjust(
                old_product_id,
                new_quantity - old_quantity,
                sale_id=new_sale_id,
                sale_item_id=item.id,
                actor_user_id=actor.id,
            )
        else:
            stock_ledger.release(
                old_product_id,
                old_quantity,
                sale_id=old_sale_id,
                sale_item_id=item.id,
                actor_user_id=actor.id,
            )
            stock_ledger.reserve(
                new_product_id,
                new_quantity,
                sale_id=new_sale_id,
                sale_item_id=item.id,
                actor_user_id=actor.id,
            )

        item.sale = sales[new_sale_id]
        item.product = db.session.get(Product, new_product_id)
        item.quantity = new_quantity
        if "price_cents" in changes:
            item.price_cents = changes["price_cents"]

        recalculate_total(old_sale_id)
        if new_sale_id != old_sale_id:
            recalculate_total(new_sale_id)
        return item

    item = run_in_transaction(_op)
    return get_sale_item(item.id, actor)


def delete_sale_item(item_id, actor: Actor) -> dict:
    """
    Remove a line, release its stock, and recompute the sale total.

    Admin/Manager only. Returns a confirmation with a snapshot of the
    removed item.
    """
    item_id = require_id("item_id", item_id)

    def _op():
        item = _load_item_for_update(item_id)
        sale = load_sale_for_update(item.sale_id)
        require_delete(actor)
        require_sale_access(actor, sale)

        snapshot = item.to_dict()
        stock_ledger.release(
            item.product_id,
            item.quantity,
            sale_id=item.sale_id,
            sale_item_id=item.id,
            actor_user_id=actor.id,
        )
        db.session.delete(item)
        recalculate_total(sale.id)
        return {
            "deleted": True,
            "item": snapshot,
            "released_quantity": snapshot["quantity"],
        }

    return run_in_transaction(_op)


def get_sale_item(item_id, actor: Actor) -> SaleItem:
    """Read one item. Cashiers only see items on sales they own."""
    item_id = require_id("item_id", item_id)
    item = db.session.get(SaleItem, item_id)
    if item is None:
        raise ItemNotFound(item_id)
    require_sale_access(actor, item.sale)
    return item


def list_sale_items(
    actor: Actor,
    *,
    sale_id=None,
    product_id=None,
    limit=None,
    offset=0,
) -> list[SaleItem]:
    """
    Items visible to the actor, newest first.

    A Cashier filtering by a sale they do not own gets AccessDenied rather
    than an empty list.
    """
    query = db.session.query(SaleItem)

    if sale_id is not None:
        sale_id = require_id("sale_id", sale_id)
        sale = db.session.get(Sale, sale_id)
        if sale is None:
            raise SaleNotFound(sale_id)
        require_sale_access(actor, sale)
        query = query.filter(SaleItem.sale_id == sale_id)

    if product_id is not None:
        query = query.filter(SaleItem.product_id == require_id("product_id", product_id))

    if not actor.is_privileged:
        query = query.join(Sale, Sale.id == SaleItem.sale_id).filter(Sale.user_id == actor.id)

    return apply_paging(query.order_by(SaleItem.id.desc()), limit, offset).all()
