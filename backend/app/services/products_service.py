# backend/app/services/products_service.py
"""
Products Service

Product create/update never write stock_level. Stock only moves through
stock_ledger (sale items, restock, correction). A new product may start
with initial stock, which is booked as a RESTOCK movement.
"""
from __future__ import annotations

from ..extensions import db
from ..models import Product
from ..validation import coerce_int
from . import stock_ledger
from .access_policy import Actor, require_inventory_manager
from .concurrency import run_in_transaction
from .errors import ConflictError, InvalidArgument, ProductNotFound

PRODUCT_MUTABLE_FIELDS = {"sku", "name", "description", "price_cents", "is_active"}


def apply_product_patch(p: Product, patch: dict) -> None:
    for k, v in patch.items():
        if k not in PRODUCT_MUTABLE_FIELDS:
            continue
        setattr(p, k, v)


def _ensure_sku_available(sku: str, exclude_product_id: int | None = None) -> None:
    query = db.session.query(Product).filter(Product.sku == sku)
    if exclude_product_id is not None:
        query = query.filter(Product.id != exclude_product_id)
    if query.first() is not None:
        raise ConflictError("SKU already exists", details={"sku": sku})


def list_products(
    *,
    active_only: bool = False,
    page: int | None = None,
    per_page: int | None = None,
) -> dict:
    """
    Product listing with optional pagination.

    Returns dict with 'items', 'count', and pagination metadata if paginated.
    """
    base_query = db.session.query(Product)
    if active_only:
        base_query = base_query.filter(Product.is_active.is_(True))
    base_query = base_query.order_by(Product.name.asc(), Product.id.asc())

    if page is None:
        items = base_query.all()
        return {"items": [p.to_dict() for p in items], "count": len(items)}

    page = max(1, page)
    per_page = max(1, min(per_page or 20, 100))
    total = base_query.count()
    items = base_query.offset((page - 1) * per_page).limit(per_page).all()
    return {
        "items": [p.to_dict() for p in items],
        "count": len(items),
        "total": total,
        "page": page,
        "per_page": per_page,
    }


def get_product(product_id: int) -> Product:
    product = db.session.get(Product, product_id)
    if product is None:
        raise ProductNotFound(product_id)
    return product


def create_product(patch: dict, actor: Actor, initial_stock=0) -> Product:
    require_inventory_manager(actor)
    initial_stock = coerce_int("initial_stock", initial_stock or 0)
    if initial_stock < 0:
        raise InvalidArgument("initial_stock must be >= 0")

    def _op():
        _ensure_sku_available(patch["sku"])
        product = Product(stock_level=0)
        apply_product_patch(product, patch)
        db.session.add(product)
        db.session.flush()
        if initial_stock:
            stock_ledger.release(
                product.id,
                initial_stock,
                reason=stock_ledger.REASON_RESTOCK,
                actor_user_id=actor.id,
                note="Initial stock",
            )
        return product

    return run_in_transaction(_op)


def update_product(product_id: int, patch: dict, actor: Actor) -> Product:
    require_inventory_manager(actor)

    def _op():
        product = stock_ledger.load_product_for_update(product_id)
        if "sku" in patch:
            _ensure_sku_available(patch["sku"], exclude_product_id=product_id)
        apply_product_patch(product, patch)
        return product

    return run_in_transaction(_op)
