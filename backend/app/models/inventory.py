from __future__ import annotations

from ..extensions import db
from app.time_utils import to_utc_z


class Product(db.Model):
    """
    Product master data with its available stock.

    STOCK: stock_level is the single source of truth for available units.
    It is written only by services/stock_ledger.py; product create/update
    never touch it. The check constraint backs the ledger's own
    non-negativity check.
    """
    __tablename__ = "products"
    __table_args__ = (
        db.CheckConstraint("stock_level >= 0", name="ck_products_stock_level_non_negative"),
        db.CheckConstraint("price_cents >= 0", name="ck_products_price_non_negative"),
        db.Index("ix_products_name", "name"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    sku = db.Column(db.String(64), nullable=False, unique=True)
    name = db.Column(db.String(255), nullable=False)
    description = db.Column(db.Text, nullable=True)

    # Authoritative storage in cents
    price_cents = db.Column(db.Integer, nullable=False, default=0)

    stock_level = db.Column(db.Integer, nullable=False, default=0)

    is_active = db.Column(db.Boolean, nullable=False, default=True)

    version_id = db.Column(db.Integer, nullable=False, default=1)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    __mapper_args__ = {"version_id_col": version_id}

    def __repr__(self) -> str:
        return f"<Product id={self.id} sku={self.sku!r} stock_level={self.stock_level}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "sku": self.sku,
            "name": self.name,
            "description": self.description,
            "price_cents": self.price_cents,
            "stock_level": self.stock_level,
            "is_active": self.is_active,
            "version_id": self.version_id,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


class StockMovement(db.Model):
    """
    Append-only record of every stock_level change.

    REASONS:
    - SALE_ITEM_RESERVE: units taken by a sale item (negative delta)
    - SALE_ITEM_RELEASE: units returned when an item shrinks, moves or is deleted
    - RESTOCK: received stock (positive delta)
    - CORRECTION: manual count correction (either sign)

    IMMUTABLE: rows are written in the same transaction as the stock change
    and never updated or deleted. sale_item_id is a plain integer so the row
    survives deletion of the item it describes.
    """
    __tablename__ = "stock_movements"
    __table_args__ = (
        db.Index("ix_stock_movements_product_occurred", "product_id", "occurred_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)

    quantity_delta = db.Column(db.Integer, nullable=False)
    resulting_level = db.Column(db.Integer, nullable=False)
    reason = db.Column(db.String(32), nullable=False, index=True)

    sale_id = db.Column(db.Integer, nullable=True, index=True)
    sale_item_id = db.Column(db.Integer, nullable=True)
    actor_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    note = db.Column(db.String(255), nullable=True)

    occurred_at = db.Column(db.DateTime(timezone=True), nullable=False)

    product = db.relationship("Product", backref=db.backref("stock_movements", lazy=True))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "product_id": self.product_id,
            "quantity_delta": self.quantity_delta,
            "resulting_level": self.resulting_level,
            "reason": self.reason,
            "sale_id": self.sale_id,
            "sale_item_id": self.sale_item_id,
            "actor_user_id": self.actor_user_id,
            "note": self.note,
            "occurred_at": to_utc_z(self.occurred_at),
        }
