from __future__ import annotations

from ..extensions import db
from app.time_utils import to_utc_z


SALE_STATUSES = ("pending", "completed", "cancelled")


class Sale(db.Model):
    """
    Sale header owned by one user.

    TOTAL: total_cents is derived, never written by clients:
        total_cents = SUM(quantity * price_cents) + tax_cents - discount_cents
    It is recomputed by sales_service.recalculate_total in the same
    transaction as every item change. Negative totals are allowed when the
    discount exceeds subtotal plus tax.
    """
    __tablename__ = "sales"
    __table_args__ = (
        db.Index("ix_sales_user_status_created", "user_id", "status", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    # Owning user (Cashier ownership is checked against this)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)
    customer_id = db.Column(db.Integer, db.ForeignKey("customers.id"), nullable=True, index=True)

    # All amounts in cents
    total_cents = db.Column(db.Integer, nullable=False, default=0)
    discount_cents = db.Column(db.Integer, nullable=False, default=0)
    tax_cents = db.Column(db.Integer, nullable=False, default=0)

    payment_type = db.Column(db.String(32), nullable=True)
    status = db.Column(db.String(16), nullable=False, default="pending", index=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )
    version_id = db.Column(db.Integer, nullable=False, default=1)

    user = db.relationship("User", backref=db.backref("sales", lazy=True))
    customer = db.relationship("Customer", backref=db.backref("sales", lazy=True))
    __mapper_args__ = {"version_id_col": version_id}

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "customer_id": self.customer_id,
            "total_cents": self.total_cents,
            "discount_cents": self.discount_cents,
            "tax_cents": self.tax_cents,
            "payment_type": self.payment_type,
            "status": self.status,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
            "version_id": self.version_id,
        }


class SaleItem(db.Model):
    """
    Line item on a sale.

    price_cents is a snapshot taken when the line was added and is
    independent of the product's current price. While the row exists,
    quantity units are reserved against product_id.
    """
    __tablename__ = "sale_items"
    __table_args__ = (
        db.CheckConstraint("quantity > 0", name="ck_sale_items_quantity_positive"),
        db.CheckConstraint("price_cents >= 0", name="ck_sale_items_price_non_negative"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    sale_id = db.Column(db.Integer, db.ForeignKey("sales.id"), nullable=False, index=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)

    quantity = db.Column(db.Integer, nullable=False)
    price_cents = db.Column(db.Integer, nullable=False)

    version_id = db.Column(db.Integer, nullable=False, default=1)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    sale = db.relationship("Sale", backref=db.backref("items", lazy=True))
    product = db.relationship("Product")
    __mapper_args__ = {"version_id_col": version_id}

    @property
    def line_total_cents(self) -> int:
        return self.quantity * self.price_cents

    def to_dict(self, expand: bool = False) -> dict:
        data = {
            "id": self.id,
            "sale_id": self.sale_id,
            "product_id": self.product_id,
            "quantity": self.quantity,
            "price_cents": self.price_cents,
            "line_total_cents": self.line_total_cents,
            "version_id": self.version_id,
            "created_at": to_utc_z(self.created_at),
        }
        if expand:
            data["product"] = self.product.to_dict() if self.product else None
            data["sale"] = self.sale.to_dict() if self.sale else None
        return data
