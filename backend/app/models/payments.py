from __future__ import annotations

from ..extensions import db
from app.time_utils import to_utc_z


PAYMENT_METHODS = ("CASH", "CARD", "CHECK", "GIFT_CARD", "STORE_CREDIT")
PAYMENT_STATUSES = ("pending", "completed", "refunded", "voided")
RECEIPT_STATUSES = ("issued", "sent", "voided")


class Payment(db.Model):
    """
    Money tendered against a sale.

    A sale can carry several payments (split tender). Only "completed"
    payments count towards the amount paid; the sale total itself is never
    touched by a payment.
    """
    __tablename__ = "payments"
    __table_args__ = (
        db.CheckConstraint("amount_cents > 0", name="ck_payments_amount_positive"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    sale_id = db.Column(db.Integer, db.ForeignKey("sales.id"), nullable=False, index=True)

    method = db.Column(db.String(32), nullable=False, index=True)
    amount_cents = db.Column(db.Integer, nullable=False)
    status = db.Column(db.String(16), nullable=False, default="completed", index=True)

    # Card auth code, check number, processor reference
    transaction_id = db.Column(db.String(128), nullable=True)

    created_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), index=True)
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )
    version_id = db.Column(db.Integer, nullable=False, default=1)

    sale = db.relationship("Sale", backref=db.backref("payments", lazy=True))
    created_by = db.relationship("User")
    __mapper_args__ = {"version_id_col": version_id}

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "sale_id": self.sale_id,
            "method": self.method,
            "amount_cents": self.amount_cents,
            "status": self.status,
            "transaction_id": self.transaction_id,
            "created_by_user_id": self.created_by_user_id,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
            "version_id": self.version_id,
        }


class Receipt(db.Model):
    """Proof of a sale handed to the customer, printed or as a link."""
    __tablename__ = "receipts"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    sale_id = db.Column(db.Integer, db.ForeignKey("sales.id"), nullable=False, index=True)

    method = db.Column(db.String(32), nullable=False)
    url = db.Column(db.String(512), nullable=True)
    status = db.Column(db.String(16), nullable=False, default="issued", index=True)

    created_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    sale = db.relationship("Sale", backref=db.backref("receipts", lazy=True))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "sale_id": self.sale_id,
            "method": self.method,
            "url": self.url,
            "status": self.status,
            "created_by_user_id": self.created_by_user_id,
            "created_at": to_utc_z(self.created_at),
        }
