from __future__ import annotations

from ..extensions import db
from urban_store.time_utils import to_utc_z

class Sale(db.Model):
    """
    Committed point-of-sale transaction.

    WHY: A sale is written once, by sales_service.register_sale, in the same
    transaction that decrements stock and (for credit sales) raises the
    customer's balance. Afterwards only `status` may change.

    customer_id is required iff is_credit (CHECK constraint below).
    """
    __tablename__ = "sales"
    __table_args__ = (
        db.CheckConstraint(
            "(is_credit AND customer_id IS NOT NULL) OR (NOT is_credit AND customer_id IS NULL)",
            name="ck_sales_customer_iff_credit",
        ),
        db.CheckConstraint("total_cents >= 0", name="ck_sales_total_non_negative"),
        db.Index("ix_sales_sold_at", "sold_at"),
        db.Index("ix_sales_method_sold_at", "payment_method", "sold_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    payment_method = db.Column(db.String(16), nullable=False)  # CASH, CARD, TRANSFER, CREDIT
    total_cents = db.Column(db.Integer, nullable=False)

    is_credit = db.Column(db.Boolean, nullable=False, default=False, index=True)
    customer_id = db.Column(db.Integer, db.ForeignKey("customers.id"), nullable=True, index=True)

    # Lifecycle status: COMPLETED, PENDING, CANCELLED
    status = db.Column(db.String(16), nullable=False, default="COMPLETED", index=True)

    sold_at = db.Column(db.DateTime(timezone=True), nullable=False)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    customer = db.relationship("Customer", lazy=True)
    lines = db.relationship(
        "SaleLine",
        backref="sale",
        order_by="SaleLine.id",
        lazy=True,
        cascade="all, delete-orphan",
    )

    def to_dict(self, include_lines: bool = True) -> dict:
        data = {
            "id": self.id,
            "payment_method": self.payment_method,
            "total_cents": self.total_cents,
            "is_credit": self.is_credit,
            "customer_id": self.customer_id,
            "customer": (
                {"id": self.customer.id, "name": self.customer.name, "whatsapp_number": self.customer.whatsapp_number}
                if self.customer is not None else None
            ),
            "status": self.status,
            "sold_at": to_utc_z(self.sold_at),
            "created_at": to_utc_z(self.created_at),
        }
        if include_lines:
            data["lines"] = [line.to_dict() for line in self.lines]
        return data


class SaleLine(db.Model):
    """
    Sale line item.

    product_name is a copy taken at sale time, not a join: renaming or
    deleting the product later must not change how the sale reads.
    """
    __tablename__ = "sale_lines"
    __table_args__ = (
        db.CheckConstraint("quantity >= 1", name="ck_sale_lines_quantity_positive"),
        db.CheckConstraint("unit_price_cents >= 0", name="ck_sale_lines_price_non_negative"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    sale_id = db.Column(db.Integer, db.ForeignKey("sales.id"), nullable=False, index=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id", ondelete="SET NULL"), nullable=True, index=True)

    product_name = db.Column(db.String(255), nullable=False)
    size = db.Column(db.String(32), nullable=False, default="")
    quantity = db.Column(db.Integer, nullable=False)
    unit_price_cents = db.Column(db.Integer, nullable=False)
    subtotal_cents = db.Column(db.Integer, nullable=False)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "sale_id": self.sale_id,
            "product_id": self.product_id,
            "product_name": self.product_name,
            "size": self.size,
            "quantity": self.quantity,
            "unit_price_cents": self.unit_price_cents,
            "subtotal_cents": self.subtotal_cents,
        }
