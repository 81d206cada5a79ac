from __future__ import annotations

from ..extensions import db
from urban_store.time_utils import to_utc_z


class Customer(db.Model):
    """
    Customer master data and credit account.

    WHY: Credit sales defer payment; the customer's balance is what they
    currently owe. It only moves through two coordinators:
    - sales_service.register_sale (credit sale, increases)
    - payment_service.register_payment (payment, decreases)

    INVARIANT: balance_cents == sum(credit sale totals) - sum(payments),
    and balance_cents >= 0 (also enforced by a CHECK constraint).

    Reminder state:
    - last_reminder_at: last successful debt reminder
    - next_payment_date / payment_reminder_sent: promised payment date and
      whether the due-date reminder already went out
    """
    __tablename__ = "customers"
    __table_args__ = (
        db.CheckConstraint("balance_cents >= 0", name="ck_customers_balance_non_negative"),
        db.Index("ix_customers_balance", "balance_cents"),
        db.Index("ix_customers_last_reminder", "last_reminder_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    name = db.Column(db.String(255), nullable=False, index=True)
    whatsapp_number = db.Column(db.String(32), nullable=False)
    notes = db.Column(db.Text, nullable=True)

    balance_cents = db.Column(db.Integer, nullable=False, default=0)

    last_reminder_at = db.Column(db.DateTime(timezone=True), nullable=True)
    next_payment_date = db.Column(db.DateTime(timezone=True), nullable=True)
    payment_reminder_sent = db.Column(db.Boolean, nullable=False, default=False)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())
    version_id = db.Column(db.Integer, nullable=False, default=1)

    payments = db.relationship(
        "CustomerPayment",
        backref="customer",
        order_by="CustomerPayment.id",
        lazy=True,
        cascade="all, delete-orphan",
    )
    credit_entries = db.relationship(
        "CustomerCreditEntry",
        backref="customer",
        order_by="CustomerCreditEntry.id",
        lazy=True,
        cascade="all, delete-orphan",
    )
    __mapper_args__ = {"version_id_col": version_id}

    def __repr__(self) -> str:
        return f"<Customer id={self.id} name={self.name!r} balance_cents={self.balance_cents}>"

    def to_dict(self, include_history: bool = False) -> dict:
        data = {
            "id": self.id,
            "name": self.name,
            "whatsapp_number": self.whatsapp_number,
            "notes": self.notes,
            "balance_cents": self.balance_cents,
            "last_reminder_at": to_utc_z(self.last_reminder_at) if self.last_reminder_at else None,
            "next_payment_date": to_utc_z(self.next_payment_date) if self.next_payment_date else None,
            "payment_reminder_sent": self.payment_reminder_sent,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
            "version_id": self.version_id,
        }
        if include_history:
            data["payment_history"] = [p.to_dict() for p in self.payments]
            data["credit_history"] = [e.sale_id for e in self.credit_entries]
        return data


class CustomerPayment(db.Model):
    """
    Append-only payment history for a customer's credit account.

    Rows are written by payment_service.register_payment in the same
    transaction that lowers the balance.
    """
    __tablename__ = "customer_payments"
    __table_args__ = (
        db.CheckConstraint("amount_cents > 0", name="ck_customer_payments_amount_positive"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    customer_id = db.Column(db.Integer, db.ForeignKey("customers.id"), nullable=False, index=True)

    amount_cents = db.Column(db.Integer, nullable=False)
    note = db.Column(db.String(255), nullable=True)
    paid_at = db.Column(db.DateTime(timezone=True), nullable=False)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "customer_id": self.customer_id,
            "amount_cents": self.amount_cents,
            "note": self.note,
            "paid_at": to_utc_z(self.paid_at),
        }


class CustomerCreditEntry(db.Model):
    """
    Ordered credit history: one row per committed credit sale.
    """
    __tablename__ = "customer_credit_entries"
    __table_args__ = (
        db.UniqueConstraint("sale_id", name="uq_customer_credit_entries_sale"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    customer_id = db.Column(db.Integer, db.ForeignKey("customers.id"), nullable=False, index=True)
    sale_id = db.Column(db.Integer, db.ForeignKey("sales.id"), nullable=False)
    recorded_at = db.Column(db.DateTime(timezone=True), nullable=False)

    sale = db.relationship("Sale", lazy=True)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "customer_id": self.customer_id,
            "sale_id": self.sale_id,
            "recorded_at": to_utc_z(self.recorded_at),
        }
