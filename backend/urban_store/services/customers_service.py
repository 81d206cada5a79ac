# backend/urban_store/services/customers_service.py
"""
Customers Service

Admin CRUD over the credit ledger's account holders.

balance_cents is never writable here. It moves only through
sales_service.register_sale and payment_service.register_payment.
"""
from __future__ import annotations

from sqlalchemy import func
from sqlalchemy.orm import Session

from ..errors import InvalidRequest, NotFound
from ..models import Customer, CustomerCreditEntry
from .pagination import paginate_query

CUSTOMER_MUTABLE_FIELDS = {"name", "whatsapp_number", "notes", "next_payment_date"}


def apply_customer_patch(c: Customer, patch: dict) -> None:
    for k, v in patch.items():
        if k not in CUSTOMER_MUTABLE_FIELDS:
            continue
        if k == "next_payment_date" and v != c.next_payment_date:
            # New promise date -> a fresh due-date reminder is owed
            c.payment_reminder_sent = False
        setattr(c, k, v)


def list_customers(
    session: Session,
    *,
    search: str | None = None,
    has_debt: bool = False,
    page: int | None = None,
    per_page: int | None = None,
) -> dict:
    """
    Customer listing, biggest debt first then by name.
    """
    query = session.query(Customer)
    if search:
        query = query.filter(Customer.name.ilike(f"%{search.strip()}%"))
    if has_debt:
        query = query.filter(Customer.balance_cents > 0)

    query = query.order_by(Customer.balance_cents.desc(), Customer.name.asc(), Customer.id.asc())
    return paginate_query(query, page=page, per_page=per_page)


def get_customer(session: Session, customer_id: int) -> Customer:
    c = session.get(Customer, customer_id)
    if not c:
        raise NotFound(f"Customer {customer_id} not found")
    return c


def get_customer_detail(session: Session, customer_id: int) -> dict:
    """Customer with payment history and credit sales (newest sale first)."""
    c = get_customer(session, customer_id)
    data = c.to_dict(include_history=True)
    data["credit_sales"] = [
        entry.sale.to_dict() for entry in sorted(c.credit_entries, key=lambda e: e.id, reverse=True)
    ]
    return data


def create_customer(session: Session, *, patch: dict) -> dict:
    c = Customer(
        name=patch["name"],
        whatsapp_number=patch["whatsapp_number"],
        notes=patch.get("notes"),
        next_payment_date=patch.get("next_payment_date"),
        balance_cents=0,
        payment_reminder_sent=False,
    )
    session.add(c)
    session.commit()
    return c.to_dict()


def update_customer(session: Session, *, customer_id: int, patch: dict) -> dict:
    c = get_customer(session, customer_id)
    apply_customer_patch(c, patch)
    session.commit()
    return c.to_dict()


def delete_customer(session: Session, *, customer_id: int) -> None:
    """
    Delete a customer.

    Raises:
        NotFound: If customer doesn't exist
        InvalidRequest: If the customer still owes money, or has credit
            sales on record (those sales must keep pointing at a customer)
    """
    c = get_customer(session, customer_id)
    if c.balance_cents > 0:
        raise InvalidRequest(
            "Cannot delete a customer with pending debt",
            details={"balance_cents": c.balance_cents},
        )

    has_credit_history = (
        session.query(func.count(CustomerCreditEntry.id))
        .filter(CustomerCreditEntry.customer_id == c.id)
        .scalar()
    )
    if has_credit_history:
        raise InvalidRequest("Cannot delete a customer with credit sales on record")

    session.delete(c)
    session.commit()


def total_outstanding_debt(session: Session) -> int:
    return int(session.query(func.coalesce(func.sum(Customer.balance_cents), 0)).scalar())
