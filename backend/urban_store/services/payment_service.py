# Overview: Service-layer operations for customer payments against credit balances.

"""
Payment Processing Service

WHY: Customers who bought on credit pay down their balance over time,
in full or in parts.

DESIGN PRINCIPLES:
- A payment can never exceed the balance at the moment it is applied
- Balance change and payment history row commit together
- Clearing the debt clears any pending due-date reminder
"""

from __future__ import annotations

from sqlalchemy import func
from sqlalchemy.orm import Session

from ..errors import InvalidRequest, NotFound
from ..models import Customer, CustomerCreditEntry, CustomerPayment, Sale
from urban_store.time_utils import utcnow
from .concurrency import begin_write, lock_for_update, run_in_transaction


MAX_NOTE_LENGTH = 255


def register_payment(
    session: Session,
    *,
    customer_id: int,
    amount_cents: int,
    note: str | None = None,
) -> Customer:
    """
    Apply a payment to a customer's balance.

    Args:
        session: Store session the whole operation runs in
        customer_id: Customer paying
        amount_cents: Amount paid (in cents), > 0 and <= current balance
        note: Free text kept with the payment (optional)

    Returns:
        The updated Customer

    Raises:
        NotFound: customer does not exist
        InvalidRequest: amount not positive, or exceeds pending debt
        TransactionFailure: the store could not commit
    """
    def _op():
        begin_write(session)

        customer = lock_for_update(session.query(Customer).filter_by(id=customer_id)).first()
        if not customer:
            raise NotFound(f"Customer {customer_id} not found", details={"customer_id": customer_id})

        if isinstance(amount_cents, bool) or not isinstance(amount_cents, int):
            raise InvalidRequest("amount_cents must be an integer")

        if amount_cents <= 0:
            raise InvalidRequest("Payment amount must be positive")

        if amount_cents > customer.balance_cents:
            raise InvalidRequest(
                "Payment amount exceeds pending debt",
                details={"balance_cents": customer.balance_cents, "amount_cents": amount_cents},
            )

        clean_note = (note or "").strip() or None
        if clean_note and len(clean_note) > MAX_NOTE_LENGTH:
            raise InvalidRequest(f"note exceeds max length {MAX_NOTE_LENGTH}")

        customer.balance_cents -= amount_cents
        session.add(CustomerPayment(
            customer_id=customer.id,
            amount_cents=amount_cents,
            note=clean_note,
            paid_at=utcnow(),
        ))

        # A settled account has no pending payment date to remind about
        if customer.balance_cents == 0:
            customer.next_payment_date = None
            customer.payment_reminder_sent = False

        session.commit()
        return customer

    return run_in_transaction(session, _op, description="Payment")


def reconcile_balance(session: Session, customer_id: int) -> dict:
    """
    Recompute a customer's balance from history.

    Returns the stored balance, the balance derived from credit sales minus
    payments, and whether they agree. Read-only.
    """
    customer = session.get(Customer, customer_id)
    if not customer:
        raise NotFound(f"Customer {customer_id} not found")

    credit_total = (
        session.query(func.coalesce(func.sum(Sale.total_cents), 0))
        .join(CustomerCreditEntry, CustomerCreditEntry.sale_id == Sale.id)
        .filter(CustomerCreditEntry.customer_id == customer_id)
        .scalar()
    )
    paid_total = (
        session.query(func.coalesce(func.sum(CustomerPayment.amount_cents), 0))
        .filter(CustomerPayment.customer_id == customer_id)
        .scalar()
    )
    expected = int(credit_total) - int(paid_total)
    return {
        "customer_id": customer_id,
        "balance_cents": customer.balance_cents,
        "credit_total_cents": int(credit_total),
        "paid_total_cents": int(paid_total),
        "expected_balance_cents": expected,
        "consistent": expected == customer.balance_cents,
    }
