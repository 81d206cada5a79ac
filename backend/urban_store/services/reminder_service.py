# Overview: Read-only eligibility rules for debt and due-date reminders.

"""
Reminder eligibility

Two independent rules, each evaluated by its own trigger (weekly for debt
reminders, daily for due-date reminders). Both only read customers.

- Debt reminder: balance > 0 and no reminder in the last
  REMINDER_INTERVAL_DAYS (never reminded counts as due).
- Due-date reminder: next_payment_date has arrived, balance > 0 and the
  reminder for that date has not gone out yet.

Each rule exists twice: as a predicate over one customer and as a query over
the table. The two must agree; tests check them against each other.
"""

from __future__ import annotations

from datetime import datetime, timedelta

from sqlalchemy import or_
from sqlalchemy.orm import Session

from ..models import Customer
from urban_store.time_utils import utcnow

DEFAULT_REMINDER_INTERVAL_DAYS = 7

KIND_DEBT = "DEBT"
KIND_SCHEDULED = "SCHEDULED"


def debt_reminder_cutoff(now: datetime, interval_days: int = DEFAULT_REMINDER_INTERVAL_DAYS) -> datetime:
    return now - timedelta(days=interval_days)


def is_due_for_debt_reminder(
    customer: Customer,
    now: datetime | None = None,
    interval_days: int = DEFAULT_REMINDER_INTERVAL_DAYS,
) -> bool:
    now = now or utcnow()
    if customer.balance_cents <= 0:
        return False
    if customer.last_reminder_at is None:
        return True
    return customer.last_reminder_at <= debt_reminder_cutoff(now, interval_days)


def is_due_for_scheduled_reminder(customer: Customer, now: datetime | None = None) -> bool:
    now = now or utcnow()
    return (
        customer.next_payment_date is not None
        and customer.next_payment_date <= now
        and customer.balance_cents > 0
        and not customer.payment_reminder_sent
    )


def debt_reminder_candidates(
    session: Session,
    *,
    now: datetime | None = None,
    interval_days: int = DEFAULT_REMINDER_INTERVAL_DAYS,
) -> list[Customer]:
    """Customers due for a debt reminder, highest balance first."""
    cutoff = debt_reminder_cutoff(now or utcnow(), interval_days)
    return (
        session.query(Customer)
        .filter(
            Customer.balance_cents > 0,
            or_(Customer.last_reminder_at.is_(None), Customer.last_reminder_at <= cutoff),
        )
        .order_by(Customer.balance_cents.desc(), Customer.id.asc())
        .all()
    )


def scheduled_payment_candidates(session: Session, *, now: datetime | None = None) -> list[Customer]:
    """Customers whose promised payment date has arrived, oldest date first."""
    now = now or utcnow()
    return (
        session.query(Customer)
        .filter(
            Customer.next_payment_date.isnot(None),
            Customer.next_payment_date <= now,
            Customer.balance_cents > 0,
            Customer.payment_reminder_sent.is_(False),
        )
        .order_by(Customer.next_payment_date.asc(), Customer.id.asc())
        .all()
    )


def candidates_for(session: Session, kind: str, *, now: datetime | None = None,
                   interval_days: int = DEFAULT_REMINDER_INTERVAL_DAYS) -> list[Customer]:
    kind = (kind or "").upper().strip()
    if kind == KIND_DEBT:
        return debt_reminder_candidates(session, now=now, interval_days=interval_days)
    if kind == KIND_SCHEDULED:
        return scheduled_payment_candidates(session, now=now)
    raise ValueError("kind must be DEBT or SCHEDULED")
