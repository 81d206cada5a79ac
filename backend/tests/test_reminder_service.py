"""
Reminder eligibility: debt interval window and due-date rule, predicate vs query.
"""

from datetime import datetime, timedelta

import pytest

from urban_store.models import Customer
from urban_store.services import customers_service, reminder_service
from urban_store.services.reminder_service import (
    debt_reminder_candidates,
    is_due_for_debt_reminder,
    is_due_for_scheduled_reminder,
    scheduled_payment_candidates,
)

NOW = datetime(2026, 3, 15, 12, 0, 0)


def _ids(customers):
    return [c.id for c in customers]


def test_debt_rule_window(db_session, make_customer):
    never = make_customer(name="Never reminded", balance_cents=500)
    exactly_week = make_customer(name="Week ago", balance_cents=300, last_reminder_at=NOW - timedelta(days=7))
    recent = make_customer(name="Recent", balance_cents=900, last_reminder_at=NOW - timedelta(days=6, hours=23))
    long_ago = make_customer(name="Long ago", balance_cents=700, last_reminder_at=NOW - timedelta(days=30))
    no_debt = make_customer(name="Settled", balance_cents=0)

    candidates = debt_reminder_candidates(db_session, now=NOW, interval_days=7)

    # Highest balance first
    assert _ids(candidates) == [long_ago.id, never.id, exactly_week.id]
    assert recent.id not in _ids(candidates)
    assert no_debt.id not in _ids(candidates)


def test_interval_is_configurable(db_session, make_customer):
    customer = make_customer(balance_cents=100, last_reminder_at=NOW - timedelta(days=3))

    assert debt_reminder_candidates(db_session, now=NOW, interval_days=7) == []
    assert _ids(debt_reminder_candidates(db_session, now=NOW, interval_days=3)) == [customer.id]


def test_scheduled_rule(db_session, make_customer):
    due = make_customer(name="Due", balance_cents=100, next_payment_date=NOW - timedelta(days=1))
    due_now = make_customer(name="Due now", balance_cents=100, next_payment_date=NOW)
    future = make_customer(name="Future", balance_cents=100, next_payment_date=NOW + timedelta(hours=1))
    already_sent = make_customer(
        name="Sent", balance_cents=100, next_payment_date=NOW - timedelta(days=2), payment_reminder_sent=True
    )
    settled = make_customer(name="Settled", balance_cents=0, next_payment_date=NOW - timedelta(days=1))
    no_date = make_customer(name="No date", balance_cents=100)

    candidates = scheduled_payment_candidates(db_session, now=NOW)

    # Oldest promise first
    assert _ids(candidates) == [due.id, due_now.id]
    for excluded in (future, already_sent, settled, no_date):
        assert excluded.id not in _ids(candidates)


def test_predicates_agree_with_queries(db_session, make_customer):
    for days_ago, balance, sent in [(None, 100, False), (2, 100, False), (8, 0, False), (10, 50, True), (1, 0, True)]:
        make_customer(
            balance_cents=balance,
            last_reminder_at=NOW - timedelta(days=days_ago) if days_ago is not None else None,
            next_payment_date=NOW - timedelta(days=days_ago) if days_ago is not None else None,
            payment_reminder_sent=sent,
        )

    customers = db_session.query(Customer).all()

    debt_expected = {c.id for c in customers if is_due_for_debt_reminder(c, NOW)}
    scheduled_expected = {c.id for c in customers if is_due_for_scheduled_reminder(c, NOW)}

    assert set(_ids(debt_reminder_candidates(db_session, now=NOW))) == debt_expected
    assert set(_ids(scheduled_payment_candidates(db_session, now=NOW))) == scheduled_expected


def test_evaluation_is_read_only(db_session, make_customer):
    customer = make_customer(balance_cents=100, next_payment_date=NOW - timedelta(days=1))
    version = customer.version_id

    debt_reminder_candidates(db_session, now=NOW)
    scheduled_payment_candidates(db_session, now=NOW)
    db_session.commit()

    refreshed = db_session.get(Customer, customer.id)
    assert refreshed.version_id == version
    assert refreshed.last_reminder_at is None
    assert refreshed.payment_reminder_sent is False


def test_candidates_for_dispatches_on_kind(db_session, make_customer):
    customer = make_customer(balance_cents=100)

    assert _ids(reminder_service.candidates_for(db_session, "debt", now=NOW)) == [customer.id]
    assert reminder_service.candidates_for(db_session, "SCHEDULED", now=NOW) == []
    with pytest.raises(ValueError):
        reminder_service.candidates_for(db_session, "weekly", now=NOW)


def test_new_promise_date_makes_reminder_due_again(db_session, make_customer):
    customer = make_customer(
        balance_cents=100, next_payment_date=NOW - timedelta(days=5), payment_reminder_sent=True
    )
    assert scheduled_payment_candidates(db_session, now=NOW) == []

    customers_service.update_customer(
        db_session, customer_id=customer.id, patch={"next_payment_date": NOW - timedelta(days=1)}
    )

    assert _ids(scheduled_payment_candidates(db_session, now=NOW)) == [customer.id]
