"""
Payment coordinator tests: balance bounds, history and reminder state reset.
"""

from datetime import timedelta

import pytest

from urban_store.errors import InvalidRequest, NotFound
from urban_store.models import Customer, CustomerPayment
from urban_store.services.payment_service import reconcile_balance, register_payment
from urban_store.services.sales_service import register_sale
from urban_store.time_utils import utcnow


@pytest.fixture
def indebted_customer(db_session, make_product, make_customer):
    """Customer owing 5000 cents through two real credit sales."""
    product = make_product(stock=10)
    customer = make_customer(next_payment_date=utcnow() + timedelta(days=3))
    for qty in (2, 3):
        register_sale(
            db_session,
            items=[{"product_id": product.id, "quantity": qty, "unit_price_cents": 1000}],
            payment_method="CREDIT",
            is_credit=True,
            customer_id=customer.id,
        )
    return db_session.get(Customer, customer.id)


def test_partial_payment_lowers_balance_and_records_history(db_session, indebted_customer):
    customer = register_payment(
        db_session, customer_id=indebted_customer.id, amount_cents=2000, note="  Friday cash  "
    )

    assert customer.balance_cents == 3000
    assert len(customer.payments) == 1
    assert customer.payments[0].amount_cents == 2000
    assert customer.payments[0].note == "Friday cash"
    # Still owes money -> promise date stays
    assert customer.next_payment_date is not None


def test_full_payment_clears_reminder_state(db_session, indebted_customer):
    indebted_customer.payment_reminder_sent = True
    db_session.commit()

    customer = register_payment(db_session, customer_id=indebted_customer.id, amount_cents=5000)

    assert customer.balance_cents == 0
    assert customer.next_payment_date is None
    assert customer.payment_reminder_sent is False


def test_overpayment_is_rejected(db_session, indebted_customer):
    with pytest.raises(InvalidRequest) as excinfo:
        register_payment(db_session, customer_id=indebted_customer.id, amount_cents=5001)

    assert excinfo.value.message == "Payment amount exceeds pending debt"
    assert excinfo.value.details == {"balance_cents": 5000, "amount_cents": 5001}
    assert db_session.get(Customer, indebted_customer.id).balance_cents == 5000
    assert db_session.query(CustomerPayment).count() == 0


@pytest.mark.parametrize("amount", [0, -100, 10.5, "100", None, True])
def test_invalid_amounts_are_rejected(db_session, indebted_customer, amount):
    with pytest.raises(InvalidRequest):
        register_payment(db_session, customer_id=indebted_customer.id, amount_cents=amount)

    assert db_session.get(Customer, indebted_customer.id).balance_cents == 5000


def test_payment_by_customer_without_debt_is_rejected(db_session, make_customer):
    customer = make_customer()

    with pytest.raises(InvalidRequest):
        register_payment(db_session, customer_id=customer.id, amount_cents=100)


def test_unknown_customer_is_not_found(db_session):
    with pytest.raises(NotFound):
        register_payment(db_session, customer_id=12345, amount_cents=100)


def test_long_note_is_rejected(db_session, indebted_customer):
    with pytest.raises(InvalidRequest):
        register_payment(db_session, customer_id=indebted_customer.id, amount_cents=100, note="x" * 256)


def test_balance_reconciles_with_history(db_session, indebted_customer):
    register_payment(db_session, customer_id=indebted_customer.id, amount_cents=1500)
    register_payment(db_session, customer_id=indebted_customer.id, amount_cents=500)

    report = reconcile_balance(db_session, indebted_customer.id)

    assert report["balance_cents"] == 3000
    assert report["credit_total_cents"] == 5000
    assert report["paid_total_cents"] == 2000
    assert report["expected_balance_cents"] == 3000
    assert report["consistent"] is True
