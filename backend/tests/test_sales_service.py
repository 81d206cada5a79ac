"""
Sale coordinator tests: totals, stock, credit balance and all-or-nothing commits.
"""

import pytest
from sqlalchemy.exc import OperationalError

from urban_store.errors import InsufficientStock, InvalidRequest, NotFound, TransactionFailure
from urban_store.models import Customer, CustomerCreditEntry, Product, Sale, SaleLine
from urban_store.services import products_service, sales_service
from urban_store.services.sales_service import register_sale
from urban_store.time_utils import utcnow


def _counts(session):
    return (
        session.query(Sale).count(),
        session.query(SaleLine).count(),
        session.query(CustomerCreditEntry).count(),
    )


def test_cash_sale_decrements_stock_and_totals_lines(db_session, make_product):
    tee = make_product(name="Basic Tee", stock=10)
    jeans = make_product(name="Slim Jeans", stock=5)

    sale = register_sale(
        db_session,
        items=[
            {"product_id": tee.id, "quantity": 2, "unit_price_cents": 29900, "size": "M"},
            {"product_id": jeans.id, "quantity": 1, "unit_price_cents": 69900, "size": "32"},
        ],
        payment_method="CASH",
    )

    assert sale.id is not None
    assert sale.payment_method == "CASH"
    assert sale.is_credit is False
    assert sale.customer_id is None
    assert sale.status == "COMPLETED"
    assert sale.total_cents == 2 * 29900 + 69900
    assert sale.total_cents == sum(line.subtotal_cents for line in sale.lines)
    assert [line.product_name for line in sale.lines] == ["Basic Tee", "Slim Jeans"]
    assert [line.size for line in sale.lines] == ["M", "32"]

    assert db_session.get(Product, tee.id).stock == 8
    assert db_session.get(Product, jeans.id).stock == 4


def test_credit_sale_raises_customer_balance(db_session, make_product, make_customer):
    product = make_product(stock=3)
    customer = make_customer()

    sale = register_sale(
        db_session,
        items=[{"product_id": product.id, "quantity": 3, "unit_price_cents": 1500}],
        payment_method="CREDIT",
        is_credit=True,
        customer_id=customer.id,
    )

    customer = db_session.get(Customer, customer.id)
    assert sale.customer_id == customer.id
    assert customer.balance_cents == 4500
    assert [entry.sale_id for entry in customer.credit_entries] == [sale.id]
    assert db_session.get(Product, product.id).stock == 0


def test_credit_sale_with_cash_label_is_allowed(db_session, make_product, make_customer):
    product = make_product()
    customer = make_customer()

    sale = register_sale(
        db_session,
        items=[{"product_id": product.id, "quantity": 1, "unit_price_cents": 1000}],
        payment_method="cash",
        is_credit=True,
        customer_id=customer.id,
    )

    assert sale.is_credit is True
    assert db_session.get(Customer, customer.id).balance_cents == 1000


def test_credit_sale_without_customer_is_rejected(db_session, make_product):
    product = make_product(stock=5)

    with pytest.raises(InvalidRequest):
        register_sale(
            db_session,
            items=[{"product_id": product.id, "quantity": 1, "unit_price_cents": 1000}],
            payment_method="CREDIT",
            is_credit=True,
        )

    assert db_session.get(Product, product.id).stock == 5
    assert _counts(db_session) == (0, 0, 0)


def test_oversell_is_rejected_without_side_effects(db_session, make_product):
    product = make_product(name="Bomber Jacket", stock=2)

    with pytest.raises(InsufficientStock) as excinfo:
        register_sale(
            db_session,
            items=[{"product_id": product.id, "quantity": 3, "unit_price_cents": 89900}],
            payment_method="CARD",
        )

    err = excinfo.value
    assert err.status_code == 400
    assert err.details == {
        "product_id": product.id,
        "product_name": "Bomber Jacket",
        "requested": 3,
        "available": 2,
    }
    assert "Bomber Jacket" in err.message
    assert db_session.get(Product, product.id).stock == 2
    assert _counts(db_session) == (0, 0, 0)


def test_repeated_product_lines_are_checked_together(db_session, make_product):
    product = make_product(stock=3)

    with pytest.raises(InsufficientStock) as excinfo:
        register_sale(
            db_session,
            items=[
                {"product_id": product.id, "quantity": 2, "unit_price_cents": 1000, "size": "S"},
                {"product_id": product.id, "quantity": 2, "unit_price_cents": 1000, "size": "M"},
            ],
            payment_method="CASH",
        )

    assert excinfo.value.details["requested"] == 4
    assert db_session.get(Product, product.id).stock == 3


def test_failing_line_rolls_back_earlier_lines(db_session, make_product):
    plenty = make_product(stock=10)
    scarce = make_product(stock=1)

    with pytest.raises(InsufficientStock):
        register_sale(
            db_session,
            items=[
                {"product_id": plenty.id, "quantity": 4, "unit_price_cents": 1000},
                {"product_id": scarce.id, "quantity": 2, "unit_price_cents": 1000},
            ],
            payment_method="CASH",
        )

    assert db_session.get(Product, plenty.id).stock == 10
    assert db_session.get(Product, scarce.id).stock == 1


def test_unknown_product_is_not_found(db_session, make_product):
    product = make_product(stock=4)

    with pytest.raises(NotFound):
        register_sale(
            db_session,
            items=[
                {"product_id": product.id, "quantity": 1, "unit_price_cents": 1000},
                {"product_id": 9999, "quantity": 1, "unit_price_cents": 1000},
            ],
            payment_method="CASH",
        )

    assert db_session.get(Product, product.id).stock == 4
    assert _counts(db_session) == (0, 0, 0)


def test_unknown_customer_rolls_back_stock(db_session, make_product):
    product = make_product(stock=4)

    with pytest.raises(NotFound):
        register_sale(
            db_session,
            items=[{"product_id": product.id, "quantity": 2, "unit_price_cents": 1000}],
            payment_method="CREDIT",
            is_credit=True,
            customer_id=4242,
        )

    assert db_session.get(Product, product.id).stock == 4
    assert _counts(db_session) == (0, 0, 0)


@pytest.mark.parametrize("items", [
    [],
    None,
    [{"product_id": 1, "quantity": 0, "unit_price_cents": 100}],
    [{"product_id": 1, "quantity": 1.5, "unit_price_cents": 100}],
    [{"product_id": 1, "quantity": 1, "unit_price_cents": -1}],
    [{"product_id": 1, "quantity": 1}],
    [{"product_id": 2**63, "quantity": 1, "unit_price_cents": 100}],
    [{"product_id": 1, "quantity": 2**64, "unit_price_cents": 100}],
    ["not-an-object"],
])
def test_malformed_items_are_rejected(db_session, items):
    with pytest.raises(InvalidRequest):
        register_sale(db_session, items=items, payment_method="CASH")


@pytest.mark.parametrize("customer_id", ["1", [1], 0, 2**63, True])
def test_malformed_credit_customer_is_rejected(db_session, make_product, customer_id):
    product = make_product(stock=5)

    with pytest.raises(InvalidRequest):
        register_sale(
            db_session,
            items=[{"product_id": product.id, "quantity": 1, "unit_price_cents": 1000}],
            payment_method="CREDIT",
            is_credit=True,
            customer_id=customer_id,
        )

    assert db_session.get(Product, product.id).stock == 5
    assert _counts(db_session) == (0, 0, 0)


def test_payment_method_aliases_and_validation(db_session, make_product):
    product = make_product(stock=5)

    sale = register_sale(
        db_session,
        items=[{"product_id": product.id, "quantity": 1, "unit_price_cents": 1000}],
        payment_method="efectivo",
    )
    assert sale.payment_method == "CASH"

    with pytest.raises(InvalidRequest):
        register_sale(
            db_session,
            items=[{"product_id": product.id, "quantity": 1, "unit_price_cents": 1000}],
            payment_method="BITCOIN",
        )

    with pytest.raises(InvalidRequest):
        register_sale(
            db_session,
            items=[{"product_id": product.id, "quantity": 1, "unit_price_cents": 1000}],
            payment_method="CREDIT",
        )

    assert db_session.get(Product, product.id).stock == 4


def test_customer_is_ignored_on_non_credit_sale(db_session, make_product, make_customer):
    product = make_product()
    customer = make_customer()

    sale = register_sale(
        db_session,
        items=[{"product_id": product.id, "quantity": 1, "unit_price_cents": 1000}],
        payment_method="TRANSFER",
        customer_id=customer.id,
    )

    assert sale.customer_id is None
    assert db_session.get(Customer, customer.id).balance_cents == 0


def test_store_failure_becomes_transaction_failure(db_session, make_product, monkeypatch):
    product = make_product(stock=5)

    def locked_commit():
        raise OperationalError("COMMIT", {}, Exception("database is locked"))

    monkeypatch.setattr(db_session, "commit", locked_commit)

    with pytest.raises(TransactionFailure) as excinfo:
        register_sale(
            db_session,
            items=[{"product_id": product.id, "quantity": 1, "unit_price_cents": 1000}],
            payment_method="CASH",
        )

    monkeypatch.undo()
    assert excinfo.value.status_code == 503
    assert excinfo.value.to_dict() == {"error": "Transaction could not be completed, please retry"}
    assert db_session.get(Product, product.id).stock == 5
    assert db_session.query(Sale).count() == 0


def test_line_snapshot_survives_product_rename_and_delete(db_session, make_product):
    product = make_product(name="Launch Name", stock=5)
    sale = register_sale(
        db_session,
        items=[{"product_id": product.id, "quantity": 1, "unit_price_cents": 1000}],
        payment_method="CASH",
    )
    sale_id = sale.id

    products_service.update_product(db_session, product_id=product.id, patch={"name": "Renamed"})
    line = db_session.query(SaleLine).filter_by(sale_id=sale_id).one()
    assert line.product_name == "Launch Name"

    products_service.delete_product(db_session, product_id=product.id)
    db_session.expire_all()
    line = db_session.query(SaleLine).filter_by(sale_id=sale_id).one()
    assert line.product_id is None
    assert line.product_name == "Launch Name"


def test_reading_sales_has_no_side_effects(db_session, make_product):
    product = make_product(stock=5)
    sale = register_sale(
        db_session,
        items=[{"product_id": product.id, "quantity": 2, "unit_price_cents": 1000}],
        payment_method="CARD",
    )

    first = sales_service.get_sale(db_session, sale.id).to_dict()
    second = sales_service.get_sale(db_session, sale.id).to_dict()
    assert first == second
    assert db_session.get(Product, product.id).stock == 3

    with pytest.raises(NotFound):
        sales_service.get_sale(db_session, 9999)


def test_list_today_and_stats(db_session, make_product, make_customer):
    product = make_product(stock=20)
    customer = make_customer()
    now = utcnow()

    def sell(method, qty, **kwargs):
        return register_sale(
            db_session,
            items=[{"product_id": product.id, "quantity": qty, "unit_price_cents": 1000}],
            payment_method=method,
            sold_at=now,
            **kwargs,
        )

    sell("CASH", 1)
    sell("CASH", 2)
    sell("CARD", 1)
    sell("CREDIT", 3, is_credit=True, customer_id=customer.id)

    listing = sales_service.list_sales(db_session, payment_method="cash")
    assert listing["count"] == 2

    paged = sales_service.list_sales(db_session, page=1, per_page=3)
    assert paged["count"] == 3
    assert paged["pagination"]["total"] == 4
    assert paged["pagination"]["has_next"] is True

    by_customer = sales_service.list_sales(db_session, customer_id=customer.id)
    assert by_customer["count"] == 1

    today = sales_service.todays_sales(db_session, now)
    assert today["count"] == 4
    assert today["total_cents"] == 7000

    stats = {row["payment_method"]: row for row in sales_service.sales_stats(db_session)}
    assert stats["CASH"] == {"payment_method": "CASH", "count": 2, "total_cents": 3000}
    assert stats["CREDIT"]["total_cents"] == 3000
