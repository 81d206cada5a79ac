from datetime import datetime, timedelta

from urban_store.models import NotificationLog
from urban_store.services import notification_service
from urban_store.services.dashboard_service import dashboard_metrics
from urban_store.services.sales_service import register_sale

NOW = datetime(2026, 3, 15, 12, 0, 0)


def _log(session, *, customer_id, status, days_ago, kind="DEBT"):
    log = NotificationLog(
        customer_id=customer_id,
        customer_name=f"Customer {customer_id}",
        whatsapp_number="+52 55 0000 0000",
        kind=kind,
        message="Reminder",
        status=status,
        sent_at=NOW - timedelta(days=days_ago),
    )
    session.add(log)
    session.commit()
    return log


def test_list_logs_newest_first_with_filters(db_session):
    old = _log(db_session, customer_id=1, status="SENT", days_ago=10)
    failed = _log(db_session, customer_id=2, status="FAILED", days_ago=2)
    recent = _log(db_session, customer_id=1, status="SENT", days_ago=1, kind="SCHEDULED")

    everything = notification_service.list_logs(db_session)
    assert [item["id"] for item in everything["items"]] == [recent.id, failed.id, old.id]

    assert notification_service.list_logs(db_session, status="failed")["count"] == 1
    assert notification_service.list_logs(db_session, customer_id=1)["count"] == 2
    assert notification_service.list_logs(db_session, kind="scheduled")["count"] == 1

    page = notification_service.list_logs(db_session, page=2, per_page=2)
    assert [item["id"] for item in page["items"]] == [old.id]


def test_stats_count_by_status_and_recent_window(db_session):
    _log(db_session, customer_id=1, status="SENT", days_ago=10)
    _log(db_session, customer_id=1, status="SENT", days_ago=3)
    _log(db_session, customer_id=2, status="FAILED", days_ago=1)

    stats = notification_service.notification_stats(db_session, NOW)

    assert stats["by_status"] == {"SENT": 2, "FAILED": 1, "PENDING": 0}
    assert stats["total"] == 3
    assert stats["last_7_days"] == 2


def test_dashboard_metrics(db_session, make_product, make_customer):
    tee = make_product(name="Tee", stock=10)
    make_product(name="Jacket", stock=3)
    debtor = make_customer(name="Debtor")

    register_sale(
        db_session,
        items=[{"product_id": tee.id, "quantity": 2, "unit_price_cents": 1500}],
        payment_method="CASH",
        sold_at=NOW,
    )
    register_sale(
        db_session,
        items=[{"product_id": tee.id, "quantity": 1, "unit_price_cents": 1500}],
        payment_method="CREDIT",
        is_credit=True,
        customer_id=debtor.id,
        sold_at=NOW - timedelta(days=3),
    )
    register_sale(
        db_session,
        items=[{"product_id": tee.id, "quantity": 1, "unit_price_cents": 1000}],
        payment_method="CARD",
        sold_at=NOW - timedelta(days=40),
    )

    metrics = dashboard_metrics(db_session, now=NOW, low_stock_threshold=5)

    assert metrics["today"] == {"count": 1, "total_cents": 3000}
    assert metrics["month"] == {"count": 2, "total_cents": 4500}
    assert metrics["total_sales_cents"] == 5500
    assert metrics["total_products"] == 2
    assert metrics["total_customers"] == 1
    assert metrics["total_debt_cents"] == 1500
    assert metrics["low_stock_count"] == 1
    assert [p["name"] for p in metrics["low_stock_items"]] == ["Jacket"]
    assert [c["name"] for c in metrics["customers_with_debt"]] == ["Debtor"]
    assert len(metrics["recent_sales"]) == 3
