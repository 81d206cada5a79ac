# Overview: Aggregated dashboard metrics over sales, inventory and customer debt.

from __future__ import annotations

from datetime import datetime

from sqlalchemy import func
from sqlalchemy.orm import Session

from ..models import Customer, Product, Sale
from urban_store.time_utils import day_window, start_of_day, utcnow
from .customers_service import total_outstanding_debt
from .products_service import low_stock_products

DASHBOARD_LIST_LIMIT = 10


def _sales_summary(session: Session, start: datetime, end: datetime | None = None) -> dict:
    query = session.query(func.count(Sale.id), func.coalesce(func.sum(Sale.total_cents), 0)).filter(
        Sale.sold_at >= start
    )
    if end is not None:
        query = query.filter(Sale.sold_at < end)
    count, total = query.one()
    return {"count": int(count), "total_cents": int(total)}


def dashboard_metrics(session: Session, *, now: datetime | None = None, low_stock_threshold: int = 5) -> dict:
    """
    Snapshot for the admin dashboard.

    Day and month windows are computed in UTC.
    """
    now = now or utcnow()
    today_start, today_end = day_window(now)
    month_start = start_of_day(now.replace(day=1))

    low_stock = low_stock_products(session, threshold=low_stock_threshold, limit=DASHBOARD_LIST_LIMIT)
    low_stock_count = session.query(func.count(Product.id)).filter(Product.stock <= low_stock_threshold).scalar()

    debtors = (
        session.query(Customer)
        .filter(Customer.balance_cents > 0)
        .order_by(Customer.balance_cents.desc(), Customer.name.asc())
        .limit(DASHBOARD_LIST_LIMIT)
        .all()
    )

    recent_sales = (
        session.query(Sale)
        .order_by(Sale.sold_at.desc(), Sale.id.desc())
        .limit(DASHBOARD_LIST_LIMIT)
        .all()
    )

    all_time_total = session.query(func.coalesce(func.sum(Sale.total_cents), 0)).scalar()

    return {
        "today": _sales_summary(session, today_start, today_end),
        "month": _sales_summary(session, month_start),
        "total_sales_cents": int(all_time_total),
        "total_products": session.query(func.count(Product.id)).scalar(),
        "total_customers": session.query(func.count(Customer.id)).scalar(),
        "total_debt_cents": total_outstanding_debt(session),
        "low_stock_count": int(low_stock_count),
        "low_stock_items": [p.to_dict() for p in low_stock],
        "customers_with_debt": [c.to_dict() for c in debtors],
        "recent_sales": [s.to_dict(include_lines=False) for s in recent_sales],
    }
