# backend/urban_store/services/notification_service.py
"""
Read side of the notification log: listing and delivery statistics.
"""
from __future__ import annotations

from datetime import datetime, timedelta

from sqlalchemy import func
from sqlalchemy.orm import Session

from ..models import NotificationLog
from urban_store.time_utils import utcnow
from .dispatch_service import LOG_STATUS_FAILED, LOG_STATUS_PENDING, LOG_STATUS_SENT
from .pagination import paginate_query

LOG_STATUSES = [LOG_STATUS_SENT, LOG_STATUS_FAILED, LOG_STATUS_PENDING]
RECENT_WINDOW_DAYS = 7


def list_logs(
    session: Session,
    *,
    status: str | None = None,
    kind: str | None = None,
    customer_id: int | None = None,
    page: int | None = None,
    per_page: int | None = None,
) -> dict:
    """Delivery log, most recent attempt first."""
    query = session.query(NotificationLog)
    if status:
        query = query.filter(NotificationLog.status == status.upper())
    if kind:
        query = query.filter(NotificationLog.kind == kind.upper())
    if customer_id is not None:
        query = query.filter(NotificationLog.customer_id == customer_id)

    query = query.order_by(NotificationLog.sent_at.desc(), NotificationLog.id.desc())
    return paginate_query(query, page=page, per_page=per_page)


def notification_stats(session: Session, now: datetime | None = None) -> dict:
    now = now or utcnow()
    counts = dict(
        session.query(NotificationLog.status, func.count(NotificationLog.id))
        .group_by(NotificationLog.status)
        .all()
    )
    by_status = {status: int(counts.get(status, 0)) for status in LOG_STATUSES}

    recent = (
        session.query(func.count(NotificationLog.id))
        .filter(NotificationLog.sent_at >= now - timedelta(days=RECENT_WINDOW_DAYS))
        .scalar()
    )
    return {
        "by_status": by_status,
        "total": sum(by_status.values()),
        "last_7_days": int(recent or 0),
    }
