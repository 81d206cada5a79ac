# Overview: Flask API routes for reminder eligibility and the notification log.

# backend/urban_store/routes/notifications.py
from flask import Blueprint, current_app, request

from ..extensions import db
from ..services import notification_service, reminder_service

notifications_bp = Blueprint("notifications", __name__, url_prefix="/api/notifications")


@notifications_bp.get("")
def list_logs():
    """
    Notification log, most recent first.

    Query params:
    - status: SENT, FAILED, PENDING
    - kind: DEBT, SCHEDULED
    - customer_id: int
    - page / per_page: optional pagination
    """
    return notification_service.list_logs(
        db.session,
        status=request.args.get("status"),
        kind=request.args.get("kind"),
        customer_id=request.args.get("customer_id", type=int),
        page=request.args.get("page", type=int),
        per_page=request.args.get("per_page", type=int),
    )


@notifications_bp.get("/stats")
def stats():
    return notification_service.notification_stats(db.session)


@notifications_bp.get("/eligible")
def eligible():
    """Customers a reminder batch of the given kind would contact now."""
    kind = request.args.get("kind", reminder_service.KIND_DEBT)
    try:
        customers = reminder_service.candidates_for(
            db.session, kind, interval_days=current_app.config["REMINDER_INTERVAL_DAYS"]
        )
    except ValueError as e:
        return {"error": str(e)}, 400
    return {"kind": kind.upper(), "items": [c.to_dict() for c in customers], "count": len(customers)}
