# backend/urban_store/routes/dashboard.py
from flask import Blueprint, current_app

from ..extensions import db
from ..services.dashboard_service import dashboard_metrics

dashboard_bp = Blueprint("dashboard", __name__, url_prefix="/api/dashboard")


@dashboard_bp.get("")
def metrics():
    try:
        return dashboard_metrics(db.session, low_stock_threshold=current_app.config["LOW_STOCK_THRESHOLD"])
    except Exception:
        current_app.logger.exception("Failed to build dashboard metrics")
        return {"error": "Internal server error"}, 500
