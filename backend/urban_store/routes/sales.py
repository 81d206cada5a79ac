# Overview: Flask API routes for sales operations; parses input and returns JSON responses.

# backend/urban_store/routes/sales.py
"""Sales API routes"""

from flask import Blueprint, request, jsonify, current_app

from ..errors import LedgerError
from ..extensions import db
from ..services import sales_service
from urban_store.time_utils import parse_iso_datetime


sales_bp = Blueprint("sales", __name__, url_prefix="/api/sales")


def _parse_range():
    """Return (start, end) from ?start=&end= ISO query params."""
    return (
        parse_iso_datetime(request.args.get("start")),
        parse_iso_datetime(request.args.get("end")),
    )


@sales_bp.post("")
def register_sale_route():
    """
    Register a sale.

    Body:
    {
      "items": [{"product_id": 1, "quantity": 2, "unit_price_cents": 1500, "size": "M"}],
      "payment_method": "CASH" | "CARD" | "TRANSFER" | "CREDIT",
      "is_credit": false,
      "customer_id": null
    }
    """
    try:
        data = request.get_json(silent=True) or {}

        is_credit = data.get("is_credit", False)
        if not isinstance(is_credit, bool):
            return jsonify({"error": "is_credit must be true or false"}), 400

        sale = sales_service.register_sale(
            db.session,
            items=data.get("items"),
            payment_method=data.get("payment_method"),
            is_credit=is_credit,
            customer_id=data.get("customer_id"),
        )
        return jsonify({"sale": sale.to_dict()}), 201

    except LedgerError as e:
        if e.status_code >= 500:
            current_app.logger.error("Sale registration failed: %s", e.message)
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to register sale")
        return jsonify({"error": "Internal server error"}), 500


@sales_bp.get("")
def list_sales_route():
    """
    List sales, newest first.

    Query params:
    - start / end: ISO-8601 bounds on sold_at (inclusive)
    - payment_method: CASH, CARD, TRANSFER, CREDIT
    - customer_id: int
    - page / per_page: optional pagination
    """
    try:
        start, end = _parse_range()
    except ValueError:
        return jsonify({"error": "start/end must be ISO-8601 datetimes"}), 400

    try:
        result = sales_service.list_sales(
            db.session,
            start=start,
            end=end,
            payment_method=request.args.get("payment_method"),
            customer_id=request.args.get("customer_id", type=int),
            page=request.args.get("page", type=int),
            per_page=request.args.get("per_page", type=int),
        )
    except LedgerError as e:
        return jsonify(e.to_dict()), e.status_code
    return jsonify(result), 200


@sales_bp.get("/today")
def todays_sales_route():
    return jsonify(sales_service.todays_sales(db.session)), 200


@sales_bp.get("/stats")
def sales_stats_route():
    try:
        start, end = _parse_range()
    except ValueError:
        return jsonify({"error": "start/end must be ISO-8601 datetimes"}), 400

    stats = sales_service.sales_stats(db.session, start=start, end=end)
    return jsonify({"by_payment_method": stats}), 200


@sales_bp.get("/<int:sale_id>")
def get_sale_route(sale_id: int):
    try:
        sale = sales_service.get_sale(db.session, sale_id)
    except LedgerError as e:
        return jsonify(e.to_dict()), e.status_code
    return jsonify({"sale": sale.to_dict()}), 200
