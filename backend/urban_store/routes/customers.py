# Overview: Flask API routes for customer accounts and payments; parses input and returns JSON responses.

# backend/urban_store/routes/customers.py
"""
Customer routes.

balance_cents is read-only here: it moves through credit sales and the
payments endpoint only.
"""
from flask import Blueprint, current_app, request, jsonify

from ..errors import LedgerError
from ..extensions import db
from ..models import Customer
from ..services import customers_service, payment_service, reminder_service
from ..validation import (
    ModelValidationPolicy,
    validate_payload,
    enforce_rules_customer,
    ValidationError,
)

CUSTOMER_POLICY = ModelValidationPolicy(
    writable_fields={"name", "whatsapp_number", "notes", "next_payment_date"},
    required_on_create={"name", "whatsapp_number"},
)

customers_bp = Blueprint("customers", __name__, url_prefix="/api/customers")


@customers_bp.get("")
def list_customers():
    """
    List customers, biggest debt first.

    Query params:
    - search: str (optional) - matches name
    - has_debt: "true" to keep only customers with balance > 0
    - page / per_page: optional pagination (default 20, max 100)
    """
    has_debt = (request.args.get("has_debt") or "").lower() in {"1", "true", "yes"}
    return customers_service.list_customers(
        db.session,
        search=request.args.get("search"),
        has_debt=has_debt,
        page=request.args.get("page", type=int),
        per_page=request.args.get("per_page", type=int),
    )


@customers_bp.get("/delinquent")
def delinquent_customers():
    """Customers currently due for a debt reminder."""
    interval_days = current_app.config["REMINDER_INTERVAL_DAYS"]
    customers = reminder_service.debt_reminder_candidates(db.session, interval_days=interval_days)
    return {"items": [c.to_dict() for c in customers], "count": len(customers)}


@customers_bp.get("/<int:customer_id>")
def get_customer_route(customer_id: int):
    try:
        return customers_service.get_customer_detail(db.session, customer_id)
    except LedgerError as e:
        return e.to_dict(), e.status_code


@customers_bp.get("/<int:customer_id>/reconcile")
def reconcile_customer_route(customer_id: int):
    try:
        return payment_service.reconcile_balance(db.session, customer_id)
    except LedgerError as e:
        return e.to_dict(), e.status_code


@customers_bp.post("")
def create_customer_route():
    payload = request.get_json(silent=True) or {}

    try:
        patch = validate_payload(model=Customer, payload=payload, policy=CUSTOMER_POLICY, partial=False)
        enforce_rules_customer(patch)
    except ValidationError as e:
        return {"error": str(e)}, 400

    return customers_service.create_customer(db.session, patch=patch), 201


@customers_bp.put("/<int:customer_id>")
def update_customer_route(customer_id: int):
    payload = request.get_json(silent=True) or {}

    try:
        patch = validate_payload(model=Customer, payload=payload, policy=CUSTOMER_POLICY, partial=True)
        enforce_rules_customer(patch)
    except ValidationError as e:
        return {"error": str(e)}, 400

    try:
        updated = customers_service.update_customer(db.session, customer_id=customer_id, patch=patch)
    except LedgerError as e:
        return e.to_dict(), e.status_code

    return updated, 200


@customers_bp.delete("/<int:customer_id>")
def delete_customer_route(customer_id: int):
    try:
        customers_service.delete_customer(db.session, customer_id=customer_id)
    except LedgerError as e:
        return e.to_dict(), e.status_code

    return {"ok": True}, 200


@customers_bp.post("/<int:customer_id>/payments")
def register_payment_route(customer_id: int):
    """
    Register a payment against the customer's debt.

    Body: {"amount_cents": int, "note": str?}
    """
    try:
        data = request.get_json(silent=True) or {}
        customer = payment_service.register_payment(
            db.session,
            customer_id=customer_id,
            amount_cents=data.get("amount_cents"),
            note=data.get("note"),
        )
        return jsonify({"customer": customer.to_dict(include_history=True)}), 201

    except LedgerError as e:
        if e.status_code >= 500:
            current_app.logger.error("Payment for customer %s failed: %s", customer_id, e.message)
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to register payment")
        return jsonify({"error": "Internal server error"}), 500
