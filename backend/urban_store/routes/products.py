# Overview: Flask API routes for products operations; parses input and returns JSON responses.

# backend/urban_store/routes/products.py
"""
Product management routes.

Stock is set once on create; afterwards it only changes through registered
sales, so PUT rejects it.
"""
from flask import Blueprint, current_app, request

from ..errors import LedgerError
from ..extensions import db
from ..models import Product
from ..services import products_service
from ..validation import (
    ModelValidationPolicy,
    validate_payload,
    enforce_rules_product,
    ValidationError,
    ConflictError,
)

PRODUCT_POLICY = ModelValidationPolicy(
    writable_fields={"sku", "name", "category", "sizes", "price_cents", "cost_cents", "stock"},
    required_on_create={"sku", "name", "category", "price_cents"},
    create_only_fields={"stock"},
)

products_bp = Blueprint("products", __name__, url_prefix="/api/products")


@products_bp.get("")
def list_products():
    """
    List products.

    Query params:
    - search: str (optional) - matches name or SKU
    - category: str (optional)
    - page: int (optional) - page number (1-indexed). If omitted, returns all items.
    - per_page: int (optional) - items per page (default 20, max 100)
    """
    return products_service.list_products(
        db.session,
        search=request.args.get("search"),
        category=request.args.get("category"),
        page=request.args.get("page", type=int),
        per_page=request.args.get("per_page", type=int),
    )


@products_bp.get("/low-stock")
def low_stock():
    threshold = request.args.get("threshold", type=int)
    if threshold is None:
        threshold = current_app.config["LOW_STOCK_THRESHOLD"]
    products = products_service.low_stock_products(db.session, threshold=threshold)
    return {"items": [p.to_dict() for p in products], "threshold": threshold}


@products_bp.get("/<int:product_id>")
def get_product_route(product_id: int):
    try:
        return products_service.get_product(db.session, product_id).to_dict()
    except LedgerError as e:
        return e.to_dict(), e.status_code


@products_bp.post("")
def create_product_route():
    payload = request.get_json(silent=True) or {}

    try:
        patch = validate_payload(model=Product, payload=payload, policy=PRODUCT_POLICY, partial=False)
        enforce_rules_product(patch)  # Handles price validation including max check
    except ValidationError as e:
        return {"error": str(e)}, 400

    try:
        created = products_service.create_product(db.session, patch=patch)
    except ConflictError as e:
        return {"error": str(e)}, 409

    return created, 201


@products_bp.put("/<int:product_id>")
def update_product_route(product_id: int):
    payload = request.get_json(silent=True) or {}

    try:
        patch = validate_payload(model=Product, payload=payload, policy=PRODUCT_POLICY, partial=True)
        enforce_rules_product(patch)
    except ValidationError as e:
        return {"error": str(e)}, 400

    try:
        updated = products_service.update_product(db.session, product_id=product_id, patch=patch)
    except ConflictError as e:
        return {"error": str(e)}, 409
    except LedgerError as e:
        return e.to_dict(), e.status_code

    return updated, 200


@products_bp.delete("/<int:product_id>")
def delete_product_route(product_id: int):
    try:
        products_service.delete_product(db.session, product_id=product_id)
    except LedgerError as e:
        return e.to_dict(), e.status_code

    return {"ok": True}, 200
