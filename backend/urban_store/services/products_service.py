# backend/urban_store/services/products_service.py
"""
Products Service

Admin CRUD over the inventory ledger.

STOCK: `stock` is accepted on create only. After that the only writer is
sales_service.register_sale, so the admin surface cannot make stock drift
from what was actually sold.
"""
from __future__ import annotations

from sqlalchemy import or_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ..errors import NotFound
from ..models import Product, SaleLine
from ..validation import ConflictError
from .pagination import paginate_query

PRODUCT_MUTABLE_FIELDS = {"sku", "name", "category", "sizes", "price_cents", "cost_cents"}


def apply_product_patch(p: Product, patch: dict) -> None:
    for k, v in patch.items():
        if k not in PRODUCT_MUTABLE_FIELDS:
            continue
        setattr(p, k, v)


def _sku_taken(session: Session, sku: str, exclude_id: int | None = None) -> bool:
    query = session.query(Product.id).filter(Product.sku == sku)
    if exclude_id is not None:
        query = query.filter(Product.id != exclude_id)
    return query.first() is not None


def list_products(
    session: Session,
    *,
    search: str | None = None,
    category: str | None = None,
    page: int | None = None,
    per_page: int | None = None,
) -> dict:
    """
    Product listing with optional search, category filter and pagination.

    search matches name or SKU, case-insensitive.
    """
    query = session.query(Product)
    if search:
        pattern = f"%{search.strip()}%"
        query = query.filter(or_(Product.name.ilike(pattern), Product.sku.ilike(pattern)))
    if category:
        query = query.filter(Product.category == category)

    query = query.order_by(Product.created_at.desc(), Product.id.desc())
    return paginate_query(query, page=page, per_page=per_page)


def get_product(session: Session, product_id: int) -> Product:
    p = session.get(Product, product_id)
    if not p:
        raise NotFound(f"Product {product_id} not found")
    return p


def create_product(session: Session, *, patch: dict) -> dict:
    """
    Create product using a validated patch dict.

    Raises:
        ConflictError: If SKU already exists
    """
    if _sku_taken(session, patch["sku"]):
        raise ConflictError(f"SKU already exists: {patch['sku']}")

    p = Product(
        sku=patch["sku"],
        name=patch["name"],
        category=patch["category"],
        sizes=patch.get("sizes") or [],
        price_cents=patch["price_cents"],
        cost_cents=patch.get("cost_cents") or 0,
        stock=patch.get("stock") or 0,
    )
    session.add(p)
    try:
        session.commit()
    except IntegrityError:
        session.rollback()
        raise ConflictError(f"SKU already exists: {patch['sku']}")
    return p.to_dict()


def update_product(session: Session, *, product_id: int, patch: dict) -> dict:
    """
    Update a product. Stock is not writable here.

    Raises:
        NotFound: If product doesn't exist
        ConflictError: If new SKU already exists
    """
    p = get_product(session, product_id)

    if "sku" in patch and patch["sku"] != p.sku and _sku_taken(session, patch["sku"], exclude_id=p.id):
        raise ConflictError(f"SKU already exists: {patch['sku']}")

    apply_product_patch(p, patch)
    try:
        session.commit()
    except IntegrityError:
        session.rollback()
        raise ConflictError(f"SKU already exists: {patch.get('sku')}")
    return p.to_dict()


def delete_product(session: Session, *, product_id: int) -> None:
    """
    Delete a product.

    Sale lines keep their product_name snapshot and lose the product link.
    SQLite does not enforce ON DELETE SET NULL unless foreign keys are
    switched on, so the link is cleared here.
    """
    p = get_product(session, product_id)
    session.query(SaleLine).filter(SaleLine.product_id == p.id).update({SaleLine.product_id: None})
    session.delete(p)
    session.commit()


def low_stock_products(session: Session, *, threshold: int, limit: int = 10) -> list[Product]:
    return (
        session.query(Product)
        .filter(Product.stock <= threshold)
        .order_by(Product.stock.asc(), Product.name.asc())
        .limit(limit)
        .all()
    )
