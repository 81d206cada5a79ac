"""
Sales Service - atomic sale registration

WHY: A sale touches three ledgers at once: product stock, the sale record
and (for credit sales) the customer's balance. They must move together or
not at all.

DESIGN PRINCIPLES:
- One coordinator call == one database transaction
- Stock check and decrement happen under the same write lock
- Line items snapshot the product name at sale time
- The caller-supplied unit price is trusted (no server-side repricing)
"""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import func
from sqlalchemy.orm import Session

from ..errors import InsufficientStock, InvalidRequest, NotFound
from ..models import Customer, CustomerCreditEntry, Product, Sale, SaleLine
from ..validation import MAX_PRICE_CENTS
from urban_store.time_utils import utcnow, day_window
from .concurrency import begin_write, lock_for_update, run_in_transaction
from .pagination import paginate_query


# =============================================================================
# PAYMENT METHODS (CONSTANTS)
# =============================================================================

PAYMENT_CASH = "CASH"
PAYMENT_CARD = "CARD"
PAYMENT_TRANSFER = "TRANSFER"
PAYMENT_CREDIT = "CREDIT"

VALID_PAYMENT_METHODS = [
    PAYMENT_CASH,
    PAYMENT_CARD,
    PAYMENT_TRANSFER,
    PAYMENT_CREDIT,
]

# Labels used by the existing dashboard
PAYMENT_METHOD_ALIASES = {
    "EFECTIVO": PAYMENT_CASH,
    "TARJETA": PAYMENT_CARD,
    "TRANSFERENCIA": PAYMENT_TRANSFER,
    "CREDITO": PAYMENT_CREDIT,
}


# =============================================================================
# SALE STATUS (CONSTANTS)
# =============================================================================

SALE_STATUS_COMPLETED = "COMPLETED"
SALE_STATUS_PENDING = "PENDING"
SALE_STATUS_CANCELLED = "CANCELLED"

# Largest value a 64-bit INTEGER column can hold
MAX_STORE_INT = 2**63 - 1


def normalize_payment_method(value) -> str:
    method = str(value or "").strip().upper()
    method = PAYMENT_METHOD_ALIASES.get(method, method)
    if method not in VALID_PAYMENT_METHODS:
        raise InvalidRequest(
            f"Invalid payment method: {value}. Must be one of {VALID_PAYMENT_METHODS}"
        )
    return method


def _require_int(value, field: str, minimum: int) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise InvalidRequest(f"{field} must be an integer")
    if value < minimum:
        raise InvalidRequest(f"{field} must be >= {minimum}")
    if value > MAX_STORE_INT:
        raise InvalidRequest(f"{field} is out of range")
    return value


def _parse_items(items) -> list[dict]:
    if not isinstance(items, list) or not items:
        raise InvalidRequest("A sale needs at least one item")

    parsed = []
    for index, item in enumerate(items):
        if not isinstance(item, dict):
            raise InvalidRequest(f"Item {index + 1} must be an object")
        unit_price_cents = _require_int(item.get("unit_price_cents"), "unit_price_cents", 0)
        if unit_price_cents > MAX_PRICE_CENTS:
            raise InvalidRequest(f"unit_price_cents cannot exceed {MAX_PRICE_CENTS}")
        parsed.append({
            "product_id": _require_int(item.get("product_id"), "product_id", 1),
            "quantity": _require_int(item.get("quantity"), "quantity", 1),
            "unit_price_cents": unit_price_cents,
            "size": str(item.get("size") or "").strip(),
        })
    return parsed


def register_sale(
    session: Session,
    *,
    items: list[dict],
    payment_method: str,
    is_credit: bool = False,
    customer_id: int | None = None,
    sold_at: datetime | None = None,
) -> Sale:
    """
    Register a sale and commit all of its effects atomically.

    Args:
        session: Store session the whole operation runs in
        items: [{product_id, quantity, unit_price_cents, size?}, ...]
        payment_method: CASH, CARD, TRANSFER or CREDIT (aliases accepted)
        is_credit: Defer payment to the customer's balance
        customer_id: Required for credit sales, ignored otherwise
        sold_at: Business time of the sale (defaults to now)

    Returns:
        The committed Sale with its line snapshots

    Raises:
        InvalidRequest: credit sale without customer, malformed items
        NotFound: product or customer missing
        InsufficientStock: a product has fewer units than requested
        TransactionFailure: the store could not commit
    """
    if is_credit:
        if customer_id is None:
            raise InvalidRequest("Credit sales require a customer")
        customer_id = _require_int(customer_id, "customer_id", 1)

    method = normalize_payment_method(payment_method)
    if method == PAYMENT_CREDIT and not is_credit:
        raise InvalidRequest("Payment method CREDIT requires is_credit")

    lines = _parse_items(items)

    def _op():
        begin_write(session)

        # Same product on several lines is checked against the combined quantity
        product_totals: dict[int, int] = {}
        for line in lines:
            product_totals[line["product_id"]] = product_totals.get(line["product_id"], 0) + line["quantity"]

        products: dict[int, Product] = {}
        for line in lines:
            product_id = line["product_id"]
            if product_id in products:
                continue
            product = lock_for_update(session.query(Product).filter_by(id=product_id)).first()
            if not product:
                raise NotFound(f"Product {product_id} not found", details={"product_id": product_id})
            products[product_id] = product

        for product_id, quantity in product_totals.items():
            product = products[product_id]
            if product.stock < quantity:
                raise InsufficientStock(
                    product_id=product.id,
                    product_name=product.name,
                    requested=quantity,
                    available=product.stock,
                )

        sale_lines = []
        for line in lines:
            product = products[line["product_id"]]
            sale_lines.append(SaleLine(
                product_id=product.id,
                product_name=product.name,
                size=line["size"],
                quantity=line["quantity"],
                unit_price_cents=line["unit_price_cents"],
                subtotal_cents=line["quantity"] * line["unit_price_cents"],
            ))
        total_cents = sum(sl.subtotal_cents for sl in sale_lines)

        for product_id, quantity in product_totals.items():
            products[product_id].stock -= quantity
        session.flush()

        now = utcnow()
        sale = Sale(
            payment_method=method,
            total_cents=total_cents,
            is_credit=bool(is_credit),
            customer_id=customer_id if is_credit else None,
            status=SALE_STATUS_COMPLETED,
            sold_at=sold_at or now,
            lines=sale_lines,
        )
        session.add(sale)
        session.flush()  # Get sale ID

        if is_credit:
            customer = lock_for_update(session.query(Customer).filter_by(id=customer_id)).first()
            if not customer:
                raise NotFound(f"Customer {customer_id} not found", details={"customer_id": customer_id})
            customer.balance_cents += total_cents
            session.add(CustomerCreditEntry(customer_id=customer.id, sale_id=sale.id, recorded_at=now))

        session.commit()
        return sale

    return run_in_transaction(session, _op, description="Sale")


# =============================================================================
# SALE QUERIES
# =============================================================================

def get_sale(session: Session, sale_id: int) -> Sale:
    sale = session.get(Sale, sale_id)
    if not sale:
        raise NotFound(f"Sale {sale_id} not found")
    return sale


def list_sales(
    session: Session,
    *,
    start: datetime | None = None,
    end: datetime | None = None,
    payment_method: str | None = None,
    customer_id: int | None = None,
    page: int | None = None,
    per_page: int | None = None,
) -> dict:
    """
    List sales newest first.

    start/end are inclusive bounds on sold_at.
    """
    query = session.query(Sale)
    if start is not None:
        query = query.filter(Sale.sold_at >= start)
    if end is not None:
        query = query.filter(Sale.sold_at <= end)
    if payment_method:
        query = query.filter(Sale.payment_method == normalize_payment_method(payment_method))
    if customer_id is not None:
        query = query.filter(Sale.customer_id == customer_id)

    query = query.order_by(Sale.sold_at.desc(), Sale.id.desc())
    return paginate_query(query, page=page, per_page=per_page)


def todays_sales(session: Session, now: datetime | None = None) -> dict:
    start, end = day_window(now or utcnow())
    sales = (
        session.query(Sale)
        .filter(Sale.sold_at >= start, Sale.sold_at < end)
        .order_by(Sale.sold_at.desc(), Sale.id.desc())
        .all()
    )
    return {
        "sales": [s.to_dict() for s in sales],
        "count": len(sales),
        "total_cents": sum(s.total_cents for s in sales),
    }


def sales_stats(session: Session, *, start: datetime | None = None, end: datetime | None = None) -> list[dict]:
    """Count and total per payment method."""
    query = session.query(
        Sale.payment_method,
        func.count(Sale.id),
        func.coalesce(func.sum(Sale.total_cents), 0),
    )
    if start is not None:
        query = query.filter(Sale.sold_at >= start)
    if end is not None:
        query = query.filter(Sale.sold_at <= end)

    rows = query.group_by(Sale.payment_method).order_by(Sale.payment_method).all()
    return [
        {"payment_method": method, "count": count, "total_cents": int(total)}
        for method, count, total in rows
    ]
