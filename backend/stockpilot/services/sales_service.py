"""
Sales Service - single-step point-of-sale checkout

A checkout is one DB transaction: the sale, its items, the stock decrements,
one SALE ledger entry per line and the INCOME transaction are all committed
together or not at all.
"""

from __future__ import annotations

from flask import current_app
from sqlalchemy import String, cast, func, or_

from ..extensions import db
from ..models import FinancialTransaction, Product, Sale, SaleItem
from ..models.finance import TRANSACTION_INCOME
from ..models.inventory import LEDGER_SALE
from ..validation import MAX_AMOUNT, NotFoundError, ValidationError, coerce_amount, coerce_positive_int
from .concurrency import lock_for_update, run_with_retry
from .ledger_service import append_ledger_entry


class CheckoutError(Exception):
    """Raised when a cart cannot be sold as-is (409)."""
    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.details = details or {}


def normalize_cart(items) -> dict[int, int]:
    """
    Validate cart lines and merge duplicates.

    Returns {product_id: quantity} in first-seen order.
    """
    if not isinstance(items, list) or not items:
        raise ValidationError("items must be a non-empty list")

    merged: dict[int, int] = {}
    for line in items:
        if not isinstance(line, dict):
            raise ValidationError("each item must be an object with product_id and quantity")
        product_id = coerce_positive_int(line.get("product_id"), "product_id")
        quantity = coerce_positive_int(line.get("quantity"), "quantity")
        merged[product_id] = merged.get(product_id, 0) + quantity
    return merged


def _validate_against_stock(cart: dict[int, int], products: dict[int, Product]) -> None:
    missing = [pid for pid in cart if pid not in products]
    if missing:
        raise CheckoutError(
            "Some products are not available",
            details={"missing_product_ids": missing},
        )

    insufficient = []
    for product_id, qty in cart.items():
        on_hand = products[product_id].stock
        if on_hand < qty:
            insufficient.append({
                "product_id": product_id,
                "name": products[product_id].name,
                "requested_quantity": qty,
                "on_hand": on_hand,
            })

    if insufficient:
        raise CheckoutError(
            "Insufficient stock to complete sale",
            details={"items": insufficient},
        )


def checkout(
    *,
    org_id: int,
    items,
    customer_name: str | None = None,
    discount=0,
    profile_id: int | None = None,
) -> Sale:
    """
    Record a sale for a cart of [{product_id, quantity}].

    total_amount = max(0, sum(price * quantity) - discount), using current
    product prices. Product rows are locked and stock re-read inside the
    transaction; any unavailable product or short line rejects the whole
    sale without writes.
    """
    cart = normalize_cart(items)

    discount = coerce_amount(discount if discount is not None else 0, "discount")
    if discount < 0:
        raise ValidationError("discount must be >= 0")
    if discount > MAX_AMOUNT:
        raise ValidationError(f"discount cannot exceed {MAX_AMOUNT:,.2f}")

    if customer_name is not None:
        customer_name = str(customer_name).strip() or None

    def _op():
        query = (
            db.session.query(Product)
            .filter(Product.org_id == org_id, Product.is_active.is_(True), Product.id.in_(list(cart)))
            .order_by(Product.id.asc())
        )
        products = {p.id: p for p in lock_for_update(query).all()}

        _validate_against_stock(cart, products)

        subtotal = sum(products[pid].price * qty for pid, qty in cart.items())
        total = max(0.0, subtotal - discount)

        sale = Sale(
            org_id=org_id,
            profile_id=profile_id,
            customer_name=customer_name,
            total_amount=total,
            discount=discount,
        )
        db.session.add(sale)
        db.session.flush()  # sale.id for items, ledger and income description

        for product_id, qty in cart.items():
            product = products[product_id]
            db.session.add(SaleItem(
                sale_id=sale.id,
                product_id=product_id,
                quantity=qty,
                price_at_sale=product.price,
            ))

            product.stock = product.stock - qty
            db.session.flush()

            append_ledger_entry(
                product=product,
                transaction_type=LEDGER_SALE,
                quantity_change=-qty,
                stock_after=product.stock,
                profile_id=profile_id,
                related_sale_id=sale.id,
            )

        db.session.add(FinancialTransaction(
            org_id=org_id,
            profile_id=profile_id,
            type=TRANSACTION_INCOME,
            amount=total,
            description=f"Sale #{sale.id}",
            related_sale_id=sale.id,
        ))

        db.session.commit()
        return sale

    sale = run_with_retry(_op)
    current_app.logger.info(
        "Checkout sale %s in org %s: %d line(s), total %.2f",
        sale.id, org_id, len(cart), sale.total_amount,
    )
    return sale


def list_sales(*, org_id: int, search: str | None = None, limit: int | None = None) -> list[Sale]:
    """
    Sales newest first.

    search matches the customer name (case-insensitive substring) or the
    sale id.
    """
    query = db.session.query(Sale).filter(Sale.org_id == org_id)

    if search:
        term = search.strip().lower()
        if term.startswith("#"):
            term = term[1:]
        query = query.filter(or_(
            func.lower(Sale.customer_name).contains(term, autoescape=True),
            cast(Sale.id, String).contains(term, autoescape=True),
        ))

    query = query.order_by(Sale.created_at.desc(), Sale.id.desc())
    if limit is not None:
        query = query.limit(limit)
    return query.all()


def get_sale(*, org_id: int, sale_id: int) -> Sale:
    sale = db.session.query(Sale).filter_by(id=sale_id, org_id=org_id).first()
    if sale is None:
        raise NotFoundError("Sale not found")
    return sale
