# backend/stockpilot/services/products_service.py
"""
Products Service with Multi-Tenant Support

MULTI-TENANT: All product operations are tenant-scoped.
- list_products filters by org_id
- get/update/delete only find products inside the caller's organization

Stock is set once at creation (recorded as an ADDITION ledger entry).
After that it changes only through inventory adjustments and checkout.
"""
from __future__ import annotations

from flask import current_app
from sqlalchemy import func

from ..extensions import db
from ..models import FinancialTransaction, Product
from ..models.finance import TRANSACTION_EXPENSE
from ..models.inventory import LEDGER_ADDITION
from ..validation import NotFoundError, ValidationError
from .concurrency import run_with_retry
from .ledger_service import append_ledger_entry

PRODUCT_MUTABLE_FIELDS = {"name", "size", "price", "cost", "min_stock"}


def apply_product_patch(p: Product, patch: dict) -> None:
    for k, v in patch.items():
        if k not in PRODUCT_MUTABLE_FIELDS:
            continue
        setattr(p, k, v)


def list_products(*, org_id: int, search: str | None = None) -> dict:
    """
    Tenant-scoped product listing ordered by name.

    search is a case-insensitive substring match on the product name.
    """
    query = db.session.query(Product).filter_by(org_id=org_id, is_active=True)

    if search:
        query = query.filter(func.lower(Product.name).contains(search.strip().lower(), autoescape=True))

    products = query.order_by(Product.name.asc(), Product.id.asc()).all()
    return {
        "items": [p.to_dict() for p in products],
        "count": len(products),
    }


def get_product(*, org_id: int, product_id: int) -> Product:
    product = (
        db.session.query(Product)
        .filter_by(id=product_id, org_id=org_id, is_active=True)
        .first()
    )
    if product is None:
        raise NotFoundError("Product not found")
    return product


def create_product(*, org_id: int, patch: dict, profile_id: int | None = None) -> dict:
    """
    Create a product from a validated patch dict.

    Initial stock is booked like a restock in the same DB transaction:
    - stock > 0: ADDITION ledger entry (quantity_change = stock_after = stock)
    - stock > 0 and cost > 0: EXPENSE "Initial Inventory: <name>" of stock * cost
    """
    initial_stock = patch.get("stock") or 0
    if initial_stock < 0:
        raise ValidationError("stock must be >= 0")

    def _op():
        p = Product(org_id=org_id, stock=initial_stock)
        apply_product_patch(p, patch)
        if p.min_stock is None:
            p.min_stock = 5
        if p.price is None:
            p.price = 0.0
        if p.cost is None:
            p.cost = 0.0

        db.session.add(p)
        db.session.flush()  # ensure p.id exists before ledger append

        if initial_stock > 0:
            append_ledger_entry(
                product=p,
                transaction_type=LEDGER_ADDITION,
                quantity_change=initial_stock,
                stock_after=initial_stock,
                profile_id=profile_id,
                note="Initial stock",
            )
            expense = initial_stock * p.cost
            if expense > 0:
                db.session.add(FinancialTransaction(
                    org_id=org_id,
                    profile_id=profile_id,
                    type=TRANSACTION_EXPENSE,
                    amount=expense,
                    description=f"Initial Inventory: {p.name}",
                ))

        db.session.commit()
        return p

    p = run_with_retry(_op)
    current_app.logger.info("Created product %s (%s) in org %s with stock %d", p.id, p.name, org_id, p.stock)
    return p.to_dict()


def update_product(*, org_id: int, product_id: int, patch: dict) -> dict:
    """Update catalog fields. stock is not editable here."""
    if "stock" in patch:
        raise ValidationError("stock can only be changed through inventory adjustments")

    def _op():
        p = get_product(org_id=org_id, product_id=product_id)
        apply_product_patch(p, patch)
        db.session.commit()
        return p

    return run_with_retry(_op).to_dict()


def delete_product(*, org_id: int, product_id: int) -> bool:
    """
    Soft-delete a product.

    Ledger entries and sale items keep pointing at the row, so it is only
    hidden from listings. Returns False when the product is not found.
    """
    p = (
        db.session.query(Product)
        .filter_by(id=product_id, org_id=org_id, is_active=True)
        .first()
    )
    if p is None:
        return False

    p.is_active = False
    db.session.commit()
    current_app.logger.info("Deactivated product %s in org %s", product_id, org_id)
    return True
