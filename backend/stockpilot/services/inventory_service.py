# Overview: Service-layer operations for inventory; encapsulates business logic and database work.

# backend/stockpilot/services/inventory_service.py

from __future__ import annotations

from dataclasses import dataclass

from flask import current_app
from sqlalchemy import func

from ..extensions import db
from ..models import FinancialTransaction, Product
from ..models.finance import TRANSACTION_EXPENSE
from ..models.inventory import LEDGER_ADDITION, LEDGER_ADJUSTMENT
from ..validation import NotFoundError, ValidationError
from .concurrency import lock_for_update, run_with_retry
from .ledger_service import append_ledger_entry
"""
Inventory Invariants (authoritative)

Stock model:
- Product.stock is the current on-hand quantity and is never negative.
- Every change to Product.stock appends an InventoryLedgerEntry in the same
  DB transaction (see ledger_service).

Adjustments:
- ADDITION adds quantity, ADJUSTMENT subtracts it. quantity is always > 0.
- An adjustment that would make stock negative is rejected before any write.
- Weighted average cost (WAC) only moves on ADDITION with a positive unit cost:
    new_cost = (stock * cost + quantity * unit_cost) / new_stock
  Without a unit cost the existing average is kept. Costs are stored unrounded.
- Every ADDITION records an EXPENSE of quantity * (unit cost or current average)
  when that amount is positive.
"""

ADJUSTMENT_TYPES = (LEDGER_ADDITION, LEDGER_ADJUSTMENT)


class InventoryError(Exception):
    """Business-rule rejection of a stock change (409)."""
    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.details = details or {}


@dataclass(frozen=True)
class StockChange:
    change: int
    new_stock: int
    new_cost: float
    expense_amount: float


def weighted_average_cost(stock: int, cost: float, quantity: int, unit_cost: float) -> float:
    """Average unit cost after adding `quantity` units at `unit_cost` to `stock` units at `cost`."""
    new_stock = stock + quantity
    if new_stock <= 0:
        return unit_cost
    return (stock * cost + quantity * unit_cost) / new_stock


def plan_stock_adjustment(
    *,
    stock: int,
    cost: float,
    adjustment_type: str,
    quantity: int,
    unit_cost: float | None = None,
) -> StockChange:
    """
    Pure calculation of an adjustment's effect. Performs no I/O.

    Raises:
        ValidationError: unknown type, non-positive quantity, negative unit cost
        InventoryError: the result would make stock negative
    """
    if adjustment_type not in ADJUSTMENT_TYPES:
        raise ValidationError(f"type must be one of {', '.join(ADJUSTMENT_TYPES)}")
    if isinstance(quantity, bool) or not isinstance(quantity, int) or quantity <= 0:
        raise ValidationError("quantity must be a positive integer")
    if unit_cost is not None and unit_cost < 0:
        raise ValidationError("unit_cost must be >= 0")

    change = quantity if adjustment_type == LEDGER_ADDITION else -quantity
    new_stock = stock + change
    if new_stock < 0:
        raise InventoryError(
            "Insufficient stock for this adjustment",
            details={"stock": stock, "requested_change": change},
        )

    new_cost = cost
    expense_amount = 0.0
    if adjustment_type == LEDGER_ADDITION:
        has_unit_cost = unit_cost is not None and unit_cost > 0
        if has_unit_cost:
            new_cost = weighted_average_cost(stock, cost, quantity, unit_cost)
        expense_amount = quantity * (unit_cost if has_unit_cost else cost)

    return StockChange(
        change=change,
        new_stock=new_stock,
        new_cost=new_cost,
        expense_amount=expense_amount,
    )


def _load_product_for_update(org_id: int, product_id: int) -> Product:
    query = db.session.query(Product).filter_by(id=product_id, org_id=org_id, is_active=True)
    product = lock_for_update(query).first()
    if product is None:
        raise NotFoundError("Product not found")
    return product


def adjust_stock(
    *,
    org_id: int,
    product_id: int,
    adjustment_type: str,
    quantity: int,
    unit_cost: float | None = None,
    note: str | None = None,
    profile_id: int | None = None,
) -> tuple[Product, StockChange]:
    """
    Apply a stock adjustment as one DB transaction.

    Writes, in order: product {stock, cost}; ledger entry; restock EXPENSE
    (ADDITION only, when the amount is positive). A rejected plan writes
    nothing.
    """
    def _op():
        product = _load_product_for_update(org_id, product_id)

        plan = plan_stock_adjustment(
            stock=product.stock,
            cost=product.cost,
            adjustment_type=adjustment_type,
            quantity=quantity,
            unit_cost=unit_cost,
        )

        product.stock = plan.new_stock
        product.cost = plan.new_cost
        db.session.flush()

        append_ledger_entry(
            product=product,
            transaction_type=adjustment_type,
            quantity_change=plan.change,
            stock_after=plan.new_stock,
            profile_id=profile_id,
            note=note,
        )

        if adjustment_type == LEDGER_ADDITION and plan.expense_amount > 0:
            db.session.add(FinancialTransaction(
                org_id=org_id,
                profile_id=profile_id,
                type=TRANSACTION_EXPENSE,
                amount=plan.expense_amount,
                description=f"Restock: {product.name} (+{quantity})",
            ))

        db.session.commit()
        return product, plan

    product, plan = run_with_retry(_op)
    current_app.logger.info(
        "Stock %s on product %s: change=%+d stock=%d",
        adjustment_type, product.id, plan.change, plan.new_stock,
    )
    return product, plan


def list_inventory(*, org_id: int, search: str | None = None) -> dict:
    """
    Active products, lowest stock first, with the low-stock count.

    search is a case-insensitive substring match on the product name; the
    low-stock count covers the filtered rows.
    """
    query = db.session.query(Product).filter_by(org_id=org_id, is_active=True)
    if search and search.strip():
        query = query.filter(func.lower(Product.name).contains(search.strip().lower(), autoescape=True))

    products = (
        query
        .order_by(Product.stock.asc(), Product.name.asc())
        .all()
    )
    return {
        "items": [p.to_dict() for p in products],
        "count": len(products),
        "low_stock_count": sum(1 for p in products if p.is_low_stock),
    }
