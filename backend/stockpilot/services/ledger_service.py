# Overview: Service-layer operations for the inventory ledger; encapsulates business logic and database work.

from __future__ import annotations

from ..extensions import db
from ..models import InventoryLedgerEntry, Product
from ..models.inventory import LEDGER_TYPES
from ..validation import NotFoundError
"""
Inventory Ledger Invariants (authoritative)

- Append-only: entries are never updated or deleted.
- Entries are written inside the same DB transaction as the stock change
  they record; append_ledger_entry flushes but never commits.
- stock_after == previous stock_after + quantity_change, per product,
  in creation order (created_at, id).
- Summing quantity_change over a product's entries reproduces Product.stock.
"""


def append_ledger_entry(
    *,
    product: Product,
    transaction_type: str,
    quantity_change: int,
    stock_after: int,
    profile_id: int | None = None,
    related_sale_id: int | None = None,
    note: str | None = None,
) -> InventoryLedgerEntry:
    """
    Append one ledger entry for `product`.

    stock_after must already reflect the change; callers compute it from the
    locked product row.
    """
    if transaction_type not in LEDGER_TYPES:
        raise ValueError(f"Unknown ledger transaction type {transaction_type!r}")
    if stock_after < 0:
        raise ValueError("stock_after cannot be negative")

    entry = InventoryLedgerEntry(
        org_id=product.org_id,
        product_id=product.id,
        profile_id=profile_id,
        transaction_type=transaction_type,
        quantity_change=quantity_change,
        stock_after=stock_after,
        related_sale_id=related_sale_id,
        note=note,
    )
    db.session.add(entry)
    db.session.flush()  # ensures entry.id is assigned without committing
    return entry


def _get_org_product(org_id: int, product_id: int) -> Product:
    product = db.session.query(Product).filter_by(id=product_id, org_id=org_id).first()
    if product is None:
        raise NotFoundError("Product not found")
    return product


def list_product_history(*, org_id: int, product_id: int, limit: int = 200) -> list[InventoryLedgerEntry]:
    """Stock history for one product, newest first."""
    _get_org_product(org_id, product_id)

    return (
        db.session.query(InventoryLedgerEntry)
        .filter_by(org_id=org_id, product_id=product_id)
        .order_by(InventoryLedgerEntry.created_at.desc(), InventoryLedgerEntry.id.desc())
        .limit(limit)
        .all()
    )


def verify_product_ledger(*, org_id: int, product_id: int) -> dict:
    """
    Replay a product's ledger in creation order and compare with its stock.

    broken_entry_ids lists entries whose stock_after does not follow from the
    previous entry. A product created without initial stock has no entries,
    which is consistent as long as its stock is 0.
    """
    product = _get_org_product(org_id, product_id)

    entries = (
        db.session.query(InventoryLedgerEntry)
        .filter_by(org_id=org_id, product_id=product_id)
        .order_by(InventoryLedgerEntry.created_at.asc(), InventoryLedgerEntry.id.asc())
        .all()
    )

    running = 0
    broken = []
    for entry in entries:
        running += entry.quantity_change
        if entry.stock_after != running:
            broken.append(entry.id)

    return {
        "product_id": product.id,
        "product_stock": product.stock,
        "ledger_stock": running,
        "entry_count": len(entries),
        "broken_entry_ids": broken,
        "consistent": running == product.stock and not broken,
    }
