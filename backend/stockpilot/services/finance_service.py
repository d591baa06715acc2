# Overview: Service-layer operations for the income/expense log.

from __future__ import annotations

from flask import current_app
from sqlalchemy import func, or_

from ..extensions import db
from ..models import FinancialTransaction
from ..models.finance import TRANSACTION_EXPENSE, TRANSACTION_INCOME, TRANSACTION_TYPES
from ..validation import ValidationError


def record_transaction(*, org_id: int, patch: dict, profile_id: int | None = None) -> FinancialTransaction:
    """
    Record a manual INCOME/EXPENSE entry.

    patch must already be validated (type, amount > 0); description must be
    non-blank.
    """
    description = (patch.get("description") or "").strip()
    if not description:
        raise ValidationError("description is required")

    tx = FinancialTransaction(
        org_id=org_id,
        profile_id=profile_id,
        type=patch["type"],
        amount=patch["amount"],
        description=description,
    )
    db.session.add(tx)
    db.session.commit()

    current_app.logger.info("Recorded %s of %.2f in org %s", tx.type, tx.amount, org_id)
    return tx


def list_transactions(
    *,
    org_id: int,
    tx_type: str | None = None,
    search: str | None = None,
    limit: int | None = None,
) -> list[FinancialTransaction]:
    """
    Transactions newest first.

    tx_type filters by INCOME/EXPENSE. search is a case-insensitive substring
    match on the description or the type.
    """
    query = db.session.query(FinancialTransaction).filter_by(org_id=org_id)

    if tx_type:
        tx_type = tx_type.upper()
        if tx_type not in TRANSACTION_TYPES:
            raise ValidationError(f"type must be one of {', '.join(TRANSACTION_TYPES)}")
        query = query.filter_by(type=tx_type)

    if search and search.strip():
        term = search.strip().lower()
        query = query.filter(or_(
            func.lower(FinancialTransaction.description).contains(term, autoescape=True),
            func.lower(FinancialTransaction.type).contains(term, autoescape=True),
        ))

    query = query.order_by(FinancialTransaction.created_at.desc(), FinancialTransaction.id.desc())
    if limit is not None:
        query = query.limit(limit)
    return query.all()


def transaction_totals(*, org_id: int) -> dict:
    """Total income, total expense and net across the whole log."""
    rows = (
        db.session.query(FinancialTransaction.type, func.coalesce(func.sum(FinancialTransaction.amount), 0.0))
        .filter(FinancialTransaction.org_id == org_id)
        .group_by(FinancialTransaction.type)
        .all()
    )
    sums = {tx_type: float(amount) for tx_type, amount in rows}
    total_income = sums.get(TRANSACTION_INCOME, 0.0)
    total_expense = sums.get(TRANSACTION_EXPENSE, 0.0)
    return {
        "total_income": total_income,
        "total_expense": total_expense,
        "net": total_income - total_expense,
    }
