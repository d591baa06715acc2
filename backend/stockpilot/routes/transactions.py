# Overview: Flask API routes for the income/expense log; parses input and returns JSON responses.

from flask import Blueprint, request, g
from ..services import finance_service
from ..models import FinancialTransaction
from ..validation import (
    ModelValidationPolicy,
    validate_payload,
    enforce_rules_financial_transaction,
    ValidationError,
)
from ..decorators import require_auth, require_permission

TRANSACTION_POLICY = ModelValidationPolicy(
    writable_fields={"type", "amount", "description"},
    required_on_create={"type", "amount", "description"},
)

transactions_bp = Blueprint("transactions", __name__, url_prefix="/api/transactions")


@transactions_bp.get("")
@require_auth
@require_permission("VIEW_TRANSACTIONS")
def list_transactions_route():
    """
    Transactions newest first.

    Query params:
    - type: INCOME | EXPENSE (optional)
    - search: matches description or type (optional)

    total_income, total_expense and net always cover the whole log.
    """
    try:
        txs = finance_service.list_transactions(
            org_id=g.org_id,
            tx_type=request.args.get("type"),
            search=request.args.get("search"),
        )
    except ValidationError as e:
        return {"error": str(e)}, 400

    body = {"items": [t.to_dict() for t in txs], "count": len(txs)}
    body.update(finance_service.transaction_totals(org_id=g.org_id))
    return body, 200


@transactions_bp.post("")
@require_auth
@require_permission("CREATE_TRANSACTION")
def create_transaction_route():
    """Record a manual income or expense (owners only)."""
    payload = request.get_json(silent=True) or {}
    if isinstance(payload.get("type"), str):
        payload["type"] = payload["type"].strip().upper()

    try:
        patch = validate_payload(
            model=FinancialTransaction, payload=payload, policy=TRANSACTION_POLICY, partial=False
        )
        enforce_rules_financial_transaction(patch)
        tx = finance_service.record_transaction(
            org_id=g.org_id, patch=patch, profile_id=g.session_context.profile_id
        )
    except ValidationError as e:
        return {"error": str(e)}, 400

    return tx.to_dict(), 201
