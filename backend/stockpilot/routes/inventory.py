# Overview: Flask API routes for inventory operations; parses input and returns JSON responses.

# backend/stockpilot/routes/inventory.py
"""
Inventory routes: stock levels, adjustments, history and ledger reconciliation.

MULTI-TENANT: product_id is always resolved inside g.org_id.
"""
from flask import Blueprint, request, g, current_app
from ..services import inventory_service, ledger_service
from ..services.inventory_service import InventoryError
from ..validation import (
    ValidationError,
    NotFoundError,
    coerce_amount,
    coerce_positive_int,
    MAX_AMOUNT,
)
from ..decorators import require_auth, require_permission

inventory_bp = Blueprint("inventory", __name__, url_prefix="/api/inventory")


@inventory_bp.get("")
@require_auth
@require_permission("VIEW_INVENTORY")
def list_inventory_route():
    """Active products, lowest stock first, each flagged is_low_stock. ?search= filters by name."""
    return inventory_service.list_inventory(org_id=g.org_id, search=request.args.get("search"))


@inventory_bp.post("/<int:product_id>/adjust")
@require_auth
@require_permission("ADJUST_INVENTORY")
def adjust_route(product_id: int):
    """
    Restock or reduce stock.

    Body:
    - type: "ADDITION" | "ADJUSTMENT"
    - quantity: positive int
    - unit_cost: number >= 0 (optional, ADDITION only; moves the average cost)
    - note: str (optional)
    """
    data = request.get_json(silent=True) or {}

    try:
        adjustment_type = str(data.get("type") or "").strip().upper()
        quantity = coerce_positive_int(data.get("quantity"), "quantity")

        unit_cost = None
        if data.get("unit_cost") not in (None, ""):
            unit_cost = coerce_amount(data["unit_cost"], "unit_cost")
            if unit_cost > MAX_AMOUNT:
                raise ValidationError(f"unit_cost cannot exceed {MAX_AMOUNT:,.2f}")

        note = data.get("note")
        if note is not None:
            note = str(note).strip()[:255] or None

        product, plan = inventory_service.adjust_stock(
            org_id=g.org_id,
            product_id=product_id,
            adjustment_type=adjustment_type,
            quantity=quantity,
            unit_cost=unit_cost,
            note=note,
            profile_id=g.session_context.profile_id,
        )
    except ValidationError as e:
        return {"error": str(e)}, 400
    except NotFoundError as e:
        return {"error": str(e)}, 404
    except InventoryError as e:
        return {"error": str(e), "details": e.details}, 409
    except Exception:
        current_app.logger.exception("Failed to adjust stock for product %s", product_id)
        return {"error": "Internal server error"}, 500

    return {
        "product": product.to_dict(),
        "change": plan.change,
        "expense_amount": plan.expense_amount,
    }, 200


@inventory_bp.get("/<int:product_id>/history")
@require_auth
@require_permission("VIEW_INVENTORY")
def history_route(product_id: int):
    """Stock history for one product, newest first."""
    limit = request.args.get("limit", default=200, type=int)
    limit = max(1, min(limit, 1000))

    try:
        entries = ledger_service.list_product_history(
            org_id=g.org_id, product_id=product_id, limit=limit
        )
    except NotFoundError as e:
        return {"error": str(e)}, 404

    return {"items": [e.to_dict() for e in entries], "count": len(entries)}, 200


@inventory_bp.get("/<int:product_id>/reconcile")
@require_auth
@require_permission("VIEW_INVENTORY")
def reconcile_route(product_id: int):
    """Replay the product's ledger and compare it with current stock."""
    try:
        return ledger_service.verify_product_ledger(org_id=g.org_id, product_id=product_id), 200
    except NotFoundError as e:
        return {"error": str(e)}, 404
