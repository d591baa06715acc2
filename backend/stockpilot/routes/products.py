# Overview: Flask API routes for products operations; parses input and returns JSON responses.

# backend/stockpilot/routes/products.py
"""
Product catalog routes with multi-tenant support.

MULTI-TENANT: All product operations are scoped to the caller's organization.
The org_id is derived from g.org_id (set by @require_auth).

SECURITY: All routes require authentication.
- Read operations require VIEW_PRODUCTS permission
- Write operations require MANAGE_PRODUCTS permission
"""
from flask import Blueprint, request, g, current_app
from ..services import products_service
from ..models import Product
from ..validation import (
    ModelValidationPolicy,
    validate_payload,
    enforce_rules_product,
    ValidationError,
    NotFoundError,
)
from ..decorators import require_auth, require_permission

PRODUCT_POLICY = ModelValidationPolicy(
    writable_fields={"name", "size", "price", "cost", "stock", "min_stock"},
    required_on_create={"name"},
)

# stock is set at creation only; afterwards it moves through /api/inventory
PRODUCT_UPDATE_POLICY = ModelValidationPolicy(
    writable_fields={"name", "size", "price", "cost", "min_stock"},
)

products_bp = Blueprint("products", __name__, url_prefix="/api/products")


@products_bp.get("")
@require_auth
@require_permission("VIEW_PRODUCTS")
def list_products():
    """
    List active products ordered by name.

    Query params:
    - search: str (optional) - case-insensitive name filter
    """
    search = request.args.get("search")
    return products_service.list_products(org_id=g.org_id, search=search)


@products_bp.get("/<int:product_id>")
@require_auth
@require_permission("VIEW_PRODUCTS")
def get_product_route(product_id: int):
    try:
        product = products_service.get_product(org_id=g.org_id, product_id=product_id)
    except NotFoundError as e:
        return {"error": str(e)}, 404
    return product.to_dict(), 200


@products_bp.post("")
@require_auth
@require_permission("MANAGE_PRODUCTS")
def create_product_route():
    """
    Create a new product.

    A positive initial stock is booked as an ADDITION ledger entry and, when
    cost > 0, an "Initial Inventory" expense.
    """
    payload = request.get_json(silent=True) or {}

    try:
        patch = validate_payload(model=Product, payload=payload, policy=PRODUCT_POLICY, partial=False)
        enforce_rules_product(patch)
        created = products_service.create_product(
            org_id=g.org_id,
            patch=patch,
            profile_id=g.session_context.profile_id,
        )
    except ValidationError as e:
        return {"error": str(e)}, 400
    except Exception:
        current_app.logger.exception("Failed to create product")
        return {"error": "Internal server error"}, 500

    return created, 201


@products_bp.put("/<int:product_id>")
@require_auth
@require_permission("MANAGE_PRODUCTS")
def update_product_route(product_id: int):
    """Update catalog fields (name, size, price, cost, min_stock)."""
    payload = request.get_json(silent=True) or {}

    if "stock" in payload:
        return {"error": "stock can only be changed through inventory adjustments"}, 400

    try:
        patch = validate_payload(model=Product, payload=payload, policy=PRODUCT_UPDATE_POLICY, partial=True)
        enforce_rules_product(patch)
        updated = products_service.update_product(org_id=g.org_id, product_id=product_id, patch=patch)
    except NotFoundError as e:
        return {"error": str(e)}, 404
    except ValidationError as e:
        return {"error": str(e)}, 400

    return updated, 200


@products_bp.delete("/<int:product_id>")
@require_auth
@require_permission("MANAGE_PRODUCTS")
def delete_product_route(product_id: int):
    """
    Delete a product.

    MULTI-TENANT: Only products in caller's organization can be deleted.
    The row is deactivated so its stock history stays intact.
    """
    deleted = products_service.delete_product(org_id=g.org_id, product_id=product_id)

    if not deleted:
        return {"error": "Product not found"}, 404

    return {"ok": True}, 200
