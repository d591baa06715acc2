# Overview: Flask API routes for sales operations; parses input and returns JSON responses.

"""
Point-of-sale routes.

POST /api/sales is a single-step checkout: the cart is validated against
current stock and committed atomically, or rejected with details.
"""

from flask import Blueprint, request, g, current_app
from ..services import sales_service
from ..services.sales_service import CheckoutError
from ..validation import ValidationError, NotFoundError
from ..decorators import require_auth, require_permission

sales_bp = Blueprint("sales", __name__, url_prefix="/api/sales")


@sales_bp.post("")
@require_auth
@require_permission("CREATE_SALE")
def checkout_route():
    """
    Check out a cart.

    Body:
    - items: [{product_id, quantity}, ...]
    - customer_name: str (optional)
    - discount: number >= 0 (optional)
    """
    data = request.get_json(silent=True) or {}

    try:
        sale = sales_service.checkout(
            org_id=g.org_id,
            items=data.get("items"),
            customer_name=data.get("customer_name"),
            discount=data.get("discount", 0),
            profile_id=g.session_context.profile_id,
        )
    except ValidationError as e:
        return {"error": str(e)}, 400
    except CheckoutError as e:
        return {"error": str(e), "details": e.details}, 409
    except Exception:
        current_app.logger.exception("Checkout failed")
        return {"error": "Internal server error"}, 500

    return {"sale": sale.to_dict()}, 201


@sales_bp.get("")
@require_auth
@require_permission("VIEW_SALES")
def list_sales_route():
    """
    Sales newest first, with items.

    Query params:
    - search: customer name or sale id
    """
    search = request.args.get("search")
    sales = sales_service.list_sales(org_id=g.org_id, search=search)
    return {"items": [s.to_dict() for s in sales], "count": len(sales)}, 200


@sales_bp.get("/<int:sale_id>")
@require_auth
@require_permission("VIEW_SALES")
def get_sale_route(sale_id: int):
    try:
        sale = sales_service.get_sale(org_id=g.org_id, sale_id=sale_id)
    except NotFoundError as e:
        return {"error": str(e)}, 404
    return {"sale": sale.to_dict()}, 200
