# Overview: Flask API route for the dashboard summary.

from flask import Blueprint, g
from ..services import dashboard_service
from ..decorators import require_auth, require_permission

dashboard_bp = Blueprint("dashboard", __name__, url_prefix="/api/dashboard")


@dashboard_bp.get("")
@require_auth
@require_permission("VIEW_DASHBOARD")
def dashboard_route():
    """
    KPIs, 7-day sales trend and the five most recent sales.

    Financial KPIs are only included for callers with VIEW_FINANCIALS.
    """
    include_financials = g.session_context.has_permission("VIEW_FINANCIALS")
    return dashboard_service.build_dashboard(
        org_id=g.org_id, include_financials=include_financials
    ), 200
