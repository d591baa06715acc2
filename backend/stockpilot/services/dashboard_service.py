# Overview: Service-layer aggregation for the dashboard; encapsulates business logic and database work.

from __future__ import annotations

from datetime import datetime, timedelta

from sqlalchemy import func

from ..extensions import db
from ..models import FinancialTransaction, Organization, Product, Sale
from ..models.finance import TRANSACTION_EXPENSE
from ..time_utils import get_zone, local_day_bounds_utc, to_local, utcnow

TREND_DAYS = 7
RECENT_SALES_LIMIT = 5


def _org_zone(org_id: int):
    org = db.session.get(Organization, org_id)
    return get_zone(org.timezone if org else None)


def sales_trend(*, org_id: int, now: datetime | None = None, days: int = TREND_DAYS) -> list[dict]:
    """
    Sales totals for the trailing `days` calendar days including today,
    oldest first.

    Days are bucketed in the organization's timezone. Every day is present,
    with 0 when nothing was sold.
    """
    zone = _org_zone(org_id)
    today = to_local(now or utcnow(), zone).date()
    first_day = today - timedelta(days=days - 1)

    window_start, _ = local_day_bounds_utc(first_day, zone)
    _, window_end = local_day_bounds_utc(today, zone)

    sales = (
        db.session.query(Sale.created_at, Sale.total_amount)
        .filter(
            Sale.org_id == org_id,
            Sale.created_at >= window_start,
            Sale.created_at < window_end,
        )
        .all()
    )

    totals: dict = {}
    for created_at, amount in sales:
        day = to_local(created_at, zone).date()
        totals[day] = totals.get(day, 0.0) + (amount or 0.0)

    trend = []
    for offset in range(days):
        day = first_day + timedelta(days=offset)
        trend.append({
            "date": day.isoformat(),
            "label": day.strftime("%a"),
            "total": totals.get(day, 0.0),
        })
    return trend


def financial_summary(*, org_id: int) -> dict:
    total_revenue = (
        db.session.query(func.coalesce(func.sum(Sale.total_amount), 0.0))
        .filter(Sale.org_id == org_id)
        .scalar()
    )
    total_expenses = (
        db.session.query(func.coalesce(func.sum(FinancialTransaction.amount), 0.0))
        .filter(
            FinancialTransaction.org_id == org_id,
            FinancialTransaction.type == TRANSACTION_EXPENSE,
        )
        .scalar()
    )
    sale_count = db.session.query(func.count(Sale.id)).filter(Sale.org_id == org_id).scalar()

    products = db.session.query(Product).filter_by(org_id=org_id, is_active=True).all()

    return {
        "total_revenue": float(total_revenue or 0.0),
        "total_expenses": float(total_expenses or 0.0),
        "net_profit": float(total_revenue or 0.0) - float(total_expenses or 0.0),
        "sale_count": int(sale_count or 0),
        "low_stock_count": sum(1 for p in products if p.is_low_stock),
        "inventory_value": sum(p.inventory_value for p in products),
    }


def build_dashboard(*, org_id: int, now: datetime | None = None, include_financials: bool = True) -> dict:
    """
    Dashboard payload.

    Employees (include_financials=False) get the trend and recent sales only.
    """
    recent = (
        db.session.query(Sale)
        .filter(Sale.org_id == org_id)
        .order_by(Sale.created_at.desc(), Sale.id.desc())
        .limit(RECENT_SALES_LIMIT)
        .all()
    )

    payload = {
        "sales_trend": sales_trend(org_id=org_id, now=now),
        "recent_sales": [s.to_dict() for s in recent],
    }
    if include_financials:
        payload["summary"] = financial_summary(org_id=org_id)
    return payload
