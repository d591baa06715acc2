# Overview: Pytest coverage for dashboard aggregation.

from datetime import date, datetime, timedelta

import pytest

from stockpilot.models import FinancialTransaction, Sale
from stockpilot.services import dashboard_service, products_service

NOW = datetime(2026, 3, 10, 12, 0, 0)  # a Tuesday, UTC-naive


def _sale(db_session, org, amount, created_at):
    sale = Sale(org_id=org.id, total_amount=amount, discount=0.0, created_at=created_at)
    db_session.add(sale)
    db_session.commit()
    return sale


class TestSalesTrend:

    def test_seven_buckets_oldest_first(self, db_session, org_a):
        trend = dashboard_service.sales_trend(org_id=org_a.id, now=NOW)

        assert len(trend) == 7
        assert [t["date"] for t in trend] == [
            (date(2026, 3, 4) + timedelta(days=i)).isoformat() for i in range(7)
        ]
        assert trend[-1]["label"] == "Tue"
        assert all(t["total"] == 0 for t in trend)

    def test_totals_cover_only_the_window(self, db_session, org_a, org_b):
        _sale(db_session, org_a, 10.0, NOW - timedelta(hours=1))
        _sale(db_session, org_a, 5.5, NOW - timedelta(days=1))
        _sale(db_session, org_a, 4.5, NOW - timedelta(days=1, hours=2))
        _sale(db_session, org_a, 7.0, datetime(2026, 3, 4, 0, 0, 1))
        _sale(db_session, org_a, 99.0, datetime(2026, 3, 3, 23, 59, 59))  # day before the window
        _sale(db_session, org_b, 1000.0, NOW)  # other tenant

        trend = dashboard_service.sales_trend(org_id=org_a.id, now=NOW)
        totals = {t["date"]: t["total"] for t in trend}

        assert totals["2026-03-10"] == pytest.approx(10.0)
        assert totals["2026-03-09"] == pytest.approx(10.0)
        assert totals["2026-03-04"] == pytest.approx(7.0)
        assert sum(totals.values()) == pytest.approx(27.0)

    def test_buckets_follow_org_timezone(self, db_session, org_a):
        org_a.timezone = "Asia/Kolkata"
        db_session.commit()

        # 20:00 UTC on the 9th is 01:30 on the 10th in India
        _sale(db_session, org_a, 12.0, datetime(2026, 3, 9, 20, 0, 0))

        trend = dashboard_service.sales_trend(org_id=org_a.id, now=NOW)
        totals = {t["date"]: t["total"] for t in trend}
        assert totals["2026-03-10"] == pytest.approx(12.0)
        assert totals["2026-03-09"] == 0


class TestBuildDashboard:

    def test_financial_summary(self, db_session, org_a):
        products_service.create_product(
            org_id=org_a.id, patch={"name": "Pens", "price": 2.0, "cost": 1.5, "stock": 4, "min_stock": 5}
        )
        _sale(db_session, org_a, 30.0, NOW)
        db_session.add(FinancialTransaction(org_id=org_a.id, type="EXPENSE", amount=4.0, description="Rent"))
        db_session.add(FinancialTransaction(org_id=org_a.id, type="INCOME", amount=8.0, description="Tip"))
        db_session.commit()

        data = dashboard_service.build_dashboard(org_id=org_a.id, now=NOW)
        summary = data["summary"]

        assert summary["total_revenue"] == pytest.approx(30.0)
        assert summary["total_expenses"] == pytest.approx(10.0)  # 6.0 initial inventory + 4.0 rent
        assert summary["net_profit"] == pytest.approx(20.0)
        assert summary["sale_count"] == 1
        assert summary["low_stock_count"] == 1
        assert summary["inventory_value"] == pytest.approx(6.0)
        assert len(data["sales_trend"]) == 7

    def test_recent_sales_limited_to_five(self, db_session, org_a):
        sales = [_sale(db_session, org_a, float(i), NOW - timedelta(minutes=10 - i)) for i in range(7)]

        data = dashboard_service.build_dashboard(org_id=org_a.id, now=NOW)
        assert [s["id"] for s in data["recent_sales"]] == [s.id for s in reversed(sales)][:5]

    def test_employee_gets_no_financials(self, client, employee_headers):
        resp = client.get("/api/dashboard", headers=employee_headers)
        assert resp.status_code == 200
        assert "summary" not in resp.json
        assert len(resp.json["sales_trend"]) == 7

    def test_owner_gets_financials(self, client, owner_headers):
        resp = client.get("/api/dashboard", headers=owner_headers)
        assert resp.status_code == 200
        assert resp.json["summary"]["sale_count"] == 0
