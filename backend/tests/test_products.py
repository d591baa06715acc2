# Overview: Pytest coverage for the product catalog.

import pytest

from stockpilot.models import FinancialTransaction, InventoryLedgerEntry, Product
from stockpilot.services import products_service
from stockpilot.validation import NotFoundError, ValidationError


def _ledger(db_session, product_id):
    return (
        db_session.query(InventoryLedgerEntry)
        .filter_by(product_id=product_id)
        .order_by(InventoryLedgerEntry.id.asc())
        .all()
    )


class TestCreateProduct:

    def test_initial_stock_books_addition_and_expense(self, db_session, org_a, owner_a):
        created = products_service.create_product(
            org_id=org_a.id,
            patch={"name": "Rice 5kg", "price": 12.0, "cost": 5.0, "stock": 10},
            profile_id=owner_a.id,
        )

        entries = _ledger(db_session, created["id"])
        assert len(entries) == 1
        assert entries[0].transaction_type == "ADDITION"
        assert entries[0].quantity_change == 10
        assert entries[0].stock_after == 10

        expenses = db_session.query(FinancialTransaction).filter_by(org_id=org_a.id, type="EXPENSE").all()
        assert len(expenses) == 1
        assert expenses[0].amount == pytest.approx(50.0)
        assert expenses[0].description == "Initial Inventory: Rice 5kg"

    def test_zero_stock_writes_neither(self, db_session, org_a):
        created = products_service.create_product(
            org_id=org_a.id,
            patch={"name": "Salt", "price": 1.0, "cost": 0.5, "stock": 0},
        )

        assert _ledger(db_session, created["id"]) == []
        assert db_session.query(FinancialTransaction).count() == 0

    def test_stock_without_cost_has_ledger_but_no_expense(self, db_session, org_a):
        created = products_service.create_product(
            org_id=org_a.id,
            patch={"name": "Free sample", "price": 0.0, "cost": 0.0, "stock": 3},
        )

        assert len(_ledger(db_session, created["id"])) == 1
        assert db_session.query(FinancialTransaction).count() == 0

    def test_defaults(self, db_session, org_a):
        created = products_service.create_product(org_id=org_a.id, patch={"name": "Soap"})
        assert created["stock"] == 0
        assert created["min_stock"] == 5
        assert created["is_low_stock"] is True

    def test_route_validates_payload(self, client, owner_headers):
        resp = client.post("/api/products", json={"price": 2}, headers=owner_headers)
        assert resp.status_code == 400
        assert "name" in resp.json["error"]

        resp = client.post("/api/products", json={"name": "Tea", "stock": 2.5}, headers=owner_headers)
        assert resp.status_code == 400

        resp = client.post("/api/products", json={"name": "Tea", "price": -1}, headers=owner_headers)
        assert resp.status_code == 400

    def test_route_creates_product(self, client, owner_headers, db_session):
        resp = client.post(
            "/api/products",
            json={"name": "Tea", "size": "250g", "price": 3.5, "cost": 2.25, "stock": 4, "min_stock": 2},
            headers=owner_headers,
        )
        assert resp.status_code == 201
        body = resp.json
        assert body["name"] == "Tea"
        assert body["size"] == "250g"
        assert body["stock"] == 4
        assert body["is_low_stock"] is False


class TestListAndGet:

    def test_search_is_case_insensitive(self, db_session, org_a, make_product):
        make_product(org_a, name="Green Tea")
        make_product(org_a, name="Coffee")
        make_product(org_a, name="Black TEA")

        result = products_service.list_products(org_id=org_a.id, search="tea")
        assert [p["name"] for p in result["items"]] == ["Black TEA", "Green Tea"]

    def test_search_treats_wildcards_literally(self, db_session, org_a, make_product):
        make_product(org_a, name="Soap 100% natural")
        make_product(org_a, name="Shampoo")

        result = products_service.list_products(org_id=org_a.id, search="%")
        assert [p["name"] for p in result["items"]] == ["Soap 100% natural"]

        assert products_service.list_products(org_id=org_a.id, search="_")["items"] == []

    def test_list_excludes_other_org(self, db_session, org_a, org_b, make_product):
        make_product(org_a, name="Mine")
        make_product(org_b, name="Theirs")

        result = products_service.list_products(org_id=org_a.id)
        assert result["count"] == 1
        assert result["items"][0]["name"] == "Mine"

    def test_get_missing(self, db_session, org_a):
        with pytest.raises(NotFoundError):
            products_service.get_product(org_id=org_a.id, product_id=12345)


class TestUpdateAndDelete:

    def test_update_changes_catalog_fields(self, db_session, org_a, make_product):
        p = make_product(org_a, name="Old", price=1.0)
        updated = products_service.update_product(
            org_id=org_a.id, product_id=p.id, patch={"name": "New", "price": 2.5}
        )
        assert updated["name"] == "New"
        assert updated["price"] == pytest.approx(2.5)

    def test_update_rejects_stock(self, db_session, org_a, make_product):
        p = make_product(org_a)
        with pytest.raises(ValidationError):
            products_service.update_product(org_id=org_a.id, product_id=p.id, patch={"stock": 99})

    def test_update_route_rejects_stock(self, client, owner_headers, org_a, make_product):
        p = make_product(org_a)
        resp = client.put(f"/api/products/{p.id}", json={"stock": 99}, headers=owner_headers)
        assert resp.status_code == 400

    def test_delete_is_soft(self, client, owner_headers, db_session, org_a, make_product):
        p = make_product(org_a)
        resp = client.delete(f"/api/products/{p.id}", headers=owner_headers)
        assert resp.status_code == 200

        row = db_session.get(Product, p.id)
        assert row is not None
        assert row.is_active is False

        resp = client.get(f"/api/products/{p.id}", headers=owner_headers)
        assert resp.status_code == 404

        resp = client.delete(f"/api/products/{p.id}", headers=owner_headers)
        assert resp.status_code == 404
