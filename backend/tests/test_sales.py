# Overview: Pytest coverage for point-of-sale checkout.

import pytest

from stockpilot.models import FinancialTransaction, InventoryLedgerEntry, Product, Sale, SaleItem
from stockpilot.services import products_service, sales_service
from stockpilot.services.sales_service import CheckoutError
from stockpilot.validation import NotFoundError, ValidationError


@pytest.fixture
def two_products(db_session, org_a):
    a = products_service.create_product(org_id=org_a.id, patch={"name": "Alpha", "price": 100.0, "stock": 5})
    b = products_service.create_product(org_id=org_a.id, patch={"name": "Beta", "price": 50.0, "stock": 3})
    return a["id"], b["id"]


class TestCheckout:

    def test_checkout_writes_sale_items_ledger_and_income(self, db_session, org_a, owner_a, two_products):
        a_id, b_id = two_products

        sale = sales_service.checkout(
            org_id=org_a.id,
            items=[{"product_id": a_id, "quantity": 2}, {"product_id": b_id, "quantity": 1}],
            customer_name="Meera",
            discount=20,
            profile_id=owner_a.id,
        )

        assert sale.total_amount == pytest.approx(230.0)
        assert sale.discount == pytest.approx(20.0)
        assert [(i.product_id, i.quantity, i.price_at_sale) for i in sale.items] == [
            (a_id, 2, 100.0),
            (b_id, 1, 50.0),
        ]

        assert db_session.get(Product, a_id).stock == 3
        assert db_session.get(Product, b_id).stock == 2

        sale_entries = (
            db_session.query(InventoryLedgerEntry)
            .filter_by(related_sale_id=sale.id)
            .order_by(InventoryLedgerEntry.id.asc())
            .all()
        )
        assert [(e.transaction_type, e.product_id, e.quantity_change, e.stock_after) for e in sale_entries] == [
            ("SALE", a_id, -2, 3),
            ("SALE", b_id, -1, 2),
        ]

        income = db_session.query(FinancialTransaction).filter_by(type="INCOME").all()
        assert len(income) == 1
        assert income[0].amount == pytest.approx(230.0)
        assert income[0].description == f"Sale #{sale.id}"
        assert income[0].related_sale_id == sale.id

    def test_discount_larger_than_subtotal_clamps_to_zero(self, db_session, org_a, two_products):
        a_id, _ = two_products
        sale = sales_service.checkout(
            org_id=org_a.id, items=[{"product_id": a_id, "quantity": 1}], discount=500
        )
        assert sale.total_amount == 0

    def test_duplicate_lines_are_merged(self, db_session, org_a, two_products):
        a_id, _ = two_products
        sale = sales_service.checkout(
            org_id=org_a.id,
            items=[{"product_id": a_id, "quantity": 2}, {"product_id": a_id, "quantity": 3}],
        )
        assert len(sale.items) == 1
        assert sale.items[0].quantity == 5
        assert db_session.get(Product, a_id).stock == 0

    def test_oversell_rejects_whole_sale(self, db_session, org_a, two_products):
        a_id, b_id = two_products
        counts_before = (
            db_session.query(Sale).count(),
            db_session.query(SaleItem).count(),
            db_session.query(InventoryLedgerEntry).count(),
            db_session.query(FinancialTransaction).count(),
        )

        with pytest.raises(CheckoutError) as exc:
            sales_service.checkout(
                org_id=org_a.id,
                items=[{"product_id": a_id, "quantity": 1}, {"product_id": b_id, "quantity": 4}],
            )

        assert exc.value.details["items"][0]["product_id"] == b_id
        assert exc.value.details["items"][0]["on_hand"] == 3
        assert db_session.get(Product, a_id).stock == 5
        assert db_session.get(Product, b_id).stock == 3
        assert (
            db_session.query(Sale).count(),
            db_session.query(SaleItem).count(),
            db_session.query(InventoryLedgerEntry).count(),
            db_session.query(FinancialTransaction).count(),
        ) == counts_before

    def test_concurrent_stock_change_rejects_sale(self, db_session, org_a, two_products, competing_stock_write, caplog):
        a_id, b_id = two_products
        counts_before = (
            db_session.query(Sale).count(),
            db_session.query(InventoryLedgerEntry).count(),
            db_session.query(FinancialTransaction).count(),
        )
        competing_stock_write(a_id, stock=0)

        with pytest.raises(CheckoutError) as exc:
            sales_service.checkout(
                org_id=org_a.id,
                items=[{"product_id": a_id, "quantity": 2}, {"product_id": b_id, "quantity": 1}],
            )

        assert exc.value.details["items"] == [
            {"product_id": a_id, "name": "Alpha", "requested_quantity": 2, "on_hand": 0},
        ]
        assert "Retrying after concurrency conflict" in caplog.text
        assert db_session.get(Product, a_id).stock == 0
        assert db_session.get(Product, b_id).stock == 3
        assert (
            db_session.query(Sale).count(),
            db_session.query(InventoryLedgerEntry).count(),
            db_session.query(FinancialTransaction).count(),
        ) == counts_before

    def test_inactive_or_foreign_product_rejected(self, db_session, org_a, org_b, two_products):
        a_id, _ = two_products
        foreign = products_service.create_product(org_id=org_b.id, patch={"name": "Other", "stock": 9})
        products_service.delete_product(org_id=org_a.id, product_id=a_id)

        with pytest.raises(CheckoutError) as exc:
            sales_service.checkout(
                org_id=org_a.id,
                items=[{"product_id": a_id, "quantity": 1}, {"product_id": foreign["id"], "quantity": 1}],
            )
        assert sorted(exc.value.details["missing_product_ids"]) == sorted([a_id, foreign["id"]])

    @pytest.mark.parametrize(
        "items",
        [
            [],
            None,
            [{"product_id": 1}],
            [{"product_id": 1, "quantity": 0}],
            [{"product_id": 1, "quantity": 1.5}],
            ["not-a-line"],
        ],
    )
    def test_invalid_cart(self, db_session, org_a, items):
        with pytest.raises(ValidationError):
            sales_service.checkout(org_id=org_a.id, items=items)

    def test_negative_discount(self, db_session, org_a, two_products):
        a_id, _ = two_products
        with pytest.raises(ValidationError):
            sales_service.checkout(org_id=org_a.id, items=[{"product_id": a_id, "quantity": 1}], discount=-1)


class TestSalesRoutes:

    def test_checkout_route(self, client, employee_headers, two_products):
        a_id, b_id = two_products
        resp = client.post(
            "/api/sales",
            json={
                "items": [{"product_id": a_id, "quantity": 2}, {"product_id": b_id, "quantity": 1}],
                "discount": 20,
            },
            headers=employee_headers,
        )
        assert resp.status_code == 201
        sale = resp.json["sale"]
        assert sale["total_amount"] == pytest.approx(230.0)
        assert [i["product_name"] for i in sale["items"]] == ["Alpha", "Beta"]

    def test_checkout_route_oversell(self, client, employee_headers, two_products):
        a_id, _ = two_products
        resp = client.post(
            "/api/sales",
            json={"items": [{"product_id": a_id, "quantity": 6}]},
            headers=employee_headers,
        )
        assert resp.status_code == 409
        assert resp.json["details"]["items"][0]["requested_quantity"] == 6

    def test_list_and_search(self, client, owner_headers, org_a, two_products):
        a_id, _ = two_products
        first = sales_service.checkout(org_id=org_a.id, items=[{"product_id": a_id, "quantity": 1}], customer_name="Ravi")
        second = sales_service.checkout(org_id=org_a.id, items=[{"product_id": a_id, "quantity": 1}], customer_name="Anita")

        resp = client.get("/api/sales", headers=owner_headers)
        assert [s["id"] for s in resp.json["items"]] == [second.id, first.id]

        resp = client.get("/api/sales?search=rav", headers=owner_headers)
        assert [s["id"] for s in resp.json["items"]] == [first.id]

        resp = client.get(f"/api/sales?search=%23{second.id}", headers=owner_headers)
        assert second.id in [s["id"] for s in resp.json["items"]]

        resp = client.get("/api/sales?search=_", headers=owner_headers)
        assert resp.json["items"] == []

    def test_get_sale_other_org(self, client, owner_b_headers, org_a, two_products):
        a_id, _ = two_products
        sale = sales_service.checkout(org_id=org_a.id, items=[{"product_id": a_id, "quantity": 1}])

        resp = client.get(f"/api/sales/{sale.id}", headers=owner_b_headers)
        assert resp.status_code == 404

        with pytest.raises(NotFoundError):
            sales_service.get_sale(org_id=org_a.id + 1000, sale_id=sale.id)
