# Overview: Pytest coverage for the Flask CLI command groups.

from sqlalchemy import update

from stockpilot.models import Organization, Product, Profile
from stockpilot.services import products_service
from conftest import PASSWORD


def test_orgs_create_and_list(app, db_session):
    runner = app.test_cli_runner()

    result = runner.invoke(args=[
        "orgs", "create", "--name", "CLI Shop",
        "--owner-email", "cli@shop.com", "--owner-name", "Cli Owner",
        "--password", PASSWORD, "--timezone", "Asia/Kolkata",
    ])
    assert result.exit_code == 0, result.output
    assert "PASS Created organization: CLI Shop" in result.output

    org = db_session.query(Organization).filter_by(name="CLI Shop").one()
    assert org.timezone == "Asia/Kolkata"
    assert db_session.query(Profile).filter_by(org_id=org.id, role="owner").count() == 1

    result = runner.invoke(args=["orgs", "list"])
    assert "CLI Shop" in result.output


def test_users_create_employee(app, db_session, org_a):
    runner = app.test_cli_runner()
    result = runner.invoke(args=[
        "users", "create", "--org-id", str(org_a.id),
        "--email", "crew@shop.com", "--full-name", "Crew", "--password", PASSWORD,
    ])
    assert result.exit_code == 0, result.output

    profile = db_session.query(Profile).filter_by(email="crew@shop.com").one()
    assert profile.org_id == org_a.id
    assert profile.role == "employee"


def test_users_create_rejects_weak_password(app, db_session, org_a):
    runner = app.test_cli_runner()
    result = runner.invoke(args=[
        "users", "create", "--org-id", str(org_a.id),
        "--email", "weak@shop.com", "--full-name", "Weak", "--password", "weak",
    ])
    assert "FAIL Password validation failed" in result.output
    assert db_session.query(Profile).filter_by(email="weak@shop.com").count() == 0


def test_ledger_verify(app, db_session, org_a):
    good = products_service.create_product(org_id=org_a.id, patch={"name": "Good", "stock": 3})
    bad = products_service.create_product(org_id=org_a.id, patch={"name": "Bad", "stock": 3})
    db_session.execute(update(Product).where(Product.id == bad["id"]).values(stock=1))
    db_session.commit()

    runner = app.test_cli_runner()

    result = runner.invoke(args=["ledger", "verify", "--org-id", str(org_a.id), "--product-id", str(good["id"])])
    assert result.exit_code == 0
    assert f"PASS Product {good['id']}" in result.output

    result = runner.invoke(args=["ledger", "verify", "--org-id", str(org_a.id)])
    assert result.exit_code == 1
    assert f"FAIL Product {bad['id']}" in result.output


def test_perms_list_for_employee(app):
    result = app.test_cli_runner().invoke(args=["perms", "list", "--role", "employee"])
    assert "CREATE_SALE" in result.output
    assert "MANAGE_TEAM" not in result.output
