"""
Pytest fixtures for Stockpilot backend tests.

Provides test database setup, tenant fixtures, auth helpers and fakes for
the external chat model and invitation mailer.
"""

import pytest
from sqlalchemy import event, update
from stockpilot import create_app
from stockpilot.extensions import db
from stockpilot.models import Organization, Profile, Product
from stockpilot.models.auth import ROLE_EMPLOYEE, ROLE_OWNER
from stockpilot.services.auth_service import hash_password
from stockpilot.services.chat_client import ChatClientError
from stockpilot.services.session_service import create_session

PASSWORD = "Password123!"

EXTENSION_KEYS = (
    "stockpilot.chat_client",
    "stockpilot.invite_mailer",
    "stockpilot.assistant_sessions",
)


class FakeChatClient:
    """Records every transcript it is sent and answers with a canned reply."""

    def __init__(self, reply="Stock up on your best sellers."):
        self.reply = reply
        self.calls = []
        self.fail_with = None

    def generate(self, history):
        self.calls.append([dict(turn) for turn in history])
        if self.fail_with:
            raise ChatClientError(self.fail_with)
        return self.reply


class FakeMailer:
    def __init__(self, result=True):
        self.result = result
        self.sent = []

    def send_invitation(self, *, email, organization_id, organization_name):
        self.sent.append({
            "email": email,
            "organization_id": organization_id,
            "organization_name": organization_name,
        })
        return self.result


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        'GEMINI_API_KEY': None,
        'MAIL_SERVER': None,
        'CURRENCY_SYMBOL': '₹',
    })

    with app.app_context():
        db.create_all()
        yield app
        db.drop_all()


@pytest.fixture(scope='session')
def password_hash():
    """bcrypt is slow on purpose; hash the shared test password once."""
    return hash_password(PASSWORD)


@pytest.fixture(scope='function')
def client(app):
    """Create test client."""
    return app.test_client()


@pytest.fixture(scope='function')
def db_session(app):
    """Create fresh database for each test."""
    with app.app_context():
        # Clear all data but keep schema
        meta = db.metadata
        for table in reversed(meta.sorted_tables):
            db.session.execute(table.delete())
        db.session.commit()

        for key in EXTENSION_KEYS:
            app.extensions.pop(key, None)

        yield db.session

        # Cleanup after test
        db.session.rollback()
        for key in EXTENSION_KEYS:
            app.extensions.pop(key, None)


@pytest.fixture(scope='function')
def chat_client(app, db_session):
    fake = FakeChatClient()
    app.extensions["stockpilot.chat_client"] = fake
    return fake


@pytest.fixture(scope='function')
def mailer(app, db_session):
    fake = FakeMailer()
    app.extensions["stockpilot.invite_mailer"] = fake
    return fake


def _make_profile(db_session, org, email, role, password_hash, full_name):
    profile = Profile(
        org_id=org.id,
        email=email,
        password_hash=password_hash,
        full_name=full_name,
        role=role,
    )
    db_session.add(profile)
    db_session.commit()
    return profile


@pytest.fixture(scope='function')
def org_a(db_session):
    """Create Organization A (first tenant)."""
    org = Organization(name="Org A - Corner Shop")
    db_session.add(org)
    db_session.commit()
    return org


@pytest.fixture(scope='function')
def org_b(db_session):
    """Create Organization B (second tenant)."""
    org = Organization(name="Org B - Beta Mart")
    db_session.add(org)
    db_session.commit()
    return org


@pytest.fixture(scope='function')
def owner_a(db_session, org_a, password_hash):
    return _make_profile(db_session, org_a, "owner_a@corner.shop", ROLE_OWNER, password_hash, "Owner A")


@pytest.fixture(scope='function')
def employee_a(db_session, org_a, password_hash):
    return _make_profile(db_session, org_a, "staff_a@corner.shop", ROLE_EMPLOYEE, password_hash, "Staff A")


@pytest.fixture(scope='function')
def owner_b(db_session, org_b, password_hash):
    return _make_profile(db_session, org_b, "owner_b@beta.mart", ROLE_OWNER, password_hash, "Owner B")


def auth_headers(token: str) -> dict:
    """Helper to create Authorization headers."""
    return {'Authorization': f'Bearer {token}'}


def headers_for(profile) -> dict:
    _, token = create_session(profile.id)
    return auth_headers(token)


@pytest.fixture(scope='function')
def owner_headers(owner_a):
    return headers_for(owner_a)


@pytest.fixture(scope='function')
def employee_headers(employee_a):
    return headers_for(employee_a)


@pytest.fixture(scope='function')
def owner_b_headers(owner_b):
    return headers_for(owner_b)


@pytest.fixture(scope='function')
def make_product(db_session):
    """
    Insert a product row directly, without ledger entries.

    Only use stock=0 here when a test checks ledger replay; products with
    initial stock should go through products_service.create_product.
    """
    def _make(org, name="Widget", price=10.0, cost=4.0, stock=0, min_stock=5, size=None):
        product = Product(
            org_id=org.id,
            name=name,
            size=size,
            price=price,
            cost=cost,
            stock=stock,
            min_stock=min_stock,
        )
        db_session.add(product)
        db_session.commit()
        return product
    return _make


def get_auth_token(client, email: str, password: str = PASSWORD) -> str:
    """Helper to get auth token for a profile."""
    response = client.post('/api/auth/login', json={
        'email': email,
        'password': password
    })
    if response.status_code == 200:
        return response.json.get('token')
    return None


@pytest.fixture(scope='function')
def competing_stock_write(db_session):
    """
    Commit a stock change for one product from a second connection, once,
    at the next ORM flush.

    By then the service under test has read the product, so its own UPDATE
    carries a stale version_id.
    """
    listeners = []

    def _arm(product_id, stock):
        products = Product.__table__
        fired = []

        def _before_flush(session, flush_context, instances):
            if fired:
                return
            fired.append(product_id)
            with db.engine.begin() as conn:
                conn.execute(
                    update(products)
                    .where(products.c.id == product_id)
                    .values(stock=stock, version_id=products.c.version_id + 1)
                )

        event.listen(db.session, "before_flush", _before_flush)
        listeners.append(_before_flush)

    yield _arm

    for listener in listeners:
        event.remove(db.session, "before_flush", listener)
