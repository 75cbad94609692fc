"""
Pytest fixtures for shopledger backend tests.

Provides test database setup, two-tenant fixtures, a LedgerStore and a test
client with signed bearer tokens.
"""

import pytest
from jose import jwt

from shopledger import create_app
from shopledger.extensions import db
from shopledger.models import Shop, Customer, Product
from shopledger.repositories import LedgerStore
from shopledger.services.tenant_service import Credential, ROLE_SUPER_ADMIN

TEST_SECRET = "test-secret-key"


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SECRET_KEY': TEST_SECRET,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
    })

    with app.app_context():
        db.create_all()
        yield app
        db.drop_all()


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

        yield db.session

        # Cleanup after test
        db.session.rollback()


@pytest.fixture(scope='function')
def store(db_session):
    """LedgerStore over the test session with the default numbering policy."""
    return LedgerStore(db_session)


@pytest.fixture(scope='function')
def shop_a(db_session):
    """Create Shop A (first tenant)."""
    shop = Shop(name="Shop A - Colombo Mobile", is_active=True)
    db_session.add(shop)
    db_session.commit()
    return shop


@pytest.fixture(scope='function')
def shop_b(db_session):
    """Create Shop B (second tenant)."""
    shop = Shop(name="Shop B - Kandy Electronics", is_active=True)
    db_session.add(shop)
    db_session.commit()
    return shop


@pytest.fixture(scope='function')
def customer_a(db_session, shop_a):
    customer = Customer(shop_id=shop_a.id, name="Nimal Perera", phone="0771234567")
    db_session.add(customer)
    db_session.commit()
    return customer


@pytest.fixture(scope='function')
def customer_b(db_session, shop_b):
    customer = Customer(shop_id=shop_b.id, name="Kamal Silva")
    db_session.add(customer)
    db_session.commit()
    return customer


@pytest.fixture(scope='function')
def product_a(db_session, shop_a):
    """Create Product in Shop A with 5 units on hand."""
    product = Product(shop_id=shop_a.id, name="USB-C Cable", price=125.0, stock=5)
    db_session.add(product)
    db_session.commit()
    return product


@pytest.fixture(scope='function')
def product_b(db_session, shop_b):
    """Create Product in Shop B."""
    product = Product(shop_id=shop_b.id, name="Phone Case", price=900.0, stock=10)
    db_session.add(product)
    db_session.commit()
    return product


@pytest.fixture(scope='function')
def credential_a(shop_a):
    return Credential(user_id="user-a", role="ADMIN", home_shop_id=shop_a.id, name="Admin A")


@pytest.fixture(scope='function')
def super_admin():
    return Credential(user_id="root", role=ROLE_SUPER_ADMIN, home_shop_id=None, name="Root")


def make_token(user_id: str, role: str, shop_id=None, name=None, secret: str = TEST_SECRET) -> str:
    """Helper to mint a bearer token the way the auth service would."""
    claims = {"sub": user_id, "role": role, "shopId": shop_id}
    if name:
        claims["name"] = name
    return jwt.encode(claims, secret, algorithm="HS256")


def auth_headers(token: str) -> dict:
    """Helper to create Authorization headers."""
    return {'Authorization': f'Bearer {token}'}
