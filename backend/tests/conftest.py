"""
Pytest fixtures for storefront backend tests.

Provides the test app (in-memory SQLite, memory cache), per-test table wipes,
role fixtures with session tokens, and catalogue/order factories.
"""

from datetime import timedelta

import pytest
from storefront import create_app
from storefront.extensions import db, cache
from storefront.models import Category, Product
from storefront.models.auth import ROLE_ADMIN, ROLE_CUSTOMER, ROLE_WORKER
from storefront.services import order_service, session_service
from storefront.services.auth_service import create_user
from storefront.time_utils import utcnow


TEST_PASSWORD = "Password123!"


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'CACHE_BACKEND': 'memory',
        'BCRYPT_ROUNDS': 4,
        'PAYMENT_MERCHANT_ID': 'test-merchant-0000',
        'PAYMENT_CALLBACK_URL': 'http://testserver/payment/callback',
        'WAREHOUSE_LATITUDE': 35.6892,
        'WAREHOUSE_LONGITUDE': 51.3890,
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
    """Fresh tables and an empty cache for each test."""
    with app.app_context():
        meta = db.metadata
        for table in reversed(meta.sorted_tables):
            db.session.execute(table.delete())
        db.session.commit()
        cache.clear()

        yield db.session

        db.session.rollback()


# =============================================================================
# USERS AND TOKENS
# =============================================================================

@pytest.fixture(scope='function')
def customer(db_session):
    """Customer shop about 3 km from the warehouse, with store credit."""
    user = create_user(
        "shop_one", TEST_PASSWORD, role=ROLE_CUSTOMER, phone="09120000001",
        name="Ali", shop_name="Shop One", shop_address="1 Main St",
        latitude=35.7000, longitude=51.4100,
    )
    user.balance = 5000
    db_session.commit()
    return user


@pytest.fixture(scope='function')
def other_customer(db_session):
    return create_user(
        "shop_two", TEST_PASSWORD, role=ROLE_CUSTOMER, phone="09120000002",
        shop_name="Shop Two", latitude=35.7500, longitude=51.4500,
    )


@pytest.fixture(scope='function')
def worker(db_session):
    return create_user("driver", TEST_PASSWORD, role=ROLE_WORKER, name="Driver")


@pytest.fixture(scope='function')
def admin(db_session):
    return create_user("admin", TEST_PASSWORD, role=ROLE_ADMIN, name="Admin")


def auth_headers(token: str) -> dict:
    """Helper to create Authorization headers."""
    return {'Authorization': f'Bearer {token}'}


def headers_for(user) -> dict:
    _, token = session_service.create_session(user)
    return auth_headers(token)


@pytest.fixture(scope='function')
def customer_headers(customer):
    return headers_for(customer)


@pytest.fixture(scope='function')
def other_customer_headers(other_customer):
    return headers_for(other_customer)


@pytest.fixture(scope='function')
def worker_headers(worker):
    return headers_for(worker)


@pytest.fixture(scope='function')
def admin_headers(admin):
    return headers_for(admin)


# =============================================================================
# CATALOGUE AND ORDERS
# =============================================================================

@pytest.fixture(scope='function')
def category(db_session):
    c = Category(name="Beverages")
    db_session.add(c)
    db_session.commit()
    return c


@pytest.fixture(scope='function')
def make_product(db_session):
    """Factory: make_product(name=..., price=..., stock=..., ...)."""
    def _make(name="Product", price=1000, stock=10, discount_percentage=0, available=True, category_id=None):
        product = Product(
            name=name,
            price=price,
            stock=stock,
            discount_percentage=discount_percentage,
            available=available,
            category_id=category_id,
        )
        db_session.add(product)
        db_session.commit()
        return product
    return _make


def tomorrow_iso() -> str:
    return (utcnow().date() + timedelta(days=1)).isoformat()


def cart_item(product, quantity=1) -> dict:
    """Cart line as the client holds it, snapshot matching the live product."""
    return {
        "productId": product.id,
        "quantity": quantity,
        "price": product.price,
        "discountPercentage": product.discount_percentage,
    }


@pytest.fixture(scope='function')
def make_order(db_session):
    """Factory: make_order(user, [(product, qty), ...], delivery_date=None, use_credit=False)."""
    def _make(user, lines, delivery_date=None, use_credit=False):
        return order_service.create_order(
            user,
            [cart_item(p, q) for p, q in lines],
            delivery_date or tomorrow_iso(),
            use_credit=use_credit,
        )
    return _make
