"""
Pytest fixtures for POS backend tests.

Provides test database setup, users for every role, products, sales owned
by two different cashiers, and the test client.
"""

import pytest
from app import create_app
from app.extensions import db
from app.models import Product, Sale, SaleItem
from app.services.access_policy import actor_from_user
from app.services.auth_service import create_default_roles, create_user


PASSWORD = "Password123"


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        'POS_RETRY_BACKOFF_SECONDS': 0,
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
def setup_roles(db_session):
    """Setup default roles."""
    create_default_roles()


def _make_user(first_name, email, role_name):
    return create_user(first_name, "Test", email, PASSWORD, role_name, bcrypt_rounds=4)


@pytest.fixture(scope='function')
def admin_user(setup_roles):
    return _make_user("Ada", "admin@test.com", "Admin")


@pytest.fixture(scope='function')
def manager_user(setup_roles):
    return _make_user("Max", "manager@test.com", "Manager")


@pytest.fixture(scope='function')
def cashier_a(setup_roles):
    """Cashier who owns sale_1."""
    return _make_user("Cara", "cashier_a@test.com", "Cashier")


@pytest.fixture(scope='function')
def cashier_b(setup_roles):
    """Cashier who owns sale_2."""
    return _make_user("Ben", "cashier_b@test.com", "Cashier")


@pytest.fixture(scope='function')
def admin(admin_user):
    return actor_from_user(admin_user)


@pytest.fixture(scope='function')
def manager(manager_user):
    return actor_from_user(manager_user)


@pytest.fixture(scope='function')
def actor_a(cashier_a):
    return actor_from_user(cashier_a)


@pytest.fixture(scope='function')
def actor_b(cashier_b):
    return actor_from_user(cashier_b)


def _make_product(db_session, sku, name, price_cents, stock_level):
    product = Product(sku=sku, name=name, price_cents=price_cents, stock_level=stock_level)
    db_session.add(product)
    db_session.commit()
    return product


@pytest.fixture(scope='function')
def product_p(db_session):
    """Product P: 10 units at 2.00."""
    return _make_product(db_session, "PROD-P", "Product P", 200, 10)


@pytest.fixture(scope='function')
def product_q(db_session):
    """Product Q: 3 units at 5.00."""
    return _make_product(db_session, "PROD-Q", "Product Q", 500, 3)


@pytest.fixture(scope='function')
def sale_1(db_session, cashier_a):
    sale = Sale(user_id=cashier_a.id, tax_cents=0, discount_cents=0, total_cents=0)
    db_session.add(sale)
    db_session.commit()
    return sale


@pytest.fixture(scope='function')
def sale_2(db_session, cashier_b):
    sale = Sale(user_id=cashier_b.id, tax_cents=0, discount_cents=0, total_cents=0)
    db_session.add(sale)
    db_session.commit()
    return sale


def reload(model, pk):
    """Fetch a fresh copy of a row, bypassing the identity map."""
    db.session.expire_all()
    return db.session.get(model, pk)


def stock_of(product_id):
    return reload(Product, product_id).stock_level


def total_of(sale_id):
    return reload(Sale, sale_id).total_cents


def item_count(sale_id):
    db.session.expire_all()
    return db.session.query(SaleItem).filter_by(sale_id=sale_id).count()


def get_auth_token(client, email, password=PASSWORD):
    """Helper to get authentication token."""
    response = client.post('/api/auth/login', json={
        'email': email,
        'password': password,
    })
    if response.status_code != 200:
        return None
    return response.json.get('token')


def auth_headers(token):
    """Helper to create authorization headers."""
    return {'Authorization': f'Bearer {token}'}


@pytest.fixture(scope='function')
def admin_headers(client, admin_user):
    return auth_headers(get_auth_token(client, admin_user.email))


@pytest.fixture(scope='function')
def manager_headers(client, manager_user):
    return auth_headers(get_auth_token(client, manager_user.email))


@pytest.fixture(scope='function')
def cashier_a_headers(client, cashier_a):
    return auth_headers(get_auth_token(client, cashier_a.email))


@pytest.fixture(scope='function')
def cashier_b_headers(client, cashier_b):
    return auth_headers(get_auth_token(client, cashier_b.email))
