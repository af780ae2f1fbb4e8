"""
Pytest fixtures for shopledger backend tests.

Provides an in-memory application, a per-test clean database session, the
test client and small catalog factories (stores, category, supplier,
products, chart of accounts).
"""

import pytest
from shopledger import create_app
from shopledger.extensions import db
from shopledger.identity import Actor
from shopledger.services import accounting_service, payment_method_service, products_service, store_service
from shopledger.services import supplier_service


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        'STOCK_WRITE_RETRY_ATTEMPTS': 2,
        'LOYALTY_ENABLED': True,
        'LOYALTY_POINTS_PER_CURRENCY_UNIT': 100,
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
        app.config['LOYALTY_ENABLED'] = True

        yield db.session

        # Cleanup after test
        db.session.rollback()


@pytest.fixture(scope='function')
def actor():
    return Actor(user_id="u-1", user_name="Alice Clerk")


@pytest.fixture(scope='function')
def store_a(db_session):
    return store_service.create_store({"name": "Main Street", "address": "1 Main St"})


@pytest.fixture(scope='function')
def store_b(db_session):
    return store_service.create_store({"name": "Harbour Mall", "address": "7 Pier Rd"})


@pytest.fixture(scope='function')
def category(db_session):
    return products_service.create_category("Beverages")


@pytest.fixture(scope='function')
def supplier(db_session):
    return supplier_service.create_supplier({"name": "Acme Wholesale", "email": "orders@acme.test"})


@pytest.fixture(scope='function')
def accounts(db_session):
    """Default chart of accounts."""
    accounting_service.seed_default_chart_of_accounts()
    return {a.account_code: a for a in accounting_service.list_accounts()}


@pytest.fixture(scope='function')
def payment_methods(db_session):
    payment_method_service.seed_default_payment_methods()
    return {m.name: m for m in payment_method_service.list_payment_methods()}


@pytest.fixture(scope='function')
def make_product(db_session, category, actor):
    """Factory: make_product(sku=..., stock=..., stock_by_store=..., **fields)."""
    counter = {"n": 0}

    def _make(**fields):
        counter["n"] += 1
        patch = {
            "name": f"Product {counter['n']}",
            "sku": f"SKU-{counter['n']:04d}",
            "price": 10.0,
            "cost": 4.0,
            "category_id": category.id,
        }
        patch.update(fields)
        return products_service.add_product(patch, actor)

    return _make


@pytest.fixture(scope='function')
def store_product(make_product, store_a, store_b):
    """Per-store product: 10 at store A, 0 at store B."""
    return make_product(name="Cola 330ml", sku="COLA-330", stock_by_store={store_a.id: 10, store_b.id: 0})
