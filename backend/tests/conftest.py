"""
Pytest fixtures for billing backend tests.

Provides test database setup, a test client and catalogue fixtures.
"""

from decimal import Decimal

import pytest
from billing import create_app
from billing.extensions import db
from billing.services import stock_service


@pytest.fixture(scope='session')
def app(tmp_path_factory):
    """Create application for testing."""
    state_dir = tmp_path_factory.mktemp("payments")
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        'BCRYPT_ROUNDS': 4,
        'PAYMENT_STATE_PATH': str(state_dir / "seller_payments.json"),
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
def db_session(app, tmp_path):
    """Create fresh database for each test."""
    with app.app_context():
        # Clear all data but keep schema
        meta = db.metadata
        for table in reversed(meta.sorted_tables):
            db.session.execute(table.delete())
        db.session.commit()

        # Each test gets its own payment state file
        app.config['PAYMENT_STATE_PATH'] = str(tmp_path / "seller_payments.json")

        yield db.session

        # Cleanup after test
        db.session.rollback()


def _product_patch(**overrides) -> dict:
    """Column-keyed registration patch with sensible defaults."""
    patch = {
        "product_code": "RICE-5KG",
        "product_name": "Basmati Rice",
        "category": "Grocery",
        "brand": "Daawat",
        "mrp": Decimal("100.00"),
        "seller_price": Decimal("80.00"),
        "gst_category": "GST",
        "base_unit": "kg",
        "stock_quantity": Decimal("100"),
        "supplier_name": "Acme Traders",
        "batch_number": "B-1",
    }
    patch.update(overrides)
    return patch


@pytest.fixture(scope='function')
def product_patch():
    """Factory for registration patches; keyword overrides replace defaults."""
    return _product_patch


@pytest.fixture(scope='function')
def rice(db_session):
    """kg product, 100 kg in stock, 100.00 per kg."""
    return stock_service.register_product(_product_patch()).product


@pytest.fixture(scope='function')
def soap(db_session):
    """box product with 12 pieces per box, 10 boxes in stock."""
    patch = _product_patch(
        product_code="SOAP-BOX",
        product_name="Lux Soap",
        mrp=Decimal("240.00"),
        seller_price=Decimal("180.00"),
        base_unit="box",
        secondary_unit="piece",
        conversion_rate=Decimal("12"),
        stock_quantity=Decimal("10"),
        batch_number="B-2",
    )
    return stock_service.register_product(patch).product
