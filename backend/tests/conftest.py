"""
Pytest fixtures for saleledger backend tests.

Provides test database setup, two tenants with their own stock, and a test
client.
"""

from datetime import datetime
from decimal import Decimal

import pytest

from saleledger import create_app
from saleledger.extensions import db
from saleledger.models import Tenant, Stock
from saleledger.validation import SaleItemRequest, SaleRequest, PaymentRequest


SALE_DAY = datetime(2025, 6, 1, 10, 30)


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        'DB_RETRY_ATTEMPTS': 2,
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
def tenant_a(db_session):
    """Create Tenant A."""
    tenant = Tenant(name="Tenant A - Acme Corp", code="ACME", is_active=True)
    db_session.add(tenant)
    db_session.commit()
    return tenant


@pytest.fixture(scope='function')
def tenant_b(db_session):
    """Create Tenant B."""
    tenant = Tenant(name="Tenant B - Beta Inc", code="BETA", is_active=True)
    db_session.add(tenant)
    db_session.commit()
    return tenant


@pytest.fixture(scope='function')
def inactive_tenant(db_session):
    tenant = Tenant(name="Closed Ltd", code="CLOSED", is_active=False)
    db_session.add(tenant)
    db_session.commit()
    return tenant


def make_stock(db_session, tenant, code, name, quantity, sale_price="100.00", minimum_quantity=None, is_active=True):
    """Insert a stock row directly."""
    stock = Stock(
        tenant_id=tenant.id,
        product_code=code,
        product_name=name,
        quantity=Decimal(quantity),
        purchase_price=Decimal("60.00"),
        sale_price=Decimal(sale_price),
        minimum_quantity=Decimal(minimum_quantity) if minimum_quantity is not None else None,
        is_active=is_active,
    )
    db_session.add(stock)
    db_session.commit()
    return stock


@pytest.fixture(scope='function')
def widget_a(db_session, tenant_a):
    """10 widgets in Tenant A."""
    return make_stock(db_session, tenant_a, "W-001", "Widget", "10", minimum_quantity="2")


@pytest.fixture(scope='function')
def gadget_a(db_session, tenant_a):
    """5 gadgets in Tenant A."""
    return make_stock(db_session, tenant_a, "G-001", "Gadget", "5", sale_price="40.00")


@pytest.fixture(scope='function')
def widget_b(db_session, tenant_b):
    """Tenant B's own widget stock."""
    return make_stock(db_session, tenant_b, "W-001", "Widget B", "10")


def sale_request(*lines, discount_amount="0", sale_date=SALE_DAY, customer_name="Walk-in"):
    """
    Build a SaleRequest from (stock_id, quantity, unit_price[, tax_rate[, discount_rate]]) tuples.
    """
    items = []
    for line in lines:
        stock_id, quantity, unit_price, *rates = line
        tax_rate = rates[0] if len(rates) > 0 else "0"
        discount_rate = rates[1] if len(rates) > 1 else "0"
        items.append(SaleItemRequest(
            stock_id=stock_id,
            quantity=Decimal(quantity),
            unit_price=Decimal(unit_price),
            tax_rate=Decimal(tax_rate),
            discount_rate=Decimal(discount_rate),
        ))
    return SaleRequest(
        items=tuple(items),
        sale_date=sale_date,
        customer_name=customer_name,
        discount_amount=Decimal(discount_amount),
    )


def income(amount, sale_id=None, method="Cash", payment_date=SALE_DAY):
    return PaymentRequest(
        payment_type="Income",
        payment_method=method,
        amount=Decimal(amount),
        payment_date=payment_date,
        customer_name="Walk-in",
        sale_id=sale_id,
    )


def expense(amount, method="BankTransfer", payment_date=SALE_DAY):
    return PaymentRequest(
        payment_type="Expense",
        payment_method=method,
        amount=Decimal(amount),
        payment_date=payment_date,
        customer_name="Supplier",
    )


def tenant_headers(tenant) -> dict:
    """Helper to create tenant context headers."""
    return {'X-Tenant-Id': str(tenant.id)}
