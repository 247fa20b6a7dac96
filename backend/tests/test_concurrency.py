# Overview: Pytest coverage for concurrent sales and cancellations against one database file.

"""
Concurrency Tests

Two workers race for the same stock through separate sessions and
connections. An in-memory database shares one connection, so these tests
run against a temporary SQLite file.

Expected outcomes:
- Competing sales for more than the on-hand quantity: exactly one succeeds
- Stock never goes negative
- Competing cancels restore stock exactly once
"""

import threading
from decimal import Decimal

import pytest

from conftest import sale_request
from saleledger import create_app
from saleledger.errors import InsufficientStockError, InvalidStateError, LedgerError
from saleledger.extensions import db
from saleledger.models import Sale, Stock, Tenant
from saleledger.services.lifecycle_service import cancel_sale
from saleledger.services.sales_service import create_sale


WORKERS = 2


@pytest.fixture
def file_app(tmp_path):
    path = tmp_path / "race.sqlite3"
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': f"sqlite:///{path}",
        'SQLALCHEMY_ENGINE_OPTIONS': {"connect_args": {"check_same_thread": False, "timeout": 30}},
    })
    with app.app_context():
        db.create_all()
        yield app
        db.session.remove()
        db.drop_all()
        db.engine.dispose()


@pytest.fixture
def seeded(file_app):
    """One tenant with 10 units of a single stock."""
    tenant = Tenant(name="Race Co", code="RACE", is_active=True)
    db.session.add(tenant)
    db.session.commit()

    stock = Stock(
        tenant_id=tenant.id,
        product_code="R-1",
        product_name="Racer",
        quantity=Decimal("10"),
        purchase_price=Decimal("1.00"),
        sale_price=Decimal("2.00"),
    )
    db.session.add(stock)
    db.session.commit()
    return tenant.id, stock.id


def _run_workers(app, work):
    """Run ``work`` in WORKERS threads released together; collect results or errors."""
    barrier = threading.Barrier(WORKERS)
    results = []
    lock = threading.Lock()

    def worker():
        with app.app_context():
            try:
                barrier.wait()
                outcome = work()
            except LedgerError as exc:
                outcome = exc
            finally:
                db.session.remove()
            with lock:
                results.append(outcome)

    threads = [threading.Thread(target=worker) for _ in range(WORKERS)]
    for t in threads:
        t.start()
    for t in threads:
        t.join(timeout=60)
    return results


def test_competing_sales_never_oversell(file_app, seeded):
    tenant_id, stock_id = seeded

    results = _run_workers(
        file_app,
        lambda: create_sale(tenant_id, sale_request((stock_id, "7", "2.00"))).sale_number,
    )

    successes = [r for r in results if isinstance(r, str)]
    failures = [r for r in results if isinstance(r, LedgerError)]
    assert len(successes) == 1
    assert len(failures) == 1
    assert isinstance(failures[0], InsufficientStockError)

    db.session.expire_all()
    assert db.session.get(Stock, stock_id).quantity == Decimal("3")
    assert db.session.query(Sale).count() == 1


def test_competing_sales_get_distinct_numbers(file_app, seeded):
    tenant_id, stock_id = seeded

    results = _run_workers(
        file_app,
        lambda: create_sale(tenant_id, sale_request((stock_id, "2", "2.00"))).sale_number,
    )

    assert sorted(results) == ["S202506010001", "S202506010002"]

    db.session.expire_all()
    assert db.session.get(Stock, stock_id).quantity == Decimal("6")


def test_competing_cancels_restore_once(file_app, seeded):
    tenant_id, stock_id = seeded
    sale = create_sale(tenant_id, sale_request((stock_id, "4", "2.00")))
    sale_id = sale.id
    db.session.remove()

    results = _run_workers(file_app, lambda: cancel_sale(tenant_id, sale_id))

    assert results.count(True) == 1
    assert len([r for r in results if isinstance(r, InvalidStateError)]) == 1

    db.session.expire_all()
    assert db.session.get(Stock, stock_id).quantity == Decimal("10")
