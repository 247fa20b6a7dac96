# Overview: Service-layer operations for stock; encapsulates business logic and database work.

"""
Stock Ledger

MULTI-TENANT: every query is filtered by tenant_id. A stock owned by another
tenant is reported exactly like a missing one.

Invariants:
- Stock.quantity >= 0 for every stock at all observable times.
- Product codes are unique per tenant among active stocks; the check and the
  write happen in the same transaction.
- check_and_reserve() never commits. The caller applies the decrement inside
  the same transaction that writes the sale.
"""

from __future__ import annotations

from decimal import Decimal

from flask import current_app
from sqlalchemy import func, or_
from sqlalchemy.exc import IntegrityError

from ..errors import ConflictError, InactiveStockError, InsufficientStockError, NotFoundError
from ..extensions import db
from ..models import Stock
from ..time_utils import utcnow
from ..validation import StockRequest
from .concurrency import begin_write, lock_for_update, run_with_retry
from .pagination import paginate

QUANTITY_PLACES = Decimal("0.001")


def quantize_quantity(value: Decimal) -> Decimal:
    return Decimal(value).quantize(QUANTITY_PLACES)


def _stock_query(tenant_id: int, stock_id: int, *, lock: bool = False):
    query = db.session.query(Stock).filter_by(id=stock_id, tenant_id=tenant_id)
    if lock:
        query = lock_for_update(query)
    return query


# =============================================================================
# CHECK / ADJUST
# =============================================================================

def check_and_reserve(tenant_id: int, stock_id: int, quantity: Decimal) -> Stock:
    """
    Load a stock row for a sale and verify it can cover ``quantity``.

    The row is locked for the rest of the enclosing transaction. Nothing is
    written or committed here.

    Raises:
        NotFoundError: stock absent for this tenant
        InactiveStockError: stock is soft-deleted
        InsufficientStockError: quantity exceeds on-hand
    """
    stock = _stock_query(tenant_id, stock_id, lock=True).first()
    if stock is None:
        raise NotFoundError(f"Stock {stock_id} not found", details={"stock_id": stock_id})

    if not stock.is_active:
        raise InactiveStockError(
            f"Stock {stock.product_name} is inactive",
            details={"stock_id": stock_id, "product_name": stock.product_name},
        )

    if quantity > stock.quantity:
        raise InsufficientStockError(
            f"Insufficient stock for {stock.product_name}",
            details={
                "items": [{
                    "stock_id": stock.id,
                    "product_name": stock.product_name,
                    "requested_quantity": str(quantity),
                    "on_hand": str(stock.quantity),
                }],
            },
        )

    return stock


def apply_delta(stock: Stock, delta: Decimal) -> Stock:
    """Apply a signed quantity change to an already-loaded stock row."""
    new_quantity = quantize_quantity(stock.quantity + delta)
    if new_quantity < 0:
        raise InsufficientStockError(
            f"Insufficient stock for {stock.product_name}",
            details={
                "items": [{
                    "stock_id": stock.id,
                    "product_name": stock.product_name,
                    "requested_quantity": str(-delta),
                    "on_hand": str(stock.quantity),
                }],
            },
        )
    stock.quantity = new_quantity
    stock.updated_at = utcnow()
    return stock


def adjust_locked(tenant_id: int, stock_id: int, delta: Decimal) -> bool:
    """Adjust inside a caller-owned transaction. Returns False when missing."""
    stock = _stock_query(tenant_id, stock_id, lock=True).first()
    if stock is None:
        return False
    apply_delta(stock, delta)
    return True


def adjust_quantity(tenant_id: int, stock_id: int, delta: Decimal) -> bool:
    """
    Manually adjust a stock's on-hand quantity by a signed delta.

    Returns False (no effect) when the stock does not exist for the tenant.
    Raises InsufficientStockError if the result would go negative.
    """
    def _op():
        begin_write()
        if not adjust_locked(tenant_id, stock_id, delta):
            db.session.rollback()
            return False
        db.session.commit()
        return True

    adjusted = run_with_retry(_op)
    if adjusted:
        current_app.logger.info("Stock %s adjusted by %s for tenant %s", stock_id, delta, tenant_id)
    return adjusted


# =============================================================================
# STOCK MAINTENANCE
# =============================================================================

def _ensure_code_available(tenant_id: int, product_code: str, exclude_id: int | None = None) -> None:
    query = db.session.query(Stock.id).filter(
        Stock.tenant_id == tenant_id,
        Stock.product_code == product_code,
        Stock.is_active.is_(True),
    )
    if exclude_id is not None:
        query = query.filter(Stock.id != exclude_id)
    if query.first() is not None:
        raise ConflictError(
            f"Product code {product_code} already exists",
            details={"product_code": product_code},
        )


def _commit_or_conflict(product_code: str) -> None:
    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        raise ConflictError(
            f"Product code {product_code} already exists",
            details={"product_code": product_code},
        )


def _apply_request(stock: Stock, request: StockRequest) -> None:
    stock.product_code = request.product_code
    stock.product_name = request.product_name
    stock.quantity = quantize_quantity(request.quantity)
    stock.purchase_price = request.purchase_price
    stock.sale_price = request.sale_price
    stock.minimum_quantity = request.minimum_quantity
    stock.category = request.category
    stock.unit = request.unit
    stock.barcode = request.barcode
    stock.description = request.description


def create_stock(tenant_id: int, request: StockRequest) -> Stock:
    """
    Create a stock row.

    Raises:
        ConflictError: an active stock with the same product code exists
    """
    def _op():
        begin_write()
        _ensure_code_available(tenant_id, request.product_code)
        stock = Stock(tenant_id=tenant_id, is_active=True)
        _apply_request(stock, request)
        db.session.add(stock)
        _commit_or_conflict(request.product_code)
        return stock

    return run_with_retry(_op)


def update_stock(tenant_id: int, stock_id: int, request: StockRequest) -> Stock:
    def _op():
        begin_write()
        stock = _stock_query(tenant_id, stock_id, lock=True).first()
        if stock is None:
            raise NotFoundError(f"Stock {stock_id} not found", details={"stock_id": stock_id})
        if stock.is_active:
            _ensure_code_available(tenant_id, request.product_code, exclude_id=stock.id)
        _apply_request(stock, request)
        stock.updated_at = utcnow()
        _commit_or_conflict(request.product_code)
        return stock

    return run_with_retry(_op)


def deactivate_stock(tenant_id: int, stock_id: int) -> bool:
    """Soft delete. Sale history keeps pointing at the row."""
    def _op():
        begin_write()
        stock = _stock_query(tenant_id, stock_id, lock=True).first()
        if stock is None:
            db.session.rollback()
            return False
        stock.is_active = False
        stock.updated_at = utcnow()
        db.session.commit()
        return True

    return run_with_retry(_op)


# =============================================================================
# READS
# =============================================================================

def get_stock(tenant_id: int, stock_id: int) -> Stock | None:
    return _stock_query(tenant_id, stock_id).first()


def list_stocks(
    tenant_id: int,
    *,
    search: str | None = None,
    include_inactive: bool = False,
    page: int = 1,
    page_size: int = 20,
) -> dict:
    """Tenant-scoped stock listing ordered by product name."""
    query = db.session.query(Stock).filter(Stock.tenant_id == tenant_id)
    if not include_inactive:
        query = query.filter(Stock.is_active.is_(True))

    if search:
        pattern = f"%{search.strip().lower()}%"
        query = query.filter(or_(
            func.lower(Stock.product_name).like(pattern),
            func.lower(Stock.product_code).like(pattern),
            func.lower(Stock.category).like(pattern),
        ))

    query = query.order_by(Stock.product_name.asc(), Stock.id.asc())
    return paginate(query, page, page_size)


def get_low_stock(tenant_id: int) -> list[Stock]:
    """Active stocks with a minimum threshold whose quantity is at or below it."""
    return (
        db.session.query(Stock)
        .filter(
            Stock.tenant_id == tenant_id,
            Stock.is_active.is_(True),
            Stock.minimum_quantity.isnot(None),
            Stock.quantity <= Stock.minimum_quantity,
        )
        .order_by(Stock.product_name.asc())
        .all()
    )

