# Overview: Service-layer operations for reporting; read-only projections for renderers.

from __future__ import annotations

from datetime import date, datetime, timedelta
from decimal import Decimal

from sqlalchemy import func

from ..extensions import db
from ..models import Payment, Sale, SaleItem, Stock
from ..models.sales import (
    PAYMENT_STATUS_CANCELLED,
    PAYMENT_STATUS_PENDING,
    PAYMENT_TYPE_EXPENSE,
    PAYMENT_TYPE_INCOME,
)
from ..time_utils import inclusive_end, normalize_datetime, to_utc_z, utcnow

DEFAULT_RANGE_DAYS = 30
TOP_PRODUCT_LIMIT = 5


def _as_money(value) -> str:
    return str(Decimal(str(value or 0)).quantize(Decimal("0.01")))


def _payment_total(tenant_id: int, payment_type: str, start: datetime, end: datetime) -> str:
    total = db.session.query(
        func.coalesce(func.sum(Payment.amount), 0)
    ).filter(
        Payment.tenant_id == tenant_id,
        Payment.payment_type == payment_type,
        Payment.payment_date >= start,
        Payment.payment_date <= end,
    ).scalar()
    return _as_money(total)


def dashboard_report(
    tenant_id: int,
    *,
    start: datetime | date | None = None,
    end: datetime | date | None = None,
) -> dict:
    """
    Tenant dashboard over [start, end] (defaults to the last 30 days).

    A date-only end covers that whole day.

    Cancelled sales are excluded from every sales figure.
    """
    end = inclusive_end(end) or utcnow()
    start = normalize_datetime(start) or end - timedelta(days=DEFAULT_RANGE_DAYS)

    live_sales = (
        Sale.tenant_id == tenant_id,
        Sale.sale_date >= start,
        Sale.sale_date <= end,
        Sale.payment_status != PAYMENT_STATUS_CANCELLED,
    )

    sales_total, sales_count = db.session.query(
        func.coalesce(func.sum(Sale.total_amount), 0),
        func.count(Sale.id),
    ).filter(*live_sales).one()

    pending_count = db.session.query(func.count(Sale.id)).filter(
        *live_sales, Sale.payment_status == PAYMENT_STATUS_PENDING
    ).scalar()

    income = _payment_total(tenant_id, PAYMENT_TYPE_INCOME, start, end)
    expense = _payment_total(tenant_id, PAYMENT_TYPE_EXPENSE, start, end)

    active_stocks = (Stock.tenant_id == tenant_id, Stock.is_active.is_(True))
    product_count = db.session.query(func.count(Stock.id)).filter(*active_stocks).scalar()
    low_stock_count = db.session.query(func.count(Stock.id)).filter(
        *active_stocks,
        Stock.minimum_quantity.isnot(None),
        Stock.quantity <= Stock.minimum_quantity,
    ).scalar()

    revenue = func.sum(SaleItem.line_total)
    top_rows = (
        db.session.query(
            SaleItem.stock_id,
            SaleItem.product_name,
            func.sum(SaleItem.quantity),
            revenue,
        )
        .join(Sale, Sale.id == SaleItem.sale_id)
        .filter(*live_sales)
        .group_by(SaleItem.stock_id, SaleItem.product_name)
        .order_by(revenue.desc())
        .limit(TOP_PRODUCT_LIMIT)
        .all()
    )

    monthly = {}
    for sale_date, amount in db.session.query(Sale.sale_date, Sale.total_amount).filter(*live_sales).all():
        key = (sale_date.year, sale_date.month)
        bucket = monthly.setdefault(key, {"total": Decimal("0"), "count": 0})
        bucket["total"] += Decimal(str(amount))
        bucket["count"] += 1

    return {
        "range": {"start": to_utc_z(start), "end": to_utc_z(end)},
        "total_sales": _as_money(sales_total),
        "sales_count": sales_count,
        "pending_sales_count": pending_count,
        "total_income": income,
        "total_expense": expense,
        "net": _as_money(Decimal(income) - Decimal(expense)),
        "product_count": product_count,
        "low_stock_count": low_stock_count,
        "top_products": [
            {
                "stock_id": stock_id,
                "product_name": name,
                "total_quantity": str(Decimal(str(qty)).quantize(Decimal("0.001"))),
                "total_revenue": _as_money(rev),
            }
            for stock_id, name, qty, rev in top_rows
        ],
        "monthly_sales": [
            {"year": year, "month": month, "total_amount": _as_money(b["total"]), "sales_count": b["count"]}
            for (year, month), b in sorted(monthly.items())
        ],
    }
