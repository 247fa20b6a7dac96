# Overview: Service-layer operations for sales; builds sales from stock in one transaction.

"""
Sale Builder

A sale is created in a single all-or-nothing unit:
1. allocate the sale number (S + yyyyMMdd + 4-digit sequence per tenant/day)
2. lock and check every referenced stock
3. compute line and sale totals
4. write Sale + SaleItems and decrement stock
5. commit

Any failure rolls the whole unit back: no partial stock decrement, no sale.

Sale numbers use "optimistic insert, retry on conflict": the highest number
for the day is read, incremented and inserted under the
(tenant_id, sale_number) unique constraint. A collision retries once with a
freshly allocated number, then surfaces as ConflictError.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from decimal import ROUND_HALF_UP, Decimal

from flask import current_app
from sqlalchemy import func
from sqlalchemy.exc import IntegrityError

from ..errors import ConflictError, InsufficientStockError, ValidationError
from ..extensions import db
from ..models import Sale, SaleItem
from ..models.sales import PAYMENT_STATUS_PENDING
from ..time_utils import inclusive_end, normalize_datetime, utcnow
from ..validation import SaleRequest
from .concurrency import begin_write, run_with_retry
from .pagination import paginate
from .stock_service import apply_delta, check_and_reserve, quantize_quantity

MONEY_PLACES = Decimal("0.01")
RATE_PLACES = Decimal("0.01")
HUNDRED = Decimal("100")

# One extra attempt after a sale-number collision.
SALE_NUMBER_ATTEMPTS = 2


def money(value: Decimal) -> Decimal:
    return Decimal(value).quantize(MONEY_PLACES, rounding=ROUND_HALF_UP)


def rate(value: Decimal) -> Decimal:
    return Decimal(value).quantize(RATE_PLACES, rounding=ROUND_HALF_UP)


@dataclass(frozen=True)
class LineAmounts:
    gross: Decimal
    discount: Decimal
    net: Decimal
    tax: Decimal
    line_total: Decimal


def compute_line(quantity: Decimal, unit_price: Decimal, tax_rate: Decimal, discount_rate: Decimal) -> LineAmounts:
    """
    Line total = ((quantity * unit_price) * (1 - discount%)) * (1 + tax%)

    net and line_total are each rounded to cents; tax is their difference so
    net + tax == line_total holds exactly.
    """
    gross = quantity * unit_price
    discounted = gross * (1 - discount_rate / HUNDRED)
    net = money(discounted)
    line_total = money(discounted * (1 + tax_rate / HUNDRED))
    return LineAmounts(
        gross=money(gross),
        discount=money(gross) - net,
        net=net,
        tax=line_total - net,
        line_total=line_total,
    )


def sale_number_prefix(sale_date: datetime) -> str:
    return f"{current_app.config.get('SALE_NUMBER_PREFIX', 'S')}{sale_date:%Y%m%d}"


def allocate_sale_number(tenant_id: int, sale_date: datetime) -> str:
    """
    Next sale number for the tenant on sale_date's calendar day.

    Ordered by length first so 10000 sorts after 9999.
    """
    prefix = sale_number_prefix(sale_date)
    last = (
        db.session.query(Sale.sale_number)
        .filter(Sale.tenant_id == tenant_id, Sale.sale_number.like(f"{prefix}%"))
        .order_by(func.length(Sale.sale_number).desc(), Sale.sale_number.desc())
        .first()
    )

    next_seq = 1
    if last is not None:
        suffix = last[0][len(prefix):]
        if suffix.isdigit():
            next_seq = int(suffix) + 1

    return f"{prefix}{next_seq:04d}"


def _reserve_stocks(tenant_id: int, request: SaleRequest) -> dict:
    """
    Lock every referenced stock and verify the per-stock total fits on-hand.

    Lines repeating a stock are summed first. All insufficient products are
    reported together. Rows are locked in stock id order.
    """
    requested: dict[int, Decimal] = {}
    for item in request.items:
        requested[item.stock_id] = requested.get(item.stock_id, Decimal("0")) + quantize_quantity(item.quantity)

    stocks = {}
    insufficient = []
    for stock_id in sorted(requested):
        quantity = requested[stock_id]
        try:
            stocks[stock_id] = check_and_reserve(tenant_id, stock_id, quantity)
        except InsufficientStockError as exc:
            insufficient.extend(exc.details.get("items", []))

    if insufficient:
        names = ", ".join(entry["product_name"] for entry in insufficient)
        raise InsufficientStockError(
            f"Insufficient stock for {names}",
            details={"items": insufficient},
        )

    return stocks


def _create_sale_once(tenant_id: int, request: SaleRequest) -> Sale:
    begin_write()

    sale_date = normalize_datetime(request.sale_date)
    sale_number = allocate_sale_number(tenant_id, sale_date)
    stocks = _reserve_stocks(tenant_id, request)

    sale = Sale(
        tenant_id=tenant_id,
        sale_number=sale_number,
        sale_date=sale_date,
        customer_name=request.customer_name or "",
        customer_phone=request.customer_phone,
        customer_email=request.customer_email,
        customer_address=request.customer_address,
        customer_tax_number=request.customer_tax_number,
        payment_status=PAYMENT_STATUS_PENDING,
        notes=request.notes,
        created_at=utcnow(),
    )

    subtotal = Decimal("0.00")
    tax_amount = Decimal("0.00")

    for item in request.items:
        stock = stocks[item.stock_id]
        # Computed from the stored precision so the item reproduces its own total
        quantity = quantize_quantity(item.quantity)
        unit_price = money(item.unit_price)
        tax_rate = rate(item.tax_rate)
        discount_rate = rate(item.discount_rate)
        amounts = compute_line(quantity, unit_price, tax_rate, discount_rate)

        SaleItem(
            sale=sale,
            stock_id=stock.id,
            product_code=stock.product_code,
            product_name=stock.product_name,
            quantity=quantity,
            unit_price=unit_price,
            tax_rate=tax_rate,
            discount_rate=discount_rate,
            line_total=amounts.line_total,
        )

        subtotal += amounts.net
        tax_amount += amounts.tax
        apply_delta(stock, -quantity)

    discount_amount = money(request.discount_amount)
    total_amount = subtotal + tax_amount - discount_amount
    if total_amount < 0:
        raise ValidationError(
            "Discount amount exceeds sale total",
            details={
                "discount_amount": str(discount_amount),
                "total_before_discount": str(subtotal + tax_amount),
            },
        )

    sale.subtotal = subtotal
    sale.tax_amount = tax_amount
    sale.discount_amount = discount_amount
    sale.total_amount = total_amount

    db.session.add(sale)
    db.session.flush()
    db.session.commit()
    return sale


def create_sale(tenant_id: int, request: SaleRequest) -> Sale:
    """
    Create a sale, its items, and the matching stock decrements atomically.

    Raises:
        NotFoundError: a line references a stock absent for this tenant
        InactiveStockError: a line references a deactivated stock
        InsufficientStockError: requested quantity exceeds on-hand
        ValidationError: sale discount exceeds subtotal + tax
        ConflictError: sale number still collides after one retry
    """
    for attempt in range(SALE_NUMBER_ATTEMPTS):
        try:
            sale = run_with_retry(lambda: _create_sale_once(tenant_id, request))
        except IntegrityError:
            current_app.logger.warning(
                "Sale number collision for tenant %s (attempt %d/%d)",
                tenant_id, attempt + 1, SALE_NUMBER_ATTEMPTS,
            )
            continue
        except InsufficientStockError as exc:
            current_app.logger.warning("Sale rejected for tenant %s: %s", tenant_id, exc)
            raise

        current_app.logger.info(
            "Sale %s created for tenant %s (total %s)", sale.sale_number, tenant_id, sale.total_amount
        )
        return sale

    raise ConflictError("Could not allocate a unique sale number, please retry")


# =============================================================================
# READS
# =============================================================================

def get_sale(tenant_id: int, sale_id: int) -> Sale | None:
    return db.session.query(Sale).filter_by(id=sale_id, tenant_id=tenant_id).first()


def get_sale_by_number(tenant_id: int, sale_number: str) -> Sale | None:
    return db.session.query(Sale).filter_by(sale_number=sale_number, tenant_id=tenant_id).first()


def list_sales(
    tenant_id: int,
    *,
    start: datetime | None = None,
    end: datetime | None = None,
    page: int = 1,
    page_size: int | None = None,
) -> dict:
    """
    Tenant-scoped sales, newest sale date first.

    Date bounds are inclusive; a date-only end covers that whole day.
    """
    query = db.session.query(Sale).filter(Sale.tenant_id == tenant_id)
    if start is not None:
        query = query.filter(Sale.sale_date >= normalize_datetime(start))
    if end is not None:
        query = query.filter(Sale.sale_date <= inclusive_end(end))
    query = query.order_by(Sale.sale_date.desc(), Sale.id.desc())
    return paginate(query, page, page_size)


def list_pending_sales(tenant_id: int, *, page: int = 1, page_size: int | None = None) -> dict:
    query = (
        db.session.query(Sale)
        .filter(Sale.tenant_id == tenant_id, Sale.payment_status == PAYMENT_STATUS_PENDING)
        .order_by(Sale.sale_date.desc(), Sale.id.desc())
    )
    return paginate(query, page, page_size)
