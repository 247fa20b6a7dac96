# Overview: Service-layer operations for payment; encapsulates business logic and database work.

"""
Payment Ledger

Records income and expense entries, optionally tied to a sale.

DESIGN PRINCIPLES:
- Payments are separate from sales (many-to-one relationship)
- Split/partial payments: a sale can collect any number of Income payments
- Only Income payments linked to a sale count towards its payment status
- Insert/update/delete and the sale status recompute share one transaction
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal

from flask import current_app

from ..errors import NotFoundError, ValidationError
from ..extensions import db
from ..models import Payment, Sale
from ..models.sales import PAYMENT_TYPE_INCOME, PAYMENT_TYPES
from ..time_utils import inclusive_end, normalize_datetime, utcnow
from ..validation import PaymentRequest
from .concurrency import begin_write, lock_for_update, run_with_retry
from .lifecycle_service import collected_income, recompute_payment_status
from .pagination import paginate
from .sales_service import money


# =============================================================================
# PAYMENT CREATION / UPDATE / DELETION
# =============================================================================

def _linked_sale(tenant_id: int, sale_id: int) -> Sale:
    sale = lock_for_update(
        db.session.query(Sale).filter_by(id=sale_id, tenant_id=tenant_id)
    ).first()
    if sale is None:
        raise NotFoundError(f"Sale {sale_id} not found", details={"sale_id": sale_id})
    return sale


def create_payment(tenant_id: int, request: PaymentRequest) -> Payment:
    """
    Record a payment.

    If it is an Income payment linked to a sale, the sale's payment status is
    recomputed in the same transaction.

    Raises:
        ValidationError: amount is not positive
        NotFoundError: sale_id does not reference a sale of this tenant
    """
    if request.amount is None or request.amount <= 0:
        raise ValidationError("Payment amount must be positive")

    def _op():
        begin_write()

        if request.sale_id is not None:
            _linked_sale(tenant_id, request.sale_id)

        payment = Payment(
            tenant_id=tenant_id,
            sale_id=request.sale_id,
            payment_date=normalize_datetime(request.payment_date) or utcnow(),
            customer_name=request.customer_name or "",
            amount=money(request.amount),
            payment_type=request.payment_type,
            payment_method=request.payment_method,
            check_number=request.check_number,
            check_date=normalize_datetime(request.check_date),
            bank_name=request.bank_name,
            reference_number=request.reference_number,
            notes=request.notes,
            created_at=utcnow(),
        )
        db.session.add(payment)
        db.session.flush()  # Get payment ID, make it visible to the recompute

        if payment.sale_id is not None and payment.payment_type == PAYMENT_TYPE_INCOME:
            recompute_payment_status(tenant_id, payment.sale_id)

        db.session.commit()
        return payment

    payment = run_with_retry(_op)
    current_app.logger.info(
        "%s payment %s of %s recorded for tenant %s (sale %s)",
        payment.payment_type, payment.id, payment.amount, tenant_id, payment.sale_id,
    )
    return payment


def update_payment(tenant_id: int, payment_id: int, request: PaymentRequest) -> Payment | None:
    """
    Replace a payment's fields.

    Amount, type or sale link may change, so both the previously linked sale
    and the newly linked sale are recomputed in the same transaction.

    Returns None (no effect) when the payment does not exist for the tenant.

    Raises:
        ValidationError: amount is not positive
        NotFoundError: sale_id does not reference a sale of this tenant
    """
    if request.amount is None or request.amount <= 0:
        raise ValidationError("Payment amount must be positive")

    def _op():
        begin_write()
        payment = lock_for_update(
            db.session.query(Payment).filter_by(id=payment_id, tenant_id=tenant_id)
        ).first()
        if payment is None:
            db.session.rollback()
            return None

        if request.sale_id is not None:
            _linked_sale(tenant_id, request.sale_id)

        previous_sale_id = payment.sale_id

        payment.sale_id = request.sale_id
        payment.payment_date = normalize_datetime(request.payment_date) or payment.payment_date
        payment.customer_name = request.customer_name or ""
        payment.amount = money(request.amount)
        payment.payment_type = request.payment_type
        payment.payment_method = request.payment_method
        payment.check_number = request.check_number
        payment.check_date = normalize_datetime(request.check_date)
        payment.bank_name = request.bank_name
        payment.reference_number = request.reference_number
        payment.notes = request.notes
        payment.updated_at = utcnow()
        db.session.flush()

        for sale_id in sorted({previous_sale_id, payment.sale_id} - {None}):
            recompute_payment_status(tenant_id, sale_id)

        db.session.commit()
        return payment

    payment = run_with_retry(_op)
    if payment is not None:
        current_app.logger.info(
            "Payment %s updated for tenant %s (sale %s, amount %s)",
            payment.id, tenant_id, payment.sale_id, payment.amount,
        )
    return payment


def delete_payment(tenant_id: int, payment_id: int) -> bool:
    """
    Remove a payment and recompute its sale's status in the same transaction.

    Returns False (no effect) when the payment does not exist for the tenant.
    """
    def _op():
        begin_write()
        payment = lock_for_update(
            db.session.query(Payment).filter_by(id=payment_id, tenant_id=tenant_id)
        ).first()
        if payment is None:
            db.session.rollback()
            return False

        sale_id = payment.sale_id
        db.session.delete(payment)
        db.session.flush()

        if sale_id is not None:
            recompute_payment_status(tenant_id, sale_id)

        db.session.commit()
        return True

    deleted = run_with_retry(_op)
    if deleted:
        current_app.logger.info("Payment %s deleted for tenant %s", payment_id, tenant_id)
    return deleted


# =============================================================================
# READS
# =============================================================================

def _filtered(tenant_id: int, payment_type: str | None, start: datetime | None, end: datetime | None):
    if payment_type is not None and payment_type not in PAYMENT_TYPES:
        raise ValidationError(f"payment_type must be one of {PAYMENT_TYPES}")

    query = db.session.query(Payment).filter(Payment.tenant_id == tenant_id)
    if payment_type is not None:
        query = query.filter(Payment.payment_type == payment_type)
    if start is not None:
        query = query.filter(Payment.payment_date >= normalize_datetime(start))
    if end is not None:
        query = query.filter(Payment.payment_date <= inclusive_end(end))
    return query.order_by(Payment.payment_date.desc(), Payment.id.desc())


def get_payment(tenant_id: int, payment_id: int) -> Payment | None:
    return db.session.query(Payment).filter_by(id=payment_id, tenant_id=tenant_id).first()


def get_payments(
    tenant_id: int,
    *,
    payment_type: str | None = None,
    start: datetime | None = None,
    end: datetime | None = None,
    page: int = 1,
    page_size: int | None = None,
) -> dict:
    """Tenant-scoped payments, newest payment date first. Date bounds are inclusive."""
    return paginate(_filtered(tenant_id, payment_type, start, end), page, page_size)


def get_payments_by_sale(tenant_id: int, sale_id: int) -> list[Payment]:
    return (
        db.session.query(Payment)
        .filter(Payment.tenant_id == tenant_id, Payment.sale_id == sale_id)
        .order_by(Payment.payment_date.asc(), Payment.id.asc())
        .all()
    )


def get_payments_by_type(
    tenant_id: int,
    payment_type: str,
    *,
    start: datetime | None = None,
    end: datetime | None = None,
) -> list[Payment]:
    return _filtered(tenant_id, payment_type, start, end).all()


def get_payment_summary(tenant_id: int, sale_id: int) -> dict:
    """
    Payment summary for a sale.

    Returns:
        - total_amount: what the sale totals to
        - collected: Income payments linked to the sale
        - remaining: amount still owed (never below zero)
        - payment_status
        - payments: linked payment records
    """
    sale = db.session.query(Sale).filter_by(id=sale_id, tenant_id=tenant_id).first()
    if sale is None:
        raise NotFoundError(f"Sale {sale_id} not found", details={"sale_id": sale_id})

    collected = collected_income(tenant_id, sale_id)
    remaining = max(sale.total_amount - collected, Decimal("0.00"))

    return {
        "sale_id": sale.id,
        "sale_number": sale.sale_number,
        "total_amount": str(sale.total_amount),
        "collected": str(collected),
        "remaining": str(remaining),
        "payment_status": sale.payment_status,
        "payments": [p.to_dict() for p in get_payments_by_sale(tenant_id, sale_id)],
    }
