# Overview: Service-layer operations for the sale lifecycle (payment status and cancellation).

"""
Sale Lifecycle

STATE MACHINE (Sale.payment_status):

    Pending <-> PartialPaid <-> Paid        (derived from income payments)
    Pending / PartialPaid  -> Cancelled     (cancel_sale)

- Pending/PartialPaid/Paid are a pure function of the Income payments
  linked to the sale and its total_amount. They are recomputed explicitly,
  in the same transaction, after every payment insert or delete.
- Cancelled is terminal. Recomputing a cancelled sale is a no-op.
- Paid sales cannot be cancelled. Partial payments do not block it.
"""

from __future__ import annotations

from decimal import Decimal

from flask import current_app
from sqlalchemy import func

from ..errors import InvalidStateError
from ..extensions import db
from ..models import Payment, Sale, SaleItem
from ..models.sales import (
    PAYMENT_STATUS_CANCELLED,
    PAYMENT_STATUS_PAID,
    PAYMENT_STATUS_PARTIAL,
    PAYMENT_STATUS_PENDING,
    PAYMENT_TYPE_INCOME,
)
from ..time_utils import utcnow
from .concurrency import begin_write, lock_for_update, run_with_retry
from .stock_service import adjust_locked


def derive_payment_status(total_amount: Decimal, collected: Decimal) -> str:
    """
    - Pending: nothing collected
    - Paid: collected >= total
    - PartialPaid: anything in between
    """
    if collected <= 0:
        return PAYMENT_STATUS_PENDING
    if collected >= total_amount:
        return PAYMENT_STATUS_PAID
    return PAYMENT_STATUS_PARTIAL


def collected_income(tenant_id: int, sale_id: int) -> Decimal:
    """Sum of Income payments linked to the sale."""
    total = db.session.query(
        func.coalesce(func.sum(Payment.amount), 0)
    ).filter(
        Payment.tenant_id == tenant_id,
        Payment.sale_id == sale_id,
        Payment.payment_type == PAYMENT_TYPE_INCOME,
    ).scalar()
    return Decimal(str(total or 0)).quantize(Decimal("0.01"))


def _locked_sale(tenant_id: int, sale_id: int) -> Sale | None:
    return lock_for_update(
        db.session.query(Sale).filter_by(id=sale_id, tenant_id=tenant_id)
    ).first()


def recompute_payment_status(tenant_id: int, sale_id: int, *, commit: bool = False) -> Sale | None:
    """
    Re-derive the sale's payment status from its income payments.

    Runs inside the caller's transaction unless commit=True. Returns None when
    the sale does not exist for the tenant. Cancelled sales are returned
    untouched.
    """
    def _apply():
        sale = _locked_sale(tenant_id, sale_id)
        if sale is None:
            return None

        if sale.payment_status == PAYMENT_STATUS_CANCELLED:
            return sale

        status = derive_payment_status(sale.total_amount, collected_income(tenant_id, sale_id))
        if status != sale.payment_status:
            sale.payment_status = status
            sale.updated_at = utcnow()
        return sale

    if not commit:
        return _apply()

    def _op():
        begin_write()
        sale = _apply()
        db.session.commit()
        return sale

    return run_with_retry(_op)


def cancel_sale(tenant_id: int, sale_id: int) -> bool:
    """
    Cancel a sale and put every line item's quantity back on its stock.

    Returns False (no effect) when the sale does not exist for the tenant.

    Raises:
        InvalidStateError: the sale is fully paid, or already cancelled
    """
    def _op():
        begin_write()
        sale = _locked_sale(tenant_id, sale_id)
        if sale is None:
            db.session.rollback()
            return None

        if sale.payment_status == PAYMENT_STATUS_PAID:
            raise InvalidStateError(
                f"Sale {sale.sale_number} is fully paid and cannot be cancelled",
                details={"sale_id": sale.id, "payment_status": sale.payment_status},
            )

        if sale.payment_status == PAYMENT_STATUS_CANCELLED:
            raise InvalidStateError(
                f"Sale {sale.sale_number} is already cancelled",
                details={"sale_id": sale.id, "payment_status": sale.payment_status},
            )

        items = (
            db.session.query(SaleItem)
            .filter_by(sale_id=sale.id)
            .order_by(SaleItem.id)
            .all()
        )
        for item in items:
            if not adjust_locked(tenant_id, item.stock_id, item.quantity):
                current_app.logger.warning(
                    "Stock %s missing while cancelling sale %s", item.stock_id, sale.sale_number
                )

        sale.payment_status = PAYMENT_STATUS_CANCELLED
        sale.updated_at = utcnow()

        db.session.commit()
        return sale.sale_number

    try:
        sale_number = run_with_retry(_op)
    except InvalidStateError as exc:
        current_app.logger.warning("Cancel rejected for tenant %s: %s", tenant_id, exc)
        raise

    if sale_number is None:
        return False

    current_app.logger.info("Sale %s cancelled for tenant %s", sale_number, tenant_id)
    return True
