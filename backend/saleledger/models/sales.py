from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z
from .inventory import decimal_str


# =============================================================================
# PAYMENT STATUS / TYPE / METHOD (CONSTANTS)
# =============================================================================

PAYMENT_STATUS_PENDING = "Pending"
PAYMENT_STATUS_PARTIAL = "PartialPaid"
PAYMENT_STATUS_PAID = "Paid"
PAYMENT_STATUS_CANCELLED = "Cancelled"

PAYMENT_STATUSES = [
    PAYMENT_STATUS_PENDING,
    PAYMENT_STATUS_PARTIAL,
    PAYMENT_STATUS_PAID,
    PAYMENT_STATUS_CANCELLED,
]

PAYMENT_TYPE_INCOME = "Income"
PAYMENT_TYPE_EXPENSE = "Expense"

PAYMENT_TYPES = [PAYMENT_TYPE_INCOME, PAYMENT_TYPE_EXPENSE]

METHOD_CASH = "Cash"
METHOD_CREDIT_CARD = "CreditCard"
METHOD_BANK_TRANSFER = "BankTransfer"
METHOD_CHECK = "Check"
METHOD_OTHER = "Other"

PAYMENT_METHODS = [
    METHOD_CASH,
    METHOD_CREDIT_CARD,
    METHOD_BANK_TRANSFER,
    METHOD_CHECK,
    METHOD_OTHER,
]


class Sale(db.Model):
    """
    Sale header: a customer invoice record created from stock.

    Monetary fields are written once when the sale is created and never
    recomputed. Cancellation only changes payment_status.

    PAYMENT STATUS:
    - Pending: no income collected
    - PartialPaid: 0 < collected < total_amount
    - Paid: collected >= total_amount
    - Cancelled: terminal, stock restored
    """
    __tablename__ = "sales"
    __table_args__ = (
        db.UniqueConstraint("tenant_id", "sale_number", name="uq_sales_tenant_number"),
        db.CheckConstraint("total_amount >= 0", name="ck_sales_total_non_negative"),
        # Composite index for tenant-scoped queries by status and date
        db.Index("ix_sales_tenant_status_date", "tenant_id", "payment_status", "sale_date"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    tenant_id = db.Column(db.Integer, db.ForeignKey("tenants.id"), nullable=False, index=True)

    # Human-readable number, e.g. "S202506010001"
    sale_number = db.Column(db.String(64), nullable=False)
    sale_date = db.Column(db.DateTime(timezone=True), nullable=False, index=True)

    # Customer descriptive fields
    customer_name = db.Column(db.String(255), nullable=False, default="")
    customer_phone = db.Column(db.String(64), nullable=True)
    customer_email = db.Column(db.String(255), nullable=True)
    customer_address = db.Column(db.String(512), nullable=True)
    customer_tax_number = db.Column(db.String(64), nullable=True)

    # Computed once at creation
    subtotal = db.Column(db.Numeric(18, 2), nullable=False)
    tax_amount = db.Column(db.Numeric(18, 2), nullable=False)
    discount_amount = db.Column(db.Numeric(18, 2), nullable=False, default=0)
    total_amount = db.Column(db.Numeric(18, 2), nullable=False)

    payment_status = db.Column(db.String(16), nullable=False, default=PAYMENT_STATUS_PENDING, index=True)
    notes = db.Column(db.Text, nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=True)

    version_id = db.Column(db.Integer, nullable=False, default=1)

    tenant = db.relationship("Tenant", backref=db.backref("sales", lazy=True))
    __mapper_args__ = {"version_id_col": version_id}

    def to_dict(self, include_items: bool = True) -> dict:
        data = {
            "id": self.id,
            "tenant_id": self.tenant_id,
            "sale_number": self.sale_number,
            "sale_date": to_utc_z(self.sale_date),
            "customer_name": self.customer_name,
            "customer_phone": self.customer_phone,
            "customer_email": self.customer_email,
            "customer_address": self.customer_address,
            "customer_tax_number": self.customer_tax_number,
            "subtotal": decimal_str(self.subtotal),
            "tax_amount": decimal_str(self.tax_amount),
            "discount_amount": decimal_str(self.discount_amount),
            "total_amount": decimal_str(self.total_amount),
            "payment_status": self.payment_status,
            "notes": self.notes,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
            "version_id": self.version_id,
        }
        if include_items:
            data["items"] = [item.to_dict() for item in self.items]
        return data


class SaleItem(db.Model):
    """
    Line item on a sale. Written with its sale and never mutated afterward.

    product_name/product_code are snapshots so later stock renames do not
    rewrite history.
    """
    __tablename__ = "sale_items"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    sale_id = db.Column(db.Integer, db.ForeignKey("sales.id"), nullable=False, index=True)
    stock_id = db.Column(db.Integer, db.ForeignKey("stocks.id"), nullable=False, index=True)

    product_code = db.Column(db.String(64), nullable=False)
    product_name = db.Column(db.String(255), nullable=False)

    quantity = db.Column(db.Numeric(18, 3), nullable=False)
    unit_price = db.Column(db.Numeric(18, 2), nullable=False)
    tax_rate = db.Column(db.Numeric(5, 2), nullable=False, default=0)
    discount_rate = db.Column(db.Numeric(5, 2), nullable=False, default=0)
    line_total = db.Column(db.Numeric(18, 2), nullable=False)

    sale = db.relationship("Sale", backref=db.backref("items", lazy=True, order_by="SaleItem.id"))
    stock = db.relationship("Stock")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "sale_id": self.sale_id,
            "stock_id": self.stock_id,
            "product_code": self.product_code,
            "product_name": self.product_name,
            "quantity": decimal_str(self.quantity),
            "unit_price": decimal_str(self.unit_price),
            "tax_rate": decimal_str(self.tax_rate),
            "discount_rate": decimal_str(self.discount_rate),
            "line_total": decimal_str(self.line_total),
        }


class Payment(db.Model):
    """
    Income or expense cash-flow record, optionally tied to a sale.

    Only Income payments linked to a sale count towards its payment status.
    Payments are created and deleted independently; every insert/delete of a
    linked payment recomputes the sale status in the same transaction.
    """
    __tablename__ = "payments"
    __table_args__ = (
        db.CheckConstraint("amount > 0", name="ck_payments_amount_positive"),
        db.Index("ix_payments_tenant_type_date", "tenant_id", "payment_type", "payment_date"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    tenant_id = db.Column(db.Integer, db.ForeignKey("tenants.id"), nullable=False, index=True)
    sale_id = db.Column(db.Integer, db.ForeignKey("sales.id"), nullable=True, index=True)

    payment_date = db.Column(db.DateTime(timezone=True), nullable=False, index=True)
    customer_name = db.Column(db.String(255), nullable=False, default="")
    amount = db.Column(db.Numeric(18, 2), nullable=False)

    payment_type = db.Column(db.String(16), nullable=False, index=True)  # Income, Expense
    payment_method = db.Column(db.String(32), nullable=False)  # Cash, CreditCard, BankTransfer, Check, Other

    # Check / bank metadata
    check_number = db.Column(db.String(64), nullable=True)
    check_date = db.Column(db.DateTime(timezone=True), nullable=True)
    bank_name = db.Column(db.String(128), nullable=True)
    reference_number = db.Column(db.String(128), nullable=True)

    notes = db.Column(db.Text, nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), index=True)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=True)

    sale = db.relationship("Sale", backref=db.backref("payments", lazy=True))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "tenant_id": self.tenant_id,
            "sale_id": self.sale_id,
            "payment_date": to_utc_z(self.payment_date),
            "customer_name": self.customer_name,
            "amount": decimal_str(self.amount),
            "payment_type": self.payment_type,
            "payment_method": self.payment_method,
            "check_number": self.check_number,
            "check_date": to_utc_z(self.check_date),
            "bank_name": self.bank_name,
            "reference_number": self.reference_number,
            "notes": self.notes,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
