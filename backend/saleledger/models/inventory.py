from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z


def decimal_str(value) -> str | None:
    """Serialize Decimal columns as strings so no precision is lost in JSON."""
    return None if value is None else str(value)


class Stock(db.Model):
    """
    Product stock owned by a tenant.

    MULTI-TENANT: Stocks are scoped directly by tenant_id.

    PRODUCT CODE: unique within a tenant among ACTIVE rows only. Deactivated
    (soft-deleted) stocks keep their code, so a new active stock may reuse it.
    The partial unique index is the backstop; services check inside the same
    transaction as the write.

    QUANTITY: on-hand quantity is a mutable field owned by the sale engine
    while a sale or cancellation runs. It may never go negative
    (ck_stocks_quantity_non_negative).
    """
    __tablename__ = "stocks"
    __table_args__ = (
        db.CheckConstraint("quantity >= 0", name="ck_stocks_quantity_non_negative"),
        db.Index(
            "uq_stocks_tenant_code_active",
            "tenant_id",
            "product_code",
            unique=True,
            sqlite_where=db.text("is_active = 1"),
            postgresql_where=db.text("is_active"),
        ),
        db.Index("ix_stocks_tenant_name", "tenant_id", "product_name"),
        db.Index("ix_stocks_tenant_active", "tenant_id", "is_active"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    tenant_id = db.Column(db.Integer, db.ForeignKey("tenants.id"), nullable=False, index=True)

    product_code = db.Column(db.String(64), nullable=False)
    product_name = db.Column(db.String(255), nullable=False)
    description = db.Column(db.Text, nullable=True)
    category = db.Column(db.String(128), nullable=True)
    unit = db.Column(db.String(32), nullable=True)  # piece, kg, litre...
    barcode = db.Column(db.String(128), nullable=True)

    quantity = db.Column(db.Numeric(18, 3), nullable=False, default=0)
    purchase_price = db.Column(db.Numeric(18, 2), nullable=False, default=0)
    sale_price = db.Column(db.Numeric(18, 2), nullable=False, default=0)
    minimum_quantity = db.Column(db.Numeric(18, 3), nullable=True)

    is_active = db.Column(db.Boolean, nullable=False, default=True)

    version_id = db.Column(db.Integer, nullable=False, default=1)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=True)

    tenant = db.relationship("Tenant", backref=db.backref("stocks", lazy=True))
    __mapper_args__ = {"version_id_col": version_id}

    @property
    def is_low_stock(self) -> bool:
        if self.minimum_quantity is None:
            return False
        return self.quantity <= self.minimum_quantity

    def __repr__(self) -> str:
        return f"<Stock id={self.id} code={self.product_code!r} name={self.product_name!r} tenant_id={self.tenant_id}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "tenant_id": self.tenant_id,
            "product_code": self.product_code,
            "product_name": self.product_name,
            "description": self.description,
            "category": self.category,
            "unit": self.unit,
            "barcode": self.barcode,
            "quantity": decimal_str(self.quantity),
            "purchase_price": decimal_str(self.purchase_price),
            "sale_price": decimal_str(self.sale_price),
            "minimum_quantity": decimal_str(self.minimum_quantity),
            "is_low_stock": self.is_low_stock,
            "is_active": self.is_active,
            "version_id": self.version_id,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
