from __future__ import annotations
from datetime import date, datetime

from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation
from typing import Any

from .errors import ValidationError
from .models.sales import PAYMENT_METHODS, PAYMENT_TYPES
from .time_utils import inclusive_end, normalize_datetime, parse_iso_datetime, utcnow


# Maximum money value: 9,999,999,999,999,999.99 fits Numeric(18, 2)
MAX_AMOUNT = Decimal("9999999999999999.99")
MAX_RATE = Decimal("100")


# =============================================================================
# COERCION HELPERS
# =============================================================================

def to_decimal(value: Any, field_name: str, *, required: bool = True) -> Decimal | None:
    """
    Coerce JSON input into a Decimal.

    Accepts ints, floats (via their repr, so 10.1 stays 10.1), Decimals and
    numeric strings. Rejects booleans, NaN and Infinity.
    """
    if value is None or (isinstance(value, str) and not value.strip()):
        if required:
            raise ValidationError(f"{field_name} is required")
        return None

    if isinstance(value, bool):
        raise ValidationError(f"{field_name} must be a number")

    if isinstance(value, Decimal):
        result = value
    elif isinstance(value, (int, float)):
        result = Decimal(str(value))
    elif isinstance(value, str):
        try:
            result = Decimal(value.strip())
        except InvalidOperation:
            raise ValidationError(f"{field_name} must be a number")
    else:
        raise ValidationError(f"{field_name} must be a number")

    if not result.is_finite():
        raise ValidationError(f"{field_name} must be a finite number")
    if abs(result) > MAX_AMOUNT:
        raise ValidationError(f"{field_name} is too large")
    return result


def to_int(value: Any, field_name: str, *, required: bool = True) -> int | None:
    if value is None or value == "":
        if required:
            raise ValidationError(f"{field_name} is required")
        return None
    if isinstance(value, int) and not isinstance(value, bool):
        return value
    if isinstance(value, str) and value.strip().isdigit():
        return int(value.strip())
    raise ValidationError(f"{field_name} must be an integer")


def to_datetime(value: Any, field_name: str, *, required: bool = False) -> datetime | None:
    if value is None or value == "":
        if required:
            raise ValidationError(f"{field_name} is required")
        return None
    if isinstance(value, (datetime, date)):
        return normalize_datetime(value)
    if isinstance(value, str):
        try:
            return parse_iso_datetime(value)
        except ValueError:
            raise ValidationError(f"{field_name} must be an ISO-8601 date or datetime")
    raise ValidationError(f"{field_name} must be an ISO-8601 date or datetime")


def to_range_end(value: Any, field_name: str) -> datetime | None:
    """Like to_datetime, but a date-only value means the end of that day."""
    if isinstance(value, str) and len(value.strip()) == 10:
        try:
            return inclusive_end(date.fromisoformat(value.strip()))
        except ValueError:
            raise ValidationError(f"{field_name} must be an ISO-8601 date or datetime")
    if isinstance(value, date) and not isinstance(value, datetime):
        return inclusive_end(value)
    return to_datetime(value, field_name)


def to_text(value: Any, field_name: str, *, required: bool = False, max_length: int = 255) -> str | None:
    if value is None:
        if required:
            raise ValidationError(f"{field_name} is required")
        return None
    if not isinstance(value, str):
        raise ValidationError(f"{field_name} must be a string")
    value = value.strip()
    if required and not value:
        raise ValidationError(f"{field_name} is required")
    if len(value) > max_length:
        raise ValidationError(f"{field_name} must be at most {max_length} characters")
    return value or None


def to_choice(value: Any, field_name: str, choices: list[str]) -> str:
    """Match an enum value by name, case-insensitively."""
    if isinstance(value, str):
        lookup = {c.lower(): c for c in choices}
        match = lookup.get(value.strip().lower())
        if match:
            return match
    raise ValidationError(f"{field_name} must be one of {choices}")


def _require_rate(value: Decimal, field_name: str) -> None:
    if value < 0 or value > MAX_RATE:
        raise ValidationError(f"{field_name} must be between 0 and 100")


def _require_non_negative(value: Decimal | None, field_name: str) -> None:
    if value is not None and value < 0:
        raise ValidationError(f"{field_name} must be non-negative")


# =============================================================================
# REQUEST OBJECTS
# =============================================================================

@dataclass(frozen=True)
class SaleItemRequest:
    """One proposed line item."""

    stock_id: int
    quantity: Decimal
    unit_price: Decimal
    tax_rate: Decimal = Decimal("0")
    discount_rate: Decimal = Decimal("0")

    def __post_init__(self):
        _require_non_negative(self.quantity, "quantity")
        _require_non_negative(self.unit_price, "unit_price")
        _require_rate(self.tax_rate, "tax_rate")
        _require_rate(self.discount_rate, "discount_rate")

    @classmethod
    def from_dict(cls, data: dict, index: int = 0) -> "SaleItemRequest":
        if not isinstance(data, dict):
            raise ValidationError(f"items[{index}] must be an object")
        prefix = f"items[{index}]"
        return cls(
            stock_id=to_int(data.get("stock_id"), f"{prefix}.stock_id"),
            quantity=to_decimal(data.get("quantity"), f"{prefix}.quantity"),
            unit_price=to_decimal(data.get("unit_price"), f"{prefix}.unit_price"),
            tax_rate=to_decimal(data.get("tax_rate"), f"{prefix}.tax_rate", required=False) or Decimal("0"),
            discount_rate=to_decimal(data.get("discount_rate"), f"{prefix}.discount_rate", required=False) or Decimal("0"),
        )


@dataclass(frozen=True)
class SaleRequest:
    """
    A proposed sale.

    sale_date may be any date; "not in the future" style checks are not
    applied here. Defaults to now when omitted.
    """

    items: tuple[SaleItemRequest, ...]
    sale_date: datetime = field(default_factory=utcnow)
    customer_name: str = ""
    customer_phone: str | None = None
    customer_email: str | None = None
    customer_address: str | None = None
    customer_tax_number: str | None = None
    discount_amount: Decimal = Decimal("0")
    notes: str | None = None

    def __post_init__(self):
        if not self.items:
            raise ValidationError("Sale must contain at least one item")
        _require_non_negative(self.discount_amount, "discount_amount")

    @classmethod
    def from_dict(cls, data: dict) -> "SaleRequest":
        raw_items = data.get("items")
        if not isinstance(raw_items, list):
            raise ValidationError("items must be a list")
        items = tuple(SaleItemRequest.from_dict(item, i) for i, item in enumerate(raw_items))
        return cls(
            items=items,
            sale_date=to_datetime(data.get("sale_date"), "sale_date") or utcnow(),
            customer_name=to_text(data.get("customer_name"), "customer_name") or "",
            customer_phone=to_text(data.get("customer_phone"), "customer_phone", max_length=64),
            customer_email=to_text(data.get("customer_email"), "customer_email"),
            customer_address=to_text(data.get("customer_address"), "customer_address", max_length=512),
            customer_tax_number=to_text(data.get("customer_tax_number"), "customer_tax_number", max_length=64),
            discount_amount=to_decimal(data.get("discount_amount"), "discount_amount", required=False) or Decimal("0"),
            notes=to_text(data.get("notes"), "notes", max_length=4000),
        )


@dataclass(frozen=True)
class PaymentRequest:
    """An income or expense entry, optionally linked to a sale."""

    payment_type: str
    payment_method: str
    amount: Decimal
    payment_date: datetime = field(default_factory=utcnow)
    customer_name: str = ""
    sale_id: int | None = None
    check_number: str | None = None
    check_date: datetime | None = None
    bank_name: str | None = None
    reference_number: str | None = None
    notes: str | None = None

    def __post_init__(self):
        if self.payment_type not in PAYMENT_TYPES:
            raise ValidationError(f"payment_type must be one of {PAYMENT_TYPES}")
        if self.payment_method not in PAYMENT_METHODS:
            raise ValidationError(f"payment_method must be one of {PAYMENT_METHODS}")
        if self.amount is None or self.amount <= 0:
            raise ValidationError("amount must be positive")

    @classmethod
    def from_dict(cls, data: dict) -> "PaymentRequest":
        return cls(
            payment_type=to_choice(data.get("payment_type"), "payment_type", PAYMENT_TYPES),
            payment_method=to_choice(data.get("payment_method"), "payment_method", PAYMENT_METHODS),
            amount=to_decimal(data.get("amount"), "amount"),
            payment_date=to_datetime(data.get("payment_date"), "payment_date") or utcnow(),
            customer_name=to_text(data.get("customer_name"), "customer_name") or "",
            sale_id=to_int(data.get("sale_id"), "sale_id", required=False),
            check_number=to_text(data.get("check_number"), "check_number", max_length=64),
            check_date=to_datetime(data.get("check_date"), "check_date"),
            bank_name=to_text(data.get("bank_name"), "bank_name", max_length=128),
            reference_number=to_text(data.get("reference_number"), "reference_number", max_length=128),
            notes=to_text(data.get("notes"), "notes", max_length=4000),
        )


@dataclass(frozen=True)
class StockRequest:
    """Create/update payload for a stock row."""

    product_code: str
    product_name: str
    quantity: Decimal = Decimal("0")
    purchase_price: Decimal = Decimal("0")
    sale_price: Decimal = Decimal("0")
    minimum_quantity: Decimal | None = None
    category: str | None = None
    unit: str | None = None
    barcode: str | None = None
    description: str | None = None

    def __post_init__(self):
        if not self.product_code or not self.product_code.strip():
            raise ValidationError("product_code is required")
        if not self.product_name or not self.product_name.strip():
            raise ValidationError("product_name is required")
        _require_non_negative(self.quantity, "quantity")
        _require_non_negative(self.purchase_price, "purchase_price")
        _require_non_negative(self.sale_price, "sale_price")
        _require_non_negative(self.minimum_quantity, "minimum_quantity")

    @classmethod
    def from_dict(cls, data: dict) -> "StockRequest":
        return cls(
            product_code=to_text(data.get("product_code"), "product_code", required=True, max_length=64),
            product_name=to_text(data.get("product_name"), "product_name", required=True),
            quantity=to_decimal(data.get("quantity"), "quantity", required=False) or Decimal("0"),
            purchase_price=to_decimal(data.get("purchase_price"), "purchase_price", required=False) or Decimal("0"),
            sale_price=to_decimal(data.get("sale_price"), "sale_price", required=False) or Decimal("0"),
            minimum_quantity=to_decimal(data.get("minimum_quantity"), "minimum_quantity", required=False),
            category=to_text(data.get("category"), "category", max_length=128),
            unit=to_text(data.get("unit"), "unit", max_length=32),
            barcode=to_text(data.get("barcode"), "barcode", max_length=128),
            description=to_text(data.get("description"), "description", max_length=4000),
        )
