# Overview: Pytest coverage for sale creation, numbering and sale reads.

"""
Sale Builder Tests

Covers:
1. Line and sale totals (net, tax, discount rounding)
2. All-or-nothing creation: failures leave stock and sales untouched
3. Per-tenant, per-day sale numbering
4. Tenant-scoped reads
"""

from datetime import date, datetime, timedelta
from decimal import Decimal

import pytest

from conftest import SALE_DAY, make_stock, sale_request
from saleledger.errors import (
    ConflictError,
    InactiveStockError,
    InsufficientStockError,
    NotFoundError,
    ValidationError,
)
from saleledger.models import Sale, SaleItem, Stock
from saleledger.services import sales_service
from saleledger.services.sales_service import compute_line, create_sale
from saleledger.validation import SaleRequest


class TestLineMath:
    def test_tax_only(self):
        amounts = compute_line(Decimal("2"), Decimal("100.00"), Decimal("18"), Decimal("0"))
        assert amounts.net == Decimal("200.00")
        assert amounts.tax == Decimal("36.00")
        assert amounts.line_total == Decimal("236.00")

    def test_discount_applies_before_tax(self):
        amounts = compute_line(Decimal("3"), Decimal("40.00"), Decimal("8"), Decimal("10"))
        assert amounts.gross == Decimal("120.00")
        assert amounts.discount == Decimal("12.00")
        assert amounts.net == Decimal("108.00")
        assert amounts.line_total == Decimal("116.64")
        assert amounts.tax == Decimal("8.64")

    def test_rounds_half_up_and_net_plus_tax_is_total(self):
        amounts = compute_line(Decimal("3"), Decimal("0.35"), Decimal("18"), Decimal("0"))
        assert amounts.net == Decimal("1.05")
        assert amounts.line_total == Decimal("1.24")
        assert amounts.net + amounts.tax == amounts.line_total


class TestCreateSale:
    def test_totals_and_stock_decrement(self, db_session, tenant_a, widget_a, gadget_a):
        sale = create_sale(tenant_a.id, sale_request(
            (widget_a.id, "2", "100.00", "18"),
            (gadget_a.id, "3", "40.00", "8", "10"),
            discount_amount="4.64",
        ))

        assert sale.subtotal == Decimal("308.00")
        assert sale.tax_amount == Decimal("44.64")
        assert sale.discount_amount == Decimal("4.64")
        assert sale.total_amount == Decimal("348.00")
        assert sale.payment_status == "Pending"

        assert len(sale.items) == 2
        assert sum(item.line_total for item in sale.items) == Decimal("352.64")

        assert db_session.get(Stock, widget_a.id).quantity == Decimal("8")
        assert db_session.get(Stock, gadget_a.id).quantity == Decimal("2")

    def test_item_keeps_product_snapshot(self, db_session, tenant_a, widget_a):
        sale = create_sale(tenant_a.id, sale_request((widget_a.id, "1", "100.00")))

        widget_a.product_name = "Renamed Widget"
        db_session.commit()

        item = db_session.query(SaleItem).filter_by(sale_id=sale.id).one()
        assert item.product_name == "Widget"
        assert item.product_code == "W-001"

    def test_selling_entire_quantity_leaves_zero(self, db_session, tenant_a, gadget_a):
        create_sale(tenant_a.id, sale_request((gadget_a.id, "5", "40.00")))
        assert db_session.get(Stock, gadget_a.id).quantity == Decimal("0")

    def test_insufficient_stock_changes_nothing(self, db_session, tenant_a, widget_a, gadget_a):
        with pytest.raises(InsufficientStockError) as excinfo:
            create_sale(tenant_a.id, sale_request(
                (widget_a.id, "2", "100.00"),
                (gadget_a.id, "6", "40.00"),
            ))

        items = excinfo.value.details["items"]
        assert [entry["product_name"] for entry in items] == ["Gadget"]
        assert items[0]["on_hand"] == "5.000"

        assert db_session.get(Stock, widget_a.id).quantity == Decimal("10")
        assert db_session.get(Stock, gadget_a.id).quantity == Decimal("5")
        assert db_session.query(Sale).count() == 0
        assert db_session.query(SaleItem).count() == 0

    def test_repeated_stock_lines_are_summed(self, db_session, tenant_a, widget_a):
        with pytest.raises(InsufficientStockError):
            create_sale(tenant_a.id, sale_request(
                (widget_a.id, "6", "100.00"),
                (widget_a.id, "6", "100.00"),
            ))
        assert db_session.get(Stock, widget_a.id).quantity == Decimal("10")

    def test_all_insufficient_products_reported(self, db_session, tenant_a, widget_a, gadget_a):
        with pytest.raises(InsufficientStockError) as excinfo:
            create_sale(tenant_a.id, sale_request(
                (widget_a.id, "11", "100.00"),
                (gadget_a.id, "6", "40.00"),
            ))
        names = {entry["product_name"] for entry in excinfo.value.details["items"]}
        assert names == {"Widget", "Gadget"}

    def test_inactive_stock_rejected(self, db_session, tenant_a):
        retired = make_stock(db_session, tenant_a, "R-001", "Retired", "10", is_active=False)

        with pytest.raises(InactiveStockError):
            create_sale(tenant_a.id, sale_request((retired.id, "1", "10.00")))

        assert db_session.get(Stock, retired.id).quantity == Decimal("10")

    def test_foreign_stock_reported_as_not_found(self, db_session, tenant_a, widget_a, widget_b):
        with pytest.raises(NotFoundError):
            create_sale(tenant_a.id, sale_request(
                (widget_a.id, "1", "100.00"),
                (widget_b.id, "1", "100.00"),
            ))

        assert db_session.get(Stock, widget_a.id).quantity == Decimal("10")
        assert db_session.get(Stock, widget_b.id).quantity == Decimal("10")

    def test_discount_larger_than_total_rejected(self, db_session, tenant_a, widget_a):
        with pytest.raises(ValidationError):
            create_sale(tenant_a.id, sale_request((widget_a.id, "2", "100.00", "18"), discount_amount="500"))

        assert db_session.get(Stock, widget_a.id).quantity == Decimal("10")
        assert db_session.query(Sale).count() == 0

    def test_discount_equal_to_total_gives_zero_total(self, db_session, tenant_a, widget_a):
        sale = create_sale(tenant_a.id, sale_request((widget_a.id, "1", "100.00"), discount_amount="100"))
        assert sale.total_amount == Decimal("0.00")
        assert sale.payment_status == "Pending"

    def test_sub_cent_price_stored_item_reproduces_its_total(self, db_session, tenant_a, widget_a):
        sale = create_sale(tenant_a.id, sale_request((widget_a.id, "3", "0.333")))

        item = db_session.query(SaleItem).filter_by(sale_id=sale.id).one()
        assert item.unit_price == Decimal("0.33")
        assert item.line_total == Decimal("0.99")
        assert compute_line(item.quantity, item.unit_price, item.tax_rate, item.discount_rate).line_total == item.line_total

    def test_fine_grained_rates_stored_item_reproduces_its_total(self, db_session, tenant_a, widget_a):
        sale = create_sale(tenant_a.id, sale_request((widget_a.id, "10", "100.00", "12.345", "0.005")))

        item = db_session.query(SaleItem).filter_by(sale_id=sale.id).one()
        assert item.tax_rate == Decimal("12.35")
        assert item.discount_rate == Decimal("0.01")
        assert compute_line(item.quantity, item.unit_price, item.tax_rate, item.discount_rate).line_total == item.line_total
        assert sale.subtotal + sale.tax_amount == item.line_total

    def test_stocks_locked_in_id_order(self, db_session, tenant_a, widget_a, gadget_a, monkeypatch):
        locked = []
        real_check = sales_service.check_and_reserve

        def recording_check(tenant_id, stock_id, quantity):
            locked.append(stock_id)
            return real_check(tenant_id, stock_id, quantity)

        monkeypatch.setattr(sales_service, "check_and_reserve", recording_check)

        create_sale(tenant_a.id, sale_request(
            (gadget_a.id, "1", "40.00"),
            (widget_a.id, "1", "100.00"),
        ))
        assert locked == sorted([widget_a.id, gadget_a.id])

    def test_empty_sale_rejected_before_any_work(self):
        with pytest.raises(ValidationError):
            SaleRequest(items=())


class TestSaleNumbering:
    def test_sequential_numbers_per_day(self, db_session, tenant_a, widget_a):
        first = create_sale(tenant_a.id, sale_request((widget_a.id, "1", "100.00")))
        second = create_sale(tenant_a.id, sale_request((widget_a.id, "1", "100.00")))

        assert first.sale_number == "S202506010001"
        assert second.sale_number == "S202506010002"

    def test_new_day_restarts_sequence(self, db_session, tenant_a, widget_a):
        create_sale(tenant_a.id, sale_request((widget_a.id, "1", "100.00")))
        next_day = create_sale(
            tenant_a.id,
            sale_request((widget_a.id, "1", "100.00"), sale_date=SALE_DAY + timedelta(days=1)),
        )
        assert next_day.sale_number == "S202506020001"

    def test_sequence_is_per_tenant(self, db_session, tenant_a, tenant_b, widget_a, widget_b):
        create_sale(tenant_a.id, sale_request((widget_a.id, "1", "100.00")))
        other = create_sale(tenant_b.id, sale_request((widget_b.id, "1", "100.00")))
        assert other.sale_number == "S202506010001"

    def test_five_digit_suffix_sorts_after_four(self, db_session, tenant_a, widget_a):
        db_session.add(Sale(
            tenant_id=tenant_a.id,
            sale_number="S202506019999",
            sale_date=SALE_DAY,
            subtotal=Decimal("0"),
            tax_amount=Decimal("0"),
            discount_amount=Decimal("0"),
            total_amount=Decimal("0"),
        ))
        db_session.commit()

        sale = create_sale(tenant_a.id, sale_request((widget_a.id, "1", "100.00")))
        assert sale.sale_number == "S2025060110000"

    def test_collision_retries_once_then_succeeds(self, db_session, tenant_a, widget_a, monkeypatch):
        create_sale(tenant_a.id, sale_request((widget_a.id, "1", "100.00")))

        real_allocate = sales_service.allocate_sale_number
        calls = []

        def stale_then_real(tenant_id, sale_date):
            calls.append(tenant_id)
            if len(calls) == 1:
                return "S202506010001"
            return real_allocate(tenant_id, sale_date)

        monkeypatch.setattr(sales_service, "allocate_sale_number", stale_then_real)

        sale = create_sale(tenant_a.id, sale_request((widget_a.id, "1", "100.00")))
        assert sale.sale_number == "S202506010002"
        assert len(calls) == 2
        assert db_session.get(Stock, widget_a.id).quantity == Decimal("8")

    def test_persistent_collision_raises_conflict(self, db_session, tenant_a, widget_a, monkeypatch):
        create_sale(tenant_a.id, sale_request((widget_a.id, "1", "100.00")))
        monkeypatch.setattr(sales_service, "allocate_sale_number", lambda tenant_id, sale_date: "S202506010001")

        with pytest.raises(ConflictError):
            create_sale(tenant_a.id, sale_request((widget_a.id, "1", "100.00")))

        assert db_session.get(Stock, widget_a.id).quantity == Decimal("9")
        assert db_session.query(Sale).count() == 1

    def test_custom_prefix(self, app, db_session, tenant_a, widget_a, monkeypatch):
        monkeypatch.setitem(app.config, "SALE_NUMBER_PREFIX", "INV")
        sale = create_sale(tenant_a.id, sale_request((widget_a.id, "1", "100.00")))
        assert sale.sale_number == "INV202506010001"


class TestSaleReads:
    def test_reads_are_tenant_scoped(self, db_session, tenant_a, tenant_b, widget_a):
        sale = create_sale(tenant_a.id, sale_request((widget_a.id, "1", "100.00")))

        assert sales_service.get_sale(tenant_a.id, sale.id).id == sale.id
        assert sales_service.get_sale(tenant_b.id, sale.id) is None
        assert sales_service.get_sale_by_number(tenant_a.id, "S202506010001").id == sale.id
        assert sales_service.get_sale_by_number(tenant_b.id, "S202506010001") is None
        assert sales_service.list_sales(tenant_b.id)["pagination"]["total"] == 0

    def test_list_sales_filters_by_inclusive_date_range(self, db_session, tenant_a, widget_a):
        for day in range(3):
            create_sale(
                tenant_a.id,
                sale_request((widget_a.id, "1", "100.00"), sale_date=SALE_DAY + timedelta(days=day)),
            )

        result = sales_service.list_sales(
            tenant_a.id,
            start=SALE_DAY + timedelta(days=1),
            end=SALE_DAY + timedelta(days=2),
        )
        numbers = [s.sale_number for s in result["items"]]
        assert numbers == ["S202506030001", "S202506020001"]

    def test_list_sales_pagination(self, db_session, tenant_a, widget_a):
        for _ in range(3):
            create_sale(tenant_a.id, sale_request((widget_a.id, "1", "100.00")))

        result = sales_service.list_sales(tenant_a.id, page=2, page_size=2)
        assert result["count"] == 1
        assert result["pagination"]["total"] == 3
        assert result["pagination"]["total_pages"] == 2
        assert result["pagination"]["has_prev"] is True
        assert result["pagination"]["has_next"] is False

    def test_pending_sales(self, db_session, tenant_a, widget_a):
        create_sale(tenant_a.id, sale_request((widget_a.id, "1", "100.00")))
        result = sales_service.list_pending_sales(tenant_a.id)
        assert result["pagination"]["total"] == 1
        assert all(s.payment_status == "Pending" for s in result["items"])

    def test_sale_dates_are_stored_as_given_day(self, db_session, tenant_a, widget_a):
        sale = create_sale(
            tenant_a.id,
            sale_request((widget_a.id, "1", "100.00"), sale_date=datetime(2025, 12, 31, 23, 59)),
        )
        assert sale.sale_number.startswith("S20251231")

    def test_date_only_end_covers_whole_day(self, db_session, tenant_a, widget_a):
        create_sale(tenant_a.id, sale_request((widget_a.id, "1", "100.00")))

        result = sales_service.list_sales(tenant_a.id, start=date(2025, 6, 1), end=date(2025, 6, 1))
        assert [s.sale_number for s in result["items"]] == ["S202506010001"]
