# Overview: Flask API routes for sales operations; parses input and returns JSON responses.

# backend/saleledger/routes/sales.py
"""Sales API routes (tenant-scoped via @require_tenant)."""

from flask import Blueprint, request, jsonify, g, current_app

from ..errors import LedgerError
from ..services import sales_service, lifecycle_service, payment_service
from ..validation import SaleRequest, to_datetime, to_range_end
from ..decorators import require_tenant


sales_bp = Blueprint("sales", __name__, url_prefix="/api/sales")


def _page_result(result: dict) -> dict:
    return {**result, "items": [s.to_dict(include_items=False) for s in result["items"]]}


@sales_bp.post("")
@require_tenant
def create_sale_route():
    """
    Create a sale from stock.

    Request body:
    {
        "sale_date": "2025-06-01",  (optional, defaults to now)
        "customer_name": "Acme",
        "discount_amount": "10.00",  (optional)
        "items": [
            {"stock_id": 1, "quantity": "2", "unit_price": "50.00",
             "tax_rate": "18", "discount_rate": "0"}
        ]
    }

    Returns:
        201: Sale with items
        400: Invalid input
        404: Referenced stock not found
        409: Inactive stock, insufficient stock, or sale number conflict
    """
    try:
        sale_request = SaleRequest.from_dict(request.get_json(silent=True) or {})
        sale = sales_service.create_sale(g.tenant_id, sale_request)
        return jsonify({"sale": sale.to_dict()}), 201

    except LedgerError as e:
        return jsonify(e.to_dict()), e.http_status
    except Exception:
        current_app.logger.exception("Failed to create sale")
        return jsonify({"error": "Internal server error"}), 500


@sales_bp.get("")
@require_tenant
def list_sales_route():
    """
    List sales, newest first.

    Query params: start, end (ISO-8601, inclusive), page, page_size
    """
    try:
        result = sales_service.list_sales(
            g.tenant_id,
            start=to_datetime(request.args.get("start"), "start"),
            end=to_range_end(request.args.get("end"), "end"),
            page=request.args.get("page", 1, type=int),
            page_size=request.args.get("page_size", type=int),
        )
        return jsonify(_page_result(result)), 200

    except LedgerError as e:
        return jsonify(e.to_dict()), e.http_status


@sales_bp.get("/pending")
@require_tenant
def list_pending_sales_route():
    result = sales_service.list_pending_sales(
        g.tenant_id,
        page=request.args.get("page", 1, type=int),
        page_size=request.args.get("page_size", type=int),
    )
    return jsonify(_page_result(result)), 200


@sales_bp.get("/<int:sale_id>")
@require_tenant
def get_sale_route(sale_id: int):
    sale = sales_service.get_sale(g.tenant_id, sale_id)
    if not sale:
        return jsonify({"error": "Sale not found"}), 404
    return jsonify({"sale": sale.to_dict()}), 200


@sales_bp.get("/number/<string:sale_number>")
@require_tenant
def get_sale_by_number_route(sale_number: str):
    sale = sales_service.get_sale_by_number(g.tenant_id, sale_number)
    if not sale:
        return jsonify({"error": "Sale not found"}), 404
    return jsonify({"sale": sale.to_dict()}), 200


@sales_bp.post("/<int:sale_id>/cancel")
@require_tenant
def cancel_sale_route(sale_id: int):
    """
    Cancel a sale and restore its stock.

    Returns:
        200: Cancelled sale
        404: Sale not found
        409: Sale is fully paid or already cancelled
    """
    try:
        if not lifecycle_service.cancel_sale(g.tenant_id, sale_id):
            return jsonify({"error": "Sale not found"}), 404

        sale = sales_service.get_sale(g.tenant_id, sale_id)
        return jsonify({"sale": sale.to_dict()}), 200

    except LedgerError as e:
        return jsonify(e.to_dict()), e.http_status
    except Exception:
        current_app.logger.exception("Failed to cancel sale")
        return jsonify({"error": "Internal server error"}), 500


@sales_bp.get("/<int:sale_id>/payments")
@require_tenant
def sale_payment_summary_route(sale_id: int):
    """Total, collected, remaining and linked payments for a sale."""
    try:
        return jsonify(payment_service.get_payment_summary(g.tenant_id, sale_id)), 200
    except LedgerError as e:
        return jsonify(e.to_dict()), e.http_status
