# Overview: Flask API routes for stock operations; parses input and returns JSON responses.

# backend/saleledger/routes/stocks.py
"""
Stock management routes.

MULTI-TENANT: All stock operations are scoped to g.tenant_id (set by
@require_tenant).
"""
from flask import Blueprint, request, jsonify, g, current_app

from ..errors import LedgerError, NotFoundError
from ..services import stock_service
from ..validation import StockRequest, to_decimal
from ..decorators import require_tenant


stocks_bp = Blueprint("stocks", __name__, url_prefix="/api/stocks")


def _page_result(result: dict) -> dict:
    return {**result, "items": [s.to_dict() for s in result["items"]]}


@stocks_bp.get("")
@require_tenant
def list_stocks_route():
    """
    List stocks ordered by product name.

    Query params:
    - search: matches name, code or category (case-insensitive)
    - include_inactive: "true" to include soft-deleted stocks
    - page, page_size
    """
    result = stock_service.list_stocks(
        g.tenant_id,
        search=request.args.get("search"),
        include_inactive=request.args.get("include_inactive", "false").lower() == "true",
        page=request.args.get("page", 1, type=int),
        page_size=request.args.get("page_size", type=int),
    )
    return jsonify(_page_result(result)), 200


@stocks_bp.get("/low")
@require_tenant
def low_stock_route():
    stocks = stock_service.get_low_stock(g.tenant_id)
    return jsonify({"items": [s.to_dict() for s in stocks], "count": len(stocks)}), 200


@stocks_bp.get("/<int:stock_id>")
@require_tenant
def get_stock_route(stock_id: int):
    stock = stock_service.get_stock(g.tenant_id, stock_id)
    if not stock:
        return jsonify({"error": "Stock not found"}), 404
    return jsonify({"stock": stock.to_dict()}), 200


@stocks_bp.post("")
@require_tenant
def create_stock_route():
    try:
        stock_request = StockRequest.from_dict(request.get_json(silent=True) or {})
        stock = stock_service.create_stock(g.tenant_id, stock_request)
        return jsonify({"stock": stock.to_dict()}), 201

    except LedgerError as e:
        return jsonify(e.to_dict()), e.http_status
    except Exception:
        current_app.logger.exception("Failed to create stock")
        return jsonify({"error": "Internal server error"}), 500


@stocks_bp.put("/<int:stock_id>")
@require_tenant
def update_stock_route(stock_id: int):
    try:
        stock_request = StockRequest.from_dict(request.get_json(silent=True) or {})
        stock = stock_service.update_stock(g.tenant_id, stock_id, stock_request)
        return jsonify({"stock": stock.to_dict()}), 200

    except LedgerError as e:
        return jsonify(e.to_dict()), e.http_status
    except Exception:
        current_app.logger.exception("Failed to update stock")
        return jsonify({"error": "Internal server error"}), 500


@stocks_bp.delete("/<int:stock_id>")
@require_tenant
def deactivate_stock_route(stock_id: int):
    """Soft delete: the stock stays referenced by past sales."""
    try:
        if not stock_service.deactivate_stock(g.tenant_id, stock_id):
            return jsonify({"error": "Stock not found"}), 404
        return jsonify({"deactivated": True}), 200

    except Exception:
        current_app.logger.exception("Failed to deactivate stock")
        return jsonify({"error": "Internal server error"}), 500


@stocks_bp.post("/<int:stock_id>/adjust")
@require_tenant
def adjust_stock_route(stock_id: int):
    """
    Apply a signed quantity delta.

    Request body: {"delta": "-2.5"}
    """
    try:
        data = request.get_json(silent=True) or {}
        delta = to_decimal(data.get("delta"), "delta")

        if not stock_service.adjust_quantity(g.tenant_id, stock_id, delta):
            raise NotFoundError("Stock not found")

        stock = stock_service.get_stock(g.tenant_id, stock_id)
        return jsonify({"stock": stock.to_dict()}), 200

    except LedgerError as e:
        return jsonify(e.to_dict()), e.http_status
    except Exception:
        current_app.logger.exception("Failed to adjust stock")
        return jsonify({"error": "Internal server error"}), 500
