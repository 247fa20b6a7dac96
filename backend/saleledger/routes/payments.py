# Overview: Flask API routes for payments operations; parses input and returns JSON responses.

# backend/saleledger/routes/payments.py
"""
Payment API Routes

DESIGN:
- Record income/expense entries, optionally linked to a sale
- Updating or deleting a linked payment recomputes the sale's payment status
- Listings filter by type and inclusive date range
"""

from flask import Blueprint, request, jsonify, g, current_app

from ..errors import LedgerError
from ..models.sales import PAYMENT_TYPES
from ..services import payment_service
from ..validation import PaymentRequest, to_choice, to_datetime, to_range_end
from ..decorators import require_tenant


payments_bp = Blueprint("payments", __name__, url_prefix="/api/payments")


# =============================================================================
# PAYMENT CREATION / UPDATE / DELETION
# =============================================================================

@payments_bp.post("")
@require_tenant
def create_payment_route():
    """
    Record a payment.

    Request body:
    {
        "payment_type": "Income",
        "payment_method": "Cash",
        "amount": "600.00",
        "payment_date": "2025-06-02",  (optional)
        "customer_name": "Acme",
        "sale_id": 12,  (optional)
        "check_number": "...", "check_date": "...", "bank_name": "...",
        "reference_number": "...", "notes": "..."  (optional)
    }
    """
    try:
        payment_request = PaymentRequest.from_dict(request.get_json(silent=True) or {})
        payment = payment_service.create_payment(g.tenant_id, payment_request)
        return jsonify({"payment": payment.to_dict()}), 201

    except LedgerError as e:
        return jsonify(e.to_dict()), e.http_status
    except Exception:
        current_app.logger.exception("Failed to create payment")
        return jsonify({"error": "Internal server error"}), 500


@payments_bp.put("/<int:payment_id>")
@require_tenant
def update_payment_route(payment_id: int):
    """
    Replace a payment. Same body as POST.

    Returns:
        200: Updated payment
        400: Invalid input
        404: Payment or linked sale not found
    """
    try:
        payment_request = PaymentRequest.from_dict(request.get_json(silent=True) or {})
        payment = payment_service.update_payment(g.tenant_id, payment_id, payment_request)
        if payment is None:
            return jsonify({"error": "Payment not found"}), 404
        return jsonify({"payment": payment.to_dict()}), 200

    except LedgerError as e:
        return jsonify(e.to_dict()), e.http_status
    except Exception:
        current_app.logger.exception("Failed to update payment")
        return jsonify({"error": "Internal server error"}), 500


@payments_bp.delete("/<int:payment_id>")
@require_tenant
def delete_payment_route(payment_id: int):
    try:
        if not payment_service.delete_payment(g.tenant_id, payment_id):
            return jsonify({"error": "Payment not found"}), 404
        return jsonify({"deleted": True}), 200

    except Exception:
        current_app.logger.exception("Failed to delete payment")
        return jsonify({"error": "Internal server error"}), 500


# =============================================================================
# PAYMENT QUERIES
# =============================================================================

@payments_bp.get("")
@require_tenant
def list_payments_route():
    """
    Query params: type (Income|Expense), start, end, page, page_size
    """
    try:
        raw_type = request.args.get("type")
        result = payment_service.get_payments(
            g.tenant_id,
            payment_type=to_choice(raw_type, "type", PAYMENT_TYPES) if raw_type else None,
            start=to_datetime(request.args.get("start"), "start"),
            end=to_range_end(request.args.get("end"), "end"),
            page=request.args.get("page", 1, type=int),
            page_size=request.args.get("page_size", type=int),
        )
        return jsonify({**result, "items": [p.to_dict() for p in result["items"]]}), 200

    except LedgerError as e:
        return jsonify(e.to_dict()), e.http_status


@payments_bp.get("/<int:payment_id>")
@require_tenant
def get_payment_route(payment_id: int):
    payment = payment_service.get_payment(g.tenant_id, payment_id)
    if not payment:
        return jsonify({"error": "Payment not found"}), 404
    return jsonify({"payment": payment.to_dict()}), 200


@payments_bp.get("/sales/<int:sale_id>")
@require_tenant
def get_sale_payments_route(sale_id: int):
    payments = payment_service.get_payments_by_sale(g.tenant_id, sale_id)
    return jsonify({
        "sale_id": sale_id,
        "items": [p.to_dict() for p in payments],
        "count": len(payments),
    }), 200


@payments_bp.get("/type/<string:payment_type>")
@require_tenant
def get_payments_by_type_route(payment_type: str):
    try:
        payments = payment_service.get_payments_by_type(
            g.tenant_id,
            to_choice(payment_type, "payment_type", PAYMENT_TYPES),
            start=to_datetime(request.args.get("start"), "start"),
            end=to_range_end(request.args.get("end"), "end"),
        )
        return jsonify({"items": [p.to_dict() for p in payments], "count": len(payments)}), 200

    except LedgerError as e:
        return jsonify(e.to_dict()), e.http_status
