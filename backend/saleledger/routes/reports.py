# Overview: Flask API routes for reports; read-only projections for export renderers.

from flask import Blueprint, request, jsonify, g

from ..errors import LedgerError
from ..services import reporting_service
from ..validation import to_datetime, to_range_end
from ..decorators import require_tenant


reports_bp = Blueprint("reports", __name__, url_prefix="/api/reports")


@reports_bp.get("/dashboard")
@require_tenant
def dashboard_route():
    """Query params: start, end (ISO-8601, default last 30 days)."""
    try:
        report = reporting_service.dashboard_report(
            g.tenant_id,
            start=to_datetime(request.args.get("start"), "start"),
            end=to_range_end(request.args.get("end"), "end"),
        )
        return jsonify(report), 200
    except LedgerError as e:
        return jsonify(e.to_dict()), e.http_status
