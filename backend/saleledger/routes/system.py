# backend/saleledger/routes/system.py
"""System health endpoint."""

import time
from flask import Blueprint, current_app, jsonify
from sqlalchemy import text

from ..extensions import db
from ..time_utils import utcnow, to_utc_z

system_bp = Blueprint("system", __name__)


def check_database_health() -> dict:
    """
    Check database connectivity.

    Returns dict with status and latency.
    """
    start_time = time.time()
    try:
        db.session.execute(text("SELECT 1"))
        elapsed_ms = (time.time() - start_time) * 1000
        return {"status": "healthy", "latency_ms": round(elapsed_ms, 2)}
    except Exception:
        elapsed_ms = (time.time() - start_time) * 1000
        current_app.logger.exception("Database health check failed")
        return {
            "status": "unhealthy",
            "latency_ms": round(elapsed_ms, 2),
            "error": "Database error"
        }


@system_bp.get("/health")
def health():
    database = check_database_health()
    status = 200 if database["status"] == "healthy" else 503
    return jsonify({
        "status": database["status"],
        "time": to_utc_z(utcnow()),
        "checks": {"database": database},
    }), status
