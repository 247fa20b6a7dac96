# Overview: Request decorators for API routes.

from functools import wraps
from flask import current_app, request, jsonify, g

from .extensions import db
from .models import Tenant


def require_tenant(f):
    """
    Establish tenant context for the request.

    The identity provider in front of this service verifies the caller and
    forwards the tenant id in the TENANT_HEADER header (X-Tenant-Id by
    default). The value is trusted as-is, only checked to be a known,
    active tenant.

    MULTI-TENANT: Sets g.tenant_id, which every route passes as the first
    argument to the service layer.

    Returns 401 if the header is missing or malformed, 403 if the tenant is
    unknown or deactivated.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        header = current_app.config.get("TENANT_HEADER", "X-Tenant-Id")
        raw = request.headers.get(header, "").strip()

        if not raw:
            return jsonify({"error": "Tenant context required"}), 401

        if not raw.isdigit():
            return jsonify({"error": "Invalid tenant id"}), 401

        tenant = db.session.query(Tenant).filter_by(id=int(raw)).first()
        if tenant is None or not tenant.is_active:
            current_app.logger.warning("Rejected request for unknown or inactive tenant %s", raw)
            return jsonify({"error": "Tenant not active"}), 403

        g.tenant_id = tenant.id

        return f(*args, **kwargs)

    return decorated_function
