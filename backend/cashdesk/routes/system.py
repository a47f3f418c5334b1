"""
System health and state cache endpoints.
"""

import time
from flask import Blueprint, current_app, jsonify, g
from sqlalchemy.exc import SQLAlchemyError

from ..decorators import get_terminal, require_admin, require_auth
from ..extensions import db
from ..models import StateBlob
from ..services.state_service import StateError, StateStore

system_bp = Blueprint("system", __name__)


def check_database_health() -> dict:
    """Check database connectivity by counting cached state blobs."""
    start_time = time.time()
    try:
        blob_count = db.session.query(StateBlob).count()
        elapsed_ms = (time.time() - start_time) * 1000
        return {
            "status": "healthy",
            "latency_ms": round(elapsed_ms, 2),
            "details": {"state_blobs": blob_count},
        }
    except SQLAlchemyError:
        elapsed_ms = (time.time() - start_time) * 1000
        current_app.logger.exception("Database health check failed")
        return {
            "status": "unhealthy",
            "latency_ms": round(elapsed_ms, 2),
            "error": "Database error",
        }


@system_bp.get("/health")
def health():
    database = check_database_health()
    terminal = get_terminal()
    healthy = database["status"] == "healthy"
    return jsonify({
        "status": "healthy" if healthy else "unhealthy",
        "terminal_id": terminal.terminal_id,
        "checks": {"database": database},
    }), (200 if healthy else 503)


@system_bp.get("/api/system/state")
@require_auth
@require_admin
def describe_state():
    return jsonify({"blobs": StateStore().describe()}), 200


@system_bp.post("/api/system/state/save")
@require_auth
@require_admin
def save_state():
    g.terminal.save()
    return jsonify({"blobs": StateStore().describe()}), 200


@system_bp.post("/api/system/state/reload")
@require_auth
@require_admin
def reload_state():
    try:
        loaded = g.terminal.load()
    except StateError as e:
        return jsonify({"error": str(e), "details": e.details}), 500
    return jsonify({"loaded": loaded}), 200
