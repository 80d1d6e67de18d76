# backend/app/routes/system.py
"""
System health endpoint.

Reports database connectivity and which external integrations are configured.
"""

import time
from flask import Blueprint, current_app, jsonify
from sqlalchemy import text

from ..extensions import db, get_settings

system_bp = Blueprint("system", __name__)


def check_database_health() -> dict:
    """
    Check database connectivity.

    Returns dict with status and details.
    """
    start_time = time.time()
    try:
        db.session.execute(text("SELECT 1"))
        elapsed_ms = (time.time() - start_time) * 1000
        return {"status": "healthy", "latency_ms": round(elapsed_ms, 2)}
    except Exception:
        db.session.rollback()
        elapsed_ms = (time.time() - start_time) * 1000
        current_app.logger.exception("Database health check failed")
        return {
            "status": "unhealthy",
            "latency_ms": round(elapsed_ms, 2),
            "error": "Database connection failed",
        }


@system_bp.get("/health")
def health():
    database = check_database_health()
    settings = get_settings()
    body = {
        "status": "ok" if database["status"] == "healthy" else "unhealthy",
        "database": database,
        "integrations": {
            "stripe": bool(settings.stripe_secret_key and settings.stripe_webhook_secret),
            "sendgrid": bool(settings.sendgrid_api_key),
        },
    }
    return jsonify(body), 200 if database["status"] == "healthy" else 503
