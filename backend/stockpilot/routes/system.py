# backend/stockpilot/routes/system.py
"""
System health endpoint.
"""

import time
from flask import Blueprint, current_app
from ..extensions import db
from ..models import Organization, SessionToken
from stockpilot.time_utils import utcnow

system_bp = Blueprint("system", __name__, url_prefix="/api")


def check_database_health() -> dict:
    """
    Check database connectivity and basic operations.

    Returns dict with status and details.
    """
    start_time = time.time()
    try:
        org_count = db.session.query(Organization).count()
        active_sessions = db.session.query(SessionToken).filter(
            SessionToken.revoked_at.is_(None),
            SessionToken.expires_at > utcnow(),
        ).count()

        elapsed_ms = (time.time() - start_time) * 1000

        return {
            "status": "healthy",
            "latency_ms": round(elapsed_ms, 2),
            "details": {
                "organizations": org_count,
                "active_sessions": active_sessions,
            }
        }
    except Exception:
        elapsed_ms = (time.time() - start_time) * 1000
        current_app.logger.exception("Database health check failed")
        return {
            "status": "unhealthy",
            "latency_ms": round(elapsed_ms, 2),
            "error": "Database error"
        }


def check_assistant_config() -> dict:
    """The assistant degrades (but the API still works) without an API key."""
    if current_app.config.get("GEMINI_API_KEY") or "stockpilot.chat_client" in current_app.extensions:
        return {"status": "healthy"}
    return {"status": "degraded", "warning": "GEMINI_API_KEY is not configured"}


@system_bp.get("/health")
def health():
    """
    Health check endpoint.

    Returns:
    - 200: healthy or degraded
    - 503: database unavailable
    """
    start_time = time.time()

    database_health = check_database_health()
    assistant_health = check_assistant_config()

    all_checks = [database_health, assistant_health]
    if any(check["status"] == "unhealthy" for check in all_checks):
        overall_status = "unhealthy"
        http_status = 503
    elif any(check["status"] == "degraded" for check in all_checks):
        overall_status = "degraded"
        http_status = 200  # Degraded is still operational
    else:
        overall_status = "healthy"
        http_status = 200

    total_elapsed_ms = (time.time() - start_time) * 1000

    response = {
        "status": overall_status,
        "timestamp": utcnow().isoformat() + "Z",
        "total_latency_ms": round(total_elapsed_ms, 2),
        "checks": {
            "database": database_health,
            "assistant": assistant_health,
        }
    }

    return response, http_status
