# Overview: Health check and the per-societe activity journal.

import time

from flask import Blueprint, current_app, request, jsonify, g

from ..decorators import require_auth, require_permission, require_societe
from ..extensions import db
from ..models import Societe, SessionToken, User
from ..services import activity_service
from ..time_utils import parse_iso_datetime, utcnow

system_bp = Blueprint("system", __name__, url_prefix="/api")


def check_database_health() -> dict:
    start_time = time.time()
    try:
        details = {
            "societes": db.session.query(Societe).count(),
            "users": db.session.query(User).count(),
        }
        return {
            "status": "healthy",
            "latency_ms": round((time.time() - start_time) * 1000, 2),
            "details": details,
        }
    except Exception:
        current_app.logger.exception("Database health check failed")
        return {
            "status": "unhealthy",
            "latency_ms": round((time.time() - start_time) * 1000, 2),
            "error": "Database error",
        }


def check_session_service_health() -> dict:
    """Session table reachable; reports sessions waiting for cleanup."""
    start_time = time.time()
    try:
        now = utcnow()
        active = db.session.query(SessionToken).filter_by(is_revoked=False).count()
        expired = db.session.query(SessionToken).filter(
            SessionToken.expires_at < now,
            SessionToken.is_revoked.is_(False),
        ).count()
        return {
            "status": "healthy",
            "latency_ms": round((time.time() - start_time) * 1000, 2),
            "details": {"active_sessions": active, "expired_pending_cleanup": expired},
        }
    except Exception:
        current_app.logger.exception("Session service health check failed")
        return {
            "status": "unhealthy",
            "latency_ms": round((time.time() - start_time) * 1000, 2),
            "error": "Session service error",
        }


@system_bp.get("/health")
def health():
    """
    Returns:
    - 200: all checks healthy
    - 503: at least one check unhealthy
    """
    start_time = time.time()
    checks = {
        "database": check_database_health(),
        "session_service": check_session_service_health(),
    }
    healthy = all(c["status"] == "healthy" for c in checks.values())

    response = {
        "status": "healthy" if healthy else "unhealthy",
        "timestamp": utcnow().isoformat() + "Z",
        "total_latency_ms": round((time.time() - start_time) * 1000, 2),
        "checks": checks,
    }
    return response, 200 if healthy else 503


@system_bp.get("/activities")
@require_auth
@require_societe
@require_permission("voir_rapports")
def list_activities_route():
    """
    Activity journal of the caller's societe, newest first.

    Query parameters: type, since (ISO datetime), limit (1..500, default 100)
    """
    limit = max(1, min(request.args.get("limit", 100, type=int), 500))
    since_raw = request.args.get("since")
    try:
        since = parse_iso_datetime(since_raw) if since_raw else None
    except ValueError:
        return jsonify({"error": "since must be an ISO-8601 datetime"}), 400

    activities = activity_service.list_activities(
        g.identity.societe_id,
        activity_type=request.args.get("type") or None,
        since=since,
        limit=limit,
    )
    return jsonify({"items": [a.to_dict() for a in activities], "count": len(activities)})
