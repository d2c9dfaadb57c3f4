# Overview: Flask API route for the per-societe dashboard.

from flask import Blueprint, request, jsonify, g

from ..decorators import require_auth, require_permission, require_societe
from ..services import dashboard_service
from ..validation import optional_date


dashboard_bp = Blueprint("dashboard", __name__, url_prefix="/api/dashboard")


@dashboard_bp.get("")
@require_auth
@require_societe
@require_permission("voir_dashboard")
def dashboard_route():
    """
    Query parameters:
    - period: jour | semaine | mois | annee | tout (default: mois)
    - date_from, date_to: explicit range, overrides period
    """
    return jsonify(dashboard_service.build_dashboard(
        g.identity,
        period=request.args.get("period", "mois"),
        date_from=optional_date("date_from", request.args.get("date_from")),
        date_to=optional_date("date_to", request.args.get("date_to")),
    ))
