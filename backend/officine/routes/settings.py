# Overview: Flask API routes for per-societe settings (parametres).

from flask import Blueprint, request, jsonify, g

from ..decorators import require_auth, require_permission, require_societe
from ..services import settings_service


settings_bp = Blueprint("settings", __name__, url_prefix="/api/settings")


@settings_bp.get("")
@require_auth
@require_societe
@require_permission("parametres")
def get_settings_route():
    return jsonify(settings_service.get_settings(g.identity).to_dict())


@settings_bp.put("")
@require_auth
@require_societe
@require_permission("parametres")
def update_settings_route():
    """
    Print settings (header_text/entete, footer_text/pied_de_page, stamp,
    rc, ice, if, cnss) and management settings (global_alert_threshold,
    expiry_alert_days, sales_vat_rate, multi_lot_enabled).
    """
    data = request.get_json(silent=True) or {}
    return jsonify(settings_service.update_settings(g.identity, data).to_dict())
