# Overview: Flask API routes for creating, joining and administering a societe.

"""
Societe Routes

- POST /api/societe: create a societe for a user that has none
- POST /api/societe/join: join with the 6-character societe code (as vendeuse)
- POST /api/societe/accept-invitation: redeem an invitation from an existing account
- GET/PUT /api/societe: identity of the societe (gerer_societe)
- POST /api/societe/join-code: regenerate the join code (owner)
"""

from flask import Blueprint, request, jsonify, g

from ..decorators import require_auth, require_permission, require_societe
from ..services import invitation_service, settings_service, societe_service


societe_bp = Blueprint("societe", __name__, url_prefix="/api/societe")


@societe_bp.post("")
@require_auth
def create_societe_route():
    data = request.get_json(silent=True) or {}
    societe = societe_service.create_societe(
        g.current_user,
        name=data.get("name"),
        address=data.get("address"),
        phone=data.get("phone"),
        email=data.get("email") or g.current_user.email,
    )
    return jsonify(societe.to_dict()), 201


@societe_bp.post("/join")
@require_auth
def join_societe_route():
    data = request.get_json(silent=True) or {}
    societe = societe_service.join_by_code(g.current_user, data.get("code"))
    return jsonify({"id": societe.id, "name": societe.name, "role": g.current_user.role}), 200


@societe_bp.post("/accept-invitation")
@require_auth
def accept_invitation_route():
    data = request.get_json(silent=True) or {}
    invitation = invitation_service.accept_invitation(g.current_user, data.get("code"))
    return jsonify({"societe_id": invitation.societe_id, "role": invitation.role}), 200


@societe_bp.get("")
@require_auth
@require_societe
@require_permission("gerer_societe")
def get_societe_route():
    return jsonify(settings_service.get_societe_info(g.identity).to_dict()), 200


@societe_bp.put("")
@require_auth
@require_societe
@require_permission("gerer_societe")
def update_societe_route():
    data = request.get_json(silent=True) or {}
    return jsonify(settings_service.update_societe_info(g.identity, data).to_dict()), 200


@societe_bp.post("/join-code")
@require_auth
@require_societe
@require_permission("gerer_societe")
def regenerate_join_code_route():
    societe = societe_service.regenerate_join_code(g.identity)
    return jsonify({"invitation_code": societe.invitation_code}), 200
