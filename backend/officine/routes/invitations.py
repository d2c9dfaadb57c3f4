# Overview: Flask API routes for invitation management inside a societe.

from flask import Blueprint, request, jsonify, g

from ..decorators import require_auth, require_permission, require_societe
from ..services import invitation_service


invitations_bp = Blueprint("invitations", __name__, url_prefix="/api/invitations")


@invitations_bp.get("")
@require_auth
@require_societe
@require_permission("voir_invitations")
def list_invitations_route():
    invitations = invitation_service.list_invitations(g.identity, status=request.args.get("status") or None)
    return jsonify({"items": [invitation_service.serialize(i) for i in invitations], "count": len(invitations)})


@invitations_bp.post("")
@require_auth
@require_societe
@require_permission("gerer_invitations")
def issue_invitation_route():
    """
    Request body:
    {
        "role": "vendeuse",        // optional, default vendeuse
        "email": "a@b.ma",         // optional, restricts redemption
        "note": "..."              // optional
    }
    """
    data = request.get_json(silent=True) or {}
    invitation = invitation_service.issue_invitation(
        g.identity,
        role=data.get("role"),
        email=data.get("email"),
        note=data.get("note"),
    )
    return jsonify(invitation_service.serialize(invitation)), 201


@invitations_bp.post("/<int:invitation_id>/cancel")
@require_auth
@require_societe
@require_permission("gerer_invitations")
def cancel_invitation_route(invitation_id: int):
    invitation = invitation_service.cancel_invitation(g.identity, invitation_id)
    return jsonify(invitation_service.serialize(invitation))


@invitations_bp.post("/<int:invitation_id>/renew")
@require_auth
@require_societe
@require_permission("gerer_invitations")
def renew_invitation_route(invitation_id: int):
    invitation = invitation_service.renew_invitation(g.identity, invitation_id)
    return jsonify(invitation_service.serialize(invitation))


@invitations_bp.delete("/<int:invitation_id>")
@require_auth
@require_societe
@require_permission("gerer_invitations")
def delete_invitation_route(invitation_id: int):
    invitation_service.delete_invitation(g.identity, invitation_id)
    return jsonify({"message": "Invitation supprimée"})
