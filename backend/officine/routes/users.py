# Overview: Flask API routes for owner-only user management.

"""
User Routes

SECURITY: owner only (gerer_utilisateurs). The owner account and the
caller's own account cannot be modified; locking, deactivating or
deleting a user revokes its sessions. Extra tags set through
/permissions add to the role defaults and never include owner-only tags.
"""

from flask import Blueprint, request, jsonify, g

from ..decorators import require_auth, require_permission, require_societe
from ..services import user_service


users_bp = Blueprint("users", __name__, url_prefix="/api/users")


@users_bp.get("")
@require_auth
@require_societe
@require_permission("gerer_utilisateurs")
def list_users_route():
    include_deleted = request.args.get("include_deleted", "false").lower() == "true"
    users = user_service.list_users(g.identity, include_deleted=include_deleted)
    return jsonify({"items": [u.to_dict() for u in users], "count": len(users)})


@users_bp.put("/<int:user_id>/role")
@require_auth
@require_societe
@require_permission("gerer_utilisateurs")
def change_role_route(user_id: int):
    data = request.get_json(silent=True) or {}
    user = user_service.change_role(g.identity, user_id, data.get("role"))
    return jsonify(user.to_dict())


@users_bp.post("/<int:user_id>/lock")
@require_auth
@require_societe
@require_permission("gerer_utilisateurs")
def lock_user_route(user_id: int):
    return jsonify(user_service.set_locked(g.identity, user_id, True).to_dict())


@users_bp.post("/<int:user_id>/unlock")
@require_auth
@require_societe
@require_permission("gerer_utilisateurs")
def unlock_user_route(user_id: int):
    return jsonify(user_service.set_locked(g.identity, user_id, False).to_dict())


@users_bp.post("/<int:user_id>/activate")
@require_auth
@require_societe
@require_permission("gerer_utilisateurs")
def activate_user_route(user_id: int):
    return jsonify(user_service.set_active(g.identity, user_id, True).to_dict())


@users_bp.post("/<int:user_id>/deactivate")
@require_auth
@require_societe
@require_permission("gerer_utilisateurs")
def deactivate_user_route(user_id: int):
    return jsonify(user_service.set_active(g.identity, user_id, False).to_dict())


@users_bp.delete("/<int:user_id>")
@require_auth
@require_societe
@require_permission("gerer_utilisateurs")
def delete_user_route(user_id: int):
    user = user_service.soft_delete(g.identity, user_id)
    return jsonify(user.to_dict())


@users_bp.put("/<int:user_id>/permissions")
@require_auth
@require_societe
@require_permission("gerer_utilisateurs")
def set_permissions_route(user_id: int):
    """Body: {"permissions": [tag, ...]}, replacing the member's extra tags."""
    data = request.get_json(silent=True) or {}
    user = user_service.set_custom_permissions(g.identity, user_id, data.get("permissions"))
    return jsonify(user.to_dict())
