# Overview: Flask API routes for registration, login and the resolved identity.

"""
Authentication API routes

- Registration (plain, with an invitation code, or with a new societe)
- Login returns a bearer token; logout revokes it
- /me returns the resolved identity and its effective permissions
- Public invitation lookup for the registration screen
"""

from flask import Blueprint, request, jsonify, g

from ..decorators import require_auth
from ..permissions import OWNER_ONLY_PERMISSIONS, ROLES, catalogue
from ..services import auth_service, invitation_service, policy_service, session_service


auth_bp = Blueprint("auth", __name__, url_prefix="/api/auth")


def _session_payload(user, token: str) -> dict:
    identity = session_service.Identity.from_user(user)
    return {
        "user": user.to_dict(),
        "identity": identity.to_dict(),
        "permissions": sorted(
            policy_service.permissions_for(identity.role, identity.is_owner, identity.custom_permissions)
        ),
        "token": token,
    }


def _open_session(user) -> str:
    _, token = session_service.create_session(
        user_id=user.id,
        user_agent=request.headers.get("User-Agent"),
        ip_address=request.remote_addr,
    )
    return token


@auth_bp.post("/register")
def register_route():
    """
    Register with email + password (+ confirmation).

    With invitation_code the account joins the inviting societe with the
    invited role; without it the account awaits a societe.
    """
    data = request.get_json(silent=True) or {}

    user = auth_service.register(
        data.get("email"),
        data.get("password"),
        confirmation=data.get("confirmation"),
        display_name=data.get("display_name"),
        invitation_code=data.get("invitation_code") or None,
    )
    return jsonify(_session_payload(user, _open_session(user))), 201


@auth_bp.post("/register-societe")
def register_societe_route():
    """Register and create a new societe; the user becomes owner and docteur."""
    data = request.get_json(silent=True) or {}

    user = auth_service.register_with_societe(
        data.get("email"),
        data.get("password"),
        societe_name=data.get("societe_name") or data.get("name"),
        confirmation=data.get("confirmation"),
        display_name=data.get("display_name"),
        address=data.get("address"),
        phone=data.get("phone"),
    )
    return jsonify(_session_payload(user, _open_session(user))), 201


@auth_bp.post("/login")
def login_route():
    """
    Authenticate user and create session token.

    Token must be included in Authorization header for protected routes.
    Bad credentials -> 401, blocked account -> 403 with its block message.
    """
    data = request.get_json(silent=True) or {}
    email = data.get("email")
    password = data.get("password")

    if not email or not password:
        return jsonify({"error": "email and password required"}), 400

    user, token = auth_service.login(
        email,
        password,
        user_agent=request.headers.get("User-Agent"),
        ip_address=request.remote_addr,
    )
    payload = _session_payload(user, token)
    payload["message"] = "Login successful"
    return jsonify(payload), 200


@auth_bp.post("/logout")
@require_auth
def logout_route():
    session_service.revoke_session(g.session_token, reason="User logout")
    return jsonify({"message": "Logged out"}), 200


@auth_bp.get("/me")
@require_auth
def me_route():
    identity = g.identity
    societe = g.current_user.societe
    return jsonify({
        "user": g.current_user.to_dict(),
        "identity": identity.to_dict(),
        "permissions": sorted(
            policy_service.permissions_for(identity.role, identity.is_owner, identity.custom_permissions)
        ),
        "societe": {"id": societe.id, "name": societe.name} if societe else None,
        "awaiting_societe": identity.awaiting_societe,
    }), 200


@auth_bp.get("/invitations/<code>")
def lookup_invitation_route(code: str):
    """Public: what an invitation code grants (400 when not redeemable)."""
    invitation = invitation_service.lookup_invitation(code)
    return jsonify(invitation_service.public_view(invitation)), 200


@auth_bp.get("/permissions")
@require_auth
def permission_catalog_route():
    """Permission tags grouped by category, with the roles granting each."""
    catalog = catalogue(lambda code: [role for role in ROLES if policy_service.can(role, code)])
    for entries in catalog.values():
        for entry in entries:
            entry["owner_only"] = entry["code"] in OWNER_ONLY_PERMISSIONS
    return jsonify({"categories": catalog}), 200
