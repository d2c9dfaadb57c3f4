# Overview: Request and permission decorators for API routes.

from functools import wraps
from flask import request, jsonify, g

from .services import session_service, policy_service
from .services.tenant_service import SocieteRequiredError


def _is_authenticated() -> bool:
    return hasattr(g, "identity") and g.identity.is_authenticated


def _bearer_token() -> str | None:
    auth_header = request.headers.get("Authorization")
    if not auth_header or not auth_header.startswith("Bearer "):
        return None
    return auth_header.split(" ", 1)[1].strip() or None


def require_auth(f):
    """
    Require a valid session and establish the caller identity.

    Sets the following Flask g attributes:
    - g.identity: frozen Identity {role, societe_id, is_owner, ...}
    - g.current_user: the User row
    - g.session_token: the raw bearer token (used by logout)

    Returns 401 on a missing, invalid or expired token, and 403 with the
    block message when the account is inactive, locked or deleted.
    A missing societe is not an error here: see require_societe.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        token = _bearer_token()
        if not token:
            return jsonify({"error": "Authentication required"}), 401

        context = session_service.validate_session(token)
        if not context:
            return jsonify({"error": "Invalid or expired token"}), 401

        identity = context.identity
        message = policy_service.block_message(identity.is_active, identity.is_locked, identity.is_deleted)
        if message:
            session_service.revoke_session(token, reason="Account blocked")
            policy_service.log_security_event(
                user_id=identity.user_id,
                event_type="ACCOUNT_BLOCKED",
                success=False,
                action=request.method,
                reason=message,
                societe_id=identity.societe_id,
            )
            return jsonify({"error": "Account blocked", "message": message}), 403

        g.identity = identity
        g.current_user = context.user
        g.session_token = token

        return f(*args, **kwargs)

    return decorated_function


def require_societe(f):
    """Answer 409 {"next": "/societe"} for users that have no societe yet."""
    @wraps(f)
    def decorated_function(*args, **kwargs):
        if not _is_authenticated():
            return jsonify({"error": "Authentication required"}), 401
        if g.identity.societe_id is None:
            return jsonify({
                "error": "Societe required",
                "message": str(SocieteRequiredError()),
                "next": SocieteRequiredError.next_path,
            }), 409
        return f(*args, **kwargs)
    return decorated_function


def require_permission(permission_code: str):
    """
    Require a specific permission tag.

    The denial is logged to security_events with the caller's societe.
    Services check the same tag again before writing.
    """
    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            if not _is_authenticated():
                return jsonify({"error": "Authentication required"}), 401

            try:
                policy_service.require(g.identity, permission_code, resource=request.path)
            except policy_service.PermissionDeniedError as e:
                return jsonify({
                    "error": "Permission denied",
                    "required_permission": permission_code,
                    "message": str(e),
                }), 403

            return f(*args, **kwargs)

        return decorated_function
    return decorator
