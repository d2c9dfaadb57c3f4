# Overview: Owner-only user management within a societe.

from __future__ import annotations

from flask import current_app

from ..extensions import db
from ..models import User
from ..time_utils import utcnow
from ..validation import ValidationError
from .activity_service import record_activity
from .policy_service import clean_custom_permissions, require, require_user_management
from .session_service import Identity, revoke_all_user_sessions
from .societe_service import list_members
from .tenant_service import get_scoped_or_404


def list_users(identity: Identity, *, include_deleted: bool = False) -> list[User]:
    require(identity, "gerer_utilisateurs")
    return list_members(identity.societe_id, include_deleted=include_deleted)


def _load_target(identity: Identity, user_id: int) -> User:
    # Permission first: a vendeuse probing ids gets 403, not 404
    require(identity, "gerer_utilisateurs")
    return get_scoped_or_404(User, user_id, identity.societe_id, user_id=identity.user_id)


def change_role(identity: Identity, user_id: int, new_role: str | None) -> User:
    target = _load_target(identity, user_id)
    new_role = (new_role or "").strip() or None
    if new_role is None:
        raise ValidationError("role is required")

    require_user_management(identity, target, action="CHANGE_ROLE", new_role=new_role)

    old_role = target.role
    target.role = new_role
    record_activity(
        identity,
        activity_type="utilisateur",
        action="changement_role",
        entity_id=target.id,
        details={"email": target.email, "from": old_role, "to": new_role},
    )
    db.session.commit()
    return target


def set_custom_permissions(identity: Identity, user_id: int, tags) -> User:
    """
    Replace the extra tags a member holds on top of the role defaults.

    Owner-only tags cannot be granted. Takes effect on the member's next
    request, since the identity is resolved from the user row each time.
    """
    target = _load_target(identity, user_id)
    require_user_management(identity, target, action="SET_PERMISSIONS")
    cleaned = clean_custom_permissions(tags)

    previous = sorted(target.custom_permissions or [])
    target.custom_permissions = cleaned
    record_activity(
        identity,
        activity_type="utilisateur",
        action="permissions",
        entity_id=target.id,
        details={"email": target.email, "from": previous, "to": cleaned},
    )
    db.session.commit()
    return target


def set_locked(identity: Identity, user_id: int, locked: bool) -> User:
    """Lock (revoking every session) or unlock a member."""
    target = _load_target(identity, user_id)
    require_user_management(identity, target, action="LOCK" if locked else "UNLOCK")

    target.is_locked = bool(locked)
    if locked:
        target.locked_at = utcnow()
        target.locked_by_user_id = identity.user_id
        revoke_all_user_sessions(target.id, reason="Account locked", commit=False)
    else:
        target.locked_at = None
        target.locked_by_user_id = None

    record_activity(
        identity,
        activity_type="utilisateur",
        action="verrouillage" if locked else "deverrouillage",
        entity_id=target.id,
        details={"email": target.email},
    )
    db.session.commit()
    current_app.logger.info("User %s %s by %s", target.id, "locked" if locked else "unlocked", identity.user_id)
    return target


def set_active(identity: Identity, user_id: int, active: bool) -> User:
    target = _load_target(identity, user_id)
    require_user_management(identity, target, action="ACTIVATE" if active else "DEACTIVATE")

    target.is_active = bool(active)
    if not active:
        revoke_all_user_sessions(target.id, reason="Account deactivated", commit=False)

    record_activity(
        identity,
        activity_type="utilisateur",
        action="activation" if active else "desactivation",
        entity_id=target.id,
        details={"email": target.email},
    )
    db.session.commit()
    return target


def soft_delete(identity: Identity, user_id: int) -> User:
    """Users are never hard-deleted; deleted accounts can no longer log in."""
    target = _load_target(identity, user_id)
    require_user_management(identity, target, action="DELETE")

    target.is_deleted = True
    target.deleted_at = utcnow()
    target.deleted_by_user_id = identity.user_id
    revoke_all_user_sessions(target.id, reason="Account deleted", commit=False)

    record_activity(
        identity,
        activity_type="utilisateur",
        action="suppression",
        entity_id=target.id,
        details={"email": target.email},
    )
    db.session.commit()
    current_app.logger.info("User %s soft-deleted by %s", target.id, identity.user_id)
    return target
