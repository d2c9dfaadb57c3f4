# Overview: Single authorization policy module; pure predicates plus raising guards.

"""
Permission Evaluation and Security Event Logging

Two layers call into this module:
- routes, declaratively, through @require_permission(tag)
- services, before any write, through require() / require_user_management()

DESIGN PRINCIPLES:
- Fail closed: unknown role, unknown tag, missing identity -> deny
- Log denials only: grants are not logged
- Owner protection: nobody modifies the owner, nobody modifies themselves
"""

from flask import has_request_context, request

from ..extensions import db
from ..models import SecurityEvent
from ..permissions import DEFAULT_ROLE_PERMISSIONS, OWNER_ONLY_PERMISSIONS, ROLES, is_known_tag
from ..time_utils import utcnow
from ..validation import ValidationError


DENIED_MESSAGE = "Action refusée : permissions insuffisantes."

BLOCK_MESSAGE_DELETED = "Ce compte a été supprimé par l'administrateur."
BLOCK_MESSAGE_INACTIVE = "Votre compte a été désactivé par l'administrateur."
BLOCK_MESSAGE_LOCKED = "Votre compte a été verrouillé par l'administrateur."


class PermissionDeniedError(Exception):
    """Raised when the caller lacks a permission or hits an owner-protection rule."""

    def __init__(self, message: str = DENIED_MESSAGE, *, permission: str | None = None):
        super().__init__(message)
        self.permission = permission


def log_security_event(
    user_id: int | None,
    event_type: str,
    success: bool,
    resource: str | None = None,
    action: str | None = None,
    reason: str | None = None,
    ip_address: str | None = None,
    user_agent: str | None = None,
    societe_id: int | None = None,
) -> SecurityEvent:
    """
    Append a security event with tenant context.

    event_type examples:
    - PERMISSION_DENIED
    - OWNER_PROTECTION_DENIED
    - LOGIN_FAILED
    - ACCOUNT_BLOCKED
    - CROSS_TENANT_ACCESS_DENIED

    Commits immediately: callers raise right after, and the event must
    survive the rollback of the refused request.
    """
    if has_request_context():
        resource = resource or request.path
        ip_address = ip_address or request.remote_addr
        user_agent = user_agent or request.headers.get("User-Agent")

    event = SecurityEvent(
        user_id=user_id,
        societe_id=societe_id,
        event_type=event_type,
        resource=resource,
        action=action,
        success=success,
        reason=reason,
        ip_address=ip_address,
        user_agent=(user_agent or "")[:512] or None,
        occurred_at=utcnow(),
    )

    db.session.add(event)
    db.session.commit()

    return event


# -- Pure predicates --

def is_grantable(tag: str) -> bool:
    """Tags the owner may add to a member: known and not owner-only."""
    return is_known_tag(tag) and tag not in OWNER_ONLY_PERMISSIONS


def clean_custom_permissions(tags) -> list[str]:
    """Validate an owner-supplied tag list; returns it sorted and deduplicated."""
    if not isinstance(tags, (list, tuple)):
        raise ValidationError("permissions must be a list")
    for tag in tags:
        if not isinstance(tag, str) or not is_grantable(tag):
            raise ValidationError(f"Permission not grantable: {tag}")
    return sorted(set(tags))


def permissions_for(role: str | None, is_owner: bool = False, custom=()) -> set[str]:
    """
    Effective permission tags: role defaults, plus the owner-only tags for
    the owner, plus grantable custom tags. Unknown role -> nothing.
    """
    if role not in ROLES:
        return set()
    perms = set(DEFAULT_ROLE_PERMISSIONS[role])
    if is_owner:
        perms |= OWNER_ONLY_PERMISSIONS
    perms |= {tag for tag in custom or () if is_grantable(tag)}
    return perms


def can(role: str | None, tag: str, is_owner: bool = False, custom=()) -> bool:
    """Declarative table lookup. Unknown role or unknown tag -> False."""
    if not is_known_tag(tag):
        return False
    return tag in permissions_for(role, is_owner, custom)


def can_manage_users(role: str | None, is_owner: bool) -> bool:
    """User management is reserved to the owner, whatever the role tag."""
    return is_owner is True


def can_modify_user(
    acting_is_owner: bool,
    acting_user_id: int | None,
    target_user_id: int | None,
    target_is_owner: bool,
) -> bool:
    """Lock/unlock/delete guard."""
    if acting_is_owner is not True:
        return False
    if target_is_owner:
        return False
    if acting_user_id is None or target_user_id == acting_user_id:
        return False
    return True


def can_change_user_role(
    acting_is_owner: bool,
    acting_user_id: int | None,
    target_user_id: int | None,
    target_is_owner: bool,
    new_role: str | None = None,
) -> bool:
    """Same denials as can_modify_user; new_role (when given) must be a known role."""
    if not can_modify_user(acting_is_owner, acting_user_id, target_user_id, target_is_owner):
        return False
    if new_role is not None and new_role not in ROLES:
        return False
    return True


def can_access_app(role: str | None, active: bool, locked: bool, deleted: bool) -> bool:
    return bool(active) and not locked and not deleted


def block_message(active: bool, locked: bool, deleted: bool) -> str | None:
    """User-visible reason an account cannot use the application, or None."""
    if deleted:
        return BLOCK_MESSAGE_DELETED
    if locked:
        return BLOCK_MESSAGE_LOCKED
    if not active:
        return BLOCK_MESSAGE_INACTIVE
    return None


# -- Raising guards (service layer) --

def require(identity, tag: str, *, resource: str | None = None) -> None:
    """
    Require identity to hold tag, raise PermissionDeniedError if not.

    Denials are logged to security_events with tenant context.
    """
    if (
        identity is not None
        and identity.is_authenticated
        and can_access_app(identity.role, identity.is_active, identity.is_locked, identity.is_deleted)
        and can(identity.role, tag, identity.is_owner, identity.custom_permissions)
    ):
        return

    log_security_event(
        user_id=getattr(identity, "user_id", None),
        event_type="PERMISSION_DENIED",
        success=False,
        resource=resource,
        action=tag,
        reason=f"Missing permission: {tag}",
        societe_id=getattr(identity, "societe_id", None),
    )
    raise PermissionDeniedError(permission=tag)


def require_user_management(identity, target, *, action: str, new_role: str | None = None) -> None:
    """
    Guard for role change, lock/unlock and soft delete of target (a User).

    Denies: non-owner actor, owner target, self target, unknown new role.
    """
    if new_role is not None or action == "CHANGE_ROLE":
        allowed = can_change_user_role(
            identity.is_owner, identity.user_id, target.id, bool(target.is_owner), new_role
        )
    else:
        allowed = can_modify_user(identity.is_owner, identity.user_id, target.id, bool(target.is_owner))

    if allowed:
        return

    if not identity.is_owner:
        reason = "Only the owner can manage users"
    elif target.is_owner:
        reason = "The owner account cannot be modified"
    elif target.id == identity.user_id:
        reason = "Users cannot modify their own account"
    else:
        reason = f"Invalid role: {new_role}"

    log_security_event(
        user_id=identity.user_id,
        event_type="OWNER_PROTECTION_DENIED",
        success=False,
        action=action,
        reason=f"{reason} (target user {target.id})",
        societe_id=identity.societe_id,
    )
    raise PermissionDeniedError(reason)
