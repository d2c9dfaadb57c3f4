# Overview: Invitations to join a societe; issue, manage, look up and redeem.

from __future__ import annotations

from datetime import timedelta

from flask import current_app

from ..extensions import db
from ..models import Invitation, User
from ..permissions import ROLES, ROLE_VENDEUSE
from ..time_utils import utcnow
from ..validation import ConflictError, ValidationError
from .activity_service import record_activity
from .policy_service import require
from .session_service import Identity
from .societe_service import generate_unique_code
from .tenant_service import get_scoped_or_404, scoped_query


INVITATION_CODE_LENGTH = 8

STATUS_PENDING = "pending"
STATUS_USED = "used"
STATUS_CANCELLED = "cancelled"


class InvitationInvalidError(ValidationError):
    """Code unknown, used, cancelled or expired."""


def _require_manage(identity: Identity) -> None:
    # The owner manages invitations whatever the role tag
    if identity.is_owner and identity.societe_id is not None:
        return
    require(identity, "gerer_invitations")


def _ttl() -> timedelta:
    return timedelta(days=current_app.config.get("INVITATION_TTL_DAYS", 7))


def normalize_email(email: str | None) -> str | None:
    email = (email or "").strip().lower()
    return email or None


def _code_taken(code: str) -> bool:
    return db.session.query(Invitation.id).filter_by(code=code).first() is not None


def generate_invitation_code(*, code_factory=None) -> str:
    return generate_unique_code(INVITATION_CODE_LENGTH, _code_taken, code_factory=code_factory)


def is_redeemable(invitation: Invitation, now=None) -> bool:
    now = now or utcnow()
    return invitation.status == STATUS_PENDING and now < invitation.expires_at


def serialize(invitation: Invitation) -> dict:
    data = invitation.to_dict()
    data["is_expired"] = invitation.status == STATUS_PENDING and utcnow() >= invitation.expires_at
    return data


def issue_invitation(
    identity: Identity,
    *,
    role: str | None = None,
    email: str | None = None,
    note: str | None = None,
    code_factory=None,
) -> Invitation:
    """
    Create a pending invitation valid INVITATION_TTL_DAYS days.

    Rejects a second pending, unexpired invitation for the same email.
    """
    _require_manage(identity)

    role = (role or ROLE_VENDEUSE).strip()
    if role not in ROLES:
        raise ValidationError(f"role must be one of: {', '.join(ROLES)}")

    email = normalize_email(email)
    now = utcnow()

    if email:
        if "@" not in email:
            raise ValidationError("Adresse email invalide")
        existing = scoped_query(Invitation, identity.societe_id).filter(
            Invitation.email == email,
            Invitation.status == STATUS_PENDING,
            Invitation.expires_at > now,
        ).first()
        if existing is not None:
            raise ConflictError("Une invitation en attente existe déjà pour cet email")

    invitation = Invitation(
        societe_id=identity.societe_id,
        code=generate_invitation_code(code_factory=code_factory),
        role=role,
        email=email,
        note=(note or "").strip() or None,
        status=STATUS_PENDING,
        expires_at=now + _ttl(),
        created_by_user_id=identity.user_id,
    )
    db.session.add(invitation)
    db.session.flush()

    record_activity(
        identity,
        activity_type="invitation",
        action="creation",
        entity_id=invitation.id,
        details={"role": role, "email": email},
    )
    db.session.commit()
    return invitation


def list_invitations(identity: Identity, *, status: str | None = None) -> list[Invitation]:
    if not identity.is_owner:
        require(identity, "voir_invitations")
    q = scoped_query(Invitation, identity.societe_id)
    if status:
        q = q.filter(Invitation.status == status)
    return q.order_by(Invitation.created_at.desc(), Invitation.id.desc()).all()


def cancel_invitation(identity: Identity, invitation_id: int) -> Invitation:
    _require_manage(identity)
    invitation = get_scoped_or_404(Invitation, invitation_id, identity.societe_id, user_id=identity.user_id)
    if invitation.status != STATUS_PENDING:
        raise ConflictError("Only pending invitations can be cancelled")

    invitation.status = STATUS_CANCELLED
    record_activity(identity, activity_type="invitation", action="annulation", entity_id=invitation.id)
    db.session.commit()
    return invitation


def renew_invitation(identity: Identity, invitation_id: int, *, code_factory=None) -> Invitation:
    """New code and new expiry; back to pending. Used invitations stay used."""
    _require_manage(identity)
    invitation = get_scoped_or_404(Invitation, invitation_id, identity.societe_id, user_id=identity.user_id)
    if invitation.status == STATUS_USED:
        raise ConflictError("A used invitation cannot be renewed")

    invitation.code = generate_invitation_code(code_factory=code_factory)
    invitation.expires_at = utcnow() + _ttl()
    invitation.status = STATUS_PENDING
    record_activity(identity, activity_type="invitation", action="renouvellement", entity_id=invitation.id)
    db.session.commit()
    return invitation


def delete_invitation(identity: Identity, invitation_id: int) -> None:
    _require_manage(identity)
    invitation = get_scoped_or_404(Invitation, invitation_id, identity.societe_id, user_id=identity.user_id)
    record_activity(
        identity,
        activity_type="invitation",
        action="suppression",
        entity_id=invitation.id,
        details={"code": invitation.code, "status": invitation.status},
    )
    db.session.delete(invitation)
    db.session.commit()


def lookup_invitation(code: str | None) -> Invitation:
    """
    Public lookup used by the registration screen.

    Raises InvitationInvalidError unless pending and unexpired.
    """
    code = (code or "").strip().upper()
    if not code:
        raise InvitationInvalidError("Code d'invitation manquant")
    invitation = db.session.query(Invitation).filter_by(code=code).first()
    if invitation is None:
        raise InvitationInvalidError("Invitation invalide")
    if invitation.status != STATUS_PENDING:
        raise InvitationInvalidError("Cette invitation n'est plus valide")
    if utcnow() >= invitation.expires_at:
        raise InvitationInvalidError("Cette invitation a expiré")
    return invitation


def public_view(invitation: Invitation) -> dict:
    return {
        "code": invitation.code,
        "role": invitation.role,
        "email": invitation.email,
        "societe_name": invitation.societe.name if invitation.societe else None,
        "expires_at": invitation.to_dict()["expires_at"],
    }


def redeem_invitation(user: User, code: str | None) -> Invitation:
    """
    Bind user to the invitation's societe and role and mark it used.

    When the invitation carries an email, the user's email must match
    (trimmed, case-insensitive). The caller commits.
    """
    invitation = lookup_invitation(code)

    if invitation.email and invitation.email != normalize_email(user.email):
        raise InvitationInvalidError("Cette invitation est réservée à une autre adresse email")
    if user.societe_id is not None and user.societe_id != invitation.societe_id:
        raise ConflictError("User already belongs to a societe")

    now = utcnow()
    invitation.status = STATUS_USED
    invitation.used_at = now
    invitation.used_by_user_id = user.id

    user.societe_id = invitation.societe_id
    user.role = invitation.role
    user.is_owner = False
    user.created_by_invitation_id = invitation.id

    record_activity(
        Identity.from_user(user),
        activity_type="utilisateur",
        action="adhesion",
        entity_id=user.id,
        details={"email": user.email, "via": "invitation", "invitation_id": invitation.id},
        societe_id=invitation.societe_id,
    )
    return invitation


def accept_invitation(user: User, code: str | None) -> Invitation:
    """Redeem from an existing account still awaiting a societe."""
    if user.societe_id is not None:
        raise ConflictError("User already belongs to a societe")
    try:
        invitation = redeem_invitation(user, code)
        db.session.commit()
    except Exception:
        db.session.rollback()
        raise
    current_app.logger.info("User %s joined societe %s by invitation", user.id, invitation.societe_id)
    return invitation
