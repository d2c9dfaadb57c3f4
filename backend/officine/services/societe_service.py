# Overview: Societe (tenant) creation, join code and membership.

from __future__ import annotations

import secrets
import string
from typing import Callable

from flask import current_app

from ..extensions import db
from ..models import Societe, SocieteSettings, User
from ..permissions import ROLE_DOCTEUR, ROLE_VENDEUSE
from ..validation import ConflictError, ValidationError
from .activity_service import record_activity
from .policy_service import require
from .session_service import Identity


CODE_ALPHABET = string.ascii_uppercase + string.digits
JOIN_CODE_LENGTH = 6


class JoinCodeGenerationError(RuntimeError):
    """No unused code found within the allowed number of attempts."""


class SocieteNotFoundError(LookupError):
    pass


def random_code(length: int) -> str:
    return "".join(secrets.choice(CODE_ALPHABET) for _ in range(length))


def generate_unique_code(
    length: int,
    is_taken: Callable[[str], bool],
    *,
    max_attempts: int | None = None,
    code_factory: Callable[[int], str] | None = None,
) -> str:
    """
    Draw random A-Z0-9 codes until one is free.

    Raises JoinCodeGenerationError after max_attempts collisions
    (JOIN_CODE_MAX_ATTEMPTS, default 10).
    """
    if max_attempts is None:
        max_attempts = current_app.config.get("JOIN_CODE_MAX_ATTEMPTS", 10)
    factory = code_factory or random_code

    for _ in range(max_attempts):
        code = factory(length)
        if not is_taken(code):
            return code

    current_app.logger.error("Unable to generate a unique %d-char code after %d attempts", length, max_attempts)
    raise JoinCodeGenerationError(
        f"Impossible de générer un code unique après {max_attempts} tentatives"
    )


def _join_code_taken(code: str) -> bool:
    return db.session.query(Societe.id).filter_by(invitation_code=code).first() is not None


def generate_join_code(*, max_attempts: int | None = None, code_factory=None) -> str:
    return generate_unique_code(
        JOIN_CODE_LENGTH,
        _join_code_taken,
        max_attempts=max_attempts,
        code_factory=code_factory,
    )


def normalize_code(code: str | None) -> str:
    return (code or "").strip().upper()


def create_societe(
    user: User,
    *,
    name: str,
    address: str | None = None,
    phone: str | None = None,
    email: str | None = None,
    commit: bool = True,
) -> Societe:
    """
    "New company" registration: user becomes owner and docteur.

    Creates the default settings row and the first join code in the same
    transaction.
    """
    name = (name or "").strip()
    if not name:
        raise ValidationError("name is required")
    if user.societe_id is not None:
        raise ConflictError("User already belongs to a societe")

    societe = Societe(
        name=name,
        address=(address or "").strip() or None,
        phone=(phone or "").strip() or None,
        email=(email or "").strip().lower() or None,
        owner_user_id=user.id,
        invitation_code=generate_join_code(),
    )
    db.session.add(societe)
    db.session.flush()

    db.session.add(SocieteSettings(societe_id=societe.id))

    user.societe_id = societe.id
    user.role = ROLE_DOCTEUR
    user.is_owner = True

    record_activity(
        Identity.from_user(user),
        activity_type="societe",
        action="creation",
        entity_id=societe.id,
        details={"name": societe.name},
        societe_id=societe.id,
    )

    if commit:
        db.session.commit()
    current_app.logger.info("Societe %s created by user %s", societe.id, user.id)
    return societe


def regenerate_join_code(identity: Identity, *, code_factory=None) -> Societe:
    """Owner replaces the join code; the previous one stops working immediately."""
    require(identity, "gerer_societe")

    societe = db.session.get(Societe, identity.societe_id)
    if societe is None:
        raise SocieteNotFoundError("Societe not found")

    societe.invitation_code = generate_join_code(code_factory=code_factory)
    record_activity(identity, activity_type="societe", action="nouveau_code", entity_id=societe.id)
    db.session.commit()
    return societe


def find_by_join_code(code: str | None) -> Societe:
    code = normalize_code(code)
    if len(code) != JOIN_CODE_LENGTH:
        raise ValidationError(f"Join code must be {JOIN_CODE_LENGTH} characters")
    societe = db.session.query(Societe).filter_by(invitation_code=code).first()
    if societe is None:
        raise SocieteNotFoundError("Code société invalide")
    return societe


def join_by_code(user: User, code: str | None) -> Societe:
    """A user without societe joins as vendeuse."""
    if user.societe_id is not None:
        raise ConflictError("User already belongs to a societe")

    societe = find_by_join_code(code)

    user.societe_id = societe.id
    user.role = ROLE_VENDEUSE
    user.is_owner = False

    record_activity(
        Identity.from_user(user),
        activity_type="utilisateur",
        action="adhesion",
        entity_id=user.id,
        details={"email": user.email, "via": "code"},
        societe_id=societe.id,
    )
    db.session.commit()
    current_app.logger.info("User %s joined societe %s by code", user.id, societe.id)
    return societe


def get_societe(societe_id: int | None) -> Societe:
    societe = db.session.get(Societe, societe_id) if societe_id is not None else None
    if societe is None:
        raise SocieteNotFoundError("Societe not found")
    return societe


def list_members(societe_id: int | None, *, include_deleted: bool = False) -> list[User]:
    if societe_id is None:
        return []
    q = db.session.query(User).filter(User.societe_id == societe_id)
    if not include_deleted:
        q = q.filter(User.is_deleted.is_(False))
    return q.order_by(User.is_owner.desc(), User.email).all()
