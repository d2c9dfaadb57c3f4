# Overview: Societe identity and per-societe settings (parametres).

from __future__ import annotations

from ..extensions import db
from ..models import Societe, SocieteSettings
from ..validation import ModelValidationPolicy, ValidationError, validate_payload
from .activity_service import record_activity
from .policy_service import require
from .session_service import Identity
from .societe_service import get_societe
from .tenant_service import require_societe


STAMP_TYPES = ("texte", "image")

SETTINGS_POLICY = ModelValidationPolicy(
    writable_fields={
        "header_text",
        "footer_text",
        "stamp_type",
        "stamp_text",
        "rc",
        "ice",
        "tax_id",
        "cnss",
        "global_alert_threshold",
        "expiry_alert_days",
        "sales_vat_rate",
        "multi_lot_enabled",
    },
)

SOCIETE_POLICY = ModelValidationPolicy(
    writable_fields={"name", "address", "phone", "email"},
)

# Payload names used by the settings screen
SETTINGS_ALIASES = {"if": "tax_id", "entete": "header_text", "pied_de_page": "footer_text"}


def ensure_settings(societe_id: int) -> SocieteSettings:
    """Settings row of a societe, created with defaults on first access."""
    settings = db.session.query(SocieteSettings).filter_by(societe_id=societe_id).first()
    if settings is None:
        settings = SocieteSettings(societe_id=societe_id)
        db.session.add(settings)
        db.session.flush()
    return settings


def get_settings(identity: Identity) -> SocieteSettings:
    require(identity, "parametres")
    settings = ensure_settings(require_societe(identity))
    db.session.commit()
    return settings


def update_settings(identity: Identity, payload: dict) -> SocieteSettings:
    require(identity, "parametres")
    societe_id = require_societe(identity)

    patch = validate_payload(
        model=SocieteSettings,
        payload=payload,
        policy=SETTINGS_POLICY,
        partial=True,
        aliases=SETTINGS_ALIASES,
    )
    if "stamp_type" in patch and patch["stamp_type"] not in STAMP_TYPES:
        raise ValidationError(f"stamp_type must be one of: {', '.join(STAMP_TYPES)}")
    for key in ("global_alert_threshold", "expiry_alert_days"):
        if key in patch and (patch[key] is None or patch[key] < 0):
            raise ValidationError(f"{key} must be >= 0")
    if "sales_vat_rate" in patch and not (0 <= (patch["sales_vat_rate"] or 0) <= 100):
        raise ValidationError("sales_vat_rate must be between 0 and 100")

    settings = ensure_settings(societe_id)
    for k, v in patch.items():
        setattr(settings, k, v)
    settings.updated_by_user_id = identity.user_id

    record_activity(identity, activity_type="parametres", action="modification", details=patch)
    db.session.commit()
    return settings


def get_societe_info(identity: Identity) -> Societe:
    require(identity, "gerer_societe")
    return get_societe(require_societe(identity))


def update_societe_info(identity: Identity, payload: dict) -> Societe:
    require(identity, "gerer_societe")
    societe = get_societe(require_societe(identity))

    patch = validate_payload(model=Societe, payload=payload, policy=SOCIETE_POLICY, partial=True)
    if "email" in patch and patch["email"]:
        patch["email"] = patch["email"].lower()

    for k, v in patch.items():
        setattr(societe, k, v)

    record_activity(identity, activity_type="societe", action="modification", entity_id=societe.id, details=patch)
    db.session.commit()
    return societe
