# Overview: Payments against purchases, sales and documents; status write-back.

"""
Payment invariants

- amount_cents > 0.
- Cumulative payments of one record never exceed its total; the check runs
  before any write.
- After every add, edit and delete the record's paid_cents and
  payment_status are written back in the same transaction.
"""

from __future__ import annotations

from datetime import date

from sqlalchemy import func

from ..extensions import db
from ..models import Document, Payment, Purchase, Sale
from ..validation import ValidationError, coerce_date, coerce_int, enforce_amount
from . import totals
from .activity_service import record_activity
from .policy_service import require
from .session_service import Identity
from .tenant_service import get_scoped_or_404, require_societe, scoped_query


KIND_PURCHASE = "purchase"
KIND_SALE = "sale"
KIND_DOCUMENT = "document"

TARGET_MODELS = {
    KIND_PURCHASE: Purchase,
    KIND_SALE: Sale,
    KIND_DOCUMENT: Document,
}

PAYMENT_MODES = ("Espèces", "Carte", "Chèque", "Virement", "Autre")
DEFAULT_MODE = "Espèces"


class PaymentError(ValidationError):
    """Payment refused (amount, balance or cancelled document)."""


def _model_for(kind: str | None):
    model = TARGET_MODELS.get(kind or "")
    if model is None:
        raise ValidationError(f"kind must be one of: {', '.join(TARGET_MODELS)}")
    return model


def format_amount(cents: int) -> str:
    return f"{cents / 100:.2f} DH"


def get_target(identity: Identity, kind: str, document_id):
    model = _model_for(kind)
    return get_scoped_or_404(model, document_id, identity.societe_id, user_id=identity.user_id)


def paid_total(societe_id: int, kind: str, document_id: int, *, exclude_payment_id: int | None = None) -> int:
    q = scoped_query(Payment, societe_id).with_entities(func.coalesce(func.sum(Payment.amount_cents), 0)).filter(
        Payment.kind == kind,
        Payment.document_id == document_id,
    )
    if exclude_payment_id is not None:
        q = q.filter(Payment.id != exclude_payment_id)
    return int(q.scalar() or 0)


def write_back_status(target, paid_cents: int) -> None:
    target.paid_cents = paid_cents
    target.payment_status = totals.payment_status(target.total_cents, paid_cents)


def refresh_status(societe_id: int, kind: str, target) -> None:
    """Recompute paid_cents/payment_status of target from its payments."""
    db.session.flush()
    write_back_status(target, paid_total(societe_id, kind, target.id))


def check_amount(total_cents: int, already_paid_cents: int, amount_cents: int) -> None:
    """Reject non-positive amounts and anything that would overpay."""
    if amount_cents is None or amount_cents <= 0:
        raise PaymentError("Le montant doit être supérieur à 0")
    enforce_amount("amount_cents", amount_cents, allow_zero=False)
    new_total = already_paid_cents + amount_cents
    if new_total > total_cents:
        raise PaymentError(
            f"Le montant total payé ({format_amount(new_total)}) dépasserait "
            f"le total du document ({format_amount(total_cents)})"
        )


def parse_payment_fields(payload: dict, *, partial: bool) -> dict:
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")
    out: dict = {}
    if "amount_cents" in payload or not partial:
        if payload.get("amount_cents") is None:
            raise ValidationError("amount_cents is required")
        out["amount_cents"] = coerce_int("amount_cents", payload["amount_cents"])
    if "mode" in payload or not partial:
        mode = (payload.get("mode") or DEFAULT_MODE).strip()
        if mode not in PAYMENT_MODES:
            raise ValidationError(f"mode must be one of: {', '.join(PAYMENT_MODES)}")
        out["mode"] = mode
    if "paid_on" in payload or "date" in payload or not partial:
        raw = payload.get("paid_on", payload.get("date"))
        out["paid_on"] = coerce_date("paid_on", raw) if raw else date.today()
    if "reference" in payload:
        out["reference"] = (payload.get("reference") or "").strip() or None
    return out


def _ensure_payable(kind: str, target) -> None:
    if kind == KIND_DOCUMENT and target.is_cancelled:
        raise PaymentError("Impossible d'enregistrer un paiement sur un document annulé")


def record_payment_in_transaction(identity: Identity, kind: str, target, fields: dict) -> Payment:
    """
    Insert a payment and write the status back, without committing.

    Used by add_payment and by purchase/sale creation with an initial
    payment. The caller has already validated the amount.
    """
    payment = Payment(
        societe_id=target.societe_id,
        kind=kind,
        document_id=target.id,
        created_by_user_id=identity.user_id,
        **fields,
    )
    db.session.add(payment)
    refresh_status(target.societe_id, kind, target)

    record_activity(
        identity,
        activity_type="paiement",
        action="creation",
        entity_id=target.id,
        details={"kind": kind, "amount_cents": payment.amount_cents, "mode": payment.mode},
    )
    return payment


def add_payment(identity: Identity, kind: str, document_id, payload: dict) -> Payment:
    require(identity, "ajouter_paiement")
    require_societe(identity)
    target = get_target(identity, kind, document_id)
    _ensure_payable(kind, target)

    fields = parse_payment_fields(payload, partial=False)
    check_amount(target.total_cents, paid_total(target.societe_id, kind, target.id), fields["amount_cents"])

    payment = record_payment_in_transaction(identity, kind, target, fields)
    db.session.commit()
    return payment


def update_payment(identity: Identity, payment_id: int, payload: dict) -> Payment:
    require(identity, "modifier_paiement")
    payment = get_scoped_or_404(Payment, payment_id, identity.societe_id, user_id=identity.user_id)
    target = get_target(identity, payment.kind, payment.document_id)

    fields = parse_payment_fields(payload, partial=True)
    if "amount_cents" in fields:
        others = paid_total(payment.societe_id, payment.kind, payment.document_id, exclude_payment_id=payment.id)
        check_amount(target.total_cents, others, fields["amount_cents"])

    before = payment.amount_cents
    for k, v in fields.items():
        setattr(payment, k, v)
    refresh_status(payment.societe_id, payment.kind, target)

    record_activity(
        identity,
        activity_type="paiement",
        action="modification",
        entity_id=target.id,
        details={"kind": payment.kind, "payment_id": payment.id, "from": before, "to": payment.amount_cents},
    )
    db.session.commit()
    return payment


def delete_payment(identity: Identity, payment_id: int) -> None:
    require(identity, "supprimer_paiement")
    payment = get_scoped_or_404(Payment, payment_id, identity.societe_id, user_id=identity.user_id)
    target = get_target(identity, payment.kind, payment.document_id)

    record_activity(
        identity,
        activity_type="paiement",
        action="suppression",
        entity_id=target.id,
        details={"kind": payment.kind, "payment_id": payment.id, "amount_cents": payment.amount_cents},
    )
    db.session.delete(payment)
    refresh_status(payment.societe_id, payment.kind, target)
    db.session.commit()


def delete_payments_for(societe_id: int, kind: str, document_id: int) -> int:
    """Drop every payment of a record being deleted. No commit."""
    return scoped_query(Payment, societe_id).filter(
        Payment.kind == kind,
        Payment.document_id == document_id,
    ).delete(synchronize_session=False)


def list_payments(
    identity: Identity,
    *,
    kind: str | None = None,
    document_id: int | None = None,
    mode: str | None = None,
) -> list[Payment]:
    require(identity, "voir_paiements")
    q = scoped_query(Payment, identity.societe_id)
    if kind:
        _model_for(kind)
        q = q.filter(Payment.kind == kind)
    if document_id is not None:
        q = q.filter(Payment.document_id == document_id)
    if mode:
        q = q.filter(Payment.mode == mode)
    return q.order_by(Payment.paid_on.desc(), Payment.id.desc()).all()


def summary_for(identity: Identity, kind: str, document_id) -> dict:
    """Total, paid, balance and status of one record with its payments."""
    require(identity, "voir_paiements")
    target = get_target(identity, kind, document_id)
    payments = list_payments(identity, kind=kind, document_id=target.id)
    paid = sum(p.amount_cents for p in payments)
    return {
        "kind": kind,
        "document_id": target.id,
        "total_cents": target.total_cents,
        "paid_cents": paid,
        "balance_cents": totals.balance(target.total_cents, paid),
        "payment_status": totals.payment_status(target.total_cents, paid),
        "payments": [p.to_dict() for p in payments],
    }
