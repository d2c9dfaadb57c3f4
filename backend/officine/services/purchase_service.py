# Overview: Purchases (achats); restock on save, reversal on edit and delete.

from __future__ import annotations

from datetime import date

from flask import current_app

from ..extensions import db
from ..models import Purchase, PurchaseLine
from ..validation import ModelValidationPolicy, ValidationError, enforce_amount, validate_lines, validate_payload
from . import stock_service, totals
from .activity_service import record_activity
from .concurrency import run_with_retry
from .payment_service import (
    KIND_PURCHASE,
    check_amount,
    delete_payments_for,
    paid_total,
    parse_payment_fields,
    record_payment_in_transaction,
    write_back_status,
)
from .policy_service import require
from .session_service import Identity
from .tenant_service import get_scoped_or_404, require_societe, scoped_query


PURCHASE_POLICY = ModelValidationPolicy(
    writable_fields={"supplier", "purchase_date", "global_discount_cents", "notes"},
    required_on_create={"supplier"},
)

LINE_POLICY = ModelValidationPolicy(
    writable_fields={
        "product_name",
        "quantity",
        "unit_price_cents",
        "sale_price_cents",
        "discount_cents",
        "expiry_date",
        "lot_number",
        "supplier",
    },
    required_on_create={"product_name", "quantity"},
)

ALIASES = {"date": "purchase_date"}


def _parse(payload: dict, *, partial: bool) -> tuple[dict, list[dict] | None, dict | None]:
    """Split a purchase payload into (header patch, lines, initial payment)."""
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")
    payload = dict(payload)
    raw_lines = payload.pop("lines", None)
    raw_payment = payload.pop("initial_payment", None)

    header = validate_payload(
        model=Purchase,
        payload=payload,
        policy=PURCHASE_POLICY,
        partial=partial,
        aliases=ALIASES,
    )
    enforce_amount("global_discount_cents", header.get("global_discount_cents"))

    lines = None
    if raw_lines is not None or not partial:
        lines = validate_lines(model=PurchaseLine, raw_lines=raw_lines or [], policy=LINE_POLICY)

    payment = None
    if raw_payment:
        payment = parse_payment_fields(raw_payment, partial=False)
    return header, lines, payment


def _build_lines(lines: list[dict]) -> list[PurchaseLine]:
    return [PurchaseLine(**line) for line in lines]


def _restock(purchase: Purchase) -> None:
    for line in purchase.lines:
        stock_service.restock_from_purchase_line(
            purchase.societe_id,
            line,
            purchase_id=purchase.id,
            received_on=purchase.purchase_date,
            supplier=purchase.supplier,
        )


def list_purchases(
    identity: Identity,
    *,
    supplier: str | None = None,
    date_from: date | None = None,
    date_to: date | None = None,
    payment_status: str | None = None,
) -> list[Purchase]:
    require(identity, "voir_achats")
    q = scoped_query(Purchase, identity.societe_id)
    if supplier:
        q = q.filter(Purchase.supplier.ilike(f"%{supplier.strip()}%"))
    if date_from is not None:
        q = q.filter(Purchase.purchase_date >= date_from)
    if date_to is not None:
        q = q.filter(Purchase.purchase_date <= date_to)
    if payment_status:
        q = q.filter(Purchase.payment_status == payment_status)
    return q.order_by(Purchase.purchase_date.desc(), Purchase.id.desc()).all()


def get_purchase(identity: Identity, purchase_id: int) -> Purchase:
    require(identity, "voir_achats")
    return get_scoped_or_404(Purchase, purchase_id, identity.societe_id, user_id=identity.user_id)


def create_purchase(identity: Identity, payload: dict) -> Purchase:
    """
    Record a purchase and restock every line in one transaction.

    An optional initial_payment {amount_cents, mode} is validated against
    the computed total before anything is written.
    """
    require(identity, "ajouter_achat")
    societe_id = require_societe(identity)
    header, lines, payment_fields = _parse(payload, partial=False)
    header.setdefault("purchase_date", date.today())

    total = totals.document_total(_build_lines(lines), header.get("global_discount_cents"))
    if payment_fields:
        check_amount(total, 0, payment_fields["amount_cents"])

    def _op():
        purchase = Purchase(
            societe_id=societe_id,
            created_by_user_id=identity.user_id,
            lines=_build_lines(lines),
            **header,
        )
        db.session.add(purchase)
        db.session.flush()

        _restock(purchase)
        write_back_status(purchase, 0)

        record_activity(
            identity,
            activity_type="achat",
            action="creation",
            entity_id=purchase.id,
            details={"supplier": purchase.supplier, "total_cents": purchase.total_cents, "lines": len(lines)},
        )
        if payment_fields:
            record_payment_in_transaction(identity, KIND_PURCHASE, purchase, payment_fields)

        db.session.commit()
        return purchase

    purchase = run_with_retry(_op)
    current_app.logger.info("Purchase %s created in societe %s", purchase.id, societe_id)
    return purchase


def update_purchase(identity: Identity, purchase_id: int, payload: dict) -> Purchase:
    """
    Edit a purchase: reverse the original stock effect, then apply the new
    state. The new total may not fall below what was already paid.
    """
    require(identity, "modifier_achat")
    societe_id = require_societe(identity)
    get_scoped_or_404(Purchase, purchase_id, societe_id, user_id=identity.user_id)
    header, lines, _ = _parse(payload, partial=True)

    def _op():
        purchase = get_scoped_or_404(Purchase, purchase_id, societe_id, user_id=identity.user_id)
        paid = paid_total(societe_id, KIND_PURCHASE, purchase.id)

        new_lines = _build_lines(lines) if lines is not None else purchase.lines
        discount = header.get("global_discount_cents", purchase.global_discount_cents)
        if totals.document_total(new_lines, discount) < paid:
            raise ValidationError("Le nouveau total est inférieur au montant déjà payé")

        if lines is not None:
            stock_service.reverse_purchase(societe_id, purchase)
            purchase.lines = new_lines

        for k, v in header.items():
            setattr(purchase, k, v)
        db.session.flush()

        if lines is not None:
            _restock(purchase)
        write_back_status(purchase, paid)

        record_activity(
            identity,
            activity_type="achat",
            action="modification",
            entity_id=purchase.id,
            details={"supplier": purchase.supplier, "total_cents": purchase.total_cents},
        )
        db.session.commit()
        return purchase

    return run_with_retry(_op)


def delete_purchase(identity: Identity, purchase_id: int) -> None:
    """Reverse stock, drop payments and lots, then delete the purchase."""
    require(identity, "supprimer_achat")
    societe_id = require_societe(identity)
    get_scoped_or_404(Purchase, purchase_id, societe_id, user_id=identity.user_id)

    def _op():
        purchase = get_scoped_or_404(Purchase, purchase_id, societe_id, user_id=identity.user_id)
        stock_service.reverse_purchase(societe_id, purchase)
        delete_payments_for(societe_id, KIND_PURCHASE, purchase.id)

        record_activity(
            identity,
            activity_type="achat",
            action="suppression",
            entity_id=purchase.id,
            details={"supplier": purchase.supplier, "total_cents": purchase.total_cents},
        )
        db.session.delete(purchase)
        db.session.commit()

    run_with_retry(_op)
    current_app.logger.info("Purchase %s deleted in societe %s", purchase_id, societe_id)
