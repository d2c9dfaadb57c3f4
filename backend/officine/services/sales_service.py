# Overview: Sales (ventes); stock validation, decrement on save, restore on edit and delete.

from __future__ import annotations

from datetime import date

from flask import current_app

from ..extensions import db
from ..models import Document, Sale, SaleLine, StockLot, document_sales
from ..validation import ConflictError, ModelValidationPolicy, ValidationError, enforce_amount, validate_lines, validate_payload
from . import stock_service, totals
from .activity_service import record_activity
from .concurrency import run_with_retry
from .payment_service import (
    KIND_SALE,
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


class SaleError(ValidationError):
    """Sale refused; details carries the offending line when known."""

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.details = details or {}


SALE_POLICY = ModelValidationPolicy(
    writable_fields={"client", "sale_date", "global_discount_cents", "payment_mode", "notes"},
    required_on_create=set(),
)

LINE_POLICY = ModelValidationPolicy(
    writable_fields={"product_name", "quantity", "unit_price_cents", "discount_cents", "stock_lot_id"},
    required_on_create={"product_name", "quantity"},
)

ALIASES = {"date": "sale_date"}


def _parse(payload: dict, *, partial: bool) -> tuple[dict, list[dict] | None, dict | None]:
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")
    payload = dict(payload)
    raw_lines = payload.pop("lines", None)
    raw_payment = payload.pop("initial_payment", None)

    header = validate_payload(model=Sale, payload=payload, policy=SALE_POLICY, partial=partial, aliases=ALIASES)
    enforce_amount("global_discount_cents", header.get("global_discount_cents"))

    lines = None
    if raw_lines is not None or not partial:
        lines = validate_lines(model=SaleLine, raw_lines=raw_lines or [], policy=LINE_POLICY)

    payment = parse_payment_fields(raw_payment, partial=False) if raw_payment else None
    return header, lines, payment


def _build_lines(lines: list[dict]) -> list[SaleLine]:
    return [SaleLine(**line) for line in lines]


def _apply_stock(sale: Sale, sign: int) -> None:
    for line in sale.lines:
        stock_service.apply_sale_line(sale.societe_id, line, sign)


def _invoiced_by(sale_id: int) -> Document | None:
    """The non-cancelled invoice a sale belongs to, if any."""
    return (
        db.session.query(Document)
        .join(document_sales, document_sales.c.document_id == Document.id)
        .filter(document_sales.c.sale_id == sale_id, Document.is_cancelled.is_(False))
        .first()
    )


def list_sales(
    identity: Identity,
    *,
    client: str | None = None,
    date_from: date | None = None,
    date_to: date | None = None,
    payment_status: str | None = None,
) -> list[Sale]:
    require(identity, "voir_ventes")
    q = scoped_query(Sale, identity.societe_id)
    if client:
        q = q.filter(Sale.client.ilike(f"%{client.strip()}%"))
    if date_from is not None:
        q = q.filter(Sale.sale_date >= date_from)
    if date_to is not None:
        q = q.filter(Sale.sale_date <= date_to)
    if payment_status:
        q = q.filter(Sale.payment_status == payment_status)
    return q.order_by(Sale.sale_date.desc(), Sale.id.desc()).all()


def get_sale(identity: Identity, sale_id: int) -> Sale:
    require(identity, "voir_ventes")
    return get_scoped_or_404(Sale, sale_id, identity.societe_id, user_id=identity.user_id)


def create_sale(identity: Identity, payload: dict) -> Sale:
    """
    Record a sale after checking every line against available stock.

    Stock is decremented and the optional initial payment recorded in the
    same transaction.
    """
    require(identity, "ajouter_vente")
    societe_id = require_societe(identity)
    header, lines, payment_fields = _parse(payload, partial=False)
    header.setdefault("sale_date", date.today())
    header["client"] = header.get("client") or "Client comptoir"

    stock_service.check_sale_availability(societe_id, lines, user_id=identity.user_id)

    total = totals.document_total(_build_lines(lines), header.get("global_discount_cents"))
    if payment_fields:
        check_amount(total, 0, payment_fields["amount_cents"])
        header.setdefault("payment_mode", payment_fields["mode"])

    def _op():
        sale = Sale(
            societe_id=societe_id,
            created_by_user_id=identity.user_id,
            lines=_build_lines(lines),
            **header,
        )
        db.session.add(sale)
        db.session.flush()

        _apply_stock(sale, -1)
        write_back_status(sale, 0)

        record_activity(
            identity,
            activity_type="vente",
            action="creation",
            entity_id=sale.id,
            details={"client": sale.client, "total_cents": sale.total_cents, "lines": len(lines)},
        )
        if payment_fields:
            record_payment_in_transaction(identity, KIND_SALE, sale, payment_fields)

        db.session.commit()
        return sale

    sale = run_with_retry(_op)
    current_app.logger.info("Sale %s created in societe %s", sale.id, societe_id)
    return sale


def update_sale(identity: Identity, sale_id: int, payload: dict) -> Sale:
    """
    Edit a sale: restore the original quantities, check availability of the
    new lines against the restored stock, then decrement again.
    """
    require(identity, "modifier_vente")
    societe_id = require_societe(identity)
    get_scoped_or_404(Sale, sale_id, societe_id, user_id=identity.user_id)
    header, lines, _ = _parse(payload, partial=True)

    if lines is not None:
        for line in lines:
            if line.get("stock_lot_id"):
                get_scoped_or_404(StockLot, line["stock_lot_id"], societe_id, user_id=identity.user_id)

    def _op():
        sale = get_scoped_or_404(Sale, sale_id, societe_id, user_id=identity.user_id)
        paid = paid_total(societe_id, KIND_SALE, sale.id)

        new_lines = _build_lines(lines) if lines is not None else sale.lines
        discount = header.get("global_discount_cents", sale.global_discount_cents)
        if totals.document_total(new_lines, discount) < paid:
            raise SaleError("Le nouveau total est inférieur au montant déjà payé")

        if lines is not None:
            _apply_stock(sale, +1)
            db.session.flush()
            try:
                stock_service.check_sale_availability(societe_id, lines, user_id=identity.user_id)
            except ValidationError:
                db.session.rollback()
                raise
            sale.lines = new_lines

        for k, v in header.items():
            setattr(sale, k, v)
        db.session.flush()

        if lines is not None:
            _apply_stock(sale, -1)
        write_back_status(sale, paid)

        record_activity(
            identity,
            activity_type="vente",
            action="modification",
            entity_id=sale.id,
            details={"client": sale.client, "total_cents": sale.total_cents},
        )
        db.session.commit()
        return sale

    return run_with_retry(_op)


def delete_sale(identity: Identity, sale_id: int) -> None:
    """Restore stock, drop payments, then delete. Invoiced sales are refused."""
    require(identity, "supprimer_vente")
    societe_id = require_societe(identity)
    get_scoped_or_404(Sale, sale_id, societe_id, user_id=identity.user_id)

    invoice = _invoiced_by(sale_id)
    if invoice is not None:
        raise ConflictError(f"Cette vente est rattachée à la facture {invoice.number}")

    def _op():
        sale = get_scoped_or_404(Sale, sale_id, societe_id, user_id=identity.user_id)
        _apply_stock(sale, +1)
        delete_payments_for(societe_id, KIND_SALE, sale.id)

        record_activity(
            identity,
            activity_type="vente",
            action="suppression",
            entity_id=sale.id,
            details={"client": sale.client, "total_cents": sale.total_cents},
        )
        db.session.delete(sale)
        db.session.commit()

    run_with_retry(_op)
    current_app.logger.info("Sale %s deleted in societe %s", sale_id, societe_id)
