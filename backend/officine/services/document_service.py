# Overview: Quotes (DEV) and invoices (FACT); numbering, grouped invoices, cancel and delete.

from __future__ import annotations

from datetime import date
from typing import Iterable

from flask import current_app
from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..models import Document, DocumentLine, Sale, document_sales
from ..time_utils import utcnow
from ..validation import (
    ConflictError,
    ModelValidationPolicy,
    ValidationError,
    coerce_int,
    enforce_amount,
    validate_lines,
    validate_payload,
)
from . import totals
from .activity_service import record_activity
from .payment_service import KIND_DOCUMENT, delete_payments_for, paid_total, write_back_status
from .policy_service import require
from .session_service import Identity
from .tenant_service import get_scoped_or_404, require_all_scoped, require_societe, scoped_query


DOC_TYPE_INVOICE = "FACT"
DOC_TYPE_QUOTE = "DEV"

PREFIXES = {
    DOC_TYPE_INVOICE: "FACT",
    DOC_TYPE_QUOTE: "DEV",
}

NUMBER_PAD = 4
NUMBERING_ATTEMPTS = 3


class DocumentSequenceError(Exception):
    """No free document number could be allocated."""


DOCUMENT_POLICY = ModelValidationPolicy(
    writable_fields={"doc_type", "client", "document_date", "global_discount_cents", "notes"},
    required_on_create={"doc_type", "client"},
)

LINE_POLICY = ModelValidationPolicy(
    writable_fields={"product_name", "quantity", "unit_price_cents", "discount_cents"},
    required_on_create={"product_name", "quantity"},
)

ALIASES = {"date": "document_date", "type": "doc_type"}


def next_number_from(numbers: Iterable[str | None], doc_type: str) -> str:
    """
    PREFIX + (max numeric suffix + 1), zero-padded to 4.

    Numbers that do not parse after removing the prefix are ignored.
    """
    prefix = PREFIXES[doc_type]
    suffixes = []
    for number in numbers:
        raw = (number or "").replace(prefix, "", 1)
        if raw.isdigit():
            suffixes.append(int(raw))
    next_num = max(suffixes) + 1 if suffixes else 1
    return f"{prefix}{next_num:0{NUMBER_PAD}d}"


def next_document_number(societe_id: int, doc_type: str) -> str:
    """Recomputed from every existing number of that type (no persisted counter)."""
    if doc_type not in PREFIXES:
        raise ValidationError(f"doc_type must be one of: {', '.join(PREFIXES)}")
    rows = scoped_query(Document, societe_id).with_entities(Document.number).filter(
        Document.doc_type == doc_type
    ).all()
    return next_number_from((row[0] for row in rows), doc_type)


def _parse(payload: dict, *, partial: bool) -> tuple[dict, list[dict] | None]:
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")
    payload = dict(payload)
    raw_lines = payload.pop("lines", None)

    header = validate_payload(model=Document, payload=payload, policy=DOCUMENT_POLICY, partial=partial, aliases=ALIASES)
    if "doc_type" in header and header["doc_type"] not in PREFIXES:
        raise ValidationError(f"doc_type must be one of: {', '.join(PREFIXES)}")
    enforce_amount("global_discount_cents", header.get("global_discount_cents"))

    lines = None
    if raw_lines is not None or not partial:
        lines = validate_lines(model=DocumentLine, raw_lines=raw_lines or [], policy=LINE_POLICY)
    return header, lines


def _insert_numbered(build) -> Document:
    """
    Add the document returned by build() and commit.

    Two concurrent saves can compute the same number; the unique constraint
    rejects the loser, which recomputes and retries.
    """
    for _ in range(NUMBERING_ATTEMPTS):
        doc = build()
        try:
            db.session.commit()
            return doc
        except IntegrityError:
            db.session.rollback()
            current_app.logger.warning("Document number collision on %s, retrying", doc.number)
    raise DocumentSequenceError("Unable to allocate a document number")


def list_documents(
    identity: Identity,
    *,
    doc_type: str | None = None,
    client: str | None = None,
    payment_status: str | None = None,
    include_cancelled: bool = True,
) -> list[Document]:
    require(identity, "voir_devis_factures")
    q = scoped_query(Document, identity.societe_id)
    if doc_type:
        q = q.filter(Document.doc_type == doc_type)
    if client:
        q = q.filter(Document.client.ilike(f"%{client.strip()}%"))
    if payment_status:
        q = q.filter(Document.payment_status == payment_status)
    if not include_cancelled:
        q = q.filter(Document.is_cancelled.is_(False))
    return q.order_by(Document.document_date.desc(), Document.id.desc()).all()


def get_document(identity: Identity, document_id: int) -> Document:
    require(identity, "voir_devis_factures")
    return get_scoped_or_404(Document, document_id, identity.societe_id, user_id=identity.user_id)


def create_document(identity: Identity, payload: dict) -> Document:
    require(identity, "ajouter_devis_factures")
    societe_id = require_societe(identity)
    header, lines = _parse(payload, partial=False)
    header.setdefault("document_date", date.today())

    def build() -> Document:
        doc = Document(
            societe_id=societe_id,
            number=next_document_number(societe_id, header["doc_type"]),
            created_by_user_id=identity.user_id,
            lines=[DocumentLine(**line) for line in lines],
            **header,
        )
        write_back_status(doc, 0)
        db.session.add(doc)
        db.session.flush()
        record_activity(
            identity,
            activity_type="facture",
            action="creation",
            entity_id=doc.id,
            details={"number": doc.number, "client": doc.client, "total_cents": doc.total_cents},
        )
        return doc

    return _insert_numbered(build)


def invoiced_sale_ids(societe_id: int) -> set[int]:
    """Sales already attached to a non-cancelled invoice."""
    rows = (
        db.session.query(document_sales.c.sale_id)
        .join(Document, Document.id == document_sales.c.document_id)
        .filter(
            Document.societe_id == societe_id,
            Document.doc_type == DOC_TYPE_INVOICE,
            Document.is_cancelled.is_(False),
        )
        .all()
    )
    return {row[0] for row in rows}


def create_grouped_invoice(identity: Identity, payload: dict) -> Document:
    """
    Invoice built from selected sales ("facture groupée").

    Lines are the concatenation of the sales' lines and the global discount
    the sum of theirs. A sale already covered by a non-cancelled invoice is
    rejected.
    """
    require(identity, "ajouter_devis_factures")
    societe_id = require_societe(identity)
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")

    raw_ids = payload.get("sale_ids") or []
    if not isinstance(raw_ids, list) or not raw_ids:
        raise ValidationError("sale_ids must be a non-empty list")
    sale_ids = list(dict.fromkeys(coerce_int("sale_ids", s) for s in raw_ids))
    sales = require_all_scoped(Sale, sale_ids, societe_id, user_id=identity.user_id)

    already = invoiced_sale_ids(societe_id) & set(sale_ids)
    if already:
        raise ConflictError(f"Ventes déjà facturées : {', '.join(str(s) for s in sorted(already))}")

    header = validate_payload(
        model=Document,
        payload={k: v for k, v in payload.items() if k in ("client", "date", "notes")},
        policy=DOCUMENT_POLICY,
        partial=True,
        aliases=ALIASES,
    )
    header["doc_type"] = DOC_TYPE_INVOICE
    header["client"] = header.get("client") or sales[0].client
    header.setdefault("document_date", date.today())
    header["global_discount_cents"] = sum(s.global_discount_cents or 0 for s in sales)

    def build() -> Document:
        doc = Document(
            societe_id=societe_id,
            number=next_document_number(societe_id, DOC_TYPE_INVOICE),
            created_by_user_id=identity.user_id,
            lines=[
                DocumentLine(
                    product_name=line.product_name,
                    quantity=line.quantity,
                    unit_price_cents=line.unit_price_cents,
                    discount_cents=line.discount_cents,
                )
                for sale in sales
                for line in sale.lines
            ],
            **header,
        )
        doc.sales = list(sales)
        write_back_status(doc, 0)
        db.session.add(doc)
        db.session.flush()
        record_activity(
            identity,
            activity_type="facture",
            action="facture_groupee",
            entity_id=doc.id,
            details={"number": doc.number, "sale_ids": sale_ids, "total_cents": doc.total_cents},
        )
        return doc

    return _insert_numbered(build)


def update_document(identity: Identity, document_id: int, payload: dict) -> Document:
    require(identity, "modifier_devis_factures")
    doc = get_scoped_or_404(Document, document_id, identity.societe_id, user_id=identity.user_id)
    if doc.is_cancelled:
        raise ConflictError("Un document annulé ne peut pas être modifié")

    header, lines = _parse(payload, partial=True)
    if "doc_type" in header and header["doc_type"] != doc.doc_type:
        raise ValidationError("doc_type cannot be changed")

    paid = paid_total(doc.societe_id, KIND_DOCUMENT, doc.id)
    new_lines = [DocumentLine(**line) for line in lines] if lines is not None else doc.lines
    discount = header.get("global_discount_cents", doc.global_discount_cents)
    if totals.document_total(new_lines, discount) < paid:
        raise ValidationError("Le nouveau total est inférieur au montant déjà payé")

    if lines is not None:
        doc.lines = new_lines
    for k, v in header.items():
        setattr(doc, k, v)
    db.session.flush()
    write_back_status(doc, paid)

    record_activity(
        identity,
        activity_type="facture",
        action="modification",
        entity_id=doc.id,
        details={"number": doc.number, "total_cents": doc.total_cents},
    )
    db.session.commit()
    return doc


def cancel_document(identity: Identity, document_id: int) -> Document:
    """Cancelled invoices release their sales for a new grouped invoice."""
    require(identity, "modifier_devis_factures")
    doc = get_scoped_or_404(Document, document_id, identity.societe_id, user_id=identity.user_id)
    if doc.is_cancelled:
        raise ConflictError("Document déjà annulé")

    doc.is_cancelled = True
    doc.cancelled_at = utcnow()
    record_activity(identity, activity_type="facture", action="annulation", entity_id=doc.id, details={"number": doc.number})
    db.session.commit()
    return doc


def delete_document(identity: Identity, document_id: int) -> None:
    require(identity, "supprimer_devis_factures")
    doc = get_scoped_or_404(Document, document_id, identity.societe_id, user_id=identity.user_id)
    delete_payments_for(doc.societe_id, KIND_DOCUMENT, doc.id)
    record_activity(
        identity,
        activity_type="facture",
        action="suppression",
        entity_id=doc.id,
        details={"number": doc.number, "total_cents": doc.total_cents},
    )
    doc.sales = []
    db.session.delete(doc)
    db.session.commit()
