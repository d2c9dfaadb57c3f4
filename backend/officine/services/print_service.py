# Overview: Standalone printable HTML for sales, purchases, quotes and invoices.

from __future__ import annotations

from flask import render_template

from ..models import Document, Purchase, Sale, SocieteSettings
from . import totals
from .policy_service import require
from .session_service import Identity
from .societe_service import get_societe
from .tenant_service import get_scoped_or_404


_UNITS = [
    "zéro", "un", "deux", "trois", "quatre", "cinq", "six", "sept", "huit", "neuf",
    "dix", "onze", "douze", "treize", "quatorze", "quinze", "seize",
    "dix-sept", "dix-huit", "dix-neuf",
]
_TENS = ["", "", "vingt", "trente", "quarante", "cinquante", "soixante"]


def _below_100(n: int) -> str:
    if n < 20:
        return _UNITS[n]
    tens, unit = divmod(n, 10)
    if tens in (7, 9):
        # soixante-dix.., quatre-vingt-dix..
        base = "soixante" if tens == 7 else "quatre-vingt"
        rest = _UNITS[10 + unit]
        sep = " et " if tens == 7 and unit == 1 else "-"
        return f"{base}{sep}{rest}"
    if tens == 8:
        return "quatre-vingts" if unit == 0 else f"quatre-vingt-{_UNITS[unit]}"
    if unit == 0:
        return _TENS[tens]
    if unit == 1:
        return f"{_TENS[tens]} et un"
    return f"{_TENS[tens]}-{_UNITS[unit]}"


def _below_1000(n: int) -> str:
    hundreds, rest = divmod(n, 100)
    parts = []
    if hundreds == 1:
        parts.append("cent")
    elif hundreds > 1:
        parts.append(f"{_UNITS[hundreds]} cent{'s' if rest == 0 else ''}")
    if rest or not parts:
        parts.append(_below_100(rest))
    return " ".join(parts)


def number_in_words(n: int) -> str:
    """French spelling of a non-negative integer below one billion."""
    if n == 0:
        return "zéro"
    parts = []
    millions, n = divmod(n, 1_000_000)
    thousands, n = divmod(n, 1000)
    if millions:
        parts.append(f"{_below_1000(millions)} million{'s' if millions > 1 else ''}")
    if thousands == 1:
        parts.append("mille")
    elif thousands:
        words = _below_1000(thousands)
        # cent and vingt take no plural before mille
        if words.endswith(("cents", "vingts")):
            words = words[:-1]
        parts.append(f"{words} mille")
    if n:
        parts.append(_below_1000(n))
    return " ".join(parts)


def amount_in_words(cents: int) -> str:
    """"cent vingt-trois dirhams et quarante-cinq centimes"."""
    dirhams, centimes = divmod(max(0, int(cents or 0)), 100)
    text = f"{number_in_words(dirhams)} dirham{'s' if dirhams > 1 else ''}"
    if centimes:
        text += f" et {number_in_words(centimes)} centime{'s' if centimes > 1 else ''}"
    return text


def format_money(cents: int | None) -> str:
    return f"{(cents or 0) / 100:,.2f}".replace(",", " ")


TITLES = {
    "sale": "Bon de vente",
    "purchase": "Bon d'achat",
    "FACT": "Facture",
    "DEV": "Devis",
}


def _context(identity: Identity, *, title: str, number: str, party_label: str, party: str, record) -> dict:
    societe = get_societe(identity.societe_id)
    settings = societe.settings or SocieteSettings(societe_id=societe.id)
    total = record.total_cents
    subtotal = sum(
        totals.line_total(line.unit_price_cents, line.quantity, line.discount_cents) for line in record.lines
    )
    return {
        "title": title,
        "number": number,
        "party_label": party_label,
        "party": party,
        "date": record.to_dict(include_lines=False)["date"],
        "societe": societe,
        "settings": settings,
        "lines": record.lines,
        "line_total": totals.line_total,
        "money": format_money,
        "subtotal_cents": subtotal,
        "global_discount_cents": record.global_discount_cents or 0,
        "total_cents": total,
        "paid_cents": record.paid_cents or 0,
        "balance_cents": totals.balance(total, record.paid_cents),
        "payment_status": record.payment_status,
        "amount_words": amount_in_words(total),
        "cancelled": getattr(record, "is_cancelled", False),
    }


def render_sale(identity: Identity, sale_id: int) -> str:
    require(identity, "imprimer_documents")
    sale = get_scoped_or_404(Sale, sale_id, identity.societe_id, user_id=identity.user_id)
    ctx = _context(identity, title=TITLES["sale"], number=f"V{sale.id:05d}", party_label="Client", party=sale.client, record=sale)
    return render_template("print/document.html", **ctx)


def render_purchase(identity: Identity, purchase_id: int) -> str:
    require(identity, "imprimer_documents")
    purchase = get_scoped_or_404(Purchase, purchase_id, identity.societe_id, user_id=identity.user_id)
    ctx = _context(
        identity,
        title=TITLES["purchase"],
        number=f"A{purchase.id:05d}",
        party_label="Fournisseur",
        party=purchase.supplier,
        record=purchase,
    )
    return render_template("print/document.html", **ctx)


def render_document(identity: Identity, document_id: int) -> str:
    require(identity, "imprimer_documents")
    doc = get_scoped_or_404(Document, document_id, identity.societe_id, user_id=identity.user_id)
    ctx = _context(
        identity,
        title=TITLES.get(doc.doc_type, "Document"),
        number=doc.number,
        party_label="Client",
        party=doc.client,
        record=doc,
    )
    return render_template("print/document.html", **ctx)
