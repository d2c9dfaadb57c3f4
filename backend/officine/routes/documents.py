# Overview: Flask API routes for quotes (DEV) and invoices (FACT).

from flask import Blueprint, Response, request, jsonify, g

from ..decorators import require_auth, require_permission, require_societe
from ..services import document_service, print_service


documents_bp = Blueprint("documents", __name__, url_prefix="/api/documents")


@documents_bp.get("")
@require_auth
@require_societe
@require_permission("voir_devis_factures")
def list_documents_route():
    """
    Query parameters:
    - type: FACT | DEV
    - client: substring
    - payment_status: impayé | partiel | payé
    - include_cancelled: default true
    """
    docs = document_service.list_documents(
        g.identity,
        doc_type=request.args.get("type") or None,
        client=request.args.get("client"),
        payment_status=request.args.get("payment_status") or None,
        include_cancelled=request.args.get("include_cancelled", "true").lower() == "true",
    )
    return jsonify({"items": [d.to_dict(include_lines=False) for d in docs], "count": len(docs)})


@documents_bp.get("/next-number")
@require_auth
@require_societe
@require_permission("voir_devis_factures")
def next_number_route():
    """Preview only: the number is recomputed when the document is saved."""
    doc_type = request.args.get("type", document_service.DOC_TYPE_INVOICE)
    return jsonify({"number": document_service.next_document_number(g.identity.societe_id, doc_type)})


@documents_bp.get("/<int:document_id>")
@require_auth
@require_societe
@require_permission("voir_devis_factures")
def get_document_route(document_id: int):
    return jsonify(document_service.get_document(g.identity, document_id).to_dict())


@documents_bp.post("")
@require_auth
@require_societe
@require_permission("ajouter_devis_factures")
def create_document_route():
    """
    Request body:
    {
        "type": "FACT",               // or "DEV"
        "client": "Clinique X",
        "date": "2024-03-05",
        "lines": [{"product_name": "...", "quantity": 1, "unit_price_cents": 1000}]
    }
    """
    data = request.get_json(silent=True) or {}
    return jsonify(document_service.create_document(g.identity, data).to_dict()), 201


@documents_bp.post("/grouped")
@require_auth
@require_societe
@require_permission("ajouter_devis_factures")
def create_grouped_invoice_route():
    """Body: {"sale_ids": [1, 2], "client": "...", "date": "..."}"""
    data = request.get_json(silent=True) or {}
    return jsonify(document_service.create_grouped_invoice(g.identity, data).to_dict()), 201


@documents_bp.put("/<int:document_id>")
@require_auth
@require_societe
@require_permission("modifier_devis_factures")
def update_document_route(document_id: int):
    data = request.get_json(silent=True) or {}
    return jsonify(document_service.update_document(g.identity, document_id, data).to_dict())


@documents_bp.post("/<int:document_id>/cancel")
@require_auth
@require_societe
@require_permission("modifier_devis_factures")
def cancel_document_route(document_id: int):
    return jsonify(document_service.cancel_document(g.identity, document_id).to_dict())


@documents_bp.delete("/<int:document_id>")
@require_auth
@require_societe
@require_permission("supprimer_devis_factures")
def delete_document_route(document_id: int):
    document_service.delete_document(g.identity, document_id)
    return jsonify({"message": "Document supprimé"})


@documents_bp.get("/<int:document_id>/print")
@require_auth
@require_societe
@require_permission("imprimer_documents")
def print_document_route(document_id: int):
    return Response(print_service.render_document(g.identity, document_id), mimetype="text/html")
