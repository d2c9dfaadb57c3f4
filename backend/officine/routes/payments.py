# Overview: Flask API routes for payments against purchases, sales and documents.

"""
Payment Routes

kind is one of "purchase", "sale", "document". Every add/edit/delete writes
paid_cents and payment_status back onto the target record.
"""

from flask import Blueprint, request, jsonify, g

from ..decorators import require_auth, require_permission, require_societe
from ..services import payment_service


payments_bp = Blueprint("payments", __name__, url_prefix="/api/payments")


@payments_bp.get("")
@require_auth
@require_societe
@require_permission("voir_paiements")
def list_payments_route():
    payments = payment_service.list_payments(
        g.identity,
        kind=request.args.get("kind") or None,
        document_id=request.args.get("document_id", type=int),
        mode=request.args.get("mode") or None,
    )
    return jsonify({
        "items": [p.to_dict() for p in payments],
        "count": len(payments),
        "total_cents": sum(p.amount_cents for p in payments),
    })


@payments_bp.get("/summary/<kind>/<int:document_id>")
@require_auth
@require_societe
@require_permission("voir_paiements")
def payment_summary_route(kind: str, document_id: int):
    return jsonify(payment_service.summary_for(g.identity, kind, document_id))


@payments_bp.post("")
@require_auth
@require_societe
@require_permission("ajouter_paiement")
def add_payment_route():
    """
    Request body:
    {
        "kind": "sale",
        "document_id": 12,
        "amount_cents": 2500,
        "mode": "Espèces",
        "date": "2024-03-06",
        "reference": "..."
    }
    """
    data = request.get_json(silent=True) or {}
    payment = payment_service.add_payment(g.identity, data.get("kind"), data.get("document_id"), data)
    return jsonify(payment.to_dict()), 201


@payments_bp.put("/<int:payment_id>")
@require_auth
@require_societe
@require_permission("modifier_paiement")
def update_payment_route(payment_id: int):
    data = request.get_json(silent=True) or {}
    return jsonify(payment_service.update_payment(g.identity, payment_id, data).to_dict())


@payments_bp.delete("/<int:payment_id>")
@require_auth
@require_societe
@require_permission("supprimer_paiement")
def delete_payment_route(payment_id: int):
    payment_service.delete_payment(g.identity, payment_id)
    return jsonify({"message": "Paiement supprimé"})
