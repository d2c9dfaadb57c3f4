# Overview: Flask API routes for purchases (achats); saving restocks, deleting reverses.

from flask import Blueprint, Response, request, jsonify, g

from ..decorators import require_auth, require_permission, require_societe
from ..services import print_service, purchase_service
from ..validation import optional_date


purchases_bp = Blueprint("purchases", __name__, url_prefix="/api/purchases")


@purchases_bp.get("")
@require_auth
@require_societe
@require_permission("voir_achats")
def list_purchases_route():
    """
    Query parameters:
    - supplier: substring, case-insensitive
    - date_from, date_to: YYYY-MM-DD, inclusive
    - payment_status: impayé | partiel | payé
    """
    purchases = purchase_service.list_purchases(
        g.identity,
        supplier=request.args.get("supplier"),
        date_from=optional_date("date_from", request.args.get("date_from")),
        date_to=optional_date("date_to", request.args.get("date_to")),
        payment_status=request.args.get("payment_status") or None,
    )
    return jsonify({
        "items": [p.to_dict(include_lines=False) for p in purchases],
        "count": len(purchases),
    })


@purchases_bp.get("/<int:purchase_id>")
@require_auth
@require_societe
@require_permission("voir_achats")
def get_purchase_route(purchase_id: int):
    return jsonify(purchase_service.get_purchase(g.identity, purchase_id).to_dict())


@purchases_bp.post("")
@require_auth
@require_societe
@require_permission("ajouter_achat")
def create_purchase_route():
    """
    Request body:
    {
        "supplier": "Sothema",
        "date": "2024-03-01",
        "global_discount_cents": 0,
        "lines": [{"product_name": "Doliprane", "quantity": 10,
                   "unit_price_cents": 1200, "sale_price_cents": 1500,
                   "expiry_date": "2026-01-31", "lot_number": "L1"}],
        "initial_payment": {"amount_cents": 5000, "mode": "Espèces"}   // optional
    }
    """
    data = request.get_json(silent=True) or {}
    purchase = purchase_service.create_purchase(g.identity, data)
    return jsonify(purchase.to_dict()), 201


@purchases_bp.put("/<int:purchase_id>")
@require_auth
@require_societe
@require_permission("modifier_achat")
def update_purchase_route(purchase_id: int):
    data = request.get_json(silent=True) or {}
    purchase = purchase_service.update_purchase(g.identity, purchase_id, data)
    return jsonify(purchase.to_dict())


@purchases_bp.delete("/<int:purchase_id>")
@require_auth
@require_societe
@require_permission("supprimer_achat")
def delete_purchase_route(purchase_id: int):
    purchase_service.delete_purchase(g.identity, purchase_id)
    return jsonify({"message": "Achat supprimé"})


@purchases_bp.get("/<int:purchase_id>/print")
@require_auth
@require_societe
@require_permission("imprimer_documents")
def print_purchase_route(purchase_id: int):
    return Response(print_service.render_purchase(g.identity, purchase_id), mimetype="text/html")
