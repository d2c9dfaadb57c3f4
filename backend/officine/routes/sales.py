# Overview: Flask API routes for sales (ventes); saving decrements stock, deleting restores it.

from flask import Blueprint, Response, request, jsonify, g

from ..decorators import require_auth, require_permission, require_societe
from ..services import print_service, sales_service
from ..validation import optional_date


sales_bp = Blueprint("sales", __name__, url_prefix="/api/sales")


@sales_bp.get("")
@require_auth
@require_societe
@require_permission("voir_ventes")
def list_sales_route():
    sales = sales_service.list_sales(
        g.identity,
        client=request.args.get("client"),
        date_from=optional_date("date_from", request.args.get("date_from")),
        date_to=optional_date("date_to", request.args.get("date_to")),
        payment_status=request.args.get("payment_status") or None,
    )
    return jsonify({"items": [s.to_dict(include_lines=False) for s in sales], "count": len(sales)})


@sales_bp.get("/<int:sale_id>")
@require_auth
@require_societe
@require_permission("voir_ventes")
def get_sale_route(sale_id: int):
    return jsonify(sales_service.get_sale(g.identity, sale_id).to_dict())


@sales_bp.post("")
@require_auth
@require_societe
@require_permission("ajouter_vente")
def create_sale_route():
    """
    Request body:
    {
        "client": "Client comptoir",
        "date": "2024-03-02",
        "lines": [{"product_name": "Doliprane", "quantity": 2,
                   "unit_price_cents": 1500, "stock_lot_id": 4}],
        "initial_payment": {"amount_cents": 3000, "mode": "Espèces"}   // optional
    }

    Quantities above the available stock are refused with 400 before any write.
    """
    data = request.get_json(silent=True) or {}
    sale = sales_service.create_sale(g.identity, data)
    return jsonify(sale.to_dict()), 201


@sales_bp.put("/<int:sale_id>")
@require_auth
@require_societe
@require_permission("modifier_vente")
def update_sale_route(sale_id: int):
    data = request.get_json(silent=True) or {}
    return jsonify(sales_service.update_sale(g.identity, sale_id, data).to_dict())


@sales_bp.delete("/<int:sale_id>")
@require_auth
@require_societe
@require_permission("supprimer_vente")
def delete_sale_route(sale_id: int):
    sales_service.delete_sale(g.identity, sale_id)
    return jsonify({"message": "Vente supprimée"})


@sales_bp.get("/<int:sale_id>/print")
@require_auth
@require_societe
@require_permission("imprimer_documents")
def print_sale_route(sale_id: int):
    return Response(print_service.render_sale(g.identity, sale_id), mimetype="text/html")
