# Overview: Flask API routes for stock items and lots.

"""
Stock Routes

Items are the traditional per-product quantities; lots carry a lot
number, an expiry and their own quantity (FEFO order when listed).
Updating an item accepts version_id and answers 409 when it is stale.
"""

from flask import Blueprint, request, jsonify, g

from ..decorators import require_auth, require_permission, require_societe
from ..services import stock_service


stock_bp = Blueprint("stock", __name__, url_prefix="/api/stock")


def _days_arg(name: str) -> int | None:
    return request.args.get(name, type=int)


@stock_bp.get("/items")
@require_auth
@require_societe
@require_permission("voir_stock")
def list_items_route():
    """
    Query parameters:
    - search: product name substring
    - low_stock: true to keep 0 < quantity <= threshold
    - out_of_stock: true to keep quantity <= 0
    - expiring_within_days: N
    """
    items = stock_service.list_items(
        g.identity,
        search=request.args.get("search"),
        low_stock_only=request.args.get("low_stock", "false").lower() == "true",
        out_of_stock_only=request.args.get("out_of_stock", "false").lower() == "true",
        expiring_within_days=_days_arg("expiring_within_days"),
    )
    return jsonify({"items": [i.to_dict() for i in items], "count": len(items)})


@stock_bp.get("/items/<int:item_id>")
@require_auth
@require_societe
@require_permission("voir_stock")
def get_item_route(item_id: int):
    return jsonify(stock_service.get_item(g.identity, item_id).to_dict())


@stock_bp.post("/items")
@require_auth
@require_societe
@require_permission("ajouter_stock")
def create_item_route():
    data = request.get_json(silent=True) or {}
    return jsonify(stock_service.create_item(g.identity, data).to_dict()), 201


@stock_bp.put("/items/<int:item_id>")
@require_auth
@require_societe
@require_permission("modifier_stock")
def update_item_route(item_id: int):
    data = request.get_json(silent=True) or {}
    return jsonify(stock_service.update_item(g.identity, item_id, data).to_dict())


@stock_bp.delete("/items/<int:item_id>")
@require_auth
@require_societe
@require_permission("supprimer_stock")
def delete_item_route(item_id: int):
    stock_service.delete_item(g.identity, item_id)
    return jsonify({"message": "Article supprimé"})


@stock_bp.get("/lots")
@require_auth
@require_societe
@require_permission("voir_stock")
def list_lots_route():
    lots = stock_service.list_lots(
        g.identity,
        product_name=request.args.get("product_name"),
        active_only=request.args.get("active", "false").lower() == "true",
        expiring_within_days=_days_arg("expiring_within_days"),
    )
    return jsonify({"items": [lot.to_dict() for lot in lots], "count": len(lots)})


@stock_bp.post("/lots")
@require_auth
@require_societe
@require_permission("ajouter_stock")
def create_lot_route():
    data = request.get_json(silent=True) or {}
    return jsonify(stock_service.create_lot(g.identity, data).to_dict()), 201


@stock_bp.put("/lots/<int:lot_id>")
@require_auth
@require_societe
@require_permission("modifier_stock")
def update_lot_route(lot_id: int):
    data = request.get_json(silent=True) or {}
    return jsonify(stock_service.update_lot(g.identity, lot_id, data).to_dict())


@stock_bp.delete("/lots/<int:lot_id>")
@require_auth
@require_societe
@require_permission("supprimer_stock")
def delete_lot_route(lot_id: int):
    stock_service.delete_lot(g.identity, lot_id)
    return jsonify({"message": "Lot supprimé"})


@stock_bp.post("/sync")
@require_auth
@require_societe
@require_permission("modifier_stock")
def sync_route():
    """Body: {"product_name": "..."}; quantity becomes the sum of active lots."""
    data = request.get_json(silent=True) or {}
    item = stock_service.sync_from_lots(g.identity, data.get("product_name"))
    return jsonify(item.to_dict())
