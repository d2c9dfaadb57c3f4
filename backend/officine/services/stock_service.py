# Overview: Stock items (traditional) and stock lots (multi-lot); restock, decrement and reversal.

"""
Stock invariants

- Product identity is the trimmed, case-insensitive name (name_key).
- Traditional quantities never go below zero.
- Low stock: 0 < quantity <= threshold. Out of stock: quantity <= 0.
- Lots created by a purchase carry purchase_id and disappear with it.
- Deleting a lot clears stock_lot_id on the sale lines sold from it.
- A lot-bound sale line decrements both the lot and the traditional item.
"""

from __future__ import annotations

import time
from collections import defaultdict
from datetime import date, timedelta

from flask import current_app

from ..extensions import db
from ..models import PurchaseLine, SaleLine, StockItem, StockLot
from ..validation import (
    ModelValidationPolicy,
    ValidationError,
    ConflictError,
    enforce_rules_stock,
    validate_payload,
)
from .activity_service import record_activity
from .concurrency import lock_for_update, run_with_retry
from .policy_service import require
from .session_service import Identity
from .tenant_service import get_scoped_or_404, require_societe, scoped_query


LOT_STATUS_ACTIVE = "actif"
LOT_STATUS_EMPTY = "epuise"


ITEM_POLICY = ModelValidationPolicy(
    writable_fields={
        "product_name",
        "quantity",
        "purchase_price_cents",
        "sale_price_cents",
        "expiry_date",
        "threshold",
    },
    required_on_create={"product_name"},
)

LOT_POLICY = ModelValidationPolicy(
    writable_fields={
        "product_name",
        "lot_number",
        "supplier",
        "quantity",
        "purchase_price_cents",
        "sale_price_cents",
        "expiry_date",
        "received_on",
    },
    required_on_create={"product_name", "quantity"},
)


def name_key(name: str | None) -> str:
    return (name or "").strip().lower()


def auto_lot_number() -> str:
    """LOT + 6 digits taken from the current timestamp."""
    return f"LOT{int(time.time() * 1000) % 1_000_000:06d}"


def default_threshold() -> int:
    return current_app.config.get("DEFAULT_STOCK_THRESHOLD", 5)


def find_item(societe_id: int, product_name: str, *, for_update: bool = False) -> StockItem | None:
    q = scoped_query(StockItem, societe_id).filter(StockItem.name_key == name_key(product_name))
    if for_update:
        q = lock_for_update(q)
    return q.first()


def _refresh_lot_status(lot: StockLot) -> None:
    lot.status = LOT_STATUS_ACTIVE if lot.quantity > 0 else LOT_STATUS_EMPTY


# -- Purchase side (no commit: the purchase service owns the transaction) --

def restock_from_purchase_line(societe_id: int, line: PurchaseLine, *, purchase_id: int, received_on: date | None, supplier: str | None) -> StockLot:
    """
    Add a purchase line to stock.

    Existing item: quantity += line quantity, purchase price and expiry
    overwritten, sale price overwritten when given. Otherwise a new item
    with the default threshold. A lot linked to the purchase is always
    created.
    """
    item = find_item(societe_id, line.product_name, for_update=True)
    if item is None:
        item = StockItem(
            societe_id=societe_id,
            product_name=line.product_name.strip(),
            name_key=name_key(line.product_name),
            quantity=line.quantity,
            purchase_price_cents=line.unit_price_cents or 0,
            sale_price_cents=line.sale_price_cents or 0,
            expiry_date=line.expiry_date,
            threshold=default_threshold(),
        )
        db.session.add(item)
    else:
        item.quantity = (item.quantity or 0) + line.quantity
        item.purchase_price_cents = line.unit_price_cents or 0
        if line.expiry_date is not None:
            item.expiry_date = line.expiry_date
        if line.sale_price_cents is not None:
            item.sale_price_cents = line.sale_price_cents

    if not line.lot_number:
        line.lot_number = auto_lot_number()

    lot = StockLot(
        societe_id=societe_id,
        product_name=line.product_name.strip(),
        name_key=name_key(line.product_name),
        lot_number=line.lot_number,
        supplier=line.supplier or supplier,
        quantity=line.quantity,
        initial_quantity=line.quantity,
        purchase_price_cents=line.unit_price_cents or 0,
        sale_price_cents=line.sale_price_cents if line.sale_price_cents is not None else item.sale_price_cents,
        expiry_date=line.expiry_date,
        received_on=received_on,
        purchase_id=purchase_id,
        status=LOT_STATUS_ACTIVE,
    )
    db.session.add(lot)
    return lot


def reverse_purchase(societe_id: int, purchase) -> None:
    """
    Undo a purchase's restock: subtract each original line quantity from
    its item (floored at zero) and drop the lots the purchase created.
    """
    for line in purchase.lines:
        item = find_item(societe_id, line.product_name, for_update=True)
        if item is not None:
            item.quantity = max(0, (item.quantity or 0) - line.quantity)

    lots = scoped_query(StockLot, societe_id).filter(StockLot.purchase_id == purchase.id)
    detach_sale_lines([lot_id for (lot_id,) in lots.with_entities(StockLot.id)])
    lots.delete(synchronize_session=False)


def detach_sale_lines(lot_ids: list[int]) -> int:
    """
    Clear stock_lot_id on sale lines sold from lots about to be deleted.

    The sale keeps its product, quantity and price; only the lot link goes.
    """
    if not lot_ids:
        return 0
    return (
        db.session.query(SaleLine)
        .filter(SaleLine.stock_lot_id.in_(lot_ids))
        .update({SaleLine.stock_lot_id: None}, synchronize_session="fetch")
    )


# -- Sale side (no commit: the sales service owns the transaction) --

def check_sale_availability(societe_id: int, lines: list[dict], *, user_id: int | None = None) -> None:
    """
    Raise ValidationError when any requested quantity exceeds what is
    available. Lines sold from the same lot or product are summed.

    Runs before any write.
    """
    by_lot: dict[int, int] = defaultdict(int)
    by_item: dict[str, int] = defaultdict(int)
    names: dict[str, str] = {}

    for line in lines:
        if line.get("stock_lot_id"):
            by_lot[line["stock_lot_id"]] += line["quantity"]
        else:
            key = name_key(line["product_name"])
            by_item[key] += line["quantity"]
            names[key] = line["product_name"]

    for lot_id, requested in by_lot.items():
        lot = get_scoped_or_404(StockLot, lot_id, societe_id, user_id=user_id)
        if requested > lot.quantity:
            raise ValidationError(
                f"Stock insuffisant pour {lot.product_name} (lot {lot.lot_number}) : "
                f"{lot.quantity} disponible(s), {requested} demandé(s)"
            )

    for key, requested in by_item.items():
        item = find_item(societe_id, key)
        available = item.quantity if item is not None else 0
        if requested > available:
            raise ValidationError(
                f"Stock insuffisant pour {names[key]} : {available} disponible(s), {requested} demandé(s)"
            )


def apply_sale_line(societe_id: int, line: SaleLine, sign: int) -> None:
    """
    sign=-1 decrements stock for a saved sale line, sign=+1 restores it.

    Traditional quantities are floored at zero.
    """
    delta = sign * line.quantity

    if line.stock_lot_id:
        lot = db.session.get(StockLot, line.stock_lot_id)
        if lot is not None and lot.societe_id == societe_id:
            lot.quantity = max(0, lot.quantity + delta)
            _refresh_lot_status(lot)

    item = find_item(societe_id, line.product_name, for_update=True)
    if item is not None:
        item.quantity = max(0, (item.quantity or 0) + delta)


# -- Stock screen --

def list_items(
    identity: Identity,
    *,
    search: str | None = None,
    low_stock_only: bool = False,
    out_of_stock_only: bool = False,
    expiring_within_days: int | None = None,
) -> list[StockItem]:
    require(identity, "voir_stock")
    q = scoped_query(StockItem, identity.societe_id)
    if search:
        q = q.filter(StockItem.name_key.contains(name_key(search)))
    if low_stock_only:
        q = q.filter(StockItem.quantity > 0, StockItem.quantity <= StockItem.threshold)
    if out_of_stock_only:
        q = q.filter(StockItem.quantity <= 0)
    if expiring_within_days is not None:
        limit = date.today() + timedelta(days=expiring_within_days)
        q = q.filter(StockItem.expiry_date.isnot(None), StockItem.expiry_date <= limit)
    return q.order_by(StockItem.product_name).all()


def get_item(identity: Identity, item_id: int) -> StockItem:
    require(identity, "voir_stock")
    return get_scoped_or_404(StockItem, item_id, identity.societe_id, user_id=identity.user_id)


def create_item(identity: Identity, payload: dict) -> StockItem:
    require(identity, "ajouter_stock")
    societe_id = require_societe(identity)

    patch = validate_payload(model=StockItem, payload=payload, policy=ITEM_POLICY, partial=False)
    enforce_rules_stock(patch)

    if find_item(societe_id, patch["product_name"]) is not None:
        raise ConflictError(f"Le produit {patch['product_name']} existe déjà en stock")

    patch.setdefault("threshold", default_threshold())
    item = StockItem(societe_id=societe_id, name_key=name_key(patch["product_name"]), **patch)
    db.session.add(item)
    db.session.flush()

    record_activity(
        identity,
        activity_type="stock",
        action="creation",
        entity_id=item.id,
        details={"product_name": item.product_name, "quantity": item.quantity},
    )
    db.session.commit()
    return item


def update_item(identity: Identity, item_id: int, payload: dict) -> StockItem:
    require(identity, "modifier_stock")
    item = get_scoped_or_404(StockItem, item_id, identity.societe_id, user_id=identity.user_id)

    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")
    payload = dict(payload)
    expected_version = payload.pop("version_id", None)
    patch = validate_payload(model=StockItem, payload=payload, policy=ITEM_POLICY, partial=True)
    enforce_rules_stock(patch)

    if expected_version is not None and int(expected_version) != item.version_id:
        raise ConflictError("Stock item was modified by someone else; reload and retry")

    if "product_name" in patch:
        new_key = name_key(patch["product_name"])
        other = find_item(identity.societe_id, new_key)
        if other is not None and other.id != item.id:
            raise ConflictError(f"Le produit {patch['product_name']} existe déjà en stock")
        item.name_key = new_key

    for k, v in patch.items():
        setattr(item, k, v)

    record_activity(identity, activity_type="stock", action="modification", entity_id=item.id, details=patch)
    db.session.commit()
    return item


def delete_item(identity: Identity, item_id: int) -> None:
    require(identity, "supprimer_stock")
    item = get_scoped_or_404(StockItem, item_id, identity.societe_id, user_id=identity.user_id)
    record_activity(
        identity,
        activity_type="stock",
        action="suppression",
        entity_id=item.id,
        details={"product_name": item.product_name, "quantity": item.quantity},
    )
    db.session.delete(item)
    db.session.commit()


def list_lots(
    identity: Identity,
    *,
    product_name: str | None = None,
    active_only: bool = False,
    expiring_within_days: int | None = None,
) -> list[StockLot]:
    require(identity, "voir_stock")
    q = scoped_query(StockLot, identity.societe_id)
    if product_name:
        q = q.filter(StockLot.name_key == name_key(product_name))
    if active_only:
        q = q.filter(StockLot.quantity > 0)
    if expiring_within_days is not None:
        limit = date.today() + timedelta(days=expiring_within_days)
        q = q.filter(StockLot.expiry_date.isnot(None), StockLot.expiry_date <= limit)
    # FEFO: earliest expiry first
    return q.order_by(StockLot.expiry_date.is_(None), StockLot.expiry_date, StockLot.id).all()


def create_lot(identity: Identity, payload: dict) -> StockLot:
    """Manual lot entry (not tied to a purchase)."""
    require(identity, "ajouter_stock")
    societe_id = require_societe(identity)

    patch = validate_payload(model=StockLot, payload=payload, policy=LOT_POLICY, partial=False)
    enforce_rules_stock(patch)
    if patch["quantity"] <= 0:
        raise ValidationError("quantity must be > 0")
    patch["lot_number"] = patch.get("lot_number") or auto_lot_number()

    lot = StockLot(
        societe_id=societe_id,
        name_key=name_key(patch["product_name"]),
        initial_quantity=patch["quantity"],
        status=LOT_STATUS_ACTIVE,
        **patch,
    )
    db.session.add(lot)
    db.session.flush()

    record_activity(
        identity,
        activity_type="stock",
        action="creation_lot",
        entity_id=lot.id,
        details={"product_name": lot.product_name, "lot_number": lot.lot_number, "quantity": lot.quantity},
    )
    db.session.commit()
    return lot


def update_lot(identity: Identity, lot_id: int, payload: dict) -> StockLot:
    require(identity, "modifier_stock")
    lot = get_scoped_or_404(StockLot, lot_id, identity.societe_id, user_id=identity.user_id)

    patch = validate_payload(model=StockLot, payload=payload, policy=LOT_POLICY, partial=True)
    enforce_rules_stock(patch)
    if "product_name" in patch:
        lot.name_key = name_key(patch["product_name"])
    for k, v in patch.items():
        setattr(lot, k, v)
    _refresh_lot_status(lot)

    record_activity(identity, activity_type="stock", action="modification_lot", entity_id=lot.id, details=patch)
    db.session.commit()
    return lot


def delete_lot(identity: Identity, lot_id: int) -> None:
    require(identity, "supprimer_stock")
    lot = get_scoped_or_404(StockLot, lot_id, identity.societe_id, user_id=identity.user_id)
    record_activity(
        identity,
        activity_type="stock",
        action="suppression_lot",
        entity_id=lot.id,
        details={"product_name": lot.product_name, "lot_number": lot.lot_number},
    )
    detach_sale_lines([lot.id])
    db.session.delete(lot)
    db.session.commit()


def sync_from_lots(identity: Identity, product_name: str) -> StockItem:
    """
    Set the traditional quantity to the sum of active lot quantities.

    Creates the item when lots exist without one.
    """
    require(identity, "modifier_stock")
    societe_id = require_societe(identity)
    key = name_key(product_name)
    if not key:
        raise ValidationError("product_name is required")

    def _op():
        lots = scoped_query(StockLot, societe_id).filter(
            StockLot.name_key == key,
            StockLot.quantity > 0,
        ).all()
        total = sum(lot.quantity for lot in lots)

        item = find_item(societe_id, key, for_update=True)
        if item is None:
            if not lots:
                raise ValidationError(f"Aucun lot pour {product_name}")
            first = lots[0]
            item = StockItem(
                societe_id=societe_id,
                product_name=first.product_name,
                name_key=key,
                quantity=total,
                purchase_price_cents=first.purchase_price_cents,
                sale_price_cents=first.sale_price_cents,
                expiry_date=min((lot.expiry_date for lot in lots if lot.expiry_date), default=None),
                threshold=default_threshold(),
            )
            db.session.add(item)
        else:
            item.quantity = total

        record_activity(
            identity,
            activity_type="stock",
            action="synchronisation",
            details={"product_name": product_name, "quantity": total},
        )
        db.session.commit()
        return item

    return run_with_retry(_op)
