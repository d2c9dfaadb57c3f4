from __future__ import annotations

from ..extensions import db
from ..time_utils import to_iso_date, to_utc_z


class StockItem(db.Model):
    """
    Traditional stock: one row per product name per societe.

    Product identity is the trimmed, lowercased name (name_key). Purchases
    add to quantity, sales subtract from it. version_id guards concurrent
    read-modify-write cycles (optimistic locking).
    """
    __tablename__ = "stock_items"
    __table_args__ = (
        db.UniqueConstraint("societe_id", "name_key", name="uq_stock_items_societe_name"),
        db.Index("ix_stock_items_societe_name", "societe_id", "product_name"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    societe_id = db.Column(db.Integer, db.ForeignKey("societes.id"), nullable=False, index=True)

    product_name = db.Column(db.String(255), nullable=False)
    name_key = db.Column(db.String(255), nullable=False)

    quantity = db.Column(db.Integer, nullable=False, default=0)
    purchase_price_cents = db.Column(db.Integer, nullable=False, default=0)
    sale_price_cents = db.Column(db.Integer, nullable=False, default=0)
    expiry_date = db.Column(db.Date, nullable=True)
    threshold = db.Column(db.Integer, nullable=False, default=5)

    version_id = db.Column(db.Integer, nullable=False, default=1)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    __mapper_args__ = {"version_id_col": version_id}

    def __repr__(self) -> str:
        return f"<StockItem id={self.id} name={self.product_name!r} qty={self.quantity}>"

    @property
    def is_out_of_stock(self) -> bool:
        return (self.quantity or 0) <= 0

    @property
    def is_low_stock(self) -> bool:
        return 0 < (self.quantity or 0) <= (self.threshold or 0)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "societe_id": self.societe_id,
            "product_name": self.product_name,
            "quantity": self.quantity,
            "purchase_price_cents": self.purchase_price_cents,
            "sale_price_cents": self.sale_price_cents,
            "expiry_date": to_iso_date(self.expiry_date),
            "threshold": self.threshold,
            "is_low_stock": self.is_low_stock,
            "is_out_of_stock": self.is_out_of_stock,
            "version_id": self.version_id,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


class StockLot(db.Model):
    """
    Multi-lot stock entry: one row per received lot.

    Lots created by a purchase carry purchase_id and are removed when that
    purchase is deleted or edited. status is "actif" while quantity > 0,
    "epuise" once sold out.
    """
    __tablename__ = "stock_lots"
    __table_args__ = (
        db.Index("ix_stock_lots_societe_name", "societe_id", "name_key"),
        db.Index("ix_stock_lots_societe_expiry", "societe_id", "expiry_date"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    societe_id = db.Column(db.Integer, db.ForeignKey("societes.id"), nullable=False, index=True)

    product_name = db.Column(db.String(255), nullable=False)
    name_key = db.Column(db.String(255), nullable=False)
    lot_number = db.Column(db.String(64), nullable=False)
    supplier = db.Column(db.String(255), nullable=True)

    quantity = db.Column(db.Integer, nullable=False, default=0)
    initial_quantity = db.Column(db.Integer, nullable=False, default=0)
    purchase_price_cents = db.Column(db.Integer, nullable=False, default=0)
    sale_price_cents = db.Column(db.Integer, nullable=False, default=0)
    expiry_date = db.Column(db.Date, nullable=True)
    received_on = db.Column(db.Date, nullable=True)

    purchase_id = db.Column(db.Integer, db.ForeignKey("purchases.id"), nullable=True, index=True)
    status = db.Column(db.String(16), nullable=False, default="actif")

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "societe_id": self.societe_id,
            "product_name": self.product_name,
            "lot_number": self.lot_number,
            "supplier": self.supplier,
            "quantity": self.quantity,
            "initial_quantity": self.initial_quantity,
            "purchase_price_cents": self.purchase_price_cents,
            "sale_price_cents": self.sale_price_cents,
            "expiry_date": to_iso_date(self.expiry_date),
            "received_on": to_iso_date(self.received_on),
            "purchase_id": self.purchase_id,
            "status": self.status,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
