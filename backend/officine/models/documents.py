from __future__ import annotations

from ..extensions import db
from ..services import totals
from ..time_utils import to_iso_date, to_utc_z


# Sales grouped into an invoice ("facture groupée")
document_sales = db.Table(
    "document_sales",
    db.Column("document_id", db.Integer, db.ForeignKey("documents.id"), primary_key=True),
    db.Column("sale_id", db.Integer, db.ForeignKey("sales.id"), primary_key=True),
)


class Purchase(db.Model):
    """
    Purchase (achat) from a supplier.

    Saving a purchase restocks every line; deleting or editing it reverses
    the original quantities first. payment_status and paid_cents are written
    back by the payment service after every payment change.
    """
    __tablename__ = "purchases"
    __table_args__ = (
        db.Index("ix_purchases_societe_date", "societe_id", "purchase_date"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    societe_id = db.Column(db.Integer, db.ForeignKey("societes.id"), nullable=False, index=True)

    supplier = db.Column(db.String(255), nullable=False)
    purchase_date = db.Column(db.Date, nullable=False)
    global_discount_cents = db.Column(db.Integer, nullable=False, default=0)
    notes = db.Column(db.Text, nullable=True)

    payment_status = db.Column(db.String(16), nullable=False, default="impayé")
    paid_cents = db.Column(db.Integer, nullable=False, default=0)

    created_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    lines = db.relationship(
        "PurchaseLine",
        backref="purchase",
        lazy=True,
        cascade="all, delete-orphan",
        order_by="PurchaseLine.id",
    )

    @property
    def total_cents(self) -> int:
        return totals.document_total(self.lines, self.global_discount_cents)

    def to_dict(self, include_lines: bool = True) -> dict:
        data = {
            "id": self.id,
            "societe_id": self.societe_id,
            "supplier": self.supplier,
            "date": to_iso_date(self.purchase_date),
            "global_discount_cents": self.global_discount_cents,
            "notes": self.notes,
            "total_cents": self.total_cents,
            "paid_cents": self.paid_cents,
            "balance_cents": totals.balance(self.total_cents, self.paid_cents),
            "payment_status": self.payment_status,
            "created_by_user_id": self.created_by_user_id,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
        if include_lines:
            data["lines"] = [line.to_dict() for line in self.lines]
        return data


class PurchaseLine(db.Model):
    __tablename__ = "purchase_lines"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    purchase_id = db.Column(db.Integer, db.ForeignKey("purchases.id"), nullable=False, index=True)

    product_name = db.Column(db.String(255), nullable=False)
    quantity = db.Column(db.Integer, nullable=False)
    unit_price_cents = db.Column(db.Integer, nullable=False, default=0)
    sale_price_cents = db.Column(db.Integer, nullable=True)
    discount_cents = db.Column(db.Integer, nullable=False, default=0)
    expiry_date = db.Column(db.Date, nullable=True)
    lot_number = db.Column(db.String(64), nullable=True)
    supplier = db.Column(db.String(255), nullable=True)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "product_name": self.product_name,
            "quantity": self.quantity,
            "unit_price_cents": self.unit_price_cents,
            "sale_price_cents": self.sale_price_cents,
            "discount_cents": self.discount_cents,
            "line_total_cents": totals.line_total(self.unit_price_cents, self.quantity, self.discount_cents),
            "expiry_date": to_iso_date(self.expiry_date),
            "lot_number": self.lot_number,
            "supplier": self.supplier,
        }


class Sale(db.Model):
    """
    Sale (vente) to a client.

    Saving a sale decrements stock (the chosen lot when stock_lot_id is set,
    the traditional item otherwise); deleting or editing it adds the
    original quantities back.
    """
    __tablename__ = "sales"
    __table_args__ = (
        db.Index("ix_sales_societe_date", "societe_id", "sale_date"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    societe_id = db.Column(db.Integer, db.ForeignKey("societes.id"), nullable=False, index=True)

    client = db.Column(db.String(255), nullable=False, default="Client comptoir")
    sale_date = db.Column(db.Date, nullable=False)
    global_discount_cents = db.Column(db.Integer, nullable=False, default=0)
    payment_mode = db.Column(db.String(32), nullable=True)
    notes = db.Column(db.Text, nullable=True)

    payment_status = db.Column(db.String(16), nullable=False, default="impayé")
    paid_cents = db.Column(db.Integer, nullable=False, default=0)

    created_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    lines = db.relationship(
        "SaleLine",
        backref="sale",
        lazy=True,
        cascade="all, delete-orphan",
        order_by="SaleLine.id",
    )

    @property
    def total_cents(self) -> int:
        return totals.document_total(self.lines, self.global_discount_cents)

    def to_dict(self, include_lines: bool = True) -> dict:
        data = {
            "id": self.id,
            "societe_id": self.societe_id,
            "client": self.client,
            "date": to_iso_date(self.sale_date),
            "global_discount_cents": self.global_discount_cents,
            "payment_mode": self.payment_mode,
            "notes": self.notes,
            "total_cents": self.total_cents,
            "paid_cents": self.paid_cents,
            "balance_cents": totals.balance(self.total_cents, self.paid_cents),
            "payment_status": self.payment_status,
            "created_by_user_id": self.created_by_user_id,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
        if include_lines:
            data["lines"] = [line.to_dict() for line in self.lines]
        return data


class SaleLine(db.Model):
    __tablename__ = "sale_lines"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    sale_id = db.Column(db.Integer, db.ForeignKey("sales.id"), nullable=False, index=True)

    product_name = db.Column(db.String(255), nullable=False)
    quantity = db.Column(db.Integer, nullable=False)
    unit_price_cents = db.Column(db.Integer, nullable=False, default=0)
    discount_cents = db.Column(db.Integer, nullable=False, default=0)

    # Sold from a specific lot (multi-lot mode)
    stock_lot_id = db.Column(db.Integer, db.ForeignKey("stock_lots.id", ondelete="SET NULL"), nullable=True, index=True)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "product_name": self.product_name,
            "quantity": self.quantity,
            "unit_price_cents": self.unit_price_cents,
            "discount_cents": self.discount_cents,
            "line_total_cents": totals.line_total(self.unit_price_cents, self.quantity, self.discount_cents),
            "stock_lot_id": self.stock_lot_id,
        }


class Document(db.Model):
    """
    Quote (DEV) or invoice (FACT).

    number is PREFIX + zero-padded sequence, unique per (societe, doc_type).
    A grouped invoice links the sales it was built from; a sale can belong
    to at most one non-cancelled invoice.
    """
    __tablename__ = "documents"
    __table_args__ = (
        db.UniqueConstraint("societe_id", "doc_type", "number", name="uq_documents_societe_type_number"),
        db.Index("ix_documents_societe_type", "societe_id", "doc_type"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    societe_id = db.Column(db.Integer, db.ForeignKey("societes.id"), nullable=False, index=True)

    doc_type = db.Column(db.String(8), nullable=False)  # FACT | DEV
    number = db.Column(db.String(32), nullable=False)
    client = db.Column(db.String(255), nullable=False)
    document_date = db.Column(db.Date, nullable=False)
    global_discount_cents = db.Column(db.Integer, nullable=False, default=0)
    notes = db.Column(db.Text, nullable=True)

    is_cancelled = db.Column(db.Boolean, nullable=False, default=False)
    cancelled_at = db.Column(db.DateTime(timezone=True), nullable=True)

    payment_status = db.Column(db.String(16), nullable=False, default="impayé")
    paid_cents = db.Column(db.Integer, nullable=False, default=0)

    created_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    lines = db.relationship(
        "DocumentLine",
        backref="document",
        lazy=True,
        cascade="all, delete-orphan",
        order_by="DocumentLine.id",
    )
    sales = db.relationship("Sale", secondary=document_sales, lazy=True, backref=db.backref("documents", lazy=True))

    @property
    def total_cents(self) -> int:
        return totals.document_total(self.lines, self.global_discount_cents)

    def to_dict(self, include_lines: bool = True) -> dict:
        data = {
            "id": self.id,
            "societe_id": self.societe_id,
            "doc_type": self.doc_type,
            "number": self.number,
            "client": self.client,
            "date": to_iso_date(self.document_date),
            "global_discount_cents": self.global_discount_cents,
            "notes": self.notes,
            "is_cancelled": self.is_cancelled,
            "cancelled_at": to_utc_z(self.cancelled_at) if self.cancelled_at else None,
            "total_cents": self.total_cents,
            "paid_cents": self.paid_cents,
            "balance_cents": totals.balance(self.total_cents, self.paid_cents),
            "payment_status": self.payment_status,
            "sale_ids": [sale.id for sale in self.sales],
            "created_by_user_id": self.created_by_user_id,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
        if include_lines:
            data["lines"] = [line.to_dict() for line in self.lines]
        return data


class DocumentLine(db.Model):
    __tablename__ = "document_lines"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    document_id = db.Column(db.Integer, db.ForeignKey("documents.id"), nullable=False, index=True)

    product_name = db.Column(db.String(255), nullable=False)
    quantity = db.Column(db.Integer, nullable=False)
    unit_price_cents = db.Column(db.Integer, nullable=False, default=0)
    discount_cents = db.Column(db.Integer, nullable=False, default=0)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "product_name": self.product_name,
            "quantity": self.quantity,
            "unit_price_cents": self.unit_price_cents,
            "discount_cents": self.discount_cents,
            "line_total_cents": totals.line_total(self.unit_price_cents, self.quantity, self.discount_cents),
        }
