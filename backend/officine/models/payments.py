from __future__ import annotations

from ..extensions import db
from ..time_utils import to_iso_date, to_utc_z


class Payment(db.Model):
    """
    Payment recorded against a purchase, a sale or a document.

    (kind, document_id) identifies the paid record; there is no FK because
    the target table depends on kind. Cumulative payments for one record
    never exceed its total.
    """
    __tablename__ = "payments"
    __table_args__ = (
        db.Index("ix_payments_societe_target", "societe_id", "kind", "document_id"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    societe_id = db.Column(db.Integer, db.ForeignKey("societes.id"), nullable=False, index=True)

    kind = db.Column(db.String(16), nullable=False)  # purchase | sale | document
    document_id = db.Column(db.Integer, nullable=False)

    amount_cents = db.Column(db.Integer, nullable=False)
    mode = db.Column(db.String(32), nullable=False, default="Espèces")
    paid_on = db.Column(db.Date, nullable=False)
    reference = db.Column(db.String(128), nullable=True)

    created_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
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
            "kind": self.kind,
            "document_id": self.document_id,
            "amount_cents": self.amount_cents,
            "mode": self.mode,
            "paid_on": to_iso_date(self.paid_on),
            "reference": self.reference,
            "created_by_user_id": self.created_by_user_id,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
