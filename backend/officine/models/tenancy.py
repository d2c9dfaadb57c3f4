from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z


class Societe(db.Model):
    """
    Multi-tenant root: every pharmacy is a Societe.

    All purchases, sales, stock, documents, payments and invitations carry
    societe_id. No data may cross societe boundaries.

    The owner (owner_user_id) is the user who registered the company. The
    invitation_code is the short join code shown on the invitations screen;
    it is regenerated on demand by the owner.
    """
    __tablename__ = "societes"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(255), nullable=False)
    address = db.Column(db.String(255), nullable=True)
    phone = db.Column(db.String(64), nullable=True)
    email = db.Column(db.String(255), nullable=True)

    # No FK: users.societe_id already references societes
    owner_user_id = db.Column(db.Integer, nullable=True, index=True)
    invitation_code = db.Column(db.String(6), nullable=True, unique=True, index=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    def __repr__(self) -> str:
        return f"<Societe id={self.id} name={self.name!r}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "address": self.address,
            "phone": self.phone,
            "email": self.email,
            "owner_user_id": self.owner_user_id,
            "invitation_code": self.invitation_code,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


class SocieteSettings(db.Model):
    """
    Per-societe settings (parametres): print header/footer, stamp,
    legal identifiers and stock management thresholds.
    """
    __tablename__ = "societe_settings"
    __table_args__ = (
        db.UniqueConstraint("societe_id", name="uq_societe_settings_societe"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    societe_id = db.Column(db.Integer, db.ForeignKey("societes.id"), nullable=False, index=True)

    # Print
    header_text = db.Column(db.Text, nullable=True)
    footer_text = db.Column(db.Text, nullable=True)
    stamp_type = db.Column(db.String(16), nullable=False, default="texte")  # texte | image
    stamp_text = db.Column(db.String(255), nullable=True, default="Cachet Société")

    # Legal identifiers shown on invoices
    rc = db.Column(db.String(64), nullable=True)
    ice = db.Column(db.String(64), nullable=True)
    tax_id = db.Column(db.String(64), nullable=True)  # "IF"
    cnss = db.Column(db.String(64), nullable=True)

    # Management
    global_alert_threshold = db.Column(db.Integer, nullable=False, default=10)
    expiry_alert_days = db.Column(db.Integer, nullable=False, default=90)
    sales_vat_rate = db.Column(db.Integer, nullable=False, default=0)  # percent
    multi_lot_enabled = db.Column(db.Boolean, nullable=False, default=True)

    updated_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    societe = db.relationship("Societe", backref=db.backref("settings", uselist=False, lazy=True))

    def to_dict(self) -> dict:
        return {
            "societe_id": self.societe_id,
            "header_text": self.header_text,
            "footer_text": self.footer_text,
            "stamp_type": self.stamp_type,
            "stamp_text": self.stamp_text,
            "rc": self.rc,
            "ice": self.ice,
            "tax_id": self.tax_id,
            "cnss": self.cnss,
            "global_alert_threshold": self.global_alert_threshold,
            "expiry_alert_days": self.expiry_alert_days,
            "sales_vat_rate": self.sales_vat_rate,
            "multi_lot_enabled": self.multi_lot_enabled,
            "updated_by_user_id": self.updated_by_user_id,
            "updated_at": to_utc_z(self.updated_at),
        }
