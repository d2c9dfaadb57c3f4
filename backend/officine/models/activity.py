from __future__ import annotations

import json

from ..extensions import db
from ..time_utils import to_utc_z


class Activity(db.Model):
    """
    Append-only business journal of a societe.

    Written in the same transaction as the action it records. details is a
    small JSON object (stored as text); it never replaces domain state.
    """
    __tablename__ = "activities"
    __table_args__ = (
        db.Index("ix_activities_societe_occurred", "societe_id", "occurred_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    societe_id = db.Column(db.Integer, db.ForeignKey("societes.id"), nullable=False, index=True)

    # achat, vente, stock, facture, paiement, utilisateur, invitation, parametres, societe
    activity_type = db.Column(db.String(32), nullable=False, index=True)
    action = db.Column(db.String(32), nullable=False)  # creation, modification, suppression, ...
    entity_id = db.Column(db.Integer, nullable=True)

    actor_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True, index=True)
    actor_email = db.Column(db.String(255), nullable=True)

    details = db.Column(db.Text, nullable=True)

    occurred_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), index=True)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "societe_id": self.societe_id,
            "activity_type": self.activity_type,
            "action": self.action,
            "entity_id": self.entity_id,
            "actor_user_id": self.actor_user_id,
            "actor_email": self.actor_email,
            "details": json.loads(self.details) if self.details else None,
            "occurred_at": to_utc_z(self.occurred_at),
        }
