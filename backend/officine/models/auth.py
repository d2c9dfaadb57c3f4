from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z


class User(db.Model):
    """
    User accounts for authentication and attribution.

    MULTI-TENANT: A user belongs to at most one societe (societe_id).
    societe_id is NULL between registration and joining a pharmacy
    ("awaiting invitation"); such users can only reach the join screen.

    Role is a coarse job tag: "docteur" (pharmacist) or "vendeuse" (sales
    clerk). is_owner marks the single user per societe allowed to manage
    other users. Users are never hard-deleted: is_deleted is a soft flag.
    """
    __tablename__ = "users"
    __table_args__ = (
        db.Index("ix_users_societe_id", "societe_id"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    # MULTI-TENANT: nullable while awaiting an invitation
    societe_id = db.Column(db.Integer, db.ForeignKey("societes.id"), nullable=True)

    email = db.Column(db.String(255), nullable=False, unique=True, index=True)
    display_name = db.Column(db.String(128), nullable=True)

    # Bcrypt hashed password
    password_hash = db.Column(db.String(255), nullable=False)

    role = db.Column(db.String(16), nullable=True)
    is_owner = db.Column(db.Boolean, nullable=False, default=False)
    # Extra tags granted by the owner on top of the role defaults
    custom_permissions = db.Column(db.JSON, nullable=False, default=list)

    # Account state
    is_active = db.Column(db.Boolean, nullable=False, default=True)
    is_locked = db.Column(db.Boolean, nullable=False, default=False)
    locked_at = db.Column(db.DateTime(timezone=True), nullable=True)
    locked_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    is_deleted = db.Column(db.Boolean, nullable=False, default=False)
    deleted_at = db.Column(db.DateTime(timezone=True), nullable=True)
    deleted_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)

    # No FK: invitations.used_by_user_id already references users
    created_by_invitation_id = db.Column(db.Integer, nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )
    last_login_at = db.Column(db.DateTime(timezone=True), nullable=True)

    societe = db.relationship("Societe", backref=db.backref("users", lazy=True))

    def __repr__(self) -> str:
        return f"<User id={self.id} email={self.email!r} societe_id={self.societe_id}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "societe_id": self.societe_id,
            "email": self.email,
            "display_name": self.display_name,
            "role": self.role,
            "is_owner": self.is_owner,
            "custom_permissions": sorted(self.custom_permissions or []),
            "is_active": self.is_active,
            "is_locked": self.is_locked,
            "locked_at": to_utc_z(self.locked_at) if self.locked_at else None,
            "is_deleted": self.is_deleted,
            "deleted_at": to_utc_z(self.deleted_at) if self.deleted_at else None,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
            "last_login_at": to_utc_z(self.last_login_at) if self.last_login_at else None,
        }


class SessionToken(db.Model):
    """
    Session token with tenant context captured at login.

    SECURITY NOTES:
    - Tokens stored hashed in database (SHA-256)
    - Absolute and idle timeouts (see Config)
    - Revocable on logout, lock or soft delete of the account
    """
    __tablename__ = "session_tokens"
    __table_args__ = (
        db.Index("ix_session_tokens_user_active", "user_id", "is_revoked"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)

    # Token hash (never store plaintext tokens!)
    token_hash = db.Column(db.String(255), nullable=False, unique=True, index=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    last_used_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    expires_at = db.Column(db.DateTime(timezone=True), nullable=False, index=True)

    is_revoked = db.Column(db.Boolean, nullable=False, default=False, index=True)
    revoked_at = db.Column(db.DateTime(timezone=True), nullable=True)
    revoked_reason = db.Column(db.String(255), nullable=True)

    user_agent = db.Column(db.String(512), nullable=True)
    ip_address = db.Column(db.String(45), nullable=True)

    user = db.relationship("User", backref=db.backref("session_tokens", lazy=True))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "created_at": to_utc_z(self.created_at),
            "last_used_at": to_utc_z(self.last_used_at),
            "expires_at": to_utc_z(self.expires_at),
            "is_revoked": self.is_revoked,
            "revoked_at": to_utc_z(self.revoked_at) if self.revoked_at else None,
        }


class Invitation(db.Model):
    """
    Invitation to join a societe at a given role.

    Lifecycle: pending -> used (exactly once, at registration) or
    pending -> cancelled (by the owner). An invitation is redeemable only
    while pending and before expires_at. When email is set, only that email
    can redeem it.
    """
    __tablename__ = "invitations"
    __table_args__ = (
        db.Index("ix_invitations_societe_status", "societe_id", "status"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    societe_id = db.Column(db.Integer, db.ForeignKey("societes.id"), nullable=False, index=True)

    code = db.Column(db.String(16), nullable=False, unique=True, index=True)
    role = db.Column(db.String(16), nullable=False, default="vendeuse")
    email = db.Column(db.String(255), nullable=True, index=True)
    note = db.Column(db.Text, nullable=True)

    status = db.Column(db.String(16), nullable=False, default="pending")
    expires_at = db.Column(db.DateTime(timezone=True), nullable=False)

    created_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    used_at = db.Column(db.DateTime(timezone=True), nullable=True)
    used_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)

    societe = db.relationship("Societe", backref=db.backref("invitations", lazy=True))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "societe_id": self.societe_id,
            "code": self.code,
            "role": self.role,
            "email": self.email,
            "note": self.note,
            "status": self.status,
            "expires_at": to_utc_z(self.expires_at),
            "created_by_user_id": self.created_by_user_id,
            "created_at": to_utc_z(self.created_at),
            "used_at": to_utc_z(self.used_at) if self.used_at else None,
            "used_by_user_id": self.used_by_user_id,
        }
