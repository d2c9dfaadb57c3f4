# Overview: Service-layer operations for sessions and identity resolution.

"""
Session Token Management and Identity Resolution

Every authenticated request is resolved exactly once into an Identity
(user, role, societe_id, is_owner plus account state). Route handlers pass
that value explicitly to the service layer; nothing reads tenant context
from ambient state below the route.

SECURITY FEATURES:
- Cryptographically secure random tokens (32 bytes)
- Tokens hashed with SHA-256 before storage
- Absolute timeout (SESSION_ABSOLUTE_TIMEOUT_HOURS, default 24h)
- Idle timeout (SESSION_IDLE_TIMEOUT_HOURS, default 2h)
- Revocable on logout, lock and soft delete

TENANT CONTEXT: unlike the token itself, the societe is read from the user
row on every resolution, so a user who joins a societe mid-session sees it
on the next request.
"""

import hashlib
import secrets
from dataclasses import dataclass
from datetime import timedelta

from flask import current_app

from ..extensions import db
from ..models import SessionToken, User
from ..time_utils import utcnow


@dataclass(frozen=True)
class Identity:
    """
    Resolved caller: {role, societe_id, is_owner, user} plus extra tags
    granted by the owner and account state.

    societe_id is None for anonymous callers and for users awaiting an
    invitation. Frozen so services cannot alter the caller's tenant.
    """
    user_id: int | None = None
    email: str | None = None
    display_name: str | None = None
    role: str | None = None
    societe_id: int | None = None
    is_owner: bool = False
    custom_permissions: frozenset = frozenset()
    is_active: bool = False
    is_locked: bool = False
    is_deleted: bool = False

    @classmethod
    def anonymous(cls) -> "Identity":
        return cls()

    @classmethod
    def from_user(cls, user: User) -> "Identity":
        return cls(
            user_id=user.id,
            email=user.email,
            display_name=user.display_name,
            role=user.role,
            societe_id=user.societe_id,
            is_owner=bool(user.is_owner),
            custom_permissions=frozenset(user.custom_permissions or ()),
            is_active=bool(user.is_active),
            is_locked=bool(user.is_locked),
            is_deleted=bool(user.is_deleted),
        )

    @property
    def is_authenticated(self) -> bool:
        return self.user_id is not None

    @property
    def awaiting_societe(self) -> bool:
        """Valid authenticated state: route to the join screen."""
        return self.is_authenticated and self.societe_id is None

    def to_dict(self) -> dict:
        return {
            "user_id": self.user_id,
            "email": self.email,
            "display_name": self.display_name,
            "role": self.role,
            "societe_id": self.societe_id,
            "is_owner": self.is_owner,
            "custom_permissions": sorted(self.custom_permissions),
            "is_active": self.is_active,
            "is_locked": self.is_locked,
            "is_deleted": self.is_deleted,
            "awaiting_societe": self.awaiting_societe,
        }


@dataclass
class SessionContext:
    """Validated session plus the identity resolved from it."""
    identity: Identity
    user: User
    session: SessionToken


def _absolute_timeout() -> timedelta:
    return timedelta(hours=current_app.config.get("SESSION_ABSOLUTE_TIMEOUT_HOURS", 24))


def _idle_timeout() -> timedelta:
    return timedelta(hours=current_app.config.get("SESSION_IDLE_TIMEOUT_HOURS", 2))


def generate_token() -> str:
    """64-character hex string (32 bytes of entropy). Never stored."""
    return secrets.token_hex(32)


def hash_token(token: str) -> str:
    """
    Hash token for database storage using SHA-256.

    Tokens are high-entropy, so a fast hash is sufficient (unlike passwords).
    """
    return hashlib.sha256(token.encode("utf-8")).hexdigest()


def resolve_identity(user_id: int | None, email: str | None = None) -> Identity:
    """
    Load the user record for an authenticated (id, email) pair.

    Missing record (or email mismatch) -> anonymous identity with no tenant.
    A user without societe_id resolves normally (awaiting invitation).
    """
    if user_id is None:
        return Identity.anonymous()
    user = db.session.get(User, user_id)
    if user is None:
        return Identity.anonymous()
    if email is not None and user.email != email.strip().lower():
        return Identity.anonymous()
    return Identity.from_user(user)


def create_session(
    user_id: int,
    user_agent: str | None = None,
    ip_address: str | None = None,
) -> tuple[SessionToken, str]:
    """
    Create new session token for user.

    Returns (session_record, plaintext_token).
    Client receives plaintext_token, database stores only the hash.

    Users without a societe may hold a session: they need it to join one.
    """
    user = db.session.get(User, user_id)
    if not user:
        raise ValueError("User not found")

    plaintext_token = generate_token()
    now = utcnow()

    session = SessionToken(
        user_id=user_id,
        token_hash=hash_token(plaintext_token),
        created_at=now,
        last_used_at=now,
        expires_at=now + _absolute_timeout(),
        user_agent=user_agent,
        ip_address=ip_address,
        is_revoked=False,
    )

    db.session.add(session)
    db.session.commit()

    return session, plaintext_token


def _revoke(session: SessionToken, reason: str, now) -> None:
    session.is_revoked = True
    session.revoked_at = now
    session.revoked_reason = reason


def validate_session(token: str) -> SessionContext | None:
    """
    Validate session token and return SessionContext if valid.

    Returns None if:
    - Token is invalid, expired, or revoked
    - Idle timeout exceeded (the session is revoked)
    - User row is gone

    Blocked accounts (inactive, locked, deleted) still resolve here; the
    decorator answers them with their block message.

    Updates last_used_at on successful validation.
    """
    now = utcnow()

    session = db.session.query(SessionToken).filter_by(
        token_hash=hash_token(token),
        is_revoked=False,
    ).first()

    if not session:
        return None

    if session.expires_at < now:
        return None

    if now - session.last_used_at > _idle_timeout():
        _revoke(session, "Idle timeout", now)
        db.session.commit()
        return None

    user = session.user
    if not user:
        _revoke(session, "User not found", now)
        db.session.commit()
        return None

    session.last_used_at = now
    db.session.commit()

    return SessionContext(identity=Identity.from_user(user), user=user, session=session)


def revoke_session(token: str, reason: str = "User logout") -> bool:
    """Revoke session token. Returns True if a live session was revoked."""
    session = db.session.query(SessionToken).filter_by(
        token_hash=hash_token(token),
        is_revoked=False,
    ).first()

    if not session:
        return False

    _revoke(session, reason, utcnow())
    db.session.commit()
    return True


def revoke_all_user_sessions(user_id: int, reason: str = "Revoke all sessions", *, commit: bool = True) -> int:
    """
    Revoke all active sessions for a user.

    Returns count of sessions revoked. commit=False lets a caller fold the
    revocation into its own transaction (lock/delete of an account).
    """
    now = utcnow()

    sessions = db.session.query(SessionToken).filter_by(
        user_id=user_id,
        is_revoked=False,
    ).all()

    for session in sessions:
        _revoke(session, reason, now)

    if commit:
        db.session.commit()
    return len(sessions)


def cleanup_expired_sessions(older_than_days: int = 30) -> int:
    """
    Delete expired and revoked sessions older than older_than_days.

    Returns count of sessions deleted.
    """
    now = utcnow()
    cutoff = now - timedelta(days=older_than_days)

    deleted = db.session.query(SessionToken).filter(
        db.or_(
            SessionToken.expires_at < now,
            SessionToken.is_revoked.is_(True),
        ),
        SessionToken.created_at < cutoff,
    ).delete(synchronize_session=False)

    db.session.commit()
    return deleted
