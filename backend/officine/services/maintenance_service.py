# Overview: Housekeeping jobs run from the CLI; no request context required.

from __future__ import annotations

from datetime import timedelta

from ..extensions import db
from ..models import Invitation, SecurityEvent
from ..time_utils import utcnow
from .invitation_service import STATUS_PENDING
from .session_service import cleanup_expired_sessions


def cleanup_security_events(*, retention_days: int = 90) -> int:
    """Delete security events older than retention_days."""
    cutoff = utcnow() - timedelta(days=retention_days)
    deleted = db.session.query(SecurityEvent).filter(
        SecurityEvent.occurred_at < cutoff
    ).delete(synchronize_session=False)
    db.session.commit()
    return deleted


def cleanup_sessions(*, older_than_days: int = 30) -> int:
    return cleanup_expired_sessions(older_than_days=older_than_days)


def purge_expired_invitations(*, older_than_days: int = 30) -> int:
    """
    Delete pending invitations that expired more than older_than_days ago.

    Used invitations are kept: users.created_by_invitation_id points at them.
    """
    cutoff = utcnow() - timedelta(days=older_than_days)
    deleted = db.session.query(Invitation).filter(
        Invitation.status == STATUS_PENDING,
        Invitation.expires_at < cutoff,
    ).delete(synchronize_session=False)
    db.session.commit()
    return deleted
