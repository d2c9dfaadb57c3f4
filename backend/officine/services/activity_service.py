# Overview: Append-only business journal ("activities") per societe.

from __future__ import annotations

import json
from datetime import datetime
from typing import Optional

from ..extensions import db
from ..models import Activity
from .tenant_service import scoped_query

"""
Journal invariants

- Append-only: no updates, no deletes.
- Written in the same transaction as the action it records (no commit here).
- details is small metadata; it never duplicates domain state.
"""


def record_activity(
    identity,
    *,
    activity_type: str,
    action: str,
    entity_id: int | None = None,
    details: Optional[dict] = None,
    societe_id: int | None = None,
) -> Activity:
    """Add a journal row to the current session; the caller commits."""
    ev = Activity(
        societe_id=societe_id if societe_id is not None else identity.societe_id,
        activity_type=activity_type,
        action=action,
        entity_id=entity_id,
        actor_user_id=identity.user_id,
        actor_email=identity.email,
        details=json.dumps(details, ensure_ascii=False, default=str) if details else None,
    )
    db.session.add(ev)
    return ev


def list_activities(
    societe_id: int | None,
    *,
    activity_type: str | None = None,
    since: datetime | None = None,
    limit: int = 100,
) -> list[Activity]:
    q = scoped_query(Activity, societe_id)
    if activity_type:
        q = q.filter(Activity.activity_type == activity_type)
    if since is not None:
        q = q.filter(Activity.occurred_at >= since)
    return q.order_by(Activity.occurred_at.desc(), Activity.id.desc()).limit(limit).all()
