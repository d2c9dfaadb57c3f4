"""
Multi-Tenant Service: Tenant Validation and Scoping Helpers

Every tenant-owned table carries societe_id. All reads and writes of the
service layer go through these helpers with the caller's resolved
societe_id passed explicitly.

SECURITY INVARIANTS:
1. A missing societe_id short-circuits to an empty result, never to an
   unscoped query
2. Record ids from client input are validated against the caller's societe
3. Foreign records are reported exactly like missing ones
4. Cross-tenant access attempts are logged as security events

USAGE:
    from officine.services.tenant_service import scoped_query, get_scoped_or_404

    sales = scoped_query(Sale, identity.societe_id).all()
    sale = get_scoped_or_404(Sale, sale_id, identity.societe_id, user_id=identity.user_id)
"""

from sqlalchemy import false

from ..extensions import db
from .policy_service import log_security_event


class TenantAccessError(LookupError):
    """Record not found in the caller's societe (missing or foreign)."""


class SocieteRequiredError(Exception):
    """
    Authenticated caller has no societe yet ("awaiting invitation").

    Not a failure: routes answer with a pointer to the join screen.
    """
    next_path = "/societe"

    def __init__(self, message: str = "Join or create a societe first"):
        super().__init__(message)


def require_societe(identity) -> int:
    """Return identity.societe_id or raise SocieteRequiredError."""
    if identity is None or identity.societe_id is None:
        raise SocieteRequiredError()
    return identity.societe_id


def scoped_query(model, societe_id: int | None):
    """
    Base query for a tenant-owned model, filtered by societe_id.

    societe_id None -> a query that matches nothing.
    """
    query = db.session.query(model)
    if societe_id is None:
        return query.filter(false())
    return query.filter(model.societe_id == societe_id)


def get_scoped_or_404(model, record_id, societe_id: int | None, *, user_id: int | None = None):
    """
    Fetch one tenant-owned record by primary key.

    Raises TenantAccessError when the record is missing or belongs to
    another societe (the latter is logged as CROSS_TENANT_ACCESS_DENIED).
    """
    name = model.__name__
    if record_id is None or societe_id is None:
        raise TenantAccessError(f"{name} not found")

    record = db.session.get(model, record_id)
    if record is None:
        raise TenantAccessError(f"{name} not found")

    if record.societe_id != societe_id:
        _log_cross_tenant_attempt(
            f"{name} {record_id} belongs to societe {record.societe_id}, not {societe_id}",
            societe_id=societe_id,
            user_id=user_id,
        )
        # Don't reveal it exists in another societe
        raise TenantAccessError(f"{name} not found")

    return record


def require_all_scoped(model, record_ids: list[int], societe_id: int | None, *, user_id: int | None = None) -> list:
    """Batch variant of get_scoped_or_404, preserving the requested order."""
    return [get_scoped_or_404(model, rid, societe_id, user_id=user_id) for rid in record_ids]


def _log_cross_tenant_attempt(
    reason: str,
    societe_id: int | None = None,
    user_id: int | None = None,
) -> None:
    log_security_event(
        user_id=user_id,
        event_type="CROSS_TENANT_ACCESS_DENIED",
        success=False,
        reason=reason,
        societe_id=societe_id,
    )
